"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
AccountStore and OtpStore are the repositories; _row_to_account /
_row_to_otp are the mappers. Service and route code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the database, not by a read-then-write check
  in code. Two concurrent signups for the same email both pass the service's
  existence check; the second INSERT raises IntegrityError, which the service
  maps to a conflict.

  link_google_id() only writes when google_id IS NULL, so a federated
  identity, once linked, is never overwritten -- not even by a racing request.

Both stores share one Engine built by create_db_engine(); the owner of the
engine (api/main.py lifespan) disposes it on shutdown.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from auth.models import Account, ApprovalStatus, OtpRecord, RecruiterProfile, Role

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("phone", String(30)),
    Column("password_hash", Text, nullable=False, server_default=""),  # "" for federation-only accounts
    Column("role", String(30), nullable=False, server_default="user"),
    Column("is_blocked", Integer, nullable=False, server_default="0"),
    Column("google_id", String(255)),  # provider's stable subject id
    # Recruiter payload -- NULL for every other role
    Column("company_name", String(255)),
    Column("company_description", Text),
    Column("company_logo_url", Text),
    Column("approval_status", String(20)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_otps = Table(
    "otps",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, index=True),
    Column("code", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str) -> Engine:
    """Build the Engine shared by AccountStore and OtpStore and create the schema."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account records of every role, keyed by email.

    Usage:
        store = AccountStore(create_db_engine("sqlite:///auth.db"))
        account_id = store.create_account(Account(email="a@x.com", first_name="A", last_name="B"))
        account = store.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers must treat that as "a concurrent request created it first".
        """
        profile = account.profile
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    email=account.email,
                    first_name=account.first_name,
                    last_name=account.last_name,
                    phone=account.phone,
                    password_hash=account.password_hash,
                    role=account.role.value,
                    is_blocked=1 if account.is_blocked else 0,
                    google_id=account.google_id,
                    company_name=profile.company_name if profile else None,
                    company_description=profile.company_description if profile else None,
                    company_logo_url=profile.company_logo_url if profile else None,
                    approval_status=profile.approval_status.value if profile else None,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: int) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def link_google_id(self, account_id: int, google_id: str) -> bool:
        """Attach a Google subject id to an account that has none yet.

        Returns True if the link was written, False if the account already
        carries a google_id (which is left untouched) or does not exist.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where((_accounts.c.id == account_id) & (_accounts.c.google_id.is_(None)))
                .values(google_id=google_id, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def update_password(self, account_id: int, password_hash: str) -> bool:
        """Overwrite the stored password hash. Returns False if the account is gone."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(password_hash=password_hash, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def set_blocked(self, account_id: int, blocked: bool) -> bool:
        """Moderation hook: block or unblock an account."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(is_blocked=1 if blocked else 0, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0


class OtpStore:
    """Ledger of issued OTP codes.

    issue() is the write side used by the OTP delivery service; signup only
    ever calls latest().
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def issue(self, email: str, code: str) -> OtpRecord:
        created_at = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_otps.insert().values(email=email, code=code, created_at=created_at))
            conn.commit()
            return OtpRecord(email=email, code=code, id=result.inserted_primary_key[0], created_at=created_at)

    def latest(self, email: str) -> OtpRecord | None:
        """Return the most recently issued OTP for email, or None.

        Ties on created_at (same clock tick) are broken by insertion order.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                _otps.select()
                .where(_otps.c.email == email)
                .order_by(_otps.c.created_at.desc(), _otps.c.id.desc())
                .limit(1)
            ).fetchone()
        return _row_to_otp(row) if row is not None else None


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    role = Role(row.role)
    profile: RecruiterProfile | None = None
    if role is Role.recruiter:
        profile = RecruiterProfile(
            company_name=row.company_name or "",
            company_description=row.company_description,
            company_logo_url=row.company_logo_url,
            approval_status=ApprovalStatus(row.approval_status or ApprovalStatus.pending.value),
        )
    return Account(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        phone=row.phone,
        password_hash=row.password_hash or "",
        role=role,
        is_blocked=bool(row.is_blocked),
        google_id=row.google_id,
        profile=profile,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_otp(row) -> OtpRecord:
    return OtpRecord(id=row.id, email=row.email, code=row.code, created_at=row.created_at)
