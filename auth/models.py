"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own the
domain shape; stores and the service do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    user = "user"
    recruiter = "recruiter"
    admin = "admin"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


@dataclass
class RecruiterProfile:
    """Role-specific payload carried by recruiter accounts.

    Recruiters sign in through the same credential store as standard users;
    the company details and moderation status only exist for this role.
    """

    company_name: str
    company_description: str | None = None
    company_logo_url: str | None = None
    approval_status: ApprovalStatus = ApprovalStatus.pending


@dataclass
class Account:
    """An identity + credential record, keyed by email.

    password_hash is "" for federation-only accounts (created by Google
    sign-in). Such accounts can never pass a password check until a password
    reset sets a real hash.

    google_id is None until the account signs in with Google for the first
    time. Once set it is never overwritten.

    profile is the role-specific payload: a RecruiterProfile when role is
    recruiter, None for standard users.
    """

    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    password_hash: str = ""
    role: Role = Role.user
    is_blocked: bool = False
    google_id: str | None = None
    profile: RecruiterProfile | None = None
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class OtpRecord:
    """A one-time code issued to an email address.

    Only the most recent record per email is valid. Records are written by the
    external OTP issuer and read (never mutated) during signup.
    """

    email: str
    code: str
    id: int | None = None
    created_at: str | None = None
