"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own the
domain shape; the store and AuthService do the work.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A registered account.

    email is unique and immutable once created. It is matched exactly as
    stored (case-sensitive).

    otp / otp_expires are set together while an email verification is
    pending and cleared together once it succeeds (or a resend fails).
    otp_expires is an aware UTC datetime and marks the first instant at
    which the code is no longer accepted.

    Never serialize this dataclass directly -- api.models.UserPublic is the
    only outward shape and it drops hashed_password and the otp fields.
    """

    name: str
    email: str
    hashed_password: str
    id: int | None = None
    otp: str | None = None
    otp_expires: datetime | None = None
    created_at: str | None = None


@dataclass
class Session:
    """Server-side session record for the browser login flow.

    Identified by a random opaque id carried in the session cookie. Its
    lifetime is independent of any JWT issued to the same user.
    """

    id: str
    user_id: int
    name: str
    created_at: str
    expires_at: datetime
