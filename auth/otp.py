"""
auth/otp.py -- One-time code generation and checking.

Codes are numeric, drawn from secrets (CSPRNG), and compared in constant
time. The module holds no state: AuthService decides when a code is issued,
stored, or cleared.
"""

from __future__ import annotations

import hmac
import secrets
from datetime import datetime, timedelta

OTP_ALPHABET = "0123456789"


def generate_otp(length: int = 6) -> str:
    """Return a random numeric code of the given length (leading zeros kept)."""
    return "".join(secrets.choice(OTP_ALPHABET) for _ in range(length))


def otp_deadline(now: datetime, ttl_seconds: int) -> datetime:
    return now + timedelta(seconds=ttl_seconds)


def otp_matches(stored: str | None, expires: datetime | None, supplied: str, now: datetime) -> bool:
    """Return True if supplied equals the pending code and the deadline has not passed.

    A code is rejected at or after its deadline, so expiry wins even when the
    string matches exactly. No pending code means nothing can match.
    """
    if stored is None or expires is None:
        return False
    if now >= expires:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), supplied.encode("utf-8"))
