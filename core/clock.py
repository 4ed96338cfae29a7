"""
core/clock.py -- Injectable time source.

Everything that compares against a deadline (OTP expiry, session expiry)
takes a Clock instead of calling datetime.now() inline, so tests can move
time forward without sleeping.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
