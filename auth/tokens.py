"""
auth/tokens.py -- JWT, password hashing, and cookie utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, issue time, and expiry. Verification returns None on any
       failure -- the dependency layer turns that into a 401.

  Passwords: bcrypt used directly. Its cost factor makes brute-force
       expensive. The _DUMMY_HASH constant enables timing equalization in
       authenticate_user() so response time does not reveal whether an
       email is registered.

  Cookies: httpOnly and path=/ always. secure/samesite follow the deployment
       environment: production forces secure and uses PRODUCTION_SAMESITE,
       other environments use lax and make secure opt-in so plain-http
       localhost keeps working. Clearing a cookie uses the same attributes,
       otherwise browsers keep the original.

  Settings are passed in by the caller (AuthService, dependencies, routes)
  rather than read here, so tests can sign with their own key.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore
    from core.config import Settings

logger = logging.getLogger("accountgate.auth")

_ALGORITHM = "HS256"

# bcrypt only looks at the first 72 bytes and bcrypt>=4.1 refuses longer input.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Callers must reject passwords over MAX_PASSWORD_BYTES first;
    AuthService does this as part of the password policy.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Over-long input or a malformed stored hash: never a match.
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. Always call verify_password() even when the
# email does not exist.
_DUMMY_HASH: str = hash_password("accountgate_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, settings: Settings, expire_seconds: int = 0) -> str:
    """Encode a signed JWT bound to a user id.

    Args:
        user_id:        Numeric user ID stored in the DB.
        settings:       Application settings (signing key, default expiry).
        expire_seconds: Token lifetime in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "iat": issued,
        "exp": issued + timedelta(seconds=duration),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Expired tokens fail signature/claims verification inside jose and come
    back as None like any other invalid token.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("user_id"), int):
        return None
    return payload


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.find_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def cookie_policy(settings: Settings) -> dict:
    """Return the attribute set shared by every cookie this service writes or clears."""
    if settings.is_production:
        return {"path": "/", "httponly": True, "secure": True, "samesite": settings.production_samesite}
    return {"path": "/", "httponly": True, "secure": settings.secure_cookies, "samesite": "lax"}


def set_auth_cookie(response, token: str, settings: Settings, expire_seconds: int = 0) -> None:
    """Write the JWT as an httpOnly cookie whose max_age matches the token expiry."""
    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    response.set_cookie(settings.token_cookie_name, value=token, max_age=duration, **cookie_policy(settings))


def set_session_cookie(response, session_id: str, settings: Settings) -> None:
    """Write the opaque server-side session id as an httpOnly cookie."""
    response.set_cookie(
        settings.session_cookie_name,
        value=session_id,
        max_age=settings.session_expire_seconds,
        **cookie_policy(settings),
    )


def clear_auth_cookies(response, settings: Settings) -> None:
    """Delete both the session cookie and the token cookie."""
    policy = cookie_policy(settings)
    for name in (settings.session_cookie_name, settings.token_cookie_name):
        response.delete_cookie(name, **policy)
