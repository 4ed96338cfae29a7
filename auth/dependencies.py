"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Three credentials are checked in priority order:
  1. Token cookie -- set by POST /api/v1/auth/token.
  2. Authorization: Bearer <token> header -- API clients that keep the token
     from the response body.
  3. Session cookie -- set by the browser login flow (POST /auth/login).

All three converge on a User loaded fresh from the store, so a deleted
account stops authenticating immediately even while its JWT is unexpired.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises UnauthorizedError if unauthenticated.

Layer rule: no imports from api/ or web/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import UnauthorizedError
from auth.models import User
from auth.service import AuthService
from auth.tokens import decode_access_token


def try_get_current_user(request: Request) -> User | None:
    """Attempt to authenticate the request via token cookie, Bearer header, or session.

    Returns the authenticated User on success, None on any failure.
    Never raises -- callers that need a hard 401 should use get_current_user().
    """
    service: AuthService = request.app.state.auth_service
    settings = service.settings

    # 1. Token cookie
    token: str | None = request.cookies.get(settings.token_cookie_name)

    # 2. Authorization: Bearer header
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if token:
        payload = decode_access_token(token, settings)
        if payload:
            user = service.store.find_by_id(payload["user_id"])
            if user is not None:
                return user

    # 3. Server-side session
    session_id = request.cookies.get(settings.session_cookie_name)
    if session_id:
        session = service.resolve_session(session_id)
        if session is not None:
            return service.store.find_by_id(session.user_id)

    return None


def get_current_user(request: Request) -> User:
    """Require authentication. Raises UnauthorizedError (401) if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise UnauthorizedError("Authentication required.")
    return user
