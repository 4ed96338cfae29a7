"""
api/routes/v1/auth.py -- Token issuance and account management REST endpoints.

Routes:
  POST   /api/v1/auth/token  -- email/password -> signed JWT (cookie + body)
  GET    /api/v1/auth/me     -- current user (requires auth)
  PATCH  /api/v1/auth/me     -- update name and/or password (requires auth)
  DELETE /api/v1/auth/me     -- delete own account (requires auth)

The browser flows (register, verify-otp, resend-otp, login, logout) live in
web/routes.py because they answer with redirects rather than JSON.

Security:
  POST /token is rate-limited by LOGIN_RATE_LIMIT per IP.
  POST /token returns the same generic 401 for unknown email and wrong
  password (AuthService.authenticate does the timing equalization).
  Cache-Control: no-store on token responses.
  Every user in a response body goes through UserPublic (no hash, no OTP).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import MessageResponse, TokenRequest, TokenResponse, UserEnvelope, UserPublic, UserResponse, UserUpdate
from auth.dependencies import get_current_user
from auth.models import User
from auth.service import AuthService
from auth.tokens import set_auth_cookie

# Auth policy:
# - POST   /api/v1/auth/token: public -- this is how API clients get credentials
# - GET    /api/v1/auth/me:    requires auth (get_current_user)
# - PATCH  /api/v1/auth/me:    requires auth (get_current_user)
# - DELETE /api/v1/auth/me:    requires auth (get_current_user)
router = APIRouter()


@router.post("/auth/token", response_model=TokenResponse)
@limiter.limit(login_rate_limit)
def issue_token(request: Request, body: TokenRequest) -> JSONResponse:
    """Authenticate with email and password; return a JWT and set it as a cookie."""
    service: AuthService = request.app.state.auth_service
    user, token = service.issue_token(body.email, body.password)

    resp = JSONResponse(
        status_code=200,
        content=TokenResponse(
            message="Token issued.",
            token=token,
            expires_in=service.settings.token_expire_seconds,
            data=UserEnvelope(user=UserPublic.from_user(user)),
        ).model_dump(),
    )
    set_auth_cookie(resp, token, service.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=UserPublic)
def me(current_user: User = Depends(get_current_user)) -> UserPublic:
    """Return the currently authenticated user."""
    return UserPublic.from_user(current_user)


@router.patch("/auth/me", response_model=UserResponse)
def update_me(
    request: Request,
    body: UserUpdate,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Change the caller's display name and/or password."""
    service: AuthService = request.app.state.auth_service
    updated = service.update_user(current_user.id, name=body.name, password=body.password)
    return UserResponse(
        message="User updated successfully.",
        data=UserEnvelope(user=UserPublic.from_user(updated)),
    )


@router.delete("/auth/me", response_model=MessageResponse)
def delete_me(request: Request, current_user: User = Depends(get_current_user)) -> MessageResponse:
    """Permanently delete the caller's account and its sessions."""
    service: AuthService = request.app.state.auth_service
    service.delete_user(current_user.id)
    return MessageResponse(message="User deleted successfully.")
