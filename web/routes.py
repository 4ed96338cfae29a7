"""
web/routes.py -- Browser form flows for AccountGate.

These routes take HTML form posts / query strings and answer with redirects
(or a small JSON confirmation for resend). They share app.state with the API
routes (same AuthService and store). The pages they redirect to are served
by the frontend; this module renders no HTML.

Routes:
  POST /auth/register    -- create unverified account, email OTP, 302 to OTP entry
  GET  /auth/verify-otp  -- consume OTP (?email=&otp=), 302 to profile
  POST /auth/resend-otp  -- replace pending OTP and email it, JSON confirmation
  POST /auth/login       -- open server-side session, 302 to dashboard
  POST /auth/logout      -- destroy session, clear session + token cookies, 302 to sign-in

Errors are not handled here. AuthService raises AuthError subclasses and the
exception handler in api/main.py renders them in the shared error envelope.

The login form shares the limiter instance in api/limiter.py with
POST /api/v1/auth/token so both credential checks count against one store.

Form fields default to None rather than Form(...) so a missing field reaches
AuthService and fails with its own ValidationError message instead of a 422.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.limiter import limiter, login_rate_limit
from auth.service import AuthService
from auth.tokens import clear_auth_cookies, set_session_cookie

logger = logging.getLogger("accountgate.web")

router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ---------------------------------------------------------------------------
# Registration and email verification
# ---------------------------------------------------------------------------


@router.post("/auth/register")
def register(
    request: Request,
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
) -> RedirectResponse:
    """Create an unverified account and send the OTP.

    No session or token is issued -- the account is not verified yet.
    """
    service = _service(request)
    user = service.register(name, email, password)
    target = f"{service.settings.otp_entry_path}?{urlencode({'email': user.email})}"
    return RedirectResponse(target, status_code=302)


@router.get("/auth/verify-otp")
def verify_otp(request: Request, email: Optional[str] = None, otp: Optional[str] = None) -> RedirectResponse:
    """Verify the emailed code. Success does not log the user in."""
    service = _service(request)
    service.verify_otp(email, otp)
    return RedirectResponse(service.settings.profile_path, status_code=302)


@router.post("/auth/resend-otp")
def resend_otp(request: Request, email: Optional[str] = Form(None)) -> JSONResponse:
    """Issue a fresh OTP, invalidating any previous one."""
    _service(request).resend_otp(email)
    return JSONResponse(
        status_code=200,
        content={"success": True, "message": "A new OTP has been sent to your email."},
    )


# ---------------------------------------------------------------------------
# Session login / logout
# ---------------------------------------------------------------------------


@router.post("/auth/login")
@limiter.limit(login_rate_limit)
def login(
    request: Request,
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
) -> RedirectResponse:
    """Handle email/password login form submission with a server-side session."""
    service = _service(request)
    _user, session = service.login(email, password)
    resp = RedirectResponse(service.settings.dashboard_path, status_code=302)
    set_session_cookie(resp, session.id, service.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout")
def logout(request: Request) -> RedirectResponse:
    """Destroy the session record and clear both auth cookies."""
    service = _service(request)
    service.logout(request.cookies.get(service.settings.session_cookie_name))
    resp = RedirectResponse(service.settings.sign_in_path, status_code=302)
    clear_auth_cookies(resp, service.settings)
    return resp
