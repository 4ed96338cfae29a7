"""
API request and response models for AccountGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Redaction: UserPublic is the only model that carries a user outward and it has
no field for the password hash or the one-time code. Every response that
embeds a user must go through UserPublic.from_user().

Request fields are optional at this layer on purpose. "Missing field" is a
domain rule with its own message (AuthService raises ValidationError), not a
422 from FastAPI's request validation.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TokenRequest(BaseModel):
    """Request body for POST /api/v1/auth/token."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class UserUpdate(BaseModel):
    """Request body for PATCH /api/v1/auth/me. At least one field must be non-empty.

    Only name is trimmed. The password is hashed exactly as sent, the same as
    at registration and login.
    """

    name: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserPublic(BaseModel):
    """Outward view of a user -- no password hash, no OTP fields."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(id=user.id, name=user.name, email=user.email, created_at=user.created_at or "")


class UserEnvelope(BaseModel):
    user: UserPublic


class MessageResponse(BaseModel):
    """Generic success confirmation."""

    success: bool = True
    message: str


class UserResponse(MessageResponse):
    """Success confirmation that embeds the (redacted) user."""

    data: UserEnvelope


class TokenResponse(UserResponse):
    """Response for POST /api/v1/auth/token. The token is also set as a cookie."""

    token: str
    token_type: str = "bearer"
    expires_in: int


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
