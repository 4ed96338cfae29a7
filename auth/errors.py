"""
auth/errors.py -- Typed failures raised by AuthService and the store.

Every domain failure is an AuthError subclass carrying an HTTP status, a
machine-readable code, and a human-readable message. api/main.py maps them
to the shared error envelope in one exception handler; route handlers never
build error responses by hand.

InvalidOtpError deliberately shares ValidationError's status and code so a
wrong or expired code looks like any other bad input. UnauthorizedError is
used for both "no such account" and "wrong password".
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthError):
    status_code = 400
    code = "validation_error"


class ConflictError(AuthError):
    status_code = 409
    code = "conflict"


class InvalidOtpError(AuthError):
    status_code = 400
    code = "validation_error"


class UnauthorizedError(AuthError):
    status_code = 401
    code = "unauthorized"


class NotFoundError(AuthError):
    status_code = 404
    code = "not_found"


class DeliveryError(AuthError):
    """The notification channel failed after local state was rolled back."""

    status_code = 500
    code = "delivery_failed"


class SessionError(AuthError):
    status_code = 500
    code = "session_error"
