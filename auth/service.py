"""
auth/service.py -- Registration, OTP verification, and session orchestration.

AuthService is the only place that decides how a user moves through its
lifecycle:

    register ──> (otp pending) ──verify_otp──> verified
                      │   ^
                      └───┘ resend_otp (new code replaces the old one)

Every method either returns a value or raises an AuthError subclass from
auth/errors.py. Routes translate return values into redirects/JSON and let
the exception handler in api/main.py render the errors.

Compensation:
  register() writes the user before emailing the code; if the email fails
  the user is deleted again before DeliveryError is raised. resend_otp()
  writes the new code before emailing it; if the email fails the code is
  cleared again. The compensating write is not retried -- if it raises, the
  store error propagates and the client gets a generic 500.

Collaborators (store, email sender, settings, clock) are injected in the
constructor. Nothing here reads the environment or the wall clock directly.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import (
    ConflictError,
    DeliveryError,
    InvalidOtpError,
    NotFoundError,
    SessionError,
    UnauthorizedError,
    ValidationError,
)
from auth.models import Session, User
from auth.notifier import NotificationError, render_otp_email
from auth.otp import generate_otp, otp_deadline, otp_matches
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, authenticate_user, create_access_token, hash_password
from core.clock import Clock, utc_now
from core.config import Settings

logger = logging.getLogger("accountgate.auth.service")

# At least 8 characters with a letter, a digit, and a non-alphanumeric symbol
# (underscore counts as a symbol).
_PASSWORD_POLICY = re.compile(r"(?=.*\d)(?=.*[a-zA-Z])(?=.*[\W_]).{8,}", re.DOTALL)

MSG_FIELDS_REQUIRED = "All fields are required."
MSG_WEAK_PASSWORD = (
    "Password must be at least 8 characters long and contain at least one letter, one digit and one special character."
)
MSG_PASSWORD_TOO_LONG = f"Password must be at most {MAX_PASSWORD_BYTES} bytes long."
MSG_EMAIL_TAKEN = "Email is already in use."
MSG_REGISTER_DELIVERY = "Failed to send the confirmation email. Please try again."
MSG_VERIFY_FIELDS = "Email and OTP are required."
MSG_USER_NOT_FOUND = "User not found."
MSG_INVALID_OTP = "Invalid or expired OTP."
MSG_RESEND_EMAIL = "Email is required to resend the OTP."
MSG_RESEND_DELIVERY = "Failed to send the OTP. Please try again."
MSG_INVALID_CREDENTIALS = "Invalid credentials."
MSG_NO_UPDATE = "No data provided for update."
MSG_LOGOUT_FAILED = "Logout failed."

SUBJECT_CONFIRM = "Email Confirmation"
SUBJECT_RESEND = "Resend OTP for Email Verification"


class EmailSender(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> None: ...


def check_password_policy(password: str) -> None:
    """Raise ValidationError unless password satisfies the composite policy."""
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(MSG_PASSWORD_TOO_LONG)
    if not _PASSWORD_POLICY.fullmatch(password):
        raise ValidationError(MSG_WEAK_PASSWORD)


class AuthService:
    """Orchestrates the account lifecycle over a store, an email sender, and a clock.

    Usage:
        service = AuthService(store, build_email_sender(settings), settings)
        service.register("Ann", "ann@example.com", "s3cret!pw")
        service.verify_otp("ann@example.com", "123456")
    """

    def __init__(self, store: UserStore, email_sender: EmailSender, settings: Settings, clock: Clock = utc_now) -> None:
        self.store = store
        self.email_sender = email_sender
        self.settings = settings
        self.clock = clock

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    def register(self, name: str | None, email: str | None, password: str | None) -> User:
        """Create an unverified account and email it a one-time code.

        Raises ValidationError, ConflictError, or DeliveryError. On
        DeliveryError the account has already been removed again.
        """
        if not name or not email or not password:
            raise ValidationError(MSG_FIELDS_REQUIRED)
        check_password_policy(password)

        if self.store.find_by_email(email) is not None:
            raise ConflictError(MSG_EMAIL_TAKEN)

        otp = generate_otp(self.settings.otp_length)
        pending = User(
            name=name,
            email=email,
            hashed_password=hash_password(password),
            otp=otp,
            otp_expires=otp_deadline(self.clock(), self.settings.otp_ttl_seconds),
        )
        try:
            user = self.store.create(pending)
        except IntegrityError as exc:
            # A concurrent registration won the race past the existence check.
            raise ConflictError(MSG_EMAIL_TAKEN) from exc

        try:
            self._send_otp(user.email, otp, resend=False)
        except NotificationError as exc:
            logger.warning("Confirmation email to %s failed; removing user %s", user.email, user.id)
            self._compensate(lambda: self.store.delete_by_id(user.id), "delete unverified user", user.id)
            raise DeliveryError(MSG_REGISTER_DELIVERY) from exc

        logger.info("Registered user %s (%s), awaiting OTP verification", user.id, user.email)
        return user

    def verify_otp(self, email: str | None, otp: str | None) -> User:
        """Consume the pending code for email. Verification does not log the user in."""
        if not email or not otp:
            raise ValidationError(MSG_VERIFY_FIELDS)

        user = self.store.find_by_email(email)
        if user is None:
            raise NotFoundError(MSG_USER_NOT_FOUND)

        now = self.clock()
        if not otp_matches(user.otp, user.otp_expires, otp, now):
            raise InvalidOtpError(MSG_INVALID_OTP)
        if not self.store.consume_otp(user.id, otp, now):
            # Replaced or consumed by a concurrent request since the read above.
            raise InvalidOtpError(MSG_INVALID_OTP)

        user.otp = None
        user.otp_expires = None
        logger.info("User %s verified their email", user.id)
        return user

    def resend_otp(self, email: str | None) -> None:
        """Replace any pending code with a fresh one and email it.

        The previous code stops working as soon as the new one is stored. If
        the email fails, the new code is cleared too, leaving no pending code.
        """
        if not email:
            raise ValidationError(MSG_RESEND_EMAIL)

        user = self.store.find_by_email(email)
        if user is None:
            raise NotFoundError(MSG_USER_NOT_FOUND)

        otp = generate_otp(self.settings.otp_length)
        user.otp = otp
        user.otp_expires = otp_deadline(self.clock(), self.settings.otp_ttl_seconds)
        # Only the otp columns changed; skip the required-field checks.
        self.store.save(user, validate=False)

        try:
            self._send_otp(user.email, otp, resend=True)
        except NotificationError as exc:
            logger.warning("OTP resend to %s failed; clearing pending code for user %s", user.email, user.id)
            user.otp = None
            user.otp_expires = None
            self._compensate(lambda: self.store.save(user, validate=False), "clear pending OTP", user.id)
            raise DeliveryError(MSG_RESEND_DELIVERY) from exc

        logger.info("Re-sent OTP to user %s", user.id)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self, email: str | None, password: str | None) -> User:
        """Return the user for a valid email/password pair.

        Unknown email and wrong password raise the same UnauthorizedError.
        """
        user = authenticate_user(self.store, email or "", password or "")
        if user is None:
            raise UnauthorizedError(MSG_INVALID_CREDENTIALS)
        return user

    def login(self, email: str | None, password: str | None) -> tuple[User, Session]:
        """Authenticate and open a server-side session for the browser flow."""
        user = self.authenticate(email, password)
        session = self.store.create_session(user.id, user.name, self.settings.session_expire_seconds, self.clock())
        logger.info("User logged in: id=%s name=%s", user.id, user.name)
        return user, session

    def issue_token(self, email: str | None, password: str | None) -> tuple[User, str]:
        """Authenticate and sign a bearer token over the user id."""
        user = self.authenticate(email, password)
        token = create_access_token(user.id, self.settings)
        logger.info("Issued access token for user %s", user.id)
        return user, token

    def resolve_session(self, session_id: str) -> Session | None:
        return self.store.get_session(session_id, self.clock())

    def logout(self, session_id: str | None) -> None:
        """Destroy the server-side session record, if the caller has one."""
        if not session_id:
            return
        try:
            self.store.delete_session(session_id)
        except SQLAlchemyError as exc:
            logger.error("Failed to destroy session: %s", exc)
            raise SessionError(MSG_LOGOUT_FAILED) from exc

    # ------------------------------------------------------------------
    # Account mutation
    # ------------------------------------------------------------------

    def update_user(self, user_id: int, name: str | None = None, password: str | None = None) -> User:
        """Change name and/or password. Only supplied (non-empty) fields are written."""
        if not name and not password:
            raise ValidationError(MSG_NO_UPDATE)

        updates: dict = {}
        if name:
            updates["name"] = name
        if password:
            check_password_policy(password)
            updates["hashed_password"] = hash_password(password)

        user = self.store.update_by_id(user_id, updates, validate=True)
        if user is None:
            raise NotFoundError(MSG_USER_NOT_FOUND)
        return user

    def delete_user(self, user_id: int) -> User:
        user = self.store.delete_by_id(user_id)
        if user is None:
            raise NotFoundError(MSG_USER_NOT_FOUND)
        logger.info("Deleted user %s", user_id)
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send_otp(self, email: str, otp: str, resend: bool) -> None:
        subject = SUBJECT_RESEND if resend else SUBJECT_CONFIRM
        body = render_otp_email(otp, self.settings.otp_ttl_seconds, resend=resend)
        self.email_sender.send(email, subject, body)

    def _compensate(self, action, description: str, user_id: int | None) -> None:
        """Run a rollback write; a failure here is logged and re-raised as-is."""
        try:
            action()
        except SQLAlchemyError:
            logger.exception("Compensation failed (%s) for user %s", description, user_id)
            raise
