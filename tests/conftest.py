"""
tests/conftest.py -- Shared test fixtures for AccountGate.

This module provides:
  - RecordingSender: email sender double that records messages or fails on demand
  - FakeClock: controllable time source for OTP and session expiry
  - store / service: AuthService over a private in-memory store (unit tests)
  - client: TestClient over the real app with a patched lifespan (route tests)

Design: route tests use named shared-memory SQLite URIs (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each client fixture gets its own uniquely named database.

DEBUG must be set before any core/auth import so get_settings() can
auto-generate SECRET_KEY instead of raising ValueError. LOGIN_RATE_LIMIT is
raised so the suite's repeated logins never trip the limiter.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.notifier import NotificationError
from auth.service import AuthService
from auth.store import UserStore
from core.config import Settings, get_settings

STRONG_PASSWORD = "s3cret!pass"


class RecordingSender:
    """Collects sent messages; raises NotificationError while fail is True."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise NotificationError("mail server unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html_body})


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(store: UserStore, sender: RecordingSender, settings: Settings, clock: FakeClock) -> AuthService:
    return AuthService(store, sender, settings, clock=clock)


# ---------------------------------------------------------------------------
# Route-level fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test AuthService into app.state so TestClient routes see the
    isolated store, the recording sender, and the fake clock.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = service.settings
        app.state.user_store = service.store
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture
def client(
    settings: Settings, sender: RecordingSender, clock: FakeClock
) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) with follow_redirects=False.

    Route tests assert on redirect Location headers, which are invisible once
    the client follows the redirect.
    """
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    test_store = UserStore(db_url)
    test_service = AuthService(test_store, sender, settings, clock=clock)

    app.router.lifespan_context = _patch_lifespan(test_service)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c, test_service

    test_store.close()


@pytest.fixture
def verified_user(service: AuthService):
    """A registered and verified user with STRONG_PASSWORD."""
    user = service.register("Ann", "ann@example.com", STRONG_PASSWORD)
    service.verify_otp("ann@example.com", service.store.find_by_email("ann@example.com").otp)
    return service.store.find_by_id(user.id)
