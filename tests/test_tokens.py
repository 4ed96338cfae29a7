"""Unit tests for auth/tokens.py -- hashing, JWT round trip, cookie policy, authenticate_user."""

from datetime import datetime, timedelta, timezone

from jose import jwt
from starlette.responses import Response

from auth.models import User
from auth.tokens import (
    authenticate_user,
    clear_auth_cookies,
    cookie_policy,
    create_access_token,
    decode_access_token,
    hash_password,
    set_auth_cookie,
    verify_password,
)
from core.config import Settings

PROD_KEY = "p" * 40


def _set_cookie_headers(response: Response) -> list[str]:
    return [v.decode("latin-1") for k, v in response.raw_headers if k == b"set-cookie"]


class TestPasswordHashing:
    def test_hash_is_not_plaintext_and_verifies(self):
        hashed = hash_password("s3cret!pass")
        assert hashed != "s3cret!pass"
        assert verify_password("s3cret!pass", hashed)
        assert not verify_password("other!pass1", hashed)

    def test_malformed_hash_never_matches(self):
        assert not verify_password("s3cret!pass", "not-a-bcrypt-hash")


class TestAccessToken:
    def test_round_trip(self, settings):
        token = create_access_token(42, settings)
        payload = decode_access_token(token, settings)
        assert payload["user_id"] == 42
        assert payload["sub"] == "42"
        assert payload["exp"] - payload["iat"] == settings.token_expire_seconds

    def test_custom_expiry(self, settings):
        payload = decode_access_token(create_access_token(1, settings, expire_seconds=60), settings)
        assert payload["exp"] - payload["iat"] == 60

    def test_wrong_key_rejected(self, settings):
        other = Settings(secret_key="x" * 40, debug=False)
        assert decode_access_token(create_access_token(1, other), settings) is None

    def test_expired_token_rejected(self, settings):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "1", "user_id": 1, "iat": past, "exp": past + timedelta(hours=1)},
            settings.secret_key,
            algorithm="HS256",
        )
        assert decode_access_token(token, settings) is None

    def test_garbage_rejected(self, settings):
        assert decode_access_token("not.a.jwt", settings) is None

    def test_token_without_user_id_rejected(self, settings):
        token = jwt.encode({"sub": "1"}, settings.secret_key, algorithm="HS256")
        assert decode_access_token(token, settings) is None


class TestCookiePolicy:
    def test_development_is_relaxed(self):
        policy = cookie_policy(Settings(secret_key=PROD_KEY, environment="development"))
        assert policy == {"path": "/", "httponly": True, "secure": False, "samesite": "lax"}

    def test_production_is_strict_and_secure(self):
        policy = cookie_policy(Settings(secret_key=PROD_KEY, environment="production"))
        assert policy == {"path": "/", "httponly": True, "secure": True, "samesite": "strict"}

    def test_production_samesite_override(self):
        cfg = Settings(secret_key=PROD_KEY, environment="production", production_samesite="none")
        assert cookie_policy(cfg)["samesite"] == "none"
        assert cookie_policy(cfg)["secure"] is True

    def test_set_auth_cookie_attributes(self):
        cfg = Settings(secret_key=PROD_KEY, environment="production")
        resp = Response()
        set_auth_cookie(resp, "abc", cfg)
        (header,) = _set_cookie_headers(resp)
        lowered = header.lower()
        assert header.startswith("token=abc")
        assert "httponly" in lowered
        assert "secure" in lowered
        assert "samesite=strict" in lowered
        assert "path=/" in lowered
        assert f"max-age={cfg.token_expire_seconds}" in lowered

    def test_clear_auth_cookies_clears_both(self, settings):
        resp = Response()
        clear_auth_cookies(resp, settings)
        headers = _set_cookie_headers(resp)
        assert len(headers) == 2
        assert any(h.startswith(f"{settings.session_cookie_name}=") for h in headers)
        assert any(h.startswith(f"{settings.token_cookie_name}=") for h in headers)
        assert all("max-age=0" in h.lower() and "httponly" in h.lower() for h in headers)


class TestAuthenticateUser:
    def test_valid_credentials(self, store):
        store.create(User(name="Ann", email="ann@example.com", hashed_password=hash_password("s3cret!pass")))
        user = authenticate_user(store, "ann@example.com", "s3cret!pass")
        assert user is not None and user.email == "ann@example.com"

    def test_wrong_password(self, store):
        store.create(User(name="Ann", email="ann@example.com", hashed_password=hash_password("s3cret!pass")))
        assert authenticate_user(store, "ann@example.com", "wrong") is None

    def test_unknown_email(self, store):
        assert authenticate_user(store, "nobody@example.com", "s3cret!pass") is None
