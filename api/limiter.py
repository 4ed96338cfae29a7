"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
that apply per-route limits with @limiter.limit(login_rate_limit).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

login_rate_limit() is the one caller of get_settings() outside the lifespan.
slowapi invokes a limit provider with at most the rate-limit key, never the
request, so app.state.settings is out of reach here. get_settings() is cached,
so this is the same Settings object the lifespan handed to AuthService.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Credential-checking endpoints share LOGIN_RATE_LIMIT (e.g. "10/minute")."""
    return get_settings().login_rate_limit
