"""
core/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and by both the JSON and the
HTML auth routes (to apply per-route limits with @limiter.limit()). It lives
in core/ so that api/ and web/ can share it without importing each other.

A single shared instance keeps every route on the same in-memory counter
store; separate instances per module would never trigger.

Decorator order on a route matters: @router.post(...) goes on top and
@limiter.limit(...) directly above the function, so the router registers the
limited wrapper rather than the bare handler.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Current LOGIN_RATE_LIMIT. Read per request so a settings change applies without a restart."""
    return get_settings().login_rate_limit
