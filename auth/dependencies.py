"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The only auth method is the session cookie issued by the sign-in and sign-up
actions. Resolution goes through the session gateway, so a revoked or expired
server-side session stops authenticating immediately even though the cookie
JWT itself may still verify.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from api/ or web/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.session import SessionContext, get_session_user


def try_get_current_user(request: Request) -> User | None:
    """Return the signed-in User for this request, or None. Never raises for bad cookies."""
    return get_session_user(SessionContext.from_request(request))


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
