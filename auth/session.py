"""
auth/session.py -- Session gateway: issue, resolve, and revoke browser sessions.

Every call takes an explicit SessionContext instead of reaching for the
current request through globals. The context carries:
  - the UserStore the sessions live in,
  - the session cookie value the request arrived with (if any),
  - the cookie change the response must carry (set or clear).

Actions mutate the context; the route layer calls ctx.commit(response) on
whatever response it finally returns, so cookie writes survive even when the
route builds its own RedirectResponse or TemplateResponse.

A session is valid only when all of these hold:
  1. The cookie JWT verifies (signature and exp).
  2. A sessions row exists for HMAC(sid).
  3. The row has not expired.
  4. The row's user_id matches the JWT claim and the user still exists.

Layer rule: no imports from api/ or web/. Request is used only for typing and
for reading cookies in from_request().
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from auth.models import Session, User
from auth.store import UserStore, to_iso
from auth.tokens import (
    SESSION_COOKIE_NAME,
    clear_session_cookie,
    create_session_token,
    decode_session_token,
    generate_session_id,
    hash_session_id,
    set_session_cookie,
    verify_password,
)
from core.config import get_settings

if TYPE_CHECKING:
    from starlette.requests import Request

__all__ = [
    "SessionContext",
    "create_session",
    "delete_session",
    "get_session_user",
    "verify_password",
]

logger = logging.getLogger("mode.auth")


class SessionContext:
    """Request-scoped handle for session gateway calls."""

    def __init__(self, store: UserStore, token: str | None = None) -> None:
        self.store = store
        self.token = token
        self._issued: tuple[str, int] | None = None
        self._cleared = False

    @classmethod
    def from_request(cls, request: Request) -> SessionContext:
        return cls(request.app.state.user_store, request.cookies.get(SESSION_COOKIE_NAME))

    @property
    def issued(self) -> bool:
        return self._issued is not None

    @property
    def cleared(self) -> bool:
        return self._cleared

    def commit(self, response):
        """Apply the pending cookie change to a response and return it."""
        if self._issued is not None:
            token, max_age = self._issued
            set_session_cookie(response, token, max_age)
        elif self._cleared:
            clear_session_cookie(response)
        return response

    def _session_key(self) -> tuple[str, int] | None:
        """Return (hashed session id, user id) from the cookie, or None."""
        if not self.token:
            return None
        payload = decode_session_token(self.token)
        if payload is None:
            return None
        return hash_session_id(payload["sid"]), payload["user_id"]


def create_session(ctx: SessionContext, user_id: int) -> Session:
    """Issue a new session for user_id and schedule the cookie on ctx.

    Any session the request already carried is revoked first, so signing in
    again always rotates the session id.
    """
    settings = get_settings()
    previous = ctx._session_key()
    if previous is not None:
        ctx.store.delete_session(previous[0])

    raw_id = generate_session_id()
    now = datetime.now(timezone.utc)
    expires = now + timedelta(seconds=settings.session_expire_seconds)
    session = Session(
        id=hash_session_id(raw_id),
        user_id=user_id,
        created_at=to_iso(now),
        expires_at=to_iso(expires),
    )
    ctx.store.create_session(session)
    ctx.store.update_last_login(user_id)

    token = create_session_token(raw_id, user_id, expires)
    ctx.token = token
    ctx._issued = (token, settings.session_expire_seconds)
    ctx._cleared = False
    logger.info("Session issued for user id=%s", user_id)
    return session


def delete_session(ctx: SessionContext) -> None:
    """Revoke the request's session (if any) and schedule the cookie for clearing.

    Calling this without a valid session still clears the cookie.
    """
    key = ctx._session_key()
    if key is not None and ctx.store.delete_session(key[0]):
        logger.info("Session revoked for user id=%s", key[1])
    ctx.token = None
    ctx._issued = None
    ctx._cleared = True


def get_session_user(ctx: SessionContext) -> User | None:
    """Resolve the signed-in user for the request, or None."""
    key = ctx._session_key()
    if key is None:
        return None
    session_id, user_id = key
    session = ctx.store.get_session(session_id)
    if session is None or session.user_id != user_id:
        return None
    if session.expires_at <= to_iso(datetime.now(timezone.utc)):
        ctx.store.delete_session(session_id)
        return None
    return ctx.store.get_by_id(user_id)
