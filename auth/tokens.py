"""
auth/tokens.py -- Password hashing, session ids, and session cookie utilities.

Security design decisions:
  Passwords: bcrypt, used directly. The _DUMMY_HASH constant lets the sign-in
       action spend the same bcrypt work on an unknown email as on a real one,
       so response time does not reveal whether an account exists.

  Session ids: secrets.token_urlsafe(32) gives 256 bits of entropy. The
       sessions table stores HMAC-SHA256(SECRET_KEY, raw_id) so lookup is O(1)
       and a copy of the table cannot be replayed as cookies.

  Session cookie: python-jose HS256 JWT carrying the raw session id ("sid"),
       the user id and the expiry. The JWT signature rejects tampered cookies
       before any DB access; the server-side row makes revocation immediate.
       Decoding returns None on any failure -- callers treat that as signed out.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("mode.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

SESSION_COOKIE_NAME = "session"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes of input. The sign-up form caps
    nothing beyond the 6-character minimum, so longer passwords are accepted
    and truncated by bcrypt itself.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash is treated as a mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


# Computed once at module load so the first sign-in attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("mode_timing_dummy")


def equalize_password_timing(plain: str) -> None:
    """Spend one bcrypt verification on a throwaway hash.

    Call on the unknown-email path of sign-in before returning.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Session ids
# ---------------------------------------------------------------------------


def generate_session_id() -> str:
    """Return a new raw session id (43 url-safe chars, 256 bits of entropy)."""
    return secrets.token_urlsafe(32)


def hash_session_id(raw_id: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_id) as a hex string.

    Deterministic, so the store can look the row up by primary key.
    """
    return hmac.new(
        _settings.secret_key.encode(),
        raw_id.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_session_token(raw_id: str, user_id: int, expires_at: datetime) -> str:
    """Encode the signed cookie value for a session."""
    payload = {
        "sid": raw_id,
        "user_id": user_id,
        "exp": expires_at,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Decode and verify a session cookie. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "sid" not in payload or "user_id" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, max_age: int) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POSTs, which covers the form actions.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the session expiry so cookie and row expire together.
    """
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=max_age,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
