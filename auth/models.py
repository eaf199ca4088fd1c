"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and actions do
the work; these only own the domain shape.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account. email is unique across all users.

    hashed_password is the bcrypt hash produced by auth.tokens.hash_password().
    The action layer never inspects it; it only hands it to verify_password().
    """

    email: str
    hashed_password: str
    id: int | None = None
    created_at: str | None = None
    last_login: str | None = None  # ISO 8601, stamped when a session is issued


@dataclass
class Session:
    """Server-side record of an authenticated browser session.

    id is HMAC-SHA256(SECRET_KEY, raw_session_id). The raw id only ever lives
    inside the signed session cookie, so a leaked sessions table cannot be
    replayed as cookies.
    """

    id: str
    user_id: int
    expires_at: str  # ISO 8601 UTC
    created_at: str | None = None
