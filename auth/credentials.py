"""
auth/credentials.py -- Credential store gateway used by the auth actions.

Thin functions over UserStore that speak in emails and plaintext passwords.
Hashing happens here, so the actions never see a bcrypt hash being produced.

Uniqueness of email is owned by the database (UNIQUE constraint), not by the
action's pre-check. create_user() translates the constraint violation into
EmailAlreadyRegisteredError so a concurrent sign-up race surfaces as a domain
outcome rather than a generic failure.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password

logger = logging.getLogger("mode.auth")


class EmailAlreadyRegisteredError(Exception):
    """Raised by create_user() when another account already owns the email."""

    def __init__(self, email: str) -> None:
        super().__init__(f"Email already registered: {email}")
        self.email = email


def get_user_by_email(store: UserStore, email: str) -> User | None:
    return store.get_by_email(email)


def create_user(store: UserStore, email: str, password: str) -> User:
    """Hash the password, insert the user, and return the stored record."""
    user = User(email=email, hashed_password=hash_password(password))
    try:
        user.id = store.create_user(user)
    except IntegrityError as exc:
        raise EmailAlreadyRegisteredError(email) from exc
    logger.info("Created user id=%s", user.id)
    return user
