"""
auth/actions.py -- Sign-in, sign-up, and sign-out actions.

Each action takes the submitted form (any Mapping, e.g. starlette FormData or
a plain dict) and a SessionContext, runs its checks in a fixed order, and
stops at the first failure:

  sign_in:  validate -> look up email -> verify password -> create session
  sign_up:  validate -> reject existing email -> create user -> create session
  sign_out: delete session -> redirect to "/"

Expected failures are returned as data, never raised: every outcome is an
ActionResponse. Anything a collaborator raises is caught at the action
boundary, logged with its traceback, and collapsed into a single
UnexpectedError response so internal detail never reaches the client.

ActionResponse.code is the discriminator for the outcome. It is excluded from
serialization; the route layer uses it to pick an HTTP status and the wire
shape stays {success, message, errors?, error?}.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional

from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field, model_validator

from auth.credentials import EmailAlreadyRegisteredError, create_user, get_user_by_email
from auth.schemas import SignInForm, SignUpForm, validate_form
from auth.session import SessionContext, create_session, delete_session, verify_password
from auth.tokens import equalize_password_timing
from core.config import get_settings

logger = logging.getLogger("mode.auth")

SIGN_OUT_REDIRECT = "/"

# ---------------------------------------------------------------------------
# Response model
# ---------------------------------------------------------------------------


class ErrorCode(str, Enum):
    VALIDATION_FAILED = "ValidationFailed"
    USER_NOT_FOUND = "UserNotFound"
    INVALID_CREDENTIALS = "InvalidCredentials"
    USER_ALREADY_EXISTS = "UserAlreadyExists"
    UNEXPECTED_ERROR = "UnexpectedError"


class ActionResponse(BaseModel):
    """Uniform result of every auth action.

    success=False carries either field-level `errors` or the `error` category
    code; success=True carries neither. The validator enforces that shape.
    """

    success: bool
    message: str
    errors: Optional[dict[str, list[str]]] = None
    error: Optional[str] = None
    code: Optional[ErrorCode] = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def check_shape(self) -> "ActionResponse":
        if self.success and (self.errors or self.error or self.code):
            raise ValueError("A successful response cannot carry errors.")
        if not self.success and not (self.errors or self.error):
            raise ValueError("A failed response must carry errors or an error code.")
        return self

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict without the unset optional keys."""
        return self.model_dump(exclude_none=True)


def _ok(message: str) -> ActionResponse:
    return ActionResponse(success=True, message=message)


def _fail(code: ErrorCode, message: str, errors: dict[str, list[str]]) -> ActionResponse:
    return ActionResponse(success=False, message=message, errors=errors, code=code)


def _unexpected() -> ActionResponse:
    return ActionResponse(
        success=False,
        message="An unexpected error occurred. Please try again later.",
        error=ErrorCode.UNEXPECTED_ERROR.value,
        code=ErrorCode.UNEXPECTED_ERROR,
    )


_INVALID_CREDENTIALS = "Invalid email or password"


def _invalid_password() -> ActionResponse:
    return _fail(ErrorCode.INVALID_CREDENTIALS, _INVALID_CREDENTIALS, {"password": [_INVALID_CREDENTIALS]})


def _user_exists() -> ActionResponse:
    return _fail(ErrorCode.USER_ALREADY_EXISTS, "User already exists", {"email": ["Email is already registered"]})


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def sign_in(form: Mapping[str, Any], ctx: SessionContext) -> ActionResponse:
    try:
        data, errors = validate_form(SignInForm, form)
        if data is None:
            return _fail(ErrorCode.VALIDATION_FAILED, "Validation failed", errors)

        user = get_user_by_email(ctx.store, data.email)
        if user is None:
            equalize_password_timing(data.password)
            logger.info("Sign in rejected: unknown email")
            if get_settings().generic_auth_errors:
                return _invalid_password()
            return _fail(ErrorCode.USER_NOT_FOUND, "User not found", {"email": [_INVALID_CREDENTIALS]})

        if not verify_password(data.password, user.hashed_password):
            logger.info("Sign in rejected: bad password for user id=%s", user.id)
            return _invalid_password()

        create_session(ctx, user.id)
        return _ok("Sign in successful")
    except Exception:
        logger.exception("Error during sign in")
        return _unexpected()


def sign_up(form: Mapping[str, Any], ctx: SessionContext) -> ActionResponse:
    try:
        data, errors = validate_form(SignUpForm, form)
        if data is None:
            return _fail(ErrorCode.VALIDATION_FAILED, "Validation failed", errors)

        if get_user_by_email(ctx.store, data.email) is not None:
            return _user_exists()

        try:
            new_user = create_user(ctx.store, data.email, data.password)
        except EmailAlreadyRegisteredError:
            # Lost a race with a concurrent sign-up for the same email.
            return _user_exists()

        create_session(ctx, new_user.id)
        return _ok("Sign up successful")
    except Exception:
        logger.exception("Error during sign up")
        return _unexpected()


def sign_out(ctx: SessionContext) -> ActionResponse | RedirectResponse:
    """Revoke the current session, then redirect to the application root.

    The primary path returns the redirect (with the cookie already cleared),
    not a value. An ActionResponse only comes back when revocation failed.
    """
    try:
        delete_session(ctx)
        return ctx.commit(RedirectResponse(SIGN_OUT_REDIRECT, status_code=303))
    except Exception:
        logger.exception("Error during sign out")
        return _unexpected()
