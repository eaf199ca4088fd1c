"""
tests/test_actions.py -- Unit tests for the sign-in / sign-up / sign-out actions.

The actions run against a real in-memory UserStore. Gateway calls are wrapped
with unittest.mock so tests can count session creations and inject failures
without replacing the behavior under test.

Coverage:
  - check ordering and short-circuiting for each action
  - exact response shapes, including the wire dict (code is never serialized)
  - exactly one session creation on success, none on any failure
  - collaborator failures collapse into UnexpectedError and are logged
  - concurrent sign-up race surfaces as "User already exists"
  - GENERIC_AUTH_ERRORS collapses unknown-email into the wrong-password shape
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

import auth.actions as actions
from auth.actions import ActionResponse, ErrorCode, sign_in, sign_out, sign_up
from auth.session import SessionContext, get_session_user
from auth.store import UserStore
from core.config import get_settings

_UNEXPECTED = {
    "success": False,
    "message": "An unexpected error occurred. Please try again later.",
    "error": "UnexpectedError",
}


@pytest.fixture
def session_spy():
    """Wrap create_session so calls are counted but still executed."""
    with patch.object(actions, "create_session", wraps=actions.create_session) as spy:
        yield spy


class TestActionResponse:
    def test_success_cannot_carry_errors(self) -> None:
        with pytest.raises(ValidationError):
            ActionResponse(success=True, message="ok", errors={"email": ["x"]})

    def test_failure_needs_errors_or_error(self) -> None:
        with pytest.raises(ValidationError):
            ActionResponse(success=False, message="nope")

    def test_code_is_not_serialized(self) -> None:
        resp = ActionResponse(success=False, message="m", error="UnexpectedError", code=ErrorCode.UNEXPECTED_ERROR)
        assert "code" not in resp.to_dict()
        assert "code" not in resp.model_dump_json()


class TestSignIn:
    def test_missing_fields_fail_validation(self, ctx: SessionContext, session_spy) -> None:
        result = sign_in({}, ctx)
        assert result.success is False
        assert result.message == "Validation failed"
        assert result.code is ErrorCode.VALIDATION_FAILED
        assert result.errors["email"]
        assert result.errors["password"]
        session_spy.assert_not_called()

    @pytest.mark.parametrize(
        "form",
        [
            {"password": "secret1"},
            {"email": "a@b.com"},
            {"email": "", "password": ""},
        ],
    )
    def test_any_missing_field_fails_validation(self, ctx: SessionContext, form: dict) -> None:
        result = sign_in(form, ctx)
        assert result.success is False
        assert result.message == "Validation failed"
        assert result.errors

    def test_unknown_email(self, ctx: SessionContext, session_spy) -> None:
        result = sign_in({"email": "a@b.com", "password": "secret1"}, ctx)
        assert result.to_dict() == {
            "success": False,
            "message": "User not found",
            "errors": {"email": ["Invalid email or password"]},
        }
        assert result.code is ErrorCode.USER_NOT_FOUND
        session_spy.assert_not_called()

    def test_unknown_email_still_runs_bcrypt(self, ctx: SessionContext) -> None:
        with patch.object(actions, "equalize_password_timing") as burn:
            sign_in({"email": "a@b.com", "password": "secret1"}, ctx)
        burn.assert_called_once_with("secret1")

    def test_wrong_password(self, store: UserStore, ctx: SessionContext, make_user, session_spy) -> None:
        user = make_user("a@b.com", "secret1")
        result = sign_in({"email": "a@b.com", "password": "wrong-one"}, ctx)
        assert result.to_dict() == {
            "success": False,
            "message": "Invalid email or password",
            "errors": {"password": ["Invalid email or password"]},
        }
        assert result.code is ErrorCode.INVALID_CREDENTIALS
        session_spy.assert_not_called()
        assert store.count_sessions(user.id) == 0
        assert not ctx.issued

    def test_success_creates_exactly_one_session(
        self, store: UserStore, ctx: SessionContext, make_user, session_spy
    ) -> None:
        user = make_user("a@b.com", "secret1")
        result = sign_in({"email": "a@b.com", "password": "secret1"}, ctx)
        assert result.to_dict() == {"success": True, "message": "Sign in successful"}
        session_spy.assert_called_once_with(ctx, user.id)
        assert store.count_sessions(user.id) == 1
        assert get_session_user(SessionContext(store, ctx.token)).id == user.id

    def test_generic_errors_hide_unknown_email(self, ctx: SessionContext, monkeypatch) -> None:
        monkeypatch.setattr(get_settings(), "generic_auth_errors", True)
        result = sign_in({"email": "a@b.com", "password": "secret1"}, ctx)
        assert result.to_dict() == {
            "success": False,
            "message": "Invalid email or password",
            "errors": {"password": ["Invalid email or password"]},
        }

    def test_lookup_failure_is_unexpected(self, ctx: SessionContext, caplog, session_spy) -> None:
        failure = OperationalError("SELECT", {}, Exception("db gone"))
        with patch.object(actions, "get_user_by_email", side_effect=failure):
            with caplog.at_level(logging.ERROR, logger="mode.auth"):
                result = sign_in({"email": "a@b.com", "password": "secret1"}, ctx)
        assert result.to_dict() == _UNEXPECTED
        assert result.code is ErrorCode.UNEXPECTED_ERROR
        assert "Error during sign in" in caplog.text
        assert "db gone" not in result.model_dump_json()
        session_spy.assert_not_called()

    def test_session_failure_is_unexpected(self, ctx: SessionContext, make_user) -> None:
        make_user("a@b.com", "secret1")
        with patch.object(actions, "create_session", side_effect=RuntimeError("store down")):
            result = sign_in({"email": "a@b.com", "password": "secret1"}, ctx)
        assert result.to_dict() == _UNEXPECTED


class TestSignUp:
    def test_success_creates_user_and_one_session(self, store: UserStore, ctx: SessionContext, session_spy) -> None:
        result = sign_up({"email": "x@y.com", "password": "abcdef", "confirmPassword": "abcdef"}, ctx)
        assert result.to_dict() == {"success": True, "message": "Sign up successful"}

        user = store.get_by_email("x@y.com")
        assert user is not None
        assert user.hashed_password != "abcdef"
        session_spy.assert_called_once_with(ctx, user.id)
        assert store.count_sessions(user.id) == 1
        assert ctx.issued

    def test_mismatch_always_reports_confirm_password(self, store: UserStore, ctx: SessionContext) -> None:
        result = sign_up({"email": "bad", "password": "abc", "confirmPassword": "abd"}, ctx)
        assert result.message == "Validation failed"
        assert result.errors["confirmPassword"] == ["Passwords don't match"]
        assert store.get_by_email("bad") is None

    def test_validation_failure_creates_nothing(self, store: UserStore, ctx: SessionContext, session_spy) -> None:
        result = sign_up({"email": "x@y.com", "password": "abc", "confirmPassword": "abc"}, ctx)
        assert result.code is ErrorCode.VALIDATION_FAILED
        assert result.errors == {"password": ["Password must be at least 6 characters"]}
        assert store.get_by_email("x@y.com") is None
        session_spy.assert_not_called()

    def test_existing_email(self, ctx: SessionContext, make_user, session_spy) -> None:
        make_user("x@y.com", "abcdef")
        with patch.object(actions, "create_user", wraps=actions.create_user) as create_spy:
            result = sign_up({"email": "x@y.com", "password": "abcdef", "confirmPassword": "abcdef"}, ctx)
        assert result.to_dict() == {
            "success": False,
            "message": "User already exists",
            "errors": {"email": ["Email is already registered"]},
        }
        assert result.code is ErrorCode.USER_ALREADY_EXISTS
        create_spy.assert_not_called()
        session_spy.assert_not_called()

    def test_lost_race_reports_existing_email(self, store: UserStore, ctx: SessionContext, session_spy) -> None:
        """The pre-check passes but the insert hits the UNIQUE constraint."""
        with patch.object(store, "create_user", side_effect=IntegrityError("INSERT", {}, Exception("UNIQUE"))):
            result = sign_up({"email": "x@y.com", "password": "abcdef", "confirmPassword": "abcdef"}, ctx)
        assert result.code is ErrorCode.USER_ALREADY_EXISTS
        assert result.message == "User already exists"
        session_spy.assert_not_called()

    def test_store_failure_is_unexpected(self, store: UserStore, ctx: SessionContext, caplog) -> None:
        with patch.object(store, "create_user", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
            with caplog.at_level(logging.ERROR, logger="mode.auth"):
                result = sign_up({"email": "x@y.com", "password": "abcdef", "confirmPassword": "abcdef"}, ctx)
        assert result.to_dict() == _UNEXPECTED
        assert "Error during sign up" in caplog.text


class TestSignOut:
    def test_redirects_home_and_revokes(self, store: UserStore, ctx: SessionContext, make_user) -> None:
        user = make_user()
        sign_in({"email": user.email, "password": "secret1"}, ctx)
        token = ctx.token

        result = sign_out(SessionContext(store, token))

        assert isinstance(result, RedirectResponse)
        assert result.status_code == 303
        assert result.headers["location"] == "/"
        assert "max-age=0" in result.headers["set-cookie"].lower()
        assert store.count_sessions(user.id) == 0
        assert get_session_user(SessionContext(store, token)) is None

    def test_without_session_still_redirects(self, ctx: SessionContext) -> None:
        result = sign_out(ctx)
        assert isinstance(result, RedirectResponse)
        assert result.headers["location"] == "/"

    def test_failure_is_unexpected(self, ctx: SessionContext, caplog) -> None:
        with patch.object(actions, "delete_session", side_effect=RuntimeError("boom")):
            with caplog.at_level(logging.ERROR, logger="mode.auth"):
                result = sign_out(ctx)
        assert isinstance(result, ActionResponse)
        assert result.to_dict() == _UNEXPECTED
        assert "Error during sign out" in caplog.text
