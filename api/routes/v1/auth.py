"""
api/routes/v1/auth.py -- JSON endpoints for the auth actions.

Routes:
  POST /api/v1/auth/signin   -- run sign_in; sets the session cookie on success
  POST /api/v1/auth/signup   -- run sign_up; sets the session cookie on success
  POST /api/v1/auth/signout  -- run sign_out; 303 to "/" with the cookie cleared
  GET  /api/v1/auth/me       -- current user info (requires auth)

Input is form-encoded (email, password, confirmPassword) exactly like the web
forms; missing keys arrive as "". The body of every action route is the
ActionResponse JSON ({success, message, errors?, error?}); the HTTP status is
chosen from ActionResponse.code.

Security:
  POST /signin and /signup are rate-limited (Settings.login_rate_limit per IP).
  Cache-Control: no-store on every action response.

Annotations here stay real objects (no `from __future__ import annotations`):
FastAPI introspects the @limiter.limit wrapper, whose globals are slowapi's.
"""

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse

from api.models import MeResponse
from auth.actions import ActionResponse, ErrorCode, sign_in, sign_out, sign_up
from auth.dependencies import get_current_user
from auth.models import User
from auth.session import SessionContext
from core.limiter import limiter, login_rate_limit

# Auth policy:
# - POST /api/v1/auth/signin:   public
# - POST /api/v1/auth/signup:   public
# - POST /api/v1/auth/signout:  public -- revoking a missing session is a no-op
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
router = APIRouter()

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_FAILED: 422,
    ErrorCode.USER_NOT_FOUND: 401,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.USER_ALREADY_EXISTS: 409,
    ErrorCode.UNEXPECTED_ERROR: 500,
}


def _action_json(result: ActionResponse, ctx: SessionContext, success_status: int = 200) -> JSONResponse:
    """Serialize an ActionResponse, pick its status, and apply the cookie change."""
    status = success_status if result.success else _STATUS_BY_CODE[result.code]
    resp = JSONResponse(status_code=status, content=result.to_dict())
    resp.headers["Cache-Control"] = "no-store"
    return ctx.commit(resp)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signin")
@limiter.limit(login_rate_limit)
def signin(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
) -> JSONResponse:
    """Sign in with email and password."""
    ctx = SessionContext.from_request(request)
    result = sign_in({"email": email, "password": password}, ctx)
    return _action_json(result, ctx)


@router.post("/auth/signup")
@limiter.limit(login_rate_limit)
def signup(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form("", alias="confirmPassword"),
) -> JSONResponse:
    """Create an account and sign it in."""
    ctx = SessionContext.from_request(request)
    result = sign_up({"email": email, "password": password, "confirmPassword": confirm_password}, ctx)
    return _action_json(result, ctx, success_status=201)


@router.post("/auth/signout")
def signout(request: Request):
    """Revoke the current session. Success is a 303 redirect to "/"."""
    ctx = SessionContext.from_request(request)
    result = sign_out(ctx)
    if isinstance(result, ActionResponse):
        return _action_json(result, ctx)
    return result


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)) -> MeResponse:
    """Return the signed-in user's account info."""
    return MeResponse.from_user(user)
