"""
web/routes.py -- Jinja2 template routes for the Mode web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same user store) and call the same auth actions, but render the
ActionResponse into the form instead of returning JSON.

Routes:
  GET  /            -- home page (signed-in email or sign-in/sign-up links)
  GET  /signin      -- sign-in form
  POST /signin      -- run sign_in; 303 to ?next or /dashboard on success
  GET  /signup      -- sign-up form
  POST /signup      -- run sign_up; 303 to /dashboard on success
  POST /signout     -- run sign_out; 303 to /
  GET  /dashboard   -- signed-in landing page (auth required)

POST /signin and /signup share the login rate limit with the JSON routes;
an exceeded limit gets the app-wide 429 error envelope.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.actions import ActionResponse, ErrorCode, sign_in, sign_out, sign_up
from auth.dependencies import try_get_current_user
from auth.session import SessionContext
from core.limiter import limiter, login_rate_limit

logger = logging.getLogger("mode.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# layout.html calls this to decide between the sign-out button and the
# sign-in/sign-up links, so handlers don't pass current_user everywhere.
templates.env.globals["try_get_current_user"] = try_get_current_user
router = APIRouter()

_HOME_AFTER_SIGN_IN = "/dashboard"

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-sign-in redirect target. Only accept relative paths.

    Rejects absolute URLs and protocol-relative "//host" targets, both of
    which would send the browser off-site after sign-in.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return _HOME_AFTER_SIGN_IN


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Return a redirect to /signin if the request is not signed in, else None.

    Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    if try_get_current_user(request) is None:
        return RedirectResponse(f"/signin?next={request.url.path}", status_code=302)
    return None


def _form_status(result: ActionResponse) -> int:
    return 500 if result.code is ErrorCode.UNEXPECTED_ERROR else 400


def _signed_in_redirect(ctx: SessionContext, target: str) -> RedirectResponse:
    resp = RedirectResponse(target, status_code=303)
    resp.headers["Cache-Control"] = "no-store"
    return ctx.commit(resp)


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "index.html", {})


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    """Signed-in landing page."""
    if redirect := _require_auth(request):
        return redirect
    user = try_get_current_user(request)
    return templates.TemplateResponse(request, "dashboard.html", {"user": user})


# ---------------------------------------------------------------------------
# Auth routes -- sign in, sign up, sign out
# ---------------------------------------------------------------------------


@router.get("/signin", response_class=HTMLResponse)
def signin_form(request: Request) -> HTMLResponse:
    """Render the sign-in form. Already signed-in users go straight to the dashboard."""
    if try_get_current_user(request) is not None:
        return RedirectResponse(_HOME_AFTER_SIGN_IN, status_code=302)
    return templates.TemplateResponse(
        request,
        "signin.html",
        {"next": request.query_params.get("next", ""), "result": None, "email": ""},
    )


@router.post("/signin", response_class=HTMLResponse)
@limiter.limit(login_rate_limit)
def signin_post(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
) -> HTMLResponse:
    """Handle the sign-in form. Failures re-render the form with field errors."""
    ctx = SessionContext.from_request(request)
    result = sign_in({"email": email, "password": password}, ctx)
    next_url = request.query_params.get("next", "")
    if result.success:
        return _signed_in_redirect(ctx, _safe_next(next_url))
    return templates.TemplateResponse(
        request,
        "signin.html",
        {"next": next_url, "result": result, "email": email},
        status_code=_form_status(result),
    )


@router.get("/signup", response_class=HTMLResponse)
def signup_form(request: Request) -> HTMLResponse:
    if try_get_current_user(request) is not None:
        return RedirectResponse(_HOME_AFTER_SIGN_IN, status_code=302)
    return templates.TemplateResponse(request, "signup.html", {"result": None, "email": ""})


@router.post("/signup", response_class=HTMLResponse)
@limiter.limit(login_rate_limit)
def signup_post(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form("", alias="confirmPassword"),
) -> HTMLResponse:
    """Handle the sign-up form. Success signs the new account in immediately."""
    ctx = SessionContext.from_request(request)
    result = sign_up({"email": email, "password": password, "confirmPassword": confirm_password}, ctx)
    if result.success:
        return _signed_in_redirect(ctx, _HOME_AFTER_SIGN_IN)
    return templates.TemplateResponse(
        request,
        "signup.html",
        {"result": result, "email": email},
        status_code=_form_status(result),
    )


@router.post("/signout")
def signout(request: Request):
    """Revoke the session and go home. A failed revocation renders the home page with the error."""
    ctx = SessionContext.from_request(request)
    result = sign_out(ctx)
    if isinstance(result, ActionResponse):
        return templates.TemplateResponse(request, "index.html", {"result": result}, status_code=500)
    return result
