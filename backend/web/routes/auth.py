"""
Authentication routes: login/sign-up page, sign-in, sign-up, sign-out and the
pending-approval page.

Flow:
    `POST /auth/login` authenticates against Supabase, creates a server-side
    session in `loading` state and fetches the profile as a background task.
    The browser is sent to the originally requested page (or back to `/auth`,
    whose public gate forwards signed-in users to their role dashboard). While
    the profile is still loading those pages show the loading placeholder.
"""
from __future__ import annotations

from typing import Optional
import logging
import os
import time

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse, RedirectResponse

from identity_access.domain import LOGIN_PATH, PENDING_APPROVAL_PATH, Role, role_dashboard
from identity_access.supabase_auth import AuthError

import wiring
from auth_utils import SESSION_COOKIE_NAME, cookie_opts, safe_redirect
from components import LoginForm, SignupForm
from components.forms import SIGNUP_ROLES
from config import current_environment
from guards import private_headers, public_page, require_page, session_state
from pages import page_response
from preferences import read_preferences
from routes.security import is_same_origin


auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("pakschool.web.auth")

MIN_PASSWORD_LENGTH = 6


def _parse_allowed_registration_domains(raw: str | None) -> set[str]:
    """Parse ALLOWED_REGISTRATION_DOMAINS ("@school.edu.pk, @example.org").

    Entries are trimmed and lowercased; empty entries are ignored.
    """
    if not raw:
        return set()
    items = [part.strip().lower() for part in str(raw).split(",")]
    return {item for item in items if item}


def _is_allowed_registration_email(email: str, allowed_domains: set[str]) -> bool:
    """True if the email's domain is allowed; an empty allow-list allows all."""
    if not allowed_domains:
        return True
    normalized = (email or "").strip().lower()
    if "@" not in normalized:
        return False
    local, domain = normalized.rsplit("@", 1)
    if not local or not domain:
        return False
    return f"@{domain}" in allowed_domains


def _auth_page(request: Request, *, status_code: int = 200, redirect: Optional[str] = None, email: str = "",
               login_error: Optional[str] = None, signup_error: Optional[str] = None, notice: Optional[str] = None):
    prefs = read_preferences(request)
    notice_html = f'<p class="notice" role="status">{notice}</p>' if notice else ""
    content = (
        f'<section class="auth-page"><h1>{prefs.t("app.name")}</h1><p>{prefs.t("app.tagline")}</p>{notice_html}'
        f"{LoginForm(prefs, redirect=redirect, email=email, error=login_error).render()}"
        f"{SignupForm(prefs, error=signup_error).render()}</section>"
    )
    return page_response(request, prefs.t("auth.login"), content, status_code=status_code, show_nav=False)


def _csrf_forbidden() -> JSONResponse:
    return JSONResponse({"error": "csrf_violation"}, status_code=403, headers=private_headers())


def _load_profile(session_id: str) -> None:
    """Background task: fetch the profile and finish the session's loading state."""
    store = wiring.SESSION_STORE
    rec = store.get(session_id)
    if rec is None or rec.auth is None:
        return
    profile = wiring.get_auth_client().fetch_profile(rec.auth)
    if profile is None:
        logger.warning("No profile for signed-in user; access stays blocked")
    store.resolve_profile(session_id, profile)


@auth_router.get("/auth")
async def auth_page(request: Request, redirect: str | None = None, signup: str | None = None):
    """Login and sign-up forms.

    Permissions:
        Public only; signed-in users are sent to their dashboard.
    """
    blocked = public_page(request)
    if blocked is not None:
        return blocked
    prefs = read_preferences(request)
    notice = prefs.t("auth.signupDone") if signup == "ok" else None
    return _auth_page(request, redirect=safe_redirect(redirect), notice=notice)


@auth_router.post("/auth/login")
async def auth_login(request: Request, background_tasks: BackgroundTasks):
    """Sign in with email/password and start a server-side session.

    Behavior:
        - Rejects cross-origin posts (CSRF).
        - On bad credentials re-renders the form with 400.
        - Validates `redirect` as an in-app path; anything else is ignored.
        - Responds `303` with `Cache-Control: private, no-store`.
    """
    if not is_same_origin(request):
        return _csrf_forbidden()
    form = await request.form()
    email = str(form.get("email") or "").strip()
    password = str(form.get("password") or "")
    redirect = safe_redirect(form.get("redirect"))
    prefs = read_preferences(request)
    if not email or not password:
        return _auth_page(request, status_code=400, redirect=redirect, email=email, login_error=prefs.t("auth.invalid"))

    try:
        auth = wiring.get_auth_client().sign_in(email=email, password=password)
    except AuthError as exc:
        logger.info("Login failed: %s", exc.code)
        return _auth_page(request, status_code=400, redirect=redirect, email=email, login_error=prefs.t("auth.invalid"))

    old_sid = request.cookies.get(SESSION_COOKIE_NAME)
    if old_sid:
        wiring.SESSION_STORE.delete(old_sid)
    rec = wiring.SESSION_STORE.create(auth)
    background_tasks.add_task(_load_profile, rec.session_id)

    resp = RedirectResponse(url=redirect or LOGIN_PATH, status_code=303, headers=private_headers())
    opts = cookie_opts(current_environment())
    max_age = max(0, rec.expires_at - int(time.time())) if rec.expires_at else None
    resp.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=rec.session_id,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )
    return resp


@auth_router.post("/auth/signup")
async def auth_signup(request: Request):
    """Register a new account (profile, role and role extension row).

    Validation:
        - full name, email and password required; password min length 6
        - role in the sign-up roles (super admins are provisioned out of band)
        - email domain in ALLOWED_REGISTRATION_DOMAINS when configured
    Only admins are approved automatically; everyone else lands on the
    pending-approval page until an admin approves them.
    """
    if not is_same_origin(request):
        return _csrf_forbidden()
    form = await request.form()
    full_name = str(form.get("full_name") or "").strip()
    email = str(form.get("email") or "").strip()
    password = str(form.get("password") or "")
    role = Role.parse(str(form.get("role") or ""))

    error = None
    if not full_name or not email or len(password) < MIN_PASSWORD_LENGTH:
        error = "Please fill in all fields (password: at least 6 characters)."
    elif role not in SIGNUP_ROLES:
        error = "Please choose a valid role."
    else:
        allowed = _parse_allowed_registration_domains(os.getenv("ALLOWED_REGISTRATION_DOMAINS"))
        if not _is_allowed_registration_email(email, allowed):
            error = "Registration is only allowed with a school email address."
    if error:
        return _auth_page(request, status_code=400, signup_error=error)

    try:
        wiring.get_auth_client().sign_up(email=email, password=password, full_name=full_name, role=role)
    except AuthError as exc:
        logger.info("Sign-up failed: %s", exc.code)
        return _auth_page(request, status_code=400, signup_error="Sign-up failed. Please try again.")
    return RedirectResponse(url=f"{LOGIN_PATH}?signup=ok", status_code=303, headers=private_headers())


@auth_router.post("/auth/logout")
async def auth_logout(request: Request):
    """End the session locally and at Supabase; always lands on `/auth`."""
    if not is_same_origin(request):
        return _csrf_forbidden()
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if sid:
        rec = wiring.SESSION_STORE.get(sid)
        if rec is not None and rec.auth is not None:
            wiring.get_auth_client().sign_out(rec.auth)
        wiring.SESSION_STORE.delete(sid)
    resp = RedirectResponse(url=LOGIN_PATH, status_code=303, headers=private_headers())
    opts = cookie_opts(current_environment())
    resp.delete_cookie(SESSION_COOKIE_NAME, path="/", secure=opts["secure"], samesite=opts["samesite"], httponly=True)
    return resp


@auth_router.get("/pending-approval")
async def pending_approval(request: Request):
    """Shown to users whose account still awaits approval."""
    blocked = require_page(request)
    if blocked is not None:
        return blocked
    prefs = read_preferences(request)
    title = prefs.t("auth.pendingTitle")
    content = (
        f'<section class="pending-approval"><h1>{title}</h1><p>{prefs.t("auth.pending")}</p>'
        '<form method="post" action="/pending-approval/refresh">'
        '<button type="submit" class="btn">Check again</button></form></section>'
    )
    return page_response(request, title, content)


@auth_router.post("/pending-approval/refresh")
async def pending_approval_refresh(request: Request):
    """Re-read the profile; approved users continue to their dashboard."""
    blocked = require_page(request)
    if blocked is not None:
        return blocked
    if not is_same_origin(request):
        return _csrf_forbidden()
    state = session_state(request)
    profile = wiring.get_auth_client().fetch_profile(state.get_session())
    if profile is not None:
        state.set_profile(profile)
    target = role_dashboard(profile.role) if profile is not None and profile.is_approved else PENDING_APPROVAL_PATH
    return RedirectResponse(url=target, status_code=303, headers=private_headers())
