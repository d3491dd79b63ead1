"""
Web adapters for the route gates.

Why:
    `identity_access.gates` decides; this module turns a decision into an HTTP
    answer and is the only place that knows how a redirect looks on the wire.

Mapping:
    - `Render`   -> None (the route renders its page).
    - `Loading`  -> the loading placeholder page (self-refreshing).
    - `Redirect` -> `303 See Other`. The browser follows it without recording
      the gated URL as a history entry, so "back" cannot loop into the gate.
      The original location (path and query) travels as `?redirect=` to the
      login page.
      HTMX requests get `HX-Redirect` instead (401 for the login redirect).
    - JSON API: 401 unauthenticated, 403 forbidden/approval_pending,
      503 + Retry-After while loading, 403 profile_missing once settled
      without a profile.
"""
from __future__ import annotations

from typing import Iterable, Optional, Tuple, Union
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from identity_access.domain import LOGIN_PATH, PENDING_APPROVAL_PATH, Role
from identity_access.gates import Decision, Loading, Redirect, evaluate_access, evaluate_public
from identity_access.session_state import Profile, SessionProvider, SessionState

from auth_utils import safe_redirect
from components import Layout, LoadingPage
from preferences import read_preferences


RoleSpec = Optional[Iterable[Union[Role, str]]]

_ANONYMOUS = SessionState()


def private_headers() -> dict:
    return {"Cache-Control": "private, no-store"}


def session_provider(request: Request) -> SessionProvider:
    """Session state resolved by the middleware; anonymous when absent."""
    return getattr(request.state, "session_state", None) or _ANONYMOUS


def session_state(request: Request) -> SessionState:
    """Mutable state of this request's session; never the shared anonymous one."""
    state = getattr(request.state, "session_state", None)
    if isinstance(state, SessionState):
        return state
    state = SessionState()
    request.state.session_state = state
    return state


def _location(request: Request) -> str:
    """Path plus query string, so the login redirect returns to the same view."""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def current_user(request: Request) -> Optional[dict]:
    """Minimal user context for templates: name and role of the profile."""
    profile = session_provider(request).get_profile()
    if profile is None:
        return None
    return {"name": profile.full_name or profile.email, "role": profile.role, "email": profile.email}


def _redirect_target(decision: Redirect) -> str:
    origin = safe_redirect(decision.from_location)
    if decision.to == LOGIN_PATH and origin and origin != "/":
        return f"{LOGIN_PATH}?{urlencode({'redirect': origin})}"
    return decision.to


def loading_response(request: Request) -> HTMLResponse:
    prefs = read_preferences(request)
    page = LoadingPage(prefs.t("common.loading"))
    html = Layout(
        prefs.t("common.loading"), page.render(), prefs, show_nav=False,
        current_path=request.url.path, head_extra=page.head(),
    ).render()
    return HTMLResponse(html, headers=private_headers())


def decision_response(request: Request, decision: Decision) -> Optional[Response]:
    if isinstance(decision, Loading):
        return loading_response(request)
    if isinstance(decision, Redirect):
        target = _redirect_target(decision)
        if "HX-Request" in request.headers:
            status = 401 if decision.to == LOGIN_PATH else 200
            return Response(status_code=status, headers={"HX-Redirect": target, **private_headers(), "Vary": "HX-Request"})
        return RedirectResponse(url=target, status_code=303, headers=private_headers())
    return None


def require_page(request: Request, *, allowed_roles: RoleSpec = None, require_approval: bool = False) -> Optional[Response]:
    """Access gate for HTML pages; returns a response unless admitted."""
    decision = evaluate_access(
        session_provider(request),
        location=_location(request),
        allowed_roles=allowed_roles,
        require_approval=require_approval,
    )
    return decision_response(request, decision)


def public_page(request: Request) -> Optional[Response]:
    """Public gate for login/sign-up pages."""
    return decision_response(request, evaluate_public(session_provider(request)))


def require_api(request: Request, *, allowed_roles: RoleSpec = None, require_approval: bool = True) -> Tuple[Optional[Profile], Optional[JSONResponse]]:
    """Access gate for JSON endpoints.

    Returns (profile, None) when admitted, (None, error_response) otherwise.
    Admission without a profile cannot happen here: API calls always check
    role or approval.
    """
    provider = session_provider(request)
    decision = evaluate_access(
        provider,
        location=request.url.path,
        allowed_roles=allowed_roles,
        require_approval=require_approval,
    )
    if isinstance(decision, Loading):
        if not provider.is_loading():
            # Settled session without a profile: retrying will not help.
            return None, JSONResponse({"error": "profile_missing"}, status_code=403, headers=private_headers())
        headers = {**private_headers(), "Retry-After": "1"}
        return None, JSONResponse({"error": "session_loading"}, status_code=503, headers=headers)
    if isinstance(decision, Redirect):
        if decision.to == LOGIN_PATH:
            return None, JSONResponse({"error": "unauthenticated"}, status_code=401, headers=private_headers())
        if decision.to == PENDING_APPROVAL_PATH:
            return None, JSONResponse({"error": "approval_pending"}, status_code=403, headers=private_headers())
        return None, JSONResponse({"error": "forbidden", "dashboard": decision.to}, status_code=403, headers=private_headers())
    profile = provider.get_profile()
    if profile is None:
        return None, JSONResponse({"error": "session_loading"}, status_code=503, headers={**private_headers(), "Retry-After": "1"})
    return profile, None


__all__ = [
    "current_user",
    "decision_response",
    "loading_response",
    "private_headers",
    "public_page",
    "require_api",
    "require_page",
    "session_provider",
    "session_state",
]
