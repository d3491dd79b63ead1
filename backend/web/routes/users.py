"""
User approval routes: the admin's account list and approve/revoke actions.

Why:
    New sign-ups (everyone except admins) wait on `/pending-approval` until an
    admin sets `profiles.is_approved`. This is the screen where that happens,
    plus a JSON twin for API callers.

Permissions:
    Admins only. Writes require a same-origin request. RLS on `profiles`
    decides whether the update actually lands.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlencode
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from identity_access.domain import Role
from school_data.models import ApprovalUpdate
from school_data.services import USER_FILTERS, SchoolData, ValidationError
from school_data.tables import DataAccessError

import wiring
from components import Component, DataTable
from guards import private_headers, require_api, require_page, session_provider
from pages import page_response
from preferences import read_preferences
from routes.security import is_same_origin


users_router = APIRouter(tags=["Users"])
logger = logging.getLogger("pakschool.web.users")

USER_COLUMNS = ("full_name", "email", "role", "is_approved", "created_at")


def _data(request: Request) -> SchoolData:
    return wiring.school_data_for(session_provider(request).get_session())


def _json(payload: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers=private_headers())


def _actions(row: Dict[str, Any]):
    if row["is_approved"]:
        return [(f"/admin/users/{row['id']}/revoke", "Revoke")]
    return [(f"/admin/users/{row['id']}/approve", "Approve")]


def _filter_links(current: str, q: str) -> str:
    links = []
    for status in USER_FILTERS:
        query = urlencode({"status": status, **({"q": q} if q else {})})
        css = "btn" if status == current else "btn btn-outline"
        links.append(f'<a class="{css}" href="/admin/users?{Component.escape(query)}">{status.title()}</a>')
    return f'<nav class="filter-links">{"".join(links)}</nav>'


def _users_page(request: Request, status: str = "all", q: str = "", *,
                error: Optional[str] = None, status_code: int = 200):
    prefs = read_preferences(request)
    rows = []
    try:
        rows = _data(request).list_users(status, q)
    except (ValidationError, DataAccessError) as exc:
        logger.warning("Listing users failed: %s", exc.code)
        error = error or exc.code
        status_code = 400 if isinstance(exc, ValidationError) else status_code
    search = (
        '<form method="get" action="/admin/users" class="search-form">'
        f'<input type="hidden" name="status" value="{Component.escape(status)}">'
        f'<input type="search" name="q" value="{Component.escape(q)}" aria-label="Search">'
        '<button type="submit" class="btn">Search</button></form>'
    )
    error_html = f'<p class="form-error" role="alert">{Component.escape(error)}</p>' if error else ""
    table = DataTable(rows, USER_COLUMNS, empty_text=prefs.t("common.empty"), row_actions=_actions).render()
    content = "<h1>Users</h1>" + error_html + _filter_links(status, q) + search + table
    return page_response(request, "Users", content, status_code=status_code)


@users_router.get("/admin/users")
async def users_page(request: Request, status: str = "all", q: str = ""):
    """Profiles with their roles; `status` is all, pending or approved."""
    blocked = require_page(request, allowed_roles=[Role.ADMIN], require_approval=True)
    if blocked is not None:
        return blocked
    return _users_page(request, status, q)


async def _set_approval_from_form(request: Request, user_id: str, approved: bool):
    blocked = require_page(request, allowed_roles=[Role.ADMIN], require_approval=True)
    if blocked is not None:
        return blocked
    if not is_same_origin(request):
        return _users_page(request, error="csrf_violation", status_code=403)
    try:
        row = _data(request).set_approval(user_id, approved)
    except DataAccessError as exc:
        logger.warning("Approval change failed: %s", exc.code)
        return _users_page(request, error=exc.code, status_code=502)
    if row is None:
        return _users_page(request, error="not_found", status_code=404)
    return RedirectResponse(url="/admin/users", status_code=303, headers=private_headers())


@users_router.post("/admin/users/{user_id}/approve")
async def approve_user(request: Request, user_id: str):
    return await _set_approval_from_form(request, user_id, True)


@users_router.post("/admin/users/{user_id}/revoke")
async def revoke_user(request: Request, user_id: str):
    return await _set_approval_from_form(request, user_id, False)


# --- JSON -----------------------------------------------------------------------------


@users_router.get("/api/users")
async def list_users_api(request: Request, status: str = "all", q: str = ""):
    profile, err = require_api(request, allowed_roles=[Role.ADMIN])
    if err is not None:
        return err
    try:
        return _json(_data(request).list_users(status, q))
    except ValidationError as exc:
        return _json({"error": exc.code, "detail": exc.detail}, 400)
    except DataAccessError as exc:
        logger.warning("Listing users failed: %s (%s)", exc.code, exc.detail)
        return _json({"error": "backend_error"}, 502)


@users_router.patch("/api/users/{user_id}/approval")
async def set_approval_api(request: Request, user_id: str, payload: ApprovalUpdate):
    if not is_same_origin(request):
        return _json({"error": "csrf_violation"}, 403)
    profile, err = require_api(request, allowed_roles=[Role.ADMIN])
    if err is not None:
        return err
    try:
        row = _data(request).set_approval(user_id, payload.is_approved)
    except DataAccessError as exc:
        logger.warning("Approval change failed: %s (%s)", exc.code, exc.detail)
        return _json({"error": "backend_error"}, 502)
    if row is None:
        return _json({"error": "not_found"}, 404)
    return _json({"id": user_id, "is_approved": bool(row.get("is_approved"))})
