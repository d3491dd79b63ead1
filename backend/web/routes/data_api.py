"""
JSON data API: the caller's profile, table CRUD and dashboard aggregations.

Permissions:
    - Every endpoint runs the access gate with approval required.
    - Reads need a role from the table's read roles, writes one from its
      write roles (see `school_data.services.RESOURCES`).
    - Supabase row-level security narrows rows further.

Bodies:
    Writes are declared with the pydantic models of `school_data.models`, so
    FastAPI validates them before the handler runs. `api_validation_error`
    runs the same origin and role checks a handler would, and only then turns
    the validation error into the portal's 400 shape; an anonymous caller
    still gets 401, not a description of the payload.

Errors:
    `{"error": code, "detail": ...}` with `Cache-Control: private, no-store`:
    400 validation, 401 unauthenticated, 403 forbidden/approval_pending/csrf,
    404 unknown table or row, 502 backend failure, 503 while the session loads.
"""
# No `from __future__ import annotations`: the per-table routes below annotate
# their body with a model bound in a closure, which FastAPI must resolve.

from datetime import date
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from identity_access.domain import KNOWN_ROLES, Role
from identity_access.supabase_auth import AuthError, ProfileUpdate
from school_data.models import AttendanceMarkPayload, error_code_and_detail
from school_data.services import RESOURCES, Resource, ValidationError
from school_data.tables import DataAccessError

import wiring
from guards import private_headers, require_api, session_provider, session_state
from routes.security import is_same_origin


data_api_router = APIRouter(tags=["Data"])
logger = logging.getLogger("pakschool.web.data_api")

RESERVED_QUERY_PARAMS = frozenset({"limit"})
MAX_LIMIT = 500
STATS_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
ANY_ROLE = (*KNOWN_ROLES, Role.UNKNOWN)
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _json(payload: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers=private_headers())


def _error(code: str, status_code: int, detail: Optional[str] = None) -> JSONResponse:
    body: Dict[str, Any] = {"error": code}
    if detail:
        body["detail"] = detail
    return _json(body, status_code)


def _backend_error(exc: DataAccessError) -> JSONResponse:
    # Details can contain SQL fragments; log them, do not echo them.
    logger.warning("Data backend error: %s (%s)", exc.code, exc.detail)
    return _error("backend_error", 502)


def _data(request: Request):
    return wiring.school_data_for(session_provider(request).get_session())


def _parse_limit(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return max(1, min(MAX_LIMIT, int(raw)))
    except ValueError:
        raise ValidationError("invalid_limit")


def _table_gate(request: Request, table: str, *, write: bool):
    """Return (profile, None) or (None, error_response) for a table operation."""
    resource = RESOURCES.get(table)
    if resource is None:
        # Authenticate first, so unknown tables do not leak to anonymous callers.
        profile, err = require_api(request, allowed_roles=KNOWN_ROLES)
        return None, err or _error("unknown_table", 404)
    roles = resource.write_roles if write else resource.read_roles
    return require_api(request, allowed_roles=roles)


def _gate_for_path(request: Request):
    """The gate a handler on this path would have run; used before reporting validation errors."""
    parts = [p for p in request.url.path.split("/") if p]
    segment = parts[1] if len(parts) > 1 else ""
    if segment == "me":
        return require_api(request, allowed_roles=ANY_ROLE, require_approval=False)
    if segment == "users":
        return require_api(request, allowed_roles=[Role.ADMIN])
    if segment in RESOURCES:
        return _table_gate(request, segment, write=request.method in UNSAFE_METHODS)
    return require_api(request, allowed_roles=KNOWN_ROLES)


def validation_code(exc: RequestValidationError) -> tuple:
    errors = list(exc.errors())
    for err in errors:
        if err.get("type") == "json_invalid" or tuple(err.get("loc", ())) == ("body",):
            return "invalid_json", None
    return error_code_and_detail(errors)


async def api_validation_error(request: Request, exc: RequestValidationError):
    """400 `{"error", "detail"}` for API payloads; pages keep FastAPI's default."""
    if not request.url.path.startswith("/api/"):
        return await request_validation_exception_handler(request, exc)
    if request.method in UNSAFE_METHODS and not is_same_origin(request):
        return _error("csrf_violation", 403)
    profile, err = _gate_for_path(request)
    if err is not None:
        return err
    code, detail = validation_code(exc)
    logger.info("Rejected payload on %s: %s", request.url.path, code)
    return _error(code, 400, detail)


# --- Profile --------------------------------------------------------------------------


@data_api_router.get("/api/me")
async def get_me(request: Request):
    """The caller's profile.

    Only needs a session with a loaded profile; approval is not required so
    the pending-approval page can show who is signed in.
    """
    profile, err = require_api(request, allowed_roles=ANY_ROLE, require_approval=False)
    if err is not None:
        return err
    return _json({
        "id": profile.id,
        "email": profile.email,
        "full_name": profile.full_name,
        "role": profile.role.value,
        "is_approved": profile.is_approved,
        "phone": profile.phone,
        "avatar_url": profile.avatar_url,
        "language_pref": profile.language_pref,
    })


@data_api_router.patch("/api/me")
async def update_me(request: Request, payload: ProfileUpdate):
    """Update own profile fields (`full_name`, `phone`, `avatar_url`, `language_pref`).

    Any other key is a 400. The refreshed profile replaces the session's copy.
    """
    if not is_same_origin(request):
        return _error("csrf_violation", 403)
    profile, err = require_api(request, allowed_roles=ANY_ROLE, require_approval=False)
    if err is not None:
        return err
    state = session_state(request)
    auth = state.get_session()
    client = wiring.get_auth_client()
    try:
        client.update_profile(auth, payload)
    except AuthError as exc:
        logger.warning("Profile update failed: %s", exc.code)
        return _error("backend_error", 502)
    refreshed = client.fetch_profile(auth)
    if refreshed is not None:
        state.set_profile(refreshed)
    return _json({"ok": True})


# --- Aggregations ---------------------------------------------------------------------


@data_api_router.get("/api/dashboard/stats")
async def dashboard_stats(request: Request):
    profile, err = require_api(request, allowed_roles=STATS_ROLES)
    if err is not None:
        return err
    try:
        return _json(_data(request).dashboard_stats())
    except DataAccessError as exc:
        return _backend_error(exc)


@data_api_router.get("/api/attendance/weekly")
async def attendance_weekly(request: Request):
    """Per-day present/absent/late counts for the last seven days."""
    profile, err = require_api(request, allowed_roles=RESOURCES["attendance"].read_roles)
    if err is not None:
        return err
    try:
        return _json(_data(request).weekly_attendance())
    except DataAccessError as exc:
        return _backend_error(exc)


@data_api_router.get("/api/attendance/stats")
async def attendance_stats(
    request: Request,
    class_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
):
    """Totals and present percentage, optionally for one class and a date range."""
    profile, err = require_api(request, allowed_roles=RESOURCES["attendance"].read_roles)
    if err is not None:
        return err
    try:
        return _json(_data(request).attendance_stats(class_id, start, end))
    except DataAccessError as exc:
        return _backend_error(exc)


@data_api_router.post("/api/attendance/mark")
async def mark_attendance(request: Request, payload: AttendanceMarkPayload):
    """Record a day's register; re-marking a student on the same date replaces the row."""
    if not is_same_origin(request):
        return _error("csrf_violation", 403)
    profile, err = _table_gate(request, "attendance", write=True)
    if err is not None:
        return err
    try:
        rows = _data(request).mark_attendance(
            payload.entries, on=payload.date, class_id=payload.class_id, marked_by=profile.id,
        )
    except ValidationError as exc:
        return _error(exc.code, 400, exc.detail)
    except DataAccessError as exc:
        return _backend_error(exc)
    return _json(rows)


@data_api_router.get("/api/activity")
async def recent_activity(request: Request, limit: int = 10):
    profile, err = require_api(request, allowed_roles=STATS_ROLES)
    if err is not None:
        return err
    try:
        return _json(_data(request).recent_activity(limit=max(1, min(50, limit))))
    except DataAccessError as exc:
        return _backend_error(exc)


# --- Table writes (one route pair per table, typed by its models) ---------------------


def _add_write_routes(resource: Resource) -> None:
    table = resource.name
    create_model = resource.create_model
    update_model = resource.update_model

    async def create(request: Request, payload: create_model):  # type: ignore[valid-type]
        if not is_same_origin(request):
            return _error("csrf_violation", 403)
        profile, err = _table_gate(request, table, write=True)
        if err is not None:
            return err
        try:
            row = _data(request).create_row(table, payload)
        except ValidationError as exc:
            return _error(exc.code, 400, exc.detail)
        except DataAccessError as exc:
            return _backend_error(exc)
        return _json(row, 201)

    async def update(request: Request, row_id: str, payload: update_model):  # type: ignore[valid-type]
        if not is_same_origin(request):
            return _error("csrf_violation", 403)
        profile, err = _table_gate(request, table, write=True)
        if err is not None:
            return err
        try:
            row = _data(request).update_row(table, row_id, payload)
        except ValidationError as exc:
            return _error(exc.code, 400, exc.detail)
        except DataAccessError as exc:
            return _backend_error(exc)
        if row is None:
            return _error("not_found", 404)
        return _json(row)

    data_api_router.add_api_route(f"/api/{table}", create, methods=["POST"], name=f"create_{table}")
    data_api_router.add_api_route(f"/api/{table}/{{row_id}}", update, methods=["PATCH"], name=f"update_{table}")


for _resource in RESOURCES.values():
    _add_write_routes(_resource)


# --- Generic table routes -------------------------------------------------------------


@data_api_router.get("/api/{table}")
async def list_rows(request: Request, table: str):
    """List rows; query parameters other than `limit` are equality filters."""
    profile, err = _table_gate(request, table, write=False)
    if err is not None:
        return err
    params = request.query_params
    filters = {k: v for k, v in params.items() if k not in RESERVED_QUERY_PARAMS}
    try:
        rows = _data(request).list_rows(table, filters, limit=_parse_limit(params.get("limit")))
    except ValidationError as exc:
        return _error(exc.code, 400, exc.detail)
    except DataAccessError as exc:
        return _backend_error(exc)
    return _json(rows)


@data_api_router.post("/api/{table}")
async def create_unknown(request: Request, table: str):
    # Only reached for names without a model; always 401/403/404.
    profile, err = _table_gate(request, table, write=True)
    return err


@data_api_router.get("/api/{table}/{row_id}")
async def get_row(request: Request, table: str, row_id: str):
    profile, err = _table_gate(request, table, write=False)
    if err is not None:
        return err
    try:
        row = _data(request).get_row(table, row_id)
    except DataAccessError as exc:
        return _backend_error(exc)
    if row is None:
        return _error("not_found", 404)
    return _json(row)


@data_api_router.patch("/api/{table}/{row_id}")
async def update_unknown(request: Request, table: str, row_id: str):
    profile, err = _table_gate(request, table, write=True)
    return err


@data_api_router.delete("/api/{table}/{row_id}")
async def delete_row(request: Request, table: str, row_id: str):
    if not is_same_origin(request):
        return _error("csrf_violation", 403)
    profile, err = _table_gate(request, table, write=True)
    if err is not None:
        return err
    try:
        deleted = _data(request).delete_row(table, row_id)
    except DataAccessError as exc:
        return _backend_error(exc)
    if not deleted:
        return _error("not_found", 404)
    return Response(status_code=204, headers=private_headers())
