"""
Dashboard and role page routes (HTML).

Every handler starts with the access gate and renders only on `Render`. Role
dashboards admit exactly their role; all but the super-admin pages also
require an approved account.

Data is read through `SchoolData` bound to the caller's session, so Supabase
row-level security narrows what each user sees (a student's attendance list
only holds their own rows even though the query is the same). A failing
query never turns into a 500: the affected section shows an error line and
the rest of the page renders.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from identity_access.domain import DEFAULT_DASHBOARD, Role, role_dashboard
from school_data.services import ATTENDANCE_STATUSES, RESOURCES, SchoolData, ValidationError, get_resource
from school_data.tables import DataAccessError

import wiring
from components import AttendanceRegister, Component, DataTable, RowForm, StatCard, StatGrid
from guards import private_headers, require_page, session_provider
from pages import page_response
from preferences import read_preferences
from routes.security import is_same_origin


dashboards_router = APIRouter(tags=["Dashboards"])
logger = logging.getLogger("pakschool.web.dashboards")

ADMIN_TABLES = ("students", "teachers", "classes", "attendance", "fees", "salaries", "timetable",
                "notices", "enquiries", "visitors")

LIST_COLUMNS: Dict[str, tuple] = {
    "students": ("admission_no", "father_name", "gender", "class_id", "fee_category"),
    "teachers": ("designation", "department", "qualification", "joining_date"),
    "classes": ("name", "section", "grade_level", "academic_year"),
    "attendance": ("date", "student_id", "status", "remarks"),
    "fees": ("due_date", "student_id", "amount_due", "amount_paid", "status"),
    "salaries": ("month", "teacher_id", "base_salary", "net_salary", "status"),
    "timetable": ("day_of_week", "period_number", "start_time", "end_time", "subject"),
    "notices": ("title", "priority", "target_role", "created_at"),
    "enquiries": ("enquiry_date", "student_name", "contact_number", "class_applied", "status"),
    "visitors": ("visitor_name", "purpose", "whom_to_meet", "check_in", "check_out"),
    "schools": ("code", "name", "city", "subscription_plan", "is_active", "max_students"),
}


def _data(request: Request) -> SchoolData:
    return wiring.school_data_for(session_provider(request).get_session())


def _profile(request: Request):
    return session_provider(request).get_profile()


def _money(value: float) -> str:
    return f"Rs. {value:,.0f}"


def _error_message(exc: Exception) -> str:
    code = getattr(exc, "code", "error")
    if isinstance(exc, DataAccessError):
        # Backend details can hold SQL; they go to the log only.
        return f"Could not load or save data ({code})."
    detail = getattr(exc, "detail", None)
    return f"{code}: {detail}" if detail else str(code)


def _error_html(message: str) -> str:
    return f'<p class="form-error" role="alert">{Component.escape(message)}</p>'


def _guarded(what: str, build: Callable[[], str]) -> str:
    """Render one page section; a backend failure becomes an inline error."""
    try:
        return build()
    except DataAccessError as exc:
        logger.warning("%s query failed: %s (%s)", what, exc.code, exc.detail)
        return _error_html(_error_message(exc))


def _stats_grid(request: Request, stats: Dict[str, Any]) -> str:
    t = read_preferences(request).t
    return StatGrid([
        StatCard(t("dashboard.totalStudents"), stats["totalStudents"]),
        StatCard(t("dashboard.totalTeachers"), stats["totalTeachers"]),
        StatCard(t("dashboard.totalClasses"), stats["totalClasses"]),
        StatCard(t("dashboard.feeCollection"), _money(stats["totalFeeCollected"])),
        StatCard(t("dashboard.pendingFees"), stats["pendingFees"]),
    ]).render()


def _section(title: str, body: str) -> str:
    return f'<section class="card"><h2>{title}</h2>{body}</section>'


def _greeting(request: Request) -> str:
    prefs = read_preferences(request)
    profile = _profile(request)
    name = Component.escape(profile.full_name or profile.email) if profile else ""
    return f'<h1>{prefs.t("common.welcome")}, {name}</h1>'


def _table(request: Request, rows, columns, **kwargs) -> str:
    return DataTable(rows, columns, empty_text=read_preferences(request).t("common.empty"), **kwargs).render()


def _notices_table(request: Request, data: SchoolData, limit: int = 5) -> str:
    return _guarded("Notices", lambda: _table(request, data.list_rows("notices", limit=limit),
                                              ("title", "content", "created_at")))


# --- Dashboards -----------------------------------------------------------------------


@dashboards_router.get("/")
async def root(request: Request):
    """Entry point: signed-in users go to `/dashboard`, everyone else to login."""
    blocked = require_page(request)
    if blocked is not None:
        return blocked
    return RedirectResponse(url=DEFAULT_DASHBOARD, status_code=303, headers=private_headers())


@dashboards_router.get("/dashboard")
async def dashboard(request: Request):
    """Generic dashboard: links to the role dashboard, or explains a missing role.

    This is also where users with an unrecognised role end up, so it must not
    redirect on its own.
    """
    blocked = require_page(request)
    if blocked is not None:
        return blocked
    prefs = read_preferences(request)
    profile = _profile(request)
    if profile is not None and profile.role is not Role.UNKNOWN:
        target = role_dashboard(profile.role)
        body = f'<p><a class="btn" href="{target}">{prefs.t("common.dashboard")}</a></p>'
    else:
        body = "<p>Your account has no role assigned yet. Please contact the school administration.</p>"
    return page_response(request, prefs.t("common.dashboard"), _greeting(request) + body)


def _school_cards(overview: Dict[str, Any]) -> str:
    return StatGrid([
        StatCard("Schools", overview["totalSchools"]),
        StatCard("Active", overview["activeSchools"]),
        StatCard("Trial", overview["trialSchools"]),
        StatCard("Paid plans", overview["paidSchools"]),
    ]).render()


@dashboards_router.get("/super-admin/dashboard")
async def super_admin_dashboard(request: Request):
    blocked = require_page(request, allowed_roles=[Role.SUPER_ADMIN])
    if blocked is not None:
        return blocked
    data = _data(request)
    content = (
        _greeting(request)
        + _guarded("School overview", lambda: _school_cards(data.school_overview()))
        + _guarded("Super admin stats", lambda: _stats_grid(request, data.dashboard_stats()))
        + _section("Recent activity", _guarded("Activity", lambda: _table(
            request, data.recent_activity(), ("created_at", "action", "entity_type", "user_id"))))
    )
    return page_response(request, read_preferences(request).t("common.dashboard"), content)


@dashboards_router.get("/admin/dashboard")
async def admin_dashboard(request: Request):
    """Admin dashboard: headline numbers, weekly attendance and recent activity."""
    blocked = require_page(request, allowed_roles=[Role.ADMIN], require_approval=True)
    if blocked is not None:
        return blocked
    prefs = read_preferences(request)
    data = _data(request)
    content = (
        _greeting(request)
        + _guarded("Admin stats", lambda: _stats_grid(request, data.dashboard_stats()))
        + _section(prefs.t("dashboard.attendance"), _guarded("Weekly attendance", lambda: _table(
            request, data.weekly_attendance(), ("name", "present", "absent", "late"))))
        + _section("Recent activity", _guarded("Activity", lambda: _table(
            request, data.recent_activity(), ("created_at", "action", "entity_type"))))
    )
    return page_response(request, prefs.t("common.dashboard"), content)


@dashboards_router.get("/teacher/dashboard")
async def teacher_dashboard(request: Request):
    blocked = require_page(request, allowed_roles=[Role.TEACHER], require_approval=True)
    if blocked is not None:
        return blocked
    prefs = read_preferences(request)
    data = _data(request)
    content = (
        _greeting(request)
        + _section("Classes", _guarded("Teacher classes", lambda: _table(
            request, data.list_rows("classes"), LIST_COLUMNS["classes"])))
        + _section(prefs.t("dashboard.notices"), _notices_table(request, data))
    )
    return page_response(request, prefs.t("common.dashboard"), content)


def _fee_cards(summary: Dict[str, Any]) -> str:
    return StatGrid([
        StatCard("Fees due", _money(summary["totalDue"])),
        StatCard("Fees paid", _money(summary["totalPaid"])),
        StatCard("Balance", _money(summary["balance"])),
    ]).render()


@dashboards_router.get("/student/dashboard")
async def student_dashboard(request: Request):
    blocked = require_page(request, allowed_roles=[Role.STUDENT], require_approval=True)
    if blocked is not None:
        return blocked
    prefs = read_preferences(request)
    data = _data(request)
    profile = _profile(request)
    content = (
        _greeting(request)
        + _guarded("Student fees", lambda: _fee_cards(data.fee_summary(profile.id)))
        + _section(prefs.t("dashboard.notices"), _notices_table(request, data))
    )
    return page_response(request, prefs.t("common.dashboard"), content)


@dashboards_router.get("/parent/dashboard")
async def parent_dashboard(request: Request):
    blocked = require_page(request, allowed_roles=[Role.PARENT], require_approval=True)
    if blocked is not None:
        return blocked
    prefs = read_preferences(request)
    data = _data(request)
    profile = _profile(request)

    def _children() -> str:
        children = data.list_rows("students", {"parent_id": profile.id})
        return StatGrid([StatCard("Children", len(children))]).render()

    content = (
        _greeting(request)
        + _guarded("Parent children", _children)
        + _section(prefs.t("dashboard.notices"), _notices_table(request, data))
    )
    return page_response(request, prefs.t("common.dashboard"), content)


# --- Role pages -----------------------------------------------------------------------


@dashboards_router.get("/notices")
async def notices_page(request: Request):
    """Notice board for every known role."""
    blocked = require_page(request, allowed_roles=RESOURCES["notices"].read_roles, require_approval=True)
    if blocked is not None:
        return blocked
    prefs = read_preferences(request)
    content = f'<h1>{prefs.t("dashboard.notices")}</h1>' + _notices_table(request, _data(request), limit=50)
    return page_response(request, prefs.t("dashboard.notices"), content)


def _class_links(classes: List[Dict[str, Any]], current: Optional[str]) -> str:
    links = []
    for c in classes:
        css = "btn" if c.get("id") == current else "btn btn-outline"
        label = " ".join(str(v) for v in (c.get("name"), c.get("section")) if v)
        links.append(f'<a class="{css}" href="/teacher/attendance?class_id={Component.escape(c.get("id"))}">'
                     f"{Component.escape(label)}</a>")
    return f'<nav class="filter-links">{"".join(links)}</nav>'


def _attendance_page(request: Request, *, class_id: Optional[str] = None, day: Optional[str] = None,
                     error: Optional[str] = None, status_code: int = 200):
    prefs = read_preferences(request)
    data = _data(request)
    day = day or date.today().isoformat()

    def _register() -> str:
        classes = data.list_rows("classes")
        if not class_id:
            return _class_links(classes, None) + "<p>Choose a class to take the register.</p>"
        students = data.list_rows("students", {"class_id": class_id})
        marked = {r.get("student_id"): r.get("status")
                  for r in data.list_rows("attendance", {"class_id": class_id, "date": day})}
        register = AttendanceRegister(students, action="/teacher/attendance", day=day, class_id=class_id,
                                      marked=marked, submit_label=prefs.t("common.save"))
        return _class_links(classes, class_id) + register.render()

    single = RowForm(get_resource("attendance"), action="/teacher/attendance", submit_label=prefs.t("common.save"))
    content = (
        "<h1>Attendance</h1>"
        + (_error_html(error) if error else "")
        + _section("Class register", _guarded("Attendance register", _register))
        + _section("Mark attendance", single.render())
        + _guarded("Attendance list", lambda: _table(request, data.list_rows("attendance", limit=100),
                                                     LIST_COLUMNS["attendance"]))
    )
    return page_response(request, "Attendance", content, status_code=status_code)


@dashboards_router.get("/teacher/attendance")
async def teacher_attendance(request: Request, class_id: Optional[str] = None, day: Optional[str] = None):
    blocked = require_page(request, allowed_roles=[Role.TEACHER], require_approval=True)
    if blocked is not None:
        return blocked
    return _attendance_page(request, class_id=class_id, day=day)


def _register_entries(items: List[Tuple[str, str]]) -> List[Dict[str, str]]:
    """Entries from `status:<id>` / `remarks:<id>` fields, or one `student_id`/`status` pair."""
    fields = {k: v for k, v in items}
    entries: Dict[str, Dict[str, str]] = {}
    for key, value in items:
        if key.startswith("status:") and key[7:]:
            entries[key[7:]] = {"student_id": key[7:], "status": value}
    for sid, entry in entries.items():
        remarks = (fields.get(f"remarks:{sid}") or "").strip()
        if remarks:
            entry["remarks"] = remarks
    if entries:
        return list(entries.values())
    single = {k: fields[k] for k in ("student_id", "status", "remarks") if (fields.get(k) or "").strip()}
    return [single] if single else []


@dashboards_router.post("/teacher/attendance")
async def teacher_mark_attendance(request: Request):
    """Record attendance; a student marked twice on one date keeps a single row."""
    blocked = require_page(request, allowed_roles=[Role.TEACHER], require_approval=True)
    if blocked is not None:
        return blocked
    if not is_same_origin(request):
        return _attendance_page(request, error="csrf_violation", status_code=403)
    form = await request.form()
    items = [(k, str(v)) for k, v in form.multi_items()]
    fields = dict(items)
    class_id = (fields.get("class_id") or "").strip() or None
    raw_day = (fields.get("date") or "").strip()
    try:
        day = date.fromisoformat(raw_day) if raw_day else date.today()
    except ValueError:
        return _attendance_page(request, class_id=class_id, error="invalid_value: date", status_code=400)
    try:
        _data(request).mark_attendance(
            _register_entries(items), on=day, class_id=class_id, marked_by=_profile(request).id,
        )
    except (ValidationError, DataAccessError) as exc:
        if isinstance(exc, DataAccessError):
            logger.warning("Marking attendance failed: %s (%s)", exc.code, exc.detail)
        return _attendance_page(request, class_id=class_id, day=day.isoformat(),
                                error=_error_message(exc), status_code=400)
    target = f"/teacher/attendance?class_id={class_id}&day={day.isoformat()}" if class_id else "/teacher/attendance"
    return RedirectResponse(url=target, status_code=303, headers=private_headers())


@dashboards_router.get("/student/attendance")
async def student_attendance(request: Request):
    blocked = require_page(request, allowed_roles=[Role.STUDENT], require_approval=True)
    if blocked is not None:
        return blocked
    data = _data(request)
    student_id = _profile(request).id

    def _body() -> str:
        rows = data.list_rows("attendance", {"student_id": student_id})
        counts = {s: sum(1 for r in rows if r.get("status") == s) for s in ATTENDANCE_STATUSES}
        present_pct = counts["present"] / len(rows) * 100 if rows else 0
        cards = StatGrid([
            StatCard("Present", counts["present"]),
            StatCard("Absent", counts["absent"]),
            StatCard("Late", counts["late"]),
            StatCard("Present %", f"{present_pct:.0f}%"),
        ]).render()
        return cards + _table(request, rows, ("date", "status", "remarks"))

    content = "<h1>Attendance</h1>" + _guarded("Student attendance", _body)
    return page_response(request, "Attendance", content)


@dashboards_router.get("/student/fees")
async def student_fees(request: Request):
    blocked = require_page(request, allowed_roles=[Role.STUDENT], require_approval=True)
    if blocked is not None:
        return blocked
    data = _data(request)
    student_id = _profile(request).id
    content = "<h1>Fees</h1>" + _guarded("Student fees", lambda: _table(
        request, data.list_rows("fees", {"student_id": student_id}),
        ("due_date", "amount_due", "amount_paid", "status", "paid_date"),
    ))
    return page_response(request, "Fees", content)


@dashboards_router.get("/parent/children")
async def parent_children(request: Request):
    blocked = require_page(request, allowed_roles=[Role.PARENT], require_approval=True)
    if blocked is not None:
        return blocked
    data = _data(request)
    parent_id = _profile(request).id
    content = "<h1>Children</h1>" + _guarded("Parent children", lambda: _table(
        request, data.list_rows("students", {"parent_id": parent_id}), LIST_COLUMNS["students"]))
    return page_response(request, "Children", content)


# --- Admin table pages ----------------------------------------------------------------


def _visitor_actions(row: Dict[str, Any]):
    if row.get("check_out"):
        return []
    return [(f"/admin/visitors/{row['id']}/checkout", "Check out")]


def _school_actions(row: Dict[str, Any]):
    label = "Deactivate" if row.get("is_active") else "Activate"
    return [(f"/super-admin/schools/{row['id']}/toggle", label)]


def _table_page(request: Request, table: str, *, base: str, error: Optional[str] = None,
                values: Optional[Dict[str, Any]] = None, status_code: int = 200, row_actions=None):
    """List + create form for one table; `base` is the page's URL prefix."""
    prefs = read_preferences(request)
    resource = get_resource(table)
    title = table.replace("_", " ").title()
    form = RowForm(resource, action=base, submit_label=prefs.t("common.save"), values=values, error=error)
    listing = _guarded(f"Listing {table}", lambda: _table(
        request,
        _data(request).list_rows(table, limit=200),
        LIST_COLUMNS[table],
        delete_action=f"{base}/{{id}}/delete",
        delete_label=prefs.t("common.delete"),
        row_actions=row_actions,
    ))
    content = f"<h1>{title}</h1>" + _section("Add", form.render()) + listing
    return page_response(request, title, content, status_code=status_code)


def _admin_table_page(request: Request, table: str, **kwargs):
    actions = _visitor_actions if table == "visitors" else None
    return _table_page(request, table, base=f"/admin/{table}", row_actions=actions, **kwargs)


def _admin_gate(request: Request, table: str):
    if table not in ADMIN_TABLES:
        return page_response(request, "Not found", "<h1>Not found</h1>", status_code=404)
    return require_page(request, allowed_roles=[Role.ADMIN], require_approval=True)


def _form_values(form) -> Dict[str, str]:
    # Blank inputs mean "not set"; the models supply defaults or reject.
    return {k: str(v) for k, v in form.items() if str(v).strip()}


@dashboards_router.get("/admin/{table}")
async def admin_table(request: Request, table: str):
    """List + create form for one school table (admins only)."""
    blocked = _admin_gate(request, table)
    if blocked is not None:
        return blocked
    return _admin_table_page(request, table)


@dashboards_router.post("/admin/{table}")
async def admin_table_create(request: Request, table: str):
    blocked = _admin_gate(request, table)
    if blocked is not None:
        return blocked
    if not is_same_origin(request):
        return _admin_table_page(request, table, error="csrf_violation", status_code=403)
    values = _form_values(await request.form())
    try:
        _data(request).create_row(table, values)
    except (ValidationError, DataAccessError) as exc:
        if isinstance(exc, DataAccessError):
            logger.warning("Creating %s row failed: %s (%s)", table, exc.code, exc.detail)
        return _admin_table_page(request, table, error=_error_message(exc), values=values, status_code=400)
    return RedirectResponse(url=f"/admin/{table}", status_code=303, headers=private_headers())


@dashboards_router.post("/admin/{table}/{row_id}/delete")
async def admin_table_delete(request: Request, table: str, row_id: str):
    blocked = _admin_gate(request, table)
    if blocked is not None:
        return blocked
    if not is_same_origin(request):
        return _admin_table_page(request, table, error="csrf_violation", status_code=403)
    try:
        _data(request).delete_row(table, row_id)
    except DataAccessError as exc:
        logger.warning("Deleting %s row failed: %s (%s)", table, exc.code, exc.detail)
        return _admin_table_page(request, table, error=_error_message(exc), status_code=400)
    return RedirectResponse(url=f"/admin/{table}", status_code=303, headers=private_headers())


@dashboards_router.post("/admin/visitors/{row_id}/checkout")
async def admin_visitor_checkout(request: Request, row_id: str):
    """Stamp the visitor's check-out time."""
    blocked = _admin_gate(request, "visitors")
    if blocked is not None:
        return blocked
    if not is_same_origin(request):
        return _admin_table_page(request, "visitors", error="csrf_violation", status_code=403)
    try:
        row = _data(request).check_out_visitor(row_id)
    except DataAccessError as exc:
        logger.warning("Visitor check-out failed: %s (%s)", exc.code, exc.detail)
        return _admin_table_page(request, "visitors", error=_error_message(exc), status_code=400)
    if row is None:
        return _admin_table_page(request, "visitors", error="not_found", status_code=404)
    return RedirectResponse(url="/admin/visitors", status_code=303, headers=private_headers())


# --- Super admin: schools ---------------------------------------------------------------


def _schools_gate(request: Request):
    return require_page(request, allowed_roles=[Role.SUPER_ADMIN])


def _schools_page(request: Request, **kwargs):
    values = kwargs.pop("values", None)
    if values is None:
        try:
            values = {"code": _data(request).next_school_code()}
        except DataAccessError as exc:
            logger.warning("School code lookup failed: %s", exc.code)
            values = {}
    return _table_page(request, "schools", base="/super-admin/schools", values=values,
                       row_actions=_school_actions, **kwargs)


@dashboards_router.get("/super-admin/schools")
async def schools_page(request: Request):
    """Schools on the platform, with a create form prefilled with the next code."""
    blocked = _schools_gate(request)
    if blocked is not None:
        return blocked
    return _schools_page(request)


@dashboards_router.post("/super-admin/schools")
async def schools_create(request: Request):
    blocked = _schools_gate(request)
    if blocked is not None:
        return blocked
    if not is_same_origin(request):
        return _schools_page(request, error="csrf_violation", status_code=403)
    values = _form_values(await request.form())
    try:
        _data(request).create_row("schools", values)
    except (ValidationError, DataAccessError) as exc:
        return _schools_page(request, error=_error_message(exc), values=values, status_code=400)
    return RedirectResponse(url="/super-admin/schools", status_code=303, headers=private_headers())


@dashboards_router.post("/super-admin/schools/{row_id}/toggle")
async def schools_toggle(request: Request, row_id: str):
    """Flip `is_active`."""
    blocked = _schools_gate(request)
    if blocked is not None:
        return blocked
    if not is_same_origin(request):
        return _schools_page(request, error="csrf_violation", status_code=403)
    data = _data(request)
    try:
        row = data.get_row("schools", row_id)
        if row is None:
            return _schools_page(request, error="not_found", status_code=404)
        data.update_row("schools", row_id, {"is_active": not row.get("is_active")})
    except (ValidationError, DataAccessError) as exc:
        return _schools_page(request, error=_error_message(exc), status_code=400)
    return RedirectResponse(url="/super-admin/schools", status_code=303, headers=private_headers())


@dashboards_router.post("/super-admin/schools/{row_id}/delete")
async def schools_delete(request: Request, row_id: str):
    blocked = _schools_gate(request)
    if blocked is not None:
        return blocked
    if not is_same_origin(request):
        return _schools_page(request, error="csrf_violation", status_code=403)
    try:
        _data(request).delete_row("schools", row_id)
    except DataAccessError as exc:
        return _schools_page(request, error=_error_message(exc), status_code=400)
    return RedirectResponse(url="/super-admin/schools", status_code=303, headers=private_headers())
