"""
School data services: the resource catalogue and derived dashboard reads.

Why:
    The portal's data screens are pass-through CRUD over the school tables.
    What the portal itself decides is small: which roles may open which table,
    which payloads a form may write (see `models`), how lists are ordered, and
    a few aggregations for the dashboards. That knowledge lives here, on top of
    a `TableGateway`.

Permissions:
    The role sets below drive the web gates. Row-level filtering (a student
    sees only their own attendance) is enforced by Supabase RLS, not here.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Type
import logging

from pydantic import BaseModel

from identity_access.domain import KNOWN_ROLES, Role

from .models import (
    WRITE_MODELS,
    AttendanceEntry,
    PydanticValidationError,
    error_code_and_detail,
    model_columns,
    required_columns,
    validate_write,
)
from .tables import Filter, Order, TableGateway


logger = logging.getLogger("pakschool.school_data")


class UnknownTableError(LookupError):
    def __init__(self, table: str):
        super().__init__(table)
        self.code = "unknown_table"
        self.table = table


class ValidationError(ValueError):
    def __init__(self, code: str, detail: str | None = None):
        super().__init__(code)
        self.code = code
        self.detail = detail

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        code, detail = error_code_and_detail(exc.errors())
        return cls(code, detail)


@dataclass(frozen=True)
class Resource:
    name: str
    read_roles: FrozenSet[Role]
    write_roles: FrozenSet[Role]
    order: Order
    # Rows with the same values in these columns are replaced, not duplicated.
    upsert_key: Tuple[str, ...] = ()

    @property
    def create_model(self) -> Type[BaseModel]:
        return WRITE_MODELS[self.name][0]

    @property
    def update_model(self) -> Type[BaseModel]:
        return WRITE_MODELS[self.name][1]

    @property
    def writable(self) -> FrozenSet[str]:
        return model_columns(self.create_model)

    @property
    def required(self) -> FrozenSet[str]:
        return required_columns(self.create_model)

    @property
    def filterable(self) -> FrozenSet[str]:
        return self.writable | {"id"}

    def can_read(self, role: Role) -> bool:
        return role in self.read_roles

    def can_write(self, role: Role) -> bool:
        return role in self.write_roles


def _roles(*roles: Role) -> FrozenSet[Role]:
    return frozenset(roles)


SA, AD, TE, ST, PA = Role.SUPER_ADMIN, Role.ADMIN, Role.TEACHER, Role.STUDENT, Role.PARENT

RESOURCES: Dict[str, Resource] = {
    r.name: r
    for r in (
        Resource("students", _roles(SA, AD, TE), _roles(AD), Order("created_at", True)),
        Resource("teachers", _roles(SA, AD), _roles(AD), Order("created_at", True)),
        Resource("classes", _roles(SA, AD, TE), _roles(AD), Order("name")),
        Resource(
            "attendance", _roles(AD, TE, ST, PA), _roles(AD, TE), Order("date", True),
            upsert_key=("student_id", "date"),
        ),
        Resource("fees", _roles(AD, ST, PA), _roles(AD), Order("due_date", True)),
        Resource("notices", frozenset(KNOWN_ROLES), _roles(AD, TE), Order("created_at", True)),
        Resource("timetable", _roles(AD, TE, ST), _roles(AD), Order("day_of_week")),
        Resource("enquiries", _roles(AD), _roles(AD), Order("created_at", True)),
        Resource("visitors", _roles(AD), _roles(AD), Order("check_in", True)),
        Resource("salaries", _roles(AD), _roles(AD), Order("created_at", True)),
        Resource("schools", _roles(SA), _roles(SA), Order("created_at", True)),
    )
}

ATTENDANCE_STATUSES = ("present", "absent", "late")
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
USER_FILTERS = ("all", "pending", "approved")
PAID_PLANS = ("basic", "standard", "premium")
SCHOOL_CODE_PREFIX = "SCH"


def get_resource(table: str) -> Resource:
    res = RESOURCES.get(table)
    if res is None:
        raise UnknownTableError(table)
    return res


def _check_filters(filters: Mapping[str, Any], allowed: FrozenSet[str]) -> None:
    unknown = sorted(set(filters) - allowed)
    if unknown:
        raise ValidationError("unknown_columns", ", ".join(unknown))


def _validated(model: Type[BaseModel], values: Any) -> BaseModel:
    try:
        return validate_write(model, values)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class SchoolData:
    """Table operations and aggregations on top of a gateway."""

    def __init__(self, gateway: TableGateway):
        self.gateway = gateway

    # --- CRUD ---------------------------------------------------------------------

    def list_rows(self, table: str, filters: Mapping[str, Any] | None = None, *, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        resource = get_resource(table)
        filters = dict(filters or {})
        _check_filters(filters, resource.filterable)
        return self.gateway.select(
            table,
            filters=[Filter(k, "eq", v) for k, v in filters.items()],
            order=resource.order,
            limit=limit,
        )

    def get_row(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        get_resource(table)
        rows = self.gateway.select(table, filters=[Filter("id", "eq", row_id)], limit=1)
        return rows[0] if rows else None

    def create_row(self, table: str, values: Mapping[str, Any] | BaseModel) -> Dict[str, Any]:
        """Validate and insert one row (upsert for tables with a natural key)."""
        resource = get_resource(table)
        payload = _validated(resource.create_model, values).model_dump(mode="json", exclude_none=True)
        if resource.upsert_key:
            rows = self.gateway.upsert(table, [payload], on_conflict=resource.upsert_key)
            row = rows[0] if rows else payload
        else:
            row = self.gateway.insert(table, payload)
        logger.info("Row written to %s", table)
        return row

    def update_row(self, table: str, row_id: str, values: Mapping[str, Any] | BaseModel) -> Optional[Dict[str, Any]]:
        resource = get_resource(table)
        model = _validated(resource.update_model, values)
        changes = model.model_dump(mode="json", exclude_unset=True)
        if not changes:
            raise ValidationError("empty_update")
        return self.gateway.update(table, row_id, changes)

    def delete_row(self, table: str, row_id: str) -> bool:
        get_resource(table)
        return self.gateway.delete(table, row_id)

    # --- Attendance -----------------------------------------------------------------

    def mark_attendance(
        self,
        entries: Iterable[Mapping[str, Any] | AttendanceEntry],
        *,
        on: date,
        class_id: Optional[str] = None,
        marked_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Record a register for one day; re-marking a student replaces their row."""
        resource = get_resource("attendance")
        rows: Dict[str, Dict[str, Any]] = {}
        for entry in entries:
            item = _validated(AttendanceEntry, entry)
            values = {"date": on, "class_id": class_id, "marked_by": marked_by, **item.model_dump()}
            payload = _validated(resource.create_model, values).model_dump(mode="json", exclude_none=True)
            # Last entry per student wins within one register.
            rows[payload["student_id"]] = payload
        if not rows:
            raise ValidationError("missing_columns", "entries")
        written = self.gateway.upsert("attendance", list(rows.values()), on_conflict=resource.upsert_key)
        logger.info("Attendance marked for %d student(s) on %s", len(rows), on.isoformat())
        return written

    def attendance_stats(
        self, class_id: Optional[str] = None, start: Optional[date] = None, end: Optional[date] = None
    ) -> Dict[str, Any]:
        filters = []
        if class_id:
            filters.append(Filter("class_id", "eq", class_id))
        if start:
            filters.append(Filter("date", "gte", start.isoformat()))
        if end:
            filters.append(Filter("date", "lte", end.isoformat()))
        rows = self.gateway.select("attendance", columns="status", filters=filters)
        total = len(rows)
        counts = {s: sum(1 for r in rows if r.get("status") == s) for s in ATTENDANCE_STATUSES}
        return {
            "total": total,
            **counts,
            "presentPercentage": (counts["present"] / total) * 100 if total else 0,
        }

    # --- Accounts -------------------------------------------------------------------

    def list_users(self, status: str = "all", search: str = "") -> List[Dict[str, Any]]:
        """Profiles with their role, newest first; `status` filters on approval."""
        if status not in USER_FILTERS:
            raise ValidationError("invalid_filter", status)
        filters = []
        if status != "all":
            filters.append(Filter("is_approved", "eq", status == "approved"))
        profiles = self.gateway.select("profiles", filters=filters, order=Order("created_at", True))
        roles = {
            str(r.get("user_id")): Role.parse(r.get("role")).value
            for r in self.gateway.select("user_roles", columns="user_id, role")
        }
        needle = search.strip().lower()
        users = []
        for p in profiles:
            if needle and needle not in f"{p.get('full_name') or ''} {p.get('email') or ''}".lower():
                continue
            users.append({
                "id": p.get("id"),
                "full_name": p.get("full_name") or "",
                "email": p.get("email") or "",
                "phone": p.get("phone"),
                "role": roles.get(str(p.get("id")), Role.UNKNOWN.value),
                "is_approved": bool(p.get("is_approved")),
                "created_at": p.get("created_at"),
            })
        return users

    def set_approval(self, user_id: str, approved: bool) -> Optional[Dict[str, Any]]:
        row = self.gateway.update("profiles", user_id, {"is_approved": bool(approved)})
        if row is not None:
            logger.info("User %s %s", user_id, "approved" if approved else "revoked")
        return row

    # --- Schools --------------------------------------------------------------------

    def school_overview(self) -> Dict[str, Any]:
        schools = self.gateway.select("schools", columns="is_active, subscription_plan")
        return {
            "totalSchools": len(schools),
            "activeSchools": sum(1 for s in schools if s.get("is_active")),
            "trialSchools": sum(1 for s in schools if s.get("subscription_plan") == "trial"),
            "paidSchools": sum(1 for s in schools if s.get("subscription_plan") in PAID_PLANS),
        }

    def next_school_code(self, today: date | None = None) -> str:
        """Next free code of the form SCH<yy><nnn> for the current year."""
        prefix = f"{SCHOOL_CODE_PREFIX}{(today or date.today()).year % 100:02d}"
        last = 0
        for row in self.gateway.select("schools", columns="code"):
            code = str(row.get("code") or "")
            if code.startswith(prefix) and code[-3:].isdigit():
                last = max(last, int(code[-3:]))
        return f"{prefix}{last + 1:03d}"

    # --- Front office ---------------------------------------------------------------

    def check_out_visitor(self, visitor_id: str, when: datetime | None = None) -> Optional[Dict[str, Any]]:
        when = when or datetime.now(timezone.utc)
        return self.gateway.update("visitors", visitor_id, {"check_out": when.isoformat()})

    # --- Dashboards -----------------------------------------------------------------

    def dashboard_stats(self) -> Dict[str, Any]:
        """Headline numbers for the dashboards; RLS scopes them to the caller."""
        fees = self.gateway.select("fees", columns="amount_due, amount_paid, status")
        return {
            "totalStudents": self.gateway.count("students"),
            "totalTeachers": self.gateway.count("teachers"),
            "totalClasses": self.gateway.count("classes"),
            "totalFeeCollected": sum(_num(f.get("amount_paid")) for f in fees),
            "totalFeeDue": sum(_num(f.get("amount_due")) for f in fees),
            "pendingFees": sum(1 for f in fees if f.get("status") == "pending"),
        }

    def weekly_attendance(self, today: date | None = None) -> List[Dict[str, Any]]:
        """Attendance counts per day for the last seven days (oldest first)."""
        today = today or date.today()
        week_ago = today - timedelta(days=7)
        rows = self.gateway.select(
            "attendance",
            columns="date, status",
            filters=[Filter("date", "gte", week_ago.isoformat()), Filter("date", "lte", today.isoformat())],
        )
        grouped: Dict[str, Dict[str, int]] = {}
        for row in rows:
            day = str(row.get("date") or "")[:10]
            if not day:
                continue
            counts = grouped.setdefault(day, {s: 0 for s in ATTENDANCE_STATUSES})
            status = row.get("status")
            if status in counts:
                counts[status] += 1
        result = []
        for day in sorted(grouped):
            name = DAY_NAMES[date.fromisoformat(day).weekday()]
            result.append({"name": name, "date": day, **grouped[day]})
        return result

    def recent_activity(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self.gateway.select("activity_logs", order=Order("created_at", True), limit=limit)

    def fee_summary(self, student_id: str) -> Dict[str, Any]:
        fees = self.gateway.select("fees", filters=[Filter("student_id", "eq", student_id)])
        due = sum(_num(f.get("amount_due")) for f in fees)
        paid = sum(_num(f.get("amount_paid")) for f in fees)
        return {"totalDue": due, "totalPaid": paid, "balance": due - paid, "count": len(fees)}


__all__ = [
    "RESOURCES",
    "Resource",
    "SchoolData",
    "UnknownTableError",
    "ValidationError",
    "get_resource",
    "ATTENDANCE_STATUSES",
    "USER_FILTERS",
]
