"""
Write models for the school tables.

Why:
    Every write, whether a JSON body or an HTML form, is validated by one of
    these models before it reaches the gateway. Unknown keys are rejected
    (`extra="forbid"`), so a request cannot touch columns the portal does not
    manage (e.g. `profiles.is_approved` through a notices form).

Shape:
    - `<Thing>Write`: create payload; required columns are required fields.
    - `<Thing>Update`: partial payload; the same columns, all optional, but a
      required column that is sent must not be blank.
    Column types follow the hosted schema; the database still has the last
    word (constraints, foreign keys, RLS).
"""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Literal, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.functional_validators import field_validator


AttendanceStatus = Literal["present", "absent", "late"]
RoleValue = Literal["super_admin", "admin", "teacher", "student", "parent"]


class _Write(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


# --- People -----------------------------------------------------------------------------


class StudentWrite(_Write):
    admission_no: Optional[str] = Field(default=None, max_length=50)
    class_id: Optional[str] = None
    parent_id: Optional[str] = None
    date_of_birth: Optional[dt.date] = None
    gender: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=500)
    blood_group: Optional[str] = Field(default=None, max_length=5)
    cnic_bform: Optional[str] = Field(default=None, max_length=20)
    father_name: Optional[str] = Field(default=None, max_length=200)
    fee_category: Optional[str] = Field(default=None, max_length=50)


class TeacherWrite(_Write):
    department: Optional[str] = Field(default=None, max_length=100)
    designation: Optional[str] = Field(default=None, max_length=100)
    joining_date: Optional[dt.date] = None
    qualification: Optional[str] = Field(default=None, max_length=200)
    salary: Optional[float] = Field(default=None, ge=0)


# --- Classes & timetable ----------------------------------------------------------------


class ClassWrite(_Write):
    name: str = Field(..., min_length=1, max_length=100)
    section: Optional[str] = Field(default=None, max_length=20)
    grade_level: Optional[int] = Field(default=None, ge=0, le=20)
    academic_year: Optional[str] = Field(default=None, max_length=20)
    teacher_id: Optional[str] = None


class ClassUpdate(ClassWrite):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)


class TimetableWrite(_Write):
    class_id: str = Field(..., min_length=1)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    period_number: Optional[int] = Field(default=None, ge=1, le=20)
    start_time: Optional[str] = Field(default=None, max_length=8)
    end_time: Optional[str] = Field(default=None, max_length=8)
    subject: str = Field(..., min_length=1, max_length=100)
    teacher_id: Optional[str] = None


class TimetableUpdate(TimetableWrite):
    class_id: Optional[str] = Field(default=None, min_length=1)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=100)


# --- Attendance ---------------------------------------------------------------------------


class AttendanceWrite(_Write):
    student_id: str = Field(..., min_length=1)
    class_id: Optional[str] = None
    date: dt.date
    status: AttendanceStatus
    remarks: Optional[str] = Field(default=None, max_length=500)
    marked_by: Optional[str] = None


class AttendanceUpdate(AttendanceWrite):
    student_id: Optional[str] = Field(default=None, min_length=1)
    date: Optional[dt.date] = None
    status: Optional[AttendanceStatus] = None


class AttendanceEntry(_Write):
    """One student's mark inside a bulk attendance payload."""

    student_id: str = Field(..., min_length=1)
    status: AttendanceStatus
    remarks: Optional[str] = Field(default=None, max_length=500)


class AttendanceMarkPayload(_Write):
    """A register for one day: shared date/class and one entry per student."""

    date: dt.date
    class_id: Optional[str] = None
    entries: List[AttendanceEntry] = Field(..., min_length=1, max_length=200)


# --- Money --------------------------------------------------------------------------------


class FeeWrite(_Write):
    student_id: str = Field(..., min_length=1)
    fee_structure_id: Optional[str] = None
    amount_due: float = Field(..., ge=0)
    amount_paid: Optional[float] = Field(default=None, ge=0)
    due_date: dt.date
    paid_date: Optional[dt.date] = None
    payment_method: Optional[str] = Field(default=None, max_length=50)
    receipt_url: Optional[str] = Field(default=None, max_length=500)
    status: Optional[str] = Field(default=None, max_length=20)


class FeeUpdate(FeeWrite):
    student_id: Optional[str] = Field(default=None, min_length=1)
    amount_due: Optional[float] = Field(default=None, ge=0)
    due_date: Optional[dt.date] = None


class SalaryWrite(_Write):
    teacher_id: str = Field(..., min_length=1)
    month: str = Field(..., min_length=1, max_length=20)
    base_salary: float = Field(..., ge=0)
    bonuses: Optional[float] = Field(default=None, ge=0)
    deductions: Optional[float] = Field(default=None, ge=0)
    net_salary: Optional[float] = None
    paid_date: Optional[dt.date] = None
    slip_url: Optional[str] = Field(default=None, max_length=500)
    status: Optional[str] = Field(default=None, max_length=20)

    @model_validator(mode="after")
    def _default_net_salary(self):
        # The column is NOT NULL; derive it when the form leaves it out.
        if self.net_salary is None:
            self.net_salary = self.base_salary + (self.bonuses or 0) - (self.deductions or 0)
        return self


class SalaryUpdate(_Write):
    teacher_id: Optional[str] = Field(default=None, min_length=1)
    month: Optional[str] = Field(default=None, min_length=1, max_length=20)
    base_salary: Optional[float] = Field(default=None, ge=0)
    bonuses: Optional[float] = Field(default=None, ge=0)
    deductions: Optional[float] = Field(default=None, ge=0)
    net_salary: Optional[float] = None
    paid_date: Optional[dt.date] = None
    slip_url: Optional[str] = Field(default=None, max_length=500)
    status: Optional[str] = Field(default=None, max_length=20)


# --- Communication & front office ---------------------------------------------------------


class NoticeWrite(_Write):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=5000)
    priority: Optional[str] = Field(default=None, max_length=20)
    target_role: Optional[RoleValue] = None
    target_class_id: Optional[str] = None
    is_active: Optional[bool] = None
    expires_at: Optional[str] = Field(default=None, max_length=40)
    created_by: Optional[str] = None


class NoticeUpdate(NoticeWrite):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=5000)


class EnquiryWrite(_Write):
    enquiry_date: Optional[dt.date] = None
    student_name: str = Field(..., min_length=1, max_length=200)
    father_name: Optional[str] = Field(default=None, max_length=200)
    contact_number: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=200)
    class_applied: Optional[str] = Field(default=None, max_length=50)
    previous_school: Optional[str] = Field(default=None, max_length=200)
    address: Optional[str] = Field(default=None, max_length=500)
    source: Optional[str] = Field(default=None, max_length=50)
    status: Optional[str] = Field(default=None, max_length=20)
    follow_up_date: Optional[dt.date] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    assigned_to: Optional[str] = None


class EnquiryUpdate(EnquiryWrite):
    student_name: Optional[str] = Field(default=None, min_length=1, max_length=200)


class VisitorWrite(_Write):
    visitor_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=32)
    purpose: str = Field(..., min_length=1, max_length=500)
    whom_to_meet: Optional[str] = Field(default=None, max_length=200)
    check_in: Optional[str] = Field(default=None, max_length=40)
    check_out: Optional[str] = Field(default=None, max_length=40)
    id_type: Optional[str] = Field(default=None, max_length=30)
    id_number: Optional[str] = Field(default=None, max_length=30)
    notes: Optional[str] = Field(default=None, max_length=2000)


class VisitorUpdate(VisitorWrite):
    visitor_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    purpose: Optional[str] = Field(default=None, min_length=1, max_length=500)


# --- Schools (super admin) ----------------------------------------------------------------

SubscriptionPlan = Literal["trial", "basic", "standard", "premium"]


class SchoolWrite(_Write):
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=20)
    domain: Optional[str] = Field(default=None, max_length=200)
    address: Optional[str] = Field(default=None, max_length=500)
    city: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=200)
    website: Optional[str] = Field(default=None, max_length=200)
    principal_name: Optional[str] = Field(default=None, max_length=200)
    subscription_plan: SubscriptionPlan = "trial"
    subscription_status: Optional[str] = Field(default=None, max_length=20)
    max_students: int = Field(default=50, ge=1)
    max_staff: int = Field(default=10, ge=1)
    is_active: Optional[bool] = None
    primary_color: Optional[str] = Field(default=None, max_length=20)
    secondary_color: Optional[str] = Field(default=None, max_length=20)
    logo_url: Optional[str] = Field(default=None, max_length=500)

    @field_validator("code")
    @classmethod
    def _upper_code(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


class SchoolUpdate(SchoolWrite):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    code: Optional[str] = Field(default=None, min_length=1, max_length=20)
    subscription_plan: Optional[SubscriptionPlan] = None
    max_students: Optional[int] = Field(default=None, ge=1)
    max_staff: Optional[int] = Field(default=None, ge=1)


# --- Accounts -----------------------------------------------------------------------------


class ApprovalUpdate(_Write):
    is_approved: bool


# Table name -> (create model, update model).
WRITE_MODELS: Dict[str, tuple[Type[_Write], Type[_Write]]] = {
    "students": (StudentWrite, StudentWrite),
    "teachers": (TeacherWrite, TeacherWrite),
    "classes": (ClassWrite, ClassUpdate),
    "attendance": (AttendanceWrite, AttendanceUpdate),
    "fees": (FeeWrite, FeeUpdate),
    "notices": (NoticeWrite, NoticeUpdate),
    "timetable": (TimetableWrite, TimetableUpdate),
    "enquiries": (EnquiryWrite, EnquiryUpdate),
    "visitors": (VisitorWrite, VisitorUpdate),
    "salaries": (SalaryWrite, SalaryUpdate),
    "schools": (SchoolWrite, SchoolUpdate),
}


def model_columns(model: Type[BaseModel]) -> frozenset[str]:
    return frozenset(model.model_fields)


def required_columns(model: Type[BaseModel]) -> frozenset[str]:
    return frozenset(name for name, f in model.model_fields.items() if f.is_required())


def error_code_and_detail(errors: List[Mapping[str, Any]]) -> tuple[str, str]:
    """Condense pydantic errors into the portal's `(code, detail)` pair.

    Unknown keys win over missing ones, which win over invalid values, so a
    caller fixes the shape of a payload before its contents.
    """

    def _field(err: Mapping[str, Any]) -> str:
        return ".".join(str(p) for p in err.get("loc", ()) if p != "body")

    unknown = sorted(_field(e) for e in errors if e.get("type") == "extra_forbidden")
    if unknown:
        return "unknown_columns", ", ".join(unknown)
    missing = sorted(
        _field(e) for e in errors
        if e.get("type") == "missing" or (e.get("input") in (None, "") and _field(e))
    )
    if missing:
        return "missing_columns", ", ".join(missing)
    first = errors[0] if errors else {}
    field = _field(first)
    if field.split(".")[-1] == "status" and first.get("type") == "literal_error":
        return "invalid_status", field
    msg = str(first.get("msg") or "invalid value")
    return "invalid_value", f"{field}: {msg}" if field else msg


def validate_write(model: Type[_Write], values: Any) -> _Write:
    """Validate raw values (form fields, dicts) against `model`.

    Raises `PydanticValidationError`; callers translate it.
    """
    if isinstance(values, model):
        return values
    if isinstance(values, BaseModel):
        values = values.model_dump(exclude_unset=True)
    return model.model_validate(dict(values))


__all__ = [
    "AttendanceEntry",
    "AttendanceMarkPayload",
    "AttendanceStatus",
    "ApprovalUpdate",
    "PydanticValidationError",
    "WRITE_MODELS",
    "error_code_and_detail",
    "model_columns",
    "required_columns",
    "validate_write",
]
