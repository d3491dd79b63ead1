"""
School data services over the in-memory gateway.

Covers the resource catalogue (policies, column allow-lists), validation
before any write reaches the gateway, and the dashboard aggregations.
"""
from __future__ import annotations

from datetime import date

import pytest

from identity_access.domain import Role
from school_data.services import RESOURCES, SchoolData, UnknownTableError, ValidationError, get_resource
from school_data.tables import Filter, InMemoryTableGateway, Order


class RecordingGateway(InMemoryTableGateway):
    def __init__(self, *args, **kwargs):
        self.writes = []
        super().__init__(*args, **kwargs)

    def insert(self, table, values):
        self.writes.append(("insert", table))
        return super().insert(table, values)

    def update(self, table, row_id, values):
        self.writes.append(("update", table))
        return super().update(table, row_id, values)

    def upsert(self, table, rows, *, on_conflict):
        self.writes.append(("upsert", table))
        return super().upsert(table, rows, on_conflict=on_conflict)


@pytest.fixture
def gw():
    return RecordingGateway()


@pytest.fixture
def data(gw):
    return SchoolData(gw)


def test_catalogue_covers_the_school_tables():
    assert set(RESOURCES) == {
        "students", "teachers", "classes", "attendance", "fees",
        "notices", "timetable", "enquiries", "visitors", "salaries", "schools",
    }


@pytest.mark.parametrize(
    "table,role,read,write",
    [
        ("students", Role.TEACHER, True, False),
        ("teachers", Role.TEACHER, False, False),
        ("attendance", Role.TEACHER, True, True),
        ("attendance", Role.PARENT, True, False),
        ("fees", Role.STUDENT, True, False),
        ("fees", Role.TEACHER, False, False),
        ("notices", Role.PARENT, True, False),
        ("notices", Role.TEACHER, True, True),
        ("salaries", Role.SUPER_ADMIN, False, False),
        ("salaries", Role.ADMIN, True, True),
        ("schools", Role.SUPER_ADMIN, True, True),
        ("schools", Role.ADMIN, False, False),
    ],
)
def test_table_policies(table, role, read, write):
    res = get_resource(table)
    assert res.can_read(role) is read
    assert res.can_write(role) is write


def test_unknown_table_raises():
    with pytest.raises(UnknownTableError):
        get_resource("profiles")


def test_unknown_columns_are_rejected_before_reaching_gateway(data, gw):
    with pytest.raises(ValidationError) as exc:
        data.create_row("notices", {"title": "Eid", "content": "Holiday", "is_approved": True})
    assert exc.value.code == "unknown_columns"
    assert "is_approved" in exc.value.detail
    assert gw.writes == []


def test_update_with_unknown_columns_is_rejected(data, gw):
    row = gw.insert("classes", {"name": "Class 5"})
    with pytest.raises(ValidationError):
        data.update_row("classes", row["id"], {"id": "other"})
    assert ("update", "classes") not in gw.writes


def test_missing_required_columns_are_rejected(data):
    with pytest.raises(ValidationError) as exc:
        data.create_row("fees", {"student_id": "s-1"})
    assert exc.value.code == "missing_columns"
    assert exc.value.detail == "amount_due, due_date"


def test_attendance_status_must_be_known(data):
    with pytest.raises(ValidationError) as exc:
        data.create_row("attendance", {"student_id": "s-1", "date": "2026-10-12", "status": "sick"})
    assert exc.value.code == "invalid_status"


def test_empty_update_is_rejected(data):
    with pytest.raises(ValidationError) as exc:
        data.update_row("classes", "x", {})
    assert exc.value.code == "empty_update"


def test_list_rows_orders_by_table_policy(data, gw):
    for name in ("Class 7", "Class 1", "Class 4"):
        gw.insert("classes", {"name": name})
    assert [r["name"] for r in data.list_rows("classes")] == ["Class 1", "Class 4", "Class 7"]


def test_list_rows_attendance_is_newest_first_and_filterable(data, gw):
    gw.insert("attendance", {"student_id": "s-1", "date": "2026-10-10", "status": "present"})
    gw.insert("attendance", {"student_id": "s-2", "date": "2026-10-12", "status": "absent"})
    gw.insert("attendance", {"student_id": "s-1", "date": "2026-10-11", "status": "late"})
    rows = data.list_rows("attendance", {"student_id": "s-1"})
    assert [r["date"] for r in rows] == ["2026-10-11", "2026-10-10"]


def test_list_rows_rejects_unknown_filter_columns(data):
    with pytest.raises(ValidationError):
        data.list_rows("students", {"password": "x"})


def test_create_get_update_delete_cycle(data):
    row = data.create_row("enquiries", {"student_name": "Hamza", "class_applied": "Class 3"})
    assert data.get_row("enquiries", row["id"])["student_name"] == "Hamza"
    updated = data.update_row("enquiries", row["id"], {"status": "admitted"})
    assert updated["status"] == "admitted"
    assert data.delete_row("enquiries", row["id"]) is True
    assert data.get_row("enquiries", row["id"]) is None
    assert data.delete_row("enquiries", row["id"]) is False


def test_dashboard_stats():
    gw = InMemoryTableGateway({
        "students": [{"admission_no": "1"}, {"admission_no": "2"}, {"admission_no": "3"}],
        "teachers": [{"designation": "PST"}],
        "classes": [{"name": "Class 1"}, {"name": "Class 2"}],
        "fees": [
            {"amount_due": 5000, "amount_paid": 5000, "status": "paid"},
            {"amount_due": 5000, "amount_paid": 2000, "status": "pending"},
            {"amount_due": "3000", "amount_paid": None, "status": "pending"},
        ],
    })
    stats = SchoolData(gw).dashboard_stats()
    assert stats == {
        "totalStudents": 3,
        "totalTeachers": 1,
        "totalClasses": 2,
        "totalFeeCollected": 7000.0,
        "totalFeeDue": 13000.0,
        "pendingFees": 2,
    }


def test_weekly_attendance_counts_statuses_per_date():
    gw = InMemoryTableGateway({
        "attendance": [
            {"student_id": "a", "date": "2026-10-12", "status": "present"},
            {"student_id": "b", "date": "2026-10-12", "status": "present"},
            {"student_id": "c", "date": "2026-10-12", "status": "absent"},
            {"student_id": "a", "date": "2026-10-14", "status": "late"},
            {"student_id": "a", "date": "2026-09-01", "status": "present"},  # outside the window
        ]
    })
    week = SchoolData(gw).weekly_attendance(today=date(2026, 10, 16))
    assert week == [
        {"name": "Mon", "date": "2026-10-12", "present": 2, "absent": 1, "late": 0},
        {"name": "Wed", "date": "2026-10-14", "present": 0, "absent": 0, "late": 1},
    ]


def test_recent_activity_is_newest_first_and_limited():
    gw = InMemoryTableGateway({
        "activity_logs": [{"action": f"a{i}", "created_at": f"2026-10-1{i}T08:00:00+00:00"} for i in range(5)]
    })
    rows = SchoolData(gw).recent_activity(limit=2)
    assert [r["action"] for r in rows] == ["a4", "a3"]


def test_fee_summary_for_student(data, gw):
    gw.insert("fees", {"student_id": "s-1", "amount_due": 4000, "amount_paid": 1500})
    gw.insert("fees", {"student_id": "s-1", "amount_due": 4000, "amount_paid": 4000})
    gw.insert("fees", {"student_id": "s-2", "amount_due": 9999, "amount_paid": 0})
    assert data.fee_summary("s-1") == {"totalDue": 8000.0, "totalPaid": 5500.0, "balance": 2500.0, "count": 2}


def test_check_out_visitor_sets_timestamp(data, gw):
    visitor = gw.insert("visitors", {"visitor_name": "Mr. Raza", "purpose": "Admission"})
    row = data.check_out_visitor(visitor["id"])
    assert row["check_out"]


def test_in_memory_gateway_range_filters_and_projection():
    gw = InMemoryTableGateway({"fees": [{"due_date": "2026-10-01", "amount_due": 1}, {"due_date": "2026-11-01", "amount_due": 2}]})
    rows = gw.select("fees", columns="amount_due", filters=[Filter("due_date", "gte", "2026-10-15")], order=Order("due_date"))
    assert rows == [{"amount_due": 2}]


def test_filter_rejects_unsupported_operator():
    with pytest.raises(ValueError):
        Filter("name", "like", "x")


def test_values_of_the_wrong_type_are_rejected(data, gw):
    with pytest.raises(ValidationError) as exc:
        data.create_row("fees", {"student_id": "s-1", "amount_due": "lots", "due_date": "2026-11-01"})
    assert exc.value.code == "invalid_value"
    assert exc.value.detail.startswith("amount_due:")
    assert gw.writes == []


def test_notice_target_role_must_be_an_app_role(data):
    with pytest.raises(ValidationError) as exc:
        data.create_row("notices", {"title": "Eid", "content": "Holiday", "target_role": "principal"})
    assert exc.value.code == "invalid_value"
    assert "target_role" in exc.value.detail


def test_blank_required_column_on_update_is_rejected(data, gw):
    row = gw.insert("classes", {"name": "Class 5"})
    with pytest.raises(ValidationError) as exc:
        data.update_row("classes", row["id"], {"name": ""})
    assert exc.value.code == "missing_columns"
    assert exc.value.detail == "name"


def test_update_writes_only_the_columns_sent(data, gw):
    row = gw.insert("fees", {"student_id": "s-1", "amount_due": 4000, "due_date": "2026-11-01"})
    updated = data.update_row("fees", row["id"], {"amount_paid": "1500"})
    assert updated["amount_paid"] == 1500.0
    assert updated["amount_due"] == 4000


def test_salary_net_defaults_to_base_plus_bonuses_minus_deductions(data):
    row = data.create_row("salaries", {"teacher_id": "t-1", "month": "2026-10", "base_salary": "50000",
                                       "bonuses": "5000", "deductions": "2000"})
    assert row["net_salary"] == 53000.0


def test_creating_attendance_twice_for_a_student_and_date_keeps_one_row(data, gw):
    data.create_row("attendance", {"student_id": "s1", "date": "2026-10-19", "status": "absent"})
    data.create_row("attendance", {"student_id": "s1", "date": "2026-10-19", "status": "present"})
    rows = gw.select("attendance")
    assert len(rows) == 1
    assert rows[0]["status"] == "present"


def test_mark_attendance_upserts_a_register(data, gw):
    gw.insert("attendance", {"student_id": "s1", "date": "2026-10-19", "status": "absent"})
    original_id = gw.select("attendance")[0]["id"]
    data.mark_attendance(
        [{"student_id": "s1", "status": "present"}, {"student_id": "s2", "status": "late", "remarks": "bus"}],
        on=date(2026, 10, 19), class_id="c-1", marked_by="t-1",
    )
    rows = {r["student_id"]: r for r in gw.select("attendance")}
    assert set(rows) == {"s1", "s2"}
    assert rows["s1"]["status"] == "present"
    assert rows["s1"]["id"] == original_id
    assert rows["s2"] == {**rows["s2"], "class_id": "c-1", "marked_by": "t-1", "date": "2026-10-19", "remarks": "bus"}
    assert ("upsert", "attendance") in gw.writes


def test_mark_attendance_rejects_unknown_status_without_writing(data, gw):
    with pytest.raises(ValidationError) as exc:
        data.mark_attendance([{"student_id": "s1", "status": "sick"}], on=date(2026, 10, 19))
    assert exc.value.code == "invalid_status"
    assert gw.writes == []


def test_mark_attendance_requires_entries(data):
    with pytest.raises(ValidationError) as exc:
        data.mark_attendance([], on=date(2026, 10, 19))
    assert exc.value.code == "missing_columns"


def test_in_memory_upsert_matches_on_every_conflict_column():
    gw = InMemoryTableGateway({"attendance": [{"student_id": "s1", "date": "2026-10-18", "status": "present"}]})
    gw.upsert("attendance", [{"student_id": "s1", "date": "2026-10-19", "status": "absent"}],
              on_conflict=("student_id", "date"))
    assert len(gw.select("attendance")) == 2


def test_attendance_stats_filters_by_class_and_range():
    gw = InMemoryTableGateway({
        "attendance": [
            {"student_id": "a", "class_id": "c1", "date": "2026-10-12", "status": "present"},
            {"student_id": "b", "class_id": "c1", "date": "2026-10-12", "status": "present"},
            {"student_id": "c", "class_id": "c1", "date": "2026-10-13", "status": "absent"},
            {"student_id": "d", "class_id": "c1", "date": "2026-10-14", "status": "late"},
            {"student_id": "e", "class_id": "c2", "date": "2026-10-12", "status": "absent"},
            {"student_id": "a", "class_id": "c1", "date": "2026-09-01", "status": "absent"},
        ]
    })
    stats = SchoolData(gw).attendance_stats("c1", date(2026, 10, 1), date(2026, 10, 31))
    assert stats == {"total": 4, "present": 2, "absent": 1, "late": 1, "presentPercentage": 50.0}


def test_attendance_stats_without_rows_is_zero():
    assert SchoolData(InMemoryTableGateway()).attendance_stats()["presentPercentage"] == 0


def _users_gateway():
    return InMemoryTableGateway({
        "profiles": [
            {"id": "u-1", "full_name": "Ayesha Khan", "email": "ayesha@school.pk", "is_approved": True,
             "created_at": "2026-10-01T08:00:00+00:00"},
            {"id": "u-2", "full_name": "Bilal Ahmed", "email": "bilal@school.pk", "is_approved": False,
             "created_at": "2026-10-02T08:00:00+00:00"},
            {"id": "u-3", "full_name": "Sana Mir", "email": "sana@school.pk", "is_approved": False,
             "created_at": "2026-10-03T08:00:00+00:00"},
        ],
        "user_roles": [
            {"user_id": "u-1", "role": "admin"},
            {"user_id": "u-2", "role": "teacher"},
            {"user_id": "u-3", "role": "principal"},
        ],
    })


def test_list_users_joins_roles_newest_first():
    users = SchoolData(_users_gateway()).list_users()
    assert [(u["id"], u["role"]) for u in users] == [("u-3", "unknown"), ("u-2", "teacher"), ("u-1", "admin")]


@pytest.mark.parametrize("status,ids", [("pending", ["u-3", "u-2"]), ("approved", ["u-1"])])
def test_list_users_filters_on_approval(status, ids):
    assert [u["id"] for u in SchoolData(_users_gateway()).list_users(status)] == ids


def test_list_users_search_matches_name_or_email():
    data = SchoolData(_users_gateway())
    assert [u["id"] for u in data.list_users(search="BILAL")] == ["u-2"]
    assert [u["id"] for u in data.list_users(search="sana@")] == ["u-3"]


def test_list_users_rejects_unknown_filter():
    with pytest.raises(ValidationError) as exc:
        SchoolData(_users_gateway()).list_users("blocked")
    assert exc.value.code == "invalid_filter"


def test_set_approval_updates_the_profile():
    gw = _users_gateway()
    data = SchoolData(gw)
    assert data.set_approval("u-2", True)["is_approved"] is True
    assert data.set_approval("u-1", False)["is_approved"] is False
    assert data.set_approval("missing", True) is None


def test_school_create_uppercases_code_and_applies_plan_defaults(data):
    row = data.create_row("schools", {"name": "City Grammar", "code": "sch26001"})
    assert row["code"] == "SCH26001"
    assert (row["subscription_plan"], row["max_students"], row["max_staff"]) == ("trial", 50, 10)


def test_school_plan_must_be_known(data):
    with pytest.raises(ValidationError) as exc:
        data.create_row("schools", {"name": "City Grammar", "code": "X1", "subscription_plan": "gold"})
    assert exc.value.code == "invalid_value"


def test_school_overview_counts_active_trial_and_paid():
    gw = InMemoryTableGateway({"schools": [
        {"name": "A", "is_active": True, "subscription_plan": "trial"},
        {"name": "B", "is_active": True, "subscription_plan": "premium"},
        {"name": "C", "is_active": False, "subscription_plan": "basic"},
    ]})
    assert SchoolData(gw).school_overview() == {
        "totalSchools": 3, "activeSchools": 2, "trialSchools": 1, "paidSchools": 2,
    }


def test_next_school_code_continues_the_year_sequence():
    gw = InMemoryTableGateway({"schools": [{"code": "SCH26004"}, {"code": "SCH25009"}, {"code": "OTHER"}]})
    data = SchoolData(gw)
    assert data.next_school_code(today=date(2026, 10, 19)) == "SCH26005"
    assert data.next_school_code(today=date(2027, 1, 5)) == "SCH27001"
