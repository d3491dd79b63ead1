"""
Attendance register: one status select per student of a class.

Field names are `status:<student_id>` and `remarks:<student_id>`, so one POST
carries the whole register.
"""

from typing import Any, Dict, Mapping, Optional, Sequence

from ..base import Component
from .fields import SelectField, SubmitButton

STATUS_OPTIONS = (("present", "Present"), ("absent", "Absent"), ("late", "Late"))


class AttendanceRegister(Component):
    def __init__(self, students: Sequence[Dict[str, Any]], *, action: str, day: str,
                 class_id: Optional[str] = None, marked: Optional[Mapping[str, str]] = None,
                 submit_label: str = "Save"):
        self.students = students
        self.action = action
        self.day = day
        self.class_id = class_id
        # student_id -> status already recorded for `day`
        self.marked = marked or {}
        self.submit_label = submit_label

    def _row(self, student: Dict[str, Any]) -> str:
        sid = str(student.get("id") or "")
        label = student.get("father_name") or student.get("admission_no") or sid
        select = SelectField(f"status-{sid}", str(label), name=f"status:{sid}").render(
            STATUS_OPTIONS, selected=self.marked.get(sid, "present")
        )
        remarks = f'<input {self.attributes(name=f"remarks:{sid}", type="text", aria_label="Remarks")}>'
        return f"<tr><td>{self.escape(student.get('admission_no'))}</td><td>{select}</td><td>{remarks}</td></tr>"

    def render(self) -> str:
        if not self.students:
            return '<p class="empty-state">No students in this class.</p>'
        hidden = f'<input {self.attributes(type="hidden", name="class_id", value=self.class_id)}>' if self.class_id else ""
        date_input = f'<input {self.attributes(type="date", name="date", value=self.day, required=True, aria_label="Date")}>'
        rows = "".join(self._row(s) for s in self.students if s.get("id"))
        return (
            f'<form method="post" action="{self.escape(self.action)}" class="register-form">'
            f"{hidden}{date_input}"
            '<table class="data-table"><thead><tr><th scope="col">Admission No</th>'
            '<th scope="col">Status</th><th scope="col">Remarks</th></tr></thead>'
            f"<tbody>{rows}</tbody></table>"
            f"{SubmitButton(self.submit_label).render()}</form>"
        )
