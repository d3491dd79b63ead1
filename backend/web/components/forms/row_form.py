"""
Generic data-entry form for a school table.

Renders one input per writable column of a resource. Column types are not
known to the portal (the database owns them), so a few naming conventions
pick the input type.
"""

from typing import Any, Mapping, Optional

from ..base import Component
from .fields import TextAreaField, TextInputField, SubmitButton

LONG_TEXT_COLUMNS = frozenset({"content", "notes", "address", "remarks"})


def _input_type(column: str) -> str:
    if column.endswith("_date") or column == "date":
        return "date"
    if column.startswith(("amount_", "base_", "net_")) or column in ("salary", "bonuses", "deductions", "grade_level", "day_of_week", "period_number"):
        return "number"
    if column == "email":
        return "email"
    return "text"


class RowForm(Component):
    def __init__(self, resource: Any, *, action: str, submit_label: str = "Save",
                 values: Optional[Mapping[str, Any]] = None, error: Optional[str] = None):
        self.resource = resource
        self.action = action
        self.submit_label = submit_label
        self.values = values or {}
        self.error = error

    def render(self) -> str:
        fields = []
        for column in sorted(self.resource.writable):
            label = column.replace("_", " ").title()
            required = column in self.resource.required
            value = self.values.get(column)
            value = "" if value is None else str(value)
            if column in LONG_TEXT_COLUMNS:
                fields.append(TextAreaField(column, label, required=required).render(value=value))
            else:
                fields.append(TextInputField(column, label, required=required).render(value=value, input_type=_input_type(column)))
        error_html = f'<p class="form-error" role="alert">{self.escape(self.error)}</p>' if self.error else ""
        return (
            f'<form method="post" action="{self.escape(self.action)}" class="row-form">'
            f"{error_html}{''.join(fields)}{SubmitButton(self.submit_label).render()}"
            "</form>"
        )
