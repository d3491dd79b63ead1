"""
Form field components.

Small building blocks that keep label, input, help and error markup consistent
across the auth forms and the data-entry forms.
"""

from typing import Optional, Sequence, Tuple

from ..base import Component


class FormField(Component):
    """Wrapper that renders label, input slot, help, and error text."""

    def __init__(
        self,
        field_id: str,
        label: str,
        *,
        required: bool = False,
        help_text: Optional[str] = None,
        error_text: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        self.field_id = field_id
        self.name = name or field_id
        self.label = label
        self.required = required
        self.help_text = help_text
        self.error_text = error_text

    def _input_aria(self) -> dict:
        return {
            "aria_describedby": f"{self.field_id}-help" if self.help_text else None,
            "aria_invalid": "true" if self.error_text else "false",
        }

    def render(self, input_html: str) -> str:
        marker = '<span class="form-required" aria-hidden="true">*</span>' if self.required else ""
        help_html = (
            f'<p class="form-help" id="{self.field_id}-help">{self.escape(self.help_text)}</p>'
            if self.help_text
            else ""
        )
        error_html = (
            f'<p class="form-error" role="alert">{self.escape(self.error_text)}</p>'
            if self.error_text
            else ""
        )
        return (
            f'<div class="{self.classes("form-field", form_field_error=bool(self.error_text))}">'
            f'<label {self.attributes(for_=self.field_id, class_="form-label")}>{self.escape(self.label)}{marker}</label>'
            f"{input_html}{help_html}{error_html}"
            "</div>"
        )


class TextInputField(FormField):
    """Single-line input; `input_type` is text, email, password, date or number."""

    def render(
        self,
        *,
        value: str = "",
        input_type: str = "text",
        autocomplete: Optional[str] = None,
        **attrs: str,
    ) -> str:
        input_attrs = self.attributes(
            id=self.field_id,
            name=self.name,
            type=input_type,
            value=value,
            required=self.required,
            autocomplete=autocomplete,
            **self._input_aria(),
            **attrs,
        )
        return super().render(f"<input {input_attrs}>")


class TextAreaField(FormField):
    def render(self, value: str = "", rows: int = 4, **attrs: str) -> str:
        textarea_attrs = self.attributes(
            id=self.field_id,
            name=self.name,
            rows=str(rows),
            required=self.required,
            **self._input_aria(),
            **attrs,
        )
        return super().render(f"<textarea {textarea_attrs}>{self.escape(value)}</textarea>")


class SelectField(FormField):
    """Select box over (value, label) options."""

    def render(self, options: Sequence[Tuple[str, str]], selected: str = "", **attrs: str) -> str:
        opts = "".join(
            f'<option {self.attributes(value=value, selected=(value == selected))}>{self.escape(label)}</option>'
            for value, label in options
        )
        select_attrs = self.attributes(id=self.field_id, name=self.name, required=self.required, **attrs)
        return super().render(f"<select {select_attrs}>{opts}</select>")


class SubmitButton(Component):
    def __init__(self, label: str, *, variant: str = "primary"):
        self.label = label
        self.variant = variant

    def render(self) -> str:
        return f'<button type="submit" class="btn btn-{self.escape(self.variant)}">{self.escape(self.label)}</button>'
