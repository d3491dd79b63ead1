"""
Form components for the portal.
"""

from .fields import FormField, TextAreaField, TextInputField, SelectField, SubmitButton
from .auth_forms import LoginForm, SignupForm, SIGNUP_ROLES
from .row_form import RowForm
from .register_form import AttendanceRegister

__all__ = [
    "FormField",
    "TextAreaField",
    "TextInputField",
    "SelectField",
    "SubmitButton",
    "LoginForm",
    "SignupForm",
    "SIGNUP_ROLES",
    "RowForm",
    "AttendanceRegister",
]
