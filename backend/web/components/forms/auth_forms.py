"""
Login and sign-up forms for the `/auth` page.
"""

from typing import Optional

from identity_access.domain import Role

from ..base import Component
from .fields import SelectField, SubmitButton, TextInputField

# Roles a visitor may request on sign-up. Super admins are provisioned out of band.
SIGNUP_ROLES = (Role.STUDENT, Role.PARENT, Role.TEACHER, Role.ADMIN)


class LoginForm(Component):
    def __init__(self, prefs, *, redirect: Optional[str] = None, email: str = "", error: Optional[str] = None):
        self.prefs = prefs
        self.redirect = redirect
        self.email = email
        self.error = error

    def render(self) -> str:
        t = self.prefs.t
        redirect_html = (
            f'<input type="hidden" name="redirect" value="{self.escape(self.redirect)}">' if self.redirect else ""
        )
        error_html = f'<p class="form-error" role="alert">{self.escape(self.error)}</p>' if self.error else ""
        return (
            '<form method="post" action="/auth/login" class="auth-form" id="login-form">'
            f"<h2>{self.escape(t('auth.login'))}</h2>{error_html}"
            f"{TextInputField('email', t('auth.email'), required=True).render(value=self.email, input_type='email', autocomplete='username')}"
            f"{TextInputField('password', t('auth.password'), required=True).render(input_type='password', autocomplete='current-password')}"
            f"{redirect_html}{SubmitButton(t('auth.login')).render()}"
            "</form>"
        )


class SignupForm(Component):
    def __init__(self, prefs, *, error: Optional[str] = None):
        self.prefs = prefs
        self.error = error

    def render(self) -> str:
        t = self.prefs.t
        options = [(r.value, r.value.replace("_", " ").title()) for r in SIGNUP_ROLES]
        error_html = f'<p class="form-error" role="alert">{self.escape(self.error)}</p>' if self.error else ""
        return (
            '<form method="post" action="/auth/signup" class="auth-form" id="signup-form">'
            f"<h2>{self.escape(t('auth.signup'))}</h2>{error_html}"
            f"{TextInputField('signup-full-name', t('auth.fullName'), required=True, name='full_name').render(autocomplete='name')}"
            f"{TextInputField('signup-email', t('auth.email'), required=True, name='email').render(input_type='email', autocomplete='email')}"
            f"{TextInputField('signup-password', t('auth.password'), required=True, name='password').render(input_type='password', autocomplete='new-password', minlength='6')}"
            f"{SelectField('signup-role', t('auth.role'), required=True, name='role').render(options, selected=Role.STUDENT.value)}"
            f"{SubmitButton(t('auth.signup')).render()}"
            "</form>"
        )
