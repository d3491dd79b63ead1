"""
Theme and language preferences.

Both preferences are cosmetic and client-owned: they live in plain cookies
(not HttpOnly, the page script reads the theme on first paint) and never affect
authorization. Urdu pages render right-to-left.
"""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request


THEME_COOKIE = "pakschool_theme"
LANGUAGE_COOKIE = "pakschool_lang"
THEMES = ("light", "dark")
LANGUAGES = ("en", "ur")
RTL_LANGUAGES = frozenset({"ur"})
MAX_AGE = 365 * 24 * 3600

LABELS: dict[str, dict[str, str]] = {
    "en": {
        "app.name": "PakSchool ERP",
        "app.tagline": "Empowering Pakistani Education",
        "common.loading": "Loading...",
        "common.dashboard": "Dashboard",
        "common.welcome": "Welcome",
        "common.logout": "Logout",
        "common.save": "Save",
        "common.delete": "Delete",
        "common.empty": "Nothing here yet.",
        "auth.login": "Login",
        "auth.signup": "Sign Up",
        "auth.email": "Email Address",
        "auth.password": "Password",
        "auth.fullName": "Full Name",
        "auth.role": "Role",
        "auth.pending": "Your account is awaiting approval by the school administration.",
        "auth.invalid": "Invalid email or password.",
        "auth.signupDone": "Account created. Please sign in.",
        "auth.pendingTitle": "Approval pending",
        "theme.toggle": "Toggle theme",
        "language.toggle": "اردو",
        "dashboard.totalStudents": "Total Students",
        "dashboard.totalTeachers": "Total Teachers",
        "dashboard.totalClasses": "Total Classes",
        "dashboard.feeCollection": "Fee Collection",
        "dashboard.pendingFees": "Pending Fees",
        "dashboard.attendance": "Weekly Attendance",
        "dashboard.notices": "Notices",
    },
    "ur": {
        "app.name": "پاک اسکول ای آر پی",
        "app.tagline": "پاکستانی تعلیم کو بااختیار بنانا",
        "common.loading": "لوڈ ہو رہا ہے...",
        "common.dashboard": "ڈیش بورڈ",
        "common.welcome": "خوش آمدید",
        "common.logout": "لاگ آؤٹ",
        "common.save": "محفوظ کریں",
        "common.delete": "حذف کریں",
        "common.empty": "ابھی کچھ نہیں ہے۔",
        "auth.login": "لاگ ان",
        "auth.signup": "سائن اپ",
        "auth.email": "ای میل ایڈریس",
        "auth.password": "پاس ورڈ",
        "auth.fullName": "پورا نام",
        "auth.role": "کردار",
        "auth.pending": "آپ کا اکاؤنٹ اسکول انتظامیہ کی منظوری کا منتظر ہے۔",
        "auth.invalid": "غلط ای میل یا پاس ورڈ۔",
        "auth.signupDone": "اکاؤنٹ بن گیا۔ براہ کرم لاگ ان کریں۔",
        "auth.pendingTitle": "منظوری زیر التوا",
        "theme.toggle": "تھیم تبدیل کریں",
        "language.toggle": "English",
        "dashboard.totalStudents": "کل طلباء",
        "dashboard.totalTeachers": "کل اساتذہ",
        "dashboard.totalClasses": "کل کلاسیں",
        "dashboard.feeCollection": "فیس وصولی",
        "dashboard.pendingFees": "زیر التوا فیس",
        "dashboard.attendance": "ہفتہ وار حاضری",
        "dashboard.notices": "نوٹس",
    },
}


@dataclass(frozen=True)
class Preferences:
    theme: str = "light"
    language: str = "en"

    @property
    def is_rtl(self) -> bool:
        return self.language in RTL_LANGUAGES

    def t(self, key: str) -> str:
        """Translate a label key; falls back to English, then to the key itself."""
        return LABELS.get(self.language, {}).get(key) or LABELS["en"].get(key, key)


def read_preferences(request: Request) -> Preferences:
    theme = request.cookies.get(THEME_COOKIE, "light")
    lang = request.cookies.get(LANGUAGE_COOKIE, "en")
    return Preferences(
        theme=theme if theme in THEMES else "light",
        language=lang if lang in LANGUAGES else "en",
    )


def toggled_theme(current: str) -> str:
    return "dark" if current == "light" else "light"


__all__ = [
    "Preferences",
    "read_preferences",
    "toggled_theme",
    "THEME_COOKIE",
    "LANGUAGE_COOKIE",
    "THEMES",
    "LANGUAGES",
    "MAX_AGE",
]
