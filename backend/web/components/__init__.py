# PakSchool component system
# Pure Python components for server-rendered HTML

from .base import Component
from .layout import Layout
from .navigation import Navigation
from .widgets import DataTable, LoadingPage, StatCard, StatGrid
from .forms import AttendanceRegister, LoginForm, SignupForm, RowForm

__all__ = [
    "Component",
    "Layout",
    "Navigation",
    "DataTable",
    "LoadingPage",
    "StatCard",
    "StatGrid",
    "LoginForm",
    "SignupForm",
    "RowForm",
    "AttendanceRegister",
]
