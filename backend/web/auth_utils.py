"""
Shared authentication utilities.

Why:
    The session cookie policy and the in-app redirect validation are needed by
    the gates, the auth routes and the preference toggles. Keeping them pure
    and in one place avoids drift.
"""

from __future__ import annotations

from typing import Optional
import re


SESSION_COOKIE_NAME = "pakschool_session"

# Absolute in-app paths with an optional query: no scheme/host, no double slashes, no traversal.
INAPP_PATH_PATTERN = re.compile(r"^(?!.*//)(?!.*\.\.)/[A-Za-z0-9._\-/]*(\?[A-Za-z0-9._\-~%=&+]*)?$")
MAX_INAPP_REDIRECT_LEN = 256


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    SameSite=Lax keeps the cookie on top-level navigations (the login POST
    redirect) while blocking cross-site subrequests.
    """
    return {"secure": True, "samesite": "lax"}


def is_inapp_path(value: object) -> bool:
    return (
        isinstance(value, str)
        and 0 < len(value) <= MAX_INAPP_REDIRECT_LEN
        and bool(INAPP_PATH_PATTERN.fullmatch(value))
    )


def safe_redirect(value: object, default: Optional[str] = None) -> Optional[str]:
    """Return `value` when it is an in-app path, else `default`."""
    return value if is_inapp_path(value) else default  # type: ignore[return-value]
