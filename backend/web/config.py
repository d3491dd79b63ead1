"""
Configuration and startup security checks for the PakSchool portal.

Why: A school portal holds personal data of minors. This module provides a
single guard that refuses obviously insecure production deployments without
burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


DUMMY_MARKERS = ("DUMMY", "CHANGE_ME", "YOUR-")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("PAKSCHOOL_ENV", "dev") or "dev").strip().lower()


def _is_placeholder(value: str) -> bool:
    upper = value.strip().upper()
    return not upper or any(upper.startswith(m) for m in DUMMY_MARKERS)


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/staging only):
    - SUPABASE_URL is set and uses https.
    - SUPABASE_ANON_KEY is set and not a placeholder.
    - SUPABASE_JWT_SECRET is set and not a placeholder (bearer API callers).
    - SUPABASE_SERVICE_ROLE_KEY must NOT be configured for the web process:
      every query has to run with the caller's token so RLS applies.
    - The in-memory data gateway must not be forced on.
    """
    if not _is_prod_like(current_environment()):
        return  # dev/test remain permissive

    url = (os.getenv("SUPABASE_URL") or "").strip()
    if not url:
        raise SystemExit("Refusing to start: SUPABASE_URL is unset in production.")
    if not url.lower().startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production.")

    if _is_placeholder(os.getenv("SUPABASE_ANON_KEY", "")):
        raise SystemExit("Refusing to start: SUPABASE_ANON_KEY is unset or a placeholder in production.")

    if _is_placeholder(os.getenv("SUPABASE_JWT_SECRET", "")):
        raise SystemExit("Refusing to start: SUPABASE_JWT_SECRET is unset or a placeholder in production.")

    if (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip():
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY must not be configured for the web process "
            "(queries must run under the signed-in user's token)."
        )

    if (os.getenv("DATA_BACKEND", "") or "").strip().lower() == "memory":
        raise SystemExit("Refusing to start: DATA_BACKEND=memory is not allowed in production/staging.")
