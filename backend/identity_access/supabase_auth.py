"""
Supabase Auth adapter: sign-in, sign-up, sign-out and profile access.

This module is a thin, framework-agnostic adapter used by the web layer. It is
duck-typed against the supabase-py client (`supabase.create_client(...)`) so
tests can inject a fake exposing the same small surface:

- `.auth.sign_in_with_password({...})` -> response with `.user` and `.session`
- `.auth.sign_up({...})` -> response with `.user`
- `.auth.set_session(access, refresh)` / `.auth.sign_out()`
- `.postgrest.auth(token)` and `.table(name).select/insert/update/eq/limit/execute`

Security:
- A fresh client is created per call so one user's tokens never leak into
  another user's requests. Table calls run with the user's access token, so
  row-level security applies to every read and write.
- Credentials and tokens are never logged.
"""
from __future__ import annotations

from typing import Any, Callable, Literal, Optional, Protocol
import logging
import os

from pydantic import BaseModel, ConfigDict, Field

from .domain import Role
from .session_state import AuthSession, Profile


logger = logging.getLogger("pakschool.identity_access")


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile; anything else is rejected."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=32)
    avatar_url: Optional[str] = Field(default=None, max_length=500)
    language_pref: Optional[Literal["en", "ur"]] = None


# Role-specific extension tables created on sign-up.
ROLE_EXTENSION_TABLES = {
    Role.TEACHER: "teachers",
    Role.STUDENT: "students",
    Role.PARENT: "parents",
}


class AuthError(Exception):
    """Raised when Supabase rejects an auth operation."""

    def __init__(self, code: str, detail: str | None = None):
        super().__init__(code)
        self.code = code
        self.detail = detail


class AuthClientProtocol(Protocol):
    def sign_in(self, *, email: str, password: str) -> AuthSession: ...

    def sign_up(self, *, email: str, password: str, full_name: str, role: Role, redirect_to: str | None = None) -> Optional[str]: ...

    def sign_out(self, session: AuthSession) -> None: ...

    def fetch_profile(self, session: AuthSession) -> Optional[Profile]: ...

    def update_profile(self, session: AuthSession, updates: ProfileUpdate) -> None: ...


def default_client_factory() -> Any:
    """Create a supabase-py client from SUPABASE_URL / SUPABASE_ANON_KEY."""
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_ANON_KEY") or "").strip()
    if not url or not key:
        raise AuthError("not_configured")
    from supabase import create_client

    return create_client(url, key)


def _first_row(response: Any) -> Optional[dict]:
    data = getattr(response, "data", None)
    if isinstance(data, list):
        return data[0] if data and isinstance(data[0], dict) else None
    if isinstance(data, dict):
        return data
    return None


class SupabaseAuthClient:
    """Auth operations against Supabase (GoTrue + PostgREST)."""

    def __init__(self, client_factory: Callable[[], Any] | None = None) -> None:
        self._factory = client_factory or default_client_factory

    def _user_client(self, session: AuthSession) -> Any:
        client = self._factory()
        client.postgrest.auth(session.access_token)
        return client

    # --- Auth ---------------------------------------------------------------------

    def sign_in(self, *, email: str, password: str) -> AuthSession:
        client = self._factory()
        try:
            res = client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            logger.info("Sign-in rejected: %s", exc.__class__.__name__)
            raise AuthError("invalid_credentials") from exc
        user = getattr(res, "user", None)
        sess = getattr(res, "session", None)
        if user is None or sess is None or not getattr(sess, "access_token", None):
            raise AuthError("invalid_credentials")
        return AuthSession(
            user_id=str(user.id),
            email=str(getattr(user, "email", "") or email),
            access_token=sess.access_token,
            refresh_token=getattr(sess, "refresh_token", None),
            expires_at=getattr(sess, "expires_at", None),
        )

    def sign_up(self, *, email: str, password: str, full_name: str, role: Role, redirect_to: str | None = None) -> Optional[str]:
        """Register a user and create profile, role and extension rows.

        Returns the new user id, or None when Supabase defers user creation
        (e.g. email confirmation pending). Only admins are auto-approved.
        """
        if role is Role.UNKNOWN:
            raise AuthError("invalid_role")
        client = self._factory()
        options: dict[str, Any] = {"data": {"full_name": full_name, "role": role.value}}
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        try:
            res = client.auth.sign_up({"email": email, "password": password, "options": options})
        except Exception as exc:
            logger.info("Sign-up rejected: %s", exc.__class__.__name__)
            raise AuthError("signup_failed", str(exc)) from exc
        user = getattr(res, "user", None)
        if user is None:
            return None
        user_id = str(user.id)
        sess = getattr(res, "session", None)
        if sess is not None and getattr(sess, "access_token", None):
            client.postgrest.auth(sess.access_token)

        try:
            client.table("profiles").insert({
                "id": user_id,
                "email": email,
                "full_name": full_name,
                "is_approved": role is Role.ADMIN,
                "language_pref": "en",
            }).execute()
        except Exception as exc:
            logger.warning("Profile creation failed: %s", exc.__class__.__name__)
            raise AuthError("profile_create_failed", str(exc)) from exc

        try:
            client.table("user_roles").insert({"user_id": user_id, "role": role.value}).execute()
        except Exception as exc:
            logger.warning("Role assignment failed: %s", exc.__class__.__name__)
            raise AuthError("role_assign_failed", str(exc)) from exc

        ext = ROLE_EXTENSION_TABLES.get(role)
        if ext:
            try:
                client.table(ext).insert({"id": user_id}).execute()
            except Exception as exc:
                # The profile exists; the extension row can be added by an admin.
                logger.warning("Extension row for %s failed: %s", ext, exc.__class__.__name__)
        return user_id

    def sign_out(self, session: AuthSession) -> None:
        client = self._factory()
        try:
            client.auth.set_session(session.access_token, session.refresh_token or "")
            client.auth.sign_out()
        except Exception as exc:
            # Local session is dropped regardless; the token expires on its own.
            logger.warning("Remote sign-out failed: %s", exc.__class__.__name__)

    # --- Profile ------------------------------------------------------------------

    def fetch_profile(self, session: AuthSession) -> Optional[Profile]:
        """Return the profile with its role, or None when either row is missing."""
        try:
            client = self._user_client(session)
            prof = client.table("profiles").select("*").eq("id", session.user_id).limit(1).execute()
            role = client.table("user_roles").select("role").eq("user_id", session.user_id).limit(1).execute()
        except Exception as exc:
            logger.warning("Profile fetch failed: %s", exc.__class__.__name__)
            return None
        prof_row = _first_row(prof)
        role_row = _first_row(role)
        if not prof_row or not role_row:
            return None
        return Profile.from_rows(prof_row, role_row.get("role"))

    def update_profile(self, session: AuthSession, updates: ProfileUpdate) -> None:
        values = updates.model_dump(exclude_unset=True)
        if not values:
            return
        client = self._user_client(session)
        try:
            client.table("profiles").update(values).eq("id", session.user_id).execute()
        except Exception as exc:
            raise AuthError("profile_update_failed", str(exc)) from exc


__all__ = [
    "AuthError",
    "AuthClientProtocol",
    "SupabaseAuthClient",
    "ProfileUpdate",
    "default_client_factory",
]
