"""
Reactive session state: the read-only view the gates consult.

Why:
    The gates must not know where identity comes from (cookie session, bearer
    token, tests). They read a small provider interface and the web layer or a
    test supplies the concrete state.

Behavior:
    `SessionState` holds three facts: the auth session (or None), the profile
    (or None) and a loading flag. Every mutation notifies subscribers
    synchronously, in subscription order, so a watcher can re-evaluate a gate
    right after the state changed. Readers only ever see complete snapshots;
    `resolve()` replaces session, profile and flag in one step.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol
import logging

from .domain import Role


logger = logging.getLogger("pakschool.identity_access")


@dataclass(frozen=True)
class AuthSession:
    """Authenticated identity as issued by Supabase Auth (GoTrue)."""

    user_id: str
    email: str
    access_token: str = field(repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    expires_at: Optional[int] = None


@dataclass(frozen=True)
class Profile:
    id: str
    email: str
    full_name: str
    role: Role
    is_approved: bool = False
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    language_pref: str = "en"

    @classmethod
    def from_rows(cls, profile_row: dict, role_value: object) -> "Profile":
        """Build a profile from the `profiles` row and the `user_roles.role` value."""
        lang = profile_row.get("language_pref") or "en"
        return cls(
            id=str(profile_row.get("id", "")),
            email=str(profile_row.get("email") or ""),
            full_name=str(profile_row.get("full_name") or ""),
            role=Role.parse(role_value),
            is_approved=bool(profile_row.get("is_approved") or False),
            phone=profile_row.get("phone"),
            avatar_url=profile_row.get("avatar_url"),
            language_pref=lang if lang in ("en", "ur") else "en",
        )


Listener = Callable[[], None]


class SessionProvider(Protocol):
    """Read-only accessor the gates depend on."""

    def get_session(self) -> Optional[AuthSession]: ...

    def get_profile(self) -> Optional[Profile]: ...

    def is_loading(self) -> bool: ...

    def subscribe(self, listener: Listener) -> Callable[[], None]: ...


class SessionState:
    """Mutable, observable implementation of `SessionProvider`."""

    def __init__(self, session: Optional[AuthSession] = None, profile: Optional[Profile] = None, loading: bool = False):
        self._session = session
        self._profile = profile
        self._loading = loading
        self._listeners: list[Listener] = []

    # --- SessionProvider ---------------------------------------------------------

    def get_session(self) -> Optional[AuthSession]:
        return self._session

    def get_profile(self) -> Optional[Profile]:
        return self._profile

    def is_loading(self) -> bool:
        return self._loading

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    # --- Mutations (owned by the session store / auth flow) ---------------------

    def begin_loading(self, session: Optional[AuthSession] = None) -> None:
        if session is not None:
            self._session = session
        self._loading = True
        self._notify()

    def resolve(self, session: Optional[AuthSession], profile: Optional[Profile]) -> None:
        self._session = session
        self._profile = profile if session is not None else None
        self._loading = False
        self._notify()

    def set_profile(self, profile: Optional[Profile]) -> None:
        self._profile = profile
        self._notify()

    def clear(self) -> None:
        self.resolve(None, None)

    def _notify(self) -> None:
        # Copy: listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as exc:
                logger.warning("Session listener failed: %s", exc.__class__.__name__)


__all__ = ["AuthSession", "Profile", "SessionProvider", "SessionState"]
