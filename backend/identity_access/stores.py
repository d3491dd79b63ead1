"""
In-memory session store.

Why: Keep session data (Supabase tokens, profile) server-side and opaque to the
client. The cookie carries only a random session id. For multi-instance
deployments, replace with a Redis/DB-backed store exposing the same methods.

Lifecycle:
    - `create()` after a successful sign-in. The state starts in `loading`
      until the profile has been fetched (`resolve_profile`).
    - `get()` drops and returns None for expired sessions.
    - `delete()` on sign-out; subscribers observe the cleared state.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import logging
import secrets
import time

from .session_state import AuthSession, Profile, SessionState


logger = logging.getLogger("pakschool.identity_access")


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    state: SessionState
    expires_at: Optional[int] = None

    @property
    def auth(self) -> Optional[AuthSession]:
        return self.state.get_session()


class SessionStore:
    def __init__(self, ttl_seconds: int = 3600):
        self.ttl_seconds = ttl_seconds
        self._data: Dict[str, SessionRecord] = {}

    def create(self, auth: AuthSession, *, profile: Optional[Profile] = None, ttl_seconds: int | None = None) -> SessionRecord:
        """Create a session for `auth`.

        Without a profile the state is `loading` until `resolve_profile` runs.
        The expiry is the earlier of the store TTL and the token expiry.
        """
        sid = secrets.token_urlsafe(24)
        expires_at = _now() + (ttl_seconds if ttl_seconds is not None else self.ttl_seconds)
        if auth.expires_at:
            expires_at = min(expires_at, int(auth.expires_at))
        state = SessionState()
        if profile is None:
            state.begin_loading(auth)
        else:
            state.resolve(auth, profile)
        rec = SessionRecord(session_id=sid, state=state, expires_at=expires_at)
        self._data[sid] = rec
        logger.info("Session created (loading=%s)", state.is_loading())
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self.delete(session_id)
            logger.info("Session expired")
            return None
        return rec

    def resolve_profile(self, session_id: str, profile: Optional[Profile]) -> None:
        """Finish loading: attach the fetched profile (None = no profile)."""
        rec = self._data.get(session_id)
        if not rec:
            return
        rec.state.resolve(rec.state.get_session(), profile)

    def delete(self, session_id: str) -> None:
        rec = self._data.pop(session_id, None)
        if rec:
            rec.state.clear()

    def __len__(self) -> int:
        return len(self._data)


__all__ = ["SessionRecord", "SessionStore"]
