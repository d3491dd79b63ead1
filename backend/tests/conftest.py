"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, make the flat import roots
(backend/, backend/web/) importable, and reset the module-level collaborators
in `wiring` so tests never talk to a real Supabase project.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional
import sys

import pytest

# Ensure modules in backend/ and backend/web are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
WEB_DIR = BACKEND_DIR / "web"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(REPO_ROOT), str(BACKEND_DIR), str(WEB_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from identity_access.domain import Role  # noqa: E402
from identity_access.session_state import AuthSession, Profile  # noqa: E402
from identity_access.supabase_auth import AuthError, ProfileUpdate  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_profile(role: Role | str = Role.ADMIN, *, approved: bool = True, user_id: str = "u-1",
                 email: str = "user@school.edu.pk", full_name: str = "Ayesha Khan") -> Profile:
    return Profile(
        id=user_id,
        email=email,
        full_name=full_name,
        role=Role.parse(role),
        is_approved=approved,
    )


def make_auth(user_id: str = "u-1", email: str = "user@school.edu.pk", expires_at: Optional[int] = None) -> AuthSession:
    return AuthSession(user_id=user_id, email=email, access_token=f"token-{user_id}", expires_at=expires_at)


class FakeAuthClient:
    """In-memory stand-in for `SupabaseAuthClient`.

    `users` maps email -> (password, profile or None). Sign-ups are recorded.
    """

    def __init__(self) -> None:
        self.users: Dict[str, tuple] = {}
        self.signups: List[dict] = []
        self.signed_out: List[str] = []
        self.updates: List[dict] = []

    def add_user(self, email: str, password: str, profile: Optional[Profile]) -> None:
        self.users[email] = (password, profile)

    def _profile_for(self, user_id: str) -> Optional[Profile]:
        for _, profile in self.users.values():
            if profile is not None and profile.id == user_id:
                return profile
        return None

    def sign_in(self, *, email: str, password: str) -> AuthSession:
        entry = self.users.get(email)
        if entry is None or entry[0] != password:
            raise AuthError("invalid_credentials")
        profile = entry[1]
        return make_auth(user_id=profile.id if profile else f"id-{email}", email=email)

    def sign_up(self, *, email: str, password: str, full_name: str, role: Role, redirect_to: Optional[str] = None) -> Optional[str]:
        if email in self.users:
            raise AuthError("signup_failed", "already registered")
        self.signups.append({"email": email, "full_name": full_name, "role": role})
        return f"id-{email}"

    def sign_out(self, session: AuthSession) -> None:
        self.signed_out.append(session.user_id)

    def fetch_profile(self, session: AuthSession) -> Optional[Profile]:
        return self._profile_for(session.user_id)

    def update_profile(self, session: AuthSession, updates: ProfileUpdate) -> None:
        self.updates.append(updates.model_dump(exclude_unset=True))


@pytest.fixture
def auth_client():
    import wiring  # type: ignore

    fake = FakeAuthClient()
    previous = wiring.get_auth_client()
    wiring.set_auth_client(fake)
    yield fake
    wiring.set_auth_client(previous)


@pytest.fixture
def gateway():
    import wiring  # type: ignore
    from school_data.tables import InMemoryTableGateway

    gw = InMemoryTableGateway()
    wiring.set_gateway(gw)
    yield gw
    wiring.set_gateway_factory(None)


@pytest.fixture(autouse=True)
def _reset_session_store(monkeypatch: pytest.MonkeyPatch):
    """Fresh SESSION_STORE per test; sessions must not leak across cases."""
    import wiring  # type: ignore
    from identity_access.stores import SessionStore

    monkeypatch.setattr(wiring, "SESSION_STORE", SessionStore(), raising=True)
    yield


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Dev defaults and no Supabase project unless a test opts in."""
    for var in (
        "PAKSCHOOL_ENV",
        "PAKSCHOOL_TRUST_PROXY",
        "ALLOWED_REGISTRATION_DOMAINS",
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "SUPABASE_JWT_SECRET",
        "DATA_BACKEND",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


def login_session(profile: Optional[Profile], *, loading: bool = False) -> str:
    """Create a session directly in the store and return its id."""
    import wiring  # type: ignore

    auth = make_auth(user_id=profile.id if profile else "u-none")
    if loading:
        return wiring.SESSION_STORE.create(auth).session_id
    rec = wiring.SESSION_STORE.create(auth)
    wiring.SESSION_STORE.resolve_profile(rec.session_id, profile)
    return rec.session_id
