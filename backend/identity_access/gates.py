"""
Route authorization gates.

Why:
    Every page decides the same question before rendering: show it, show the
    loading placeholder, or send the user elsewhere. Keeping the decision pure
    (no I/O, no framework types) makes it trivially testable and lets the web
    layer translate decisions into HTTP responses in one place.

Decisions:
    - `Render`: show the wrapped content.
    - `Loading`: session state still resolving; show the placeholder.
    - `Redirect`: navigate away. `replace` is always True: a gate redirect must
      never leave the gated location in the history, otherwise "back" would
      land on a page that immediately redirects again.

Evaluation reads a provider snapshot only; there are no counters or timers,
so unchanged inputs always yield an equal decision.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from .domain import LOGIN_PATH, PENDING_APPROVAL_PATH, Role, role_dashboard
from .session_state import SessionProvider


@dataclass(frozen=True)
class Render:
    kind: str = "render"


@dataclass(frozen=True)
class Loading:
    kind: str = "loading"


@dataclass(frozen=True)
class Redirect:
    to: str
    state: Optional[Mapping[str, Any]] = None
    replace: bool = True
    kind: str = "redirect"

    @property
    def from_location(self) -> Optional[str]:
        if not self.state:
            return None
        value = self.state.get("from")
        return value if isinstance(value, str) else None


Decision = Union[Render, Loading, Redirect]

RENDER = Render()
LOADING = Loading()


def _role_set(allowed_roles: Optional[Iterable[Union[Role, str]]]) -> Optional[frozenset[Role]]:
    """Allow-list of roles; unrecognised strings are dropped, never widened to UNKNOWN.

    `Role.UNKNOWN` is only admitted when the caller passes the enum member itself.
    """
    if allowed_roles is None:
        return None
    roles = set()
    for r in allowed_roles:
        if isinstance(r, Role):
            roles.add(r)
            continue
        parsed = Role.parse(r)
        if parsed is not Role.UNKNOWN:
            roles.add(parsed)
    return frozenset(roles)


def evaluate_access(
    provider: SessionProvider,
    *,
    location: str,
    allowed_roles: Optional[Iterable[Union[Role, str]]] = None,
    require_approval: bool = False,
) -> Decision:
    """Decide whether protected content may render.

    Checks run in strict order, first match wins: loading, unauthenticated,
    role mismatch, pending approval, admitted.

    A session without a profile is fail-closed when the gate was asked to check
    role or approval: the result is `Loading` until the profile resolves.
    """
    if provider.is_loading():
        return LOADING

    if provider.get_session() is None:
        return Redirect(to=LOGIN_PATH, state={"from": location})

    roles = _role_set(allowed_roles)
    profile = provider.get_profile()

    if profile is None:
        if roles is not None or require_approval:
            return LOADING
        return RENDER

    if roles is not None and profile.role not in roles:
        return Redirect(to=role_dashboard(profile.role))

    # Admins bypass the approval requirement; super admins do not.
    if require_approval and not profile.is_approved and profile.role is not Role.ADMIN:
        return Redirect(to=PENDING_APPROVAL_PATH)

    return RENDER


def evaluate_public(provider: SessionProvider) -> Decision:
    """Keep signed-in users out of public-only pages (login, sign-up)."""
    if provider.is_loading():
        return LOADING
    profile = provider.get_profile()
    if provider.get_session() is not None and profile is not None:
        return Redirect(to=role_dashboard(profile.role))
    return RENDER


def watch(
    provider: SessionProvider,
    evaluate: Callable[[SessionProvider], Decision],
    on_decision: Callable[[Decision], None],
) -> Callable[[], None]:
    """Evaluate now and after every provider change; report changed decisions.

    Returns the unsubscribe callable of the underlying subscription.
    """
    last: list[Decision] = []

    def _run() -> None:
        decision = evaluate(provider)
        if last and last[0] == decision:
            return
        last[:] = [decision]
        on_decision(decision)

    unsubscribe = provider.subscribe(_run)
    _run()
    return unsubscribe


__all__ = [
    "Decision",
    "Render",
    "Loading",
    "Redirect",
    "RENDER",
    "LOADING",
    "evaluate_access",
    "evaluate_public",
    "watch",
]
