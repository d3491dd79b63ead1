"""
Wiring of the external collaborators: session store, auth client, data gateway.

Why:
    Routes need the same singletons as the middleware, and tests need to swap
    them for fakes. Routes look them up here at call time (never bind them at
    import time) so `set_*` takes effect immediately.

Data backend selection (`DATA_BACKEND`):
    - `supabase` (default when SUPABASE_URL and SUPABASE_ANON_KEY are set): a
      fresh PostgREST client per request, authenticated with the caller's
      access token so row-level security applies.
    - `memory` (default otherwise): one shared in-process gateway, for local
      development and tests. Refused in production by `config`.
"""
from __future__ import annotations

from typing import Callable, Optional
import logging
import os

from identity_access.session_state import AuthSession
from identity_access.stores import SessionStore
from identity_access.supabase_auth import AuthClientProtocol, SupabaseAuthClient, default_client_factory
from school_data.services import SchoolData
from school_data.tables import InMemoryTableGateway, SupabaseTableGateway, TableGateway


logger = logging.getLogger("pakschool.web")

GatewayFactory = Callable[[Optional[AuthSession]], TableGateway]

SESSION_STORE = SessionStore(ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", "3600")))
_AUTH_CLIENT: AuthClientProtocol = SupabaseAuthClient()
_GATEWAY_FACTORY: Optional[GatewayFactory] = None


def _supabase_configured() -> bool:
    return bool((os.getenv("SUPABASE_URL") or "").strip() and (os.getenv("SUPABASE_ANON_KEY") or "").strip())


def _build_default_gateway_factory() -> GatewayFactory:
    backend = (os.getenv("DATA_BACKEND") or "").strip().lower()
    if backend != "memory" and (backend == "supabase" or _supabase_configured()):
        logger.info("Data gateway wired: Supabase")

        def _supabase(auth: Optional[AuthSession]) -> TableGateway:
            if auth is None:
                raise PermissionError("unauthenticated")
            return SupabaseTableGateway.for_access_token(default_client_factory, auth.access_token)

        return _supabase

    logger.warning("Data gateway wired: in-memory (development only)")
    shared = InMemoryTableGateway()
    return lambda _auth: shared


def get_auth_client() -> AuthClientProtocol:
    return _AUTH_CLIENT


def set_auth_client(client: AuthClientProtocol) -> None:
    global _AUTH_CLIENT
    _AUTH_CLIENT = client


def set_gateway_factory(factory: Optional[GatewayFactory]) -> None:
    """Install a gateway factory; None restores the environment default."""
    global _GATEWAY_FACTORY
    _GATEWAY_FACTORY = factory


def set_gateway(gateway: TableGateway) -> None:
    """Use one fixed gateway for every caller (tests, local demos)."""
    set_gateway_factory(lambda _auth: gateway)


def school_data_for(auth: Optional[AuthSession]) -> SchoolData:
    global _GATEWAY_FACTORY
    if _GATEWAY_FACTORY is None:
        _GATEWAY_FACTORY = _build_default_gateway_factory()
    return SchoolData(_GATEWAY_FACTORY(auth))


__all__ = [
    "SESSION_STORE",
    "get_auth_client",
    "set_auth_client",
    "set_gateway",
    "set_gateway_factory",
    "school_data_for",
]
