"""
Server-side session store: loading state, profile resolution and expiry.
"""
from __future__ import annotations

import time

from identity_access import stores
from identity_access.domain import Role
from identity_access.stores import SessionStore

from conftest import make_auth, make_profile


def test_new_session_starts_loading_until_profile_resolves():
    store = SessionStore()
    rec = store.create(make_auth())
    assert rec.state.is_loading() is True
    assert rec.auth is not None

    store.resolve_profile(rec.session_id, make_profile(Role.PARENT))
    assert rec.state.is_loading() is False
    assert rec.state.get_profile().role is Role.PARENT


def test_session_created_with_profile_is_not_loading():
    store = SessionStore()
    rec = store.create(make_auth(), profile=make_profile())
    assert rec.state.is_loading() is False


def test_resolve_with_missing_profile_leaves_session_without_profile():
    store = SessionStore()
    rec = store.create(make_auth())
    store.resolve_profile(rec.session_id, None)
    assert rec.state.is_loading() is False
    assert rec.state.get_session() is not None
    assert rec.state.get_profile() is None


def test_session_ids_are_unique_and_opaque():
    store = SessionStore()
    ids = {store.create(make_auth()).session_id for _ in range(20)}
    assert len(ids) == 20
    assert all(len(sid) >= 24 for sid in ids)


def test_expired_sessions_are_not_returned(monkeypatch):
    store = SessionStore(ttl_seconds=60)
    rec = store.create(make_auth())
    assert store.get(rec.session_id) is rec

    now = time.time()
    monkeypatch.setattr(stores, "_now", lambda: int(now) + 3600)
    assert store.get(rec.session_id) is None
    assert len(store) == 0


def test_expiry_never_outlives_the_access_token():
    store = SessionStore(ttl_seconds=3600)
    token_exp = int(time.time()) + 120
    rec = store.create(make_auth(expires_at=token_exp))
    assert rec.expires_at == token_exp


def test_delete_clears_state_for_subscribers():
    store = SessionStore()
    rec = store.create(make_auth(), profile=make_profile())
    seen = []
    rec.state.subscribe(lambda: seen.append(rec.state.get_session()))
    store.delete(rec.session_id)
    assert seen == [None]
    assert store.get(rec.session_id) is None
