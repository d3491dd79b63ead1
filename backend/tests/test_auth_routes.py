"""
Login, sign-up, logout and session bootstrap over HTTP.

Requirements:
- Successful login: HttpOnly session cookie, 303 to the validated `redirect`
  (default /auth), profile resolved in the background
- Bad credentials: 400 with the form re-rendered, no cookie
- Cross-origin posts are rejected (CSRF)
- Sign-up validates fields, role and the registration domain allow-list
- Logout drops the server session and the cookie
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

import main  # type: ignore
import wiring  # type: ignore

from identity_access.domain import Role
from conftest import login_session, make_profile


pytestmark = pytest.mark.anyio("asyncio")


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="https://test")


@pytest.fixture
def teacher(auth_client):
    profile = make_profile(Role.TEACHER, user_id="t-1", email="teacher@school.edu.pk")
    auth_client.add_user("teacher@school.edu.pk", "secret1", profile)
    return profile


@pytest.mark.anyio
async def test_login_sets_session_cookie_and_redirects_to_login_page(teacher, gateway):
    async with _client() as client:
        r = await client.post("/auth/login", data={"email": "teacher@school.edu.pk", "password": "secret1"}, follow_redirects=False)
        assert r.status_code == 303
        assert r.headers["location"] == "/auth"
        set_cookie = r.headers.get("set-cookie", "")
        assert "pakschool_session=" in set_cookie
        assert "HttpOnly" in set_cookie
        assert "Secure" in set_cookie
        assert "samesite=lax" in set_cookie.lower()
        # Background profile fetch has completed: the public gate forwards.
        follow = await client.get("/auth", follow_redirects=False)
    assert follow.status_code == 303
    assert follow.headers["location"] == "/teacher/dashboard"
    assert len(wiring.SESSION_STORE) == 1


@pytest.mark.anyio
async def test_login_returns_to_requested_in_app_path(teacher, gateway):
    async with _client() as client:
        r = await client.post(
            "/auth/login",
            data={"email": "teacher@school.edu.pk", "password": "secret1", "redirect": "/teacher/attendance"},
            follow_redirects=False,
        )
        assert r.headers["location"] == "/teacher/attendance"
        page = await client.get("/teacher/attendance")
    assert page.status_code == 200
    assert "Mark attendance" in page.text


@pytest.mark.anyio
@pytest.mark.parametrize("target", ["https://evil.example/", "//evil.example", "/../etc/passwd", "javascript:alert(1)"])
async def test_login_ignores_offsite_redirects(teacher, target):
    async with _client() as client:
        r = await client.post(
            "/auth/login",
            data={"email": "teacher@school.edu.pk", "password": "secret1", "redirect": target},
            follow_redirects=False,
        )
    assert r.status_code == 303
    assert r.headers["location"] == "/auth"


@pytest.mark.anyio
async def test_login_with_bad_credentials_rerenders_form(teacher):
    async with _client() as client:
        r = await client.post("/auth/login", data={"email": "teacher@school.edu.pk", "password": "nope"}, follow_redirects=False)
    assert r.status_code == 400
    assert "Invalid email or password." in r.text
    assert "pakschool_session" not in r.headers.get("set-cookie", "")
    assert len(wiring.SESSION_STORE) == 0


@pytest.mark.anyio
async def test_login_rejects_cross_origin_post(teacher):
    async with _client() as client:
        r = await client.post(
            "/auth/login",
            data={"email": "teacher@school.edu.pk", "password": "secret1"},
            headers={"Origin": "https://evil.example"},
            follow_redirects=False,
        )
    assert r.status_code == 403
    assert r.json() == {"error": "csrf_violation"}


@pytest.mark.anyio
async def test_login_without_profile_holds_user_on_loading_page(auth_client, gateway):
    auth_client.add_user("ghost@school.edu.pk", "secret1", None)
    async with _client() as client:
        await client.post("/auth/login", data={"email": "ghost@school.edu.pk", "password": "secret1"}, follow_redirects=False)
        r = await client.get("/admin/dashboard", follow_redirects=False)
    assert r.status_code == 200
    assert 'http-equiv="refresh"' in r.text


@pytest.mark.anyio
async def test_signup_creates_account_and_returns_to_login(auth_client):
    async with _client() as client:
        r = await client.post(
            "/auth/signup",
            data={"full_name": "Zara Ali", "email": "zara@school.edu.pk", "password": "secret1", "role": "parent"},
            follow_redirects=False,
        )
        assert r.status_code == 303
        assert r.headers["location"] == "/auth?signup=ok"
        page = await client.get(r.headers["location"])
    assert "Account created" in page.text
    assert auth_client.signups == [{"email": "zara@school.edu.pk", "full_name": "Zara Ali", "role": Role.PARENT}]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "form",
    [
        {"full_name": "", "email": "a@school.edu.pk", "password": "secret1", "role": "student"},
        {"full_name": "A", "email": "a@school.edu.pk", "password": "123", "role": "student"},
        {"full_name": "A", "email": "a@school.edu.pk", "password": "secret1", "role": "super_admin"},
        {"full_name": "A", "email": "a@school.edu.pk", "password": "secret1", "role": "principal"},
    ],
)
async def test_signup_validation_errors(auth_client, form):
    async with _client() as client:
        r = await client.post("/auth/signup", data=form, follow_redirects=False)
    assert r.status_code == 400
    assert auth_client.signups == []


@pytest.mark.anyio
async def test_signup_enforces_registration_domains(auth_client, monkeypatch):
    monkeypatch.setenv("ALLOWED_REGISTRATION_DOMAINS", "@school.edu.pk, @City.edu.pk")
    async with _client() as client:
        bad = await client.post(
            "/auth/signup",
            data={"full_name": "A", "email": "a@gmail.com", "password": "secret1", "role": "student"},
            follow_redirects=False,
        )
        good = await client.post(
            "/auth/signup",
            data={"full_name": "B", "email": "b@city.edu.pk", "password": "secret1", "role": "student"},
            follow_redirects=False,
        )
    assert bad.status_code == 400
    assert "school email" in bad.text
    assert good.status_code == 303


@pytest.mark.anyio
async def test_signup_backend_failure_is_reported(auth_client):
    auth_client.add_user("taken@school.edu.pk", "x", None)
    async with _client() as client:
        r = await client.post(
            "/auth/signup",
            data={"full_name": "A", "email": "taken@school.edu.pk", "password": "secret1", "role": "student"},
            follow_redirects=False,
        )
    assert r.status_code == 400
    assert "Sign-up failed" in r.text


@pytest.mark.anyio
async def test_logout_drops_session_and_cookie(auth_client, gateway):
    sid = login_session(make_profile(Role.ADMIN))
    async with _client() as client:
        client.cookies.set("pakschool_session", sid)
        r = await client.post("/auth/logout", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/auth"
    assert 'pakschool_session=""' in r.headers.get("set-cookie", "") or "Max-Age=0" in r.headers.get("set-cookie", "")
    assert wiring.SESSION_STORE.get(sid) is None
    assert auth_client.signed_out == ["u-1"]


@pytest.mark.anyio
async def test_logout_without_session_still_redirects(auth_client):
    async with _client() as client:
        r = await client.post("/auth/logout", follow_redirects=False)
    assert r.status_code == 303
    assert auth_client.signed_out == []


@pytest.mark.anyio
async def test_relogin_replaces_previous_session(teacher, gateway):
    old_sid = login_session(make_profile(Role.TEACHER, user_id="t-1"))
    async with _client() as client:
        client.cookies.set("pakschool_session", old_sid)
        await client.post("/auth/login", data={"email": "teacher@school.edu.pk", "password": "secret1"}, follow_redirects=False)
    assert wiring.SESSION_STORE.get(old_sid) is None
    assert len(wiring.SESSION_STORE) == 1
