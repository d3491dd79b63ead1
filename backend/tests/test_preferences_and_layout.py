"""
Theme/language preferences and how the layout reflects them.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

import main  # type: ignore
from preferences import Preferences  # type: ignore
from components import Layout, Navigation  # type: ignore

from identity_access.domain import Role


pytestmark = pytest.mark.anyio("asyncio")


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="https://test")


@pytest.mark.anyio
async def test_theme_toggle_sets_cookie_and_returns_to_page():
    async with _client() as client:
        r = await client.post("/preferences/theme", data={"next": "/auth"}, follow_redirects=False)
        assert r.status_code == 303
        assert r.headers["location"] == "/auth"
        assert "pakschool_theme=dark" in r.headers.get("set-cookie", "")
        page = await client.get("/auth")
    assert 'data-theme="dark"' in page.text


@pytest.mark.anyio
async def test_theme_rejects_unknown_value():
    async with _client() as client:
        r = await client.post("/preferences/theme", data={"theme": "neon"}, follow_redirects=False)
    assert r.status_code == 400


@pytest.mark.anyio
async def test_language_switch_to_urdu_renders_rtl():
    async with _client() as client:
        r = await client.post("/preferences/language", data={"language": "ur", "next": "/auth"}, follow_redirects=False)
        assert r.status_code == 303
        page = await client.get("/auth")
    assert 'dir="rtl"' in page.text
    assert 'lang="ur"' in page.text


@pytest.mark.anyio
async def test_preference_redirect_is_limited_to_in_app_paths():
    async with _client() as client:
        r = await client.post("/preferences/language", data={"language": "en", "next": "https://evil.example"}, follow_redirects=False)
    assert r.headers["location"] == "/"


@pytest.mark.anyio
async def test_unsupported_language_is_rejected():
    async with _client() as client:
        r = await client.post("/preferences/language", data={"language": "fr"}, follow_redirects=False)
    assert r.status_code == 400


def test_translation_falls_back_to_english_then_key():
    prefs = Preferences(language="ur")
    assert prefs.t("auth.login") != "Login"
    assert prefs.t("does.not.exist") == "does.not.exist"


def test_layout_escapes_title_and_marks_theme():
    html = Layout("<b>x</b>", "<p>body</p>", Preferences(theme="dark")).render()
    assert "&lt;b&gt;x&lt;/b&gt;" in html
    assert 'data-theme="dark"' in html
    assert 'dir="ltr"' in html


def test_navigation_marks_longest_matching_link_active():
    nav = Navigation({"name": "Admin", "role": Role.ADMIN}, current_path="/admin/students/new")
    html = nav.render()
    assert 'href="/admin/students" class="sidebar-link active" aria-current="page"' in html
    assert html.count('aria-current="page"') == 1


def test_navigation_for_anonymous_user_offers_login_only():
    nav = Navigation(None)
    assert nav.items() == [("/auth", "Login")]
