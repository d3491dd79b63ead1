"""
Web security helpers: same-origin check, in-app redirect validation, security
headers and the health endpoint.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport
from starlette.requests import Request

import main  # type: ignore
from auth_utils import is_inapp_path, safe_redirect  # type: ignore
from routes.security import is_same_origin  # type: ignore


pytestmark = pytest.mark.anyio("asyncio")


def _request(headers: dict, *, scheme: str = "https", host: str = "app.school.pk", port: int = 443) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "scheme": scheme,
        "server": (host, port),
        "path": "/auth/login",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in {"host": host, **headers}.items()],
    }
    return Request(scope)


def test_same_origin_accepts_matching_origin():
    assert is_same_origin(_request({"origin": "https://app.school.pk"})) is True


def test_same_origin_rejects_foreign_origin_and_referer():
    assert is_same_origin(_request({"origin": "https://evil.example"})) is False
    assert is_same_origin(_request({"referer": "https://evil.example/page"})) is False


def test_same_origin_allows_requests_without_browser_headers():
    assert is_same_origin(_request({})) is True


def test_same_origin_rejects_malformed_origin():
    assert is_same_origin(_request({"origin": "null"})) is False


def test_forwarded_headers_are_ignored_unless_proxy_is_trusted(monkeypatch: pytest.MonkeyPatch):
    req = _request(
        {"origin": "https://public.school.pk", "x-forwarded-proto": "https", "x-forwarded-host": "public.school.pk"},
        scheme="http",
        host="internal",
        port=8000,
    )
    assert is_same_origin(req) is False
    monkeypatch.setenv("PAKSCHOOL_TRUST_PROXY", "true")
    assert is_same_origin(req) is True


@pytest.mark.parametrize(
    "value", ["/", "/admin/fees", "/teacher/attendance", "/a-b_c.d/e", "/admin/users?status=pending&q=ali%20k"],
)
def test_inapp_paths(value):
    assert is_inapp_path(value) is True
    assert safe_redirect(value) == value


@pytest.mark.parametrize(
    "value",
    [None, "", "admin", "//evil.example", "https://evil.example", "/a/../b", "/a?next=http://x",
     "/a?next=x#frag", "/a\n", "/" + "a" * 300, 42],
)
def test_non_inapp_paths(value):
    assert is_inapp_path(value) is False
    assert safe_redirect(value, "/fallback") == "/fallback"


@pytest.mark.anyio
async def test_security_headers_and_health():
    async with httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="https://test") as client:
        r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}
    assert r.headers.get("Cache-Control") == "private, no-store"
    assert r.headers.get("X-Frame-Options") == "SAMEORIGIN"
    assert r.headers.get("X-Content-Type-Options") == "nosniff"
    assert "default-src 'self'" in r.headers.get("Content-Security-Policy", "")
    assert r.headers.get("Strict-Transport-Security", "").startswith("max-age=")


@pytest.mark.anyio
async def test_static_stylesheet_is_served_without_session():
    async with httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="https://test") as client:
        r = await client.get("/static/css/pakschool.css")
    assert r.status_code == 200
    assert "data-theme" in r.text
