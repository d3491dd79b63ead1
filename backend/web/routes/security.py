"""
Shared web security helpers for routes.

Contains the CSRF same-origin check used by every state-changing form and API
endpoint. Keeping a single implementation avoids security drift.
"""
from __future__ import annotations

from urllib.parse import urlparse
import os

from fastapi import Request


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    return scheme, p.hostname.lower(), int(p.port if p.port is not None else _default_port(scheme))


def _server_origin(request: Request) -> tuple[str, str, int]:
    """Origin of this server; X-Forwarded-* only when PAKSCHOOL_TRUST_PROXY=true."""
    trust_proxy = (os.getenv("PAKSCHOOL_TRUST_PROXY", "false") or "").lower() == "true"
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port) if request.url.port else _default_port(scheme)
    if not trust_proxy:
        return scheme, host, port

    xf_proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip().lower()
    xf_host = (request.headers.get("x-forwarded-host") or "").split(",")[0].strip().lower()
    scheme = xf_proto or scheme
    if xf_host:
        if ":" in xf_host:
            host, port_str = xf_host.rsplit(":", 1)
            port = int(port_str) if port_str.isdigit() else _default_port(scheme)
        else:
            host, port = xf_host, _default_port(scheme)
    xf_port = (request.headers.get("x-forwarded-port") or "").split(",")[0].strip()
    if xf_port.isdigit():
        port = int(xf_port)
    return scheme, host, port


def is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow, so non-browser clients keep working.
    """
    try:
        server = _server_origin(request)
        origin_val = request.headers.get("origin")
        if origin_val:
            return _parse_origin(origin_val) == server
        referer_val = request.headers.get("referer")
        if referer_val:
            return _parse_origin(referer_val) == server
        return True
    except ValueError:
        return False
