"PakSchool portal"
from __future__ import annotations

from pathlib import Path
import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from identity_access.session_state import AuthSession, SessionState
from identity_access.tokens import AccessTokenError, verify_access_token

import config
import wiring
from auth_utils import SESSION_COOKIE_NAME


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest; tests provide their own environment.
    - Opt-out via PAKSCHOOL_ENABLE_DOTENV=false.
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("PAKSCHOOL_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

config.ensure_secure_config_on_startup()

logger = logging.getLogger("pakschool.web")

app = FastAPI(title="PakSchool portal", description="School management portal", version="0.1.0")

# --- Static Files & Routers -----------------------------------------------------

static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

from routes.auth import auth_router  # noqa: E402
from routes.dashboards import dashboards_router  # noqa: E402
from routes.data_api import api_validation_error, data_api_router  # noqa: E402
from routes.settings import preferences_router  # noqa: E402
from routes.users import users_router  # noqa: E402

# --- Session Resolution Middleware ----------------------------------------------


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def _bearer_session_state(token: str) -> SessionState | None:
    """Ephemeral session state for an API caller presenting an access token.

    The profile is fetched synchronously (the caller has no page to poll), so
    the state is never `loading`; a missing profile stays missing.
    """
    try:
        claims = verify_access_token(token)
    except AccessTokenError as exc:
        logger.info("Bearer token rejected: %s", exc.code)
        return None
    auth = AuthSession(
        user_id=str(claims.get("sub") or ""),
        email=str(claims.get("email") or ""),
        access_token=token,
        expires_at=int(claims["exp"]) if isinstance(claims.get("exp"), (int, float)) else None,
    )
    if not auth.user_id:
        return None
    profile = await run_in_threadpool(wiring.get_auth_client().fetch_profile, auth)
    return SessionState(session=auth, profile=profile)


def _is_public_path(path: str) -> bool:
    return path.startswith("/static/") or path in ("/health", "/favicon.ico")


@app.middleware("http")
async def resolve_session(request: Request, call_next):
    """Attach the caller's session state to `request.state.session_state`.

    Resolution only; admission is decided per route by the gates. Browser
    requests use the session cookie, JSON API callers may send
    `Authorization: Bearer <supabase access token>` instead.
    """
    path = request.url.path
    request.state.session_state = None
    if _is_public_path(path):
        return await call_next(request)

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if sid:
        rec = wiring.SESSION_STORE.get(sid)
        if rec is not None:
            request.state.session_state = rec.state

    if request.state.session_state is None and path.startswith("/api/"):
        token = _bearer_token(request)
        if token:
            state = await _bearer_session_state(token)
            if state is None:
                return JSONResponse(
                    {"error": "invalid_access_token"},
                    status_code=401,
                    headers={"Cache-Control": "private, no-store", "WWW-Authenticate": "Bearer"},
                )
            request.state.session_state = state
    return await call_next(request)


# --- Security Headers Middleware ----------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    connect_src = "'self'"
    supabase_url = (os.getenv("SUPABASE_URL") or "").strip().rstrip("/")
    if supabase_url.startswith(("https://", "http://")):
        connect_src += f" {supabase_url}"

    if config.current_environment() in ("prod", "production"):
        # No inline code in production.
        csp = (
            "default-src 'self'; script-src 'self'; style-src 'self'; "
            f"img-src 'self' data:; font-src 'self' data:; connect-src {connect_src};"
        )
    else:
        csp = (
            "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
            f"img-src 'self' data:; font-src 'self' data:; connect-src {connect_src};"
        )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    # HSTS: always on (dev = prod)
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


app.add_exception_handler(RequestValidationError, api_validation_error)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(data_api_router)
app.include_router(preferences_router)
app.include_router(dashboards_router)


@app.get("/health")
async def health_check():
    # Used by orchestrators and tests; never cached.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})
