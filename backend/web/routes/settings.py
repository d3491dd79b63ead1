"""
Preference toggles: theme (light/dark) and language (English/Urdu).

Plain form posts from the header; each sets a cookie and sends the browser
back to `next` (an in-app path, validated like the login redirect).
"""
from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from auth_utils import safe_redirect
from guards import private_headers
from preferences import LANGUAGE_COOKIE, LANGUAGES, MAX_AGE, THEME_COOKIE, THEMES, read_preferences, toggled_theme
from routes.security import is_same_origin


preferences_router = APIRouter(tags=["Preferences"])


def _back(next_value: object, cookie: str, value: str) -> RedirectResponse:
    resp = RedirectResponse(url=safe_redirect(next_value, "/"), status_code=303, headers=private_headers())
    # Read by the page on first paint, so not HttpOnly; carries no authority.
    resp.set_cookie(cookie, value, max_age=MAX_AGE, path="/", samesite="lax", secure=True, httponly=False)
    return resp


@preferences_router.post("/preferences/theme")
async def set_theme(request: Request):
    """Switch to `theme` when given (light/dark), else toggle the current one."""
    if not is_same_origin(request):
        return JSONResponse({"error": "csrf_violation"}, status_code=403, headers=private_headers())
    form = await request.form()
    requested = str(form.get("theme") or "")
    if requested and requested not in THEMES:
        return JSONResponse({"error": "bad_request", "detail": "invalid_theme"}, status_code=400, headers=private_headers())
    theme = requested or toggled_theme(read_preferences(request).theme)
    return _back(form.get("next"), THEME_COOKIE, theme)


@preferences_router.post("/preferences/language")
async def set_language(request: Request):
    """Switch the interface language (`en` or `ur`)."""
    if not is_same_origin(request):
        return JSONResponse({"error": "csrf_violation"}, status_code=403, headers=private_headers())
    form = await request.form()
    language = str(form.get("language") or "")
    if language not in LANGUAGES:
        return JSONResponse({"error": "bad_request", "detail": "invalid_language"}, status_code=400, headers=private_headers())
    return _back(form.get("next"), LANGUAGE_COOKIE, language)
