"""
Page rendering helper shared by the HTML routes.
"""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import HTMLResponse

from components import Layout
from guards import current_user, private_headers
from preferences import read_preferences


def page_response(request: Request, title: str, content: str, *, status_code: int = 200, show_nav: bool = True) -> HTMLResponse:
    """Render `content` inside the layout with the caller's preferences.

    Pages are personalised, so they are never cached by intermediaries.
    """
    prefs = read_preferences(request)
    html = Layout(
        title,
        content,
        prefs,
        user=current_user(request),
        current_path=request.url.path,
        show_nav=show_nav,
    ).render()
    return HTMLResponse(html, status_code=status_code, headers=private_headers())
