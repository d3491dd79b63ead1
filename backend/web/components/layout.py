"""
Layout component: the full HTML document around a page body.

Carries the theme (`data-theme`) and text direction (`dir="rtl"` for Urdu)
from the user's preferences and renders the header toggles.
"""

from typing import Any, Dict, Optional

from .base import Component
from .navigation import Navigation


class Layout(Component):
    """Main layout component that assembles the complete page"""

    def __init__(
        self,
        title: str,
        content: str,
        prefs: Any,
        user: Optional[Dict[str, Any]] = None,
        current_path: str = "/",
        show_nav: bool = True,
        head_extra: str = "",
    ):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered components)
            prefs: `Preferences` (theme, language, translations)
            user: Current user dict with `name` and `role` (optional)
            current_path: URL path for active navigation highlighting
            show_nav: Whether to render the sidebar
            head_extra: Pre-rendered, trusted markup appended to <head>
        """
        self.title = title
        self.content = content
        self.prefs = prefs
        self.user = user
        self.current_path = current_path
        self.show_nav = show_nav
        self.head_extra = head_extra

    def render(self) -> str:
        t = self.prefs.t
        nav_html = (
            Navigation(self.user, self.current_path, logout_label=t("common.logout")).render()
            if self.show_nav
            else ""
        )
        html_attrs = self.attributes(
            lang=self.prefs.language,
            dir="rtl" if self.prefs.is_rtl else "ltr",
            data_theme=self.prefs.theme,
        )
        return f"""<!DOCTYPE html>
<html {html_attrs}>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{self.escape(self.title)} - {self.escape(t("app.name"))}</title>
    <link rel="stylesheet" href="/static/css/pakschool.css?v=1">
    {self.head_extra}
</head>
<body>
    {self._render_header()}
    {nav_html}
    <main id="main-content" class="main-content" role="main">
        {self.content}
    </main>
</body>
</html>"""

    def _render_header(self) -> str:
        t = self.prefs.t
        other_lang = "en" if self.prefs.language == "ur" else "ur"
        return f"""
    <header class="app-header">
        <span class="app-title">{self.escape(t("app.name"))}</span>
        <div class="header-toggles">
            <form method="post" action="/preferences/theme">
                <input type="hidden" name="next" value="{self.escape(self.current_path)}">
                <button type="submit" class="toggle" aria-label="{self.escape(t("theme.toggle"))}">{'☾' if self.prefs.theme == 'light' else '☀'}</button>
            </form>
            <form method="post" action="/preferences/language">
                <input type="hidden" name="language" value="{other_lang}">
                <input type="hidden" name="next" value="{self.escape(self.current_path)}">
                <button type="submit" class="toggle">{self.escape(t("language.toggle"))}</button>
            </form>
        </div>
    </header>"""
