"""
Navigation component for the portal.

Role-based sidebar: each role sees only the areas its dashboards and data
screens cover. Visibility is a convenience; the route gates still decide.
"""

from typing import Dict, List, Optional, Tuple

from identity_access.domain import Role, role_dashboard

from .base import Component

NavItem = Tuple[str, str]  # (href, label)

NAV_CONFIG: Dict[Role, List[NavItem]] = {
    Role.SUPER_ADMIN: [
        ("/super-admin/dashboard", "Dashboard"),
        ("/super-admin/schools", "Schools"),
        ("/notices", "Notices"),
    ],
    Role.ADMIN: [
        ("/admin/dashboard", "Dashboard"),
        ("/admin/users", "Users"),
        ("/admin/students", "Students"),
        ("/admin/teachers", "Teachers"),
        ("/admin/classes", "Classes"),
        ("/admin/attendance", "Attendance"),
        ("/admin/fees", "Fees"),
        ("/admin/salaries", "Salaries"),
        ("/admin/timetable", "Timetable"),
        ("/admin/notices", "Notices"),
        ("/admin/enquiries", "Enquiries"),
        ("/admin/visitors", "Visitors"),
    ],
    Role.TEACHER: [
        ("/teacher/dashboard", "Dashboard"),
        ("/teacher/attendance", "Attendance"),
        ("/notices", "Notices"),
    ],
    Role.STUDENT: [
        ("/student/dashboard", "Dashboard"),
        ("/student/attendance", "Attendance"),
        ("/student/fees", "Fees"),
        ("/notices", "Notices"),
    ],
    Role.PARENT: [
        ("/parent/dashboard", "Dashboard"),
        ("/parent/children", "Children"),
        ("/notices", "Notices"),
    ],
}

ROLE_LABELS: Dict[Role, str] = {
    Role.SUPER_ADMIN: "Super Admin",
    Role.ADMIN: "Administrator",
    Role.TEACHER: "Teacher",
    Role.STUDENT: "Student",
    Role.PARENT: "Parent",
    Role.UNKNOWN: "",
}


class Navigation(Component):
    """Sidebar navigation; `user` is a dict with `name` and `role` (a Role)."""

    def __init__(self, user: Optional[dict] = None, current_path: str = "/", logout_label: str = "Logout"):
        self.user = user
        self.current_path = current_path or "/"
        self.logout_label = logout_label

    def items(self) -> List[NavItem]:
        if not self.user:
            return [("/auth", "Login")]
        role = Role.parse(self.user.get("role"))
        return NAV_CONFIG.get(role, [(role_dashboard(role), "Dashboard")])

    def active_href(self, items: List[NavItem]) -> str:
        """Best prefix match: the longest href that prefixes the current path."""
        best = ""
        for href, _ in items:
            if self.current_path == href or self.current_path.startswith(href.rstrip("/") + "/"):
                if len(href) > len(best):
                    best = href
        return best

    def render(self) -> str:
        items = self.items()
        active = self.active_href(items)
        links = []
        for href, label in items:
            is_active = href == active
            attrs = self.attributes(
                href=href,
                class_=self.classes("sidebar-link", active=is_active),
                aria_current="page" if is_active else None,
            )
            links.append(f'<a {attrs}><span class="nav-text">{self.escape(label)}</span></a>')

        footer = ""
        if self.user:
            role = Role.parse(self.user.get("role"))
            footer = f"""
            <div class="sidebar-footer">
                <div class="user-name">{self.escape(self.user.get("name", ""))}</div>
                <div class="user-role">{self.escape(ROLE_LABELS.get(role, ""))}</div>
                <form method="post" action="/auth/logout">
                    <button type="submit" class="sidebar-link logout">{self.escape(self.logout_label)}</button>
                </form>
            </div>"""

        return f"""
    <aside class="sidebar" id="sidebar" aria-label="Sidebar">
        <nav class="sidebar-nav" aria-label="Main navigation">
            <div class="sidebar-items">
                {''.join(links)}
            </div>{footer}
        </nav>
    </aside>"""
