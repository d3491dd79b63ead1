"""
Dashboard widgets: stat cards, data tables and the loading placeholder.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .base import Component


@dataclass
class StatCard(Component):
    title: str
    value: Any

    def render(self) -> str:
        return (
            '<div class="stat-card">'
            f'<p class="stat-title">{self.escape(self.title)}</p>'
            f'<p class="stat-value">{self.escape(self.value)}</p>'
            "</div>"
        )


class StatGrid(Component):
    def __init__(self, cards: Iterable[StatCard]):
        self.cards = list(cards)

    def render(self) -> str:
        return f'<div class="stat-grid">{"".join(c.render() for c in self.cards)}</div>'


class DataTable(Component):
    """Plain table of rows; only the listed columns are shown, in order."""

    def __init__(
        self,
        rows: Sequence[Dict[str, Any]],
        columns: Sequence[str],
        *,
        caption: Optional[str] = None,
        empty_text: str = "Nothing here yet.",
        delete_action: Optional[str] = None,
        delete_label: str = "Delete",
        row_actions: Optional[Callable[[Dict[str, Any]], Sequence[Tuple[str, str]]]] = None,
    ):
        self.rows = rows
        self.columns = list(columns)
        self.caption = caption
        self.empty_text = empty_text
        # Format string with `{id}`, e.g. "/admin/notices/{id}/delete".
        self.delete_action = delete_action
        self.delete_label = delete_label
        # Per-row POST buttons: `row -> [(action_url, label), ...]`.
        self.row_actions = row_actions

    @staticmethod
    def _heading(column: str) -> str:
        return column.replace("_", " ").title()

    def _button(self, action: str, label: str, css: str) -> str:
        return (
            f'<form method="post" action="{self.escape(action)}">'
            f'<button type="submit" class="{css}">{self.escape(label)}</button>'
            "</form>"
        )

    def render(self) -> str:
        if not self.rows:
            return f'<p class="empty-state">{self.escape(self.empty_text)}</p>'
        head = "".join(f'<th scope="col">{self.escape(self._heading(c))}</th>' for c in self.columns)
        if self.delete_action or self.row_actions:
            head += '<th scope="col"></th>'
        body: List[str] = []
        for row in self.rows:
            cells = "".join(f"<td>{self.escape(row.get(c))}</td>" for c in self.columns)
            buttons = []
            for action, label in (self.row_actions(row) if self.row_actions else ()):
                buttons.append(self._button(action, label, "btn"))
            if self.delete_action and row.get("id"):
                buttons.append(self._button(self.delete_action.format(id=row["id"]), self.delete_label, "btn btn-danger"))
            if self.delete_action or self.row_actions:
                cells += f'<td>{"".join(buttons)}</td>'
            body.append(f"<tr>{cells}</tr>")
        caption = f"<caption>{self.escape(self.caption)}</caption>" if self.caption else ""
        return f'<table class="data-table">{caption}<thead><tr>{head}</tr></thead><tbody>{"".join(body)}</tbody></table>'


class LoadingPage(Component):
    """Placeholder shown while the session resolves.

    The page re-requests itself on a fixed interval; once the session state
    settles the gate answers with the real page or a redirect.
    """

    REFRESH_SECONDS = 1

    def __init__(self, label: str = "Loading..."):
        self.label = label

    def head(self) -> str:
        return f'<meta http-equiv="refresh" content="{self.REFRESH_SECONDS}">'

    def render(self) -> str:
        return (
            '<div class="loading-page" role="status" aria-live="polite">'
            '<span class="spinner" aria-hidden="true"></span>'
            f"<p>{self.escape(self.label)}</p>"
            "</div>"
        )
