"""
Base class for the portal's server-rendered UI components.

Components are plain Python objects whose `render()` returns an HTML string.
No template engine: escaping is explicit through `escape()` and
`attributes()`, which keeps every interpolation point visible in review.
"""

from typing import Any, Optional
import html


class Component:
    """Base class for all UI components."""

    def render(self) -> str:
        raise NotImplementedError("Subclasses must implement render()")

    def __str__(self) -> str:
        return self.render()

    @staticmethod
    def escape(text: Optional[Any]) -> str:
        """Escape HTML entities; None renders as an empty string."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def classes(*args: str, **conditionals: bool) -> str:
        """Build a class string from fixed classes plus truthy conditionals.

        >>> Component.classes("btn", primary=True, disabled=False)
        'btn primary'
        """
        names = [a for a in args if a]
        names.extend(key.replace("_", "-") for key, on in conditionals.items() if on)
        return " ".join(names)

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Render keyword arguments as HTML attributes.

        A trailing underscore unlocks reserved words (`class_`, `for_`); inner
        underscores become hyphens (`aria_label` -> `aria-label`). True renders
        a bare boolean attribute, False/None drop the attribute.
        """
        parts = []
        for key, value in attrs.items():
            name = key[:-1] if key.endswith("_") else key.replace("_", "-")
            if value is True:
                parts.append(name)
            elif value is False or value is None:
                continue
            else:
                parts.append(f'{name}="{html.escape(str(value))}"')
        return " ".join(parts)
