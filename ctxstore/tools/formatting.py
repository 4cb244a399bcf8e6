"""Text rendering helpers shared by the built-in tools."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

RECORD_SEPARATOR = "\n---\n\n"


def show(value: Any, fallback: str = "N/A") -> str:
    """Render a column value, substituting fallback for NULL or empty."""
    if value is None or value == "":
        return fallback
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def render_records(
    rows: Iterable[Mapping[str, Any]], render: Callable[[Mapping[str, Any]], str]
) -> str:
    """Render each row to a block and join the blocks with the record separator."""
    return RECORD_SEPARATOR.join(render(row) + "\n" for row in rows)


def qualify(template: str, value: Any) -> str:
    """Render one filter phrase for an empty-result message, or "" when the filter is off.

    template may contain a single ``{}`` for the value; flag phrases omit it.
    """
    if value is None or value == "" or value is False:
        return ""
    return " " + template.format(value)


def not_found(what: str, project_name: str, *qualifiers: str) -> str:
    """'No <what> found for project "p"' followed by any qualifier phrases."""
    return f'No {what} found for project "{project_name}"' + "".join(qualifiers)
