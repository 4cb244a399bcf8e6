"""The tool result envelope shared by every transport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Self


@dataclass(frozen=True)
class ToolResult:
    """One text block plus an error flag.

    Serialises to ``{"content": [{"type": "text", "text": ...}], "isError": bool}``.
    """

    text: str
    is_error: bool = False

    @classmethod
    def ok(cls, text: str) -> Self:
        return cls(text=text)

    @classmethod
    def error(cls, text: str) -> Self:
        return cls(text=text, is_error=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": [{"type": "text", "text": self.text}],
            "isError": self.is_error,
        }
