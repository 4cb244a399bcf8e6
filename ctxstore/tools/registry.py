from __future__ import annotations

import structlog

from ctxstore.tools.base import BaseTool

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for tools. Lookup by name; listing in registration order."""

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}
        self._schemas: dict[str, dict] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool. Raises ValueError if name already registered."""
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        # Arguments schema is resolved once; models are immutable after import.
        self._schemas[tool.name] = tool.parameters
        logger.debug("tool_registered", tool_name=tool.name, kind=tool.kind.value)

    def get(self, name: str) -> BaseTool | None:
        """Get a tool by name. Returns None if not found."""
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def list_tools(self) -> list[BaseTool]:
        return list(self._tools.values())

    def get_tools_schema(self) -> list[dict]:
        """Return the tool catalog in MCP format.

        Output format:
        [{"name": ..., "description": ..., "inputSchema": {...}}]
        """
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": self._schemas[tool.name],
            }
            for tool in self._tools.values()
        ]
