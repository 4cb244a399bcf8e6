"""Tool router: resolve a tool by name, validate its arguments, run it.

Only protocol problems raise (shutting down, unknown tool, invalid arguments).
Anything that goes wrong inside a tool comes back as an error ToolResult.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from ctxstore.infra.errors import GatewayError, InvalidArgumentsError, UnknownToolError

if TYPE_CHECKING:
    from ctxstore.tools.base import BaseTool, ToolArgs
    from ctxstore.tools.registry import ToolRegistry
    from ctxstore.tools.result import ToolResult

logger = structlog.get_logger()


def _problems(exc: ValidationError) -> list[dict[str, Any]]:
    """One entry per offending field, named the way clients spell it."""
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "arguments"
        problems.append(
            {
                "field": field,
                "problem": "missing" if err["type"] == "missing" else "invalid",
                "message": err["msg"],
            }
        )
    return problems


class ToolRouter:
    """Dispatches tool calls from any transport and tracks in-flight work."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry
        self._closed = False
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def list_tools(self) -> list[dict]:
        return self._registry.get_tools_schema()

    def resolve(self, name: str, arguments: Any) -> tuple[BaseTool, ToolArgs]:
        """Look up the tool and validate raw arguments against its model.

        Raises UnknownToolError or InvalidArgumentsError.
        """
        tool = self._registry.get(name)
        if tool is None:
            raise UnknownToolError(name)

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidArgumentsError(
                name,
                [
                    {
                        "field": "arguments",
                        "problem": "invalid",
                        "message": f"expected an object, got {type(arguments).__name__}",
                    }
                ],
            )

        try:
            args = tool.args_model.model_validate(arguments)
        except ValidationError as e:
            raise InvalidArgumentsError(name, _problems(e)) from e
        return tool, args

    async def dispatch(self, name: str, arguments: Any) -> ToolResult:
        if self._closed:
            raise GatewayError("Server is shutting down", code="SHUTTING_DOWN")

        tool, args = self.resolve(name, arguments)

        self._in_flight += 1
        self._idle.clear()
        start = time.monotonic()
        try:
            result = await tool.execute(args)
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

        logger.info(
            "tool_dispatched",
            tool_name=name,
            project=args.project_name,
            is_error=result.is_error,
            duration_ms=round((time.monotonic() - start) * 1000, 1),
        )
        return result

    def close(self) -> None:
        """Refuse new dispatches. In-flight calls run to completion."""
        if not self._closed:
            self._closed = True
            logger.info("router_closed", in_flight=self._in_flight)

    async def wait_idle(self, timeout_s: float) -> bool:
        """Wait for in-flight dispatches to finish. False if the timeout elapsed first."""
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout_s)
        except TimeoutError:
            logger.warning("router_drain_timeout", in_flight=self._in_flight)
            return False
        return True
