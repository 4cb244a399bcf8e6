"""MCP stdio channel: serve the tool catalog over the Model Context Protocol.

stdout carries the protocol stream, so nothing else may write to it.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog
from mcp import types as mcp_types
from mcp.server import Server
from mcp.server import stdio as mcp_stdio

from ctxstore.infra.errors import GatewayError

if TYPE_CHECKING:
    from ctxstore.server import ContextStoreServer

logger = structlog.get_logger()


class ToolCallFailed(Exception):
    """Raised from the call handler so the SDK answers with isError=true."""


def build_mcp_server(server: ContextStoreServer) -> Server:
    """Create a low-level MCP Server whose handlers delegate to the router."""
    settings = server.settings.server
    app: Server = Server(settings.name, version=settings.version)

    @app.list_tools()
    async def _list_tools() -> list[mcp_types.Tool]:
        return [
            mcp_types.Tool(
                name=entry["name"],
                description=entry["description"],
                inputSchema=entry["inputSchema"],
            )
            for entry in server.router.list_tools()
        ]

    # Arguments are validated by the router against the pydantic models.
    @app.call_tool(validate_input=False)
    async def _call_tool(name: str, arguments: dict[str, Any] | None) -> list[mcp_types.TextContent]:
        try:
            result = await server.router.dispatch(name, arguments)
        except GatewayError as e:
            logger.warning("mcp_call_rejected", tool_name=name, code=e.code, error=str(e))
            raise ToolCallFailed(str(e)) from e

        if result.is_error:
            raise ToolCallFailed(result.text)
        return [mcp_types.TextContent(type="text", text=result.text)]

    return app


async def serve_stdio(server: ContextStoreServer) -> int:
    """Run the stdio transport until stdin closes or the pool becomes unrecoverable.

    Returns the process exit code: 0 on a clean end of input, 1 on a fatal pool error.
    """
    app = build_mcp_server(server)

    async def _transport() -> None:
        async with mcp_stdio.stdio_server() as (read_stream, write_stream):
            logger.info("mcp_stdio_started", name=server.settings.server.name)
            await app.run(read_stream, write_stream, app.create_initialization_options())

    transport = asyncio.create_task(_transport(), name="mcp-stdio")
    fatal = asyncio.create_task(server.wait_fatal(), name="pool-fatal-watch")
    done, _ = await asyncio.wait({transport, fatal}, return_when=asyncio.FIRST_COMPLETED)

    if fatal in done and fatal.result() is not None:
        logger.error("mcp_stdio_aborted", error=str(fatal.result()))
        transport.cancel()
        await asyncio.gather(transport, return_exceptions=True)
        return 1

    fatal.cancel()
    await asyncio.gather(fatal, return_exceptions=True)
    await transport
    logger.info("mcp_stdio_stopped")
    return 0
