"""Tests for the MCP stdio channel handlers and exit-code behaviour."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from mcp import types as mcp_types

from ctxstore.channels import mcp_stdio
from ctxstore.channels.mcp_stdio import build_mcp_server, serve_stdio
from ctxstore.gateway.dispatch import ToolRouter
from ctxstore.infra.errors import PoolFatalError
from ctxstore.storage.persistence import PersistenceManager, WriteResult
from ctxstore.tools.builtins import register_builtins
from ctxstore.tools.registry import ToolRegistry


def _make_server() -> tuple[SimpleNamespace, AsyncMock]:
    store = AsyncMock(spec=PersistenceManager)
    registry = ToolRegistry()
    register_builtins(registry, store)
    settings = SimpleNamespace(server=SimpleNamespace(name="mcp-context-server", version="1.0.0"))
    return SimpleNamespace(settings=settings, router=ToolRouter(registry)), store


async def _call(app, name: str, arguments: dict | None) -> mcp_types.CallToolResult:
    handler = app.request_handlers[mcp_types.CallToolRequest]
    request = mcp_types.CallToolRequest(
        method="tools/call",
        params=mcp_types.CallToolRequestParams(name=name, arguments=arguments),
    )
    result = await handler(request)
    return result.root


class TestHandlers:
    @pytest.mark.asyncio
    async def test_list_tools_exposes_catalog(self) -> None:
        server, _ = _make_server()
        app = build_mcp_server(server)
        handler = app.request_handlers[mcp_types.ListToolsRequest]

        result = await handler(mcp_types.ListToolsRequest(method="tools/list"))

        tools = result.root.tools
        assert len(tools) == 27
        names = [t.name for t in tools]
        assert names[0] == "store_context"
        store_context = tools[0]
        assert store_context.inputSchema["required"] == ["projectName", "contextType", "content"]

    @pytest.mark.asyncio
    async def test_call_success(self) -> None:
        server, store = _make_server()
        store.store_context.return_value = WriteResult(id=1)
        app = build_mcp_server(server)

        result = await _call(
            app, "store_context", {"projectName": "p", "contextType": "t", "content": "c"}
        )

        assert result.isError is False
        assert result.content[0].text == (
            'Successfully stored context for project "p" with type "t"'
        )

    @pytest.mark.asyncio
    async def test_tool_failure_is_error_result(self) -> None:
        server, store = _make_server()
        store.get_project_tasks.side_effect = RuntimeError("boom")
        app = build_mcp_server(server)

        result = await _call(app, "get_project_tasks", {"projectName": "p"})

        assert result.isError is True
        assert result.content[0].text == "Error retrieving project tasks: boom"

    @pytest.mark.asyncio
    async def test_unknown_tool_is_error_result(self) -> None:
        server, _ = _make_server()
        app = build_mcp_server(server)

        result = await _call(app, "nope", {})

        assert result.isError is True
        assert "Unknown tool: nope" in result.content[0].text

    @pytest.mark.asyncio
    async def test_invalid_arguments_name_fields(self) -> None:
        server, store = _make_server()
        app = build_mcp_server(server)

        result = await _call(app, "store_conversation", {"projectName": "p"})

        assert result.isError is True
        text = result.content[0].text
        assert "conversationId" in text
        assert "messageType" in text
        store.store_conversation.assert_not_called()


class TestServeStdio:
    @pytest.mark.asyncio
    async def test_fatal_pool_returns_1(self) -> None:
        server, _ = _make_server()
        server.wait_fatal = AsyncMock(return_value=PoolFatalError("gone"))

        async def _hang(*args, **kwargs):
            await asyncio.Event().wait()

        with patch.object(mcp_stdio.Server, "run", _hang), patch.object(
            mcp_stdio.mcp_stdio, "stdio_server", _FakeStdio
        ):
            code = await serve_stdio(server)

        assert code == 1

    @pytest.mark.asyncio
    async def test_end_of_input_returns_0(self) -> None:
        server, _ = _make_server()
        never = asyncio.Event()

        async def _wait_fatal():
            await never.wait()

        server.wait_fatal = _wait_fatal

        async def _finish(*args, **kwargs):
            return None

        with patch.object(mcp_stdio.Server, "run", _finish), patch.object(
            mcp_stdio.mcp_stdio, "stdio_server", _FakeStdio
        ):
            code = await serve_stdio(server)

        assert code == 0


class _FakeStdio:
    """Stands in for the stdio transport context manager."""

    async def __aenter__(self):
        return object(), object()

    async def __aexit__(self, *exc):
        return False
