"""Tests for the WebSocket RPC gateway and /health endpoint."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.testclient import TestClient

from ctxstore.gateway.app import create_app
from ctxstore.gateway.dispatch import ToolRouter
from ctxstore.gateway.protocol import parse_rpc_request
from ctxstore.infra.errors import GatewayError
from ctxstore.storage.persistence import PersistenceManager, WriteResult
from ctxstore.storage.pool import PoolHealth, PoolState
from ctxstore.tools.builtins import register_builtins
from ctxstore.tools.registry import ToolRegistry


def _make_server(*, healthy: bool = True) -> tuple[SimpleNamespace, AsyncMock]:
    store = AsyncMock(spec=PersistenceManager)
    registry = ToolRegistry()
    register_builtins(registry, store)
    pool = MagicMock()
    pool.health.return_value = PoolHealth(
        state=PoolState.open,
        healthy=healthy,
        in_use=0,
        consecutive_failures=0 if healthy else 2,
        last_error=None if healthy else "connection refused",
    )
    return SimpleNamespace(router=ToolRouter(registry), pool=pool), store


def _rpc(ws, request: dict) -> dict:
    ws.send_text(json.dumps(request))
    return json.loads(ws.receive_text())


class TestParseRpcRequest:
    def test_valid(self) -> None:
        req = parse_rpc_request('{"type":"request","id":"1","method":"tools.list"}')
        assert req.method == "tools.list"
        assert req.params == {}

    def test_invalid_json(self) -> None:
        with pytest.raises(GatewayError) as exc_info:
            parse_rpc_request("{nope")
        assert exc_info.value.code == "PARSE_ERROR"

    def test_missing_method(self) -> None:
        with pytest.raises(GatewayError) as exc_info:
            parse_rpc_request('{"type":"request","id":"1"}')
        assert exc_info.value.code == "PARSE_ERROR"


class TestHealth:
    def test_healthy(self) -> None:
        server, _ = _make_server()
        with TestClient(create_app(server)) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["pool"]["state"] == "open"

    def test_unhealthy_is_503(self) -> None:
        server, _ = _make_server(healthy=False)
        with TestClient(create_app(server)) as client:
            resp = client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["pool"]["last_error"] == "connection refused"


class TestWebSocketRpc:
    def test_tools_list(self) -> None:
        server, _ = _make_server()
        with TestClient(create_app(server)) as client, client.websocket_connect("/ws") as ws:
            msg = _rpc(ws, {"type": "request", "id": "r1", "method": "tools.list"})
        assert msg["type"] == "response"
        assert msg["id"] == "r1"
        assert len(msg["data"]["tools"]) == 27
        assert {"name", "description", "inputSchema"} <= set(msg["data"]["tools"][0])

    def test_tools_call_success(self) -> None:
        server, store = _make_server()
        store.store_context.return_value = WriteResult(id=1)
        request = {
            "type": "request",
            "id": "r2",
            "method": "tools.call",
            "params": {
                "name": "store_context",
                "arguments": {"projectName": "p", "contextType": "t", "content": "c"},
            },
        }
        with TestClient(create_app(server)) as client, client.websocket_connect("/ws") as ws:
            msg = _rpc(ws, request)
        assert msg["type"] == "response"
        assert msg["data"]["isError"] is False
        assert msg["data"]["content"][0]["text"].startswith("Successfully stored context")

    def test_tool_failure_is_envelope_not_protocol_error(self) -> None:
        server, store = _make_server()
        store.get_context.side_effect = RuntimeError("db gone")
        request = {
            "type": "request",
            "id": "r3",
            "method": "tools.call",
            "params": {"name": "get_context", "arguments": {"projectName": "p"}},
        }
        with TestClient(create_app(server)) as client, client.websocket_connect("/ws") as ws:
            msg = _rpc(ws, request)
        assert msg["type"] == "response"
        assert msg["data"]["isError"] is True
        assert msg["data"]["content"][0]["text"] == "Error retrieving context: db gone"

    def test_invalid_arguments_is_protocol_error(self) -> None:
        server, _ = _make_server()
        request = {
            "type": "request",
            "id": "r4",
            "method": "tools.call",
            "params": {"name": "store_context", "arguments": {"projectName": "p"}},
        }
        with TestClient(create_app(server)) as client, client.websocket_connect("/ws") as ws:
            msg = _rpc(ws, request)
        assert msg["type"] == "error"
        assert msg["id"] == "r4"
        assert msg["error"]["code"] == "INVALID_ARGUMENTS"
        assert "contextType" in msg["error"]["message"]
        assert "content" in msg["error"]["message"]

    def test_unknown_tool(self) -> None:
        server, _ = _make_server()
        request = {
            "type": "request",
            "id": "r5",
            "method": "tools.call",
            "params": {"name": "rm_rf", "arguments": {}},
        }
        with TestClient(create_app(server)) as client, client.websocket_connect("/ws") as ws:
            msg = _rpc(ws, request)
        assert msg["error"]["code"] == "UNKNOWN_TOOL"

    def test_missing_tool_name_is_invalid_params(self) -> None:
        server, _ = _make_server()
        request = {"type": "request", "id": "r6", "method": "tools.call", "params": {}}
        with TestClient(create_app(server)) as client, client.websocket_connect("/ws") as ws:
            msg = _rpc(ws, request)
        assert msg["error"]["code"] == "INVALID_PARAMS"

    def test_unknown_method(self) -> None:
        server, _ = _make_server()
        with TestClient(create_app(server)) as client, client.websocket_connect("/ws") as ws:
            msg = _rpc(ws, {"type": "request", "id": "r7", "method": "chat.send"})
        assert msg["error"]["code"] == "METHOD_NOT_FOUND"

    def test_invalid_json(self) -> None:
        server, _ = _make_server()
        with TestClient(create_app(server)) as client, client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            msg = json.loads(ws.receive_text())
        assert msg["type"] == "error"
        assert msg["id"] == "unknown"
        assert msg["error"]["code"] == "PARSE_ERROR"
