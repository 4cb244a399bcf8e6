from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ctxstore import __version__
from ctxstore.config.settings import get_settings
from ctxstore.gateway.protocol import (
    RPCError,
    RPCErrorData,
    RPCResponse,
    ToolCallParams,
    parse_rpc_request,
)
from ctxstore.infra.errors import ContextStoreError, GatewayError
from ctxstore.infra.logging import setup_logging
from ctxstore.server import ContextStoreServer

if TYPE_CHECKING:
    from ctxstore.gateway.dispatch import ToolRouter

logger = structlog.get_logger()


def create_app(server: ContextStoreServer | None = None) -> FastAPI:
    """Build the WebSocket gateway.

    With a server, the caller owns its lifecycle. Without one, the app
    starts a server from environment settings in its lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if server is not None:
            app.state.server = server
            yield
            return

        settings = get_settings()
        setup_logging(json_output=settings.logging.json_output, log_level=settings.logging.level)
        async with ContextStoreServer(settings) as owned:
            app.state.server = owned
            logger.info("gateway_started", host=settings.gateway.host, port=settings.gateway.port)
            yield

    app = FastAPI(title="Context Storage Gateway", version=__version__, lifespan=lifespan)

    @app.get("/health")
    async def health() -> JSONResponse:
        current: ContextStoreServer = app.state.server
        snapshot = current.pool.health()
        return JSONResponse(
            {"status": "ok" if snapshot.healthy else "degraded", "pool": snapshot.to_dict()},
            status_code=200 if snapshot.healthy else 503,
        )

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        logger.info("ws_connected")
        router = app.state.server.router
        send_lock = asyncio.Lock()
        pending: set[asyncio.Task[None]] = set()

        async def send(payload: str) -> None:
            async with send_lock:
                await websocket.send_text(payload)

        try:
            while True:
                raw = await websocket.receive_text()
                # One task per request; responses are matched by id, not order.
                task = asyncio.create_task(_handle_rpc_message(router, send, raw))
                pending.add(task)
                task.add_done_callback(pending.discard)
        except WebSocketDisconnect:
            logger.info("ws_disconnected", pending=len(pending))
        finally:
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    return app


async def _handle_rpc_message(router: ToolRouter, send, raw: str) -> None:
    """Parse one RPC request, run it, send exactly one response or error."""
    request_id = "unknown"
    try:
        request = parse_rpc_request(raw)
        request_id = request.id

        if request.method == "tools.list":
            payload = RPCResponse(id=request_id, data={"tools": router.list_tools()})
        elif request.method == "tools.call":
            try:
                params = ToolCallParams.model_validate(request.params)
            except ValidationError as e:
                raise GatewayError(str(e), code="INVALID_PARAMS") from e
            result = await router.dispatch(params.name, params.arguments)
            payload = RPCResponse(id=request_id, data=result.to_dict())
        else:
            payload = RPCError(
                id=request_id,
                error=RPCErrorData(
                    code="METHOD_NOT_FOUND",
                    message=f"Unknown method: {request.method}",
                ),
            )
    except ContextStoreError as e:
        logger.warning("request_error", code=e.code, error=str(e), request_id=request_id)
        payload = RPCError(id=request_id, error=RPCErrorData(code=e.code, message=str(e)))
    except Exception:
        logger.exception("unhandled_error", request_id=request_id)
        payload = RPCError(
            id=request_id,
            error=RPCErrorData(code="INTERNAL_ERROR", message="An internal error occurred"),
        )

    try:
        await send(payload.model_dump_json())
    except (WebSocketDisconnect, RuntimeError):
        logger.info("ws_response_dropped", request_id=request_id)


app = create_app()
