"""Command-line entry point.

    python -m ctxstore serve-stdio   # MCP over stdin/stdout
    python -m ctxstore serve-http    # WebSocket RPC gateway + /health
    python -m ctxstore check-db      # connect, ensure schema, print pool health
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import structlog
import uvicorn
from sqlalchemy.exc import SQLAlchemyError

from ctxstore.channels.mcp_stdio import serve_stdio
from ctxstore.config.settings import Settings, get_settings
from ctxstore.gateway.app import create_app
from ctxstore.infra.logging import setup_logging
from ctxstore.server import ContextStoreServer

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ctxstore", description="Project context storage server (MCP tools over PostgreSQL)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve-stdio", help="Serve the tool catalog over MCP stdio")

    http_parser = subparsers.add_parser("serve-http", help="Serve the WebSocket RPC gateway")
    http_parser.add_argument("--host", default=None, help="Bind host (default: GATEWAY_HOST)")
    http_parser.add_argument(
        "--port", type=int, default=None, help="Bind port (default: GATEWAY_PORT)"
    )

    subparsers.add_parser("check-db", help="Verify connectivity and schema, then exit")
    return parser


async def _serve_stdio(settings: Settings) -> int:
    async with ContextStoreServer(settings) as server:
        return await serve_stdio(server)


async def _serve_http(settings: Settings, host: str, port: int) -> int:
    async with ContextStoreServer(settings) as server:
        config = uvicorn.Config(create_app(server), host=host, port=port, log_config=None)
        web = uvicorn.Server(config)
        web_task = asyncio.create_task(web.serve(), name="uvicorn")
        fatal = asyncio.create_task(server.wait_fatal(), name="pool-fatal-watch")
        done, _ = await asyncio.wait({web_task, fatal}, return_when=asyncio.FIRST_COMPLETED)

        if fatal in done and fatal.result() is not None:
            logger.error("gateway_aborted", error=str(fatal.result()))
            web.should_exit = True
            await web_task
            return 1

        fatal.cancel()
        await asyncio.gather(fatal, return_exceptions=True)
        await web_task
        return 0


async def _check_db(settings: Settings) -> int:
    async with ContextStoreServer(settings) as server:
        health = server.pool.health()
    print(json.dumps(health.to_dict(), indent=2))
    return 0 if health.healthy else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(json_output=settings.logging.json_output, log_level=settings.logging.level)

    try:
        if args.command == "serve-stdio":
            return asyncio.run(_serve_stdio(settings))
        if args.command == "serve-http":
            host = args.host or settings.gateway.host
            port = args.port or settings.gateway.port
            return asyncio.run(_serve_http(settings, host, port))
        return asyncio.run(_check_db(settings))
    except KeyboardInterrupt:
        return 130
    except (OSError, SQLAlchemyError) as e:
        # Database unreachable at startup.
        logger.error("startup_failed", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
