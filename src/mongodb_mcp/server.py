"""MongoDB MCP Server.

This module implements the Model Context Protocol front-end for the MongoDB
tool catalog using the low-level ``mcp`` server. One front-end is created per
client connection and bound to that connection's pipeline, so concurrent
clients never interleave protocol framing even when they share a Session.

Key Features:
    - MCP ``tools/list`` and ``tools/call`` backed by the tool registry and pipeline
    - HTTP transports (SSE + stateless streamable-HTTP + REST) or stdio
    - Read-only mode and disabled tools driven by settings
    - Graceful shutdown on SIGINT/SIGTERM

Usage:
    python -m src.mongodb_mcp.server --transport http --port 3000
    mongodb-mcp-server --transport stdio
"""

import argparse
import logging
import sys

from mcp import types
from mcp.server.lowlevel import Server
from mcp.shared.exceptions import McpError

from src.config.settings import settings

from . import __version__
from .exceptions import InternalError, ServerShuttingDownError
from .tools import build_registry
from .transport.manager import ClientConnection, TransportSessionManager

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = (
    "Use the MongoDB tools to inspect databases and collections, run queries and "
    "aggregations, and manage documents, collections and indexes. Tools that take a "
    "'database' argument fall back to the server's default database when it is omitted."
)


def create_protocol_server(connection: ClientConnection) -> Server:
    """Create the MCP front-end for one client connection.

    ``tools/call`` is registered directly on ``request_handlers`` so that an
    InternalError reaches the client as a JSON-RPC error rather than as a
    tool result.

    Args:
        connection: The connection whose pipeline serves every tool call

    Returns:
        Configured low-level MCP server instance
    """
    server = Server(settings.server_name, version=__version__, instructions=SERVER_INSTRUCTIONS)
    registry = connection.pipeline.registry

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [descriptor.to_mcp_tool() for descriptor in registry.list()]

    async def call_tool(request: types.CallToolRequest) -> types.ServerResult:
        name = request.params.name
        try:
            result = await connection.call(name, request.params.arguments or {})
        except (InternalError, ServerShuttingDownError) as e:
            code = types.INTERNAL_ERROR if isinstance(e, InternalError) else types.INVALID_REQUEST
            raise McpError(types.ErrorData(code=code, message=e.message)) from e

        return types.ServerResult(
            types.CallToolResult(
                content=[types.TextContent(type="text", text=text) for text in result.texts],
                isError=result.is_error,
            )
        )

    server.request_handlers[types.CallToolRequest] = call_tool
    return server


def configure_logging() -> None:
    """Configure root logging from settings; logs go to stderr so stdio stays clean."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mongodb-mcp-server",
        description="Expose MongoDB operations as Model Context Protocol tools",
    )
    parser.add_argument(
        "--transport",
        choices=["http", "stdio"],
        default=settings.mcp_transport,
        help="Transport to serve (default: %(default)s)",
    )
    parser.add_argument("--host", default=settings.mcp_server_host, help="HTTP bind address")
    parser.add_argument("--port", type=int, default=settings.mcp_server_port, help="HTTP port")
    parser.add_argument(
        "--show-config", action="store_true", help="Print the active configuration on startup"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the MCP server."""
    args = parse_args(argv)
    configure_logging()

    try:
        logger.info("Starting MongoDB MCP Server...")
        if args.show_config:
            settings.print_config()
        settings.validate_configuration()

        registry = build_registry(settings.disabled_tool_names)
        logger.info(f"Available tools ({len(registry)}): {', '.join(registry.names())}")
        if settings.read_only_mode:
            logger.warning("Read-only mode is enabled: create, update and delete tools are refused")

        manager = TransportSessionManager(registry, settings)

        # Imported here: the transport runners import create_protocol_server from this module
        from .transport.runner import run_http, run_stdio

        if args.transport == "stdio":
            run_stdio(manager)
        else:
            run_http(manager, host=args.host, port=args.port)

    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user")
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise


if __name__ == "__main__":
    main()
