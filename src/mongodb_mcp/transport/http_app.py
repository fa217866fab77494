"""Starlette application serving every HTTP transport side by side.

Routes:
    GET  /health              liveness check
    GET  /info                server name, version and non-secret config flags
    GET  /sse                 long-lived SSE stream (shared Session)
    POST /messages/           client-to-server messages for SSE streams
    *    /mcp                 stateless streamable-HTTP (Session per request)
    POST /tools/{tool_name}   direct tool execution (Session per request)

The lifespan shutdown awaits ``TransportSessionManager.shutdown()`` so the
shared MongoProvider is closed before the process exits.
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from mcp.server.sse import SseServerTransport
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.types import Receive, Scope, Send

from .. import __version__
from ..exceptions import InternalError, ServerShuttingDownError
from ..server import create_protocol_server
from .manager import TransportPolicy, TransportSessionManager

logger = logging.getLogger(__name__)

MESSAGES_PATH = "/messages/"


def _remote_address(scope: Scope) -> str | None:
    client = scope.get("client")
    if client:
        return f"{client[0]}:{client[1]}"
    return None


def _shutting_down_response(error: ServerShuttingDownError) -> JSONResponse:
    return JSONResponse(
        {"error": error.message, "error_code": error.error_code},
        status_code=error.http_status_code,
    )


class SseEndpoint:
    """ASGI endpoint for ``GET /sse``: one shared-policy connection per stream."""

    def __init__(self, manager: TransportSessionManager, transport: SseServerTransport) -> None:
        self.manager = manager
        self.transport = transport

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            async with self.manager.connection(
                "sse", TransportPolicy.SHARED, remote_address=_remote_address(scope)
            ) as connection:
                server = create_protocol_server(connection)
                async with self.transport.connect_sse(scope, receive, send) as (read, write):
                    await server.run(read, write, server.create_initialization_options())
        except ServerShuttingDownError as e:
            await _shutting_down_response(e)(scope, receive, send)


class StreamableHttpEndpoint:
    """ASGI endpoint for ``/mcp``: a fresh Session and front-end per request."""

    def __init__(self, manager: TransportSessionManager, json_response: bool = True) -> None:
        self.manager = manager
        self.json_response = json_response

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            async with self.manager.connection(
                "streamable-http",
                TransportPolicy.PER_REQUEST,
                remote_address=_remote_address(scope),
            ) as connection:
                server = create_protocol_server(connection)
                session_manager = StreamableHTTPSessionManager(
                    app=server, stateless=True, json_response=self.json_response
                )
                async with session_manager.run():
                    await session_manager.handle_request(scope, receive, send)
        except ServerShuttingDownError as e:
            await _shutting_down_response(e)(scope, receive, send)


def create_http_app(manager: TransportSessionManager) -> Starlette:
    """Build the Starlette app for all HTTP transports.

    Args:
        manager: Transport session manager owning every connection

    Returns:
        Configured Starlette application
    """
    settings = manager.settings
    sse_transport = SseServerTransport(MESSAGES_PATH)

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
        )

    async def info(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "name": settings.server_name,
                "version": __version__,
                "description": "MongoDB MCP Server HTTP Wrapper",
                "config": {
                    "hasCredentials": settings.has_credentials,
                    "hasConnectionString": bool(settings.mongodb_uri),
                    "readOnly": settings.read_only_mode,
                    "disabledTools": sorted(settings.disabled_tool_names),
                },
            }
        )

    async def call_tool(request: Request) -> JSONResponse:
        tool_name = request.path_params["tool_name"]
        body = await request.body()
        try:
            payload = json.loads(body) if body else {}
        except ValueError:
            return JSONResponse({"error": "Request body must be JSON"}, status_code=400)
        if not isinstance(payload, dict):
            return JSONResponse({"error": "Request body must be a JSON object"}, status_code=400)

        try:
            async with manager.connection(
                "rest", TransportPolicy.PER_REQUEST, remote_address=_remote_address(request.scope)
            ) as connection:
                result = await connection.call(tool_name, payload.get("arguments"))
        except ServerShuttingDownError as e:
            return _shutting_down_response(e)
        except InternalError as e:
            return JSONResponse(
                {"error": e.message, "error_code": e.error_code, "request_id": e.request_id},
                status_code=e.http_status_code,
            )

        return JSONResponse(result.model_dump())

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info(f"✓ HTTP transports ready at {settings.mcp_server_url}")
        try:
            yield
        finally:
            logger.info("HTTP server closing, shutting down connections...")
            await manager.shutdown()

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/info", info, methods=["GET"]),
        Route("/sse", SseEndpoint(manager, sse_transport), methods=["GET"]),
        Mount(MESSAGES_PATH, app=sse_transport.handle_post_message),
        Route(
            "/mcp",
            StreamableHttpEndpoint(manager, json_response=settings.mcp_json_response),
            methods=["GET", "POST", "DELETE"],
        ),
        Route("/tools/{tool_name}", call_tool, methods=["POST"]),
    ]

    return Starlette(
        routes=routes,
        middleware=[Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])],
        lifespan=lifespan,
    )
