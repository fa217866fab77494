"""Process-level runners for the HTTP and stdio transports.

``ServingServer`` extends uvicorn's server so that a termination signal
starts ``TransportSessionManager.shutdown()`` immediately. Long-lived SSE
streams are closed by the manager rather than holding up uvicorn's wait for
open connections, and the lifespan shutdown then waits for the manager to
finish closing the shared MongoProvider.
"""

import asyncio
import logging
import math

import anyio
import uvicorn
from mcp.server.stdio import stdio_server

from ..server import create_protocol_server
from .http_app import create_http_app
from .manager import TransportPolicy, TransportSessionManager

logger = logging.getLogger(__name__)


class ServingServer(uvicorn.Server):
    """uvicorn server that hands termination signals to the session manager."""

    def __init__(self, config: uvicorn.Config, manager: TransportSessionManager) -> None:
        super().__init__(config)
        self.manager = manager
        self._loop: asyncio.AbstractEventLoop | None = None
        self._shutdown_task: asyncio.Task | None = None

    async def serve(self, sockets=None) -> None:
        self._loop = asyncio.get_running_loop()
        await super().serve(sockets=sockets)

    def handle_exit(self, sig, frame) -> None:
        if self._loop is not None and self._shutdown_task is None and not self.should_exit:
            logger.info(f"Received signal {sig}, closing client connections...")
            self._loop.call_soon_threadsafe(self._start_manager_shutdown)
        super().handle_exit(sig, frame)

    def _start_manager_shutdown(self) -> None:
        if self._shutdown_task is None:
            self._shutdown_task = self._loop.create_task(self.manager.shutdown())


def run_http(manager: TransportSessionManager, host: str, port: int) -> None:
    """Serve every HTTP transport until a termination signal arrives."""
    settings = manager.settings
    app = create_http_app(manager)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
        # Leave room for the manager's own grace period before uvicorn gives up
        timeout_graceful_shutdown=math.ceil(settings.shutdown_grace_period) + 1,
    )
    server = ServingServer(config, manager)

    logger.info(f"MongoDB MCP Server listening on http://{host}:{port}")
    logger.info(f"Health check: http://{host}:{port}/health")
    logger.info(f"MCP SSE endpoint: http://{host}:{port}/sse")
    logger.info(f"MCP streamable HTTP endpoint: http://{host}:{port}/mcp")
    server.run()


async def serve_stdio(manager: TransportSessionManager) -> None:
    """Serve a single shared-policy connection over stdin/stdout, then shut down."""
    try:
        async with manager.connection("stdio", TransportPolicy.SHARED) as connection:
            server = create_protocol_server(connection)
            async with stdio_server() as (read_stream, write_stream):
                await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await manager.shutdown()


def run_stdio(manager: TransportSessionManager) -> None:
    logger.info("MongoDB MCP Server serving on stdio")
    anyio.run(serve_stdio, manager)
