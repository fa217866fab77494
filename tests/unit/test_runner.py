"""Unit tests for the uvicorn server's signal handling.

Test Coverage:
--------------
1. A termination signal starts the manager shutdown once
2. A repeated signal does not start a second shutdown
"""

import asyncio
import signal

import pytest
import uvicorn

from src.mongodb_mcp.transport.http_app import create_http_app
from src.mongodb_mcp.transport.runner import ServingServer


@pytest.fixture
def serving_server(manager):
    return ServingServer(uvicorn.Config(app=create_http_app(manager)), manager)


class TestSignalHandling:
    @pytest.mark.asyncio
    async def test_sigterm_shuts_down_the_manager_once(
        self, serving_server, manager, session_factory
    ):
        serving_server._loop = asyncio.get_running_loop()

        serving_server.handle_exit(signal.SIGTERM, None)
        serving_server.handle_exit(signal.SIGTERM, None)
        await asyncio.sleep(0)
        first_task = serving_server._shutdown_task
        await first_task
        await asyncio.sleep(0)

        assert serving_server.should_exit is True
        assert serving_server._shutdown_task is first_task
        assert manager.accepting is False
        session_factory.sessions[0].provider.disconnect.assert_awaited_once()

    def test_signal_before_serving_only_flags_exit(self, serving_server, session_factory):
        serving_server.handle_exit(signal.SIGTERM, None)

        assert serving_server.should_exit is True
        assert serving_server._shutdown_task is None
        session_factory.sessions[0].provider.disconnect.assert_not_awaited()
