"""Unit tests for the HTTP application and the MCP protocol front-end.

Test Coverage:
--------------
1. /health and /info routes (no secrets in /info)
2. REST tool endpoint: results, error results, bad bodies, shutdown
3. Lifespan shutdown closes the shared Session
4. MCP tools/list and tools/call handlers bound to a connection
5. Per-connection call ordering and protocol-level internal errors
"""

import asyncio
from unittest.mock import AsyncMock

import pymongo.errors
import pytest
from mcp import types
from mcp.shared.exceptions import McpError
from starlette.testclient import TestClient

from src.config.settings import Settings
from src.mongodb_mcp.models import OperationType, ToolResult
from src.mongodb_mcp.server import create_protocol_server
from src.mongodb_mcp.tools.base_tool import ToolDescriptor
from src.mongodb_mcp.tools.models import NoArgs
from src.mongodb_mcp.tools.registry import ToolRegistry
from src.mongodb_mcp.transport.http_app import create_http_app
from src.mongodb_mcp.transport.manager import TransportPolicy, TransportSessionManager


@pytest.fixture
def client(manager):
    with TestClient(create_http_app(manager)) as test_client:
        yield test_client


# =============================================================================
# INFO ROUTES
# =============================================================================


class TestInfoRoutes:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_info_hides_credentials(self, registry, session_factory):
        settings = Settings(
            _env_file=None,
            mongodb_user="admin",
            mongodb_password="s3cret-pass",
            disabled_tools="drop-database",
        )
        manager = TransportSessionManager(registry, settings, session_factory=session_factory)

        with TestClient(create_http_app(manager)) as client:
            response = client.get("/info")

        body = response.json()
        assert body["config"]["hasCredentials"] is True
        assert body["config"]["disabledTools"] == ["drop-database"]
        assert "s3cret-pass" not in response.text
        assert "admin" not in response.text


# =============================================================================
# REST TOOL ENDPOINT
# =============================================================================


class TestToolEndpoint:
    def test_tool_call_returns_result(self, client, session_factory):
        response = client.post("/tools/list-collections", json={"arguments": {"database": "shop"}})

        assert response.status_code == 200
        body = response.json()
        assert body["is_error"] is False
        assert [block["text"] for block in body["content"]] == ['Name: "orders"', 'Name: "users"']
        dedicated = session_factory.sessions[-1]
        dedicated.provider.list_collection_names.assert_awaited_once_with("shop")
        assert dedicated.closed is True

    def test_unknown_tool_is_error_result(self, client):
        response = client.post("/tools/not-a-tool", json={})

        assert response.status_code == 200
        body = response.json()
        assert body["is_error"] is True
        assert body["error_kind"] == "UnknownTool"

    def test_invalid_json_body(self, client):
        response = client.post(
            "/tools/find", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400

    def test_non_object_body(self, client):
        response = client.post("/tools/find", json=[1, 2, 3])

        assert response.status_code == 400

    def test_lifespan_shutdown_closes_shared_session(self, manager, session_factory):
        with TestClient(create_http_app(manager)):
            pass

        assert manager.accepting is False
        session_factory.sessions[0].provider.disconnect.assert_awaited_once()

    def test_requests_after_shutdown_are_refused(self, manager):
        test_client = TestClient(create_http_app(manager))
        with test_client:
            pass

        response = test_client.post("/tools/list-collections", json={})

        assert response.status_code == 503
        assert response.json()["error_code"] == "SERVER_SHUTTING_DOWN"


# =============================================================================
# MCP PROTOCOL FRONT-END
# =============================================================================


class TestProtocolServer:
    @pytest.mark.asyncio
    async def test_list_tools_uses_registry_order(self, manager, registry):
        connection = manager.open_connection("sse", TransportPolicy.SHARED)
        server = create_protocol_server(connection)

        handler = server.request_handlers[types.ListToolsRequest]
        response = await handler(types.ListToolsRequest(method="tools/list"))

        assert [tool.name for tool in response.root.tools] == registry.names()

    @pytest.mark.asyncio
    async def test_call_tool_success_and_error(self, manager):
        async with manager.connection("sse", TransportPolicy.SHARED) as connection:
            server = create_protocol_server(connection)
            handler = server.request_handlers[types.CallToolRequest]

            ok = await handler(
                types.CallToolRequest(
                    method="tools/call",
                    params=types.CallToolRequestParams(name="list-collections", arguments={}),
                )
            )
            failed = await handler(
                types.CallToolRequest(
                    method="tools/call",
                    params=types.CallToolRequestParams(name="drop-everything", arguments={}),
                )
            )

        assert ok.root.isError is False
        assert [block.text for block in ok.root.content] == ['Name: "orders"', 'Name: "users"']
        assert failed.root.isError is True
        assert "drop-everything" in failed.root.content[0].text

    @pytest.mark.asyncio
    async def test_translated_error_is_not_a_failed_call(self, manager, session_factory):
        shared_provider = session_factory.sessions[0].provider
        shared_provider.rename_collection.side_effect = pymongo.errors.OperationFailure(
            "target namespace exists", code=48, details={"codeName": "NamespaceExists"}
        )

        async with manager.connection("sse", TransportPolicy.SHARED) as connection:
            handler = create_protocol_server(connection).request_handlers[types.CallToolRequest]
            response = await handler(
                types.CallToolRequest(
                    method="tools/call",
                    params=types.CallToolRequestParams(
                        name="rename-collection",
                        arguments={"collection": "orders", "newName": "archive"},
                    ),
                )
            )

        assert response.root.isError is False
        assert '"dropTarget"' in response.root.content[0].text

    @pytest.mark.asyncio
    async def test_internal_error_is_a_protocol_error(self, test_settings, session_factory):
        def broken_translator(error, args, database):
            raise RuntimeError("translator broke")

        registry = ToolRegistry(
            [
                ToolDescriptor(
                    name="lookup",
                    description="lookup",
                    args_model=NoArgs,
                    operation_type=OperationType.READ,
                    execute=AsyncMock(side_effect=ValueError("boom")),
                    translate_error=broken_translator,
                )
            ]
        )
        manager = TransportSessionManager(registry, test_settings, session_factory=session_factory)

        async with manager.connection("sse", TransportPolicy.SHARED) as connection:
            handler = create_protocol_server(connection).request_handlers[types.CallToolRequest]
            with pytest.raises(McpError) as exc_info:
                await handler(
                    types.CallToolRequest(
                        method="tools/call",
                        params=types.CallToolRequestParams(name="lookup", arguments={}),
                    )
                )

        assert exc_info.value.error.code == types.INTERNAL_ERROR
        assert exc_info.value.error.message == "Internal error while running lookup"
        assert "translator broke" not in exc_info.value.error.message

    @pytest.mark.asyncio
    async def test_calls_on_one_connection_complete_in_arrival_order(
        self, test_settings, session_factory
    ):
        events = []

        async def slow(args, database, session):
            events.append("slow-start")
            await asyncio.sleep(0.05)
            events.append("slow-end")
            return ToolResult.text("slow")

        async def fast(args, database, session):
            events.append("fast")
            return ToolResult.text("fast")

        registry = ToolRegistry(
            [
                ToolDescriptor("slow", "slow", NoArgs, OperationType.READ, slow),
                ToolDescriptor("fast", "fast", NoArgs, OperationType.READ, fast),
            ]
        )
        manager = TransportSessionManager(registry, test_settings, session_factory=session_factory)

        def request(name):
            return types.CallToolRequest(
                method="tools/call", params=types.CallToolRequestParams(name=name, arguments={})
            )

        async with manager.connection("stdio", TransportPolicy.SHARED) as connection:
            handler = create_protocol_server(connection).request_handlers[types.CallToolRequest]
            first = asyncio.create_task(handler(request("slow")))
            second = asyncio.create_task(handler(request("fast")))
            responses = await asyncio.gather(first, second)

        assert events == ["slow-start", "slow-end", "fast"]
        assert [r.root.content[0].text for r in responses] == ["slow", "fast"]
