"""Pytest configuration and shared fixtures for MongoDB MCP Server tests.

TESTING STRATEGY:
=================

Unit tests never touch a real MongoDB. The backend is represented by a
mocked ``MongoProvider`` whose coroutines are ``AsyncMock`` objects, so tests
can assert exactly which backend calls happened (and how many connects).

Test Organization:
------------------
tests/
├── unit/                      # Fast, isolated tests
│   ├── test_exceptions.py     # Exception hierarchy
│   ├── test_settings.py       # Configuration parsing and validation
│   ├── test_registry.py       # Tool registry and descriptors
│   ├── test_session.py        # Effective database and connect memoization
│   ├── test_pipeline.py       # Execution pipeline steps
│   ├── test_tools.py          # Tool bodies and error translators
│   ├── test_transport_manager.py
│   ├── test_http_app.py       # Starlette routes via TestClient
│   └── test_runner.py         # uvicorn signal handling
└── conftest.py                # This file - shared fixtures

Example Usage:
--------------
```python
@pytest.mark.asyncio
async def test_list_collections(session, mock_provider):
    pipeline = ToolPipeline(build_registry(), session)
    result = await pipeline.call("list-collections", {})
    mock_provider.list_collection_names.assert_awaited_once_with("app")
```
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.settings import Settings
from src.mongodb_mcp.database.provider import MongoProvider
from src.mongodb_mcp.models import ClientIdentity
from src.mongodb_mcp.session import Session
from src.mongodb_mcp.tools import build_registry
from src.mongodb_mcp.transport.manager import TransportSessionManager

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Register custom markers.

    ```bash
    pytest -m unit              # Only unit tests (fast)
    pytest -m integration       # Only tests needing a real MongoDB
    ```
    """
    config.addinivalue_line("markers", "unit: Fast unit tests with mocked dependencies")
    config.addinivalue_line("markers", "integration: Integration tests with real dependencies")
    config.addinivalue_line("markers", "slow: Tests that take more than 1 second")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath)

        if "unit" in test_path.parts:
            item.add_marker(pytest.mark.unit)
        elif "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# SETTINGS FIXTURES
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any local .env file."""
    return Settings(
        _env_file=None,
        mongodb_uri="mongodb://localhost:27017",
        mongodb_database="app",
        shutdown_grace_period=0.5,
    )


@pytest.fixture
def read_only_settings() -> Settings:
    return Settings(
        _env_file=None,
        mongodb_uri="mongodb://localhost:27017",
        mongodb_database="app",
        read_only_mode=True,
        shutdown_grace_period=0.5,
    )


# =============================================================================
# MOCK BACKEND FIXTURES
# =============================================================================


def make_mock_provider() -> MagicMock:
    """Build a mocked MongoProvider.

    ``connect()`` flips ``is_connected`` so the Session sees the same state
    transitions as with the real provider.
    """
    provider = MagicMock(spec=MongoProvider)
    provider.is_connected = False

    async def connect():
        provider.is_connected = True

    async def disconnect():
        provider.is_connected = False

    provider.connect = AsyncMock(side_effect=connect)
    provider.disconnect = AsyncMock(side_effect=disconnect)

    provider.list_databases = AsyncMock(
        return_value=[{"name": "app", "sizeOnDisk": 8192}, {"name": "admin", "sizeOnDisk": 4096}]
    )
    provider.list_collection_names = AsyncMock(return_value=["orders", "users"])
    provider.list_indexes = AsyncMock(return_value=[{"name": "_id_", "key": {"_id": 1}}])
    provider.run_command = AsyncMock(return_value={"ok": 1.0})
    provider.sample_documents = AsyncMock(return_value=[])
    provider.find = AsyncMock(return_value=[])
    provider.aggregate = AsyncMock(return_value=[])
    provider.count = AsyncMock(return_value=0)
    provider.insert_many = AsyncMock()
    provider.create_collection = AsyncMock()
    provider.create_index = AsyncMock(return_value="name_1")
    provider.update_many = AsyncMock()
    provider.rename_collection = AsyncMock(side_effect=lambda db, coll, new, drop_target=False: new)
    provider.delete_many = AsyncMock()
    provider.drop_collection = AsyncMock(return_value={"ok": 1.0})
    provider.drop_database = AsyncMock(return_value={"ok": 1.0})
    return provider


@pytest.fixture
def mock_motor_client() -> MagicMock:
    """Mocked Motor client whose admin ping succeeds."""
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1.0})
    return client


@pytest.fixture
def mock_provider() -> MagicMock:
    return make_mock_provider()


@pytest.fixture
def session(mock_provider) -> Session:
    """Session with default database "app" over the mocked provider."""
    return Session(mock_provider, default_database="app", identity=ClientIdentity("test"))


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def session_factory():
    """Session factory that records every Session it creates.

    The created sessions are available as ``factory.sessions``.
    """
    sessions: list[Session] = []

    def factory(identity: ClientIdentity) -> Session:
        created = Session(make_mock_provider(), default_database="app", identity=identity)
        sessions.append(created)
        return created

    factory.sessions = sessions
    return factory


@pytest.fixture
def manager(registry, test_settings, session_factory) -> TransportSessionManager:
    return TransportSessionManager(registry, test_settings, session_factory=session_factory)
