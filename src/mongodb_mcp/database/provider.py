"""MongoDB backend connection provider built on Motor's async client.

One provider owns one ``AsyncIOMotorClient`` and is owned by exactly one
Session. Tools never talk to MongoDB except through the per-operation
methods below.

Key Features:
    - Explicit connect/disconnect lifecycle with a ``ProviderState``
    - Connection is verified with an ``admin`` ping before it is considered live
    - Pool and timeout settings taken from ``Settings``
    - Thin per-operation coroutines (find, aggregate, rename, ...)

Example:
    >>> provider = MongoProvider.from_settings(settings)
    >>> await provider.connect()
    >>> names = await provider.list_collection_names("inventory")
    >>> await provider.disconnect()
"""

import logging
from enum import Enum
from typing import Any, Callable

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from ..exceptions import BackendUnavailableError

logger = logging.getLogger(__name__)


class ProviderState(str, Enum):
    """Connection state of a MongoProvider."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class MongoProvider:
    """Owns a single Motor client and exposes the backend operations tools use.

    ``connect()`` is not memoized here; the owning Session guarantees that
    concurrent callers share one attempt.

    Attributes:
        connection_string: MongoDB URI, credentials included when configured
        timeout_s: Connect and server selection timeout in seconds
        min_pool_size: Minimum connections kept in the pool
        max_pool_size: Maximum connections allowed in the pool
    """

    def __init__(
        self,
        connection_string: str,
        timeout_s: int = 30,
        min_pool_size: int = 0,
        max_pool_size: int = 50,
        client_factory: Callable[..., AsyncIOMotorClient] = AsyncIOMotorClient,
    ) -> None:
        self.connection_string = connection_string
        self.timeout_s = timeout_s
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._client_factory = client_factory
        self._client: AsyncIOMotorClient | None = None
        self._state = ProviderState.DISCONNECTED

    @classmethod
    def from_settings(cls, settings) -> "MongoProvider":
        """Build a provider from application settings."""
        return cls(
            settings.mongodb_connection_string,
            timeout_s=settings.mongodb_timeout,
            min_pool_size=settings.mongodb_min_pool_size,
            max_pool_size=settings.mongodb_max_pool_size,
        )

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ProviderState.CONNECTED

    async def connect(self) -> None:
        """Create the client and verify the server answers a ping.

        Raises:
            pymongo.errors.PyMongoError: If the server cannot be reached. The
                provider is left disconnected and may be connected again later.
        """
        if self._state is ProviderState.CONNECTED:
            logger.debug("Already connected to MongoDB")
            return

        self._state = ProviderState.CONNECTING
        logger.info("Connecting to MongoDB...")

        client = None
        try:
            client = self._client_factory(
                self.connection_string,
                serverSelectionTimeoutMS=self.timeout_s * 1000,
                connectTimeoutMS=self.timeout_s * 1000,
                minPoolSize=self.min_pool_size,
                maxPoolSize=self.max_pool_size,
                retryWrites=True,
                retryReads=True,
            )
            await client.admin.command("ping")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            if client is not None:
                client.close()
            self._state = ProviderState.DISCONNECTED
            raise

        self._client = client
        self._state = ProviderState.CONNECTED
        logger.info(f"✓ Connected to MongoDB (pool: {self.min_pool_size}-{self.max_pool_size})")

    async def disconnect(self) -> None:
        """Close the client and release all pooled connections."""
        if self._client is None:
            logger.debug("Not connected to MongoDB, nothing to disconnect")
            self._state = ProviderState.DISCONNECTED
            return

        logger.info("Closing MongoDB connections...")
        client, self._client = self._client, None
        self._state = ProviderState.DISCONNECTED
        client.close()
        logger.info("✓ MongoDB connections closed")

    @property
    def client(self) -> AsyncIOMotorClient:
        """The live Motor client.

        Raises:
            BackendUnavailableError: If ``connect()`` has not succeeded
        """
        if self._client is None:
            raise BackendUnavailableError(message="Not connected to MongoDB")
        return self._client

    def database(self, name: str) -> AsyncIOMotorDatabase:
        return self.client[name]

    # ========================================================================
    # METADATA OPERATIONS
    # ========================================================================

    async def list_databases(self) -> list[dict[str, Any]]:
        cursor = await self.client.list_databases()
        return await cursor.to_list(length=None)

    async def list_collection_names(self, database: str) -> list[str]:
        return await self.database(database).list_collection_names()

    async def list_indexes(self, database: str, collection: str) -> list[dict[str, Any]]:
        cursor = self.database(database)[collection].list_indexes()
        return await cursor.to_list(length=None)

    async def run_command(self, database: str, command: dict[str, Any]) -> dict[str, Any]:
        return await self.database(database).command(command)

    async def sample_documents(
        self, database: str, collection: str, size: int
    ) -> list[dict[str, Any]]:
        cursor = self.database(database)[collection].aggregate([{"$sample": {"size": size}}])
        return await cursor.to_list(length=size)

    # ========================================================================
    # READ OPERATIONS
    # ========================================================================

    async def find(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        cursor = self.database(database)[collection].find(filter or {}, projection)
        if sort:
            cursor = cursor.sort(list(sort.items()))
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def aggregate(
        self, database: str, collection: str, pipeline: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        cursor = self.database(database)[collection].aggregate(pipeline)
        return await cursor.to_list(length=None)

    async def count(
        self, database: str, collection: str, query: dict[str, Any] | None = None
    ) -> int:
        return await self.database(database)[collection].count_documents(query or {})

    # ========================================================================
    # WRITE OPERATIONS
    # ========================================================================

    async def insert_many(self, database: str, collection: str, documents: list[dict[str, Any]]):
        return await self.database(database)[collection].insert_many(documents)

    async def create_collection(self, database: str, collection: str) -> None:
        await self.database(database).create_collection(collection)

    async def create_index(
        self,
        database: str,
        collection: str,
        keys: dict[str, Any],
        name: str | None = None,
    ) -> str:
        kwargs = {"name": name} if name else {}
        return await self.database(database)[collection].create_index(list(keys.items()), **kwargs)

    async def update_many(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
        update: dict[str, Any],
        upsert: bool = False,
    ):
        return await self.database(database)[collection].update_many(filter, update, upsert=upsert)

    async def rename_collection(
        self, database: str, collection: str, new_name: str, drop_target: bool = False
    ) -> str:
        """Rename a collection and return the new collection name."""
        await self.database(database)[collection].rename(new_name, dropTarget=drop_target)
        return new_name

    async def delete_many(self, database: str, collection: str, filter: dict[str, Any]):
        return await self.database(database)[collection].delete_many(filter)

    async def drop_collection(self, database: str, collection: str) -> dict[str, Any]:
        return await self.database(database).drop_collection(collection)

    async def drop_database(self, database: str) -> dict[str, Any]:
        return await self.database(database).command("dropDatabase")
