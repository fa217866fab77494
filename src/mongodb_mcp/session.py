"""Session: the state one tool pipeline runs against.

A Session binds together one MongoProvider (owned, never shared with another
Session), an optional default database fixed at construction, and the
identity of the client it serves.

Key Features:
    - ``ensure_connected()`` memoizes the in-flight connect attempt so that
      concurrent callers share a single connect
    - ``get_effective_database()`` is a pure fallback from the requested name
      to the session default
    - ``close()`` is idempotent and disconnects the provider at most once
"""

import asyncio
import logging
from uuid import uuid4

from .database.provider import MongoProvider
from .exceptions import BackendUnavailableError, DatabaseNotSpecifiedError
from .models import ClientIdentity

logger = logging.getLogger(__name__)


class Session:
    """Per-client or process-wide backend state.

    Attributes:
        provider: The owned backend connection provider
        default_database: Database used when a call names none
        identity: Transport and client details for logging
        session_id: Identifier used in log lines
    """

    def __init__(
        self,
        provider: MongoProvider,
        default_database: str | None = None,
        identity: ClientIdentity | None = None,
    ) -> None:
        self.provider = provider
        self.default_database = default_database or None
        self.identity = identity or ClientIdentity(transport="unknown")
        self.session_id = uuid4().hex[:12]
        self._connecting: asyncio.Task | None = None
        self._closed = False

    @classmethod
    def from_settings(cls, settings, identity: ClientIdentity | None = None) -> "Session":
        """Build a Session with a fresh provider from application settings."""
        return cls(
            MongoProvider.from_settings(settings),
            default_database=settings.mongodb_database,
            identity=identity,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def get_effective_database(self, requested: str | None) -> str:
        """Resolve the database a call operates on.

        Args:
            requested: Database named by the call, if any

        Returns:
            ``requested`` when non-empty, else the session default

        Raises:
            DatabaseNotSpecifiedError: If neither is present
        """
        if requested:
            return requested
        if self.default_database:
            return self.default_database
        raise DatabaseNotSpecifiedError(
            message=(
                "No database specified. Pass the 'database' argument or configure "
                "a default database (MONGODB_DATABASE)."
            ),
            details={"session_id": self.session_id},
        )

    async def ensure_connected(self) -> MongoProvider:
        """Connect the provider if needed and return it.

        All callers arriving while a connect is in flight await that same
        attempt. A failed attempt is forgotten so a later call can try again.

        Raises:
            BackendUnavailableError: If the connection cannot be established
        """
        if self._closed:
            raise BackendUnavailableError(
                message="Session is closed",
                details={"session_id": self.session_id},
            )
        if self.provider.is_connected:
            return self.provider

        if self._connecting is None:
            logger.debug(f"Session {self.session_id}: starting backend connect")
            self._connecting = asyncio.ensure_future(self._connect())
            self._connecting.add_done_callback(self._connect_finished)

        await asyncio.shield(self._connecting)
        return self.provider

    def _connect_finished(self, task: asyncio.Task) -> None:
        # Runs even when every waiter was cancelled
        if self._connecting is task:
            self._connecting = None
        if not task.cancelled():
            # Already logged by _connect; marks the exception as retrieved
            task.exception()

    async def _connect(self) -> None:
        try:
            await self.provider.connect()
        except Exception as e:
            logger.warning(f"Session {self.session_id}: backend connect failed: {e}")
            raise BackendUnavailableError(
                message=f"Failed to connect to MongoDB: {e}",
                details={"session_id": self.session_id, "error_type": type(e).__name__},
                original_exception=e,
            ) from e

    async def close(self) -> None:
        """Disconnect the provider. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        if self._connecting is not None and not self._connecting.done():
            self._connecting.cancel()
            try:
                await self._connecting
            except (asyncio.CancelledError, Exception) as e:
                logger.debug(f"Session {self.session_id}: pending connect abandoned ({e!r})")
        self._connecting = None

        await self.provider.disconnect()
        logger.info(f"Session {self.session_id} closed ({self.identity.transport})")

    def __repr__(self) -> str:
        return (
            f"Session(id={self.session_id!r}, transport={self.identity.transport!r}, "
            f"default_database={self.default_database!r})"
        )
