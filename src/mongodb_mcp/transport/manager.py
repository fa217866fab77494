"""Transport session manager: connection lifecycle and graceful shutdown.

Bridges client-facing transports to Sessions and pipelines under two
policies:

    SHARED       One Session (and one MongoProvider) created at startup and
                 reused by every connection. Used for SSE and stdio. Each
                 connection still gets its own protocol front-end.
    PER_REQUEST  A brand-new Session and pipeline for every inbound request,
                 discarded after the response. Used for stateless
                 streamable-HTTP and the REST tool endpoint.

Connection state machine:
    accepted -> bound -> serving -> closing -> closed

``shutdown()`` stops admitting connections, moves every open connection to
closing, waits up to the grace period for in-flight tool calls, cancels what
is left, and finally closes the shared Session exactly once.

Example:
    >>> manager = TransportSessionManager(build_registry(), settings)
    >>> async with manager.connection("sse", TransportPolicy.SHARED) as conn:
    ...     result = await conn.call("list-collections", {"database": "inventory"})
    >>> await manager.shutdown()
"""

import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Callable
from uuid import uuid4

import anyio

from ..exceptions import InternalError, ServerShuttingDownError
from ..models import ClientIdentity, ToolResult
from ..pipeline import ToolPipeline
from ..session import Session
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

SessionFactory = Callable[[ClientIdentity], Session]


class TransportPolicy(str, Enum):
    """Whether connections share one Session or get their own."""

    SHARED = "shared"
    PER_REQUEST = "per_request"


class ConnectionState(str, Enum):
    ACCEPTED = "accepted"
    BOUND = "bound"
    SERVING = "serving"
    CLOSING = "closing"
    CLOSED = "closed"


# A connection that never started serving may still be closed by shutdown
_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.ACCEPTED: {ConnectionState.BOUND},
    ConnectionState.BOUND: {ConnectionState.SERVING, ConnectionState.CLOSING},
    ConnectionState.SERVING: {ConnectionState.CLOSING},
    ConnectionState.CLOSING: {ConnectionState.CLOSED},
    ConnectionState.CLOSED: set(),
}


class ClientConnection:
    """One live client channel and the Session/pipeline it is bound to.

    Attributes:
        connection_id: Identifier used in log lines
        transport: Transport kind, e.g. "sse", "streamable-http", "stdio"
        policy: Session sharing policy
        session: Shared or dedicated Session
        pipeline: Pipeline all calls on this connection go through
    """

    def __init__(
        self,
        transport: str,
        policy: TransportPolicy,
        session: Session,
        pipeline: ToolPipeline,
    ) -> None:
        self.connection_id = uuid4().hex[:12]
        self.transport = transport
        self.policy = policy
        self.session = session
        self.pipeline = pipeline
        self.state = ConnectionState.ACCEPTED
        self._in_flight = 0
        self._idle: anyio.Event | None = None
        self._closed: anyio.Event | None = None
        self._cancel_scope: anyio.CancelScope | None = None
        self._call_lock: anyio.Lock | None = None

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def is_managed(self) -> bool:
        """Whether the connection runs inside ``TransportSessionManager.connection()``."""
        return self._cancel_scope is not None

    def transition(self, new_state: ConnectionState) -> None:
        """Move to ``new_state``.

        Raises:
            InternalError: If the transition is not part of the state machine
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise InternalError(
                message=(
                    f"Invalid connection state transition "
                    f"{self.state.value} -> {new_state.value}"
                ),
                details={"connection_id": self.connection_id, "transport": self.transport},
            )
        logger.debug(f"Connection {self.connection_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        if new_state is ConnectionState.CLOSED and self._closed is not None:
            self._closed.set()

    @asynccontextmanager
    async def track_call(self) -> AsyncIterator[None]:
        """Count a tool call as in flight for the duration of the block.

        Raises:
            ServerShuttingDownError: If the connection is no longer serving
        """
        if self.state is not ConnectionState.SERVING:
            raise ServerShuttingDownError(
                message="Connection is closing, no new tool calls are accepted",
                details={"connection_id": self.connection_id, "state": self.state.value},
            )
        if self._in_flight == 0:
            self._idle = anyio.Event()
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1
            if self._in_flight == 0 and self._idle is not None:
                self._idle.set()

    async def call(self, tool_name: str, arguments: dict[str, Any] | None) -> ToolResult:
        """Run one tool call through this connection's pipeline.

        Calls on one connection run one at a time, in the order they arrive.
        A call waiting its turn already counts as in flight.
        """
        if self._call_lock is None:
            self._call_lock = anyio.Lock()
        async with self.track_call():
            async with self._call_lock:
                return await self.pipeline.call(tool_name, arguments)

    async def wait_idle(self) -> None:
        """Return once no tool call is in flight."""
        if self._in_flight and self._idle is not None:
            await self._idle.wait()

    async def wait_closed(self) -> None:
        if self.state is ConnectionState.CLOSED or self._closed is None:
            return
        await self._closed.wait()

    def cancel(self) -> None:
        """Cancel whatever the connection is serving."""
        if self._cancel_scope is not None:
            self._cancel_scope.cancel()

    def __repr__(self) -> str:
        return (
            f"ClientConnection(id={self.connection_id!r}, transport={self.transport!r}, "
            f"policy={self.policy.value!r}, state={self.state.value!r})"
        )


class TransportSessionManager:
    """Admits client connections and owns their teardown.

    The shared Session and pipeline are built once, here, and handed to every
    SHARED connection by reference.

    Attributes:
        registry: Active tool registry used by every pipeline
        settings: Application settings
        grace_period: Seconds to wait for in-flight calls when closing
        shared_session: Session reused by SHARED connections
        shared_pipeline: Pipeline bound to the shared Session
    """

    def __init__(
        self,
        registry: ToolRegistry,
        settings,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self.grace_period = settings.shutdown_grace_period
        self._session_factory = session_factory or (
            lambda identity: Session.from_settings(settings, identity)
        )
        self.shared_session = self._session_factory(
            ClientIdentity(transport="shared", has_credentials=settings.has_credentials)
        )
        self.shared_pipeline = self._make_pipeline(self.shared_session)
        self._connections: dict[str, ClientConnection] = {}
        self._accepting = True
        self._shutdown_done: anyio.Event | None = None

    def _make_pipeline(self, session: Session) -> ToolPipeline:
        return ToolPipeline.from_settings(self.registry, session, self.settings)

    @property
    def accepting(self) -> bool:
        return self._accepting

    @property
    def connections(self) -> list[ClientConnection]:
        """Connections that have not reached the closed state."""
        return list(self._connections.values())

    # ========================================================================
    # CONNECTION LIFECYCLE
    # ========================================================================

    def open_connection(
        self,
        transport: str,
        policy: TransportPolicy,
        client: str | None = None,
        remote_address: str | None = None,
    ) -> ClientConnection:
        """Admit a connection and bind it to a Session (accepted -> bound).

        Raises:
            ServerShuttingDownError: If shutdown has begun
        """
        if not self._accepting:
            raise ServerShuttingDownError(
                message="Server is shutting down, not accepting new connections",
                details={"transport": transport},
            )

        if policy is TransportPolicy.SHARED:
            session, pipeline = self.shared_session, self.shared_pipeline
        else:
            identity = ClientIdentity(
                transport=transport,
                client=client,
                remote_address=remote_address,
                has_credentials=self.settings.has_credentials,
            )
            session = self._session_factory(identity)
            pipeline = self._make_pipeline(session)

        connection = ClientConnection(transport, policy, session, pipeline)
        connection.transition(ConnectionState.BOUND)
        self._connections[connection.connection_id] = connection
        logger.info(
            f"Accepted {transport} connection {connection.connection_id} "
            f"({policy.value}, session {session.session_id})"
        )
        return connection

    @asynccontextmanager
    async def connection(
        self,
        transport: str,
        policy: TransportPolicy,
        client: str | None = None,
        remote_address: str | None = None,
    ) -> AsyncIterator[ClientConnection]:
        """Serve one connection for the duration of the block.

        The block runs in a cancel scope that ``shutdown()`` may cancel; the
        connection is closed on any exit, including errors and cancellation.
        """
        connection = self.open_connection(transport, policy, client, remote_address)
        connection._closed = anyio.Event()
        try:
            with anyio.CancelScope() as scope:
                connection._cancel_scope = scope
                connection.transition(ConnectionState.SERVING)
                yield connection
        finally:
            await self.close_connection(connection)

    async def close_connection(self, connection: ClientConnection) -> None:
        """Close a connection (-> closing -> closed) and release its resources.

        Waits for in-flight calls up to the grace period. Dedicated Sessions
        are closed here; the shared Session is only closed by ``shutdown()``.
        """
        with anyio.CancelScope(shield=True):
            if connection.state in (ConnectionState.BOUND, ConnectionState.SERVING):
                connection.transition(ConnectionState.CLOSING)
            if connection.state is not ConnectionState.CLOSING:
                return

            with anyio.move_on_after(self.grace_period) as wait_scope:
                await connection.wait_idle()
            if wait_scope.cancelled_caught:
                logger.warning(
                    f"Connection {connection.connection_id}: {connection.in_flight} call(s) "
                    f"still running after {self.grace_period}s grace period"
                )

            connection.transition(ConnectionState.CLOSED)
            self._connections.pop(connection.connection_id, None)

            if connection.policy is TransportPolicy.PER_REQUEST:
                try:
                    await connection.session.close()
                except Exception as e:
                    logger.error(
                        f"Error closing session for connection {connection.connection_id}: {e}",
                        exc_info=True,
                    )
            logger.info(f"Closed {connection.transport} connection {connection.connection_id}")

    # ========================================================================
    # SHUTDOWN
    # ========================================================================

    async def shutdown(self) -> None:
        """Close every connection, then the shared Session.

        Idempotent: later or concurrent callers wait for the first run to
        finish. Errors in one step are logged and do not prevent the
        remaining steps.
        """
        if self._shutdown_done is not None:
            await self._shutdown_done.wait()
            return
        self._shutdown_done = anyio.Event()
        self._accepting = False

        try:
            with anyio.CancelScope(shield=True):
                await self._shutdown_connections()
                try:
                    await self.shared_session.close()
                except Exception as e:
                    logger.error(f"Error closing shared session: {e}", exc_info=True)
            logger.info("✓ Transport session manager shut down")
        finally:
            self._shutdown_done.set()

    async def _shutdown_connections(self) -> None:
        connections = self.connections
        logger.info(f"Shutting down {len(connections)} open connection(s)...")

        for connection in connections:
            if connection.state in (ConnectionState.BOUND, ConnectionState.SERVING):
                connection.transition(ConnectionState.CLOSING)

        with anyio.move_on_after(self.grace_period) as wait_scope:
            for connection in connections:
                await connection.wait_idle()
        if wait_scope.cancelled_caught:
            logger.warning(f"Grace period of {self.grace_period}s elapsed with calls in flight")

        for connection in connections:
            if connection.is_managed:
                connection.cancel()
            else:
                await self.close_connection(connection)

        with anyio.move_on_after(self.grace_period):
            for connection in connections:
                await connection.wait_closed()

        remaining = [c.connection_id for c in connections if c.state is not ConnectionState.CLOSED]
        if remaining:
            logger.error(f"Connections did not close in time: {', '.join(remaining)}")
