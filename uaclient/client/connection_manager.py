"""
OPC UA connection manager.

This module owns the lifetime of one asyncua client session and
provides browse and read operations over it. Every session call is
serialized through a per-connection lock and bounded by the request
timeout. Transport failures trigger a bounded reconnect with
exponential backoff; once reconnection is exhausted the connection is
failed for good and every operation reports the server as unavailable.
"""

import asyncio
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

from asyncua import Client, ua
from asyncua.ua.uaerrors import UaError, UaStatusCodeError, UaStringParsingError

from ..config import ConnectionSettings
from ..errors import BrowseError, ConnectError, ReadError, ReadErrorKind
from ..logging import log_debug, log_info, log_warn
from ..types.models import BrowsedNode, NodeReading, ResourceConfig
from ..types.values import ValueConverter


class ConnectionState(Enum):
    """Lifecycle states of a connection."""
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAULTED = "faulted"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


# Status codes meaning the node id does not exist on the server
NOT_FOUND_CODES = frozenset({
    ua.StatusCodes.BadNodeIdUnknown,
    ua.StatusCodes.BadNodeIdInvalid,
})

# Status codes meaning the session or its transport is gone
TRANSPORT_CODES = frozenset({
    ua.StatusCodes.BadSessionClosed,
    ua.StatusCodes.BadSessionIdInvalid,
    ua.StatusCodes.BadSessionNotActivated,
    ua.StatusCodes.BadSecureChannelClosed,
    ua.StatusCodes.BadSecureChannelIdInvalid,
    ua.StatusCodes.BadConnectionClosed,
    ua.StatusCodes.BadServerNotConnected,
    ua.StatusCodes.BadNotConnected,
    ua.StatusCodes.BadCommunicationError,
    ua.StatusCodes.BadTimeout,
})

TRANSPORT_ERRORS = (ConnectionError, OSError, asyncio.TimeoutError)

SessionOp = Callable[[Client], Awaitable[Any]]


class ConnectionManager:
    """
    Manages one OPC UA session.

    State machine:
        UNCONNECTED -> CONNECTING -> CONNECTED -> CLOSING -> CLOSED
        CONNECTED -> FAULTED -> CONNECTING (transport failure during an operation)
        CONNECTING -> FAULTED (connection attempt cancelled, retried by the next operation)
        CONNECTING -> FAILED (reconnect attempts exhausted, terminal)
    """

    def __init__(self, config: ResourceConfig, settings: ConnectionSettings):
        """
        Initialize connection manager.

        Args:
            config: Resource whose server this connection talks to
            settings: Timeouts and reconnect policy
        """
        self.config = config
        self.settings = settings

        self._client: Optional[Client] = None
        self._state = ConnectionState.UNCONNECTED
        self._lock = asyncio.Lock()
        self._close_requested = False
        self.last_error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    async def connect(self) -> None:
        """
        Open the session.

        No-op when already connected.

        Raises:
            ConnectError: If the connection is closed, failed, or every attempt failed
        """
        async with self._lock:
            await self._connect_locked()

    async def browse(self) -> List[BrowsedNode]:
        """
        Walk the address space and collect every node found.

        Raises:
            BrowseError: If the session is not connected or the server is unavailable
        """
        return [node async for node in self.walk()]

    async def walk(self) -> AsyncIterator[BrowsedNode]:
        """
        Lazily walk the address space below the configured root.

        Namespace 0 (the OPC UA standard nodes) is skipped. Every call
        starts a fresh walk.

        Raises:
            BrowseError: If the session is not connected or the server is unavailable
        """
        if self._state not in (ConnectionState.CONNECTED, ConnectionState.FAULTED):
            raise BrowseError(f"Connection to {self.name} is {self._state.value}")

        root_id = await self._browse_call(self._root_node_id)
        async for node in self._walk_children(root_id, 1):
            yield node

    async def read(self, node_id: str, browse_name: str = "") -> NodeReading:
        """
        Read the current value of one node.

        Args:
            node_id: Node identifier, e.g. "ns=2;i=3"
            browse_name: Name reported with the reading

        Raises:
            ReadError: NOT_FOUND, UNAVAILABLE or TYPE_MISMATCH
        """
        def unavailable(reason: str) -> ReadError:
            return ReadError(ReadErrorKind.UNAVAILABLE, node_id, reason)

        async def read_data_value(client: Client) -> ua.DataValue:
            return await client.get_node(node_id).read_data_value()

        try:
            data_value = await self._call(read_data_value, unavailable)
        except UaStringParsingError:
            raise ReadError(ReadErrorKind.NOT_FOUND, node_id, "invalid node id")
        except UaStatusCodeError as e:
            if e.code in NOT_FOUND_CODES:
                raise ReadError(ReadErrorKind.NOT_FOUND, node_id, "unknown node")
            raise ReadError(ReadErrorKind.TYPE_MISMATCH, node_id, "value could not be read")

        try:
            value = ValueConverter.from_variant(data_value.Value)
        except ValueError as e:
            raise ReadError(ReadErrorKind.TYPE_MISMATCH, node_id, str(e))

        return NodeReading(
            node_id=node_id,
            browse_name=browse_name,
            value=value,
            source_timestamp=data_value.SourceTimestamp,
            server_timestamp=data_value.ServerTimestamp,
        )

    async def close(self) -> None:
        """
        Close the session.

        Idempotent; disconnect errors are logged, not raised.
        """
        self._close_requested = True
        async with self._lock:
            if self._state in (ConnectionState.CLOSED, ConnectionState.FAILED):
                return

            client, self._client = self._client, None
            if client is None:
                self._state = ConnectionState.CLOSED
                return

            self._state = ConnectionState.CLOSING
            try:
                await asyncio.wait_for(client.disconnect(), self.settings.request_timeout)
            except (*TRANSPORT_ERRORS, UaError) as e:
                log_warn(f"[{self.name}] Error while disconnecting: {e!r}")
                self._discard(client)
            self._state = ConnectionState.CLOSED
            log_info(f"[{self.name}] Connection closed")

    def status(self) -> dict:
        return {
            "server_address": self.config.server_address,
            "state": self._state.value,
            "last_error": self.last_error,
        }

    async def _connect_locked(self) -> None:
        if self._state == ConnectionState.CONNECTED:
            return
        if self._state in (ConnectionState.CLOSING, ConnectionState.CLOSED) or self._close_requested:
            raise ConnectError(f"Connection to {self.name} is closed")
        if self._state == ConnectionState.FAILED:
            raise ConnectError(f"Connection to {self.name} has failed permanently")

        address = self.config.server_address
        attempts = self.settings.reconnect_attempts
        client: Optional[Client] = None
        try:
            for attempt in range(attempts):
                self._state = ConnectionState.CONNECTING
                client = Client(url=address, timeout=self.settings.request_timeout)
                try:
                    await asyncio.wait_for(client.connect(), self.settings.connect_timeout)
                except (*TRANSPORT_ERRORS, UaError) as e:
                    self._discard(client)
                    client = None
                    self.last_error = _describe(e)
                    log_warn(
                        f"[{self.name}] Connection attempt {attempt + 1}/{attempts} "
                        f"to {address} failed: {self.last_error}"
                    )
                    if attempt + 1 < attempts and not self._close_requested:
                        await asyncio.sleep(self.settings.backoff_delay(attempt))
                    if self._close_requested:
                        break
                    continue

                self._client = client
                self._state = ConnectionState.CONNECTED
                self.last_error = None
                log_info(f"[{self.name}] Connected to {address}")
                return
        except asyncio.CancelledError:
            # Leave the connection recoverable; the next operation reconnects
            if client is not None:
                self._discard(client)
            self._state = ConnectionState.FAULTED
            self.last_error = "connection attempt cancelled"
            log_warn(f"[{self.name}] Connection to {address} cancelled while connecting")
            raise

        self._state = ConnectionState.FAILED
        raise ConnectError(f"Could not connect to {address}: {self.last_error}")

    async def _recover_locked(self) -> bool:
        """Replace a faulted session. Returns True when connected again."""
        self._state = ConnectionState.FAULTED
        client, self._client = self._client, None
        if client is not None:
            self._discard(client)
        if self._close_requested:
            return False
        try:
            await self._connect_locked()
        except ConnectError as e:
            log_warn(f"[{self.name}] Giving up on reconnection: {e}")
            return False
        return True

    async def _call(self, op: SessionOp, unavailable: Callable[[str], Exception]) -> Any:
        """
        Run one session operation under the lock.

        The operation receives the current client so it can be retried
        once on a fresh session after a transport failure. A connection
        left faulted by an interrupted reconnect is recovered first.
        """
        async with self._lock:
            for attempt in range(2):
                if self._state == ConnectionState.FAULTED and not await self._recover_locked():
                    raise unavailable("OPC UA server unavailable")
                if self._state != ConnectionState.CONNECTED:
                    raise unavailable("OPC UA server unavailable")
                try:
                    return await asyncio.wait_for(op(self._client), self.settings.request_timeout)
                except UaStatusCodeError as e:
                    if e.code not in TRANSPORT_CODES:
                        raise
                    failure = e
                except TRANSPORT_ERRORS as e:
                    failure = e

                self.last_error = _describe(failure)
                log_warn(f"[{self.name}] Transport failure: {self.last_error}")
                recovered = await self._recover_locked()
                if not recovered or attempt == 1:
                    raise unavailable("OPC UA server unavailable")

    async def _root_node_id(self, client: Client) -> ua.NodeId:
        if self.settings.root_node:
            return client.get_node(self.settings.root_node).nodeid
        return client.nodes.objects.nodeid

    async def _walk_children(self, parent_id: ua.NodeId, depth: int) -> AsyncIterator[BrowsedNode]:
        async def get_children(client: Client):
            return await client.get_node(parent_id).get_children()

        children = await self._browse_call(get_children)
        for child in children:
            child_id = child.nodeid
            if child_id.NamespaceIndex == 0:
                continue

            async def describe(client: Client):
                node = client.get_node(child_id)
                return await node.read_browse_name(), await node.read_node_class()

            browse_name, node_class = await self._browse_call(describe)
            yield BrowsedNode(
                node_id=child_id.to_string(),
                browse_name=browse_name.Name,
                node_class=node_class.name,
                depth=depth,
            )
            if depth < self.settings.browse_max_depth:
                async for node in self._walk_children(child_id, depth + 1):
                    yield node

    async def _browse_call(self, op: SessionOp) -> Any:
        try:
            return await self._call(op, BrowseError)
        except UaError as e:
            log_debug(f"[{self.name}] Browse failed: {e!r}")
            raise BrowseError(f"Browsing {self.name} failed") from e

    @staticmethod
    def _discard(client: Client) -> None:
        try:
            client.disconnect_socket()
        except Exception as e:
            log_debug(f"Ignoring socket teardown error: {e!r}")


def _describe(error: BaseException) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "timed out"
    return str(error) or type(error).__name__
