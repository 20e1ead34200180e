"""
Unit assets.

A unit asset is the externally addressable resource bound 1:1 to an
OPC UA connection. Its name is the registry key and the first segment
of every HTTP path that targets it.
"""

from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from ..client.connection_manager import ConnectionManager
from ..config import ConnectionSettings
from ..errors import ConnectError, ReadError, ReadErrorKind
from ..logging import log_info, log_warn
from ..types.models import (
    BrowsedNode,
    NodeDescriptor,
    NodeReading,
    ResourceConfig,
    ServiceDefinition,
)

Cleanup = Callable[[], Awaitable[None]]


class UnitAsset:
    """
    Runtime resource backed by one OPC UA connection.

    Attributes:
        details: Free-form metadata from the configuration
        nodes: Node descriptors whose values the access service reports
        connection: Exclusively owned connection manager
        services: Services the asset offers
    """

    def __init__(
        self,
        config: ResourceConfig,
        connection: ConnectionManager,
        services: Optional[List[ServiceDefinition]] = None,
    ):
        self._name = config.name
        self._config = config
        self.details: Dict[str, List[str]] = config.details
        self.nodes: List[NodeDescriptor] = list(config.nodes)
        self.server_address = config.server_address
        self.connection = connection
        self.services: List[ServiceDefinition] = list(services or [])

    @property
    def name(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self._name!r}, state={self.connection.state.value})"

    async def browse(self) -> List[BrowsedNode]:
        """List the nodes the OPC UA server exposes."""
        return await self.connection.browse()

    async def read_values(self, node_id: Optional[str] = None) -> List[Union[NodeReading, ReadError]]:
        """
        Read the tracked nodes, or one node when node_id is given.

        A node that is missing or undecodable is reported in place of
        its reading; an unavailable server fails the whole read.

        Raises:
            ReadError: UNAVAILABLE for any node, or any failure of a single requested node
        """
        if node_id is not None:
            targets = [self._config.find_node(node_id) or NodeDescriptor(node_id=node_id)]
        else:
            targets = self.nodes

        results: List[Union[NodeReading, ReadError]] = []
        for node in targets:
            try:
                results.append(await self.connection.read(node.node_id, node.browse_name))
            except ReadError as e:
                if node_id is not None or e.kind == ReadErrorKind.UNAVAILABLE:
                    raise
                results.append(e)
        return results


async def new_unit_asset(
    config: ResourceConfig,
    settings: ConnectionSettings,
    services: Optional[List[ServiceDefinition]] = None,
) -> Tuple[UnitAsset, List[NodeDescriptor], Cleanup]:
    """
    Instantiate a unit asset and open its connection.

    The cleanup coroutine function is returned whether or not the
    connection succeeded, and must be awaited once at shutdown.

    Args:
        config: Parsed resource configuration
        settings: Connection timeouts and reconnect policy
        services: Services the asset offers

    Returns:
        (asset, tracked node descriptors, cleanup)
    """
    connection = ConnectionManager(config, settings)
    asset = UnitAsset(config, connection, services)

    released = False

    async def cleanup() -> None:
        nonlocal released
        if released:
            return
        released = True
        await connection.close()

    try:
        await connection.connect()
    except ConnectError as e:
        log_warn(f"Unit asset '{asset.name}' starts without a connection: {e}")
    else:
        log_info(f"Unit asset '{asset.name}' connected with {len(asset.nodes)} tracked nodes")

    return asset, list(asset.nodes), cleanup
