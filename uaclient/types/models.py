"""
Data models for the OPC UA client system.

This module defines the configuration-time descriptions of the OPC UA
servers and nodes the system exposes, and the records produced when
those nodes are browsed or read.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from ..endpoints import normalize_endpoint_url, validate_endpoint_format
from ..errors import ConfigError
from .values import TypedValue, ValueKind

# Keys of the parallel-list node list layout
NODE_ID_KEY = "Node_Id"
BROWSE_NAME_KEY = "Browse_Name"
REF_TYPE_KEY = "Ref_Type"


@dataclass(frozen=True)
class NodeDescriptor:
    """One OPC UA node of interest."""
    node_id: str
    browse_name: str = ""
    ref_type: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NodeDescriptor':
        """Creates a NodeDescriptor instance from a dictionary."""
        if not isinstance(data, dict):
            raise ConfigError(f"Node descriptor must be an object, got {type(data).__name__}")
        node_id = data.get("node_id")
        if not isinstance(node_id, str) or not node_id.strip():
            raise ConfigError("Node descriptor has an empty node_id")
        return cls(
            node_id=node_id.strip(),
            browse_name=str(data.get("browse_name", "")),
            ref_type=str(data.get("ref_type", "")),
        )

    @property
    def label(self) -> str:
        """Human readable name, falling back to the identifier."""
        return self.browse_name or self.node_id


def _parse_node_list(data: Any) -> List[NodeDescriptor]:
    """
    Parse a node list in either supported layout.

    - Parallel lists: {"Node_Id": [...], "Browse_Name": [...], "Ref_Type": [...]}
    - Structured list: [{"node_id": ..., "browse_name": ..., "ref_type": ...}]
    """
    if data is None:
        return []

    if isinstance(data, list):
        return [NodeDescriptor.from_dict(entry) for entry in data]

    if not isinstance(data, dict):
        raise ConfigError(f"node_list must be an object or a list, got {type(data).__name__}")

    node_ids = data.get(NODE_ID_KEY) or []
    browse_names = data.get(BROWSE_NAME_KEY) or []
    ref_types = data.get(REF_TYPE_KEY) or []

    for key, values in ((NODE_ID_KEY, node_ids), (BROWSE_NAME_KEY, browse_names),
                        (REF_TYPE_KEY, ref_types)):
        if not isinstance(values, list):
            raise ConfigError(f"node_list.{key} must be a list")

    for key, values in ((BROWSE_NAME_KEY, browse_names), (REF_TYPE_KEY, ref_types)):
        if values and len(values) != len(node_ids):
            raise ConfigError(
                f"node_list.{key} has {len(values)} entries, expected {len(node_ids)}"
            )

    nodes = []
    for i, node_id in enumerate(node_ids):
        nodes.append(NodeDescriptor.from_dict({
            "node_id": node_id,
            "browse_name": browse_names[i] if browse_names else "",
            "ref_type": ref_types[i] if ref_types else "",
        }))
    return nodes


def _parse_details(data: Any) -> Dict[str, List[str]]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("details must be an object mapping categories to lists of strings")
    details = {}
    for category, values in data.items():
        if isinstance(values, str):
            values = [values]
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ConfigError(f"details.{category} must be a list of strings")
        details[str(category)] = list(values)
    return details


@dataclass
class ResourceConfig:
    """
    Connection target of one unit asset.

    Attributes:
        name: Unique asset name, used as registry key and URL segment
        details: Free-form metadata, category to list of values
        server_address: OPC UA endpoint URI
        nodes: Ordered node descriptors to expose
    """
    name: str
    server_address: str
    details: Dict[str, List[str]] = field(default_factory=dict)
    nodes: List[NodeDescriptor] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResourceConfig':
        """
        Creates a ResourceConfig instance from a dictionary.

        Raises:
            ConfigError: If the block is malformed
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Resource configuration must be an object, got {type(data).__name__}")

        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ConfigError("Resource configuration has an empty name")
        name = name.strip()
        if "/" in name:
            raise ConfigError(f"Resource name '{name}' must not contain '/'")

        server_address = data.get("server_address", data.get("serverAddress"))
        if server_address is None:
            raise ConfigError(f"Missing server_address in resource '{name}'")
        if not validate_endpoint_format(server_address):
            raise ConfigError(f"Invalid OPC UA endpoint for resource '{name}': {server_address!r}")

        try:
            details = _parse_details(data.get("details"))
            nodes = _parse_node_list(data.get("node_list", data.get("nodeList")))
        except ConfigError as e:
            raise ConfigError(f"Resource '{name}': {e}") from e

        return cls(
            name=name,
            server_address=normalize_endpoint_url(server_address),
            details=details,
            nodes=nodes,
        )

    @classmethod
    def from_json(cls, raw: Union[bytes, str]) -> 'ResourceConfig':
        """Creates a ResourceConfig from one serialized configuration block."""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigError(f"Invalid JSON in resource configuration: {e}") from e
        return cls.from_dict(data)

    def find_node(self, node_id: str) -> Optional[NodeDescriptor]:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        return None


def check_unique_names(configs: List[ResourceConfig]) -> None:
    """
    Ensure every resource name is used once.

    Raises:
        ConfigError: On the first duplicate name
    """
    seen = set()
    for config in configs:
        if config.name in seen:
            raise ConfigError(
                f"Duplicate unit asset name '{config.name}'. Each resource must have a unique name."
            )
        seen.add(config.name)


@dataclass
class ServiceDefinition:
    """A service every unit asset offers."""
    definition: str
    subpath: str
    description: str
    details: Dict[str, List[str]] = field(default_factory=dict)
    reg_period: int = 30


@dataclass
class BrowsedNode:
    """A node discovered while walking a server's address space."""
    node_id: str
    browse_name: str
    node_class: str
    depth: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "browse_name": self.browse_name,
            "node_class": self.node_class,
        }


@dataclass
class NodeReading:
    """Successful read of one node."""
    node_id: str
    browse_name: str
    value: TypedValue
    source_timestamp: Optional[datetime] = None
    server_timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        stamp = self.source_timestamp or self.server_timestamp
        return {
            "node_id": self.node_id,
            "browse_name": self.browse_name,
            "kind": self.value.kind.value,
            "value": self.value.to_wire(),
            "timestamp": TypedValue(ValueKind.TIMESTAMP, stamp).to_wire() if stamp else None,
        }
