"""
Response bodies for the HTTP services.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

from markupsafe import escape

from ..errors import ReadError
from ..types.models import BrowsedNode, NodeReading, ServiceDefinition

PAYLOAD_VERSION = "SignalA_v1.0"


def render_browse(asset_name: str, server_address: str, nodes: List[BrowsedNode]) -> str:
    """Human readable listing of the nodes an OPC UA server exposes."""
    rows = []
    for node in nodes:
        indent = "&nbsp;&nbsp;" * max(node.depth - 1, 0)
        rows.append(
            f"<li>{indent}<b>{escape(node.browse_name)}</b> "
            f"[{escape(node.node_class)}] <code>{escape(node.node_id)}</code></li>"
        )
    body = "\n".join(rows) if rows else "<li>No nodes found</li>"
    return (
        "<!DOCTYPE html>\n<html><head><meta charset=\"utf-8\">"
        f"<title>{escape(asset_name)} nodes</title></head><body>\n"
        f"<h1>Nodes of {escape(asset_name)}</h1>\n"
        f"<p>OPC UA server: {escape(server_address)} ({len(nodes)} nodes)</p>\n"
        f"<ul>\n{body}\n</ul>\n</body></html>\n"
    )


def access_payload(asset_name: str, results: Iterable[Union[NodeReading, ReadError]]) -> dict:
    """Structured value payload of the access service."""
    values = []
    for result in results:
        if isinstance(result, ReadError):
            values.append({"node_id": result.node_id, "error": result.reason})
        else:
            values.append(result.to_dict())
    return {
        "asset": asset_name,
        "values": values,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": PAYLOAD_VERSION,
    }


def _render_details(details: Dict[str, List[str]]) -> str:
    if not details:
        return ""
    items = "".join(
        f"<li>{escape(category)}: {escape(', '.join(values))}</li>"
        for category, values in details.items()
    )
    return f"<ul class=\"details\">{items}</ul>"


def _render_asset(asset) -> str:
    status = asset.connection.status()
    links = " ".join(
        f"<a href=\"/{escape(asset.name)}/{escape(s.subpath)}\">{escape(s.subpath)}</a>"
        for s in asset.services
    )
    error = f" - {escape(status['last_error'])}" if status["last_error"] else ""
    nodes = "".join(
        f"<li>{escape(n.label)} <code>{escape(n.node_id)}</code></li>" for n in asset.nodes
    )
    return (
        f"<li><b>{escape(asset.name)}</b> {links}<br>\n"
        f"{escape(status['server_address'])} ({escape(status['state'])}{error})\n"
        f"{_render_details(asset.details)}\n"
        f"<ul class=\"nodes\">{nodes or '<li>No tracked nodes</li>'}</ul></li>"
    )


def render_landing(system_name: str, description: str, services: List[ServiceDefinition],
                   assets: list, details: Optional[Dict[str, List[str]]] = None) -> str:
    """System page listing every unit asset, its connection and its services."""
    service_items = "\n".join(
        f"<li><b>{escape(s.definition)}</b>: {escape(s.description)}{_render_details(s.details)}</li>"
        for s in services
    )
    asset_items = "\n".join(_render_asset(asset) for asset in assets)
    return (
        "<!DOCTYPE html>\n<html><head><meta charset=\"utf-8\">"
        f"<title>{escape(system_name)}</title></head><body>\n"
        f"<h1>{escape(system_name)}</h1>\n<p>{escape(description)}</p>\n"
        f"{_render_details(details or {})}\n"
        f"<h2>Services</h2>\n<ul>\n{service_items}\n</ul>\n"
        f"<h2>Unit assets</h2>\n<ul>\n{asset_items}\n</ul>\n</body></html>\n"
    )
