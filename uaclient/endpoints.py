"""
Endpoint URL helpers for OPC UA servers.
"""
from urllib.parse import urlparse

DEFAULT_OPCUA_PORT = 4840


def validate_endpoint_format(endpoint_url: str) -> bool:
    """Validate if endpoint URL has correct OPC-UA format."""
    if not isinstance(endpoint_url, str) or not endpoint_url.strip():
        return False
    try:
        parsed = urlparse(endpoint_url.strip())
        # .port raises ValueError on a non-numeric or out of range port
        parsed.port
    except ValueError:
        return False
    return parsed.scheme == "opc.tcp" and bool(parsed.hostname)


def normalize_endpoint_url(endpoint_url: str) -> str:
    """Normalize endpoint URL for better client compatibility."""
    parsed = urlparse(endpoint_url.strip())

    # A listening address is not a connectable one
    if parsed.hostname == "0.0.0.0":
        port = parsed.port or DEFAULT_OPCUA_PORT
        return f"{parsed.scheme}://localhost:{port}{parsed.path}"

    return endpoint_url.strip()
