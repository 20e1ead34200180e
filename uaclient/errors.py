"""
Error taxonomy for the OPC UA client system.

Configuration errors are fatal at startup. Connection, browse and read
errors are isolated to one asset or one request. Service errors describe
malformed HTTP requests and carry the status code they are rendered with.
"""

from enum import Enum
from typing import Optional


class UAClientError(Exception):
    """Base class for all errors raised by the system."""


class ConfigError(UAClientError):
    """Malformed, missing or duplicate configuration."""


class ConnectError(UAClientError):
    """OPC UA session could not be established."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class BrowseError(UAClientError):
    """Address space could not be walked."""


class ReadErrorKind(Enum):
    """Outcome classes of a failed node read."""
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    TYPE_MISMATCH = "type_mismatch"


class ReadError(UAClientError):
    """
    A node value could not be read.

    Attributes:
        kind: Classification of the failure
        node_id: Node identifier that was requested
    """

    def __init__(self, kind: ReadErrorKind, node_id: str, reason: Optional[str] = None):
        self.kind = kind
        self.node_id = node_id
        self.reason = reason or kind.value.replace("_", " ")
        super().__init__(f"{node_id}: {self.reason}")


# Status used for unsupported methods on a valid service path.
# 405 would be the conventional code; 404 is what deployed consumers expect.
METHOD_NOT_SUPPORTED_STATUS = 404


class ServiceError(UAClientError):
    """Client request error rendered as an HTTP 4xx response."""
    status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MethodNotSupported(ServiceError):
    status = METHOD_NOT_SUPPORTED_STATUS

    def __init__(self, message: str = "Method is not supported."):
        super().__init__(message)


class WriteNotSupported(MethodNotSupported):
    def __init__(self):
        super().__init__("Method is not supported. Writing to OPC UA nodes is not implemented.")


class InvalidService(ServiceError):
    status = 400

    def __init__(self):
        super().__init__(
            "Invalid service request [Do not modify the services subpath in the configuration file]"
        )
