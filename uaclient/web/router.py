"""
Request routing for unit asset services.

The service segment of a request path is parsed once into a
ServicePath and matched exhaustively. Handlers run the asset's OPC UA
operations on the background event loop and turn every failure into a
short HTTP reason; no stack traces or internal identifiers leave the
system.
"""

import concurrent.futures
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union

from ..assets.unit_asset import UnitAsset
from ..client.loop import EventLoopThread, LoopNotRunning
from ..errors import (
    BrowseError,
    InvalidService,
    MethodNotSupported,
    ReadError,
    ReadErrorKind,
    ServiceError,
    WriteNotSupported,
)
from ..logging import log_debug, log_error, log_warn
from .render import access_payload, render_browse

HTML = "text/html; charset=utf-8"
TEXT = "text/plain; charset=utf-8"
JSON = "application/json"

READ_ERROR_STATUS = {
    ReadErrorKind.NOT_FOUND: 404,
    ReadErrorKind.UNAVAILABLE: 503,
    ReadErrorKind.TYPE_MISMATCH: 502,
}


class ServicePath(Enum):
    """Services a unit asset offers."""
    BROWSE = "browse"
    ACCESS = "access"
    INVALID = ""

    @classmethod
    def parse(cls, segment: str) -> 'ServicePath':
        try:
            return cls(segment)
        except ValueError:
            return cls.INVALID


@dataclass
class ServiceResponse:
    """Outcome of one routed request."""
    status: int
    body: Union[str, dict]
    content_type: str = TEXT


class RequestRouter:
    """
    Dispatches requests to the browse and access handlers.

    Stateless apart from its collaborators; safe to call from many
    request threads at once.
    """

    def __init__(self, runner: EventLoopThread, deadline: float = 30.0):
        """
        Args:
            runner: Event loop the OPC UA sessions live on
            deadline: Seconds a request may wait for its OPC UA operations
        """
        self.runner = runner
        self.deadline = deadline

    def serve(self, asset: UnitAsset, method: str, segment: str,
              args: Optional[Mapping[str, str]] = None) -> ServiceResponse:
        """Handle one request for a unit asset service."""
        service = ServicePath.parse(segment)
        try:
            if service is ServicePath.BROWSE:
                return self._browse(asset, method)
            elif service is ServicePath.ACCESS:
                return self._access(asset, method, args or {})
            elif service is ServicePath.INVALID:
                raise InvalidService()
            raise AssertionError(f"unhandled service {service}")
        except ServiceError as e:
            return ServiceResponse(e.status, e.message)
        except ReadError as e:
            return ServiceResponse(READ_ERROR_STATUS[e.kind], f"Read of {e.node_id} failed: {e.reason}")
        except BrowseError:
            return ServiceResponse(503, "Browse failed: OPC UA server unavailable")
        except (LoopNotRunning, concurrent.futures.TimeoutError, concurrent.futures.CancelledError) as e:
            log_warn(f"[{asset.name}] {service.value} request abandoned: {e!r}")
            return ServiceResponse(503, "OPC UA server unavailable")
        except Exception:
            log_error(f"[{asset.name}] Unexpected error serving {service.value}", exc_info=True)
            return ServiceResponse(500, "Internal error")

    def _browse(self, asset: UnitAsset, method: str) -> ServiceResponse:
        if method != "GET":
            raise MethodNotSupported()
        nodes = self._run(asset.browse())
        return ServiceResponse(200, render_browse(asset.name, asset.server_address, nodes), HTML)

    def _access(self, asset: UnitAsset, method: str, args: Mapping[str, str]) -> ServiceResponse:
        if method == "GET":
            return self._access_read(asset, args)
        elif method == "PUT":
            return self._access_write(asset)
        raise MethodNotSupported()

    def _access_read(self, asset: UnitAsset, args: Mapping[str, str]) -> ServiceResponse:
        node_id = args.get("node") or None
        results = self._run(asset.read_values(node_id))
        return ServiceResponse(200, access_payload(asset.name, results), JSON)

    def _access_write(self, asset: UnitAsset) -> ServiceResponse:
        # OPC UA writes are not implemented yet
        log_debug(f"[{asset.name}] Rejected write request")
        raise WriteNotSupported()

    def _run(self, coro) -> Any:
        return self.runner.run(coro, timeout=self.deadline)
