"""
OPC UA client system orchestrator.

Builds the unit assets from the configuration, serves them over HTTP
and shuts everything down in order when an interrupt arrives:

1. stop accepting HTTP requests
2. close every OPC UA connection, newest first, within the grace window
3. cancel whatever is still pending on the event loop and stop it
"""

import concurrent.futures
import signal
import threading
from typing import List, Optional

from .assets import AssetRegistry, CleanupStack, new_unit_asset
from .client import EventLoopThread
from .config import SystemSettings
from .logging import log_info, log_warn
from .types.models import ResourceConfig, ServiceDefinition, check_unique_names
from .web import HttpServer, RequestRouter, create_app

BROWSE_SERVICE = ServiceDefinition(
    definition="browse",
    subpath="browse",
    details={"Protocol": ["opc.tcp"]},
    reg_period=61,
    description="provides the human readable (HTML) list (GET) of the nodes the OPC UA server holds",
)

ACCESS_SERVICE = ServiceDefinition(
    definition="access",
    subpath="access",
    details={"Protocol": ["opc.tcp"]},
    reg_period=30,
    description="accesses the OPC UA nodes to read (GET) their values, writing (PUT) is not yet supported",
)

SERVICES = [BROWSE_SERVICE, ACCESS_SERVICE]


class UAClientSystem:
    """
    Owns every runtime component of the system.

    The registry, the cleanup stack and the event loop are created per
    instance, so several systems can coexist (in tests, for example).
    """

    def __init__(self, settings: SystemSettings):
        """
        Args:
            settings: Complete system configuration
        """
        self.settings = settings
        self.runner = EventLoopThread()
        self.registry = AssetRegistry()
        self.cleanups = CleanupStack()
        self.router = RequestRouter(self.runner, settings.request_deadline)
        self._accepting = threading.Event()
        self.app = create_app(
            self.registry,
            self.router,
            system_name=settings.system_name,
            description=settings.description,
            details=settings.details,
            services=SERVICES,
            is_accepting=self._accepting.is_set,
        )
        self.http: Optional[HttpServer] = None
        self._shutdown_requested = threading.Event()
        self._stopped = False

    def parse_resources(self) -> List[ResourceConfig]:
        """
        Parse and validate every raw resource block.

        Raises:
            ConfigError: On the first malformed block or duplicate name
        """
        configs = [ResourceConfig.from_json(raw) for raw in self.settings.raw_resources()]
        check_unique_names(configs)
        return configs

    def start(self, serve_http: bool = True) -> None:
        """
        Bring the system up.

        Configuration errors abort startup; connections acquired before
        the failure are released.

        Raises:
            ConfigError: If the topology is malformed
        """
        configs = self.parse_resources()

        self.runner.start()
        try:
            self.runner.run(self._build_assets(configs))
        except BaseException:
            self._release_connections()
            raise
        self.registry.freeze()
        log_info(f"{len(self.registry)} unit assets registered: {', '.join(self.registry.names())}")

        if serve_http:
            self.http = HttpServer(self.app, self.settings.http_host, self.settings.http_port)
            try:
                self.http.start()
            except OSError:
                self.http = None
                self._release_connections()
                raise
        self._accepting.set()

    async def _build_assets(self, configs: List[ResourceConfig]) -> None:
        for config in configs:
            asset, _nodes, cleanup = await new_unit_asset(config, self.settings.connection, SERVICES)
            self.cleanups.push(asset.name, cleanup)
            self.registry.register(asset)

    def request_shutdown(self, signum: Optional[int] = None, frame=None) -> None:
        """Signal handler; wakes up wait_for_shutdown()."""
        if signum is not None:
            log_info(f"Received signal {signal.Signals(signum).name}")
        self._shutdown_requested.set()

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self.request_shutdown)
        signal.signal(signal.SIGTERM, self.request_shutdown)

    def wait_for_shutdown(self) -> None:
        # Short waits keep the main thread responsive to signals
        while not self._shutdown_requested.wait(0.5):
            pass

    def shutdown(self) -> None:
        """Stop serving and release every connection. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        log_info(f"Shutting down system {self.settings.system_name}")

        self._accepting.clear()
        if self.http is not None:
            self.http.stop()
            self.http = None

        self._release_connections()
        log_info("Shutdown complete")

    def run(self) -> None:
        """Start, block until interrupted, then shut down."""
        self.install_signal_handlers()
        self.start()
        try:
            self.wait_for_shutdown()
        finally:
            self.shutdown()

    def _release_connections(self) -> None:
        if not self.runner.is_running:
            return
        grace = self.settings.shutdown_grace
        try:
            self.runner.run(self.cleanups.unwind(), timeout=grace)
        except concurrent.futures.TimeoutError:
            log_warn(f"Connections not closed within {grace}s grace period were abandoned")
        self.runner.stop()
