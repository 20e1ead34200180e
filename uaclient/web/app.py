"""
HTTP surface of the OPC UA client system.

Requests for ``/<asset>/<service>`` are resolved against the asset
registry and handed to the request router. The listener is a threaded
werkzeug server running in its own thread.
"""

import threading
from typing import Callable, Dict, List, Optional

from flask import Flask, Response, jsonify, request
from werkzeug.serving import BaseWSGIServer, make_server

from ..assets.registry import AssetRegistry
from ..logging import log_info
from ..types.models import ServiceDefinition
from .render import render_landing
from .router import RequestRouter

ASSET_METHODS = ["GET", "PUT", "POST", "DELETE", "PATCH"]


def create_app(
    registry: AssetRegistry,
    router: RequestRouter,
    system_name: str = "uaclient",
    description: str = "",
    details: Optional[Dict[str, List[str]]] = None,
    services: Optional[List[ServiceDefinition]] = None,
    is_accepting: Optional[Callable[[], bool]] = None,
) -> Flask:
    """
    Build the Flask application.

    Args:
        registry: Assets addressable by name
        router: Dispatcher for asset services
        system_name: Title of the landing page
        description: System description shown on the landing page
        details: System metadata shown on the landing page
        services: Services listed on the landing page
        is_accepting: Returns False once the system is shutting down
    """
    app = Flask("uaclient")
    services = services or []

    @app.before_request
    def refuse_during_shutdown():
        if is_accepting is not None and not is_accepting():
            return Response("System is shutting down", status=503, mimetype="text/plain")
        return None

    @app.route("/", methods=["GET"])
    def landing():
        return Response(
            render_landing(system_name, description, services, list(registry), details),
            mimetype="text/html",
        )

    @app.route("/<asset_name>", methods=ASSET_METHODS)
    @app.route("/<asset_name>/", methods=ASSET_METHODS)
    def asset_root(asset_name: str):
        return _serve(asset_name, "")

    @app.route("/<asset_name>/<path:service>", methods=ASSET_METHODS)
    def asset_service(asset_name: str, service: str):
        return _serve(asset_name, service)

    def _serve(asset_name: str, service: str):
        asset = registry.get(asset_name)
        if asset is None:
            return Response("Unit asset not found", status=404, mimetype="text/plain")

        result = router.serve(asset, request.method, service, request.args)
        if isinstance(result.body, dict):
            response = jsonify(result.body)
            response.status_code = result.status
            return response
        return Response(result.body, status=result.status, content_type=result.content_type)

    return app


class HttpServer:
    """Threaded werkzeug server running in a background thread."""

    def __init__(self, app: Flask, host: str, port: int):
        self.app = app
        self.host = host
        self.port = port
        self._server: Optional[BaseWSGIServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def bound_port(self) -> Optional[int]:
        return self._server.server_port if self._server else None

    def start(self) -> None:
        self._server = make_server(self.host, self.port, self.app, threaded=True)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            daemon=True,
            name="uaclient-http",
        )
        self._thread.start()
        log_info(f"HTTP listener started on {self.host}:{self.bound_port}")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop accepting connections and close the listening socket."""
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout)
        self._server = None
        self._thread = None
        log_info("HTTP listener stopped")
