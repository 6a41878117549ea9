"""The API server: wires the resource handlers into one HTTP service."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from werkzeug.serving import make_server
from werkzeug.wrappers import Request, Response

from tinykube.api.node_handlers import NodeHandler, register_node_routes
from tinykube.api.pod_handlers import PodHandler, register_pod_routes
from tinykube.api.replicaset_handlers import (
    ReplicasetHandler,
    register_replicaset_routes,
)
from tinykube.api.web import WebService, write_response


class APIServer:
    """Serves nodes, pods and replica sets from the given registries."""

    def __init__(self, node_registry: Any, pod_registry: Any, replicaset_registry: Any) -> None:
        self.node_registry = node_registry
        self.pod_registry = pod_registry
        self.replicaset_registry = replicaset_registry

    def build_service(self) -> WebService:
        """A web service with every API route registered."""
        ws = WebService("/api/v1")
        ws.route("GET", "/healthz", self._healthz)
        register_pod_routes(ws, PodHandler(self.pod_registry))
        register_node_routes(ws, NodeHandler(self.node_registry))
        register_replicaset_routes(ws, ReplicasetHandler(self.replicaset_registry))
        return ws

    def start(self, address: str) -> None:
        """Serve on ``address`` ("host:port", or ":port" for all interfaces) until stopped."""
        host, sep, port = address.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"invalid address {address!r}")
        server = make_server(host or "0.0.0.0", int(port), self.build_service(), threaded=True)
        try:
            server.serve_forever()
        finally:
            server.server_close()

    @staticmethod
    def _healthz(request: Request) -> Response:
        return write_response(HTTPStatus.OK)