"""HTTP handlers for node resources."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from werkzeug.wrappers import Request, Response

from tinykube.api.types import InvalidNodeSpecError, Node
from tinykube.api.web import (
    AlreadyExistsError,
    InvalidError,
    WebService,
    read_entity,
    write_error,
    write_response,
)

_MISSING_NODE = RuntimeError("failed to retrieve node from request attributes")


class NodeHandler:
    """Serves node requests from a registry.

    The registry must offer ``get_node(name)``, ``create_node(node)``,
    ``update_node(node)``, ``delete_node(name)`` and ``list_nodes()``.
    """

    def __init__(self, node_registry: Any) -> None:
        self.node_registry = node_registry

    def load_node(self, name: str) -> Node:
        return self.node_registry.get_node(name)

    def create_node(self, request: Request) -> Response:
        try:
            node = read_entity(request, Node)
        except InvalidError as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        try:
            self.node_registry.create_node(node)
        except AlreadyExistsError as err:
            return write_error(HTTPStatus.CONFLICT, err)
        except (InvalidError, InvalidNodeSpecError) as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.CREATED, node)

    def get_node(self, request: Request, node: Any) -> Response:
        if not isinstance(node, Node):
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, _MISSING_NODE)
        return write_response(HTTPStatus.OK, node)

    def update_node(self, request: Request, node: Any) -> Response:
        if not isinstance(node, Node):
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, _MISSING_NODE)
        try:
            updated = read_entity(request, Node)
        except InvalidError as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        if updated.name != node.name:
            return write_error(
                HTTPStatus.BAD_REQUEST,
                InvalidError("node name in URL does not match the name in the request body"),
            )
        try:
            self.node_registry.update_node(updated)
        except (InvalidError, InvalidNodeSpecError) as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.OK, updated)

    def delete_node(self, request: Request, node: Any) -> Response:
        if not isinstance(node, Node):
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, _MISSING_NODE)
        try:
            self.node_registry.delete_node(node.name)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.NO_CONTENT)

    def list_nodes(self, request: Request) -> Response:
        try:
            nodes = self.node_registry.list_nodes()
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.OK, list(nodes))


def register_node_routes(ws: WebService, handler: NodeHandler) -> None:
    ws.route("POST", "/nodes", handler.create_node)
    ws.route("GET", "/nodes", handler.list_nodes)
    ws.route("GET", "/nodes/{name}", handler.get_node, handler.load_node)
    ws.route("PUT", "/nodes/{name}", handler.update_node, handler.load_node)
    ws.route("DELETE", "/nodes/{name}", handler.delete_node, handler.load_node)