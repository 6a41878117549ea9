"""HTTP handlers for replica set resources."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from werkzeug.wrappers import Request, Response

from tinykube.api.types import ReplicaSet
from tinykube.api.web import (
    AlreadyExistsError,
    InvalidError,
    WebService,
    read_entity,
    write_error,
    write_response,
)

_MISSING_REPLICASET = RuntimeError(
    "failed to retrieve replicaset from request attributes"
)


class ReplicasetHandler:
    """Serves replica set requests from a registry.

    The registry must offer ``get(name)``, ``create(rs)``, ``update(rs)``,
    ``delete(name)`` and ``list()``.
    """

    def __init__(self, replicaset_registry: Any) -> None:
        self.replicaset_registry = replicaset_registry

    def load_replicaset(self, name: str) -> ReplicaSet:
        return self.replicaset_registry.get(name)

    def create_replicaset(self, request: Request) -> Response:
        try:
            replicaset = read_entity(request, ReplicaSet)
        except InvalidError as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        try:
            self.replicaset_registry.create(replicaset)
        except AlreadyExistsError as err:
            return write_error(HTTPStatus.CONFLICT, err)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.CREATED, replicaset)

    def get_replicaset(self, request: Request, replicaset: Any) -> Response:
        if not isinstance(replicaset, ReplicaSet):
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, _MISSING_REPLICASET)
        return write_response(HTTPStatus.OK, replicaset)

    def update_replicaset(self, request: Request, replicaset: Any) -> Response:
        if not isinstance(replicaset, ReplicaSet):
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, _MISSING_REPLICASET)
        try:
            updated = read_entity(request, ReplicaSet)
        except InvalidError as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        if updated.name != replicaset.name:
            return write_error(
                HTTPStatus.BAD_REQUEST,
                InvalidError(
                    "replicaset name in URL does not match the replicaset in the request body"
                ),
            )
        try:
            self.replicaset_registry.update(updated)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.OK, updated)

    def delete_replicaset(self, request: Request, replicaset: Any) -> Response:
        if not isinstance(replicaset, ReplicaSet):
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, _MISSING_REPLICASET)
        try:
            self.replicaset_registry.delete(replicaset.name)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.NO_CONTENT)

    def list_replicasets(self, request: Request) -> Response:
        try:
            replicasets = self.replicaset_registry.list()
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.OK, list(replicasets))


def register_replicaset_routes(ws: WebService, handler: ReplicasetHandler) -> None:
    ws.route("POST", "/replicasets", handler.create_replicaset)
    ws.route("GET", "/replicasets", handler.list_replicasets)
    ws.route("GET", "/replicasets/{name}", handler.get_replicaset, handler.load_replicaset)
    ws.route("PUT", "/replicasets/{name}", handler.update_replicaset, handler.load_replicaset)
    ws.route(
        "DELETE", "/replicasets/{name}", handler.delete_replicaset, handler.load_replicaset
    )