"""HTTP handlers for pod resources."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from werkzeug.wrappers import Request, Response

from tinykube.api.types import InvalidPodSpecError, Pod, PodStatus
from tinykube.api.web import (
    AlreadyExistsError,
    InvalidError,
    WebService,
    read_entity,
    write_error,
    write_response,
)

_MISSING_POD = RuntimeError("failed to retrieve pod from request attributes")


class PodHandler:
    """Serves pod requests from a registry.

    The registry must offer ``get_pod(name)``, ``create_pod(pod)``,
    ``update_pod(pod)``, ``delete_pod(name)``, ``list_pods()`` and
    ``list_unassigned_pods()``.
    """

    def __init__(self, pod_registry: Any) -> None:
        self.pod_registry = pod_registry

    def load_pod(self, name: str) -> Pod:
        return self.pod_registry.get_pod(name)

    def create_pod(self, request: Request) -> Response:
        try:
            pod = read_entity(request, Pod)
        except InvalidError as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        if pod.status is None:
            pod.status = PodStatus.PENDING
        try:
            self.pod_registry.create_pod(pod)
        except AlreadyExistsError as err:
            return write_error(HTTPStatus.CONFLICT, err)
        except (InvalidError, InvalidPodSpecError) as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.CREATED, pod)

    def list_pods(self, request: Request) -> Response:
        node_name = request.args.get("nodeName", "")
        try:
            pods = list(self.pod_registry.list_pods())
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        if node_name:
            pods = [pod for pod in pods if pod.node_name == node_name]
        return write_response(HTTPStatus.OK, pods)

    def get_pod(self, request: Request, pod: Any) -> Response:
        if not isinstance(pod, Pod):
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, _MISSING_POD)
        return write_response(HTTPStatus.OK, pod)

    def update_pod(self, request: Request, pod: Any) -> Response:
        if not isinstance(pod, Pod):
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, _MISSING_POD)
        try:
            updated = read_entity(request, Pod)
        except InvalidError as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        if updated.name != pod.name:
            return write_error(
                HTTPStatus.BAD_REQUEST,
                InvalidError("pod name in URL does not match pod name in request body"),
            )
        try:
            self.pod_registry.update_pod(updated)
        except (InvalidError, InvalidPodSpecError) as err:
            return write_error(HTTPStatus.BAD_REQUEST, err)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.OK, updated)

    def delete_pod(self, request: Request, pod: Any) -> Response:
        if not isinstance(pod, Pod):
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, _MISSING_POD)
        try:
            self.pod_registry.delete_pod(pod.name)
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.NO_CONTENT)

    def list_unassigned_pods(self, request: Request) -> Response:
        try:
            pods = self.pod_registry.list_unassigned_pods()
        except Exception as err:
            return write_error(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return write_response(HTTPStatus.OK, list(pods))


def register_pod_routes(ws: WebService, handler: PodHandler) -> None:
    ws.route("POST", "/pods", handler.create_pod)
    ws.route("GET", "/pods", handler.list_pods)
    ws.route("GET", "/pods/{name}", handler.get_pod, handler.load_pod)
    ws.route("PUT", "/pods/{name}", handler.update_pod, handler.load_pod)
    ws.route("DELETE", "/pods/{name}", handler.delete_pod, handler.load_pod)
    ws.route("GET", "/pods/unassigned", handler.list_unassigned_pods)