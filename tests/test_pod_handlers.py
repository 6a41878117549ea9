import copy
from http import HTTPStatus

import pytest
from werkzeug.test import Client

from tinykube.api.pod_handlers import PodHandler, register_pod_routes
from tinykube.api.types import (
    Container,
    InvalidPodSpecError,
    ObjectMeta,
    Pod,
    PodSpec,
    PodStatus,
    to_dict,
)
from tinykube.api.web import AlreadyExistsError, InvalidError, NotFoundError, WebService


class MemoryPodRegistry:
    def __init__(self, failing=()):
        self.pods = {}
        self.failing = set(failing)

    def _check(self, op):
        if op in self.failing:
            raise RuntimeError("simulated registry failure")

    def _validate(self, pod):
        try:
            pod.validate()
        except InvalidPodSpecError as err:
            raise InvalidError(str(err)) from err

    def get_pod(self, name):
        self._check("get")
        if name not in self.pods:
            raise NotFoundError(f"pod not found: {name}")
        return copy.deepcopy(self.pods[name])

    def create_pod(self, pod):
        self._check("create")
        self._validate(pod)
        if pod.name in self.pods:
            raise AlreadyExistsError(f"pod already exists: {pod.name}")
        self.pods[pod.name] = copy.deepcopy(pod)

    def update_pod(self, pod):
        self._check("update")
        self._validate(pod)
        self.pods[pod.name] = copy.deepcopy(pod)

    def delete_pod(self, name):
        self._check("delete")
        self.pods.pop(name, None)

    def list_pods(self):
        self._check("list")
        return [copy.deepcopy(self.pods[k]) for k in sorted(self.pods)]

    def list_unassigned_pods(self):
        return [p for p in self.list_pods() if p.status == PodStatus.PENDING]


def _client(registry):
    ws = WebService()
    register_pod_routes(ws, PodHandler(registry))
    return Client(ws)


def _pod(name, image="nginx:latest", replicas=1, container="nginx", status=None, node_name=""):
    return Pod(
        metadata=ObjectMeta(name=name),
        spec=PodSpec(containers=[Container(name=container, image=image)], replicas=replicas),
        status=status,
        node_name=node_name,
    )


@pytest.fixture
def registry():
    return MemoryPodRegistry()


def test_create_pod(registry):
    pod = _pod("test-pod")
    resp = _client(registry).post("/api/v1/pods", json=to_dict(pod))
    assert resp.status_code == HTTPStatus.CREATED
    body = resp.get_json()
    assert body["metadata"]["name"] == "test-pod"
    assert body["spec"]["replicas"] == 1
    assert len(body["spec"]["containers"]) == 1
    assert body["spec"]["containers"][0]["image"] == "nginx:latest"
    assert body["status"] == PodStatus.PENDING.value
    assert registry.pods["test-pod"].status == PodStatus.PENDING


def test_create_invalid_pod(registry):
    pod = _pod("invalid-pod", replicas=-1, container="")
    resp = _client(registry).post("/api/v1/pods", json=to_dict(pod))
    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert registry.pods == {}


def test_create_conflict(registry):
    registry.create_pod(_pod("test-pod"))
    resp = _client(registry).post("/api/v1/pods", json=to_dict(_pod("test-pod")))
    assert resp.status_code == HTTPStatus.CONFLICT


def test_create_registry_failure():
    registry = MemoryPodRegistry(failing={"get", "create"})
    resp = _client(registry).post("/api/v1/pods", json=to_dict(_pod("test-pod")))
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_list_pods(registry):
    registry.create_pod(_pod("test-pod-1"))
    registry.create_pod(_pod("test-pod-2", image="redis:latest", replicas=2, container="redis"))
    resp = _client(registry).get("/api/v1/pods")
    assert resp.status_code == HTTPStatus.OK
    assert [p["metadata"]["name"] for p in resp.get_json()] == ["test-pod-1", "test-pod-2"]


def test_list_pods_filtered_by_node(registry):
    registry.create_pod(_pod("on-node", node_name="worker1"))
    registry.create_pod(_pod("elsewhere", node_name="master"))
    resp = _client(registry).get("/api/v1/pods?nodeName=worker1")
    assert resp.status_code == HTTPStatus.OK
    assert [p["metadata"]["name"] for p in resp.get_json()] == ["on-node"]


def test_list_registry_failure():
    resp = _client(MemoryPodRegistry(failing={"list"})).get("/api/v1/pods")
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_get_pod(registry):
    registry.create_pod(_pod("test-pod"))
    resp = _client(registry).get("/api/v1/pods/test-pod")
    assert resp.status_code == HTTPStatus.OK
    body = resp.get_json()
    assert body["metadata"]["name"] == "test-pod"
    assert body["spec"]["replicas"] == 1
    assert body["spec"]["containers"][0]["image"] == "nginx:latest"


def test_get_missing_pod(registry):
    resp = _client(registry).get("/api/v1/pods/non-existent-pod")
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_get_registry_failure():
    resp = _client(MemoryPodRegistry(failing={"get"})).get("/api/v1/pods/test-pod")
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_update_pod(registry):
    registry.create_pod(_pod("test-pod"))
    updated = _pod("test-pod", image="nginx:1.19", replicas=2)
    resp = _client(registry).put("/api/v1/pods/test-pod", json=to_dict(updated))
    assert resp.status_code == HTTPStatus.OK
    body = resp.get_json()
    assert body["spec"]["replicas"] == 2
    assert body["spec"]["containers"][0]["image"] == "nginx:1.19"


def test_update_name_mismatch(registry):
    registry.create_pod(_pod("test-pod"))
    other = Pod(metadata=ObjectMeta(name="different-name"))
    resp = _client(registry).put("/api/v1/pods/test-pod", json=to_dict(other))
    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_update_invalid_pod(registry):
    registry.create_pod(_pod("test-pod"))
    invalid = Pod(metadata=ObjectMeta(name="test-pod"), spec=PodSpec(replicas=-1))
    resp = _client(registry).put("/api/v1/pods/test-pod", json=to_dict(invalid))
    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert registry.pods["test-pod"].spec.replicas == 1


def test_update_registry_failure():
    registry = MemoryPodRegistry(failing={"update"})
    registry.pods["test-pod"] = Pod(metadata=ObjectMeta(name="test-pod"))
    resp = _client(registry).put(
        "/api/v1/pods/test-pod", json=to_dict(_pod("test-pod", image="nginx:1.19"))
    )
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_update_missing_pod(registry):
    pod = Pod(metadata=ObjectMeta(name="non-existent-pod"), spec=PodSpec(replicas=1))
    resp = _client(registry).put("/api/v1/pods/non-existent-pod", json=to_dict(pod))
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_delete_pod(registry):
    registry.create_pod(_pod("test-pod"))
    resp = _client(registry).delete("/api/v1/pods/test-pod")
    assert resp.status_code == HTTPStatus.NO_CONTENT
    with pytest.raises(NotFoundError):
        registry.get_pod("test-pod")


def test_delete_registry_failure():
    registry = MemoryPodRegistry(failing={"delete"})
    registry.pods["test-pod"] = Pod(metadata=ObjectMeta(name="test-pod"))
    resp = _client(registry).delete("/api/v1/pods/test-pod")
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_delete_missing_pod(registry):
    resp = _client(registry).delete("/api/v1/pods/non-existent-pod")
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_list_unassigned_pods(registry):
    registry.create_pod(_pod("unassigned-pod", status=PodStatus.PENDING))
    registry.create_pod(_pod("assigned-pod", status=PodStatus.RUNNING))
    resp = _client(registry).get("/api/v1/pods/unassigned")
    assert resp.status_code == HTTPStatus.OK
    pods = resp.get_json()
    assert len(pods) == 1
    assert pods[0]["metadata"]["name"] == "unassigned-pod"
    assert pods[0]["status"] == PodStatus.PENDING.value


def test_list_unassigned_registry_failure():
    resp = _client(MemoryPodRegistry(failing={"list"})).get("/api/v1/pods/unassigned")
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR