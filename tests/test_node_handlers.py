import copy
from http import HTTPStatus

import pytest
from werkzeug.test import Client

from tinykube.api.node_handlers import NodeHandler, register_node_routes
from tinykube.api.types import InvalidNodeSpecError, Node, NodeSpec, ObjectMeta, to_dict
from tinykube.api.web import AlreadyExistsError, InvalidError, NotFoundError, WebService


class MemoryNodeRegistry:
    def __init__(self, failing=()):
        self.nodes = {}
        self.failing = set(failing)

    def _check(self, op):
        if op in self.failing:
            raise RuntimeError("simulated registry failure")

    def _validate(self, node):
        try:
            node.validate()
        except InvalidNodeSpecError as err:
            raise InvalidError(str(err)) from err

    def get_node(self, name):
        self._check("get")
        if name not in self.nodes:
            raise NotFoundError(f"node not found: {name}")
        return copy.deepcopy(self.nodes[name])

    def create_node(self, node):
        self._check("create")
        self._validate(node)
        if node.name in self.nodes:
            raise AlreadyExistsError(f"node already exists: {node.name}")
        self.nodes[node.name] = copy.deepcopy(node)

    def update_node(self, node):
        self._check("update")
        self._validate(node)
        self.nodes[node.name] = copy.deepcopy(node)

    def delete_node(self, name):
        self._check("delete")
        self.nodes.pop(name, None)

    def list_nodes(self):
        self._check("list")
        return [copy.deepcopy(self.nodes[k]) for k in sorted(self.nodes)]


def _client(registry):
    ws = WebService()
    register_node_routes(ws, NodeHandler(registry))
    return Client(ws)


def _node(name, unschedulable=False):
    return Node(metadata=ObjectMeta(name=name), spec=NodeSpec(unschedulable=unschedulable))


@pytest.fixture
def registry():
    return MemoryNodeRegistry()


def test_create_node(registry):
    resp = _client(registry).post("/api/v1/nodes", json=to_dict(_node("test-node")))
    assert resp.status_code == HTTPStatus.CREATED
    assert resp.get_json()["metadata"]["name"] == "test-node"
    assert "test-node" in registry.nodes


def test_create_invalid_node(registry):
    resp = _client(registry).post("/api/v1/nodes", json=to_dict(_node("")))
    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_create_malformed_body(registry):
    resp = _client(registry).post(
        "/api/v1/nodes", data="{broken", content_type="application/json"
    )
    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_create_registry_failure():
    registry = MemoryNodeRegistry(failing={"get", "create"})
    resp = _client(registry).post("/api/v1/nodes", json=to_dict(_node("test-node")))
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_create_conflict(registry):
    registry.create_node(_node("test-node"))
    resp = _client(registry).post("/api/v1/nodes", json=to_dict(_node("test-node")))
    assert resp.status_code == HTTPStatus.CONFLICT


def test_get_node(registry):
    registry.create_node(_node("test-node"))
    resp = _client(registry).get("/api/v1/nodes/test-node")
    assert resp.status_code == HTTPStatus.OK
    assert resp.get_json()["metadata"]["name"] == "test-node"


def test_get_missing_node(registry):
    resp = _client(registry).get("/api/v1/nodes/non-existent-node")
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_get_registry_failure():
    resp = _client(MemoryNodeRegistry(failing={"get"})).get("/api/v1/nodes/test-node")
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_update_node(registry):
    registry.create_node(_node("test-node"))
    resp = _client(registry).put(
        "/api/v1/nodes/test-node", json=to_dict(_node("test-node", unschedulable=True))
    )
    assert resp.status_code == HTTPStatus.OK
    assert resp.get_json()["spec"]["unschedulable"] is True
    assert registry.nodes["test-node"].spec.unschedulable is True


def test_update_name_mismatch(registry):
    registry.create_node(_node("test-node"))
    resp = _client(registry).put("/api/v1/nodes/test-node", json=to_dict(_node("different-name")))
    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_update_invalid_node(registry):
    registry.create_node(_node("test-node"))
    resp = _client(registry).put("/api/v1/nodes/test-node", json=to_dict(_node("")))
    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_update_registry_failure():
    registry = MemoryNodeRegistry(failing={"get"})
    resp = _client(registry).put("/api/v1/nodes/test-node", json=to_dict(_node("test-node")))
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_update_missing_node(registry):
    resp = _client(registry).put(
        "/api/v1/nodes/non-existent-node", json=to_dict(_node("non-existent-node"))
    )
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_delete_node(registry):
    registry.create_node(_node("test-node"))
    resp = _client(registry).delete("/api/v1/nodes/test-node")
    assert resp.status_code == HTTPStatus.NO_CONTENT
    with pytest.raises(NotFoundError):
        registry.get_node("test-node")


def test_delete_registry_failure():
    registry = MemoryNodeRegistry(failing={"delete"})
    registry.create_node(_node("test-node"))
    resp = _client(registry).delete("/api/v1/nodes/test-node")
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_delete_missing_node(registry):
    resp = _client(registry).delete("/api/v1/nodes/non-existent-node")
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_list_nodes(registry):
    registry.create_node(_node("test-node-1"))
    registry.create_node(_node("test-node-2"))
    resp = _client(registry).get("/api/v1/nodes")
    assert resp.status_code == HTTPStatus.OK
    names = [n["metadata"]["name"] for n in resp.get_json()]
    assert names == ["test-node-1", "test-node-2"]


def test_list_registry_failure():
    resp = _client(MemoryNodeRegistry(failing={"list"})).get("/api/v1/nodes")
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR