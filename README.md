# tinykube

tinykube is a small container orchestrator for learning. It has the basic
parts of a cluster manager at a size you can read in one sitting:

- **API objects** in `tinykube.api.types`
- **A REST API** served as a WSGI application, in `tinykube.api.server`
- **A replica set controller** in `tinykube.controller`
- **A node agent** in `tinykube.kubelet`

The only runtime dependency is `werkzeug`.

## API objects

`tinykube.api.types` defines `Pod`, `Node` and `ReplicaSet`. It also defines
their parts: `PodSpec`, `NodeSpec`, `ReplicaSetSpec`, `ReplicaSetStatus`,
`PodTemplateSpec`, `Container` and `ObjectMeta`. Status values come from two
enumerations:

- `PodStatus`: `Pending`, `Running`, `Succeeded`, `Failed` and `Scheduled`.
- `NodeStatus`: `NotReady`, `Ready`, `MemoryPressure` and `DiskPressure`.

```python
from tinykube.api.types import (
    Container, ObjectMeta, Pod, PodSpec, PodStatus,
    is_owned_by, to_dict, from_dict,
)

pod = Pod(
    metadata=ObjectMeta(name="web-abc12"),
    spec=PodSpec(containers=[Container(name="nginx", image="nginx:latest")]),
    status=PodStatus.PENDING,
)
pod.validate()                 # raises InvalidPodSpecError if a rule is broken
assert pod.is_active()         # every status except Failed counts as active

data = to_dict(pod)            # JSON-ready dict, camelCase keys
assert from_dict(Pod, data) == pod

assert is_owned_by(pod, ObjectMeta(name="web"))
```

### Validation

`validate_struct(obj)` checks an object against its field rules. It raises
`ValidationError` with one message per failure, for example:

```
Key: 'PodSpec.Containers[0].Image' Error:Field validation for 'Image' failed on the 'required' tag
```

The rules are:

- A name is required in `ObjectMeta`.
- Both the name and the image are required in `Container`.
- A `PodSpec` needs at least one container, and its `replicas` must be 0 or more.

`Pod.validate()` raises `InvalidPodSpecError` and `Node.validate()` raises
`InvalidNodeSpecError`.

### Ownership

A pod belongs to an owner when the pod's name starts with the owner's name.
`is_owned_by(pod, meta)` tests only that. `is_pod_active_and_owned_by(pod, meta)`
also requires the pod to be active.

## HTTP API

`APIServer(node_registry, pod_registry, replicaset_registry)` puts the resource
handlers together. `build_service()` returns a `tinykube.api.web.WebService`,
which is a plain WSGI application. `start(address)` serves that application
with werkzeug's server until it is stopped. The address is `"host:port"`, or
`":port"` to listen on all interfaces.

```python
from werkzeug.test import Client
from tinykube.api.server import APIServer

service = APIServer(node_registry, pod_registry, replicaset_registry).build_service()
assert Client(service).get("/api/v1/healthz").status_code == 200
```

| Method | Path                         | Meaning                                      |
|--------|------------------------------|----------------------------------------------|
| GET    | `/api/v1/healthz`            | health check                                 |
| POST   | `/api/v1/pods`               | create a pod (status defaults to `Pending`)  |
| GET    | `/api/v1/pods`               | list pods; `?nodeName=` filters by node      |
| GET    | `/api/v1/pods/unassigned`    | list unassigned pods                         |
| GET    | `/api/v1/pods/{name}`        | get a pod                                    |
| PUT    | `/api/v1/pods/{name}`        | replace a pod                                |
| DELETE | `/api/v1/pods/{name}`        | delete a pod                                 |
| POST   | `/api/v1/nodes`              | register a node                              |
| GET    | `/api/v1/nodes`              | list nodes                                   |
| GET    | `/api/v1/nodes/{name}`       | get a node                                   |
| PUT    | `/api/v1/nodes/{name}`       | replace a node                               |
| DELETE | `/api/v1/nodes/{name}`       | delete a node                                |
| POST   | `/api/v1/replicasets`        | create a replica set                         |
| GET    | `/api/v1/replicasets`        | list replica sets                            |
| GET    | `/api/v1/replicasets/{name}` | get a replica set                            |
| PUT    | `/api/v1/replicasets/{name}` | replace a replica set                        |
| DELETE | `/api/v1/replicasets/{name}` | delete a replica set                         |

Request and response bodies are JSON.

Successful requests return these codes:

- 201 for a create.
- 200 for a get, list or update.
- 204 with an empty body for a delete.

Errors come back as plain text with these codes:

- **400** when the body cannot be decoded, when the name in the body differs from the name in the URL, or when the registry raises `InvalidError`, `InvalidPodSpecError` or `InvalidNodeSpecError`.
- **404** when loading `{name}` raises `NotFoundError`.
- **409** when the registry raises `AlreadyExistsError`.
- **500** for any other registry error.

The exception classes live in `tinykube.api.web`, along with `write_response`
and `write_error`.

### What a registry must provide

The handlers call the registries through these methods:

- **node registry:** `get_node(name)`, `create_node(node)`, `update_node(node)`, `delete_node(name)`, `list_nodes()`.
- **pod registry:** `get_pod(name)`, `create_pod(pod)`, `update_pod(pod)`, `delete_pod(name)`, `list_pods()`, `list_unassigned_pods()`.
- **replica set registry:** `get(name)`, `create(rs)`, `update(rs)`, `delete(name)`, `list()`.

## Replica set controller

`ReplicaSetController(replica_set_registry, pod_registry, interval=1.0)` keeps
each replica set at its desired size. It needs `get`, `list` and `update` on the
first registry, and `list_pods`, `create_pod` and `delete_pod` on the second.

`reconcile(rs)` works in these steps:

1. It counts the active pods that the replica set owns.
2. If there are too few, it creates pods from the template, with generated names that start with the replica set's name.
3. If there are too many, it deletes the surplus.
4. It stores the new count in `status.replicas`.

`run()` reconciles every replica set once. `start(stop_event)` calls `run()`
every `interval` seconds until the `threading.Event` is set, and logs any errors
without stopping.

## Kubelet

`Kubelet(node_name, api_server_url, runtime)` is the agent for one node. It
takes the following methods:

- **`start()`:** registers the node with `POST /api/v1/nodes`. It then starts two background threads. One polls `GET /api/v1/pods?nodeName=...` for assignments; the other reports changed pod statuses with `PUT /api/v1/pods/{name}`.
- **`run_new_pods(pods)`:** starts each pod it has not seen before.
- **`start_container(pod, container_name, image_name)`:** pulls the image, then creates and starts a labelled container.
- **`pod_status(pod)`:** works out a pod's status from its containers' states.
- **`list_containers()`:** returns `ContainerStatus` entries for the running containers that belong to this node's pods.
- **`cleanup_containers()`:** force-removes those containers.
- **`update_pod_statuses()`:** recomputes and reports statuses once.

`determine_pod_status(states)` turns a list of `ContainerState` values into one
`PodStatus`. It checks these cases in order:

1. **Running:** any container is running.
2. **Failed:** every existing container exited non-zero, and at least one container exists.
3. **Succeeded:** every container has exit code 0. A pod with no containers also counts as Succeeded.
4. **Scheduled:** any other case.

## What tinykube does not include

- **No storage or registries.** `APIServer`, the handlers, the controller and the kubelet all take registry objects. You supply them, with the methods listed above.
- **No container engine.** `ContainerRuntime` is an abstract base class. The kubelet needs an implementation of it, and tinykube ships none.
- **No scheduler.** Nothing assigns pods to nodes.
- **No command-line programs.** The API server, controller and kubelet are started from Python code.