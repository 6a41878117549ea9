"""The node agent: registers its node, runs assigned pods and reports their status."""

from __future__ import annotations

import json
import logging
import threading
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Iterable

from tinykube.api.types import (
    Node,
    NodeStatus,
    ObjectMeta,
    Pod,
    PodStatus,
    from_dict,
    to_dict,
)
from tinykube.controller import _generate_name

log = logging.getLogger(__name__)

LABEL_POD_NAME = "tinykube.pod.name"
LABEL_POD_NAMESPACE = "tinykube.pod.namespace"
LABEL_CONTAINER_NAME = "tinykube.container.name"


@dataclass(frozen=True)
class ContainerState:
    """What the runtime reports about one container of a pod."""

    exists: bool = False
    running: bool = False
    exit_code: int = 0


@dataclass(frozen=True)
class ContainerStatus:
    pod_name: str
    container_name: str
    container_id: str
    status: str


@dataclass
class ContainerInfo:
    """A container as seen by the runtime."""

    id: str
    name: str = ""
    image: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    state: str = ""
    running: bool = False
    exit_code: int = 0


class ContainerRuntime(ABC):
    """The container engine the kubelet drives."""

    @abstractmethod
    def pull_image(self, image: str) -> Iterable[bytes]:
        """Pull ``image``, yielding progress output."""

    @abstractmethod
    def create_container(self, name: str, image: str, labels: dict[str, str]) -> str:
        """Create a container and return its id."""

    @abstractmethod
    def start_container(self, container_id: str) -> None:
        """Start a created container."""

    @abstractmethod
    def list_containers(self, include_stopped: bool = False) -> list[ContainerInfo]:
        """Running containers, or every container when ``include_stopped``."""

    @abstractmethod
    def inspect_container(self, name_or_id: str) -> ContainerInfo | None:
        """The container with this name or id, or None if there is none."""

    @abstractmethod
    def remove_container(self, container_id: str, force: bool = False) -> None:
        """Remove a container, stopping it first when ``force``."""


def determine_pod_status(states: Iterable[ContainerState]) -> PodStatus:
    """Fold the states of a pod's containers into one pod status."""
    states = list(states)
    if any(s.running for s in states):
        return PodStatus.RUNNING
    all_failed = all(not s.exists or s.exit_code != 0 for s in states)
    if all_failed and any(s.exists for s in states):
        return PodStatus.FAILED
    if all(s.exit_code == 0 for s in states):
        return PodStatus.SUCCEEDED
    return PodStatus.SCHEDULED


class Kubelet:
    """Agent for one node, talking to the API server and a container runtime."""

    def __init__(
        self,
        node_name: str,
        api_server_url: str,
        runtime: ContainerRuntime,
        *,
        poll_interval: float = 10.0,
        retry_interval: float = 5.0,
        status_interval: float = 10.0,
        timeout: float = 10.0,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.node_name = node_name
        self.api_server_url = api_server_url
        self.runtime = runtime
        self.poll_interval = poll_interval
        self.retry_interval = retry_interval
        self.status_interval = status_interval
        self.timeout = timeout
        self.pods: dict[str, Pod] = {}
        self._stop = stop_event or threading.Event()
        self._lock = threading.Lock()

    @property
    def _base_url(self) -> str:
        if "://" in self.api_server_url:
            return self.api_server_url.rstrip("/")
        return "http://" + self.api_server_url.rstrip("/")

    def start(self) -> None:
        """Register the node, then watch assignments and statuses in the background."""
        try:
            self.register_node()
        except Exception as err:
            raise RuntimeError(f"failed to register node: {err}") from err
        for target in (self._watch_pods, self._status_loop):
            threading.Thread(target=target, daemon=True).start()

    def register_node(self) -> None:
        node = Node(metadata=ObjectMeta(name=self.node_name), status=NodeStatus.READY)
        status, _ = self._request("POST", "/api/v1/nodes", to_dict(node))
        if status != HTTPStatus.CREATED:
            raise RuntimeError(f"failed to register node, status code: {status}")

    def _request(self, method: str, path: str, payload: Any = None) -> tuple[int, bytes]:
        data = None if payload is None else json.dumps(payload).encode()
        request = urllib.request.Request(
            self._base_url + path,
            data=data,
            method=method,
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as resp:
                return resp.status, resp.read()
        except urllib.error.HTTPError as err:
            return err.code, err.read()
        except (urllib.error.URLError, OSError) as err:
            raise ConnectionError(f"failed to send request to API server: {err}") from err

    def _watch_pods(self) -> None:
        while not self._stop.is_set():
            try:
                pods = self._pod_assignments()
            except Exception as err:
                log.error("Error getting pod assignments: %s", err)
                self._stop.wait(self.retry_interval)
                continue
            self.run_new_pods(pods)
            self._stop.wait(self.poll_interval)

    def _pod_assignments(self) -> list[Pod]:
        query = urllib.parse.urlencode({"nodeName": self.node_name})
        status, body = self._request("GET", f"/api/v1/pods?{query}")
        if status != HTTPStatus.OK:
            raise RuntimeError(f"failed to list pods, status code: {status}")
        return [from_dict(Pod, item) for item in json.loads(body or b"[]") or []]

    def run_new_pods(self, pods: Iterable[Pod]) -> None:
        """Start every pod not seen before, each in its own thread."""
        for pod in pods:
            with self._lock:
                if pod.name in self.pods:
                    continue
                self.pods[pod.name] = pod
            log.info("New pod assigned: %s", pod.name)
            threading.Thread(target=self._run_pod, args=(pod,), daemon=True).start()

    def _run_pod(self, pod: Pod) -> None:
        log.info("Running pod: %s", pod.name)
        for container in pod.spec.containers:
            try:
                self.start_container(pod, container.name, container.image)
            except Exception as err:
                log.error("Failed to start container %s: %s", container.name, err)

    def start_container(self, pod: Pod, container_name: str, image_name: str) -> str:
        """Pull the image, then create and start the container; return its id."""
        log.info("Pulling image: %s", image_name)
        try:
            for chunk in self.runtime.pull_image(image_name):
                log.debug("%s", chunk)
        except Exception as err:
            raise RuntimeError(f"failed to pull image {image_name}: {err}") from err
        log.info("Successfully pulled image: %s", image_name)

        labels = {
            LABEL_POD_NAME: pod.name,
            LABEL_POD_NAMESPACE: pod.metadata.namespace,
            LABEL_CONTAINER_NAME: container_name,
        }
        unique_name = _generate_name(f"{pod.name}-{container_name}")
        try:
            container_id = self.runtime.create_container(unique_name, image_name, labels)
        except Exception as err:
            raise RuntimeError(f"failed to create container {container_name}: {err}") from err
        try:
            self.runtime.start_container(container_id)
        except Exception as err:
            raise RuntimeError(f"failed to start container {container_name}: {err}") from err
        log.info("Started container %s with ID %s", container_name, container_id)
        return container_id

    def _own_pod(self, labels: dict[str, str]) -> Pod | None:
        pod_name = labels.get(LABEL_POD_NAME)
        if pod_name is None:
            return None
        with self._lock:
            pod = self.pods.get(pod_name)
        if pod is None or pod.node_name != self.node_name:
            return None
        return pod

    def list_containers(self) -> list[ContainerStatus]:
        """Running containers that belong to pods assigned to this node."""
        try:
            containers = self.runtime.list_containers()
        except Exception as err:
            raise RuntimeError(f"failed to list containers: {err}") from err
        statuses = []
        for info in containers:
            pod = self._own_pod(info.labels)
            if pod is None:
                continue
            wanted = info.labels.get(LABEL_CONTAINER_NAME)
            spec = next((c for c in pod.spec.containers if c.name == wanted), None)
            if spec is not None:
                statuses.append(ContainerStatus(pod.name, spec.name, info.id, info.state))
        return statuses

    def pod_status(self, pod: Pod) -> PodStatus:
        """The status of ``pod`` derived from its containers' states."""
        states = []
        for container in pod.spec.containers:
            try:
                info = self.runtime.inspect_container(container.name)
            except Exception as err:
                raise RuntimeError(
                    f"failed to get state for container {container.name}: {err}"
                ) from err
            if info is None:
                states.append(ContainerState(exists=False))
            else:
                states.append(ContainerState(True, info.running, info.exit_code))
        return determine_pod_status(states)

    def cleanup_containers(self) -> None:
        """Force-remove every container of pods assigned to this node."""
        try:
            containers = self.runtime.list_containers(include_stopped=True)
        except Exception as err:
            raise RuntimeError(f"error listing containers for cleanup: {err}") from err
        for info in containers:
            pod = self._own_pod(info.labels)
            if pod is None:
                continue
            try:
                self.runtime.remove_container(info.id, force=True)
            except Exception as err:
                log.error("Error removing container %s: %s", info.id, err)
            else:
                log.info("Removed container %s for pod %s", info.id, pod.name)

    def update_pod_statuses(self) -> None:
        """Recompute every pod's status and report the ones that changed."""
        with self._lock:
            pods = list(self.pods.values())
        for pod in pods:
            try:
                status = self.pod_status(pod)
            except Exception as err:
                log.error("Error getting status for pod %s: %s", pod.name, err)
                continue
            if pod.status != status:
                pod.status = status
                try:
                    self._update_pod_status(pod)
                except Exception as err:
                    log.error("Error updating status for pod %s: %s", pod.name, err)

    def _status_loop(self) -> None:
        while not self._stop.wait(self.status_interval):
            self.update_pod_statuses()

    def _update_pod_status(self, pod: Pod) -> None:
        path = "/api/v1/pods/" + urllib.parse.quote(pod.name, safe="")
        status, _ = self._request("PUT", path, to_dict(pod))
        if status != HTTPStatus.OK:
            raise RuntimeError(f"failed to update pod status, status code: {status}")