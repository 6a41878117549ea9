"""Replica set controller: keeps the number of running pods at the desired count."""

from __future__ import annotations

import copy
import logging
import random
import threading
from typing import Any, Callable, Iterable

from tinykube.api.types import (
    ObjectMeta,
    Pod,
    PodStatus,
    ReplicaSet,
    is_owned_by,
    is_pod_active_and_owned_by,
)

log = logging.getLogger(__name__)

_NAME_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"
_MAX_NAME_LENGTH = 63
_RANDOM_LENGTH = 5


def _generate_name(base: str) -> str:
    base = base[: _MAX_NAME_LENGTH - _RANDOM_LENGTH]
    return base + "".join(random.choices(_NAME_ALPHABET, k=_RANDOM_LENGTH))


class ReplicaSetController:
    """Reconciles every replica set against the pods that belong to it.

    ``replica_set_registry`` must offer ``get(name)``, ``list()`` and
    ``update(rs)``; ``pod_registry`` must offer ``list_pods()``,
    ``create_pod(pod)`` and ``delete_pod(name)``.
    """

    def __init__(self, replica_set_registry: Any, pod_registry: Any, interval: float = 1.0) -> None:
        self.replica_set_registry = replica_set_registry
        self.pod_registry = pod_registry
        self.interval = interval

    def reconcile(self, rs: ReplicaSet) -> ReplicaSet:
        """Create or remove pods so the replica set has the desired count."""
        current = self.replica_set_registry.get(rs.name)
        active = self.pods_for_replica_set(
            current, self.pod_registry.list_pods(), is_pod_active_and_owned_by
        )
        desired = current.spec.replicas

        if len(active) < desired:
            for _ in range(desired - len(active)):
                self.pod_registry.create_pod(self._pod_from_template(current))
        elif len(active) > desired:
            for pod in active[desired:]:
                self.pod_registry.delete_pod(pod.name)

        remaining = self.pods_for_replica_set(
            current, self.pod_registry.list_pods(), is_pod_active_and_owned_by
        )
        current.status.replicas = len(remaining)
        self.replica_set_registry.update(current)
        return current

    def pods_for_replica_set(
        self,
        rs: ReplicaSet,
        pods: Iterable[Pod],
        condition: Callable[[Pod, ObjectMeta], bool],
    ) -> list[Pod]:
        """The pods that satisfy ``condition`` against the replica set's metadata."""
        return [pod for pod in pods if condition(pod, rs.metadata)]

    def pods_owned_by(self, rs: ReplicaSet, pods: Iterable[Pod]) -> list[Pod]:
        return self.pods_for_replica_set(rs, pods, is_owned_by)

    def run(self) -> None:
        """Reconcile every replica set once."""
        for rs in self.replica_set_registry.list():
            self.reconcile(rs)

    def start(self, stop_event: threading.Event) -> None:
        """Reconcile on every tick until ``stop_event`` is set."""
        while not stop_event.wait(self.interval):
            try:
                self.run()
            except Exception as err:  # keep the loop alive across failures
                log.error("Error reconciling replicaset: %s", err)

    @staticmethod
    def _pod_from_template(rs: ReplicaSet) -> Pod:
        template = rs.spec.template
        return Pod(
            metadata=ObjectMeta(
                name=_generate_name(rs.name),
                namespace=rs.metadata.namespace or template.metadata.namespace,
            ),
            spec=copy.deepcopy(template.spec),
            status=PodStatus.PENDING,
        )