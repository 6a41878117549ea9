"""Resource types, struct validation and JSON mapping for the cluster API."""

import re
import types
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Union, get_args, get_origin

_ZERO_TIME = "0001-01-01T00:00:00Z"


class PodStatus(str, Enum):
    """Lifecycle state of a pod."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    SCHEDULED = "Scheduled"


class NodeStatus(str, Enum):
    """Condition reported by a node."""

    NOT_READY = "NotReady"
    READY = "Ready"
    MEMORY_PRESSURE = "MemoryPressure"
    DISK_PRESSURE = "DiskPressure"


class ValidationError(ValueError):
    """One or more fields of a resource broke their validation rules."""

    def __init__(self, failures: list[str]) -> None:
        self.failures = list(failures)
        super().__init__("\n".join(self.failures))


class InvalidPodSpecError(ValueError):
    """A pod failed validation."""


class InvalidNodeSpecError(ValueError):
    """A node failed validation."""

    def __init__(self, message: str = "invalid node spec") -> None:
        super().__init__(message)


def _field(
    key: str,
    json_name: str,
    *,
    default: Any = MISSING,
    factory: Any = MISSING,
    omitempty: bool = False,
    rules: tuple[str, ...] = (),
) -> Any:
    meta = {"key": key, "json": json_name, "omitempty": omitempty, "rules": rules}
    if factory is not MISSING:
        return field(default_factory=factory, metadata=meta)
    return field(default=default, metadata=meta)


@dataclass
class Container:
    name: str = _field("Name", "name", default="", rules=("required",))
    image: str = _field("Image", "image", default="", rules=("required",))


@dataclass
class ObjectMeta:
    name: str = _field("Name", "name", default="", rules=("required",))
    namespace: str = _field("Namespace", "namespace", default="", omitempty=True)
    uid: str = _field("UID", "uid", default="", omitempty=True)
    resource_version: str = _field(
        "ResourceVersion", "resourceVersion", default="", omitempty=True
    )
    creation_timestamp: datetime | None = _field(
        "CreationTimestamp", "creationTimestamp", default=None
    )


@dataclass
class PodSpec:
    containers: list[Container] = _field(
        "Containers", "containers", factory=list, rules=("required", "dive", "required")
    )
    replicas: int = _field("Replicas", "replicas", default=0, rules=("gte=0",))


class _Named:
    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name


@dataclass
class Pod(_Named):
    metadata: ObjectMeta = _field("ObjectMeta", "metadata", factory=ObjectMeta)
    spec: PodSpec = _field("Spec", "spec", factory=PodSpec, rules=("required",))
    node_name: str = _field("NodeName", "nodeName", default="", omitempty=True)
    status: PodStatus | None = _field("Status", "status", default=None)

    def validate(self) -> None:
        """Raise InvalidPodSpecError if the pod breaks a validation rule."""
        try:
            validate_struct(self)
        except ValidationError as err:
            raise InvalidPodSpecError(f"invalid pod spec: {err}") from err

    def is_active(self) -> bool:
        """Every pod that has not failed counts as active."""
        return self.status != PodStatus.FAILED


@dataclass
class NodeSpec:
    unschedulable: bool = _field(
        "Unschedulable", "unschedulable", default=False, omitempty=True
    )
    provider_id: str = _field("ProviderID", "providerID", default="", omitempty=True)


@dataclass
class Node(_Named):
    metadata: ObjectMeta = _field("ObjectMeta", "metadata", factory=ObjectMeta)
    spec: NodeSpec = _field("Spec", "spec", factory=NodeSpec)
    status: NodeStatus | None = _field("Status", "status", default=None, omitempty=True)

    def validate(self) -> None:
        """Raise InvalidNodeSpecError if the node breaks a validation rule."""
        try:
            validate_struct(self)
        except ValidationError as err:
            raise InvalidNodeSpecError() from err


@dataclass
class PodTemplateSpec:
    metadata: ObjectMeta = _field("ObjectMeta", "metadata", factory=ObjectMeta)
    spec: PodSpec = _field("Spec", "spec", factory=PodSpec)


@dataclass
class ReplicaSetSpec:
    replicas: int = _field("Replicas", "replicas", default=0)
    selector: dict[str, str] = _field("Selector", "selector", factory=dict)
    template: PodTemplateSpec = _field("Template", "template", factory=PodTemplateSpec)


@dataclass
class ReplicaSetStatus:
    replicas: int = _field("Replicas", "replicas", default=0)
    fully_labeled_replicas: int = _field(
        "FullyLabeledReplicas", "fullyLabeledReplicas", default=0, omitempty=True
    )
    ready_replicas: int = _field(
        "ReadyReplicas", "readyReplicas", default=0, omitempty=True
    )
    available_replicas: int = _field(
        "AvailableReplicas", "availableReplicas", default=0, omitempty=True
    )


@dataclass
class ReplicaSet(_Named):
    metadata: ObjectMeta = _field("ObjectMeta", "metadata", factory=ObjectMeta)
    spec: ReplicaSetSpec = _field("Spec", "spec", factory=ReplicaSetSpec)
    status: ReplicaSetStatus = _field("Status", "status", factory=ReplicaSetStatus)


def is_owned_by(pod: Pod, meta: ObjectMeta) -> bool:
    """A pod belongs to an owner whose name prefixes the pod's name."""
    return pod.name.startswith(meta.name)


def is_pod_active_and_owned_by(pod: Pod, meta: ObjectMeta) -> bool:
    return is_owned_by(pod, meta) and pod.is_active()


# --- validation -------------------------------------------------------------


def _required(value: Any, _param: str) -> bool:
    return is_dataclass(value) or bool(value)


def _gte(value: Any, param: str) -> bool:
    limit = int(param)
    if isinstance(value, (list, dict, str)):
        return len(value) >= limit
    return value >= limit


_CHECKS: dict[str, Callable[[Any, str], bool]] = {"required": _required, "gte": _gte}


def _split_rules(rules: tuple[str, ...]) -> tuple[tuple[str, ...], tuple[str, ...] | None]:
    if "dive" in rules:
        at = rules.index("dive")
        return rules[:at], rules[at + 1 :]
    return rules, None


def _first_failure(rules: tuple[str, ...], value: Any, path: str, key: str) -> str | None:
    for rule in rules:
        tag, _, param = rule.partition("=")
        if not _CHECKS[tag](value, param):
            return f"Key: '{path}' Error:Field validation for '{key}' failed on the '{tag}' tag"
    return None


def _collect_failures(obj: Any, namespace: str) -> list[str]:
    failures: list[str] = []
    for f in fields(obj):
        key = f.metadata.get("key", f.name)
        path = f"{namespace}.{key}"
        value = getattr(obj, f.name)
        own, dive = _split_rules(f.metadata.get("rules", ()))
        failure = _first_failure(own, value, path, key)
        if failure:
            failures.append(failure)
            continue
        if dive is not None:
            for index, item in enumerate(value or ()):
                item_path = f"{path}[{index}]"
                item_failure = _first_failure(dive, item, item_path, f"{key}[{index}]")
                if item_failure:
                    failures.append(item_failure)
                elif is_dataclass(item):
                    failures.extend(_collect_failures(item, item_path))
        elif is_dataclass(value):
            failures.extend(_collect_failures(value, path))
    return failures


def validate_struct(obj: Any) -> None:
    """Check a resource against its field rules; raise ValidationError on failure."""
    if not is_dataclass(obj) or isinstance(obj, type):
        raise TypeError(f"cannot validate {type(obj).__name__}")
    failures = _collect_failures(obj, type(obj).__name__)
    if failures:
        raise ValidationError(failures)


# --- JSON mapping -----------------------------------------------------------


def _hints(cls: type) -> dict[str, Any]:
    return {f.name: f.type for f in fields(cls)}


def _optional_inner(tp: Any) -> Any:
    if get_origin(tp) in (Union, types.UnionType):
        return next(a for a in get_args(tp) if a is not type(None))
    return tp


def _is_zero(value: Any) -> bool:
    if is_dataclass(value):
        return False
    return value is None or value is False or value == 0 or value in ("", [], {})


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def _parse_time(text: Any) -> datetime:
    if not isinstance(text, str):
        raise ValueError(f"cannot decode {text!r} as a timestamp")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = re.sub(
        r"\.(\d+)", lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1
    )
    return datetime.fromisoformat(text)


def _encode(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        hints = _hints(type(value))
        out: dict[str, Any] = {}
        for f in fields(value):
            item = getattr(value, f.name)
            if f.metadata.get("omitempty") and _is_zero(item):
                continue
            if item is None:
                inner = _optional_inner(hints[f.name])
                out[f.metadata["json"]] = _ZERO_TIME if inner is datetime else ""
            else:
                out[f.metadata["json"]] = _encode(item)
        return out
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return _format_time(value)
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _encode(v) for k, v in value.items()}
    return value


def to_dict(obj: Any) -> Any:
    """Turn a resource, or a list of resources, into JSON-ready data."""
    return _encode(obj)


def _zero(tp: Any) -> Any:
    origin = get_origin(tp)
    if origin is list:
        return []
    if origin is dict:
        return {}
    return tp()


def _decode(tp: Any, value: Any) -> Any:
    origin = get_origin(tp)
    if origin in (Union, types.UnionType):
        inner = _optional_inner(tp)
        if value is None or value == "":
            return None
        if inner is datetime and value == _ZERO_TIME:
            return None
        return _decode(inner, value)
    if value is None:
        return _zero(tp)
    if origin is list:
        if not isinstance(value, list):
            raise ValueError(f"expected a list, got {value!r}")
        (item_type,) = get_args(tp)
        return [_decode(item_type, item) for item in value]
    if origin is dict:
        if not isinstance(value, dict):
            raise ValueError(f"expected an object, got {value!r}")
        _, value_type = get_args(tp)
        return {str(k): _decode(value_type, v) for k, v in value.items()}
    if is_dataclass(tp):
        return from_dict(tp, value)
    if isinstance(tp, type) and issubclass(tp, Enum):
        return tp(value)
    if tp is datetime:
        return _parse_time(value)
    if tp is bool:
        if not isinstance(value, bool):
            raise ValueError(f"expected a boolean, got {value!r}")
        return value
    if tp is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"expected an integer, got {value!r}")
        return value
    if tp is str:
        if not isinstance(value, str):
            raise ValueError(f"expected a string, got {value!r}")
        return value
    raise ValueError(f"cannot decode {value!r} as {tp!r}")


def from_dict(kind: type, data: Any) -> Any:
    """Build a resource of type ``kind`` from decoded JSON data."""
    if not isinstance(data, dict):
        raise ValueError(f"expected an object for {kind.__name__}, got {data!r}")
    hints = _hints(kind)
    kwargs = {
        f.name: _decode(hints[f.name], data[f.metadata["json"]])
        for f in fields(kind)
        if f.metadata.get("json") in data
    }
    return kind(**kwargs)