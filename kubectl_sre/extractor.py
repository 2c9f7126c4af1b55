import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

from kubectl_sre.errors import ParseError
from kubectl_sre.model import (
    Condition,
    ContainerState,
    DeploymentStatus,
    EventInfo,
    NodeStatus,
    PodStatus,
    PVCStatus,
    ResourceList,
    ServiceAccountInfo,
    ServiceStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Raw = bytes | str | dict[str, Any]

# ----------------------------
# Decoding utilities
# ----------------------------


def decode(data: Raw) -> dict[str, Any]:
    """
    Decode raw kubectl output into a dict. Already-decoded dicts pass through.
    """
    if isinstance(data, dict):
        return data
    try:
        obj = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise ParseError(f"invalid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise ParseError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


def _section(obj: dict[str, Any], key: str) -> dict[str, Any]:
    value = obj.get(key)
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    return 0


def _labels(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}


def parse_time(ts: Any) -> datetime | None:
    if not isinstance(ts, str) or not ts:
        return None
    try:
        return datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except ValueError:
        return None


def _conditions(status: dict[str, Any]) -> tuple[Condition, ...]:
    result = []
    for c in _list(status.get("conditions")):
        if not isinstance(c, dict):
            continue
        result.append(
            Condition(
                type=_str(c.get("type")),
                status=_str(c.get("status")),
                reason=_str(c.get("reason")),
                message=_str(c.get("message")),
            )
        )
    return tuple(result)


def _resource_list(value: Any) -> ResourceList:
    if not isinstance(value, dict):
        return ResourceList()
    return ResourceList(
        cpu=_str(value.get("cpu")),
        memory=_str(value.get("memory")),
        pods=_str(value.get("pods")),
    )


# ----------------------------
# Single resources
# ----------------------------


def _container_state(cs: dict[str, Any]) -> ContainerState:
    state = _section(cs, "state")
    running = state.get("running")
    waiting = state.get("waiting")
    terminated = state.get("terminated")

    kind, reason, message, exit_code = "", "", "", 0
    if isinstance(running, dict):
        kind = "running"
    elif isinstance(waiting, dict):
        kind = "waiting"
        reason = _str(waiting.get("reason"))
        message = _str(waiting.get("message"))
    elif isinstance(terminated, dict):
        kind = "terminated"
        reason = _str(terminated.get("reason"))
        message = _str(terminated.get("message"))
        exit_code = _int(terminated.get("exitCode"))

    return ContainerState(
        name=_str(cs.get("name")),
        ready=bool(cs.get("ready", False)),
        restart_count=_int(cs.get("restartCount")),
        state=kind,
        reason=reason,
        message=message,
        exit_code=exit_code,
    )


def parse_pod(data: Raw) -> PodStatus:
    pod = decode(data)
    metadata = _section(pod, "metadata")
    spec = _section(pod, "spec")
    status = _section(pod, "status")

    conditions = _conditions(status)
    containers = tuple(
        _container_state(cs)
        for cs in _list(status.get("containerStatuses"))
        if isinstance(cs, dict)
    )

    return PodStatus(
        name=_str(metadata.get("name")),
        namespace=_str(metadata.get("namespace")),
        phase=_str(status.get("phase")),
        ready=any(c.type == "Ready" and c.status == "True" for c in conditions),
        restart_count=sum(c.restart_count for c in containers),
        container_states=containers,
        conditions=conditions,
        node_name=_str(spec.get("nodeName")),
        start_time=parse_time(status.get("startTime")),
        labels=_labels(metadata.get("labels")),
    )


def parse_deployment(data: Raw) -> DeploymentStatus:
    deploy = decode(data)
    metadata = _section(deploy, "metadata")
    spec = _section(deploy, "spec")
    status = _section(deploy, "status")
    selector = _section(spec, "selector")

    return DeploymentStatus(
        name=_str(metadata.get("name")),
        namespace=_str(metadata.get("namespace")),
        replicas=_int(spec.get("replicas")),
        ready_replicas=_int(status.get("readyReplicas")),
        available_replicas=_int(status.get("availableReplicas")),
        unavailable_replicas=_int(status.get("unavailableReplicas")),
        updated_replicas=_int(status.get("updatedReplicas")),
        conditions=_conditions(status),
        selector=_labels(selector.get("matchLabels")),
    )


def parse_node(data: Raw) -> NodeStatus:
    node = decode(data)
    metadata = _section(node, "metadata")
    status = _section(node, "status")
    conditions = _conditions(status)

    flags = {c.type: c.status for c in conditions}

    return NodeStatus(
        name=_str(metadata.get("name")),
        ready=flags.get("Ready") == "True",
        conditions=conditions,
        allocatable=_resource_list(status.get("allocatable")),
        capacity=_resource_list(status.get("capacity")),
        memory_pressure=flags.get("MemoryPressure") == "True",
        disk_pressure=flags.get("DiskPressure") == "True",
        pid_pressure=flags.get("PIDPressure") == "True",
        # No NetworkUnavailable condition means the network is fine
        network_available=flags.get("NetworkUnavailable") != "True",
        labels=_labels(metadata.get("labels")),
    )


def parse_pvc(data: Raw) -> PVCStatus:
    pvc = decode(data)
    metadata = _section(pvc, "metadata")
    spec = _section(pvc, "spec")
    status = _section(pvc, "status")
    return PVCStatus(
        name=_str(metadata.get("name")),
        namespace=_str(metadata.get("namespace")),
        phase=_str(status.get("phase")),
        storage_class=_str(spec.get("storageClassName")),
    )


def parse_service(data: Raw) -> ServiceStatus:
    svc = decode(data)
    metadata = _section(svc, "metadata")
    spec = _section(svc, "spec")
    load_balancer = _section(_section(svc, "status"), "loadBalancer")

    ingress = []
    for entry in _list(load_balancer.get("ingress")):
        if isinstance(entry, dict):
            address = _str(entry.get("ip")) or _str(entry.get("hostname"))
            if address:
                ingress.append(address)

    return ServiceStatus(
        name=_str(metadata.get("name")),
        namespace=_str(metadata.get("namespace")),
        type=_str(spec.get("type")) or "ClusterIP",
        cluster_ip=_str(spec.get("clusterIP")),
        ingress=tuple(ingress),
    )


def parse_service_account(data: Raw) -> ServiceAccountInfo:
    sa = decode(data)
    metadata = _section(sa, "metadata")
    return ServiceAccountInfo(
        name=_str(metadata.get("name")),
        namespace=_str(metadata.get("namespace")),
        annotations=_labels(metadata.get("annotations")),
    )


def parse_event(data: Raw) -> EventInfo:
    item = decode(data)
    involved = _section(item, "involvedObject")
    return EventInfo(
        type=_str(item.get("type")),
        reason=_str(item.get("reason")),
        message=_str(item.get("message")),
        count=_int(item.get("count")),
        first_timestamp=parse_time(item.get("firstTimestamp")),
        last_timestamp=parse_time(item.get("lastTimestamp") or item.get("eventTime")),
        object_kind=_str(involved.get("kind")),
        object_name=_str(involved.get("name")),
        object_namespace=_str(involved.get("namespace")),
    )


# ----------------------------
# Lists
# ----------------------------


@dataclass
class ExtractResult(Generic[T]):
    items: list[T] = field(default_factory=list)
    skipped: int = 0


def parse_list(data: Raw, parser: Callable[[Raw], T]) -> ExtractResult[T]:
    """
    Decode a List envelope (`items` array) item by item.

    A malformed envelope raises ParseError. A malformed item is skipped and
    counted so callers can report how much of the scan was lost.
    """
    envelope = decode(data)
    items = envelope.get("items")
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ParseError("'items' is not a list")

    result: ExtractResult[T] = ExtractResult()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.debug("skipping list item %d: not an object", index)
            result.skipped += 1
            continue
        try:
            result.items.append(parser(item))
        except (ParseError, AttributeError, TypeError, ValueError) as e:
            logger.debug("skipping list item %d: %s", index, e)
            result.skipped += 1
    return result


def parse_events(data: Raw) -> list[EventInfo]:
    result = parse_list(data, parse_event)
    if result.skipped:
        logger.warning("%d events could not be decoded", result.skipped)
    return result.items
