"""Pod-level experiment helpers: readiness, fault sidecar address, pod failure."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from bladeop.faults import InjectMessage
from bladeop.mutator import FUSE_SERVER_PORT_NAME

FAIL_POD_ANNOTATION_PREFIX = "failPod"
FAULT_IMAGE_SUFFIX = "-fault-injection"

_INTEGER = re.compile(r"[+-]?\d+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_UINT32_MASK = 0xFFFFFFFF


class ParameterError(ValueError):
    """A flag value cannot be used for the experiment."""

    def __init__(self, name: str, value: str, reason: str) -> None:
        super().__init__(f"illegal {name} parameter value {value!r}: {reason}")
        self.name = name
        self.value = value
        self.reason = reason


def _section(obj: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = obj.get(key)
    return value if isinstance(value, Mapping) else {}


def is_pod_ready(pod: Mapping[str, Any]) -> bool:
    """True when the pod is not being deleted and reports the Ready condition."""
    if _section(pod, "metadata").get("deletionTimestamp") is not None:
        return False
    conditions = _section(pod, "status").get("conditions") or []
    return any(
        condition.get("type") == "Ready" and condition.get("status") == "True"
        for condition in conditions
    )


def get_container_port(port_name: str, pod: Mapping[str, Any]) -> int:
    """Return the container port named ``port_name``; raise LookupError when absent."""
    for container in _section(pod, "spec").get("containers") or []:
        for port in container.get("ports") or []:
            if port.get("name") == port_name:
                return int(port.get("containerPort", 0))
    raise LookupError("can not found fuse-server container port")


def hook_address(pod: Mapping[str, Any], port_name: str = FUSE_SERVER_PORT_NAME) -> str:
    """The ``host:port`` of the fault server sidecar running in ``pod``."""
    port = get_container_port(port_name, pod)
    pod_ip = _section(pod, "status").get("podIP", "")
    return f"{pod_ip}:{port}"


def _parse_uint32_flag(flags: Mapping[str, str], name: str) -> int:
    text = flags.get(name)
    if not text:
        return 0
    if _INTEGER.fullmatch(text) is None:
        raise ParameterError(name, text, f"{name} must be integer")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ParameterError(name, text, "value out of range")
    return value & _UINT32_MASK


def build_inject_message(flags: Mapping[str, str]) -> InjectMessage:
    """Build the IO fault request from the experiment's action flags.

    Raises ParameterError when delay, percent or errno is not an integer.
    """
    delay = _parse_uint32_flag(flags, "delay")
    percent = _parse_uint32_flag(flags, "percent")
    errno = _parse_uint32_flag(flags, "errno")
    return InjectMessage(
        methods=flags.get("method", "").split(","),
        path=flags.get("path", ""),
        delay=delay,
        percent=percent,
        random=flags.get("random") == "true",
        errno=errno,
    )


def is_annotation_exist(annotations: Mapping[str, str] | None, key: str) -> bool:
    """True when ``key`` is among the annotations."""
    return annotations is not None and key in annotations


def fail_pod(pod: dict[str, Any]) -> dict[str, Any]:
    """Point every container at a broken image, remembering the original in annotations.

    Containers already failed are left alone. The pod is changed in place and returned.
    """
    metadata = pod.setdefault("metadata", {})
    spec = pod.setdefault("spec", {})
    for container in spec.get("containers") or []:
        name = container.get("name", "")
        key = f"{FAIL_POD_ANNOTATION_PREFIX}-{name}"
        if metadata.get("annotations") is None:
            metadata["annotations"] = {}
        annotations = metadata["annotations"]
        if is_annotation_exist(annotations, key):
            continue
        image = container.get("image", "")
        annotations[key] = image
        container["image"] = f"{image}{FAULT_IMAGE_SUFFIX}"
    return pod


def pod_identifier(namespace: str, node_name: str, pod_name: str) -> str:
    """Identifier of a pod resource: ``namespace/node/pod``."""
    return f"{namespace}/{node_name}/{pod_name}"