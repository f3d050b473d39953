"""Admission mutator that injects the fuse sidecar into annotated pods."""

from __future__ import annotations

import copy
import json
import logging
import posixpath
from collections.abc import Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from bladeop import version
from bladeop.settings import Settings

log = logging.getLogger(__name__)

SIDECAR_NAME = "chaosblade-fuse"
FUSE_SERVER_PORT_NAME = "fuse-port"
INJECT_VOLUME_ANNOTATION = "chaosblade/inject-volume"
INJECT_SUBPATH_ANNOTATION = "chaosblade/inject-volume-subpath"

MOUNT_PROPAGATION_HOST_TO_CONTAINER = "HostToContainer"
MOUNT_PROPAGATION_BIDIRECTIONAL = "Bidirectional"

_FUSE_BINARY = "/opt/chaosblade/bin/chaos_fuse"


class MutationError(Exception):
    """The pod asks for the sidecar but cannot be given one."""


@dataclass
class AdmissionResponse:
    """Result of an admission review: allowed or not, with a JSON patch."""

    allowed: bool
    code: int = HTTPStatus.OK
    message: str = ""
    patch: list[dict[str, Any]] = field(default_factory=list)


def _clean(path: str) -> str:
    if not path:
        return "."
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join(*parts: str) -> str:
    present = [p for p in parts if p]
    if not present:
        return ""
    return _clean("/".join(present))


def _dir(path: str) -> str:
    return _clean(path[: path.rfind("/") + 1])


def _base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped[stripped.rfind("/") + 1 :]


def _escape(key: str) -> str:
    return key.replace("~", "~0").replace("/", "~1")


def _diff(src: Any, dst: Any, path: str, ops: list[dict[str, Any]]) -> None:
    if isinstance(src, dict) and isinstance(dst, dict):
        for key in src:
            child = f"{path}/{_escape(str(key))}"
            if key not in dst:
                ops.append({"op": "remove", "path": child})
            else:
                _diff(src[key], dst[key], child, ops)
        for key in dst:
            if key not in src:
                ops.append(
                    {"op": "add", "path": f"{path}/{_escape(str(key))}", "value": dst[key]}
                )
        return
    if isinstance(src, list) and isinstance(dst, list) and len(src) == len(dst):
        for index, (a, b) in enumerate(zip(src, dst)):
            _diff(a, b, f"{path}/{index}", ops)
        return
    if type(src) is not type(dst) or src != dst:
        ops.append({"op": "replace", "path": path, "value": dst})


def get_sidecar_image(settings: Settings) -> str:
    """Image of the fuse sidecar: the configured one, else the tool image."""
    if settings.fuse_sidecar_image:
        return settings.fuse_sidecar_image
    return f"{settings.image_repo()}:{version.VERSION}"


class Mutator:
    """Adds the fuse sidecar to pods that carry the inject-volume annotations."""

    def __init__(self, settings: Settings | None = None, client: Any = None) -> None:
        self.settings = settings if settings is not None else Settings()
        self.client = client

    def mutate(self, pod: dict[str, Any]) -> None:
        """Inject the sidecar into ``pod`` in place; raise MutationError when it cannot."""
        metadata = pod.get("metadata") or {}
        name = metadata.get("name", "")
        annotations = metadata.get("annotations")
        if annotations is None:
            return
        volume_name = annotations.get(INJECT_VOLUME_ANNOTATION)
        if volume_name is None:
            log.info("pod %s has no %s annotation", name, INJECT_VOLUME_ANNOTATION)
            return
        sub_path = annotations.get(INJECT_SUBPATH_ANNOTATION)
        if sub_path is None:
            log.info("pod %s has no %s annotation", name, INJECT_SUBPATH_ANNOTATION)
            return

        spec = pod.setdefault("spec", {})
        containers = spec.get("containers") or []
        if any(c.get("name") == SIDECAR_NAME for c in containers):
            log.info("sidecar has been injected into pod %s", name)
            return
        if not containers:
            raise MutationError("pod has no containers")

        target: dict[str, Any] | None = None
        for mount in containers[0].get("volumeMounts") or []:
            if mount.get("name") != volume_name:
                continue
            propagation = mount.get("mountPropagation")
            if propagation is None:
                raise MutationError(
                    "target volume mount propagation must be HostToContainer or Bidirectional"
                )
            if propagation not in (
                MOUNT_PROPAGATION_HOST_TO_CONTAINER,
                MOUNT_PROPAGATION_BIDIRECTIONAL,
            ):
                raise MutationError("target volume mount propagation is not support")
            target = copy.deepcopy(mount)
            target["mountPropagation"] = MOUNT_PROPAGATION_BIDIRECTIONAL

        if target is None or not target.get("name"):
            raise MutationError(f"pod has no volume mount {volume_name}")

        mount_path = target.get("mountPath", "")
        mount_point = _join(mount_path, sub_path)
        original = _join(mount_path, f"fuse-{sub_path}")
        log.info("get matched pod %s, mount point %s, mount path %s", name, mount_point, mount_path)
        if mount_point == mount_path:
            original = _join(_dir(mount_path), f"fuse-{_base(mount_path)}")

        port = self.settings.fuse_server_port
        resources = {"cpu": "100m", "memory": "50Mi"}
        sidecar = {
            "name": SIDECAR_NAME,
            "image": get_sidecar_image(self.settings),
            "imagePullPolicy": "Always",
            "command": [_FUSE_BINARY],
            "args": [
                f"--address=:{port}",
                f"--mountpoint={mount_point}",
                f"--original={original}",
            ],
            "resources": {"requests": dict(resources), "limits": dict(resources)},
            "ports": [{"name": FUSE_SERVER_PORT_NAME, "containerPort": port}],
            "securityContext": {"privileged": True, "runAsUser": 0},
            "volumeMounts": [target],
        }
        spec["containers"] = [sidecar, containers[0]]

    def handle(self, pod: Any) -> AdmissionResponse:
        """Review a pod (a mapping or JSON text) and answer with a patch."""
        if isinstance(pod, (bytes, bytearray, str)):
            try:
                pod = json.loads(pod)
            except (ValueError, UnicodeDecodeError) as exc:
                return AdmissionResponse(False, HTTPStatus.BAD_REQUEST, str(exc))
        if not isinstance(pod, Mapping):
            return AdmissionResponse(
                False, HTTPStatus.BAD_REQUEST, "pod must be a JSON object"
            )
        original = copy.deepcopy(dict(pod))
        patched = copy.deepcopy(original)
        try:
            self.mutate(patched)
        except MutationError as exc:
            log.error("mutate pod failed: %s", exc)
            return AdmissionResponse(False, HTTPStatus.INTERNAL_SERVER_ERROR, str(exc))
        ops: list[dict[str, Any]] = []
        _diff(original, patched, "", ops)
        return AdmissionResponse(True, HTTPStatus.OK, "", ops)