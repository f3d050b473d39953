"""Data model of the ChaosBlade custom resource."""

from __future__ import annotations

import copy
import dataclasses
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

GROUP = "chaosblade.io"
API_GROUP_VERSION = "v1alpha1"
API_VERSION = f"{GROUP}/{API_GROUP_VERSION}"
KIND = "ChaosBlade"
LIST_KIND = "ChaosBladeList"

POD_KIND = "pod"
CONTAINER_KIND = "container"
NODE_KIND = "node"

SUCCESS_STATE = "Success"
ERROR_STATE = "Error"
DESTROYED_STATE = "Destroyed"


class ClusterPhase(str, enum.Enum):
    """Lifecycle phase of a ChaosBlade resource."""

    INITIAL = ""
    INITIALIZED = "Initialized"
    RUNNING = "Running"
    UPDATING = "Updating"
    DESTROYING = "Destroying"
    DESTROYED = "Destroyed"
    ERROR = "Error"


def _format_time(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_time(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class FlagSpec:
    """A named flag with its values."""

    name: str
    value: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": list(self.value)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlagSpec:
        return cls(name=data.get("name", ""), value=list(data.get("value") or []))


@dataclass
class ExperimentSpec:
    """One experiment: scope, target, action and its matchers."""

    scope: str = ""
    target: str = ""
    action: str = ""
    desc: str = ""
    matchers: list[FlagSpec] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "scope": self.scope,
            "target": self.target,
            "action": self.action,
        }
        if self.desc:
            data["desc"] = self.desc
        if self.matchers:
            data["matchers"] = [m.to_dict() for m in self.matchers]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExperimentSpec:
        return cls(
            scope=data.get("scope", ""),
            target=data.get("target", ""),
            action=data.get("action", ""),
            desc=data.get("desc", ""),
            matchers=[FlagSpec.from_dict(m) for m in data.get("matchers") or []],
        )


@dataclass
class ChaosBladeSpec:
    """Desired state: the list of experiments."""

    experiments: list[ExperimentSpec] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"experiments": [e.to_dict() for e in self.experiments]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBladeSpec:
        return cls(
            experiments=[ExperimentSpec.from_dict(e) for e in data.get("experiments") or []]
        )


@dataclass
class ResourceStatus:
    """Outcome of an experiment on a single resource."""

    id: str = ""
    state: str = ""
    code: int = 0
    error: str = ""
    success: bool = False
    kind: str = ""
    identifier: str = ""

    def create_fail(self, error: str, code: int) -> ResourceStatus:
        """Mark this status failed and return a copy of it."""
        self.state = ERROR_STATE
        self.error = error
        self.success = False
        self.code = code
        return dataclasses.replace(self)

    def create_success(self) -> ResourceStatus:
        """Mark this status successful and return a copy of it."""
        self.state = SUCCESS_STATE
        self.success = True
        return dataclasses.replace(self)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.id:
            data["id"] = self.id
        data["state"] = self.state
        if self.code:
            data["code"] = self.code
        if self.error:
            data["error"] = self.error
        data["success"] = self.success
        data["kind"] = self.kind
        if self.identifier:
            data["identifier"] = self.identifier
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceStatus:
        return cls(
            id=data.get("id", ""),
            state=data.get("state", ""),
            code=int(data.get("code", 0)),
            error=data.get("error", ""),
            success=bool(data.get("success", False)),
            kind=data.get("kind", ""),
            identifier=data.get("identifier", ""),
        )


@dataclass
class ExperimentStatus:
    """Outcome of one experiment across its resources."""

    scope: str = ""
    target: str = ""
    action: str = ""
    success: bool = False
    state: str = ""
    error: str = ""
    res_statuses: list[ResourceStatus] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "scope": self.scope,
            "target": self.target,
            "action": self.action,
            "success": self.success,
            "state": self.state,
        }
        if self.error:
            data["error"] = self.error
        if self.res_statuses:
            data["resStatuses"] = [s.to_dict() for s in self.res_statuses]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExperimentStatus:
        raw = data.get("resStatuses")
        return cls(
            scope=data.get("scope", ""),
            target=data.get("target", ""),
            action=data.get("action", ""),
            success=bool(data.get("success", False)),
            state=data.get("state", ""),
            error=data.get("error", ""),
            res_statuses=None if raw is None else [ResourceStatus.from_dict(s) for s in raw],
        )


@dataclass
class ChaosBladeStatus:
    """Observed state: phase and per-experiment statuses."""

    phase: ClusterPhase = ClusterPhase.INITIAL
    exp_statuses: list[ExperimentStatus] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.phase.value:
            data["phase"] = self.phase.value
        data["expStatuses"] = (
            None if self.exp_statuses is None else [s.to_dict() for s in self.exp_statuses]
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBladeStatus:
        raw = data.get("expStatuses")
        return cls(
            phase=ClusterPhase(data.get("phase", "")),
            exp_statuses=None if raw is None else [ExperimentStatus.from_dict(s) for s in raw],
        )


@dataclass
class ChaosBlade:
    """The ChaosBlade resource with the metadata the operator uses."""

    name: str = ""
    namespace: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: datetime | None = None
    spec: ChaosBladeSpec = field(default_factory=ChaosBladeSpec)
    status: ChaosBladeStatus = field(default_factory=ChaosBladeStatus)

    def deep_copy(self) -> ChaosBlade:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {"name": self.name}
        if self.namespace:
            metadata["namespace"] = self.namespace
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)
        if self.finalizers:
            metadata["finalizers"] = list(self.finalizers)
        if self.deletion_timestamp is not None:
            metadata["deletionTimestamp"] = _format_time(self.deletion_timestamp)
        return {
            "apiVersion": API_VERSION,
            "kind": KIND,
            "metadata": metadata,
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBlade:
        metadata = data.get("metadata") or {}
        stamp = metadata.get("deletionTimestamp")
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            annotations=dict(metadata.get("annotations") or {}),
            finalizers=list(metadata.get("finalizers") or []),
            deletion_timestamp=None if not stamp else _parse_time(stamp),
            spec=ChaosBladeSpec.from_dict(data.get("spec") or {}),
            status=ChaosBladeStatus.from_dict(data.get("status") or {}),
        )


@dataclass
class ChaosBladeList:
    """A list of ChaosBlade resources."""

    items: list[ChaosBlade] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": LIST_KIND,
            "metadata": {},
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBladeList:
        return cls(items=[ChaosBlade.from_dict(i) for i in data.get("items") or []])


def create_fail_experiment_status(
    error: str, res_statuses: list[ResourceStatus] | None
) -> ExperimentStatus:
    return ExperimentStatus(
        success=False, state=ERROR_STATE, error=error, res_statuses=res_statuses
    )


def create_success_experiment_status(
    res_statuses: list[ResourceStatus] | None,
) -> ExperimentStatus:
    return ExperimentStatus(success=True, state=SUCCESS_STATE, res_statuses=res_statuses)


def create_destroyed_experiment_status(
    res_statuses: list[ResourceStatus] | None,
) -> ExperimentStatus:
    return ExperimentStatus(success=True, state=DESTROYED_STATE, res_statuses=res_statuses)


def create_fail_res_statuses(code: int, error: str, uid: str) -> list[ResourceStatus]:
    return [ResourceStatus(error=error, code=code, id=uid, success=False)]