"""Reconciliation of ChaosBlade resources through their lifecycle phases."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Any, Iterable, Protocol

from bladeop.predicate import CHAOSBLADE_FINALIZER, PRE_SPEC_ANNOTATION
from bladeop.types import (
    ChaosBlade,
    ChaosBladeSpec,
    ClusterPhase,
    ExperimentSpec,
    ExperimentStatus,
)

log = logging.getLogger(__name__)

CLEAN_UP_PATCH = {"metadata": {"finalizers": []}}

_UNITS_NS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|\u00b5s|\u03bcs|ms|s|m|h)")
_MAX_NS = 2**63 - 1


class ExperimentExecutor(Protocol):
    """Runs and reverts experiments for a blade."""

    def create(self, name: str, spec: ExperimentSpec) -> ExperimentStatus: ...

    def destroy(
        self, name: str, spec: ExperimentSpec, old_status: ExperimentStatus
    ) -> ExperimentStatus: ...


class BladeClient(Protocol):
    """Access to ChaosBlade resources in the cluster."""

    def get(self, name: str) -> ChaosBlade: ...

    def update(self, blade: ChaosBlade) -> Any: ...

    def update_status(self, blade: ChaosBlade) -> Any: ...

    def list(self) -> Iterable[ChaosBlade]: ...

    def patch(self, name: str, patch: dict[str, Any]) -> Any: ...


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``72h`` or ``1h30m``; raise ValueError when malformed."""
    original = text
    sign = 1
    if text[:1] in ("+", "-"):
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {original!r}")
    total = Fraction(0)
    position = 0
    while position < len(text):
        match = _COMPONENT.match(text, position)
        if match is None:
            raise ValueError(f"invalid duration {original!r}")
        number, unit = match.groups()
        total += Fraction(number) * _UNITS_NS[unit]
        position = match.end()
    nanoseconds = int(total)
    if nanoseconds > _MAX_NS:
        raise ValueError(f"invalid duration {original!r}")
    return timedelta(microseconds=sign * (nanoseconds // 1000))


def contains(items: Iterable[str], value: str) -> bool:
    """Return True when ``value`` is among ``items``."""
    return value in items


def remove(items: Iterable[str], value: str) -> list[str]:
    """Return ``items`` without any occurrence of ``value``."""
    return [item for item in items if item != value]


class ChaosBladeReconciler:
    """Moves a ChaosBlade through its phases, running its experiments."""

    def __init__(self, client: BladeClient, executor: ExperimentExecutor) -> None:
        self.client = client
        self.executor = executor

    def reconcile(self, name: str) -> None:
        """Bring the blade called ``name`` one step towards its desired state."""
        try:
            blade = self.client.get(name)
        except Exception as exc:  # the object may be gone already
            log.debug("cannot get chaosblade %s: %s", name, exc)
            return
        if not blade.spec.experiments:
            return

        phase = blade.status.phase
        if phase == ClusterPhase.DESTROYED:
            blade.finalizers = remove(blade.finalizers, CHAOSBLADE_FINALIZER)
            self._try(self.client.update, blade,
                      "remove chaosblade finalizer failed at destroyed phase")
            return

        if phase == ClusterPhase.DESTROYING or blade.deletion_timestamp is not None:
            try:
                self.finalize(blade)
            except Exception as exc:
                log.error("%s: finalize chaosblade failed at destroying phase: %s", name, exc)
            return

        if phase == ClusterPhase.INITIAL:
            if contains(blade.finalizers, CHAOSBLADE_FINALIZER):
                blade.status.phase = ClusterPhase.INITIALIZED
                blade.status.exp_statuses = []
                self._try(self.client.update_status, blade,
                          "update chaosblade phase to Initialized failed")
            else:
                blade.finalizers = [*blade.finalizers, CHAOSBLADE_FINALIZER]
                self._try(self.client.update, blade, "add finalizer to chaosblade failed")
            return

        if phase in (ClusterPhase.INITIALIZED, ClusterPhase.UPDATING):
            self._run_experiments(blade)
            return

        if phase in (ClusterPhase.RUNNING, ClusterPhase.ERROR):
            self._redo_experiments(blade)

    def _run_experiments(self, blade: ChaosBlade) -> None:
        original = blade.status.phase
        new_phase = ClusterPhase.ERROR
        statuses: list[ExperimentStatus] = []
        for experiment in blade.spec.experiments:
            status = self.executor.create(blade.name, experiment)
            if status.success:
                new_phase = ClusterPhase.RUNNING
            statuses.append(status)
        blade.status.exp_statuses = statuses
        blade.status.phase = new_phase
        self._try(self.client.update_status, blade,
                  f"Important!!!!!update phase from {original.value} to {new_phase.value} failed")

    def _redo_experiments(self, blade: ChaosBlade) -> None:
        original = blade.status.phase
        new_phase = ClusterPhase.UPDATING
        pre_spec = blade.annotations.get(PRE_SPEC_ANNOTATION, "")
        if not pre_spec:
            log.error("%s: can not found matchers in annotations field", blade.name)
            return
        try:
            old_spec = ChaosBladeSpec.from_dict(json.loads(pre_spec))
        except (ValueError, TypeError, AttributeError) as exc:
            log.error("%s: unmarshal old spec failed, %s: %s", blade.name, pre_spec, exc)
            return
        self._try(self.client.update, blade, "add annotation to chaosblade failed")
        if blade.status.exp_statuses is not None:
            for index, old_status in enumerate(blade.status.exp_statuses):
                status = self.executor.destroy(
                    blade.name, old_spec.experiments[index], old_status
                )
                if not status.success:
                    new_phase = ClusterPhase.DESTROYING
                blade.status.exp_statuses[index] = status
        blade.status.phase = new_phase
        self._try(self.client.update_status, blade,
                  f"update phase from {original.value} to {new_phase.value} failed")

    def finalize(self, blade: ChaosBlade) -> None:
        """Destroy the blade's experiments; raise RuntimeError when that does not finish."""
        log.info("%s: finalize the chaosblade", blade.name)
        new_phase = ClusterPhase.DESTROYED
        statuses = blade.status.exp_statuses
        if statuses is not None and len(blade.spec.experiments) == len(statuses):
            for index, experiment in enumerate(blade.spec.experiments):
                status = self.executor.destroy(blade.name, experiment, statuses[index])
                if not status.success:
                    new_phase = ClusterPhase.DESTROYING
                statuses[index] = status
        blade.status.phase = new_phase
        try:
            self.client.update_status(blade)
        except Exception as exc:
            raise RuntimeError(
                f"update chaosblade status failed in finalize phase, {exc}"
            ) from exc
        if blade.status.phase == ClusterPhase.DESTROYING:
            raise RuntimeError("failed to destroy, please see the experiment status")
        log.info("%s: successfully finalized chaosblade", blade.name)

    def clean_up_destroying(
        self, interval: timedelta, now: datetime | None = None
    ) -> list[str]:
        """Drop the finalizers of blades stuck destroying longer than ``interval``.

        Returns the names of the blades that were patched.
        """
        current = now if now is not None else datetime.now(timezone.utc)
        try:
            items = list(self.client.list())
        except Exception as exc:
            log.error("periodically clean up, list blade error: %s", exc)
            items = []
        log.info("periodically clean up blade, blade size: %d", len(items))
        patched: list[str] = []
        for item in items:
            if item.deletion_timestamp is None:
                continue
            elapsed = current - item.deletion_timestamp
            if (
                item.status.phase == ClusterPhase.DESTROYING
                and elapsed.total_seconds() > interval.total_seconds()
            ):
                log.info("periodically clean up blade %s, deletion time: %s",
                         item.name, item.deletion_timestamp)
                try:
                    self.client.patch(item.name, {"metadata": {"finalizers": []}})
                except Exception as exc:
                    log.error("patch blade: %s, error: %s", item.name, exc)
                    continue
                patched.append(item.name)
        return patched

    @staticmethod
    def _try(action: Any, blade: ChaosBlade, message: str) -> None:
        try:
            action(blade)
        except Exception as exc:
            log.error("%s: %s: %s", blade.name, message, exc)