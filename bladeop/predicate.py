"""Event filter deciding which ChaosBlade changes trigger a reconcile."""

from __future__ import annotations

import json
import logging
from typing import Any

from bladeop.types import ChaosBlade, ClusterPhase

log = logging.getLogger(__name__)

CHAOSBLADE_FINALIZER = "finalizer.chaosblade.io"
PRE_SPEC_ANNOTATION = "preSpec"

_QUIET_PHASES = (ClusterPhase.RUNNING, ClusterPhase.ERROR, ClusterPhase.DESTROYING)


class SpecUpdatedPredicate:
    """Lets through creations, deletions and the updates that need work."""

    def create(self, obj: Any) -> bool:
        if not isinstance(obj, ChaosBlade):
            return False
        log.info("trigger create event, name: %s", obj.name)
        if obj.deletion_timestamp is not None:
            log.info("unexpected phase for cb creating, name: %s, phase: %s",
                     obj.name, obj.status.phase.value)
            return False
        if obj.status.phase == ClusterPhase.INITIAL:
            return True
        log.info("unexpected phase for cb creating, name: %s, phase: %s",
                 obj.name, obj.status.phase.value)
        return False

    def delete(self, obj: Any) -> bool:
        if not isinstance(obj, ChaosBlade):
            return False
        log.info("trigger delete event, name: %s", obj.name)
        return CHAOSBLADE_FINALIZER in obj.finalizers

    def update(self, old: Any, new: Any) -> bool:
        """Decide on an update; a changed spec records the old one in ``new``'s annotations."""
        if not isinstance(old, ChaosBlade):
            return False
        log.info("trigger update event, name: %s", old.name)
        if not isinstance(new, ChaosBlade):
            return False
        if new.spec != old.spec:
            new.annotations = {
                PRE_SPEC_ANNOTATION: json.dumps(old.spec.to_dict(), separators=(",", ":"))
            }
            return True
        if new.status.phase == ClusterPhase.INITIAL:
            return True
        if old.deletion_timestamp is None and new.deletion_timestamp is not None:
            return True
        if new.status.phase in _QUIET_PHASES:
            return False
        if new.status.phase != old.status.phase:
            return True
        if new.status != old.status:
            return True
        if new.deletion_timestamp is not None:
            if CHAOSBLADE_FINALIZER in new.finalizers:
                return True
            log.info("cannot find the %s finalizer, so skip the update event",
                     CHAOSBLADE_FINALIZER)
            return False
        log.info("spec not changed under %s phase, so skip the update event",
                 new.status.phase.value)
        return False

    def generic(self, obj: Any) -> bool:
        """Generic events never trigger a reconcile."""
        name = obj.name if isinstance(obj, ChaosBlade) else type(obj).__name__
        log.debug("skip generic event for %s", name)
        return False