"""Filesystem hook that applies injected faults to file operations."""

from __future__ import annotations

import logging
import os
import posixpath
import random
import time
from typing import Any, Callable

from bladeop.faults import FaultRegistry, default_registry

log = logging.getLogger(__name__)

# Linux errno range from E2BIG up to (excluding) EXFULL.
_ERRNO_LOW = 0x7
_ERRNO_HIGH = 0x36


def _errno_error(code: int) -> OSError:
    try:
        message = os.strerror(code)
    except ValueError:
        message = f"errno {code}"
    return OSError(code, message)


def random_errno(rng: Any = None) -> OSError:
    """Return an OSError carrying a random errno from E2BIG to before EXFULL."""
    source = rng if rng is not None else random
    return _errno_error(source.randrange(_ERRNO_HIGH - _ERRNO_LOW) + _ERRNO_LOW)


def probab(percentage: int, rng: Any = None) -> bool:
    """Return True with roughly ``percentage`` percent likelihood."""
    source = rng if rng is not None else random
    return source.randrange(99) < percentage


def _clean(path: str) -> str:
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join(*parts: str) -> str:
    present = [p for p in parts if p]
    if not present:
        return ""
    return _clean("/".join(present))


class ChaosbladeHook:
    """Applies registered faults to operations under a mount point."""

    def __init__(
        self,
        mount_point: str,
        registry: FaultRegistry | None = None,
        rng: Any = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.mount_point = mount_point
        self.registry = registry if registry is not None else default_registry
        self._rng = rng if rng is not None else random.Random()
        self._sleep = sleep

    def inject_fault(self, relative_path: str, method: str) -> None:
        """Apply the fault registered for ``method``; raise OSError when it fails the call."""
        log.info("do inject fault: method=%s relative_path=%s", method, relative_path)
        message = self.registry.lookup(method)
        if message is None:
            return
        log.info("do inject fault with inject message %s", message)
        if message.path:
            actual_path = _join(self.mount_point, relative_path)
            if not actual_path.startswith(message.path):
                log.info(
                    "the rule path %s does not contain the actual path %s",
                    message.path,
                    actual_path,
                )
                return
        if message.percent > 0 and not probab(message.percent, self._rng):
            return
        error: OSError | None = None
        if message.errno != 0:
            error = _errno_error(message.errno)
        elif message.random:
            error = random_errno(self._rng)
        if message.delay > 0:
            self._sleep(message.delay / 1000)
        if error is not None:
            raise error

    def pre_hook(self, method: str, *args: str) -> OSError | None:
        """Check each path in ``args`` for ``method``; return the error to fail with, or None."""
        for path in args:
            try:
                self.inject_fault(path, method)
            except OSError as exc:
                return exc
        return None

    def pre_release(self, path: str) -> None:
        """Apply any release fault's delay; release itself is never failed."""
        try:
            self.inject_fault(path, "release")
        except OSError as exc:
            log.debug("ignoring release fault on %s: %s", path, exc)