"""Fault descriptions and the registry of faults currently injected."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_HOOK_POINTS: tuple[str, ...] = (
    "read",
    "write",
    "mkdir",
    "rmdir",
    "opendir",
    "fsync",
    "flush",
    "release",
    "truncate",
    "getattr",
    "chown",
    "utimens",
    "allocate",
    "getlk",
    "setlk",
    "setlkw",
    "statfs",
    "readlink",
    "symlink",
    "create",
    "access",
    "link",
    "mknod",
    "rename",
    "unlink",
    "getxattr",
    "listxattr",
    "removexattr",
    "setxattr",
)

INJECT_PATH = "/inject"
RECOVER_PATH = "/recover"

_UINT32_MAX = 2**32 - 1


def _uint32(name: str, value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an unsigned integer, got {value!r}")
    if not 0 <= value <= _UINT32_MAX:
        raise ValueError(f"{name} out of range: {value}")
    return value


def _string(name: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {value!r}")
    return value


def _boolean(name: str, value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be a boolean, got {value!r}")
    return value


def _methods(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"methods must be a list, got {value!r}")
    return [_string("methods", item) for item in value]


@dataclass
class InjectMessage:
    """A filesystem fault: which operations, where, and how they fail."""

    methods: list[str] = field(default_factory=list)
    path: str = ""
    delay: int = 0
    percent: int = 0
    random: bool = False
    errno: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "methods": list(self.methods),
            "path": self.path,
            "delay": self.delay,
            "percent": self.percent,
            "random": self.random,
            "errno": self.errno,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InjectMessage:
        """Build a message from decoded JSON; keys match case-insensitively.

        Raises ValueError when a field has the wrong type or range.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"inject message must be an object, got {data!r}")
        fields = {str(key).lower(): value for key, value in data.items()}
        return cls(
            methods=_methods(fields.get("methods")),
            path=_string("path", fields.get("path")),
            delay=_uint32("delay", fields.get("delay")),
            percent=_uint32("percent", fields.get("percent")),
            random=_boolean("random", fields.get("random")),
            errno=_uint32("errno", fields.get("errno")),
        )


class FaultRegistry:
    """Thread-safe map from operation name to the fault injected for it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._faults: dict[str, InjectMessage] = {}

    def inject(self, message: InjectMessage) -> None:
        """Register ``message`` for every method it names."""
        with self._lock:
            for method in message.methods:
                self._faults[method] = message

    def recover(self) -> None:
        """Remove the faults of all default hook points."""
        with self._lock:
            for method in DEFAULT_HOOK_POINTS:
                self._faults.pop(method, None)

    def lookup(self, method: str) -> InjectMessage | None:
        """Return the fault for ``method``, or None when there is none."""
        with self._lock:
            return self._faults.get(method)


default_registry = FaultRegistry()