"""Fault messages and the store that holds the active fault per method."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Optional

INJECT_PATH = "/inject"
RECOVER_PATH = "/recover"

DEFAULT_HOOK_POINTS = (
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

_UINT32_MAX = 2**32 - 1


def _uint32(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an unsigned integer, got {value!r}")
    if not 0 <= value <= _UINT32_MAX:
        raise ValueError(f"{key} is out of range: {value}")
    return value


@dataclass
class InjectMessage:
    """Which file system methods to disturb, where, and how."""

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
    def from_dict(cls, data: Any) -> InjectMessage:
        """Build a message from decoded JSON; raise ValueError on bad input."""
        if not isinstance(data, dict):
            raise ValueError("inject message must be a JSON object")
        methods = data.get("methods")
        if methods is None:
            methods = []
        if not isinstance(methods, list) or not all(isinstance(m, str) for m in methods):
            raise ValueError("methods must be a list of strings")
        path = data.get("path")
        if path is None:
            path = ""
        if not isinstance(path, str):
            raise ValueError("path must be a string")
        random_flag = data.get("random")
        if random_flag is None:
            random_flag = False
        if not isinstance(random_flag, bool):
            raise ValueError("random must be a boolean")
        return cls(
            methods=list(methods),
            path=path,
            delay=_uint32(data, "delay"),
            percent=_uint32(data, "percent"),
            random=random_flag,
            errno=_uint32(data, "errno"),
        )


class FaultStore:
    """Thread-safe map from method name to the fault injected for it."""

    def __init__(self):
        self._lock = threading.Lock()
        self._faults: dict[str, InjectMessage] = {}

    def inject(self, message: InjectMessage) -> None:
        """Make ``message`` the active fault of each of its methods."""
        with self._lock:
            for method in message.methods:
                self._faults[method] = message

    def recover(self) -> None:
        """Remove the faults of every default hook point."""
        with self._lock:
            for method in DEFAULT_HOOK_POINTS:
                self._faults.pop(method, None)

    def get(self, method: str) -> Optional[InjectMessage]:
        """The active fault of ``method``, or None."""
        with self._lock:
            return self._faults.get(method)