"""File system hook that applies the stored faults to operations."""

from __future__ import annotations

import logging
import os
import posixpath
import random
import time
from typing import Callable, Optional

from bladeoperator.faults import FaultStore

logger = logging.getLogger(__name__)

# Operations whose hook inspects two paths; the others inspect the first argument.
_TWO_PATH_OPERATIONS = frozenset({"symlink", "link", "rename"})

OPERATIONS = frozenset(
    {
        "open",
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
        "chmod",
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
    }
)

# Range of errno values picked at random: E2BIG up to, not including, 0x36.
_RANDOM_ERRNO_LOW = 0x7
_RANDOM_ERRNO_HIGH = 0x36


def _join(*parts: str) -> str:
    joined = "/".join(part for part in parts if part)
    if not joined:
        return ""
    cleaned = posixpath.normpath(joined)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


def random_errno(rng=None) -> OSError:
    """An error with an errno picked at random between E2BIG and EXFULL."""
    rng = rng if rng is not None else random
    return _error(rng.randrange(_RANDOM_ERRNO_HIGH - _RANDOM_ERRNO_LOW) + _RANDOM_ERRNO_LOW)


def probab(percentage: int, rng=None) -> bool:
    """True with roughly ``percentage`` percent probability."""
    rng = rng if rng is not None else random
    return rng.randrange(99) < percentage


def _check_operation(operation: str) -> None:
    if operation not in OPERATIONS:
        raise ValueError(f"unknown file system operation {operation!r}")


class ChaosbladeHook:
    """Delays or fails file system operations under a mount point."""

    def __init__(
        self,
        mount_point: str,
        store: FaultStore,
        rng=None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.mount_point = mount_point
        self.store = store
        self.rng = rng if rng is not None else random.Random()
        self.sleep = sleep if sleep is not None else time.sleep

    def inject_fault(self, relative_path: str, method: str) -> Optional[OSError]:
        """Apply the fault stored for ``method``; return the error it causes."""
        logger.info("do inject fault, method %s, relative path %s", method, relative_path)
        message = self.store.get(method)
        if message is None:
            return None
        if message.path:
            actual_path = _join(self.mount_point, relative_path)
            if not actual_path.startswith(message.path):
                logger.info(
                    "the rule path %s does not contain the actual path %s",
                    message.path,
                    actual_path,
                )
                return None
        if message.percent > 0 and not probab(message.percent, self.rng):
            return None
        error = None
        if message.errno != 0:
            error = _error(message.errno)
        elif message.random:
            error = random_errno(self.rng)
        if message.delay > 0:
            self.sleep(message.delay / 1000)
        return error

    def pre(self, operation: str, *args) -> None:
        """Run before ``operation`` on the path(s) in ``args``; raise OSError to fail it."""
        _check_operation(operation)
        if not args:
            raise ValueError(f"operation {operation!r} needs a path")
        paths = args[:2] if operation in _TWO_PATH_OPERATIONS else args[:1]
        for path in paths:
            error = self.inject_fault(path, operation)
            if error is not None and operation != "release":
                raise error

    def post(self, operation: str) -> bool:
        """Run after ``operation``; the hook never alters the real result."""
        _check_operation(operation)
        return False