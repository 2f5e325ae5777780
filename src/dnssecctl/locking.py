"""Advisory file locks that keep concurrent installer runs apart."""
from __future__ import annotations

import fcntl
import json
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

GLOBAL_LOCK_NAME = "dnssecctl.lock"
_POLL_INTERVAL = 0.05


class LockTimeoutError(RuntimeError):
    """Raised when a lock cannot be acquired within the timeout."""


@dataclass(slots=True)
class LockHandle:
    """Information about an acquired lock."""

    path: Path
    wait_ms: int


class LockManager:
    """Acquire ``flock``-based locks under the runtime directory."""

    def __init__(self, runtime_dir: Path, default_timeout: float) -> None:
        """Store the lock directory and default acquisition timeout."""
        self._runtime_dir = Path(runtime_dir)
        self._default_timeout = default_timeout

    @property
    def lock_path(self) -> Path:
        """Return the path of the installer lock file."""
        return self._runtime_dir / GLOBAL_LOCK_NAME

    @contextmanager
    def install_lock(self, *, timeout: float | None = None) -> Iterator[LockHandle]:
        """Hold the exclusive installer lock for the duration of the block."""
        path = self.lock_path
        path.parent.mkdir(parents=True, exist_ok=True)
        effective_timeout = self._default_timeout if timeout is None else timeout
        start = time.monotonic()
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() - start >= effective_timeout:
                        raise LockTimeoutError(
                            f"Timed out after {effective_timeout:.1f}s waiting for {path}; "
                            "another dnssecctl run appears to be in progress."
                        ) from None
                    time.sleep(_POLL_INTERVAL)
            wait_ms = int((time.monotonic() - start) * 1000)
            metadata = {
                "pid": os.getpid(),
                "path": str(path),
                "acquired_at": datetime.now(tz=UTC).isoformat(timespec="seconds"),
            }
            os.ftruncate(fd, 0)
            os.write(fd, json.dumps(metadata).encode("utf-8"))
            try:
                yield LockHandle(path=path, wait_ms=wait_ms)
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)


__all__ = ["LockHandle", "LockManager", "LockTimeoutError"]
