from __future__ import annotations

import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol

from app.core.logging_config import logger
from app.core.settings import Settings

from ..errors import BusyError, ConfigError

BUSY_MESSAGE = "Server busy (Lock timeout). Try again."


class StoreLock(Protocol):
    """
    One global mutex over the whole store (no per-row / per-offer locking).
    hold() waits at most wait_seconds, then raises BusyError.
    """

    wait_seconds: float

    def hold(self) -> Iterator[None]: ...


def _busy(backend: str, wait_seconds: float) -> BusyError:
    logger.bind(lock_backend=backend, wait_seconds=wait_seconds).warning("store_lock_busy")
    return BusyError(BUSY_MESSAGE, {"wait_seconds": wait_seconds})


class ThreadStoreLock:
    """In-process lock (single worker deployments, tests)."""

    def __init__(self, wait_seconds: float = 10.0):
        self.wait_seconds = wait_seconds
        self._lock = threading.Lock()

    @contextmanager
    def hold(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.wait_seconds):
            raise _busy("thread", self.wait_seconds)
        try:
            yield
        finally:
            self._lock.release()


class FileStoreLock:
    """
    Cross-process lock using exclusive file create.
    Shared by every worker that points at the same lock file.
    """

    poll_seconds = 0.1

    def __init__(self, path: str | Path, wait_seconds: float = 10.0):
        self.path = Path(path)
        self.wait_seconds = wait_seconds

    @contextmanager
    def hold(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        start = time.time()
        fd: int | None = None

        while True:
            try:
                fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                os.write(fd, str(os.getpid()).encode("utf-8"))
                break
            except FileExistsError:
                if time.time() - start >= self.wait_seconds:
                    raise _busy("file", self.wait_seconds)
                time.sleep(self.poll_seconds)

        try:
            yield
        finally:
            try:
                os.close(fd)
            finally:
                self.path.unlink(missing_ok=True)


def build_lock(s: Settings) -> StoreLock:
    backend = (s.LOCK_BACKEND or "thread").strip().lower()
    if backend == "thread":
        return ThreadStoreLock(s.LOCK_WAIT_SECONDS)
    if backend == "file":
        return FileStoreLock(s.LOCK_FILE_PATH, s.LOCK_WAIT_SECONDS)
    raise ConfigError(f"Unknown LOCK_BACKEND: {s.LOCK_BACKEND}")
