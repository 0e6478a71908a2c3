"""Keyed lock registry.

One re-entrant lock per key, created on first use. Several keys are always
acquired in sorted order so that callers sharing keys cannot deadlock, and
every acquisition is bounded by a timeout.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from storefront.errors import LockTimeout

logger = structlog.get_logger(__name__)


class KeyedLocks:
    def __init__(self, name: str, timeout: float = 5.0) -> None:
        self.name = name
        self.timeout = timeout
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, *keys: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the locks for ``keys`` for the duration of the block."""
        timeout = self.timeout if timeout is None else timeout
        acquired: list[threading.RLock] = []
        try:
            for key in sorted(set(str(k) for k in keys)):
                lock = self._lock_for(key)
                if not lock.acquire(timeout=timeout):
                    logger.warning("Lock acquisition timed out", registry=self.name, key=key, timeout=timeout)
                    raise LockTimeout(f"{self.name}:{key}", timeout)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
