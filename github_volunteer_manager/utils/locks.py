"""In-process locks scoped to a string key."""

import asyncio
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class KeyedLock:
    """A family of asyncio locks, one per key.

    Units of work that touch the same key (a remote node ID, a volunteer's
    user ID) run one at a time; different keys never wait on each other.
    Locks are dropped once no task holds or waits on them.
    """

    def __init__(self, name: str) -> None:
        """Initialize an empty lock family."""
        self.name = name
        self._guard = threading.Lock()
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def _acquire_entry(self, key: str) -> asyncio.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
            self._waiters[key] = self._waiters.get(key, 0) + 1
            return lock

    def _release_entry(self, key: str) -> None:
        with self._guard:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the context."""
        lock = self._acquire_entry(key)
        try:
            if lock.locked():
                logger.debug("Waiting for keyed lock", lock_name=self.name, key=key)
            async with lock:
                yield
        finally:
            self._release_entry(key)

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._locks)
