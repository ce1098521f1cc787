"""
Per-key async locks.

Capacity enforcement must be linearizable per activity: two reservations for
the same activity may never both see a free seat. Within one process this
registry serializes them; across processes the activity row lock taken inside
the transaction (SELECT ... FOR UPDATE) does the same job.

Deadlock avoidance: every caller acquires its whole key set up front, in
sorted order. Callers that need a subject lock take it in an outer `hold()`
before any activity lock, never the other way round.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

from openday.core.exceptions import TransactionAborted
from openday.core.logging import get_logger
from openday.core.metrics import lock_timeouts

logger = get_logger(__name__)


def activity_lock_key(activity_id: str) -> str:
    return f"activity:{activity_id}"


def subject_lock_key(subject_id: str) -> str:
    return f"subject:{subject_id}"


class KeyedLockRegistry:
    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = defaultdict(int)

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] += 1
        return lock

    def _checkin(self, key: str) -> None:
        self._users[key] -= 1
        if self._users[key] <= 0:
            # Nobody holds or waits on it any more
            del self._users[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[None]:
        """Acquire every key (sorted, deduplicated) or raise TransactionAborted."""
        ordered = sorted(set(keys))
        acquired: list[str] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
                except asyncio.TimeoutError:
                    self._checkin(key)
                    lock_timeouts.inc()
                    logger.warning("lock_timeout", key=key, timeout=self.timeout)
                    raise TransactionAborted(f"Timed out waiting for lock on {key}")
                except BaseException:
                    self._checkin(key)
                    raise
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._checkin(key)

    def __len__(self) -> int:
        return len(self._locks)
