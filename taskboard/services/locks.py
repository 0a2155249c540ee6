"""
Per-entity asyncio locks for single-instance serialization.

A mutation holds a lock for every user/task document its reconciliation may
write. Keys are acquired in sorted order so two mutations never deadlock.
Cross-process concurrency is not covered: each server process has its own
lock table.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def task_key(task_id: str) -> str:
    return f"task:{task_id}"


class EntityLocks:
    """Keyed lock table. Entries are dropped once nobody holds or awaits them."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
            self._refs[key] = 0
        self._refs[key] += 1
        return self._locks[key]

    def _drop_ref(self, key: str) -> None:
        self._refs[key] -= 1
        if self._refs[key] == 0:
            del self._refs[key]
            del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[None]:
        """Hold every lock in `keys` for the duration of the block."""
        if not self.enabled:
            yield
            return

        ordered = sorted(set(keys))
        referenced: list[str] = []
        acquired: list[asyncio.Lock] = []
        try:
            for key in ordered:
                lock = self._get_lock(key)
                referenced.append(key)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in referenced:
                self._drop_ref(key)
