"""Keyed asyncio locks used to serialise work on a single entity."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """Hand out one :class:`asyncio.Lock` per key.

    Entries are reference counted and dropped once no task holds or waits on
    them, so the registry does not grow with the number of orders ever seen.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable, timeout: float | None = None) -> AsyncIterator[None]:
        """Acquire the lock for ``key``; raise ``TimeoutError`` after ``timeout``."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            await asyncio.wait_for(lock.acquire(), timeout)
        except BaseException:
            self._release_ref(key)
            raise
        try:
            yield
        finally:
            lock.release()
            self._release_ref(key)

    def _release_ref(self, key: Hashable) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            del self._users[key]
            del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
