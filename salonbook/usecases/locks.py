"""Per-key asyncio locks used to serialize check-then-write sequences."""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Optional


class KeyedLocks:
    """
    Registry of one ``asyncio.Lock`` per key (staff id, reservation id, ...).

    ``hold`` acquires several keys in sorted order so two callers locking
    overlapping key sets cannot deadlock. A key's lock is dropped from the
    registry once no holder or waiter references it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def _hold_one(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    @asynccontextmanager
    async def hold(self, *keys: Optional[str]) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for key in sorted({k for k in keys if k}):
                await stack.enter_async_context(self._hold_one(key))
            yield

    def __len__(self) -> int:
        return len(self._locks)
