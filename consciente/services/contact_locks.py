import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ContactLocks:
    """
    One asyncio.Lock per contact key.

    Pipelines for the same contact run one at a time in arrival order
    (asyncio.Lock wakes waiters FIFO); different contacts never block each
    other. A lock is dropped once nobody holds or waits for it.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, key: str) -> bool:
        return key in self._locks
