"""Per-session mutexes for state transitions."""

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class SessionLockRegistry:
    """Hands out one asyncio.Lock per session id.

    Entries disappear once no coroutine holds or waits on the lock. Only
    serializes within one process.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self.lock_for(session_id)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


session_locks = SessionLockRegistry()
