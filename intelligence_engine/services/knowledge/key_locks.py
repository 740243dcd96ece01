"""In-process locks keyed by knowledge key.

Serializes the read-decide-write of one (owner, field path) key between
coroutines of the same process. Cross-process writers are serialized by the
database advisory lock taken in the repository.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class KeyedLockRegistry:
    """Registry of asyncio locks that are created on demand and dropped when idle."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


def knowledge_key(field_path: str, client_id=None, project_id=None) -> str:
    """Build the lock key for a reconciliation target."""
    if project_id is not None:
        return f"project:{project_id}:{field_path}"
    return f"client:{client_id}:{field_path}"


key_locks = KeyedLockRegistry()
