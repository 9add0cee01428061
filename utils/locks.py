import asyncio
import itertools
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

class _LockEntry:
    __slots__ = ("lock", "generation", "refs")

    def __init__(self, generation: int):
        self.lock = asyncio.Lock()
        self.generation = generation
        # holders + waiters
        self.refs = 0

class UserLocks:
    """
    One asyncio.Lock per user id, created on first use.

    An entry counts everyone holding or waiting on it and is dropped from the map
    when that count returns to zero, so users without pending reports cost nothing.
    """

    def __init__(self):
        self._entries: Dict[int, _LockEntry] = {}
        self._generations = itertools.count()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._entries

    def _acquire_entry(self, user_id: int) -> _LockEntry:
        entry = self._entries.get(user_id)
        if entry is None:
            entry = _LockEntry(next(self._generations))
            self._entries[user_id] = entry
        entry.refs += 1
        return entry

    def _release_entry(self, user_id: int, entry: _LockEntry):
        entry.refs -= 1
        if entry.refs > 0:
            return
        current = self._entries.get(user_id)
        # A newer entry for the same user must survive an older holder leaving
        if current is not None and current.generation == entry.generation:
            del self._entries[user_id]

    @asynccontextmanager
    async def lock_user_id(self, user_id: int) -> AsyncIterator[None]:
        entry = self._acquire_entry(user_id)
        try:
            async with entry.lock:
                yield
        finally:
            self._release_entry(user_id, entry)

user_locks = UserLocks()
lock_user_id = user_locks.lock_user_id
