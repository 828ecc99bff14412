"""In-process locking keyed by arbitrary hashable values."""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field


class LockUnavailable(Exception):
    """Raised when a keyed lock could not be acquired within the timeout."""

    pass


@dataclass
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedLock:
    """Mutex map: one asyncio.Lock per key, created on demand.

    Holders of different keys never block each other. An entry is dropped as
    soon as nobody holds or waits for it, so the map does not grow with the
    number of keys ever seen.

    Usage:
        locks = KeyedLock()
        async with locks.hold("F01", 2025, timeout=10):
            ...  # exclusive for ("F01", 2025) within this process

    This only serializes coroutines of one process (one event loop). Across
    processes, the database row lock is what provides mutual exclusion.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def locked(self, *key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    @asynccontextmanager
    async def hold(self, *key: Hashable, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block.

        Raises:
            LockUnavailable: if ``timeout`` seconds pass before the lock is free
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.users += 1

        try:
            try:
                async with asyncio.timeout(timeout):
                    await entry.lock.acquire()
            except TimeoutError as e:
                raise LockUnavailable(f"Could not acquire lock for {key!r} within {timeout}s") from e

            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]


# Shared by all services of this process
sequence_locks = KeyedLock()
