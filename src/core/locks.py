"""Per-key asyncio locks for serializing writes to a single record."""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class KeyedLocks:
    """Hands out one asyncio.Lock per key.

    Locks are held weakly, so a key's lock disappears once no coroutine is
    holding or waiting on it.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def get(self, key: str) -> asyncio.Lock:
        """Get the lock for a key, creating it if needed."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for a key for the duration of the block."""
        lock = self.get(key)
        if lock.locked():
            logger.debug("%s lock for %s is busy, waiting", self.name, key)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


_order_locks = KeyedLocks("order")
_checkout_session_locks = KeyedLocks("checkout-session")


def get_order_locks() -> KeyedLocks:
    """Locks serializing status writes per order id."""
    return _order_locks


def get_checkout_session_locks() -> KeyedLocks:
    """Locks serializing order materialization per checkout session id."""
    return _checkout_session_locks
