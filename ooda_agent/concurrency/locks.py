"""
Concurrency utilities for serializing work on shared mutable resources.

A live page is one such resource: DOM state can change between evaluation and
action, so only one DOM operation may be in flight per page. Web tool calls
within one browser session are serialized the same way, keyed by session id.
"""

from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Hashable


class KeyedLocks:
    """
    Lazily created asyncio.Lock per key.

    A key is forgotten once nobody holds or waits on its lock, so the map only
    holds sessions with work in flight.

    Usage:
        locks = KeyedLocks()
        async with locks.hold('session-1'):
            # exclusive for session-1
            ...
    """

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def get(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self.get(key)
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                self.discard(key)

    def discard(self, key: Hashable) -> None:
        lock = self._locks.get(key)
        if lock is not None and not lock.locked() and not self._users.get(key):
            del self._locks[key]

    def stats(self) -> dict:
        """
        Returns:
            Dictionary with lock statistics
        """
        return {
            'keys': len(self._locks),
            'held': sum(1 for lock in self._locks.values() if lock.locked()),
        }


# Page objects are keyed weakly so closed pages do not pin their locks.
_page_locks: 'weakref.WeakKeyDictionary[Any, asyncio.Lock]' = weakref.WeakKeyDictionary()


def _lock_for_page(page: Any) -> asyncio.Lock:
    lock = _page_locks.get(page)
    if lock is None:
        lock = asyncio.Lock()
        _page_locks[page] = lock
    return lock


@asynccontextmanager
async def page_lock(page: Any) -> AsyncIterator[None]:
    """
    Async context manager giving exclusive DOM access to one page.

    Usage:
        async with page_lock(page):
            snapshot = await page.evaluate(script)
    """
    async with _lock_for_page(page):
        yield


def get_page_lock_stats() -> dict:
    return {
        'pages': len(_page_locks),
        'held': sum(1 for lock in list(_page_locks.values()) if lock.locked()),
    }
