"""
Per-key task serialization and throttling for webhook handlers.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyedTaskQueue:
    """
    Runs coroutines one at a time per key.

    Tasks sharing a key (e.g. a PR pair) run in submission order; tasks
    with different keys run concurrently.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    async def run(self, key: Hashable, func: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``func()`` inside the critical section of ``key``.

        Args:
            key: Serialization key
            func: Zero-argument coroutine function

        Returns:
            Whatever ``func`` returns; its exceptions propagate
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                logger.debug(f"Running task for {key}")
                return await func()
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                del self._locks[key]


class Throttle:
    """
    Trailing-edge debounce keyed by string.

    Only the last call made for a key within ``delay`` seconds runs;
    earlier pending calls are cancelled before they start.
    """

    def __init__(self, delay: float = 10.0):
        self.delay = delay
        self._pending: Dict[Hashable, asyncio.Task] = {}

    def call(self, key: Hashable, func: Callable[[], Awaitable[object]]) -> asyncio.Task:
        """
        Schedule ``func()`` to run after the delay, replacing a pending call.

        Args:
            key: Throttle key (e.g. commit sha)
            func: Zero-argument coroutine function

        Returns:
            Task that completes once the call ran or was superseded
        """
        previous = self._pending.get(key)
        if previous is not None and not previous.done():
            logger.debug(f"Discarding pending call for {key}")
            previous.cancel()

        task = asyncio.ensure_future(self._delayed(key, func))
        self._pending[key] = task
        return task

    async def _delayed(self, key: Hashable, func: Callable[[], Awaitable[object]]) -> None:
        await asyncio.sleep(self.delay)
        # past this point the call can no longer be superseded
        if self._pending.get(key) is asyncio.current_task():
            del self._pending[key]
        await func()
