"""
Keyed Work Queue

Delivery guarantees the reconciler relies on:
- a key is handed to at most one worker at a time
- a key added while pending is not queued twice
- a key added while being processed is queued again once `done` is called
- delayed re-adds (`add_after`) keep only the earliest timer per key
- `add_rate_limited` retries with capped exponential backoff

Single event loop only; not thread-safe.
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Dict, Hashable, Optional, Set

logger = logging.getLogger(__name__)


class WorkQueue:
    """Deduplicating, per-key serialized queue"""

    def __init__(self, backoff_base_seconds: float = 1.0, backoff_max_seconds: float = 300.0):
        self.backoff_base = backoff_base_seconds
        self.backoff_max = backoff_max_seconds
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._timers: Dict[Hashable, asyncio.TimerHandle] = {}
        self._failures: Dict[Hashable, int] = {}
        self._wakeup = asyncio.Event()
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queue)

    def add(self, key: Hashable):
        """Mark key as needing a reconcile"""
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._wakeup.set()

    def add_after(self, key: Hashable, delay: float):
        """Add key after delay seconds; an earlier pending timer wins"""
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        fire_at = loop.time() + delay
        existing = self._timers.get(key)
        if existing is not None:
            if existing.when() <= fire_at:
                return
            existing.cancel()
        self._timers[key] = loop.call_at(fire_at, self._fire, key)

    def _fire(self, key: Hashable):
        self._timers.pop(key, None)
        self.add(key)

    def backoff_delay(self, key: Hashable) -> float:
        failures = self._failures.get(key, 0)
        return min(self.backoff_base * (2 ** failures), self.backoff_max)

    def add_rate_limited(self, key: Hashable):
        """Retry key after an exponentially growing delay"""
        delay = self.backoff_delay(key)
        self._failures[key] = self._failures.get(key, 0) + 1
        logger.debug(f"Retrying {key} in {delay:.1f}s")
        self.add_after(key, delay)

    def forget(self, key: Hashable):
        """Reset the backoff of key"""
        self._failures.pop(key, None)

    def num_requeues(self, key: Hashable) -> int:
        return self._failures.get(key, 0)

    async def get(self) -> Optional[Hashable]:
        """Wait for the next key; None once the queue is shut down"""
        while True:
            if self._shutting_down:
                return None
            if self._queue:
                key = self._queue.popleft()
                self._processing.add(key)
                self._dirty.discard(key)
                return key
            self._wakeup.clear()
            await self._wakeup.wait()

    def done(self, key: Hashable):
        """Release key; re-queue it if it was added while processing"""
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.append(key)
            self._wakeup.set()

    def shutdown(self):
        self._shutting_down = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._wakeup.set()
