"""Manage deferred, cancellable callbacks for the session layer."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from game.logic.enums import TimerKind

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]
TimerKey = tuple[TimerKind, str]


class TimerManager:
    """Own one asyncio task per (kind, entity id) pair.

    Scheduling a key that already has a pending timer replaces it. Callbacks
    run after the delay and must re-check their own preconditions, since the
    world may have changed while they slept. This class does NOT inspect
    rooms or players; the caller decides what to schedule and cancel.
    """

    def __init__(self) -> None:
        self._tasks: dict[TimerKey, asyncio.Task[None]] = {}

    def schedule(self, kind: TimerKind, entity_id: str, delay: float, callback: TimerCallback) -> None:
        """Run callback after delay seconds, replacing any pending timer for the same key."""
        key = (kind, entity_id)
        self.cancel(kind, entity_id)
        self._tasks[key] = asyncio.create_task(self._run_timer(key, delay, callback))

    def cancel(self, kind: TimerKind, entity_id: str) -> bool:
        """Cancel a pending timer. Return True if one was pending."""
        task = self._tasks.pop((kind, entity_id), None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def is_scheduled(self, kind: TimerKind, entity_id: str) -> bool:
        task = self._tasks.get((kind, entity_id))
        return task is not None and not task.done()

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def cancel_all(self) -> None:
        """Cancel every pending timer (used on shutdown)."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            if not task.done():
                task.cancel()

    async def _run_timer(self, key: TimerKey, seconds: float, callback: TimerCallback) -> None:
        try:
            await asyncio.sleep(seconds)
            # drop our own entry before the callback so it can reschedule the same key
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]
            await callback()
        except asyncio.CancelledError:
            pass
        except (RuntimeError, OSError, ConnectionError, ValueError):  # fmt: skip
            logger.exception("timer callback failed: %s %s", key[0].value, key[1])
