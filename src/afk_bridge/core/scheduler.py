from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable


class TaskScheduler:
    """Keyed, cancellable one-shot and repeating timers on the running loop.

    Scheduling a key that is already pending replaces the old timer. Callbacks
    are plain functions; they should only enqueue work, never block.
    """

    def __init__(self) -> None:
        self._pending: dict[str, dict[str, Any]] = {}
        self._logger = logging.getLogger(__name__)

    def schedule(self, key: str, delay_seconds: float, callback: Callable[[], None]) -> None:
        self.cancel(key)
        task = asyncio.create_task(self._timer_task(key, max(0.0, delay_seconds), callback))
        self._pending[key] = {"task": task, "delay": delay_seconds, "repeating": False}

    def schedule_repeating(self, key: str, interval_seconds: float, callback: Callable[[], None]) -> None:
        self.cancel(key)
        task = asyncio.create_task(self._interval_task(key, max(0.01, interval_seconds), callback))
        self._pending[key] = {"task": task, "delay": interval_seconds, "repeating": True}

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def pending_keys(self) -> list[str]:
        return sorted(self._pending)

    def cancel(self, key: str) -> bool:
        ctx = self._pending.pop(key, None)
        if ctx is None:
            return False
        task = ctx.get("task")
        if task is not None and not task.done():
            task.cancel()
        return True

    def cancel_prefix(self, prefix: str) -> int:
        keys = [key for key in self._pending if key.startswith(prefix)]
        for key in keys:
            self.cancel(key)
        return len(keys)

    def cancel_all(self) -> int:
        return self.cancel_prefix("")

    async def _timer_task(self, key: str, delay_seconds: float, callback: Callable[[], None]) -> None:
        try:
            await asyncio.sleep(delay_seconds)
        except asyncio.CancelledError:
            return
        ctx = self._pending.get(key)
        if ctx is not None and ctx.get("task") is asyncio.current_task():
            self._pending.pop(key, None)
        self._fire(key, callback)

    async def _interval_task(self, key: str, interval_seconds: float, callback: Callable[[], None]) -> None:
        while True:
            try:
                await asyncio.sleep(interval_seconds)
            except asyncio.CancelledError:
                return
            self._fire(key, callback)

    def _fire(self, key: str, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            self._logger.exception("Scheduled callback failed: key=%s", key)
