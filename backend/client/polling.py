"""Periodic background refresh tied to a session's lifetime."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger("portal.client")

DEFAULT_INTERVAL_SECONDS = 30.0


class PeriodicTask:
    """Re-run `callback` every `interval` seconds until cancelled.

    A failing run is logged and the loop keeps going; only `cancel()` (or
    cancellation of the surrounding task group) stops it.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[object]],
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        name: str = "periodic",
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.callback = callback
        self.interval = interval
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("periodic task failed: name=%s error=%s", self.name, exc.__class__.__name__)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def stop(self) -> None:
        """Request cancellation without waiting; usable from synchronous callbacks."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()

    async def cancel(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = ["PeriodicTask", "DEFAULT_INTERVAL_SECONDS"]
