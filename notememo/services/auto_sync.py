"""Periodic background sync."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class AutoSyncRunner:
    """Runs *run_pass* now and then every *interval* seconds on an asyncio task.

    A failing pass is logged and the loop carries on. Stopping cancels the
    task, abandoning a pass that is still in flight.
    """

    def __init__(self, run_pass: Callable[[], Awaitable[object]], interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._run_pass = run_pass
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="notememo-auto-sync")
        logger.info("Auto sync started (every %ss)", self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Auto sync stopped")

    async def run_once(self) -> None:
        try:
            await self._run_pass()
        except Exception:
            logger.exception("Auto sync pass failed")

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)
