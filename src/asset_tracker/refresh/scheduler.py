"""Periodic runner for the refresh cycle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class Scheduler:
    """Run ``fn`` immediately, then every ``interval`` seconds until stopped.

    Runs are strictly sequential. Ticks that fall inside a long run are
    skipped rather than queued. Exceptions raised by ``fn`` end the loop and
    propagate, so callers wanting log-and-continue must catch inside ``fn``.
    ``stop()`` cancels an in-flight run and makes ``run()`` return cleanly.
    """

    def __init__(self, interval: float, fn: Callable[[], Awaitable[object]]) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._interval = interval
        self._fn = fn
        self._stopping = asyncio.Event()
        self._current: asyncio.Task | None = None
        self.runs = 0

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def stop(self) -> None:
        """Request shutdown; a run calling ``stop()`` itself is left to finish."""
        self._stopping.set()
        current = self._current
        if current is None or current.done():
            return
        try:
            caller = asyncio.current_task()
        except RuntimeError:
            caller = None
        if current is not caller:
            current.cancel()

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time()

        while not self._stopping.is_set():
            self._current = asyncio.ensure_future(self._fn())
            try:
                await self._current
            except asyncio.CancelledError:
                if self._stopping.is_set():
                    logger.info("Scheduler stopped during a run")
                    return
                raise
            finally:
                self._current = None
            self.runs += 1

            next_run += self._interval
            now = loop.time()
            if next_run <= now:
                skipped = int((now - next_run) // self._interval) + 1
                logger.debug("Run overran its interval, skipping %d tick(s)", skipped)
                next_run += skipped * self._interval

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=next_run - now)
            except asyncio.TimeoutError:
                continue

        logger.info("Scheduler stopped after %d runs", self.runs)
