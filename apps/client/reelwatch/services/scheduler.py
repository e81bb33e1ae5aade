"""Fixed-interval polling with generation-based staleness detection."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging

logger = logging.getLogger(__name__)

TickHandler = Callable[[int], Awaitable[None]]


class PollingScheduler:
    """Runs ``on_tick(generation)`` immediately and then every ``interval`` seconds.

    Every ``start`` and ``stop`` bumps ``generation``; a tick compares the
    generation it was issued under with ``is_current`` before publishing
    results. Ticks run as separate tasks, so stopping the loop never
    cancels a request that is already on the wire.
    """

    def __init__(self, *, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        self._sleep = sleep
        self._loop_task: asyncio.Task[None] | None = None
        self._tick_tasks: set[asyncio.Task[None]] = set()
        self.generation = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def is_current(self, generation: int) -> bool:
        return self.running and generation == self.generation

    def start(self, interval: float, on_tick: TickHandler) -> int:
        self._cancel_loop()
        self.generation += 1
        self._loop_task = asyncio.create_task(self._run(self.generation, interval, on_tick))
        logger.debug("scheduler.started generation=%d interval=%.3f", self.generation, interval)
        return self.generation

    def stop(self) -> None:
        self._cancel_loop()
        self.generation += 1
        logger.debug("scheduler.stopped generation=%d", self.generation)

    async def wait_idle(self) -> None:
        """Wait for ticks that are still running, e.g. before shutdown."""
        while self._tick_tasks:
            await asyncio.gather(*list(self._tick_tasks), return_exceptions=True)

    def _cancel_loop(self) -> None:
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
        self._loop_task = None

    async def _run(self, generation: int, interval: float, on_tick: TickHandler) -> None:
        while True:
            self._spawn_tick(generation, on_tick)
            await self._sleep(interval)

    def _spawn_tick(self, generation: int, on_tick: TickHandler) -> None:
        task = asyncio.create_task(self._tick(generation, on_tick))
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    @staticmethod
    async def _tick(generation: int, on_tick: TickHandler) -> None:
        try:
            await on_tick(generation)
        except Exception:
            # The next tick retries; a failing tick never stops the loop.
            logger.exception("scheduler.tick_failed generation=%d", generation)
