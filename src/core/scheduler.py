"""Recurring background task with cancellation."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class RecurringTask:
    """Runs an async callback on a fixed interval.

    The next run is armed only after the previous one has finished, so runs
    never overlap even when a run takes longer than the interval.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[None]],
        interval_seconds: float,
    ) -> None:
        """Initialize the task.

        Args:
            name: Name used in log messages.
            callback: Coroutine function invoked on every tick.
            interval_seconds: Delay between the end of one run and the start of the next.
        """
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._task: asyncio.Task | None = None
        self.runs = 0

    @property
    def is_running(self) -> bool:
        """Check if the loop task is alive."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop if it is not already running."""
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info("%s task started (interval %.1fs)", self.name, self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to exit."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("%s task stopped", self.name)

    async def run_once(self) -> None:
        """Run the callback a single time, logging instead of propagating failures."""
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s run failed", self.name)
        finally:
            self.runs += 1

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()
