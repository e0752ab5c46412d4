"""
assessment/timers.py — Countdown for a timed assessment.

Ticks once per interval on the event loop, reports every tick and fires the
expiry callback exactly once when the counter hits zero.
"""
import asyncio
import logging
from typing import Callable, Awaitable, Optional

logger = logging.getLogger(__name__)


def format_time(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


class CountdownTimer:
    def __init__(
        self,
        seconds: int,
        expire_callback: Callable[[], Awaitable[None]],
        tick_callback: Optional[Callable[[int], None]] = None,
        interval: float = 1.0,
    ):
        self.seconds_remaining = max(0, int(seconds))
        self.expire_callback = expire_callback
        self.tick_callback = tick_callback
        self.interval = interval
        self.task: asyncio.Task | None = None
        self._cancelled = False
        self._fired = False

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done() and not self._cancelled

    @property
    def expired(self) -> bool:
        return self._fired

    async def tick(self):
        """One step of the countdown. Called by the loop; tests call it directly."""
        if self._cancelled or self._fired or self.seconds_remaining <= 0:
            return
        self.seconds_remaining -= 1
        if self.tick_callback:
            self.tick_callback(self.seconds_remaining)
        if self.seconds_remaining == 0:
            self._fired = True
            logger.info("⏰ Countdown expired")
            await self.expire_callback()

    async def _run(self):
        while not self._cancelled and not self._fired and self.seconds_remaining > 0:
            await asyncio.sleep(self.interval)
            await self.tick()

    async def start(self):
        if self.task is not None or self.seconds_remaining <= 0:
            return
        self.task = asyncio.create_task(self._run())
        logger.info(f"▶️ Countdown started: {format_time(self.seconds_remaining)}")

    def stop(self):
        self._cancelled = True
        if self.task is None or self.task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # The expiry callback runs inside our own task; cancelling it would
        # abort the submission it just started.
        if self.task is not current:
            self.task.cancel()

    def remaining_time(self) -> str:
        return format_time(self.seconds_remaining)
