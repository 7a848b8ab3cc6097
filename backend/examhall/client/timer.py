"""
Countdown for a running exam session.

Remaining time is recomputed on every tick from the two authoritative
values (session start and exam time limit) instead of decrementing a
counter, so a suspended event loop or a drifting clock catches up on the
next tick. ``on_time_up`` fires at most once per timer.
"""
import asyncio
import inspect
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from ..services.timing import deadline_for, utcnow, to_naive_utc

logger = logging.getLogger(__name__)

TimeUpCallback = Callable[[], Union[None, Awaitable[None]]]


def format_seconds(total_seconds: float) -> str:
    total = max(0, int(total_seconds))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class ExamTimer:
    def __init__(self, started_at: datetime, time_limit_minutes: int, on_time_up: TimeUpCallback,
                 tick_interval: float = 1.0, clock: Optional[Callable[[], datetime]] = None,
                 on_tick: Optional[Callable[[float], None]] = None):
        self.deadline = deadline_for(started_at, time_limit_minutes)
        self.tick_interval = tick_interval
        self._on_time_up = on_time_up
        self._on_tick = on_tick
        self._clock = clock or utcnow
        self._fired = False
        self._task: Optional[asyncio.Task] = None

    @property
    def fired(self) -> bool:
        return self._fired

    def remaining(self) -> float:
        now = to_naive_utc(self._clock())
        return max(0.0, (self.deadline - now).total_seconds())

    def format_remaining(self) -> str:
        return format_seconds(self.remaining())

    async def tick(self) -> float:
        remaining = self.remaining()
        if self._on_tick is not None:
            self._on_tick(remaining)
        if remaining <= 0 and not self._fired:
            self._fired = True
            logger.info("Exam time is up, deadline was %s", self.deadline.isoformat())
            result = self._on_time_up()
            if inspect.isawaitable(result):
                await result
        return remaining

    async def _run(self) -> None:
        while not self._fired:
            await self.tick()
            if self._fired:
                return
            await asyncio.sleep(self.tick_interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        return self._task

    def cancel(self) -> None:
        # the time-up callback may end up here from inside the timer task itself
        if self._task is not None and not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()

    async def wait(self) -> None:
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
