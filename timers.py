import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class PeriodicTimer:
    """Fires ``callback`` once every ``interval`` seconds of host time."""

    def __init__(
        self, name: str, interval: float, callback: Callable[[], None], started_at: float
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.next_due = started_at + interval
        self.cancelled = False

    def fire(self) -> None:
        self.next_due += self.interval
        self.callback()

    def cancel(self) -> None:
        self.cancelled = True


class TimerGroup:
    """Owns the periodic timers of one screen and cancels all of them on exit.

    Timers keep their own phase. Hosts call :meth:`poll` with the current
    time; every tick that became due since the previous poll is fired in
    chronological order, so a late poll catches up exactly.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self.clock = clock
        self._timers: Dict[str, PeriodicTimer] = {}
        self.closed = False

    def __enter__(self) -> "TimerGroup":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def start(
        self, name: str, interval: float, callback: Callable[[], None]
    ) -> PeriodicTimer:
        if self.closed:
            raise ValueError("timer group is closed")
        self.cancel(name)
        timer = PeriodicTimer(name, interval, callback, self.clock())
        self._timers[name] = timer
        logger.debug("Started timer %s every %ss", name, interval)
        return timer

    def cancel(self, name: str) -> None:
        timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancel()
            logger.debug("Cancelled timer %s", name)

    def is_running(self, name: str) -> bool:
        return name in self._timers

    def running(self) -> list[str]:
        return list(self._timers)

    def poll(self, now: Optional[float] = None) -> int:
        """Fire every due tick and return how many fired."""
        if self.closed:
            return 0
        now = self.clock() if now is None else now
        fired = 0
        while True:
            due = [t for t in self._timers.values() if t.next_due <= now]
            if not due:
                return fired
            timer = min(due, key=lambda t: t.next_due)
            timer.fire()
            fired += 1

    def close(self) -> None:
        for name in list(self._timers):
            self.cancel(name)
        self.closed = True


async def poll_forever(
    group: TimerGroup,
    on_tick: Callable[[], Awaitable[None]] | None = None,
    interval: float = 0.25,
) -> None:
    """Poll ``group`` until it is closed, awaiting ``on_tick`` after due ticks."""
    while not group.closed:
        fired = group.poll()
        if fired and on_tick is not None:
            await on_tick()
        await asyncio.sleep(interval)
