"""
Cooperative timer scheduler.

The engine never sleeps or spawns threads. Deferred work is registered
here and runs when the host loop advances the clock with update(dt),
in due-time order. Callbacks registered for the same instant run in
registration order.

Usage:
    scheduler = Scheduler()
    timer = scheduler.call_later(0.5, on_fade_done)
    ...
    scheduler.update(dt)   # once per frame
    timer.cancel()         # never fires after this
"""

from __future__ import annotations

import heapq
import itertools
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Timer:
    """Handle for a scheduled callback."""

    __slots__ = ("due", "interval", "callback", "cancelled", "_seq")

    def __init__(
        self,
        due: float,
        callback: Callable[[], None],
        interval: Optional[float],
        seq: int,
    ):
        self.due = due
        self.interval = interval
        self.callback = callback
        self.cancelled = False
        self._seq = seq

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    def cancel(self) -> None:
        """Stop the timer; a cancelled timer never fires again."""
        self.cancelled = True

    def __lt__(self, other: Timer) -> bool:
        return (self.due, self._seq) < (other.due, other._seq)


class Scheduler:
    """
    Single-threaded timer queue driven by the host's frame update.

    Features:
    - One-shot (call_later) and repeating (call_every) timers
    - Cancellation through the returned Timer handle
    - Deterministic ordering, which keeps playback tests reproducible
    """

    def __init__(self, start_time: float = 0.0):
        self._now = start_time
        self._queue: list[Timer] = []
        self._counter = itertools.count()

    @property
    def now(self) -> float:
        """Current scheduler time in seconds."""
        return self._now

    @property
    def pending(self) -> int:
        """Number of live timers."""
        return sum(1 for t in self._queue if not t.cancelled)

    def call_later(self, delay: float, callback: Callable[[], None]) -> Timer:
        """Run callback once, delay seconds from now."""
        return self._push(self._now + max(0.0, delay), callback, None)

    def call_every(self, interval: float, callback: Callable[[], None]) -> Timer:
        """Run callback every interval seconds until cancelled."""
        if interval <= 0:
            raise ValueError(f"Timer interval must be positive, got {interval}")
        return self._push(self._now + interval, callback, interval)

    def cancel(self, timer: Optional[Timer]) -> None:
        if timer is not None:
            timer.cancel()

    def cancel_all(self) -> None:
        for timer in self._queue:
            timer.cancel()
        self._queue.clear()

    def update(self, dt: float) -> int:
        """
        Advance the clock by dt seconds and fire every timer that came due.

        Returns:
            Number of callbacks invoked
        """
        target = self._now + max(0.0, dt)
        fired = 0

        while self._queue and self._queue[0].due <= target:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue

            # Callbacks observe the time they were due, not the frame end
            self._now = timer.due

            if timer.repeating:
                timer.due += timer.interval
                heapq.heappush(self._queue, timer)

            try:
                timer.callback()
            except Exception:
                logger.exception("Unhandled error in scheduled callback")
            fired += 1

        self._now = target
        return fired

    def _push(
        self,
        due: float,
        callback: Callable[[], None],
        interval: Optional[float],
    ) -> Timer:
        timer = Timer(due, callback, interval, next(self._counter))
        heapq.heappush(self._queue, timer)
        return timer
