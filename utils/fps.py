from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque


class FPSCounter:
    """Elapsed-time clock with a rolling frames-per-second estimate."""

    def __init__(self, average_over: int = 60, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._timestamps: Deque[float] = deque(maxlen=average_over)
        self._start: float = clock()

    def tick(self) -> float:
        self._timestamps.append(self._clock())
        return self.fps

    @property
    def elapsed(self) -> float:
        """Seconds since the counter was created."""
        return self._clock() - self._start

    @property
    def fps(self) -> float:
        if len(self._timestamps) < 2:
            return 0.0
        span = self._timestamps[-1] - self._timestamps[0]
        if span <= 0:
            return 0.0
        return (len(self._timestamps) - 1) / span
