"""Rolling power history for the total power chart.

Package power samples are collected into a window; once the window has been
open for ``window_seconds`` its rounded average becomes one chart bar. Only
the newest ``max_bars`` bars are kept.
"""

import time
from collections import deque
from collections.abc import Callable


class PowerHistory:
    """Windowed averages of package power, newest first."""

    def __init__(
        self,
        max_bars: int = 25,
        window_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._bars: deque[float] = deque(maxlen=max_bars)
        self._window: list[float] = []
        self._window_seconds = window_seconds
        self._clock = clock
        self._window_start = clock()

    def __len__(self) -> int:
        """Return number of completed bars."""
        return len(self._bars)

    @property
    def capacity(self) -> int:
        """Return maximum number of bars kept."""
        return self._bars.maxlen or 0

    @property
    def bars(self) -> list[float]:
        """Completed bars, newest first (returns a copy)."""
        return list(self._bars)

    def push(self, watts: float) -> bool:
        """Add a sample; returns True if it closed a window and produced a bar."""
        self._window.append(watts)
        now = self._clock()
        if now - self._window_start < self._window_seconds:
            return False

        average = round(sum(self._window) / len(self._window))
        self._bars.appendleft(float(average))
        self._window.clear()
        self._window_start = now
        return True

    def clear(self) -> None:
        """Drop all bars and the open window."""
        self._bars.clear()
        self._window.clear()
        self._window_start = self._clock()
