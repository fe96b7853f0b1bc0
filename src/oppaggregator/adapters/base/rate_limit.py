"""Sliding-window request budget."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable


class SlidingWindowLimiter:
    """Counts request timestamps inside a trailing window.

    Args:
        limit: Maximum requests allowed inside the window.
        window: Window length in seconds.
        clock: Time source in seconds.
    """

    def __init__(self, limit: int, window: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.limit = limit
        self.window = window
        self._clock = clock
        self._history: deque[float] = deque()

    def _prune(self) -> None:
        cutoff = self._clock() - self.window
        while self._history and self._history[0] <= cutoff:
            self._history.popleft()

    def allows(self) -> bool:
        """Whether one more request fits in the current window."""
        self._prune()
        return len(self._history) < self.limit

    def record(self) -> None:
        self._history.append(self._clock())

    @property
    def remaining(self) -> int:
        self._prune()
        return max(0, self.limit - len(self._history))

    def reset(self) -> None:
        self._history.clear()
