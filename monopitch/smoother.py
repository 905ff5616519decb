"""
Temporal smoothing for frequency estimates.

A short median over the most recent frequencies rejects single-frame
outliers; an exponential blend with the previous smoothed value then
steadies the reading without adding much lag.
"""

from collections import deque

import numpy as np

from .constants import HISTORY_SIZE, SMOOTHING_ALPHA


class FrequencySmoother:
    """
    Median-then-exponential smoother for a single frequency track.

    smoothed = alpha * median(history) + (1 - alpha) * previous_smoothed

    The first value after construction or :meth:`clear` has no previous
    smoothed value and passes through as the median alone.
    """

    def __init__(self, history_size: int = HISTORY_SIZE, alpha: float = SMOOTHING_ALPHA):
        """
        Initialize smoother.

        Args:
            history_size: Maximum number of frequencies kept for the median
            alpha: Weight of the new median (0 < alpha <= 1)
        """
        self.history_size = history_size
        self.alpha = alpha
        self._history: deque[float] = deque(maxlen=history_size)
        self._last_smoothed: float | None = None

    def add(self, frequency: float) -> float:
        """Add a frequency and return the new smoothed value."""
        self._history.append(float(frequency))
        median = float(np.median(self._history))

        if self._last_smoothed is None:
            smoothed = median
        else:
            smoothed = self.alpha * median + (1.0 - self.alpha) * self._last_smoothed

        self._last_smoothed = smoothed
        return smoothed

    def clear(self):
        """Clear all history."""
        self._history.clear()
        self._last_smoothed = None

    @property
    def history(self) -> tuple[float, ...]:
        """Frequencies currently in the median window, oldest first."""
        return tuple(self._history)

    @property
    def last_smoothed(self) -> float | None:
        """Most recent smoothed frequency, None before the first add."""
        return self._last_smoothed

    @property
    def sample_count(self) -> int:
        """Number of frequencies currently in history."""
        return len(self._history)
