"""Fixed-capacity sliding window of recent audio levels."""

from collections import deque
from itertools import islice

import numpy as np


class RollingWindow:
    """FIFO buffer holding the most recent levels in arrival order."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("Window capacity must be positive")
        self.capacity = capacity
        self._samples: deque[float] = deque(maxlen=capacity)

    def append(self, level: float) -> None:
        """Add a level, evicting the oldest one when full."""
        self._samples.append(level)

    def latest(self, count: int) -> np.ndarray:
        """
        Return the most recent ``count`` levels, oldest first.

        Raises:
            ValueError: If fewer than ``count`` levels are buffered
        """
        if count > len(self._samples):
            raise ValueError(
                f"Requested {count} samples but only {len(self._samples)} are buffered"
            )
        if count <= 0:
            return np.empty(0, dtype=np.float64)
        newest_first = np.fromiter(
            islice(reversed(self._samples), count), dtype=np.float64, count=count
        )
        return newest_first[::-1].copy()

    def clear(self) -> None:
        self._samples.clear()

    def to_list(self) -> list[float]:
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)
