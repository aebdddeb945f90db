"""Fixed-capacity ring buffer of scalar samples."""

from __future__ import annotations

import numpy as np

from laminart.errors import ConfigurationError


class CircularBuffer:
    """Ring buffer that keeps the most recent ``capacity`` samples.

    Example:
        >>> buf = CircularBuffer(4)
        >>> for v in range(6):
        ...     buf.append(v)
        >>> buf.ordered().tolist()
        [2.0, 3.0, 4.0, 5.0]
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ConfigurationError(f"buffer capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._data = np.zeros(capacity, dtype=np.float64)
        self._head = 0
        self._count = 0

    def append(self, value: float) -> None:
        self._data[self._head] = value
        self._head = (self._head + 1) % self.capacity
        self._count = min(self._count + 1, self.capacity)

    def __len__(self) -> int:
        return self._count

    def is_full(self) -> bool:
        return self._count == self.capacity

    def ordered(self) -> np.ndarray:
        """Samples oldest first (a copy)."""
        if self._count < self.capacity:
            return self._data[: self._count].copy()
        return np.concatenate((self._data[self._head:], self._data[: self._head]))

    def clear(self) -> None:
        self._data.fill(0.0)
        self._head = 0
        self._count = 0
