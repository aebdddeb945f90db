"""
Weight Matrices and Scratch-Matrix Pool.

``WeightMatrix`` stores synaptic weights with rows = post-synaptic units and
cols = pre-synaptic units, bounded to [w_min, w_max].

``WeightMatrixPool`` keeps a fixed set of same-shaped matrices for the
temporary "new weights" buffer of every learning update, so repeated
updates do not allocate. Thread-safe.

Author: Laminart Project
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set, Tuple

import torch

from laminart.errors import ConfigurationError, DimensionMismatchError, ResourceError
from laminart.utils.core_utils import clamp_weights

logger = logging.getLogger(__name__)


class WeightMatrix:
    """Bounded post × pre weight matrix.

    Args:
        rows: Number of post-synaptic units
        cols: Number of pre-synaptic units
        w_min: Lower weight bound
        w_max: Upper weight bound
        data: Optional initial weights (copied); zeros otherwise
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        w_min: float = 0.0,
        w_max: float = 1.0,
        data: Optional[torch.Tensor] = None,
        dtype: torch.dtype = torch.float64,
        device: torch.device = torch.device("cpu"),
    ):
        if rows < 1 or cols < 1:
            raise ConfigurationError(f"WeightMatrix needs rows, cols >= 1, got {rows}x{cols}")
        if w_min > w_max:
            raise ConfigurationError(f"w_min={w_min} must be <= w_max={w_max}")
        self.w_min = w_min
        self.w_max = w_max
        if data is None:
            self.data = torch.zeros(rows, cols, dtype=dtype, device=device)
        else:
            if tuple(data.shape) != (rows, cols):
                raise DimensionMismatchError("weights", (rows, cols), tuple(data.shape))
            self.data = data.detach().to(device=device, dtype=dtype).clone()
            clamp_weights(self.data, w_min, w_max)

    @property
    def rows(self) -> int:
        return self.data.shape[0]

    @property
    def cols(self) -> int:
        return self.data.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    def get(self, row: int, col: int) -> float:
        return float(self.data[row, col])

    def set(self, row: int, col: int, value: float) -> None:
        self.data[row, col] = min(self.w_max, max(self.w_min, float(value)))

    def fill_(self, value: float) -> "WeightMatrix":
        self.data.fill_(min(self.w_max, max(self.w_min, float(value))))
        return self

    def copy_from(self, other: "WeightMatrix") -> None:
        if other.shape != self.shape:
            raise DimensionMismatchError("weights", self.shape, other.shape)
        self.data.copy_(other.data)

    def distance(self, other: "WeightMatrix") -> float:
        """Frobenius norm of the difference."""
        if other.shape != self.shape:
            raise DimensionMismatchError("weights", self.shape, other.shape)
        return float(torch.linalg.norm(self.data - other.data))

    def clone(self) -> "WeightMatrix":
        return WeightMatrix(
            self.rows, self.cols, self.w_min, self.w_max,
            data=self.data, dtype=self.data.dtype, device=self.data.device,
        )

    def clamp_(self) -> "WeightMatrix":
        clamp_weights(self.data, self.w_min, self.w_max)
        return self

    def __repr__(self) -> str:
        return f"WeightMatrix({self.rows}x{self.cols}, bounds=[{self.w_min}, {self.w_max}])"


@dataclass
class PoolStats:
    acquisitions: int = 0
    releases: int = 0
    growths: int = 0
    peak_in_use: int = 0


class WeightMatrixPool:
    """Fixed-capacity pool of same-shaped scratch matrices.

    Example:
        >>> pool = WeightMatrixPool(64, 64, capacity=2)
        >>> with pool.borrow() as scratch:
        ...     scratch.data.copy_(new_weights)

    Args:
        rows, cols: Shape of every pooled matrix
        capacity: Number of matrices pre-allocated
        allow_growth: Allocate past capacity instead of raising ResourceError
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        capacity: int = 2,
        allow_growth: bool = False,
        w_min: float = 0.0,
        w_max: float = 1.0,
        dtype: torch.dtype = torch.float64,
        device: torch.device = torch.device("cpu"),
    ):
        if capacity < 1:
            raise ConfigurationError(f"pool capacity must be >= 1, got {capacity}")
        self.rows = rows
        self.cols = cols
        self.capacity = capacity
        self.allow_growth = allow_growth
        self._w_min = w_min
        self._w_max = w_max
        self._dtype = dtype
        self._device = device
        self._free: List[WeightMatrix] = [self._allocate() for _ in range(capacity)]
        self._in_use: Set[int] = set()
        self._lock = threading.Lock()
        self.stats = PoolStats()

    def _allocate(self) -> WeightMatrix:
        return WeightMatrix(
            self.rows, self.cols, self._w_min, self._w_max,
            dtype=self._dtype, device=self._device,
        )

    @property
    def available(self) -> int:
        return len(self._free)

    @property
    def in_use(self) -> int:
        return len(self._in_use)

    def acquire(self) -> WeightMatrix:
        """Take a zeroed matrix from the pool.

        Raises:
            ResourceError: If the pool is exhausted and growth is not allowed
        """
        with self._lock:
            if self._free:
                matrix = self._free.pop()
            elif self.allow_growth:
                matrix = self._allocate()
                self.stats.growths += 1
                logger.warning(
                    "WeightMatrixPool(%dx%d) grew past capacity %d",
                    self.rows, self.cols, self.capacity,
                )
            else:
                raise ResourceError(
                    f"WeightMatrixPool({self.rows}x{self.cols}) exhausted: "
                    f"{len(self._in_use)} of {self.capacity} in use"
                )
            matrix.data.zero_()
            self._in_use.add(id(matrix))
            self.stats.acquisitions += 1
            self.stats.peak_in_use = max(self.stats.peak_in_use, len(self._in_use))
            return matrix

    def release(self, matrix: WeightMatrix) -> None:
        """Return a matrix obtained from ``acquire``.

        Raises:
            ResourceError: If the matrix is not currently checked out of this pool
        """
        with self._lock:
            if id(matrix) not in self._in_use:
                raise ResourceError(
                    "Released a matrix that is not checked out of this pool"
                )
            self._in_use.discard(id(matrix))
            self._free.append(matrix)
            self.stats.releases += 1

    @contextmanager
    def borrow(self) -> Iterator[WeightMatrix]:
        """Context manager that acquires and always releases."""
        matrix = self.acquire()
        try:
            yield matrix
        finally:
            self.release(matrix)

    def __repr__(self) -> str:
        return (
            f"WeightMatrixPool({self.rows}x{self.cols}, "
            f"available={self.available}, in_use={self.in_use})"
        )
