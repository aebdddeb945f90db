"""
Item nodes and list chunks of the masking field.

Author: Laminart Project
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence

import torch

from laminart.utils.core_utils import cosine_similarity_safe
from laminart.utils.patterns import PatternLike, as_pattern


class ChunkType(Enum):
    """Chunk size classes."""

    SMALL = "small"    # ≤ 3 items
    MEDIUM = "medium"  # 4-5
    LARGE = "large"    # 6-9
    SUPER = "super"    # > 9

    @classmethod
    def for_size(cls, size: int) -> "ChunkType":
        if size <= 3:
            return cls.SMALL
        if size <= 5:
            return cls.MEDIUM
        if size <= 9:
            return cls.LARGE
        return cls.SUPER


@dataclass
class ItemNode:
    """Masking-field node standing for one recognised item."""

    pattern: torch.Tensor
    strength: float
    position: int
    timestamp: float

    def __post_init__(self) -> None:
        self.pattern = as_pattern(self.pattern, name="item pattern")

    def matches(self, pattern: PatternLike, threshold: float) -> bool:
        """Cosine similarity with ``pattern`` at least ``threshold``."""
        other = as_pattern(pattern, name="item pattern")
        return cosine_similarity_safe(self.pattern, other) >= threshold

    def strengthen(self, amount: float) -> None:
        self.strength += amount


@dataclass
class ListChunk:
    """Group of item nodes learned as one unit.

    Items are kept sorted by position, one node per position.
    """

    items: List[ItemNode]
    formation_time: float
    chunk_id: int
    strength: float = 1.0
    _positions: List[int] = field(init=False, repr=False, default_factory=list)

    def __post_init__(self) -> None:
        unique = {}
        for item in self.items:
            unique.setdefault(item.position, item)
        self.items = [unique[p] for p in sorted(unique)]
        self._positions = sorted(unique)

    @property
    def size(self) -> int:
        return len(self.items)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def positions(self) -> List[int]:
        return list(self._positions)

    @property
    def chunk_type(self) -> ChunkType:
        return ChunkType.for_size(self.size)

    def averaged_pattern(self) -> torch.Tensor:
        """Mean of the item patterns (zero-padded to the longest)."""
        if not self.items:
            return torch.zeros(0, dtype=torch.float64)
        length = max(item.pattern.shape[0] for item in self.items)
        total = torch.zeros(length, dtype=torch.float64)
        for item in self.items:
            total[:item.pattern.shape[0]] += item.pattern
        return total / len(self.items)

    def strength_at(self, time: float, decay_rate: float) -> float:
        """strength · exp(−decay_rate · (time − formation_time))."""
        return self.strength * math.exp(-decay_rate * (time - self.formation_time))

    def contains(self, position: int) -> bool:
        return position in self._positions

    def overlaps(self, other: "ListChunk") -> bool:
        return not set(self._positions).isdisjoint(other._positions)

    def merge(self, other: "ListChunk", formation_time: float) -> "ListChunk":
        """Union of both chunks' items, keeping this chunk's id."""
        return ListChunk(
            list(self.items) + list(other.items),
            formation_time,
            self.chunk_id,
            max(self.strength, other.strength),
        )

    @staticmethod
    def merge_all(chunks: Sequence["ListChunk"], formation_time: float) -> "ListChunk":
        merged = chunks[0]
        for chunk in chunks[1:]:
            merged = merged.merge(chunk, formation_time)
        return merged
