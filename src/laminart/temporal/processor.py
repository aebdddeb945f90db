"""
Temporal Processor: working memory followed by list chunking.

Every item is written into working memory and presented to the masking
field for one item duration. The result exposes the working-memory
snapshot, the current chunks and a single ``chunked_pattern`` for the
cortical circuit.

Author: Laminart Project
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import torch

from laminart.backends.base import AccelerationBackend
from laminart.errors import ConfigurationError
from laminart.temporal.chunks import ListChunk
from laminart.temporal.config import MaskingFieldConfig, WorkingMemoryConfig
from laminart.temporal.masking_field import ChunkingStatistics, MaskingField
from laminart.temporal.working_memory import WorkingMemory, WorkingMemoryState
from laminart.utils.patterns import PatternLike, as_pattern


@dataclass(frozen=True)
class TemporalResult:
    working_memory_state: WorkingMemoryState
    chunks: List[ListChunk]
    active_chunk: Optional[ListChunk]
    statistics: ChunkingStatistics

    @property
    def has_chunks(self) -> bool:
        return len(self.chunks) > 0

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)

    def chunked_pattern(self) -> torch.Tensor:
        """Primacy/recency weighted working-memory pattern."""
        return self.working_memory_state.combined_pattern()


class TemporalProcessor:
    """Working memory + masking field front end.

    Args:
        working_memory_config: Working memory parameters
        masking_field_config: Masking field parameters
        item_duration: Presentation time of one item in seconds
        backend: Backend for all shunting steps
    """

    def __init__(
        self,
        working_memory_config: Optional[WorkingMemoryConfig] = None,
        masking_field_config: Optional[MaskingFieldConfig] = None,
        item_duration: float = 0.05,
        backend: Optional[AccelerationBackend] = None,
    ):
        if not item_duration > 0.0:
            raise ConfigurationError(f"item_duration must be positive, got {item_duration}")
        self.working_memory = WorkingMemory(working_memory_config, backend)
        self.masking_field = MaskingField(masking_field_config, backend)
        self.item_duration = item_duration

    @property
    def item_dimension(self) -> int:
        return self.working_memory.config.item_dimension

    def process_item(self, pattern: PatternLike) -> TemporalResult:
        x = as_pattern(pattern, self.item_dimension, name="temporal input")
        self.working_memory.store_item(x, self.item_duration)
        self.masking_field.update(x, self.item_duration)
        return TemporalResult(
            working_memory_state=self.working_memory.state(),
            chunks=self.masking_field.list_chunks,
            active_chunk=self.masking_field.active_chunk,
            statistics=self.masking_field.statistics(),
        )

    def process_sequence(self, patterns: Sequence[PatternLike]) -> List[TemporalResult]:
        return [self.process_item(p) for p in patterns]

    def reset(self) -> None:
        self.working_memory.reset()
        self.masking_field.reset()
