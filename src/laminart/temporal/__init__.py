"""
Temporal front end: working memory, primacy gradients and list chunking.

Usage:
======
    from laminart.temporal import TemporalProcessor, WorkingMemoryConfig

    processor = TemporalProcessor(WorkingMemoryConfig(item_dimension=16))
    result = processor.process_item(pattern)
    result.chunked_pattern()
"""

from laminart.temporal.chunks import ChunkType, ItemNode, ListChunk
from laminart.temporal.config import MaskingFieldConfig, WorkingMemoryConfig
from laminart.temporal.masking_field import ChunkingStatistics, MaskingField, MaskingFieldState
from laminart.temporal.primacy import GradientProfile, PrimacyGradientController
from laminart.temporal.processor import TemporalProcessor, TemporalResult
from laminart.temporal.transmitter import TransmitterDynamics
from laminart.temporal.working_memory import (
    MemoryItem,
    TemporalPattern,
    WorkingMemory,
    WorkingMemoryState,
)

__all__ = [
    "ChunkType",
    "ItemNode",
    "ListChunk",
    "MaskingFieldConfig",
    "WorkingMemoryConfig",
    "ChunkingStatistics",
    "MaskingField",
    "MaskingFieldState",
    "GradientProfile",
    "PrimacyGradientController",
    "TemporalProcessor",
    "TemporalResult",
    "TransmitterDynamics",
    "MemoryItem",
    "TemporalPattern",
    "WorkingMemory",
    "WorkingMemoryState",
]
