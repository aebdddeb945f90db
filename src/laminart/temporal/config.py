"""
Temporal Front-End Configuration.

``WorkingMemoryConfig`` follows the item-and-order working memory of
Grossberg & Kazerounian: a bounded store (7 ± 2 items) whose activities
form a primacy gradient, gated by habituative transmitters.

``MaskingFieldConfig`` sets up the masking field that groups the stored
items into list chunks.

References:
- Grossberg (1978): A theory of human memory: self-organization and
  performance of sensory-motor codes, maps, and plans
- Cohen & Grossberg (1987): Masking fields: a massively parallel neural
  architecture for learning, recognizing, and predicting multiple
  groupings of patterned data
- Kazerounian & Grossberg (2014): Real-time learning of predictive
  recognition categories that chunk sequences of items stored in working
  memory

Author: Laminart Project
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Tuple

from laminart.config.validation import ValidatedConfig


@dataclass(frozen=True)
class WorkingMemoryConfig(ValidatedConfig):
    """Parameters of the item-and-order working memory."""

    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        'capacity': ('positive_integer', 'range(3, 15)'),
        'decay_rate': ('open_unit',),
        'max_activation': ('positive', 'finite'),
        'primacy_decay_rate': ('probability',),
        'self_excitation': ('non_negative', 'finite'),
        'lateral_inhibition': ('non_negative', 'finite'),
        'transmitter_recovery_rate': ('positive', 'range(0.0, 0.1)'),
        'transmitter_depletion_linear': ('probability',),
        'transmitter_depletion_quadratic': ('probability',),
        'retrieval_threshold': ('probability',),
        'time_step': ('positive', 'range(0.0, 0.1)'),
        'item_dimension': ('positive_integer',),
    }

    capacity: int = 7
    """Number of item slots (Miller's 7 ± 2)."""

    decay_rate: float = 0.1
    max_activation: float = 1.0

    primacy_decay_rate: float = 0.1
    """Exponential fall-off of the stored activity with list position."""

    self_excitation: float = 0.2
    lateral_inhibition: float = 0.3

    transmitter_recovery_rate: float = 0.005
    """ε: transmitter recovery toward the baseline of 1."""

    transmitter_depletion_linear: float = 0.1
    """λ: depletion proportional to the signal."""

    transmitter_depletion_quadratic: float = 0.05
    """μ: depletion proportional to the squared signal."""

    retrieval_threshold: float = 0.1
    time_step: float = 0.01

    overflow_reset: bool = True
    """Reset when a new item arrives at full capacity (else ignore it)."""

    item_dimension: int = 10

    def __post_init__(self) -> None:
        self.validate_config()

    @classmethod
    def paper_defaults(cls, item_dimension: int = 10) -> "WorkingMemoryConfig":
        return cls(item_dimension=item_dimension)

    @classmethod
    def cowans_capacity(cls, item_dimension: int = 10) -> "WorkingMemoryConfig":
        """Cowan's 4 ± 1 store."""
        return cls(capacity=4, item_dimension=item_dimension)

    @classmethod
    def extended_capacity(cls, item_dimension: int = 10) -> "WorkingMemoryConfig":
        """Nine slots with a steeper gradient and stronger competition."""
        return cls(
            capacity=9,
            decay_rate=0.15,
            primacy_decay_rate=0.15,
            self_excitation=0.15,
            lateral_inhibition=0.4,
            transmitter_recovery_rate=0.003,
            transmitter_depletion_linear=0.15,
            transmitter_depletion_quadratic=0.08,
            retrieval_threshold=0.15,
            item_dimension=item_dimension,
        )

    @property
    def primacy_gradient(self) -> float:
        return self.primacy_decay_rate

    @property
    def recency_gradient(self) -> float:
        return 0.5 * self.primacy_decay_rate

    @property
    def total_depletion(self) -> float:
        return self.transmitter_depletion_linear + self.transmitter_depletion_quadratic


@dataclass(frozen=True)
class MaskingFieldConfig(ValidatedConfig):
    """Parameters of the list-chunking masking field."""

    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        'max_item_nodes': ('positive_integer', 'range(10, 100)'),
        'max_chunks': ('positive_integer',),
        'min_chunk_size': ('positive_integer',),
        'max_chunk_size': ('positive_integer',),
        'integration_time_step': ('positive', 'range(0.0, 0.1)'),
        'min_chunk_interval': ('non_negative', 'finite'),
        'max_temporal_gap': ('non_negative', 'finite'),
        'excitation_range': ('positive', 'finite'),
        'inhibition_range': ('positive', 'finite'),
        'competition_strength': ('non_negative', 'finite'),
        'winner_threshold': ('probability',),
        'item_decay_rate': ('non_negative', 'finite'),
        'chunk_decay_rate': ('non_negative', 'finite'),
        'max_activation': ('positive', 'finite'),
        'initial_activation': ('non_negative', 'finite'),
        'activation_boost': ('non_negative', 'finite'),
        'active_chunk_boost': ('non_negative', 'finite'),
        'learning_rate': ('open_unit',),
        'matching_threshold': ('probability',),
        'self_excitation': ('non_negative', 'finite'),
        'reset_decay_factor': ('probability',),
    }

    max_item_nodes: int = 50
    max_chunks: int = 10
    min_chunk_size: int = 3
    max_chunk_size: int = 7
    integration_time_step: float = 0.05

    min_chunk_interval: float = 0.2
    """Minimum time in seconds between two chunk formations."""

    max_temporal_gap: float = 3.0
    """Largest position gap between consecutive winners of a coherent sequence."""

    excitation_range: float = 1.0
    inhibition_range: float = 3.0
    competition_strength: float = 0.5
    winner_threshold: float = 0.3
    item_decay_rate: float = 0.05
    chunk_decay_rate: float = 0.02
    max_activation: float = 1.0
    initial_activation: float = 0.5
    activation_boost: float = 0.2
    active_chunk_boost: float = 0.3
    learning_rate: float = 0.1

    matching_threshold: float = 0.8
    """Cosine similarity at which an input is recognised as a stored item."""

    self_excitation: float = 0.1
    normalization_enabled: bool = True
    reset_after_chunk: bool = True
    reset_decay_factor: float = 0.3

    def __post_init__(self) -> None:
        errors: List[str] = []
        if self.min_chunk_size < 2:
            errors.append(f"min_chunk_size={self.min_chunk_size} must be >= 2")
        if self.min_chunk_size > self.max_chunk_size:
            errors.append(
                f"min_chunk_size={self.min_chunk_size} must be <= "
                f"max_chunk_size={self.max_chunk_size}"
            )
        self.validate_config(tuple(errors))
