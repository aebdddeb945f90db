"""
Item-and-Order Working Memory.

Items are stored in consecutive slots of a shunting network. The n-th item
enters with a primacy activation

    a_n = max(max_activation · exp(−p·(1 + 0.1·n)·n), 2·retrieval_threshold)

scaled by its input strength ‖x‖/√d, so earlier items end up more active
than later ones (a primacy gradient). Habituative transmitter gates are
depleted by the slot being written and are applied when the item ends.

When the store is full, the next item either resets it (``overflow_reset``)
or is ignored.

Author: Laminart Project
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import torch

from laminart.backends.base import AccelerationBackend
from laminart.dynamics.shunting import ShuntingConfig, ShuntingDynamics
from laminart.errors import ConfigurationError
from laminart.temporal.config import WorkingMemoryConfig
from laminart.temporal.transmitter import TransmitterDynamics
from laminart.utils.patterns import PatternLike, as_pattern

logger = logging.getLogger(__name__)

TRANSMITTER_INTERVAL = 10
RESET_LEVEL = 0.3


@dataclass(frozen=True)
class MemoryItem:
    pattern: torch.Tensor
    position: int
    initial_activation: float
    storage_time: float


@dataclass(frozen=True)
class TemporalPattern:
    """Stored patterns with their gated activities."""

    patterns: List[torch.Tensor]
    weights: List[float]
    primacy_gradient: float

    @property
    def sequence_length(self) -> int:
        return len(self.patterns)

    def combined_pattern(self) -> torch.Tensor:
        """Weight-normalised sum of the stored patterns (empty when nothing is stored)."""
        if not self.patterns:
            return torch.zeros(0, dtype=torch.float64)
        stacked = torch.stack(self.patterns)
        w = torch.tensor(self.weights, dtype=stacked.dtype)
        total = float(w.sum())
        if total <= 0.0:
            return torch.zeros(stacked.shape[1], dtype=stacked.dtype)
        return (w.unsqueeze(1) * stacked).sum(dim=0) / total


@dataclass(frozen=True)
class WorkingMemoryState:
    """Snapshot of the store with its primacy and recency weights.

    ``items`` is (capacity × item_dimension); unused slots are zero.
    """

    items: torch.Tensor
    primacy_weights: torch.Tensor
    recency_weights: torch.Tensor
    current_position: int
    sequence_length: int
    activations: torch.Tensor = field(default_factory=lambda: torch.zeros(0, dtype=torch.float64))
    transmitter_levels: torch.Tensor = field(default_factory=lambda: torch.zeros(0, dtype=torch.float64))

    @property
    def item_dimension(self) -> int:
        return self.items.shape[1]

    def combined_pattern(self) -> torch.Tensor:
        """Mean of the stored items weighted by primacy × recency.

        Zero vector of length ``item_dimension`` when nothing is stored.
        """
        n = self.sequence_length
        if n == 0:
            return torch.zeros(self.item_dimension, dtype=self.items.dtype)
        w = self.primacy_weights[:n] * self.recency_weights[:n]
        return (w.unsqueeze(1) * self.items[:n]).sum(dim=0) / w.sum()


class WorkingMemory:
    """Bounded primacy-gradient store.

    Args:
        config: Store parameters
        backend: Backend for the shunting steps
    """

    def __init__(
        self,
        config: Optional[WorkingMemoryConfig] = None,
        backend: Optional[AccelerationBackend] = None,
    ):
        self.config = config or WorkingMemoryConfig()
        cfg = self.config
        self.dynamics = ShuntingDynamics(
            ShuntingConfig(
                size=cfg.capacity,
                decay_rate=cfg.decay_rate,
                ceiling=cfg.max_activation,
                floor=0.0,
                self_excitation=cfg.self_excitation,
                excitatory_strength=0.3,
                inhibitory_strength=cfg.lateral_inhibition,
                excitatory_range=2.0,
                inhibitory_range=5.0,
                time_step=cfg.time_step,
            ),
            backend,
        )
        self.transmitters = TransmitterDynamics(
            cfg.capacity,
            cfg.transmitter_recovery_rate,
            cfg.transmitter_depletion_linear,
            cfg.transmitter_depletion_quadratic,
        )
        self._items: List[MemoryItem] = []
        self._position = 0
        self._time = 0.0

    # =========================================================================
    # Storage
    # =========================================================================

    def store_item(self, pattern: PatternLike, duration: float) -> bool:
        """Store one item presented for ``duration`` seconds.

        Returns:
            False when the store was full and the item was ignored

        Raises:
            DimensionMismatchError: If the item length differs from ``item_dimension``
        """
        if not duration > 0.0:
            raise ConfigurationError(f"item duration must be positive, got {duration}")
        cfg = self.config
        x = as_pattern(pattern, cfg.item_dimension, name="working memory item")
        if self._position >= cfg.capacity:
            if not cfg.overflow_reset:
                logger.debug("working memory full, item ignored")
                return False
            logger.debug("working memory full, resetting")
            self.reset()

        primacy = self.primacy_activation(self._position)
        self._items.append(MemoryItem(x, self._position, primacy, self._time))

        strength = self.input_strength(x)
        excitatory = torch.zeros(cfg.capacity, dtype=torch.float64)
        excitatory[self._position] = primacy * strength
        self.dynamics.set_excitatory_input(excitatory)

        signals = torch.zeros(cfg.capacity, dtype=torch.float64)
        signals[self._position] = strength
        self.transmitters.set_signals(signals)

        self._evolve(duration)

        signals[self._position] = 0.0
        self.transmitters.set_signals(signals)
        self._position += 1
        self._time += duration
        return True

    def store_sequence(self, patterns: Sequence[PatternLike], item_duration: float) -> None:
        """Reset, then store ``patterns`` in order."""
        self.reset()
        for pattern in patterns:
            self.store_item(pattern, item_duration)

    def primacy_activation(self, position: int) -> float:
        cfg = self.config
        decay = cfg.primacy_decay_rate * (1.0 + 0.1 * position)
        base = cfg.max_activation * math.exp(-decay * position)
        return max(base, 2.0 * cfg.retrieval_threshold)

    @staticmethod
    def input_strength(pattern: torch.Tensor) -> float:
        """‖x‖ / √d."""
        n = pattern.shape[0]
        if n == 0:
            return 0.0
        return float(pattern.norm()) / math.sqrt(n)

    def _evolve(self, duration: float) -> None:
        dt = self.config.time_step
        # Guard against 0.1 / 0.01 = 9.999...
        steps = max(1, int(duration / dt + 1e-9))
        for step in range(steps):
            self.dynamics.update(dt)
            if step % TRANSMITTER_INTERVAL == 0:
                self.transmitters.update(dt * TRANSMITTER_INTERVAL)

        gated = self.transmitters.gated_output(self.dynamics.state)
        self.dynamics.set_excitatory_input(gated)
        self.dynamics.update(dt)

    # =========================================================================
    # Readout
    # =========================================================================

    def temporal_pattern(self) -> TemporalPattern:
        activations = self.dynamics.state
        levels = self.transmitters.levels
        weights = [float(activations[i] * levels[i]) for i in range(len(self._items))]
        return TemporalPattern(
            [item.pattern.clone() for item in self._items],
            weights,
            self.primacy_gradient_strength(),
        )

    def primacy_gradient_strength(self) -> float:
        """(early − late) / (early + late) over the mean activity of each half."""
        n = self._position
        if n < 2:
            return 0.0
        activations = self.dynamics.activation
        mid = n // 2
        early = float(activations[:mid].mean())
        late = float(activations[mid:n].mean())
        return (early - late) / (early + late + 1e-10)

    def should_reset(self) -> bool:
        """True once the average transmitter level drops below 0.3."""
        return self.transmitters.average_level < RESET_LEVEL

    @property
    def utilization(self) -> float:
        return self._position / self.config.capacity

    @property
    def position(self) -> int:
        return self._position

    @property
    def items(self) -> List[MemoryItem]:
        return list(self._items)

    def state(self) -> WorkingMemoryState:
        cfg = self.config
        items = torch.zeros(cfg.capacity, cfg.item_dimension, dtype=torch.float64)
        for i, item in enumerate(self._items[:cfg.capacity]):
            items[i] = item.pattern

        idx = torch.arange(cfg.capacity, dtype=torch.float64)
        primacy = torch.exp(-cfg.primacy_gradient * idx)
        recency = torch.exp(-cfg.recency_gradient * (cfg.capacity - 1 - idx))
        return WorkingMemoryState(
            items=items,
            primacy_weights=primacy,
            recency_weights=recency,
            current_position=self._position,
            sequence_length=len(self._items),
            activations=self.dynamics.state,
            transmitter_levels=self.transmitters.levels.clone(),
        )

    def reset(self) -> None:
        self.dynamics.reset()
        self.transmitters.reset()
        self._items.clear()
        self._position = 0
        self._time = 0.0
