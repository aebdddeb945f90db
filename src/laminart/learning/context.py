"""
Learning Context and Statistics.

``LearningContext`` bundles what a gated learning rule needs for one update:
pre/post activity, the current resonance state and the attention level.

``LearningStatistics`` accumulates per-layer learning history.

Author: Laminart Project
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import torch

from laminart.oscillation.resonance import ResonanceState


@dataclass(frozen=True)
class LearningContext:
    """Inputs to one resonance-gated learning step."""

    pre_activation: torch.Tensor
    post_activation: torch.Tensor
    resonance_state: Optional[ResonanceState] = None
    attention_strength: float = 0.0
    timestamp: float = 0.0

    @property
    def learning_rate_modulation(self) -> float:
        """Attention scales learning, saturating at 1."""
        return min(1.0, max(0.0, self.attention_strength))

    @property
    def consciousness_likelihood(self) -> float:
        if self.resonance_state is None:
            return 0.0
        return self.resonance_state.consciousness_likelihood

    @property
    def is_resonant(self) -> bool:
        return self.resonance_state is not None and self.resonance_state.art_resonance


class LearningStatistics:
    """Running totals over the learning events of one layer."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.total_events = 0
        self.resonant_events = 0
        self._attention_sum = 0.0
        self._consciousness_sum = 0.0
        self.total_weight_change = 0.0
        self.max_weight_change = 0.0

    def record_learning_event(
        self,
        resonance_state: Optional[ResonanceState],
        attention: float,
        weight_change: float,
    ) -> None:
        self.total_events += 1
        if resonance_state is not None:
            if resonance_state.art_resonance:
                self.resonant_events += 1
            self._consciousness_sum += resonance_state.consciousness_likelihood
        self._attention_sum += attention
        self.total_weight_change += weight_change
        self.max_weight_change = max(self.max_weight_change, weight_change)

    @property
    def average_attention(self) -> float:
        return self._attention_sum / self.total_events if self.total_events else 0.0

    @property
    def average_consciousness(self) -> float:
        return self._consciousness_sum / self.total_events if self.total_events else 0.0

    @property
    def average_weight_change(self) -> float:
        return self.total_weight_change / self.total_events if self.total_events else 0.0

    @property
    def resonance_ratio(self) -> float:
        return self.resonant_events / self.total_events if self.total_events else 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_events": self.total_events,
            "resonant_events": self.resonant_events,
            "attention_sum": self._attention_sum,
            "consciousness_sum": self._consciousness_sum,
            "total_weight_change": self.total_weight_change,
            "max_weight_change": self.max_weight_change,
        }

    def load_dict(self, state: Dict[str, Any]) -> None:
        self.total_events = int(state["total_events"])
        self.resonant_events = int(state["resonant_events"])
        self._attention_sum = float(state["attention_sum"])
        self._consciousness_sum = float(state["consciousness_sum"])
        self.total_weight_change = float(state["total_weight_change"])
        self.max_weight_change = float(state["max_weight_change"])

    def __repr__(self) -> str:
        return (
            f"LearningStatistics(events={self.total_events}, "
            f"resonant={self.resonant_events}, "
            f"avg_change={self.average_weight_change:.4g})"
        )
