"""
Layer 1: Sustained Attention and Apical Priming.

Layer 1 holds a very slow attention state and an even slower memory trace.
Together they form a priming signal that reaches Layer 2/3 through apical
dendrites. Priming modulates but is capped at 0.5 so it cannot drive
Layer 2/3 on its own.

Per update with input a (top-down expectation, or the Layer 2/3 output for
bottom-up integration) and sustained decay d:

    attention ← min(1,   attention·(1 − 0.01·d) + shift_rate·a⁺)
    trace     ← min(0.8, trace·(1 − 0.05·d) + 0.1·attention[attention > 0.3])
    priming   = min(0.5, (attention + 0.5·trace)·priming_strength)

Strong inputs (a > 0.8) raise the combined attention to at least 0.9·a.
The priming drives one shunting step from rest (dt = τ/20000 s); the
result is then held at least at 0.85·a for strong inputs and at
0.7·attention while attention persists.

Author: Laminart Project
"""

from __future__ import annotations

import logging
from typing import Optional

import torch

from laminart.backends.base import AccelerationBackend
from laminart.config.layer_params import Layer1Parameters, LayerKind
from laminart.config.validation import validate_learning_rate
from laminart.layers.base import CorticalLayer
from laminart.learning.context import LearningContext
from laminart.utils.patterns import PatternLike

logger = logging.getLogger(__name__)

STRONG_INPUT = 0.8
ATTENTION_CAP = 1.0
TRACE_CAP = 0.8
TRACE_THRESHOLD = 0.3
PRIMING_CAP = 0.5
SUSTAINED_THRESHOLD = 0.1


class Layer1(CorticalLayer):
    """Top-down attention / priming layer (τ 200-1000 ms)."""

    kind = LayerKind.L1

    def __init__(
        self,
        layer_id: str,
        size: int,
        params: Optional[Layer1Parameters] = None,
        backend: Optional[AccelerationBackend] = None,
    ):
        super().__init__(layer_id, size, params, backend)
        self._last_params: Layer1Parameters = self.params
        self._reset_state()

    def _reset_state(self) -> None:
        zeros = torch.zeros(self.size, dtype=self.dtype)
        self._attention = zeros.clone()
        self._trace = zeros.clone()
        self._priming = zeros.clone()
        self._last_params = self.params

    # =========================================================================
    # Sustained attention
    # =========================================================================

    def _integrate(self, a: torch.Tensor, p: Layer1Parameters) -> torch.Tensor:
        self._last_params = p
        d = p.sustained_decay_rate

        attention = self._attention * (1.0 - d * 0.01)
        attention = attention + torch.where(a > 0, a * p.attention_shift_rate, torch.zeros_like(a))
        self._attention = attention.clamp(max=ATTENTION_CAP)

        trace = self._trace * (1.0 - d * 0.05)
        trace = trace + torch.where(
            self._attention > TRACE_THRESHOLD, self._attention * 0.1, torch.zeros_like(a),
        )
        self._trace = trace.clamp(max=TRACE_CAP)

        combined = self._attention + 0.5 * self._trace
        strong = a > STRONG_INPUT
        combined = torch.where(strong, torch.maximum(combined, 0.9 * a), combined)
        self._priming = (combined * p.priming_strength).clamp(max=PRIMING_CAP)

        rest = self._floor_pattern(p)
        out = self._dynamics_for(p).evolve(rest, dt=p.time_constant / 20000.0, excitatory=self._priming)

        out = torch.where(strong, torch.maximum(out, 0.85 * a), out)
        sustained = self._attention > SUSTAINED_THRESHOLD
        out = torch.where(sustained, torch.maximum(out, 0.7 * self._attention), out)
        return out.clamp(p.floor, p.ceiling)

    def _top_down(self, e: torch.Tensor, p: Layer1Parameters) -> torch.Tensor:
        return self._integrate(e, p)

    def _bottom_up(self, x: torch.Tensor, p: Layer1Parameters) -> torch.Tensor:
        return self._integrate(x, p)

    def _lateral(self, h: torch.Tensor, p: Layer1Parameters) -> torch.Tensor:
        # Competition already happens inside the priming step
        return self._activation.clone()

    # =========================================================================
    # Priming signals
    # =========================================================================

    @property
    def priming_effect(self) -> torch.Tensor:
        return self._priming.clone()

    @property
    def attention_state(self) -> torch.Tensor:
        return self._attention.clone()

    @property
    def memory_trace(self) -> torch.Tensor:
        return self._trace.clone()

    def apical_dendrite_signal(self) -> torch.Tensor:
        """(attention + priming)·apical_integration for Layer 2/3 apical input."""
        return (self._attention + self._priming) * self._last_params.apical_integration

    # =========================================================================
    # Learning
    # =========================================================================

    def update_weights(self, input: PatternLike, learning_rate: float) -> float:
        """Validate the rate; priming is not weight based, so nothing changes."""
        validate_learning_rate(learning_rate)
        self._pattern(input, "learning input")
        return 0.0

    def learn(self, context: LearningContext, base_rate: float) -> float:
        validate_learning_rate(base_rate, "base_rate")
        if self._rule is None:
            return 0.0
        self.learning_statistics.record_learning_event(
            context.resonance_state, context.attention_strength, 0.0,
        )
        logger.debug("%s: priming is not weight based, learning recorded only", self.layer_id)
        return 0.0
