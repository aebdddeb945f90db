"""
Base Class for Laminar Cortical Layers.

Every layer owns:
- a shunting population (``self.dynamics``) built from its parameter record
- a size × size weight matrix, zero at construction, changed only by learning
- a scratch-matrix pool used by every weight update
- optional oscillation tracking of its activation

Pathways:
    process_bottom_up(input, params)      feedforward drive
    process_top_down(expectation, params)  modulatory feedback
    process_lateral(lateral, params)       horizontal interaction

``params`` may be None (the layer's own record) or a record of the layer's
kind; a record of another kind raises ``ConfigurationError``. Each pathway
accepts an optional ``on_change(layer_id, old, new)`` callback invoked
after the activation changes.

Author: Laminart Project
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, ClassVar, Dict, Optional, Union

import torch
import torch.nn as nn

from laminart.backends.base import AccelerationBackend
from laminart.config.layer_params import LayerKind, LayerParameters, require_parameters
from laminart.config.validation import validate_learning_rate
from laminart.dynamics.shunting import ShuntingConfig, ShuntingDynamics
from laminart.errors import ComponentError, ConfigurationError, DimensionMismatchError
from laminart.learning.context import LearningContext, LearningStatistics
from laminart.learning.strategies import LearningRule
from laminart.learning.weights import WeightMatrix, WeightMatrixPool
from laminart.oscillation.analyzer import OscillationAnalyzer, OscillationMetrics
from laminart.utils.patterns import PatternLike, as_pattern

logger = logging.getLogger(__name__)

ActivationCallback = Callable[[str, torch.Tensor, torch.Tensor], None]

# One recorded snapshot per processing step at 1 kHz
OSCILLATION_TICK = 0.001


class CorticalLayer(nn.Module, ABC):
    """Abstract laminar layer.

    Args:
        layer_id: Identifier reported to callbacks and in errors
        size: Number of units
        params: Parameter record of this layer's kind (defaults if None)
        backend: Backend for the shunting steps (vectorized by default)
    """

    kind: ClassVar[LayerKind]

    def __init__(
        self,
        layer_id: str,
        size: int,
        params: Optional[LayerParameters] = None,
        backend: Optional[AccelerationBackend] = None,
    ):
        super().__init__()
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise ConfigurationError(f"Layer size must be a positive integer, got {size!r}")
        self.layer_id = layer_id
        self.size = size
        self.params = require_parameters(self.kind, params)
        self.backend = backend
        self.dtype = torch.float64

        self.dynamics = ShuntingDynamics(self._shunting_config(self.params), backend)
        self._dynamics_cache: Dict[LayerParameters, ShuntingDynamics] = {}

        self._activation = self._floor_pattern(self.params)
        self._weights = WeightMatrix(size, size)
        self._pool = WeightMatrixPool(size, size, capacity=1)

        self._rule: Optional[LearningRule] = None
        self.learning_statistics = LearningStatistics()

        self._oscillation: Optional[OscillationAnalyzer] = None
        self._oscillation_metrics: Optional[OscillationMetrics] = None
        self._oscillation_time = 0.0

    # =========================================================================
    # Construction helpers
    # =========================================================================

    def _shunting_config(self, params: LayerParameters) -> ShuntingConfig:
        """Shunting population for ``params``. Override to tune lateral kernels."""
        return ShuntingConfig.for_layer(params, self.size)

    def _dynamics_for(self, params: LayerParameters) -> ShuntingDynamics:
        if params is self.params:
            return self.dynamics
        if params not in self._dynamics_cache:
            self._dynamics_cache[params] = ShuntingDynamics(
                self._shunting_config(params), self.backend,
            )
        return self._dynamics_cache[params]

    def _floor_pattern(self, params: LayerParameters) -> torch.Tensor:
        return torch.full((self.size,), params.floor, dtype=self.dtype)

    def _resolve(self, params: Optional[LayerParameters]) -> LayerParameters:
        if params is None:
            return self.params
        return require_parameters(self.kind, params)

    def _pattern(self, values: PatternLike, name: str) -> torch.Tensor:
        try:
            return as_pattern(values, self.size, name=name, dtype=self.dtype)
        except DimensionMismatchError as e:
            raise DimensionMismatchError(f"{self.layer_id} {name}", e.expected, e.actual) from None

    # =========================================================================
    # Activation
    # =========================================================================

    @property
    def activation(self) -> torch.Tensor:
        """Copy of the current activation."""
        return self._activation.clone()

    def set_activation(self, values: PatternLike) -> None:
        self._activation = self._pattern(values, "activation")

    def _commit(
        self,
        new_activation: torch.Tensor,
        on_change: Optional[ActivationCallback],
    ) -> torch.Tensor:
        """Store ``new_activation``, record it for oscillation tracking, notify."""
        old = self._activation
        self._activation = new_activation.clone()
        if self._oscillation is not None:
            self._oscillation.record(self._activation)
            if self._oscillation.is_ready:
                self._oscillation_metrics = self._oscillation.analyze(self._oscillation_time)
            self._oscillation_time += OSCILLATION_TICK
        if on_change is not None:
            on_change(self.layer_id, old, self._activation.clone())
        return self._activation.clone()

    # =========================================================================
    # Pathways
    # =========================================================================

    def process_bottom_up(
        self,
        input: PatternLike,
        params: Optional[LayerParameters] = None,
        on_change: Optional[ActivationCallback] = None,
    ) -> torch.Tensor:
        p = self._resolve(params)
        x = self._pattern(input, "bottom-up input")
        return self._commit(self._bottom_up(x, p), on_change)

    def process_top_down(
        self,
        expectation: PatternLike,
        params: Optional[LayerParameters] = None,
        on_change: Optional[ActivationCallback] = None,
    ) -> torch.Tensor:
        p = self._resolve(params)
        e = self._pattern(expectation, "top-down expectation")
        return self._commit(self._top_down(e, p), on_change)

    def process_lateral(
        self,
        lateral: PatternLike,
        params: Optional[LayerParameters] = None,
        on_change: Optional[ActivationCallback] = None,
    ) -> torch.Tensor:
        p = self._resolve(params)
        h = self._pattern(lateral, "lateral input")
        return self._commit(self._lateral(h, p), on_change)

    @abstractmethod
    def _bottom_up(self, x: torch.Tensor, p: LayerParameters) -> torch.Tensor:
        """New activation for bottom-up input ``x``."""

    @abstractmethod
    def _top_down(self, e: torch.Tensor, p: LayerParameters) -> torch.Tensor:
        """New activation for top-down expectation ``e``."""

    def _lateral(self, h: torch.Tensor, p: LayerParameters) -> torch.Tensor:
        """One shunting step from the current activation driven by ``h``."""
        excitatory = h.clamp(min=0.0)
        return self._dynamics_for(p).evolve(self._activation, excitatory=excitatory)

    # =========================================================================
    # Weights and learning
    # =========================================================================

    @property
    def weights(self) -> WeightMatrix:
        """Copy of the weight matrix."""
        return self._weights.clone()

    def set_weights(self, weights: Union[WeightMatrix, torch.Tensor]) -> None:
        data = weights.data if isinstance(weights, WeightMatrix) else weights
        if tuple(data.shape) != (self.size, self.size):
            raise DimensionMismatchError(
                f"{self.layer_id} weights", (self.size, self.size), tuple(data.shape)
            )
        self._weights.data.copy_(data.to(self._weights.data.dtype))
        self._weights.clamp_()

    def update_weights(self, input: PatternLike, learning_rate: float) -> float:
        """Hebbian outstar update Δw_ij = η·x_j·y_i against the current activation.

        Returns:
            Frobenius norm of the weight change
        """
        rate = validate_learning_rate(learning_rate)
        x = self._pattern(input, "learning input")
        y = self._activation
        with self._pool.borrow() as scratch:
            torch.add(self._weights.data, rate * torch.outer(y, x), out=scratch.data)
            scratch.clamp_()
            change = self._weights.distance(scratch)
            self._weights.copy_from(scratch)
        return change

    def enable_learning(self, rule: LearningRule) -> None:
        if rule is None:
            raise ConfigurationError(f"{self.layer_id}: learning rule cannot be None")
        self._rule = rule
        self.learning_statistics = LearningStatistics()

    def disable_learning(self) -> None:
        self._rule = None

    @property
    def learning_enabled(self) -> bool:
        return self._rule is not None

    @property
    def learning_rule(self) -> Optional[LearningRule]:
        return self._rule

    def learn(self, context: LearningContext, base_rate: float) -> float:
        """Apply the enabled rule to this layer's weights.

        Returns:
            Frobenius norm of the weight change (0.0 when learning is off
            or the rule declined to learn)
        """
        validate_learning_rate(base_rate, "base_rate")
        if self._rule is None:
            return 0.0

        pre = self._pattern(context.pre_activation, "pre-synaptic activity")
        post = self._pattern(context.post_activation, "post-synaptic activity")
        context = LearningContext(
            pre, post, context.resonance_state, context.attention_strength, context.timestamp,
        )

        with self._pool.borrow() as scratch:
            new_weights, _ = self._rule.update_with_context(
                self._weights.data, context, base_rate, out=scratch.data,
            )
            if not bool(torch.isfinite(new_weights).all()):
                raise ComponentError(self.layer_id, f"{self._rule.name} produced non-finite weights")
            if new_weights is self._weights.data:
                change = 0.0
            else:
                change = float(torch.linalg.norm(new_weights - self._weights.data))
                self._weights.data.copy_(new_weights)

        self.learning_statistics.record_learning_event(
            context.resonance_state, context.attention_strength, change,
        )
        logger.debug("%s learned with %s: |Δw| = %.4g", self.layer_id, self._rule.name, change)
        return change

    def reset_weights(self) -> None:
        self._weights.data.zero_()
        self.learning_statistics.reset()
        if self._rule is not None:
            self._rule.reset_state()

    # =========================================================================
    # Oscillation tracking
    # =========================================================================

    def enable_oscillation_tracking(
        self,
        sampling_rate: float = 1000.0,
        history_size: int = 256,
    ) -> None:
        self._oscillation = OscillationAnalyzer(sampling_rate, history_size)
        self._oscillation_metrics = None
        self._oscillation_time = 0.0

    def disable_oscillation_tracking(self) -> None:
        self._oscillation = None
        self._oscillation_metrics = None
        self._oscillation_time = 0.0

    @property
    def oscillation_tracking_enabled(self) -> bool:
        return self._oscillation is not None

    @property
    def oscillation_metrics(self) -> Optional[OscillationMetrics]:
        """Latest metrics; None until the tracking window has filled."""
        return self._oscillation_metrics

    # =========================================================================
    # Reset
    # =========================================================================

    def reset(self) -> None:
        """Clear dynamic state. Weights and learning statistics are kept."""
        self._activation = self._floor_pattern(self.params)
        self.dynamics.reset()
        for dyn in self._dynamics_cache.values():
            dyn.reset()
        if self._oscillation is not None:
            self._oscillation.reset()
        self._oscillation_metrics = None
        self._oscillation_time = 0.0
        self._reset_state()

    def _reset_state(self) -> None:
        """Clear layer-specific state. Override in subclasses with state."""

    def extra_repr(self) -> str:
        return f"id={self.layer_id!r}, size={self.size}, kind={self.kind.value}"
