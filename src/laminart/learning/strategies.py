"""
Learning Rule Strategies: Pluggable Weight Updates for Laminar Layers.

Every rule maps (weights, pre, post, learning_rate) to new weights plus a
dict of metrics, so layers can swap rules without changing their learning
path:

    layer.enable_learning(HebbianRule(decay_rate=0.001))
    layer.enable_learning(ResonanceGatedRule(BCMRule.balanced(), threshold=0.7))

Weights are [n_post, n_pre]; pre and post are 1-D activity vectors.
Rules never modify their input weight tensor. Pass ``out=`` to write the
result into a preallocated tensor (see ``WeightMatrixPool``).

Supported Rules:
================
- HebbianRule: Δw = η·y·xᵀ - η·decay·w
- InstarOutstarRule: Δw = η·y·(x - w), instar / outstar / both
- BCMRule (``laminart.learning.bcm``): sliding-threshold BCM
- ResonanceGatedRule: wraps any rule, learns only during resonance

Author: Laminart Project
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

import torch
import torch.nn as nn

from laminart.config.validation import validate_learning_rate
from laminart.errors import ConfigurationError, DimensionMismatchError
from laminart.learning.context import LearningContext


# =============================================================================
# Rule Protocol
# =============================================================================


@runtime_checkable
class LearningRule(Protocol):
    """Interface every learning rule implements."""

    @property
    def name(self) -> str:
        ...

    def compute_update(
        self,
        weights: torch.Tensor,
        pre: torch.Tensor,
        post: torch.Tensor,
        learning_rate: float,
        out: Optional[torch.Tensor] = None,
        **kwargs: Any,
    ) -> Tuple[torch.Tensor, Dict[str, float]]:
        """Compute updated weights.

        Args:
            weights: Current weight matrix [n_post, n_pre]
            pre: Presynaptic activity [n_pre]
            post: Postsynaptic activity [n_post]
            learning_rate: Step size in [0, 1]
            out: Optional tensor to receive the result

        Returns:
            Tuple of:
                - Updated weight matrix (``weights`` itself when nothing changed)
                - Dict of learning metrics
        """
        ...

    def update_with_context(
        self,
        weights: torch.Tensor,
        context: LearningContext,
        base_rate: float,
        out: Optional[torch.Tensor] = None,
    ) -> Tuple[torch.Tensor, Dict[str, float]]:
        ...

    def recommended_learning_rate_range(self) -> Tuple[float, float]:
        ...

    def reset_state(self) -> None:
        ...


# =============================================================================
# Base Rule
# =============================================================================


class BaseLearningRule(nn.Module, ABC):
    """Common validation, bounds and metrics for weight-bounded rules."""

    def __init__(self, min_weight: float = 0.0, max_weight: float = 1.0):
        super().__init__()
        if min_weight < 0.0 or max_weight > 1.0 or min_weight >= max_weight:
            raise ConfigurationError(
                f"Invalid weight bounds: min={min_weight}, max={max_weight}"
            )
        self.min_weight = min_weight
        self.max_weight = max_weight

    @property
    def name(self) -> str:
        return self.__class__.__name__

    requires_normalization = False

    def _validate(
        self,
        weights: torch.Tensor,
        pre: torch.Tensor,
        post: torch.Tensor,
        learning_rate: float,
    ) -> float:
        rate = validate_learning_rate(learning_rate)
        if pre.dim() != 1 or post.dim() != 1:
            raise DimensionMismatchError("activity", "1-D", (tuple(pre.shape), tuple(post.shape)))
        if tuple(weights.shape) != (post.shape[0], pre.shape[0]):
            raise DimensionMismatchError(
                "weights", (post.shape[0], pre.shape[0]), tuple(weights.shape)
            )
        return rate

    def _finish(
        self,
        new_weights: torch.Tensor,
        out: Optional[torch.Tensor],
    ) -> torch.Tensor:
        new_weights = new_weights.clamp(self.min_weight, self.max_weight)
        if out is None:
            return new_weights
        out.copy_(new_weights)
        return out

    @staticmethod
    def _compute_metrics(
        old_weights: torch.Tensor,
        new_weights: torch.Tensor,
    ) -> Dict[str, float]:
        """Standard learning metrics."""
        actual_dw = new_weights - old_weights

        ltp_mask = actual_dw > 0
        ltd_mask = actual_dw < 0

        return {
            "ltp": actual_dw[ltp_mask].sum().item() if ltp_mask.any() else 0.0,
            "ltd": actual_dw[ltd_mask].sum().item() if ltd_mask.any() else 0.0,
            "net_change": actual_dw.sum().item(),
            "weight_change": torch.linalg.norm(actual_dw).item(),
            "weight_mean": new_weights.mean().item(),
        }

    @abstractmethod
    def compute_update(
        self,
        weights: torch.Tensor,
        pre: torch.Tensor,
        post: torch.Tensor,
        learning_rate: float,
        out: Optional[torch.Tensor] = None,
        **kwargs: Any,
    ) -> Tuple[torch.Tensor, Dict[str, float]]:
        """Apply learning rule."""

    def update_with_context(
        self,
        weights: torch.Tensor,
        context: LearningContext,
        base_rate: float,
        out: Optional[torch.Tensor] = None,
    ) -> Tuple[torch.Tensor, Dict[str, float]]:
        """Learn with the rate scaled by the context's attention modulation."""
        validate_learning_rate(base_rate, "base_rate")
        rate = base_rate * context.learning_rate_modulation
        return self.compute_update(
            weights, context.pre_activation, context.post_activation, rate, out=out,
        )

    def recommended_learning_rate_range(self) -> Tuple[float, float]:
        return (0.001, 0.1)

    def reset_state(self) -> None:
        """Reset rule state. Override in subclasses with state."""


# =============================================================================
# Rule Implementations
# =============================================================================


class HebbianRule(BaseLearningRule):
    """Hebbian learning with passive decay.

        w ← clamp(w + η·y·xᵀ - η·decay·w, w_min, w_max)

    Strengthens connections whose pre and post units are co-active.
    """

    def __init__(
        self,
        decay_rate: float = 0.0,
        min_weight: float = 0.0,
        max_weight: float = 1.0,
    ):
        super().__init__(min_weight, max_weight)
        if not (0.0 <= decay_rate <= 1.0):
            raise ConfigurationError(f"decay_rate must be in [0, 1], got {decay_rate}")
        self.decay_rate = decay_rate

    def compute_update(
        self,
        weights: torch.Tensor,
        pre: torch.Tensor,
        post: torch.Tensor,
        learning_rate: float,
        out: Optional[torch.Tensor] = None,
        **kwargs: Any,
    ) -> Tuple[torch.Tensor, Dict[str, float]]:
        rate = self._validate(weights, pre, post, learning_rate)

        dw = rate * torch.outer(post, pre)
        if self.decay_rate > 0:
            dw = dw - rate * self.decay_rate * weights

        old_weights = weights.clone()
        new_weights = self._finish(weights + dw, out)
        return new_weights, self._compute_metrics(old_weights, new_weights)

    @property
    def name(self) -> str:
        return "Hebbian"

    def recommended_learning_rate_range(self) -> Tuple[float, float]:
        return (0.001, 0.1)

    def extra_repr(self) -> str:
        return f"decay={self.decay_rate}, bounds=[{self.min_weight}, {self.max_weight}]"


class LearningMode(Enum):
    """Direction of instar / outstar learning."""

    INSTAR = "instar"
    OUTSTAR = "outstar"
    BOTH = "both"


class InstarOutstarRule(BaseLearningRule):
    """Grossberg instar / outstar learning.

    Instar (bottom-up): the post unit's incoming weights track the input:
        Δw_ji = η·y_j·(x_i - w_ji)

    Outstar (top-down): the same gated steepest descent, read as the
    category learning the pattern it should expect. BOTH applies each half
    with weight 0.5. Weights also decay as w·(1 - decay·η).
    """

    _RATE_RANGES = {
        LearningMode.INSTAR: (0.1, 0.9),
        LearningMode.OUTSTAR: (0.05, 0.5),
        LearningMode.BOTH: (0.1, 0.7),
    }

    def __init__(
        self,
        mode: LearningMode = LearningMode.INSTAR,
        decay_rate: float = 0.0,
        min_weight: float = 0.0,
        max_weight: float = 1.0,
    ):
        super().__init__(min_weight, max_weight)
        if not isinstance(mode, LearningMode):
            raise ConfigurationError(f"mode must be a LearningMode, got {mode!r}")
        if not (0.0 <= decay_rate <= 1.0):
            raise ConfigurationError(f"decay_rate must be in [0, 1], got {decay_rate}")
        self.mode = mode
        self.decay_rate = decay_rate

    @classmethod
    def instar(cls) -> "InstarOutstarRule":
        return cls(LearningMode.INSTAR, 0.0)

    @classmethod
    def outstar(cls) -> "InstarOutstarRule":
        return cls(LearningMode.OUTSTAR, 0.0001)

    @classmethod
    def bidirectional(cls) -> "InstarOutstarRule":
        return cls(LearningMode.BOTH, 0.0001)

    def compute_update(
        self,
        weights: torch.Tensor,
        pre: torch.Tensor,
        post: torch.Tensor,
        learning_rate: float,
        out: Optional[torch.Tensor] = None,
        **kwargs: Any,
    ) -> Tuple[torch.Tensor, Dict[str, float]]:
        rate = self._validate(weights, pre, post, learning_rate)

        delta = rate * post.unsqueeze(1) * (pre.unsqueeze(0) - weights)
        decayed = weights * (1.0 - self.decay_rate * rate)

        if self.mode is LearningMode.BOTH:
            # Instar half is bounded before the outstar half is added
            half = (decayed + 0.5 * delta).clamp(self.min_weight, self.max_weight)
            candidate = half + 0.5 * delta
        else:
            candidate = decayed + delta

        old_weights = weights.clone()
        new_weights = self._finish(candidate, out)
        return new_weights, self._compute_metrics(old_weights, new_weights)

    @property
    def name(self) -> str:
        return f"InstarOutstar[{self.mode.name}]"

    def recommended_learning_rate_range(self) -> Tuple[float, float]:
        return self._RATE_RANGES[self.mode]

    def extra_repr(self) -> str:
        return (
            f"mode={self.mode.name}, decay={self.decay_rate}, "
            f"bounds=[{self.min_weight}, {self.max_weight}]"
        )


class ResonanceGatedRule(nn.Module):
    """Learn only while the circuit resonates.

    - likelihood < threshold: no learning, the input weights are returned
    - no resonance state in the context: the wrapped rule runs unchanged
    - otherwise the wrapped rule runs with rate = base_rate × likelihood

    Args:
        base_rule: Rule to gate
        threshold: Minimum consciousness likelihood, in [0, 1]
    """

    def __init__(self, base_rule: LearningRule, threshold: float = 0.7):
        super().__init__()
        if base_rule is None:
            raise ConfigurationError("base_rule cannot be None")
        if not (0.0 <= threshold <= 1.0):
            raise ConfigurationError(f"threshold must be in [0, 1], got {threshold}")
        self.base_rule = base_rule
        self.threshold = threshold

    @property
    def name(self) -> str:
        return f"ResonanceGated[{self.base_rule.name}]"

    requires_normalization = False

    def compute_update(
        self,
        weights: torch.Tensor,
        pre: torch.Tensor,
        post: torch.Tensor,
        learning_rate: float,
        out: Optional[torch.Tensor] = None,
        **kwargs: Any,
    ) -> Tuple[torch.Tensor, Dict[str, float]]:
        """Ungated update: delegates to the wrapped rule."""
        return self.base_rule.compute_update(weights, pre, post, learning_rate, out=out, **kwargs)

    def update_with_context(
        self,
        weights: torch.Tensor,
        context: LearningContext,
        base_rate: float,
        out: Optional[torch.Tensor] = None,
    ) -> Tuple[torch.Tensor, Dict[str, float]]:
        validate_learning_rate(base_rate, "base_rate")
        if context.resonance_state is None:
            return self.base_rule.compute_update(
                weights, context.pre_activation, context.post_activation, base_rate, out=out,
            )

        likelihood = context.consciousness_likelihood
        if likelihood < self.threshold:
            return weights, {"gated": 1.0, "weight_change": 0.0}

        new_weights, metrics = self.base_rule.compute_update(
            weights, context.pre_activation, context.post_activation,
            base_rate * likelihood, out=out,
        )
        metrics["gated"] = 0.0
        return new_weights, metrics

    def recommended_learning_rate_range(self) -> Tuple[float, float]:
        low, high = self.base_rule.recommended_learning_rate_range()
        return (low, min(1.0, high * 1.5))

    def reset_state(self) -> None:
        self.base_rule.reset_state()

    def extra_repr(self) -> str:
        return f"threshold={self.threshold}"
