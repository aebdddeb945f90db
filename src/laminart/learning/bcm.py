"""
BCM (Bienenstock-Cooper-Munro) Learning Rule.

The BCM rule provides a sliding threshold for synaptic modification that
adjusts to postsynaptic activity history. This prevents runaway
potentiation/depression and enables stable, competitive learning.

The BCM function:
    φ(y, θ) = y(y - θ)

    - y > θ: φ > 0 → LTP
    - 0 < y < θ: φ < 0 → LTD
    - y = 0: φ = 0 → no change

Threshold dynamics (per post-synaptic unit, one step per update):
    θ ← (1 - τ)·θ + τ·y²

Weight update:
    w ← clamp(w·(1 - decay·η) + η·φ(y, θ)·x, w_min, w_max)

Presets:
    competitive  τ = 0.8, decay = 1e-4   (fast threshold, sharp selectivity)
    balanced     τ = 0.5, decay = 5e-4
    homeostatic  τ = 0.1, decay = 1e-4   (slow threshold, stable rates)

References:
- Bienenstock, Cooper & Munro (1982): Theory for the development of neuron
  selectivity: orientation specificity in visual cortex
- Intrator & Cooper (1992): Objective function formulation of the BCM theory
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import torch

from laminart.errors import ConfigurationError
from laminart.learning.strategies import BaseLearningRule

THETA_INIT = 0.1


class BCMRule(BaseLearningRule):
    """BCM learning rule with per-unit sliding threshold.

    Args:
        threshold_decay_rate: τ in [0, 1], how fast θ tracks y²
        weight_decay_rate: Passive weight decay in [0, 1]
        min_weight: Lower weight bound (>= 0)
        max_weight: Upper weight bound (<= 1)

    Example:
        >>> bcm = BCMRule.balanced()
        >>> new_w, metrics = bcm.compute_update(w, pre, post, learning_rate=0.05)
        >>> bcm.theta  # thresholds after the update
    """

    def __init__(
        self,
        threshold_decay_rate: float = 0.5,
        weight_decay_rate: float = 0.0005,
        min_weight: float = 0.0,
        max_weight: float = 1.0,
    ):
        super().__init__(min_weight, max_weight)
        if not (0.0 <= threshold_decay_rate <= 1.0):
            raise ConfigurationError(
                f"threshold_decay_rate must be in [0, 1], got {threshold_decay_rate}"
            )
        if not (0.0 <= weight_decay_rate <= 1.0):
            raise ConfigurationError(
                f"weight_decay_rate must be in [0, 1], got {weight_decay_rate}"
            )
        self.threshold_decay_rate = threshold_decay_rate
        self.weight_decay_rate = weight_decay_rate

        # Sliding threshold (per post unit), initialized on first update
        self.theta: Optional[torch.Tensor] = None

    @classmethod
    def competitive(cls) -> "BCMRule":
        return cls(0.8, 0.0001)

    @classmethod
    def balanced(cls) -> "BCMRule":
        return cls(0.5, 0.0005)

    @classmethod
    def homeostatic(cls) -> "BCMRule":
        return cls(0.1, 0.0001)

    def compute_phi(self, post: torch.Tensor) -> torch.Tensor:
        """φ(y, θ) = y(y - θ) with the current thresholds."""
        if self.theta is None or self.theta.shape != post.shape:
            self._init_theta(post)
        return post * (post - self.theta)

    def _init_theta(self, post: torch.Tensor) -> None:
        self.theta = torch.full_like(post, THETA_INIT)

    def _update_theta(self, post: torch.Tensor) -> None:
        if self.theta is None or self.theta.shape != post.shape:
            self._init_theta(post)
        tau = self.threshold_decay_rate
        self.theta = (1.0 - tau) * self.theta + tau * post * post

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

        # Threshold moves first, then φ uses the new θ
        self._update_theta(post)
        phi = post * (post - self.theta)

        decayed = weights * (1.0 - self.weight_decay_rate * rate)
        candidate = decayed + rate * torch.outer(phi, pre)

        old_weights = weights.clone()
        new_weights = self._finish(candidate, out)
        metrics = self._compute_metrics(old_weights, new_weights)
        metrics["theta_mean"] = float(self.theta.mean()) if self.theta.numel() else 0.0
        return new_weights, metrics

    @property
    def name(self) -> str:
        return "BCM"

    def recommended_learning_rate_range(self) -> Tuple[float, float]:
        return (0.01, 0.5)

    def modification_thresholds(self) -> Optional[torch.Tensor]:
        """Copy of θ, or None before the first update."""
        return None if self.theta is None else self.theta.clone()

    def reset_state(self) -> None:
        """Return every threshold to its initial value."""
        if self.theta is not None:
            self.theta.fill_(THETA_INIT)

    def extra_repr(self) -> str:
        return (
            f"threshold_decay={self.threshold_decay_rate}, "
            f"weight_decay={self.weight_decay_rate}, "
            f"bounds=[{self.min_weight}, {self.max_weight}]"
        )
