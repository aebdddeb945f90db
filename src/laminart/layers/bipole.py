"""
Bipole Horizontal Grouping.

A bipole cell fires when it has strong direct input, or when BOTH of its
collinear flanks receive enough support. The two-sided condition lets
Layer 2/3 complete contours across gaps without spreading activity
outward past line ends.

For unit i, each flank is the Gaussian-weighted mean of the activity on
that side within ``max_range`` units, scaled by ``max_weight``:

    left_i  = w_max · Σ_{0<d≤R} g(d)·x_{i-d} / Σ_{0<d≤R} g(d)
    right_i = w_max · Σ_{0<d≤R} g(d)·x_{i+d} / Σ_{0<d≤R} g(d)
    g(d)    = exp(-d² / 2σ²)

Output:
    x_i ≥ strong threshold         → x_i
    weak ≤ x_i < strong            → x_i, raised toward min(left, right)
                                     when both flanks are supported
    x_i < weak, both flanks ≥ h    → min(left, right)     (completion)
    otherwise                      → 0

References:
- Grossberg & Mingolla (1985): Neural dynamics of perceptual grouping
- Raizada & Grossberg (2001): Context-sensitive binding by the laminar
  circuits of V1 and V2

Author: Laminart Project
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import ClassVar, Dict, Tuple

import torch

from laminart.config.validation import ValidatedConfig
from laminart.errors import ConfigurationError


@dataclass(frozen=True)
class BipoleConfig(ValidatedConfig):
    """Bipole grouping thresholds and connection profile."""

    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        'strong_direct_threshold': ('probability',),
        'weak_direct_threshold': ('probability',),
        'horizontal_threshold': ('probability',),
        'max_range': ('positive_integer',),
        'sigma': ('positive', 'finite'),
        'max_weight': ('probability',),
    }

    strong_direct_threshold: float = 0.7
    weak_direct_threshold: float = 0.3
    horizontal_threshold: float = 0.4
    max_range: int = 15
    sigma: float = 7.0
    max_weight: float = 0.8

    def __post_init__(self) -> None:
        errors = []
        if self.weak_direct_threshold > self.strong_direct_threshold:
            errors.append(
                f"weak_direct_threshold={self.weak_direct_threshold} must be <= "
                f"strong_direct_threshold={self.strong_direct_threshold}"
            )
        self.validate_config(tuple(errors))


class BipoleGrouping:
    """Two-sided horizontal grouping over a 1-D array of units."""

    def __init__(self, size: int, config: BipoleConfig = BipoleConfig()):
        if size < 1:
            raise ConfigurationError(f"bipole size must be >= 1, got {size}")
        self.size = size
        self.config = config
        self._left, self._right = self._flank_kernels(size, config)

    @staticmethod
    def _flank_kernels(size: int, cfg: BipoleConfig) -> Tuple[torch.Tensor, torch.Tensor]:
        """Row-normalised (size × size) kernels for the left and right flanks."""
        idx = torch.arange(size, dtype=torch.float64)
        # d[i, j] = i - j: positive when j lies left of i
        d = idx.unsqueeze(1) - idx.unsqueeze(0)
        g = torch.exp(-(d * d) / (2.0 * cfg.sigma * cfg.sigma))
        in_range = d.abs() <= cfg.max_range
        left = torch.where((d > 0) & in_range, g, torch.zeros_like(g))
        right = torch.where((d < 0) & in_range, g, torch.zeros_like(g))

        # Normalise by the full one-sided profile so edge units see less support
        profile = sum(
            math.exp(-(k * k) / (2.0 * cfg.sigma * cfg.sigma))
            for k in range(1, cfg.max_range + 1)
        )
        return left / profile, right / profile

    def flanks(self, activation: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """(left, right) flank support for every unit, each in [0, max_weight]."""
        x = activation.to(torch.float64).clamp(0.0, 1.0)
        w = self.config.max_weight
        return w * (self._left @ x), w * (self._right @ x)

    def process(self, activation: torch.Tensor) -> torch.Tensor:
        """Grouped activity for ``activation``; values in [0, 1]."""
        cfg = self.config
        x = activation.to(torch.float64).clamp(0.0, 1.0)
        left, right = self.flanks(x)
        completion = torch.minimum(left, right)
        supported = (left >= cfg.horizontal_threshold) & (right >= cfg.horizontal_threshold)

        strong = x >= cfg.strong_direct_threshold
        weak = (x >= cfg.weak_direct_threshold) & ~strong

        out = torch.zeros_like(x)
        out = torch.where(strong, x, out)
        out = torch.where(weak & supported, torch.maximum(x, 0.5 * (x + completion)), out)
        out = torch.where(weak & ~supported, x, out)
        out = torch.where(~strong & ~weak & supported, completion, out)
        return out.clamp(0.0, 1.0)
