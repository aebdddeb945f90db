"""
Habituative Transmitter Gates.

Each working-memory slot is gated by a transmitter z ∈ [0, 1] that is
depleted by its own signal S and slowly recovers toward 1:

    dz/dt = ε(1 − z) − z(λS + μS²)

The gated output of a slot is x·z. Repeatedly signalled slots habituate,
which lets the store reset itself once its gates are exhausted.

Reference:
- Grossberg (1968): Some physiological and biochemical consequences of
  psychological postulates

Author: Laminart Project
"""

from __future__ import annotations

import torch
import torch.nn as nn

from laminart.errors import ConfigurationError
from laminart.utils.patterns import PatternLike, as_pattern

BASELINE = 1.0


class TransmitterDynamics(nn.Module):
    """Per-slot habituative transmitter gates.

    Args:
        size: Number of gated slots
        recovery_rate: ε
        depletion_linear: λ
        depletion_quadratic: μ
    """

    def __init__(
        self,
        size: int,
        recovery_rate: float = 0.005,
        depletion_linear: float = 0.1,
        depletion_quadratic: float = 0.05,
    ):
        super().__init__()
        if size < 1:
            raise ConfigurationError(f"transmitter size must be >= 1, got {size}")
        self.size = size
        self.recovery_rate = recovery_rate
        self.depletion_linear = depletion_linear
        self.depletion_quadratic = depletion_quadratic

        self.register_buffer("levels", torch.full((size,), BASELINE, dtype=torch.float64))
        self.register_buffer("signals", torch.zeros(size, dtype=torch.float64))

    def set_signals(self, signals: PatternLike) -> None:
        self.signals.copy_(as_pattern(signals, self.size, name="transmitter signals"))

    def derivative(self) -> torch.Tensor:
        s = self.signals
        z = self.levels
        depletion = self.depletion_linear * s + self.depletion_quadratic * s * s
        return self.recovery_rate * (BASELINE - z) - z * depletion

    def update(self, dt: float) -> torch.Tensor:
        """One Euler step of length ``dt`` seconds; returns the new levels."""
        if not dt > 0.0:
            raise ConfigurationError(f"time step must be positive, got {dt}")
        self.levels.copy_((self.levels + dt * self.derivative()).clamp(0.0, BASELINE))
        return self.levels.clone()

    def gated_output(self, activations: PatternLike) -> torch.Tensor:
        """Activations multiplied by their gates."""
        x = as_pattern(activations, self.size, name="gated activations")
        return x * self.levels

    @property
    def average_level(self) -> float:
        return float(self.levels.mean())

    def reset(self) -> None:
        self.levels.fill_(BASELINE)
        self.signals.zero_()

    def extra_repr(self) -> str:
        return (
            f"size={self.size}, ε={self.recovery_rate}, "
            f"λ={self.depletion_linear}, μ={self.depletion_quadratic}"
        )
