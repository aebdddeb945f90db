"""
Primacy Gradient Controller.

Maintains the activity gradient over list positions that encodes item
order. Each new item drives its own position and inhibits earlier ones in
proportion to its activity and distance (retrospective inhibition), while
transmitter gates habituate the positions that were driven.

    initial_i = min(max, max·(1.2 if i = 0 else 1)·exp(−p·i) / (1 + ln(n)/10))
    a_j ← a_j·(1 − inhibition·a_new·exp(−(new − j)/3))     for j < new

Author: Laminart Project
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import torch

from laminart.backends.base import AccelerationBackend
from laminart.dynamics.shunting import ShuntingConfig, ShuntingDynamics
from laminart.temporal.config import WorkingMemoryConfig
from laminart.temporal.transmitter import TransmitterDynamics

TRANSMITTER_INTERVAL = 10
DEGRADED_GRADIENT = 0.1
FIRST_ITEM_BOOST = 1.2
INHIBITION_LENGTH = 3.0


@dataclass(frozen=True)
class GradientProfile:
    """Per-position activity, raw and gated by the transmitters."""

    effective_activations: torch.Tensor
    raw_activations: torch.Tensor
    transmitter_levels: torch.Tensor

    @property
    def peak_position(self) -> int:
        if self.effective_activations.numel() == 0:
            return 0
        return int(torch.argmax(self.effective_activations))

    @property
    def slope(self) -> float:
        """Mean drop in effective activity per position (positive for primacy)."""
        n = self.effective_activations.numel()
        if n < 2:
            return 0.0
        return float(self.effective_activations[0] - self.effective_activations[-1]) / (n - 1)


class PrimacyGradientController:
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
        self._activations = torch.zeros(cfg.capacity, dtype=torch.float64)
        self._cumulative = torch.zeros(cfg.capacity, dtype=torch.float64)
        self._length = 0

    def initialize_for_sequence(self, expected_length: int) -> None:
        """Lay down the initial gradient for a list of ``expected_length`` items."""
        cfg = self.config
        n = max(0, min(expected_length, cfg.capacity))
        self._length = n
        self._activations.zero_()
        self._cumulative.zero_()
        if n > 0:
            norm = 1.0 + math.log(n) / 10.0
            for i in range(n):
                boost = FIRST_ITEM_BOOST if i == 0 else 1.0
                value = cfg.max_activation * boost * math.exp(-cfg.primacy_decay_rate * i) / norm
                self._activations[i] = min(cfg.max_activation, value)
        self.transmitters.reset()

    def update_for_new_item(self, position: int, input_strength: float, duration: float) -> None:
        cfg = self.config
        if position < 0 or position >= cfg.capacity:
            return
        self._cumulative[position] += input_strength * duration

        drive = torch.zeros(cfg.capacity, dtype=torch.float64)
        drive[position] = input_strength
        self.dynamics.set_excitatory_input(drive)
        self.transmitters.set_signals(drive)

        dt = cfg.time_step
        for step in range(int(duration / dt + 1e-9)):
            self._activations = self.dynamics.update(dt)
            if step % TRANSMITTER_INTERVAL == 0:
                self.transmitters.update(dt * TRANSMITTER_INTERVAL)

        self._retrospective_inhibition(position)

    def _retrospective_inhibition(self, position: int) -> None:
        if position == 0:
            return
        newest = float(self._activations[position])
        distance = position - torch.arange(position, dtype=torch.float64)
        inhibition = self.config.lateral_inhibition * newest * torch.exp(-distance / INHIBITION_LENGTH)
        self._activations[:position] = (self._activations[:position] * (1.0 - inhibition)).clamp(min=0.0)

    def _effective(self) -> torch.Tensor:
        return self._activations[:self._length] * self.transmitters.levels[:self._length]

    def gradient_strength(self) -> float:
        """(first half − second half) / sum of the mean gated activities."""
        n = self._length
        if n < 2:
            return 0.0
        effective = self._effective()
        mid = n // 2
        first = float(effective[:mid].mean())
        second = float(effective[mid:].mean())
        return (first - second) / (first + second + 1e-10)

    def gradient_profile(self) -> GradientProfile:
        n = self._length
        return GradientProfile(
            effective_activations=self._effective(),
            raw_activations=self._activations[:n].clone(),
            transmitter_levels=self.transmitters.levels[:n].clone(),
        )

    def has_gradient_degraded(self) -> bool:
        return self.gradient_strength() < DEGRADED_GRADIENT

    def apply_recovery(self, duration: float) -> None:
        """Let the transmitters recover for ``duration`` seconds without signals."""
        self.transmitters.set_signals(torch.zeros(self.config.capacity, dtype=torch.float64))
        self.transmitters.update(duration)

    @property
    def position_activations(self) -> torch.Tensor:
        return self._activations.clone()

    @property
    def transmitter_levels(self) -> torch.Tensor:
        return self.transmitters.levels.clone()

    @property
    def cumulative_inputs(self) -> torch.Tensor:
        return self._cumulative.clone()

    def reset(self) -> None:
        self._activations.zero_()
        self._cumulative.zero_()
        self._length = 0
        self.dynamics.reset()
        self.transmitters.reset()
