"""
Layer 2/3: Grouping and Integration.

Integrates three streams:
- bottom-up drive from Layer 4
- top-down priming (from Layer 1 via apical dendrites, and from Layer 6)
- horizontal grouping from bipole cells computed on the previous activation

    combined = min(1, max(bu, direct)·w_bu + priming·w_td + grouping·w_h)

The combined input goes through one shunting competition step, a leaky
approach from the previous activation and, when enabled, complex-cell
pooling, which lets a unit inherit half of a neighbour's activity and holds
active units at a minimum level.

Top-down priming modulates but never creates activity:
    act ← clamp(act·(1 + w_td·priming))

Author: Laminart Project
"""

from __future__ import annotations

import logging
from typing import Optional

import torch

from laminart.backends.base import AccelerationBackend
from laminart.config.layer_params import Layer23Parameters, LayerKind
from laminart.errors import ConfigurationError
from laminart.layers.base import CorticalLayer
from laminart.layers.bipole import BipoleConfig, BipoleGrouping
from laminart.utils.patterns import PatternLike

logger = logging.getLogger(__name__)

COMPETITION_DT = 0.001
GROUPING_ACTIVITY = 0.1


class Layer23(CorticalLayer):
    """Grouping / integration layer (τ 30-150 ms)."""

    kind = LayerKind.L23

    def __init__(
        self,
        layer_id: str,
        size: int,
        params: Optional[Layer23Parameters] = None,
        backend: Optional[AccelerationBackend] = None,
        bipole: Optional[BipoleConfig] = None,
    ):
        super().__init__(layer_id, size, params, backend)
        if self.params.size not in (0, size):
            raise ConfigurationError(
                f"{layer_id}: parameters are for size {self.params.size}, layer has {size}"
            )
        self.bipole = BipoleGrouping(size, bipole or BipoleConfig())
        self._reset_state()

    def _reset_state(self) -> None:
        zeros = torch.zeros(self.size, dtype=self.dtype)
        self._bottom_up_input = zeros.clone()
        self._received_input: Optional[torch.Tensor] = None
        self._top_down_priming = zeros.clone()
        self._horizontal = zeros.clone()
        self._complex_cells = zeros.clone()

    # =========================================================================
    # Pathways
    # =========================================================================

    def receive_bottom_up_input(self, input: PatternLike) -> None:
        """Store Layer 4 drive combined into the next bottom-up step."""
        self._received_input = self._pattern(input, "bottom-up input")

    def _bottom_up(self, x: torch.Tensor, p: Layer23Parameters) -> torch.Tensor:
        previous = self._activation
        if self._received_input is None:
            bottom_up = x
        else:
            bottom_up = torch.maximum(self._received_input, x)
            self._received_input = None
        self._bottom_up_input = x.clone()

        if p.enable_horizontal_grouping:
            self._horizontal = self.bipole.process(previous)

        combined = torch.clamp(
            bottom_up * p.bottom_up_weight
            + self._top_down_priming * p.top_down_weight
            + self._horizontal * p.horizontal_weight,
            max=1.0,
        )

        competed = self._dynamics_for(p).evolve(combined, dt=COMPETITION_DT, excitatory=combined)

        alpha = min(1.0, 100.0 * min(p.time_constant, 50.0) / p.time_constant)
        out = (previous + alpha * (competed - previous)).clamp(p.floor, p.ceiling)

        if p.enable_complex_cells:
            out = self._complex_cell_pooling(out, p)
        return out

    def _complex_cell_pooling(self, x: torch.Tensor, p: Layer23Parameters) -> torch.Tensor:
        pool = x.clone()
        if self.size > 1:
            pool[1:] = torch.maximum(pool[1:], 0.5 * x[:-1])
            pool[:-1] = torch.maximum(pool[:-1], 0.5 * x[1:])
        threshold = p.complex_cell_threshold
        pool = torch.where(pool > 0.5 * threshold, pool.clamp(min=0.6 * threshold), pool)
        self._complex_cells = pool.clone()
        return pool

    def _top_down(self, e: torch.Tensor, p: Layer23Parameters) -> torch.Tensor:
        self._top_down_priming = e.clone()
        return (self._activation * (1.0 + p.top_down_weight * e)).clamp(p.floor, p.ceiling)

    def _lateral(self, h: torch.Tensor, p: Layer23Parameters) -> torch.Tensor:
        if not p.enable_horizontal_grouping:
            return self._activation.clone()
        return (self._activation + p.horizontal_weight * h).clamp(p.floor, p.ceiling)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def horizontal_grouping(self) -> torch.Tensor:
        return self._horizontal.clone()

    @property
    def complex_cell_activation(self) -> torch.Tensor:
        return self._complex_cells.clone()

    @property
    def top_down_priming(self) -> torch.Tensor:
        return self._top_down_priming.clone()

    def is_horizontal_grouping_active(self) -> bool:
        """True when mean grouping activity exceeds 0.1."""
        return float(self._horizontal.sum()) > GROUPING_ACTIVITY * self.size
