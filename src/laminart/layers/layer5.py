"""
Layer 5: Output Amplification and Burst Firing.

Layer 5 amplifies the integrated Layer 2/3 signal and sends it out of the
circuit. Strongly driven units switch into a burst mode with an extra gain.
The previous output decays into the next step, one shunting step smooths
the result, and divisive normalization keeps the total output bounded:

    x    = input·amplification_gain   (·burst_amplification above threshold)
    x    = x + previous·(1 − 0.01/τ)
    x    = shunting step from x, dt = τ/10000 s
    out  = clamp(x·output_gain / (1 + normalization·Σx))

Author: Laminart Project
"""

from __future__ import annotations

from typing import Optional

import torch

from laminart.backends.base import AccelerationBackend
from laminart.config.layer_params import Layer5Parameters, LayerKind
from laminart.layers.base import CorticalLayer

NORMALIZATION_ACTIVITY = 0.01
PERSISTENCE = 0.01
TOP_DOWN_GAIN = 0.05


class Layer5(CorticalLayer):
    """Output layer (τ 50-200 ms)."""

    kind = LayerKind.L5

    def __init__(
        self,
        layer_id: str,
        size: int,
        params: Optional[Layer5Parameters] = None,
        backend: Optional[AccelerationBackend] = None,
    ):
        super().__init__(layer_id, size, params, backend)
        self._reset_state()

    def _reset_state(self) -> None:
        self._previous_output = torch.zeros(self.size, dtype=self.dtype)
        self._bursting = torch.zeros(self.size, dtype=torch.bool)

    def _bottom_up(self, x: torch.Tensor, p: Layer5Parameters) -> torch.Tensor:
        x = x * p.amplification_gain
        self._bursting = x > p.burst_threshold
        x = torch.where(self._bursting, x * p.burst_amplification, x)

        blended = x + self._previous_output * (1.0 - p.decay_rate * PERSISTENCE)
        out = self._dynamics_for(p).evolve(
            blended.clamp(p.floor, p.ceiling),
            dt=p.time_constant / 10000.0,
            excitatory=blended,
        )

        out = out * p.output_gain
        total = float(out.sum())
        if total > NORMALIZATION_ACTIVITY and p.output_normalization > 0.0:
            out = out / (1.0 + p.output_normalization * total)
        out = out.clamp(p.floor, p.ceiling)

        self._previous_output = out.clone()
        return out

    def _top_down(self, e: torch.Tensor, p: Layer5Parameters) -> torch.Tensor:
        return (self._activation * (1.0 + TOP_DOWN_GAIN * e)).clamp(p.floor, p.ceiling)

    def category_active(self) -> torch.Tensor:
        """Boolean mask of units at or above the category threshold."""
        return self._activation >= self.params.category_threshold

    def is_bursting(self) -> bool:
        """True when any unit crossed the burst threshold on the last step."""
        return bool(self._bursting.any())

    @property
    def burst_mask(self) -> torch.Tensor:
        return self._bursting.clone()
