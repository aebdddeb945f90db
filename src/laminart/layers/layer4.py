"""
Layer 4: Fast Driving Input.

Receives the thalamic drive (here: the temporal front end) and saturates
it into the layer's activation range. Inputs near zero pass almost
linearly, larger inputs are compressed by a tanh around the middle of the
range. When lateral inhibition is configured, the saturated output drives
one off-surround step of the layer population from its resting state
(dt = min(τ/1000, 0.01) s); that step is the output.

Zero input leaves every unit at the floor.

Author: Laminart Project
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import torch

from laminart.config.layer_params import Layer4Parameters, LayerKind
from laminart.errors import DimensionMismatchError
from laminart.layers.base import CorticalLayer
from laminart.utils.patterns import PatternLike, as_pattern

# Below this magnitude the drive is treated as near-linear
LINEAR_REGIME = 0.01
COMPETITION_THRESHOLD = 0.01
TOP_DOWN_GAIN = 0.1


def saturate(x: torch.Tensor, p: Layer4Parameters) -> torch.Tensor:
    """Elementwise driving nonlinearity; works on (n,) and (batch, n)."""
    x = x * p.driving_strength
    span = p.ceiling - p.floor
    middle = 0.5 * (p.ceiling + p.floor)

    linear = torch.where(
        x >= 0,
        p.floor + span * x / (1.0 + x.clamp(min=0.0)),
        torch.full_like(x, p.floor),
    )
    saturated = middle + torch.tanh(0.5 * x) * span / 2.0
    return torch.where(x.abs() < LINEAR_REGIME, linear, saturated).clamp(p.floor, p.ceiling)


def _competition_dt(p: Layer4Parameters) -> float:
    return min(p.time_constant / 1000.0, 0.01)


class Layer4(CorticalLayer):
    """Driving input layer (τ 10-50 ms)."""

    kind = LayerKind.L4

    def _bottom_up(self, x: torch.Tensor, p: Layer4Parameters) -> torch.Tensor:
        out = saturate(x, p)
        if p.lateral_inhibition > COMPETITION_THRESHOLD:
            dynamics = self._dynamics_for(p)
            rest = torch.full_like(out, dynamics.config.initial_activation)
            out = dynamics.evolve(rest, dt=_competition_dt(p), excitatory=out).clamp(p.floor, p.ceiling)
        return out

    def _top_down(self, e: torch.Tensor, p: Layer4Parameters) -> torch.Tensor:
        return (self._activation * (1.0 + TOP_DOWN_GAIN * e)).clamp(p.floor, p.ceiling)

    def respond_batch(
        self,
        patterns: Union[torch.Tensor, Sequence[PatternLike]],
        params: Optional[Layer4Parameters] = None,
    ) -> torch.Tensor:
        """Bottom-up response of this layer to independent patterns.

        Each row is what ``process_bottom_up`` would return for that
        pattern; the competition step runs once for the whole batch. The
        stored activation is not touched.

        Args:
            patterns: Shape (batch, size) tensor or a sequence of patterns

        Returns:
            Responses, shape (batch, size)
        """
        p = self._resolve(params)
        if isinstance(patterns, torch.Tensor):
            batch = patterns.to(dtype=self.dtype)
        else:
            batch = torch.stack([as_pattern(x, self.size, name="batch pattern") for x in patterns])
        if batch.dim() != 2 or batch.shape[1] != self.size:
            raise DimensionMismatchError(
                f"{self.layer_id} batch patterns", f"(batch, {self.size})", tuple(batch.shape),
            )

        out = saturate(batch, p)
        if p.lateral_inhibition > COMPETITION_THRESHOLD:
            dynamics = self._dynamics_for(p)
            rest = torch.full_like(out, dynamics.config.initial_activation)
            out = dynamics.integrate_batch(rest, out, dt=_competition_dt(p), steps=1)
            out = out.clamp(p.floor, p.ceiling)
        return out
