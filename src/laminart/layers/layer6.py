"""
Layer 6: Corticothalamic Modulation and the ART Matching Rule.

Layer 6 turns a top-down expectation into an on-center / off-surround
modulation of its bottom-up drive. Modulation can amplify matched input
but can never create activity on its own:

    bu_i ≤ floor                    → 0
    m_i  = max(0, w_on·td_i − s_off·Σ_{k=±1,±2} td_{i+k} + 0.5·state_i)
    m_i > threshold                 → min(ceiling, bu_i·(1 + m_i·gain))
    otherwise                       → min(ceiling, bu_i)

``state`` is a slow leaky integral of past expectations:

    state ← state·(1 − 0.02/τ) + td·0.02/τ

References:
- Grossberg (2013): Adaptive Resonance Theory: how a brain learns to
  consciously attend, learn, and recognize a changing world
- Raizada & Grossberg (2003): Towards a theory of the laminar architecture
  of cerebral cortex

Author: Laminart Project
"""

from __future__ import annotations

from typing import Optional

import torch
import torch.nn.functional as F

from laminart.backends.base import AccelerationBackend
from laminart.config.layer_params import Layer6Parameters, LayerKind
from laminart.layers.base import CorticalLayer
from laminart.utils.patterns import PatternLike

SURROUND_RADIUS = 2
STATE_CONTRIBUTION = 0.5
STATE_INTEGRATION = 0.02
TOP_DOWN_GAIN = 0.2
FEEDBACK_GAIN = 0.5


class Layer6(CorticalLayer):
    """Modulatory feedback layer (τ 100-500 ms)."""

    kind = LayerKind.L6

    def __init__(
        self,
        layer_id: str,
        size: int,
        params: Optional[Layer6Parameters] = None,
        backend: Optional[AccelerationBackend] = None,
    ):
        super().__init__(layer_id, size, params, backend)
        self._reset_state()

    def _reset_state(self) -> None:
        self._expectation = torch.zeros(self.size, dtype=self.dtype)
        self._modulation_state = torch.zeros(self.size, dtype=self.dtype)

    # =========================================================================
    # Matching rule
    # =========================================================================

    def _surround(self, td: torch.Tensor) -> torch.Tensor:
        """Σ of the expectation over the two neighbours on each side."""
        kernel = torch.ones(2 * SURROUND_RADIUS + 1, dtype=td.dtype)
        kernel[SURROUND_RADIUS] = 0.0
        padded = F.pad(td.view(1, 1, -1), (SURROUND_RADIUS, SURROUND_RADIUS))
        return F.conv1d(padded, kernel.view(1, 1, -1)).view(-1)

    def modulation(self, p: Layer6Parameters) -> torch.Tensor:
        """Rectified on-center / off-surround modulation for the stored expectation."""
        td = self._expectation
        raw = (
            p.on_center_weight * td
            - p.off_surround_strength * self._surround(td)
            + STATE_CONTRIBUTION * self._modulation_state
        )
        return raw.clamp(min=0.0)

    def _bottom_up(self, x: torch.Tensor, p: Layer6Parameters) -> torch.Tensor:
        mod = self.modulation(p)
        modulated = torch.where(mod > p.modulation_threshold, x * (1.0 + mod * p.attentional_gain), x)
        out = torch.where(x <= p.floor, torch.zeros_like(x), modulated.clamp(max=p.ceiling))

        rate = p.decay_rate * STATE_INTEGRATION
        self._modulation_state = self._modulation_state * (1.0 - rate) + self._expectation * rate
        return out

    def _top_down(self, e: torch.Tensor, p: Layer6Parameters) -> torch.Tensor:
        self._expectation = e.clone()
        return (self._activation * (1.0 + TOP_DOWN_GAIN * e)).clamp(p.floor, p.ceiling)

    def _lateral(self, h: torch.Tensor, p: Layer6Parameters) -> torch.Tensor:
        silent = self._activation <= p.floor
        out = super()._lateral(h, p)
        return torch.where(silent, torch.zeros_like(out), out)

    # =========================================================================
    # Accessors
    # =========================================================================

    def set_top_down_expectation(self, expectation: PatternLike) -> None:
        """Replace the expectation used by the next bottom-up step."""
        self._expectation = self._pattern(expectation, "top-down expectation")

    @property
    def top_down_expectation(self) -> torch.Tensor:
        return self._expectation.clone()

    @property
    def modulation_state(self) -> torch.Tensor:
        return self._modulation_state.clone()

    def generate_feedback_to_layer4(self, output: PatternLike) -> torch.Tensor:
        """Half-strength copy of ``output`` sent back to Layer 4."""
        return FEEDBACK_GAIN * self._pattern(output, "layer 6 output")
