"""
Shunting Kernels.

Two implementations of the same forward-Euler shunting step:

- ``shunting_step_reference``: per-unit Python loop in double precision.
  This is the sequential reference every accelerated path is checked
  against.
- ``shunting_step_vectorized``: torch implementation, works on a single
  state ``(n,)`` or a batch ``(batch, n)`` and runs on any torch device.

Equation (per unit i, F = floor, B = ceiling):

    E_i = I_exc,i + s·x_i + Σ_j We_ij·x_j
    I_i = I_inh,i + Σ_j Wi_ij·x_j
    dx_i/dt = -A_i·x_i + (B - x_i)·E_i - (x_i - F)·I_i
    x_i <- clamp(x_i + dt·dx_i/dt, F, B)

Kernels are registered by id in ``KERNELS`` so backends can execute them
by name.

Author: Laminart Project
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

import torch

SHUNTING_STEP = "shunting_step"
SHUNTING_DERIVATIVE = "shunting_derivative"


# =============================================================================
# Vectorized (torch)
# =============================================================================


def shunting_derivative_vectorized(
    x: torch.Tensor,
    excitatory: torch.Tensor,
    inhibitory: torch.Tensor,
    decay: torch.Tensor,
    exc_kernel: torch.Tensor,
    inh_kernel: torch.Tensor,
    *,
    self_excitation: float,
    floor: float,
    ceiling: float,
) -> torch.Tensor:
    """dx/dt for a state of shape (n,) or (batch, n)."""
    # Kernels are symmetric, so x @ K equals K @ x per row
    exc_total = excitatory + self_excitation * x + torch.matmul(x, exc_kernel)
    inh_total = inhibitory + torch.matmul(x, inh_kernel)
    return -decay * x + (ceiling - x) * exc_total - (x - floor) * inh_total


def shunting_step_vectorized(
    x: torch.Tensor,
    excitatory: torch.Tensor,
    inhibitory: torch.Tensor,
    decay: torch.Tensor,
    exc_kernel: torch.Tensor,
    inh_kernel: torch.Tensor,
    *,
    self_excitation: float,
    floor: float,
    ceiling: float,
    dt: float,
) -> torch.Tensor:
    """One forward-Euler step, clamped to [floor, ceiling]."""
    dxdt = shunting_derivative_vectorized(
        x, excitatory, inhibitory, decay, exc_kernel, inh_kernel,
        self_excitation=self_excitation, floor=floor, ceiling=ceiling,
    )
    return torch.clamp(x + dt * dxdt, floor, ceiling)


# =============================================================================
# Sequential reference
# =============================================================================


def _derivative_row(
    x: List[float],
    excitatory: List[float],
    inhibitory: List[float],
    decay: List[float],
    exc_kernel: List[List[float]],
    inh_kernel: List[List[float]],
    self_excitation: float,
    floor: float,
    ceiling: float,
) -> List[float]:
    n = len(x)
    out = [0.0] * n
    for i in range(n):
        lateral_exc = 0.0
        lateral_inh = 0.0
        for j in range(n):
            if j == i:
                continue
            lateral_exc += exc_kernel[i][j] * x[j]
            lateral_inh += inh_kernel[i][j] * x[j]
        exc_total = excitatory[i] + self_excitation * x[i] + lateral_exc
        inh_total = inhibitory[i] + lateral_inh
        out[i] = (
            -decay[i] * x[i]
            + (ceiling - x[i]) * exc_total
            - (x[i] - floor) * inh_total
        )
    return out


def _rows(t: torch.Tensor) -> List[List[float]]:
    t = t.detach().to("cpu", torch.float64)
    if t.dim() == 1:
        return [t.tolist()]
    return t.tolist()


def _broadcast_rows(t: torch.Tensor, batch: int) -> List[List[float]]:
    rows = _rows(t)
    if len(rows) == 1 and batch > 1:
        return rows * batch
    return rows


def shunting_derivative_reference(
    x: torch.Tensor,
    excitatory: torch.Tensor,
    inhibitory: torch.Tensor,
    decay: torch.Tensor,
    exc_kernel: torch.Tensor,
    inh_kernel: torch.Tensor,
    *,
    self_excitation: float,
    floor: float,
    ceiling: float,
) -> torch.Tensor:
    """Per-unit loop version of ``shunting_derivative_vectorized``."""
    xs = _rows(x)
    exc = _broadcast_rows(excitatory, len(xs))
    inh = _broadcast_rows(inhibitory, len(xs))
    dec = decay.detach().to("cpu", torch.float64).tolist()
    we = exc_kernel.detach().to("cpu", torch.float64).tolist()
    wi = inh_kernel.detach().to("cpu", torch.float64).tolist()

    out = [
        _derivative_row(row, e, h, dec, we, wi, self_excitation, floor, ceiling)
        for row, e, h in zip(xs, exc, inh)
    ]
    result = torch.tensor(out, dtype=torch.float64)
    return result[0] if x.dim() == 1 else result


def shunting_step_reference(
    x: torch.Tensor,
    excitatory: torch.Tensor,
    inhibitory: torch.Tensor,
    decay: torch.Tensor,
    exc_kernel: torch.Tensor,
    inh_kernel: torch.Tensor,
    *,
    self_excitation: float,
    floor: float,
    ceiling: float,
    dt: float,
) -> torch.Tensor:
    """Per-unit loop version of ``shunting_step_vectorized``."""
    dxdt = shunting_derivative_reference(
        x, excitatory, inhibitory, decay, exc_kernel, inh_kernel,
        self_excitation=self_excitation, floor=floor, ceiling=ceiling,
    )
    xs = _rows(x)
    ds = _rows(dxdt)
    out = []
    for row, drow in zip(xs, ds):
        out.append([
            min(ceiling, max(floor, xi + dt * di)) for xi, di in zip(row, drow)
        ])
    result = torch.tensor(out, dtype=torch.float64)
    return result[0] if x.dim() == 1 else result


# =============================================================================
# Registry
# =============================================================================


@dataclass(frozen=True)
class KernelPair:
    """Reference and vectorized implementations of one kernel id."""

    reference: Callable[..., torch.Tensor]
    vectorized: Callable[..., torch.Tensor]


KERNELS: Dict[str, KernelPair] = {
    SHUNTING_STEP: KernelPair(
        reference=shunting_step_reference,
        vectorized=shunting_step_vectorized,
    ),
    SHUNTING_DERIVATIVE: KernelPair(
        reference=shunting_derivative_reference,
        vectorized=shunting_derivative_vectorized,
    ),
}

# Positional buffer order shared by every kernel
BUFFER_ORDER = ("x", "excitatory", "inhibitory", "decay", "exc_kernel", "inh_kernel")
