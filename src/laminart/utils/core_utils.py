"""
Core Utilities for Laminart.

Small tensor helpers shared across dynamics, learning and temporal code.

Author: Laminart Project
"""

from __future__ import annotations

import math

import torch


def clamp_weights(
    weights: torch.Tensor,
    w_min: float = 0.0,
    w_max: float = 1.0,
    inplace: bool = True,
) -> torch.Tensor:
    """Clamp weight tensor to valid range.

    Standard pattern for enforcing weight bounds after learning updates.
    Operates in-place by default.

    Example:
        >>> clamp_weights(matrix.data, rule.min_weight, rule.max_weight)
    """
    if inplace:
        return weights.clamp_(w_min, w_max)
    return weights.clamp(w_min, w_max)


def cosine_similarity_safe(
    a: torch.Tensor,
    b: torch.Tensor,
    eps: float = 1e-12,
) -> float:
    """Cosine similarity of two 1-D tensors; 0.0 when either is all zeros.

    Tensors of different lengths are compared over their common prefix.
    """
    n = min(a.shape[0], b.shape[0])
    if n == 0:
        return 0.0
    a = a[:n]
    b = b[:n]
    norm_a = float(a.norm())
    norm_b = float(b.norm())
    if norm_a < eps or norm_b < eps:
        return 0.0
    return float(torch.dot(a, b)) / (norm_a * norm_b)


def gaussian_kernel(
    size: int,
    strength: float,
    sigma: float,
    dtype: torch.dtype = torch.float64,
    device: torch.device = torch.device("cpu"),
) -> torch.Tensor:
    """Distance-dependent lateral kernel with zero diagonal.

    K[i, j] = strength · exp(-(i - j)² / (2σ²)) for i ≠ j.
    """
    idx = torch.arange(size, dtype=dtype, device=device)
    dist = idx.unsqueeze(0) - idx.unsqueeze(1)
    if sigma <= 0.0:
        kernel = torch.zeros(size, size, dtype=dtype, device=device)
    else:
        kernel = strength * torch.exp(-(dist * dist) / (2.0 * sigma * sigma))
    kernel.fill_diagonal_(0.0)
    return kernel


def wrap_phase(phase: float) -> float:
    """Wrap an angle to [-π, π]."""
    wrapped = math.atan2(math.sin(phase), math.cos(phase))
    return wrapped
