"""
Pattern helpers.

A pattern is a 1-D real tensor of fixed length: the unit of signal passed
between every component. Components clone on entry, so callers may keep
mutating their own tensors.

Author: Laminart Project
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np
import torch

from laminart.errors import DimensionMismatchError

PatternLike = Union[torch.Tensor, np.ndarray, Sequence[float]]


def as_pattern(
    values: PatternLike,
    size: Optional[int] = None,
    *,
    name: str = "pattern",
    dtype: torch.dtype = torch.float64,
    device: Union[str, torch.device] = "cpu",
) -> torch.Tensor:
    """Convert ``values`` to a detached 1-D tensor, checking its length.

    Args:
        values: Tensor, ndarray or sequence of floats
        size: Required length, or None to accept any
        name: Label used in error messages
        dtype: Target dtype
        device: Target device

    Returns:
        New 1-D tensor (never aliases ``values``)

    Raises:
        DimensionMismatchError: If the pattern is not 1-D or has the wrong length
    """
    if isinstance(values, torch.Tensor):
        tensor = values.detach().to(device=device, dtype=dtype).clone()
    else:
        tensor = torch.as_tensor(np.asarray(values, dtype=np.float64), device=device).to(dtype)

    if tensor.dim() != 1:
        raise DimensionMismatchError(name, "1-D", tuple(tensor.shape))
    if size is not None and tensor.shape[0] != size:
        raise DimensionMismatchError(name, size, tensor.shape[0])
    return tensor


def root_mean_square(pattern: torch.Tensor) -> float:
    """sqrt(Σx² / n); 0.0 for an empty pattern."""
    if pattern.numel() == 0:
        return 0.0
    return float(torch.sqrt(torch.mean(pattern * pattern)))
