"""
Base Configuration Classes.

Common fields shared by every configurable component: the torch device,
tensor dtype and an optional seed.

Author: Laminart Project
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import torch

from laminart.errors import ConfigurationError


_DTYPE_MAP = {
    "float32": torch.float32,
    "float64": torch.float64,
    "float16": torch.float16,
    "bfloat16": torch.bfloat16,
}


def resolve_dtype(dtype: str) -> torch.dtype:
    """Map a dtype name to the torch dtype."""
    if dtype not in _DTYPE_MAP:
        raise ConfigurationError(
            f"Unknown dtype '{dtype}'. Choose from: {list(_DTYPE_MAP.keys())}"
        )
    return _DTYPE_MAP[dtype]


@dataclass
class BaseConfig:
    """Base configuration with common fields for all components.

    Dynamics run in double precision by default: the reference path is
    defined in float64 and replay must be bit-identical.
    """

    device: str = "cpu"
    """Device to run on: 'cpu', 'cuda', 'cuda:0', etc."""

    dtype: str = "float64"
    """Data type for tensors: 'float64' (reference) or 'float32'."""

    seed: Optional[int] = None
    """Random seed for reproducibility. None = no seeding."""

    def get_torch_device(self) -> torch.device:
        """Get PyTorch device object."""
        return torch.device(self.device)

    def get_torch_dtype(self) -> torch.dtype:
        """Get PyTorch dtype object."""
        return resolve_dtype(self.dtype)
