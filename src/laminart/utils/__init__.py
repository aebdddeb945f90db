"""Shared helpers."""

from laminart.utils.core_utils import (
    clamp_weights,
    cosine_similarity_safe,
    gaussian_kernel,
    wrap_phase,
)
from laminart.utils.patterns import as_pattern, root_mean_square

__all__ = [
    "clamp_weights",
    "cosine_similarity_safe",
    "gaussian_kernel",
    "wrap_phase",
    "as_pattern",
    "root_mean_square",
]
