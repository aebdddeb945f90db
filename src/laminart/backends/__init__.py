"""Acceleration backends, environment detection and cross-validation."""

from laminart.backends.base import (
    AccelerationBackend,
    BackendKind,
    CudaBackend,
    SequentialBackend,
    VectorizedBackend,
)
from laminart.backends.environment import Environment, create_backend, select_backend
from laminart.backends.kernels import KERNELS, SHUNTING_DERIVATIVE, SHUNTING_STEP
from laminart.backends.validation import CrossValidator, ToleranceConfig, ValidationReport

__all__ = [
    "AccelerationBackend",
    "BackendKind",
    "CudaBackend",
    "SequentialBackend",
    "VectorizedBackend",
    "Environment",
    "create_backend",
    "select_backend",
    "KERNELS",
    "SHUNTING_DERIVATIVE",
    "SHUNTING_STEP",
    "CrossValidator",
    "ToleranceConfig",
    "ValidationReport",
]
