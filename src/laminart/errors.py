"""
Custom exception classes for Laminart.

Exception Hierarchy:
====================
LaminartError (base) - Base exception for all Laminart-specific errors
├── ConfigurationError - Invalid configuration parameters
│   └── DimensionMismatchError - Pattern or matrix size does not match a component
├── ComponentError - Failure inside a named component
├── ResourceError - Weight-matrix pool exhausted or misused
├── BackendError - Acceleration backend unavailable or kernel unknown
├── ValidationError - Cross-validation failures
│   └── PrecisionToleranceError - Accelerated result outside tolerance
└── CheckpointError - Checkpoint save/load failures

Configuration problems are raised at construction or at the first call,
never silently clamped. Numerical edge cases (empty histories, all-zero
activity) are not errors; components return their "none" values instead.

Author: Laminart Project
"""

from __future__ import annotations

from typing import Optional, Tuple


class LaminartError(Exception):
    """Base exception for all Laminart-specific errors."""


class ConfigurationError(LaminartError, ValueError):
    """Invalid configuration parameters.

    Raised when configuration values are out of their valid range or are
    incompatible with each other. Also a ``ValueError`` so generic callers
    can keep catching the builtin.
    """


class DimensionMismatchError(ConfigurationError):
    """Pattern or weight matrix does not match the component's size."""

    def __init__(self, name: str, expected: object, actual: object):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{name}: expected dimension {expected}, got {actual}"
        )


class ComponentError(LaminartError):
    """Error raised by a named component."""

    def __init__(self, component_name: str, message: str):
        self.component_name = component_name
        super().__init__(f"[{component_name}] {message}")


class ResourceError(LaminartError):
    """Pooled resource exhausted, or released twice / to the wrong pool."""


class BackendError(LaminartError):
    """Acceleration backend unavailable or asked for an unknown kernel."""


class ValidationError(LaminartError):
    """Base class for cross-validation failures."""


class PrecisionToleranceError(ValidationError):
    """Accelerated backend disagrees with the reference path.

    Distinct from runtime faults: the computation ran, but its result is
    outside the configured tolerance.
    """

    def __init__(
        self,
        backend: str,
        max_error: float,
        tolerance: float,
        location: Optional[Tuple[int, ...]] = None,
    ):
        self.backend = backend
        self.max_error = max_error
        self.tolerance = tolerance
        self.location = location
        where = f" at index {location}" if location is not None else ""
        super().__init__(
            f"Backend '{backend}' deviates from reference by {max_error:.3e}"
            f"{where} (tolerance {tolerance:.1e})"
        )


class CheckpointError(LaminartError):
    """Checkpoint file missing, corrupt, or incompatible."""
