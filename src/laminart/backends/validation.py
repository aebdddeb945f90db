"""
Cross-Validation of Accelerated Backends.

Runs the same kernel on a candidate backend and on the sequential
reference and compares the results element-wise. Same-precision backends
must agree to 1e-10; backends that compute in single precision are held
to 1e-5.

Example:
    >>> validator = CrossValidator(VectorizedBackend())
    >>> report = validator.validate_integration(dynamics, steps=100)
    >>> report.check()  # raises PrecisionToleranceError on breach

Author: Laminart Project
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import torch

from laminart.backends.base import AccelerationBackend, SequentialBackend
from laminart.backends.kernels import SHUNTING_STEP
from laminart.errors import PrecisionToleranceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToleranceConfig:
    """Allowed deviation from the reference path."""

    same_precision: float = 1e-10
    cross_precision: float = 1e-5

    def for_backend(self, backend: AccelerationBackend) -> float:
        if backend.dtype == torch.float64:
            return self.same_precision
        return self.cross_precision


@dataclass
class ValidationReport:
    """Outcome of one cross-validation run."""

    backend: str
    max_error: float
    tolerance: float
    location: Optional[Tuple[int, ...]]
    steps: int = 1

    @property
    def passed(self) -> bool:
        return self.max_error <= self.tolerance

    def check(self) -> "ValidationReport":
        """Raise ``PrecisionToleranceError`` unless the run passed."""
        if not self.passed:
            raise PrecisionToleranceError(
                self.backend, self.max_error, self.tolerance, self.location,
            )
        return self


def _max_abs_error(
    reference: torch.Tensor,
    candidate: torch.Tensor,
) -> Tuple[float, Optional[Tuple[int, ...]]]:
    diff = (reference.to(torch.float64) - candidate.to(torch.float64)).abs()
    if diff.numel() == 0:
        return 0.0, None
    flat_index = int(torch.argmax(diff))
    location = tuple(int(i) for i in np.unravel_index(flat_index, tuple(diff.shape)))
    return float(diff.max()), location


class CrossValidator:
    """Compare a candidate backend against the sequential reference."""

    def __init__(
        self,
        candidate: AccelerationBackend,
        reference: Optional[AccelerationBackend] = None,
        tolerance: Optional[ToleranceConfig] = None,
    ):
        self.candidate = candidate
        self.reference = reference or SequentialBackend()
        self.tolerance = tolerance or ToleranceConfig()

    def validate_step(
        self,
        kernel: str,
        buffers: Dict[str, torch.Tensor],
        **scalars: Any,
    ) -> ValidationReport:
        """Execute one kernel call on both backends and compare."""
        expected = self.reference.execute(kernel, buffers, **scalars)
        actual = self.candidate.execute(kernel, buffers, **scalars)
        max_error, location = _max_abs_error(expected, actual)
        return ValidationReport(
            backend=self.candidate.name,
            max_error=max_error,
            tolerance=self.tolerance.for_backend(self.candidate),
            location=location,
        )

    def validate_integration(self, dynamics: Any, steps: int = 10) -> ValidationReport:
        """Integrate ``dynamics`` for ``steps`` on both backends from its current state.

        The dynamics object is left untouched; both runs start from a copy
        of its state and inputs.
        """
        buffers = dynamics.kernel_buffers()
        scalars = dynamics.kernel_scalars()

        expected = buffers["x"].clone()
        actual = buffers["x"].clone()
        worst = 0.0
        worst_location: Optional[Tuple[int, ...]] = None
        for _ in range(steps):
            expected = self.reference.execute(SHUNTING_STEP, {**buffers, "x": expected}, **scalars)
            actual = self.candidate.execute(SHUNTING_STEP, {**buffers, "x": actual}, **scalars)
            error, location = _max_abs_error(expected, actual)
            if error > worst:
                worst, worst_location = error, location

        report = ValidationReport(
            backend=self.candidate.name,
            max_error=worst,
            tolerance=self.tolerance.for_backend(self.candidate),
            location=worst_location,
            steps=steps,
        )
        logger.debug(
            "Cross-validation %s over %d steps: max error %.3e (tol %.1e)",
            report.backend, steps, report.max_error, report.tolerance,
        )
        return report
