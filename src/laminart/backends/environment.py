"""
Runtime Environment and Backend Selection.

Backend choice depends on an explicit ``Environment`` value rather than on
probing global state at every call: detect once, pass it around, and tests
can build whatever environment they need.

Selection priority: native (CUDA) → cross-platform (vectorized torch) →
sequential (reference loops). Native acceleration is skipped when running
under a test runner, in CI, or when ``LAMINART_DISABLE_ACCELERATION`` is set.

Author: Laminart Project
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional, Union

import torch

from laminart.backends.base import (
    AccelerationBackend,
    BackendKind,
    CudaBackend,
    SequentialBackend,
    VectorizedBackend,
)
from laminart.errors import BackendError

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(env: Mapping[str, str], key: str) -> bool:
    return env.get(key, "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Environment:
    """Facts about the host that drive backend selection."""

    cuda_available: bool = False
    running_tests: bool = False
    continuous_integration: bool = False
    acceleration_disabled: bool = False

    @classmethod
    def detect(cls, env: Optional[Mapping[str, str]] = None) -> "Environment":
        """Inspect the current process.

        Args:
            env: Environment variables to inspect (defaults to ``os.environ``)
        """
        env = os.environ if env is None else env
        return cls(
            cuda_available=torch.cuda.is_available(),
            running_tests="PYTEST_CURRENT_TEST" in env,
            continuous_integration=_flag(env, "CI"),
            acceleration_disabled=_flag(env, "LAMINART_DISABLE_ACCELERATION"),
        )

    @classmethod
    def reference_only(cls) -> "Environment":
        """Environment with every acceleration path turned off."""
        return cls(acceleration_disabled=True)

    @property
    def headless(self) -> bool:
        """True under a test runner or in CI."""
        return self.running_tests or self.continuous_integration

    @property
    def native_allowed(self) -> bool:
        return self.cuda_available and not self.headless and not self.acceleration_disabled

    def candidate_kinds(self) -> List[BackendKind]:
        """Backend kinds this environment may use, highest priority first."""
        kinds: List[BackendKind] = []
        if self.native_allowed:
            kinds.append(BackendKind.NATIVE)
        if not self.acceleration_disabled:
            kinds.append(BackendKind.CROSS_PLATFORM)
        kinds.append(BackendKind.SEQUENTIAL)
        return kinds


def create_backend(kind: Union[BackendKind, str]) -> AccelerationBackend:
    """Instantiate the backend for ``kind``."""
    kind = BackendKind(kind)
    if kind is BackendKind.NATIVE:
        return CudaBackend()
    if kind is BackendKind.CROSS_PLATFORM:
        return VectorizedBackend()
    return SequentialBackend()


def select_backend(
    environment: Optional[Environment] = None,
    preferred: Optional[Union[BackendKind, str]] = None,
) -> AccelerationBackend:
    """Pick the best backend allowed by ``environment``.

    Args:
        environment: Host facts; detected from the process when None
        preferred: Backend kind to try first. Falls back (with a warning)
            to the normal priority order when it is not allowed here.

    Returns:
        An available backend (sequential is always available)
    """
    environment = environment or Environment.detect()
    candidates = environment.candidate_kinds()

    if preferred is not None:
        try:
            preferred_kind = BackendKind(preferred)
        except ValueError:
            raise BackendError(
                f"Unknown backend kind '{preferred}'. "
                f"Choose from: {[k.value for k in BackendKind]}"
            ) from None
        if preferred_kind in candidates:
            candidates.remove(preferred_kind)
            candidates.insert(0, preferred_kind)
        else:
            logger.warning(
                "Requested backend '%s' not allowed in %s; falling back to '%s'",
                preferred_kind.value, environment, candidates[0].value,
            )

    for kind in candidates:
        backend = create_backend(kind)
        if backend.is_available():
            logger.debug("Selected backend %r", backend)
            return backend
        logger.debug("Backend %s unavailable, trying next", kind.value)

    # Unreachable: the sequential backend is always available
    raise BackendError("No acceleration backend available")
