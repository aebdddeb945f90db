"""
Acceleration Backends.

A backend executes a named kernel (see ``laminart.backends.kernels``) on
its own device and precision: buffers are uploaded, the kernel runs, and
the result is downloaded back to CPU float64 so every caller sees the
same precision whichever backend ran.

    Backend             kind             device   dtype     tolerance
    ------------------  ---------------  -------  --------  ---------
    CudaBackend         native           cuda     float32   1e-5
    VectorizedBackend   cross_platform   cpu      float64   1e-10
    SequentialBackend   sequential       cpu      float64   0 (reference)

Author: Laminart Project
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Protocol, runtime_checkable

import torch

from laminart.backends.kernels import BUFFER_ORDER, KERNELS, KernelPair
from laminart.errors import BackendError


class BackendKind(Enum):
    """Backend tiers, in selection priority order."""

    NATIVE = "native"
    CROSS_PLATFORM = "cross_platform"
    SEQUENTIAL = "sequential"


@runtime_checkable
class AccelerationBackend(Protocol):
    """Interface every backend implements."""

    name: str
    kind: BackendKind
    device: torch.device
    dtype: torch.dtype
    tolerance: float

    def is_available(self) -> bool:
        ...

    def execute(
        self,
        kernel: str,
        buffers: Dict[str, torch.Tensor],
        **scalars: Any,
    ) -> torch.Tensor:
        ...


def _lookup(kernel: str) -> KernelPair:
    try:
        return KERNELS[kernel]
    except KeyError:
        raise BackendError(
            f"Unknown kernel '{kernel}'. Available: {sorted(KERNELS)}"
        ) from None


def _ordered(buffers: Dict[str, torch.Tensor]) -> list:
    missing = [name for name in BUFFER_ORDER if name not in buffers]
    if missing:
        raise BackendError(f"Missing kernel buffers: {missing}")
    return [buffers[name] for name in BUFFER_ORDER]


class _TorchBackend:
    """Shared upload / run / download path for the torch backends."""

    name = "torch"
    kind = BackendKind.CROSS_PLATFORM
    tolerance = 1e-10

    def __init__(self, device: str, dtype: torch.dtype):
        self.device = torch.device(device)
        self.dtype = dtype

    def is_available(self) -> bool:
        return True

    def execute(
        self,
        kernel: str,
        buffers: Dict[str, torch.Tensor],
        **scalars: Any,
    ) -> torch.Tensor:
        if not self.is_available():
            raise BackendError(f"Backend '{self.name}' is not available")
        fn = _lookup(kernel).vectorized
        uploaded = [b.to(device=self.device, dtype=self.dtype) for b in _ordered(buffers)]
        with torch.no_grad():
            result = fn(*uploaded, **scalars)
        return result.to(device="cpu", dtype=torch.float64)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(device={self.device}, dtype={self.dtype})"


class CudaBackend(_TorchBackend):
    """Native GPU backend: torch on CUDA in single precision."""

    name = "cuda"
    kind = BackendKind.NATIVE
    tolerance = 1e-5

    def __init__(self, device: str = "cuda"):
        super().__init__(device, torch.float32)

    def is_available(self) -> bool:
        return torch.cuda.is_available()


class VectorizedBackend(_TorchBackend):
    """Cross-platform backend: vectorized torch on CPU in double precision."""

    name = "vectorized"
    kind = BackendKind.CROSS_PLATFORM
    tolerance = 1e-10

    def __init__(self, device: str = "cpu"):
        super().__init__(device, torch.float64)


class SequentialBackend:
    """Reference backend: per-unit Python loops in double precision."""

    name = "sequential"
    kind = BackendKind.SEQUENTIAL
    tolerance = 0.0

    def __init__(self) -> None:
        self.device = torch.device("cpu")
        self.dtype = torch.float64

    def is_available(self) -> bool:
        return True

    def execute(
        self,
        kernel: str,
        buffers: Dict[str, torch.Tensor],
        **scalars: Any,
    ) -> torch.Tensor:
        fn = _lookup(kernel).reference
        return fn(*_ordered(buffers), **scalars)

    def __repr__(self) -> str:
        return "SequentialBackend()"
