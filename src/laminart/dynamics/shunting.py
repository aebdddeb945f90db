"""
Shunting On-Center Off-Surround Dynamics.

Grossberg's shunting equation for a population of n units with membrane
bounds [F, B]:

    dx_i/dt = -A_i·x_i + (B - x_i)·E_i - (x_i - F)·I_i

    E_i = I_exc,i + s·x_i + Σ_j We_ij·x_j      (on-center, self-excitation)
    I_i = I_inh,i + Σ_j Wi_ij·x_j              (off-surround)

The multiplicative (B - x) and (x - F) terms make the excitatory and
inhibitory drives vanish at the bounds, so activations can never leave
[F, B]. Lateral kernels are Gaussian in unit distance with zero diagonal:

    We_ij = excitatory_strength · exp(-d²/2σe²)
    Wi_ij = inhibitory_strength · exp(-d²/2σi²)

Integration is forward Euler with dt in seconds, clamped after each step.
Steps are executed through an acceleration backend (see
``laminart.backends``); the default is the vectorized float64 path.

References:
- Grossberg (1973): Contour enhancement, short-term memory, and constancies
  in reverberating neural networks
- Cohen & Grossberg (1983): Absolute stability of global pattern formation

Author: Laminart Project
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional, Tuple

import torch
import torch.nn as nn

from laminart.backends.base import AccelerationBackend, VectorizedBackend
from laminart.backends.kernels import SHUNTING_STEP
from laminart.config.base import BaseConfig
from laminart.config.layer_params import LayerParameters
from laminart.config.validation import ValidatedConfig
from laminart.errors import ConfigurationError, DimensionMismatchError
from laminart.utils.core_utils import gaussian_kernel
from laminart.utils.patterns import PatternLike, as_pattern


@dataclass
class ShuntingConfig(BaseConfig, ValidatedConfig):
    """Parameters of a shunting population.

    ``decay_rates`` overrides ``decay_rate`` with one passive decay per unit.
    """

    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        'size': ('positive_integer',),
        'decay_rate': ('non_negative', 'finite'),
        'ceiling': ('finite',),
        'floor': ('finite',),
        'self_excitation': ('non_negative', 'finite'),
        'excitatory_strength': ('non_negative', 'finite'),
        'inhibitory_strength': ('non_negative', 'finite'),
        'excitatory_range': ('positive', 'finite'),
        'inhibitory_range': ('positive', 'finite'),
        'initial_activation': ('finite',),
        'time_step': ('positive', 'finite'),
    }

    size: int = 1
    decay_rate: float = 0.1
    decay_rates: Optional[Tuple[float, ...]] = None
    ceiling: float = 1.0
    floor: float = 0.0
    self_excitation: float = 0.0
    excitatory_strength: float = 0.1
    inhibitory_strength: float = 0.0
    excitatory_range: float = 1.0
    inhibitory_range: float = 3.0
    initial_activation: float = 0.0
    time_step: float = 0.01

    def __post_init__(self) -> None:
        errors: List[str] = []
        if self.floor > self.ceiling:
            errors.append(f"floor={self.floor} must be <= ceiling={self.ceiling}")
        elif not (self.floor <= self.initial_activation <= self.ceiling):
            errors.append(
                f"initial_activation={self.initial_activation} outside "
                f"[{self.floor}, {self.ceiling}]"
            )
        if self.decay_rates is not None:
            self.decay_rates = tuple(float(r) for r in self.decay_rates)
            if len(self.decay_rates) != self.size:
                errors.append(
                    f"decay_rates has {len(self.decay_rates)} entries, expected {self.size}"
                )
            if any(r < 0 for r in self.decay_rates):
                errors.append("decay_rates must be non-negative")
        self.validate_config(tuple(errors))

    @classmethod
    def for_layer(
        cls,
        params: LayerParameters,
        size: int,
        **overrides: Any,
    ) -> "ShuntingConfig":
        """Shunting population matching a layer's parameter record.

        Passive decay is ``1000 / τ`` per second so ``dt`` stays in seconds.
        """
        fields: Dict[str, Any] = dict(
            size=size,
            decay_rate=params.decay_per_second,
            ceiling=params.ceiling,
            floor=params.floor,
            self_excitation=params.self_excitation,
            inhibitory_strength=params.lateral_inhibition,
            initial_activation=params.floor,
        )
        fields.update(overrides)
        return cls(**fields)


class ShuntingDynamics(nn.Module):
    """Stateful shunting population integrated with forward Euler.

    Args:
        config: Population parameters
        backend: Backend that executes the step kernel
            (default: ``VectorizedBackend``)

    Example:
        >>> dyn = ShuntingDynamics(ShuntingConfig(size=10, inhibitory_strength=0.2))
        >>> dyn.set_excitatory_input(torch.rand(10))
        >>> state = dyn.update(steps=50)
    """

    def __init__(
        self,
        config: ShuntingConfig,
        backend: Optional[AccelerationBackend] = None,
    ):
        super().__init__()
        self.config = config
        self.backend = backend or VectorizedBackend()
        self.size = config.size
        self._dtype = config.get_torch_dtype()
        self._device = config.get_torch_device()

        n = config.size
        if config.decay_rates is not None:
            decay = torch.tensor(config.decay_rates, dtype=self._dtype, device=self._device)
        else:
            decay = torch.full((n,), config.decay_rate, dtype=self._dtype, device=self._device)

        self.register_buffer("decay", decay)
        self.register_buffer(
            "exc_kernel",
            gaussian_kernel(n, config.excitatory_strength, config.excitatory_range,
                            dtype=self._dtype, device=self._device),
        )
        self.register_buffer(
            "inh_kernel",
            gaussian_kernel(n, config.inhibitory_strength, config.inhibitory_range,
                            dtype=self._dtype, device=self._device),
        )
        self.register_buffer("activation", self._initial_state())
        self.register_buffer("excitatory_input", self._zeros())
        self.register_buffer("inhibitory_input", self._zeros())
        # Energy before the most recent step, None until a step is taken
        self._previous_energy: Optional[float] = None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _zeros(self) -> torch.Tensor:
        return torch.zeros(self.size, dtype=self._dtype, device=self._device)

    def _initial_state(self) -> torch.Tensor:
        return torch.full(
            (self.size,), self.config.initial_activation,
            dtype=self._dtype, device=self._device,
        )

    def _pattern(self, values: PatternLike, name: str) -> torch.Tensor:
        return as_pattern(values, self.size, name=name, dtype=self._dtype, device=self._device)

    def _resolve_dt(self, dt: Optional[float]) -> float:
        dt = self.config.time_step if dt is None else float(dt)
        if not dt > 0.0:
            raise ConfigurationError(f"time step must be positive, got {dt}")
        return dt

    def kernel_buffers(
        self,
        state: Optional[torch.Tensor] = None,
        excitatory: Optional[torch.Tensor] = None,
        inhibitory: Optional[torch.Tensor] = None,
    ) -> Dict[str, torch.Tensor]:
        """Buffers for the step kernel (current state and inputs by default)."""
        return {
            "x": self.activation if state is None else state,
            "excitatory": self.excitatory_input if excitatory is None else excitatory,
            "inhibitory": self.inhibitory_input if inhibitory is None else inhibitory,
            "decay": self.decay,
            "exc_kernel": self.exc_kernel,
            "inh_kernel": self.inh_kernel,
        }

    def kernel_scalars(self, dt: Optional[float] = None) -> Dict[str, float]:
        return {
            "self_excitation": self.config.self_excitation,
            "floor": self.config.floor,
            "ceiling": self.config.ceiling,
            "dt": self._resolve_dt(dt),
        }

    def _step(self, buffers: Dict[str, torch.Tensor], dt: float) -> torch.Tensor:
        result = self.backend.execute(SHUNTING_STEP, buffers, **self.kernel_scalars(dt))
        return result.to(device=self._device, dtype=self._dtype)

    # =========================================================================
    # Inputs and state
    # =========================================================================

    def set_excitatory_input(self, values: PatternLike) -> None:
        self.excitatory_input.copy_(self._pattern(values, "excitatory input"))
        self._previous_energy = None

    def set_inhibitory_input(self, values: PatternLike) -> None:
        self.inhibitory_input.copy_(self._pattern(values, "inhibitory input"))
        self._previous_energy = None

    def clear_inputs(self) -> None:
        self.excitatory_input.zero_()
        self.inhibitory_input.zero_()
        self._previous_energy = None

    @property
    def state(self) -> torch.Tensor:
        """Copy of the current activation."""
        return self.activation.clone()

    def set_state(self, values: PatternLike) -> None:
        """Overwrite the activation, clamped to [floor, ceiling]."""
        pattern = self._pattern(values, "state")
        self.activation.copy_(pattern.clamp(self.config.floor, self.config.ceiling))
        self._previous_energy = None

    def reset(self) -> None:
        """Restore the initial activation and clear both inputs."""
        self.activation.copy_(self._initial_state())
        self.clear_inputs()

    # =========================================================================
    # Integration
    # =========================================================================

    def derivative(self, state: Optional[torch.Tensor] = None) -> torch.Tensor:
        """dx/dt at ``state`` (the current activation by default)."""
        x = self.activation if state is None else self._pattern(state, "state")
        cfg = self.config
        exc_total = self.excitatory_input + cfg.self_excitation * x + self.exc_kernel @ x
        inh_total = self.inhibitory_input + self.inh_kernel @ x
        return -self.decay * x + (cfg.ceiling - x) * exc_total - (x - cfg.floor) * inh_total

    def update(self, dt: Optional[float] = None, steps: int = 1) -> torch.Tensor:
        """Advance the population ``steps`` Euler steps of size ``dt``.

        Returns:
            Copy of the new activation
        """
        dt = self._resolve_dt(dt)
        if steps < 1:
            raise ConfigurationError(f"steps must be >= 1, got {steps}")
        for step in range(steps):
            if step == steps - 1:
                self._previous_energy = self.energy()
            self.activation.copy_(self._step(self.kernel_buffers(), dt))
        return self.activation.clone()

    def evolve(
        self,
        state: PatternLike,
        dt: Optional[float] = None,
        excitatory: Optional[PatternLike] = None,
    ) -> torch.Tensor:
        """One step from ``state`` without touching the stored activation.

        Args:
            state: Starting activation
            dt: Step size in seconds (config time step by default)
            excitatory: Excitatory input for this step (stored input by default)
        """
        x = self._pattern(state, "state")
        exc = None if excitatory is None else self._pattern(excitatory, "excitatory input")
        return self._step(self.kernel_buffers(state=x, excitatory=exc), self._resolve_dt(dt))

    def integrate_batch(
        self,
        states: torch.Tensor,
        excitatory: torch.Tensor,
        dt: Optional[float] = None,
        steps: int = 1,
        inhibitory: Optional[torch.Tensor] = None,
    ) -> torch.Tensor:
        """Integrate independent copies of this population side by side.

        Args:
            states: Initial activations, shape (batch, size)
            excitatory: Excitatory inputs, shape (batch, size)
            dt: Step size in seconds
            steps: Number of Euler steps
            inhibitory: Optional inhibitory inputs, shape (batch, size)

        Returns:
            Final activations, shape (batch, size). The stored state is unchanged.
        """
        dt = self._resolve_dt(dt)
        states = states.to(device=self._device, dtype=self._dtype)
        excitatory = excitatory.to(device=self._device, dtype=self._dtype)
        if states.dim() != 2 or states.shape[1] != self.size:
            raise DimensionMismatchError("batch states", f"(batch, {self.size})", tuple(states.shape))
        if excitatory.shape != states.shape:
            raise DimensionMismatchError("batch excitatory input", tuple(states.shape), tuple(excitatory.shape))
        if inhibitory is None:
            inhibitory = torch.zeros_like(states)
        else:
            inhibitory = inhibitory.to(device=self._device, dtype=self._dtype)
            if inhibitory.shape != states.shape:
                raise DimensionMismatchError("batch inhibitory input", tuple(states.shape), tuple(inhibitory.shape))

        x = states.clone()
        for _ in range(steps):
            x = self._step(self.kernel_buffers(state=x, excitatory=excitatory, inhibitory=inhibitory), dt)
        return x

    # =========================================================================
    # Analysis
    # =========================================================================

    def energy(self, state: Optional[PatternLike] = None) -> float:
        """Kinetic energy ½Σ(dx_i/dt)² of the flow at ``state``.

        Zero exactly at an equilibrium of the driven population, inputs
        included. Along a trajectory it is non-increasing whenever the
        symmetric part of the Jacobian is negative definite (passive decay
        and input shunting dominate the lateral coupling) and dt is small
        against the Jacobian norm (Krasovskii's construction).
        """
        flow = self.derivative(state)
        return float(0.5 * torch.sum(flow * flow))

    def has_converged(self, tolerance: float = 1e-6) -> bool:
        """True when the energy change over the last step and max |dx/dt| are below ``tolerance``.

        Before the first step, or after the inputs or state were replaced,
        only the flow is checked.
        """
        if self._previous_energy is not None:
            if abs(self.energy() - self._previous_energy) >= tolerance:
                return False
        return float(self.derivative().abs().max()) < tolerance

    def run_until_converged(
        self,
        max_steps: int = 10000,
        tolerance: float = 1e-6,
        dt: Optional[float] = None,
    ) -> int:
        """Step until converged or ``max_steps`` is reached.

        Returns:
            Number of steps taken
        """
        dt = self._resolve_dt(dt)
        for step in range(max_steps):
            if self.has_converged(tolerance):
                return step
            self.update(dt)
        return max_steps

    def extra_repr(self) -> str:
        cfg = self.config
        return (
            f"size={cfg.size}, bounds=[{cfg.floor}, {cfg.ceiling}], "
            f"backend={self.backend.name}"
        )
