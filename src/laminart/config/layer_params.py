"""
Layer Parameter Records.

One immutable record per laminar layer, validated at construction against
biologically derived ranges. The five records form a closed tagged union
(``LayerParameters``); ``kind`` is the tag used for per-layer dispatch.

Time constants are in milliseconds:

    Layer   τ range (ms)   default   role
    -----   ------------   -------   -------------------------------------
    L1      200 - 1000     500       sustained top-down priming / attention
    L2/3    30 - 150       75        grouping, complex cells
    L4      10 - 50        25        fast thalamic driving input
    L5      50 - 200       100       output amplification, bursting
    L6      100 - 500      200       corticothalamic modulation (matching)

Author: Laminart Project
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, List, Tuple, Type, Union

from laminart.config.validation import ValidatedConfig
from laminart.errors import ConfigurationError


class LayerKind(Enum):
    """Closed set of laminar layer variants."""

    L1 = "L1"
    L23 = "L2/3"
    L4 = "L4"
    L5 = "L5"
    L6 = "L6"


_SHARED_RULES: Dict[str, Tuple[str, ...]] = {
    'time_constant': ('positive', 'finite'),
    'ceiling': ('finite',),
    'floor': ('finite',),
    'self_excitation': ('non_negative', 'finite'),
    'lateral_inhibition': ('non_negative', 'finite'),
    'max_firing_rate': ('positive', 'finite'),
}


@dataclass(frozen=True)
class _LayerParametersBase(ValidatedConfig):
    """Fields and checks shared by every layer record."""

    kind: ClassVar[LayerKind]
    TAU_RANGE: ClassVar[Tuple[float, float]] = (0.0, float("inf"))
    MAX_FIRING_RANGE: ClassVar[Tuple[float, float]] = (0.0, float("inf"))

    time_constant: float = 50.0
    """Membrane time constant in milliseconds."""

    ceiling: float = 1.0
    """Upper activation bound B."""

    floor: float = 0.0
    """Lower activation bound. Units at or below it are silent."""

    self_excitation: float = 0.0
    """Recurrent self-excitation of the layer's shunting population."""

    lateral_inhibition: float = 0.0
    """Strength of the off-surround inhibitory kernel."""

    max_firing_rate: float = 100.0
    """Maximum firing rate in Hz (bookkeeping; activations stay normalised)."""

    def __post_init__(self) -> None:
        errors: List[str] = []
        low, high = self.TAU_RANGE
        if not (low <= self.time_constant <= high):
            errors.append(
                f"time_constant={self.time_constant} outside {self.kind.value} "
                f"range [{low}, {high}] ms"
            )
        low, high = self.MAX_FIRING_RANGE
        if not (low < self.max_firing_rate <= high):
            errors.append(
                f"max_firing_rate={self.max_firing_rate} outside ({low}, {high}] Hz"
            )
        if self.floor > self.ceiling:
            errors.append(f"floor={self.floor} must be <= ceiling={self.ceiling}")
        errors.extend(self._extra_checks())
        self.validate_config(tuple(errors))

    def _extra_checks(self) -> List[str]:
        return []

    @property
    def decay_rate(self) -> float:
        """Passive decay per millisecond (1 / τ)."""
        return 1.0 / self.time_constant

    @property
    def decay_per_second(self) -> float:
        """Passive decay A for the shunting equation with dt in seconds."""
        return 1000.0 / self.time_constant

    @property
    def activation_range(self) -> float:
        return self.ceiling - self.floor


@dataclass(frozen=True)
class Layer1Parameters(_LayerParametersBase):
    """Layer 1: very slow apical priming and sustained attention."""

    kind: ClassVar[LayerKind] = LayerKind.L1
    TAU_RANGE: ClassVar[Tuple[float, float]] = (200.0, 1000.0)
    MAX_FIRING_RANGE: ClassVar[Tuple[float, float]] = (0.0, 50.0)
    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        **_SHARED_RULES,
        'priming_strength': ('probability',),
        'sustained_decay_rate': ('range(0.0, 0.01)',),
        'apical_integration': ('probability',),
        'attention_shift_rate': ('probability',),
    }

    time_constant: float = 500.0
    self_excitation: float = 0.05
    lateral_inhibition: float = 0.05
    max_firing_rate: float = 30.0

    priming_strength: float = 0.3
    """Scale of the priming effect handed to Layer 2/3."""

    sustained_decay_rate: float = 0.001
    """Decay of the persistent attention state per update."""

    apical_integration: float = 0.5
    """Weight of attention + priming in the apical dendrite signal."""

    attention_shift_rate: float = 0.3
    """How fast attention moves toward new input."""


@dataclass(frozen=True)
class Layer23Parameters(_LayerParametersBase):
    """Layer 2/3: bottom-up / top-down / horizontal integration."""

    kind: ClassVar[LayerKind] = LayerKind.L23
    TAU_RANGE: ClassVar[Tuple[float, float]] = (30.0, 150.0)
    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        **_SHARED_RULES,
        'size': ('non_negative',),
        'top_down_weight': ('non_negative', 'finite'),
        'bottom_up_weight': ('non_negative', 'finite'),
        'horizontal_weight': ('non_negative', 'finite'),
        'complex_cell_threshold': ('probability',),
    }

    time_constant: float = 75.0
    self_excitation: float = 0.4
    lateral_inhibition: float = 0.2

    size: int = 0
    """Expected layer size; 0 accepts any layer."""

    top_down_weight: float = 0.3
    bottom_up_weight: float = 1.0
    horizontal_weight: float = 0.5
    complex_cell_threshold: float = 0.4
    enable_horizontal_grouping: bool = True
    enable_complex_cells: bool = True


@dataclass(frozen=True)
class Layer4Parameters(_LayerParametersBase):
    """Layer 4: fast driving thalamic input."""

    kind: ClassVar[LayerKind] = LayerKind.L4
    TAU_RANGE: ClassVar[Tuple[float, float]] = (10.0, 50.0)
    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        **_SHARED_RULES,
        'driving_strength': ('probability',),
    }

    time_constant: float = 25.0
    self_excitation: float = 0.3
    lateral_inhibition: float = 0.0

    driving_strength: float = 0.8
    """Scale applied to the thalamic drive before saturation."""


@dataclass(frozen=True)
class Layer5Parameters(_LayerParametersBase):
    """Layer 5: output amplification and burst firing."""

    kind: ClassVar[LayerKind] = LayerKind.L5
    TAU_RANGE: ClassVar[Tuple[float, float]] = (50.0, 200.0)
    MAX_FIRING_RANGE: ClassVar[Tuple[float, float]] = (0.0, 200.0)
    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        **_SHARED_RULES,
        'amplification_gain': ('non_negative', 'finite'),
        'output_gain': ('non_negative', 'finite'),
        'output_normalization': ('non_negative', 'finite'),
        'category_threshold': ('probability',),
        'burst_threshold': ('probability',),
        'burst_amplification': ('range(1.0, 1e6)',),
    }

    time_constant: float = 100.0
    self_excitation: float = 0.2
    lateral_inhibition: float = 0.1
    max_firing_rate: float = 100.0

    amplification_gain: float = 1.5
    output_gain: float = 1.0
    output_normalization: float = 0.01
    category_threshold: float = 0.5
    burst_threshold: float = 0.8
    burst_amplification: float = 2.0


@dataclass(frozen=True)
class Layer6Parameters(_LayerParametersBase):
    """Layer 6: on-center / off-surround modulation (ART matching rule)."""

    kind: ClassVar[LayerKind] = LayerKind.L6
    TAU_RANGE: ClassVar[Tuple[float, float]] = (100.0, 500.0)
    MAX_FIRING_RANGE: ClassVar[Tuple[float, float]] = (0.0, 100.0)
    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        **_SHARED_RULES,
        'on_center_weight': ('non_negative', 'finite'),
        'off_surround_strength': ('non_negative', 'finite'),
        'modulation_threshold': ('probability',),
        'attentional_gain': ('non_negative', 'finite'),
    }

    time_constant: float = 200.0
    self_excitation: float = 0.1
    lateral_inhibition: float = 0.3
    max_firing_rate: float = 50.0

    on_center_weight: float = 1.0
    off_surround_strength: float = 0.2
    modulation_threshold: float = 0.1
    attentional_gain: float = 1.0


LayerParameters = Union[
    Layer1Parameters,
    Layer23Parameters,
    Layer4Parameters,
    Layer5Parameters,
    Layer6Parameters,
]

PARAMETER_TYPES: Dict[LayerKind, Type[_LayerParametersBase]] = {
    LayerKind.L1: Layer1Parameters,
    LayerKind.L23: Layer23Parameters,
    LayerKind.L4: Layer4Parameters,
    LayerKind.L5: Layer5Parameters,
    LayerKind.L6: Layer6Parameters,
}


def default_parameters(kind: LayerKind) -> LayerParameters:
    """Default parameter record for a layer kind."""
    return PARAMETER_TYPES[kind]()  # type: ignore[return-value]


def require_parameters(kind: LayerKind, params: object) -> LayerParameters:
    """Return ``params`` if it is the record for ``kind``, defaults for None.

    Raises:
        ConfigurationError: If a record of another layer kind is passed
    """
    if params is None:
        return default_parameters(kind)
    expected = PARAMETER_TYPES[kind]
    if not isinstance(params, expected):
        raise ConfigurationError(
            f"{kind.value} expects {expected.__name__}, got {type(params).__name__}"
        )
    return params  # type: ignore[return-value]
