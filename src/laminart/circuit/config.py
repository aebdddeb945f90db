"""
Cortical Circuit Configuration.

One record for the whole circuit: size, the five layer parameter records,
per-layer base learning rates and the learning gates.

Learning rates follow the layers' time scales: Layer 4 learns fast, Layer 1
slowly.

    Layer   base rate   role
    -----   ---------   ------------------------------
    L1      0.001       attention / priming
    L2/3    0.01        grouping
    L4      0.1         bottom-up features
    L5      0.01        output
    L6      0.005       corticothalamic feedback

Author: Laminart Project
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from laminart.backends.base import BackendKind
from laminart.config.base import BaseConfig
from laminart.config.layer_params import (
    Layer1Parameters,
    Layer23Parameters,
    Layer4Parameters,
    Layer5Parameters,
    Layer6Parameters,
    LayerKind,
)
from laminart.config.validation import ValidatedConfig
from laminart.errors import ConfigurationError


def _to_serializable(obj: Any) -> Any:
    """Recursively convert dataclasses / enums to JSON-compatible values."""
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj):
        return {k: _to_serializable(v) for k, v in asdict(obj).items()}
    if isinstance(obj, dict):
        return {k: _to_serializable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_serializable(item) for item in obj]
    return obj


_LAYER_FIELDS = {
    'layer1': Layer1Parameters,
    'layer23': Layer23Parameters,
    'layer4': Layer4Parameters,
    'layer5': Layer5Parameters,
    'layer6': Layer6Parameters,
}


@dataclass
class CircuitConfig(BaseConfig, ValidatedConfig):
    """Configuration of a ``CorticalCircuit``."""

    _validation_rules: ClassVar[Dict[str, Tuple[str, ...]]] = {
        'size': ('positive_integer',),
        'learning_rate_l1': ('open_unit',),
        'learning_rate_l23': ('open_unit',),
        'learning_rate_l4': ('open_unit',),
        'learning_rate_l5': ('open_unit',),
        'learning_rate_l6': ('open_unit',),
        'resonance_threshold': ('probability',),
        'attention_threshold': ('probability',),
        'timestep': ('positive', 'finite'),
    }

    size: int = 16
    """Number of units in every layer."""

    layer1: Layer1Parameters = field(default_factory=Layer1Parameters)
    layer23: Layer23Parameters = field(default_factory=Layer23Parameters)
    layer4: Layer4Parameters = field(default_factory=Layer4Parameters)
    layer5: Layer5Parameters = field(default_factory=Layer5Parameters)
    layer6: Layer6Parameters = field(default_factory=Layer6Parameters)

    learning_rate_l1: float = 0.001
    learning_rate_l23: float = 0.01
    learning_rate_l4: float = 0.1
    learning_rate_l5: float = 0.01
    learning_rate_l6: float = 0.005

    resonance_threshold: float = 0.7
    """Minimum consciousness likelihood for gated learning."""

    attention_threshold: float = 0.3
    """Minimum Layer 1 attention (RMS) for gated learning."""

    timestep: float = 0.001
    """Resonance timestamp increment per processed pattern (seconds)."""

    backend: Optional[str] = None
    """Preferred backend kind ('native', 'cross_platform', 'sequential')."""

    def __post_init__(self) -> None:
        errors: List[str] = []
        for name, expected in _LAYER_FIELDS.items():
            value = getattr(self, name)
            if not isinstance(value, expected):
                errors.append(f"{name} must be {expected.__name__}, got {type(value).__name__}")
        if isinstance(self.layer23, Layer23Parameters) and self.layer23.size not in (0, self.size):
            errors.append(f"layer23.size={self.layer23.size} does not match size={self.size}")
        if self.backend is not None:
            valid = [k.value for k in BackendKind]
            if self.backend not in valid:
                errors.append(f"backend='{self.backend}' must be one of {valid}")
        self.validate_config(tuple(errors))

    def layer_parameters(self, kind: LayerKind) -> Any:
        return {
            LayerKind.L1: self.layer1,
            LayerKind.L23: self.layer23,
            LayerKind.L4: self.layer4,
            LayerKind.L5: self.layer5,
            LayerKind.L6: self.layer6,
        }[kind]

    def learning_rates(self) -> Dict[LayerKind, float]:
        return {
            LayerKind.L1: self.learning_rate_l1,
            LayerKind.L23: self.learning_rate_l23,
            LayerKind.L4: self.learning_rate_l4,
            LayerKind.L5: self.learning_rate_l5,
            LayerKind.L6: self.learning_rate_l6,
        }

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dictionary of every field."""
        return {f.name: _to_serializable(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CircuitConfig":
        data = dict(d)
        try:
            for name, record in _LAYER_FIELDS.items():
                if name in data:
                    data[name] = record(**data[name])
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid circuit configuration: {e}") from e
