"""Configuration records and validation for Laminart."""

from laminart.config.base import BaseConfig, resolve_dtype
from laminart.config.layer_params import (
    Layer1Parameters,
    Layer23Parameters,
    Layer4Parameters,
    Layer5Parameters,
    Layer6Parameters,
    LayerKind,
    LayerParameters,
    PARAMETER_TYPES,
    default_parameters,
    require_parameters,
)
from laminart.config.validation import (
    ValidatedConfig,
    ValidatorRegistry,
    validate_learning_rate,
)

__all__ = [
    "BaseConfig",
    "resolve_dtype",
    "Layer1Parameters",
    "Layer23Parameters",
    "Layer4Parameters",
    "Layer5Parameters",
    "Layer6Parameters",
    "LayerKind",
    "LayerParameters",
    "PARAMETER_TYPES",
    "default_parameters",
    "require_parameters",
    "ValidatedConfig",
    "ValidatorRegistry",
    "validate_learning_rate",
]
