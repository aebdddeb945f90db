"""
LAMINART - Laminar cortical dynamics engine.

Shunting ODE populations organised into the laminar layers of a cortical
column (1, 2/3, 4, 5, 6), driven by a temporal-chunking front end and
instrumented with FFT-based oscillation and resonance analysis.

Quick Start (External Users):
=============================

    from laminart import CircuitConfig, CorticalCircuit, HebbianRule, ResonanceGatedRule

    circuit = CorticalCircuit(CircuitConfig(size=16))
    circuit.enable_resonance_detection(vigilance=0.7)
    circuit.enable_learning(ResonanceGatedRule(HebbianRule(), threshold=0.7))
    result = circuit.process_and_learn(pattern)

Internal Development:
====================

Internal code should use explicit imports for clarity:

    from laminart.dynamics.shunting import ShuntingDynamics, ShuntingConfig
    from laminart.layers.layer6 import Layer6
    from laminart.temporal.masking_field import MaskingField
"""

__version__ = "0.1.0"

# ============================================================================
# PUBLIC API
# ============================================================================

# Errors
from laminart.errors import (
    BackendError,
    CheckpointError,
    ComponentError,
    ConfigurationError,
    DimensionMismatchError,
    LaminartError,
    PrecisionToleranceError,
    ResourceError,
    ValidationError,
)

# Configuration
from laminart.config import BaseConfig, LayerKind, default_parameters
from laminart.config.layer_params import (
    Layer1Parameters,
    Layer23Parameters,
    Layer4Parameters,
    Layer5Parameters,
    Layer6Parameters,
)

# Backends
from laminart.backends import Environment, select_backend

# Dynamics
from laminart.dynamics import ShuntingConfig, ShuntingDynamics

# Learning
from laminart.learning import (
    BCMRule,
    HebbianRule,
    InstarOutstarRule,
    LearningContext,
    LearningStatistics,
    ResonanceGatedRule,
    WeightMatrix,
    WeightMatrixPool,
)

# Layers
from laminart.layers import Layer1, Layer4, Layer5, Layer6, Layer23

# Temporal processing
from laminart.temporal import TemporalProcessor, WorkingMemoryConfig, MaskingFieldConfig

# Oscillation and resonance
from laminart.oscillation import OscillationAnalyzer, ResonanceDetector, ResonanceState

# Circuit
from laminart.circuit import (
    BatchCircuitRunner,
    CircuitConfig,
    CircuitResult,
    CorticalCircuit,
    process_patterns_vectorized,
)

# Persistence
from laminart.io import checkpoint_info, load_checkpoint, save_checkpoint

__all__ = [
    "__version__",
    # Errors
    "BackendError",
    "CheckpointError",
    "ComponentError",
    "ConfigurationError",
    "DimensionMismatchError",
    "LaminartError",
    "PrecisionToleranceError",
    "ResourceError",
    "ValidationError",
    # Configuration
    "BaseConfig",
    "LayerKind",
    "default_parameters",
    "Layer1Parameters",
    "Layer23Parameters",
    "Layer4Parameters",
    "Layer5Parameters",
    "Layer6Parameters",
    # Backends
    "Environment",
    "select_backend",
    # Dynamics
    "ShuntingConfig",
    "ShuntingDynamics",
    # Learning
    "BCMRule",
    "HebbianRule",
    "InstarOutstarRule",
    "LearningContext",
    "LearningStatistics",
    "ResonanceGatedRule",
    "WeightMatrix",
    "WeightMatrixPool",
    # Layers
    "Layer1",
    "Layer4",
    "Layer5",
    "Layer6",
    "Layer23",
    # Temporal
    "TemporalProcessor",
    "WorkingMemoryConfig",
    "MaskingFieldConfig",
    # Oscillation
    "OscillationAnalyzer",
    "ResonanceDetector",
    "ResonanceState",
    # Circuit
    "BatchCircuitRunner",
    "CircuitConfig",
    "CircuitResult",
    "CorticalCircuit",
    "process_patterns_vectorized",
    # Persistence
    "checkpoint_info",
    "load_checkpoint",
    "save_checkpoint",
]
