"""
Cortical circuit orchestration.

Usage:
======
    from laminart.circuit import CircuitConfig, CorticalCircuit

    circuit = CorticalCircuit(CircuitConfig(size=16))
    circuit.enable_resonance_detection(vigilance=0.7)
    result = circuit.process_detailed(pattern)
    result.consciousness_likelihood
"""

from laminart.circuit.batch import BatchCircuitRunner, process_patterns_vectorized
from laminart.circuit.circuit import CircuitResult, CorticalCircuit
from laminart.circuit.config import CircuitConfig

__all__ = [
    "BatchCircuitRunner",
    "process_patterns_vectorized",
    "CircuitResult",
    "CorticalCircuit",
    "CircuitConfig",
]
