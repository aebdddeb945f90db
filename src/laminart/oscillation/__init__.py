"""Oscillation analysis and resonance detection."""

from laminart.oscillation.analyzer import GAMMA_BAND, OscillationAnalyzer, OscillationMetrics
from laminart.oscillation.buffer import CircularBuffer
from laminart.oscillation.resonance import (
    ResonanceConfig,
    ResonanceDetector,
    ResonanceState,
    consciousness_likelihood,
    match_quality,
)

__all__ = [
    "GAMMA_BAND",
    "OscillationAnalyzer",
    "OscillationMetrics",
    "CircularBuffer",
    "ResonanceConfig",
    "ResonanceDetector",
    "ResonanceState",
    "consciousness_likelihood",
    "match_quality",
]
