"""
Learning rules, weight storage and learning bookkeeping.

Usage:
======
    from laminart.learning import HebbianRule, ResonanceGatedRule

    rule = ResonanceGatedRule(HebbianRule(decay_rate=0.001), threshold=0.7)
    circuit.enable_learning(rule)
"""

from laminart.learning.bcm import BCMRule
from laminart.learning.context import LearningContext, LearningStatistics
from laminart.learning.strategies import (
    BaseLearningRule,
    HebbianRule,
    InstarOutstarRule,
    LearningMode,
    LearningRule,
    ResonanceGatedRule,
)
from laminart.learning.weights import WeightMatrix, WeightMatrixPool

__all__ = [
    "BCMRule",
    "LearningContext",
    "LearningStatistics",
    "BaseLearningRule",
    "HebbianRule",
    "InstarOutstarRule",
    "LearningMode",
    "LearningRule",
    "ResonanceGatedRule",
    "WeightMatrix",
    "WeightMatrixPool",
]
