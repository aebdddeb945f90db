"""
Laminar Cortical Circuit.

Wires the temporal front end and the five laminar layers into one
processing step per input pattern:

    temporal chunking ─► L4 ─► L2/3 ─┬─► L1 (sustained attention)
                                     └─► L6 (matching rule)
    L6 ─► L2/3 top-down ─► L4 top-down
    L1 ─► L2/3 top-down (apical priming) ─► L5 output

With resonance detection enabled, Layer 4 and Layer 1 activity are
recorded as the bottom-up and top-down oscillation streams, and Layer 2/3
features are matched against the Layer 6 expectation.

Gated learning applies the layers' rule only when the circuit is in
resonance (consciousness likelihood ≥ resonance threshold) and Layer 1
attention (RMS) is at least the attention threshold.

References:
- Grossberg (1999): How does the cerebral cortex work? Learning,
  attention, and grouping by the laminar circuits of visual cortex
- Grossberg (2017): Towards solving the hard problem of consciousness

Author: Laminart Project
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import torch
import torch.nn as nn

from laminart.backends.environment import Environment, select_backend
from laminart.circuit.config import CircuitConfig
from laminart.config.layer_params import LayerKind
from laminart.config.validation import ValidatorRegistry, validate_learning_rate
from laminart.errors import ConfigurationError, DimensionMismatchError
from laminart.layers.base import CorticalLayer
from laminart.layers.layer1 import Layer1
from laminart.layers.layer4 import Layer4
from laminart.layers.layer5 import Layer5
from laminart.layers.layer6 import Layer6
from laminart.layers.layer23 import Layer23
from laminart.learning.context import LearningContext, LearningStatistics
from laminart.learning.strategies import LearningRule
from laminart.oscillation.resonance import ResonanceConfig, ResonanceDetector, ResonanceState
from laminart.temporal.config import WorkingMemoryConfig
from laminart.temporal.processor import TemporalProcessor, TemporalResult
from laminart.utils.patterns import PatternLike, as_pattern, root_mean_square

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CircuitResult:
    """Every intermediate pattern of one processing step."""

    temporal_pattern: torch.Tensor
    layer4_output: torch.Tensor
    layer23_output: torch.Tensor
    layer1_output: torch.Tensor
    layer6_output: torch.Tensor
    layer23_top_down: torch.Tensor
    layer4_top_down: torch.Tensor
    layer23_with_l1: torch.Tensor
    layer5_output: torch.Tensor
    temporal_result: TemporalResult
    resonance_state: Optional[ResonanceState] = None

    @property
    def final_output(self) -> torch.Tensor:
        return self.layer5_output

    @property
    def has_temporal_chunks(self) -> bool:
        return self.temporal_result.has_chunks

    @property
    def chunk_count(self) -> int:
        return self.temporal_result.chunk_count

    @property
    def has_resonance(self) -> bool:
        return self.resonance_state is not None and self.resonance_state.art_resonance

    def is_likely_conscious(self, threshold: float = 0.7) -> bool:
        return self.resonance_state is not None and self.resonance_state.is_likely_conscious(threshold)

    @property
    def consciousness_likelihood(self) -> float:
        if self.resonance_state is None:
            return 0.0
        return self.resonance_state.consciousness_likelihood


class CorticalCircuit(nn.Module):
    """Five-layer laminar circuit with a temporal front end.

    Args:
        config: Circuit configuration (defaults if None)
        temporal_processor: Front end whose item dimension equals the
            circuit size; a default one is built when None
        environment: Host facts for backend selection (detected when None)

    Example:
        >>> circuit = CorticalCircuit(CircuitConfig(size=16))
        >>> circuit.enable_resonance_detection()
        >>> result = circuit.process_detailed(torch.rand(16))
        >>> result.final_output.shape
        torch.Size([16])
    """

    def __init__(
        self,
        config: Optional[CircuitConfig] = None,
        temporal_processor: Optional[TemporalProcessor] = None,
        environment: Optional[Environment] = None,
    ):
        super().__init__()
        self.config = config or CircuitConfig()
        cfg = self.config
        self.size = cfg.size
        if cfg.seed is not None:
            torch.manual_seed(cfg.seed)

        self.backend = select_backend(environment, cfg.backend)
        logger.debug("Circuit of size %d using %r", cfg.size, self.backend)

        self.layer1 = Layer1("L1", cfg.size, cfg.layer1, self.backend)
        self.layer23 = Layer23("L2/3", cfg.size, cfg.layer23, self.backend)
        self.layer4 = Layer4("L4", cfg.size, cfg.layer4, self.backend)
        self.layer5 = Layer5("L5", cfg.size, cfg.layer5, self.backend)
        self.layer6 = Layer6("L6", cfg.size, cfg.layer6, self.backend)

        self.temporal_processor = temporal_processor or TemporalProcessor(
            WorkingMemoryConfig(item_dimension=cfg.size), backend=self.backend,
        )
        if self.temporal_processor.item_dimension != cfg.size:
            raise DimensionMismatchError(
                "temporal processor item dimension", cfg.size, self.temporal_processor.item_dimension,
            )

        self.resonance_detector: Optional[ResonanceDetector] = None
        self._timestamp = 0.0

        self._learning_enabled = False
        self._learning_rates: Dict[LayerKind, float] = cfg.learning_rates()
        self._resonance_threshold = cfg.resonance_threshold
        self._attention_threshold = cfg.attention_threshold
        self._circuit_statistics = LearningStatistics()

    @property
    def layers(self) -> Dict[LayerKind, CorticalLayer]:
        return {
            LayerKind.L1: self.layer1,
            LayerKind.L23: self.layer23,
            LayerKind.L4: self.layer4,
            LayerKind.L5: self.layer5,
            LayerKind.L6: self.layer6,
        }

    @property
    def timestamp(self) -> float:
        return self._timestamp

    # =========================================================================
    # Processing
    # =========================================================================

    def process(self, input: PatternLike) -> torch.Tensor:
        """Run one step and return the Layer 5 output."""
        return self.process_detailed(input).final_output

    def process_detailed(self, input: PatternLike) -> CircuitResult:
        x = as_pattern(input, self.size, name="circuit input")
        temporal = self.temporal_processor.process_item(x)
        chunked = temporal.chunked_pattern()

        l4 = self.layer4.process_bottom_up(chunked)
        l23 = self.layer23.process_bottom_up(l4)
        l1 = self.layer1.process_bottom_up(l23)
        l6 = self.layer6.process_bottom_up(l23)
        l23_top_down = self.layer23.process_top_down(l6)
        l4_top_down = self.layer4.process_top_down(l23_top_down)
        l23_with_l1 = self.layer23.process_top_down(l1)
        l5 = self.layer5.process_bottom_up(l23_with_l1)

        resonance: Optional[ResonanceState] = None
        if self.resonance_detector is not None:
            self.resonance_detector.record_bottom_up(l4)
            self.resonance_detector.record_top_down(l1)
            resonance = self.resonance_detector.detect_resonance(l23, l6, self._timestamp)
            self._timestamp += self.config.timestep

        return CircuitResult(
            temporal_pattern=chunked,
            layer4_output=l4,
            layer23_output=l23,
            layer1_output=l1,
            layer6_output=l6,
            layer23_top_down=l23_top_down,
            layer4_top_down=l4_top_down,
            layer23_with_l1=l23_with_l1,
            layer5_output=l5,
            temporal_result=temporal,
            resonance_state=resonance,
        )

    # =========================================================================
    # Resonance
    # =========================================================================

    def enable_resonance_detection(
        self,
        vigilance: float = 0.7,
        sampling_rate: float = 1000.0,
        history_size: int = 256,
    ) -> None:
        self.resonance_detector = ResonanceDetector(
            ResonanceConfig(vigilance=vigilance, sampling_rate=sampling_rate, history_size=history_size)
        )
        self._timestamp = 0.0

    def disable_resonance_detection(self) -> None:
        self.resonance_detector = None
        self._timestamp = 0.0

    @property
    def resonance_detection_enabled(self) -> bool:
        return self.resonance_detector is not None

    # =========================================================================
    # Learning
    # =========================================================================

    def enable_learning(
        self,
        rule: LearningRule,
        rates: Optional[Dict[LayerKind, float]] = None,
    ) -> None:
        """Attach ``rule`` to every layer.

        Args:
            rule: Learning rule shared by the layers
            rates: Optional per-layer base rates, each in (0, 1]
        """
        if rule is None:
            raise ConfigurationError("learning rule cannot be None")
        if rates is not None:
            open_unit = ValidatorRegistry.get_validator('open_unit')
            for kind, rate in rates.items():
                open_unit(rate, f"learning rate for {LayerKind(kind).value}")
            self._learning_rates.update({LayerKind(k): float(r) for k, r in rates.items()})
        for layer in self.layers.values():
            layer.enable_learning(rule)
        self._learning_enabled = True
        self._circuit_statistics = LearningStatistics()
        logger.debug("Learning enabled with %s", rule.name)

    def disable_learning(self) -> None:
        for layer in self.layers.values():
            layer.disable_learning()
        self._learning_enabled = False

    @property
    def learning_enabled(self) -> bool:
        return self._learning_enabled

    @property
    def learning_rates(self) -> Dict[LayerKind, float]:
        return dict(self._learning_rates)

    def set_resonance_learning_threshold(self, threshold: float) -> None:
        ValidatorRegistry.get_validator('probability')(threshold, "resonance threshold")
        self._resonance_threshold = float(threshold)

    def set_attention_learning_threshold(self, threshold: float) -> None:
        ValidatorRegistry.get_validator('probability')(threshold, "attention threshold")
        self._attention_threshold = float(threshold)

    @staticmethod
    def attention_strength(layer1_output: torch.Tensor) -> float:
        """Root mean square of the Layer 1 activity."""
        return root_mean_square(layer1_output)

    def should_learn(self, result: CircuitResult) -> bool:
        state = result.resonance_state
        if state is None:
            logger.debug("learning skipped: no resonance state")
            return False
        if state.consciousness_likelihood < self._resonance_threshold:
            logger.debug(
                "learning skipped: likelihood %.3f < %.3f",
                state.consciousness_likelihood, self._resonance_threshold,
            )
            return False
        attention = self.attention_strength(result.layer1_output)
        if attention < self._attention_threshold:
            logger.debug("learning skipped: attention %.3f < %.3f", attention, self._attention_threshold)
            return False
        return True

    def process_and_learn(self, input: PatternLike) -> CircuitResult:
        """Process ``input`` and, when the gates are open, learn from it."""
        result = self.process_detailed(input)
        if self._learning_enabled and self.should_learn(result):
            self._apply_learning(result)
        return result

    def _apply_learning(self, result: CircuitResult) -> None:
        attention = self.attention_strength(result.layer1_output)
        state = result.resonance_state
        pairings = (
            (self.layer4, result.temporal_pattern, result.layer4_output),
            (self.layer23, result.layer4_output, result.layer23_output),
            (self.layer6, result.layer23_output, result.layer6_output),
            (self.layer5, result.layer23_with_l1, result.layer5_output),
            (self.layer1, result.layer23_output, result.layer1_output),
        )
        total = 0.0
        for layer, pre, post in pairings:
            context = LearningContext(pre, post, state, attention, self._timestamp)
            total += layer.learn(context, self._learning_rates[layer.kind])
        self._circuit_statistics.record_learning_event(state, attention, total)

    def learn(self, input: PatternLike, learning_rate: float) -> CircuitResult:
        """Process ``input`` and apply the plain Hebbian outstar update to every layer."""
        rate = validate_learning_rate(learning_rate)
        result = self.process_detailed(input)
        self.layer4.update_weights(result.layer4_output, rate)
        self.layer23.update_weights(result.layer23_output, rate)
        self.layer1.update_weights(result.layer1_output, rate)
        self.layer6.update_weights(result.layer6_output, rate)
        self.layer5.update_weights(result.layer5_output, rate)
        return result

    @property
    def circuit_learning_statistics(self) -> Optional[LearningStatistics]:
        """Circuit-level learning events; None while learning is disabled."""
        return self._circuit_statistics if self._learning_enabled else None

    # =========================================================================
    # Reset
    # =========================================================================

    def reset(self) -> None:
        """Clear all dynamic state. Weights are kept."""
        for layer in self.layers.values():
            layer.reset()
        self.temporal_processor.reset()
        if self.resonance_detector is not None:
            self.resonance_detector.reset()
        self._timestamp = 0.0

    def reset_weights(self) -> None:
        for layer in self.layers.values():
            layer.reset_weights()
        self._circuit_statistics.reset()

    # =========================================================================
    # State
    # =========================================================================

    def get_full_state(self) -> Dict[str, Any]:
        """Weights, learning statistics and config, for persistence."""
        return {
            "config": self.config.to_dict(),
            "layers": {
                kind.value: {
                    "weights": layer.weights.data.clone(),
                    "learning_statistics": layer.learning_statistics.as_dict(),
                }
                for kind, layer in self.layers.items()
            },
            "circuit_statistics": self._circuit_statistics.as_dict(),
            "learning_rates": {kind.value: rate for kind, rate in self._learning_rates.items()},
            "timestamp": self._timestamp,
        }

    def load_full_state(self, state: Dict[str, Any]) -> None:
        """Restore what ``get_full_state`` produced. Dynamic state is not touched."""
        for kind, layer in self.layers.items():
            layer_state = state["layers"][kind.value]
            layer.set_weights(layer_state["weights"])
            layer.learning_statistics.load_dict(layer_state["learning_statistics"])
        self._circuit_statistics.load_dict(state["circuit_statistics"])
        self._learning_rates = {
            LayerKind(kind): float(rate) for kind, rate in state["learning_rates"].items()
        }
        self._timestamp = float(state.get("timestamp", 0.0))

    def extra_repr(self) -> str:
        return f"size={self.size}, backend={self.backend.name}, learning={self._learning_enabled}"
