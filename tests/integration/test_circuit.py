"""
Integration tests for the full laminar circuit.

Tests:
- Processing order and zero-input behaviour
- Bit-identical replay after reset
- Resonance-gated learning (resonance and attention gates)
- Legacy Hebbian learning, weight reset and state round trip
"""

import pytest
import torch

from laminart.circuit import CircuitConfig, CorticalCircuit
from laminart.config import LayerKind
from laminart.errors import ConfigurationError, DimensionMismatchError
from laminart.learning import HebbianRule, ResonanceGatedRule
from laminart.temporal import TemporalProcessor, WorkingMemoryConfig
from tests.helpers import assert_bounded


def total_weight(circuit):
    return sum(float(layer.weights.data.sum()) for layer in circuit.layers.values())


@pytest.mark.integration
class TestProcessing:

    def test_zero_input_gives_silent_circuit(self, circuit, size):
        result = circuit.process_detailed(torch.zeros(size))
        assert torch.all(result.temporal_pattern == 0.0)
        assert torch.all(result.layer4_output == 0.0)
        assert torch.all(result.layer6_output == 0.0)
        assert torch.all(result.final_output == 0.0)

    def test_outputs_bounded(self, circuit, ramp):
        for _ in range(5):
            result = circuit.process_detailed(ramp)
            for output in (
                result.layer4_output, result.layer23_output, result.layer1_output,
                result.layer6_output, result.layer23_with_l1, result.final_output,
            ):
                assert_bounded(output, 0.0, 1.0)

    def test_first_step_layer4_sees_input(self, circuit, ramp):
        result = circuit.process_detailed(ramp)
        assert torch.allclose(result.temporal_pattern, ramp, atol=1e-12)
        assert float(result.layer4_output.min()) > 0.0

    def test_layer6_silent_where_layer23_silent(self, circuit, size):
        pattern = torch.zeros(size, dtype=torch.float64)
        pattern[: size // 2] = 0.8
        for _ in range(3):
            result = circuit.process_detailed(pattern)
            silent = result.layer23_output <= 0.0
            assert torch.all(result.layer6_output[silent] == 0.0)

    def test_process_returns_layer5(self, circuit, ramp):
        output = circuit.process(ramp)
        circuit.reset()
        assert torch.equal(output, circuit.process_detailed(ramp).layer5_output)

    def test_wrong_size(self, circuit):
        with pytest.raises(DimensionMismatchError):
            circuit.process(torch.ones(3))

    def test_temporal_processor_width_must_match(self, cpu_environment):
        processor = TemporalProcessor(WorkingMemoryConfig(item_dimension=6))
        with pytest.raises(DimensionMismatchError):
            CorticalCircuit(CircuitConfig(size=4), temporal_processor=processor, environment=cpu_environment)

    def test_replay_after_reset_is_identical(self, circuit, size):
        sequence = [torch.rand(size, dtype=torch.float64) for _ in range(6)]
        first = [circuit.process(x) for x in sequence]
        circuit.reset()
        second = [circuit.process(x) for x in sequence]
        for a, b in zip(first, second):
            assert torch.equal(a, b)

    def test_seeded_config(self, cpu_environment):
        a = CorticalCircuit(CircuitConfig(size=4, seed=7), environment=cpu_environment)
        first = torch.rand(3)
        CorticalCircuit(CircuitConfig(size=4, seed=7), environment=cpu_environment)
        assert torch.equal(first, torch.rand(3))
        assert a.size == 4

    def test_explicit_backend(self, cpu_environment):
        circuit = CorticalCircuit(CircuitConfig(size=4, backend="sequential"), environment=cpu_environment)
        assert circuit.backend.name == "sequential"


@pytest.mark.integration
class TestResonance:

    def test_no_resonance_state_by_default(self, circuit, ramp):
        result = circuit.process_detailed(ramp)
        assert result.resonance_state is None
        assert not result.has_resonance
        assert result.consciousness_likelihood == 0.0
        assert not result.is_likely_conscious()

    def test_resonance_state_when_enabled(self, circuit, ramp):
        circuit.enable_resonance_detection(vigilance=0.7)
        result = circuit.process_detailed(ramp)
        state = result.resonance_state
        assert state is not None
        assert state.art_resonance
        assert state.match_quality == pytest.approx(1.0)
        assert result.is_likely_conscious(0.7)

    def test_timestamp_advances(self, circuit, ramp):
        circuit.enable_resonance_detection()
        for _ in range(3):
            circuit.process(ramp)
        assert circuit.timestamp == pytest.approx(3 * circuit.config.timestep)
        circuit.reset()
        assert circuit.timestamp == 0.0

    def test_disable(self, circuit, ramp):
        circuit.enable_resonance_detection()
        circuit.disable_resonance_detection()
        assert not circuit.resonance_detection_enabled
        assert circuit.process_detailed(ramp).resonance_state is None


@pytest.mark.integration
class TestGatedLearning:

    def test_learns_in_resonance(self, circuit, ramp):
        circuit.enable_resonance_detection()
        circuit.enable_learning(ResonanceGatedRule(HebbianRule(), threshold=0.7))
        circuit.set_attention_learning_threshold(0.0)

        result = circuit.process_and_learn(ramp)

        assert circuit.should_learn(result)
        assert total_weight(circuit) > 0.0
        assert torch.all(circuit.layer1.weights.data == 0.0)
        stats = circuit.circuit_learning_statistics
        assert stats.total_events == 1
        assert stats.total_weight_change > 0.0
        for layer in circuit.layers.values():
            assert layer.learning_statistics.total_events == 1

    def test_attention_gate(self, circuit, ramp):
        circuit.enable_resonance_detection()
        circuit.enable_learning(HebbianRule())
        circuit.set_attention_learning_threshold(1.0)

        circuit.process_and_learn(ramp)

        assert total_weight(circuit) == 0.0
        assert circuit.circuit_learning_statistics.total_events == 0

    def test_resonance_gate(self, circuit, ramp):
        circuit.enable_learning(HebbianRule())
        circuit.set_attention_learning_threshold(0.0)

        result = circuit.process_and_learn(ramp)

        assert not circuit.should_learn(result)
        assert total_weight(circuit) == 0.0

    def test_no_learning_when_disabled(self, circuit, ramp):
        circuit.enable_resonance_detection()
        circuit.set_attention_learning_threshold(0.0)
        circuit.process_and_learn(ramp)
        assert total_weight(circuit) == 0.0
        assert circuit.circuit_learning_statistics is None

    def test_attention_strength_is_rms(self):
        assert CorticalCircuit.attention_strength(torch.tensor([0.6, 0.8, 0.0, 0.0])) == pytest.approx(0.5)

    def test_rates(self, circuit):
        circuit.enable_learning(HebbianRule(), {LayerKind.L4: 0.05})
        assert circuit.learning_rates[LayerKind.L4] == 0.05
        assert circuit.learning_rates[LayerKind.L1] == 0.001
        with pytest.raises(ConfigurationError):
            circuit.enable_learning(HebbianRule(), {LayerKind.L4: 0.0})

    def test_thresholds_validated(self, circuit):
        with pytest.raises(ConfigurationError):
            circuit.set_resonance_learning_threshold(1.5)
        with pytest.raises(ConfigurationError):
            circuit.set_attention_learning_threshold(-0.1)

    def test_disable_learning(self, circuit):
        circuit.enable_learning(HebbianRule())
        circuit.disable_learning()
        assert not circuit.learning_enabled
        assert not any(layer.learning_enabled for layer in circuit.layers.values())


@pytest.mark.integration
class TestWeights:

    def test_hebbian_learn(self, circuit, ramp):
        circuit.learn(ramp, 0.1)
        assert float(circuit.layer4.weights.data.sum()) > 0.0
        assert torch.all(circuit.layer1.weights.data == 0.0)

    def test_reset_keeps_weights(self, circuit, ramp):
        circuit.learn(ramp, 0.1)
        before = total_weight(circuit)
        circuit.reset()
        assert total_weight(circuit) == before
        circuit.reset_weights()
        assert total_weight(circuit) == 0.0

    def test_full_state_round_trip(self, circuit, ramp, size, cpu_environment):
        circuit.enable_resonance_detection()
        circuit.enable_learning(HebbianRule())
        circuit.set_attention_learning_threshold(0.0)
        for _ in range(3):
            circuit.process_and_learn(ramp)

        state = circuit.get_full_state()
        other = CorticalCircuit(CircuitConfig(size=size), environment=cpu_environment)
        other.load_full_state(state)

        for kind, layer in circuit.layers.items():
            assert torch.equal(layer.weights.data, other.layers[kind].weights.data)
            assert layer.learning_statistics.as_dict() == other.layers[kind].learning_statistics.as_dict()
        assert other.get_full_state()["circuit_statistics"] == state["circuit_statistics"]
        assert other.timestamp == circuit.timestamp
