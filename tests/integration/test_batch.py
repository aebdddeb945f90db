"""
Integration tests for batch execution: threaded circuits and the
vectorized Layer 4 stage.
"""

import pytest
import torch

from laminart.backends import VectorizedBackend
from laminart.circuit import (
    BatchCircuitRunner,
    CircuitConfig,
    CorticalCircuit,
    process_patterns_vectorized,
)
from laminart.config import Layer4Parameters
from laminart.errors import ConfigurationError, DimensionMismatchError
from laminart.layers import Layer4
from laminart.learning import HebbianRule


def make_circuits(n, size, environment, learn=False):
    circuits = []
    for _ in range(n):
        circuit = CorticalCircuit(CircuitConfig(size=size), environment=environment)
        if learn:
            circuit.enable_resonance_detection()
            circuit.enable_learning(HebbianRule())
            circuit.set_attention_learning_threshold(0.0)
        circuits.append(circuit)
    return circuits


@pytest.fixture
def sequences(size):
    return [[torch.rand(size, dtype=torch.float64) for _ in range(4)] for _ in range(3)]


@pytest.mark.integration
class TestBatchCircuitRunner:

    def test_matches_sequential_runs(self, size, sequences, cpu_environment):
        batched = BatchCircuitRunner(max_workers=3).run(
            make_circuits(3, size, cpu_environment), sequences,
        )

        for sequence, outputs in zip(sequences, batched):
            reference = make_circuits(1, size, cpu_environment)[0]
            expected = [reference.process(x) for x in sequence]
            assert len(outputs) == len(expected)
            for a, b in zip(outputs, expected):
                assert torch.equal(a, b)

    def test_learning_matches_sequential(self, size, sequences, cpu_environment):
        circuits = make_circuits(3, size, cpu_environment, learn=True)
        BatchCircuitRunner(max_workers=2).run_detailed(circuits, sequences, learn=True)

        for circuit, sequence in zip(circuits, sequences):
            reference = make_circuits(1, size, cpu_environment, learn=True)[0]
            for x in sequence:
                reference.process_and_learn(x)
            for kind, layer in circuit.layers.items():
                assert torch.equal(layer.weights.data, reference.layers[kind].weights.data)

    def test_results_in_input_order(self, size, cpu_environment):
        silent = [torch.zeros(size, dtype=torch.float64)]
        driven = [torch.full((size,), 0.8, dtype=torch.float64)]
        results = BatchCircuitRunner().run_detailed(
            make_circuits(2, size, cpu_environment), [silent, driven],
        )
        assert torch.all(results[0][0].layer4_output == 0.0)
        assert float(results[1][0].layer4_output.min()) > 0.0

    def test_empty_batch(self):
        assert BatchCircuitRunner().run([], []) == []

    def test_length_mismatch(self, size, cpu_environment):
        with pytest.raises(ConfigurationError):
            BatchCircuitRunner().run(make_circuits(2, size, cpu_environment), [[]])

    def test_duplicate_circuit(self, size, cpu_environment):
        circuit = make_circuits(1, size, cpu_environment)[0]
        with pytest.raises(ConfigurationError):
            BatchCircuitRunner().run([circuit, circuit], [[], []])

    @pytest.mark.parametrize("workers", [0, -1, 1.5])
    def test_invalid_workers(self, workers):
        with pytest.raises(ConfigurationError):
            BatchCircuitRunner(max_workers=workers)


@pytest.mark.integration
class TestVectorizedPatterns:

    @pytest.mark.parametrize("lateral_inhibition", [0.0, 0.2])
    def test_matches_per_pattern_layer4(self, lateral_inhibition, cpu_environment):
        params = Layer4Parameters(lateral_inhibition=lateral_inhibition)
        config = CircuitConfig(size=10, layer4=params)
        patterns = torch.rand(6, 10, dtype=torch.float64)

        batched = process_patterns_vectorized(config, patterns, environment=cpu_environment)

        assert batched.shape == (6, 10)
        for row in range(6):
            layer = Layer4("L4", 10, params, VectorizedBackend())
            expected = layer.process_bottom_up(patterns[row])
            assert torch.allclose(batched[row], expected, atol=1e-10, rtol=0.0)

    def test_matches_first_circuit_step(self, size, cpu_environment):
        config = CircuitConfig(size=size)
        patterns = [torch.rand(size, dtype=torch.float64) for _ in range(3)]

        batched = process_patterns_vectorized(config, patterns, environment=cpu_environment)

        for row, pattern in enumerate(patterns):
            circuit = CorticalCircuit(config, environment=cpu_environment)
            expected = circuit.process_detailed(pattern).layer4_output
            assert torch.allclose(batched[row], expected, atol=1e-10)

    def test_wrong_width(self, cpu_environment):
        with pytest.raises(DimensionMismatchError):
            process_patterns_vectorized(CircuitConfig(size=4), torch.zeros(2, 3), environment=cpu_environment)
