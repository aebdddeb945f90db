"""
Integration tests for circuit checkpoints.
"""

import pytest
import torch

from laminart.circuit import CircuitConfig, CorticalCircuit
from laminart.errors import CheckpointError
from laminart.io import FORMAT_VERSION, checkpoint_info, load_checkpoint, save_checkpoint
from laminart.learning import HebbianRule


@pytest.fixture
def trained(circuit, ramp):
    circuit.enable_resonance_detection()
    circuit.enable_learning(HebbianRule())
    circuit.set_attention_learning_threshold(0.0)
    for _ in range(4):
        circuit.process_and_learn(ramp)
    return circuit


@pytest.mark.integration
class TestCheckpoint:

    def test_round_trip(self, trained, size, cpu_environment, tmp_path):
        path = tmp_path / "nested" / "circuit.pt"
        summary = save_checkpoint(trained, path, metadata={"epoch": 3})

        assert path.exists()
        assert summary["num_layers"] == 5
        assert summary["total_synapses"] == 5 * size * size
        assert summary["file_size"] > 0

        restored = CorticalCircuit(CircuitConfig(size=size), environment=cpu_environment)
        metadata = load_checkpoint(restored, path)

        assert metadata["epoch"] == 3
        assert metadata["size"] == size
        for kind, layer in trained.layers.items():
            assert torch.equal(layer.weights.data, restored.layers[kind].weights.data)
        assert restored.learning_rates == trained.learning_rates

    def test_restored_circuit_starts_fresh(self, trained, ramp, size, cpu_environment, tmp_path):
        path = tmp_path / "circuit.pt"
        save_checkpoint(trained, path)
        restored = CorticalCircuit(CircuitConfig(size=size), environment=cpu_environment)
        load_checkpoint(restored, path)

        trained.reset()
        assert torch.equal(trained.process(ramp), restored.process(ramp))

    def test_info(self, trained, size, tmp_path):
        path = tmp_path / "circuit.pt"
        save_checkpoint(trained, path, metadata={"note": "baseline"})

        info = checkpoint_info(path)

        assert info["format_version"] == FORMAT_VERSION
        assert info["metadata"]["note"] == "baseline"
        assert info["config"]["size"] == size
        assert info["layers"] == ["L1", "L2/3", "L4", "L5", "L6"]
        assert info["total_synapses"] == 5 * size * size
        assert info["circuit_events"] == 4

    def test_missing_file(self, circuit, tmp_path):
        with pytest.raises(CheckpointError):
            load_checkpoint(circuit, tmp_path / "absent.pt")

    def test_size_mismatch(self, trained, cpu_environment, tmp_path):
        path = tmp_path / "circuit.pt"
        save_checkpoint(trained, path)
        small = CorticalCircuit(CircuitConfig(size=4), environment=cpu_environment)
        with pytest.raises(CheckpointError):
            load_checkpoint(small, path)

    def test_unsupported_version(self, circuit, tmp_path):
        path = tmp_path / "future.pt"
        torch.save({"format_version": FORMAT_VERSION + 1, "metadata": {}, "state": {}}, path)
        with pytest.raises(CheckpointError):
            load_checkpoint(circuit, path)

    def test_not_a_checkpoint(self, circuit, tmp_path):
        path = tmp_path / "weights.pt"
        torch.save({"weights": torch.zeros(2)}, path)
        with pytest.raises(CheckpointError):
            checkpoint_info(path)

    def test_corrupt_file(self, circuit, tmp_path):
        path = tmp_path / "corrupt.pt"
        path.write_bytes(b"not a checkpoint")
        with pytest.raises(CheckpointError):
            load_checkpoint(circuit, path)
