"""
Unit tests for the temporal front end: transmitter gates, working memory,
primacy gradients, list chunks and the masking field.
"""

import math

import pytest
import torch
from hypothesis import given, settings, strategies as st

from laminart.errors import ConfigurationError, DimensionMismatchError
from laminart.temporal import (
    ChunkType,
    ItemNode,
    ListChunk,
    MaskingField,
    MaskingFieldConfig,
    PrimacyGradientController,
    TemporalProcessor,
    TransmitterDynamics,
    WorkingMemory,
    WorkingMemoryConfig,
)


def one_hot(index, dimension):
    x = torch.zeros(dimension, dtype=torch.float64)
    x[index] = 1.0
    return x


def node(position, value=1.0, dimension=3):
    return ItemNode(torch.full((dimension,), value), 1.0, position, 0.0)


@pytest.mark.unit
class TestTransmitter:

    def test_rests_at_baseline(self):
        gates = TransmitterDynamics(3)
        assert torch.all(gates.derivative() == 0.0)
        gates.update(0.1)
        assert gates.average_level == 1.0

    def test_signal_depletes(self):
        gates = TransmitterDynamics(2, recovery_rate=0.005, depletion_linear=0.1, depletion_quadratic=0.05)
        gates.set_signals([1.0, 0.0])
        levels = gates.update(0.1)
        assert float(levels[0]) == pytest.approx(1.0 - 0.1 * 0.15)
        assert float(levels[1]) == 1.0

    def test_recovery(self):
        gates = TransmitterDynamics(1)
        gates.set_signals([5.0])
        for _ in range(50):
            gates.update(0.1)
        depleted = gates.average_level
        gates.set_signals([0.0])
        gates.update(1.0)
        assert gates.average_level > depleted

    def test_gated_output(self):
        gates = TransmitterDynamics(2)
        gates.levels.copy_(torch.tensor([0.5, 1.0], dtype=torch.float64))
        assert gates.gated_output([0.8, 0.8]).tolist() == pytest.approx([0.4, 0.8])

    def test_invalid_step(self):
        with pytest.raises(ConfigurationError):
            TransmitterDynamics(2).update(0.0)


@pytest.mark.unit
class TestWorkingMemoryConfig:

    @pytest.mark.parametrize("capacity", [2, 16])
    def test_capacity_range(self, capacity):
        with pytest.raises(ConfigurationError):
            WorkingMemoryConfig(capacity=capacity)

    def test_presets(self):
        assert WorkingMemoryConfig.cowans_capacity().capacity == 4
        assert WorkingMemoryConfig.extended_capacity().capacity == 9
        cfg = WorkingMemoryConfig.paper_defaults(item_dimension=5)
        assert cfg.recency_gradient == pytest.approx(0.5 * cfg.primacy_gradient)
        assert cfg.total_depletion == pytest.approx(0.15)


@pytest.mark.unit
class TestWorkingMemory:

    def test_primacy_activation_decreases_to_floor(self):
        memory = WorkingMemory()
        values = [memory.primacy_activation(i) for i in range(15)]
        assert values[0] == pytest.approx(1.0)
        assert all(a >= b for a, b in zip(values, values[1:]))
        assert min(values) >= 2.0 * memory.config.retrieval_threshold

    def test_store_advances_position(self):
        memory = WorkingMemory(WorkingMemoryConfig(item_dimension=4))
        for i in range(3):
            assert memory.store_item(one_hot(i, 4), 0.05)
        assert memory.position == 3
        assert memory.utilization == pytest.approx(3 / 7)
        assert [item.position for item in memory.items] == [0, 1, 2]

    def test_overflow_resets(self):
        memory = WorkingMemory(WorkingMemoryConfig(capacity=3, item_dimension=2))
        for _ in range(4):
            memory.store_item([1.0, 0.0], 0.05)
        assert memory.position == 1

    def test_overflow_ignored(self):
        memory = WorkingMemory(WorkingMemoryConfig(capacity=3, item_dimension=2, overflow_reset=False))
        results = [memory.store_item([1.0, 0.0], 0.05) for _ in range(4)]
        assert results == [True, True, True, False]
        assert memory.position == 3

    def test_invalid_duration(self):
        with pytest.raises(ConfigurationError):
            WorkingMemory().store_item(torch.ones(10), 0.0)

    @pytest.mark.parametrize("length", [2, 9])
    def test_item_of_wrong_length_rejected(self, length):
        memory = WorkingMemory(WorkingMemoryConfig(item_dimension=4))
        memory.store_item(torch.ones(4), 0.05)
        with pytest.raises(DimensionMismatchError):
            memory.store_item(torch.ones(length), 0.05)
        assert memory.position == 1

    def test_rejected_item_does_not_trigger_overflow_reset(self):
        memory = WorkingMemory(WorkingMemoryConfig(capacity=3, item_dimension=2))
        for _ in range(3):
            memory.store_item([1.0, 0.0], 0.05)
        with pytest.raises(DimensionMismatchError):
            memory.store_item([1.0, 0.0, 0.0], 0.05)
        assert memory.position == 3

    def test_activations_bounded(self):
        memory = WorkingMemory(WorkingMemoryConfig(item_dimension=4))
        memory.store_sequence([torch.ones(4) * 2.0] * 5, 0.1)
        state = memory.state()
        assert torch.all(state.activations >= 0.0)
        assert torch.all(state.activations <= memory.config.max_activation)
        assert torch.all(state.transmitter_levels <= 1.0)

    def test_state_shapes(self):
        memory = WorkingMemory(WorkingMemoryConfig(item_dimension=4))
        memory.store_item([1.0, 0.0, 0.5, 0.0], 0.05)
        state = memory.state()
        assert state.items.shape == (7, 4)
        assert state.items[0].tolist() == [1.0, 0.0, 0.5, 0.0]
        assert torch.all(state.items[1:] == 0.0)
        assert state.sequence_length == 1

    def test_combined_pattern_is_weighted_mean(self):
        memory = WorkingMemory(WorkingMemoryConfig(item_dimension=2))
        memory.store_item([1.0, 0.0], 0.05)
        memory.store_item([0.0, 1.0], 0.05)
        combined = memory.state().combined_pattern()
        assert float(combined.sum()) == pytest.approx(1.0)
        assert torch.all(combined > 0.0)

    def test_combined_pattern_empty(self):
        memory = WorkingMemory(WorkingMemoryConfig(item_dimension=3))
        assert memory.state().combined_pattern().tolist() == [0.0, 0.0, 0.0]

    def test_single_item_has_no_gradient(self):
        memory = WorkingMemory(WorkingMemoryConfig(item_dimension=2))
        memory.store_item([1.0, 1.0], 0.05)
        assert memory.primacy_gradient_strength() == 0.0

    def test_temporal_pattern(self):
        memory = WorkingMemory(WorkingMemoryConfig(item_dimension=2))
        memory.store_sequence([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]], 0.05)
        pattern = memory.temporal_pattern()
        assert pattern.sequence_length == 3
        assert all(w >= 0.0 for w in pattern.weights)

    def test_reset(self):
        memory = WorkingMemory(WorkingMemoryConfig(item_dimension=2))
        memory.store_item([1.0, 0.0], 0.05)
        memory.reset()
        assert memory.position == 0
        assert memory.items == []
        assert not memory.should_reset()


@pytest.mark.unit
class TestPrimacyGradient:

    def test_initial_gradient(self):
        controller = PrimacyGradientController()
        controller.initialize_for_sequence(5)
        profile = controller.gradient_profile()
        values = profile.raw_activations.tolist()
        assert len(values) == 5
        assert all(a > b for a, b in zip(values, values[1:]))
        assert profile.peak_position == 0
        assert profile.slope > 0.0
        assert controller.gradient_strength() > 0.0
        assert not controller.has_gradient_degraded()

    def test_length_capped_by_capacity(self):
        controller = PrimacyGradientController(WorkingMemoryConfig(capacity=4))
        controller.initialize_for_sequence(10)
        assert controller.gradient_profile().raw_activations.numel() == 4

    def test_new_item_drives_its_position(self):
        controller = PrimacyGradientController()
        controller.initialize_for_sequence(3)
        controller.update_for_new_item(1, 1.0, 0.05)
        activations = controller.position_activations
        assert float(activations[1]) > 0.0
        assert float(activations[1]) == float(activations.max())
        assert controller.cumulative_inputs.tolist()[:3] == pytest.approx([0.0, 0.05, 0.0])

    def test_out_of_range_position_ignored(self):
        controller = PrimacyGradientController()
        controller.update_for_new_item(99, 1.0, 0.05)
        assert torch.all(controller.cumulative_inputs == 0.0)

    def test_recovery(self):
        controller = PrimacyGradientController()
        controller.initialize_for_sequence(3)
        controller.update_for_new_item(0, 1.0, 0.5)
        depleted = float(controller.transmitter_levels[0])
        controller.apply_recovery(10.0)
        assert float(controller.transmitter_levels[0]) > depleted


@pytest.mark.unit
class TestListChunk:

    def test_deduplicates_and_sorts(self):
        chunk = ListChunk([node(2), node(0), node(2)], 0.0, chunk_id=1)
        assert chunk.positions == [0, 2]
        assert chunk.size == 2
        assert chunk.chunk_type is ChunkType.SMALL

    @pytest.mark.parametrize("size,expected", [
        (3, ChunkType.SMALL), (4, ChunkType.MEDIUM), (6, ChunkType.LARGE), (10, ChunkType.SUPER),
    ])
    def test_chunk_type(self, size, expected):
        assert ChunkType.for_size(size) is expected

    def test_merge(self):
        a = ListChunk([node(0), node(1)], 0.0, chunk_id=1, strength=0.4)
        b = ListChunk([node(1), node(3)], 0.5, chunk_id=2, strength=0.9)
        assert a.overlaps(b)

        merged = ListChunk.merge_all([a, b], 1.0)

        assert merged.chunk_id == 1
        assert merged.positions == [0, 1, 3]
        assert merged.strength == 0.9
        assert merged.formation_time == 1.0

    def test_disjoint(self):
        a = ListChunk([node(0)], 0.0, chunk_id=1)
        b = ListChunk([node(1)], 0.0, chunk_id=2)
        assert not a.overlaps(b)
        assert a.contains(0) and not a.contains(1)

    def test_strength_decays(self):
        chunk = ListChunk([node(0)], 1.0, chunk_id=0, strength=2.0)
        assert chunk.strength_at(1.0, 0.5) == pytest.approx(2.0)
        assert chunk.strength_at(3.0, 0.5) == pytest.approx(2.0 * math.exp(-1.0))

    def test_averaged_pattern(self):
        chunk = ListChunk([node(0, 1.0), node(1, 0.0)], 0.0, chunk_id=0)
        assert chunk.averaged_pattern().tolist() == pytest.approx([0.5, 0.5, 0.5])

    def test_item_matching(self):
        item = node(0)
        assert item.matches([2.0, 2.0, 2.0], 0.99)
        assert not item.matches([1.0, 0.0, 0.0], 0.8)


@pytest.mark.unit
class TestMaskingField:

    def test_recognises_repeated_item(self):
        field = MaskingField()
        field.update(one_hot(0, 10), 0.05)
        field.update(one_hot(0, 10), 0.05)
        nodes = field.item_nodes
        assert len(nodes) == 1
        assert nodes[0].strength == pytest.approx(1.1)

    def test_new_items_get_increasing_positions(self):
        field = MaskingField()
        for i in range(4):
            field.update(one_hot(i, 10), 0.05)
        assert [n.position for n in field.item_nodes] == [0, 1, 2, 3]
        assert field.current_time == pytest.approx(0.2)

    def test_node_count_bounded(self):
        field = MaskingField(MaskingFieldConfig(max_item_nodes=10))
        for i in range(14):
            field.update(one_hot(i, 14), 0.05)
        positions = [n.position for n in field.item_nodes]
        assert len(positions) == 10
        assert len(set(positions)) == 10

    @given(
        indices=st.lists(st.integers(0, 11), min_size=1, max_size=40),
        max_chunks=st.integers(1, 4),
    )
    @settings(max_examples=30, deadline=None)
    def test_chunks_bounded_and_disjoint(self, indices, max_chunks):
        # bound is the masking field's max_chunks; no working memory is involved here
        field = MaskingField(MaskingFieldConfig(
            max_chunks=max_chunks,
            min_chunk_size=2,
            min_chunk_interval=0.0,
            winner_threshold=0.1,
        ))
        for i in indices:
            field.update(one_hot(i, 12), 0.05)

            chunks = field.list_chunks
            assert len(chunks) <= max_chunks
            positions = [p for chunk in chunks for p in chunk.positions]
            assert len(positions) == len(set(positions))

            state = field.state()
            assert state.chunk_activations.numel() == len(chunks)
            assert torch.all(state.chunk_activations >= 0.0)
            assert torch.all(state.chunk_activations <= 1.0)

    def test_statistics_empty(self):
        stats = MaskingField().statistics()
        assert stats.total_chunks == 0
        assert stats.active_chunk_index == -1
        assert stats.chunking_efficiency == 0.0

    def test_reset(self):
        field = MaskingField()
        field.update(one_hot(0, 10), 0.05)
        field.reset()
        assert field.item_nodes == []
        assert field.current_time == 0.0

    def test_config_validation(self):
        with pytest.raises(ConfigurationError):
            MaskingFieldConfig(min_chunk_size=5, max_chunk_size=3)
        with pytest.raises(ConfigurationError):
            MaskingFieldConfig(max_item_nodes=5)


@pytest.mark.unit
class TestTemporalProcessor:

    @given(indices=st.lists(st.integers(0, 11), min_size=1, max_size=30))
    @settings(max_examples=25, deadline=None)
    def test_chunk_count_within_field_and_memory_bounds(self, indices):
        processor = TemporalProcessor(
            WorkingMemoryConfig(capacity=4, item_dimension=12),
            MaskingFieldConfig(
                max_chunks=3,
                min_chunk_size=2,
                min_chunk_interval=0.0,
                winner_threshold=0.1,
            ),
        )
        for i in indices:
            result = processor.process_item(one_hot(i, 12))

            assert result.chunk_count <= 3
            assert result.chunk_count <= processor.working_memory.config.capacity
            positions = [p for chunk in result.chunks for p in chunk.positions]
            assert len(positions) == len(set(positions))

    def test_chunked_pattern_of_repeated_item(self):
        processor = TemporalProcessor(WorkingMemoryConfig(item_dimension=4))
        pattern = torch.tensor([0.2, 0.4, 0.6, 0.8], dtype=torch.float64)
        results = processor.process_sequence([pattern] * 3)
        assert len(results) == 3
        assert torch.allclose(results[-1].chunked_pattern(), pattern)
        assert results[-1].working_memory_state.sequence_length == 3

    def test_zero_input(self):
        processor = TemporalProcessor(WorkingMemoryConfig(item_dimension=3))
        result = processor.process_item(torch.zeros(3))
        assert torch.all(result.chunked_pattern() == 0.0)
        assert not result.has_chunks
        assert result.chunk_count == 0

    def test_reset(self):
        processor = TemporalProcessor(WorkingMemoryConfig(item_dimension=3))
        processor.process_item(torch.ones(3))
        processor.reset()
        assert processor.working_memory.position == 0
        assert processor.masking_field.item_nodes == []

    def test_item_of_wrong_length_rejected(self):
        processor = TemporalProcessor(WorkingMemoryConfig(item_dimension=4))
        with pytest.raises(DimensionMismatchError):
            processor.process_item([0.5] * 9)
        assert processor.working_memory.position == 0
        assert processor.masking_field.item_nodes == []

    def test_invalid_duration(self):
        with pytest.raises(ConfigurationError):
            TemporalProcessor(item_duration=0.0)
