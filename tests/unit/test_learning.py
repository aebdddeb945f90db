"""
Unit tests for weight storage, the scratch-matrix pool and learning rules.
"""

import pytest
import torch

from laminart.errors import ConfigurationError, DimensionMismatchError, ResourceError
from laminart.learning import (
    BCMRule,
    HebbianRule,
    InstarOutstarRule,
    LearningContext,
    LearningMode,
    LearningRule,
    LearningStatistics,
    ResonanceGatedRule,
    WeightMatrix,
    WeightMatrixPool,
)
from laminart.oscillation import ResonanceState


def resonance(likelihood, resonant=True):
    return ResonanceState(
        art_resonance=resonant,
        phase_synchronized=False,
        both_in_gamma=False,
        consciousness_likelihood=likelihood,
        match_quality=likelihood,
    )


@pytest.mark.unit
class TestWeightMatrix:

    def test_starts_at_zero(self):
        w = WeightMatrix(3, 4)
        assert w.shape == (3, 4)
        assert torch.all(w.data == 0)

    def test_initial_data_is_copied_and_clamped(self):
        source = torch.tensor([[2.0, -1.0], [0.5, 0.25]], dtype=torch.float64)
        w = WeightMatrix(2, 2, data=source)
        assert w.data.tolist() == [[1.0, 0.0], [0.5, 0.25]]
        assert source[0, 0] == 2.0

    def test_get_set_and_distance(self):
        a = WeightMatrix(2, 2)
        b = a.clone()
        b.set(0, 1, 0.6)
        b.set(1, 0, 0.8)
        assert b.get(0, 1) == pytest.approx(0.6)
        assert a.distance(b) == pytest.approx(1.0)

    def test_copy_from(self):
        a = WeightMatrix(2, 2).fill_(0.3)
        b = WeightMatrix(2, 2)
        b.copy_from(a)
        assert torch.equal(a.data, b.data)

    def test_wrong_shape(self):
        with pytest.raises(DimensionMismatchError):
            WeightMatrix(2, 2, data=torch.zeros(3, 2))
        with pytest.raises(ConfigurationError):
            WeightMatrix(0, 2)


@pytest.mark.unit
class TestWeightMatrixPool:

    def test_acquire_release_accounting(self):
        pool = WeightMatrixPool(4, 4, capacity=2)
        assert (pool.available, pool.in_use) == (2, 0)

        m = pool.acquire()
        assert (pool.available, pool.in_use) == (1, 1)
        pool.release(m)
        assert (pool.available, pool.in_use) == (2, 0)
        assert pool.stats.acquisitions == 1
        assert pool.stats.releases == 1

    def test_acquired_matrix_is_zeroed(self):
        pool = WeightMatrixPool(2, 2, capacity=1)
        m = pool.acquire()
        m.fill_(0.7)
        pool.release(m)
        assert torch.all(pool.acquire().data == 0)

    def test_exhaustion(self):
        pool = WeightMatrixPool(2, 2, capacity=1)
        pool.acquire()
        with pytest.raises(ResourceError):
            pool.acquire()

    def test_growth(self):
        pool = WeightMatrixPool(2, 2, capacity=1, allow_growth=True)
        pool.acquire()
        pool.acquire()
        assert pool.in_use == 2
        assert pool.stats.growths == 1

    def test_double_release(self):
        pool = WeightMatrixPool(2, 2, capacity=1)
        m = pool.acquire()
        pool.release(m)
        with pytest.raises(ResourceError):
            pool.release(m)

    def test_foreign_release(self):
        pool = WeightMatrixPool(2, 2, capacity=1)
        with pytest.raises(ResourceError):
            pool.release(WeightMatrix(2, 2))

    def test_borrow_releases_on_error(self):
        pool = WeightMatrixPool(2, 2, capacity=1)
        with pytest.raises(RuntimeError):
            with pool.borrow():
                raise RuntimeError("boom")
        assert pool.in_use == 0


@pytest.mark.unit
class TestRules:

    @pytest.mark.parametrize("rule", [
        HebbianRule(),
        InstarOutstarRule(),
        BCMRule(),
        ResonanceGatedRule(HebbianRule()),
    ])
    def test_rules_satisfy_protocol(self, rule):
        assert isinstance(rule, LearningRule)
        low, high = rule.recommended_learning_rate_range()
        assert 0.0 < low < high <= 1.0

    def test_hebbian_outer_product(self):
        w = torch.zeros(2, 3, dtype=torch.float64)
        pre = torch.tensor([1.0, 0.0, 0.5], dtype=torch.float64)
        post = torch.tensor([0.4, 0.0], dtype=torch.float64)

        new_w, metrics = HebbianRule().compute_update(w, pre, post, 0.5)

        assert torch.allclose(new_w, 0.5 * torch.outer(post, pre))
        assert torch.all(w == 0), "input weights must not be modified"
        assert metrics["weight_change"] > 0

    def test_hebbian_bounded(self):
        w = torch.full((2, 2), 0.99, dtype=torch.float64)
        ones = torch.ones(2, dtype=torch.float64)
        new_w, _ = HebbianRule().compute_update(w, ones, ones, 1.0)
        assert float(new_w.max()) <= 1.0

    def test_out_parameter(self):
        w = torch.zeros(2, 2, dtype=torch.float64)
        out = torch.empty(2, 2, dtype=torch.float64)
        ones = torch.ones(2, dtype=torch.float64)
        result, _ = HebbianRule().compute_update(w, ones, ones, 0.1, out=out)
        assert result is out

    def test_invalid_rate(self):
        w = torch.zeros(2, 2, dtype=torch.float64)
        ones = torch.ones(2, dtype=torch.float64)
        with pytest.raises(ConfigurationError):
            HebbianRule().compute_update(w, ones, ones, 1.5)

    def test_shape_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            HebbianRule().compute_update(
                torch.zeros(2, 2, dtype=torch.float64),
                torch.ones(3, dtype=torch.float64),
                torch.ones(2, dtype=torch.float64),
                0.1,
            )

    def test_instar_moves_toward_input(self):
        w = torch.zeros(1, 3, dtype=torch.float64)
        pre = torch.tensor([1.0, 0.5, 0.0], dtype=torch.float64)
        post = torch.ones(1, dtype=torch.float64)
        rule = InstarOutstarRule(LearningMode.INSTAR)
        for _ in range(200):
            w, _ = rule.compute_update(w, pre, post, 0.1)
        assert torch.allclose(w[0], pre, atol=1e-3)

    def test_bcm_threshold_tracks_activity(self):
        rule = BCMRule.balanced()
        w = torch.full((2, 2), 0.5, dtype=torch.float64)
        pre = torch.ones(2, dtype=torch.float64)
        post = torch.tensor([0.9, 0.1], dtype=torch.float64)
        rule.compute_update(w, pre, post, 0.1)
        theta = rule.modification_thresholds()
        assert float(theta[0]) > float(theta[1])
        rule.reset_state()
        assert torch.all(rule.modification_thresholds() == 0.1)


@pytest.mark.unit
class TestResonanceGating:

    def setup_method(self):
        self.w = torch.zeros(2, 2, dtype=torch.float64)
        self.pre = torch.ones(2, dtype=torch.float64)
        self.post = torch.ones(2, dtype=torch.float64)

    def test_below_threshold_returns_same_weights(self):
        rule = ResonanceGatedRule(HebbianRule(), threshold=0.7)
        ctx = LearningContext(self.pre, self.post, resonance(0.5), attention_strength=1.0)
        new_w, metrics = rule.update_with_context(self.w, ctx, 0.1)
        assert new_w is self.w
        assert metrics["gated"] == 1.0

    def test_above_threshold_scales_by_likelihood(self):
        rule = ResonanceGatedRule(HebbianRule(), threshold=0.7)
        ctx = LearningContext(self.pre, self.post, resonance(0.8), attention_strength=1.0)
        new_w, _ = rule.update_with_context(self.w, ctx, 0.1)
        assert torch.allclose(new_w, torch.full((2, 2), 0.08, dtype=torch.float64))

    def test_attention_modulates_base_rule(self):
        ctx = LearningContext(self.pre, self.post, None, attention_strength=0.5)
        new_w, _ = HebbianRule().update_with_context(self.w, ctx, 0.1)
        assert torch.allclose(new_w, torch.full((2, 2), 0.05, dtype=torch.float64))

    def test_context_helpers(self):
        ctx = LearningContext(self.pre, self.post, resonance(0.9), attention_strength=3.0)
        assert ctx.learning_rate_modulation == 1.0
        assert ctx.consciousness_likelihood == 0.9
        assert ctx.is_resonant
        assert LearningContext(self.pre, self.post).consciousness_likelihood == 0.0


@pytest.mark.unit
class TestLearningStatistics:

    def test_running_averages(self):
        stats = LearningStatistics()
        stats.record_learning_event(resonance(0.8), 0.5, 0.2)
        stats.record_learning_event(resonance(0.4, resonant=False), 0.3, 0.6)
        stats.record_learning_event(None, 0.1, 0.1)

        assert stats.total_events == 3
        assert stats.resonant_events == 1
        assert stats.average_attention == pytest.approx(0.3)
        assert stats.average_consciousness == pytest.approx(0.4)
        assert stats.total_weight_change == pytest.approx(0.9)
        assert stats.max_weight_change == pytest.approx(0.6)
        assert stats.resonance_ratio == pytest.approx(1 / 3)

    def test_empty_statistics(self):
        stats = LearningStatistics()
        assert stats.average_weight_change == 0.0
        assert stats.resonance_ratio == 0.0

    def test_dict_round_trip(self):
        stats = LearningStatistics()
        stats.record_learning_event(resonance(0.9), 0.7, 0.05)
        restored = LearningStatistics()
        restored.load_dict(stats.as_dict())
        assert restored.as_dict() == stats.as_dict()
