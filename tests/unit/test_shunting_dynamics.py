"""
Unit tests for the shunting dynamics integrator.

Tests:
- Single-unit Euler step against the closed-form update
- Fixed point of a single unit under constant input
- Bounds under arbitrary input (property based)
- Competition under lateral inhibition
- Batched integration against per-pattern integration
- Error handling
"""

import pytest
import torch
from hypothesis import given, settings, strategies as st

from laminart.dynamics import ShuntingConfig, ShuntingDynamics
from laminart.errors import ConfigurationError, DimensionMismatchError
from tests.helpers import assert_bounded


def single_unit(decay=0.5, self_excitation=0.2, initial=0.3, floor=0.0, ceiling=1.0):
    return ShuntingDynamics(ShuntingConfig(
        size=1,
        decay_rate=decay,
        self_excitation=self_excitation,
        initial_activation=initial,
        floor=floor,
        ceiling=ceiling,
    ))


@pytest.mark.unit
class TestSingleUnit:
    """A one-unit population has no lateral terms, so every step has a closed form."""

    def test_euler_step_matches_closed_form(self):
        A, s, x0, I, J, dt = 0.5, 0.2, 0.3, 0.4, 0.1, 0.01
        dyn = single_unit(decay=A, self_excitation=s, initial=x0)
        dyn.set_excitatory_input([I])
        dyn.set_inhibitory_input([J])

        result = dyn.update(dt)

        expected = x0 + dt * (-A * x0 + (1.0 - x0) * (I + s * x0) - (x0 - 0.0) * J)
        assert abs(float(result[0]) - expected) < 1e-9

    def test_derivative_matches_equation(self):
        dyn = single_unit(decay=0.5, self_excitation=0.0, initial=0.25)
        dyn.set_excitatory_input([0.6])
        dyn.set_inhibitory_input([0.2])

        expected = -0.5 * 0.25 + 0.75 * 0.6 - 0.25 * 0.2
        assert float(dyn.derivative()[0]) == pytest.approx(expected, abs=1e-12)

    def test_converges_to_equilibrium(self):
        """x* = (B·I + F·J) / (A + I + J) without self-excitation."""
        A, I, J = 0.5, 0.4, 0.1
        dyn = single_unit(decay=A, self_excitation=0.0, initial=0.0)
        dyn.set_excitatory_input([I])
        dyn.set_inhibitory_input([J])

        dyn.update(dt=0.1, steps=300)

        assert float(dyn.state[0]) == pytest.approx(I / (A + I + J), abs=1e-9)
        assert dyn.has_converged(1e-9)

    def test_run_until_converged_reports_steps(self):
        dyn = single_unit(decay=1.0, self_excitation=0.0, initial=0.0)
        dyn.set_excitatory_input([1.0])

        steps = dyn.run_until_converged(max_steps=5000, tolerance=1e-8, dt=0.05)

        assert 0 < steps < 5000
        assert dyn.has_converged(1e-8)

    def test_update_returns_copy(self):
        dyn = single_unit()
        result = dyn.update()
        result.fill_(0.9)
        assert float(dyn.state[0]) != 0.9


@pytest.mark.unit
class TestBounds:

    @given(
        excitatory=st.lists(st.floats(0.0, 50.0), min_size=8, max_size=8),
        inhibitory=st.lists(st.floats(0.0, 50.0), min_size=8, max_size=8),
        dt=st.floats(1e-4, 0.05),
        steps=st.integers(1, 40),
    )
    @settings(max_examples=50, deadline=None)
    def test_activation_stays_within_floor_and_ceiling(self, excitatory, inhibitory, dt, steps):
        dyn = ShuntingDynamics(ShuntingConfig(
            size=8, decay_rate=1.0, floor=-0.2, ceiling=1.0, initial_activation=0.0,
            self_excitation=0.5, excitatory_strength=0.3, inhibitory_strength=0.4,
        ))
        dyn.set_excitatory_input(excitatory)
        dyn.set_inhibitory_input(inhibitory)

        for _ in range(steps):
            assert_bounded(dyn.update(dt), -0.2, 1.0)

    def test_set_state_is_clamped(self):
        dyn = ShuntingDynamics(ShuntingConfig(size=3))
        dyn.set_state([2.0, -1.0, 0.5])
        assert dyn.state.tolist() == [1.0, 0.0, 0.5]


@pytest.mark.unit
class TestCompetition:

    def test_stronger_input_wins(self):
        dyn = ShuntingDynamics(ShuntingConfig(
            size=2, decay_rate=1.0, excitatory_strength=0.0, inhibitory_strength=2.0,
        ))
        dyn.set_excitatory_input([1.0, 0.5])

        state = dyn.update(dt=0.01, steps=500)

        assert float(state[0]) > float(state[1])

    def test_kernels_have_zero_diagonal(self):
        dyn = ShuntingDynamics(ShuntingConfig(size=5, excitatory_strength=0.3, inhibitory_strength=0.2))
        assert torch.all(torch.diagonal(dyn.exc_kernel) == 0)
        assert torch.all(torch.diagonal(dyn.inh_kernel) == 0)
        assert torch.allclose(dyn.exc_kernel, dyn.exc_kernel.T)

    def test_energy_of_silent_population_is_zero(self):
        dyn = ShuntingDynamics(ShuntingConfig(size=4, inhibitory_strength=0.2))
        assert dyn.energy() == 0.0


@pytest.mark.unit
class TestEnergy:

    def driven_population(self):
        dyn = ShuntingDynamics(ShuntingConfig(size=4, decay_rate=1.0, inhibitory_strength=0.3))
        dyn.set_excitatory_input([0.8, 0.6, 0.4, 0.2])
        return dyn

    def test_energy_never_increases_while_relaxing(self):
        dyn = self.driven_population()
        energies = [dyn.energy()]
        for _ in range(200):
            dyn.update(0.01)
            energies.append(dyn.energy())

        assert all(b <= a + 1e-15 for a, b in zip(energies, energies[1:]))
        assert energies[-1] < 0.1 * energies[0]

    def test_energy_vanishes_at_equilibrium(self):
        A, I, J = 0.5, 0.4, 0.1
        dyn = single_unit(decay=A, self_excitation=0.0, initial=0.0)
        dyn.set_excitatory_input([I])
        dyn.set_inhibitory_input([J])
        dyn.set_state([I / (A + I + J)])
        assert dyn.energy() < 1e-20

    def test_energy_includes_inputs(self):
        dyn = ShuntingDynamics(ShuntingConfig(size=2))
        dyn.set_excitatory_input([0.6, 0.8])
        assert dyn.energy() == pytest.approx(0.5 * (0.36 + 0.64))

    def test_convergence_follows_energy(self):
        dyn = self.driven_population()
        dyn.update(0.01, steps=5)
        assert not dyn.has_converged(1e-3)

        steps = dyn.run_until_converged(max_steps=20000, tolerance=1e-9, dt=0.01)

        assert steps < 20000
        assert dyn.has_converged(1e-9)
        assert dyn.energy() < 1e-12


@pytest.mark.unit
class TestBatchIntegration:

    def test_batch_matches_individual_runs(self):
        cfg = ShuntingConfig(size=6, decay_rate=0.8, self_excitation=0.1, inhibitory_strength=0.3)
        states = torch.rand(3, 6, dtype=torch.float64)
        excitatory = torch.rand(3, 6, dtype=torch.float64)

        batched = ShuntingDynamics(cfg).integrate_batch(states, excitatory, dt=0.01, steps=5)

        for row in range(3):
            dyn = ShuntingDynamics(cfg)
            dyn.set_state(states[row])
            dyn.set_excitatory_input(excitatory[row])
            expected = dyn.update(dt=0.01, steps=5)
            assert torch.allclose(batched[row], expected, atol=1e-12)

    def test_batch_leaves_stored_state_untouched(self):
        dyn = ShuntingDynamics(ShuntingConfig(size=4))
        dyn.integrate_batch(torch.full((2, 4), 0.5), torch.ones(2, 4), steps=3)
        assert torch.all(dyn.state == 0.0)

    def test_batch_shape_mismatch(self):
        dyn = ShuntingDynamics(ShuntingConfig(size=4))
        with pytest.raises(DimensionMismatchError):
            dyn.integrate_batch(torch.zeros(2, 5), torch.zeros(2, 5))


@pytest.mark.unit
class TestErrors:

    def test_wrong_input_length(self):
        dyn = ShuntingDynamics(ShuntingConfig(size=4))
        with pytest.raises(DimensionMismatchError):
            dyn.set_excitatory_input([0.1, 0.2])

    @pytest.mark.parametrize("dt", [0.0, -0.01])
    def test_non_positive_time_step(self, dt):
        dyn = ShuntingDynamics(ShuntingConfig(size=4))
        with pytest.raises(ConfigurationError):
            dyn.update(dt)

    def test_invalid_config(self):
        with pytest.raises(ConfigurationError):
            ShuntingConfig(size=0)
        with pytest.raises(ConfigurationError):
            ShuntingConfig(size=2, floor=1.0, ceiling=0.0)
        with pytest.raises(ConfigurationError):
            ShuntingConfig(size=2, decay_rates=(0.1,))

    def test_per_unit_decay_rates(self):
        dyn = ShuntingDynamics(ShuntingConfig(size=3, decay_rates=(0.1, 0.2, 0.3)))
        assert dyn.decay.tolist() == [0.1, 0.2, 0.3]
