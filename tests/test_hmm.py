"""
Unit tests for speechhmm HMM module.

Tests cover:
- HMMModel construction, Bakis initialization and bounds-checked access
- Forward and backward procedures (golden value, alpha-beta identity)
- Viterbi decoding
- Baum-Welch re-estimation and emission flooring
- Model averaging
"""
import pytest
import numpy as np
from numpy.testing import assert_allclose, assert_array_equal

from speechhmm.core.errors import (EmptyInputError, IndexOutOfRangeError,
                                   PreconditionError, StateIndexError, SymbolIndexError)
from speechhmm.core.hmm import (HMMModel, average_models, backward, floor_emissions,
                                forward, reestimate, viterbi)


def _stochastic(model, tol=1e-6):
    assert abs(model.startprob_.sum() - 1.0) <= tol
    assert_allclose(model.transmat_.sum(axis=1), 1.0, atol=tol)
    assert_allclose(model.emissionprob_.sum(axis=1), 1.0, atol=tol)


class TestHMMModelInitialization:

    def test_zero_initialized(self):
        model = HMMModel(3, 5)
        assert model.startprob_.shape == (3,)
        assert model.transmat_.shape == (3, 3)
        assert model.emissionprob_.shape == (3, 5)
        assert not model.is_stochastic()

    def test_bakis(self, bakis_2x2):
        assert_array_equal(bakis_2x2.startprob_, [1.0, 0.0])
        assert_array_equal(bakis_2x2.transmat_, [[0.5, 0.5], [0.0, 1.0]])
        assert_array_equal(bakis_2x2.emissionprob_, [[0.5, 0.5], [0.5, 0.5]])

    def test_bakis_is_stochastic(self):
        for n in (1, 2, 6):
            _stochastic(HMMModel.bakis(n, 16))

    def test_bakis_left_to_right(self):
        A = HMMModel.bakis(5, 4).transmat_
        assert np.all(np.tril(A, -1) == 0)
        assert np.all(np.triu(A, 2) == 0)

    def test_shape_mismatch(self):
        with pytest.raises(PreconditionError):
            HMMModel(2, 2, transmat=np.eye(3))

    def test_invalid_sizes(self):
        with pytest.raises(PreconditionError):
            HMMModel(0, 2)

    def test_validate(self, bakis_2x2):
        bakis_2x2.validate()
        bakis_2x2.set_a(0, 0, 0.9)
        with pytest.raises(PreconditionError):
            bakis_2x2.validate()


class TestBoundsCheckedAccess:

    def test_accessors(self, bakis_2x2):
        assert bakis_2x2.pi(0) == 1.0
        assert bakis_2x2.a(0, 1) == 0.5
        assert bakis_2x2.b(1, 0) == 0.5

    def test_setters(self, bakis_2x2):
        bakis_2x2.set_pi(1, 0.25)
        bakis_2x2.set_a(1, 0, 0.1)
        bakis_2x2.set_b(0, 1, 0.75)
        assert bakis_2x2.pi(1) == 0.25
        assert bakis_2x2.a(1, 0) == 0.1
        assert bakis_2x2.b(0, 1) == 0.75

    @pytest.mark.parametrize("call", [
        lambda m: m.pi(2),
        lambda m: m.a(-1, 0),
        lambda m: m.a(0, 2),
        lambda m: m.b(5, 0),
        lambda m: m.set_pi(2, 0.0),
        lambda m: m.set_a(0, 3, 0.0),
    ])
    def test_illegal_state(self, bakis_2x2, call):
        with pytest.raises(StateIndexError):
            call(bakis_2x2)

    def test_illegal_symbol(self, bakis_2x2):
        with pytest.raises(SymbolIndexError):
            bakis_2x2.b(0, 2)
        with pytest.raises(SymbolIndexError):
            bakis_2x2.set_b(0, -1, 0.0)

    def test_index_errors_are_index_errors(self, bakis_2x2):
        with pytest.raises(IndexError):
            bakis_2x2.pi(7)
        with pytest.raises(IndexOutOfRangeError):
            bakis_2x2.b(0, 7)

    def test_check_observations(self, bakis_2x2):
        obs = bakis_2x2.check_observations([0, 1, 1])
        assert obs.dtype == np.int64
        with pytest.raises(SymbolIndexError):
            bakis_2x2.check_observations([0, 2])
        with pytest.raises(EmptyInputError):
            bakis_2x2.check_observations([])


class TestForwardBackward:

    def test_golden_value(self, bakis_2x2):
        # alpha0 = [0.5, 0]; alpha1 = [0.125, 0.125]
        alpha, prob = forward(bakis_2x2.startprob_, bakis_2x2.transmat_,
                              bakis_2x2.emissionprob_, np.array([0, 1]))
        assert_allclose(alpha, [[0.5, 0.0], [0.125, 0.125]])
        assert prob == pytest.approx(0.25)
        assert bakis_2x2.probability([0, 1]) == pytest.approx(0.25)

    def test_backward_golden(self, bakis_2x2):
        beta = backward(bakis_2x2.transmat_, bakis_2x2.emissionprob_, np.array([0, 1]))
        assert_allclose(beta, [[0.5, 0.5], [1.0, 1.0]])

    def test_alpha_beta_identity(self, random_model):
        obs = np.random.default_rng(1).integers(0, 4, size=25)
        m = random_model
        alpha, prob = forward(m.startprob_, m.transmat_, m.emissionprob_, obs)
        beta = backward(m.transmat_, m.emissionprob_, obs)
        per_t = (alpha * beta).sum(axis=1)
        assert_allclose(per_t, prob, rtol=1e-9)

    def test_single_symbol(self, random_model):
        obs = np.array([2])
        _, prob = forward(random_model.startprob_, random_model.transmat_,
                          random_model.emissionprob_, obs)
        expected = float(random_model.startprob_ @ random_model.emissionprob_[:, 2])
        assert prob == pytest.approx(expected)


class TestViterbi:

    def test_path_probability_bounded_by_forward(self, random_model):
        rng = np.random.default_rng(5)
        for _ in range(5):
            obs = rng.integers(0, 4, size=15)
            path, p_star = random_model.decode(obs)
            assert len(path) == 15
            assert p_star <= random_model.probability(obs)

    def test_bakis_path_is_monotone(self):
        model = HMMModel.bakis(3, 2)
        path, _ = model.decode([0, 0, 1, 1, 0, 1])
        assert path[0] == 0
        assert np.all(np.diff(path) >= 0)

    def test_ties_go_to_lowest_state(self, bakis_2x2):
        # Both states equally likely at t=1
        path, p_star = viterbi(bakis_2x2.startprob_, bakis_2x2.transmat_,
                               bakis_2x2.emissionprob_, np.array([0, 1]))
        assert_array_equal(path, [0, 0])
        assert p_star == pytest.approx(0.125)

    def test_deterministic_path(self):
        model = HMMModel(2, 2, [0.5, 0.5], [[0.9, 0.1], [0.1, 0.9]],
                         [[0.9, 0.1], [0.1, 0.9]])
        path, _ = model.decode([0, 0, 0, 1, 1, 1])
        assert_array_equal(path, [0, 0, 0, 1, 1, 1])


class TestReestimation:

    def _step(self, model, obs, floor=1e-300):
        alpha, prob = forward(model.startprob_, model.transmat_, model.emissionprob_, obs)
        beta = backward(model.transmat_, model.emissionprob_, obs)
        return reestimate(model, obs, alpha, beta, prob, floor)

    def test_stochastic_after_reestimation(self, random_model):
        obs = np.random.default_rng(2).integers(0, 4, size=30)
        new_model, gamma, xi = self._step(random_model, obs)
        _stochastic(new_model)
        assert gamma.shape == (30, 3)
        assert xi.shape == (29, 3, 3)
        assert_allclose(gamma.sum(axis=1), 1.0)
        assert_allclose(xi.sum(axis=(1, 2)), 1.0)

    def test_input_model_unchanged(self, random_model):
        before = random_model.copy()
        self._step(random_model, np.array([0, 1, 2, 3, 0]))
        assert_array_equal(random_model.transmat_, before.transmat_)
        assert_array_equal(random_model.emissionprob_, before.emissionprob_)

    def test_increases_likelihood(self, random_model):
        obs = np.random.default_rng(9).integers(0, 4, size=30)
        new_model, _, _ = self._step(random_model, obs)
        assert new_model.probability(obs) >= random_model.probability(obs)

    def test_unvisited_rows_kept(self):
        model = HMMModel.bakis(3, 2)
        new_model, _, _ = self._step(model, np.array([0, 0]))
        # State 2 is unreachable in two steps; state 1 never transitions
        assert_array_equal(new_model.transmat_[1], model.transmat_[1])
        assert_array_equal(new_model.transmat_[2], model.transmat_[2])
        assert_array_equal(new_model.emissionprob_[2], model.emissionprob_[2])
        _stochastic(new_model)

    def test_emissions_floored(self, bakis_2x2):
        new_model, _, _ = self._step(bakis_2x2, np.array([0, 0, 0, 0]), floor=1e-6)
        assert np.all(new_model.emissionprob_ >= 1e-6)
        _stochastic(new_model)

    def test_zero_probability_rejected(self, bakis_2x2):
        obs = np.array([0, 1])
        alpha = np.zeros((2, 2))
        with pytest.raises(PreconditionError):
            reestimate(bakis_2x2, obs, alpha, alpha, 0.0)


class TestFlooring:

    def test_low_entries_raised(self):
        B = floor_emissions(np.array([[0.0, 0.5, 0.5], [0.2, 0.3, 0.5]]), 1e-3)
        assert np.all(B >= 1e-3)
        assert_allclose(B.sum(axis=1), 1.0)
        assert_allclose(B[0], [1e-3, 0.4995, 0.4995])
        assert_array_equal(B[1], [0.2, 0.3, 0.5])

    def test_mass_removed_proportionally(self):
        B = floor_emissions(np.array([[0.0, 0.25, 0.75]]), 0.01)
        assert_allclose(B[0], [0.01, 0.25 - 0.0025, 0.75 - 0.0075])

    def test_entry_pushed_below_floor_is_pinned(self):
        B = floor_emissions(np.array([[0.0, 0.31, 0.69]]), 0.3)
        assert_allclose(B[0], [0.3, 0.3, 0.4])
        assert B[0].sum() == pytest.approx(1.0)

    def test_entry_at_floor_stays_at_floor(self):
        B = floor_emissions(np.array([[0.0, 0.1, 0.9], [0.05, 0.1, 0.101, 0.749]]), 0.1)
        assert_allclose(B[0], [0.1, 0.1, 0.8])
        assert np.all(B >= 0.1 - 1e-12)
        assert_allclose(B.sum(axis=1), 1.0)

    def test_rows_stochastic_for_any_feasible_floor(self):
        rng = np.random.default_rng(4)
        emissions = rng.dirichlet(np.full(8, 0.3), size=20)
        for floor in (1e-300, 1e-3, 0.05, 0.1):
            B = floor_emissions(emissions, floor)
            assert np.all(B >= floor * (1 - 1e-12))
            assert_allclose(B.sum(axis=1), 1.0)

    def test_row_without_entries_above_floor_skipped(self):
        B = floor_emissions(np.array([[0.0, 0.0], [0.5, 0.5]]), 0.1)
        assert_array_equal(B[0], [0.0, 0.0])
        assert_array_equal(B[1], [0.5, 0.5])

    def test_input_not_modified(self):
        original = np.array([[0.0, 1.0]])
        floor_emissions(original, 0.1)
        assert_array_equal(original, [[0.0, 1.0]])


class TestAverageModels:

    def test_elementwise_mean(self):
        m1 = HMMModel(1, 2, [1.0], [[1.0]], [[0.2, 0.8]])
        m2 = HMMModel(1, 2, [1.0], [[1.0]], [[0.6, 0.4]])
        avg = average_models([m1, m2])
        assert_allclose(avg.emissionprob_, [[0.4, 0.6]])
        _stochastic(avg)

    def test_average_stays_stochastic(self, random_model):
        models = [random_model, HMMModel.bakis(3, 4), random_model.copy()]
        _stochastic(average_models(models))

    def test_empty_list(self):
        with pytest.raises(EmptyInputError):
            average_models([])

    def test_shape_mismatch(self):
        with pytest.raises(PreconditionError):
            average_models([HMMModel.bakis(2, 2), HMMModel.bakis(3, 2)])


class TestSerialization:

    def test_dict_round_trip(self, random_model):
        restored = HMMModel.from_dict(random_model.to_dict())
        assert_array_equal(restored.startprob_, random_model.startprob_)
        assert_array_equal(restored.transmat_, random_model.transmat_)
        assert_array_equal(restored.emissionprob_, random_model.emissionprob_)

    def test_copy_is_independent(self, bakis_2x2):
        clone = bakis_2x2.copy()
        clone.set_pi(0, 0.0)
        assert bakis_2x2.pi(0) == 1.0
