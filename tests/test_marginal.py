"""Tests for the marginal-effects aggregate."""

from functools import reduce

import numpy as np
import pytest

from logistic_aggregates import MarginalEffectsEngine, MarginalState, Status


def _make_data(n=120, seed=9):
    rng = np.random.default_rng(seed)
    X = np.column_stack([np.ones(n), rng.standard_normal(n), rng.standard_normal(n)])
    y = rng.random(n) < 0.5
    return X, y


def _accumulate(engine, X, y, coef, n_partitions=1):
    partials = [
        engine.transition_batch(engine.initial_state(), y[rows], X[rows], coef)
        for rows in np.array_split(np.arange(len(y)), n_partitions)
    ]
    return reduce(engine.merge, partials)


def _expected(X, coef):
    """Reference computation of the effects and their delta-method covariance."""
    n = X.shape[0]
    g = 1.0 / (1.0 + np.exp(-(X @ coef)))
    effects = coef * np.mean(g * (1.0 - g))
    a = g * (1.0 - g)
    variance = np.linalg.inv((X.T * a) @ X)
    x_bar = X.mean(axis=0)
    p = 1.0 / (1.0 + np.exp(-(coef @ x_bar)))
    delta = np.eye(len(coef)) + (1.0 - 2.0 * p) * np.outer(coef, x_bar)
    cov = (p * (1.0 - p)) ** 2 * delta @ variance @ delta.T
    return effects, cov, n


class TestAccumulation:
    def test_running_sums(self):
        X, y = _make_data(n=10)
        coef = np.array([0.2, -0.5, 0.1])
        state = _accumulate(MarginalEffectsEngine(), X, y, coef)
        g = 1.0 / (1.0 + np.exp(-(X @ coef)))
        assert state.num_rows == 10
        np.testing.assert_allclose(state.X_bar, X.sum(axis=0))
        assert state.marginal_effects_per_observation == pytest.approx(np.sum(g * (1 - g)))

    def test_labels_do_not_matter(self):
        X, y = _make_data(n=30)
        coef = np.array([0.2, -0.5, 0.1])
        engine = MarginalEffectsEngine()
        a = engine.result(_accumulate(engine, X, y, coef))
        b = engine.result(_accumulate(engine, X, ~y, coef))
        np.testing.assert_allclose(a.marginal_effects, b.marginal_effects)
        np.testing.assert_allclose(a.std_err, b.std_err)


class TestResult:
    def test_matches_reference_formula(self):
        X, y = _make_data()
        coef = np.array([0.3, 0.8, -0.6])
        engine = MarginalEffectsEngine()
        state = engine.final(_accumulate(engine, X, y, coef, n_partitions=4))
        effects, cov, n = _expected(X, coef)

        np.testing.assert_allclose(state.std_err_matrix, cov, rtol=1e-8)
        result = engine.result(state)
        np.testing.assert_allclose(result.marginal_effects, effects, rtol=1e-10)
        np.testing.assert_allclose(result.std_err, np.sqrt(np.diag(cov)), rtol=1e-8)
        np.testing.assert_allclose(result.t_stats, effects / np.sqrt(np.diag(cov)), rtol=1e-8)
        assert result.p_values is not None
        assert np.all((result.p_values >= 0.0) & (result.p_values <= 1.0))
        assert state.iteration == 1

    def test_p_values_use_student_t(self):
        from scipy import stats

        X, y = _make_data(n=40)
        engine = MarginalEffectsEngine()
        result = engine.result(_accumulate(engine, X, y, np.array([0.1, 0.4, -0.2])))
        expected = 2.0 * stats.t.sf(np.abs(result.t_stats), 40 - 3)
        np.testing.assert_allclose(result.p_values, expected)

    @pytest.mark.parametrize("n_rows", [2, 3])
    def test_p_values_withheld_without_degrees_of_freedom(self, n_rows):
        X = np.array([[1.0, 0.5, -1.0], [1.0, -0.2, 0.3], [1.0, 1.5, 0.8]])[:n_rows]
        y = np.array([True, False, True])[:n_rows]
        engine = MarginalEffectsEngine()
        result = engine.result(_accumulate(engine, X, y, np.array([0.1, 0.2, 0.3])))
        assert result.p_values is None
        assert result.marginal_effects.shape == (3,)

    def test_p_values_reported_with_one_residual_degree_of_freedom(self):
        X, y = _make_data(n=4)
        engine = MarginalEffectsEngine()
        result = engine.result(_accumulate(engine, X, y, np.array([0.1, 0.2, 0.3])))
        assert result.p_values is not None

    def test_empty_state_returns_none(self):
        engine = MarginalEffectsEngine()
        assert engine.final(MarginalState()) is None
        assert engine.result(MarginalState()) is None

    def test_non_finite_coefficients_terminate(self):
        engine = MarginalEffectsEngine()
        state = engine.transition(engine.initial_state(), True, [1.0, 2.0], [np.inf, 0.0])
        assert state.status == Status.TERMINATED


class TestMerge:
    def test_empty_state_is_identity(self):
        X, y = _make_data(n=30)
        engine = MarginalEffectsEngine()
        state = _accumulate(engine, X, y, np.array([0.2, -0.5, 0.1]))
        for merged in (
            engine.merge(engine.initial_state(), state),
            engine.merge(state, engine.initial_state()),
        ):
            assert merged.num_rows == state.num_rows
            np.testing.assert_array_equal(merged.X_bar, state.X_bar)
            np.testing.assert_array_equal(merged.X_transp_AX, state.X_transp_AX)
            assert (
                merged.marginal_effects_per_observation
                == state.marginal_effects_per_observation
            )

    def test_commutative_and_associative(self):
        X, y = _make_data(n=90)
        coef = np.array([0.3, 0.8, -0.6])
        engine = MarginalEffectsEngine()
        a, b, c = (
            engine.transition_batch(engine.initial_state(), y[s], X[s], coef)
            for s in (slice(0, 30), slice(30, 60), slice(60, 90))
        )
        ab = engine.merge(a, b)
        ba = engine.merge(b, a)
        np.testing.assert_allclose(ab.X_bar, ba.X_bar, rtol=1e-12)
        assert ab.marginal_effects_per_observation == pytest.approx(
            ba.marginal_effects_per_observation, rel=1e-12
        )
        left = engine.merge(ab, c)
        right = engine.merge(a, engine.merge(b, c))
        np.testing.assert_allclose(left.X_bar, right.X_bar, rtol=1e-12)
        np.testing.assert_allclose(left.X_transp_AX, right.X_transp_AX, rtol=1e-12)
        assert left.marginal_effects_per_observation == pytest.approx(
            right.marginal_effects_per_observation, rel=1e-12
        )
        assert left.num_rows == right.num_rows == 90

    def test_partition_invariance(self):
        X, y = _make_data()
        coef = np.array([0.3, 0.8, -0.6])
        engine = MarginalEffectsEngine()
        whole = engine.final(_accumulate(engine, X, y, coef))
        split = engine.final(_accumulate(engine, X, y, coef, n_partitions=7))
        np.testing.assert_allclose(split.std_err_matrix, whole.std_err_matrix, rtol=1e-9)


class TestFinal:
    def test_overflowing_covariance_terminates(self):
        engine = MarginalEffectsEngine()
        state = MarginalState(
            width_of_x=2,
            num_rows=1,
            coef=np.array([1.0, -1.0]),
            marginal_effects_per_observation=0.2,
            X_bar=np.array([1e8 + 1.0, 1e8]),
            X_transp_AX=1e-300 * np.eye(2),
        )
        final = engine.final(state)
        assert final.status == Status.TERMINATED
        assert final.std_err_matrix is None
        assert final.iteration == 0
        result = engine.result(final)
        assert np.all(np.isnan(result.std_err))
