"""Tests for the iteratively-reweighted-least-squares aggregate."""

from functools import reduce

import numpy as np
import pytest

from logistic_aggregates import (
    IncompatibleStatesError,
    IRLSEngine,
    IRLSState,
    Status,
    reset_options,
    set_option,
)


def _make_data(n=300, seed=11):
    rng = np.random.default_rng(seed)
    X = np.column_stack([np.ones(n), rng.standard_normal(n), rng.uniform(-1, 1, n)])
    p = 1.0 / (1.0 + np.exp(-(X @ np.array([-0.4, 0.9, 1.5]))))
    y = rng.random(n) < p
    return X, y


def _iterate(engine, X, y, previous=None, n_partitions=1):
    partials = [
        engine.transition_batch(engine.initial_state(), y[rows], X[rows], previous)
        for rows in np.array_split(np.arange(len(y)), n_partitions)
    ]
    return engine.final(reduce(engine.merge, partials))


def _fit(engine, X, y, n_iter):
    states = []
    previous = None
    for _ in range(n_iter):
        previous = _iterate(engine, X, y, previous)
        states.append(previous)
    return states


class TestTwoObservations:
    """(y=+1, x=[1, 0]) and (y=-1, x=[0, 1]) from zero coefficients."""

    @pytest.fixture
    def merged(self):
        engine = IRLSEngine()
        state = engine.transition(engine.initial_state(), True, [1.0, 0.0])
        return engine.transition(state, False, [0.0, 1.0])

    def test_accumulated_statistics(self, merged):
        assert merged.num_rows == 2
        np.testing.assert_allclose(merged.X_transp_AX, 0.25 * np.eye(2))
        np.testing.assert_allclose(merged.X_transp_Az, [0.5, -0.5])
        assert merged.log_likelihood == pytest.approx(-2.0 * np.log(2.0))

    def test_final_step(self, merged):
        engine = IRLSEngine()
        state = engine.final(merged)
        assert np.all(np.isfinite(state.coef))
        np.testing.assert_allclose(state.coef, [2.0, -2.0])

        result = engine.result(state)
        np.testing.assert_allclose(result.std_err, [2.0, 2.0])
        assert np.all(result.std_err >= 0.0)
        np.testing.assert_allclose(result.z_stats, [1.0, -1.0])
        assert result.condition_no == pytest.approx(1.0)


class TestLabels:
    def test_minus_one_is_negative_label(self):
        engine = IRLSEngine()
        signed = engine.transition(engine.initial_state(), -1, [0.0, 1.0])
        boolean = engine.transition(engine.initial_state(), False, [0.0, 1.0])
        np.testing.assert_array_equal(signed.X_transp_Az, boolean.X_transp_Az)
        np.testing.assert_allclose(signed.X_transp_Az, [0.0, -0.5])

    def test_signed_batch_matches_boolean_batch(self):
        X, y = _make_data(n=40)
        engine = IRLSEngine()
        signed = engine.transition_batch(engine.initial_state(), np.where(y, 1, -1), X)
        zero_one = engine.transition_batch(engine.initial_state(), y.astype(int), X)
        boolean = engine.transition_batch(engine.initial_state(), y, X)
        for state in (signed, zero_one):
            np.testing.assert_array_equal(state.X_transp_Az, boolean.X_transp_Az)
            assert state.log_likelihood == boolean.log_likelihood

    @pytest.mark.parametrize("label", [2, 0.5, -2.0])
    def test_other_labels_raise(self, label):
        engine = IRLSEngine()
        with pytest.raises(ValueError, match="Labels must be"):
            engine.transition(engine.initial_state(), label, [1.0, 0.0])


class TestMerge:
    def test_empty_state_is_identity(self):
        X, y = _make_data(n=25)
        engine = IRLSEngine()
        state = engine.transition_batch(engine.initial_state(), y, X)
        merged = engine.merge(engine.initial_state(), state)
        np.testing.assert_array_equal(merged.X_transp_Az, state.X_transp_Az)
        assert merged.log_likelihood == state.log_likelihood

    def test_commutative(self):
        X, y = _make_data(n=40)
        engine = IRLSEngine()
        a = engine.transition_batch(engine.initial_state(), y[:15], X[:15])
        b = engine.transition_batch(engine.initial_state(), y[15:], X[15:])
        np.testing.assert_allclose(
            engine.merge(a, b).X_transp_AX, engine.merge(b, a).X_transp_AX, rtol=1e-12
        )

    def test_mismatched_width_raises(self):
        engine = IRLSEngine()
        left = engine.transition(engine.initial_state(), True, [1.0])
        right = engine.transition(engine.initial_state(), True, [1.0, 1.0])
        with pytest.raises(IncompatibleStatesError):
            engine.merge(left, right)

    def test_seeding_from_wrong_width_raises(self):
        engine = IRLSEngine()
        previous = engine.final(engine.transition(engine.initial_state(), True, [1.0]))
        with pytest.raises(IncompatibleStatesError, match="previous width 1"):
            engine.transition(engine.initial_state(), True, [1.0, 2.0], previous)


class TestIterations:
    def test_empty_state_returns_none(self):
        engine = IRLSEngine()
        assert engine.final(IRLSState()) is None
        assert engine.result(IRLSState()) is None

    def test_terminated_state_reports_nan_standard_errors(self):
        engine = IRLSEngine()
        state = engine.transition(engine.initial_state(), True, [1.0, 0.0])
        state = engine.transition(state, False, [np.nan, 1.0])
        assert state.status == Status.TERMINATED
        result = engine.result(engine.final(state))
        assert result.status == Status.TERMINATED
        assert np.all(np.isnan(result.std_err))
        assert np.isnan(result.condition_no)

    def test_non_finite_statistics_report_nan_standard_errors(self):
        engine = IRLSEngine()
        merged = engine.transition(engine.initial_state(), True, [1.0, 0.0])
        merged.log_likelihood = -np.inf
        state = engine.final(merged)
        assert state.status == Status.TERMINATED
        np.testing.assert_array_equal(state.coef, [0.0, 0.0])
        assert np.all(np.isnan(engine.result(state).std_err))

    def test_partition_invariance(self):
        X, y = _make_data()
        engine = IRLSEngine()
        whole = split = None
        for _ in range(3):
            whole = _iterate(engine, X, y, whole, n_partitions=1)
            split = _iterate(engine, X, y, split, n_partitions=7)
        np.testing.assert_allclose(split.coef, whole.coef, rtol=1e-9)

    def test_log_likelihood_monotone(self):
        X, y = _make_data()
        lls = [s.log_likelihood for s in _fit(IRLSEngine(), X, y, 8)]
        assert all(b >= a - 1e-9 for a, b in zip(lls, lls[1:]))

    def test_seed_keeps_coefficients_and_resets_sums(self):
        X, y = _make_data(n=50)
        engine = IRLSEngine()
        previous = _iterate(engine, X, y)
        state = engine.transition(engine.initial_state(), True, X[0], previous)
        assert state.num_rows == 1
        np.testing.assert_array_equal(state.coef, previous.coef)

    def test_singular_design_uses_pseudo_inverse(self):
        X, y = _make_data(n=80)
        X = np.column_stack([X, X[:, 1]])
        engine = IRLSEngine()
        set_option("pinv_rtol", 1e-10)
        try:
            state = _fit(engine, X, y, 6)[-1]
            condition_no = engine.result(state).condition_no
        finally:
            reset_options()
        assert state.status == Status.IN_PROCESS
        assert np.all(np.isfinite(state.coef))
        # The minimum-norm solution splits the duplicated effect evenly.
        assert state.coef[1] == pytest.approx(state.coef[3], rel=1e-6)
        assert condition_no > 1e10


class TestAgainstStatsmodels:
    def test_coefficients_and_standard_errors(self):
        sm = pytest.importorskip("statsmodels.api")
        X, y = _make_data()
        reference = sm.Logit(y.astype(float), X).fit(disp=0)

        engine = IRLSEngine()
        result = engine.result(_fit(engine, X, y, 15)[-1])

        np.testing.assert_allclose(result.coef, reference.params, rtol=1e-6)
        np.testing.assert_allclose(result.std_err, reference.bse, rtol=1e-6)
        np.testing.assert_allclose(result.z_stats, reference.tvalues, rtol=1e-6)
        np.testing.assert_allclose(result.p_values, reference.pvalues, rtol=1e-5)
        assert result.log_likelihood == pytest.approx(reference.llf, rel=1e-8)
