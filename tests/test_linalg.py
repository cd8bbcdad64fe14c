"""Tests for the link helpers and the symmetric pseudo-inverse."""

import numpy as np
import pytest

import logistic_aggregates._config as _cfg
from logistic_aggregates._linalg import log1p_exp, sigma, symmetric_pseudo_inverse


class TestLinkHelpers:
    def test_sigma_midpoint(self):
        assert sigma(0.0) == pytest.approx(0.5)

    def test_sigma_symmetry(self):
        x = np.linspace(-30, 30, 13)
        np.testing.assert_allclose(sigma(x) + sigma(-x), 1.0)

    def test_sigma_extreme_arguments_do_not_overflow(self):
        values = sigma(np.array([-800.0, 800.0]))
        assert np.all(np.isfinite(values))
        np.testing.assert_allclose(values, [0.0, 1.0])

    def test_log1p_exp_matches_naive_formula(self):
        x = np.array([-5.0, -0.5, 0.0, 0.5, 5.0])
        np.testing.assert_allclose(log1p_exp(x), np.log1p(np.exp(x)))

    def test_log1p_exp_large_argument(self):
        assert log1p_exp(1000.0) == pytest.approx(1000.0)


class TestSymmetricPseudoInverse:
    def setup_method(self):
        _cfg.reset_options()

    def teardown_method(self):
        _cfg.reset_options()

    def test_invertible_matrix_matches_inverse(self):
        A = np.array([[4.0, 1.0, 0.5], [1.0, 3.0, 0.2], [0.5, 0.2, 2.0]])
        decomposition = symmetric_pseudo_inverse(A)
        np.testing.assert_allclose(decomposition.inverse, np.linalg.inv(A), atol=1e-12)

    def test_condition_number(self):
        decomposition = symmetric_pseudo_inverse(np.diag([8.0, 2.0]))
        assert decomposition.condition_no == pytest.approx(4.0)
        np.testing.assert_allclose(decomposition.eigenvalues, [2.0, 8.0])

    def test_singular_matrix_gives_moore_penrose_inverse(self):
        v = np.array([1.0, 2.0, 3.0])
        A = np.outer(v, v)
        decomposition = symmetric_pseudo_inverse(A)
        np.testing.assert_allclose(
            decomposition.inverse, np.linalg.pinv(A, hermitian=True), atol=1e-10
        )

    def test_exact_zero_eigenvalue_gives_infinite_condition_number(self):
        decomposition = symmetric_pseudo_inverse(np.diag([1.0, 0.0]))
        assert decomposition.condition_no == np.inf
        np.testing.assert_allclose(decomposition.inverse, np.diag([1.0, 0.0]))

    def test_reads_lower_triangle_only(self):
        A = np.array([[2.0, 0.5], [0.5, 1.0]])
        lower = np.tril(A)
        np.testing.assert_allclose(
            symmetric_pseudo_inverse(lower).inverse,
            symmetric_pseudo_inverse(A).inverse,
        )

    def test_empty_matrix(self):
        decomposition = symmetric_pseudo_inverse(np.zeros((0, 0)))
        assert decomposition.inverse.shape == (0, 0)
        assert np.isnan(decomposition.condition_no)

    def test_rtol_option_drops_small_eigenvalues(self):
        A = np.diag([1.0, 1e-6])
        np.testing.assert_allclose(
            symmetric_pseudo_inverse(A).inverse, np.diag([1.0, 1e6])
        )
        _cfg.set_option("pinv_rtol", 1e-3)
        np.testing.assert_allclose(
            symmetric_pseudo_inverse(A).inverse, np.diag([1.0, 0.0])
        )
