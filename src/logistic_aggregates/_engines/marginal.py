"""Average marginal effects of a fitted logistic model.

For fixed coefficients ``c`` the marginal effect of feature ``j`` is

    ME_j = c_j · (1/n) Σ G(xᵀc)(1 − G(xᵀc)),    G(t) = eᵗ / (1 + eᵗ)

Standard errors follow the delta method evaluated at the mean feature
vector ``x̄``: with ``p = G(cᵀx̄)`` and Jacobian

    Δ = I + (1 − 2p) · c x̄ᵀ

the covariance is ``p(1−p) · Δ (X^T A X)^+ Δᵀ · p(1−p)``.  P-values use
a Student t reference with ``n − p`` degrees of freedom and are withheld
when ``n ≤ p``.
"""

from __future__ import annotations

from typing import Any, ClassVar

import numpy as np
from scipy import stats

from .._linalg import sigma, symmetric_pseudo_inverse
from .._results import MarginalEffectsResult
from .._state import MarginalState, Status
from ._base import _PostFitEngine, all_finite, terminate


class MarginalEffectsEngine(_PostFitEngine):
    """Marginal-effects aggregate."""

    state_class: ClassVar[type[MarginalState]] = MarginalState

    def _accumulate(
        self,
        state: MarginalState,
        signs: np.ndarray,
        X: np.ndarray,
        context: Any,
    ) -> None:
        coef = self._coefficients(state, context)
        if not all_finite(coef):
            terminate(state, "Coefficients are not finite.")
            return
        xc = X @ coef
        g = sigma(xc)
        a = g * sigma(-xc)
        state.num_rows += X.shape[0]
        state.marginal_effects_per_observation += float(np.sum(g * (1.0 - g)))
        state.X_bar += X.sum(axis=0)
        state.X_transp_AX += (X.T * a) @ X

    def final(self, state: MarginalState) -> MarginalState | None:
        """Compute the delta-method covariance of the marginal effects.

        Returns:
            The state with ``std_err_matrix`` filled in, or ``None`` if
            no rows were folded.
        """
        self._check_state(state)
        if state.num_rows == 0:
            return None
        state = state.copy()
        if state.status == Status.TERMINATED:
            return state
        if not all_finite(state.X_transp_AX, state.X_bar):
            return terminate(
                state,
                "Over- or underflow in intermediate calculation. Input data "
                "is likely of poor numerical condition.",
            )

        variance = symmetric_pseudo_inverse(state.X_transp_AX).inverse
        n = float(state.num_rows)
        xc = float(state.coef @ state.X_bar) / n
        p = float(sigma(xc))
        delta = (1.0 - 2.0 * p) * np.outer(state.coef, state.X_bar) / n
        delta[np.diag_indices_from(delta)] += 1.0

        with np.errstate(over="ignore", invalid="ignore"):
            std_err_matrix = p * (1.0 - p) * (delta @ variance @ delta.T) * p * (1.0 - p)
        if not all_finite(std_err_matrix):
            return terminate(
                state,
                "Over- or underflow in delta-method covariance. Input data "
                "is likely of poor numerical condition.",
            )

        state.std_err_matrix = std_err_matrix
        state.iteration += 1
        return state

    def result(self, state: MarginalState) -> MarginalEffectsResult | None:
        """Marginal effects with t tests, or ``None`` without data.

        A state that has not been through :meth:`final` is finalised
        first.
        """
        self._check_state(state)
        if state.num_rows == 0:
            return None
        if state.std_err_matrix is None:
            state = self.final(state)

        coef = state.coef.copy()
        marginal_effects = coef * state.marginal_effects_per_observation / state.num_rows
        if state.std_err_matrix is None:
            variance_diagonal = np.full(state.width_of_x, np.nan)
        else:
            variance_diagonal = np.diag(state.std_err_matrix)
        with np.errstate(divide="ignore", invalid="ignore"):
            std_err = np.sqrt(variance_diagonal)
            t_stats = marginal_effects / std_err

        p_values = None
        if state.num_rows > state.width_of_x:
            dof = state.num_rows - state.width_of_x
            p_values = 2.0 * stats.t.sf(np.abs(t_stats), dof)

        return MarginalEffectsResult(
            marginal_effects=marginal_effects,
            coef=coef,
            std_err=std_err,
            t_stats=t_stats,
            p_values=p_values,
        )
