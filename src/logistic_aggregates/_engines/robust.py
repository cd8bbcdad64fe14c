"""Huber–White sandwich variance for fixed logistic coefficients.

Given converged coefficients ``c`` (passed with every observation), the
pass accumulates

* the *bread* input ``X^T A X`` with ``a = σ(xᵀc)·σ(−xᵀc)`` (lower
  triangle only — the pseudo-inverse reads nothing else), and
* the *meat* ``Σ g gᵀ`` with per-observation score
  ``g = σ(−y·xᵀc)·y·x``.

The final step forms ``V = B · M · B`` with ``B = (X^T A X)^+``.
"""

from __future__ import annotations

from typing import Any, ClassVar

import numpy as np

from .._linalg import sigma, symmetric_pseudo_inverse
from .._results import RobustVarianceResult, wald_statistics
from .._state import RobustState, Status
from ._base import _PostFitEngine, all_finite, terminate


class RobustVarianceEngine(_PostFitEngine):
    """Sandwich-variance aggregate."""

    state_class: ClassVar[type[RobustState]] = RobustState

    def _accumulate(
        self,
        state: RobustState,
        signs: np.ndarray,
        X: np.ndarray,
        context: Any,
    ) -> None:
        coef = self._coefficients(state, context)
        if not all_finite(coef):
            terminate(state, "Coefficients are not finite.")
            return
        xc = X @ coef
        scores = (sigma(-signs * xc) * signs)[:, np.newaxis] * X
        a = sigma(xc) * sigma(-xc)
        state.num_rows += X.shape[0]
        state.meat += scores.T @ scores
        state.X_transp_AX += np.tril((X.T * a) @ X)

    def final(self, state: RobustState) -> RobustState | None:
        """Compute the sandwich matrix.

        Returns:
            The state with ``variance`` filled in, or ``None`` if no
            rows were folded.
        """
        self._check_state(state)
        if state.num_rows == 0:
            return None
        state = state.copy()
        if state.status == Status.TERMINATED:
            return state
        if not all_finite(state.X_transp_AX, state.meat):
            return terminate(
                state,
                "Over- or underflow in intermediate calculation. Input data "
                "is likely of poor numerical condition.",
            )

        bread = symmetric_pseudo_inverse(state.X_transp_AX).inverse
        with np.errstate(over="ignore", invalid="ignore"):
            variance = bread @ state.meat @ bread
        if not all_finite(variance):
            return terminate(
                state,
                "Over- or underflow in sandwich product. Input data is "
                "likely of poor numerical condition.",
            )

        state.variance = variance
        state.iteration += 1
        return state

    def result(self, state: RobustState) -> RobustVarianceResult | None:
        """Robust standard errors and z tests, or ``None`` without data.

        A state that has not been through :meth:`final` is finalised
        first.
        """
        self._check_state(state)
        if state.num_rows == 0:
            return None
        if state.variance is None:
            state = self.final(state)
        if state.variance is None:
            variance_diagonal = np.full(state.width_of_x, np.nan)
        else:
            variance_diagonal = np.diag(state.variance)
        std_err, z_stats, p_values = wald_statistics(state.coef, variance_diagonal)
        return RobustVarianceResult(
            coef=state.coef.copy(),
            std_err=std_err,
            z_stats=z_stats,
            p_values=p_values,
        )
