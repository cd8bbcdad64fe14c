"""Iteratively-reweighted least squares (Newton's method).

Each iteration accumulates ``X^T A X`` and ``X^T A z`` at the current
coefficients, where ``a = σ(xᵀc)·σ(−xᵀc)`` and the working response is
``z = xᵀc + σ(−y·xᵀc)·y / a``.  ``a·z`` is accumulated directly so a
vanishing weight cannot overflow ``z``.  The final step solves

    c = (X^T A X)^+ · X^T A z

in closed form.  It then reuses the intra-iteration buffers: the
diagonal of ``(X^T A X)^+`` overwrites ``X_transp_Az`` and the
condition number overwrites ``X_transp_AX[0, 0]``, so :meth:`result`
reads them back instead of decomposing the matrix a second time.
When the step is skipped because the state is ``TERMINATED`` both
slots hold NaN, so the reported standard errors are NaN as well.
"""

from __future__ import annotations

from typing import ClassVar

import numpy as np

from .._linalg import log1p_exp, sigma, symmetric_pseudo_inverse
from .._results import LogisticRegressionResult, build_regression_result
from .._state import IRLSState, Status
from ._base import _FittingEngine, all_finite, terminate


def _without_variance(state: IRLSState) -> IRLSState:
    """Mark the result buffers as unset when no Newton step was taken."""
    state.X_transp_Az = np.full(state.width_of_x, np.nan)
    state.X_transp_AX[0, 0] = np.nan
    return state


class IRLSEngine(_FittingEngine):
    """IRLS aggregate (``method="irls"``)."""

    state_class: ClassVar[type[IRLSState]] = IRLSState

    def _accumulate(
        self,
        state: IRLSState,
        signs: np.ndarray,
        X: np.ndarray,
        context: IRLSState | None,
    ) -> None:
        xc = X @ state.coef
        a = sigma(xc) * sigma(-xc)
        az = xc * a + sigma(-signs * xc) * signs
        state.num_rows += X.shape[0]
        state.X_transp_Az += X.T @ az
        state.X_transp_AX += (X.T * a) @ X
        state.log_likelihood -= float(np.sum(log1p_exp(-signs * xc)))

    def final(self, state: IRLSState) -> IRLSState | None:
        """Take one Newton step.

        Returns:
            The updated state, or ``None`` if no rows were folded.
        """
        self._check_state(state)
        if state.num_rows == 0:
            return None
        state = state.copy()
        if state.status == Status.TERMINATED:
            return _without_variance(state)
        # Non-finite input to the eigen-solver is rejected up front.
        if not all_finite(state.X_transp_AX, state.X_transp_Az, state.log_likelihood):
            terminate(
                state,
                "Over- or underflow in intermediate calculation. Input data "
                "is likely of poor numerical condition.",
            )
            return _without_variance(state)

        decomposition = symmetric_pseudo_inverse(state.X_transp_AX)
        coef = decomposition.inverse @ state.X_transp_Az
        if not all_finite(coef):
            terminate(
                state,
                "Over- or underflow in Newton step, while updating "
                "coefficients. Input data is likely of poor numerical "
                "condition.",
            )
            return _without_variance(state)

        state.coef = coef
        state.X_transp_Az = np.diag(decomposition.inverse).copy()
        state.X_transp_AX[0, 0] = decomposition.condition_no
        return state

    def result(self, state: IRLSState) -> LogisticRegressionResult | None:
        """Coefficients and Wald diagnostics, or ``None`` without data.

        Expects a state returned by :meth:`final`.
        """
        self._check_state(state)
        if state.num_rows == 0:
            return None
        return build_regression_result(
            state.coef,
            state.X_transp_Az,
            state.log_likelihood,
            state.X_transp_AX[0, 0],
            state.status,
        )
