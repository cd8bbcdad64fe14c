"""Conjugate-gradient ascent on the logistic log-likelihood.

Each iteration accumulates, at the current coefficients ``c``,

* the gradient  ``g = Σ σ(−y·xᵀc)·y·x``,
* the negated Hessian  ``X^T A X`` with ``a = σ(xᵀc)·σ(−xᵀc)``,
* the log-likelihood  ``l(c) = −Σ ln(1 + exp(−y·xᵀc))``.

The final step picks the next conjugate direction with the
Hestenes–Stiefel rule

    β_k = g_kᵀ(g_k − g_{k−1}) / d_{k−1}ᵀ(g_k − g_{k−1})

restarting (β_k = 0) whenever the Polak–Ribière quotient is not
positive, and then takes the exact Newton step along that direction:

    c_k = c_{k−1} + (g_kᵀd_k / d_kᵀ(X^T A X)d_k) · d_k
"""

from __future__ import annotations

from typing import ClassVar

import numpy as np

from .._linalg import log1p_exp, sigma, symmetric_pseudo_inverse
from .._results import LogisticRegressionResult, build_regression_result
from .._state import CGState, Status
from ._base import _FittingEngine, all_finite, terminate

# Smallest positive subnormal double: Powell-restart threshold.
_DENORM_MIN = np.nextafter(0.0, 1.0)


class CGEngine(_FittingEngine):
    """Conjugate-gradient aggregate (``method="cg"``)."""

    state_class: ClassVar[type[CGState]] = CGState

    def _accumulate(
        self,
        state: CGState,
        signs: np.ndarray,
        X: np.ndarray,
        context: CGState | None,
    ) -> None:
        xc = X @ state.coef
        state.num_rows += X.shape[0]
        state.grad_new += X.T @ (sigma(-signs * xc) * signs)
        a = sigma(xc) * sigma(-xc)
        state.X_transp_AX += (X.T * a) @ X
        state.log_likelihood -= float(np.sum(log1p_exp(-signs * xc)))

    def final(self, state: CGState) -> CGState | None:
        """Take one conjugate-gradient step.

        Returns:
            The updated state, or ``None`` if no rows were folded.
        """
        self._check_state(state)
        if state.num_rows == 0:
            return None
        state = state.copy()
        if state.status == Status.TERMINATED:
            return state
        if not all_finite(state.grad_new, state.X_transp_AX, state.log_likelihood):
            return terminate(
                state,
                "Over- or underflow in intermediate calculation. Input data "
                "is likely of poor numerical condition.",
            )

        grad = state.grad_new.copy()
        with np.errstate(divide="ignore", invalid="ignore"):
            if not np.any(grad):
                # Stationary point: keep the coefficients.
                direction = np.zeros_like(grad)
                beta = 0.0
                step = 0.0
            else:
                if state.iteration == 0:
                    direction = grad.copy()
                    beta = state.beta
                else:
                    grad_diff = grad - state.grad
                    numerator = grad @ grad_diff
                    beta = numerator / (state.direction @ grad_diff)
                    # Powell restart: Polak-Ribière beta would be negative.
                    if numerator / (state.grad @ state.grad) <= _DENORM_MIN:
                        beta = 0.0
                    direction = grad - beta * state.direction
                step = (grad @ direction) / (direction @ state.X_transp_AX @ direction)
            coef = state.coef + step * direction

        if not all_finite(coef):
            return terminate(
                state,
                "Over- or underflow in conjugate-gradient step, while "
                "updating coefficients. Input data is likely of poor "
                "numerical condition.",
            )

        state.direction = direction
        state.grad = grad
        state.beta = float(beta)
        state.coef = coef
        state.iteration += 1
        return state

    def result(self, state: CGState) -> LogisticRegressionResult | None:
        """Coefficients and Wald diagnostics, or ``None`` without data."""
        self._check_state(state)
        if state.num_rows == 0:
            return None
        decomposition = symmetric_pseudo_inverse(state.X_transp_AX)
        return build_regression_result(
            state.coef,
            np.diag(decomposition.inverse),
            state.log_likelihood,
            decomposition.condition_no,
            state.status,
        )
