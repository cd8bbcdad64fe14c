"""Incremental gradient ascent.

Every observation moves the coefficients immediately:

    c ← c + stepsize · σ(−y·xᵀc) · y · x

so the row order inside a partition matters and there is no deferred
update in the final step.  Partitions are reconciled in :meth:`merge`
by a row-count-weighted average of their coefficient vectors; after
any sequence of merges the coefficients are the average of every
partition's trajectory, weighted by that partition's share of rows.

The first iteration of a fit starts every coefficient at
:data:`~.._state.IGD_INITIAL_COEF` rather than zero.  ``X^T A X`` and
the log-likelihood are evaluated at the coefficients the iteration
started from (the previous final state's, or that seed), which keeps
them independent of partitioning and row order.
"""

from __future__ import annotations

from typing import ClassVar

import numpy as np

from .._linalg import log1p_exp, sigma, symmetric_pseudo_inverse
from .._results import LogisticRegressionResult, build_regression_result
from .._state import (
    IGD_INITIAL_COEF,
    IGDState,
    Status,
    merge_status_terminated,
)
from ._base import _FittingEngine, all_finite, terminate


class IGDEngine(_FittingEngine):
    """Incremental-gradient aggregate (``method="igd"``)."""

    state_class: ClassVar[type[IGDState]] = IGDState
    merge_status = staticmethod(merge_status_terminated)

    def _start_iteration(self, width: int, context: IGDState | None) -> IGDState:
        state = self._seed(width, context)
        if context is None:
            state.reset()
            state.coef.fill(IGD_INITIAL_COEF)
        return state

    def _accumulate(
        self,
        state: IGDState,
        signs: np.ndarray,
        X: np.ndarray,
        context: IGDState | None,
    ) -> None:
        if context is None:
            start_coef = np.full(state.width_of_x, IGD_INITIAL_COEF)
        else:
            start_coef = context.coef

        xc = X @ start_coef
        a = sigma(xc) * sigma(-xc)
        state.num_rows += X.shape[0]
        state.X_transp_AX += (X.T * a) @ X
        state.log_likelihood -= float(np.sum(log1p_exp(-signs * xc)))

        for y, x in zip(signs, X):
            xc_row = x @ state.coef
            state.coef += state.stepsize * sigma(-xc_row * y) * y * x
        if not all_finite(state.coef):
            terminate(
                state,
                "Overflow or underflow in incremental-gradient iteration. "
                "Input data is likely of poor numerical condition.",
            )

    def _merge_into(self, merged: IGDState, other: IGDState) -> None:
        total = float(merged.num_rows) + float(other.num_rows)
        merged.coef = (
            merged.num_rows / total * merged.coef
            + other.num_rows / total * other.coef
        )
        super()._merge_into(merged, other)

    def final(self, state: IGDState) -> IGDState | None:
        """Check the merged state; the coefficients are already updated.

        Returns:
            The state (TERMINATED if the coefficients overflowed), or
            ``None`` if no rows were folded.
        """
        self._check_state(state)
        if state.num_rows == 0:
            return None
        state = state.copy()
        if state.status != Status.TERMINATED and not all_finite(state.coef):
            return terminate(
                state,
                "Overflow or underflow in incremental-gradient iteration. "
                "Input data is likely of poor numerical condition.",
            )
        return state

    def result(self, state: IGDState) -> LogisticRegressionResult | None:
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
