"""In-memory reference driver for the logistic-regression aggregates.

The engines in :mod:`._engines` are driver-agnostic: they never decide
how rows are partitioned, when to stop iterating, or in which order
partials are merged.  This module supplies the one driver the package
ships, for data that fits in memory:

1. Split the rows into ``n_partitions`` contiguous blocks.
2. Fold each block from the empty state (seeded with the previous
   iteration's final state).  With ``n_jobs != 1`` the folds run on a
   ``joblib`` thread pool; NumPy releases the GIL in the matrix
   products that dominate each fold.
3. Left-fold the partials through ``merge``.
4. Run ``final`` and compare the new state with the previous one via
   ``distance``.
5. Stop when the distance drops below ``tolerance``, when ``max_iter``
   iterations have run, or when the state is ``TERMINATED``.

Lifecycle::

    previous = None
    for it in 1..max_iter:
        partials = [fold(block, previous) for block in blocks]
        state    = final(reduce(merge, partials))
        if TERMINATED(state) or distance(state, previous) < tol: break
        previous = state
    return result(state)
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import replace
from functools import reduce
from typing import Any

import numpy as np
from joblib import Parallel, delayed

from ._compat import _design_matrix, _label_vector
from ._engines import (
    FittingEngine,
    MarginalEffectsEngine,
    RobustVarianceEngine,
    resolve_method,
)
from ._results import (
    LogisticRegressionResult,
    MarginalEffectsResult,
    RobustVarianceResult,
)
from ._state import MAX_WIDTH, Status

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Input validation
# ------------------------------------------------------------------ #


def _validate_inputs(
    X_values: np.ndarray,
    y_values: np.ndarray | None,
    n_partitions: int,
) -> None:
    if X_values.shape[0] == 0:
        raise ValueError("X must contain at least one observation.")
    if X_values.shape[1] == 0:
        raise ValueError("X must contain at least one feature.")
    if X_values.shape[1] > MAX_WIDTH:
        raise ValueError(
            f"X has {X_values.shape[1]} columns; at most {MAX_WIDTH} are supported."
        )
    if not np.all(np.isfinite(X_values)):
        raise ValueError("X contains NaN or infinite values.")
    if y_values is not None and y_values.shape[0] != X_values.shape[0]:
        raise ValueError(
            f"X has {X_values.shape[0]} rows but y has {y_values.shape[0]}."
        )
    if n_partitions < 1:
        raise ValueError(f"n_partitions must be at least 1, got {n_partitions}.")


def _partition(n_rows: int, n_partitions: int) -> list[np.ndarray]:
    """Row-index blocks; never more blocks than rows."""
    n_blocks = min(n_partitions, n_rows)
    return [block for block in np.array_split(np.arange(n_rows), n_blocks)]


def _fold_partitions(
    engine: Any,
    blocks: list[np.ndarray],
    labels: np.ndarray,
    X_values: np.ndarray,
    context: Any,
    n_jobs: int,
) -> list[Any]:
    """Fold every block from the empty state; one partial per block."""

    def _fold_one(rows: np.ndarray) -> Any:
        return engine.transition_batch(
            engine.initial_state(), labels[rows], X_values[rows], context
        )

    if n_jobs == 1 or len(blocks) == 1:
        return [_fold_one(rows) for rows in blocks]
    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_fold_one)(rows) for rows in blocks
    )


def _combine(engine: Any, partials: list[Any]) -> Any:
    """Merge the partials; a terminated partial terminates the merge.

    A partial that was terminated before folding any row is the merge
    identity and would otherwise be dropped, so its status is
    re-applied after the merge.
    """
    merged = reduce(engine.merge, partials, engine.initial_state())
    if any(p.status == Status.TERMINATED for p in partials):
        merged.status = Status.TERMINATED
    return merged


# ------------------------------------------------------------------ #
# Public drivers
# ------------------------------------------------------------------ #


def logistic_regression(
    X: Any,
    y: Any,
    *,
    method: str | FittingEngine = "irls",
    max_iter: int = 20,
    tolerance: float = 1e-4,
    n_partitions: int = 1,
    n_jobs: int = 1,
    feature_names: list[str] | None = None,
) -> LogisticRegressionResult:
    """Fit a logistic regression by iterating an aggregate engine.

    No intercept column is added; include a column of ones in *X* if
    the model should have one.

    Args:
        X: Feature matrix ``(n, p)`` — NumPy array, pandas or Polars
            DataFrame.
        y: Binary response ``(n,)`` — booleans or ``{0, 1}``.
        method: ``"irls"``, ``"cg"``, ``"igd"`` or an engine instance.
        max_iter: Iteration cap.
        tolerance: Stop once the log-likelihood changes by less than
            this between two iterations.
        n_partitions: Number of row blocks folded independently and
            then merged.
        n_jobs: Parallelism for the per-block folds (``joblib``
            threads; ``-1`` uses every core).
        feature_names: Optional labels for the columns of *X*.
            Defaults to the DataFrame columns, or ``None`` for arrays.

    Returns:
        A :class:`~logistic_aggregates.LogisticRegressionResult`.  Its
        ``status`` is ``COMPLETED`` on convergence, ``IN_PROCESS`` when
        ``max_iter`` ran out, and ``TERMINATED`` on numerical failure.

    Raises:
        ValueError: On empty or mis-shaped inputs, non-binary *y*,
            ``max_iter < 1``, ``tolerance < 0`` or ``n_partitions < 1``.
    """
    X_values, column_names = _design_matrix(X)
    labels = _label_vector(y)
    _validate_inputs(X_values, labels, n_partitions)
    if feature_names is None:
        feature_names = column_names
    elif len(feature_names) != X_values.shape[1]:
        raise ValueError(
            f"Got {len(feature_names)} feature names for "
            f"{X_values.shape[1]} columns."
        )
    if max_iter < 1:
        raise ValueError(f"max_iter must be at least 1, got {max_iter}.")
    if tolerance < 0:
        raise ValueError(f"tolerance must be non-negative, got {tolerance}.")

    engine = resolve_method(method)
    blocks = _partition(X_values.shape[0], n_partitions)

    previous = None
    state = None
    n_iter = 0
    for n_iter in range(1, max_iter + 1):
        partials = _fold_partitions(engine, blocks, labels, X_values, previous, n_jobs)
        state = engine.final(_combine(engine, partials))
        if state.status == Status.TERMINATED:
            # Report the last good iterate if there is one.
            if previous is not None:
                state = previous.copy()
                state.status = Status.TERMINATED
            break

        if previous is not None:
            gap = engine.distance(state, previous)
            logger.debug(
                "%s iteration %d: log-likelihood %.6g, distance %.3g",
                engine.name, n_iter, state.log_likelihood, gap,
            )
            if gap < tolerance:
                state.status = Status.COMPLETED
                break
        else:
            logger.debug(
                "%s iteration %d: log-likelihood %.6g",
                engine.name, n_iter, state.log_likelihood,
            )
        previous = state

    if state.status == Status.TERMINATED:
        warnings.warn(
            f"{engine.name.upper()} fit terminated after {n_iter} "
            "iteration(s); input data is likely of poor numerical "
            "condition. Results are not reliable.",
            UserWarning,
            stacklevel=2,
        )
    elif state.status == Status.IN_PROCESS:
        warnings.warn(
            f"{engine.name.upper()} fit did not converge within "
            f"max_iter={max_iter} iterations (tolerance={tolerance}).",
            UserWarning,
            stacklevel=2,
        )

    result = engine.result(state)
    if result is None:
        raise RuntimeError("Fit produced no result; no rows were accumulated.")
    return _with_metadata(
        result,
        method=engine.name,
        num_rows=int(X_values.shape[0]),
        num_iterations=n_iter,
        feature_names=feature_names,
    )


def robust_variance(
    X: Any,
    y: Any,
    coef: Any,
    *,
    n_partitions: int = 1,
    n_jobs: int = 1,
) -> RobustVarianceResult:
    """Sandwich standard errors for already fitted coefficients.

    Args:
        X: Feature matrix ``(n, p)``.
        y: Binary response ``(n,)``.
        coef: Fitted coefficients ``(p,)`` (e.g.
            ``logistic_regression(X, y).coef``).
        n_partitions: Number of row blocks folded independently.
        n_jobs: Parallelism for the per-block folds.

    Returns:
        A :class:`~logistic_aggregates.RobustVarianceResult`.
    """
    X_values, feature_names = _design_matrix(X)
    labels = _label_vector(y)
    _validate_inputs(X_values, labels, n_partitions)
    result = _run_post_fit(
        RobustVarianceEngine(), X_values, labels, coef, n_partitions, n_jobs
    )
    return _with_metadata(
        result, num_rows=int(X_values.shape[0]), feature_names=feature_names
    )


def marginal_effects(
    X: Any,
    coef: Any,
    *,
    n_partitions: int = 1,
    n_jobs: int = 1,
) -> MarginalEffectsResult:
    """Average marginal effects for already fitted coefficients.

    The response is not needed: marginal effects depend only on the
    features and the coefficients.

    Args:
        X: Feature matrix ``(n, p)``.
        coef: Fitted coefficients ``(p,)``.
        n_partitions: Number of row blocks folded independently.
        n_jobs: Parallelism for the per-block folds.

    Returns:
        A :class:`~logistic_aggregates.MarginalEffectsResult`.
    """
    X_values, feature_names = _design_matrix(X)
    _validate_inputs(X_values, None, n_partitions)
    labels = np.zeros(X_values.shape[0], dtype=bool)
    result = _run_post_fit(
        MarginalEffectsEngine(), X_values, labels, coef, n_partitions, n_jobs
    )
    return _with_metadata(
        result, num_rows=int(X_values.shape[0]), feature_names=feature_names
    )


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _run_post_fit(
    engine: Any,
    X_values: np.ndarray,
    labels: np.ndarray,
    coef: Any,
    n_partitions: int,
    n_jobs: int,
) -> Any:
    coef = np.asarray(coef, dtype=float).reshape(-1)
    if coef.shape[0] != X_values.shape[1]:
        raise ValueError(
            f"coef has {coef.shape[0]} entries but X has {X_values.shape[1]} columns."
        )
    if not np.all(np.isfinite(coef)):
        raise ValueError("coef contains NaN or infinite values.")

    blocks = _partition(X_values.shape[0], n_partitions)
    partials = _fold_partitions(engine, blocks, labels, X_values, coef, n_jobs)
    state = engine.final(_combine(engine, partials))
    if state is None:
        raise RuntimeError("No rows were accumulated.")
    if state.status == Status.TERMINATED:
        warnings.warn(
            f"{engine.name} pass terminated; input data is likely of poor "
            "numerical condition. Results are not reliable.",
            UserWarning,
            stacklevel=3,
        )
    return engine.result(state)


def _with_metadata(result: Any, **metadata: Any) -> Any:
    """Return a copy of the frozen *result* with metadata fields set."""
    return replace(result, **metadata)
