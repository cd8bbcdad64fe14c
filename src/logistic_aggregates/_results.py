"""Typed result objects for the logistic-regression aggregates.

Frozen dataclasses that provide:

* **Attribute access** — ``result.coef``, ``result.std_err``, etc.
* **Dict-like access** — ``result["coef"]``, ``result.get("key")``,
  ``"key" in result`` for consumers that prefer bracket syntax.
* **Serialisation** — ``.to_dict()`` returns a plain ``dict[str, Any]``
  with all NumPy types converted to native Python.

Three concrete result types mirror the three kinds of terminal state:

* :class:`LogisticRegressionResult` — CG, IRLS and IGD fits.
* :class:`RobustVarianceResult` — sandwich standard errors.
* :class:`MarginalEffectsResult` — average marginal effects.

All three are frozen: a result is a snapshot of a terminal state and
is not updated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar

import numpy as np
from scipy import stats

from ._state import Status

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy scalars/arrays to Python-native types.

    Handles nested dicts, lists, np.ndarray, np.integer, and
    np.floating so that :meth:`to_dict` returns a fully
    JSON-serialisable structure.
    """
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer, np.bool_)):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for result dataclasses.

    Supports three access patterns:

    1. ``result["key"]``     — raises ``KeyError`` on miss
    2. ``result.get(key, d)`` — returns *d* on miss (default ``None``)
    3. ``"key" in result``   — membership test

    ``_SERIALIZERS`` maps field names to conversion functions applied
    before :func:`_numpy_to_python` in :meth:`to_dict`.
    """

    _SERIALIZERS: ClassVar[dict[str, Any]] = {
        "status": int,
    }

    def __getitem__(self, key: str) -> Any:
        """Attribute lookup via bracket syntax."""
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        """Attribute lookup with a fallback default."""
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        """Membership test: ``"key" in result``."""
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary.

        Applies per-field serializers from ``_SERIALIZERS``, then runs
        :func:`_numpy_to_python` on every value so the returned dict
        is fully JSON-serialisable.
        """
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            val = getattr(self, f.name)
            if f.name in self._SERIALIZERS and val is not None:
                val = self._SERIALIZERS[f.name](val)
            result[f.name] = _numpy_to_python(val)
        return result


# ------------------------------------------------------------------ #
# Result types
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class LogisticRegressionResult(_DictAccessMixin):
    """Coefficients and Wald diagnostics of a CG, IRLS or IGD fit.

    The first eight fields are produced by the engines' ``result``
    step.  The trailing metadata fields are filled in by
    :func:`~logistic_aggregates.logistic_regression` and stay ``None``
    when the engines are driven by hand.
    """

    coef: np.ndarray
    log_likelihood: float
    std_err: np.ndarray
    z_stats: np.ndarray
    p_values: np.ndarray
    odds_ratios: np.ndarray
    condition_no: float
    status: Status

    method: str | None = None
    num_rows: int | None = None
    num_iterations: int | None = None
    feature_names: list[str] | None = None


@dataclass(frozen=True)
class RobustVarianceResult(_DictAccessMixin):
    """Huber–White sandwich standard errors for fixed coefficients."""

    coef: np.ndarray
    std_err: np.ndarray
    z_stats: np.ndarray
    p_values: np.ndarray

    num_rows: int | None = None
    feature_names: list[str] | None = None


@dataclass(frozen=True)
class MarginalEffectsResult(_DictAccessMixin):
    """Average marginal effects with delta-method standard errors.

    ``p_values`` is ``None`` when there are no residual degrees of
    freedom (``num_rows <= len(coef)``).
    """

    marginal_effects: np.ndarray
    coef: np.ndarray
    std_err: np.ndarray
    t_stats: np.ndarray
    p_values: np.ndarray | None

    num_rows: int | None = None
    feature_names: list[str] | None = None


# ------------------------------------------------------------------ #
# Shared builder
# ------------------------------------------------------------------ #


def wald_statistics(
    coef: np.ndarray,
    variance_diagonal: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(std_err, z_stats, p_values)`` under a normal reference.

    A zero standard error gives an infinite (or NaN, for a zero
    coefficient) z statistic rather than an exception.
    """
    coef = np.asarray(coef, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        std_err = np.sqrt(np.asarray(variance_diagonal, dtype=float))
        z_stats = coef / std_err
    p_values = 2.0 * stats.norm.cdf(-np.abs(z_stats))
    return std_err, z_stats, p_values


def build_regression_result(
    coef: np.ndarray,
    variance_diagonal: np.ndarray,
    log_likelihood: float,
    condition_no: float,
    status: Status,
) -> LogisticRegressionResult:
    """Assemble the diagnostic result shared by CG, IRLS and IGD.

    Args:
        coef: Coefficient vector ``(p,)``.
        variance_diagonal: Diagonal of ``(X^T A X)^+`` ``(p,)``.
        log_likelihood: Log-likelihood accumulated in the last iteration.
        condition_no: Condition number of ``X^T A X``.
        status: Status of the terminal state.

    Returns:
        A :class:`LogisticRegressionResult` with standard errors, Wald
        z statistics, two-sided normal p-values and odds ratios.
    """
    coef = np.array(coef, dtype=float)
    std_err, z_stats, p_values = wald_statistics(coef, variance_diagonal)
    with np.errstate(over="ignore"):
        odds_ratios = np.exp(coef)
    return LogisticRegressionResult(
        coef=coef,
        log_likelihood=float(log_likelihood),
        std_err=std_err,
        z_stats=z_stats,
        p_values=p_values,
        odds_ratios=odds_ratios,
        condition_no=float(condition_no),
        status=Status(status),
    )
