"""Formatted ASCII table display utilities for logistic-regression results.

These tables mirror the statsmodels summary style: a top panel with
the fit diagnostics (method, observations, iterations, log-likelihood,
condition number) and a bottom panel with one row per feature.

Every table is 80 columns wide.  Missing values (``None`` or ``nan``,
e.g. a metadata field left unset when the engines were driven by hand)
are printed as ``N/A``.
"""

from __future__ import annotations

import math
import textwrap
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from ._results import (
        LogisticRegressionResult,
        MarginalEffectsResult,
        RobustVarianceResult,
    )


def _truncate(name: str, max_len: int) -> str:
    """Truncate *name* to *max_len*, appending ``'...'`` if needed."""
    if len(name) <= max_len:
        return name
    return name[: max_len - 3] + "..."


def _fmt_diag_val(val: object) -> str:
    """Format a diagnostic value for display.

    Converts ``nan`` floats and ``None`` to ``'N/A'``.  Floats are
    shown with four significant decimals; other values via ``str()``.
    """
    if val is None:
        return "N/A"
    if isinstance(val, (float, np.floating)):
        if math.isnan(val):
            return "N/A"
        if math.isinf(val):
            return "inf" if val > 0 else "-inf"
        return f"{val:.4g}" if abs(val) >= 1e6 or 0 < abs(val) < 1e-3 else f"{val:.4f}"
    return str(val)


def _fmt_cell(val: float, width: int, fmt: str = ".4f") -> str:
    """Right-align *val* in *width* columns; ``N/A`` for nan."""
    if val is None or (isinstance(val, float) and math.isnan(val)):
        return f"{'N/A':>{width}}"
    val = float(val)
    if math.isnan(val):
        return f"{'N/A':>{width}}"
    return f"{val:>{width}{fmt}}"


def _fmt_p(val: float | None, width: int) -> str:
    """Format a p-value; tiny values collapse to ``<0.001``."""
    if val is None or math.isnan(float(val)):
        return f"{'N/A':>{width}}"
    if float(val) < 0.001:
        return f"{'<0.001':>{width}}"
    return f"{float(val):>{width}.3f}"


def _labels(feature_names: list[str] | None, n: int) -> list[str]:
    if feature_names is None:
        return [f"x{i}" for i in range(1, n + 1)]
    return list(feature_names)


def _print_title(title: str) -> None:
    print("=" * 80)
    for line in textwrap.wrap(title, width=78):
        print(f"{line:^80}")
    print("=" * 80)


def _print_header_pair(left_label: str, left: Any, right_label: str, right: Any) -> None:
    """One two-column diagnostics row (40 + 40 characters)."""
    left_str = _truncate(_fmt_diag_val(left), 22)
    right_str = _fmt_diag_val(right)
    print(f"{left_label:<18}{left_str:<22}{right_label:>28}{right_str:>12}")


def print_results_table(
    result: LogisticRegressionResult,
    *,
    title: str = "Logistic Regression Results",
) -> None:
    """Print a fitted model in a formatted ASCII table.

    Args:
        result: Result of
            :func:`~logistic_aggregates.logistic_regression` or of an
            engine's ``result`` step.
        title: Title for the output table.
    """
    _print_title(title)

    method = result.method.upper() if result.method else None
    status = result.status.name if result.status is not None else None
    _print_header_pair("Method:", method, "No. Observations:", result.num_rows)
    _print_header_pair("Status:", status, "No. Iterations:", result.num_iterations)
    _print_header_pair(
        "Log-Likelihood:",
        float(result.log_likelihood),
        "Condition No.:",
        float(result.condition_no),
    )
    print("-" * 80)

    # ── Table geometry (W = 80 chars) ─────────────────────────── #
    #
    #   Feature (20, left) | Coef (12) | Std Err (12) | z (10)
    #   | P>|z| (10) | Odds Ratio (16)
    #   Total: 20 + 12 + 12 + 10 + 10 + 16 = 80
    fc = 20
    print(
        f"{'Feature':<{fc}}{'Coef':>12}{'Std Err':>12}{'z':>10}"
        f"{'P>|z|':>10}{'Odds Ratio':>16}"
    )
    print("-" * 80)
    names = _labels(result.feature_names, len(result.coef))
    for i, feat in enumerate(names):
        print(
            f"{_truncate(feat, fc):<{fc}}"
            f"{_fmt_cell(result.coef[i], 12)}"
            f"{_fmt_cell(result.std_err[i], 12)}"
            f"{_fmt_cell(result.z_stats[i], 10, '.3f')}"
            f"{_fmt_p(result.p_values[i], 10)}"
            f"{_fmt_cell(result.odds_ratios[i], 16)}"
        )
    print("=" * 80)
    print()


def print_robust_table(
    result: RobustVarianceResult,
    *,
    title: str = "Robust (Sandwich) Standard Errors",
) -> None:
    """Print sandwich standard errors in a formatted ASCII table."""
    _print_title(title)
    _print_header_pair("Estimator:", "Huber-White", "No. Observations:", result.num_rows)
    print("-" * 80)

    # Feature (26) | Coef (14) | Robust SE (14) | z (12) | P>|z| (14)
    fc = 26
    print(f"{'Feature':<{fc}}{'Coef':>14}{'Robust SE':>14}{'z':>12}{'P>|z|':>14}")
    print("-" * 80)
    names = _labels(result.feature_names, len(result.coef))
    for i, feat in enumerate(names):
        print(
            f"{_truncate(feat, fc):<{fc}}"
            f"{_fmt_cell(result.coef[i], 14)}"
            f"{_fmt_cell(result.std_err[i], 14)}"
            f"{_fmt_cell(result.z_stats[i], 12, '.3f')}"
            f"{_fmt_p(result.p_values[i], 14)}"
        )
    print("=" * 80)
    print()


def print_marginal_table(
    result: MarginalEffectsResult,
    *,
    title: str = "Average Marginal Effects",
) -> None:
    """Print average marginal effects in a formatted ASCII table.

    When the result carries no p-values (no residual degrees of
    freedom) the ``P>|t|`` column shows ``N/A`` and a note says why.
    """
    _print_title(title)
    _print_header_pair("Std. Errors:", "Delta method", "No. Observations:", result.num_rows)
    print("-" * 80)

    # Feature (20) | dy/dx (12) | Coef (12) | Std Err (12) | t (12) | P>|t| (12)
    fc = 20
    print(
        f"{'Feature':<{fc}}{'dy/dx':>12}{'Coef':>12}{'Std Err':>12}"
        f"{'t':>12}{'P>|t|':>12}"
    )
    print("-" * 80)
    names = _labels(result.feature_names, len(result.coef))
    for i, feat in enumerate(names):
        p_val = None if result.p_values is None else result.p_values[i]
        print(
            f"{_truncate(feat, fc):<{fc}}"
            f"{_fmt_cell(result.marginal_effects[i], 12)}"
            f"{_fmt_cell(result.coef[i], 12)}"
            f"{_fmt_cell(result.std_err[i], 12)}"
            f"{_fmt_cell(result.t_stats[i], 12, '.3f')}"
            f"{_fmt_p(p_val, 12)}"
        )

    if result.p_values is None:
        print("-" * 80)
        print("Notes")
        print("-" * 80)
        note = (
            "  [!] P-values omitted: the number of observations does not "
            "exceed the number of features, so the t reference has no "
            "degrees of freedom."
        )
        print(textwrap.fill(note, width=80, subsequent_indent=" " * 6))
    print("=" * 80)
    print()
