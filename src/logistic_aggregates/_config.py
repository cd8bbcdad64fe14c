"""Numerical configuration for the logistic_aggregates package.

Controls the two tunables the aggregate engines read at run time: the
relative eigenvalue cutoff of the symmetric pseudo-inverse and the
step size of the incremental-gradient method.

Resolution order (first match wins):
    1. Programmatic override via :func:`set_option`.
    2. The ``LOGISTIC_AGGREGATES_<NAME>`` environment variable
       (e.g. ``LOGISTIC_AGGREGATES_IGD_STEPSIZE``).
    3. The built-in default.

Valid option names are ``"pinv_rtol"`` and ``"igd_stepsize"``
(case-insensitive).

Examples:
    Use a larger step size from the shell::

        export LOGISTIC_AGGREGATES_IGD_STEPSIZE=0.05

    Tighten the pseudo-inverse cutoff programmatically::

        import logistic_aggregates
        logistic_aggregates.set_option("pinv_rtol", 1e-12)

    Restore default resolution::

        logistic_aggregates.set_option("pinv_rtol", None)
"""

from __future__ import annotations

import math
import os

_ENV_PREFIX = "LOGISTIC_AGGREGATES_"

# ``None`` for pinv_rtol means "width * machine epsilon", resolved at
# the call site because it depends on the matrix size.
_DEFAULTS: dict[str, float | None] = {
    "pinv_rtol": None,
    "igd_stepsize": 0.01,
}

# Programmatic overrides; absent key means "no override has been set".
_overrides: dict[str, float] = {}


def _normalise(name: str) -> str:
    normalised = name.strip().lower()
    if normalised not in _DEFAULTS:
        raise ValueError(
            f"Unknown option '{name}'. Choose from: {sorted(_DEFAULTS)}"
        )
    return normalised


def _validate(name: str, value: object) -> float:
    """Coerce *value* to a positive finite float or raise ``ValueError``."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"Option '{name}' must be a number, got {value!r}.") from None
    if not math.isfinite(number) or number <= 0:
        raise ValueError(f"Option '{name}' must be positive and finite, got {number}.")
    return number


def get_option(name: str) -> float | None:
    """Return the active value of a numerical option.

    Resolution order:
        1. Value set by :func:`set_option`.
        2. ``LOGISTIC_AGGREGATES_<NAME>`` environment variable.
        3. Built-in default.

    Args:
        name: ``"pinv_rtol"`` or ``"igd_stepsize"``.

    Returns:
        The option value.  ``pinv_rtol`` defaults to ``None``, meaning
        the cutoff scales with the matrix width.

    Raises:
        ValueError: If *name* is unknown or the environment variable
            does not hold a positive number.
    """
    key = _normalise(name)

    # 1. Programmatic override
    if key in _overrides:
        return _overrides[key]

    # 2. Environment variable
    env = os.environ.get(_ENV_PREFIX + key.upper(), "").strip()
    if env:
        return _validate(key, env)

    # 3. Default
    return _DEFAULTS[key]


def set_option(name: str, value: float | None) -> None:
    """Override a numerical option.

    Args:
        name: ``"pinv_rtol"`` or ``"igd_stepsize"`` (case-insensitive).
        value: Positive finite number, or ``None`` to restore the
            default resolution order.

    Raises:
        ValueError: If *name* is unknown or *value* is not a positive
            finite number.
    """
    key = _normalise(name)
    if value is None:
        _overrides.pop(key, None)
        return
    _overrides[key] = _validate(key, value)


def reset_options() -> None:
    """Drop every programmatic override."""
    _overrides.clear()
