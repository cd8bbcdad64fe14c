"""Input compatibility layer for the in-memory driver.

The driver accepts NumPy arrays and pandas objects.  This module adds
transparent support for Polars: a ``polars.DataFrame``,
``polars.LazyFrame`` or ``polars.Series`` is converted to its pandas
counterpart at the boundary so that the driver, which operates on
NumPy arrays extracted from pandas, stays unchanged.

Polars is **not** a required dependency.  If it is not installed, the
converter simply passes pandas and NumPy objects through untouched.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd

# Polars is optional.
try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def _ensure_pandas(obj: Any, *, name: str = "input") -> pd.DataFrame | pd.Series | np.ndarray:
    """Convert Polars inputs to pandas; pass pandas / NumPy through.

    Accepted types:
        * ``numpy.ndarray``, ``pandas.DataFrame``, ``pandas.Series`` —
          returned as-is.
        * ``polars.DataFrame`` — converted via ``.to_pandas()``.
        * ``polars.LazyFrame`` — collected then converted.
        * ``polars.Series`` — converted via ``.to_pandas()``.
        * lists and tuples — converted with ``numpy.asarray``.

    Args:
        obj: Input object.
        name: Label used in error messages (e.g. ``"X"`` or ``"y"``).

    Raises:
        TypeError: If *obj* is not a recognised type.
    """
    if isinstance(obj, (np.ndarray, pd.DataFrame, pd.Series)):
        return obj
    if isinstance(obj, (list, tuple)):
        return np.asarray(obj)

    if _HAS_POLARS:
        if isinstance(obj, pl.LazyFrame):
            return obj.collect().to_pandas()
        if isinstance(obj, (pl.DataFrame, pl.Series)):
            return obj.to_pandas()

    raise TypeError(
        f"'{name}' must be a NumPy array or pandas DataFrame/Series"
        + (" or Polars DataFrame/LazyFrame/Series" if _HAS_POLARS else "")
        + f", got {type(obj).__name__}."
    )


def _design_matrix(X: Any) -> tuple[np.ndarray, list[str] | None]:
    """Return ``(X_values, feature_names)`` for a 2-D input.

    Feature names are taken from DataFrame columns; plain arrays give
    ``None``.
    """
    X = _ensure_pandas(X, name="X")
    feature_names = None
    if isinstance(X, pd.DataFrame):
        feature_names = [str(c) for c in X.columns]
        X = X.to_numpy()
    elif isinstance(X, pd.Series):
        raise ValueError("'X' must be 2-D; got a Series.")
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError(f"'X' must be 2-D, got shape {X.shape}.")
    return X, feature_names


def _label_vector(y: Any) -> np.ndarray:
    """Return the binary response as a boolean ``(n,)`` array.

    Raises:
        ValueError: If *y* has more than one column or holds values
            other than booleans / ``{0, 1}``.
    """
    y = _ensure_pandas(y, name="y")
    if isinstance(y, pd.DataFrame):
        if y.shape[1] != 1:
            raise ValueError(f"'y' must have exactly one column, got {y.shape[1]}.")
        y = y.iloc[:, 0]
    values = np.asarray(y)
    if values.ndim == 2 and values.shape[1] == 1:
        values = values[:, 0]
    if values.ndim != 1:
        raise ValueError(f"'y' must be 1-D, got shape {values.shape}.")
    if values.dtype == bool:
        return values
    if not np.all(np.isin(values, [0, 1])):
        raise ValueError("'y' must be binary: booleans or values in {0, 1}.")
    return values.astype(bool)
