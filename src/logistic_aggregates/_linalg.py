"""Scalar link helpers and the symmetric pseudo-inverse.

Every engine funnels its information matrix ``X^T A X`` through
:func:`symmetric_pseudo_inverse`, which eigen-decomposes the lower
triangle and zeroes eigenvalues whose magnitude falls below a relative
cutoff before reconstructing the inverse.  A singular or
ill-conditioned matrix therefore yields a generalised inverse instead
of an exception; the condition number reports how close the matrix was
to singular.

Cutoff
~~~~~~
An eigenvalue λ is kept when ``|λ| > rtol * max|λ|``.  ``rtol``
defaults to ``width * eps`` (the usual LAPACK rank tolerance) and can
be overridden with the ``pinv_rtol`` option in :mod:`._config`.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np
from scipy.special import expit

from ._config import get_option


def sigma(x):
    """Logistic function ``1 / (1 + exp(-x))`` for scalars or arrays."""
    return expit(x)


def log1p_exp(x):
    """Return ``ln(1 + exp(x))`` without overflow for large *x*."""
    return np.logaddexp(0.0, x)


class PseudoInverse(NamedTuple):
    """Generalised inverse of a symmetric matrix plus its spectrum."""

    inverse: np.ndarray
    condition_no: float
    eigenvalues: np.ndarray


def symmetric_pseudo_inverse(matrix: np.ndarray) -> PseudoInverse:
    """Pseudo-inverse of a symmetric matrix via eigen-decomposition.

    Only the lower triangle of *matrix* is read, so callers that
    accumulate a single triangle get the same answer as callers that
    accumulate both.

    Args:
        matrix: Square ``(p, p)`` array, symmetric (or lower-triangular
            storage of a symmetric matrix).

    Returns:
        A :class:`PseudoInverse` with the ``(p, p)`` inverse, the
        condition number ``max|λ| / min|λ|`` (``inf`` when the smallest
        eigenvalue is zero) and the eigenvalues in ascending order.
    """
    matrix = np.asarray(matrix, dtype=float)
    width = matrix.shape[0]
    if width == 0:
        return PseudoInverse(np.zeros((0, 0)), float("nan"), np.zeros(0))

    eigenvalues, eigenvectors = np.linalg.eigh(matrix, UPLO="L")
    magnitudes = np.abs(eigenvalues)
    largest = float(magnitudes.max())
    smallest = float(magnitudes.min())

    rtol = get_option("pinv_rtol")
    if rtol is None:
        rtol = width * np.finfo(float).eps
    cutoff = rtol * largest

    keep = magnitudes > cutoff
    inverted = np.zeros_like(eigenvalues)
    inverted[keep] = 1.0 / eigenvalues[keep]
    inverse = (eigenvectors * inverted) @ eigenvectors.T

    if smallest == 0.0:
        condition_no = float("inf")
    else:
        condition_no = largest / smallest
    return PseudoInverse(inverse, condition_no, eigenvalues)
