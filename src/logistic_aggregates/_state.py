"""Transition states for the logistic-regression aggregates.

One dataclass per method.  Each state carries two kinds of fields:

* **Inter-iteration fields** (``width_of_x``, ``coef`` and the
  method's direction / step-size bookkeeping) survive from one
  iteration to the next and are only written by the final step.
* **Intra-iteration fields** (``num_rows``, ``X_transp_AX``,
  ``log_likelihood`` and the method's auxiliaries) are sums over the
  observations folded so far.  They are zeroed by :meth:`reset`, which
  runs when a new iteration is seeded from the previous final state.

Two states combine under ``merge`` only when they belong to the same
method and have the same width.  A state with ``num_rows == 0`` is the
merge identity.

Status merge rules
~~~~~~~~~~~~~~~~~~
Two rules coexist and are kept apart:

* :func:`merge_status_max` — the merged state keeps the larger status
  (CG, IRLS, robust variance, marginal effects).
* :func:`merge_status_terminated` — the merged state adopts the other
  side's status only when that status is ``TERMINATED`` (IGD).
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

import numpy as np

from ._config import get_option

# Feature counts above this are rejected with a soft TERMINATED status.
MAX_WIDTH = 65535

# Every IGD coefficient starts here on the first iteration of a fit.
IGD_INITIAL_COEF = 0.1


class Status(IntEnum):
    """Fit status reported alongside every result."""

    IN_PROCESS = 0
    COMPLETED = 1
    TERMINATED = 2


class IncompatibleStatesError(RuntimeError):
    """Two states of different method or width were combined.

    This is an internal inconsistency of the caller's driver (states
    from two different fits, or from two different methods) and has no
    recovery path.
    """


def merge_status_max(left: Status, right: Status) -> Status:
    """Status rule of CG, IRLS, robust and marginal states."""
    return Status(max(left, right))


def merge_status_terminated(left: Status, right: Status) -> Status:
    """Status rule of IGD states: adopt *right* only if it is TERMINATED."""
    return Status.TERMINATED if right == Status.TERMINATED else Status(left)


def _zeros_vector() -> np.ndarray:
    return np.zeros(0)


def _zeros_matrix() -> np.ndarray:
    return np.zeros((0, 0))


# ------------------------------------------------------------------ #
# Shared scaffolding
# ------------------------------------------------------------------ #


@dataclass(eq=False)
class _StateBase:
    """Fields and bookkeeping shared by every method's state.

    Subclasses list their intra-iteration fields in
    ``_intra_iteration_fields`` (zeroed by :meth:`reset`) and the
    fields that add up under merge in ``_summed_fields``.
    """

    method: ClassVar[str] = ""
    _intra_iteration_fields: ClassVar[tuple[str, ...]] = ()
    _summed_fields: ClassVar[tuple[str, ...]] = ()

    width_of_x: int = 0
    num_rows: int = 0
    status: Status = Status.IN_PROCESS

    @classmethod
    def zeros(cls, width: int):
        """Return an all-zero state sized for *width* features."""
        state = cls(width_of_x=width)
        for name, value in vars(state).items():
            if isinstance(value, np.ndarray):
                shape = (width,) if value.ndim == 1 else (width, width)
                setattr(state, name, np.zeros(shape))
        return state

    @property
    def is_empty(self) -> bool:
        return self.num_rows == 0

    def copy(self):
        """Deep copy; engine operations never share arrays between states."""
        return copy.deepcopy(self)

    def check_compatible(self, other: _StateBase) -> None:
        """Raise :class:`IncompatibleStatesError` unless *other* matches."""
        if type(other) is not type(self):
            raise IncompatibleStatesError(
                "Internal error: Incompatible transition states "
                f"({type(self).__name__} vs {type(other).__name__})."
            )
        if other.width_of_x != self.width_of_x:
            raise IncompatibleStatesError(
                "Internal error: Incompatible transition states "
                f"(width {self.width_of_x} vs {other.width_of_x})."
            )

    def reset(self) -> None:
        """Zero the intra-iteration fields in place."""
        for name in self._intra_iteration_fields:
            value = getattr(self, name)
            if isinstance(value, np.ndarray):
                value.fill(0.0)
            else:
                setattr(self, name, type(value)(0))
        self.status = Status.IN_PROCESS

    def add_summed_fields(self, other: _StateBase) -> None:
        """Add *other*'s summed fields into this state in place."""
        for name in self._summed_fields:
            value = getattr(self, name)
            if isinstance(value, np.ndarray):
                value += getattr(other, name)
            else:
                setattr(self, name, value + getattr(other, name))


# ------------------------------------------------------------------ #
# Fitting states
# ------------------------------------------------------------------ #


@dataclass(eq=False)
class CGState(_StateBase):
    """Conjugate-gradient state.

    ``direction``, ``grad`` and ``beta`` carry the conjugate direction,
    the previous gradient and the Hestenes–Stiefel scale factor between
    iterations; ``grad_new`` accumulates the current gradient.
    """

    method: ClassVar[str] = "cg"
    _intra_iteration_fields: ClassVar[tuple[str, ...]] = (
        "num_rows", "grad_new", "X_transp_AX", "log_likelihood",
    )
    _summed_fields: ClassVar[tuple[str, ...]] = _intra_iteration_fields

    iteration: int = 0
    coef: np.ndarray = field(default_factory=_zeros_vector)
    direction: np.ndarray = field(default_factory=_zeros_vector)
    grad: np.ndarray = field(default_factory=_zeros_vector)
    beta: float = 0.0
    grad_new: np.ndarray = field(default_factory=_zeros_vector)
    X_transp_AX: np.ndarray = field(default_factory=_zeros_matrix)
    log_likelihood: float = 0.0


@dataclass(eq=False)
class IRLSState(_StateBase):
    """Iteratively-reweighted-least-squares state.

    After the final step ``X_transp_Az`` holds the diagonal of
    ``(X^T A X)^+`` and ``X_transp_AX[0, 0]`` holds the condition
    number, so the result step does not decompose the matrix again.
    """

    method: ClassVar[str] = "irls"
    _intra_iteration_fields: ClassVar[tuple[str, ...]] = (
        "num_rows", "X_transp_Az", "X_transp_AX", "log_likelihood",
    )
    _summed_fields: ClassVar[tuple[str, ...]] = _intra_iteration_fields

    coef: np.ndarray = field(default_factory=_zeros_vector)
    X_transp_Az: np.ndarray = field(default_factory=_zeros_vector)
    X_transp_AX: np.ndarray = field(default_factory=_zeros_matrix)
    log_likelihood: float = 0.0


@dataclass(eq=False)
class IGDState(_StateBase):
    """Incremental-gradient state.

    ``coef`` moves with every observation.  ``X_transp_AX`` and
    ``log_likelihood`` are evaluated at the coefficients the iteration
    started from.
    """

    method: ClassVar[str] = "igd"
    _intra_iteration_fields: ClassVar[tuple[str, ...]] = (
        "num_rows", "X_transp_AX", "log_likelihood",
    )
    _summed_fields: ClassVar[tuple[str, ...]] = _intra_iteration_fields

    stepsize: float = 0.0
    coef: np.ndarray = field(default_factory=_zeros_vector)
    X_transp_AX: np.ndarray = field(default_factory=_zeros_matrix)
    log_likelihood: float = 0.0

    def reset(self) -> None:
        super().reset()
        self.stepsize = float(get_option("igd_stepsize"))


# ------------------------------------------------------------------ #
# Post-fit states
# ------------------------------------------------------------------ #


@dataclass(eq=False)
class RobustState(_StateBase):
    """Sandwich-variance state.

    Only the lower triangle of ``X_transp_AX`` is accumulated; ``meat``
    is the full sum of gradient outer products.  ``variance`` is filled
    in by the final step.
    """

    method: ClassVar[str] = "robust"
    _intra_iteration_fields: ClassVar[tuple[str, ...]] = (
        "num_rows", "X_transp_AX", "meat",
    )
    _summed_fields: ClassVar[tuple[str, ...]] = _intra_iteration_fields

    iteration: int = 0
    coef: np.ndarray = field(default_factory=_zeros_vector)
    X_transp_AX: np.ndarray = field(default_factory=_zeros_matrix)
    meat: np.ndarray = field(default_factory=_zeros_matrix)
    variance: np.ndarray | None = None


@dataclass(eq=False)
class MarginalState(_StateBase):
    """Marginal-effects state.

    ``X_bar`` holds the running feature *sum*; it is divided by
    ``num_rows`` in the final step.  ``std_err_matrix`` is the
    delta-method covariance filled in by the final step.
    """

    method: ClassVar[str] = "marginal"
    _intra_iteration_fields: ClassVar[tuple[str, ...]] = (
        "num_rows", "marginal_effects_per_observation", "X_bar", "X_transp_AX",
    )
    _summed_fields: ClassVar[tuple[str, ...]] = _intra_iteration_fields

    iteration: int = 0
    coef: np.ndarray = field(default_factory=_zeros_vector)
    marginal_effects_per_observation: float = 0.0
    X_bar: np.ndarray = field(default_factory=_zeros_vector)
    X_transp_AX: np.ndarray = field(default_factory=_zeros_matrix)
    std_err_matrix: np.ndarray | None = None
