"""Shared transition / merge plumbing for every aggregate engine.

An engine never mutates the states it is given: each operation deep
copies its input and returns the copy.  The subclass hooks
(``_start_iteration``, ``_accumulate``, ``_merge_into``) operate in
place on that private copy.

Soft failures
~~~~~~~~~~~~~
Non-finite features and a width above :data:`~.._state.MAX_WIDTH`
do not raise.  The state's status becomes ``TERMINATED``, a warning is
logged, and the state is returned without any numeric work.  Once a
state is terminated further transitions leave it unchanged so the
status reaches the driver.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

import numpy as np

from .._state import (
    MAX_WIDTH,
    IncompatibleStatesError,
    Status,
    _StateBase,
    merge_status_max,
)

logger = logging.getLogger(__name__)


def _as_design(X: Any) -> np.ndarray:
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError(f"Feature block must be 2-D, got shape {X.shape}.")
    return X


def _as_signs(labels: Any, n_rows: int) -> np.ndarray:
    """Map boolean, ``{0, 1}`` or ``{-1, +1}`` labels to ``+1.0`` / ``-1.0``.

    Raises:
        ValueError: If a label is anything else.
    """
    labels = np.asarray(labels).reshape(-1)
    if labels.shape[0] != n_rows:
        raise ValueError(
            f"Got {labels.shape[0]} labels for {n_rows} feature rows."
        )
    if labels.dtype == bool:
        return np.where(labels, 1.0, -1.0)
    values = labels.astype(float)
    if not np.all(np.isin(values, (-1.0, 0.0, 1.0))):
        raise ValueError("Labels must be booleans, {0, 1} or {-1, +1}.")
    return np.where(values > 0.0, 1.0, -1.0)


def all_finite(*values: Any) -> bool:
    """``True`` if every scalar / array in *values* is finite."""
    return all(np.all(np.isfinite(value)) for value in values)


def terminate(state: _StateBase, message: str) -> _StateBase:
    """Mark *state* as TERMINATED and log *message*."""
    logger.warning("%s fit terminated: %s", state.method.upper(), message)
    state.status = Status.TERMINATED
    return state


class _AggregateEngine:
    """Base class holding the transition and merge contract.

    Subclasses set ``state_class`` and implement ``_start_iteration``
    and ``_accumulate``.  ``merge_status`` is the status rule applied
    by :meth:`merge`.
    """

    state_class: ClassVar[type[_StateBase]] = _StateBase
    merge_status = staticmethod(merge_status_max)

    @property
    def name(self) -> str:
        return self.state_class.method

    def initial_state(self) -> _StateBase:
        """Return the empty state every partition starts from."""
        return self.state_class()

    # ---- Transition -------------------------------------------------

    def _fold(self, state: _StateBase, labels: Any, X: Any, context: Any) -> _StateBase:
        self._check_state(state)
        X = _as_design(X)
        signs = _as_signs(labels, X.shape[0])

        state = state.copy()
        if state.status == Status.TERMINATED or X.shape[0] == 0:
            return state
        if not all_finite(X):
            return terminate(state, "Design matrix is not finite.")

        if state.num_rows == 0:
            width = X.shape[1]
            if width > MAX_WIDTH:
                return terminate(
                    state,
                    f"Number of independent variables cannot be larger "
                    f"than {MAX_WIDTH} (got {width}).",
                )
            if width == 0:
                return terminate(state, "Feature vectors are empty.")
            state = self._start_iteration(width, context)
        elif X.shape[1] != state.width_of_x:
            raise ValueError(
                f"Feature vector has {X.shape[1]} entries but the fit was "
                f"started with {state.width_of_x}."
            )

        self._accumulate(state, signs, X, context)
        return state

    def _start_iteration(self, width: int, context: Any) -> _StateBase:
        raise NotImplementedError

    def _accumulate(
        self,
        state: _StateBase,
        signs: np.ndarray,
        X: np.ndarray,
        context: Any,
    ) -> None:
        raise NotImplementedError

    # ---- Merge ------------------------------------------------------

    def merge(self, left: _StateBase, right: _StateBase) -> _StateBase:
        """Combine two partial states of the same iteration.

        Commutative and associative up to floating-point reassociation;
        a state with ``num_rows == 0`` is the identity.

        Raises:
            IncompatibleStatesError: If the states belong to different
                methods or were started with different widths.
        """
        self._check_state(left)
        self._check_state(right)
        if left.num_rows == 0:
            return right.copy()
        if right.num_rows == 0:
            return left.copy()

        left.check_compatible(right)
        merged = left.copy()
        self._merge_into(merged, right)
        merged.status = self.merge_status(left.status, right.status)
        return merged

    def _merge_into(self, merged: _StateBase, other: _StateBase) -> None:
        merged.add_summed_fields(other)

    # ---- Helpers ----------------------------------------------------

    def _check_state(self, state: Any) -> None:
        if not isinstance(state, self.state_class):
            raise IncompatibleStatesError(
                f"Internal error: {type(self).__name__} received a "
                f"{type(state).__name__}, expected {self.state_class.__name__}."
            )


class _FittingEngine(_AggregateEngine):
    """Engines that iterate towards a coefficient estimate (CG, IRLS, IGD)."""

    def transition(
        self,
        state: _StateBase,
        label: bool,
        features: Any,
        previous_state: _StateBase | None = None,
    ) -> _StateBase:
        """Fold one observation into *state*.

        Args:
            state: Partial state of the current iteration (start from
                :meth:`initial_state`).
            label: Dependent variable; ``True`` / ``1`` map to +1,
                ``False`` / ``0`` / ``-1`` map to -1.
            features: Feature vector ``(p,)``.
            previous_state: Final state of the previous iteration, or
                ``None`` on the first iteration of a fit.

        Returns:
            A new state; *state* is left untouched.
        """
        features = np.asarray(features, dtype=float).reshape(1, -1)
        return self._fold(state, [label], features, previous_state)

    def transition_batch(
        self,
        state: _StateBase,
        labels: Any,
        X: Any,
        previous_state: _StateBase | None = None,
    ) -> _StateBase:
        """Fold a block of observations ``(n, p)`` into *state*.

        Equivalent to calling :meth:`transition` once per row, up to
        floating-point reassociation.  A block with any non-finite
        value terminates the state without folding its rows.
        """
        return self._fold(state, labels, X, previous_state)

    def _seed(self, width: int, previous_state: _StateBase | None) -> _StateBase:
        """New iteration state: zeros, or the previous final state reset."""
        if previous_state is None:
            return self.state_class.zeros(width)
        self._check_state(previous_state)
        if previous_state.width_of_x != width:
            raise IncompatibleStatesError(
                "Internal error: Incompatible transition states "
                f"(previous width {previous_state.width_of_x}, row width {width})."
            )
        state = previous_state.copy()
        state.reset()
        return state

    def _start_iteration(self, width: int, context: Any) -> _StateBase:
        return self._seed(width, context)

    def distance(self, left: _StateBase, right: _StateBase) -> float:
        """Absolute log-likelihood gap between two final states."""
        self._check_state(left)
        self._check_state(right)
        return abs(float(left.log_likelihood) - float(right.log_likelihood))


class _PostFitEngine(_AggregateEngine):
    """Engines driven by a fixed, already converged coefficient vector."""

    def transition(
        self,
        state: _StateBase,
        label: bool,
        features: Any,
        coef: Any,
    ) -> _StateBase:
        """Fold one observation evaluated at the fixed *coef*."""
        features = np.asarray(features, dtype=float).reshape(1, -1)
        return self._fold(state, [label], features, coef)

    def transition_batch(
        self,
        state: _StateBase,
        labels: Any,
        X: Any,
        coef: Any,
    ) -> _StateBase:
        """Fold a block of observations ``(n, p)`` evaluated at *coef*."""
        return self._fold(state, labels, X, coef)

    def _start_iteration(self, width: int, context: Any) -> _StateBase:
        state = self.state_class.zeros(width)
        state.coef = np.array(context, dtype=float)
        return state

    def _coefficients(self, state: _StateBase, coef: Any) -> np.ndarray:
        coef = np.asarray(coef, dtype=float).reshape(-1)
        if coef.shape[0] != state.width_of_x:
            raise ValueError(
                f"Coefficient vector has {coef.shape[0]} entries but the "
                f"feature vectors have {state.width_of_x}."
            )
        return coef
