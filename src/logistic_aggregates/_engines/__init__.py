"""Aggregate engines and the method registry.

Every engine exposes the same driver-facing contract:

* ``initial_state()`` — the empty state each partition starts from.
* ``transition(state, label, features, ...)`` /
  ``transition_batch(state, labels, X, ...)`` — fold observations.
* ``merge(left, right)`` — combine two partials of one iteration.
* ``final(state)`` — close the iteration (``None`` without data).
* ``result(state)`` — typed result object (``None`` without data).

Fitting engines (CG, IRLS, IGD) take the previous final state as the
extra transition argument and add ``distance(left, right)``.  Post-fit
engines (robust variance, marginal effects) take the converged
coefficient vector instead.

Adding a new fitting method
~~~~~~~~~~~~~~~~~~~~~~~~~~~
1. Create a module under ``_engines/`` with a state dataclass in
   ``_state.py`` and an engine class satisfying
   :class:`FittingEngine`.
2. Register it in :data:`_METHOD_REGISTRY` below.
3. :func:`~logistic_aggregates.logistic_regression` picks it up
   automatically.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import numpy as np

from .cg import CGEngine
from .igd import IGDEngine
from .irls import IRLSEngine
from .marginal import MarginalEffectsEngine
from .robust import RobustVarianceEngine

# ------------------------------------------------------------------ #
# Engine protocols
# ------------------------------------------------------------------ #


@runtime_checkable
class FittingEngine(Protocol):
    """Interface of the coefficient-fitting aggregates."""

    @property
    def name(self) -> str: ...

    def initial_state(self) -> Any: ...

    def transition(
        self,
        state: Any,
        label: bool,
        features: Any,
        previous_state: Any = None,
    ) -> Any: ...

    def transition_batch(
        self,
        state: Any,
        labels: Any,
        X: Any,
        previous_state: Any = None,
    ) -> Any: ...

    def merge(self, left: Any, right: Any) -> Any: ...

    def final(self, state: Any) -> Any | None: ...

    def distance(self, left: Any, right: Any) -> float: ...

    def result(self, state: Any) -> Any | None: ...


@runtime_checkable
class PostFitEngine(Protocol):
    """Interface of the aggregates evaluated at fixed coefficients."""

    @property
    def name(self) -> str: ...

    def initial_state(self) -> Any: ...

    def transition(
        self,
        state: Any,
        label: bool,
        features: Any,
        coef: np.ndarray,
    ) -> Any: ...

    def transition_batch(
        self,
        state: Any,
        labels: Any,
        X: Any,
        coef: np.ndarray,
    ) -> Any: ...

    def merge(self, left: Any, right: Any) -> Any: ...

    def final(self, state: Any) -> Any | None: ...

    def result(self, state: Any) -> Any | None: ...


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #

_METHOD_REGISTRY: dict[str, type[FittingEngine]] = {
    "cg": CGEngine,
    "irls": IRLSEngine,
    "igd": IGDEngine,
}


def resolve_method(method: str | FittingEngine) -> FittingEngine:
    """Return a fitting engine for a method string.

    Engine instances are returned as-is.

    Args:
        method: One of ``"cg"``, ``"irls"``, ``"igd"``
            (case-insensitive), or an engine instance.

    Raises:
        ValueError: If *method* is not recognised.
    """
    if isinstance(method, FittingEngine):
        return method
    cls = _METHOD_REGISTRY.get(str(method).strip().lower())
    if cls is None:
        valid = ", ".join(sorted(_METHOD_REGISTRY))
        raise ValueError(f"Invalid method '{method}'. Choose from: {valid}.")
    return cls()


__all__ = [
    "CGEngine",
    "FittingEngine",
    "IGDEngine",
    "IRLSEngine",
    "MarginalEffectsEngine",
    "PostFitEngine",
    "RobustVarianceEngine",
    "resolve_method",
]
