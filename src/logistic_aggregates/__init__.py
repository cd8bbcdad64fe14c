"""logistic_aggregates — Logistic regression from mergeable sufficient statistics.

Fits a binary logistic regression by conjugate gradient (Hestenes–Stiefel
with Powell restarts), iteratively-reweighted least squares, or
incremental gradient descent.  Every method is an aggregate: rows are
folded into a small state, partial states from independent partitions
merge associatively, and a final step produces the next coefficient
estimate.  Two post-fit aggregates add Huber–White sandwich standard
errors and average marginal effects at fixed coefficients.

Public API:
    .. autosummary::
        logistic_regression
        robust_variance
        marginal_effects
        print_results_table
        print_robust_table
        print_marginal_table
        get_option
        set_option
        reset_options
        resolve_method
        CGEngine
        IRLSEngine
        IGDEngine
        RobustVarianceEngine
        MarginalEffectsEngine
        FittingEngine
        PostFitEngine
        CGState
        IRLSState
        IGDState
        RobustState
        MarginalState
        Status
        IncompatibleStatesError
        LogisticRegressionResult
        RobustVarianceResult
        MarginalEffectsResult
"""

from ._config import get_option, reset_options, set_option
from ._engines import (
    CGEngine,
    FittingEngine,
    IGDEngine,
    IRLSEngine,
    MarginalEffectsEngine,
    PostFitEngine,
    RobustVarianceEngine,
    resolve_method,
)
from ._results import LogisticRegressionResult, MarginalEffectsResult, RobustVarianceResult
from ._state import (
    CGState,
    IGDState,
    IncompatibleStatesError,
    IRLSState,
    MarginalState,
    RobustState,
    Status,
)
from .core import logistic_regression, marginal_effects, robust_variance
from .display import print_marginal_table, print_results_table, print_robust_table

__all__ = [
    "LogisticRegressionResult",
    "MarginalEffectsResult",
    "RobustVarianceResult",
    "logistic_regression",
    "marginal_effects",
    "robust_variance",
    "print_marginal_table",
    "print_results_table",
    "print_robust_table",
    "get_option",
    "reset_options",
    "set_option",
    "resolve_method",
    "CGEngine",
    "IGDEngine",
    "IRLSEngine",
    "MarginalEffectsEngine",
    "RobustVarianceEngine",
    "FittingEngine",
    "PostFitEngine",
    "CGState",
    "IGDState",
    "IRLSState",
    "MarginalState",
    "RobustState",
    "Status",
    "IncompatibleStatesError",
]

__version__ = "0.1.0"
