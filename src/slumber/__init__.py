"""
slumber: mammal sleep versus brain weight, classical and Bayesian

Fits least squares and Bayesian linear regressions (fiasto-py formulas,
blackjax pathfinder) to the msleep dataset and summarizes posterior draws
into per-observation medians and credible intervals.
"""

from .data import load_msleep, sleep_brain, prediction_grid
from .errors import ShapeMismatchError, InvalidArgumentError
from .regression import (
    lm, ols, tidy, augment, glance,
    posterior_draws, posterior_linpred, posterior_predict, ols_predict,
)
from .summarize import (
    ObservationTable, PredictionSummary,
    summarize_draws, summarize_predictions, summary_frame,
)

__version__ = "0.1.0"
__all__ = [
    "load_msleep", "sleep_brain", "prediction_grid",
    "ShapeMismatchError", "InvalidArgumentError",
    "lm", "ols", "tidy", "augment", "glance",
    "posterior_draws", "posterior_linpred", "posterior_predict", "ols_predict",
    "ObservationTable", "PredictionSummary",
    "summarize_draws", "summarize_predictions", "summary_frame",
]
