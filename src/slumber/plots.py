"""
Plots of fitted regression lines, posterior draws and prediction bands.
"""

import numpy as np
import polars as pl
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from typing import Optional

from .regression import RegressionResult, OLSResult, INTERCEPT, posterior_draws


def _axes(ax: Optional[Axes]) -> Axes:
    if ax is None:
        _, ax = plt.subplots()
    return ax


def _line(result, x: str, xs: np.ndarray) -> np.ndarray:
    intercept = result.coefficients.get(INTERCEPT, 0.0)
    return intercept + result.coefficients[x] * xs


def _observed(ax: Axes, df: pl.DataFrame, x: str, y: str) -> None:
    ax.plot(df[x].to_numpy(), df[y].to_numpy(), "k.", label="observed")
    ax.set_xlabel(x)
    ax.set_ylabel(y)


def plot_fit(df: pl.DataFrame, x: str, y: str,
             ols_result: Optional[OLSResult] = None,
             bayes_result: Optional[RegressionResult] = None,
             ax: Optional[Axes] = None) -> Axes:
    """Observed points with least squares and/or posterior mean lines."""
    ax = _axes(ax)
    _observed(ax, df, x, y)

    xs = np.linspace(df[x].min(), df[x].max(), 100)
    if ols_result is not None:
        ax.plot(xs, _line(ols_result, x, xs), "C0-", label="least squares")
    if bayes_result is not None:
        ax.plot(xs, _line(bayes_result, x, xs), "C1--", label="posterior mean")

    ax.legend(loc="best")
    return ax


def plot_posterior_lines(df: pl.DataFrame, result: RegressionResult, x: str, y: str,
                         n_lines: int = 100, seed: Optional[int] = None,
                         ax: Optional[Axes] = None) -> Axes:
    """
    Observed points under a random subset of posterior regression lines.

    Args:
        df: Observed data
        result: RegressionResult from lm()
        x: Predictor column (the x axis)
        y: Response column (the y axis)
        n_lines: Number of posterior draws to plot
        seed: Seed for choosing the draws
        ax: Axes to draw on (default: a new figure)

    Returns:
        The Axes drawn on
    """
    ax = _axes(ax)
    draws = posterior_draws(result)

    rng = np.random.default_rng(seed)
    idx = rng.choice(draws.height, size=min(n_lines, draws.height), replace=False)
    xs = np.array([df[x].min(), df[x].max()])
    intercepts = draws[INTERCEPT].to_numpy()[idx] if INTERCEPT in draws.columns \
        else np.zeros(len(idx))
    slopes = draws[x].to_numpy()[idx]

    for a, b in zip(intercepts, slopes):
        ax.plot(xs, a + b * xs, color="C1", alpha=0.1, linewidth=1.0)

    ax.plot(xs, _line(result, x, xs), "C1-", linewidth=2.0, label="posterior mean")
    _observed(ax, df, x, y)
    ax.legend(loc="best")
    return ax


def plot_prediction_band(summary: pl.DataFrame, df: pl.DataFrame, x: str, y: str,
                         label: Optional[str] = None,
                         ax: Optional[Axes] = None) -> Axes:
    """
    Ribbon between ``lower`` and ``upper`` with the median line.

    ``summary`` is the output of summarize_predictions() and must carry the
    ``x`` covariate.
    """
    ax = _axes(ax)
    band = summary.sort(x)
    xs = band[x].to_numpy()

    ax.fill_between(xs, band["lower"].to_numpy(), band["upper"].to_numpy(),
                    color="lightblue", alpha=0.6, label=label or "credible interval")
    ax.plot(xs, band["median"].to_numpy(), "C0-", label="median")
    _observed(ax, df, x, y)
    ax.legend(loc="best")
    return ax
