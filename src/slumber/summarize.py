"""
Posterior summaries: medians and credible intervals per observation.
"""

import numpy as np
import polars as pl
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from dataclasses import dataclass, field

from .errors import InvalidArgumentError, ShapeMismatchError


# Output columns of a summary; covariates may not reuse them
RESERVED_COLUMNS = ("observation", "median", "lower", "upper")


@dataclass(frozen=True)
class ObservationTable:
    """
    Ordered observations with their covariates.

    Row ``j`` of the table corresponds to column ``j`` of a draw matrix.
    """
    ids: Tuple[int, ...]
    covariates: Mapping[str, Tuple[float, ...]] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        ids = tuple(self.ids)
        if len(set(ids)) != len(ids):
            raise InvalidArgumentError("Observation ids must be unique")

        covariates = {}
        for name, values in self.covariates.items():
            if name in RESERVED_COLUMNS:
                raise InvalidArgumentError(
                    f"Covariate name '{name}' is reserved for summary output"
                )
            values = tuple(values)
            if len(values) != len(ids):
                raise InvalidArgumentError(
                    f"Covariate '{name}' has {len(values)} values for {len(ids)} observations"
                )
            covariates[name] = values

        object.__setattr__(self, "ids", ids)
        object.__setattr__(self, "covariates", MappingProxyType(covariates))

    def __len__(self) -> int:
        return len(self.ids)

    def row(self, j: int) -> Dict[str, float]:
        """Covariates of row ``j``."""
        return {name: values[j] for name, values in self.covariates.items()}

    @classmethod
    def from_frame(cls, df: pl.DataFrame,
                   covariates: Optional[Sequence[str]] = None,
                   id_column: str = "observation") -> "ObservationTable":
        """
        Build a table from a polars DataFrame.

        Args:
            df: Data with one row per observation
            covariates: Numeric columns to carry along (default: every
                numeric column except the id column and the summary
                output names)
            id_column: Integer column holding observation ids; ids 0..N-1
                are assigned in row order when it is missing

        Returns:
            ObservationTable in the row order of ``df``
        """
        if id_column in df.columns:
            if not df.schema[id_column].is_integer():
                raise InvalidArgumentError(
                    f"Id column '{id_column}' must be an integer column, got {df.schema[id_column]}"
                )
            if df[id_column].null_count():
                raise InvalidArgumentError(f"Id column '{id_column}' contains nulls")
            ids = tuple(int(i) for i in df[id_column].to_list())
        else:
            ids = tuple(range(df.height))

        if covariates is None:
            covariates = [
                col for col, dtype in df.schema.items()
                if col != id_column and col not in RESERVED_COLUMNS and dtype.is_numeric()
            ]

        missing = [col for col in covariates if col not in df.columns]
        if missing:
            raise InvalidArgumentError(f"Covariates not found in DataFrame: {missing}")

        values = {}
        for col in covariates:
            if not df.schema[col].is_numeric():
                raise InvalidArgumentError(f"Covariate '{col}' is not numeric")
            values[col] = tuple(float(v) if v is not None else float("nan")
                                for v in df[col].to_list())

        return cls(ids=ids, covariates=values)


@dataclass(frozen=True)
class PredictionSummary:
    """Median and credible interval of the draws for one observation."""
    observation: int
    median: float
    lower: float
    upper: float
    covariates: Mapping[str, float] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "covariates", MappingProxyType(dict(self.covariates)))


def _check_probs(lower: float, upper: float) -> None:
    for name, p in (("lower", lower), ("upper", upper)):
        if not 0.0 < p < 1.0:
            raise InvalidArgumentError(f"{name} must lie in (0, 1), got {p}")
    if lower >= upper:
        raise InvalidArgumentError(f"lower ({lower}) must be less than upper ({upper})")


def summarize_draws(draws, observations: ObservationTable,
                    lower: float = 0.025, upper: float = 0.975) -> List[PredictionSummary]:
    """
    Summarize a draw matrix column by column.

    Quantiles use linear interpolation between adjacent order statistics.

    Args:
        draws: Array of shape (n_draws, n_observations)
        observations: Table whose rows match the columns of ``draws``
        lower: Lower quantile of the interval
        upper: Upper quantile of the interval

    Returns:
        One PredictionSummary per observation, in table order

    Raises:
        InvalidArgumentError: thresholds outside (0, 1) or not increasing
        ShapeMismatchError: draws are not 2-D or columns != observations
    """
    _check_probs(lower, upper)

    M = np.asarray(draws, dtype=float)
    if M.ndim != 2:
        raise ShapeMismatchError(f"Draws must be a 2-D array, got {M.ndim} dimension(s)")
    if M.shape[0] == 0:
        raise ShapeMismatchError("Draw matrix has no draws")
    if M.shape[1] != len(observations):
        raise ShapeMismatchError(
            f"Draw matrix has {M.shape[1]} columns but {len(observations)} observations were given"
        )

    q = np.quantile(M, [0.5, lower, upper], axis=0)

    return [
        PredictionSummary(
            observation=obs_id,
            median=float(q[0, j]),
            lower=float(q[1, j]),
            upper=float(q[2, j]),
            covariates=observations.row(j),
        )
        for j, obs_id in enumerate(observations.ids)
    ]


def summary_frame(rows: List[PredictionSummary]) -> pl.DataFrame:
    """Flatten summaries into a DataFrame (observation, median, lower, upper, covariates...)."""
    covariate_names = list(rows[0].covariates) if rows else []
    data = {
        "observation": [r.observation for r in rows],
        "median": [r.median for r in rows],
        "lower": [r.lower for r in rows],
        "upper": [r.upper for r in rows],
    }
    for name in covariate_names:
        data[name] = [r.covariates[name] for r in rows]
    return pl.DataFrame(data, schema={
        "observation": pl.Int64,
        "median": pl.Float64,
        "lower": pl.Float64,
        "upper": pl.Float64,
        **{name: pl.Float64 for name in covariate_names},
    })


def summarize_predictions(draws, newdata: pl.DataFrame,
                          lower: float = 0.025, upper: float = 0.975,
                          covariates: Optional[Sequence[str]] = None,
                          id_column: str = "observation") -> pl.DataFrame:
    """
    Summarize draws made for the rows of ``newdata``.

    Works the same for linear-predictor and posterior-predictive draws.

    Args:
        draws: Array of shape (n_draws, newdata.height)
        newdata: DataFrame the draws were produced for
        lower: Lower quantile of the interval
        upper: Upper quantile of the interval
        covariates: Columns to join back (default: numeric columns)
        id_column: Observation id column in ``newdata``

    Returns:
        DataFrame with observation, median, lower, upper and covariates
    """
    table = ObservationTable.from_frame(newdata, covariates=covariates, id_column=id_column)
    return summary_frame(summarize_draws(draws, table, lower=lower, upper=upper))
