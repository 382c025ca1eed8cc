"""
Built-in mammal sleep data.
"""

import numpy as np
import polars as pl
from importlib import resources
from typing import Optional


MSLEEP_SCHEMA = {
    "name": pl.Utf8,
    "genus": pl.Utf8,
    "vore": pl.Utf8,
    "order": pl.Utf8,
    "sleep_total": pl.Float64,
    "brainwt": pl.Float64,
    "bodywt": pl.Float64,
}


def load_msleep() -> pl.DataFrame:
    """
    Load the msleep dataset: sleep times and weights for 83 mammals.

    Columns: name, genus, vore, order, sleep_total (hours per day),
    brainwt (kg), bodywt (kg). Missing values are null.
    """
    source = resources.files("slumber").joinpath("datasets", "msleep.csv")
    with source.open("rb") as fh:
        return pl.read_csv(fh, schema=MSLEEP_SCHEMA)


def sleep_brain(df: Optional[pl.DataFrame] = None) -> pl.DataFrame:
    """
    Mammals with a recorded brain weight, ready for regression.

    Adds ``log_brainwt`` (log10 of brain weight) and an ``observation``
    id numbered 0..N-1 in row order.

    Args:
        df: msleep-shaped DataFrame (default: the built-in dataset)

    Returns:
        Filtered DataFrame
    """
    if df is None:
        df = load_msleep()

    return (
        df.filter(pl.col("brainwt").is_not_null())
        .with_columns(pl.col("brainwt").log10().alias("log_brainwt"))
        .with_row_index("observation")
        .with_columns(pl.col("observation").cast(pl.Int64))
    )


def prediction_grid(df: pl.DataFrame, column: str = "log_brainwt", n: int = 100) -> pl.DataFrame:
    """Evenly spaced values over the observed range of ``column``."""
    if column not in df.columns:
        raise ValueError(f"Column '{column}' not found in DataFrame")
    if n < 2:
        raise ValueError("Prediction grid needs at least 2 points")

    values = df[column].drop_nulls()
    grid = np.linspace(values.min(), values.max(), n)

    return pl.DataFrame({
        "observation": np.arange(n, dtype=np.int64),
        column: grid,
    })
