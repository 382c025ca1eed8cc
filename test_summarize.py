"""
Tests for the posterior summarizer.
"""

import numpy as np
import polars as pl
import pytest

from slumber import (
    ObservationTable, PredictionSummary, ShapeMismatchError, InvalidArgumentError,
    summarize_draws, summarize_predictions, summary_frame,
)


def _table(n):
    return ObservationTable(ids=tuple(range(n)),
                            covariates={"log_brainwt": tuple(float(i) / 10 for i in range(n))})


def test_constant_uniform_and_tens():
    """Constant columns collapse; a uniform column recovers its quantiles."""
    rng = np.random.default_rng(0)
    M = np.column_stack([np.zeros(1000), rng.uniform(0, 1, 1000), np.full(1000, 10.0)])

    rows = summarize_draws(M, _table(3), lower=0.025, upper=0.975)

    assert (rows[0].median, rows[0].lower, rows[0].upper) == (0.0, 0.0, 0.0)
    assert (rows[2].median, rows[2].lower, rows[2].upper) == (10.0, 10.0, 10.0)
    assert rows[1].median == pytest.approx(0.5, abs=0.05)
    assert rows[1].lower == pytest.approx(0.025, abs=0.02)
    assert rows[1].upper == pytest.approx(0.975, abs=0.02)


def test_rows_follow_table_order():
    rng = np.random.default_rng(1)
    table = ObservationTable(ids=(7, 3, 11, 0), covariates={"x": (1.0, 2.0, 3.0, 4.0)})
    rows = summarize_draws(rng.normal(size=(200, 4)), table)

    assert [r.observation for r in rows] == [7, 3, 11, 0]
    assert [r.covariates["x"] for r in rows] == [1.0, 2.0, 3.0, 4.0]
    assert all(isinstance(r, PredictionSummary) for r in rows)


def test_interval_brackets_median():
    rng = np.random.default_rng(2)
    M = rng.standard_t(3, size=(500, 25)) * rng.uniform(0.1, 5, 25) + rng.normal(size=25)

    for r in summarize_draws(M, _table(25), lower=0.1, upper=0.9):
        assert r.lower <= r.median <= r.upper


def test_linear_interpolation_between_ranks():
    M = np.array([[1.0], [2.0], [3.0], [4.0]])
    row, = summarize_draws(M, _table(1), lower=0.25, upper=0.75)

    assert row.median == pytest.approx(2.5)
    assert row.lower == pytest.approx(1.75)
    assert row.upper == pytest.approx(3.25)


def test_affine_invariance():
    rng = np.random.default_rng(3)
    M = rng.normal(size=(400, 10))
    a, b = 2.5, -7.0

    base = summarize_draws(M, _table(10))
    scaled = summarize_draws(a * M + b, _table(10))

    for r0, r1 in zip(base, scaled):
        assert (r1.median - b) / a == pytest.approx(r0.median)
        assert (r1.lower - b) / a == pytest.approx(r0.lower)
        assert (r1.upper - b) / a == pytest.approx(r0.upper)


def test_shape_mismatch():
    with pytest.raises(ShapeMismatchError):
        summarize_draws(np.zeros((100, 80)), _table(79))


def test_draws_must_be_two_dimensional():
    with pytest.raises(ShapeMismatchError):
        summarize_draws(np.zeros(10), _table(10))
    with pytest.raises(ShapeMismatchError):
        summarize_draws(np.zeros((0, 3)), _table(3))


@pytest.mark.parametrize("lower,upper", [
    (0.975, 0.025),
    (0.5, 0.5),
    (0.0, 0.9),
    (0.1, 1.0),
    (-0.1, 0.5),
])
def test_invalid_thresholds(lower, upper):
    with pytest.raises(InvalidArgumentError):
        summarize_draws(np.zeros((10, 2)), _table(2), lower=lower, upper=upper)


def test_errors_are_value_errors():
    assert issubclass(ShapeMismatchError, ValueError)
    assert issubclass(InvalidArgumentError, ValueError)


def test_table_rejects_duplicate_ids():
    with pytest.raises(InvalidArgumentError):
        ObservationTable(ids=(0, 1, 1))


def test_table_from_frame():
    df = pl.DataFrame({
        "observation": [5, 6, 7],
        "name": ["Cow", "Dog", "Human"],
        "log_brainwt": [-0.37, -1.15, 0.12],
    })
    table = ObservationTable.from_frame(df)

    assert table.ids == (5, 6, 7)
    assert list(table.covariates) == ["log_brainwt"]
    assert table.row(2) == {"log_brainwt": 0.12}


def test_table_from_frame_assigns_ids():
    table = ObservationTable.from_frame(pl.DataFrame({"x": [1.0, 2.0]}))
    assert table.ids == (0, 1)


def test_table_from_frame_rejects_text_covariate():
    df = pl.DataFrame({"name": ["Cow"], "x": [1.0]})
    with pytest.raises(InvalidArgumentError):
        ObservationTable.from_frame(df, covariates=["name"])


def test_summarize_predictions_frame():
    df = pl.DataFrame({"observation": [0, 1], "log_brainwt": [-2.0, 0.5]})
    M = np.array([[1.0, 5.0], [2.0, 6.0], [3.0, 7.0]])

    out = summarize_predictions(M, df)

    assert out.columns == ["observation", "median", "lower", "upper", "log_brainwt"]
    assert out["median"].to_list() == [2.0, 6.0]
    assert out["log_brainwt"].to_list() == [-2.0, 0.5]


def test_summary_frame_empty():
    out = summary_frame([])
    assert out.height == 0
    assert out.columns == ["observation", "median", "lower", "upper"]


def test_reserved_covariate_names_rejected():
    with pytest.raises(InvalidArgumentError):
        ObservationTable(ids=(0, 1), covariates={"lower": (100.0, 200.0)})

    df = pl.DataFrame({"observation": [0, 1], "lower": [100.0, 200.0]})
    with pytest.raises(InvalidArgumentError):
        ObservationTable.from_frame(df, covariates=["lower"])


def test_default_covariates_skip_output_names():
    """A column named like a summary statistic never replaces the statistic."""
    df = pl.DataFrame({"observation": [0, 1], "lower": [100.0, 200.0], "x": [1.0, 2.0]})
    M = np.array([[1.0, 5.0], [2.0, 6.0], [3.0, 7.0]])

    out = summarize_predictions(M, df, lower=0.25, upper=0.75)

    assert out.columns == ["observation", "median", "lower", "upper", "x"]
    assert out["lower"].to_list() == [1.5, 5.5]
    assert out["upper"].to_list() == [2.5, 6.5]


def test_table_is_immutable():
    table = ObservationTable(ids=[0, 1], covariates={"x": [1.0, 2.0]})

    assert table.ids == (0, 1)
    assert table.covariates["x"] == (1.0, 2.0)
    with pytest.raises(TypeError):
        table.covariates["y"] = (1.0,)
    assert list(table.covariates) == ["x"]
    assert len(summarize_draws(np.zeros((5, 2)), table)) == 2


def test_summary_rows_are_read_only_and_hashable():
    row, = summarize_draws(np.ones((5, 1)), _table(1))

    with pytest.raises(TypeError):
        row.covariates["log_brainwt"] = 3.0
    assert hash(row) == hash(PredictionSummary(0, 1.0, 1.0, 1.0, {"log_brainwt": 0.0}))
    assert row == PredictionSummary(0, 1.0, 1.0, 1.0, {"log_brainwt": 0.0})


def test_table_rejects_covariate_length_mismatch():
    with pytest.raises(InvalidArgumentError):
        ObservationTable(ids=(0, 1, 2), covariates={"x": (1.0, 2.0)})


def test_table_from_frame_missing_covariate():
    df = pl.DataFrame({"x": [1.0, 2.0]})
    with pytest.raises(InvalidArgumentError):
        ObservationTable.from_frame(df, covariates=["log_brainwt"])


def test_summarize_predictions_shape_mismatch():
    df = pl.DataFrame({"observation": [0, 1, 2], "x": [1.0, 2.0, 3.0]})
    with pytest.raises(ShapeMismatchError):
        summarize_predictions(np.zeros((10, 2)), df)


@pytest.mark.parametrize("ids", [
    pl.Series("observation", ["a", "b"]),
    pl.Series("observation", [0.5, 1.5]),
    pl.Series("observation", [0, None]),
])
def test_table_from_frame_bad_id_column(ids):
    df = pl.DataFrame([ids, pl.Series("x", [1.0, 2.0])])
    with pytest.raises(InvalidArgumentError, match="observation"):
        ObservationTable.from_frame(df)
