"""
Compare the Bayesian fit (lm) with ordinary least squares (ols) on msleep.
"""

import numpy as np
import polars as pl
from slumber import sleep_brain, lm, ols, tidy


def compare_models(df, formula):
    """Compare Bayesian and least squares estimates for the same formula."""

    print("="*80)
    print("COMPARING Bayesian lm() vs least squares ols()")
    print("="*80)
    print(f"Formula: {formula}")
    print(f"Dataset: {df.shape[0]} observations, {df.shape[1]} variables")
    print()

    bayes_result = lm(df, formula)
    ols_result = ols(df, formula)

    print("\n" + "="*60)
    print("Bayesian Results")
    print("="*60)
    bayes_tidy = tidy(bayes_result, title="Bayesian Regression")

    print("\n" + "="*60)
    print("Least Squares Results")
    print("="*60)
    ols_tidy = tidy(ols_result, title="Least Squares Regression")

    print("\n" + "="*60)
    print("COMPARISON TABLE")
    print("="*60)

    comparison_df = (
        bayes_tidy.select(["term", pl.col("estimate").alias("bayes_estimate"),
                           pl.col("std_error").alias("bayes_std_error")])
        .join(ols_tidy.select(["term", pl.col("estimate").alias("ols_estimate"),
                               pl.col("std_error").alias("ols_std_error")]),
              on="term", how="full", coalesce=True)
        .with_columns((pl.col("bayes_estimate") - pl.col("ols_estimate")).alias("difference"))
        .with_columns((pl.col("difference") / pl.col("ols_estimate") * 100).alias("relative_diff_pct"))
        .sort("term")
    )
    print(comparison_df)

    print("\n" + "="*60)
    print("SUMMARY STATISTICS")
    print("="*60)
    print(f"Bayesian R-squared: {bayes_result.r_squared:.4f}")
    print(f"Least squares R-squared: {ols_result.r_squared:.4f}")
    print(f"Bayesian sigma: {bayes_result.sigma:.4f}")
    print(f"Least squares sigma: {ols_result.sigma:.4f}")

    diffs = comparison_df["difference"].drop_nulls().to_numpy()
    if len(diffs):
        print(f"Mean absolute difference in coefficients: {np.mean(np.abs(diffs)):.6f}")

    return bayes_result, ols_result, comparison_df


if __name__ == "__main__":
    df = sleep_brain()

    bayes_result, ols_result, comparison = compare_models(df, "sleep_total ~ log_brainwt")

    print("\n" + "="*80)
    print("ADDITIONAL COMPARISON: brain weight on the original scale")
    print("="*80)

    compare_models(df, "sleep_total ~ brainwt")
