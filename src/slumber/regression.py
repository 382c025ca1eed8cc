"""
Classical and Bayesian linear regression using fiasto-py and blackjax.
"""

import jax
import jax.numpy as jnp
import numpy as np
import polars as pl
import fiasto_py
import blackjax
import tidy_viewer_py as tv
from scipy import stats
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn
from typing import Dict, List, Tuple, Union, Optional
from dataclasses import dataclass

from .summarize import ObservationTable, summarize_draws


INTERCEPT = "(Intercept)"


@dataclass
class RegressionResult:
    """Container for Bayesian regression results."""
    coefficients: Dict[str, float]
    sigma: float
    r_squared: float
    log_lik: float
    formula: str
    n_obs: int
    n_params: int
    pathfinder_result: Dict


@dataclass
class OLSResult:
    """Container for ordinary least squares results."""
    coefficients: Dict[str, float]
    std_errors: Dict[str, float]
    sigma: float
    r_squared: float
    log_lik: float
    formula: str
    n_obs: int
    n_params: int
    level: float
    cov_params: np.ndarray


def _parse_formula(formula: str) -> Dict:
    """
    Parse formula using fiasto-py and extract relevant information.

    Args:
        formula: Wilkinson's formula string (e.g., "y ~ x1 + x2")

    Returns:
        Parsed formula metadata
    """
    try:
        result = fiasto_py.parse_formula(formula)
        return result
    except Exception as e:
        raise ValueError(f"Failed to parse formula '{formula}': {e}") from e


def _extract_variables(parsed_formula: Dict) -> Tuple[List[str], List[str]]:
    """
    Extract response and predictor variables from parsed formula.

    Args:
        parsed_formula: Result from fiasto_py.parse_formula()

    Returns:
        Tuple of (response_vars, predictor_vars)
    """
    response_vars = []
    predictor_vars = []

    for col, details in parsed_formula["columns"].items():
        if "Response" in details["roles"]:
            response_vars.append(col)
        elif "FixedEffect" in details["roles"]:
            predictor_vars.append(col)

    return response_vars, predictor_vars


def _model_terms(formula: str) -> Tuple[str, List[str], bool]:
    """Response, predictors and intercept flag of a single-response formula."""
    parsed_formula = _parse_formula(formula)
    response_vars, predictor_vars = _extract_variables(parsed_formula)
    has_intercept = parsed_formula["metadata"]["has_intercept"]

    if len(response_vars) != 1:
        raise ValueError("Only single response variable is currently supported")

    if len(predictor_vars) == 0 and not has_intercept:
        raise ValueError("Model must have at least one predictor or intercept")

    return response_vars[0], predictor_vars, has_intercept


def _term_names(predictor_vars: List[str], has_intercept: bool) -> List[str]:
    names = [INTERCEPT] if has_intercept else []
    names.extend(predictor_vars)
    return names


def _design_matrix(df: pl.DataFrame, predictor_vars: List[str],
                   has_intercept: bool) -> np.ndarray:
    """
    Build the design matrix for the predictors of a model.

    Args:
        df: Polars DataFrame
        predictor_vars: List of predictor variable names
        has_intercept: Whether to include intercept

    Returns:
        Float array of shape (n_rows, n_params)
    """
    missing_vars = [var for var in predictor_vars if var not in df.columns]
    if missing_vars:
        raise ValueError(f"Variables not found in DataFrame: {missing_vars}")

    X = df.select(predictor_vars).to_numpy().astype(float) if predictor_vars \
        else np.empty((df.height, 0))

    if has_intercept:
        X = np.column_stack([np.ones(X.shape[0]), X])

    if np.isnan(X).any():
        raise ValueError("Predictors contain missing values")

    return X


def _prepare_data(df: pl.DataFrame, response: str, predictor_vars: List[str],
                  has_intercept: bool) -> Tuple[np.ndarray, np.ndarray]:
    """
    Prepare data matrices for regression.

    Args:
        df: Polars DataFrame
        response: Response variable name
        predictor_vars: List of predictor variable names
        has_intercept: Whether to include intercept

    Returns:
        Tuple of (X, y) as float arrays
    """
    if response not in df.columns:
        raise ValueError(f"Variables not found in DataFrame: {[response]}")

    X = _design_matrix(df, predictor_vars, has_intercept)
    y = df[response].to_numpy().astype(float)

    if np.isnan(y).any():
        raise ValueError(f"Response '{response}' contains missing values")

    return X, y


def _log_likelihood(params: jnp.ndarray, X: jnp.ndarray, y: jnp.ndarray,
                   sigma: float) -> float:
    """
    Log likelihood for linear regression.

    Args:
        params: Regression coefficients
        X: Design matrix
        y: Response vector
        sigma: Standard deviation of residuals

    Returns:
        Log likelihood value
    """
    n = X.shape[0]
    y_pred = X @ params
    log_lik = -0.5 * n * jnp.log(2 * jnp.pi * sigma**2) - 0.5 * jnp.sum((y - y_pred)**2) / sigma**2
    return log_lik


def _log_prior(params: jnp.ndarray, sigma: float, prior_scale: float = 10.0) -> float:
    """
    Log prior for regression coefficients and residual standard deviation.

    Args:
        params: Regression coefficients
        sigma: Standard deviation of residuals
        prior_scale: Scale of the normal prior (larger = weaker prior)

    Returns:
        Log prior value
    """
    log_prior_coefs = -0.5 * jnp.sum(params**2) / (prior_scale**2)  # N(0, prior_scale^2)
    log_prior_sigma = -2 * jnp.log(sigma)
    return log_prior_coefs + log_prior_sigma


def _log_posterior(params: jnp.ndarray, X: jnp.ndarray, y: jnp.ndarray,
                  sigma: float, prior_scale: float = 10.0) -> float:
    """
    Log posterior for linear regression.

    Args:
        params: Regression coefficients
        X: Design matrix
        y: Response vector
        sigma: Standard deviation of residuals
        prior_scale: Scale of the normal prior (larger = weaker prior)

    Returns:
        Log posterior value
    """
    return _log_likelihood(params, X, y, sigma) + _log_prior(params, sigma, prior_scale)


def _r_squared(X: np.ndarray, y: np.ndarray, coefs: np.ndarray) -> float:
    ss_res = np.sum((y - X @ coefs)**2)
    ss_tot = np.sum((y - np.mean(y))**2)
    return float(1 - ss_res / ss_tot)


def lm(df: pl.DataFrame, formula: str, **kwargs) -> RegressionResult:
    """
    Fit a Bayesian linear regression model using blackjax pathfinder.

    Args:
        df: Polars DataFrame containing the data
        formula: Wilkinson's formula string (e.g., "y ~ x1 + x2")
        **kwargs: Additional arguments for fine-tuning:
            - num_samples: Number of posterior samples (default: 4000)
            - pathfinder_samples: Number of pathfinder samples (default: 100)
            - maxiter: Maximum iterations for optimization (default: 1000)
            - ftol: Relative objective tolerance (default: 1e-5)
            - gtol: Gradient tolerance (default: 1e-8)
            - seed: Random seed (default: 42)
            - progress: Show a progress bar (default: True)

    Returns:
        RegressionResult object containing coefficients and model information
    """
    response, predictor_vars, has_intercept = _model_terms(formula)
    X_np, y_np = _prepare_data(df, response, predictor_vars, has_intercept)
    X, y = jnp.array(X_np), jnp.array(y_np)
    n_obs, n_params = X_np.shape

    if n_obs <= n_params:
        raise ValueError(f"Need more observations ({n_obs}) than parameters ({n_params})")

    prior_scale = 10.0

    def logdensity_fn(params_and_sigma):
        params = params_and_sigma[:-1]
        log_sigma = params_and_sigma[-1]
        sigma = jnp.exp(log_sigma)
        # log_sigma is the Jacobian of the exp transform
        return _log_posterior(params, X, y, sigma, prior_scale) + log_sigma

    # Start from the least squares solution
    ols_coefs, *_ = np.linalg.lstsq(X_np, y_np, rcond=None)
    ols_sigma = np.sqrt(np.mean((y_np - X_np @ ols_coefs)**2))
    init_params = jnp.concatenate([jnp.array(ols_coefs), jnp.array([np.log(ols_sigma)])])

    seed = kwargs.get("seed", 42)
    rng_key = jax.random.PRNGKey(seed)
    approx_key, sample_key = jax.random.split(rng_key)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        transient=False,
        disable=not kwargs.get("progress", True),
    ) as progress:

        pathfinder_task = progress.add_task(f"Fitting {formula}", total=100)

        pathfinder_state, _ = blackjax.vi.pathfinder.approximate(
            approx_key,
            logdensity_fn,
            init_params,
            num_samples=kwargs.get("pathfinder_samples", 100),
            maxiter=kwargs.get("maxiter", 1000),
            ftol=kwargs.get("ftol", 1e-5),
            gtol=kwargs.get("gtol", 1e-8),
        )
        progress.update(pathfinder_task, completed=100)

        sampling_task = progress.add_task("Sampling from posterior.", total=100)
        num_samples = kwargs.get("num_samples", 4000)
        samples, _ = blackjax.vi.pathfinder.sample(
            sample_key, pathfinder_state, num_samples
        )
        progress.update(sampling_task, completed=100)

    samples = np.asarray(samples, dtype=float)
    mean_params = samples.mean(axis=0)

    coefs = mean_params[:-1]
    sigma = float(np.mean(np.exp(samples[:, -1])))

    coefficients = dict(zip(_term_names(predictor_vars, has_intercept),
                            [float(c) for c in coefs]))

    log_lik = float(_log_likelihood(jnp.array(coefs), X, y, sigma))

    return RegressionResult(
        coefficients=coefficients,
        sigma=sigma,
        r_squared=_r_squared(X_np, y_np, coefs),
        log_lik=log_lik,
        formula=formula,
        n_obs=n_obs,
        n_params=n_params,
        pathfinder_result={"samples": samples, "state": pathfinder_state, "seed": seed},
    )


def ols(df: pl.DataFrame, formula: str, level: float = 0.95) -> OLSResult:
    """
    Fit a linear regression by ordinary least squares.

    Args:
        df: Polars DataFrame containing the data
        formula: Wilkinson's formula string (e.g., "y ~ x1 + x2")
        level: Confidence level for intervals reported by tidy()

    Returns:
        OLSResult with coefficients, standard errors and fit statistics
    """
    if not 0 < level < 1:
        raise ValueError(f"level must lie in (0, 1), got {level}")

    response, predictor_vars, has_intercept = _model_terms(formula)
    X, y = _prepare_data(df, response, predictor_vars, has_intercept)
    n_obs, n_params = X.shape
    df_residual = n_obs - n_params

    if df_residual <= 0:
        raise ValueError(f"Need more observations ({n_obs}) than parameters ({n_params})")

    coefs, _, rank, _ = np.linalg.lstsq(X, y, rcond=None)
    if rank < n_params:
        raise ValueError("Design matrix is rank deficient")

    residuals = y - X @ coefs
    rss = float(np.sum(residuals**2))
    sigma = np.sqrt(rss / df_residual)
    cov_params = sigma**2 * np.linalg.inv(X.T @ X)
    std_errors = np.sqrt(np.diag(cov_params))

    # Maximum likelihood uses rss / n for the variance
    log_lik = -0.5 * n_obs * (np.log(2 * np.pi * rss / n_obs) + 1)

    names = _term_names(predictor_vars, has_intercept)

    return OLSResult(
        coefficients=dict(zip(names, [float(c) for c in coefs])),
        std_errors=dict(zip(names, [float(s) for s in std_errors])),
        sigma=float(sigma),
        r_squared=_r_squared(X, y, coefs),
        log_lik=float(log_lik),
        formula=formula,
        n_obs=n_obs,
        n_params=n_params,
        level=level,
        cov_params=cov_params,
    )


def _display(df: pl.DataFrame, title: Optional[str], color_theme: str) -> None:
    viewer = tv.tv()

    if title:
        viewer = viewer.title(title)

    if color_theme != "default":
        viewer = viewer.color_theme(color_theme)

    viewer.print_polars_dataframe(df)


def _print_model_summary(result: Union[RegressionResult, OLSResult]) -> None:
    print(f"\nModel Summary:")
    print(f"  Formula: {result.formula}")
    print(f"  R-squared: {result.r_squared:.4f}")
    print(f"  Observations: {result.n_obs}")
    print(f"  Parameters: {result.n_params}")


def _coefficient_samples(result: RegressionResult) -> np.ndarray:
    return result.pathfinder_result["samples"][:, :-1]


def _sigma_samples(result: RegressionResult) -> np.ndarray:
    return np.exp(result.pathfinder_result["samples"][:, -1])


def tidy(result: Union[RegressionResult, OLSResult],
         display: bool = True,
         title: Optional[str] = None,
         color_theme: str = "default") -> pl.DataFrame:
    """
    Create a tidy summary of regression results, similar to broom::tidy().
    Uses tidy-viewer for enhanced display by default.

    Args:
        result: RegressionResult from lm() or OLSResult from ols()
        display: Whether to display the results using tidy-viewer
        title: Optional title for the display
        color_theme: Color theme for display ("default", "dracula", etc.)

    Returns:
        Polars DataFrame with term, estimate, and other statistics
    """
    terms = list(result.coefficients.keys())

    if isinstance(result, OLSResult):
        estimates = np.array(list(result.coefficients.values()))
        std_errors = np.array(list(result.std_errors.values()))
        t_statistics = estimates / std_errors
        df_residual = result.n_obs - result.n_params
        p_values = 2 * stats.t.sf(np.abs(t_statistics), df_residual)
        t_crit = stats.t.ppf(0.5 + result.level / 2, df_residual)
        lower_ci = estimates - t_crit * std_errors
        upper_ci = estimates + t_crit * std_errors
    else:
        coef_samples = _coefficient_samples(result)

        estimates = coef_samples.mean(axis=0)
        std_errors = coef_samples.std(axis=0)
        lower_ci = np.percentile(coef_samples, 2.5, axis=0)
        upper_ci = np.percentile(coef_samples, 97.5, axis=0)
        t_statistics = estimates / std_errors

        # Posterior probability of the estimate's sign, made two-sided
        p_values = np.where(estimates < 0,
                            np.mean(coef_samples < 0, axis=0),
                            np.mean(coef_samples > 0, axis=0))
        p_values = 2 * np.minimum(p_values, 1 - p_values)

    tidy_df = pl.DataFrame({
        "term": terms,
        "estimate": [float(x) for x in estimates],
        "std_error": [float(x) for x in std_errors],
        "statistic": [float(x) for x in t_statistics],
        "p_value": [float(x) for x in p_values],
        "p_025": [float(x) for x in lower_ci],
        "p_975": [float(x) for x in upper_ci],
    })

    if display:
        if title is None:
            title = f"Regression Results: {result.formula}"
        _display(tidy_df, title, color_theme)
        _print_model_summary(result)

    return tidy_df


def augment(result: RegressionResult,
            data: Optional[pl.DataFrame] = None,
            display: bool = True,
            title: Optional[str] = None,
            color_theme: str = "default") -> pl.DataFrame:
    """
    Add columns to the original data with model information (Bayesian equivalent of broom::augment).

    Args:
        result: RegressionResult from lm()
        data: Original DataFrame
        display: Whether to display the result using tidy-viewer
        title: Optional title for display
        color_theme: Color theme for tidy-viewer

    Returns:
        DataFrame with original data plus model columns
    """
    if data is None:
        raise ValueError("Data argument is required for augment() - cannot reconstruct from model")

    response, predictor_vars, has_intercept = _model_terms(result.formula)
    X, y = _prepare_data(data, response, predictor_vars, has_intercept)

    fitted_samples = posterior_linpred(result, data)
    fitted_values = fitted_samples.mean(axis=0)
    fitted_std = fitted_samples.std(axis=0)
    residuals = y - fitted_values

    band = summarize_draws(fitted_samples, ObservationTable(ids=tuple(range(data.height))))

    XtX_inv = np.linalg.pinv(X.T @ X)
    hat_values = np.einsum("ij,jk,ik->i", X, XtX_inv, X)

    sigma_mean = float(np.mean(_sigma_samples(result)))
    std_residuals = residuals / sigma_mean

    # broom convention: model columns carry a "." prefix
    augmented_data = data.clone().with_columns([
        pl.Series(".fitted", fitted_values),
        pl.Series(".resid", residuals),
        pl.Series(".fitted_std", fitted_std),
        pl.Series(".fitted_low", [row.lower for row in band]),
        pl.Series(".fitted_high", [row.upper for row in band]),
        pl.Series(".hat", hat_values),
        pl.Series(".std.resid", std_residuals),
        pl.Series(".sigma", np.full(len(fitted_values), sigma_mean)),
    ])

    if display:
        if title is None:
            title = "Augmented Data with Model Information"
        print(f"\n{title}")
        print("=" * len(title))
        _display(augmented_data, title, color_theme)
        _print_model_summary(result)
        print(f"  Added columns: .fitted, .resid, .fitted_std, .fitted_low, .fitted_high, .hat, .std.resid, .sigma")

    return augmented_data


def glance(result: Union[RegressionResult, OLSResult],
           display: bool = True,
           title: Optional[str] = None,
           color_theme: str = "default") -> pl.DataFrame:
    """
    Return a one-row summary of the model (equivalent of broom::glance).

    Args:
        result: RegressionResult from lm() or OLSResult from ols()
        display: Whether to display the result using tidy-viewer
        title: Optional title for display
        color_theme: Color theme for tidy-viewer

    Returns:
        One-row DataFrame with model summary statistics
    """
    df_residual = result.n_obs - result.n_params
    glance_data = {
        "r_squared": result.r_squared,
        "adj_r_squared": 1 - (1 - result.r_squared) * (result.n_obs - 1) / df_residual,
        "sigma": result.sigma,
        "log_lik": result.log_lik,
        "n_obs": result.n_obs,
        "n_params": result.n_params,
        "df_residual": df_residual,
        "formula": result.formula,
    }

    if isinstance(result, RegressionResult):
        sigma_samples = _sigma_samples(result)
        glance_data.update({
            "sigma_std": float(np.std(sigma_samples)),
            "n_samples": len(sigma_samples),
            "method": "Bayesian (blackjax pathfinder)",
        })
    else:
        glance_data["method"] = "Ordinary least squares"

    glance_df = pl.DataFrame([glance_data])

    if display:
        if title is None:
            title = "Model Summary (Glance)"
        print(f"\n{title}")
        print("=" * len(title))
        _display(glance_df, title, color_theme)

        print(f"\nModel Information:")
        print(f"  Method: {glance_data['method']}")
        print(f"  R-squared: {result.r_squared:.4f}")
        if isinstance(result, RegressionResult):
            print(f"  Posterior samples: {glance_data['n_samples']}")
            print(f"  Residual std dev: {result.sigma:.4f} ± {glance_data['sigma_std']:.4f}")
        else:
            print(f"  Residual std dev: {result.sigma:.4f}")

    return glance_df


def posterior_draws(result: RegressionResult) -> pl.DataFrame:
    """One row per posterior draw: a column per term plus sigma."""
    coef_samples = _coefficient_samples(result)
    data = {term: coef_samples[:, i] for i, term in enumerate(result.coefficients)}
    data["sigma"] = _sigma_samples(result)
    return pl.DataFrame(data)


def _newdata_matrix(result: RegressionResult, newdata: pl.DataFrame) -> np.ndarray:
    _, predictor_vars, has_intercept = _model_terms(result.formula)
    return _design_matrix(newdata, predictor_vars, has_intercept)


def posterior_linpred(result: RegressionResult, newdata: pl.DataFrame) -> np.ndarray:
    """
    Draws of the linear predictor for each row of ``newdata``.

    Args:
        result: RegressionResult from lm()
        newdata: DataFrame with the model's predictor columns

    Returns:
        Array of shape (n_samples, newdata.height)
    """
    X_new = _newdata_matrix(result, newdata)
    return _coefficient_samples(result) @ X_new.T


def posterior_predict(result: RegressionResult, newdata: pl.DataFrame,
                      seed: Optional[int] = None) -> np.ndarray:
    """
    Draws from the posterior predictive distribution for each row of ``newdata``.

    Each draw adds Normal(0, sigma) noise, with sigma taken from the same
    posterior draw, to the linear predictor.

    Args:
        result: RegressionResult from lm()
        newdata: DataFrame with the model's predictor columns
        seed: Random seed for the residual noise (default: fit seed + 1)

    Returns:
        Array of shape (n_samples, newdata.height)
    """
    linpred = posterior_linpred(result, newdata)
    if seed is None:
        seed = result.pathfinder_result["seed"] + 1

    noise = jax.random.normal(jax.random.PRNGKey(seed), linpred.shape)
    sigma = _sigma_samples(result)[:, None]
    return linpred + sigma * np.asarray(noise, dtype=float)


def ols_predict(result: OLSResult, newdata: pl.DataFrame,
                interval: str = "confidence") -> pl.DataFrame:
    """
    Point predictions and intervals from a least squares fit (like R's predict.lm).

    Args:
        result: OLSResult from ols()
        newdata: DataFrame with the model's predictor columns
        interval: "confidence" for the mean, "prediction" for new observations

    Returns:
        newdata with .fitted, .lower and .upper columns
    """
    if interval not in ("confidence", "prediction"):
        raise ValueError(f"interval must be 'confidence' or 'prediction', got '{interval}'")

    _, predictor_vars, has_intercept = _model_terms(result.formula)
    X_new = _design_matrix(newdata, predictor_vars, has_intercept)

    coefs = np.array(list(result.coefficients.values()))
    fitted = X_new @ coefs
    var_mean = np.einsum("ij,jk,ik->i", X_new, result.cov_params, X_new)
    var = var_mean + result.sigma**2 if interval == "prediction" else var_mean

    t_crit = stats.t.ppf(0.5 + result.level / 2, result.n_obs - result.n_params)
    half_width = t_crit * np.sqrt(var)

    return newdata.with_columns([
        pl.Series(".fitted", fitted),
        pl.Series(".lower", fitted - half_width),
        pl.Series(".upper", fitted + half_width),
    ])
