"""
Example usage of slumber: how does brain weight relate to sleep?
"""

import matplotlib.pyplot as plt
from slumber import (
    sleep_brain, prediction_grid, lm, ols, tidy, glance,
    posterior_linpred, posterior_predict, summarize_predictions,
)
from slumber.plots import plot_fit, plot_posterior_lines, plot_prediction_band

# Mammals with a recorded brain weight, plus log10(brainwt)
df = sleep_brain()

print("Sample data:")
print(df.select(["observation", "name", "sleep_total", "brainwt", "log_brainwt"]).head())

formula = "sleep_total ~ log_brainwt"

# Classical fit
print("\n" + "="*50)
print("Least squares")
print("="*50)
ols_result = ols(df, formula)
tidy(ols_result, title="Least Squares")

# Bayesian fit
print("\n" + "="*50)
print("Bayesian linear regression")
print("="*50)
result = lm(df, formula)

print("\nCoefficients:")
for term, coef in result.coefficients.items():
    print(f"  {term}: {coef:.4f}")

tidy(result)
glance(result)

# Summaries over a grid of brain weights
grid = prediction_grid(df, "log_brainwt", n=80)
linpred = summarize_predictions(posterior_linpred(result, grid), grid)
predictive = summarize_predictions(posterior_predict(result, grid), grid)

print("\nLinear predictor (first rows):")
print(linpred.head())
print("\nPosterior predictive (first rows):")
print(predictive.head())

fig, axes = plt.subplots(2, 2, figsize=(11, 8), sharex=True, sharey=True)
plot_fit(df, "log_brainwt", "sleep_total", ols_result=ols_result, bayes_result=result, ax=axes[0, 0])
axes[0, 0].set_title("Point estimates")
plot_posterior_lines(df, result, "log_brainwt", "sleep_total", n_lines=200, seed=1, ax=axes[0, 1])
axes[0, 1].set_title("Posterior draws")
plot_prediction_band(linpred, df, "log_brainwt", "sleep_total",
                     label="95% interval, linear predictor", ax=axes[1, 0])
axes[1, 0].set_title("Linear predictor")
plot_prediction_band(predictive, df, "log_brainwt", "sleep_total",
                     label="95% interval, posterior predictive", ax=axes[1, 1])
axes[1, 1].set_title("Posterior predictive")
fig.tight_layout()
plt.show()
