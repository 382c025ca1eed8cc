"""
Exceptions raised by the posterior summarizer.
"""


class ShapeMismatchError(ValueError):
    """Draw matrix dimensions disagree with the observation table."""


class InvalidArgumentError(ValueError):
    """Malformed quantile thresholds or observation table."""
