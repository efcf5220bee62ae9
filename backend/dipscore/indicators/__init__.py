"""Technical indicators (pure math, no I/O)."""

from dipscore.indicators.indicators import (
    MacdResult,
    average_true_range,
    exponential_average,
    linear_regression_slope,
    lowest,
    macd,
    moving_average,
    relative_strength_index,
    standard_deviation,
    true_range,
)

__all__ = [
    "MacdResult",
    "average_true_range",
    "exponential_average",
    "linear_regression_slope",
    "lowest",
    "macd",
    "moving_average",
    "relative_strength_index",
    "standard_deviation",
    "true_range",
]
