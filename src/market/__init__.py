"""Time-series utilities over date-indexed pandas Series.

Usage::

    from src.market.timeseries import lookback_window, quadratic_variation
"""

from src.market.timeseries import (
    MIN_OBSERVATIONS,
    TRADING_DAYS_PER_YEAR,
    align_to_longest,
    annualized_volatility,
    closest_prior_index,
    difference,
    history_until,
    log_returns,
    lookback_window,
    observation_count,
    quadratic_variation,
    replace_nan,
    standard_deviation,
    value_at,
)

__all__ = [
    "MIN_OBSERVATIONS",
    "TRADING_DAYS_PER_YEAR",
    "align_to_longest",
    "annualized_volatility",
    "closest_prior_index",
    "difference",
    "history_until",
    "log_returns",
    "lookback_window",
    "observation_count",
    "quadratic_variation",
    "replace_nan",
    "standard_deviation",
    "value_at",
]
