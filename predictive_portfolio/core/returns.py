"""
Returns Matrix Module
=====================

Turns per-asset price series into the aligned returns matrix that every
other component works from.

RETURN CALCULATION:
    Simple daily return: r_t = P_t / P_{t-1} - 1

    The first date of each series has no return and is dropped.

ALIGNMENT:
    Asset return series are inner-joined on their dates. Only dates present
    for every asset survive, in ascending order, and rows with any missing
    value are dropped. The row order of the resulting matrix is chronological
    and is never changed afterwards; drawdown and other time-series metrics
    depend on it.

The covariance matrix and expected returns used by the optimizer and the
frontier sampler are both computed from this one matrix, so they always
describe the same rows.
"""

import numpy as np
import pandas as pd
from typing import Tuple, List, Optional, Mapping

from predictive_portfolio.core.errors import InsufficientDataError


def daily_returns(prices: pd.Series, asset: Optional[str] = None) -> pd.Series:
    """
    Compute simple returns from a date-indexed price series.

    Formula: r_t = P_t / P_{t-1} - 1

    Args:
        prices: Close prices indexed by date
        asset: Asset name used in error messages

    Returns:
        Return series, one element shorter than prices

    Raises:
        InsufficientDataError: Fewer than 2 price observations
        ValueError: Duplicate dates or non-positive prices
    """
    name = asset if asset is not None else prices.name
    prices = prices.dropna()

    if len(prices) < 2:
        date_range = (prices.index.min(), prices.index.max()) if len(prices) else None
        raise InsufficientDataError(
            f"Need at least 2 price observations, got {len(prices)}",
            asset=name,
            date_range=date_range
        )

    if prices.index.has_duplicates:
        dupes = prices.index[prices.index.duplicated()].unique()
        raise ValueError(f"Price series for {name} has duplicate dates: {list(dupes[:5])}")

    if (prices <= 0).any():
        raise ValueError(f"Price series for {name} contains non-positive prices")

    prices = prices.sort_index().astype(float)
    returns = prices / prices.shift(1) - 1
    returns = returns.iloc[1:]
    returns.name = name
    return returns


def build_returns_matrix(prices: Mapping[str, pd.Series]) -> pd.DataFrame:
    """
    Build the aligned returns matrix from per-asset price series.

    Args:
        prices: Mapping of asset identifier -> date-indexed close prices

    Returns:
        DataFrame of simple returns (rows = dates ascending, cols = assets)

    Raises:
        ValueError: Empty mapping
        InsufficientDataError: An asset has < 2 prices, or < 2 common dates

    Example:
        >>> returns = build_returns_matrix({'AAPL': aapl_close, 'MSFT': msft_close})
    """
    if not prices:
        raise ValueError("No price series supplied")

    series = [daily_returns(s, asset=name) for name, s in prices.items()]

    returns = pd.concat(series, axis=1, join='inner').sort_index()
    returns.columns = list(prices.keys())
    returns = returns.dropna()

    if len(returns) < 2:
        first = min(s.index.min() for s in series)
        last = max(s.index.max() for s in series)
        raise InsufficientDataError(
            f"Only {len(returns)} date(s) common to all assets; need at least 2",
            date_range=(first, last)
        )

    return returns


def compute_stats_from_returns(
    returns: pd.DataFrame,
    ddof: int = 1
) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """
    Compute expected returns and covariance matrix from the returns matrix.

    Args:
        returns: Returns matrix (rows = time periods, cols = assets)
        ddof: 1 for sample covariance (N-1), 0 for population covariance (N)

    Returns:
        Tuple of (expected_returns, cov_matrix, asset_names)
    """
    values = np.asarray(returns, dtype=float)

    if values.ndim == 1:
        values = values.reshape(-1, 1)

    n_periods, n_assets = values.shape

    expected_returns = np.mean(values, axis=0)
    cov_matrix = np.cov(values, rowvar=False, ddof=ddof)

    # Handle single asset case
    if n_assets == 1:
        cov_matrix = np.asarray(cov_matrix).reshape(1, 1)

    if isinstance(returns, pd.DataFrame):
        asset_names = [str(c) for c in returns.columns]
    else:
        asset_names = [f"Asset_{i+1}" for i in range(n_assets)]

    return expected_returns, cov_matrix, asset_names


def correlation_matrix(returns: pd.DataFrame) -> pd.DataFrame:
    """Pearson correlation between asset return columns."""
    return returns.corr()


def asset_statistics(returns: pd.DataFrame, periods_per_year: int = 252) -> pd.DataFrame:
    """
    Per-asset summary: mean, standard deviation and their annualized values.

    Args:
        returns: Returns matrix
        periods_per_year: Annualization factor

    Returns:
        DataFrame indexed by asset
    """
    mean = returns.mean()
    std = returns.std(ddof=1)
    return pd.DataFrame({
        'mean': mean,
        'std': std,
        'annual_mean': mean * periods_per_year,
        'annual_std': std * np.sqrt(periods_per_year),
    })


def portfolio_returns(returns: pd.DataFrame, weights: np.ndarray) -> pd.Series:
    """
    Compute the realized portfolio return series.

    Formula: r_p,t = sum_i(w_i * r_i,t), one value per row of the matrix

    Args:
        returns: Returns matrix
        weights: One weight per column, in column order

    Returns:
        Series with the same date index as the returns matrix
    """
    weights = np.asarray(weights, dtype=float).flatten()
    if weights.shape[0] != returns.shape[1]:
        raise ValueError(
            f"Got {weights.shape[0]} weights for {returns.shape[1]} assets"
        )
    if not np.all(np.isfinite(weights)):
        raise ValueError("Weights contain NaN or Inf")

    series = pd.Series(returns.values @ weights, index=returns.index, name="Portfolio")
    return series
