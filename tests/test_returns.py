import numpy as np
import pandas as pd
import pytest

from predictive_portfolio.core.errors import InsufficientDataError
from predictive_portfolio.core.returns import (
    asset_statistics,
    build_returns_matrix,
    compute_stats_from_returns,
    correlation_matrix,
    daily_returns,
    portfolio_returns,
)


def _series(values, start="2024-01-01", name=None):
    index = pd.date_range(start, periods=len(values), freq="D")
    return pd.Series(values, index=index, name=name, dtype=float)


def test_daily_returns_simple_formula():
    prices = _series([100.0, 110.0, 99.0, 99.0])
    r = daily_returns(prices, asset="A")

    assert len(r) == 3
    np.testing.assert_allclose(r.values, [0.10, -0.10, 0.0])
    assert r.index[0] == prices.index[1]
    assert r.name == "A"


def test_daily_returns_sorts_by_date():
    prices = _series([100.0, 110.0, 121.0]).iloc[::-1]
    r = daily_returns(prices)
    np.testing.assert_allclose(r.values, [0.10, 0.10])
    assert r.index.is_monotonic_increasing


def test_daily_returns_needs_two_prices():
    with pytest.raises(InsufficientDataError) as info:
        daily_returns(_series([100.0]), asset="TSLA")
    assert info.value.asset == "TSLA"
    assert info.value.component == "returns"
    assert "TSLA" in info.value.describe()


def test_daily_returns_rejects_duplicate_dates():
    prices = pd.Series(
        [1.0, 2.0, 3.0],
        index=pd.to_datetime(["2024-01-01", "2024-01-02", "2024-01-02"])
    )
    with pytest.raises(ValueError, match="duplicate"):
        daily_returns(prices, asset="A")


def test_daily_returns_rejects_non_positive_prices():
    with pytest.raises(ValueError, match="non-positive"):
        daily_returns(_series([1.0, 0.0, 2.0]), asset="A")


def test_build_returns_matrix_inner_join():
    a = _series([10.0, 11.0, 12.1, 13.31, 14.641], start="2024-01-01")
    b = _series([20.0, 22.0, 24.2, 26.62, 29.282], start="2024-01-02")

    returns = build_returns_matrix({"A": a, "B": b})

    # A has returns on Jan 2-5, B on Jan 3-6
    assert list(returns.columns) == ["A", "B"]
    assert list(returns.index) == list(pd.date_range("2024-01-03", "2024-01-05"))
    np.testing.assert_allclose(returns.values, 0.10)
    assert not returns.isna().any().any()


def test_build_returns_matrix_drops_rows_with_gaps(prices):
    gappy = prices["AAPL"].copy()
    gappy.iloc[10:15] = np.nan
    prices = dict(prices, AAPL=gappy)

    returns = build_returns_matrix(prices)

    assert not returns.isna().any().any()
    assert returns.index.is_monotonic_increasing
    assert gappy.index[11] not in returns.index


def test_build_returns_matrix_too_few_common_dates():
    a = _series([1.0, 1.1, 1.2], start="2024-01-01")
    b = _series([1.0, 1.1, 1.2], start="2024-01-03")

    with pytest.raises(InsufficientDataError) as info:
        build_returns_matrix({"A": a, "B": b})
    assert info.value.date_range is not None


def test_build_returns_matrix_empty_mapping():
    with pytest.raises(ValueError):
        build_returns_matrix({})


def test_compute_stats_same_rows(returns):
    means, cov, names = compute_stats_from_returns(returns)

    assert names == list(returns.columns)
    np.testing.assert_allclose(means, returns.mean().values)
    np.testing.assert_allclose(cov, returns.cov().values)

    _, pop_cov, _ = compute_stats_from_returns(returns, ddof=0)
    n = len(returns)
    np.testing.assert_allclose(pop_cov, cov * (n - 1) / n)


def test_compute_stats_single_asset(returns):
    means, cov, names = compute_stats_from_returns(returns[["MSFT"]])
    assert cov.shape == (1, 1)
    assert names == ["MSFT"]


def test_correlation_and_asset_statistics(returns):
    corr = correlation_matrix(returns)
    np.testing.assert_allclose(np.diag(corr.values), 1.0)

    stats = asset_statistics(returns, periods_per_year=252)
    assert list(stats.index) == list(returns.columns)
    np.testing.assert_allclose(stats["annual_mean"], stats["mean"] * 252)
    np.testing.assert_allclose(stats["annual_std"], stats["std"] * np.sqrt(252))


def test_portfolio_returns_is_row_dot_product(returns):
    weights = np.array([0.1, 0.2, 0.3, 0.25, 0.15])
    series = portfolio_returns(returns, weights)

    assert series.index.equals(returns.index)
    expected = (returns * weights).sum(axis=1)
    np.testing.assert_allclose(series.values, expected.values)


def test_portfolio_returns_wrong_length(returns):
    with pytest.raises(ValueError, match="weights"):
        portfolio_returns(returns, np.array([0.5, 0.5]))
