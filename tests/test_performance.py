import dataclasses

import numpy as np
import pandas as pd
import pytest

from predictive_portfolio.core.errors import (
    DegenerateRiskError,
    EmptySeriesError,
    InsufficientDataError,
    NoDownsideObservationsError,
)
from predictive_portfolio.core.performance import (
    PerformanceReport,
    annualized_return,
    annualized_volatility,
    downside_deviation,
    drawdown_series,
    evaluate_performance,
    max_drawdown,
    sharpe_ratio,
    sortino_ratio,
    summary_table,
)


SERIES = [0.01, -0.02, 0.03, -0.01, 0.02]


def test_report_matches_formulas():
    r = np.array(SERIES)
    factor = 252

    geometric_mean = np.prod(1 + r) ** (1 / len(r)) - 1
    expected_return = (1 + geometric_mean) ** factor - 1
    expected_vol = np.std(r, ddof=1) * np.sqrt(factor)
    expected_sharpe = np.mean(r) / np.std(r, ddof=1) * np.sqrt(factor)
    downside = np.sqrt(np.mean(np.minimum(r, 0) ** 2))
    expected_sortino = np.mean(r) / downside

    wealth = np.cumprod(1 + r)
    peaks = np.maximum.accumulate(np.concatenate(([1.0], wealth)))[1:]
    expected_mdd = np.max(1 - wealth / peaks)

    report = evaluate_performance(SERIES, periods_per_year=factor)

    assert report.annualized_return == pytest.approx(expected_return, abs=1e-9)
    assert report.annualized_volatility == pytest.approx(expected_vol, abs=1e-9)
    assert report.sharpe_ratio == pytest.approx(expected_sharpe, abs=1e-9)
    assert report.sortino_ratio == pytest.approx(expected_sortino, abs=1e-9)
    assert report.max_drawdown == pytest.approx(expected_mdd, abs=1e-9)
    assert report.observations == 5


def test_max_drawdown_known_value():
    # Wealth: 1.01 -> 0.9898 (peak 1.01) ... 1.019494 -> 1.0092991
    assert max_drawdown(SERIES) == pytest.approx(0.02, abs=1e-12)


def test_max_drawdown_counts_a_first_period_loss():
    assert max_drawdown([-0.05, 0.01]) == pytest.approx(0.05)


def test_max_drawdown_zero_iff_wealth_never_falls():
    assert max_drawdown([0.0, 0.01, 0.0, 0.02]) == 0.0
    assert max_drawdown([0.01, -1e-6, 0.02]) > 0.0


def test_max_drawdown_in_unit_interval():
    rng = np.random.default_rng(5)
    for _ in range(20):
        r = np.clip(rng.normal(0, 0.05, size=250), -0.99, None)
        mdd = max_drawdown(r)
        assert 0.0 <= mdd <= 1.0
        assert np.all(drawdown_series(r) >= 0)


@pytest.mark.parametrize("rf_rate", [-0.01, 0.0, 0.001, 0.004, 0.05])
def test_sharpe_sign_matches_excess_mean(rf_rate):
    excess = np.mean(SERIES) - rf_rate
    assert np.sign(sharpe_ratio(SERIES, rf_rate=rf_rate)) == np.sign(excess)


def test_sharpe_of_constant_series_is_degenerate():
    with pytest.raises(DegenerateRiskError):
        sharpe_ratio([0.01, 0.01, 0.01])
    # std of this series rounds to ~1e-17 rather than 0
    with pytest.raises(DegenerateRiskError):
        sharpe_ratio([0.1, 0.1, 0.1])


def test_volatility_needs_two_observations():
    with pytest.raises(InsufficientDataError):
        annualized_volatility([0.01])


@pytest.mark.parametrize("func", [
    annualized_return, annualized_volatility, sharpe_ratio,
    downside_deviation, sortino_ratio, max_drawdown, evaluate_performance,
])
def test_empty_series(func):
    with pytest.raises(EmptySeriesError):
        func([])


def test_non_finite_returns_rejected():
    with pytest.raises(ValueError):
        evaluate_performance([0.01, np.nan, 0.02])


def test_sortino_without_downside_raises_by_default():
    gains = [0.01, 0.0, 0.02, 0.005]
    with pytest.raises(NoDownsideObservationsError):
        sortino_ratio(gains)
    with pytest.raises(NoDownsideObservationsError):
        evaluate_performance(gains)


def test_sortino_without_downside_zero_policy():
    gains = [0.01, 0.0, 0.02, 0.005]
    assert sortino_ratio(gains, zero_if_no_downside=True) == 0.0

    report = evaluate_performance(gains, zero_sortino_if_no_downside=True)
    assert report.sortino_ratio == 0.0
    assert report.max_drawdown == 0.0


def test_sortino_respects_mar():
    r = np.array(SERIES)
    mar = 0.015
    expected = (r.mean() - mar) / np.sqrt(np.mean(np.minimum(r - mar, 0) ** 2))
    assert sortino_ratio(r, mar=mar) == pytest.approx(expected)


def test_report_is_immutable_and_keeps_provenance_apart():
    index = pd.bdate_range("2024-01-01", periods=5)
    series = pd.Series(SERIES, index=index)

    report = evaluate_performance(series, provenance={"method": "slsqp", "seed": 123})
    other = evaluate_performance(SERIES, provenance={"method": "differential_evolution"})

    with pytest.raises(dataclasses.FrozenInstanceError):
        report.sharpe_ratio = 0.0

    assert report == other
    assert report.provenance["seed"] == 123
    assert report.provenance["start"] == index[0]
    assert report.provenance["end"] == index[-1]
    assert "provenance" not in report.metrics()
    assert set(report.metrics()) == {
        "annualized_return", "annualized_volatility", "sharpe_ratio",
        "sortino_ratio", "max_drawdown", "observations",
    }


def test_summary_table():
    reports = {
        "Portfolio": evaluate_performance(SERIES),
        "Benchmark": evaluate_performance([0.02, -0.01, 0.0, -0.03, 0.01]),
    }
    table = summary_table(reports)

    assert list(table.columns) == ["Portfolio", "Benchmark"]
    assert table.loc["Annualized Sharpe", "Portfolio"] == reports["Portfolio"].sharpe_ratio
    assert table.loc["Max Drawdown", "Benchmark"] == reports["Benchmark"].max_drawdown
    assert isinstance(reports["Portfolio"], PerformanceReport)
