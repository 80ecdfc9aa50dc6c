import types

import numpy as np
import pytest

from predictive_portfolio.core.errors import DegenerateRiskError
from predictive_portfolio.core.frontier import (
    FrontierSample,
    frontier_frame,
    frontier_position,
    sample_frontier,
)
from predictive_portfolio.core.optimizer import solve_min_variance
from predictive_portfolio.core.returns import compute_stats_from_returns


@pytest.fixture
def stats(returns):
    means, cov, _ = compute_stats_from_returns(returns)
    return means, cov


def test_sampler_is_lazy_and_finite(stats):
    means, cov = stats
    samples = sample_frontier(cov, means, n_samples=5, seed=1)

    assert isinstance(samples, types.GeneratorType)
    assert len(list(samples)) == 5
    with pytest.raises(StopIteration):
        next(samples)


def test_samples_are_feasible_and_consistent(stats):
    means, cov = stats
    for sample in sample_frontier(cov, means, n_samples=200, seed=3, rf_rate=0.0001):
        assert isinstance(sample, FrontierSample)
        assert np.all(sample.weights >= 0)
        assert sample.weights.sum() == pytest.approx(1.0)
        assert sample.ret == pytest.approx(sample.weights @ means)
        assert sample.risk == pytest.approx(np.sqrt(sample.weights @ cov @ sample.weights))
        assert sample.sharpe == pytest.approx((sample.ret - 0.0001) / sample.risk)


def test_same_seed_replays_the_sequence(stats):
    means, cov = stats
    first = frontier_frame(sample_frontier(cov, means, n_samples=50, seed=123))
    second = frontier_frame(sample_frontier(cov, means, n_samples=50, seed=123))
    other = frontier_frame(sample_frontier(cov, means, n_samples=50, seed=124))

    assert first.equals(second)
    assert not first.equals(other)


def test_zero_risk_sample_raises_when_not_skipping():
    samples = sample_frontier(np.zeros((2, 2)), np.array([0.01, 0.02]),
                              n_samples=3, skip_degenerate=False)
    with pytest.raises(DegenerateRiskError):
        next(samples)


def test_zero_risk_samples_are_skipped_with_warning():
    with pytest.warns(UserWarning, match="zero risk"):
        frame = frontier_frame(sample_frontier(np.zeros((2, 2)), np.array([0.01, 0.02]),
                                               n_samples=3))
    assert frame.empty


def test_shape_mismatch():
    with pytest.raises(ValueError):
        list(sample_frontier(np.eye(3), np.zeros(2), n_samples=1))


def test_frontier_frame_columns(stats):
    means, cov = stats
    frame = frontier_frame(sample_frontier(cov, means, n_samples=20, seed=9))
    assert list(frame.columns) == ["Return", "Risk", "Sharpe"]
    assert len(frame) == 20


def test_no_sample_is_less_risky_than_the_minimum_variance_portfolio(stats):
    means, cov = stats
    weights = solve_min_variance(cov)
    risk = float(np.sqrt(weights @ cov @ weights))
    ret = float(weights @ means)

    frame = frontier_frame(sample_frontier(cov, means, n_samples=1000, seed=123))
    position = frontier_position(frame, risk, ret)

    assert position["n_samples"] == 1000
    assert position["pct_lower_risk"] == 0.0
    assert position["pct_dominating"] == 0.0
    assert position["min_sample_risk"] >= risk


def test_frontier_position_on_empty_frame():
    frame = frontier_frame([])
    position = frontier_position(frame, 0.01, 0.001)
    assert position["n_samples"] == 0
    assert np.isnan(position["pct_lower_risk"])
