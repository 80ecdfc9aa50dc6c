"""
Monte Carlo Efficient Frontier
==============================

Approximates the feasible risk/return region by evaluating many random
long-only, fully invested portfolios. The cloud is descriptive only: it is
used to see where the optimized portfolio sits among typical allocations,
never to choose the final weights.

SAMPLING:
    For each sample, draw N independent U(0, 1) values and divide by their
    sum. The result always lies on the simplex, but it is NOT uniformly
    distributed over it (weights cluster toward equal allocation). That is
    fine for a picture of the frontier; do not use the cloud for statistical
    claims about the constraint region.

Each sample reports:
    return = w^T * mu
    risk   = sqrt(w^T * Sigma * w)
    sharpe = (return - rf) / risk
"""

import numpy as np
import pandas as pd
from typing import Iterator, Iterable, NamedTuple, Optional, Dict
import warnings

from predictive_portfolio.core.errors import DegenerateRiskError


RISK_EPSILON = 1e-12


class FrontierSample(NamedTuple):
    """One random portfolio on the risk/return plane."""

    risk: float
    ret: float
    sharpe: float
    weights: np.ndarray


def sample_frontier(
    cov_matrix: np.ndarray,
    expected_returns: np.ndarray,
    n_samples: int = 1000,
    seed: Optional[int] = 123,
    rf_rate: float = 0.0,
    skip_degenerate: bool = True
) -> Iterator[FrontierSample]:
    """
    Lazily generate random feasible portfolios.

    The generator is finite and single-use. Call again with the same seed to
    replay the same sequence; each call owns its own random state.

    Args:
        cov_matrix: Covariance matrix of the returns matrix
        expected_returns: Column means of the same returns matrix
        n_samples: Number of portfolios to draw (K)
        seed: Seed for this sampler's random generator
        rf_rate: Risk-free rate per period for the Sharpe ratio
        skip_degenerate: If True, skip zero-risk samples with a warning;
            if False, raise DegenerateRiskError

    Yields:
        FrontierSample tuples

    Raises:
        DegenerateRiskError: A sample has zero risk and skip_degenerate is False
    """
    cov = np.asarray(cov_matrix, dtype=float)
    mu = np.asarray(expected_returns, dtype=float).flatten()
    n_assets = len(mu)

    if cov.shape != (n_assets, n_assets):
        raise ValueError(
            f"Covariance matrix shape {cov.shape} doesn't match "
            f"number of assets {n_assets}"
        )

    rng = np.random.default_rng(seed)

    for i in range(n_samples):
        weights = rng.uniform(size=n_assets)
        weights = weights / np.sum(weights)

        ret = float(np.dot(weights, mu))
        risk = float(np.sqrt(max(np.dot(weights, np.dot(cov, weights)), 0.0)))

        if risk < RISK_EPSILON:
            if not skip_degenerate:
                raise DegenerateRiskError(f"Frontier sample {i} has zero risk")
            warnings.warn(f"Skipping frontier sample {i}: zero risk")
            continue

        yield FrontierSample(risk, ret, (ret - rf_rate) / risk, weights)


def frontier_frame(samples: Iterable[FrontierSample]) -> pd.DataFrame:
    """
    Collect frontier samples into a table with Return, Risk and Sharpe columns.

    Consumes the iterable.
    """
    rows = [(s.ret, s.risk, s.sharpe) for s in samples]
    return pd.DataFrame(rows, columns=['Return', 'Risk', 'Sharpe'])


def frontier_position(frame: pd.DataFrame, risk: float, ret: float) -> Dict[str, float]:
    """
    Compare a portfolio's (risk, return) point with the sampled cloud.

    Args:
        frame: Output of frontier_frame()
        risk: Portfolio standard deviation (same period as the samples)
        ret: Portfolio expected return (same period as the samples)

    Returns:
        Dictionary with:
        - n_samples: size of the cloud
        - pct_lower_risk: share of samples with strictly lower risk
        - pct_dominating: share with lower risk AND higher return
        - min_sample_risk: lowest risk among samples
        - max_sample_sharpe: best Sharpe ratio among samples
    """
    if frame.empty:
        return {
            'n_samples': 0,
            'pct_lower_risk': float('nan'),
            'pct_dominating': float('nan'),
            'min_sample_risk': float('nan'),
            'max_sample_sharpe': float('nan'),
        }

    lower_risk = frame['Risk'] < risk
    dominating = lower_risk & (frame['Return'] > ret)

    return {
        'n_samples': len(frame),
        'pct_lower_risk': float(lower_risk.mean()),
        'pct_dominating': float(dominating.mean()),
        'min_sample_risk': float(frame['Risk'].min()),
        'max_sample_sharpe': float(frame['Sharpe'].max()),
    }
