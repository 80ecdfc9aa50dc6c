"""
Performance Evaluation
======================

Risk-adjusted performance metrics for a realized return series.

Formulas (r = period returns, n = number of periods, f = periods per year):

    Annualized Return      = prod(1 + r)^(f / n) - 1
                             i.e. (1 + geometric mean return)^f - 1
    Annualized Volatility  = std(r) * sqrt(f)                 (std with N-1)
    Sharpe Ratio           = (mean(r) - rf) / std(r) * sqrt(f)
    Downside Deviation     = sqrt(mean(min(r - MAR, 0)^2))    (over all n)
    Sortino Ratio          = (mean(r) - MAR) / Downside Deviation
    Maximum Drawdown       = max over t of 1 - W_t / max(W_0..W_t),
                             W_t = prod(1 + r_1..r_t), W_0 = 1

rf and MAR are per-period rates. The Sortino ratio is per period (not
annualized).

NO DOWNSIDE POLICY:
    When no return falls below MAR the downside deviation is zero and the
    Sortino ratio is undefined. sortino_ratio() raises
    NoDownsideObservationsError by default; pass zero_if_no_downside=True to
    report 0.0 instead.

The series must be in chronological order; the drawdown depends on it.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from predictive_portfolio.core.errors import (
    DegenerateRiskError,
    EmptySeriesError,
    InsufficientDataError,
    NoDownsideObservationsError,
)
from predictive_portfolio.core.frontier import RISK_EPSILON


ReturnsLike = Union[pd.Series, np.ndarray, Sequence[float]]


def _as_array(returns: ReturnsLike) -> np.ndarray:
    values = np.asarray(returns, dtype=float).flatten()
    if values.size == 0:
        raise EmptySeriesError("Return series is empty")
    if not np.all(np.isfinite(values)):
        raise ValueError("Return series contains NaN or Inf")
    return values


def _std(values: np.ndarray) -> float:
    if values.size < 2:
        raise InsufficientDataError(
            "Standard deviation needs at least 2 observations",
            component="performance"
        )
    return float(np.std(values, ddof=1))


def annualized_return(returns: ReturnsLike, periods_per_year: int = 252) -> float:
    values = _as_array(returns)
    growth = np.prod(1 + values)
    return float(growth ** (periods_per_year / values.size) - 1)


def annualized_volatility(returns: ReturnsLike, periods_per_year: int = 252) -> float:
    values = _as_array(returns)
    return _std(values) * np.sqrt(periods_per_year)


def sharpe_ratio(
    returns: ReturnsLike,
    rf_rate: float = 0.0,
    periods_per_year: int = 252
) -> float:
    """
    Annualized Sharpe ratio.

    Raises:
        DegenerateRiskError: The series has zero standard deviation
    """
    values = _as_array(returns)
    std = _std(values)
    # Rounding leaves a constant series with std ~1e-17, not 0
    if std < RISK_EPSILON * max(1.0, abs(float(np.mean(values)))):
        raise DegenerateRiskError(
            "Sharpe ratio undefined for a constant return series",
            component="performance"
        )
    return float((np.mean(values) - rf_rate) / std * np.sqrt(periods_per_year))


def downside_deviation(returns: ReturnsLike, mar: float = 0.0) -> float:
    values = _as_array(returns)
    shortfall = np.minimum(values - mar, 0)
    return float(np.sqrt(np.mean(shortfall ** 2)))


def sortino_ratio(
    returns: ReturnsLike,
    mar: float = 0.0,
    zero_if_no_downside: bool = False
) -> float:
    """
    Sortino ratio against a minimum acceptable return.

    Args:
        returns: Period returns
        mar: Minimum acceptable return per period
        zero_if_no_downside: Report 0.0 when no return is below MAR

    Raises:
        NoDownsideObservationsError: No return below MAR (default policy)
    """
    values = _as_array(returns)
    dd = downside_deviation(values, mar)
    if dd == 0:
        if zero_if_no_downside:
            return 0.0
        raise NoDownsideObservationsError(
            f"No return below MAR={mar}; Sortino ratio undefined"
        )
    return float((np.mean(values) - mar) / dd)


def drawdown_series(returns: ReturnsLike) -> np.ndarray:
    """Drawdown after each period, as positive fractions of the running peak."""
    values = _as_array(returns)
    wealth = np.cumprod(1 + values)
    peaks = np.maximum.accumulate(np.concatenate(([1.0], wealth)))[1:]
    return 1 - wealth / peaks


def max_drawdown(returns: ReturnsLike) -> float:
    return float(np.max(drawdown_series(returns)))


@dataclass(frozen=True)
class PerformanceReport:
    """
    Performance metrics of one return series.

    provenance records how the series was produced (solver method, seed,
    annualization settings); it is not a computed metric and is ignored when
    comparing reports.
    """

    annualized_return: float
    annualized_volatility: float
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown: float
    observations: int
    provenance: Dict[str, Any] = field(default_factory=dict, compare=False)

    def metrics(self) -> Dict[str, float]:
        """The computed fields only."""
        values = asdict(self)
        values.pop('provenance')
        return values


def evaluate_performance(
    returns: ReturnsLike,
    periods_per_year: int = 252,
    rf_rate: float = 0.0,
    mar: float = 0.0,
    zero_sortino_if_no_downside: bool = False,
    provenance: Optional[Mapping[str, Any]] = None
) -> PerformanceReport:
    """
    Compute the full performance report for a return series.

    Args:
        returns: Chronologically ordered period returns
        periods_per_year: Annualization factor (252 for daily data)
        rf_rate: Risk-free rate per period
        mar: Minimum acceptable return per period
        zero_sortino_if_no_downside: Sortino policy, see module docstring
        provenance: Extra information stored on the report

    Returns:
        PerformanceReport

    Raises:
        EmptySeriesError: Zero-length series
        NoDownsideObservationsError: see sortino_ratio()
    """
    values = _as_array(returns)

    details = {
        'periods_per_year': periods_per_year,
        'rf_rate': rf_rate,
        'mar': mar,
    }
    if isinstance(returns, pd.Series) and len(returns):
        details['start'] = returns.index[0]
        details['end'] = returns.index[-1]
    if provenance:
        details.update(provenance)

    return PerformanceReport(
        annualized_return=annualized_return(values, periods_per_year),
        annualized_volatility=annualized_volatility(values, periods_per_year),
        sharpe_ratio=sharpe_ratio(values, rf_rate, periods_per_year),
        sortino_ratio=sortino_ratio(values, mar, zero_sortino_if_no_downside),
        max_drawdown=max_drawdown(values),
        observations=int(values.size),
        provenance=details,
    )


def summary_table(reports: Mapping[str, PerformanceReport]) -> pd.DataFrame:
    """
    Side-by-side table of reports (one column per series).

    Rows: Annualized Return, Annualized Std Dev, Annualized Sharpe,
    Sortino Ratio, Max Drawdown, Observations.
    """
    rows = {
        'Annualized Return': 'annualized_return',
        'Annualized Std Dev': 'annualized_volatility',
        'Annualized Sharpe': 'sharpe_ratio',
        'Sortino Ratio': 'sortino_ratio',
        'Max Drawdown': 'max_drawdown',
        'Observations': 'observations',
    }
    table = pd.DataFrame(
        {name: [getattr(report, attr) for attr in rows.values()]
         for name, report in reports.items()},
        index=list(rows.keys())
    )
    return table
