"""
Analysis Configuration
======================

Every assumption of a run lives on an AnalysisConfig instance that is
passed explicitly into each step. Nothing is read from module-level state.

ASSUMPTIONS (defaults):
-----------------------
1. ASSETS: AAPL, GOOGL, AMZN, MSFT, TSLA with ^GSPC as benchmark
2. DATA FREQUENCY: daily, annualized with 252 trading days
3. RISK-FREE RATE: 0 per period (Sharpe computed on raw returns)
4. MINIMUM ACCEPTABLE RETURN (Sortino): 0 per period
5. COVARIANCE: sample covariance (divide by N-1)
6. CONSTRAINTS: long-only, fully invested
7. FRONTIER: 1000 random portfolios, seed 123
"""

from dataclasses import dataclass, field
from typing import List, Optional

import pandas as pd

from predictive_portfolio.core.optimizer import Constraints, SOLVER_METHODS


DEFAULT_TICKERS = ["AAPL", "GOOGL", "AMZN", "MSFT", "TSLA"]

FREQUENCY_PERIODS = {
    'daily': 252,      # Trading days per year
    'weekly': 52,      # Weeks per year
    'monthly': 12,     # Months per year
    'quarterly': 4,    # Quarters per year
    'annual': 1        # Years per year
}


@dataclass
class AnalysisConfig:
    """
    Stores all configurable assumptions for the analysis.

    Attributes:
        tickers: Assets to include (columns of the price table)
        benchmark: Benchmark column name, or None to skip the comparison
        start_date: First date kept (inclusive), or None
        end_date: Last date kept (inclusive), or None
        data_frequency: 'daily', 'weekly', 'monthly', 'quarterly', 'annual'
        rf_rate: Risk-free rate per period
        mar: Minimum acceptable return per period for the Sortino ratio
        n_samples: Number of random portfolios for the frontier cloud
        seed: Seed for the frontier sampler and derivative-free solver
        method: Solver method name (see SOLVER_METHODS)
        long_only: Disallow negative weights
        ddof: Delta degrees of freedom for the covariance (1 = sample)
        zero_sortino_if_no_downside: Report Sortino as 0 instead of raising
    """

    tickers: List[str] = field(default_factory=lambda: list(DEFAULT_TICKERS))
    benchmark: Optional[str] = "^GSPC"
    start_date: Optional[str] = "2010-01-01"
    end_date: Optional[str] = None
    data_frequency: str = "daily"
    rf_rate: float = 0.0
    mar: float = 0.0
    n_samples: int = 1000
    seed: int = 123
    method: str = "slsqp"
    long_only: bool = True
    ddof: int = 1
    zero_sortino_if_no_downside: bool = False

    def __post_init__(self):
        if self.data_frequency not in FREQUENCY_PERIODS:
            raise ValueError(
                f"Unknown data frequency: {self.data_frequency}. "
                f"Use one of {list(FREQUENCY_PERIODS)}"
            )
        if self.method not in SOLVER_METHODS:
            raise ValueError(
                f"Unknown solver method: {self.method}. Use one of {list(SOLVER_METHODS)}"
            )
        if self.n_samples < 0:
            raise ValueError("n_samples must be non-negative")
        if self.start_date and self.end_date:
            if pd.Timestamp(self.start_date) > pd.Timestamp(self.end_date):
                raise ValueError(
                    f"start_date {self.start_date} is after end_date {self.end_date}"
                )

    @property
    def periods_per_year(self) -> int:
        """Get the number of periods per year for annualization."""
        return FREQUENCY_PERIODS[self.data_frequency]

    @property
    def constraints(self) -> Constraints:
        return Constraints(full_investment=True, long_only=self.long_only)

    @classmethod
    def from_args(cls, args) -> "AnalysisConfig":
        """Build a config from an argparse namespace (see cli.main)."""
        tickers = args.tickers if args.tickers else list(DEFAULT_TICKERS)
        benchmark = None if args.no_benchmark else args.benchmark
        return cls(
            tickers=tickers,
            benchmark=benchmark,
            start_date=args.start,
            end_date=args.end,
            data_frequency=args.frequency,
            rf_rate=args.rf_rate,
            mar=args.mar,
            n_samples=args.samples,
            seed=args.seed,
            method=args.method,
            long_only=not args.allow_short,
            zero_sortino_if_no_downside=args.zero_sortino,
        )

    def describe(self) -> List[str]:
        """Lines describing the current configuration, for logging."""
        return [
            f"Assets: {', '.join(self.tickers)}",
            f"Benchmark: {self.benchmark or 'none'}",
            f"Date range: {self.start_date or 'start'} to {self.end_date or 'end'}",
            f"Data Frequency: {self.data_frequency} ({self.periods_per_year} periods/year)",
            f"Risk-Free Rate: {self.rf_rate*100:.4f}% per period",
            f"MAR (Sortino): {self.mar*100:.4f}% per period",
            f"Covariance Type: {'Population (N)' if self.ddof == 0 else 'Sample (N-1)'}",
            f"Short Selling: {'Not Allowed' if self.long_only else 'Allowed'}",
            f"Solver: {self.method} (seed={self.seed})",
            f"Frontier samples: {self.n_samples}",
        ]
