"""
Predictive Portfolio - Minimum Variance Portfolio with Backtest
===============================================================

Builds a long-only, fully invested minimum variance portfolio from daily
close prices, compares it with a Monte Carlo efficient frontier and
evaluates its realized performance against a benchmark.

Usage:
    from predictive_portfolio import build_returns_matrix, PortfolioOptimizer
    from predictive_portfolio import evaluate_performance

Classes:
    PortfolioOptimizer - Minimum variance optimization for a returns matrix
    DataLoader - Price tables from Excel/CSV
    AnalysisConfig - Run configuration
    PerformanceReport - Performance metrics of a return series

Functions:
    build_returns_matrix - Aligned daily returns from price series
    solve_min_variance - Swappable minimum variance solver
    sample_frontier - Random-portfolio frontier cloud
    evaluate_performance - Annualized return/volatility, Sharpe, Sortino, drawdown
"""

from predictive_portfolio.core.config import AnalysisConfig
from predictive_portfolio.core.errors import (
    PortfolioAnalysisError,
    InsufficientDataError,
    IllConditionedCovarianceError,
    DegenerateRiskError,
    EmptySeriesError,
    NoDownsideObservationsError,
)
from predictive_portfolio.core.frontier import FrontierSample, sample_frontier, frontier_frame
from predictive_portfolio.core.loader import DataLoader, generate_sample_prices
from predictive_portfolio.core.optimizer import Constraints, PortfolioOptimizer, solve_min_variance
from predictive_portfolio.core.performance import PerformanceReport, evaluate_performance
from predictive_portfolio.core.returns import build_returns_matrix, portfolio_returns

__version__ = "1.0.0"

__all__ = [
    "AnalysisConfig",
    "Constraints",
    "DataLoader",
    "FrontierSample",
    "PerformanceReport",
    "PortfolioOptimizer",
    "PortfolioAnalysisError",
    "InsufficientDataError",
    "IllConditionedCovarianceError",
    "DegenerateRiskError",
    "EmptySeriesError",
    "NoDownsideObservationsError",
    "build_returns_matrix",
    "evaluate_performance",
    "frontier_frame",
    "generate_sample_prices",
    "portfolio_returns",
    "sample_frontier",
    "solve_min_variance",
]
