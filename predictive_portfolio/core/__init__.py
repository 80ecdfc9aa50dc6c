"""Core computational modules for portfolio construction and evaluation."""

from predictive_portfolio.core.optimizer import PortfolioOptimizer, Constraints, solve_min_variance
from predictive_portfolio.core.returns import build_returns_matrix, compute_stats_from_returns
from predictive_portfolio.core.loader import DataLoader, generate_sample_prices

__all__ = [
    "PortfolioOptimizer",
    "Constraints",
    "solve_min_variance",
    "build_returns_matrix",
    "compute_stats_from_returns",
    "DataLoader",
    "generate_sample_prices",
]
