"""
Portfolio Optimizer - Minimum Variance under Long-Only Constraints
===================================================================

This module finds the long-only, fully invested portfolio with the lowest
variance for a given returns matrix.

Optimization problem:
    minimize:   w^T * Sigma * w
    subject to: sum(w) = 1        (full investment)
                w >= 0            (long-only)

where Sigma is the covariance matrix of the returns matrix columns. The
problem is a convex quadratic program. Any method that respects the
constraint set is acceptable, so the solver sits behind a single function,
solve_min_variance(), and the method is chosen by name:

- 'slsqp': Sequential Least Squares Programming (scipy.optimize.minimize),
  deterministic from an equal-weight start.
- 'differential_evolution': derivative-free global search
  (scipy.optimize.differential_evolution). Needs an explicit seed so that a
  run can be reproduced. Useful as a fallback when Sigma is badly scaled.

Ill-conditioned covariance:
---------------------------
A singular or near-singular Sigma (duplicated assets, a zero-variance asset)
is regularized by adding a small multiple of the identity. With
regularize=False the optimizer raises IllConditionedCovarianceError instead.
The optimizer never returns NaN weights.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from scipy.optimize import minimize, differential_evolution
from typing import Tuple, Optional, Dict, Any
import warnings

from predictive_portfolio.core.errors import DegenerateRiskError, IllConditionedCovarianceError
from predictive_portfolio.core.frontier import RISK_EPSILON
from predictive_portfolio.core.returns import compute_stats_from_returns


WEIGHT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class Constraints:
    """
    Constraint configuration for the optimizer.

    Attributes:
        full_investment: Weights sum to 1. Must be True; minimum variance
            without a budget constraint is the zero portfolio.
        long_only: Every weight >= 0
    """

    full_investment: bool = True
    long_only: bool = True


def _solve_slsqp(
    cov: np.ndarray,
    constraints: Constraints,
    seed: Optional[int] = None,
    maxiter: int = 1000
) -> np.ndarray:
    n_assets = cov.shape[0]

    # Initial guess: equal weights
    w0 = np.ones(n_assets) / n_assets

    # Constraint: weights sum to 1
    eq_constraint = [{
        'type': 'eq',
        'fun': lambda w: np.sum(w) - 1,
        'jac': lambda w: np.ones_like(w)
    }]

    # Bounds
    if constraints.long_only:
        bounds = [(0, 1) for _ in range(n_assets)]
    else:
        bounds = None

    result = minimize(
        lambda w: np.dot(w, np.dot(cov, w)),
        w0,
        jac=lambda w: 2 * np.dot(cov, w),
        method='SLSQP',
        bounds=bounds,
        constraints=eq_constraint,
        options={'ftol': 1e-12, 'maxiter': maxiter}
    )

    if not result.success:
        warnings.warn(f"MVP optimization did not converge: {result.message}")

    return result.x


def _solve_differential_evolution(
    cov: np.ndarray,
    constraints: Constraints,
    seed: Optional[int] = None,
    maxiter: int = 1000
) -> np.ndarray:
    if seed is None:
        raise ValueError("differential_evolution needs an explicit seed")
    if not constraints.long_only:
        raise ValueError("differential_evolution only supports long-only portfolios")

    n_assets = cov.shape[0]

    # Search over unnormalized non-negative weights; the objective projects
    # each candidate onto the budget constraint by dividing by its sum.
    def normalized_variance(x):
        total = np.sum(x)
        if total <= 1e-12:
            return 1e10
        w = x / total
        return np.dot(w, np.dot(cov, w))

    result = differential_evolution(
        normalized_variance,
        bounds=[(0, 1) for _ in range(n_assets)],
        seed=seed,
        maxiter=maxiter,
        tol=1e-6,
        polish=True
    )

    if not result.success:
        warnings.warn(f"Differential evolution did not converge: {result.message}")

    x = np.clip(result.x, 0, None)
    return x / np.sum(x)


SOLVER_METHODS = {
    'slsqp': _solve_slsqp,
    'differential_evolution': _solve_differential_evolution,
}


def _prepare_covariance(
    cov_matrix: np.ndarray,
    regularize: bool,
    rcond: float,
    ridge: Optional[float]
) -> np.ndarray:
    """Validate Sigma and regularize it if it is near-singular."""
    cov = np.array(cov_matrix, dtype=float)

    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        raise ValueError(f"Covariance matrix must be square, got shape {cov.shape}")

    if not np.all(np.isfinite(cov)):
        raise IllConditionedCovarianceError("Covariance matrix contains NaN or Inf")

    if not np.allclose(cov, cov.T):
        warnings.warn("Covariance matrix is not symmetric. Symmetrizing...")
    cov = (cov + cov.T) / 2

    eigenvalues = np.linalg.eigvalsh(cov)
    max_eig = eigenvalues.max()
    min_eig = eigenvalues.min()

    if max_eig > 0 and min_eig < -rcond * max_eig:
        raise IllConditionedCovarianceError(
            f"Covariance matrix is not positive semi-definite: min eigenvalue = {min_eig:.6e}"
        )

    if max_eig <= 0 or min_eig <= rcond * max_eig:
        if not regularize:
            raise IllConditionedCovarianceError(
                f"Covariance matrix is singular or near-singular "
                f"(eigenvalues in [{min_eig:.3e}, {max_eig:.3e}])"
            )
        if ridge is None:
            scale = np.trace(cov) / cov.shape[0]
            ridge = scale * 1e-8 if scale > 0 else 1e-10
        warnings.warn(
            f"Covariance matrix is near-singular (min eigenvalue {min_eig:.3e}); "
            f"adding {ridge:.3e} * I"
        )
        cov = cov + np.eye(cov.shape[0]) * ridge

    return cov


def solve_min_variance(
    cov_matrix: np.ndarray,
    constraints: Optional[Constraints] = None,
    method: str = 'slsqp',
    seed: Optional[int] = None,
    regularize: bool = True,
    rcond: float = 1e-10,
    ridge: Optional[float] = None,
    maxiter: int = 1000
) -> np.ndarray:
    """
    Find the weights minimizing w^T * Sigma * w under the constraints.

    Args:
        cov_matrix: Covariance matrix (n x n)
        constraints: Constraint configuration (default: long-only, fully invested)
        method: Key of SOLVER_METHODS
        seed: Random seed, required by 'differential_evolution'
        regularize: Add ridge * I to a near-singular Sigma instead of failing
        rcond: Smallest eigenvalue / largest eigenvalue below which Sigma
            counts as near-singular
        ridge: Regularization amount (default: 1e-8 * mean variance)
        maxiter: Solver iteration limit

    Returns:
        Weight vector (sums to 1; non-negative when long-only)

    Raises:
        ValueError: Unknown method, bad shape or unsupported constraints
        IllConditionedCovarianceError: Sigma cannot be solved reliably
    """
    if constraints is None:
        constraints = Constraints()

    if not constraints.full_investment:
        raise ValueError("full_investment=False is not supported: the minimum "
                         "variance portfolio without a budget is all zeros")

    if method not in SOLVER_METHODS:
        raise ValueError(f"Unknown solver method: {method}. Use one of {list(SOLVER_METHODS)}")

    # A single asset takes the whole budget, whatever its variance
    if np.size(cov_matrix) == 1:
        return np.array([1.0])

    cov = _prepare_covariance(cov_matrix, regularize, rcond, ridge)

    # Rescale so the objective is O(1); daily variances are ~1e-4
    scale = np.trace(cov) / cov.shape[0]
    weights = SOLVER_METHODS[method](cov / scale, constraints, seed=seed, maxiter=maxiter)

    return _clean_weights(weights, constraints)


def _clean_weights(weights: np.ndarray, constraints: Constraints) -> np.ndarray:
    weights = np.asarray(weights, dtype=float)

    if not np.all(np.isfinite(weights)):
        raise IllConditionedCovarianceError("Solver returned non-finite weights")

    if abs(np.sum(weights) - 1) > 1e-4:
        raise IllConditionedCovarianceError(
            f"Solver returned infeasible weights (sum = {np.sum(weights):.6f})"
        )

    if constraints.long_only:
        if np.any(weights < -1e-4):
            raise IllConditionedCovarianceError(
                f"Solver returned negative weights: min = {weights.min():.6f}"
            )
        weights = np.clip(weights, 0, None)

    return weights / np.sum(weights)


def check_weights(
    weights: np.ndarray,
    constraints: Optional[Constraints] = None,
    tol: float = WEIGHT_TOLERANCE
) -> bool:
    """True if the weights satisfy the constraint set within tol."""
    if constraints is None:
        constraints = Constraints()
    weights = np.asarray(weights, dtype=float)
    if not np.all(np.isfinite(weights)):
        return False
    if constraints.full_investment and abs(np.sum(weights) - 1) > tol:
        return False
    if constraints.long_only and np.any(weights < -tol):
        return False
    return True


class PortfolioOptimizer:
    """
    Minimum variance portfolio construction for a returns matrix.

    Expected returns and covariance are computed once from the returns
    matrix, so every statistic reported here describes the same rows.

    Attributes:
        returns (pd.DataFrame): Returns matrix (read only)
        expected_returns (np.ndarray): Column means of the returns matrix
        cov_matrix (np.ndarray): Covariance matrix of the returns matrix
        asset_names (List[str]): Asset identifiers, in column order
        n_assets (int): Number of assets
        constraints (Constraints): Constraint configuration
        method (str): Solver method name
        seed (int): Solver seed (recorded in provenance)
        rf_rate (float): Risk-free rate per period

    Example:
        >>> optimizer = PortfolioOptimizer(returns, seed=123)
        >>> weights, stats = optimizer.minimum_variance_portfolio()
    """

    def __init__(
        self,
        returns: pd.DataFrame,
        constraints: Optional[Constraints] = None,
        method: str = 'slsqp',
        seed: Optional[int] = None,
        ddof: int = 1,
        rf_rate: float = 0.0,
        regularize: bool = True
    ):
        self.returns = returns
        self.expected_returns, self.cov_matrix, self.asset_names = \
            compute_stats_from_returns(returns, ddof=ddof)
        self.n_assets = len(self.expected_returns)
        self.constraints = constraints if constraints is not None else Constraints()
        self.method = method
        self.seed = seed
        self.rf_rate = rf_rate
        self.regularize = regularize

    @property
    def provenance(self) -> Dict[str, Any]:
        """How the weights were produced; not part of any computed metric."""
        return {
            'method': self.method,
            'seed': self.seed,
            'long_only': self.constraints.long_only,
            'full_investment': self.constraints.full_investment,
            'n_observations': len(self.returns),
        }

    def portfolio_return(self, weights: np.ndarray) -> float:
        """
        Calculate expected portfolio return.

        Formula: mu_p = w^T * mu = sum(w_i * mu_i)
        """
        return np.dot(weights, self.expected_returns)

    def portfolio_variance(self, weights: np.ndarray) -> float:
        """
        Calculate portfolio variance using the quadratic form.

        Formula: sigma_p^2 = w^T * Sigma * w
        """
        return np.dot(weights, np.dot(self.cov_matrix, weights))

    def portfolio_std(self, weights: np.ndarray) -> float:
        return np.sqrt(max(self.portfolio_variance(weights), 0.0))

    def _risk_floor(self) -> float:
        # Risk carried by weights within WEIGHT_TOLERANCE of zero
        max_std = np.sqrt(max(float(np.max(np.diag(self.cov_matrix))), 0.0))
        return max(RISK_EPSILON, WEIGHT_TOLERANCE * max_std)

    def portfolio_sharpe(self, weights: np.ndarray) -> float:
        """
        Per-period Sharpe ratio: (mu_p - rf) / sigma_p

        Raises:
            DegenerateRiskError: The portfolio has zero risk
        """
        std = self.portfolio_std(weights)
        if std < self._risk_floor():
            raise DegenerateRiskError("Sharpe ratio undefined for a zero-risk portfolio",
                                      component="optimizer")
        return (self.portfolio_return(weights) - self.rf_rate) / std

    def portfolio_stats(self, weights: np.ndarray) -> Dict[str, float]:
        """
        Calculate all portfolio statistics.

        Returns:
            Dictionary containing mean, std, variance, and Sharpe ratio.
            sharpe is left out for a zero-risk portfolio.
        """
        stats = {
            'mean': self.portfolio_return(weights),
            'std': self.portfolio_std(weights),
            'variance': self.portfolio_variance(weights),
        }
        if stats['std'] >= self._risk_floor():
            stats['sharpe'] = self.portfolio_sharpe(weights)

        return stats

    def minimum_variance_portfolio(self) -> Tuple[np.ndarray, Dict[str, float]]:
        """
        Find the Minimum Variance Portfolio (MVP).

        Returns:
            Tuple of (weights, stats_dict)

        Raises:
            IllConditionedCovarianceError: see solve_min_variance()
        """
        weights = solve_min_variance(
            self.cov_matrix,
            self.constraints,
            method=self.method,
            seed=self.seed,
            regularize=self.regularize
        )
        stats = self.portfolio_stats(weights)

        return weights, stats

    def weights_series(self, weights: np.ndarray) -> pd.Series:
        """Label a weight vector with asset names."""
        return pd.Series(weights, index=self.asset_names, name="weight")

    def get_asset_stats(self) -> Dict[str, Dict[str, float]]:
        """
        Get individual asset statistics.

        Returns:
            Dictionary mapping asset names to their stats
        """
        stats = {}
        for i, name in enumerate(self.asset_names):
            stats[name] = {
                'mean': self.expected_returns[i],
                'std': np.sqrt(self.cov_matrix[i, i]),
                'variance': self.cov_matrix[i, i]
            }
        return stats

    def summary_report(self, weights: Optional[np.ndarray] = None) -> str:
        """
        Generate a text summary of asset statistics and the MVP.

        Args:
            weights: MVP weights if already solved (solved here otherwise)

        Returns:
            Formatted string report
        """
        if weights is None:
            weights, stats = self.minimum_variance_portfolio()
        else:
            stats = self.portfolio_stats(weights)

        lines = []
        lines.append("=" * 70)
        lines.append("MINIMUM VARIANCE PORTFOLIO SUMMARY")
        lines.append("=" * 70)

        lines.append("\n--- Individual Asset Statistics ---")
        lines.append(f"{'Asset':<12} {'Mean':>12} {'Std Dev':>12} {'Variance':>12}")
        lines.append("-" * 50)

        for i, name in enumerate(self.asset_names):
            mean = self.expected_returns[i]
            var = self.cov_matrix[i, i]
            lines.append(f"{name:<12} {mean:>12.6f} {np.sqrt(var):>12.6f} {var:>12.6f}")

        lines.append(f"\nSolver: {self.method} (seed={self.seed})")
        lines.append(f"Observations: {len(self.returns)}")

        lines.append("\n--- Minimum Variance Portfolio (MVP) ---")
        lines.append("Weights:")
        for i, name in enumerate(self.asset_names):
            lines.append(f"  {name}: {weights[i]:.6f} ({weights[i]*100:.2f}%)")
        lines.append(f"Expected Return: {stats['mean']:.6f} ({stats['mean']*100:.4f}%)")
        lines.append(f"Standard Deviation: {stats['std']:.6f} ({stats['std']*100:.4f}%)")
        if 'sharpe' in stats:
            lines.append(f"Sharpe Ratio: {stats['sharpe']:.6f}")
        else:
            lines.append("Sharpe Ratio: n/a (zero risk)")

        lines.append("\n" + "=" * 70)

        return "\n".join(lines)
