"""
Error Types for Portfolio Analysis
==================================

Every failure raised by the core is a subclass of PortfolioAnalysisError.
Each error records the component that raised it and, where known, the
asset and date range involved, so the pipeline can report exactly where a
run stopped.

All of these are deterministic, data-driven conditions. Callers should not
retry them; fix the input or change the configuration instead.
"""

from typing import Optional, Tuple, Any


class PortfolioAnalysisError(Exception):
    """
    Base class for recoverable analysis failures.

    Attributes:
        component (str): Pipeline component that raised the error
        asset (str): Asset identifier involved, if any
        date_range (Tuple): (first_date, last_date) of the offending data, if any
    """

    component = "analysis"

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        asset: Optional[str] = None,
        date_range: Optional[Tuple[Any, Any]] = None
    ):
        super().__init__(message)
        if component is not None:
            self.component = component
        self.asset = asset
        self.date_range = date_range

    def describe(self) -> str:
        """One-line description including component, asset and date range."""
        parts = [f"[{self.component}] {self}"]
        if self.asset is not None:
            parts.append(f"asset={self.asset}")
        if self.date_range is not None:
            start, end = self.date_range
            parts.append(f"dates={start} to {end}")
        return " | ".join(parts)


class InsufficientDataError(PortfolioAnalysisError):
    """Too few price observations or aligned return dates."""

    component = "returns"


class IllConditionedCovarianceError(PortfolioAnalysisError):
    """The covariance matrix cannot be solved reliably."""

    component = "optimizer"


class DegenerateRiskError(PortfolioAnalysisError):
    """A portfolio has (near) zero risk where a ratio needs a denominator."""

    component = "frontier"


class EmptySeriesError(PortfolioAnalysisError):
    """A zero-length return series was given to the evaluator."""

    component = "performance"


class NoDownsideObservationsError(PortfolioAnalysisError):
    """No return fell below the minimum acceptable return."""

    component = "performance"
