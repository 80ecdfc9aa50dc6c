"""
Main Runner Script for the Predictive Portfolio Analysis
========================================================

This script runs the full workflow once, top to bottom:
1. Loading close prices (CSV/Excel price table, or synthetic sample data)
2. Building the aligned daily returns matrix
3. Solving the long-only minimum variance portfolio
4. Sampling a Monte Carlo efficient frontier for comparison
5. Backtesting the portfolio and evaluating performance metrics
6. Comparing against a benchmark index

Usage:
    pp-analyze                                  # Run with sample data
    pp-analyze --file prices.csv                # Run with a price table
    pp-analyze --file prices.xlsx --sheet Close
    pp-analyze --method differential_evolution --seed 123
"""

import sys
import argparse
import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional, Mapping
from pathlib import Path
import pandas as pd

from predictive_portfolio.core.config import AnalysisConfig, DEFAULT_TICKERS, FREQUENCY_PERIODS
from predictive_portfolio.core.errors import PortfolioAnalysisError
from predictive_portfolio.core.frontier import sample_frontier, frontier_frame, frontier_position
from predictive_portfolio.core.loader import DataLoader, restrict_dates, generate_sample_prices
from predictive_portfolio.core.optimizer import PortfolioOptimizer, SOLVER_METHODS
from predictive_portfolio.core.performance import evaluate_performance, summary_table
from predictive_portfolio.core.returns import (
    build_returns_matrix,
    correlation_matrix,
    daily_returns,
    portfolio_returns,
)


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logger(
    script_name: str = "predictive_portfolio",
    log_dir: Optional[str] = None
) -> logging.Logger:
    """
    Sets up a logger that writes to both file and console.

    Args:
        script_name: Name of the script (used in log filename)
        log_dir: Directory for log files (default: logs/ at the package root)

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = Path(__file__).parent.parent.parent / "logs"
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Generate unique log filename
    timestamp = datetime.now().strftime("%Y_%m_%d_%H%M")
    log_filename = log_dir / f"log_{script_name}_{timestamp}.txt"

    # Get logger instance
    logger = logging.getLogger(script_name)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    # Clear existing handlers (prevent duplicates)
    if logger.hasHandlers():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# =============================================================================
# ANALYSIS CLASS
# =============================================================================

class AnalysisCheckpoint:
    """
    Tracks the progress of the pipeline so a failure can name its step.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.steps_completed = {}
        self.start_time = datetime.now()
        self.current_step = None

    def start_step(self, step_name: str):
        """Mark a step as started."""
        self.current_step = step_name
        self.logger.info(f"[CHECKPOINT] Starting: {step_name}")

    def complete_step(self, step_name: str):
        """Mark a step as completed."""
        self.steps_completed[step_name] = True
        self.current_step = None
        self.logger.info(f"[CHECKPOINT] Completed: {step_name}")

    def get_progress_summary(self) -> dict:
        """Get summary of analysis progress."""
        elapsed = (datetime.now() - self.start_time).total_seconds()
        return {
            'steps_completed': list(self.steps_completed.keys()),
            'current_step': self.current_step,
            'elapsed_seconds': elapsed
        }

    def log_final_report(self):
        """Log final analysis report."""
        summary = self.get_progress_summary()
        self.logger.info("=" * 60)
        self.logger.info("  ANALYSIS COMPLETE")
        self.logger.info("=" * 60)
        self.logger.info(f"  Steps completed: {len(summary['steps_completed'])}")
        self.logger.info(f"  Total time: {summary['elapsed_seconds']:.2f} seconds")
        self.logger.info("=" * 60)


# =============================================================================
# MAIN ANALYSIS FUNCTIONS
# =============================================================================

def align_with_benchmark(
    portfolio: pd.Series,
    benchmark: pd.Series
) -> pd.DataFrame:
    """
    Inner-join the portfolio and benchmark return series on their dates.

    Returns:
        DataFrame with 'Portfolio' and 'Benchmark' columns, no missing values
    """
    comparison = pd.concat(
        [portfolio.rename('Portfolio'), benchmark.rename('Benchmark')],
        axis=1,
        join='inner'
    ).dropna()
    return comparison.sort_index()


def _log_table(logger: logging.Logger, title: str, table: pd.DataFrame, fmt: str = "{:.6f}"):
    logger.info(f"\n--- {title} ---")
    for line in table.to_string(float_format=lambda v: fmt.format(v)).splitlines():
        logger.info(line)


def run_full_analysis(
    prices: Mapping[str, pd.Series],
    benchmark_prices: Optional[pd.Series] = None,
    config: Optional[AnalysisConfig] = None,
    logger: Optional[logging.Logger] = None
) -> dict:
    """
    Run the complete portfolio analysis.

    This function performs:
    1. Date-range restriction and returns matrix construction
    2. Expected returns and correlation matrix
    3. Minimum variance portfolio optimization
    4. Portfolio return series (backtest)
    5. Monte Carlo efficient frontier and comparison with the optimum
    6. Performance evaluation
    7. Benchmark comparison (when benchmark prices are given)

    Args:
        prices: Mapping ticker -> date-indexed close prices
        benchmark_prices: Benchmark close prices (optional)
        config: AnalysisConfig (default: AnalysisConfig())
        logger: Logger instance

    Returns:
        Dictionary containing all analysis results

    Raises:
        PortfolioAnalysisError: a component failed; the pipeline stops there
    """
    if config is None:
        config = AnalysisConfig()
    if logger is None:
        logger = setup_logger()

    checkpoint = AnalysisCheckpoint(logger)
    results = {}

    logger.info("=" * 70)
    logger.info("  PREDICTIVE PORTFOLIO ANALYSIS")
    logger.info("=" * 70)
    for line in config.describe():
        logger.info(f"  {line}")
    logger.info("=" * 70)

    try:
        _run_steps(prices, benchmark_prices, config, logger, checkpoint, results)
    except PortfolioAnalysisError as e:
        returns = results.get('returns')
        if e.date_range is None and returns is not None:
            e.date_range = (returns.index[0], returns.index[-1])
        logger.error(f"Step '{checkpoint.current_step}' failed: {e.describe()}")
        raise

    checkpoint.log_final_report()
    return results


def _run_steps(
    prices: Mapping[str, pd.Series],
    benchmark_prices: Optional[pd.Series],
    config: AnalysisConfig,
    logger: logging.Logger,
    checkpoint: AnalysisCheckpoint,
    results: dict
):
    factor = config.periods_per_year

    # Step 1: Returns matrix
    checkpoint.start_step("Build Returns Matrix")
    prices = {
        name: restrict_dates(series, config.start_date, config.end_date)
        for name, series in prices.items()
    }
    returns = build_returns_matrix(prices)
    results['returns'] = returns
    logger.info(f"Aligned returns: {len(returns)} dates, "
                f"{returns.index[0]} to {returns.index[-1]}")
    checkpoint.complete_step("Build Returns Matrix")

    # Step 2: Asset statistics
    checkpoint.start_step("Calculate Asset Statistics")
    optimizer = PortfolioOptimizer(
        returns,
        constraints=config.constraints,
        method=config.method,
        seed=config.seed,
        ddof=config.ddof,
        rf_rate=config.rf_rate
    )
    results['expected_returns'] = pd.Series(optimizer.expected_returns, index=optimizer.asset_names)
    results['correlation'] = correlation_matrix(returns)

    logger.info("\n--- Individual Asset Statistics ---")
    logger.info(f"{'Asset':<12} {'Mean':>12} {'Std Dev':>12}")
    logger.info("-" * 40)
    for name, stats in optimizer.get_asset_stats().items():
        logger.info(f"{name:<12} {stats['mean']*100:>11.4f}% {stats['std']*100:>11.4f}%")
    _log_table(logger, "Correlation Matrix", results['correlation'], "{:.4f}")
    checkpoint.complete_step("Calculate Asset Statistics")

    # Step 3: Minimum variance portfolio
    checkpoint.start_step("Find Minimum Variance Portfolio")
    weights, mvp_stats = optimizer.minimum_variance_portfolio()
    results['weights'] = optimizer.weights_series(weights)
    results['mvp_stats'] = mvp_stats

    logger.info("\n--- Minimum Variance Portfolio (MVP) ---")
    logger.info("Weights:")
    for name, w in results['weights'].items():
        logger.info(f"  {name}: {w*100:>8.2f}%")
    logger.info(f"Expected Return: {mvp_stats['mean']*100:.4f}% per period")
    logger.info(f"Standard Deviation: {mvp_stats['std']*100:.4f}% per period")
    checkpoint.complete_step("Find Minimum Variance Portfolio")

    # Step 4: Backtest
    checkpoint.start_step("Backtest Portfolio")
    port_returns = portfolio_returns(returns, weights)
    results['portfolio_returns'] = port_returns
    logger.info(f"Portfolio return series: {len(port_returns)} periods")
    checkpoint.complete_step("Backtest Portfolio")

    # Step 5: Monte Carlo frontier
    checkpoint.start_step("Sample Efficient Frontier")
    frontier = frontier_frame(sample_frontier(
        optimizer.cov_matrix,
        optimizer.expected_returns,
        n_samples=config.n_samples,
        seed=config.seed,
        rf_rate=config.rf_rate
    ))
    results['frontier'] = frontier
    results['frontier_position'] = frontier_position(frontier, mvp_stats['std'], mvp_stats['mean'])

    position = results['frontier_position']
    logger.info(f"Sampled {position['n_samples']} random portfolios")
    if position['n_samples']:
        logger.info(f"  Samples with lower risk than MVP: {position['pct_lower_risk']*100:.2f}%")
        logger.info(f"  Lowest sampled risk: {position['min_sample_risk']*100:.4f}% "
                    f"(MVP: {mvp_stats['std']*100:.4f}%)")
    checkpoint.complete_step("Sample Efficient Frontier")

    # Step 6: Performance
    checkpoint.start_step("Evaluate Performance")
    performance = evaluate_performance(
        port_returns,
        periods_per_year=factor,
        rf_rate=config.rf_rate,
        mar=config.mar,
        zero_sortino_if_no_downside=config.zero_sortino_if_no_downside,
        provenance=optimizer.provenance
    )
    results['performance'] = performance

    logger.info("\n--- Portfolio Performance ---")
    logger.info(f"Sharpe Ratio: {performance.sharpe_ratio:.3f}")
    logger.info(f"Sortino Ratio: {performance.sortino_ratio:.3f}")
    logger.info(f"Max Drawdown: {performance.max_drawdown:.3f}")
    logger.info(f"Annualized Return: {performance.annualized_return:.3f}")
    logger.info(f"Annualized Volatility (Risk): {performance.annualized_volatility:.3f}")
    checkpoint.complete_step("Evaluate Performance")

    # Step 7: Benchmark comparison
    results['comparison'] = None
    results['summary'] = summary_table({'Portfolio': performance})
    if benchmark_prices is not None:
        checkpoint.start_step("Compare With Benchmark")
        bench = restrict_dates(benchmark_prices, config.start_date, config.end_date)
        bench_returns = daily_returns(bench, asset=config.benchmark or "Benchmark")
        comparison = align_with_benchmark(port_returns, bench_returns)
        results['comparison'] = comparison

        reports = {
            'Portfolio': evaluate_performance(
                comparison['Portfolio'], factor, config.rf_rate, config.mar,
                config.zero_sortino_if_no_downside, optimizer.provenance
            ),
            config.benchmark or 'Benchmark': evaluate_performance(
                comparison['Benchmark'], factor, config.rf_rate, config.mar,
                config.zero_sortino_if_no_downside
            ),
        }
        results['summary'] = summary_table(reports)
        logger.info(f"Common dates with benchmark: {len(comparison)}")
        _log_table(logger, "Portfolio vs Benchmark", results['summary'], "{:.4f}")
        checkpoint.complete_step("Compare With Benchmark")

    results['optimizer'] = optimizer


def analyze_price_file(
    file_path: str,
    sheet: Optional[str] = None,
    config: Optional[AnalysisConfig] = None,
    logger: Optional[logging.Logger] = None
) -> dict:
    """
    Analyze a price table file (CSV or Excel).

    Args:
        file_path: Path to the price table
        sheet: Sheet name for Excel files
        config: AnalysisConfig
        logger: Logger instance

    Returns:
        Analysis results dictionary
    """
    if config is None:
        config = AnalysisConfig()
    if logger is None:
        logger = setup_logger()

    logger.info(f"Loading prices from: {file_path}")

    loader = DataLoader()
    table = loader.load_file(file_path, sheet_name=sheet)
    prices = loader.price_series(table, config.tickers)

    benchmark_prices = None
    if config.benchmark:
        if config.benchmark in table.columns:
            benchmark_prices = table[config.benchmark].dropna()
        else:
            logger.warning(f"Benchmark {config.benchmark} not in price table; skipping comparison")

    return run_full_analysis(prices, benchmark_prices, config=config, logger=logger)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Minimum variance portfolio analysis with backtest',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pp-analyze                                    # Run with sample data
  pp-analyze --file prices.csv                  # Analyze a price table
  pp-analyze --file prices.xlsx --sheet Close --benchmark ^GSPC
  pp-analyze --method differential_evolution --seed 7
        """
    )

    parser.add_argument('--file', '-f', type=str,
                        help='Path to CSV/Excel price table (Date + one column per ticker)')
    parser.add_argument('--sheet', '-s', type=str, default=None,
                        help='Sheet name for Excel files (default: first sheet)')
    parser.add_argument('--tickers', '-t', nargs='+', default=None,
                        help=f"Tickers to include (default: {' '.join(DEFAULT_TICKERS)})")
    parser.add_argument('--benchmark', '-b', type=str, default='^GSPC',
                        help='Benchmark column (default: ^GSPC)')
    parser.add_argument('--no-benchmark', action='store_true',
                        help='Skip the benchmark comparison')
    parser.add_argument('--start', type=str, default='2010-01-01',
                        help='First date (default: 2010-01-01)')
    parser.add_argument('--end', type=str, default=None,
                        help='Last date (default: end of data)')
    parser.add_argument('--frequency', type=str, default='daily',
                        choices=list(FREQUENCY_PERIODS),
                        help='Data frequency for annualization (default: daily)')
    parser.add_argument('--rf-rate', '-r', type=float, default=0.0,
                        help='Risk-free rate per period (default: 0)')
    parser.add_argument('--mar', type=float, default=0.0,
                        help='Minimum acceptable return per period for Sortino (default: 0)')
    parser.add_argument('--method', type=str, default='slsqp',
                        choices=list(SOLVER_METHODS),
                        help='Minimum variance solver (default: slsqp)')
    parser.add_argument('--seed', type=int, default=123,
                        help='Seed for the frontier sampler and solver (default: 123)')
    parser.add_argument('--samples', type=int, default=1000,
                        help='Number of random frontier portfolios (default: 1000)')
    parser.add_argument('--allow-short', action='store_true',
                        help='Allow short selling (slsqp only)')
    parser.add_argument('--zero-sortino', action='store_true',
                        help='Report Sortino as 0 when no return is below MAR')
    parser.add_argument('--log-dir', type=str, default=None,
                        help='Directory for log files (default: logs/)')
    return parser


def main(argv=None):
    """Main entry point for the portfolio analysis script."""
    args = build_parser().parse_args(argv)

    logger = setup_logger("portfolio_analysis", args.log_dir)

    try:
        config = AnalysisConfig.from_args(args)

        if args.file:
            analyze_price_file(args.file, args.sheet, config=config, logger=logger)
        else:
            logger.info("No file specified. Using sample data...")
            names = list(config.tickers)
            if config.benchmark:
                names.append(config.benchmark)
            table = generate_sample_prices(names, seed=config.seed)
            # Sample data starts at its own date; ignore the configured range
            config = replace(config, start_date=None, end_date=None)
            benchmark_prices = table[config.benchmark] if config.benchmark else None
            prices = {t: table[t] for t in config.tickers}
            run_full_analysis(prices, benchmark_prices, config=config, logger=logger)

        logger.info("Analysis completed successfully!")
        return 0

    except PortfolioAnalysisError as e:
        logger.error(f"Analysis halted: {e.describe()}")
        return 1
    except (ValueError, KeyError, FileNotFoundError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
