"""
CLI entry point for portfolio analysis.

Usage:
    python run_cli.py                          # Run with sample data
    python run_cli.py --file prices.csv        # Run with a price table
    python run_cli.py --method differential_evolution --seed 123

For installed package, use: pp-analyze
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from predictive_portfolio.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
