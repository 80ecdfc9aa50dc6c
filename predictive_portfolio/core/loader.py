"""
Price Data Loader
=================

Reads daily close prices from local files and hands them to the returns
builder as one date-indexed series per asset.

Expected layout (CSV or Excel, one sheet):

    Date,       AAPL,   GOOGL,  AMZN,  MSFT,  TSLA,  ^GSPC
    2010-01-04, 7.64,   15.68,  6.69,  30.95, ...,   1132.99
    ...

- The date column is detected by name ('date' in the header, any case) or
  by dtype; otherwise the first column is used.
- Every other numeric column is an asset (or the benchmark).
- Missing prices are dropped per asset, not per row. Dates missing for
  some assets are handled later by the inner join in build_returns_matrix().

Downloading prices from a remote provider is not done here.
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional
from pathlib import Path
import warnings


class DataLoader:
    """
    Loads wide price tables from CSV or Excel files.

    Example:
        >>> loader = DataLoader()
        >>> table = loader.load_file("prices.xlsx", sheet_name="Close")
        >>> prices = loader.price_series(table, ["AAPL", "MSFT"])
    """

    SUPPORTED_SUFFIXES = ('.csv', '.xlsx', '.xls')

    def load_file(self, file_path: str, sheet_name: Optional[str] = None) -> pd.DataFrame:
        """
        Load a price table from file.

        Args:
            file_path: Path to Excel or CSV file
            sheet_name: Sheet name for Excel files (default: first sheet)

        Returns:
            DataFrame indexed by date (ascending), one column per asset
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        suffix = path.suffix.lower()
        if suffix in ['.xlsx', '.xls']:
            df = pd.read_excel(path, sheet_name=sheet_name if sheet_name else 0)
        elif suffix == '.csv':
            df = pd.read_csv(path)
        else:
            raise ValueError(f"Unsupported file type: {path.suffix}")

        return self.index_by_date(df)

    def index_by_date(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Move the date column into a sorted DatetimeIndex and keep numeric columns.

        Raises:
            ValueError: No usable date column, duplicate dates or no numeric columns
        """
        date_col = None
        for col in df.columns:
            if 'date' in str(col).lower() or pd.api.types.is_datetime64_any_dtype(df[col]):
                date_col = col
                break
        if date_col is None:
            date_col = df.columns[0]

        dates = pd.to_datetime(df[date_col], errors='coerce')
        if dates.isna().any():
            raise ValueError(f"Column '{date_col}' contains values that are not dates")

        df = df.drop(columns=[date_col])
        df.index = pd.DatetimeIndex(dates, name='Date')

        if df.index.has_duplicates:
            raise ValueError("Price table has duplicate dates")

        # Remove any non-numeric columns
        numeric_cols = []
        for col in df.columns:
            converted = pd.to_numeric(df[col], errors='coerce')
            if converted.notna().any():
                df[col] = converted
                numeric_cols.append(col)
            else:
                warnings.warn(f"Skipping non-numeric column: {col}")

        if not numeric_cols:
            raise ValueError("Price table has no numeric columns")

        df = df[numeric_cols].sort_index()
        df.columns = [str(c).strip() for c in df.columns]
        return df

    def price_series(
        self,
        table: pd.DataFrame,
        tickers: Optional[List[str]] = None
    ) -> Dict[str, pd.Series]:
        """
        Split a price table into one series per asset, dropping missing prices.

        Args:
            table: Output of load_file() / index_by_date()
            tickers: Columns to extract (default: all)

        Returns:
            Dictionary ticker -> price series, in the order of tickers

        Raises:
            KeyError: A requested ticker is not in the table
        """
        if tickers is None:
            tickers = list(table.columns)

        missing = [t for t in tickers if t not in table.columns]
        if missing:
            raise KeyError(f"Tickers not found in price table: {missing}")

        return {t: table[t].dropna().rename(t) for t in tickers}


def restrict_dates(
    prices: pd.Series,
    start: Optional[str] = None,
    end: Optional[str] = None
) -> pd.Series:
    """Keep prices between start and end (both inclusive, either optional)."""
    prices = prices.sort_index()
    if prices.empty:
        return prices
    return prices.loc[
        (pd.Timestamp(start) if start else prices.index.min()):
        (pd.Timestamp(end) if end else prices.index.max())
    ]


def generate_sample_prices(
    tickers: List[str],
    n_days: int = 756,
    start: str = "2010-01-04",
    seed: int = 42
) -> pd.DataFrame:
    """
    Generate synthetic daily close prices for testing and demos.

    Prices follow geometric Brownian motion on business days with a
    one-factor market structure, so assets are positively correlated.

    Args:
        tickers: Column names
        n_days: Number of business days
        start: First date
        seed: Random seed for reproducibility

    Returns:
        DataFrame indexed by date, one column per ticker
    """
    rng = np.random.default_rng(seed)
    n_assets = len(tickers)

    # Realistic daily drift and volatility levels
    drift = np.linspace(0.0002, 0.0008, n_assets)
    beta = np.linspace(0.6, 1.4, n_assets)
    idio_vol = np.linspace(0.008, 0.02, n_assets)

    market = rng.normal(0.0003, 0.01, size=n_days)
    noise = rng.normal(0, 1, size=(n_days, n_assets)) * idio_vol
    daily = drift + np.outer(market, beta) + noise

    start_prices = np.linspace(20, 200, n_assets)
    prices = start_prices * np.cumprod(1 + daily, axis=0)

    index = pd.bdate_range(start=start, periods=n_days, name='Date')
    return pd.DataFrame(prices, index=index, columns=list(tickers))
