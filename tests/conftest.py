"""Shared fixtures: synthetic prices and returns matrices."""

import numpy as np
import pandas as pd
import pytest

from predictive_portfolio.core.loader import generate_sample_prices
from predictive_portfolio.core.returns import build_returns_matrix


TICKERS = ["AAPL", "GOOGL", "AMZN", "MSFT", "TSLA"]


@pytest.fixture
def price_table():
    return generate_sample_prices(TICKERS + ["^GSPC"], n_days=504, seed=7)


@pytest.fixture
def prices(price_table):
    return {t: price_table[t] for t in TICKERS}


@pytest.fixture
def returns(prices):
    return build_returns_matrix(prices)


@pytest.fixture
def random_returns():
    """Correlated normal returns for three assets, 300 business days."""
    rng = np.random.default_rng(2024)
    mixing = np.array([
        [0.010, 0.000, 0.000],
        [0.006, 0.012, 0.000],
        [0.002, 0.004, 0.020],
    ])
    values = rng.normal(size=(300, 3)) @ mixing.T + 0.0004
    index = pd.bdate_range("2021-01-04", periods=300)
    return pd.DataFrame(values, index=index, columns=["X", "Y", "Z"])
