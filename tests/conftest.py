from datetime import date
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from portfolio_backtester.config import BacktestAsset, BacktestConfig
from portfolio_backtester.data.provider import InMemorySeriesProvider


def monthly_prices(tickers, start="2020-01-01", periods=24, price=100.0):
    """Flat prices dated on the first of each month."""
    idx = pd.date_range(start, periods=periods, freq="MS")
    return pd.DataFrame({t: np.full(periods, price) for t in tickers}, index=idx)


def trending_prices(start="2020-01-01", periods=36):
    """A rising, B choppy; deterministic."""
    idx = pd.date_range(start, periods=periods, freq="MS")
    steps = np.arange(periods)
    a = 50.0 * (1.02 ** steps)
    b = 80.0 + 10.0 * np.sin(steps / 2.0)
    return pd.DataFrame({"A": np.round(a, 4), "B": np.round(b, 4)}, index=idx)


def make_config(assets=None, start=date(2020, 1, 1), end=date(2021, 12, 31), capital="10000",
                contribution="0", frequency="yearly"):
    if assets is None:
        assets = [BacktestAsset("A", 0.6, 0.0), BacktestAsset("B", 0.4, 0.08)]
    return BacktestConfig(
        assets=assets,
        start_date=start,
        end_date=end,
        initial_capital=Decimal(capital),
        monthly_contribution=Decimal(contribution),
        rebalance_frequency=frequency,
    )


@pytest.fixture
def flat_provider():
    return InMemorySeriesProvider(monthly_prices(["A", "B"]))


@pytest.fixture
def trending_provider():
    return InMemorySeriesProvider(trending_prices())
