from datetime import date

import pandas as pd

from portfolio_backtester.config import BacktestAsset
from portfolio_backtester.data.provider import InMemorySeriesProvider
from portfolio_backtester.engine.coverage import CoverageValidator

from conftest import monthly_prices

ASSETS = [BacktestAsset("A", 0.5), BacktestAsset("B", 0.5)]


def test_full_coverage_is_excellent(flat_provider):
    report = CoverageValidator(flat_provider).validate(ASSETS, date(2020, 1, 1), date(2021, 12, 31))

    assert report.is_valid
    assert report.adjusted_start_date == date(2020, 1, 1)
    assert report.adjusted_end_date == date(2021, 12, 1)
    for a in report.assets_availability:
        assert a.data_quality == "excellent"
        assert a.total_months == 24
        assert a.missing_months == 0
    assert report.months_available == 24


def test_window_narrows_to_latest_start_and_earliest_end():
    prices = monthly_prices(["A", "B"], periods=36)
    prices.loc[:"2020-06-01", "B"] = float("nan")
    prices.loc["2022-07-01":, "A"] = float("nan")
    report = CoverageValidator(InMemorySeriesProvider(prices)).validate(
        ASSETS, date(2020, 1, 1), date(2022, 12, 31))

    assert report.is_valid
    assert report.adjusted_start_date == date(2020, 7, 1)
    assert report.adjusted_end_date == date(2022, 6, 1)
    b = next(a for a in report.assets_availability if a.ticker == "B")
    assert "Data available only from 2020-07-01" in b.warnings
    a = next(a for a in report.assets_availability if a.ticker == "A")
    assert "Data available only until 2022-06-01" in a.warnings


def test_disjoint_histories_are_invalid():
    a = monthly_prices(["A"], start="2010-01-01", periods=24)["A"]
    b = monthly_prices(["B"], start="2015-01-01", periods=24)["B"]
    provider = InMemorySeriesProvider({"A": a, "B": b})
    report = CoverageValidator(provider).validate(ASSETS, date(2010, 1, 1), date(2016, 12, 31))

    assert not report.is_valid
    assert "insufficient overlapping history" in report.global_warnings


def test_ticker_without_data_blocks_the_run(flat_provider):
    assets = ASSETS[:1] + [BacktestAsset("ZZZ", 0.5)]
    report = CoverageValidator(flat_provider).validate(assets, date(2020, 1, 1), date(2021, 12, 31))

    assert not report.is_valid
    zzz = next(a for a in report.assets_availability if a.ticker == "ZZZ")
    assert zzz.data_quality == "poor"
    assert zzz.total_months == 0
    assert any("ZZZ" in w for w in report.global_warnings)
    assert any("removing assets" in r for r in report.recommendations)


def test_small_gap_is_tolerated_as_good():
    prices = monthly_prices(["A", "B"], periods=48).drop(pd.Timestamp("2021-06-01"))
    report = CoverageValidator(InMemorySeriesProvider(prices)).validate(
        ASSETS, date(2020, 1, 1), date(2023, 12, 31))

    assert report.is_valid
    for a in report.assets_availability:
        assert a.missing_months == 1
        assert a.data_quality == "good"
        assert any("missing data" in w for w in a.warnings)


def test_moderate_gaps_are_fair():
    prices = monthly_prices(["A", "B"], periods=24)
    prices.loc["2020-03-01":"2020-05-01", "A"] = float("nan")
    report = CoverageValidator(InMemorySeriesProvider(prices)).validate(
        ASSETS, date(2020, 1, 1), date(2021, 12, 31))

    a = next(x for x in report.assets_availability if x.ticker == "A")
    assert a.missing_months == 3
    assert a.data_quality == "fair"
    assert report.is_valid
    assert any("fair data quality" in w for w in report.global_warnings)


def test_poor_quality_blocks_the_run():
    prices = monthly_prices(["A", "B"], periods=24)
    prices.loc["2020-03-01":"2020-12-01", "A"] = float("nan")
    report = CoverageValidator(InMemorySeriesProvider(prices)).validate(
        ASSETS, date(2020, 1, 1), date(2021, 12, 31))

    a = next(x for x in report.assets_availability if x.ticker == "A")
    assert a.data_quality == "poor"
    assert not report.is_valid


def test_non_positive_prices_are_dropped_and_reported():
    prices = monthly_prices(["A", "B"], periods=24)
    prices.loc["2021-02-01", "B"] = 0.0
    report = CoverageValidator(InMemorySeriesProvider(prices)).validate(
        ASSETS, date(2020, 1, 1), date(2021, 12, 31))

    b = next(x for x in report.assets_availability if x.ticker == "B")
    assert b.invalid_prices == 1
    assert "1 record(s) with invalid prices" in b.warnings


def test_short_window_gets_warnings_and_recommendations(flat_provider):
    report = CoverageValidator(flat_provider).validate(ASSETS, date(2020, 1, 1), date(2020, 6, 30))

    assert report.is_valid
    assert any("shorter than the recommended" in w for w in report.global_warnings)
    assert "Short period may produce less reliable metrics" in report.global_warnings
    assert "Overall data quality is excellent for backtesting" in report.recommendations
