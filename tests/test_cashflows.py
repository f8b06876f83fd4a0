from datetime import date
from decimal import Decimal

from portfolio_backtester.config import EngineSettings
from portfolio_backtester.engine.calendar import add_months, iter_month_dates, month_end, months_between
from portfolio_backtester.engine.cashflows import (
    allocate_by_target,
    allocate_toward_target,
    assumed_dividend,
    is_rebalance_month,
)


def test_month_arithmetic():
    assert months_between(date(2020, 1, 15), date(2021, 12, 31)) == 24
    assert months_between(date(2021, 1, 1), date(2020, 1, 1)) == 0
    assert add_months(date(2020, 11, 20), 3) == date(2021, 2, 1)
    assert month_end(date(2024, 2, 10)) == date(2024, 2, 29)


def test_month_grid_starts_on_requested_day():
    dates = list(iter_month_dates(date(2020, 1, 15), date(2020, 4, 2)))
    assert dates == [date(2020, 1, 15), date(2020, 2, 1), date(2020, 3, 1), date(2020, 4, 1)]


def test_rebalance_boundaries():
    assert [m for m in range(25) if is_rebalance_month(m, "yearly")] == [12, 24]
    assert [m for m in range(10) if is_rebalance_month(m, "quarterly")] == [3, 6, 9]
    assert [m for m in range(4) if is_rebalance_month(m, "monthly")] == [1, 2, 3]


def test_assumed_dividend_only_in_dividend_months():
    s = EngineSettings()
    value = Decimal("4000")
    assert assumed_dividend(value, 0.09, 3, s) == Decimal("120.00")
    assert assumed_dividend(value, 0.09, 8, s) == Decimal("120.00")
    assert assumed_dividend(value, 0.09, 10, s) == Decimal("120.00")
    assert all(assumed_dividend(value, 0.09, m, s) == 0 for m in (1, 2, 4, 5, 6, 7, 9, 11, 12))
    assert assumed_dividend(value, 0.0, 3, s) == 0


def test_assumed_dividend_rounds_to_cents():
    assert assumed_dividend(Decimal("4000"), 0.08, 3, EngineSettings()) == Decimal("106.67")


def test_allocate_by_target_splits_cash():
    amounts = allocate_by_target(Decimal("1000"), {"A": 0.6, "B": 0.4})
    assert amounts == {"A": Decimal("600.0"), "B": Decimal("400.0")}
    assert allocate_by_target(Decimal("0"), {"A": 1.0}) == {"A": Decimal("0")}


def test_allocate_toward_target_favours_underweight():
    values = {"A": Decimal("7000"), "B": Decimal("3000")}
    amounts = allocate_toward_target(Decimal("1000"), values, {"A": 0.5, "B": 0.5})
    assert amounts["A"] == 0
    assert amounts["B"] == Decimal("1000")


def test_allocate_toward_target_shares_shortfall_proportionally():
    values = {"A": Decimal("4000"), "B": Decimal("4000"), "C": Decimal("2000")}
    weights = {"A": 0.2, "B": 0.4, "C": 0.4}
    amounts = allocate_toward_target(Decimal("1000"), values, weights)
    # total 11000: targets 2200 / 4400 / 4400, shortfalls 0 / 400 / 2400
    assert amounts["A"] == 0
    assert amounts["B"] < amounts["C"]
    assert abs(sum(amounts.values()) - Decimal("1000")) < Decimal("1e-20")


def test_allocate_toward_target_from_empty_portfolio_is_pro_rata():
    amounts = allocate_toward_target(Decimal("1000"), {"A": Decimal("0"), "B": Decimal("0")},
                                     {"A": 0.75, "B": 0.25})
    assert amounts == {"A": Decimal("750"), "B": Decimal("250")}
