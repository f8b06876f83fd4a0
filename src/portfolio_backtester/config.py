from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Literal, Tuple

from .errors import InvalidConfiguration

RebalanceFrequency = Literal["monthly", "quarterly", "yearly"]
REBALANCE_FREQUENCIES = ("monthly", "quarterly", "yearly")


@dataclass(frozen=True)
class BacktestAsset:
    ticker: str
    target_allocation: float          # (0, 1]
    average_dividend_yield: float = 0.0   # annual, 0.08 = 8%

    def __post_init__(self):
        object.__setattr__(self, "ticker", str(self.ticker).strip().upper())


@dataclass(frozen=True)
class EngineSettings:
    risk_free_rate: float = 0.10
    dividend_months: Tuple[int, ...] = (3, 8, 10)
    gap_tolerance_days: int = 35
    share_decimals: int = 6
    money_places: int = 2
    good_missing_ratio: float = 0.05
    fair_missing_ratio: float = 0.15
    min_recommended_months: int = 12
    robust_months: int = 36
    max_assets_hint: int = 10

    @property
    def share_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.share_decimals)

    @property
    def money_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.money_places)


@dataclass(frozen=True)
class BacktestConfig:
    assets: List[BacktestAsset]
    start_date: date
    end_date: date
    initial_capital: Decimal = Decimal("0")
    monthly_contribution: Decimal = Decimal("0")
    rebalance_frequency: RebalanceFrequency = "yearly"
    allocation_tolerance: float = field(default=0.001, compare=False)   # allowed |sum of allocations - 1|

    def __post_init__(self):
        object.__setattr__(self, "assets", list(self.assets))
        problems = []
        for name in ("initial_capital", "monthly_contribution"):
            raw = getattr(self, name)
            try:
                amount = Decimal(str(raw))
            except InvalidOperation:
                amount = None
            if amount is None or not amount.is_finite():
                problems.append(f"{name} is not a number: {raw!r}")
                amount = Decimal("0")
            object.__setattr__(self, name, amount)
        problems += self.problems()
        if problems:
            raise InvalidConfiguration(problems)

    def problems(self) -> List[str]:
        problems = []
        if not self.assets:
            problems.append("portfolio has no assets")
        seen = set()
        for a in self.assets:
            if a.ticker in seen:
                problems.append(f"duplicate ticker {a.ticker}")
            seen.add(a.ticker)
            if not 0 < a.target_allocation <= 1:
                problems.append(f"{a.ticker}: allocation {a.target_allocation} outside (0, 1]")
            if a.average_dividend_yield < 0:
                problems.append(f"{a.ticker}: negative dividend yield")
        total = sum(a.target_allocation for a in self.assets)
        if self.assets and abs(total - 1.0) > self.allocation_tolerance:
            problems.append(f"allocations sum to {total:.4f}, expected 1")
        if self.start_date >= self.end_date:
            problems.append("start_date must be before end_date")
        if self.initial_capital < 0:
            problems.append("initial_capital must be >= 0")
        if self.monthly_contribution < 0:
            problems.append("monthly_contribution must be >= 0")
        if self.rebalance_frequency not in REBALANCE_FREQUENCIES:
            problems.append(f"unknown rebalance frequency {self.rebalance_frequency!r}")
        return problems

    def tickers(self):
        return [a.ticker for a in self.assets]

    def weights(self):
        return {a.ticker: a.target_allocation for a in self.assets}
