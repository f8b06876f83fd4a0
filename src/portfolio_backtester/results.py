"""Report types produced by the validator, the simulator and the metrics stage."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from .engine.calendar import months_between
from .engine.ledger import TransactionLedger

DataQuality = Literal["excellent", "good", "fair", "poor"]


@dataclass(frozen=True)
class AssetAvailability:
    ticker: str
    available_from: Optional[date]
    available_to: Optional[date]
    total_months: int
    missing_months: int
    data_quality: DataQuality
    warnings: List[str] = field(default_factory=list)
    invalid_prices: int = 0


@dataclass(frozen=True)
class CoverageReport:
    is_valid: bool
    adjusted_start_date: date
    adjusted_end_date: date
    assets_availability: List[AssetAvailability]
    global_warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def months_available(self) -> int:
        if not self.is_valid:
            return 0
        return months_between(self.adjusted_start_date, self.adjusted_end_date)


@dataclass(frozen=True)
class PortfolioSnapshot:
    date: date
    value: Decimal
    holdings: Dict[str, Decimal]
    prices: Dict[str, Decimal]
    monthly_return: float
    contribution: Decimal       # external money added this month
    dividends: Decimal
    cash_balance: Decimal


@dataclass(frozen=True)
class MonthlyReturn:
    date: date
    monthly_return: float
    portfolio_value: Decimal
    contribution: Decimal


@dataclass(frozen=True)
class AssetPerformance:
    ticker: str
    allocation: float
    final_value: Decimal
    total_return: float
    contribution: Decimal
    reinvestment: Decimal
    rebalance_amount: Decimal
    average_price: Optional[Decimal]
    total_shares: Decimal
    total_dividends: Decimal


@dataclass(frozen=True)
class BacktestResult:
    total_return: float
    annualized_return: float
    volatility: float
    sharpe_ratio: Optional[float]
    max_drawdown: float
    positive_months: int
    negative_months: int
    total_invested: Decimal
    final_value: Decimal
    final_cash_reserve: Decimal
    total_dividends_received: Decimal
    monthly_returns: List[MonthlyReturn]
    portfolio_evolution: List[PortfolioSnapshot]
    asset_performance: List[AssetPerformance]
    money_weighted_return: Optional[float] = None
    month_count: int = 0
    effective_start_date: Optional[date] = None
    effective_end_date: Optional[date] = None


@dataclass(frozen=True)
class BacktestRun:
    result: BacktestResult
    ledger: TransactionLedger
    report: CoverageReport


@dataclass(frozen=True)
class BacktestOutcome:
    report: CoverageReport
    run: Optional[BacktestRun] = None

    @property
    def result(self) -> Optional[BacktestResult]:
        return self.run.result if self.run else None

    @property
    def ledger(self):
        return self.run.ledger if self.run else None
