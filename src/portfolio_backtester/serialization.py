"""Plain-dict (JSON-ready) forms of configs, reports, results and ledgers.

Keys are camelCase, money is rendered as a decimal string and dates as ISO strings
so a round trip through JSON loses nothing.
"""

from dataclasses import fields, is_dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from .config import BacktestAsset, BacktestConfig
from .engine.ledger import MonthlyTransaction, TransactionLedger
from .errors import InvalidConfiguration
from .results import (
    AssetAvailability,
    AssetPerformance,
    BacktestResult,
    CoverageReport,
    MonthlyReturn,
    PortfolioSnapshot,
)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


def _jsonable(obj: Any) -> Any:
    if isinstance(obj, MonthlyReturn):
        return {
            "date": obj.date.isoformat(),
            "return": obj.monthly_return,
            "portfolioValue": str(obj.portfolio_value),
            "contribution": str(obj.contribution),
        }
    if is_dataclass(obj):
        return {_camel(f.name): _jsonable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(v) for v in obj]
    return obj


def _date(v):
    if v is None or isinstance(v, date):
        return v
    return date.fromisoformat(str(v)[:10])


def _dec(v):
    return None if v is None else Decimal(str(v))


def _dec_map(d) -> Dict[str, Decimal]:
    return {k: Decimal(str(v)) for k, v in (d or {}).items()}


def config_to_dict(config: BacktestConfig) -> Dict[str, Any]:
    return {
        "assets": [
            {
                "ticker": a.ticker,
                "targetAllocation": a.target_allocation,
                "averageDividendYield": a.average_dividend_yield,
            }
            for a in config.assets
        ],
        "startDate": config.start_date.isoformat(),
        "endDate": config.end_date.isoformat(),
        "initialCapital": str(config.initial_capital),
        "monthlyContribution": str(config.monthly_contribution),
        "rebalanceFrequency": config.rebalance_frequency,
        "allocationTolerance": config.allocation_tolerance,
    }


def config_from_dict(data: Dict[str, Any]) -> BacktestConfig:
    missing = [k for k in ("assets", "startDate", "endDate") if k not in data]
    if missing:
        raise InvalidConfiguration([f"missing key {k!r}" for k in missing])
    try:
        assets = [
            BacktestAsset(
                ticker=a["ticker"],
                target_allocation=float(a["targetAllocation"]),
                average_dividend_yield=float(a.get("averageDividendYield") or 0.0),
            )
            for a in data["assets"]
        ]
        start, end = _date(data["startDate"]), _date(data["endDate"])
        capital = Decimal(str(data.get("initialCapital", 0)))
        contribution = Decimal(str(data.get("monthlyContribution", 0)))
        tolerance = float(data.get("allocationTolerance", 0.001))
    except (KeyError, TypeError, ValueError, InvalidOperation) as e:
        raise InvalidConfiguration([f"malformed config: {e}"]) from e
    return BacktestConfig(
        assets=assets,
        start_date=start,
        end_date=end,
        initial_capital=capital,
        monthly_contribution=contribution,
        rebalance_frequency=data.get("rebalanceFrequency", "yearly"),
        allocation_tolerance=tolerance,
    )


def report_to_dict(report: CoverageReport) -> Dict[str, Any]:
    return _jsonable(report)


def report_from_dict(data: Dict[str, Any]) -> CoverageReport:
    return CoverageReport(
        is_valid=bool(data["isValid"]),
        adjusted_start_date=_date(data["adjustedStartDate"]),
        adjusted_end_date=_date(data["adjustedEndDate"]),
        assets_availability=[
            AssetAvailability(
                ticker=a["ticker"],
                available_from=_date(a.get("availableFrom")),
                available_to=_date(a.get("availableTo")),
                total_months=int(a["totalMonths"]),
                missing_months=int(a["missingMonths"]),
                data_quality=a["dataQuality"],
                warnings=list(a.get("warnings", [])),
                invalid_prices=int(a.get("invalidPrices", 0)),
            )
            for a in data["assetsAvailability"]
        ],
        global_warnings=list(data.get("globalWarnings", [])),
        recommendations=list(data.get("recommendations", [])),
    )


def result_to_dict(result: BacktestResult) -> Dict[str, Any]:
    return _jsonable(result)


def result_from_dict(data: Dict[str, Any]) -> BacktestResult:
    return BacktestResult(
        total_return=float(data["totalReturn"]),
        annualized_return=float(data["annualizedReturn"]),
        volatility=float(data["volatility"]),
        sharpe_ratio=None if data.get("sharpeRatio") is None else float(data["sharpeRatio"]),
        max_drawdown=float(data["maxDrawdown"]),
        positive_months=int(data["positiveMonths"]),
        negative_months=int(data["negativeMonths"]),
        total_invested=_dec(data["totalInvested"]),
        final_value=_dec(data["finalValue"]),
        final_cash_reserve=_dec(data.get("finalCashReserve", "0")),
        total_dividends_received=_dec(data.get("totalDividendsReceived", "0")),
        monthly_returns=[
            MonthlyReturn(
                date=_date(r["date"]),
                monthly_return=float(r["return"]),
                portfolio_value=_dec(r["portfolioValue"]),
                contribution=_dec(r["contribution"]),
            )
            for r in data.get("monthlyReturns", [])
        ],
        portfolio_evolution=[
            PortfolioSnapshot(
                date=_date(s["date"]),
                value=_dec(s["value"]),
                holdings=_dec_map(s.get("holdings")),
                prices=_dec_map(s.get("prices")),
                monthly_return=float(s["monthlyReturn"]),
                contribution=_dec(s.get("contribution", "0")),
                dividends=_dec(s.get("dividends", "0")),
                cash_balance=_dec(s.get("cashBalance", "0")),
            )
            for s in data.get("portfolioEvolution", [])
        ],
        asset_performance=[
            AssetPerformance(
                ticker=p["ticker"],
                allocation=float(p["allocation"]),
                final_value=_dec(p["finalValue"]),
                total_return=float(p["totalReturn"]),
                contribution=_dec(p["contribution"]),
                reinvestment=_dec(p.get("reinvestment", "0")),
                rebalance_amount=_dec(p.get("rebalanceAmount", "0")),
                average_price=_dec(p.get("averagePrice")),
                total_shares=_dec(p["totalShares"]),
                total_dividends=_dec(p.get("totalDividends", "0")),
            )
            for p in data.get("assetPerformance", [])
        ],
        money_weighted_return=(None if data.get("moneyWeightedReturn") is None
                               else float(data["moneyWeightedReturn"])),
        month_count=int(data.get("monthCount", 0)),
        effective_start_date=_date(data.get("effectiveStartDate")),
        effective_end_date=_date(data.get("effectiveEndDate")),
    )


def ledger_to_records(ledger: TransactionLedger) -> List[Dict[str, Any]]:
    return [_jsonable(e) for e in ledger]


def ledger_from_records(records: List[Dict[str, Any]]) -> TransactionLedger:
    decimals = {"contribution", "price", "shares_added", "total_shares", "total_invested",
                "total_contribution", "portfolio_value", "cash_balance",
                "from_contribution", "from_dividends", "from_reserve"}
    entries = []
    for r in records:
        kwargs = {}
        for f in fields(MonthlyTransaction):
            v = r[_camel(f.name)]
            if f.name in decimals:
                v = Decimal(str(v))
            elif f.name == "date":
                v = _date(v)
            elif f.name == "month":
                v = int(v)
            kwargs[f.name] = v
        entries.append(MonthlyTransaction(**kwargs))
    return TransactionLedger(entries)
