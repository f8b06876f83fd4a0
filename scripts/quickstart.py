import argparse
import dataclasses
import json
import logging
from datetime import date
from decimal import Decimal

from portfolio_backtester.backtest import run_backtest
from portfolio_backtester.config import BacktestAsset, BacktestConfig, EngineSettings
from portfolio_backtester.data.fetchers import YahooSeriesProvider, risk_free_rate_from_fred
from portfolio_backtester.loader import load_backtest_config
from portfolio_backtester.serialization import result_to_dict

def default_config():
    return BacktestConfig(
        assets=[
            BacktestAsset("VTI", 0.50, 0.015),
            BacktestAsset("TLT", 0.30, 0.035),
            BacktestAsset("GLD", 0.20, 0.0),
        ],
        start_date=date(2010, 1, 1),
        end_date=date(2024, 12, 31),
        initial_capital=Decimal("10000"),
        monthly_contribution=Decimal("500"),
        rebalance_frequency="yearly",
    )

def main():
    parser = argparse.ArgumentParser(description="Run a monthly portfolio backtest on Yahoo Finance data")
    parser.add_argument("--config", help="YAML/JSON file with a 'backtest' section and optional 'settings'")
    parser.add_argument("--actual-dividends", action="store_true", help="use Yahoo dividend events instead of yields")
    parser.add_argument("--fred-risk-free", action="store_true", help="take the risk-free rate from FRED TB3MS")
    parser.add_argument("--json", help="write the full result to this file")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.config:
        config, settings = load_backtest_config(args.config)
    else:
        config, settings = default_config(), EngineSettings()
    if args.fred_risk_free:
        settings = dataclasses.replace(settings, risk_free_rate=risk_free_rate_from_fred())

    provider = YahooSeriesProvider(config.tickers(), actual_dividends=args.actual_dividends)
    outcome = run_backtest(config, provider, settings)

    report = outcome.report
    print(f"=== Data coverage: {report.adjusted_start_date} - {report.adjusted_end_date} ===")
    for a in report.assets_availability:
        print(f"{a.ticker:>6}  {a.data_quality:<9}  missing {a.missing_months}/{a.total_months}")
    for w in report.global_warnings:
        print(f"  ! {w}")
    for r in report.recommendations:
        print(f"  - {r}")
    if outcome.result is None:
        return

    res = outcome.result
    def pct(x): return "n/a" if x is None else f"{100*x:.2f}%"
    print("=== Backtest Summary ===")
    print(f"Months: {res.month_count}")
    print(f"Invested: ${res.total_invested:,.2f}   Final value: ${res.final_value:,.2f}")
    print(f"Dividends received: ${res.total_dividends_received:,.2f}   Cash reserve: ${res.final_cash_reserve:,.2f}")
    print(f"Total return: {pct(res.total_return)}   CAGR: {pct(res.annualized_return)}")
    print(f"Money-weighted return: {pct(res.money_weighted_return)}")
    print(f"Volatility: {pct(res.volatility)}   Max drawdown: {pct(res.max_drawdown)}")
    print(f"Sharpe: {'n/a' if res.sharpe_ratio is None else f'{res.sharpe_ratio:.2f}'}")
    print(f"Positive / negative months: {res.positive_months} / {res.negative_months}")
    for p in res.asset_performance:
        print(f"{p.ticker:>6}  value ${p.final_value:,.2f}  return {pct(p.total_return)}  "
              f"dividends ${p.total_dividends:,.2f}")

    if args.json:
        with open(args.json, "w", encoding="utf-8") as fh:
            json.dump(result_to_dict(res), fh, indent=2)


if __name__ == "__main__":
    main()
