"""Backtest pipeline: validate -> simulate -> summarize.

`validate_backtest` and `execute_backtest` are the two steps of the confirm-then-run
workflow; `run_backtest` does both in one call using the auto-adjusted window.
"""

import logging
from typing import Optional

from .analytics.report import MetricsCalculator
from .config import BacktestConfig, EngineSettings
from .data.provider import HistoricalSeriesProvider
from .engine.coverage import CoverageValidator
from .engine.simulator import MonthlySimulator
from .errors import InsufficientHistoricalData
from .results import BacktestOutcome, BacktestRun, CoverageReport

logger = logging.getLogger(__name__)


def validate_backtest(config: BacktestConfig, provider: HistoricalSeriesProvider,
                      settings: Optional[EngineSettings] = None) -> CoverageReport:
    return CoverageValidator(provider, settings).validate(config.assets, config.start_date, config.end_date)


def execute_backtest(config: BacktestConfig, provider: HistoricalSeriesProvider, report: CoverageReport,
                     settings: Optional[EngineSettings] = None) -> BacktestRun:
    """Simulate inside the window of an accepted coverage report."""
    if not report.is_valid:
        raise InsufficientHistoricalData(
            "Insufficient data to run the backtest: " + "; ".join(report.global_warnings), report=report)
    settings = settings or EngineSettings()
    output = MonthlySimulator(provider, settings).simulate(
        config, report.adjusted_start_date, report.adjusted_end_date)
    result = MetricsCalculator(settings).summarize(output.ledger, output.evolution, config)
    return BacktestRun(result=result, ledger=output.ledger, report=report)


def run_backtest(config: BacktestConfig, provider: HistoricalSeriesProvider,
                 settings: Optional[EngineSettings] = None) -> BacktestOutcome:
    report = validate_backtest(config, provider, settings)
    if not report.is_valid:
        logger.warning("Backtest not run: %s", "; ".join(report.global_warnings))
        return BacktestOutcome(report=report)
    if (report.adjusted_start_date, report.adjusted_end_date) != (config.start_date, config.end_date):
        logger.info("Window adjusted from %s - %s to %s - %s",
                    config.start_date, config.end_date,
                    report.adjusted_start_date, report.adjusted_end_date)
    return BacktestOutcome(report=report, run=execute_backtest(config, provider, report, settings))
