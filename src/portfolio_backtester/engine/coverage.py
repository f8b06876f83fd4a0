import logging
from datetime import date
from typing import List, Optional, Sequence

import pandas as pd

from ..config import BacktestAsset, EngineSettings
from ..data.provider import HistoricalSeriesProvider, clean_series
from ..results import AssetAvailability, CoverageReport
from .calendar import iter_month_dates, month_end, months_between

logger = logging.getLogger(__name__)

QUALITY_SCORE = {"excellent": 4, "good": 3, "fair": 2, "poor": 1}


class CoverageValidator:
    """Find the widest window every asset covers and grade each asset's data inside it."""

    def __init__(self, provider: HistoricalSeriesProvider, settings: Optional[EngineSettings] = None):
        self.provider = provider
        self.settings = settings or EngineSettings()

    def validate(self, assets: Sequence[BacktestAsset], start_date: date, end_date: date) -> CoverageReport:
        logger.info("Validating history for %s over %s - %s",
                    [a.ticker for a in assets], start_date, end_date)

        series = {}
        invalid = {}
        for a in assets:
            series[a.ticker], invalid[a.ticker] = clean_series(self.provider.get_series(a.ticker))

        with_data = [t for t, s in series.items() if len(s)]
        without_data = [t for t, s in series.items() if not len(s)]

        eff_start, eff_end = start_date, end_date
        if with_data:
            eff_start = max([start_date] + [series[t].index[0].date() for t in with_data])
            eff_end = min([end_date] + [series[t].index[-1].date() for t in with_data])
        overlap = eff_start < eff_end
        window_months = months_between(eff_start, eff_end) if overlap else 0

        availability = []
        for a in assets:
            s = series[a.ticker]
            if not len(s):
                availability.append(AssetAvailability(
                    ticker=a.ticker,
                    available_from=None,
                    available_to=None,
                    total_months=0,
                    missing_months=0,
                    data_quality="poor",
                    warnings=[f"No historical data found for {a.ticker}"],
                    invalid_prices=invalid[a.ticker],
                ))
                continue
            availability.append(self._grade(a.ticker, s, invalid[a.ticker], start_date, end_date,
                                            eff_start, eff_end, window_months))

        global_warnings: List[str] = []
        recommendations: List[str] = []
        poor = [x.ticker for x in availability if x.data_quality == "poor" and x.total_months > 0]
        fair = [x.ticker for x in availability if x.data_quality == "fair"]

        if without_data:
            global_warnings.append(
                f"{len(without_data)} asset(s) without historical data: {', '.join(without_data)}")
        if not overlap:
            global_warnings.append("insufficient overlapping history")
        if poor:
            global_warnings.append(f"{len(poor)} asset(s) with poor data quality: {', '.join(poor)}")
        if fair:
            global_warnings.append(f"{len(fair)} asset(s) with fair data quality: {', '.join(fair)}")
        if overlap and window_months < self.settings.min_recommended_months:
            global_warnings.append(
                f"Available period ({window_months} months) is shorter than the recommended "
                f"minimum ({self.settings.min_recommended_months} months)")
        if overlap and window_months < 24:
            global_warnings.append("Short period may produce less reliable metrics")

        if without_data:
            recommendations.append("Consider removing assets without historical data or choosing alternatives")
        if poor:
            recommendations.append("Assets with poor data quality may affect the accuracy of the results")
        if self.settings.min_recommended_months <= window_months < self.settings.robust_months:
            recommendations.append("For more robust results, consider a period of at least 3 years")
        if len(assets) > self.settings.max_assets_hint:
            recommendations.append("Portfolios with many assets are harder to keep on target")
        graded = [x for x in availability if x.total_months > 0]
        if graded:
            avg = sum(QUALITY_SCORE[x.data_quality] for x in graded) / len(graded)
            if avg >= 3.5:
                recommendations.append("Overall data quality is excellent for backtesting")
            elif avg >= 2.5:
                recommendations.append("Overall data quality is adequate for backtesting")
            else:
                recommendations.append("Consider revising the asset selection for better data quality")

        is_valid = overlap and not without_data and not poor
        logger.info("Validation %s: window %s - %s (%d months), %d warning(s)",
                    "passed" if is_valid else "failed", eff_start, eff_end, window_months, len(global_warnings))
        for w in global_warnings:
            logger.warning(w)

        return CoverageReport(
            is_valid=is_valid,
            adjusted_start_date=eff_start,
            adjusted_end_date=eff_end,
            assets_availability=availability,
            global_warnings=global_warnings,
            recommendations=recommendations,
        )

    def _grade(self, ticker, s: pd.Series, invalid_prices, start_date, end_date,
               eff_start, eff_end, window_months) -> AssetAvailability:
        available_from = s.index[0].date()
        available_to = s.index[-1].date()
        missing = self._missing_months(s, eff_start, eff_end) if window_months else 0

        warnings = []
        ratio = missing / window_months if window_months else 0.0
        if missing == 0:
            quality = "excellent"
        elif ratio <= self.settings.good_missing_ratio:
            quality = "good"
        elif ratio <= self.settings.fair_missing_ratio:
            quality = "fair"
        else:
            quality = "poor"
        if missing:
            warnings.append(f"{missing} month(s) with missing data ({ratio:.1%} of the window)")
        if quality == "fair":
            warnings.append(f"Gaps exceed {self.settings.good_missing_ratio:.0%} of the window")
        elif quality == "poor":
            warnings.append(f"Gaps exceed {self.settings.fair_missing_ratio:.0%} of the window")
        if available_from > start_date:
            warnings.append(f"Data available only from {available_from.isoformat()}")
        if available_to < end_date:
            warnings.append(f"Data available only until {available_to.isoformat()}")
        if invalid_prices:
            warnings.append(f"{invalid_prices} record(s) with invalid prices")

        return AssetAvailability(
            ticker=ticker,
            available_from=available_from,
            available_to=available_to,
            total_months=window_months,
            missing_months=missing,
            data_quality=quality,
            warnings=warnings,
            invalid_prices=invalid_prices,
        )

    def _missing_months(self, s: pd.Series, eff_start: date, eff_end: date) -> int:
        """Months whose latest quote at month end (or window end) is older than the gap tolerance."""
        tolerance = pd.Timedelta(days=self.settings.gap_tolerance_days)
        idx = s.index
        missing = 0
        for as_of in iter_month_dates(eff_start, eff_end):
            check = pd.Timestamp(min(month_end(as_of), eff_end))
            pos = idx.searchsorted(check, side="right")
            if pos == 0 or check - idx[pos - 1] > tolerance:
                missing += 1
        return missing
