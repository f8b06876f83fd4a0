import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Mapping, Optional, Protocol, Tuple

import numpy as np
import pandas as pd

from ..engine.calendar import month_end, month_start
from ..errors import InsufficientHistoricalData

logger = logging.getLogger(__name__)


class HistoricalSeriesProvider(Protocol):
    def get_series(self, ticker: str) -> pd.Series:
        """Adjusted close prices indexed by date, ascending."""
        ...

    def get_dividend_events(self, ticker: str) -> Optional[pd.Series]:
        """Per-share dividend amounts indexed by payment date, or None to use the yield model."""
        ...


def to_decimal(x) -> Decimal:
    return Decimal(str(float(x)))


def _normalize_index(s: pd.Series) -> pd.Series:
    idx = pd.DatetimeIndex(pd.to_datetime(s.index))
    if idx.tz is not None:
        idx = idx.tz_localize(None)
    s = pd.Series(s.to_numpy(dtype=float), index=idx.normalize())
    return s.sort_index()


def clean_series(raw: Optional[pd.Series]) -> Tuple[pd.Series, int]:
    """Sorted float series without NaN or non-positive prices, plus the count of non-positive rows dropped."""
    if raw is None or len(raw) == 0:
        return pd.Series(dtype=float, index=pd.DatetimeIndex([])), 0
    s = _normalize_index(raw).dropna()
    invalid = int((s <= 0).sum())
    s = s[s > 0]
    s = s[~s.index.duplicated(keep="last")]
    return s, invalid


class InMemorySeriesProvider:
    """Provider over caller-supplied data.

    prices: DataFrame with one column per ticker (NaN where a ticker has no quote)
            or a mapping ticker -> Series.
    dividends: optional mapping ticker -> Series of per-share amounts. Tickers absent
            from the mapping fall back to the yield model.
    """

    def __init__(self, prices, dividends: Optional[Mapping[str, pd.Series]] = None):
        if isinstance(prices, pd.DataFrame):
            self._prices = {str(c).upper(): prices[c].dropna() for c in prices.columns}
        else:
            self._prices = {str(k).upper(): v for k, v in prices.items()}
        self._dividends = {str(k).upper(): v for k, v in (dividends or {}).items()}

    def tickers(self):
        return list(self._prices)

    def get_series(self, ticker: str) -> pd.Series:
        s = self._prices.get(ticker.upper())
        if s is None:
            return pd.Series(dtype=float, index=pd.DatetimeIndex([]))
        return s

    def get_dividend_events(self, ticker: str) -> Optional[pd.Series]:
        return self._dividends.get(ticker.upper())


class PriceBook:
    """Read-only lookups over provider series for one run.

    The execution price of a month is the first quote on/after the month's date
    within that calendar month; when the month has none the last earlier quote
    is carried forward.
    """

    def __init__(self, provider: HistoricalSeriesProvider, tickers, window_end: date):
        self.window_end = window_end
        self._series: Dict[str, pd.Series] = {}
        self._dividends: Dict[str, Optional[pd.Series]] = {}
        for t in tickers:
            self._series[t], _ = clean_series(provider.get_series(t))
            events = provider.get_dividend_events(t)
            if events is not None:
                events = _normalize_index(events).dropna()
            self._dividends[t] = events
        self.carried_forward = 0

    def price(self, ticker: str, as_of: date) -> Decimal:
        s = self._series[ticker]
        lo = pd.Timestamp(as_of)
        hi = pd.Timestamp(min(month_end(as_of), self.window_end))
        in_month = s[(s.index >= lo) & (s.index <= hi)]
        if len(in_month):
            return to_decimal(in_month.iloc[0])
        prior = s[s.index < lo]
        if len(prior):
            self.carried_forward += 1
            logger.debug("%s: no quote in %s, carrying %s from %s",
                         ticker, as_of.strftime("%Y-%m"), prior.iloc[-1], prior.index[-1].date())
            return to_decimal(prior.iloc[-1])
        raise InsufficientHistoricalData(f"No price for {ticker} on or before {as_of.isoformat()}")

    def uses_actual_dividends(self, ticker: str) -> bool:
        return self._dividends.get(ticker) is not None

    def dividend_per_share(self, ticker: str, as_of: date) -> Decimal:
        """Sum of per-share dividend events paid in the calendar month of `as_of`."""
        events = self._dividends.get(ticker)
        if events is None or len(events) == 0:
            return Decimal("0")
        lo = pd.Timestamp(month_start(as_of))
        hi = pd.Timestamp(month_end(as_of))
        paid = events[(events.index >= lo) & (events.index <= hi)]
        total = float(np.sum(paid.to_numpy())) if len(paid) else 0.0
        return to_decimal(total)
