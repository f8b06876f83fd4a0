import io
import logging
from typing import Optional

import certifi
import pandas as pd
import requests
import yfinance as yf

from .cache import key_path

logger = logging.getLogger(__name__)


def _cache_read(path):
    if path.exists():
        return pd.read_csv(path, index_col=0, parse_dates=True)
    return None

def _cache_write(df, path):
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path)

def _close_prices(data, tickers):
    """Close columns of a `group_by="column"` download, one column per ticker.

    Several tickers (and a single one on current yfinance) come back as a
    (field, ticker) MultiIndex; older releases return flat columns for one ticker.
    """
    if isinstance(data.columns, pd.MultiIndex):
        if "Close" not in data.columns.get_level_values(0):
            raise RuntimeError(f"Yahoo download has no Close prices. Columns={list(data.columns)}")
        return data["Close"]
    if "Close" not in data.columns:
        raise RuntimeError(f"Yahoo download has no Close prices. Columns={list(data.columns)}")
    return data[["Close"]].rename(columns={"Close": tickers[0]})

def fetch_prices_monthly(tickers, use_cache: bool = True):
    """Download daily auto-adjusted prices from Yahoo and resample to month-end.

    All tickers go through one threaded yfinance call; the frame is cached as CSV.
    """
    tickers = [t.upper() for t in tickers]
    path = key_path("prices", "|".join(sorted(tickers)))
    if use_cache:
        cached = _cache_read(path)
        if cached is not None:
            logger.debug("Prices for %s read from %s", tickers, path)
            return cached

    logger.info("Downloading from Yahoo Finance: %s", tickers)
    data = yf.download(
        tickers,
        auto_adjust=True,
        progress=False,
        interval="1d",
        group_by="column",
        period="max",
        threads=True,
    )
    px_daily = _close_prices(data, tickers)
    present = [t for t in tickers if t in px_daily.columns]
    if not present:
        raise RuntimeError("None of the requested tickers returned price data.")
    missing = sorted(set(tickers) - set(present))
    if missing:
        logger.warning("No Yahoo prices for %s", missing)
    monthly = px_daily[present].resample("ME").last().dropna(how="all")
    if use_cache:
        _cache_write(monthly, path)
    return monthly

def fetch_dividends(ticker: str, use_cache: bool = True) -> pd.Series:
    """Per-share dividend events for one ticker, indexed by payment date."""
    ticker = ticker.upper()
    path = key_path("dividends", ticker)
    if use_cache:
        cached = _cache_read(path)
        if cached is not None:
            return cached.iloc[:, 0] if cached.shape[1] else pd.Series(dtype=float)

    divs = yf.Ticker(ticker).dividends
    if divs is None:
        divs = pd.Series(dtype=float)
    divs = divs.rename(ticker)
    if len(divs) and getattr(divs.index, "tz", None) is not None:
        divs.index = divs.index.tz_localize(None)
    if use_cache:
        _cache_write(divs.to_frame(), path)
    return divs

def _parse_fred_csv(text: str, series_id: str, start=None, end=None) -> pd.DataFrame:
    df = pd.read_csv(io.StringIO(text))
    cols_lower = {c.lower(): c for c in df.columns}
    date_col = cols_lower.get("observation_date") or cols_lower.get("date")
    if date_col is None:
        raise ValueError("CSV missing observation_date column")
    df[date_col] = pd.to_datetime(df[date_col])

    if series_id in df.columns:
        value_col = series_id
    else:
        # fredgraph.csv returns the series as a non-date column
        value_cols = [c for c in df.columns if c != date_col]
        if not value_cols:
            raise ValueError("CSV missing value column")
        value_col = value_cols[0]
        df = df.rename(columns={value_col: series_id})

    df[series_id] = pd.to_numeric(df[series_id], errors="coerce")
    df = df.dropna(subset=[series_id]).set_index(date_col)[[series_id]]
    df.index.name = "observation_date"

    if start is not None:
        df = df[df.index >= pd.to_datetime(start)]
    if end is not None:
        df = df[df.index <= pd.to_datetime(end)]
    return df.resample("ME").last()

FRED_CSV_URLS = (
    "https://fred.stlouisfed.org/series/{sid}/downloaddata/{sid}.csv&frequency=m",
    "https://fred.stlouisfed.org/graph/fredgraph.csv?id={sid}&frequency=m",
)

def _fred_session():
    sess = requests.Session()
    # proxy variables from the environment are ignored
    sess.trust_env = False
    sess.verify = certifi.where()
    sess.headers["User-Agent"] = "portfolio-backtester/0.1"
    return sess

def fetch_fred_series(series_id, start=None, end=None):
    """Monthly (month-end) observations of a FRED series from its public CSV endpoints.

    No API key is needed. The endpoints are tried in turn and the first parsable
    answer is cached.
    """
    path = key_path("fred", f"{series_id}|{start}|{end}")
    cached = _cache_read(path)
    if cached is not None:
        return cached

    sess = _fred_session()
    errors = []
    for template in FRED_CSV_URLS:
        url = template.format(sid=series_id)
        try:
            resp = sess.get(url, timeout=30, proxies={"http": None, "https": None})
            resp.raise_for_status()
            df = _parse_fred_csv(resp.text, series_id, start, end)
        except (requests.RequestException, ValueError, KeyError) as e:
            logger.warning("FRED %s: %s failed: %s", series_id, url, e)
            errors.append(e)
            continue
        _cache_write(df, path)
        return df

    raise RuntimeError(f"Failed to fetch FRED series {series_id}: {errors[-1]}")

def risk_free_rate_from_fred(series_id: str = "TB3MS", start=None, end=None, months: int = 12) -> float:
    """Average annual rate (as a fraction) of the last `months` observations of a FRED percent series."""
    df = fetch_fred_series(series_id, start=start, end=end).dropna()
    if df.empty:
        raise RuntimeError(f"FRED series {series_id} has no observations in range")
    return float(df[series_id].tail(months).mean() / 100.0)


class YahooSeriesProvider:
    """HistoricalSeriesProvider backed by Yahoo Finance month-end closes.

    Prices for every ticker are fetched up front, before any engine stage runs.
    With `actual_dividends=True` dividend events come from Yahoo; otherwise the
    engine applies its assumed-yield model.
    """

    def __init__(self, tickers, actual_dividends: bool = False, use_cache: bool = True):
        self.use_cache = use_cache
        self.actual_dividends = actual_dividends
        self._prices = fetch_prices_monthly(list(tickers), use_cache=use_cache)
        self._dividends = {}

    def get_series(self, ticker: str) -> pd.Series:
        ticker = ticker.upper()
        if ticker not in self._prices.columns:
            return pd.Series(dtype=float)
        return self._prices[ticker].dropna()

    def get_dividend_events(self, ticker: str) -> Optional[pd.Series]:
        if not self.actual_dividends:
            return None
        ticker = ticker.upper()
        if ticker not in self._dividends:
            self._dividends[ticker] = fetch_dividends(ticker, use_cache=self.use_cache)
        return self._dividends[ticker]
