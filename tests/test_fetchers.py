import numpy as np
import pandas as pd
import pytest
import requests

from portfolio_backtester.data import fetchers
from portfolio_backtester.data.fetchers import (
    YahooSeriesProvider,
    _parse_fred_csv,
    fetch_fred_series,
    fetch_prices_monthly,
    risk_free_rate_from_fred,
)

FRED_CSV = """observation_date,TB3MS
2023-01-01,4.54
2023-02-01,4.65
2023-03-01,4.69
2023-04-01,.
2023-05-01,5.14
"""


class _FakeResponse:
    def __init__(self, text, status=200):
        self.text = text
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"status {self.status}")


@pytest.fixture(autouse=True)
def cache_in_tmp(tmp_path, monkeypatch):
    monkeypatch.setenv("PORTFOLIO_BACKTESTER_CACHE_DIR", str(tmp_path / "cache"))


def _daily_download(tickers, **kwargs):
    idx = pd.bdate_range("2021-01-01", "2021-03-31")
    cols = pd.MultiIndex.from_product([["Close", "Volume"], tickers])
    data = np.column_stack([np.linspace(10, 20, len(idx)) for _ in cols])
    return pd.DataFrame(data, index=idx, columns=cols)


def test_parse_fred_csv_drops_missing_values():
    df = _parse_fred_csv(FRED_CSV, "TB3MS")
    assert list(df.columns) == ["TB3MS"]
    assert df.index[0] == pd.Timestamp("2023-01-31")
    assert df["TB3MS"].dropna().tolist() == [4.54, 4.65, 4.69, 5.14]


def test_parse_fredgraph_layout_and_range():
    text = "DATE,VALUE\n2022-12-01,4.0\n2023-01-01,4.5\n2023-02-01,4.6\n"
    df = _parse_fred_csv(text, "TB3MS", start="2023-01-01")
    assert df["TB3MS"].tolist() == [4.5, 4.6]


def test_parse_fred_csv_without_date_column():
    with pytest.raises(ValueError):
        _parse_fred_csv("x,y\n1,2\n", "TB3MS")


def test_fetch_fred_falls_back_to_second_url(monkeypatch):
    calls = []

    def fake_get(self, url, **kwargs):
        calls.append(url)
        assert self.trust_env is False
        if "downloaddata" in url:
            raise requests.ConnectionError("blocked")
        return _FakeResponse(FRED_CSV)

    monkeypatch.setattr(requests.Session, "get", fake_get)
    df = fetch_fred_series("TB3MS")
    assert len(calls) == 2
    assert df["TB3MS"].iloc[-1] == 5.14

    # second call is served from the cache
    fetch_fred_series("TB3MS")
    assert len(calls) == 2


def test_fetch_fred_raises_when_every_url_fails(monkeypatch):
    monkeypatch.setattr(requests.Session, "get", lambda self, url, **kw: _FakeResponse("", status=503))
    with pytest.raises(RuntimeError, match="TB3MS"):
        fetch_fred_series("TB3MS")


def test_risk_free_rate_from_fred(monkeypatch):
    monkeypatch.setattr(requests.Session, "get", lambda self, url, **kw: _FakeResponse(FRED_CSV))
    assert risk_free_rate_from_fred(months=2) == pytest.approx((4.69 + 5.14) / 200)


def test_fetch_prices_monthly_resamples_to_month_end(monkeypatch):
    monkeypatch.setattr(fetchers.yf, "download", _daily_download)
    monthly = fetch_prices_monthly(["a", "b"], use_cache=False)

    assert list(monthly.columns) == ["A", "B"]
    assert list(monthly.index) == [pd.Timestamp("2021-01-31"), pd.Timestamp("2021-02-28"),
                                   pd.Timestamp("2021-03-31")]
    assert monthly["A"].iloc[-1] == pytest.approx(20.0)


def test_yahoo_provider_serves_series_and_skips_dividends(monkeypatch):
    monkeypatch.setattr(fetchers.yf, "download", _daily_download)
    provider = YahooSeriesProvider(["A", "B"], use_cache=False)

    assert len(provider.get_series("a")) == 3
    assert provider.get_series("MISSING").empty
    assert provider.get_dividend_events("A") is None


def test_yahoo_provider_fetches_dividends_once(monkeypatch):
    monkeypatch.setattr(fetchers.yf, "download", _daily_download)
    fetched = []

    def fake_dividends(ticker, use_cache=True):
        fetched.append(ticker)
        return pd.Series([0.5], index=pd.to_datetime(["2021-02-10"]), name=ticker)

    monkeypatch.setattr(fetchers, "fetch_dividends", fake_dividends)
    provider = YahooSeriesProvider(["A"], actual_dividends=True, use_cache=False)

    assert provider.get_dividend_events("A").iloc[0] == 0.5
    provider.get_dividend_events("a")
    assert fetched == ["A"]


def test_single_ticker_flat_download(monkeypatch):
    def flat_download(tickers, **kwargs):
        idx = pd.bdate_range("2021-01-01", "2021-02-26")
        return pd.DataFrame({"Close": np.linspace(5, 6, len(idx)), "Volume": 1.0}, index=idx)

    monkeypatch.setattr(fetchers.yf, "download", flat_download)
    monthly = fetch_prices_monthly(["vti"], use_cache=False)
    assert list(monthly.columns) == ["VTI"]
    assert monthly["VTI"].iloc[-1] == pytest.approx(6.0)


def test_download_without_close_prices(monkeypatch):
    monkeypatch.setattr(fetchers.yf, "download",
                        lambda tickers, **kw: pd.DataFrame({"Volume": [1.0]}, index=pd.to_datetime(["2021-01-04"])))
    with pytest.raises(RuntimeError, match="no Close"):
        fetch_prices_monthly(["VTI"], use_cache=False)
