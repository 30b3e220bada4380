"""Tests for the Yahoo Finance adapter with yfinance patched out."""

from datetime import date

import pandas as pd
import pytest

from signal_backtest.ingestion import yahoo_finance
from signal_backtest.ingestion.yahoo_finance import YahooFinanceProvider, to_yahoo_symbol, validate_data


def yahoo_frame(days):
    index = pd.DatetimeIndex(pd.bdate_range("2024-01-02", periods=days), name="Date").tz_localize("Asia/Shanghai")
    return pd.DataFrame(
        {
            "Open": [10.0 + i for i in range(days)],
            "High": [10.5 + i for i in range(days)],
            "Low": [9.5 + i for i in range(days)],
            "Close": [10.2 + i for i in range(days)],
            "Adj Close": [10.2 + i for i in range(days)],
            "Volume": [1000 * (i + 1) for i in range(days)],
        },
        index=index,
    )


class FakeTicker:
    frame = None
    failures = 0
    calls = []

    def __init__(self, symbol):
        self.symbol = symbol

    def history(self, **kwargs):
        FakeTicker.calls.append((self.symbol, kwargs))
        if FakeTicker.failures > 0:
            FakeTicker.failures -= 1
            raise ConnectionError("rate limited")
        return FakeTicker.frame


@pytest.fixture
def ticker(monkeypatch):
    FakeTicker.frame = yahoo_frame(5)
    FakeTicker.failures = 0
    FakeTicker.calls = []
    monkeypatch.setattr(yahoo_finance.yf, "Ticker", FakeTicker)
    return FakeTicker


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def provider(sleeps):
    return YahooFinanceProvider(max_retries=3, retry_delay=2, sleep=sleeps.append)


class TestSymbols:
    @pytest.mark.parametrize("code, symbol", [
        ("600000", "600000.SS"),
        ("000001", "000001.SZ"),
        ("300750", "300750.SZ"),
        ("830799", "830799.BJ"),
        ("AAPL", "AAPL"),
        ("600000.SS", "600000.SS"),
    ])
    def test_to_yahoo_symbol(self, code, symbol):
        assert to_yahoo_symbol(code) == symbol


class TestValidateData:
    def test_invalid_rows_dropped(self):
        df = pd.DataFrame({
            "date": [date(2024, 1, d) for d in (2, 3, 4, 5)],
            "open": [10.0, 0.0, 10.0, 10.0],
            "high": [10.5, 10.5, 9.0, 10.5],
            "low": [9.5, 9.5, 9.5, 9.5],
            "close": [10.2, 10.2, 10.2, None],
            "volume": [1000, 1000, 1000, 1000],
        })
        assert list(validate_data(df, "TEST")["date"]) == [date(2024, 1, 2)]


class TestProvider:
    def test_fetch_all_bars(self, provider, ticker):
        bars = provider.fetch_all_bars("600000", "浦发银行")

        assert ticker.calls[0][0] == "600000.SS"
        assert ticker.calls[0][1]["period"] == "max"
        assert list(bars.columns) == ["date", "open", "high", "low", "close", "volume"]
        assert bars["date"].iloc[0] == date(2024, 1, 2)
        assert len(bars) == 5

    def test_fetch_recent_bars_keeps_window(self, provider, ticker):
        bars = provider.fetch_recent_bars("000001", "平安银行", window_days=3)

        assert "start" in ticker.calls[0][1]
        assert list(bars["close"]) == pytest.approx([12.2, 13.2, 14.2])

    def test_retries_then_succeeds(self, provider, ticker, sleeps):
        ticker.failures = 2
        assert len(provider.fetch_all_bars("600000", "浦发银行")) == 5
        assert sleeps == [2, 2]

    def test_gives_up_with_empty_frame(self, provider, ticker, sleeps):
        ticker.failures = 10
        assert provider.fetch_all_bars("600000", "浦发银行").empty
        assert len(ticker.calls) == 3
        assert sleeps == [2, 2]

    def test_no_data(self, provider, ticker):
        ticker.frame = pd.DataFrame()
        assert provider.fetch_all_bars("600000", "浦发银行").empty
