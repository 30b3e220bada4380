"""Shared test fixtures and bar builders."""

from datetime import date

import pandas as pd
import pytest

from signal_backtest.data.memory_store import (
    MemoryBacktestResultStore,
    MemoryBarStore,
    MemoryExtremeGrowthStore,
    MemoryHoldingsStore,
    MemoryPriceRangeStore,
    MemoryRecommendationStore,
    MemoryRunCounterStore,
)
from signal_backtest.memo.extreme_growth import ExtremeGrowthMemo
from signal_backtest.strategies.engine import StrategyEngine
from signal_backtest.utils.cache import TTLCache


def make_bars(rows, start=date(2022, 1, 3)) -> pd.DataFrame:
    """(open, high, low, close, volume) 튜플 목록 → 영업일 날짜가 붙은 봉 DataFrame."""
    dates = pd.bdate_range(start=start, periods=len(rows)).date
    return pd.DataFrame(
        [
            {"date": d, "open": o, "high": h, "low": l, "close": c, "volume": v}
            for d, (o, h, l, c, v) in zip(dates, rows)
        ]
    )


def flat(price=10.0, volume=1000, spread=0.05):
    """시가 = 종가인 봉 하나."""
    return (price, price + spread, price - spread, price, volume)


def closes_to_rows(closes, volume=1000):
    """종가 시퀀스 → 시가 = 종가인 봉 목록."""
    return [flat(c, volume) for c in closes]


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(clock=clock)


@pytest.fixture
def extreme_store():
    return MemoryExtremeGrowthStore()


@pytest.fixture
def price_range_store():
    return MemoryPriceRangeStore()


@pytest.fixture
def memo(extreme_store, price_range_store, cache):
    return ExtremeGrowthMemo(extreme_store, price_range_store, cache)


@pytest.fixture
def strategy_engine(memo):
    return StrategyEngine(memo)


@pytest.fixture
def bar_store():
    return MemoryBarStore()


@pytest.fixture
def holdings_store():
    return MemoryHoldingsStore()


@pytest.fixture
def counter_store():
    return MemoryRunCounterStore()


@pytest.fixture
def result_store():
    return MemoryBacktestResultStore()


@pytest.fixture
def rec_store():
    return MemoryRecommendationStore()
