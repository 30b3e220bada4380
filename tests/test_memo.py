"""Tests for the extreme-growth memo."""

import pytest

from signal_backtest.core.stores import ExtremeGrowthRecord, PriceRangeRecord
from signal_backtest.core.trading_strategy import SignalType
from signal_backtest.memo.extreme_growth import LOOKBACK_DAYS, ExtremeGrowthMemo, first_day, year_month
from signal_backtest.utils.cache import TTLCache

from conftest import flat, make_bars

CODE = "600001"
NAME = "测试股份"


@pytest.fixture
def flat_bars():
    # 2022-01-03 ~ 2023-07 영업일 400개, 가격 10 근처
    return make_bars([flat(10.0)] * 400)


@pytest.fixture
def spiked_bars(flat_bars):
    """2023-03 한 달 안에 고가 30, 저가 9 (비율 3.33)."""
    bars = flat_bars.copy()
    march = bars.index[bars["date"].map(lambda d: (d.year, d.month) == (2023, 3))]
    bars.loc[march[5], "high"] = 30.0
    bars.loc[march[10], "low"] = 9.0
    return bars


class TestMonthHelpers:
    def test_year_month(self, flat_bars):
        assert year_month(flat_bars["date"].iloc[0]) == "2022-01"

    def test_first_day(self):
        assert first_day("2023-03").isoformat() == "2023-03-01"


class TestExtremeGrowthDetection:
    def test_flat_history_passes(self, memo, flat_bars):
        assert memo.check(flat_bars, CODE, NAME) is None

    def test_extreme_month_suppresses_and_is_recorded(self, memo, spiked_bars, extreme_store):
        signal = memo.check(spiked_bars, CODE, NAME)

        assert signal.signal_type == SignalType.NONE
        assert signal.suppressed
        assert extreme_store.find_by_stock(CODE) == [ExtremeGrowthRecord(CODE, "2023-03")]

    @pytest.mark.parametrize("strategy_type", [1, 2, 3])
    def test_memo_strategies_are_suppressed(self, strategy_engine, spiked_bars, strategy_type):
        bars = spiked_bars.copy()
        bars.loc[bars.index[-1], "close"] = 10.02   # 전략 1은 양봉일 때만 메모 조회
        signal = strategy_engine.evaluate_buy(strategy_type, bars, CODE, NAME)
        assert signal.signal_type == SignalType.NONE
        assert signal.suppressed

    def test_strategy1_skips_memo_on_non_up_bar(self, strategy_engine, spiked_bars,
                                                extreme_store, price_range_store):
        signal = strategy_engine.evaluate_buy(1, spiked_bars, CODE, NAME)

        assert signal.signal_type == SignalType.NONE
        assert not signal.suppressed
        assert len(price_range_store) == 0
        assert len(extreme_store) == 0

    def test_other_strategies_ignore_memo(self, strategy_engine, spiked_bars):
        signal = strategy_engine.evaluate_buy(4, spiked_bars, CODE, NAME)
        assert signal.signal_type == SignalType.NONE
        assert not signal.suppressed

    def test_repeated_checks_do_not_duplicate_records(self, memo, spiked_bars, extreme_store,
                                                      price_range_store):
        memo.check(spiked_bars, CODE, NAME)
        ranges_after_first = len(price_range_store)

        assert memo.check(spiked_bars, CODE, NAME).suppressed
        assert len(extreme_store) == 1
        assert len(price_range_store) == ranges_after_first

    def test_known_month_survives_cache_loss(self, memo, spiked_bars, extreme_store, price_range_store):
        memo.check(spiked_bars, CODE, NAME)

        fresh = ExtremeGrowthMemo(extreme_store, price_range_store, TTLCache())
        signal = fresh.check(spiked_bars, CODE, NAME)

        assert signal.suppressed
        assert "2023-03" in signal.reason
        assert len(extreme_store) == 1


class TestKnownMonthWindow:
    def test_month_older_than_three_years_is_ignored(self, memo, flat_bars, extreme_store):
        extreme_store.upsert(ExtremeGrowthRecord(CODE, "2019-01"))
        assert memo.check(flat_bars, CODE, NAME) is None

    def test_month_after_last_bar_is_ignored(self, memo, flat_bars, extreme_store):
        extreme_store.upsert(ExtremeGrowthRecord(CODE, "2030-01"))
        assert memo.check(flat_bars, CODE, NAME) is None

    def test_recent_known_month_suppresses(self, memo, flat_bars, extreme_store):
        extreme_store.upsert(ExtremeGrowthRecord(CODE, "2022-06"))
        assert memo.check(flat_bars, CODE, NAME).suppressed


class TestPriceRangeMemo:
    def test_closed_months_are_stored_current_month_is_not(self, memo, flat_bars, price_range_store):
        memo.check(flat_bars, CODE, NAME)

        current = year_month(flat_bars["date"].iloc[-1])
        assert price_range_store.find(CODE, current) is None
        stored = price_range_store.find(CODE, "2022-06")
        assert stored.min_price == pytest.approx(9.95)
        assert stored.max_price == pytest.approx(10.05)

    def test_partial_first_month_is_not_stored(self, memo, price_range_store):
        # 2022-01-03 ~ 2025-06-13, 3*365일 구간은 2022-06-15부터
        bars = make_bars([flat(10.0)] * 900)
        last = bars["date"].iloc[-1]
        window = bars[bars["date"].map(lambda d: (last - d).days < LOOKBACK_DAYS)]
        partial = year_month(window["date"].iloc[0])
        assert window["date"].iloc[0].day > 1

        memo.check(bars, CODE, NAME)

        assert price_range_store.find(CODE, partial) is None
        assert price_range_store.find(CODE, "2022-07") is not None

    def test_partial_first_month_ignores_stored_range(self, memo, price_range_store):
        bars = make_bars([flat(10.0)] * 900)
        price_range_store.upsert(PriceRangeRecord(CODE, "2022-06", min_price=1.0, max_price=10.0))

        assert memo.check(bars, CODE, NAME) is None

    def test_stored_range_is_reused(self, memo, flat_bars, price_range_store):
        # 저장된 범위가 있으면 봉 데이터 대신 그 값을 쓴다
        price_range_store.upsert(PriceRangeRecord(CODE, "2022-06", min_price=1.0, max_price=10.0))

        signal = memo.check(flat_bars, CODE, NAME)

        assert signal.suppressed
        assert "2022-06" in signal.reason

    def test_current_month_is_always_recomputed(self, memo, flat_bars, price_range_store):
        current = year_month(flat_bars["date"].iloc[-1])
        price_range_store.upsert(PriceRangeRecord(CODE, current, min_price=1.0, max_price=10.0))

        assert memo.check(flat_bars, CODE, NAME) is None
