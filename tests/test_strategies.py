"""Tests for the seven rule sets and the strategy engine."""

from datetime import timedelta

import pytest

from signal_backtest.core.errors import UnknownStrategyError
from signal_backtest.core.trading_strategy import SignalType, TradingStrategy
from signal_backtest.strategies import (
    STRATEGY_REGISTRY,
    create_strategy,
    list_strategies,
    register,
)
from signal_backtest.strategies.engine import StrategyEngine
from signal_backtest.strategies.rsi_low_t import bottom_stage_share, count_declining_windows

from conftest import closes_to_rows, flat, make_bars

CODE = "600001"
NAME = "测试股份"

UP_T = (10.0, 11.0, 9.95, 10.0, 1000)   # 윗꼬리 T


@pytest.fixture
def engine(memo):
    return StrategyEngine(memo)


def buy(engine, strategy_type, bars, name=NAME):
    return engine.evaluate_buy(strategy_type, bars, CODE, name)


def sell(engine, strategy_type, bars, buy_price, buy_date=None):
    if buy_date is None:
        buy_date = bars["date"].iloc[0]
    return engine.evaluate_sell(strategy_type, bars, CODE, NAME, buy_price, buy_date)


# ─── 등록 / 엔진 ──────────────────────────────────────────────────────────

class TestRegistry:
    def test_all_seven_rule_sets_registered(self):
        assert [sid for sid, _ in list_strategies()] == [1, 2, 3, 4, 5, 6, 7]
        for sid, cls in STRATEGY_REGISTRY.items():
            assert cls.STRATEGY_TYPE == sid

    def test_unknown_id(self):
        with pytest.raises(UnknownStrategyError, match="99"):
            create_strategy(99)

    def test_unknown_id_through_engine(self, engine):
        with pytest.raises(UnknownStrategyError):
            buy(engine, 0, make_bars([flat()] * 30))

    def test_duplicate_registration_rejected(self):
        class Duplicate(TradingStrategy):
            def should_buy(self, bars, code, name):
                return False, ""

            def should_sell(self, bars, code, name, buy_price, buy_date):
                return False, ""

        with pytest.raises(ValueError, match="중복"):
            register(1)(Duplicate)
        assert STRATEGY_REGISTRY[1] is not Duplicate

    def test_params_override_defaults(self):
        strategy = create_strategy(5, params={"buy_rsi": 30.0})
        assert strategy.params["buy_rsi"] == 30.0
        assert strategy.params["sell_rsi"] == 75.0

    def test_engine_reuses_instances(self, engine):
        assert engine.strategy(4) is engine.strategy(4)


class TestEvaluationGuards:
    @pytest.mark.parametrize("strategy_type", range(1, 8))
    def test_empty_bars(self, engine, strategy_type):
        signal = buy(engine, strategy_type, make_bars([]))
        assert signal.signal_type == SignalType.NONE

    @pytest.mark.parametrize("strategy_type", range(1, 8))
    def test_too_few_bars(self, engine, strategy_type):
        # 양봉이어야 전략 1의 사전 조건을 지나 봉 수 검사까지 간다
        signal = buy(engine, strategy_type, make_bars([(10.0, 10.1, 9.95, 10.05, 1000)] * 5))
        assert signal.signal_type == SignalType.NONE
        assert "데이터 부족" in signal.reason

    def test_rule_exception_becomes_evaluation_error(self):
        engine = StrategyEngine()
        bars = make_bars([flat()] * 30).drop(columns=["volume"])

        signal = buy(engine, 4, bars)

        assert signal.signal_type == SignalType.ERROR
        assert "KeyError" in signal.reason

    def test_flat_market_has_no_signal(self, engine):
        signal = buy(engine, 1, make_bars([flat(100.0)] * 30))
        assert signal.signal_type == SignalType.NONE
        assert not signal.suppressed


# ─── 전략 1 ─────────────────────────────────────────────────────────────

class TestVolumeContraction:
    @pytest.fixture
    def setup_bars(self):
        rows = [(20.0, 20.5, 19.5, 20.0, 1000)] * 20
        rows += [(10.0, 10.2, 9.8, 10.0, 1000)] * 49
        rows += [(10.0, 10.2, 9.9, 10.1, 2000)]
        return make_bars(rows)

    def test_buy_on_first_volume_expansion(self, engine, setup_bars):
        signal = buy(engine, 1, setup_bars)
        assert signal.signal_type == SignalType.BUY
        assert signal.last_price == pytest.approx(10.1)
        assert signal.code == CODE

    def test_no_buy_when_volume_too_large(self, engine, setup_bars):
        bars = setup_bars.copy()
        bars.loc[bars.index[-1], "volume"] = 5000
        assert buy(engine, 1, bars).signal_type == SignalType.NONE

    def test_no_buy_on_red_bar(self, engine, setup_bars):
        bars = setup_bars.copy()
        bars.loc[bars.index[-1], ["open", "close"]] = [10.1, 10.0]
        assert buy(engine, 1, bars).signal_type == SignalType.NONE

    def test_sell_on_heavy_red_bar(self, engine):
        bars = make_bars([flat(10.0)] * 5 + [(10.0, 10.05, 9.75, 9.8, 1600)])
        assert sell(engine, 1, bars, 10.0).signal_type == SignalType.SELL

    def test_sell_on_volume_blowoff(self, engine):
        bars = make_bars([flat(10.0)] * 5 + [(10.0, 10.25, 9.95, 10.2, 4100)])
        assert sell(engine, 1, bars, 10.0).signal_type == SignalType.SELL

    def test_stop_loss(self, engine):
        bars = make_bars([flat(10.0)] * 5 + [(9.1, 9.25, 9.05, 9.2, 1000)])
        signal = sell(engine, 1, bars, 10.0)
        assert signal.signal_type == SignalType.SELL
        assert signal.close_price == pytest.approx(9.2)

    def test_hold(self, engine):
        bars = make_bars([flat(10.0)] * 5 + [(10.0, 10.15, 9.95, 10.1, 1000)])
        assert sell(engine, 1, bars, 10.0).signal_type == SignalType.NONE


# ─── 전략 2 ─────────────────────────────────────────────────────────────

class TestBreakoutRebound:
    @pytest.fixture
    def setup_bars(self):
        rows = [(10.0, 10.1, 9.9, 10.0, 1000)] * 20
        rows += [
            (10.0, 15.5, 10.0, 15.0, 3000),
            (15.0, 25.0, 15.0, 24.0, 5000),
            (24.0, 24.0, 19.0, 20.0, 4000),
            (20.0, 20.0, 16.5, 17.0, 3000),
            (17.0, 17.0, 14.5, 15.0, 2000),
            (15.0, 15.2, 13.8, 14.0, 2000),
        ]
        return make_bars(rows)

    def test_buy_after_spike_and_pullback(self, engine, setup_bars):
        signal = buy(engine, 2, setup_bars)
        assert signal.signal_type == SignalType.BUY
        assert signal.last_price == pytest.approx(14.0)

    def test_no_buy_when_close_still_high(self, engine, setup_bars):
        bars = setup_bars.copy()
        bars.loc[bars.index[-1], ["open", "high", "close"]] = [15.0, 20.5, 20.0]
        assert buy(engine, 2, bars).signal_type == SignalType.NONE

    def test_sell_when_no_rise_and_red(self, engine):
        bars = make_bars([
            (14.5, 14.6, 13.9, 14.0, 1000),
            (14.0, 14.05, 13.45, 13.5, 1000),
            (13.4, 13.45, 12.95, 13.0, 1000),
        ])
        signal = sell(engine, 2, bars, 14.0)
        assert signal.signal_type == SignalType.SELL

    def test_hold_after_a_rise(self, engine):
        bars = make_bars([
            (14.5, 14.6, 13.9, 14.0, 1000),
            (14.0, 14.55, 13.95, 14.5, 1000),
            (14.4, 14.45, 13.95, 14.0, 1000),
        ])
        assert sell(engine, 2, bars, 14.0).signal_type == SignalType.NONE

    def test_bars_before_buy_date_are_ignored(self, engine):
        bars = make_bars([
            (9.0, 9.1, 8.9, 9.0, 1000),
            (14.5, 14.6, 13.9, 14.0, 1000),
            (13.4, 13.45, 12.95, 13.0, 1000),
        ])
        signal = sell(engine, 2, bars, 14.0, buy_date=bars["date"].iloc[1])
        assert signal.signal_type == SignalType.SELL


# ─── 전략 3 ─────────────────────────────────────────────────────────────

class TestLowVolumeExpansion:
    @pytest.fixture
    def setup_bars(self):
        rows = [(20.0, 20.1, 19.9, 20.0, 1000)] * 380
        rows += [(10.0, 10.1, 9.9, 10.0, 1000)] * 119
        rows += [(10.0, 10.35, 9.95, 10.3, 1800)]
        return make_bars(rows)

    def test_buy_on_first_expansion_at_bottom(self, engine, setup_bars):
        signal = buy(engine, 3, setup_bars)
        assert signal.signal_type == SignalType.BUY
        assert signal.last_price == pytest.approx(10.3)

    def test_special_treatment_names_skipped(self, engine, setup_bars):
        signal = buy(engine, 3, setup_bars, name="*st测试")
        assert signal.signal_type == SignalType.NONE
        assert "ST" in signal.reason

    def test_no_buy_with_recent_expansion(self, engine, setup_bars):
        bars = setup_bars.copy()
        bars.loc[bars.index[-10], "volume"] = 1700
        assert buy(engine, 3, bars).signal_type == SignalType.NONE

    def test_hold_in_quiet_market(self, engine):
        bars = make_bars([flat(10.0)] * 45)
        assert sell(engine, 3, bars, 10.0).signal_type == SignalType.NONE

    def test_sell_on_long_upper_shadow(self, engine):
        bars = make_bars([flat(10.0)] * 44 + [UP_T])
        signal = sell(engine, 3, bars, 10.0)
        assert signal.signal_type == SignalType.SELL
        assert "윗꼬리" in signal.reason

    def test_sell_on_volume_burst(self, engine):
        rows = [flat(10.0)] * 45
        rows[-5] = flat(10.0, volume=2500)
        assert sell(engine, 3, make_bars(rows), 10.0).signal_type == SignalType.SELL

    def test_volume_burst_ignored_on_limit_up(self, engine):
        rows = [flat(10.0)] * 44 + [flat(11.0)]
        rows[-5] = flat(10.0, volume=2500)
        assert sell(engine, 3, make_bars(rows), 10.0).signal_type == SignalType.NONE

    def test_sell_on_sharp_drop(self, engine):
        bars = make_bars([flat(10.0)] * 44 + [flat(9.4)])
        assert sell(engine, 3, bars, 10.0).signal_type == SignalType.SELL

    def test_sell_on_intraday_surge(self, engine):
        bars = make_bars([flat(10.0)] * 44 + [(10.0, 10.55, 9.95, 10.5, 1000)])
        assert sell(engine, 3, bars, 10.0).signal_type == SignalType.SELL


# ─── 전략 4 ─────────────────────────────────────────────────────────────

class TestThreeRedVolume:
    @pytest.fixture
    def setup_bars(self):
        rows = [flat(10.0)] * 22
        rows += [
            (10.0, 10.25, 9.95, 10.2, 2000),
            (10.2, 10.45, 10.15, 10.4, 3000),
            (10.4, 10.65, 10.35, 10.6, 4000),
        ]
        return make_bars(rows)

    def test_buy_on_three_green_bars_with_volume(self, engine, setup_bars):
        signal = buy(engine, 4, setup_bars)
        assert signal.signal_type == SignalType.BUY
        assert signal.last_price == pytest.approx(10.6)

    def test_no_buy_when_streak_broken(self, engine, setup_bars):
        bars = setup_bars.copy()
        bars.loc[bars.index[-2], ["open", "close"]] = [10.4, 10.2]
        assert buy(engine, 4, bars).signal_type == SignalType.NONE

    def test_no_buy_when_volume_weak(self, engine, setup_bars):
        bars = setup_bars.copy()
        bars.loc[bars.index[-3], "volume"] = 1500
        assert buy(engine, 4, bars).signal_type == SignalType.NONE

    @pytest.mark.parametrize("close, expected", [
        (11.5, SignalType.SELL),
        (9.4, SignalType.SELL),
        (10.5, SignalType.NONE),
    ])
    def test_price_exits(self, engine, close, expected):
        bars = make_bars([flat(10.0)] * 4 + [flat(close)])
        assert sell(engine, 4, bars, 10.0, buy_date=bars["date"].iloc[-1]).signal_type == expected

    @pytest.mark.parametrize("held, expected", [(120, SignalType.SELL), (119, SignalType.NONE)])
    def test_max_holding_period(self, engine, held, expected):
        bars = make_bars([flat(10.0)] * 5)
        buy_date = bars["date"].iloc[-1] - timedelta(days=held)
        assert sell(engine, 4, bars, 10.0, buy_date=buy_date).signal_type == expected


# ─── 전략 5 ─────────────────────────────────────────────────────────────

class TestRsiReversion:
    def test_buy_when_oversold(self, engine):
        bars = make_bars(closes_to_rows([20.0 - i for i in range(13)]))
        signal = buy(engine, 5, bars)
        assert signal.signal_type == SignalType.BUY
        assert signal.last_price == pytest.approx(8.0)

    def test_no_buy_when_mixed(self, engine):
        closes = [10.0, 11.0] * 7
        assert buy(engine, 5, make_bars(closes_to_rows(closes))).signal_type == SignalType.NONE

    def test_sell_when_overbought(self, engine):
        closes = [10.0, 9.0] + [10.0 + i for i in range(11)]
        signal = sell(engine, 5, make_bars(closes_to_rows(closes)), 10.0)
        assert signal.signal_type == SignalType.SELL
        assert signal.close_price == pytest.approx(20.0)

    def test_sell_with_short_history_is_no_signal(self, engine):
        bars = make_bars(closes_to_rows([10.0, 11.0, 12.0]))
        assert sell(engine, 5, bars, 10.0).signal_type == SignalType.NONE


# ─── 전략 6 ─────────────────────────────────────────────────────────────

def _declining_rows(count, start=20.0, step=0.3):
    rows = []
    for i in range(count):
        close = start - step * i
        rows.append((close + 0.1, close + 0.15, close - 0.05, close, 1000))
    return rows


class TestRsiDownT:
    @pytest.fixture
    def setup_bars(self):
        rows = _declining_rows(29)
        rows.append((11.32, 11.33, 10.8, 11.3, 1000))   # 아랫꼬리 T
        return make_bars(rows)

    def test_buy_on_down_t_at_bottom(self, engine, setup_bars):
        signal = buy(engine, 6, setup_bars)
        assert signal.signal_type == SignalType.BUY
        assert signal.last_price == pytest.approx(11.3)

    def test_no_buy_without_down_t(self, engine):
        bars = make_bars(_declining_rows(30))
        assert buy(engine, 6, bars).signal_type == SignalType.NONE

    def test_no_buy_after_recent_up_t(self, engine, setup_bars):
        bars = setup_bars.copy()
        idx = bars.index[-5]
        close = float(bars.loc[idx, "close"])
        bars.loc[idx, ["open", "high", "low"]] = [close, close + 1.0, close - 0.05]
        assert buy(engine, 6, bars).signal_type == SignalType.NONE

    def test_sell_on_two_up_t(self, engine):
        rows = [flat(10.0)] * 20
        rows[-5] = UP_T
        rows[-3] = UP_T
        signal = sell(engine, 6, make_bars(rows), 10.0)
        assert signal.signal_type == SignalType.SELL
        assert "Up-T" in signal.reason

    def test_hold_on_single_up_t(self, engine):
        rows = [flat(10.0)] * 20
        rows[-3] = UP_T
        assert sell(engine, 6, make_bars(rows), 10.0).signal_type == SignalType.NONE

    def test_take_profit(self, engine):
        bars = make_bars([flat(11.5)] * 20)
        assert sell(engine, 6, bars, 10.0).signal_type == SignalType.SELL


# ─── 전략 7 ─────────────────────────────────────────────────────────────

class TestRsiLowT:
    @pytest.fixture
    def setup_bars(self):
        rows = [flat(20.0)] * 20 + [flat(10.0)] * 34
        prev = 10.0
        for close in [9.9, 9.8, 9.7, 9.6, 9.5]:
            rows.append((prev, prev + 0.02, close - 0.02, close, 1000))
            prev = close
        rows.append((9.42, 9.43, 8.9, 9.4, 1000))   # 아랫꼬리 T
        return make_bars(rows)

    def test_helpers(self, setup_bars):
        assert count_declining_windows(setup_bars, 5, 8) == 2
        assert bottom_stage_share(setup_bars) == pytest.approx(40 / 60)

    def test_bottom_share_of_flat_history(self):
        assert bottom_stage_share(make_bars([(10.0, 10.0, 10.0, 10.0, 1000)] * 5)) == 0.0

    def test_buy_on_down_t_in_bottom_stage(self, engine, setup_bars):
        signal = buy(engine, 7, setup_bars)
        assert signal.signal_type == SignalType.BUY
        assert signal.last_price == pytest.approx(9.4)

    def test_no_buy_in_persistent_decline(self, engine):
        rows = _declining_rows(59, start=20.0, step=0.1)
        rows.append((14.12, 14.13, 13.6, 14.1, 1000))
        bars = make_bars(rows)
        assert count_declining_windows(bars, 5, 8) == 8

        signal = buy(engine, 7, bars)
        assert signal.signal_type == SignalType.NONE
        assert "지속 하락" in signal.reason

    def test_sell_on_overbought(self, engine):
        closes = [10.0, 9.0] + [10.0 + i for i in range(10)] + [20.5]
        signal = sell(engine, 7, make_bars(closes_to_rows(closes)), 20.0)
        assert signal.signal_type == SignalType.SELL

    def test_overbought_on_limit_up_is_held(self, engine):
        closes = [10.0, 9.0] + [10.0 + i for i in range(10)] + [21.0]
        signal = sell(engine, 7, make_bars(closes_to_rows(closes)), 20.0)
        assert signal.signal_type == SignalType.NONE

    def test_take_profit(self, engine):
        bars = make_bars([flat(25.0)] * 20)
        assert sell(engine, 7, bars, 20.0).signal_type == SignalType.SELL
