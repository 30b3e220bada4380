"""Tests for the indicator library."""

import numpy as np
import pandas as pd
import pytest

from signal_backtest.core.errors import InsufficientDataError
from signal_backtest.indicators import (
    candle_fractions,
    count_up_t,
    is_doji,
    is_down_t,
    is_limit_up,
    is_up_t,
    price_range,
    rolling_max,
    rolling_mean,
    rolling_min,
    rsi,
    volume_ratio,
)

from conftest import flat, make_bars


def bar(o, h, l, c):
    return {"open": o, "high": h, "low": l, "close": c}


class TestRsi:
    def test_known_value_with_wilder_smoothing(self):
        # deltas +1, -1, +1 → avg_gain 0.75, avg_loss 0.25 → RS 3
        assert rsi(pd.Series([1.0, 2.0, 1.0, 2.0]), period=2) == pytest.approx(75.0)

    def test_accepts_bar_frame(self):
        bars = make_bars([flat(c) for c in [1.0, 2.0, 1.0, 2.0]])
        assert rsi(bars, period=2) == pytest.approx(75.0)

    def test_zero_average_loss_returns_zero(self):
        assert rsi(pd.Series(np.arange(1.0, 20.0))) == 0.0

    def test_mostly_gains_is_high(self):
        closes = [10.0, 9.0] + [10.0 + i for i in range(11)]
        # 11 gains of 1, one loss of 1 → RS 11
        assert rsi(pd.Series(closes)) == pytest.approx(100 - 100 / 12)

    def test_insufficient_data_raises(self):
        with pytest.raises(InsufficientDataError) as exc:
            rsi(pd.Series([1.0] * 12), period=12)
        assert exc.value.required == 13
        assert exc.value.actual == 12

    @pytest.mark.parametrize("seed", range(20))
    def test_bounded(self, seed):
        rng = np.random.default_rng(seed)
        closes = 10 * np.cumprod(1 + rng.normal(0, 0.03, 80))
        value = rsi(pd.Series(closes))
        assert 0.0 <= value <= 100.0


class TestCandles:
    def test_doji(self):
        b = bar(10, 11, 9, 10)
        assert is_doji(b)
        assert not is_up_t(b)
        assert not is_down_t(b)

    def test_up_t(self):
        b = bar(10, 12, 9.9, 10.1)
        assert is_up_t(b)
        assert not is_doji(b)
        assert not is_down_t(b)

    def test_down_t(self):
        b = bar(10, 10.2, 8, 10.1)
        assert is_down_t(b)
        assert not is_up_t(b)

    def test_zero_range_bar_matches_nothing(self):
        b = bar(10, 10, 10, 10)
        assert candle_fractions(b) is None
        assert not is_doji(b)
        assert not is_up_t(b)
        assert not is_down_t(b)

    def test_fractions_sum_to_one(self):
        body, upper, lower = candle_fractions(bar(10, 12, 8, 11))
        assert body == pytest.approx(0.25)
        assert upper == pytest.approx(0.25)
        assert lower == pytest.approx(0.5)

    def test_shapes_are_mutually_exclusive(self):
        rng = np.random.default_rng(7)
        for _ in range(3000):
            low = rng.uniform(5, 10)
            high = low + rng.uniform(0.01, 3)
            o, c = rng.uniform(low, high, 2)
            b = bar(o, high, low, c)
            assert is_doji(b) + is_up_t(b) + is_down_t(b) <= 1

    def test_count_up_t(self):
        rows = [flat(10)] * 10 + [(10, 12, 9.9, 10.1, 1000)] * 2 + [flat(10)] * 3
        bars = make_bars(rows)
        assert count_up_t(bars, 15) == 2
        assert count_up_t(bars, 3) == 0


class TestRolling:
    @pytest.fixture
    def bars(self):
        rows = [(c, c + 1, c - 1, c, v) for c, v in zip([10, 11, 12, 13, 14], [100, 200, 300, 400, 500])]
        return make_bars(rows)

    def test_windows(self, bars):
        assert rolling_max(bars, "close", 3) == 14
        assert rolling_min(bars, "low", 3) == 11
        assert rolling_mean(bars, "close", 2) == 13.5
        assert rolling_mean(bars, "volume", 2, include_current=False) == 350

    def test_price_range_positions(self, bars):
        rng = price_range(bars, 4)
        assert rng.max_high == 15
        assert rng.min_low == 10
        assert rng.min_pos == 0
        assert rng.max_pos == 3
        assert rng.length == 4

    def test_volume_ratio(self):
        bars = make_bars([flat(10, 100)] * 5 + [flat(10, 300)])
        assert volume_ratio(bars, 5) == pytest.approx(3.0)

    def test_volume_ratio_without_history(self):
        assert volume_ratio(make_bars([flat(10)]), 5) == 0.0

    def test_limit_up(self):
        assert is_limit_up(make_bars([flat(10), flat(11.0)]))
        assert not is_limit_up(make_bars([flat(10), flat(10.9)]))
        assert not is_limit_up(make_bars([flat(10)]))
