"""
전략 3: 바닥권 거래량 첫 확대 (low-volume expansion).

[ 매수 조건 (모두 충족) ]
    0. 급등 이력 메모 통과
    1. 종목명에 "ST" 없음 (관리종목 제외)
    2. 종가 ≤ 30일 최저 저가 * 1.25
    3. 종가 > 5일 평균 종가
    4. 거래량 = 20일 최대 거래량
    5. 양봉
    6. 거래량 비율(직전 20일 평균 대비)이 1.5~2배이고,
       직전 20개 봉 중 거래량 비율 1.5배 이상인 봉이 없음 (첫 확대)
    7. 종가 ≤ 500일 평균 종가 * 0.7
    8. 최근 120개 봉에서 최저가가 최고가보다 먼저 나오고, 최고가 ≤ 최저가 * 1.45

[ 매도 조건 (하나라도) ]
    - 십자형이고 종가 ≥ 3봉 전 종가 * 1.25
    - 윗꼬리가 전체 범위의 60% 이상
    - 종가 < 3일 평균 종가 이고 3일 평균이 하락 중
    - 최근 20일 최대 거래량 > 21~40봉 전 최대 거래량 * 2 이고 상한가 아님
    - 종가 < 전일 종가 * 0.95
    - 종가 ≥ 시가 * 1.045
    - 종가 < 2봉 전 종가 * 0.93
"""

from datetime import date

import pandas as pd

from signal_backtest.core.trading_strategy import TradingStrategy
from signal_backtest.indicators import (
    is_doji,
    is_green,
    is_limit_up,
    price_range,
    rolling_max,
    rolling_mean,
    rolling_min,
    upper_shadow_ratio,
    volume_ratio,
    volume_ratio_series,
)
from signal_backtest.strategies import register


@register(3)
class LowVolumeExpansionStrategy(TradingStrategy):
    NAME = "low-volume expansion"
    MIN_BARS = 500
    CHECK_EXTREME_GROWTH = True

    DEFAULT_PARAMS = {
        "low_window": 30,
        "low_ceiling": 1.25,
        "volume_window": 20,
        "ratio_low": 1.5,
        "ratio_high": 2.0,
        "long_mean_window": 500,
        "long_mean_ratio": 0.7,
        "shape_window": 120,
        "shape_max_gap": 1.45,
        # 매도
        "doji_gain": 1.25,
        "upper_shadow": 0.6,
        "volume_burst": 2.0,
        "day_drop": 0.95,
        "day_gain": 1.045,
        "two_day_drop": 0.93,
    }

    @property
    def volume_window(self) -> int:
        return int(self.params["volume_window"])

    def should_buy(self, bars: pd.DataFrame, code: str, name: str) -> tuple[bool, str]:
        p = self.params
        last = bars.iloc[-1]
        close = float(last["close"])

        if "ST" in name.upper():
            return False, "관리종목(ST)"

        if close > rolling_min(bars, "low", p["low_window"]) * p["low_ceiling"]:
            return False, f"{p['low_window']}일 저점 대비 {p['low_ceiling']}배 초과"

        if close <= rolling_mean(bars, "close", 5):
            return False, "5일 평균 종가 이하"

        if float(last["volume"]) < rolling_max(bars, "volume", self.volume_window):
            return False, f"{self.volume_window}일 최대 거래량 아님"

        if not is_green(last):
            return False, "양봉 아님"

        ratio = volume_ratio(bars, self.volume_window)
        if not (p["ratio_low"] <= ratio <= p["ratio_high"]):
            return False, f"거래량 비율 {ratio:.2f} 범위 밖"

        prior_ratios = volume_ratio_series(bars, self.volume_window).iloc[-self.volume_window - 1:-1]
        if (prior_ratios >= p["ratio_low"]).any():
            return False, "최근 거래량 확대 이력 있음"

        if close > rolling_mean(bars, "close", p["long_mean_window"]) * p["long_mean_ratio"]:
            return False, f"{p['long_mean_window']}일 평균 대비 {p['long_mean_ratio']:.0%} 초과"

        rng = price_range(bars, p["shape_window"])
        if rng.min_pos >= rng.max_pos:
            return False, "최근 저점이 고점보다 뒤"
        if rng.max_high > rng.min_low * p["shape_max_gap"]:
            return False, f"{p['shape_window']}일 고점/저점 {rng.ratio:.2f}배 초과"

        return True, f"바닥권 첫 거래량 확대 (비율 {ratio:.2f})"

    def should_sell(
        self,
        bars: pd.DataFrame,
        code: str,
        name: str,
        buy_price: float,
        buy_date: date,
    ) -> tuple[bool, str]:
        p = self.params
        last = bars.iloc[-1]
        close = float(last["close"])
        closes = bars["close"].astype(float)
        n = len(bars)

        if n >= 4 and is_doji(last) and close >= float(closes.iloc[-4]) * p["doji_gain"]:
            return True, "급등 후 십자형"

        if upper_shadow_ratio(last) >= p["upper_shadow"]:
            return True, "긴 윗꼬리"

        if n >= 4:
            mean3 = float(closes.iloc[-3:].mean())
            prev_mean3 = float(closes.iloc[-4:-1].mean())
            if close < mean3 and mean3 < prev_mean3:
                return True, "3일 평균 이탈 + 하락 추세"

        if n >= 40:
            recent_max = rolling_max(bars, "volume", 20)
            base_max = float(bars["volume"].iloc[-40:-20].max())
            if recent_max > base_max * p["volume_burst"] and not is_limit_up(bars):
                return True, "거래량 급증 (상한가 아님)"

        if n >= 2 and close < float(closes.iloc[-2]) * p["day_drop"]:
            return True, "전일 대비 5% 이상 하락"

        if close >= float(last["open"]) * p["day_gain"]:
            return True, "장중 4.5% 이상 상승"

        if n >= 3 and close < float(closes.iloc[-3]) * p["two_day_drop"]:
            return True, "2일 전 대비 7% 이상 하락"

        return False, "매도 조건 미충족"
