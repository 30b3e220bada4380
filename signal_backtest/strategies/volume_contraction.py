"""
전략 1: 거래량 수축 후 첫 양봉 (volume contraction).

[ 매수 조건 (모두 충족) ]
    0. 마지막 봉 양봉 (종가 > 시가), 급등 메모 조회 전에 확인
    1. 급등 이력 메모 통과
    2. 최근 90일(달력) 최저가~최고가 구간의 하위 35% 안에 종가 위치
    3. 최근 30일(달력, 마지막 봉 제외) 평균 거래량과 그 중 마지막 5개 평균 거래량의
       차이 (max-min)/min < 0.2 → 거래량이 잠잠한 상태
    4. 마지막 거래량이 위 5개 평균의 1.5배 ~ 4배
    5. 마지막 거래량이 직전 15일(달력) 최대 거래량보다 크고,
       전일 거래량은 마지막 거래량의 70% 이하

[ 매도 조건 (하나라도) ]
    V = 마지막 봉 직전 5개 봉 평균 거래량
    - 음봉이고 거래량 > 1.5V
    - 양봉이고 거래량 > 4V
    - 종가 < 매수가 * 0.93 (손절)
"""

from datetime import date
from typing import Optional

import pandas as pd

from signal_backtest.core.trading_strategy import TradingStrategy
from signal_backtest.indicators import calendar_window, is_green, is_red, rolling_mean
from signal_backtest.strategies import register


@register(1)
class VolumeContractionStrategy(TradingStrategy):
    NAME = "volume contraction"
    MIN_BARS = 20
    CHECK_EXTREME_GROWTH = True

    DEFAULT_PARAMS = {
        "low_percent": 0.35,              # 90일 구간 하위 비율
        "low_percent_days": 90,
        "volume_ratio": 0.2,              # 30일 평균 vs 5일 평균 허용 차이
        "volume_ratio_days": 30,
        "last_volume_low": 1.5,
        "last_volume_high": 4.0,
        "max_volume_days": 15,
        "yesterday_volume_ratio": 0.7,
        "sell_down_volume": 1.5,
        "sell_up_volume": 4.0,
        "stop_loss": 0.93,
    }

    def buy_precheck(self, bars: pd.DataFrame) -> Optional[str]:
        if not is_green(bars.iloc[-1]):
            return "마지막 봉 상승 아님"
        return None

    def should_buy(self, bars: pd.DataFrame, code: str, name: str) -> tuple[bool, str]:
        p = self.params
        last = bars.iloc[-1]
        close = float(last["close"])
        volume = float(last["volume"])

        recent = calendar_window(bars, p["low_percent_days"])
        low, high = float(recent["low"].min()), float(recent["high"].max())
        if close >= low + (high - low) * p["low_percent"]:
            return False, f"{p['low_percent_days']}일 구간 하위 {p['low_percent']:.0%} 아님"

        month = calendar_window(bars, p["volume_ratio_days"], include_current=False)
        if len(month) < 5:
            return False, "거래량 비교 구간 부족"
        avg5 = float(month["volume"].tail(5).mean())
        avg_month = float(month["volume"].mean())
        lo, hi = min(avg5, avg_month), max(avg5, avg_month)
        if lo <= 0 or (hi - lo) / lo >= p["volume_ratio"]:
            return False, "30일/5일 평균 거래량 차이 큼"

        if not (avg5 * p["last_volume_low"] <= volume <= avg5 * p["last_volume_high"]):
            return False, f"마지막 거래량이 5일 평균의 {p['last_volume_low']}~{p['last_volume_high']}배 아님"

        prior = calendar_window(bars, p["max_volume_days"], include_current=False)
        if not prior.empty and volume <= float(prior["volume"].max()):
            return False, f"마지막 거래량이 {p['max_volume_days']}일 최대 아님"

        if float(bars["volume"].iloc[-2]) > volume * p["yesterday_volume_ratio"]:
            return False, "전일 거래량이 마지막 거래량의 70% 초과"

        return True, "거래량 수축 후 양봉 돌파"

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
        volume = float(last["volume"])

        if len(bars) >= 6:
            avg5 = rolling_mean(bars, "volume", 5, include_current=False)
            if is_red(last) and volume > avg5 * p["sell_down_volume"]:
                return True, "음봉 + 거래량 5일 평균 1.5배 초과"
            if is_green(last) and volume > avg5 * p["sell_up_volume"]:
                return True, "양봉 + 거래량 5일 평균 4배 초과"

        if close < buy_price * p["stop_loss"]:
            return True, f"손절 (매수가 대비 {close / buy_price - 1:.1%})"

        return False, "매도 조건 미충족"
