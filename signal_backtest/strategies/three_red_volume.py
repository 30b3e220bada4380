"""
전략 4: 연속 3 양봉 + 거래량 (three-red volume).

중국 시장 표기로 상승봉(빨간색) 3연속. 여기서는 종가 > 시가 봉을 뜻한다.

[ 매수 조건 ]
    최근 3개 봉이 모두 상승봉이고, 각 봉의 거래량이 그 봉 직전 22개 봉 평균 거래량의 1.7배 초과

[ 매도 조건 (하나라도) ]
    - 종가 ≥ 매수가 * 1.15 (익절)
    - 종가 ≤ 매수가 * 0.95 (손절)
    - 보유 120일(달력) 이상
"""

from datetime import date

import pandas as pd

from signal_backtest.core.trading_strategy import TradingStrategy
from signal_backtest.indicators import is_green
from signal_backtest.strategies import register


@register(4)
class ThreeRedVolumeStrategy(TradingStrategy):
    NAME = "three-red volume"
    MIN_BARS = 25

    DEFAULT_PARAMS = {
        "streak": 3,
        "volume_base_bars": 22,
        "volume_multiple": 1.7,
        "take_profit": 1.15,
        "stop_loss": 0.95,
        "max_hold_days": 120,
    }

    def should_buy(self, bars: pd.DataFrame, code: str, name: str) -> tuple[bool, str]:
        p = self.params
        streak, base = p["streak"], p["volume_base_bars"]
        volumes = bars["volume"].astype(float).reset_index(drop=True)
        n = len(bars)

        for i in range(n - streak, n):
            if not is_green(bars.iloc[i]):
                return False, f"최근 {streak}봉 연속 상승 아님"
            base_mean = float(volumes.iloc[i - base:i].mean())
            if volumes.iloc[i] <= base_mean * p["volume_multiple"]:
                return False, f"거래량이 직전 {base}일 평균의 {p['volume_multiple']}배 이하"

        return True, f"{streak}연속 상승 + 거래량 증가"

    def should_sell(
        self,
        bars: pd.DataFrame,
        code: str,
        name: str,
        buy_price: float,
        buy_date: date,
    ) -> tuple[bool, str]:
        p = self.params
        close = float(bars["close"].iloc[-1])

        if close >= buy_price * p["take_profit"]:
            return True, f"익절 ({close / buy_price - 1:+.1%})"
        if close <= buy_price * p["stop_loss"]:
            return True, f"손절 ({close / buy_price - 1:+.1%})"

        held_days = (bars["date"].iloc[-1] - buy_date).days
        if held_days >= p["max_hold_days"]:
            return True, f"보유 기간 {held_days}일 경과"

        return False, "매도 조건 미충족"
