"""
전략 6: RSI + 아랫꼬리 T.

[ 매수 조건 (모두 충족) ]
    1. RSI(12) ≤ 15
    2. 마지막 봉이 아랫꼬리 T (Down-T)
    3. 종가가 최근 3년(3*365일, 달력) 최저~최고 구간의 하위 30% 안
    4. 최근 15개 봉에 윗꼬리 T (Up-T) 없음

[ 매도 조건 (하나라도) ]
    - RSI(12) ≥ 75
    - 종가 ≥ 매수가 * 1.15
    - 최근 15개 봉에 Up-T 2개 이상
"""

from datetime import date

import pandas as pd

from signal_backtest.core.errors import InsufficientDataError
from signal_backtest.core.trading_strategy import TradingStrategy
from signal_backtest.indicators import calendar_window, count_up_t, is_down_t, rsi
from signal_backtest.strategies import register


@register(6)
class RsiDownTStrategy(TradingStrategy):
    NAME = "RSI + Down-T"
    MIN_BARS = 20

    DEFAULT_PARAMS = {
        "rsi_period": 12,
        "buy_rsi": 15.0,
        "sell_rsi": 75.0,
        "position_days": 3 * 365,
        "low_position": 0.3,
        "up_t_window": 15,
        "sell_up_t_count": 2,
        "take_profit": 1.15,
    }

    def should_buy(self, bars: pd.DataFrame, code: str, name: str) -> tuple[bool, str]:
        p = self.params
        close = float(bars["close"].iloc[-1])

        value = rsi(bars, p["rsi_period"])
        if value > p["buy_rsi"]:
            return False, f"RSI {value:.1f} > {p['buy_rsi']}"

        if not is_down_t(bars.iloc[-1]):
            return False, "마지막 봉 Down-T 아님"

        history = calendar_window(bars, p["position_days"])
        low, high = float(history["low"].min()), float(history["high"].max())
        if close >= low + (high - low) * p["low_position"]:
            return False, f"3년 구간 하위 {p['low_position']:.0%} 아님"

        if count_up_t(bars, p["up_t_window"]) > 0:
            return False, f"최근 {p['up_t_window']}봉에 Up-T 있음"

        return True, f"RSI {value:.1f} + Down-T 바닥권"

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

        try:
            value = rsi(bars, p["rsi_period"])
        except InsufficientDataError:
            value = None
        if value is not None and value >= p["sell_rsi"]:
            return True, f"RSI 과매수 ({value:.1f})"

        if close >= buy_price * p["take_profit"]:
            return True, f"익절 ({close / buy_price - 1:+.1%})"

        up_t = count_up_t(bars, p["up_t_window"])
        if up_t >= p["sell_up_t_count"]:
            return True, f"최근 {p['up_t_window']}봉 Up-T {up_t}개"

        return False, "매도 조건 미충족"
