"""
전략 7: RSI 저점 T + 바닥 구간 (RSI low-T bottom stage).

[ 매수 조건 (모두 충족) ]
    1. 지속 하락 아님
       최근 40개 봉을 겹치지 않는 5개 봉 구간 8개로 나눠,
       구간 마지막 종가 < 구간 첫 시가 인 구간이 6개 이상이면 지속 하락
    2. 바닥 구간 체류
       전체 이력 최저 저가~최고 고가를 10단계로 나눴을 때
       하위 2단계에 종가가 있었던 봉이 전체의 20% 이상
    3. 마지막 봉 Down-T
    4. 최근 15개 봉에 Up-T 없음
    5. RSI(12) ≤ 15

[ 매도 조건 (하나라도) ]
    - RSI(12) ≥ 75 이고 상한가 아님
    - 종가 ≥ 매수가 * 1.25
"""

from datetime import date

import pandas as pd

from signal_backtest.core.errors import InsufficientDataError
from signal_backtest.core.trading_strategy import TradingStrategy
from signal_backtest.indicators import count_up_t, is_down_t, is_limit_up, rsi
from signal_backtest.strategies import register


def count_declining_windows(bars: pd.DataFrame, window: int, windows: int) -> int:
    """최근 window*windows 봉을 window개씩 나눠, 마지막 종가 < 첫 시가 인 구간 수."""
    recent = bars.tail(window * windows).reset_index(drop=True)
    count = 0
    # 뒤에서부터 자르므로 앞쪽 구간이 window보다 짧을 수 있음 → 완전한 구간만 센다
    for end in range(len(recent), window - 1, -window):
        chunk = recent.iloc[end - window:end]
        if float(chunk["close"].iloc[-1]) < float(chunk["open"].iloc[0]):
            count += 1
    return count


def bottom_stage_share(bars: pd.DataFrame, stages: int = 10, bottom: int = 2) -> float:
    """전체 이력 중 하위 bottom/stages 가격 구간에 종가가 있었던 봉의 비율."""
    low, high = float(bars["low"].min()), float(bars["high"].max())
    if high <= low:
        return 0.0
    ceiling = low + (high - low) * bottom / stages
    return float((bars["close"] < ceiling).mean())


@register(7)
class RsiLowTStrategy(TradingStrategy):
    NAME = "RSI low-T bottom stage"
    MIN_BARS = 60

    DEFAULT_PARAMS = {
        "rsi_period": 12,
        "buy_rsi": 15.0,
        "sell_rsi": 75.0,
        "decline_window": 5,
        "decline_windows": 8,
        "decline_max": 6,          # 이 개수 이상이면 지속 하락
        "bottom_share": 0.2,
        "up_t_window": 15,
        "take_profit": 1.25,
    }

    def should_buy(self, bars: pd.DataFrame, code: str, name: str) -> tuple[bool, str]:
        p = self.params

        declining = count_declining_windows(bars, p["decline_window"], p["decline_windows"])
        if declining >= p["decline_max"]:
            return False, f"지속 하락 ({declining}/{p['decline_windows']} 구간 하락)"

        share = bottom_stage_share(bars)
        if share < p["bottom_share"]:
            return False, f"바닥 구간 체류 비율 {share:.0%} < {p['bottom_share']:.0%}"

        if not is_down_t(bars.iloc[-1]):
            return False, "마지막 봉 Down-T 아님"

        if count_up_t(bars, p["up_t_window"]) > 0:
            return False, f"최근 {p['up_t_window']}봉에 Up-T 있음"

        value = rsi(bars, p["rsi_period"])
        if value > p["buy_rsi"]:
            return False, f"RSI {value:.1f} > {p['buy_rsi']}"

        return True, f"바닥 구간 Down-T (RSI {value:.1f})"

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
        if value is not None and value >= p["sell_rsi"] and not is_limit_up(bars):
            return True, f"RSI 과매수 ({value:.1f})"

        if close >= buy_price * p["take_profit"]:
            return True, f"익절 ({close / buy_price - 1:+.1%})"

        return False, "매도 조건 미충족"
