"""
전략 2: 급등 후 급락 반등 (breakout rebound).

[ 매수 조건 (모두 충족) ]
    0. 급등 이력 메모 통과
    1. 최근 26개 봉 최고 고가 / 최저 저가 ≥ 2
    2. 종가 ≤ 최고 고가 * 0.6
    3. 최고 고가 봉이 최근 6개 봉 안에 있음

[ 매도 조건 ]
    매수일 이후 봉들 중 전일 종가보다 높게 마감한 날이 한 번도 없고,
    마지막 봉이 십자형(Doji)이거나 음봉
"""

from datetime import date

import pandas as pd

from signal_backtest.core.trading_strategy import TradingStrategy
from signal_backtest.indicators import is_doji, is_red, price_range
from signal_backtest.strategies import register


@register(2)
class BreakoutReboundStrategy(TradingStrategy):
    NAME = "breakout rebound"
    MIN_BARS = 26
    CHECK_EXTREME_GROWTH = True

    DEFAULT_PARAMS = {
        "range_bars": 26,
        "min_gap_ratio": 2.0,     # 최고/최저 최소 배수
        "buy_price_ratio": 0.6,   # 최고가 대비 매수 가격 상한
        "recent_high_bars": 6,
    }

    def should_buy(self, bars: pd.DataFrame, code: str, name: str) -> tuple[bool, str]:
        p = self.params
        rng = price_range(bars, p["range_bars"])
        close = float(bars["close"].iloc[-1])

        if rng.ratio < p["min_gap_ratio"]:
            return False, f"{p['range_bars']}일 최고/최저 {rng.ratio:.2f}배 < {p['min_gap_ratio']}배"

        if close > rng.max_high * p["buy_price_ratio"]:
            return False, f"종가가 최고가의 {p['buy_price_ratio']:.0%} 초과"

        if rng.max_pos < rng.length - p["recent_high_bars"]:
            return False, f"최고가가 최근 {p['recent_high_bars']}일 밖"

        return True, f"급등 후 반락 (최고 {rng.max_high:,.2f} → {close:,.2f})"

    def should_sell(
        self,
        bars: pd.DataFrame,
        code: str,
        name: str,
        buy_price: float,
        buy_date: date,
    ) -> tuple[bool, str]:
        since_buy = bars[bars["date"] >= buy_date]
        if since_buy.empty:
            return False, "매수일 이후 데이터 없음"

        closes = since_buy["close"].to_numpy()
        if (closes[1:] > closes[:-1]).any():
            return False, "매수 후 상승일 있음"

        last = since_buy.iloc[-1]
        if is_doji(last):
            return True, "매수 후 상승 없이 십자형"
        if is_red(last):
            return True, "매수 후 상승 없이 음봉"
        return False, "매도 조건 미충족"
