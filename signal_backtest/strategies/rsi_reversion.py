"""
전략 5: RSI 평균 회귀.

[ 매수 ] RSI(12) ≤ 5
[ 매도 ] RSI(12) ≥ 75
"""

from datetime import date

import pandas as pd

from signal_backtest.core.errors import InsufficientDataError
from signal_backtest.core.trading_strategy import TradingStrategy
from signal_backtest.indicators import rsi
from signal_backtest.strategies import register


@register(5)
class RsiReversionStrategy(TradingStrategy):
    NAME = "RSI mean reversion"
    MIN_BARS = 13

    DEFAULT_PARAMS = {
        "rsi_period": 12,
        "buy_rsi": 5.0,
        "sell_rsi": 75.0,
    }

    def should_buy(self, bars: pd.DataFrame, code: str, name: str) -> tuple[bool, str]:
        value = rsi(bars, self.params["rsi_period"])
        if value > self.params["buy_rsi"]:
            return False, f"RSI {value:.1f} > {self.params['buy_rsi']}"
        return True, f"RSI 과매도 ({value:.1f})"

    def should_sell(
        self,
        bars: pd.DataFrame,
        code: str,
        name: str,
        buy_price: float,
        buy_date: date,
    ) -> tuple[bool, str]:
        try:
            value = rsi(bars, self.params["rsi_period"])
        except InsufficientDataError as e:
            return False, str(e)
        if value < self.params["sell_rsi"]:
            return False, f"RSI {value:.1f} < {self.params['sell_rsi']}"
        return True, f"RSI 과매수 ({value:.1f})"
