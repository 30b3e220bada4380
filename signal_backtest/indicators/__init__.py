"""
지표 라이브러리. 상태 없는 순수 함수만 포함.
"""

from signal_backtest.indicators.candles import (
    candle_fractions,
    count_up_t,
    is_doji,
    is_down_t,
    is_green,
    is_red,
    is_up_t,
    upper_shadow_ratio,
)
from signal_backtest.indicators.momentum import DEFAULT_RSI_PERIOD, rsi
from signal_backtest.indicators.rolling import (
    PriceRange,
    calendar_window,
    is_limit_up,
    price_range,
    rolling_max,
    rolling_mean,
    rolling_min,
    trailing,
    volume_ratio,
    volume_ratio_series,
)

__all__ = [
    "DEFAULT_RSI_PERIOD",
    "PriceRange",
    "calendar_window",
    "candle_fractions",
    "count_up_t",
    "is_doji",
    "is_down_t",
    "is_green",
    "is_limit_up",
    "is_red",
    "is_up_t",
    "price_range",
    "rolling_max",
    "rolling_mean",
    "rolling_min",
    "rsi",
    "trailing",
    "upper_shadow_ratio",
    "volume_ratio",
    "volume_ratio_series",
]
