"""
캔들 형태 판별 (십자형 / 윗꼬리 T / 아랫꼬리 T).

[ 역할 ]
    단일 봉의 몸통/윗꼬리/아랫꼬리가 전체 범위(고가-저가)에서 차지하는 비율로 형태를 분류.

[ 기준 ]
    Doji    : 몸통 ≤ 0.1  이고  윗꼬리, 아랫꼬리 모두 ≥ 0.4
    Up-T    : 몸통 < 0.2  이고  윗꼬리 > 0.6
    Down-T  : 몸통 < 0.2  이고  아랫꼬리 > 0.6

    꼬리 기준(0.6)이 0.5를 넘고 Doji 꼬리 기준(0.4)과 합이 1이므로
    세 형태는 동시에 성립하지 않는다.

    고가 == 저가 인 봉은 어떤 형태에도 해당하지 않는다.
"""

from typing import Optional

import pandas as pd

DOJI_PRICE_DIFF_RATIO = 0.1
DOJI_SHADOW_RATIO = 0.4
T_BODY_RATIO = 0.2
T_SHADOW_RATIO = 0.6


def candle_fractions(bar) -> Optional[tuple[float, float, float]]:
    """(몸통, 윗꼬리, 아랫꼬리) 비율. 범위가 0이면 None."""
    o, h, l, c = float(bar["open"]), float(bar["high"]), float(bar["low"]), float(bar["close"])
    rng = h - l
    if rng <= 0:
        return None
    body = abs(c - o) / rng
    upper = (h - max(o, c)) / rng
    lower = (min(o, c) - l) / rng
    return body, upper, lower


def is_doji(
    bar,
    price_diff_threshold: float = DOJI_PRICE_DIFF_RATIO,
    shadow_threshold: float = DOJI_SHADOW_RATIO,
) -> bool:
    fractions = candle_fractions(bar)
    if fractions is None:
        return False
    body, upper, lower = fractions
    return body <= price_diff_threshold and upper >= shadow_threshold and lower >= shadow_threshold


def is_up_t(
    bar,
    body_threshold: float = T_BODY_RATIO,
    shadow_threshold: float = T_SHADOW_RATIO,
) -> bool:
    fractions = candle_fractions(bar)
    if fractions is None:
        return False
    body, upper, _ = fractions
    return body < body_threshold and upper > shadow_threshold


def is_down_t(
    bar,
    body_threshold: float = T_BODY_RATIO,
    shadow_threshold: float = T_SHADOW_RATIO,
) -> bool:
    fractions = candle_fractions(bar)
    if fractions is None:
        return False
    body, _, lower = fractions
    return body < body_threshold and lower > shadow_threshold


def upper_shadow_ratio(bar) -> float:
    fractions = candle_fractions(bar)
    return 0.0 if fractions is None else fractions[1]


def count_up_t(bars: pd.DataFrame, window: int) -> int:
    """최근 window개 봉 중 Up-T 개수."""
    return sum(1 for _, row in bars.tail(window).iterrows() if is_up_t(row))


def is_green(bar) -> bool:
    """양봉 (종가 > 시가)."""
    return float(bar["close"]) > float(bar["open"])


def is_red(bar) -> bool:
    """음봉 (종가 < 시가)."""
    return float(bar["close"]) < float(bar["open"])
