"""
모멘텀 지표 (RSI).

[ 역할 ]
    종가 시퀀스로 Wilder 방식 RSI를 계산.
    첫 평균 상승/하락폭은 처음 period개 변화량의 단순평균,
    이후 avg = (avg * (period - 1) + 값) / period 로 평활.

[ 호출하는 곳 ]
    - strategies/rsi_reversion.py, rsi_down_t.py, rsi_low_t.py
"""

import numpy as np
import pandas as pd

from signal_backtest.core.errors import InsufficientDataError

DEFAULT_RSI_PERIOD = 12


def _closes(data: pd.DataFrame | pd.Series) -> pd.Series:
    if isinstance(data, pd.DataFrame):
        return data["close"].astype(float).reset_index(drop=True)
    return pd.Series(data, dtype=float).reset_index(drop=True)


def _wilder_average(values: np.ndarray, period: int) -> float:
    # 첫 값을 단순평균으로 시드한 뒤 alpha=1/period 지수평활 (adjust=False)
    seeded = values[period - 1:].copy()
    seeded[0] = values[:period].mean()
    return float(pd.Series(seeded).ewm(alpha=1 / period, adjust=False).mean().iloc[-1])


def rsi(data: pd.DataFrame | pd.Series, period: int = DEFAULT_RSI_PERIOD) -> float:
    """가장 최근 봉의 RSI.

    Args:
        data: 봉 DataFrame(close 컬럼 사용) 또는 종가 시퀀스
        period: RSI 기간 (기본 12)

    Returns:
        0~100. 평균 하락폭이 0이면 0.

    Raises:
        InsufficientDataError: 종가가 period + 1개 미만
    """
    closes = _closes(data)
    if len(closes) < period + 1:
        raise InsufficientDataError(period + 1, len(closes))

    deltas = np.diff(closes.to_numpy())
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = _wilder_average(gains, period)
    avg_loss = _wilder_average(losses, period)

    if avg_loss == 0:
        return 0.0

    rs = avg_gain / avg_loss
    return float(100 - 100 / (1 + rs))
