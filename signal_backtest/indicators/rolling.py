"""
구간 통계 (최고/최저/평균, 가격 범위, 거래량 비율).

[ 역할 ]
    최근 N개 봉(또는 최근 N일 달력 구간)에 대한 단순 통계.
    include_current=False면 마지막 봉을 제외한 직전 N개를 사용.

[ 호출하는 곳 ]
    - strategies/ 의 각 규칙 세트
    - memo/extreme_growth.py (달력 구간)
"""

from dataclasses import dataclass
from datetime import timedelta

import pandas as pd

LIMIT_UP_RATIO = 1.095


@dataclass(frozen=True)
class PriceRange:
    """구간 최고가/최저가와 각각의 위치 (구간 내 0부터 시작하는 인덱스)."""
    max_high: float
    min_low: float
    max_pos: int
    min_pos: int
    length: int

    @property
    def ratio(self) -> float:
        return self.max_high / self.min_low if self.min_low > 0 else float("inf")


def trailing(bars: pd.DataFrame, window: int, include_current: bool = True) -> pd.DataFrame:
    if include_current:
        return bars.iloc[-window:]
    return bars.iloc[-window - 1:-1]


def rolling_max(bars: pd.DataFrame, column: str, window: int, include_current: bool = True) -> float:
    return float(trailing(bars, window, include_current)[column].max())


def rolling_min(bars: pd.DataFrame, column: str, window: int, include_current: bool = True) -> float:
    return float(trailing(bars, window, include_current)[column].min())


def rolling_mean(bars: pd.DataFrame, column: str, window: int, include_current: bool = True) -> float:
    return float(trailing(bars, window, include_current)[column].mean())


def price_range(bars: pd.DataFrame, window: int) -> PriceRange:
    """최근 window개 봉의 최고 고가 / 최저 저가 및 위치."""
    use = trailing(bars, window).reset_index(drop=True)
    max_pos = int(use["high"].to_numpy().argmax())
    min_pos = int(use["low"].to_numpy().argmin())
    return PriceRange(
        max_high=float(use["high"].iloc[max_pos]),
        min_low=float(use["low"].iloc[min_pos]),
        max_pos=max_pos,
        min_pos=min_pos,
        length=len(use),
    )


def volume_ratio(bars: pd.DataFrame, window: int) -> float:
    """마지막 거래량 / 직전 window개 평균 거래량. 비교 구간이 없으면 0."""
    prior = trailing(bars, window, include_current=False)
    if prior.empty:
        return 0.0
    avg = float(prior["volume"].mean())
    if avg <= 0:
        return 0.0
    return float(bars["volume"].iloc[-1]) / avg


def volume_ratio_series(bars: pd.DataFrame, window: int) -> pd.Series:
    """각 봉의 거래량 / 직전 window개 평균 거래량. 앞부분은 NaN."""
    volume = bars["volume"].astype(float).reset_index(drop=True)
    base = volume.shift(1).rolling(window).mean()
    return volume / base


def calendar_window(bars: pd.DataFrame, days: int, include_current: bool = True) -> pd.DataFrame:
    """마지막 봉 날짜 기준 최근 days일(달력) 이내의 봉."""
    last_date = bars["date"].iloc[-1]
    use = bars[bars["date"] >= last_date - timedelta(days=days)]
    if not include_current:
        use = use.iloc[:-1]
    return use


def is_limit_up(bars: pd.DataFrame, ratio: float = LIMIT_UP_RATIO) -> bool:
    """마지막 종가가 전일 종가 대비 상한가 수준인지."""
    if len(bars) < 2:
        return False
    prev_close = float(bars["close"].iloc[-2])
    return prev_close > 0 and float(bars["close"].iloc[-1]) >= prev_close * ratio
