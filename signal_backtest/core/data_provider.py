"""
봉 데이터 모델 및 시장 데이터 제공자 추상 클래스 정의.

[ 역할 ]
    OHLCV(시가/고가/저가/종가/거래량) 일봉 데이터의 표준 형태를 정하고,
    외부 시세 소스(Yahoo Finance 등)에서 봉 데이터를 받아오는 인터페이스를 정의.

[ 봉 시퀀스 규칙 ]
    - pandas DataFrame, 컬럼: [date, open, high, low, close, volume]
    - date는 datetime.date, 오름차순, 중복 없음
    - normalize_bars()가 이 규칙을 강제한다

[ 구현체 ]
    - ingestion/yahoo_finance.py::YahooFinanceProvider

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataManager (저장소 동기화)
    - backtest/engine.py (로딩 시 normalize_bars)
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable

import pandas as pd

BAR_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


@dataclass
class OHLCV:
    """단일 봉(캔들) 데이터. 저장소 upsert 단위."""
    date: date
    open: float      # 시가
    high: float      # 고가
    low: float       # 저가
    close: float     # 종가
    volume: int      # 거래량

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StockInfo:
    """종목 코드 + 이름. 백테스트/추천 대상 목록의 원소."""
    code: str
    name: str


def empty_bars() -> pd.DataFrame:
    return pd.DataFrame(columns=BAR_COLUMNS)


def normalize_bars(df: pd.DataFrame) -> pd.DataFrame:
    """봉 DataFrame을 표준 형태로 정리.

    - 필수 컬럼 확인
    - date → datetime.date 변환
    - 날짜 오름차순 정렬, 중복 날짜는 마지막 값 유지
    """
    if df is None or df.empty:
        return empty_bars()

    missing = set(BAR_COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(f"봉 데이터 컬럼 누락: {sorted(missing)}")

    df = df[BAR_COLUMNS].copy()
    df["date"] = pd.to_datetime(df["date"]).dt.date
    for col in ("open", "high", "low", "close"):
        df[col] = df[col].astype(float)
    df["volume"] = df["volume"].astype("int64")

    df = df.drop_duplicates(subset="date", keep="last")
    return df.sort_values("date").reset_index(drop=True)


def bars_from_records(records: Iterable[OHLCV | dict[str, Any]]) -> pd.DataFrame:
    """OHLCV 또는 dict 목록을 표준 봉 DataFrame으로 변환."""
    rows = [r.to_dict() if isinstance(r, OHLCV) else dict(r) for r in records]
    if not rows:
        return empty_bars()
    return normalize_bars(pd.DataFrame(rows))


def bar_from_row(row: pd.Series) -> OHLCV:
    return OHLCV(
        date=row["date"],
        open=float(row["open"]),
        high=float(row["high"]),
        low=float(row["low"]),
        close=float(row["close"]),
        volume=int(row["volume"]),
    )


class MarketDataProvider(ABC):
    """외부 시세 제공자 추상 클래스.

    실패 시 예외 대신 빈 DataFrame을 반환한다 ("데이터 없음"으로 취급).
    auth_context는 쿠키/토큰이 필요한 제공자를 위한 통로이며 해석은 구현체 몫.
    """

    @abstractmethod
    def fetch_all_bars(
        self,
        code: str,
        name: str,
        auth_context: Any = None,
    ) -> pd.DataFrame:
        """상장 이후 전체 일봉 조회 (오름차순)."""
        ...

    @abstractmethod
    def fetch_recent_bars(
        self,
        code: str,
        name: str,
        auth_context: Any = None,
        window_days: int = 30,
    ) -> pd.DataFrame:
        """최근 window_days 봉 조회 (오름차순)."""
        ...
