"""
영속 저장소 추상 클래스 및 기록 타입 정의.

[ 역할 ]
    백테스트/추천이 읽고 쓰는 외부 저장소의 인터페이스를 정의.
    저장 기술(ClickHouse, 메모리)에 독립적으로 엔진이 동작하도록 분리.

[ 구현체 ]
    - data/memory_store.py      (메모리, 테스트/샘플 실행용)
    - data/clickhouse_store.py  (ClickHouse)

[ 기록 타입 ]
    Holding              - 모의 보유 기록 (OPEN → CLOSED 한 번만 변경, 삭제 없음)
    ExtremeGrowthRecord  - 월 고가/저가 비율 ≥ 3 인 (종목, 월). 추가만 가능
    PriceRangeRecord     - (종목, 월) 최저/최고가 메모
    BacktestResult       - 백테스트 1회 실행 결과 요약
    Recommendation       - 실전 추천 종목
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable, Optional

import pandas as pd

from signal_backtest.core.data_provider import OHLCV, StockInfo


# ─── 기록 타입 ─────────────────────────────────────────────────────────────

@dataclass
class Holding:
    """모의 보유 기록. 매수 시 생성, 매도 시 한 번만 close()로 갱신."""
    id: int
    stock_code: str
    stock_name: str
    buy_price: float
    amount: int                           # 보유 수량 (100주 단위)
    buy_date: date
    sell_date: Optional[date] = None
    sell_price: Optional[float] = None
    profit: Optional[float] = None        # 실현 손익 (수수료 차감 후)
    profit_rate: Optional[float] = None   # 수익률 (%)
    fee: Optional[float] = None           # 매수+매도 수수료 합계
    run_generation: int = 0               # 백테스트 실행 회차 (times)
    strategy_type: int = 1

    @property
    def is_open(self) -> bool:
        return self.sell_date is None

    @property
    def cost_basis(self) -> float:
        return self.buy_price * self.amount

    def close(self, sell_price: float, sell_date: date, fee_rate: float) -> float:
        """매도 처리. 수수료 차감 실현 손익 반환.

        profit = (매도가-매수가)*수량 - (매도가+매수가)*수량*수수료율
        """
        if not self.is_open:
            raise ValueError(f"이미 매도된 보유 기록입니다: id={self.id}")
        if sell_date < self.buy_date:
            raise ValueError(f"매도일({sell_date})이 매수일({self.buy_date})보다 빠릅니다: id={self.id}")

        fee = (sell_price + self.buy_price) * self.amount * fee_rate
        profit = (sell_price - self.buy_price) * self.amount - fee

        self.sell_date = sell_date
        self.sell_price = sell_price
        self.fee = fee
        self.profit = profit
        self.profit_rate = profit / self.cost_basis * 100 if self.cost_basis > 0 else 0.0
        return profit

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ExtremeGrowthRecord:
    stock_code: str
    year_month: str   # "YYYY-MM"


@dataclass(frozen=True)
class PriceRangeRecord:
    stock_code: str
    year_month: str
    min_price: float
    max_price: float


@dataclass
class BacktestResult:
    run_generation: int
    strategy_type: int
    start_date: date
    end_date: date
    transaction_count: int
    total_profit: float


@dataclass
class Recommendation:
    code: str
    name: str
    last_price: float
    date: date
    strategy_type: int


# ─── 저장소 인터페이스 ─────────────────────────────────────────────────────

class BarStore(ABC):
    """종목 목록 + 일봉 저장소."""

    @abstractmethod
    def load_bars(self, code: str) -> pd.DataFrame:
        """전체 일봉 (오름차순). 없으면 빈 DataFrame."""
        ...

    @abstractmethod
    def upsert_bar(self, code: str, bar: OHLCV) -> None:
        """(종목, 날짜) 키로 추가 또는 갱신."""
        ...

    @abstractmethod
    def list_stocks(self) -> list[StockInfo]:
        """대상 종목 목록 (코드 오름차순)."""
        ...

    @abstractmethod
    def save_stocks(self, stocks: Iterable[StockInfo]) -> None:
        ...


class ExtremeGrowthStore(ABC):

    @abstractmethod
    def find_by_stock(self, code: str) -> list[ExtremeGrowthRecord]:
        """월 오름차순."""
        ...

    @abstractmethod
    def upsert(self, record: ExtremeGrowthRecord) -> None:
        """(종목, 월) 중복이면 무시."""
        ...


class PriceRangeStore(ABC):

    @abstractmethod
    def find(self, code: str, year_month: str) -> Optional[PriceRangeRecord]:
        ...

    @abstractmethod
    def upsert(self, record: PriceRangeRecord) -> None:
        ...


class HoldingsStore(ABC):
    """모의 보유 기록 저장소 (감사/재현용)."""

    @abstractmethod
    def create(self, holding: Holding) -> None:
        ...

    @abstractmethod
    def update(self, holding: Holding) -> None:
        """id 기준으로 매도 정보 갱신."""
        ...

    @abstractmethod
    def find_by_run_generation(self, run_generation: int) -> list[Holding]:
        """id 오름차순."""
        ...

    @abstractmethod
    def find_max_id(self) -> int:
        """기록이 없으면 0."""
        ...

    @abstractmethod
    def clear_all(self) -> None:
        ...


class RunCounterStore(ABC):
    """백테스트 실행 회차(times) 카운터."""

    @abstractmethod
    def get(self) -> int:
        ...

    @abstractmethod
    def increment(self) -> int:
        """1 증가 후 새 값 반환."""
        ...


class BacktestResultStore(ABC):

    @abstractmethod
    def save(self, result: BacktestResult) -> None:
        ...

    @abstractmethod
    def find_all(self) -> list[BacktestResult]:
        """실행 회차 내림차순."""
        ...


class RecommendationStore(ABC):

    @abstractmethod
    def replace(self, day: date, strategy_type: int, items: list[Recommendation]) -> None:
        """(날짜, 전략) 기존 추천을 지우고 새로 저장."""
        ...

    @abstractmethod
    def find_by_date(self, day: date, strategy_type: Optional[int] = None) -> list[Recommendation]:
        ...
