"""
메모리 기반 저장소 구현.

[ 역할 ]
    core/stores.py의 저장소 인터페이스를 dict/list로 구현.
    DB 없이 샘플 데이터 백테스트(run_backtest.py --sample)와 테스트에서 사용.

[ 주의 ]
    프로세스 종료 시 모든 기록이 사라진다.
"""

from copy import copy
from datetime import date
from typing import Iterable, Optional

import pandas as pd

from signal_backtest.core.data_provider import OHLCV, StockInfo, empty_bars, normalize_bars
from signal_backtest.core.stores import (
    BacktestResult,
    BacktestResultStore,
    BarStore,
    ExtremeGrowthRecord,
    ExtremeGrowthStore,
    Holding,
    HoldingsStore,
    PriceRangeRecord,
    PriceRangeStore,
    Recommendation,
    RecommendationStore,
    RunCounterStore,
)


class MemoryBarStore(BarStore):
    """종목 목록 + 일봉. code → {date → OHLCV}."""

    def __init__(self, data: Optional[dict[str, pd.DataFrame]] = None, stocks: Iterable[StockInfo] = ()):
        self._bars: dict[str, dict[date, OHLCV]] = {}
        self._stocks: dict[str, StockInfo] = {}
        for code, df in (data or {}).items():
            self.put_bars(code, df)
        self.save_stocks(stocks)

    def put_bars(self, code: str, df: pd.DataFrame) -> None:
        """DataFrame 전체를 한 번에 넣는다 (샘플/테스트 데이터 준비용)."""
        bars = self._bars.setdefault(code, {})
        for row in normalize_bars(df).itertuples(index=False):
            bars[row.date] = OHLCV(row.date, row.open, row.high, row.low, row.close, int(row.volume))

    def load_bars(self, code: str) -> pd.DataFrame:
        bars = self._bars.get(code)
        if not bars:
            return empty_bars()
        return normalize_bars(pd.DataFrame([b.to_dict() for b in bars.values()]))

    def upsert_bar(self, code: str, bar: OHLCV) -> None:
        self._bars.setdefault(code, {})[bar.date] = copy(bar)

    def list_stocks(self) -> list[StockInfo]:
        return [self._stocks[k] for k in sorted(self._stocks)]

    def save_stocks(self, stocks: Iterable[StockInfo]) -> None:
        for s in stocks:
            self._stocks[s.code] = s


class MemoryExtremeGrowthStore(ExtremeGrowthStore):

    def __init__(self):
        self._records: set[ExtremeGrowthRecord] = set()

    def find_by_stock(self, code: str) -> list[ExtremeGrowthRecord]:
        return sorted((r for r in self._records if r.stock_code == code), key=lambda r: r.year_month)

    def upsert(self, record: ExtremeGrowthRecord) -> None:
        self._records.add(record)

    def __len__(self) -> int:
        return len(self._records)


class MemoryPriceRangeStore(PriceRangeStore):

    def __init__(self):
        self._records: dict[tuple[str, str], PriceRangeRecord] = {}

    def find(self, code: str, year_month: str) -> Optional[PriceRangeRecord]:
        return self._records.get((code, year_month))

    def upsert(self, record: PriceRangeRecord) -> None:
        self._records[(record.stock_code, record.year_month)] = record

    def __len__(self) -> int:
        return len(self._records)


class MemoryHoldingsStore(HoldingsStore):
    """id → Holding 사본. 엔진 쪽 객체 변경이 저장 없이 새지 않도록 사본을 보관."""

    def __init__(self):
        self._holdings: dict[int, Holding] = {}

    def create(self, holding: Holding) -> None:
        if holding.id in self._holdings:
            raise ValueError(f"이미 존재하는 보유 id: {holding.id}")
        self._holdings[holding.id] = copy(holding)

    def update(self, holding: Holding) -> None:
        if holding.id not in self._holdings:
            raise KeyError(f"보유 기록 없음: id={holding.id}")
        self._holdings[holding.id] = copy(holding)

    def find_by_run_generation(self, run_generation: int) -> list[Holding]:
        return [copy(self._holdings[k]) for k in sorted(self._holdings)
                if self._holdings[k].run_generation == run_generation]

    def find_max_id(self) -> int:
        return max(self._holdings, default=0)

    def clear_all(self) -> None:
        self._holdings.clear()


class MemoryRunCounterStore(RunCounterStore):

    def __init__(self, value: int = 0):
        self._value = value

    def get(self) -> int:
        return self._value

    def increment(self) -> int:
        self._value += 1
        return self._value


class MemoryBacktestResultStore(BacktestResultStore):

    def __init__(self):
        self._results: list[BacktestResult] = []

    def save(self, result: BacktestResult) -> None:
        self._results.append(result)

    def find_all(self) -> list[BacktestResult]:
        return sorted(self._results, key=lambda r: r.run_generation, reverse=True)


class MemoryRecommendationStore(RecommendationStore):

    def __init__(self):
        self._items: dict[tuple[date, int], list[Recommendation]] = {}

    def replace(self, day: date, strategy_type: int, items: list[Recommendation]) -> None:
        self._items[(day, strategy_type)] = list(items)

    def find_by_date(self, day: date, strategy_type: Optional[int] = None) -> list[Recommendation]:
        found = []
        for (d, t), items in sorted(self._items.items()):
            if d == day and (strategy_type is None or t == strategy_type):
                found.extend(items)
        return found
