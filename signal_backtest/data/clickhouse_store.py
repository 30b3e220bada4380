"""
ClickHouse 기반 저장소 구현.

[ 역할 ]
    core/stores.py의 저장소 인터페이스를 ClickHouse 테이블로 구현.
    테이블 정의는 ingestion/clickhouse_schema.py 참고.

[ upsert 방식 ]
    ReplacingMergeTree 테이블에 새 행을 추가하고, 조회 시 FINAL로 최신 행만 읽는다.
    추천 종목 교체는 DELETE 후 INSERT (mutations_sync=1 로 동기 삭제).

[ 호출하는 곳 ]
    - run_backtest.py / run_recommend.py (--source clickhouse 옵션 사용 시)
"""

import time
from datetime import date
from typing import Iterable, Optional

import pandas as pd
from clickhouse_connect.driver import Client

from signal_backtest.core.data_provider import BAR_COLUMNS, OHLCV, StockInfo, empty_bars, normalize_bars
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

HOLDING_COLUMNS = [
    "id", "stock_code", "stock_name", "buy_price", "amount", "buy_date",
    "sell_date", "sell_price", "profit", "profit_rate", "fee",
    "run_generation", "strategy_type",
]


class ClickHouseBarStore(BarStore):
    """종목 목록 + 일봉 저장소.

    사용 예:
        client = get_client("localhost", 8123)
        store = ClickHouseBarStore(client)
        bars = store.load_bars("600000")
    """

    def __init__(self, client: Client):
        self.client = client

    def load_bars(self, code: str) -> pd.DataFrame:
        result = self.client.query(
            """
            SELECT date, open, high, low, close, volume
            FROM stock_bars FINAL
            WHERE code = %(code)s
            ORDER BY date ASC
            """,
            parameters={"code": code},
        )
        if not result.result_rows:
            return empty_bars()
        return normalize_bars(pd.DataFrame(result.result_rows, columns=BAR_COLUMNS))

    def upsert_bar(self, code: str, bar: OHLCV) -> None:
        self.client.insert(
            "stock_bars",
            [[code, bar.date, bar.open, bar.high, bar.low, bar.close, bar.volume]],
            column_names=["code"] + BAR_COLUMNS,
        )

    def list_stocks(self) -> list[StockInfo]:
        result = self.client.query("SELECT code, name FROM stock_list FINAL ORDER BY code")
        return [StockInfo(code=row[0], name=row[1]) for row in result.result_rows]

    def save_stocks(self, stocks: Iterable[StockInfo]) -> None:
        rows = [[s.code, s.name] for s in stocks]
        if rows:
            self.client.insert("stock_list", rows, column_names=["code", "name"])


class ClickHouseExtremeGrowthStore(ExtremeGrowthStore):

    def __init__(self, client: Client):
        self.client = client

    def find_by_stock(self, code: str) -> list[ExtremeGrowthRecord]:
        result = self.client.query(
            """
            SELECT DISTINCT stock_code, year_month
            FROM extreme_growth_months
            WHERE stock_code = %(code)s
            ORDER BY year_month
            """,
            parameters={"code": code},
        )
        return [ExtremeGrowthRecord(stock_code=r[0], year_month=r[1]) for r in result.result_rows]

    def upsert(self, record: ExtremeGrowthRecord) -> None:
        # 같은 키는 병합 시 하나로 합쳐지고, 조회는 DISTINCT
        self.client.insert(
            "extreme_growth_months",
            [[record.stock_code, record.year_month]],
            column_names=["stock_code", "year_month"],
        )


class ClickHousePriceRangeStore(PriceRangeStore):

    def __init__(self, client: Client):
        self.client = client

    def find(self, code: str, year_month: str) -> Optional[PriceRangeRecord]:
        result = self.client.query(
            """
            SELECT stock_code, year_month, min_price, max_price
            FROM price_range_months FINAL
            WHERE stock_code = %(code)s AND year_month = %(ym)s
            """,
            parameters={"code": code, "ym": year_month},
        )
        if not result.result_rows:
            return None
        row = result.result_rows[0]
        return PriceRangeRecord(stock_code=row[0], year_month=row[1], min_price=float(row[2]), max_price=float(row[3]))

    def upsert(self, record: PriceRangeRecord) -> None:
        self.client.insert(
            "price_range_months",
            [[record.stock_code, record.year_month, record.min_price, record.max_price]],
            column_names=["stock_code", "year_month", "min_price", "max_price"],
        )


class ClickHouseHoldingsStore(HoldingsStore):
    """모의 보유 기록. 갱신은 version이 더 큰 행을 추가하는 방식."""

    def __init__(self, client: Client):
        self.client = client

    def _insert(self, holding: Holding) -> None:
        row = [getattr(holding, c) for c in HOLDING_COLUMNS] + [time.time_ns()]
        self.client.insert("mock_holdings", [row], column_names=HOLDING_COLUMNS + ["version"])

    def create(self, holding: Holding) -> None:
        self._insert(holding)

    def update(self, holding: Holding) -> None:
        self._insert(holding)

    def find_by_run_generation(self, run_generation: int) -> list[Holding]:
        result = self.client.query(
            f"""
            SELECT {', '.join(HOLDING_COLUMNS)}
            FROM mock_holdings FINAL
            WHERE run_generation = %(gen)s
            ORDER BY id
            """,
            parameters={"gen": run_generation},
        )
        return [Holding(**dict(zip(HOLDING_COLUMNS, row))) for row in result.result_rows]

    def find_max_id(self) -> int:
        result = self.client.query("SELECT max(id) FROM mock_holdings")
        if not result.result_rows or result.result_rows[0][0] is None:
            return 0
        return int(result.result_rows[0][0])

    def clear_all(self) -> None:
        self.client.command("TRUNCATE TABLE IF EXISTS mock_holdings")


class ClickHouseRunCounterStore(RunCounterStore):

    def __init__(self, client: Client, name: str = "backtest"):
        self.client = client
        self.name = name

    def get(self) -> int:
        result = self.client.query(
            "SELECT value FROM run_counter FINAL WHERE name = %(name)s",
            parameters={"name": self.name},
        )
        return int(result.result_rows[0][0]) if result.result_rows else 0

    def increment(self) -> int:
        value = self.get() + 1
        self.client.insert("run_counter", [[self.name, value]], column_names=["name", "value"])
        return value


class ClickHouseBacktestResultStore(BacktestResultStore):

    COLUMNS = ["run_generation", "strategy_type", "start_date", "end_date", "transaction_count", "total_profit"]

    def __init__(self, client: Client):
        self.client = client

    def save(self, result: BacktestResult) -> None:
        self.client.insert(
            "backtest_results",
            [[getattr(result, c) for c in self.COLUMNS]],
            column_names=self.COLUMNS,
        )

    def find_all(self) -> list[BacktestResult]:
        result = self.client.query(
            f"SELECT {', '.join(self.COLUMNS)} FROM backtest_results ORDER BY run_generation DESC"
        )
        return [BacktestResult(**dict(zip(self.COLUMNS, row))) for row in result.result_rows]


class ClickHouseRecommendationStore(RecommendationStore):

    COLUMNS = ["date", "strategy_type", "code", "name", "last_price"]

    def __init__(self, client: Client):
        self.client = client

    def replace(self, day: date, strategy_type: int, items: list[Recommendation]) -> None:
        self.client.command(
            "ALTER TABLE stock_recommendations DELETE WHERE date = %(day)s AND strategy_type = %(type)s",
            parameters={"day": day, "type": strategy_type},
            settings={"mutations_sync": 1},
        )
        rows = [[day, strategy_type, r.code, r.name, r.last_price] for r in items]
        if rows:
            self.client.insert("stock_recommendations", rows, column_names=self.COLUMNS)

    def find_by_date(self, day: date, strategy_type: Optional[int] = None) -> list[Recommendation]:
        query = f"SELECT {', '.join(self.COLUMNS)} FROM stock_recommendations WHERE date = %(day)s"
        parameters = {"day": day}
        if strategy_type is not None:
            query += " AND strategy_type = %(type)s"
            parameters["type"] = strategy_type
        result = self.client.query(query + " ORDER BY strategy_type, code", parameters=parameters)
        return [
            Recommendation(date=row[0], strategy_type=row[1], code=row[2], name=row[3], last_price=row[4])
            for row in result.result_rows
        ]
