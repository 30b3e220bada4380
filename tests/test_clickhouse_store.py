"""Tests for the ClickHouse-backed stores against a mocked client."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from signal_backtest.core.data_provider import OHLCV, StockInfo
from signal_backtest.core.stores import Holding, Recommendation
from signal_backtest.data.clickhouse_store import (
    HOLDING_COLUMNS,
    ClickHouseBarStore,
    ClickHouseHoldingsStore,
    ClickHousePriceRangeStore,
    ClickHouseRecommendationStore,
    ClickHouseRunCounterStore,
)
from signal_backtest.ingestion.clickhouse_schema import TABLES, initialize_schema


@pytest.fixture
def client():
    return MagicMock()


def returns(client, rows):
    client.query.return_value.result_rows = rows


class TestBarStore:
    def test_load_bars_sorted(self, client):
        returns(client, [
            (date(2024, 1, 3), 10.0, 10.5, 9.5, 10.2, 2000),
            (date(2024, 1, 2), 9.8, 10.1, 9.7, 10.0, 1000),
        ])

        bars = ClickHouseBarStore(client).load_bars("600000")

        assert list(bars["date"]) == [date(2024, 1, 2), date(2024, 1, 3)]
        assert client.query.call_args.kwargs["parameters"] == {"code": "600000"}

    def test_load_bars_empty(self, client):
        returns(client, [])
        assert ClickHouseBarStore(client).load_bars("600000").empty

    def test_upsert_bar(self, client):
        bar = OHLCV(date(2024, 1, 2), 10.0, 10.5, 9.5, 10.2, 2000)
        ClickHouseBarStore(client).upsert_bar("600000", bar)

        table, rows = client.insert.call_args.args
        assert table == "stock_bars"
        assert rows == [["600000", date(2024, 1, 2), 10.0, 10.5, 9.5, 10.2, 2000]]

    def test_stock_list(self, client):
        returns(client, [("000001", "平安银行")])
        store = ClickHouseBarStore(client)

        assert store.list_stocks() == [StockInfo("000001", "平安银行")]

        store.save_stocks([])
        client.insert.assert_not_called()


class TestPriceRangeStore:
    def test_find_missing(self, client):
        returns(client, [])
        assert ClickHousePriceRangeStore(client).find("600000", "2024-01") is None

    def test_find(self, client):
        returns(client, [("600000", "2024-01", 9.5, 12.0)])
        record = ClickHousePriceRangeStore(client).find("600000", "2024-01")
        assert (record.min_price, record.max_price) == (9.5, 12.0)


class TestHoldingsStore:
    @pytest.mark.parametrize("rows, expected", [([(None,)], 0), ([], 0), ([(7,)], 7)])
    def test_find_max_id(self, client, rows, expected):
        returns(client, rows)
        assert ClickHouseHoldingsStore(client).find_max_id() == expected

    def test_update_inserts_new_version(self, client):
        store = ClickHouseHoldingsStore(client)
        h = Holding(id=1, stock_code="600000", stock_name="浦发银行", buy_price=10.0,
                    amount=100, buy_date=date(2024, 1, 2))
        store.create(h)
        h.close(11.0, date(2024, 1, 5), 0.001)
        store.update(h)

        assert client.insert.call_count == 2
        first, second = (c.args[1][0] for c in client.insert.call_args_list)
        assert second[HOLDING_COLUMNS.index("sell_price")] == 11.0
        assert second[-1] >= first[-1]
        assert client.insert.call_args.kwargs["column_names"][-1] == "version"

    def test_find_by_run_generation(self, client):
        row = [1, "600000", "浦发银行", 10.0, 100, date(2024, 1, 2),
               None, None, None, None, None, 3, 5]
        returns(client, [row])

        [h] = ClickHouseHoldingsStore(client).find_by_run_generation(3)

        assert h.is_open
        assert h.run_generation == 3
        assert h.strategy_type == 5


class TestRunCounterStore:
    def test_increment_from_empty(self, client):
        returns(client, [])
        assert ClickHouseRunCounterStore(client).increment() == 1
        assert client.insert.call_args.args[1] == [["backtest", 1]]


class TestRecommendationStore:
    def test_replace_deletes_then_inserts(self, client):
        day = date(2024, 1, 5)
        recs = [Recommendation("600000", "浦发银行", 10.6, day, 4)]

        ClickHouseRecommendationStore(client).replace(day, 4, recs)

        delete_sql = client.command.call_args.args[0]
        assert delete_sql.startswith("ALTER TABLE stock_recommendations DELETE")
        assert client.command.call_args.kwargs["settings"] == {"mutations_sync": 1}
        assert client.insert.call_args.args[1] == [[day, 4, "600000", "浦发银行", 10.6]]

    def test_replace_with_nothing_only_deletes(self, client):
        ClickHouseRecommendationStore(client).replace(date(2024, 1, 5), 4, [])
        client.command.assert_called_once()
        client.insert.assert_not_called()


class TestSchema:
    def test_initialize_creates_every_table(self, client):
        initialize_schema(client)
        assert client.command.call_count == len(TABLES)
