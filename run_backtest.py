"""
백테스트 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml의 전략 ID 사용, 샘플 데이터)
    python run_backtest.py

    # 전략 지정
    python run_backtest.py --strategy 4

    # 파라미터 오버라이드
    python run_backtest.py --strategy 4 -p take_profit=1.2 -p max_hold_days=60

    # ClickHouse 데이터 사용
    python run_backtest.py --source clickhouse

    # 여러 전략 비교
    python run_backtest.py --compare 1 4 5

    # 등록된 전략 목록 확인
    python run_backtest.py --list
"""

import argparse
import logging
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import NamedTuple

import numpy as np
import pandas as pd

from signal_backtest.backtest.engine import BacktestEngine
from signal_backtest.backtest.metrics import BacktestMetrics
from signal_backtest.core.data_provider import StockInfo
from signal_backtest.core.errors import SignalBacktestError
from signal_backtest.core.stores import (
    BacktestResultStore,
    BarStore,
    ExtremeGrowthStore,
    HoldingsStore,
    PriceRangeStore,
    RunCounterStore,
)
from signal_backtest.data.clickhouse_store import (
    ClickHouseBacktestResultStore,
    ClickHouseBarStore,
    ClickHouseExtremeGrowthStore,
    ClickHouseHoldingsStore,
    ClickHousePriceRangeStore,
    ClickHouseRunCounterStore,
)
from signal_backtest.data.memory_store import (
    MemoryBacktestResultStore,
    MemoryBarStore,
    MemoryExtremeGrowthStore,
    MemoryHoldingsStore,
    MemoryPriceRangeStore,
    MemoryRunCounterStore,
)
from signal_backtest.ingestion.clickhouse_schema import get_client, initialize_schema
from signal_backtest.memo.extreme_growth import ExtremeGrowthMemo
from signal_backtest.strategies import list_strategies
from signal_backtest.strategies.engine import StrategyEngine
from signal_backtest.tasks.backtest_task import run_backtest_task
from signal_backtest.utils.cache import TTLCache
from signal_backtest.utils.config import Config
from signal_backtest.utils.logger import setup_logger
from signal_backtest.utils.run_lock import RunLock

DEFAULT_STOCKS = [StockInfo("600000", "浦发银行"), StockInfo("000001", "平安银行")]
SAMPLE_HISTORY_DAYS = 3 * 365   # 시작일 이전 이력 (전략 3은 500봉 필요)


class Stores(NamedTuple):
    bars: BarStore
    extreme: ExtremeGrowthStore
    price_range: PriceRangeStore
    holdings: HoldingsStore
    counter: RunCounterStore
    results: BacktestResultStore


def generate_sample_data(
    code: str,
    start_date: date,
    end_date: date,
    initial_price: float = 10.0,
    volatility: float = 0.02,
) -> pd.DataFrame:
    """백테스트용 샘플 일봉 생성 (영업일 기준, 랜덤 워크)."""
    rng = np.random.default_rng(int(code) if code.isdigit() else abs(hash(code)) % 2**32)

    dates = pd.bdate_range(start=start_date, end=end_date)
    n = len(dates)

    returns = rng.normal(0.0002, volatility, n)
    closes = initial_price * np.cumprod(1 + returns)
    opens = closes * (1 + rng.normal(0, 0.005, n))
    highs = np.maximum(opens, closes) * (1 + np.abs(rng.normal(0, 0.01, n)))
    lows = np.minimum(opens, closes) * (1 - np.abs(rng.normal(0, 0.01, n)))
    volumes = rng.lognormal(12, 0.5, n).astype(int)

    return pd.DataFrame({
        "date": dates.date,
        "open": opens.round(2),
        "high": highs.round(2),
        "low": lows.round(2),
        "close": closes.round(2),
        "volume": volumes,
    })


def parse_param(param_str: str) -> tuple[str, object]:
    """'key=value' 문자열을 파싱하여 (key, value) 반환. 숫자면 자동 변환."""
    key, _, value = param_str.partition("=")
    key = key.strip()
    value = value.strip()

    try:
        if "." in value:
            return key, float(value)
        return key, int(value)
    except ValueError:
        if value.lower() in ("true", "yes"):
            return key, True
        if value.lower() in ("false", "no"):
            return key, False
        return key, value


def build_stores(config: Config, source: str, stocks: list[StockInfo]) -> Stores:
    """데이터 소스별 저장소 묶음 생성."""
    if source == "clickhouse":
        db = config.database
        client = get_client(db.host, db.port, db.database, db.user, db.password)
        initialize_schema(client)
        return Stores(
            bars=ClickHouseBarStore(client),
            extreme=ClickHouseExtremeGrowthStore(client),
            price_range=ClickHousePriceRangeStore(client),
            holdings=ClickHouseHoldingsStore(client),
            counter=ClickHouseRunCounterStore(client),
            results=ClickHouseBacktestResultStore(client),
        )

    backtest = config.require_backtest()
    history_start = backtest.start_date - timedelta(days=SAMPLE_HISTORY_DAYS)
    print("샘플 데이터 생성 중...")
    bar_store = MemoryBarStore(stocks=stocks)
    for i, stock in enumerate(stocks):
        df = generate_sample_data(stock.code, history_start, backtest.end_date, initial_price=8.0 + 4 * i)
        bar_store.put_bars(stock.code, df)
        print(f"  {stock.code} {stock.name}: {len(df)}일 데이터")
    return Stores(
        bars=bar_store,
        extreme=MemoryExtremeGrowthStore(),
        price_range=MemoryPriceRangeStore(),
        holdings=MemoryHoldingsStore(),
        counter=MemoryRunCounterStore(),
        results=MemoryBacktestResultStore(),
    )


def run_single(
    config: Config,
    stores: Stores,
    cache: TTLCache,
    strategy_type: int,
    stocks: list[StockInfo],
) -> tuple[BacktestMetrics, BacktestEngine]:
    """단일 전략 백테스트 실행."""
    memo = ExtremeGrowthMemo(stores.extreme, stores.price_range, cache)
    strategy_engine = StrategyEngine(memo, params=config.strategy.params)
    engine = BacktestEngine(strategy_engine, stores.bars, stores.holdings, stores.counter, stores.results)
    lock = RunLock(cache, ttl=config.cache_ttl_seconds)
    metrics = run_backtest_task(engine, config.require_backtest(), strategy_type, lock, stocks)
    return metrics, engine


def print_single_result(metrics: BacktestMetrics, engine: BacktestEngine):
    """단일 전략 결과 출력."""
    print(metrics.summary())

    closed = engine.portfolio.closed_holdings
    if closed:
        print("\n최근 매도 (최대 5건):")
        for h in closed[-5:]:
            print(
                f"  [{h.buy_date} → {h.sell_date}] {h.stock_code} {h.stock_name} {h.amount}주 "
                f"{h.buy_price:,.2f} → {h.sell_price:,.2f} 손익 {h.profit:+,.2f}"
            )


def print_comparison(results: dict[int, BacktestMetrics], config: Config):
    """여러 전략 비교 결과 출력."""
    backtest = config.require_backtest()
    period = f"{backtest.start_date} ~ {backtest.end_date}"

    names = [f"전략 {k}" for k in results]
    col_width = max(14, max(len(n) for n in names) + 2)

    print(f"\n{'=' * (20 + col_width * len(names))}")
    print(f"전략 비교 결과 ({period})")
    print(f"{'=' * (20 + col_width * len(names))}")

    header = f"{'':>20}" + "".join(f"{n:>{col_width}}" for n in names)
    print(header)
    print("-" * len(header))

    rows = [
        ("총 수익률", lambda m: f"{m.total_return:.2f}%"),
        ("실현 손익", lambda m: f"{m.total_profit:,.2f}"),
        ("최대 낙폭(MDD)", lambda m: f"{m.max_drawdown:.2f}%"),
        ("매수 건수", lambda m: f"{m.transaction_count}"),
        ("승률", lambda m: f"{m.win_rate:.1f}%"),
        ("수익 팩터", lambda m: f"{m.profit_factor:.2f}"),
        ("평균 보유 일수", lambda m: f"{m.avg_holding_days:.1f}"),
        ("최대 동시 보유", lambda m: f"{m.max_concurrent_holdings}"),
    ]

    for label, fmt in rows:
        row = f"{label:>20}" + "".join(f"{fmt(m):>{col_width}}" for m in results.values())
        print(row)

    print(f"{'=' * (20 + col_width * len(names))}")


def main() -> int:
    parser = argparse.ArgumentParser(description="규칙 기반 시그널 백테스트 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--strategy", type=int, default=None, help="전략 ID (config.yaml 대신 지정)")
    parser.add_argument("-p", "--param", action="append", default=[], help="파라미터 오버라이드 (예: -p take_profit=1.2)")
    parser.add_argument("--sample", action="store_true", help="샘플 데이터로 테스트")
    parser.add_argument("--source", type=str, default="sample", choices=["sample", "clickhouse"], help="데이터 소스")
    parser.add_argument("--compare", nargs="+", type=int, metavar="ID", help="여러 전략 비교 (예: --compare 1 4 5)")
    parser.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    args = parser.parse_args()

    if args.list:
        print("등록된 전략:")
        for strategy_type, name in list_strategies():
            print(f"  {strategy_type}: {name}")
        return 0

    try:
        config = Config.from_yaml(Path(args.config))
        setup_logger(level=config.log_level, log_dir=config.log_dir)

        if args.sample:
            args.source = "sample"

        stocks = config.strategy.stocks or DEFAULT_STOCKS
        stores = build_stores(config, args.source, stocks)
        cache = TTLCache(default_ttl=config.cache_ttl_seconds)

        # ─── 비교 모드 ───────────────────────────────────────────────
        if args.compare:
            print(f"\n{len(args.compare)}개 전략 비교 실행...")
            results = {}
            for strategy_type in args.compare:
                print(f"\n--- 전략 {strategy_type} 실행 중 ---")
                results[strategy_type], _ = run_single(config, stores, cache, strategy_type, stocks)
            print_comparison(results, config)
            return 0

        # ─── 단일 실행 모드 ─────────────────────────────────────────
        strategy_type = args.strategy or config.strategy.strategy_type
        if args.param:
            overrides = dict(parse_param(p) for p in args.param)
            config.strategy.params.setdefault(strategy_type, {}).update(overrides)
            print(f"파라미터 오버라이드: {overrides}")

        print(f"\n전략: {strategy_type}")
        metrics, engine = run_single(config, stores, cache, strategy_type, stocks)
        print_single_result(metrics, engine)
        return 0

    except SignalBacktestError as e:
        print(f"오류: {e}", file=sys.stderr)
        return 1
    except Exception:
        logging.getLogger("signal_backtest").exception("예기치 못한 오류")
        print("오류: 예기치 못한 오류가 발생했습니다 (로그 확인)", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
