"""
실전 추천 실행 스크립트.

[ 사용법 ]
    # ClickHouse 저장 일봉으로 추천 (config.yaml의 전략 ID)
    python run_recommend.py

    # Yahoo Finance에서 최신 일봉을 받아 저장소 갱신 후 추천
    python run_recommend.py --update

    # 전략 지정
    python run_recommend.py --strategy 6 --update

    # config.yaml의 stocks를 종목 목록 테이블에 등록
    python run_recommend.py --save-stocks
"""

import argparse
import logging
import sys
from pathlib import Path

from signal_backtest.core.errors import SignalBacktestError
from signal_backtest.data.clickhouse_store import (
    ClickHouseBarStore,
    ClickHouseExtremeGrowthStore,
    ClickHousePriceRangeStore,
    ClickHouseRecommendationStore,
)
from signal_backtest.data.market_data import MarketDataManager
from signal_backtest.ingestion.clickhouse_schema import get_client, initialize_schema
from signal_backtest.ingestion.yahoo_finance import YahooFinanceProvider
from signal_backtest.memo.extreme_growth import ExtremeGrowthMemo
from signal_backtest.strategies.engine import StrategyEngine
from signal_backtest.tasks.recommend import run_recommendation
from signal_backtest.utils.cache import TTLCache
from signal_backtest.utils.config import Config
from signal_backtest.utils.logger import setup_logger
from signal_backtest.utils.run_lock import RunLock


def main() -> int:
    parser = argparse.ArgumentParser(description="규칙 기반 매수 추천 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--strategy", type=int, default=None, help="전략 ID (config.yaml 대신 지정)")
    parser.add_argument("--update", action="store_true", help="Yahoo Finance에서 최신 일봉 동기화 후 추천")
    parser.add_argument("--save-stocks", action="store_true", help="config.yaml의 stocks를 종목 목록에 등록")
    args = parser.parse_args()

    try:
        config = Config.from_yaml(Path(args.config))
        setup_logger(level=config.log_level, log_dir=config.log_dir)

        db = config.database
        client = get_client(db.host, db.port, db.database, db.user, db.password)
        initialize_schema(client)

        bar_store = ClickHouseBarStore(client)
        if args.save_stocks:
            bar_store.save_stocks(config.strategy.stocks)
            print(f"종목 목록 등록: {len(config.strategy.stocks)}종목")

        cache = TTLCache(default_ttl=config.cache_ttl_seconds)
        memo = ExtremeGrowthMemo(ClickHouseExtremeGrowthStore(client), ClickHousePriceRangeStore(client), cache)
        engine = StrategyEngine(memo, params=config.strategy.params)
        provider = YahooFinanceProvider(
            max_retries=config.data_ingestion.max_retries,
            retry_delay=config.data_ingestion.retry_delay,
        )
        manager = MarketDataManager(bar_store, provider, cache, config.data_ingestion.recent_window_days)

        strategy_type = args.strategy or config.strategy.strategy_type
        signals = run_recommendation(
            strategy_type,
            engine,
            manager,
            bar_store,
            ClickHouseRecommendationStore(client),
            RunLock(cache, ttl=config.cache_ttl_seconds),
            update=args.update,
        )

        print(f"\n전략 {strategy_type} 추천 종목: {len(signals)}개")
        for s in signals:
            print(f"  {s.code} {s.name} @ {s.last_price:,.2f} ({s.reason})")
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
