"""
잠금 하에서 백테스트 실행.

[ 역할 ]
    RunLock("back-test")을 잡은 상태로 BacktestEngine.run_backtest()를 실행.
    추천 작업과 동시에 돌지 않게 한다.

[ 호출하는 곳 ]
    - run_backtest.py
"""

import logging
from typing import Iterable, Optional

from signal_backtest.backtest.engine import BacktestEngine
from signal_backtest.backtest.metrics import BacktestMetrics
from signal_backtest.core.data_provider import StockInfo
from signal_backtest.utils.config import BacktestConfig
from signal_backtest.utils.run_lock import TASK_BACKTEST, RunLock

logger = logging.getLogger("signal_backtest.tasks")


def run_backtest_task(
    engine: BacktestEngine,
    config: BacktestConfig,
    strategy_type: int,
    lock: RunLock,
    stocks: Optional[Iterable[StockInfo]] = None,
) -> BacktestMetrics:
    """백테스트 실행. stocks가 없으면 저장소의 종목 목록 사용.

    Raises:
        TaskAlreadyRunningError: 다른 작업 실행 중
        MissingBarDataError, LedgerStoreError: 백테스트 중단
    """
    with lock.hold(TASK_BACKTEST):
        targets = list(stocks) if stocks is not None else engine.bar_store.list_stocks()
        logger.info(f"백테스트 작업 시작: 전략 {strategy_type}, {len(targets)}종목")
        return engine.run_backtest(config, strategy_type, targets)
