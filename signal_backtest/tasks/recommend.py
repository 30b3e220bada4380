"""
실전 추천 작업.

[ 역할 ]
    대상 종목 전체에 대해 최신 일봉으로 매수 판단을 하고,
    매수 시그널 종목을 (날짜, 전략) 단위로 추천 저장소에 교체 저장.

[ 흐름 ]
    RunLock("stock-recommend") 획득
        → 종목 목록 조회 (없으면 MissingBarDataError)
        → 종목별 get_all_bars(update) → evaluate_buy
           (마지막 봉이 지금까지 본 최신 날짜보다 오래된 종목은 거래정지 등으로 보고 건너뜀)
        → 최신 날짜 기준으로 추천 교체 저장
    잠금 해제 (예외가 나도 해제)

[ 호출하는 곳 ]
    - run_recommend.py
"""

import logging
from datetime import date
from typing import Optional

from signal_backtest.core.errors import MissingBarDataError
from signal_backtest.core.stores import BarStore, Recommendation, RecommendationStore
from signal_backtest.core.trading_strategy import BuySignal, SignalType
from signal_backtest.data.market_data import MarketDataManager
from signal_backtest.strategies.engine import StrategyEngine
from signal_backtest.utils.run_lock import TASK_RECOMMEND, RunLock

logger = logging.getLogger("signal_backtest.tasks")


def run_recommendation(
    strategy_type: int,
    engine: StrategyEngine,
    manager: MarketDataManager,
    bar_store: BarStore,
    rec_store: RecommendationStore,
    lock: RunLock,
    update: bool = False,
) -> list[BuySignal]:
    """추천 실행. 매수 시그널 목록 반환.

    Raises:
        TaskAlreadyRunningError: 다른 작업 실행 중
        MissingBarDataError: 대상 종목 목록 없음
        UnknownStrategyError: 등록되지 않은 전략 ID
    """
    with lock.hold(TASK_RECOMMEND):
        engine.strategy(strategy_type)

        stocks = bar_store.list_stocks()
        if not stocks:
            raise MissingBarDataError("stock_list")

        latest: Optional[date] = None
        picks: list[tuple[date, BuySignal]] = []
        skipped = 0

        for stock in stocks:
            bars = manager.get_all_bars(stock.code, stock.name, update=update)
            if bars.empty:
                logger.warning(f"[{stock.code} {stock.name}] 일봉 없음, 건너뜀")
                skipped += 1
                continue

            last_date = bars["date"].iloc[-1]
            if latest is not None and last_date < latest:
                logger.debug(f"[{stock.code} {stock.name}] 마지막 봉 {last_date} < {latest}, 건너뜀")
                skipped += 1
                continue
            latest = last_date

            signal = engine.evaluate_buy(strategy_type, bars, stock.code, stock.name)
            if signal.signal_type == SignalType.BUY:
                picks.append((last_date, signal))

        if latest is None:
            logger.warning("추천 가능한 종목이 없습니다")
            return []

        # 앞쪽 종목이 최신 날짜보다 먼저 평가됐을 수 있으므로 최신 날짜 것만 남긴다
        signals = [s for d, s in picks if d == latest]
        rec_store.replace(latest, strategy_type, [
            Recommendation(code=s.code, name=s.name, last_price=s.last_price, date=latest, strategy_type=strategy_type)
            for s in signals
        ])
        logger.info(
            f"추천 완료: 전략 {strategy_type}, {latest}, {len(signals)}종목 "
            f"(대상 {len(stocks)}, 건너뜀 {skipped})"
        )
        return signals
