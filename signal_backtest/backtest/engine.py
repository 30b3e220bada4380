"""
백테스팅 엔진 모듈.

[ 역할 ]
    과거 일봉에 규칙 세트를 하루씩 적용하여 모의 매매를 시뮬레이션.
    모든 종목이 하나의 현금/보유 원장을 공유하며, 동시 보유 수 제한을 지킨다.

[ 실행 상태 ]
    IDLE → LOADING → STEPPING → FINISHED

[ 실행 흐름 ]
    run_backtest() 호출 시:
        1. LOADING
           - 실행 회차 = run_counter.get() + 1
           - 다음 보유 id = holdings_store.find_max_id() + 1
           - 종목별 전체 일봉 로드 후 start_date 기준으로 "보이는 구간(≤ start_date) / 미래 구간" 분할
             (미래 구간은 커서로 표현, 당일 이후 봉은 규칙 세트에 절대 전달되지 않음)
           - 보이는 구간의 마지막 봉은 미처리 상태로 두어 첫날 판단 대상이 된다
             (start_date가 휴일이면 직전 거래일 봉)
        2. STEPPING (달력 하루씩 반복)
           a. 종료 확인: 모든 종목 소진 또는 end_date 경과
           b. 당일까지의 미래 봉 공개 (이미 비어 있던 종목은 소진 표시)
           c. 매도: 미청산 보유 종목 중 새 봉이 있는 종목 → evaluate_sell
           d. 매수: 보유 수 < max_stocks_holds 이고 현금 ≥ min_remaining_balance_to_buy 동안
                    미소진/미처리 종목 → evaluate_buy → 수량 계산 → 원장 반영
           e. 각 종목은 마지막 봉 기준으로 하루 한 번만 처리
           f. 총 가치 ≤ min_remaining_balance_to_buy 면 종료
        3. FINISHED
           - 실행 회차 증가, BacktestResult 저장, 성과 지표 계산

[ 의존성 ]
    - strategies/engine.py::StrategyEngine (매수/매도 판단)
    - data/portfolio.py::Portfolio (현금/보유 원장)
    - backtest/metrics.py::calculate_metrics() (성과 계산)
    - core/stores.py (봉/보유 기록/실행 회차/결과 저장소)

[ 호출하는 곳 ]
    - run_backtest.py, tasks/backtest_task.py
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Iterable, Optional

import pandas as pd

from signal_backtest.backtest.metrics import BacktestMetrics, calculate_metrics
from signal_backtest.core.data_provider import StockInfo, normalize_bars
from signal_backtest.core.errors import LedgerStoreError, MissingBarDataError
from signal_backtest.core.stores import (
    BacktestResult,
    BacktestResultStore,
    BarStore,
    Holding,
    HoldingsStore,
    RunCounterStore,
)
from signal_backtest.core.trading_strategy import SignalType
from signal_backtest.data.portfolio import Portfolio, calculate_position_size
from signal_backtest.strategies.engine import StrategyEngine
from signal_backtest.utils.config import BacktestConfig

logger = logging.getLogger("signal_backtest.backtest")


class RunState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    STEPPING = "stepping"
    FINISHED = "finished"


@dataclass
class StockCursor:
    """종목별 진행 상태. bars[:cursor]가 보이는 구간, 나머지가 미래 구간."""
    info: StockInfo
    bars: pd.DataFrame
    cursor: int = 0
    exhausted: bool = False
    processed_date: Optional[date] = None   # 마지막으로 처리한 봉 날짜
    _dates: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        self._dates = list(self.bars["date"])

    @property
    def visible(self) -> pd.DataFrame:
        return self.bars.iloc[:self.cursor]

    @property
    def last_date(self) -> Optional[date]:
        return self._dates[self.cursor - 1] if self.cursor > 0 else None

    @property
    def has_future(self) -> bool:
        return self.cursor < len(self._dates)

    def release_until(self, day: date) -> bool:
        """day 이하의 미래 봉 공개. 새 봉이 있으면 True. 이미 비어 있었으면 소진 표시."""
        if not self.has_future:
            self.exhausted = True
            return False
        start = self.cursor
        while self.cursor < len(self._dates) and self._dates[self.cursor] <= day:
            self.cursor += 1
        return self.cursor > start

    @property
    def is_processed(self) -> bool:
        last = self.last_date
        return last is None or (self.processed_date is not None and self.processed_date >= last)

    def mark_processed(self) -> None:
        self.processed_date = self.last_date


class BacktestEngine:
    """백테스팅 엔진. run_backtest()로 시뮬레이션 실행."""

    def __init__(
        self,
        strategy_engine: StrategyEngine,
        bar_store: BarStore,
        holdings_store: HoldingsStore,
        run_counter_store: RunCounterStore,
        result_store: Optional[BacktestResultStore] = None,
    ):
        self.strategy_engine = strategy_engine
        self.bar_store = bar_store
        self.holdings_store = holdings_store
        self.run_counter_store = run_counter_store
        self.result_store = result_store

        self.state = RunState.IDLE
        # 백테스트 실행 후 채워지는 결과
        self.portfolio: Portfolio | None = None
        self.run_generation: int = 0
        self.daily_values: list[float] = []     # 일별 총 가치 (MDD/샤프 계산용)
        self.daily_profits: list[float] = []    # 일별 누적 실현 손익
        self.daily_dates: list[date] = []
        self.metrics: BacktestMetrics | None = None

    def run_backtest(
        self,
        config: BacktestConfig,
        strategy_type: int,
        stocks: Iterable[StockInfo],
    ) -> BacktestMetrics:
        """백테스트 실행.

        Raises:
            MissingBarDataError: 종목 일봉이 없음 (실행 중단)
            LedgerStoreError: 보유 기록/실행 회차 저장 실패 (실행 중단, 이미 저장된 기록은 유지)
            UnknownStrategyError: 등록되지 않은 전략 ID
        """
        # 없는 전략 ID면 로딩 전에 실패
        self.strategy_engine.strategy(strategy_type)

        self.state = RunState.LOADING
        self.portfolio = Portfolio(config.start_balance, config.fee_rate)
        self.daily_values = []
        self.daily_profits = []
        self.daily_dates = []

        self.run_generation = self._store_call("실행 회차 조회", self.run_counter_store.get) + 1
        next_id = self._store_call("보유 id 조회", self.holdings_store.find_max_id) + 1
        cursors = self._load(list(stocks), config.start_date)

        logger.info(
            f"백테스트 시작: 전략 {strategy_type}, 회차 {self.run_generation}, "
            f"{config.start_date} ~ {config.end_date}, {len(cursors)}종목"
        )

        self.state = RunState.STEPPING
        day = config.start_date
        while True:
            if day > config.end_date:
                break

            for c in cursors:
                c.release_until(day)
            if all(c.exhausted for c in cursors):
                break

            self._sell_pass(config, strategy_type, cursors)
            next_id = self._buy_pass(config, strategy_type, cursors, next_id)

            # 당일 봉이 있는 종목이 하나라도 있으면 거래일
            if any(c.last_date == day for c in cursors):
                self.daily_values.append(self.portfolio.total_value)
                self.daily_profits.append(self.portfolio.realized_profit)
                self.daily_dates.append(day)

            if self.portfolio.total_value <= config.min_remaining_balance_to_buy:
                logger.warning(f"[{day}] 총 가치 {self.portfolio.total_value:,.2f} ≤ 최소 잔액, 종료")
                break

            day += timedelta(days=1)

        return self._finish(config, strategy_type)

    # ─── 로딩 ──────────────────────────────────────────────────────

    def _load(self, stocks: list[StockInfo], start_date: date) -> list[StockCursor]:
        cursors = []
        for info in stocks:
            bars = normalize_bars(self.bar_store.load_bars(info.code))
            if bars.empty:
                raise MissingBarDataError(info.code)
            cursor = StockCursor(info=info, bars=bars)
            cursor.cursor = int((bars["date"] <= start_date).sum())
            cursors.append(cursor)
        return cursors

    # ─── 매도 ──────────────────────────────────────────────────────

    def _sell_pass(self, config: BacktestConfig, strategy_type: int, cursors: list[StockCursor]) -> None:
        portfolio = self.portfolio
        for cursor in cursors:
            code = cursor.info.code
            if not portfolio.is_holding(code) or cursor.is_processed:
                continue

            visible = cursor.visible
            sold = False
            for holding in list(portfolio.holdings_of(code)):
                signal = self.strategy_engine.evaluate_sell(
                    strategy_type, visible, code, cursor.info.name, holding.buy_price, holding.buy_date
                )
                if signal.signal_type != SignalType.SELL:
                    continue

                profit = portfolio.close_position(holding, signal.close_price, cursor.last_date)
                self._store_call("보유 기록 갱신", self.holdings_store.update, holding)
                sold = True
                logger.info(
                    f"[{cursor.last_date}] 매도: {code} {cursor.info.name} {holding.amount}주 "
                    f"@ {signal.close_price:,.2f} 손익 {profit:+,.2f} ({signal.reason})"
                )

            if sold or not config.allow_pyramiding:
                cursor.mark_processed()

    # ─── 매수 ──────────────────────────────────────────────────────

    def _buy_pass(
        self,
        config: BacktestConfig,
        strategy_type: int,
        cursors: list[StockCursor],
        next_id: int,
    ) -> int:
        portfolio = self.portfolio
        for cursor in cursors:
            if portfolio.open_count >= config.max_stocks_holds:
                break
            if portfolio.cash < config.min_remaining_balance_to_buy:
                break
            if cursor.exhausted or cursor.is_processed:
                continue

            code, name = cursor.info.code, cursor.info.name
            signal = self.strategy_engine.evaluate_buy(strategy_type, cursor.visible, code, name)
            cursor.mark_processed()
            if signal.signal_type != SignalType.BUY:
                continue

            price = signal.last_price
            open_slots = config.max_stocks_holds - portfolio.open_count
            amount = calculate_position_size(
                portfolio.cash, open_slots, price, config.fee_rate, fee_safe=config.fee_safe_sizing
            )
            if amount <= 0:
                logger.debug(f"[{cursor.last_date}] 매수 수량 0: {code} @ {price:,.2f}")
                continue

            holding = Holding(
                id=next_id,
                stock_code=code,
                stock_name=name,
                buy_price=price,
                amount=amount,
                buy_date=cursor.last_date,
                run_generation=self.run_generation,
                strategy_type=strategy_type,
            )
            fee = portfolio.open_position(holding)
            self._store_call("보유 기록 생성", self.holdings_store.create, holding)
            next_id += 1
            logger.info(
                f"[{cursor.last_date}] 매수: {code} {name} {amount}주 @ {price:,.2f} "
                f"수수료 {fee:,.2f} ({signal.reason})"
            )
        return next_id

    # ─── 종료 ──────────────────────────────────────────────────────

    def _finish(self, config: BacktestConfig, strategy_type: int) -> BacktestMetrics:
        self.state = RunState.FINISHED
        portfolio = self.portfolio

        self._store_call("실행 회차 증가", self.run_counter_store.increment)

        if self.result_store is not None:
            result = BacktestResult(
                run_generation=self.run_generation,
                strategy_type=strategy_type,
                start_date=config.start_date,
                end_date=config.end_date,
                transaction_count=portfolio.transaction_count,
                total_profit=portfolio.realized_profit,
            )
            self._store_call("백테스트 결과 저장", self.result_store.save, result)

        metrics = calculate_metrics(
            closed_holdings=portfolio.closed_holdings,
            daily_values=self.daily_values,
            daily_profits=self.daily_profits,
            start_balance=config.start_balance,
            trading_days=len(self.daily_values),
        )
        metrics.run_generation = self.run_generation
        metrics.strategy_type = strategy_type
        metrics.start_date = config.start_date
        metrics.end_date = config.end_date
        metrics.final_cash = portfolio.cash
        metrics.total_profit = portfolio.realized_profit
        metrics.total_fees = portfolio.total_fees
        metrics.transaction_count = portfolio.transaction_count
        metrics.open_holdings = portfolio.open_count
        metrics.max_concurrent_holdings = portfolio.max_open_count
        self.metrics = metrics

        logger.info(
            f"백테스트 완료: 회차 {self.run_generation}, 매수 {portfolio.transaction_count}건, "
            f"실현 손익 {portfolio.realized_profit:+,.2f}"
        )
        return metrics

    @staticmethod
    def _store_call(action: str, func, *args):
        try:
            return func(*args)
        except Exception as e:
            raise LedgerStoreError(f"{action} 실패: {e}") from e

    def generate_report(self) -> dict[str, Any]:
        """백테스트 리포트 생성."""
        if self.metrics is None or self.portfolio is None:
            return {"error": "백테스트를 먼저 실행하세요."}

        return {
            "metrics": self.metrics.to_dict(),
            "portfolio_summary": self.portfolio.get_summary(),
            "holdings": [h.to_dict() for h in self.portfolio.closed_holdings],
            "open_holdings": [
                h.to_dict() for holdings in self.portfolio.open_positions.values() for h in holdings
            ],
        }
