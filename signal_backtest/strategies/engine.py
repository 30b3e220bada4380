"""
전략 엔진.

[ 역할 ]
    전략 ID로 규칙 세트를 찾아 매수/매도 판단을 위임하고,
    규칙 세트 내부의 예기치 못한 예외를 EvaluationError 시그널로 바꾼다.
    (예외가 한 종목/하루 평가를 넘어 백테스트 전체로 번지지 않게 함)

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine (매일 매도/매수 판단)
    - tasks/recommend.py::run_recommendation (실전 추천)

[ 로그 레벨 ]
    NoSignal → DEBUG, BuySignal/SellSignal → INFO, EvaluationError → ERROR (traceback 포함)
"""

import logging
from datetime import date
from typing import Any, Optional

import pandas as pd

from signal_backtest.core.trading_strategy import (
    EvaluationError,
    Signal,
    SignalType,
    TradingStrategy,
)
from signal_backtest.strategies import create_strategy

logger = logging.getLogger("signal_backtest.strategy")


class StrategyEngine:
    """전략 ID → 규칙 세트 인스턴스 캐시 + 안전한 평가 래퍼.

    사용 예:
        engine = StrategyEngine(memo)
        signal = engine.evaluate_buy(1, bars, "600000", "浦发银行")
        if signal.signal_type == SignalType.BUY: ...
    """

    def __init__(self, memo=None, params: Optional[dict[int, dict[str, Any]]] = None):
        self.memo = memo
        self.params = params or {}
        self._strategies: dict[int, TradingStrategy] = {}

    def strategy(self, strategy_type: int) -> TradingStrategy:
        """규칙 세트 인스턴스. 없는 ID면 UnknownStrategyError."""
        if strategy_type not in self._strategies:
            self._strategies[strategy_type] = create_strategy(
                strategy_type,
                params=self.params.get(strategy_type),
                memo=self.memo,
            )
        return self._strategies[strategy_type]

    def evaluate_buy(self, strategy_type: int, bars: pd.DataFrame, code: str, name: str) -> Signal:
        strategy = self.strategy(strategy_type)
        try:
            signal = strategy.evaluate_buy(bars, code, name)
        except Exception as e:
            logger.exception(f"[{code} {name}] 전략 {strategy_type} 매수 평가 오류")
            return EvaluationError(f"{type(e).__name__}: {e}")
        self._log(signal, strategy_type, code, name, "매수")
        return signal

    def evaluate_sell(
        self,
        strategy_type: int,
        bars: pd.DataFrame,
        code: str,
        name: str,
        buy_price: float,
        buy_date: date,
    ) -> Signal:
        strategy = self.strategy(strategy_type)
        try:
            signal = strategy.evaluate_sell(bars, code, name, buy_price, buy_date)
        except Exception as e:
            logger.exception(f"[{code} {name}] 전략 {strategy_type} 매도 평가 오류")
            return EvaluationError(f"{type(e).__name__}: {e}")
        self._log(signal, strategy_type, code, name, "매도")
        return signal

    @staticmethod
    def _log(signal: Signal, strategy_type: int, code: str, name: str, side: str) -> None:
        if signal.signal_type == SignalType.NONE:
            logger.debug(f"[{code} {name}] 전략 {strategy_type} {side} 없음: {signal.reason}")
        elif signal.signal_type in (SignalType.BUY, SignalType.SELL):
            logger.info(f"[{code} {name}] 전략 {strategy_type} {side} 시그널: {signal.reason}")
