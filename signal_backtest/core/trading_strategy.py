"""
매매 규칙 추상 클래스 및 시그널 타입 정의.

[ 역할 ]
    봉 시퀀스를 받아 매수/매도 여부를 판단하는 규칙 세트의 인터페이스를 정의.
    판단 결과는 예외가 아니라 태그가 붙은 시그널 값으로 반환한다.

[ 시그널 종류 ]
    BuySignal        - 매수 (code, name, last_price)
    SellSignal       - 매도 (code, name, close_price)
    NoSignal         - 조건 미충족 (정상 결과, reason 포함)
    EvaluationError  - 평가 중 예기치 못한 예외 (해당 종목만 중단)

    호출부는 isinstance가 아니라 signal.signal_type 태그로 분기한다.

[ 구현체 ]
    strategies/ 디렉토리의 7개 규칙 세트 (@register(전략ID))

[ 데이터 흐름 ]
    bars(OHLCV DataFrame) → should_buy()/should_sell() → (bool, 사유)
    → evaluate_buy()/evaluate_sell()이 시그널로 변환
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional, Union

import pandas as pd


class SignalType(Enum):
    """시그널 태그."""
    BUY = "buy"
    SELL = "sell"
    NONE = "none"
    ERROR = "error"


@dataclass(frozen=True)
class BuySignal:
    code: str
    name: str
    last_price: float
    reason: str = ""
    signal_type: SignalType = field(default=SignalType.BUY, init=False)


@dataclass(frozen=True)
class SellSignal:
    code: str
    name: str
    close_price: float
    reason: str = ""
    signal_type: SignalType = field(default=SignalType.SELL, init=False)


@dataclass(frozen=True)
class NoSignal:
    """조건 미충족. suppressed=True면 급등 이력에 의한 매수 억제."""
    reason: str
    suppressed: bool = False
    signal_type: SignalType = field(default=SignalType.NONE, init=False)


@dataclass(frozen=True)
class EvaluationError:
    reason: str
    signal_type: SignalType = field(default=SignalType.ERROR, init=False)


Signal = Union[BuySignal, SellSignal, NoSignal, EvaluationError]


class TradingStrategy(ABC):
    """매매 규칙 세트 추상 클래스.

    새 규칙 세트는 이 클래스를 상속받아 should_buy/should_sell을 구현하고
    strategies/__init__.py::register(전략ID) 데코레이터로 등록한다.

    클래스 속성:
        STRATEGY_TYPE: 전략 ID (1~7)
        NAME: 표시 이름
        MIN_BARS: 매수 판단에 필요한 최소 봉 수
        CHECK_EXTREME_GROWTH: True면 매수 판단 전에 급등 이력 메모를 조회
        DEFAULT_PARAMS: 오버라이드 가능한 기본 파라미터
    """

    STRATEGY_TYPE: int = 0
    NAME: str = ""
    MIN_BARS: int = 1
    CHECK_EXTREME_GROWTH: bool = False
    DEFAULT_PARAMS: dict[str, Any] = {}

    def __init__(self, params: dict[str, Any] | None = None, memo=None):
        # DEFAULT_PARAMS를 기본으로 하고, 전달된 params로 오버라이드
        self.params = {**self.DEFAULT_PARAMS, **(params or {})}
        self.memo = memo  # memo/extreme_growth.py::ExtremeGrowthMemo

    def evaluate_buy(self, bars: pd.DataFrame, code: str, name: str) -> Signal:
        """매수 시그널 판단. 사전 조건 → 급등 억제 → 최소 봉 수 → should_buy 순서."""
        if bars.empty:
            return NoSignal("데이터 없음")

        reason = self.buy_precheck(bars)
        if reason is not None:
            return NoSignal(reason)

        if self.CHECK_EXTREME_GROWTH and self.memo is not None:
            suppressed = self.memo.check(bars, code, name)
            if suppressed is not None:
                return suppressed

        if len(bars) < self.MIN_BARS:
            return NoSignal(f"데이터 부족 (최소 {self.MIN_BARS}일 필요, 현재 {len(bars)}일)")

        ok, reason = self.should_buy(bars, code, name)
        if not ok:
            return NoSignal(reason)
        return BuySignal(code=code, name=name, last_price=float(bars["close"].iloc[-1]), reason=reason)

    def evaluate_sell(
        self,
        bars: pd.DataFrame,
        code: str,
        name: str,
        buy_price: float,
        buy_date: date,
    ) -> Signal:
        """매도 시그널 판단."""
        if bars.empty:
            return NoSignal("데이터 없음")

        ok, reason = self.should_sell(bars, code, name, buy_price, buy_date)
        if not ok:
            return NoSignal(reason)
        return SellSignal(code=code, name=name, close_price=float(bars["close"].iloc[-1]), reason=reason)

    def buy_precheck(self, bars: pd.DataFrame) -> Optional[str]:
        """급등 메모 조회 전에 확인하는 마지막 봉 조건. 불충족 사유 또는 None.

        메모는 월별 가격 범위를 저장소에 기록하므로, 싼 조건으로 먼저 걸러낸다.
        """
        return None

    @abstractmethod
    def should_buy(self, bars: pd.DataFrame, code: str, name: str) -> tuple[bool, str]:
        """매수 조건 판단.

        Returns:
            (매수 여부, 사유)
        """
        ...

    @abstractmethod
    def should_sell(
        self,
        bars: pd.DataFrame,
        code: str,
        name: str,
        buy_price: float,
        buy_date: date,
    ) -> tuple[bool, str]:
        """매도 조건 판단.

        Returns:
            (매도 여부, 사유)
        """
        ...
