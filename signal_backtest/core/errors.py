"""
시스템 공통 예외 정의.

[ 분류 ]
    1. 예상된 미발생(NoSignal)       → 예외가 아니라 반환값 (core/trading_strategy.py)
    2. 평가 오류(EvaluationError)    → 해당 종목/해당 일자 평가만 중단 (반환값)
    3. 실행 치명 오류                → 아래 예외들. 백테스트 전체 중단, 이미 저장된 기록은 롤백하지 않음

[ 호출하는 곳 ]
    - indicators/momentum.py: InsufficientDataError
    - strategies/__init__.py: UnknownStrategyError
    - backtest/engine.py: MissingBarDataError, LedgerStoreError
    - utils/run_lock.py: TaskAlreadyRunningError, TaskNotRunningError
    - utils/config.py: ConfigError
"""


class SignalBacktestError(Exception):
    """모든 시스템 예외의 부모. CLI는 이 타입의 메시지를 그대로 사용자에게 보여준다."""


class InsufficientDataError(SignalBacktestError):
    """지표 계산에 필요한 봉 개수가 부족."""

    def __init__(self, required: int, actual: int):
        self.required = required
        self.actual = actual
        super().__init__(f"데이터 부족: 최소 {required}개 필요, 현재 {actual}개")


class UnknownStrategyError(SignalBacktestError, ValueError):
    """등록되지 않은 전략 ID."""


class ConfigError(SignalBacktestError):
    """설정 파일 누락/형식 오류."""


class MissingBarDataError(SignalBacktestError):
    """백테스트에 필요한 종목의 봉 데이터가 없음 (실행 치명)."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"종목 데이터 없음: {code}")


class LedgerStoreError(SignalBacktestError):
    """보유 기록/실행 카운터 저장 실패 (실행 치명)."""


class TaskAlreadyRunningError(SignalBacktestError):
    """다른 장기 작업이 이미 실행 중."""

    def __init__(self, running_task: str):
        self.running_task = running_task
        super().__init__(f"작업이 이미 실행 중입니다: {running_task}")


class TaskNotRunningError(SignalBacktestError):
    """해제하려는 작업이 실행 중이 아님."""

    def __init__(self, task: str):
        self.task = task
        super().__init__(f"실행 중이 아닌 작업입니다: {task}")
