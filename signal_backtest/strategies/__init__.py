"""
전략(규칙 세트) 모듈.

[ 전략 등록 방식 ]
    @register(전략ID) 데코레이터를 붙이면 STRATEGY_REGISTRY에 자동 등록.
    백테스트/추천은 정수 ID만으로 규칙 세트를 찾아 생성한다.

[ 등록 검사 ]
    모듈 로드 시 이 디렉토리의 규칙 모듈을 모두 임포트한 뒤,
    등록된 ID가 정확히 SUPPORTED_STRATEGY_TYPES(1~7)와 같은지 확인한다.
    빠진 ID가 있거나 모르는 ID가 있으면 임포트 자체가 실패한다.

[ 새 전략 추가 방법 ]
    1. 이 디렉토리에 새 .py 파일 생성
    2. TradingStrategy를 상속받는 클래스 작성
    3. @register(ID) 데코레이터 추가
    4. SUPPORTED_STRATEGY_TYPES에 ID 추가
"""

from importlib import import_module
from pathlib import Path
from typing import Any

from signal_backtest.core.errors import UnknownStrategyError
from signal_backtest.core.trading_strategy import TradingStrategy

SUPPORTED_STRATEGY_TYPES = frozenset(range(1, 8))

# 전략 ID → 규칙 세트 클래스 매핑
STRATEGY_REGISTRY: dict[int, type[TradingStrategy]] = {}

# 규칙 세트가 아닌 모듈 (자동 탐색 제외)
_NON_RULE_MODULES = {"engine"}


def register(strategy_type: int):
    """규칙 세트 클래스를 STRATEGY_REGISTRY에 등록하는 데코레이터."""
    def decorator(cls: type[TradingStrategy]):
        if strategy_type in STRATEGY_REGISTRY:
            raise ValueError(
                f"전략 ID 중복 등록: {strategy_type} "
                f"({STRATEGY_REGISTRY[strategy_type].__name__}, {cls.__name__})"
            )
        cls.STRATEGY_TYPE = strategy_type
        STRATEGY_REGISTRY[strategy_type] = cls
        return cls
    return decorator


def get_strategy_class(strategy_type: int) -> type[TradingStrategy]:
    try:
        return STRATEGY_REGISTRY[strategy_type]
    except KeyError:
        available = ", ".join(str(k) for k in sorted(STRATEGY_REGISTRY))
        raise UnknownStrategyError(
            f"알 수 없는 전략: {strategy_type}. 사용 가능: {available}"
        ) from None


def create_strategy(
    strategy_type: int,
    params: dict[str, Any] | None = None,
    memo=None,
) -> TradingStrategy:
    """ID로 규칙 세트 인스턴스를 생성.

    Args:
        strategy_type: 전략 ID (1~7)
        params: 각 규칙 세트의 DEFAULT_PARAMS를 오버라이드
        memo: 급등 이력 메모 (전략 1, 2, 3에서 사용)

    Raises:
        UnknownStrategyError: 등록되지 않은 전략 ID
    """
    return get_strategy_class(strategy_type)(params=params, memo=memo)


def list_strategies() -> list[tuple[int, str]]:
    """(전략 ID, 이름) 목록 반환."""
    return [(k, STRATEGY_REGISTRY[k].NAME) for k in sorted(STRATEGY_REGISTRY)]


def _auto_discover():
    """이 디렉토리의 모든 규칙 모듈을 자동 임포트하여 @register가 실행되게 한다."""
    strategies_dir = Path(__file__).parent
    for py_file in sorted(strategies_dir.glob("*.py")):
        if py_file.name.startswith("_") or py_file.stem in _NON_RULE_MODULES:
            continue
        import_module(f"signal_backtest.strategies.{py_file.stem}")


def _check_exhaustive():
    registered = set(STRATEGY_REGISTRY)
    if registered != SUPPORTED_STRATEGY_TYPES:
        missing = sorted(SUPPORTED_STRATEGY_TYPES - registered)
        unknown = sorted(registered - SUPPORTED_STRATEGY_TYPES)
        raise ImportError(f"전략 등록 불일치: 누락={missing}, 미지원={unknown}")


# 모듈 로드 시 자동 탐색 + 등록 검사
_auto_discover()
_check_exhaustive()
