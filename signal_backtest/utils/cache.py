"""
TTL 캐시 모듈.

[ 역할 ]
    키별 만료 시간이 있는 메모리 캐시.
    급등 이력 메모, 종목 일봉, 실행 잠금(run lock)이 같은 캐시 인스턴스를 공유한다.

[ 호출하는 곳 ]
    - memo/extreme_growth.py (급등 월 목록, 월별 가격 범위)
    - data/market_data.py (저장된 전체 일봉)
    - utils/run_lock.py (실행 중인 작업 표시)

[ 주의 ]
    스레드 안전하지 않다. 단일 프로세스/단일 스레드 실행을 전제로 한다.
"""

import time
from typing import Any, Callable, Optional

DEFAULT_TTL_SECONDS = 24 * 60 * 60  # 24시간


class TTLCache:
    """만료 시간 기반 키-값 캐시.

    사용 예:
        cache = TTLCache()
        cache.set("key", value)              # 기본 24시간
        cache.set("key", value, ttl=60)      # 60초
        cache.get("key")                     # 만료됐거나 없으면 None
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._items: dict[str, tuple[Any, float]] = {}  # key → (값, 만료 시각)

    def get(self, key: str, default: Any = None) -> Any:
        item = self._items.get(key)
        if item is None:
            return default
        value, expires_at = item
        if self._clock() >= expires_at:
            del self._items[key]
            return default
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._items[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        # 만료 항목 정리 후 개수
        now = self._clock()
        self._items = {k: v for k, v in self._items.items() if now < v[1]}
        return len(self._items)
