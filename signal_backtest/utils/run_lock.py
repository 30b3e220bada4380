"""
장기 작업 실행 잠금.

[ 역할 ]
    추천 작업(stock-recommend)과 백테스트(back-test) 중 하나만 실행되도록 막는다.
    잠금 상태는 주입된 TTL 캐시에 저장되므로, 프로세스가 죽어도 TTL(기본 24시간) 후 자동 해제.

[ 알려진 한계 ]
    acquire()는 "확인 후 설정" 순서라 원자적이지 않다.
    단일 프로세스/단일 스레드 실행에서만 보장된다.

[ 호출하는 곳 ]
    - tasks/recommend.py, tasks/backtest_task.py
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from signal_backtest.core.errors import TaskAlreadyRunningError, TaskNotRunningError
from signal_backtest.utils.cache import DEFAULT_TTL_SECONDS, TTLCache

logger = logging.getLogger("signal_backtest.lock")

TASK_RECOMMEND = "stock-recommend"
TASK_BACKTEST = "back-test"
KNOWN_TASKS = (TASK_RECOMMEND, TASK_BACKTEST)

_KEY_PREFIX = "running:"


class RunLock:
    """캐시 기반 작업 잠금."""

    def __init__(self, cache: TTLCache, ttl: float = DEFAULT_TTL_SECONDS, tasks: tuple[str, ...] = KNOWN_TASKS):
        self.cache = cache
        self.ttl = ttl
        self.tasks = tasks

    def running_task(self) -> Optional[str]:
        """실행 중인 작업 이름. 없으면 None."""
        for task in self.tasks:
            if self.cache.get(_KEY_PREFIX + task):
                return task
        return None

    def status(self) -> str:
        running = self.running_task()
        return f"{running} 실행 중" if running else "대기 중"

    def acquire(self, task: str) -> None:
        if task not in self.tasks:
            raise ValueError(f"알 수 없는 작업: {task}")
        running = self.running_task()
        if running is not None:
            raise TaskAlreadyRunningError(running)
        self.cache.set(_KEY_PREFIX + task, True, ttl=self.ttl)
        logger.info(f"작업 시작: {task}")

    def release(self, task: str) -> None:
        key = _KEY_PREFIX + task
        if not self.cache.get(key):
            raise TaskNotRunningError(task)
        self.cache.delete(key)
        logger.info(f"작업 종료: {task}")

    @contextmanager
    def hold(self, task: str) -> Iterator[None]:
        """with 블록 동안 잠금 유지. 예외가 나도 해제."""
        self.acquire(task)
        try:
            yield
        finally:
            self.release(task)
