"""Tests for the TTL cache and the long-running task lock."""

import pytest

from signal_backtest.core.errors import TaskAlreadyRunningError, TaskNotRunningError
from signal_backtest.utils.cache import TTLCache
from signal_backtest.utils.run_lock import TASK_BACKTEST, TASK_RECOMMEND, RunLock


class TestTTLCache:
    def test_set_and_get(self, cache):
        cache.set("a", 1)
        assert cache.get("a") == 1
        assert cache.has("a")
        assert cache.get("missing", "default") == "default"

    def test_expiry(self, clock):
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2, ttl=100)

        clock.advance(10)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert len(cache) == 1

    def test_delete_and_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        cache.delete("never-set")
        assert not cache.has("a")
        cache.clear()
        assert len(cache) == 0


class TestRunLock:
    @pytest.fixture
    def lock(self, cache):
        return RunLock(cache, ttl=60)

    def test_idle(self, lock):
        assert lock.running_task() is None
        assert lock.status() == "대기 중"

    def test_acquire_and_release(self, lock):
        lock.acquire(TASK_RECOMMEND)
        assert lock.running_task() == TASK_RECOMMEND
        assert TASK_RECOMMEND in lock.status()

        lock.release(TASK_RECOMMEND)
        assert lock.running_task() is None

    def test_second_task_rejected(self, lock):
        lock.acquire(TASK_BACKTEST)
        with pytest.raises(TaskAlreadyRunningError) as exc:
            lock.acquire(TASK_RECOMMEND)
        assert exc.value.running_task == TASK_BACKTEST

    def test_same_task_rejected(self, lock):
        lock.acquire(TASK_RECOMMEND)
        with pytest.raises(TaskAlreadyRunningError):
            lock.acquire(TASK_RECOMMEND)

    def test_release_when_not_running(self, lock):
        with pytest.raises(TaskNotRunningError):
            lock.release(TASK_BACKTEST)

    def test_unknown_task(self, lock):
        with pytest.raises(ValueError, match="알 수 없는 작업"):
            lock.acquire("reindex")

    def test_hold_releases_on_error(self, lock):
        with pytest.raises(RuntimeError):
            with lock.hold(TASK_BACKTEST):
                assert lock.running_task() == TASK_BACKTEST
                raise RuntimeError("boom")
        assert lock.running_task() is None

    def test_stale_lock_expires(self, lock, clock):
        lock.acquire(TASK_BACKTEST)
        clock.advance(61)
        lock.acquire(TASK_RECOMMEND)
        assert lock.running_task() == TASK_RECOMMEND
