"""
시장 데이터 관리 모듈.

[ 역할 ]
    저장소(BarStore)의 종목 일봉을 캐싱하여 제공하고,
    update=True면 외부 시세 제공자(MarketDataProvider)에서 받아 저장소와 동기화.

[ 동기화 규칙 ]
    - 저장된 봉이 없으면 전체 봉 조회, 있으면 최근 N개(기본 30)만 조회
    - 저장소에 없는 날짜 → 추가
    - 같은 날짜인데 값이 달라진 봉 → 갱신
    - 제공자 실패(빈 DataFrame)면 저장된 봉을 그대로 사용

[ 의존성 ]
    - core/stores.py::BarStore, core/data_provider.py::MarketDataProvider
    - utils/cache.py::TTLCache (종목별 전체 일봉, 기본 24시간)

[ 호출하는 곳 ]
    - tasks/recommend.py::run_recommendation
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd

from signal_backtest.core.data_provider import BAR_COLUMNS, MarketDataProvider, bar_from_row
from signal_backtest.core.stores import BarStore
from signal_backtest.utils.cache import TTLCache

logger = logging.getLogger("signal_backtest.data")


@dataclass
class SyncResult:
    appended: int = 0
    updated: int = 0

    @property
    def changed(self) -> bool:
        return self.appended > 0 or self.updated > 0


class MarketDataManager:
    """BarStore 위에 캐싱 + 동기화 레이어를 추가한 매니저.

    사용 예:
        manager = MarketDataManager(bar_store, YahooFinanceProvider(), TTLCache())
        bars = manager.get_all_bars("600000", "浦发银行", update=True)
    """

    def __init__(
        self,
        bar_store: BarStore,
        provider: Optional[MarketDataProvider] = None,
        cache: Optional[TTLCache] = None,
        recent_window_days: int = 30,
    ):
        self.bar_store = bar_store
        self.provider = provider
        self.cache = cache if cache is not None else TTLCache()
        self.recent_window_days = recent_window_days

    @staticmethod
    def _cache_key(code: str) -> str:
        return f"bars:{code}"

    def get_all_bars(
        self,
        code: str,
        name: str,
        update: bool = False,
        auth_context: Any = None,
    ) -> pd.DataFrame:
        """종목 전체 일봉 (오름차순).

        Returns:
            DataFrame with columns: [date, open, high, low, close, volume]
        """
        key = self._cache_key(code)
        bars = self.cache.get(key)
        if bars is None:
            bars = self.bar_store.load_bars(code)

        if update and self.provider is not None:
            if bars.empty:
                fetched = self.provider.fetch_all_bars(code, name, auth_context)
            else:
                fetched = self.provider.fetch_recent_bars(
                    code, name, auth_context, window_days=self.recent_window_days
                )
            result = self.sync_bars(code, bars, fetched)
            if result.changed:
                logger.info(f"[{code} {name}] 일봉 동기화: 추가 {result.appended}, 갱신 {result.updated}")
                bars = self.bar_store.load_bars(code)

        self.cache.set(key, bars)
        return bars

    def sync_bars(self, code: str, stored: pd.DataFrame, fetched: pd.DataFrame) -> SyncResult:
        """fetched 봉을 저장소에 반영 (새 날짜 추가, 바뀐 봉 갱신)."""
        result = SyncResult()
        if fetched is None or fetched.empty:
            return result

        existing = {row.date: row for row in stored.itertuples(index=False)} if not stored.empty else {}
        for _, row in fetched.iterrows():
            old = existing.get(row["date"])
            if old is None:
                self.bar_store.upsert_bar(code, bar_from_row(row))
                result.appended += 1
            elif any(getattr(old, c) != row[c] for c in BAR_COLUMNS[1:]):
                self.bar_store.upsert_bar(code, bar_from_row(row))
                result.updated += 1
        return result

    def clear_cache(self, code: str) -> None:
        """종목 일봉 캐시 삭제. 캐시는 잠금/메모와 공유하므로 전체 삭제는 하지 않는다."""
        self.cache.delete(self._cache_key(code))
