"""
급등 이력 메모 (Extreme-Growth Memo).

[ 역할 ]
    최근 3년 안에 한 달 동안 고가/저가 비율이 3배 이상이었던 종목의 매수를 억제.
    월별 가격 범위는 한 번 계산하면 저장해 두고 다시 계산하지 않는다 (당월 제외).

[ 판단 순서 ]
    1. 알려진 급등 월 목록 (캐시 → 저장소 → 캐시 저장)
       어떤 급등 월 M에 대해 마지막 봉 날짜 > M의 1일 이고 그 차이가 3*365일 미만이면 억제
    2. 최근 3*365일 봉을 월별로 묶는다
       - 지난 달: 저장된 범위(캐시 → 저장소)를 재사용, 없으면 계산 후 저장
       - 당월   : 매번 계산, 저장하지 않음
       - 1일이 구간보다 앞선 첫 달 : 구간 안의 봉으로만 계산, 저장하지 않음
    3. 최고/최저 ≥ 3 인 월이 있으면 급등 월로 추가 저장(중복 무시) 후 억제

[ 호출하는 곳 ]
    - core/trading_strategy.py::TradingStrategy.evaluate_buy (전략 1, 2, 3)

[ 데이터 흐름 ]
    bars → check() → NoSignal(suppressed=True) 또는 None(통과)
"""

import logging
from datetime import date
from typing import Optional

import pandas as pd

from signal_backtest.core.stores import (
    ExtremeGrowthRecord,
    ExtremeGrowthStore,
    PriceRangeRecord,
    PriceRangeStore,
)
from signal_backtest.core.trading_strategy import NoSignal
from signal_backtest.utils.cache import TTLCache

logger = logging.getLogger("signal_backtest.memo")

MONTH_GROWTH_RATIO = 3
LOOKBACK_DAYS = 3 * 365


def year_month(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def first_day(ym: str) -> date:
    year, month = ym.split("-")
    return date(int(year), int(month), 1)


class ExtremeGrowthMemo:
    """급등 월 기록과 월별 가격 범위 메모를 관리."""

    def __init__(
        self,
        extreme_store: ExtremeGrowthStore,
        price_range_store: PriceRangeStore,
        cache: TTLCache,
        growth_ratio: float = MONTH_GROWTH_RATIO,
        lookback_days: int = LOOKBACK_DAYS,
    ):
        self.extreme_store = extreme_store
        self.price_range_store = price_range_store
        self.cache = cache
        self.growth_ratio = growth_ratio
        self.lookback_days = lookback_days

    # ─── 급등 월 목록 ───────────────────────────────────────────────

    def known_months(self, code: str) -> list[str]:
        key = f"extreme_growth:{code}"
        months = self.cache.get(key)
        if months is None:
            months = sorted(r.year_month for r in self.extreme_store.find_by_stock(code))
            self.cache.set(key, months)
        return list(months)

    def _remember_months(self, code: str, months: list[str]) -> None:
        known = self.known_months(code)
        for ym in months:
            if ym in known:
                continue
            self.extreme_store.upsert(ExtremeGrowthRecord(stock_code=code, year_month=ym))
            known.append(ym)
        self.cache.set(f"extreme_growth:{code}", sorted(known))

    # ─── 월별 가격 범위 ─────────────────────────────────────────────

    def _memoized_range(self, code: str, ym: str) -> Optional[PriceRangeRecord]:
        key = f"price_range:{code}:{ym}"
        record = self.cache.get(key)
        if record is None:
            record = self.price_range_store.find(code, ym)
            if record is not None:
                self.cache.set(key, record)
        return record

    def _month_range(self, code: str, ym: str, month_bars: pd.DataFrame, memoize: bool) -> PriceRangeRecord:
        if memoize:
            record = self._memoized_range(code, ym)
            if record is not None:
                return record

        record = PriceRangeRecord(
            stock_code=code,
            year_month=ym,
            min_price=float(month_bars["low"].min()),
            max_price=float(month_bars["high"].max()),
        )
        if memoize:
            self.price_range_store.upsert(record)
            self.cache.set(f"price_range:{code}:{ym}", record)
        return record

    # ─── 판단 ──────────────────────────────────────────────────────

    def check(self, bars: pd.DataFrame, code: str, name: str) -> Optional[NoSignal]:
        """급등 이력이 있으면 억제용 NoSignal, 없으면 None."""
        if bars.empty:
            return None

        last_date = bars["date"].iloc[-1]

        for ym in self.known_months(code):
            start = first_day(ym)
            if last_date > start and (last_date - start).days < self.lookback_days:
                logger.debug(f"[{code} {name}] 급등 이력({ym})으로 매수 억제")
                return NoSignal(f"급등 이력 {ym}", suppressed=True)

        recent = bars[bars["date"].map(lambda d: (last_date - d).days < self.lookback_days)]
        month_keys = recent["date"].map(year_month)
        current_ym = year_month(last_date)

        extreme: list[str] = []
        for ym, month_bars in recent.groupby(month_keys, sort=True):
            # 구간 밖에서 시작하는 첫 달은 일부 봉만 보이므로 저장하지 않는다
            whole = (last_date - first_day(ym)).days < self.lookback_days
            record = self._month_range(code, ym, month_bars, memoize=(ym != current_ym and whole))
            if record.min_price > 0 and record.max_price / record.min_price >= self.growth_ratio:
                extreme.append(ym)

        if not extreme:
            return None

        self._remember_months(code, extreme)
        logger.info(f"[{code} {name}] 급등 월 발견: {', '.join(extreme)}")
        return NoSignal(f"급등 월 {extreme[-1]}", suppressed=True)
