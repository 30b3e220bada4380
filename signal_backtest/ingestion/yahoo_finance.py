"""
Yahoo Finance 시세 제공자

[ 역할 ]
    core/data_provider.py::MarketDataProvider 구현체.
    A주 종목 코드(6자리)를 Yahoo 심볼로 바꿔 일봉을 받아온다.

[ 종목 코드 → Yahoo 심볼 ]
    6, 9 로 시작    → .SS (상하이)
    0, 2, 3 으로 시작 → .SZ (선전)
    4, 8 로 시작    → .BJ (베이징)
    이미 접미사가 있으면 그대로 사용

[ 실패 처리 ]
    재시도 후에도 실패하면 빈 DataFrame 반환 ("데이터 없음")
"""
import logging
import time
from datetime import date, timedelta
from typing import Any, Optional

import pandas as pd
import yfinance as yf

from signal_backtest.core.data_provider import MarketDataProvider, empty_bars, normalize_bars

logger = logging.getLogger("signal_backtest.ingestion")

_EXCHANGE_SUFFIX = {
    "6": ".SS", "9": ".SS",
    "0": ".SZ", "2": ".SZ", "3": ".SZ",
    "4": ".BJ", "8": ".BJ",
}


def to_yahoo_symbol(code: str) -> str:
    """A주 종목 코드를 Yahoo 심볼로 변환. 알 수 없는 접두는 그대로 반환."""
    if "." in code or not code:
        return code
    return code + _EXCHANGE_SUFFIX.get(code[0], "")


def validate_data(df: pd.DataFrame, symbol: str) -> pd.DataFrame:
    """수집한 데이터 검증. 가격이 0 이하이거나 고가 < 저가인 행은 제외."""
    price_columns = ["open", "high", "low", "close"]

    null_rows = df[price_columns + ["volume"]].isnull().any(axis=1)
    if null_rows.any():
        logger.warning(f"NULL 값 제외 ({symbol}): {int(null_rows.sum())}행")
        df = df[~null_rows]

    invalid_price = (df[price_columns] <= 0).any(axis=1)
    if invalid_price.any():
        logger.warning(f"가격 0 이하 제외 ({symbol}): {int(invalid_price.sum())}행")
        df = df[~invalid_price]

    invalid_range = df["high"] < df["low"]
    if invalid_range.any():
        logger.warning(f"고가 < 저가 제외 ({symbol}): {int(invalid_range.sum())}행")
        df = df[~invalid_range]

    if (df["volume"] < 0).any():
        logger.warning(f"음수 거래량 제외 ({symbol}): {int((df['volume'] < 0).sum())}행")
        df = df[df["volume"] >= 0]

    return df


class YahooFinanceProvider(MarketDataProvider):
    """yfinance 기반 시세 제공자.

    사용 예:
        provider = YahooFinanceProvider(max_retries=3, retry_delay=5)
        bars = provider.fetch_all_bars("600000", "浦发银行")
    """

    def __init__(self, max_retries: int = 3, retry_delay: float = 5, sleep=time.sleep):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    def _history(self, symbol: str, **kwargs) -> pd.DataFrame:
        for attempt in range(self.max_retries):
            try:
                logger.info(f"{symbol} 조회 {kwargs} (시도 {attempt + 1}/{self.max_retries})")
                df = yf.Ticker(symbol).history(auto_adjust=False, actions=False, **kwargs)
                return self._standardize(df, symbol)
            except Exception as e:
                logger.error(f"{symbol} 조회 실패 (시도 {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    self._sleep(self.retry_delay)
        logger.error(f"최대 재시도 도달: {symbol}")
        return empty_bars()

    @staticmethod
    def _standardize(df: Optional[pd.DataFrame], symbol: str) -> pd.DataFrame:
        if df is None or df.empty:
            logger.warning(f"데이터 없음: {symbol}")
            return empty_bars()

        df = df.reset_index().rename(columns={
            "Date": "date",
            "Open": "open",
            "High": "high",
            "Low": "low",
            "Close": "close",
            "Volume": "volume",
        })
        # 타임존 제거 후 날짜만
        if pd.api.types.is_datetime64_any_dtype(df["date"]):
            df["date"] = df["date"].dt.tz_localize(None) if df["date"].dt.tz is not None else df["date"]
        df = validate_data(df[["date", "open", "high", "low", "close", "volume"]], symbol)
        return normalize_bars(df)

    def fetch_all_bars(self, code: str, name: str, auth_context: Any = None) -> pd.DataFrame:
        return self._history(to_yahoo_symbol(code), period="max")

    def fetch_recent_bars(
        self,
        code: str,
        name: str,
        auth_context: Any = None,
        window_days: int = 30,
    ) -> pd.DataFrame:
        end = date.today() + timedelta(days=1)  # end는 미포함
        start = end - timedelta(days=window_days * 2)
        bars = self._history(to_yahoo_symbol(code), start=start, end=end)
        return bars.tail(window_days).reset_index(drop=True)
