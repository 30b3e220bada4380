"""
ClickHouse 데이터베이스 스키마 정의 및 연결 관리

[ 테이블 ]
    stock_bars              - 종목 일봉 (code, date) 키, 최신 버전 유지
    stock_list              - 대상 종목 목록
    extreme_growth_months   - 급등 월 (추가만)
    price_range_months      - 월별 최저/최고가 메모
    mock_holdings           - 모의 보유 기록 (매도 시 새 버전으로 갱신)
    run_counter             - 백테스트 실행 회차
    backtest_results        - 백테스트 실행 결과 요약
    stock_recommendations   - 실전 추천 종목

    갱신이 필요한 테이블은 ReplacingMergeTree(버전 컬럼)로 만들고,
    조회 시 FINAL로 최신 버전만 읽는다.
"""
import logging

import clickhouse_connect
from clickhouse_connect.driver import Client
from clickhouse_connect.driver.exceptions import OperationalError

logger = logging.getLogger("signal_backtest.clickhouse")

TABLES = {
    "stock_bars": """
    CREATE TABLE IF NOT EXISTS stock_bars (
        code String,
        date Date,
        open Float64,
        high Float64,
        low Float64,
        close Float64,
        volume UInt64,
        updated_at DateTime64(3) DEFAULT now64(3)
    )
    ENGINE = ReplacingMergeTree(updated_at)
    PARTITION BY toYear(date)
    ORDER BY (code, date)
    """,
    "stock_list": """
    CREATE TABLE IF NOT EXISTS stock_list (
        code String,
        name String,
        updated_at DateTime64(3) DEFAULT now64(3)
    )
    ENGINE = ReplacingMergeTree(updated_at)
    ORDER BY code
    """,
    "extreme_growth_months": """
    CREATE TABLE IF NOT EXISTS extreme_growth_months (
        stock_code String,
        year_month String
    )
    ENGINE = ReplacingMergeTree()
    ORDER BY (stock_code, year_month)
    """,
    "price_range_months": """
    CREATE TABLE IF NOT EXISTS price_range_months (
        stock_code String,
        year_month String,
        min_price Float64,
        max_price Float64,
        updated_at DateTime64(3) DEFAULT now64(3)
    )
    ENGINE = ReplacingMergeTree(updated_at)
    ORDER BY (stock_code, year_month)
    """,
    "mock_holdings": """
    CREATE TABLE IF NOT EXISTS mock_holdings (
        id UInt64,
        stock_code String,
        stock_name String,
        buy_price Float64,
        amount UInt64,
        buy_date Date,
        sell_date Nullable(Date),
        sell_price Nullable(Float64),
        profit Nullable(Float64),
        profit_rate Nullable(Float64),
        fee Nullable(Float64),
        run_generation UInt32,
        strategy_type UInt8,
        version UInt64
    )
    ENGINE = ReplacingMergeTree(version)
    ORDER BY id
    """,
    "run_counter": """
    CREATE TABLE IF NOT EXISTS run_counter (
        name String,
        value UInt64,
        updated_at DateTime64(3) DEFAULT now64(3)
    )
    ENGINE = ReplacingMergeTree(updated_at)
    ORDER BY name
    """,
    "backtest_results": """
    CREATE TABLE IF NOT EXISTS backtest_results (
        run_generation UInt32,
        strategy_type UInt8,
        start_date Date,
        end_date Date,
        transaction_count UInt32,
        total_profit Float64,
        created_at DateTime DEFAULT now()
    )
    ENGINE = MergeTree()
    ORDER BY run_generation
    """,
    "stock_recommendations": """
    CREATE TABLE IF NOT EXISTS stock_recommendations (
        date Date,
        strategy_type UInt8,
        code String,
        name String,
        last_price Float64,
        created_at DateTime DEFAULT now()
    )
    ENGINE = MergeTree()
    ORDER BY (date, strategy_type, code)
    """,
}


def get_client(
    host: str = "localhost",
    port: int = 8123,
    database: str = "default",
    user: str = "default",
    password: str = "",
) -> Client:
    """
    ClickHouse 클라이언트 연결 생성

    Args:
        host: ClickHouse 호스트
        port: HTTP 포트 (기본값: 8123)
        database: 데이터베이스 이름
        user: 사용자 이름
        password: 비밀번호
    """
    return clickhouse_connect.get_client(
        host=host,
        port=port,
        database=database,
        username=user,
        password=password,
    )


def initialize_schema(client: Client) -> None:
    """필요한 테이블 생성 (이미 존재하면 무시)"""
    for name, ddl in TABLES.items():
        client.command(ddl)
        logger.debug(f"테이블 확인: {name}")
    logger.info(f"테이블 생성 완료 (또는 이미 존재): {len(TABLES)}개")


def verify_connection(client: Client) -> bool:
    """ClickHouse 연결 검증. 연결 실패는 False, 그 외 오류는 그대로 전파."""
    try:
        return client.command("SELECT 1") == 1
    except OperationalError as e:
        logger.error(f"연결 실패: {e}")
        return False
