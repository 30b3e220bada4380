"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    전략 ID/대상 종목, 백테스트 파라미터, DB 접속, 데이터 수집, 로깅 설정을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    strategy:          → StrategyConfig (전략 ID, 종목 목록, 파라미터 오버라이드)
    backtest:          → BacktestConfig (기간, 최대 보유 수, 수수료율, 시작 금액 등)
    database:          → DatabaseConfig (ClickHouse)
    data_ingestion:    → DataIngestionConfig (Yahoo Finance 재시도 등)
    cache_ttl_seconds: → TTL 캐시 기본 만료 (기본 24시간)
    log_level:         → "INFO" / "DEBUG"
    log_dir:           → 로그 디렉토리 경로

[ 호출하는 곳 ]
    - run_backtest.py, run_recommend.py에서 Config.from_yaml()로 로드
    - backtest/engine.py가 BacktestConfig 사용
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from signal_backtest.core.data_provider import StockInfo
from signal_backtest.core.errors import ConfigError


def _to_date(value: Any, key: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ConfigError(f"날짜 형식 오류: {key}={value!r}") from e


@dataclass
class StrategyConfig:
    """전략 설정. config.yaml의 strategy 섹션에 대응.

    params는 {전략ID: {파라미터: 값}} 형태.
    각 규칙 세트의 DEFAULT_PARAMS가 기본값 역할을 하므로 오버라이드할 값만 지정한다.
    """
    strategy_type: int = 1
    stocks: list[StockInfo] = field(default_factory=list)
    params: dict[int, dict[str, Any]] = field(default_factory=dict)


@dataclass
class BacktestConfig:
    """백테스트 설정. config.yaml의 backtest 섹션에 대응.

    기본값이 없는 필드는 필수. from_dict()는 누락 시 ConfigError.
    """
    start_date: date
    end_date: date
    max_stocks_holds: int
    min_remaining_balance_to_buy: float
    start_balance: float
    fee_rate: float = 0.001
    allow_pyramiding: bool = False
    fee_safe_sizing: bool = False       # True면 수수료까지 현금 안에 들어오도록 매수 수량 축소

    REQUIRED_KEYS = ("start_date", "end_date", "max_stocks_holds", "min_remaining_balance_to_buy", "start_balance")

    def __post_init__(self):
        self.start_date = _to_date(self.start_date, "start_date")
        self.end_date = _to_date(self.end_date, "end_date")
        if self.end_date < self.start_date:
            raise ConfigError(f"종료일({self.end_date})이 시작일({self.start_date})보다 빠릅니다")
        if int(self.max_stocks_holds) <= 0:
            raise ConfigError(f"max_stocks_holds는 1 이상이어야 합니다: {self.max_stocks_holds}")
        if float(self.start_balance) <= 0:
            raise ConfigError(f"start_balance는 0보다 커야 합니다: {self.start_balance}")
        if not 0 <= float(self.fee_rate) < 1:
            raise ConfigError(f"fee_rate 범위 오류: {self.fee_rate}")
        self.max_stocks_holds = int(self.max_stocks_holds)
        self.min_remaining_balance_to_buy = float(self.min_remaining_balance_to_buy)
        self.start_balance = float(self.start_balance)
        self.fee_rate = float(self.fee_rate)
        self.allow_pyramiding = bool(self.allow_pyramiding)
        self.fee_safe_sizing = bool(self.fee_safe_sizing)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BacktestConfig":
        missing = [k for k in cls.REQUIRED_KEYS if data.get(k) is None]
        if missing:
            raise ConfigError(f"backtest 설정 누락: {', '.join(missing)}")
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class DatabaseConfig:
    """데이터베이스 설정. config.yaml의 database 섹션에 대응."""
    host: str = "localhost"
    port: int = 8123
    database: str = "default"
    user: str = "default"
    password: str = ""


@dataclass
class DataIngestionConfig:
    """데이터 수집 설정. config.yaml의 data_ingestion 섹션에 대응."""
    recent_window_days: int = 30
    max_retries: int = 3
    retry_delay: int = 5


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    backtest: BacktestConfig | None = None
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    data_ingestion: DataIngestionConfig = field(default_factory=DataIngestionConfig)
    cache_ttl_seconds: int = 24 * 60 * 60
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"설정 파일 없음: {path}")
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"YAML 파싱 실패: {path}: {e}") from e
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"설정 파일 없음: {path}")
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"JSON 파싱 실패: {path}: {e}") from e
        return cls._from_dict(data or {})

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성."""
        if not isinstance(data, dict):
            raise ConfigError("설정 파일 최상위는 매핑이어야 합니다")

        strategy_data = data.get("strategy") or {}
        database_data = data.get("database") or {}
        data_ingestion_data = data.get("data_ingestion") or {}

        # stocks: [{code, name}] 또는 ["600000"] 형태 모두 허용
        stocks = []
        for item in strategy_data.get("stocks", []):
            if isinstance(item, dict):
                if "code" not in item:
                    raise ConfigError(f"종목 설정에 code 없음: {item}")
                stocks.append(StockInfo(code=str(item["code"]), name=str(item.get("name", ""))))
            else:
                stocks.append(StockInfo(code=str(item), name=""))

        strategy = StrategyConfig(
            strategy_type=int(strategy_data.get("strategy_type", 1)),
            stocks=stocks,
            params={int(k): dict(v or {}) for k, v in (strategy_data.get("params") or {}).items()},
        )

        backtest = None
        if data.get("backtest") is not None:
            backtest = BacktestConfig.from_dict(data["backtest"])

        database = DatabaseConfig(**{
            k: v for k, v in database_data.items()
            if k in DatabaseConfig.__dataclass_fields__
        })
        data_ingestion = DataIngestionConfig(**{
            k: v for k, v in data_ingestion_data.items()
            if k in DataIngestionConfig.__dataclass_fields__
        })

        return cls(
            strategy=strategy,
            backtest=backtest,
            database=database,
            data_ingestion=data_ingestion,
            cache_ttl_seconds=int(data.get("cache_ttl_seconds", 24 * 60 * 60)),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def require_backtest(self) -> BacktestConfig:
        if self.backtest is None:
            raise ConfigError("backtest 섹션이 없습니다")
        return self.backtest

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환 (날짜는 ISO 문자열)."""
        data = asdict(self)
        if self.backtest is not None:
            data["backtest"]["start_date"] = self.backtest.start_date.isoformat()
            data["backtest"]["end_date"] = self.backtest.end_date.isoformat()
        return data

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
