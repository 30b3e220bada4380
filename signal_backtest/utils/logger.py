"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정. 모의 매수/매도 체결, 평가 오류 등을 기록.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/signal_backtest_20240601.log)

[ 호출하는 곳 ]
    - run_backtest.py, run_recommend.py에서 setup_logger() 호출
    - 각 모듈은 logging.getLogger("signal_backtest.<영역>") 사용 (부모 로거 핸들러로 전파)
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from signal_backtest.core.errors import ConfigError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str = "signal_backtest",
    level: str = "INFO",
    log_dir: Optional[str] = "logs",
    console: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록.

    log_dir이 None이면 파일 핸들러 없이 콘솔만 사용.
    이미 핸들러가 있으면 레벨만 갱신하고 그대로 반환.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ConfigError(f"알 수 없는 로그 레벨: {level}")

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # 파일 핸들러
    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y%m%d")
        file_handler = logging.FileHandler(log_path / f"{name}_{today}.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # 콘솔 핸들러
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
