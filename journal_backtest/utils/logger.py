"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정. 백테스트 실행 내역, 데이터 경고, 최적화 진행률 등을 기록.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/journal_backtest_20240601.log)

[ 로거 이름 계층 ]
    journal_backtest               ← setup_logger()가 핸들러를 붙이는 루트
      ├── journal_backtest.backtest    (engine.py)
      ├── journal_backtest.simulator   (simulator.py, 체결 내역은 DEBUG)
      ├── journal_backtest.optimizer   (optimizer.py)
      ├── journal_backtest.comparison  (comparison.py)
      └── journal_backtest.data        (market_data.py)
    하위 로거는 핸들러 없이 루트로 전파된다.

[ 호출하는 곳 ]
    - run_backtest.py에서 setup_logger() 호출
    - 각 모듈은 logging.getLogger("journal_backtest.<영역>") 사용
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

ROOT_LOGGER_NAME = "journal_backtest"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    log_dir: str | Path | None = "logs",
    console: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록.

    log_dir가 None이면 파일 핸들러 없이 콘솔만.
    이미 핸들러가 있으면 레벨만 갱신하고 그대로 반환 (중복 출력 방지).

    Raises:
        ValueError: 알 수 없는 로그 레벨
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"알 수 없는 로그 레벨: {level}")

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
