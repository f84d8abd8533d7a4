"""
로깅 설정 유틸리티

Ledger 프로세스(서비스, 감사 스크립트) 공통 로깅 설정.
- 콘솔: StreamHandler (stdout)
- 파일: TimedRotatingFileHandler, 매일 자정 롤링, 7일 보관
- 파일 레벨은 settings.yaml의 log_level을 따름

사용법:
    from core.logging import setup_logging, setup_logging_from_settings
    setup_logging("ledger")
    setup_logging_from_settings("audit", get_settings().ledger, console_level=logging.WARNING)
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.config.loader import LedgerSettings
from core.constants import Paths


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_BACKUP_COUNT = 7

# 쿼리/이벤트 루프 단위로 로그를 남기는 로거 (WARNING으로 제한)
NOISY_LOGGERS = [
    "aiosqlite",
    "asyncio",
]


def get_log_file_path(process_name: str, log_dir: Path | None = None) -> Path:
    """로그 파일 경로 반환"""
    return (log_dir or Paths.LOGS_DIR) / f"{process_name}.log"


def _daily_file_handler(log_file: Path, level: int, formatter: logging.Formatter) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        filename=log_file,
        when="midnight",
        interval=1,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"  # ledger.log.2026-10-18
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    process_name: str,
    console_level: int = logging.INFO,
    file_level: int = logging.INFO,
    log_dir: Path | None = None,
) -> logging.Logger:
    """루트 로거 초기화

    여러 번 호출해도 핸들러가 중복되지 않음 (기존 핸들러 제거 후 재설정).

    Args:
        process_name: 프로세스 이름 (로그 파일명)
        console_level: 콘솔 로그 레벨
        file_level: 파일 로그 레벨
        log_dir: 로그 디렉토리 (None이면 Paths.LOGS_DIR)

    Returns:
        설정된 루트 Logger
    """
    log_dir = log_dir or Paths.LOGS_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = get_log_file_path(process_name, log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(min(console_level, file_level))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_daily_file_handler(log_file, file_level, formatter))

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.info(
        f"로깅 초기화 완료: {process_name}",
        extra={
            "console": logging.getLevelName(console_level),
            "file": str(log_file),
            "file_level": logging.getLevelName(file_level),
        },
    )
    return root_logger


def setup_logging_from_settings(
    process_name: str,
    settings: LedgerSettings,
    console_level: int | None = None,
    log_dir: Path | None = None,
) -> logging.Logger:
    """settings.yaml의 log_level로 로깅 초기화

    console_level을 생략하면 콘솔도 log_level을 따름.
    """
    level = settings.log_level_value
    return setup_logging(
        process_name,
        console_level=level if console_level is None else console_level,
        file_level=level,
        log_dir=log_dir,
    )
