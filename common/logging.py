"""
JSON 구조화 로깅 설정

ELK/Loki 등 로그 수집 시스템과 연동 가능한 JSON 포맷 로깅을 제공합니다.
SQL 로그(`[SQL] ...`)는 DEBUG 레벨이므로 sql_level로 따로 조정할 수 있습니다.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "powersync-host"
SQL_LOGGER = "database.sqlite3"
QUIET_LOGGERS = ("asyncio", "aiosqlite", "uvicorn.access")


class CustomJsonFormatter(JsonFormatter):
    """JSON 로그 포매터"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['timestamp'] = self.formatTime(record)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = SERVICE_NAME

        # logger.info(..., extra={'database': name}) 로 전달된 DB 이름
        database = getattr(record, 'database', None)
        if database is not None:
            log_record['database'] = database


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
    sql_level: str | None = None,
) -> None:
    """
    로깅 설정

    Args:
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON 포맷 사용 여부 (False면 기본 텍스트 포맷)
        log_file: 로그 파일 경로 (None이면 stdout만 사용)
        sql_level: SQL 실행 로그 레벨 (None이면 level을 따름)
    """
    if json_format:
        formatter = CustomJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=handlers,
        force=True  # 기존 설정 덮어쓰기
    )

    sql_logger = logging.getLogger(SQL_LOGGER)
    sql_logger.setLevel(getattr(logging, sql_level.upper()) if sql_level else logging.NOTSET)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging_from_config(config: dict[str, Any]) -> None:
    """database.yaml의 logging 섹션으로 로깅 설정"""
    log_config = config.get('logging') or {}
    setup_logging(
        level=log_config.get('level', 'INFO'),
        json_format=log_config.get('json_format', True),
        log_file=log_config.get('file'),
        sql_level=log_config.get('sql_level'),
    )
