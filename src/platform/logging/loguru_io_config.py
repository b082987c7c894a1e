from contextvars import ContextVar
from datetime import datetime, timezone
from enum import StrEnum
import logging
import os
import sys
from typing import TYPE_CHECKING

from loguru import logger as loguru_logger


if TYPE_CHECKING:
    from loguru import Logger as LoguruLogger

from src.platform.config.core_setting import settings
from src.platform.constant.path import LOG_DIR
from src.platform.logging.service_context import get_service_context


# Test runs write next to the test tree
LOG_DIR = os.environ.get('TEST_LOG_DIR', LOG_DIR)

SENSITIVE_KEYWORDS = {
    'password',
    'token',
    'secret',
    'authorization',
    'api_key',
}

# Third-party loggers that are chatty at DEBUG: SSE keep-alive pings, driver internals
QUIET_LOGGERS = {
    'sse_starlette.sse': logging.INFO,
    'aiosqlite': logging.INFO,
    'asyncio': logging.INFO,
    'sqlalchemy.engine': logging.WARNING,
}

chain_start_time_var: ContextVar[float] = ContextVar('chain_start_time_var', default=0)
call_depth_var: ContextVar[int] = ContextVar('call_depth_var', default=0)


class ExtraField(StrEnum):
    SERVICE_CONTEXT = 'service_context'
    CHAIN_START_TIME = 'chain_start_time'
    CALL_TARGET = 'call_target'
    TRACE_ID = 'trace_id'


def default_extra() -> dict[str, str]:
    return {
        ExtraField.SERVICE_CONTEXT: get_service_context(),
        ExtraField.CHAIN_START_TIME: '',
        ExtraField.CALL_TARGET: '',
        ExtraField.TRACE_ID: '',
    }


# (lower bound, level) checked top-down
_HTTP_STATUS_LEVELS = ((500, 'CRITICAL'), (400, 'ERROR'), (300, 'WARNING'), (200, 'SUCCESS'))


def http_status_level(message: str) -> str | None:
    """
    Level for a uvicorn access line, None for any other message.

    A 409 on POST /api/inventory/hold is an ordinary sold-out answer, so
    4xx lines on that route are kept at INFO.

    Format: '127.0.0.1:52100 - "POST /api/inventory/hold HTTP/1.1" 409'
    """
    if ' - "' not in message or ' HTTP/' not in message:
        return None

    parts = message.split('"')
    if len(parts) < 3 or not parts[2].split():
        return None
    try:
        status_code = int(parts[2].split()[0])
    except ValueError:
        return None

    request_line = parts[1].split()
    if status_code == 409 and len(request_line) > 1 and request_line[1].endswith('/hold'):
        return 'INFO'
    for lower_bound, level in _HTTP_STATUS_LEVELS:
        if status_code >= lower_bound:
            return level
    return 'INFO'


_intercept_bound_logger: 'LoguruLogger | None' = None


def _get_intercept_bound_logger() -> 'LoguruLogger':
    global _intercept_bound_logger
    if _intercept_bound_logger is None:
        _intercept_bound_logger = loguru_logger.bind(**default_extra())
    return _intercept_bound_logger


class InterceptHandler(logging.Handler):
    """Route stdlib logging (uvicorn, sqlalchemy, opentelemetry) into loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        message = record.getMessage()
        if record.levelno <= logging.DEBUG and 'Using selector:' in message:
            return

        level: str | int | None = http_status_level(message)
        if level is None:
            try:
                level = loguru_logger.level(record.levelname).name
            except ValueError:
                level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore
            depth += 1

        _get_intercept_bound_logger().opt(depth=depth, exception=record.exc_info).log(
            level, message
        )


io_log_format = ' | '.join(
    (
        f'<c>{{extra[{ExtraField.SERVICE_CONTEXT}]}}</>',
        '<lvl>{level:<8}</>',
        f'<c>{{file}}::{{function}}:{{line}}</>=><y>{{extra[{ExtraField.CALL_TARGET}]}}</>',
        '{message}',
        '<lk>{elapsed}</>',
        f'<lk>{{extra[{ExtraField.CHAIN_START_TIME}]:<18}}</>',
        f'<lk>{{extra[{ExtraField.TRACE_ID}]}}</>',
    )
)

min_log_level = (settings.LOG_LEVEL or ('DEBUG' if settings.DEBUG else 'INFO')).upper()


def _log_file_path() -> str:
    stamp = datetime.now(timezone.utc).strftime('%Y-%m-%d_%H')
    prefix = 'test_' if os.environ.get('TEST_LOG_DIR') else ''
    return f'{LOG_DIR}/{prefix}{stamp}.log'


def _configure(bound: 'LoguruLogger') -> None:
    loguru_logger.remove()  # drop loguru's default stderr sink
    bound.add(sys.stdout, format=io_log_format, level=min_log_level, enqueue=True)

    # Local file only in DEBUG mode; deployed instances ship stdout
    if settings.DEBUG:
        bound.add(
            _log_file_path(),
            format=io_log_format,
            rotation='1 hour',
            retention=settings.LOG_FILE_RETENTION,
            compression='gz',
            enqueue=True,
            level=min_log_level,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


custom_logger = loguru_logger.bind(**default_extra())
_configure(custom_logger)
