"""
Logging configuration for Quote Vault.

Console output is coloured when attached to a terminal. With file logging on,
everything at DEBUG goes to a dated log and to a size-rotated debug.log in the
data directory. Audit-style helpers write business events, errors and render
timings to their own named loggers so they can be filtered out of the files.
"""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from quote_core.paths import app_paths


CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'

DEBUG_LOG_MAX_BYTES = 10 * 1024 * 1024
DEBUG_LOG_BACKUPS = 5

# Third-party loggers that are only interesting when something goes wrong
NOISY_LOGGERS = ('PySide6', 'sqlalchemy', 'reportlab', 'urllib3', 'PIL', 'pdfminer')

BUSINESS_LOGGER = 'business'
ERRORS_LOGGER = 'errors'
PERFORMANCE_LOGGER = 'performance'


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, fmt=None, datefmt=None, use_color: bool = True):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    def format(self, record):
        color = self.COLORS.get(record.levelname) if self.use_color else None
        if not color:
            return super().format(record)
        # File handlers see the same record, so colour a copy
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _file_handlers(logs_dir: Path) -> List[logging.Handler]:
    """Dated log plus rotating debug.log, both at DEBUG."""
    formatter = logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    daily = logging.FileHandler(
        logs_dir / f"quote_vault_{datetime.now().strftime('%Y%m%d')}.log", encoding='utf-8')
    debug = logging.handlers.RotatingFileHandler(
        logs_dir / "debug.log",
        maxBytes=DEBUG_LOG_MAX_BYTES,
        backupCount=DEBUG_LOG_BACKUPS,
        encoding='utf-8'
    )
    for handler in (daily, debug):
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(formatter)
    return [daily, debug]


def setup_logging(log_level=logging.INFO, enable_file_logging=True,
                  logs_dir: Optional[Path] = None):
    """
    Configure the root logger for the application.

    Args:
        log_level: Level for console output (default: INFO)
        enable_file_logging: Also write DEBUG and up to log files (default: True)
        logs_dir: Log directory override; defaults to the data directory's logs/

    Returns:
        The root logger
    """
    root = logging.getLogger()
    root.setLevel(min(log_level, logging.DEBUG) if enable_file_logging else log_level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)
    console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt='%H:%M:%S',
                                          use_color=sys.stdout.isatty()))
    root.addHandler(console)

    if enable_file_logging:
        logs_dir = Path(logs_dir) if logs_dir else app_paths.logs_dir
        logs_dir.mkdir(parents=True, exist_ok=True)
        for handler in _file_handlers(logs_dir):
            root.addHandler(handler)
        root.info(f"Logging to {logs_dir}")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


def get_logger(name):
    return logging.getLogger(name)


def log_business_operation(operation, details=None, user_id=None):
    """Record a quotation lifecycle event (created, sent, archived...)."""
    message = f"BUSINESS {operation.upper()}"
    if user_id:
        message += f" (User: {user_id})"
    if details:
        message += f" - {details}"
    get_logger(BUSINESS_LOGGER).info(message)


def log_error(error, context=None, user_id=None):
    """Log an exception with what was being attempted; call from an except block."""
    message = f"ERROR: {error}"
    if context:
        message += f" | Context: {context}"
    if user_id:
        message += f" | User: {user_id}"
    get_logger(ERRORS_LOGGER).error(message, exc_info=True)


def log_performance(operation, duration_ms, details=None):
    message = f"PERFORMANCE: {operation} took {duration_ms:.2f}ms"
    if details:
        message += f" | {details}"
    get_logger(PERFORMANCE_LOGGER).info(message)
