"""Loguru setup for the scoring engine.

Publication, recalculation, merges and backfills all log through loguru.
The CLI calls ``setup_logging`` once; library code only asks for a bound
logger and prefixes outcome lines with a status tag:

    >>> logger = get_logger(__name__)
    >>> logger.info(f"{SUCCESS} Match 42 published with formula v3")
    >>> logger.warning(f"{WARN} Could not infer batting side from 'XI', assuming away")
    >>> logger.error(f"{FAIL} Match 42: bowling completion failed")
"""

from __future__ import annotations

import inspect
import logging
import sys
from pathlib import Path
from typing import Any

from loguru import logger

SUCCESS = "\033[92m[SUCCESS]\033[0m"
FAIL = "\033[91m[FAIL]\033[0m"
WARN = "\033[93m[WARN]\033[0m"

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> | "
    "<level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{line} | {message}"

# SQLAlchemy logs every statement at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


class InterceptHandler(logging.Handler):
    """Forward stdlib records (SQLAlchemy, typer) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip the logging module's own frames so {line} points at the caller
        frame, depth = inspect.currentframe(), 0
        while frame is not None and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.bind(name=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path = "logs",
    rotation: str = "1 day",
    retention: str = "30 days",
    serialize: bool = True,
) -> None:
    """Send logs to stderr and to a daily file under ``log_dir``.

    Args:
        level: Minimum level for both sinks.
        log_dir: Created if missing.
        rotation: Loguru rotation rule for the file sink.
        retention: Loguru retention rule for rotated files.
        serialize: Write the file sink as JSON lines.
    """
    logger.remove()
    logger.configure(extra={"name": "cricket_scoring"})
    logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT, colorize=True)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_path / "cricket_scoring_{time:YYYY-MM-DD}.log",
        level=level,
        format=_FILE_FORMAT,
        rotation=rotation,
        retention=retention,
        serialize=serialize,
        enqueue=True,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    sql_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(sql_level)


def get_logger(name: str) -> Any:
    """Loguru logger carrying ``name`` in ``record["extra"]``."""
    return logger.bind(name=name)


__all__ = ["FAIL", "SUCCESS", "WARN", "get_logger", "logger", "setup_logging"]
