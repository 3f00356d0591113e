"""
Logging setup.

Levels: TRACE/DEBUG/INFO/WARNING/ERROR/CRITICAL (FATAL is accepted as an
alias of CRITICAL). Call setup_logging once at startup, then log through
``from loguru import logger``.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Literal, Optional, Union

from loguru import logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "FATAL"]

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level:<8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | "
    "{name}:{function}:{line} - {message} | {extra}"
)

_LEVEL_ALIAS = {"FATAL": "CRITICAL"}


def normalize_level(level: Union[str, LogLevel]) -> str:
    return _LEVEL_ALIAS.get(str(level).upper(), str(level).upper())


def _file_handler(path: Path, *, level: str, retention: str) -> dict:
    return {
        "sink": path,
        "level": level,
        "format": FILE_FORMAT,
        "rotation": "10 MB",
        "retention": retention,
        "compression": "zip",
        "encoding": "utf-8",
    }


def setup_logging(
    console_level: LogLevel = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    file_level: LogLevel = "DEBUG",
) -> None:
    """
    Replace loguru's handlers with a console sink and optional file sinks.

    With a log file, errors are also written to ``<stem>_error<suffix>`` next
    to it and kept longer.
    """
    handlers = [
        {
            "sink": sys.stderr,
            "level": normalize_level(console_level),
            "format": CONSOLE_FORMAT,
            "colorize": True,
        }
    ]

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        error_log_file = log_file.with_name(f"{log_file.stem}_error{log_file.suffix}")
        handlers.append(_file_handler(log_file, level=normalize_level(file_level), retention="30 days"))
        handlers.append(_file_handler(error_log_file, level="ERROR", retention="90 days"))

    logger.configure(handlers=handlers)


__all__ = ["setup_logging", "normalize_level", "logger"]
