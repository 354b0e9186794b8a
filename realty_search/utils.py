"""
Logging setup and time helpers shared by the ranking engine and scripts.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from realty_search import config

PACKAGE_LOGGER = "realty_search"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_CONSOLE_HANDLER = "realty_search.console"
_FILE_HANDLER = "realty_search.file"


def _level(name: str, default: int) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


def _find_handler(logger: logging.Logger, name: str) -> Optional[logging.Handler]:
    return next((h for h in logger.handlers if h.get_name() == name), None)


def init_logger(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach console (and optional file) handlers to the package logger, so every
    realty_search.* module logger (ranking, orchestrator, candidates) writes through them.

    level defaults to REALTY_SEARCH_LOG_LEVEL, log_file to REALTY_SEARCH_LOG_FILE.
    Safe to call repeatedly: the console level is updated, handlers are never duplicated.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)
    fmt = logging.Formatter(LOG_FORMAT)

    console = _find_handler(logger, _CONSOLE_HANDLER)
    if console is None:
        console = logging.StreamHandler()
        console.set_name(_CONSOLE_HANDLER)
        console.setFormatter(fmt)
        logger.addHandler(console)
    console.setLevel(_level(level or config.LOG_LEVEL, logging.INFO))

    log_file = log_file or config.LOG_FILE
    if log_file and _find_handler(logger, _FILE_HANDLER) is None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.set_name(_FILE_HANDLER)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
