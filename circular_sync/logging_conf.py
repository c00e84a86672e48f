"""Logging setup: structlog events rendered as JSON lines by stdlib handlers."""

from __future__ import annotations

import logging
import logging.config
from collections import deque
from pathlib import Path
from typing import Any

import structlog

ROOT_LOGGER = "circular_sync"
SYNC_LOG = "sync.log"
ERROR_LOG = "error.log"
# The worker runs unattended for months, so file logs rotate
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3

_configured = False


def _rotating_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "filename": str(path),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": LOG_BACKUPS,
        "formatter": "json",
        "encoding": "utf-8",
    }


def _dict_config(level: str, log_dir: Path) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
            }
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "sync_file": _rotating_handler(log_dir / SYNC_LOG, "INFO"),
            "error_file": _rotating_handler(log_dir / ERROR_LOG, "ERROR"),
        },
        "loggers": {
            ROOT_LOGGER: {
                "handlers": ["console", "sync_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Wire structlog to the stdlib handlers once and return the root logger.

    ``log_dir`` defaults to ``./logs``; both log files are created up front so
    ``circular-sync logs`` has something to read on a fresh install.
    """

    global _configured
    log_dir = Path(log_dir) if log_dir is not None else Path.cwd() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    for name in (SYNC_LOG, ERROR_LOG):
        (log_dir / name).touch(exist_ok=True)

    if not _configured:
        logging.config.dictConfig(_dict_config("DEBUG" if verbose else "INFO", log_dir))
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _configured = True
    return structlog.get_logger(ROOT_LOGGER)


def component_logger(component: str) -> structlog.BoundLogger:
    """Logger for one pipeline stage (fetcher, extractor, scheduler, ...)."""

    return structlog.get_logger(f"{ROOT_LOGGER}.{component}").bind(component=component)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return list(deque(stream, maxlen=line_count))


__all__ = [
    "ERROR_LOG",
    "SYNC_LOG",
    "component_logger",
    "configure_logging",
    "tail_log",
]
