"""Structured logging for dochub.

Built on structlog. Every record is rendered as one JSON object per line,
to stderr and, optionally, to a daily file ``hub-YYYY-MM-DD.log``.
Modules get their logger from ``get_logger`` and pass fields as keywords:

    logger = get_logger(__name__)
    logger.info("Documentation job queued", project=name, queuePosition=1)

Records from plain stdlib loggers under ``dochub`` go through the same
processor chain; their ``extra=`` fields end up in the JSON object too.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

ROOT_LOGGER = "dochub"

# Run for both structlog and foreign (stdlib) records.
_SHARED_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
]


def json_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Formatter that renders any record as a single JSON line."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*_SHARED_PROCESSORS, structlog.stdlib.ExtraAdder()],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
    )


def _day(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).strftime("%Y-%m-%d")


class DailyFileHandler(logging.FileHandler):
    """
    Append records to ``<directory>/<prefix>-<UTC date>.log``.

    One stream stays open; it is swapped for a new file when the date of
    an incoming record differs from the current one.
    """

    def __init__(self, directory: str | Path, prefix: str = "hub") -> None:
        self.directory = Path(directory)
        self.prefix = prefix
        self.directory.mkdir(parents=True, exist_ok=True)
        self.day = _day(datetime.now(timezone.utc).timestamp())
        super().__init__(self.path_for_day(self.day), encoding="utf-8", delay=True)

    def path_for_day(self, day: str) -> Path:
        return self.directory / f"{self.prefix}-{day}.log"

    def path_for(self, created: float) -> Path:
        return self.path_for_day(_day(created))

    def emit(self, record: logging.LogRecord) -> None:
        day = _day(record.created)
        if day != self.day:
            self.day = day
            self.baseFilename = os.path.abspath(self.path_for_day(day))
            if self.stream is not None:
                self.stream.close()
                self.stream = None
        super().emit(record)


def configure_logging(level: str = "INFO", log_dir: str | Path | None = None) -> logging.Logger:
    """
    Configure structlog and the ``dochub`` logger tree.

    Safe to call more than once; previous handlers are replaced.

    Args:
        level: Log level name.
        log_dir: Directory for daily log files. None = stderr only.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        # Module loggers are created at import time, before this runs
        cache_logger_on_first_use=False,
    )

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = json_formatter()

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_dir is not None:
        file_handler = DailyFileHandler(log_dir)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.stdlib.get_logger(name)
