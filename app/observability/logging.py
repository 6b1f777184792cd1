from __future__ import annotations

import enum
import logging
import sys
from pathlib import Path
from typing import Any

import structlog


def configure_logging(level: int | str = logging.INFO, log_path: Path | None = None) -> None:
    """Configure structlog + stdlib logging for JSON output to stdout and, optionally, a file.

    The log file is opened in append mode and its directory is created if missing.
    ``OSError`` from either step propagates: an unusable log destination is a startup fault.
    Calling again replaces the previously installed handlers. Write failures after
    that are reported by ``logging.Handler.handleError`` and never reach the caller.
    """

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    pre_chain: list[Any] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            # Let ProcessorFormatter render JSON for stdlib log records too.
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=pre_chain,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="a", encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    for old in root.handlers:
        if isinstance(old, logging.FileHandler):
            old.close()
    root.handlers = handlers
    root.setLevel(level)

    # Keep uvicorn's own loggers consistent with our handlers.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers = list(handlers)
        logger.propagate = False
        logger.setLevel(level)


class LogLevel(str, enum.Enum):
    INFO = "info"
    WARN = "warning"
    ERROR = "error"


class StructuredLogger:
    """Leveled logger whose bound fields ride along on every record it emits.

    Wraps a structlog bound logger. ``bind`` derives a new logger and leaves the
    receiver untouched, so one logger per request can be handed down a call chain.
    """

    def __init__(self, logger: Any) -> None:
        self._logger = logger

    def bind(self, **fields: Any) -> StructuredLogger:
        return StructuredLogger(self._logger.bind(**fields))

    def log(self, level: LogLevel, message: str, **fields: Any) -> None:
        getattr(self._logger, level.value)(message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.INFO, message, **fields)

    def warn(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.WARN, message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.ERROR, message, **fields)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(structlog.get_logger(name))
