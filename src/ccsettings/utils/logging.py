"""Logging setup for ccsettings.

Every module logs through ``logging.getLogger(__name__)``, so all engine
records live under the ``ccsettings`` logger. Nothing is emitted until the
host application configures handlers, either itself or through
``configure_logging``.

Supported formats:
- human: ``2026-10-15 08:30:12 [INFO] ccsettings.utils.atomic_store: ...``
- json: one JSON object per line, machine readable
- debug: human format plus module, function and line number
"""

import json
import logging
import sys
import time
import traceback
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional, TextIO, Union

from ..exceptions import SettingsEngineError

ROOT_LOGGER_NAME = "ccsettings"

# Standard LogRecord attributes; anything else on a record came from ``extra=``
_RESERVED_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class LogLevel(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @classmethod
    def from_string(cls, value: str) -> "LogLevel":
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = [level.value for level in cls]
            raise ValueError(f"Invalid log level '{value}'. Valid values: {valid_values}")

    def to_logging_level(self) -> int:
        return getattr(logging, self.value.upper())


class LogFormat(Enum):
    JSON = "json"
    HUMAN = "human"
    DEBUG = "debug"

    @classmethod
    def from_string(cls, value: str) -> "LogFormat":
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = [fmt.value for fmt in cls]
            raise ValueError(f"Invalid log format '{value}'. Valid values: {valid_values}")


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: value for key, value in vars(record).items()
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")}


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        log_data.update(_extra_fields(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, separators=(",", ":"), default=str)


class HumanFormatter(logging.Formatter):

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class DebugFormatter(logging.Formatter):

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s:%(module)s:%(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        result = super().format(record)

        extra = _extra_fields(record)
        if extra:
            result += " | " + ", ".join(f"{k}={v}" for k, v in extra.items())

        return result


def get_formatter(log_format: Union[str, LogFormat]) -> logging.Formatter:
    if isinstance(log_format, str):
        log_format = LogFormat.from_string(log_format)
    if log_format == LogFormat.JSON:
        return JsonFormatter()
    if log_format == LogFormat.DEBUG:
        return DebugFormatter()
    return HumanFormatter()


def configure_logging(level: Union[str, LogLevel] = LogLevel.WARNING,
                      log_format: Union[str, LogFormat] = LogFormat.HUMAN,
                      stream: Optional[TextIO] = None) -> logging.Logger:
    """Install a single stream handler on the ``ccsettings`` logger.

    Calling it again replaces the handler installed by the previous call,
    so repeated configuration never duplicates output.

    Args:
        level: Minimum level to emit
        log_format: human, json or debug
        stream: Output stream, stderr by default

    Returns:
        The configured ``ccsettings`` logger
    """
    if isinstance(level, str):
        level = LogLevel.from_string(level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.to_logging_level())

    for handler in list(logger.handlers):
        if getattr(handler, "_ccsettings_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(get_formatter(log_format))
    handler._ccsettings_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger


def log_error(logger: logging.Logger, message: str, error: BaseException, **kwargs) -> None:
    """Log an error at ERROR level with the engine's error details attached."""
    extra: Dict[str, Any] = dict(kwargs)
    extra["error_type"] = type(error).__name__
    extra["error_message"] = str(error)
    if isinstance(error, SettingsEngineError):
        extra["error_id"] = error.error_id
        extra["error_code"] = error.error_code
        extra["error_kind"] = error.kind.value
        if error.original_error is not None:
            extra["traceback"] = "".join(traceback.format_exception(
                type(error.original_error), error.original_error, error.original_error.__traceback__))
    logger.error(message, extra=extra)


@contextmanager
def log_operation(logger: logging.Logger, operation: str, **kwargs) -> Iterator[None]:
    """Log the start and duration of an operation at DEBUG level."""
    start_time = time.monotonic()
    logger.debug("Starting %s", operation, extra={"operation": operation, **kwargs})
    try:
        yield
    except Exception:
        duration_ms = (time.monotonic() - start_time) * 1000
        logger.debug("%s failed after %.2fms", operation, duration_ms,
                     extra={"operation": operation, "duration_ms": duration_ms, **kwargs})
        raise
    duration_ms = (time.monotonic() - start_time) * 1000
    logger.debug("%s completed in %.2fms", operation, duration_ms,
                 extra={"operation": operation, "duration_ms": duration_ms, **kwargs})


__all__ = [
    "LogLevel",
    "LogFormat",
    "JsonFormatter",
    "HumanFormatter",
    "DebugFormatter",
    "get_formatter",
    "configure_logging",
    "log_error",
    "log_operation",
]
