"""
Structured logging for fieldrules.

JSON logs for production, readable logs for development.
Every entry carries a level, a category and the name of the component
that produced it (the "source"), plus any context set with set_context().

Usage:
    from fieldrules.logger import StructuredLogger, LoggingLevel, LoggingCategory

    log = StructuredLogger("fieldrules")
    log.set_context(value_host="email")
    log.log("Condition raised", LoggingLevel.ERROR, LoggingCategory.VALIDATION, "Validator")
    log.warning("Merge skipped", error_code="RequireText")
"""

import json
import logging
import os
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

from fieldrules.settings import get_settings


_extra_context_var: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
    'fieldrules_extra_context', default=None
)


class LoggingLevel(IntEnum):
    """Severity of a log entry. Ordered so that comparisons work."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR

    @classmethod
    def from_name(cls, name: str, default: "LoggingLevel" = None) -> "LoggingLevel":
        try:
            return cls[str(name).upper()]
        except KeyError:
            return default if default is not None else cls.INFO


class LoggingCategory(str, Enum):
    """What part of the engine a log entry is about."""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    RESULT = "result"
    EXCEPTION = "exception"
    MERGE = "merge"
    INFO = "info"


class StructuredLogger:
    """
    Structured logger with JSON and readable output.

    Features:
    - JSON output for production (LOG_FORMAT=json or logging.format: json)
    - Readable output for development (default)
    - Context (set_context) attached to every entry
    - log(message, level, category, source) sink used by the engine
    """

    def __init__(self, name: str, min_level: Optional[LoggingLevel] = None):
        self.name = name
        self.logger = logging.getLogger(name)
        if min_level is None:
            min_level = LoggingLevel.from_name(
                get_settings().get_nested("logging.level", "INFO")
            )
        self.min_level = min_level

        if not self.logger.handlers:
            self._setup_logger()

    def _setup_logger(self) -> None:
        """Configure the stdlib logger from settings and environment"""
        self.logger.setLevel(int(self.min_level))

        handler = logging.StreamHandler()
        handler.setLevel(int(self.min_level))

        if self._should_use_json():
            formatter = logging.Formatter("%(message)s")
        else:
            formatter = logging.Formatter(
                "[%(asctime)s] %(levelname)s - %(message)s",
                datefmt="%H:%M:%S"
            )

        handler.setFormatter(formatter)
        self.logger.addHandler(handler)

    @property
    def _extra_context(self) -> Dict[str, Any]:
        """Context-local extra context"""
        ctx = _extra_context_var.get()
        if ctx is None:
            ctx = {}
            _extra_context_var.set(ctx)
        return ctx

    def set_context(self, **kwargs: Any) -> None:
        """Set extra context (context-local)"""
        ctx = dict(self._extra_context)
        ctx.update(kwargs)
        _extra_context_var.set(ctx)

    def clear_context(self) -> None:
        """Clear extra context"""
        _extra_context_var.set({})

    def is_enabled_for(self, level: LoggingLevel) -> bool:
        """Callers check this before building expensive messages."""
        return level >= self.min_level

    def _format_structured(self, level: str, message: str, **kwargs: Any) -> Dict[str, Any]:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "logger": self.name,
            "message": message,
        }
        if self._extra_context:
            log_entry.update(self._extra_context)
        if kwargs:
            log_entry.update(kwargs)
        return log_entry

    def _should_use_json(self) -> bool:
        log_format = os.environ.get(
            "LOG_FORMAT", get_settings().get_nested("logging.format", "readable")
        )
        return log_format == "json"

    def _log(self, level: LoggingLevel, message: str, **kwargs: Any) -> None:
        if not self.is_enabled_for(level):
            return
        if self._should_use_json():
            structured = self._format_structured(level.name, message, **kwargs)
            self.logger.log(int(level), json.dumps(structured, ensure_ascii=False, default=str))
            return

        extras = dict(self._extra_context)
        extras.update(kwargs)
        if extras:
            details = ", ".join(f"{k}={v}" for k, v in extras.items())
            message = f"{message} [{details}]"
        self.logger.log(int(level), message)

    def log(
        self,
        message: str,
        level: LoggingLevel,
        category: LoggingCategory = LoggingCategory.INFO,
        source: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """
        Engine logging sink.

        Args:
            message: Text of the entry
            level: LoggingLevel
            category: LoggingCategory of the entry
            source: Name of the class or component producing the entry
            **kwargs: Extra structured fields
        """
        if source:
            kwargs["source"] = source
        kwargs["category"] = LoggingCategory(category).value
        self._log(LoggingLevel(level), message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message"""
        self._log(LoggingLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message"""
        self._log(LoggingLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message"""
        self._log(LoggingLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message"""
        self._log(LoggingLevel.ERROR, message, **kwargs)

    def exception(self, message: str, error: BaseException, **kwargs: Any) -> None:
        """Log an exception caught by the engine"""
        kwargs.setdefault("error_type", type(error).__name__)
        kwargs.setdefault("category", LoggingCategory.EXCEPTION.value)
        self._log(LoggingLevel.ERROR, f"{message}: {error}", **kwargs)


def create_logger(name: str = "fieldrules", min_level: Optional[LoggingLevel] = None) -> StructuredLogger:
    """Create a logger for one ValidationServices instance"""
    return StructuredLogger(name, min_level)


__all__ = [
    "StructuredLogger",
    "LoggingLevel",
    "LoggingCategory",
    "create_logger",
]
