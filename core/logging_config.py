"""
Logging Configuration Module
============================

Centralized logging for the compliance engine.

Features:
- Root level and format set in one place
- Module-specific log level overrides
- Optional JSON lines output for log aggregation
- Context injection (schedule id, report type) for scheduler messages
"""

from __future__ import annotations

import json
import logging
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from core.exceptions import ConfigurationError


# Module-specific log level defaults
MODULE_LOG_LEVELS = {
    # Lifecycle managers - INFO for audit trail
    "core.report_lifecycle": logging.INFO,
    "core.filing_submission": logging.INFO,
    "core.alert_engine": logging.INFO,
    "core.transaction_compliance": logging.INFO,

    # Scheduler runs hourly; INFO is quiet enough
    "core.scheduler": logging.INFO,

    # Collaborator stubs log every lookup at DEBUG
    "core.collaborators": logging.INFO,
    "core.notifications": logging.INFO,
    "core.repository": logging.INFO,

    # HTTP client internals
    "aiohttp": logging.WARNING,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, include_stack: bool = True):
        super().__init__()
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info and self.include_stack:
            entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack": "".join(traceback.format_exception(*record.exc_info)),
            }

        return json.dumps(entry, default=str)


@dataclass
class LoggingConfig:
    """
    Centralized logging configuration.

    Built from the ``logging`` section of config.yaml via ``from_dict``.
    """
    root_level: int = logging.INFO
    format_string: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    module_levels: dict[str, int] = field(default_factory=lambda: MODULE_LOG_LEVELS.copy())
    json_output: bool = False
    log_file: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> LoggingConfig:
        data = data or {}
        module_levels = MODULE_LOG_LEVELS.copy()
        for name, level in (data.get("module_levels") or {}).items():
            module_levels[name] = _to_level(level)

        return cls(
            root_level=_to_level(data.get("level", "INFO")),
            format_string=data.get("format", cls.format_string),
            date_format=data.get("date_format", cls.date_format),
            module_levels=module_levels,
            json_output=bool(data.get("json", False)),
            log_file=data.get("file"),
        )

    def apply(self) -> None:
        """Apply logging configuration to the root logger."""
        root_logger = logging.getLogger()
        root_logger.setLevel(self.root_level)

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        formatter: logging.Formatter
        if self.json_output:
            formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(self.format_string, self.date_format)

        handlers: list[logging.Handler] = [logging.StreamHandler()]
        if self.log_file:
            Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.log_file, encoding="utf-8"))

        for handler in handlers:
            handler.setLevel(self.root_level)
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)

        for module_name, level in list(self.module_levels.items()):
            self.set_module_level(module_name, level)

    def set_module_level(self, module_name: str, level: int) -> None:
        """Set log level for a specific module."""
        self.module_levels[module_name] = level
        logging.getLogger(module_name).setLevel(level)


def _to_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ConfigurationError(f"Unknown log level: {level}")
    return resolved


class ContextLogger:
    """
    Logger with automatic context injection.

    Prefixes every message with ``[key=value | ...]`` and attaches the same
    context to the record for the JSON formatter.
    """

    def __init__(self, logger: logging.Logger, context: dict[str, Any] | None = None):
        self.logger = logger
        self.context = context or {}

    def with_context(self, **kwargs) -> ContextLogger:
        """Create new logger with additional context."""
        return ContextLogger(self.logger, {**self.context, **kwargs})

    @contextmanager
    def temporary_context(self, **kwargs):
        """Temporarily add context for a block of code."""
        old_context = self.context.copy()
        self.context.update(kwargs)
        try:
            yield self
        finally:
            self.context = old_context

    def _format_message(self, message: str) -> str:
        if not self.context:
            return message
        context_str = " | ".join(f"{k}={v}" for k, v in self.context.items())
        return f"[{context_str}] {message}"

    def _log(self, level: int, message: str, **kwargs) -> None:
        extra = {**kwargs.pop("extra", {}), "context": dict(self.context)}
        self.logger.log(level, self._format_message(message), extra=extra, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log at ERROR level with the active exception's traceback."""
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, message, **kwargs)


def configure_logging(config: LoggingConfig | None = None) -> LoggingConfig:
    """
    Configure logging for the compliance engine.

    Args:
        config: Optional custom configuration

    Returns:
        Applied configuration
    """
    if config is None:
        config = LoggingConfig()

    config.apply()

    return config


def get_context_logger(name: str, **context) -> ContextLogger:
    """Get a context logger for a module."""
    return ContextLogger(logging.getLogger(name), context)
