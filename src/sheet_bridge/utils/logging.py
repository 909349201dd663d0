"""Structured logging utilities for sheet-bridge.

This module provides:
- Request ID tracking using contextvars for correlation across an API call
- Document context (file name, operation) attached to every log line
- Structured ``key=value`` logging with a consistent format
- Conversion metrics helpers

Usage:
    from sheet_bridge.utils.logging import get_logger, LogContext

    logger = get_logger(__name__)

    with LogContext(file_name="budget.xlsx", operation="import"):
        logger.info("Reading workbook", sheets=3)
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_extra_context_var: ContextVar[dict[str, Any] | None] = ContextVar(
    "extra_context", default=None
)


def get_request_id() -> str | None:
    """Get the current request ID from context.

    Returns:
        The current request ID or None if not set.
    """
    return _request_id_var.get()


def set_request_id(request_id: str | None) -> None:
    """Set the request ID in context.

    Args:
        request_id: The request ID to set, or None to clear.
    """
    _request_id_var.set(request_id)


def get_extra_context() -> dict[str, Any]:
    """Get additional context from context vars."""
    ctx = _extra_context_var.get()
    return ctx if ctx is not None else {}


def set_extra_context(context: dict[str, Any]) -> None:
    _extra_context_var.set(context)


def clear_context() -> None:
    """Clear all context variables."""
    _request_id_var.set(None)
    _extra_context_var.set(None)


@dataclass
class ConversionMetrics:
    """Counters collected while converting one document.

    Attributes:
        operation: Name of the conversion (e.g. "export_xlsx").
        start_time: When the conversion started.
        end_time: When the conversion ended.
        duration_seconds: Duration in seconds.
        sheets: Number of sheets processed.
        cells: Number of populated cells processed.
        merges: Number of merged regions processed.
        output_bytes: Size of the produced payload.
        custom_metrics: Additional custom metrics.
    """

    operation: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    duration_seconds: float = 0.0
    sheets: int = 0
    cells: int = 0
    merges: int = 0
    output_bytes: int = 0
    custom_metrics: dict[str, Any] = field(default_factory=dict)

    def finish(self) -> None:
        """Mark the conversion as complete and calculate duration."""
        self.end_time = datetime.now(UTC)
        self.duration_seconds = (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging, omitting zero counters."""
        result: dict[str, Any] = {
            "operation": self.operation,
            "duration_seconds": f"{self.duration_seconds:.3f}",
        }
        for name in ("sheets", "cells", "merges", "output_bytes"):
            value = getattr(self, name)
            if value > 0:
                result[name] = value
        if self.custom_metrics:
            result.update(self.custom_metrics)
        return result


class StructuredLogFormatter(logging.Formatter):
    """Log formatter that prefixes records with the active context.

    The request id and any ``LogContext`` values are rendered as
    ``[request_id=... file_name=...]`` in front of the message.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with context information.

        Args:
            record: The log record to format.

        Returns:
            Formatted log message string.
        """
        prefix_parts = []
        request_id = get_request_id()
        if request_id:
            prefix_parts.append(f"request_id={request_id}")
        for key, value in get_extra_context().items():
            prefix_parts.append(f"{key}={value}")

        prefix = f"[{' '.join(prefix_parts)}] " if prefix_parts else ""

        original_msg = record.msg
        record.msg = f"{prefix}{original_msg}"
        try:
            return super().format(record)
        finally:
            record.msg = original_msg


class StructuredLogger:
    """Thin wrapper around ``logging.Logger`` that accepts keyword fields.

    ``logger.info("Exported", sheets=2)`` logs ``"Exported | sheets=2"``.
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)
        self._name = name

    @property
    def logger(self) -> logging.Logger:
        """Access the underlying Python logger."""
        return self._logger

    def _build_message(self, message: str, **kwargs: Any) -> str:
        if not kwargs:
            return message
        parts = [f"{k}={v}" for k, v in kwargs.items()]
        return f"{message} | {', '.join(parts)}"

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._build_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._build_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._build_message(message, **kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._logger.error(self._build_message(message, **kwargs), exc_info=exc_info)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log an error with the active exception's traceback."""
        self._logger.exception(self._build_message(message, **kwargs))

    def log_metrics(self, metrics: ConversionMetrics) -> None:
        """Log conversion metrics.

        Args:
            metrics: Metrics to log.
        """
        self.info(f"Conversion: {metrics.operation}", **metrics.to_dict())

    def log_fetch(
        self,
        resource: str,
        duration_seconds: float,
        size_bytes: int | None = None,
        success: bool = True,
        error_message: str | None = None,
    ) -> None:
        """Log a network fetch of an external asset.

        Args:
            resource: URL or name of the asset.
            duration_seconds: Time taken for the fetch.
            size_bytes: Payload size when the fetch succeeded.
            success: Whether the fetch succeeded.
            error_message: Error message if the fetch failed.
        """
        kwargs: dict[str, Any] = {
            "resource": resource,
            "duration_seconds": f"{duration_seconds:.3f}",
            "success": success,
        }
        if size_bytes is not None:
            kwargs["size_bytes"] = size_bytes
        if error_message:
            kwargs["error"] = error_message

        level = logging.INFO if success else logging.ERROR
        self._logger.log(level, self._build_message("Fetch", **kwargs))


class LogContext:
    """Context manager for adding temporary context to logs.

    Usage:
        with LogContext(file_name="data.csv", operation="import"):
            logger.info("Parsing...")  # includes file_name and operation
    """

    def __init__(self, **kwargs: Any) -> None:
        self._new_context = kwargs
        self._old_context: dict[str, Any] = {}
        self._old_request_id: str | None = None

    def __enter__(self) -> "LogContext":
        self._old_context = get_extra_context().copy()
        self._old_request_id = get_request_id()

        new_context = dict(self._new_context)
        request_id = new_context.pop("request_id", None)
        if request_id is not None:
            set_request_id(request_id)

        merged = self._old_context.copy()
        merged.update(new_context)
        set_extra_context(merged)
        return self

    def __exit__(self, *args: Any) -> None:
        set_extra_context(self._old_context)
        set_request_id(self._old_request_id)


@contextmanager
def timed_operation(
    logger: StructuredLogger,
    operation: str,
) -> Generator[ConversionMetrics, None, None]:
    """Context manager for timing conversions.

    Usage:
        with timed_operation(logger, "export_csv") as metrics:
            metrics.cells = 120

        # Logs: "Conversion: export_csv | operation=export_csv, ..."

    Args:
        logger: Logger to use for output.
        operation: Name of the operation.

    Yields:
        ConversionMetrics instance for tracking.
    """
    metrics = ConversionMetrics(operation=operation)
    try:
        yield metrics
    finally:
        metrics.finish()
        logger.log_metrics(metrics)


def configure_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    use_structured_formatter: bool = True,
) -> None:
    """Configure root logging for the application.

    Args:
        level: Log level (int or string like "INFO").
        format_string: Custom format string (uses default if None).
        use_structured_formatter: Whether to use the structured formatter.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)

    formatter: logging.Formatter
    if use_structured_formatter:
        formatter = StructuredLogFormatter(format_string)
    else:
        formatter = logging.Formatter(format_string)

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        StructuredLogger instance.

    Example:
        logger = get_logger(__name__)
        logger.info("Exported workbook", sheets=2, output_bytes=4096)
    """
    return StructuredLogger(name)
