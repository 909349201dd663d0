"""Utilities package for sheet-bridge.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
- A single-flight lazy loader (single_flight.py)
"""

from sheet_bridge.utils.exceptions import (
    ConfigurationError,
    ErrorCode,
    ExternalResourceError,
    FileError,
    HTTPStatusMixin,
    ParseError,
    SessionError,
    SheetBridgeError,
)
from sheet_bridge.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)
from sheet_bridge.utils.single_flight import SingleFlight

__all__ = [
    # Exceptions
    "ConfigurationError",
    "ErrorCode",
    "ExternalResourceError",
    "FileError",
    "HTTPStatusMixin",
    "ParseError",
    "SessionError",
    "SheetBridgeError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
    # Loading
    "SingleFlight",
]
