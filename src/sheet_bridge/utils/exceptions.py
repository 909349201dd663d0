"""Centralized exception classes for sheet-bridge.

Every failure surfaced by the conversion core carries one human-readable
message, a stable error code and the HTTP status used when the failure
crosses the local API.

Exception Hierarchy:
    SheetBridgeError (base)
    ├── FileError
    │   ├── RejectedFormatError
    │   ├── FileTooLargeError
    │   ├── FormatMismatchError
    │   ├── ParseError
    │   └── EncodingError
    ├── SessionError
    │   ├── NoDocumentError
    │   └── DocumentBusyError
    ├── ExternalResourceError
    └── ConfigurationError

Error Codes:
    All errors have a unique error code (e.g., "E1001") that callers can
    match on instead of parsing messages.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used in the application.

    Error codes are grouped by category:
    - E1xxx: File/document errors
    - E3xxx: Document session errors
    - E5xxx: External resource errors
    - E9xxx: Internal/unexpected errors
    """

    # File errors (E1xxx)
    REJECTED_FORMAT = "E1001"
    FILE_TOO_LARGE = "E1002"
    FORMAT_MISMATCH = "E1003"
    PARSE_FAILED = "E1004"
    ENCODING_ERROR = "E1005"

    # Session errors (E3xxx)
    NO_DOCUMENT = "E3001"
    DOCUMENT_BUSY = "E3002"

    # External resource errors (E5xxx)
    EXTERNAL_RESOURCE_FAILED = "E5001"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"
    CONFIGURATION_ERROR = "E9002"


class HTTPStatusMixin:
    """Mixin that provides HTTP status code for exceptions.

    Subclasses set the `http_status` class attribute.
    """

    http_status: int = 500


class SheetBridgeError(Exception, HTTPStatusMixin):
    """Base exception for all sheet-bridge errors.

    Attributes:
        message: Human-readable error message.
        error_code: Unique error code from ErrorCode enum.
        details: Optional dictionary with additional error details.
        http_status: HTTP status code for API responses (default 500).
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Error code from ErrorCode enum.
            details: Optional additional details about the error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for API responses.

        Returns:
            Dictionary with error information.
        """
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# File Errors (E1xxx)
# =============================================================================


class FileError(SheetBridgeError):
    """Base class for errors tied to an uploaded file."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.PARSE_FAILED,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with file name information.

        Args:
            message: Error message.
            error_code: Error code.
            file_name: Name of the problematic file.
            details: Additional details.
        """
        details = details or {}
        if file_name:
            details["file_name"] = file_name
        super().__init__(message, error_code, details)
        self.file_name = file_name


class RejectedFormatError(FileError):
    """Raised when the file extension is not one of the accepted formats."""

    http_status: int = 415

    def __init__(
        self,
        extension: str,
        accepted: list[str] | None = None,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with extension information.

        Args:
            extension: The rejected extension (may be empty).
            accepted: Accepted extensions, listed in the message.
            file_name: Optional file name.
            details: Additional details.
        """
        details = details or {}
        details["extension"] = extension
        accepted = accepted or []
        if accepted:
            details["accepted_extensions"] = accepted
        shown = extension or "(none)"
        message = f"Unsupported file format: {shown}"
        if accepted:
            message += f" (accepted: {', '.join(accepted)})"
        super().__init__(
            message=message,
            error_code=ErrorCode.REJECTED_FORMAT,
            file_name=file_name,
            details=details,
        )
        self.extension = extension


class FileTooLargeError(FileError):
    """Raised when a file exceeds the maximum allowed size."""

    http_status: int = 413

    def __init__(
        self,
        file_size: int,
        max_size: int,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with size information.

        Args:
            file_size: Actual file size in bytes.
            max_size: Maximum allowed size in bytes.
            file_name: Optional file name.
            details: Additional details.
        """
        details = details or {}
        details["file_size_bytes"] = file_size
        details["max_size_bytes"] = max_size
        message = (
            f"File size ({file_size} bytes) exceeds maximum "
            f"allowed size ({max_size} bytes)"
        )
        super().__init__(
            message=message,
            error_code=ErrorCode.FILE_TOO_LARGE,
            file_name=file_name,
            details=details,
        )
        self.file_size = file_size
        self.max_size = max_size


class FormatMismatchError(FileError):
    """Raised when the leading bytes do not match the claimed extension."""

    http_status: int = 400

    def __init__(
        self,
        extension: str,
        expected_signature: bytes,
        actual_signature: bytes,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with signature information.

        Args:
            extension: The claimed extension.
            expected_signature: Signature the extension requires.
            actual_signature: Leading bytes that were found.
            file_name: Optional file name.
            details: Additional details.
        """
        details = details or {}
        details["extension"] = extension
        details["expected_signature"] = expected_signature.hex(" ")
        details["actual_signature"] = actual_signature.hex(" ")
        super().__init__(
            message=(
                f"File content does not match its {extension} extension; "
                "the file may be corrupted or mislabeled"
            ),
            error_code=ErrorCode.FORMAT_MISMATCH,
            file_name=file_name,
            details=details,
        )
        self.extension = extension


class ParseError(FileError):
    """Raised when a binary spreadsheet payload cannot be parsed."""

    http_status: int = 422

    def __init__(
        self,
        message: str,
        file_type: str | None = None,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with file type.

        Args:
            message: Error message.
            file_type: Format being parsed (e.g. "xlsx").
            file_name: Optional file name.
            details: Additional details.
        """
        details = details or {}
        if file_type:
            details["file_type"] = file_type
        super().__init__(
            message=message,
            error_code=ErrorCode.PARSE_FAILED,
            file_name=file_name,
            details=details,
        )
        self.file_type = file_type


class EncodingError(FileError):
    """Raised when text cannot be represented in the target encoding."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        encoding: str | None = None,
        file_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with encoding information.

        Args:
            message: Error message.
            encoding: The encoding that caused the error.
            file_name: Optional file name.
            details: Additional details.
        """
        details = details or {}
        if encoding:
            details["encoding"] = encoding
        super().__init__(
            message=message,
            error_code=ErrorCode.ENCODING_ERROR,
            file_name=file_name,
            details=details,
        )
        self.encoding = encoding


# =============================================================================
# Session Errors (E3xxx)
# =============================================================================


class SessionError(SheetBridgeError):
    """Base class for document session errors."""

    http_status: int = 400


class NoDocumentError(SessionError):
    """Raised when saving while no document is loaded."""

    http_status: int = 404

    def __init__(self, message: str = "No workbook data to save") -> None:
        super().__init__(message, ErrorCode.NO_DOCUMENT)


class DocumentBusyError(SessionError):
    """Raised when an open or save overlaps another on the same session."""

    http_status: int = 409

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Cannot {operation} while another file operation is in progress",
            ErrorCode.DOCUMENT_BUSY,
            {"operation": operation},
        )
        self.operation = operation


# =============================================================================
# External Resource Errors (E5xxx)
# =============================================================================


class ExternalResourceError(SheetBridgeError):
    """Raised when a required external asset (e.g. the PDF font) fails to load."""

    http_status: int = 502

    def __init__(
        self,
        message: str,
        resource: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with resource information.

        Args:
            message: Error message.
            resource: Identifier of the asset (URL or name).
            status_code: HTTP status returned when fetching, if any.
            details: Additional details.
        """
        details = details or {}
        if resource:
            details["resource"] = resource
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, ErrorCode.EXTERNAL_RESOURCE_FAILED, details)
        self.resource = resource
        self.status_code = status_code


# =============================================================================
# Internal Errors (E9xxx)
# =============================================================================


class ConfigurationError(SheetBridgeError):
    """Raised when a runtime capability required for an operation is missing."""

    http_status: int = 500

    def __init__(
        self,
        capability: str,
        encoding: str | None = None,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the missing capability.

        Args:
            capability: Name of the missing capability (e.g. a codec).
            encoding: Target encoding the capability was needed for.
            message: Optional custom message.
            details: Additional details.
        """
        details = details or {}
        details["capability"] = capability
        if encoding:
            details["encoding"] = encoding
        if message is None:
            message = f"Required capability '{capability}' is not available"
            if encoding:
                message += f" for encoding {encoding}"
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)
        self.capability = capability
        self.encoding = encoding
