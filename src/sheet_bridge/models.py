"""Shared enums and pydantic models for API requests and responses."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from sheet_bridge.workbook_snapshot import WorkbookSnapshot


class TextEncoding(str, Enum):
    """Text encodings supported for delimited text."""

    UTF8 = "utf-8"
    SHIFT_JIS = "shift_jis"
    EUC_JP = "euc-jp"

    @classmethod
    def parse(cls, value: "str | TextEncoding") -> "TextEncoding":
        """Resolve a user-supplied encoding name, tolerating common aliases.

        Args:
            value: Encoding name such as "UTF8", "sjis" or "EUC_JP".

        Returns:
            The matching TextEncoding member.

        Raises:
            ValueError: If the name does not denote a supported encoding.
        """
        if isinstance(value, cls):
            return value
        key = value.strip().lower().replace("-", "").replace("_", "")
        aliases = {
            "utf8": cls.UTF8,
            "shiftjis": cls.SHIFT_JIS,
            "sjis": cls.SHIFT_JIS,
            "cp932": cls.SHIFT_JIS,
            "eucjp": cls.EUC_JP,
        }
        if key not in aliases:
            supported = ", ".join(member.value for member in cls)
            raise ValueError(
                f"Unsupported encoding: {value}. Must be one of: {supported}"
            )
        return aliases[key]


class EncodingConfidence(str, Enum):
    """How certain the encoding detector is about its answer."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FileKind(str, Enum):
    """Accepted input file families, keyed by extension."""

    XLSX = ".xlsx"
    XLS = ".xls"
    CSV = ".csv"

    @property
    def is_binary(self) -> bool:
        return self is not FileKind.CSV


class ExportFormat(str, Enum):
    """Formats a snapshot can be saved as."""

    XLSX = "xlsx"
    CSV = "csv"
    PDF = "pdf"

    @property
    def clears_dirty(self) -> bool:
        """Whether saving in this format counts as persisting the document.

        A PDF is a print rendition and cannot be reopened, so it leaves
        unsaved edits flagged.
        """
        return self is not ExportFormat.PDF


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: str
    version: str


class EncodingInfo(BaseModel):
    """Encoding detected for an imported text file."""

    encoding: TextEncoding = Field(..., description="Detected text encoding")
    confidence: EncodingConfidence = Field(..., description="Detector confidence")
    has_bom: bool = Field(..., description="Whether a UTF-8 BOM was present")


class ImportResponse(BaseModel):
    """Response model for the workbook import endpoint."""

    filename: str = Field(..., description="Original filename of the upload")
    file_kind: FileKind = Field(..., description="Accepted file family")
    file_size: int = Field(..., description="Size of the upload in bytes")
    detected_encoding: EncodingInfo | None = Field(
        default=None,
        description="Encoding used to read a CSV upload; absent for binary formats",
    )
    snapshot: WorkbookSnapshot = Field(
        ..., description="Workbook snapshot for the spreadsheet engine"
    )


class ExportRequest(BaseModel):
    """Request body for the workbook export endpoint."""

    snapshot: WorkbookSnapshot = Field(..., description="Snapshot to serialize")
    sheet_id: str | None = Field(
        default=None,
        description="Sheet to export as CSV (defaults to the first sheet)",
    )
    encoding: TextEncoding | None = Field(
        default=None,
        description="CSV encoding (defaults to the configured encoding)",
    )


class ErrorDetail(BaseModel):
    """Error detail model for API error responses."""

    detail: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code (e.g., 'E1001')",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details for debugging",
    )
    request_id: str | None = Field(
        default=None,
        description="Request ID for error correlation",
    )
