"""Intake checks for uploaded spreadsheet files.

A file is accepted when its extension is one of the supported formats,
its size is within the configured ceiling and, for the binary formats,
its leading bytes carry the container signature the extension implies.
Checks run in that order and stop at the first failure.
"""

from pathlib import PurePath

from sheet_bridge.config import settings
from sheet_bridge.models import FileKind
from sheet_bridge.utils.exceptions import (
    FileTooLargeError,
    FormatMismatchError,
    RejectedFormatError,
)
from sheet_bridge.utils.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "FileValidator",
    "MAGIC_SIGNATURES",
    "get_extension",
]

# Leading bytes of each binary container. CSV has no signature.
MAGIC_SIGNATURES: dict[FileKind, bytes] = {
    # ZIP local file header (Office Open XML package)
    FileKind.XLSX: b"\x50\x4b\x03\x04",
    # OLE2 compound document (BIFF workbook)
    FileKind.XLS: b"\xd0\xcf\x11\xe0",
}


def get_extension(file_name: str) -> str:
    """Return the lowercase extension of a file name, including the dot.

    Only the final suffix counts: ``"report.csv.xlsx"`` yields ``".xlsx"``.
    Names without a suffix yield an empty string.
    """
    return PurePath(file_name).suffix.lower()


class FileValidator:
    """Validates file names, sizes and signatures before reading."""

    def __init__(self, max_size_bytes: int | None = None) -> None:
        """Initialize the validator.

        Args:
            max_size_bytes: Size ceiling in bytes; defaults to the
                configured ``max_file_size_bytes``.
        """
        self.max_size_bytes = (
            max_size_bytes if max_size_bytes is not None else settings.max_file_size_bytes
        )

    @staticmethod
    def get_supported_extensions() -> list[str]:
        return [kind.value for kind in FileKind]

    def validate_extension(self, file_name: str) -> FileKind:
        """Check the file extension against the accepted formats.

        Args:
            file_name: Claimed file name.

        Returns:
            The FileKind for the extension.

        Raises:
            RejectedFormatError: If the extension is missing or unsupported.
        """
        extension = get_extension(file_name)
        try:
            return FileKind(extension)
        except ValueError:
            raise RejectedFormatError(
                extension,
                accepted=self.get_supported_extensions(),
                file_name=file_name,
            ) from None

    def validate_size(self, byte_length: int, file_name: str | None = None) -> None:
        """Check the payload size against the ceiling (inclusive).

        Raises:
            FileTooLargeError: If ``byte_length`` exceeds the ceiling.
        """
        if byte_length > self.max_size_bytes:
            raise FileTooLargeError(
                file_size=byte_length,
                max_size=self.max_size_bytes,
                file_name=file_name,
            )

    def validate_magic_bytes(
        self,
        data: bytes,
        kind: FileKind,
        file_name: str | None = None,
    ) -> None:
        """Check the leading bytes against the signature for ``kind``.

        Text formats have no signature and always pass.

        Raises:
            FormatMismatchError: If the signature does not match.
        """
        expected = MAGIC_SIGNATURES.get(kind)
        if expected is None:
            return
        actual = data[: len(expected)]
        if actual != expected:
            logger.warning(
                "File signature does not match extension",
                extension=kind.value,
                expected=expected.hex(" "),
                actual=actual.hex(" "),
            )
            raise FormatMismatchError(
                kind.value,
                expected_signature=expected,
                actual_signature=actual,
                file_name=file_name,
            )

    def validate_file(self, file_name: str, data: bytes) -> FileKind:
        """Run every intake check in order.

        Args:
            file_name: Claimed file name.
            data: File content.

        Returns:
            The accepted FileKind.

        Raises:
            RejectedFormatError: Unsupported extension.
            FileTooLargeError: Payload over the size ceiling.
            FormatMismatchError: Binary signature mismatch.
        """
        kind = self.validate_extension(file_name)
        self.validate_size(len(data), file_name=file_name)
        if kind.is_binary:
            self.validate_magic_bytes(data, kind, file_name=file_name)

        logger.info(
            "File accepted",
            file_name=file_name,
            kind=kind.value,
            size_bytes=len(data),
        )
        return kind
