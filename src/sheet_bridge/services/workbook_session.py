"""Open/save sequencing for one document.

A session owns the workbook currently shown in the spreadsheet engine:
its snapshot, where it came from and whether it has unsaved edits.
Opening runs validation, reading and import as one step so that a failure
leaves the previous document untouched. Only one open or save may run at
a time per session.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sheet_bridge.models import ExportFormat, FileKind, TextEncoding
from sheet_bridge.services.encoding_detector import DetectedEncoding
from sheet_bridge.services.export import (
    ExportBlob,
    export_csv,
    export_pdf,
    export_xlsx,
)
from sheet_bridge.services.file_validator import FileValidator
from sheet_bridge.services.font_loader import FontLoader
from sheet_bridge.services.snapshot_importer import (
    create_empty_snapshot,
    import_snapshot,
)
from sheet_bridge.services.tabular_reader import TabularReader
from sheet_bridge.utils.exceptions import (
    DocumentBusyError,
    NoDocumentError,
    SheetBridgeError,
)
from sheet_bridge.utils.logging import get_logger
from sheet_bridge.workbook_snapshot import WorkbookSnapshot

logger = get_logger(__name__)


@dataclass(frozen=True)
class OpenedFile:
    """Origin of the document currently loaded."""

    name: str
    kind: FileKind
    size: int
    detected_encoding: DetectedEncoding | None = None


class WorkbookSession:
    """Current document state plus the open and save operations.

    Attributes:
        snapshot: Snapshot last loaded or pushed back by the engine.
        file: Origin of the loaded document; None for a new workbook.
        dirty: Whether there are edits not yet saved as XLSX or CSV.
        error: Message of the last failed operation, cleared on success.
    """

    def __init__(
        self,
        validator: FileValidator | None = None,
        reader: TabularReader | None = None,
        font_loader: FontLoader | None = None,
    ) -> None:
        self._validator = validator or FileValidator()
        self._reader = reader or TabularReader()
        self._font_loader = font_loader

        self.snapshot: WorkbookSnapshot | None = None
        self.file: OpenedFile | None = None
        self.dirty = False
        self.error: str | None = None

        self._busy_lock = threading.Lock()
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def has_document(self) -> bool:
        return self.snapshot is not None

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        with self._busy_lock:
            if self._busy:
                raise DocumentBusyError(name)
            self._busy = True
        try:
            yield
        finally:
            with self._busy_lock:
                self._busy = False

    def open_file(
        self,
        name: str,
        data: bytes,
        encoding: TextEncoding | str | None = None,
    ) -> bool:
        """Validate, read and import a file as the current document.

        Args:
            name: Original file name; only its extension is used.
            data: File content.
            encoding: CSV encoding override; detected when None.

        Returns:
            True when the file was loaded. On failure ``error`` holds the
            message and the previous document is kept.

        Raises:
            DocumentBusyError: If another open or save is running.
        """
        with self._operation("open a file"):
            try:
                kind = self._validator.validate_file(name, data)
                result = self._reader.read(data, kind, encoding)
                snapshot = import_snapshot(result.document)
            except SheetBridgeError as e:
                self.error = e.message
                logger.warning(
                    "File open failed",
                    file_name=name,
                    error_code=e.error_code.value,
                    kept_previous=self.has_document,
                )
                return False

            self.snapshot = snapshot
            self.file = OpenedFile(
                name=name,
                kind=kind,
                size=len(data),
                detected_encoding=result.detected_encoding,
            )
            self.dirty = False
            self.error = None

        logger.info(
            "File opened",
            file_name=name,
            kind=kind.value,
            sheets=len(snapshot.sheet_order),
        )
        return True

    def new_workbook(self) -> None:
        """Replace the current document with an empty workbook."""
        with self._operation("create a workbook"):
            self.snapshot = create_empty_snapshot()
            self.file = None
            self.dirty = False
            self.error = None
        logger.info("New workbook created")

    def update_snapshot(self, snapshot: WorkbookSnapshot) -> None:
        """Store the engine's current snapshot and mark the document dirty."""
        self.snapshot = snapshot
        self.dirty = True

    def save(
        self,
        export_format: ExportFormat | str,
        encoding: TextEncoding | str | None = None,
        sheet_id: str | None = None,
    ) -> ExportBlob:
        """Serialize the current snapshot.

        Args:
            export_format: ``xlsx``, ``csv`` or ``pdf``.
            encoding: CSV output encoding; the configured default when None.
            sheet_id: Sheet to write as CSV; the first sheet when None.

        Returns:
            The serialized file.

        Raises:
            NoDocumentError: If nothing is loaded.
            DocumentBusyError: If another open or save is running.
            SheetBridgeError: Whatever the export adapter raises; ``error``
                is set to its message and ``dirty`` is left unchanged.
        """
        export_format = ExportFormat(export_format)
        with self._operation(f"save as {export_format.value.upper()}"):
            if self.snapshot is None:
                error = NoDocumentError()
                self.error = error.message
                raise error

            try:
                if export_format is ExportFormat.XLSX:
                    blob = export_xlsx(self.snapshot)
                elif export_format is ExportFormat.CSV:
                    blob = export_csv(self.snapshot, sheet_id, encoding)
                else:
                    blob = export_pdf(self.snapshot, self._font_loader)
            except SheetBridgeError as e:
                self.error = e.message
                logger.warning(
                    "Save failed",
                    format=export_format.value,
                    error_code=e.error_code.value,
                )
                raise

            if export_format.clears_dirty:
                self.dirty = False
            self.error = None

        logger.info("Workbook saved", format=export_format.value, size=blob.size)
        return blob
