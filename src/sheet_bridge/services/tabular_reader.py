"""Readers turning uploaded bytes into a TableDocument.

``.csv`` is decoded with the detected (or caller-supplied) encoding and
parsed into literal strings. ``.xlsx`` is read with openpyxl and ``.xls``
with xlrd; both keep formulas, merged regions, column widths and row
heights where the file records them.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

import xlrd
from openpyxl import load_workbook
from openpyxl.cell import Cell
from openpyxl.utils import column_index_from_string
from openpyxl.worksheet.worksheet import Worksheet
from xlrd.book import Book
from xlrd.sheet import Sheet

from sheet_bridge.config import settings
from sheet_bridge.models import FileKind, TextEncoding
from sheet_bridge.services.encoding_codec import decode_bytes
from sheet_bridge.services.encoding_detector import DetectedEncoding, detect_encoding
from sheet_bridge.table_document import (
    CellRange,
    NativeCellType,
    SizeHint,
    SizeUnit,
    TableCell,
    TableDocument,
    TableSheet,
)
from sheet_bridge.utils.exceptions import ParseError, RejectedFormatError
from sheet_bridge.utils.logging import get_logger, timed_operation

logger = get_logger(__name__)

CSV_SHEET_NAME = "Sheet1"
CSV_DELIMITERS = ",;\t|"
SNIFF_SAMPLE_CHARS = 8192

# xlrd reports column widths in 1/256 of a character and row heights in twips.
XLS_WIDTH_UNITS_PER_CHAR = 256
TWIPS_PER_POINT = 20

_OPENPYXL_TYPES: dict[str, NativeCellType] = {
    "s": NativeCellType.STRING,
    "str": NativeCellType.STRING,
    "inlineStr": NativeCellType.STRING,
    "n": NativeCellType.NUMBER,
    "b": NativeCellType.BOOLEAN,
    "e": NativeCellType.ERROR,
    "d": NativeCellType.DATE,
}

_XLRD_TYPES: dict[int, NativeCellType] = {
    xlrd.XL_CELL_TEXT: NativeCellType.STRING,
    xlrd.XL_CELL_NUMBER: NativeCellType.NUMBER,
    xlrd.XL_CELL_DATE: NativeCellType.DATE,
    xlrd.XL_CELL_BOOLEAN: NativeCellType.BOOLEAN,
    xlrd.XL_CELL_ERROR: NativeCellType.ERROR,
}


@dataclass
class ReadResult:
    """Parsed document plus the encoding used for text input."""

    document: TableDocument
    detected_encoding: DetectedEncoding | None = None


def _format_temporal(value: date | time | timedelta) -> str:
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


class TabularReader:
    """Parse CSV, XLSX and XLS payloads into a TableDocument."""

    def read(
        self,
        data: bytes,
        kind: FileKind | str,
        encoding: TextEncoding | str | None = None,
    ) -> ReadResult:
        """Parse a payload according to its file kind.

        Args:
            data: File content.
            kind: FileKind or extension such as ".xlsx".
            encoding: Encoding override for CSV input; detected when None.

        Returns:
            ReadResult with the document and, for CSV, the encoding used.

        Raises:
            RejectedFormatError: If ``kind`` is not a supported format.
            ParseError: If a binary payload is malformed.
        """
        try:
            kind = FileKind(kind)
        except ValueError:
            raise RejectedFormatError(
                str(kind), accepted=[k.value for k in FileKind]
            ) from None

        with timed_operation(logger, f"read_{kind.name.lower()}") as metrics:
            if kind is FileKind.CSV:
                result = self.read_csv(data, encoding)
            elif kind is FileKind.XLSX:
                result = ReadResult(self.read_xlsx(data))
            else:
                result = ReadResult(self.read_xls(data))
            metrics.sheets = len(result.document.sheets)
            metrics.cells = sum(s.cell_count for s in result.document.sheets)
            metrics.merges = sum(len(s.merges) for s in result.document.sheets)
        return result

    # ------------------------------------------------------------------ #
    # CSV
    # ------------------------------------------------------------------ #

    def read_csv(
        self, data: bytes, encoding: TextEncoding | str | None = None
    ) -> ReadResult:
        """Parse delimited text into a single ``Sheet1``.

        Values stay literal strings, empty fields included; nothing is
        coerced to numbers or booleans. Never fails on content.
        """
        if encoding is None:
            detected = detect_encoding(data)
        else:
            detected = None
            encoding = TextEncoding.parse(encoding)
        used = detected.encoding if detected is not None else encoding
        text = decode_bytes(data, used)

        sheet = TableSheet(name=CSV_SHEET_NAME)
        if text:
            delimiter = self._detect_csv_delimiter(text)
            for row_index, record in enumerate(self._csv_records(text, delimiter)):
                for column_index, value in enumerate(record):
                    sheet.set_cell(
                        row_index,
                        column_index,
                        TableCell(value=value, native_type=NativeCellType.STRING),
                    )

        logger.info(
            "Parsed CSV",
            encoding=used.value,
            detected=detected is not None,
            cells=sheet.cell_count,
        )
        return ReadResult(TableDocument(sheets=[sheet]), detected)

    def _csv_records(self, text: str, delimiter: str) -> list[list[str]]:
        """Split text into records, one field per line if parsing fails."""
        # A field may span the whole upload, e.g. after an unbalanced quote.
        if csv.field_size_limit() < settings.max_file_size_bytes:
            csv.field_size_limit(settings.max_file_size_bytes)
        try:
            return list(
                csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
            )
        except csv.Error as e:
            logger.warning(
                "CSV parsing failed, reading one field per line", error=str(e)
            )
            return [[line] if line else [] for line in text.splitlines()]

    def _detect_csv_delimiter(self, content: str) -> str:
        """Detect the field delimiter, defaulting to a comma."""
        try:
            dialect = csv.Sniffer().sniff(
                content[:SNIFF_SAMPLE_CHARS], delimiters=CSV_DELIMITERS
            )
            return dialect.delimiter
        except csv.Error:
            logger.debug("CSV delimiter detection failed, defaulting to comma")
            return ","

    # ------------------------------------------------------------------ #
    # XLSX (openpyxl)
    # ------------------------------------------------------------------ #

    def read_xlsx(self, data: bytes) -> TableDocument:
        """Parse an Office Open XML workbook.

        The package is loaded twice: once for formulas, once for the
        values cached by the application that last saved it.

        Raises:
            ParseError: If the package cannot be read.
        """
        try:
            workbook = load_workbook(io.BytesIO(data), data_only=False)
            computed_wb = load_workbook(io.BytesIO(data), data_only=True)
        except Exception as e:
            raise ParseError(
                f"Failed to read XLSX workbook: {e}", file_type="xlsx"
            ) from e

        sheets = [
            self._read_openpyxl_sheet(workbook[name], computed_wb[name])
            for name in workbook.sheetnames
        ]
        return TableDocument(sheets=sheets)

    def _read_openpyxl_sheet(
        self, sheet: Worksheet, computed_sheet: Worksheet
    ) -> TableSheet:
        table = TableSheet(name=sheet.title)

        for row_cells, computed_cells in zip(
            sheet.iter_rows(), computed_sheet.iter_rows(), strict=False
        ):
            for cell, computed in zip(row_cells, computed_cells, strict=False):
                built = self._build_cell(cell, computed)
                if built is not None:
                    table.set_cell(cell.row - 1, cell.column - 1, built)

        for merged in sheet.merged_cells.ranges:
            table.merges.append(
                CellRange(
                    start_row=merged.min_row - 1,
                    start_column=merged.min_col - 1,
                    end_row=merged.max_row - 1,
                    end_column=merged.max_col - 1,
                )
            )

        column_limit = sheet.max_column
        for key, dimension in sheet.column_dimensions.items():
            if not dimension.width:
                continue
            first = dimension.min or column_index_from_string(key)
            last = min(dimension.max or first, column_limit)
            for column in range(first, last + 1):
                table.column_widths[column - 1] = SizeHint(
                    float(dimension.width), SizeUnit.CHARACTERS
                )

        for row, dimension in sheet.row_dimensions.items():
            if dimension.ht is not None:
                table.row_heights[row - 1] = SizeHint(
                    float(dimension.ht), SizeUnit.POINTS
                )

        return table

    def _build_cell(self, cell: Cell, computed: Cell) -> TableCell | None:
        """Create a TableCell from a formula-mode cell and its cached twin."""
        if cell.value is None:
            return None

        if cell.data_type == "f":
            formula = self._formula_text(cell.value)
            value = computed.value
            native_type = self._map_data_type(computed.data_type, value)
            if isinstance(value, (date, time, timedelta)):
                value = _format_temporal(value)
            return TableCell(value=value, native_type=native_type, formula=formula)

        value = cell.value
        native_type = self._map_data_type(cell.data_type, value)
        if isinstance(value, (date, time, timedelta)):
            value = _format_temporal(value)
            native_type = NativeCellType.DATE
        return TableCell(value=value, native_type=native_type)

    @staticmethod
    def _formula_text(raw: Any) -> str:
        # Array and data-table formulas are objects carrying the text.
        text = raw if isinstance(raw, str) else getattr(raw, "text", None) or str(raw)
        return text[1:] if text.startswith("=") else text

    @staticmethod
    def _map_data_type(data_type: str, value: Any) -> NativeCellType:
        if value is None:
            return NativeCellType.BLANK
        return _OPENPYXL_TYPES.get(data_type, NativeCellType.STRING)

    # ------------------------------------------------------------------ #
    # XLS (xlrd)
    # ------------------------------------------------------------------ #

    def read_xls(self, data: bytes) -> TableDocument:
        """Parse a legacy BIFF workbook.

        Raises:
            ParseError: If the workbook cannot be read.
        """
        try:
            book = xlrd.open_workbook(file_contents=data, formatting_info=True)
        except Exception as e:
            raise ParseError(f"Failed to read XLS workbook: {e}", file_type="xls") from e

        sheets = [
            self._read_xlrd_sheet(book, book.sheet_by_index(index))
            for index in range(book.nsheets)
        ]
        return TableDocument(sheets=sheets)

    def _read_xlrd_sheet(self, book: Book, sheet: Sheet) -> TableSheet:
        table = TableSheet(name=sheet.name)

        # xlrd ranges are half-open: (row_lo, row_hi, col_lo, col_hi)
        interior: set[tuple[int, int]] = set()
        for row_lo, row_hi, col_lo, col_hi in sheet.merged_cells:
            table.merges.append(
                CellRange(
                    start_row=row_lo,
                    start_column=col_lo,
                    end_row=row_hi - 1,
                    end_column=col_hi - 1,
                )
            )
            interior.update(
                (row, column)
                for row in range(row_lo, row_hi)
                for column in range(col_lo, col_hi)
                if (row, column) != (row_lo, col_lo)
            )

        for row in range(sheet.nrows):
            for column in range(sheet.ncols):
                if (row, column) in interior:
                    continue
                cell = sheet.cell(row, column)
                native_type = _XLRD_TYPES.get(cell.ctype)
                if native_type is None:
                    continue
                value = cell.value
                if native_type is NativeCellType.BOOLEAN:
                    value = bool(value)
                elif native_type is NativeCellType.ERROR:
                    value = xlrd.error_text_from_code.get(value, "#VALUE!")
                elif native_type is NativeCellType.DATE:
                    value = self._xls_date_text(value, book.datemode)
                elif native_type is NativeCellType.NUMBER and float(value).is_integer():
                    value = int(value)
                table.set_cell(
                    row, column, TableCell(value=value, native_type=native_type)
                )

        for column, info in sheet.colinfo_map.items():
            if info.width:
                table.column_widths[column] = SizeHint(
                    info.width / XLS_WIDTH_UNITS_PER_CHAR, SizeUnit.CHARACTERS
                )

        for row, info in sheet.rowinfo_map.items():
            if info.height and not info.has_default_height:
                table.row_heights[row] = SizeHint(
                    info.height / TWIPS_PER_POINT, SizeUnit.POINTS
                )

        return table

    @staticmethod
    def _xls_date_text(value: float, datemode: int) -> str:
        try:
            return _format_temporal(xlrd.xldate.xldate_as_datetime(value, datemode))
        except (xlrd.xldate.XLDateError, OverflowError, ValueError):
            return str(value)
