from __future__ import annotations

from collections.abc import Iterator

import pytest

from sheet_bridge.services.encoding_codec import reset_transcoders
from sheet_bridge.services.font_loader import FontLoader
from sheet_bridge.table_document import (
    CellRange,
    NativeCellType,
    TableCell,
    TableDocument,
    TableSheet,
)
from sheet_bridge.utils.logging import clear_context
from sheet_bridge.workbook_snapshot import (
    CellSnapshot,
    CellValueType,
    MergeRange,
    WorkbookSnapshot,
)
from tests.fixtures import make_sheet, make_snapshot


@pytest.fixture(autouse=True)
def _reset_process_state() -> Iterator[None]:
    """Start every test with no cached transcoders or logging context."""
    reset_transcoders()
    clear_context()
    yield
    clear_context()


@pytest.fixture
def simple_table() -> TableDocument:
    """Text header, a number, and a second text row."""
    sheet = TableSheet(name="People")
    sheet.set_cell(0, 0, TableCell("Name", NativeCellType.STRING))
    sheet.set_cell(0, 1, TableCell(42, NativeCellType.NUMBER))
    sheet.set_cell(1, 0, TableCell("Row2", NativeCellType.STRING))
    return TableDocument(sheets=[sheet])


@pytest.fixture
def merged_table() -> TableDocument:
    sheet = TableSheet(name="Merged")
    sheet.set_cell(0, 0, TableCell("Header", NativeCellType.STRING))
    sheet.merges.append(CellRange(0, 0, 1, 1))
    return TableDocument(sheets=[sheet])


@pytest.fixture
def sales_snapshot() -> WorkbookSnapshot:
    """One sheet with text, numbers, a boolean, a formula and a merge."""
    sheet = make_sheet(
        "sheet-0",
        "Sales",
        cells={
            (0, 0): CellSnapshot(v="Item", t=CellValueType.STRING),
            (0, 1): CellSnapshot(v="Qty", t=CellValueType.STRING),
            (1, 0): CellSnapshot(v="Apple", t=CellValueType.STRING),
            (1, 1): CellSnapshot(v=3, t=CellValueType.NUMBER),
            (2, 0): CellSnapshot(v="Pear", t=CellValueType.STRING),
            (2, 1): CellSnapshot(v=4.5, t=CellValueType.NUMBER),
            (3, 0): CellSnapshot(v="Total", t=CellValueType.STRING),
            (3, 1): CellSnapshot(v=7.5, t=CellValueType.NUMBER, f="=SUM(B2:B3)"),
            (4, 0): CellSnapshot(v=True, t=CellValueType.BOOLEAN),
        },
        merges=[MergeRange(start_row=5, start_column=0, end_row=5, end_column=1)],
        column_widths={0: 120, 1: 64},
        row_heights={0: 32},
    )
    return make_snapshot(sheet)


@pytest.fixture
def builtin_font_loader() -> FontLoader:
    """Font loader that registers the built-in CID font (no network)."""
    return FontLoader(font_url=None)
