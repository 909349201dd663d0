"""Builders for workbook snapshots and spreadsheet files used in tests.

Example usage:
    from tests.fixtures import make_sheet, make_snapshot

    sheet = make_sheet("sheet-0", "Data", cells={(0, 0): CellSnapshot(v="A")})
    snapshot = make_snapshot(sheet)
"""

import io

from openpyxl import Workbook

from sheet_bridge.workbook_snapshot import (
    CellSnapshot,
    ColumnSnapshot,
    MergeRange,
    RowSnapshot,
    SheetSnapshot,
    WorkbookSnapshot,
)


def make_sheet(
    sheet_id: str,
    name: str | None,
    cells: dict[tuple[int, int], CellSnapshot] | None = None,
    merges: list[MergeRange] | None = None,
    column_widths: dict[int, float] | None = None,
    row_heights: dict[int, float] | None = None,
) -> SheetSnapshot:
    """Build a SheetSnapshot from flat ``(row, col) -> cell`` pairs."""
    cell_data: dict[int, dict[int, CellSnapshot]] = {}
    for (row, column), cell in (cells or {}).items():
        cell_data.setdefault(row, {})[column] = cell
    return SheetSnapshot(
        id=sheet_id,
        name=name,
        cell_data=cell_data,
        merge_data=merges or [],
        column_data={c: ColumnSnapshot(w=w) for c, w in (column_widths or {}).items()},
        row_data={r: RowSnapshot(h=h) for r, h in (row_heights or {}).items()},
    )


def make_snapshot(*sheets: SheetSnapshot) -> WorkbookSnapshot:
    """Wrap sheets in a WorkbookSnapshot, keeping their order."""
    return WorkbookSnapshot(
        sheet_order=[sheet.id for sheet in sheets],
        sheets={sheet.id: sheet for sheet in sheets},
    )


def workbook_bytes(workbook: Workbook) -> bytes:
    """Serialize an openpyxl workbook to XLSX bytes."""
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
