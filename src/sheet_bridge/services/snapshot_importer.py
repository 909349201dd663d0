"""Conversion of a parsed TableDocument into an engine workbook snapshot.

Sheets get positional ids (``sheet-0``, ``sheet-1`` ...). Only numbers
and booleans keep their type; strings, dates, errors and anything else
become engine strings. Formulas gain their leading ``=``. Column widths
and row heights are converted to pixels.
"""

from sheet_bridge.config import settings
from sheet_bridge.table_document import (
    NativeCellType,
    SizeHint,
    SizeUnit,
    TableDocument,
    TableSheet,
)
from sheet_bridge.utils.logging import get_logger
from sheet_bridge.workbook_snapshot import (
    CellSnapshot,
    CellValueType,
    ColumnSnapshot,
    MergeRange,
    RowSnapshot,
    SheetSnapshot,
    WorkbookSnapshot,
)

logger = get_logger(__name__)

WORKBOOK_ID = "workbook-01"
WORKBOOK_NAME = "Workbook"
APP_VERSION = "0.1.0"
LOCALE = "enUS"

# One character of column width is approximated as 8 pixels.
PIXELS_PER_CHARACTER = 8
# One pixel is approximated as 0.75 points.
POINTS_PER_PIXEL = 0.75

_ENGINE_TYPES: dict[NativeCellType, CellValueType] = {
    NativeCellType.NUMBER: CellValueType.NUMBER,
    NativeCellType.BOOLEAN: CellValueType.BOOLEAN,
}


def sheet_id_for(index: int) -> str:
    return f"sheet-{index}"


def column_width_px(hint: SizeHint) -> float:
    """Convert a column width hint to pixels."""
    if hint.unit is SizeUnit.CHARACTERS:
        return hint.value * PIXELS_PER_CHARACTER
    return hint.value


def row_height_px(hint: SizeHint) -> float:
    """Convert a row height hint to pixels, rounding converted points."""
    if hint.unit is SizeUnit.POINTS:
        return round(hint.value / POINTS_PER_PIXEL)
    return hint.value


def _convert_sheet(sheet: TableSheet, index: int) -> SheetSnapshot:
    cell_data: dict[int, dict[int, CellSnapshot]] = {}
    for row, columns in sheet.cells.items():
        for column, cell in columns.items():
            formula = "=" + cell.formula.removeprefix("=") if cell.formula else None
            cell_data.setdefault(row, {})[column] = CellSnapshot(
                v=cell.value,
                t=_ENGINE_TYPES.get(cell.native_type, CellValueType.STRING),
                f=formula,
            )

    extent = sheet.extent
    data_rows, data_columns = (extent[0] + 1, extent[1] + 1) if extent else (1, 1)

    return SheetSnapshot(
        id=sheet_id_for(index),
        name=sheet.name or f"Sheet{index + 1}",
        row_count=max(settings.min_row_count, data_rows),
        column_count=max(settings.min_column_count, data_columns),
        cell_data=cell_data,
        row_data={
            row: RowSnapshot(h=row_height_px(hint))
            for row, hint in sheet.row_heights.items()
        },
        column_data={
            column: ColumnSnapshot(w=column_width_px(hint))
            for column, hint in sheet.column_widths.items()
        },
        merge_data=[
            MergeRange(
                start_row=merge.start_row,
                start_column=merge.start_column,
                end_row=merge.end_row,
                end_column=merge.end_column,
            )
            for merge in sheet.merges
        ],
    )


def import_snapshot(document: TableDocument) -> WorkbookSnapshot:
    """Convert a TableDocument into a workbook snapshot.

    Args:
        document: Parsed document from the tabular reader.

    Returns:
        WorkbookSnapshot with one engine sheet per source sheet, or a
        single empty ``Sheet1`` when the document has no sheets.
    """
    sheets = [
        _convert_sheet(sheet, index) for index, sheet in enumerate(document.sheets)
    ]
    if not sheets:
        sheets = [
            SheetSnapshot(
                id=sheet_id_for(0),
                name="Sheet1",
                row_count=settings.min_row_count,
                column_count=settings.min_column_count,
            )
        ]

    snapshot = WorkbookSnapshot(
        id=WORKBOOK_ID,
        name=WORKBOOK_NAME,
        app_version=APP_VERSION,
        locale=LOCALE,
        sheet_order=[sheet.id for sheet in sheets],
        sheets={sheet.id: sheet for sheet in sheets},
    )
    logger.info(
        "Imported workbook snapshot",
        sheets=len(sheets),
        cells=sum(sheet.cell_count for sheet in document.sheets),
    )
    return snapshot


def create_empty_snapshot() -> WorkbookSnapshot:
    """Create the snapshot for a brand-new, untitled workbook."""
    sheet = SheetSnapshot(
        id=sheet_id_for(0),
        name="Sheet1",
        row_count=100,
        column_count=26,
        default_row_height=24,
        default_column_width=88,
    )
    return WorkbookSnapshot(
        id=WORKBOOK_ID,
        name="Untitled",
        app_version=APP_VERSION,
        locale=LOCALE,
        sheet_order=[sheet.id],
        sheets={sheet.id: sheet},
    )
