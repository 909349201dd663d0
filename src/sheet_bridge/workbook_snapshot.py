"""Pydantic models for the spreadsheet engine's workbook snapshot.

The engine exchanges workbooks as a JSON document keyed in camelCase
(``sheetOrder``, ``cellData``, ``mergeData`` ...). These models mirror that
shape so a snapshot can be validated on the way in and serialized with
``to_engine_dict()`` on the way out. Unknown keys (styles, custom
properties) are kept so edits made in the engine survive a round trip.

Cell, row and column maps are sparse and 0-indexed; JSON object keys
arrive as strings and are coerced back to integers on validation.
"""

from collections.abc import Iterator
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CellScalar = str | int | float | bool


class CellValueType(IntEnum):
    """Value type tag understood by the engine."""

    STRING = 1
    NUMBER = 2
    BOOLEAN = 3


class BooleanNumber(IntEnum):
    """Engine flags are stored as 0/1 integers."""

    FALSE = 0
    TRUE = 1


class SnapshotModel(BaseModel):
    """Base for snapshot models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class CellSnapshot(SnapshotModel):
    """One cell: value ``v``, type ``t`` and optional formula ``f``.

    Formulas carry a leading ``=`` in this form.
    """

    v: CellScalar | None = None
    t: CellValueType | None = None
    f: str | None = None

    @property
    def text(self) -> str:
        """The value as plain text, as written to CSV and PDF output.

        Missing values are empty, booleans are ``TRUE``/``FALSE`` and
        integral floats drop their ``.0``.
        """
        value = self.v
        if value is None:
            return ""
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)


class RowSnapshot(SnapshotModel):
    """Row metadata; ``h`` is the height in pixels."""

    h: float | None = None


class ColumnSnapshot(SnapshotModel):
    """Column metadata; ``w`` is the width in pixels."""

    w: float | None = None


class MergeRange(SnapshotModel):
    """Inclusive, 0-indexed merged rectangle."""

    start_row: int = Field(..., ge=0)
    start_column: int = Field(..., ge=0)
    end_row: int = Field(..., ge=0)
    end_column: int = Field(..., ge=0)

    def contains(self, row: int, column: int) -> bool:
        return (
            self.start_row <= row <= self.end_row
            and self.start_column <= column <= self.end_column
        )

    @property
    def row_span(self) -> int:
        return self.end_row - self.start_row + 1

    @property
    def column_span(self) -> int:
        return self.end_column - self.start_column + 1


class FreezeSnapshot(SnapshotModel):
    x_split: int = 0
    y_split: int = 0
    start_row: int = -1
    start_column: int = -1


class RowHeaderSnapshot(SnapshotModel):
    width: int = 46


class ColumnHeaderSnapshot(SnapshotModel):
    height: int = 20


class SheetSnapshot(SnapshotModel):
    """One worksheet of the snapshot, with the engine's bookkeeping defaults."""

    id: str
    name: str | None = None
    tab_color: str = ""
    hidden: BooleanNumber = BooleanNumber.FALSE
    row_count: int = 1000
    column_count: int = 26
    zoom_ratio: float = 1
    scroll_top: float = 0
    scroll_left: float = 0
    default_column_width: float = 73
    default_row_height: float = 19
    cell_data: dict[int, dict[int, CellSnapshot]] = Field(default_factory=dict)
    row_data: dict[int, RowSnapshot] = Field(default_factory=dict)
    column_data: dict[int, ColumnSnapshot] = Field(default_factory=dict)
    merge_data: list[MergeRange] = Field(default_factory=list)
    show_gridlines: BooleanNumber = BooleanNumber.TRUE
    right_to_left: BooleanNumber = BooleanNumber.FALSE
    freeze: FreezeSnapshot = Field(default_factory=FreezeSnapshot)
    row_header: RowHeaderSnapshot = Field(default_factory=RowHeaderSnapshot)
    column_header: ColumnHeaderSnapshot = Field(default_factory=ColumnHeaderSnapshot)

    def get_cell(self, row: int, column: int) -> CellSnapshot | None:
        return self.cell_data.get(row, {}).get(column)

    def iter_cells(self) -> Iterator[tuple[int, int, CellSnapshot]]:
        """Yield ``(row, column, cell)`` in row-major order."""
        for row in sorted(self.cell_data):
            columns = self.cell_data[row]
            for column in sorted(columns):
                yield row, column, columns[column]

    def occupied_extent(self) -> tuple[int, int] | None:
        """Return the highest populated ``(row, column)``, or None if empty.

        The two maxima are taken independently, so the rectangle
        ``[0..row] x [0..column]`` covers every populated cell.
        """
        max_row = -1
        max_column = -1
        for row, columns in self.cell_data.items():
            if not columns:
                continue
            max_row = max(max_row, row)
            max_column = max(max_column, max(columns))
        if max_row < 0:
            return None
        return max_row, max_column

    def text_grid(self) -> list[list[str]]:
        """Dense row-major text of the occupied rectangle; empty if no cells."""
        extent = self.occupied_extent()
        if extent is None:
            return []
        max_row, max_column = extent
        grid: list[list[str]] = []
        for row in range(max_row + 1):
            columns = self.cell_data.get(row, {})
            grid.append(
                [
                    columns[column].text if column in columns else ""
                    for column in range(max_column + 1)
                ]
            )
        return grid


class WorkbookSnapshot(SnapshotModel):
    """Complete workbook as handed to and pulled from the engine."""

    id: str = "workbook-01"
    name: str = "Workbook"
    app_version: str = "0.1.0"
    locale: str = "enUS"
    styles: dict[str, Any] = Field(default_factory=dict)
    sheet_order: list[str] = Field(default_factory=list)
    sheets: dict[str, SheetSnapshot] = Field(default_factory=dict)

    def ordered_sheets(self) -> Iterator[SheetSnapshot]:
        """Yield sheets in ``sheet_order``, skipping ids with no sheet."""
        for sheet_id in self.sheet_order:
            sheet = self.sheets.get(sheet_id)
            if sheet is not None:
                yield sheet

    def to_engine_dict(self) -> dict[str, Any]:
        """Serialize in the engine's camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
