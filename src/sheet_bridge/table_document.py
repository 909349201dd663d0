"""Dataclasses representing a parsed tabular file before engine import."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NativeCellType(str, Enum):
    """Cell type tags as reported by the spreadsheet readers."""

    STRING = "s"
    NUMBER = "n"
    BOOLEAN = "b"
    ERROR = "e"
    DATE = "d"
    BLANK = "z"


class SizeUnit(str, Enum):
    """Unit a size hint was recorded in."""

    PIXELS = "px"
    CHARACTERS = "ch"
    POINTS = "pt"


@dataclass(frozen=True)
class SizeHint:
    """A column width or row height as found in the source file."""

    value: float
    unit: SizeUnit


@dataclass
class TableCell:
    """A single populated cell.

    ``formula`` is stored without its leading ``=``.
    """

    value: Any
    native_type: NativeCellType
    formula: str | None = None


@dataclass(frozen=True)
class CellRange:
    """Inclusive, 0-indexed rectangle of merged cells."""

    start_row: int
    start_column: int
    end_row: int
    end_column: int


@dataclass
class TableSheet:
    """A worksheet with sparse, 0-indexed cells."""

    name: str
    cells: dict[int, dict[int, TableCell]] = field(default_factory=dict)
    column_widths: dict[int, SizeHint] = field(default_factory=dict)
    row_heights: dict[int, SizeHint] = field(default_factory=dict)
    merges: list[CellRange] = field(default_factory=list)

    def set_cell(self, row: int, column: int, cell: TableCell) -> None:
        self.cells.setdefault(row, {})[column] = cell

    def get_cell(self, row: int, column: int) -> TableCell | None:
        return self.cells.get(row, {}).get(column)

    @property
    def cell_count(self) -> int:
        return sum(len(columns) for columns in self.cells.values())

    @property
    def extent(self) -> tuple[int, int] | None:
        """Last populated ``(row, column)`` (0-indexed), or None when empty.

        Merged ranges count towards the extent even when only the anchor
        holds a value.
        """
        max_row = -1
        max_column = -1
        for row, columns in self.cells.items():
            if columns:
                max_row = max(max_row, row)
                max_column = max(max_column, max(columns))
        for merge in self.merges:
            max_row = max(max_row, merge.end_row)
            max_column = max(max_column, merge.end_column)
        if max_row < 0:
            return None
        return max_row, max_column


@dataclass
class TableDocument:
    """A parsed workbook: ordered sheets."""

    sheets: list[TableSheet] = field(default_factory=list)

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]
