"""Detection of cells that a spreadsheet application may run as formulas.

When a CSV file is opened in a spreadsheet application, a field starting
with ``=``, ``+``, ``-`` or ``@`` (or a control character that shifts
parsing) can be evaluated as a formula. The scan only reports such cells;
it never alters or blocks the export.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

from sheet_bridge.utils.logging import get_logger

logger = get_logger(__name__)

DANGEROUS_PREFIXES: tuple[str, ...] = ("=", "+", "-", "@", "\t", "\r", "\n")

# Cap on positions listed in the warning; the count is always exact.
MAX_LOGGED_CELLS = 20


@dataclass(frozen=True)
class FlaggedCell:
    """A cell whose text starts with a dangerous prefix."""

    row: int
    col: int
    value: str


@dataclass
class InjectionScanResult:
    """Outcome of scanning a grid."""

    flagged: list[FlaggedCell] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.flagged)


def is_dangerous(value: object) -> bool:
    """Whether a value is a non-empty string starting with a dangerous prefix."""
    return isinstance(value, str) and value.startswith(DANGEROUS_PREFIXES)


def scan_for_injection(grid: Sequence[Sequence[object]]) -> InjectionScanResult:
    """Scan a dense row-major grid for formula-injection candidates.

    Args:
        grid: Rows of cell values; non-string values are ignored.

    Returns:
        InjectionScanResult listing flagged cells in row-major order.
    """
    result = InjectionScanResult()
    for row_index, row in enumerate(grid):
        for col_index, value in enumerate(row):
            if is_dangerous(value):
                result.flagged.append(FlaggedCell(row_index, col_index, str(value)))

    if result.found:
        positions = ", ".join(
            f"({cell.row},{cell.col})" for cell in result.flagged[:MAX_LOGGED_CELLS]
        )
        if len(result.flagged) > MAX_LOGGED_CELLS:
            positions += ", ..."
        logger.warning(
            "Possible CSV injection: cells start with a formula trigger",
            count=len(result.flagged),
            cells=positions,
        )
    return result
