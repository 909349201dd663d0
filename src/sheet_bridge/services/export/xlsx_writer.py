"""XLSX serialization of a workbook snapshot with openpyxl.

openpyxl writes formulas without a cached result, so spreadsheet viewers
that do not recalculate would show them blank. After saving, the value
the engine last computed for each formula cell is written into the
worksheet XML as the cached ``<v>`` result.
"""

import io
import zipfile
import xml.etree.ElementTree as ET

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils import get_column_letter
from openpyxl.workbook.child import INVALID_TITLE_REGEX
from openpyxl.worksheet.worksheet import Worksheet

from sheet_bridge.services.export.blob import XLSX_CONTENT_TYPE, ExportBlob
from sheet_bridge.utils.logging import get_logger, timed_operation
from sheet_bridge.workbook_snapshot import (
    CellScalar,
    SheetSnapshot,
    WorkbookSnapshot,
)

logger = get_logger(__name__)

SPREADSHEETML_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
RELATIONSHIPS_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

# ElementTree drops unregistered namespace prefixes on write.
ET.register_namespace("", SPREADSHEETML_NS)
ET.register_namespace("r", RELATIONSHIPS_NS)

DEFAULT_SHEET_TITLE = "Sheet"
MAX_TITLE_LENGTH = 31

# Column width is approximated as pixels / 8 characters.
PIXELS_PER_CHARACTER = 8
POINTS_PER_PIXEL = 0.75

CachedValues = dict[str, CellScalar]


def _sheet_title(name: str | None) -> str:
    title = INVALID_TITLE_REGEX.sub("_", name or "")[:MAX_TITLE_LENGTH]
    return title or DEFAULT_SHEET_TITLE


def _write_sheet(ws: Worksheet, sheet: SheetSnapshot) -> CachedValues:
    """Populate an openpyxl worksheet; return cached results of formula cells."""
    cached: CachedValues = {}

    for column, meta in sheet.column_data.items():
        if meta.w and column < sheet.column_count:
            ws.column_dimensions[get_column_letter(column + 1)].width = (
                meta.w / PIXELS_PER_CHARACTER
            )

    for row, meta in sheet.row_data.items():
        if meta.h:
            ws.row_dimensions[row + 1].height = meta.h * POINTS_PER_PIXEL

    for row, column, cell in sheet.iter_cells():
        if cell.f:
            target = ws.cell(row=row + 1, column=column + 1)
            target.value = "=" + cell.f.removeprefix("=")
            if cell.v is not None:
                cached[target.coordinate] = cell.v
        elif cell.v is not None:
            value = cell.v
            if isinstance(value, str):
                value = ILLEGAL_CHARACTERS_RE.sub("", value)
            target = ws.cell(row=row + 1, column=column + 1, value=value)
            if isinstance(value, str) and value.startswith("="):
                # Literal text must not be promoted to a formula.
                target.data_type = "s"

    for merge in sheet.merge_data:
        if merge.row_span == 1 and merge.column_span == 1:
            continue
        ws.merge_cells(
            start_row=merge.start_row + 1,
            start_column=merge.start_column + 1,
            end_row=merge.end_row + 1,
            end_column=merge.end_column + 1,
        )
    return cached


def _cached_value_xml(value: CellScalar) -> tuple[str | None, str]:
    """Return the ``t`` attribute and ``<v>`` text for a cached result."""
    if isinstance(value, bool):
        return "b", "1" if value else "0"
    if isinstance(value, (int, float)):
        return None, repr(value) if isinstance(value, float) else str(value)
    # Control characters are not allowed in XML 1.0 text.
    return "str", ILLEGAL_CHARACTERS_RE.sub("", str(value))


def _patch_sheet_xml(sheet_xml: bytes, cached: CachedValues) -> bytes:
    root = ET.fromstring(sheet_xml)
    ns = SPREADSHEETML_NS
    for cell_el in root.iter(f"{{{ns}}}c"):
        ref = cell_el.get("r")
        if ref not in cached or cell_el.find(f"{{{ns}}}f") is None:
            continue
        cell_type, text = _cached_value_xml(cached[ref])
        if cell_type is None:
            cell_el.attrib.pop("t", None)
        else:
            cell_el.set("t", cell_type)
        v_el = cell_el.find(f"{{{ns}}}v")
        if v_el is None:
            v_el = ET.SubElement(cell_el, f"{{{ns}}}v")
        v_el.text = text
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def insert_cached_results(
    package: bytes, cached_by_sheet: list[CachedValues]
) -> bytes:
    """Write cached formula results into a saved package.

    Args:
        package: XLSX bytes as written by openpyxl.
        cached_by_sheet: Cached values keyed by cell reference, one mapping
            per worksheet in workbook order.

    Returns:
        The package with ``xl/worksheets/sheetN.xml`` parts updated.
    """
    if not any(cached_by_sheet):
        return package

    out = io.BytesIO()
    with (
        zipfile.ZipFile(io.BytesIO(package), "r") as zf_in,
        zipfile.ZipFile(out, "w", zipfile.ZIP_DEFLATED) as zf_out,
    ):
        for item in zf_in.infolist():
            data = zf_in.read(item.filename)
            if item.filename.startswith("xl/worksheets/sheet"):
                index = item.filename.removeprefix("xl/worksheets/sheet")
                index = index.removesuffix(".xml")
                if index.isdigit() and int(index) <= len(cached_by_sheet):
                    cached = cached_by_sheet[int(index) - 1]
                    if cached:
                        data = _patch_sheet_xml(data, cached)
            zf_out.writestr(item, data, compress_type=item.compress_type)
    return out.getvalue()


def export_xlsx(snapshot: WorkbookSnapshot) -> ExportBlob:
    """Serialize every ordered sheet of a snapshot as an XLSX workbook.

    Indices are shifted to 1-based, widths converted to characters and
    heights to points. Sheet ids missing from ``sheets`` are skipped.

    Args:
        snapshot: Workbook snapshot pulled from the engine.

    Returns:
        ExportBlob with the XLSX MIME type.
    """
    with timed_operation(logger, "export_xlsx") as metrics:
        workbook = Workbook()
        workbook.remove(workbook.active)

        cached_by_sheet: list[CachedValues] = []
        for sheet in snapshot.ordered_sheets():
            ws = workbook.create_sheet(title=_sheet_title(sheet.name))
            cached_by_sheet.append(_write_sheet(ws, sheet))
            metrics.sheets += 1
            metrics.cells += sum(len(columns) for columns in sheet.cell_data.values())
            metrics.merges += len(sheet.merge_data)

        if not workbook.worksheets:
            # A package needs at least one visible worksheet.
            workbook.create_sheet(title=DEFAULT_SHEET_TITLE)

        buffer = io.BytesIO()
        workbook.save(buffer)
        data = insert_cached_results(buffer.getvalue(), cached_by_sheet)
        metrics.output_bytes = len(data)

    return ExportBlob(data=data, content_type=XLSX_CONTENT_TYPE)
