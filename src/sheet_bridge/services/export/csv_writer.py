"""CSV serialization of one snapshot sheet."""

import csv
import io

from sheet_bridge.config import settings
from sheet_bridge.models import TextEncoding
from sheet_bridge.services.encoding_codec import content_type_for, encode_text
from sheet_bridge.services.export.blob import ExportBlob
from sheet_bridge.services.injection_scanner import scan_for_injection
from sheet_bridge.utils.logging import get_logger, timed_operation
from sheet_bridge.workbook_snapshot import WorkbookSnapshot

logger = get_logger(__name__)

FIELD_DELIMITER = ","
RECORD_SEPARATOR = "\r\n"


def grid_to_csv_text(grid: list[list[str]]) -> str:
    """Serialize a text grid with minimal quoting and CRLF between records.

    No terminator follows the last record. A record whose fields are all
    empty is written as bare delimiters, so a blank line stays blank.
    """
    buffer = io.StringIO()
    writer = csv.writer(
        buffer, delimiter=FIELD_DELIMITER, lineterminator=RECORD_SEPARATOR
    )
    for row in grid:
        if any(row):
            writer.writerow(row)
        else:
            # csv.writer quotes a lone empty field as "".
            buffer.write(FIELD_DELIMITER * (len(row) - 1) + RECORD_SEPARATOR)
    return buffer.getvalue().removesuffix(RECORD_SEPARATOR)


def export_csv(
    snapshot: WorkbookSnapshot,
    sheet_id: str | None = None,
    encoding: TextEncoding | str | None = None,
) -> ExportBlob:
    """Serialize one sheet of a snapshot as CSV.

    Args:
        snapshot: Workbook snapshot pulled from the engine.
        sheet_id: Sheet to export; defaults to the first id in sheet order.
        encoding: Output encoding; defaults to the configured CSV encoding.

    Returns:
        ExportBlob with ``text/csv;charset=<encoding>`` content type. A
        missing or empty sheet produces an empty CSV body.

    Raises:
        ConfigurationError: If a legacy transcoder cannot be loaded.
        EncodingError: If a value cannot be represented in ``encoding``.
    """
    target = TextEncoding.parse(encoding) if encoding else settings.csv_encoding
    if sheet_id is None and snapshot.sheet_order:
        sheet_id = snapshot.sheet_order[0]
    sheet = snapshot.sheets.get(sheet_id) if sheet_id is not None else None

    with timed_operation(logger, "export_csv") as metrics:
        grid = sheet.text_grid() if sheet is not None else []
        if sheet is None:
            logger.warning("CSV export target sheet not found", sheet_id=sheet_id)

        scan = scan_for_injection(grid)
        data = encode_text(grid_to_csv_text(grid), target)

        metrics.sheets = 1 if sheet is not None else 0
        metrics.cells = sum(1 for row in grid for value in row if value)
        metrics.output_bytes = len(data)
        metrics.custom_metrics["encoding"] = target.value
        metrics.custom_metrics["flagged_cells"] = len(scan.flagged)

    return ExportBlob(data=data, content_type=content_type_for(target))
