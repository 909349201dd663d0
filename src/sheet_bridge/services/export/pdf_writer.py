"""PDF rendering of a workbook snapshot with reportlab Platypus.

Each sheet becomes a titled grid table on its own landscape A4 page.
Column widths are the sheet's pixel widths scaled to fill the printable
width, and merged regions span their rows and columns.
"""

import io
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import (
    Flowable,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from sheet_bridge.config import settings
from sheet_bridge.services.export.blob import PDF_CONTENT_TYPE, ExportBlob
from sheet_bridge.services.font_loader import FontLoader, get_font_loader
from sheet_bridge.utils.logging import get_logger, timed_operation
from sheet_bridge.workbook_snapshot import SheetSnapshot, WorkbookSnapshot

logger = get_logger(__name__)

PAGE_SIZE = landscape(A4)
MARGIN = 10 * mm
PRINTABLE_WIDTH = PAGE_SIZE[0] - 2 * MARGIN

TITLE_FONT_SIZE = 14
NOTE_FONT_SIZE = 10
CELL_FONT_SIZE = 8
CELL_PADDING = 1.5 * mm

EMPTY_SHEET_TEXT = "(empty sheet)"
EMPTY_WORKBOOK_TEXT = "(empty workbook)"


def _styles(font_name: str) -> dict[str, ParagraphStyle]:
    return {
        "title": ParagraphStyle(
            "SheetTitle",
            fontName=font_name,
            fontSize=TITLE_FONT_SIZE,
            leading=TITLE_FONT_SIZE * 1.25,
            spaceAfter=4 * mm,
        ),
        "note": ParagraphStyle(
            "Note",
            fontName=font_name,
            fontSize=NOTE_FONT_SIZE,
            leading=NOTE_FONT_SIZE * 1.25,
        ),
        "cell": ParagraphStyle(
            "Cell",
            fontName=font_name,
            fontSize=CELL_FONT_SIZE,
            leading=CELL_FONT_SIZE * 1.25,
        ),
    }


def _paragraph(text: str, style: ParagraphStyle) -> Paragraph:
    # Paragraph parses inline markup; line breaks must be explicit.
    return Paragraph(escape(text).replace("\n", "<br/>"), style)


def proportional_widths(sheet: SheetSnapshot, column_count: int) -> list[float]:
    """Scale column pixel widths so they fill the printable width.

    Columns without a width hint count as ``pdf_default_column_width_px``.
    """
    default = settings.pdf_default_column_width_px
    raw: list[float] = []
    for column in range(column_count):
        meta = sheet.column_data.get(column)
        raw.append(meta.w if meta is not None and meta.w else default)
    total = sum(raw)
    return [width / total * PRINTABLE_WIDTH for width in raw]


def horizontal_padding(widths: list[float]) -> float:
    """Side padding for cells, shrunk so narrow columns keep room for text."""
    return min(CELL_PADDING, min(widths) / 4)


def _sheet_table(
    sheet: SheetSnapshot, grid: list[list[str]], cell_style: ParagraphStyle
) -> Table:
    max_row = len(grid) - 1
    max_column = len(grid[0]) - 1
    widths = proportional_widths(sheet, max_column + 1)
    padding = horizontal_padding(widths)

    style_commands: list[tuple] = [
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), padding),
        ("RIGHTPADDING", (0, 0), (-1, -1), padding),
        ("TOPPADDING", (0, 0), (-1, -1), CELL_PADDING),
        ("BOTTOMPADDING", (0, 0), (-1, -1), CELL_PADDING),
    ]

    interior: set[tuple[int, int]] = set()
    for merge in sheet.merge_data:
        if merge.start_row > max_row or merge.start_column > max_column:
            continue
        end_row = min(merge.end_row, max_row)
        end_column = min(merge.end_column, max_column)
        if (end_row, end_column) == (merge.start_row, merge.start_column):
            continue
        # reportlab addresses cells as (column, row).
        style_commands.append(
            ("SPAN", (merge.start_column, merge.start_row), (end_column, end_row))
        )
        for row in range(merge.start_row, end_row + 1):
            for column in range(merge.start_column, end_column + 1):
                if (row, column) != (merge.start_row, merge.start_column):
                    interior.add((row, column))

    body = [
        [
            "" if (r, c) in interior else _paragraph(text, cell_style)
            for c, text in enumerate(row)
        ]
        for r, row in enumerate(grid)
    ]

    return Table(
        body,
        colWidths=widths,
        style=TableStyle(style_commands),
        hAlign="LEFT",
        # Rows taller than a page continue on the next one.
        splitInRow=1,
    )


def build_story(
    snapshot: WorkbookSnapshot, font_name: str
) -> tuple[list[Flowable], int]:
    """Build the flowables for every ordered sheet.

    Returns:
        Tuple of (flowables, number of sheets rendered).
    """
    styles = _styles(font_name)
    story: list[Flowable] = []
    rendered = 0

    for sheet in snapshot.ordered_sheets():
        if rendered:
            story.append(PageBreak())
        rendered += 1
        story.append(_paragraph(sheet.name or "Sheet", styles["title"]))

        grid = sheet.text_grid()
        if not grid:
            story.append(_paragraph(EMPTY_SHEET_TEXT, styles["note"]))
            continue
        story.append(_sheet_table(sheet, grid, styles["cell"]))

    if not rendered:
        story.append(_paragraph(EMPTY_WORKBOOK_TEXT, styles["note"]))
    story.append(Spacer(0, 0))
    return story, rendered


def export_pdf(
    snapshot: WorkbookSnapshot, font_loader: FontLoader | None = None
) -> ExportBlob:
    """Render a snapshot as a landscape A4 PDF, one page per sheet.

    Args:
        snapshot: Workbook snapshot pulled from the engine.
        font_loader: Loader for the text font; defaults to the process-wide
            loader configured from settings.

    Returns:
        ExportBlob with ``application/pdf`` content type.

    Raises:
        ExternalResourceError: If the configured font cannot be loaded.
    """
    loader = font_loader or get_font_loader()
    font_name = loader.get_font_name()

    with timed_operation(logger, "export_pdf") as metrics:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=PAGE_SIZE,
            leftMargin=MARGIN,
            rightMargin=MARGIN,
            topMargin=MARGIN,
            bottomMargin=MARGIN,
            title=snapshot.name,
        )
        story, rendered = build_story(snapshot, font_name)
        doc.build(story)
        data = buffer.getvalue()

        metrics.sheets = rendered
        metrics.output_bytes = len(data)
        metrics.custom_metrics["font"] = font_name

    return ExportBlob(data=data, content_type=PDF_CONTENT_TYPE)
