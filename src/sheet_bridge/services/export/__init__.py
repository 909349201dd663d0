"""Serializers from a workbook snapshot to downloadable files.

Each format has its own module with a single pure entry point; they share
nothing but the ``ExportBlob`` result type.
"""

from sheet_bridge.services.export.blob import (
    PDF_CONTENT_TYPE,
    XLSX_CONTENT_TYPE,
    ExportBlob,
)
from sheet_bridge.services.export.csv_writer import export_csv
from sheet_bridge.services.export.pdf_writer import export_pdf
from sheet_bridge.services.export.xlsx_writer import export_xlsx

__all__ = [
    "PDF_CONTENT_TYPE",
    "XLSX_CONTENT_TYPE",
    "ExportBlob",
    "export_csv",
    "export_pdf",
    "export_xlsx",
]
