"""Result type shared by the export serializers."""

from dataclasses import dataclass

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_CONTENT_TYPE = "application/pdf"


@dataclass(frozen=True)
class ExportBlob:
    """Serialized file bytes plus the MIME type to deliver them with."""

    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)
