"""Tests for the FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
from unittest.mock import patch

import httpx
import pytest
from fastapi import status
from openpyxl import Workbook

from sheet_bridge.api import create_app
from sheet_bridge.services.encoding_detector import UTF8_BOM
from sheet_bridge.services.font_loader import FontLoader
from sheet_bridge.workbook_snapshot import CellSnapshot, WorkbookSnapshot
from tests.fixtures import make_sheet, make_snapshot, workbook_bytes

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@asynccontextmanager
async def create_test_client(
    patches: dict[str, Any] | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Create an async test client with proper lifespan handling.

    Args:
        patches: Optional dictionary of patch targets and values.
    """
    for target, value in (patches or {}).items():
        patch(target, value).start()
    try:
        app = create_app()
        async with (
            app.router.lifespan_context(app),
            httpx.AsyncClient(
                transport=httpx.ASGITransport(app=app),
                base_url="http://test",
            ) as client,
        ):
            yield client
    finally:
        patch.stopall()


@pytest.fixture
async def client() -> AsyncIterator[httpx.AsyncClient]:
    """Create an async test client for the FastAPI application."""
    async with create_test_client() as ac:
        yield ac


@pytest.fixture
def xlsx_upload() -> bytes:
    """Return a small XLSX workbook with a formula and a merge."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Budget"
    ws["A1"] = "Rent"
    ws["B1"] = 1200
    ws["A2"] = "Food"
    ws["B2"] = 300
    ws["B3"] = "=SUM(B1:B2)"
    ws["A4"] = "Note"
    ws.merge_cells("A4:B4")
    return workbook_bytes(wb)


def _export_body(snapshot: WorkbookSnapshot, **options: Any) -> dict[str, Any]:
    return {"snapshot": snapshot.to_engine_dict(), **options}


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    async def test_health_check_returns_200(self, client: httpx.AsyncClient) -> None:
        """Test that health check returns 200 status code."""
        response = await client.get("/health")
        assert response.status_code == status.HTTP_200_OK

    async def test_health_check_response_structure(
        self, client: httpx.AsyncClient
    ) -> None:
        response = await client.get("/health")
        data = response.json()

        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert isinstance(datetime.fromisoformat(data["timestamp"]), datetime)

    async def test_request_id_is_echoed(self, client: httpx.AsyncClient) -> None:
        """Test that a caller-supplied request ID comes back on the response."""
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    async def test_request_id_is_generated(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 36


class TestOpenAPIDocumentation:
    """Tests for OpenAPI documentation availability."""

    async def test_openapi_json_available(self, client: httpx.AsyncClient) -> None:
        """Test that OpenAPI JSON schema is available."""
        response = await client.get("/openapi.json")
        assert response.status_code == status.HTTP_200_OK

        data = response.json()
        assert data["info"]["title"] == "Sheet Bridge API"
        assert "/workbooks/import" in data["paths"]

    async def test_docs_endpoint_available(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/docs")
        assert response.status_code == status.HTTP_200_OK


class TestImportEndpoint:
    """Tests for the workbook import endpoint."""

    async def test_import_csv(self, client: httpx.AsyncClient) -> None:
        """Test that a UTF-8 CSV becomes a single-sheet snapshot."""
        content = "品名,数量\nりんご,3\n".encode()
        response = await client.post(
            "/workbooks/import",
            files={"file": ("fruit.csv", content, "text/csv")},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["filename"] == "fruit.csv"
        assert data["file_kind"] == ".csv"
        assert data["file_size"] == len(content)
        assert data["detected_encoding"] == {
            "encoding": "utf-8",
            "confidence": "high",
            "has_bom": False,
        }

        snapshot = data["snapshot"]
        assert snapshot["sheetOrder"] == ["sheet-0"]
        sheet = snapshot["sheets"]["sheet-0"]
        assert sheet["name"] == "Sheet1"
        assert sheet["cellData"]["1"]["0"] == {"v": "りんご", "t": 1}
        assert sheet["cellData"]["1"]["1"] == {"v": "3", "t": 1}

    async def test_import_shift_jis_csv(self, client: httpx.AsyncClient) -> None:
        content = "品名,数量\r\nりんご,3\r\n".encode("cp932")
        response = await client.post(
            "/workbooks/import",
            files={"file": ("fruit.csv", content, "text/csv")},
        )

        data = response.json()
        assert data["detected_encoding"]["encoding"] == "shift_jis"
        sheet = data["snapshot"]["sheets"]["sheet-0"]
        assert sheet["cellData"]["0"]["0"]["v"] == "品名"

    async def test_import_csv_with_encoding_override(
        self, client: httpx.AsyncClient
    ) -> None:
        content = "東京,大阪\n".encode("euc_jp")
        response = await client.post(
            "/workbooks/import",
            files={"file": ("cities.csv", content, "text/csv")},
            data={"encoding": "EUC-JP"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert "detected_encoding" not in data
        sheet = data["snapshot"]["sheets"]["sheet-0"]
        assert sheet["cellData"]["0"]["1"]["v"] == "大阪"

    async def test_import_xlsx(
        self, client: httpx.AsyncClient, xlsx_upload: bytes
    ) -> None:
        """Test that formulas, numbers and merges come through."""
        response = await client.post(
            "/workbooks/import",
            files={"file": ("budget.xlsx", xlsx_upload, XLSX_MIME)},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["file_kind"] == ".xlsx"
        assert "detected_encoding" not in data

        sheet = data["snapshot"]["sheets"]["sheet-0"]
        assert sheet["name"] == "Budget"
        assert sheet["cellData"]["0"]["1"] == {"v": 1200, "t": 2}
        assert sheet["cellData"]["2"]["1"]["f"] == "=SUM(B1:B2)"
        assert sheet["mergeData"] == [
            {"startRow": 3, "startColumn": 0, "endRow": 3, "endColumn": 1}
        ]
        assert sheet["rowCount"] == 1000
        assert sheet["columnCount"] == 26

    async def test_import_rejects_unknown_extension(
        self, client: httpx.AsyncClient
    ) -> None:
        response = await client.post(
            "/workbooks/import",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
        data = response.json()
        assert data["error_code"] == "E1001"
        assert data["detail"].startswith("Unsupported file format: .txt")
        assert "request_id" in data

    async def test_import_rejects_signature_mismatch(
        self, client: httpx.AsyncClient
    ) -> None:
        response = await client.post(
            "/workbooks/import",
            files={"file": ("renamed.xlsx", b"a,b,c\n", XLSX_MIME)},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "E1003"

    async def test_import_rejects_corrupt_workbook(
        self, client: httpx.AsyncClient
    ) -> None:
        response = await client.post(
            "/workbooks/import",
            files={"file": ("broken.xlsx", b"PK\x03\x04 broken", XLSX_MIME)},
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "E1004"

    async def test_import_returns_413_for_large_file(
        self, client: httpx.AsyncClient
    ) -> None:
        """Test that 413 is returned when file exceeds size limit."""
        mock_settings = type("MockSettings", (), {"max_file_size_bytes": 500})()

        with patch("sheet_bridge.services.file_validator.settings", mock_settings):
            response = await client.post(
                "/workbooks/import",
                files={"file": ("large.csv", b"x" * 1000, "text/csv")},
            )

        assert response.status_code == status.HTTP_413_CONTENT_TOO_LARGE
        data = response.json()
        assert data["error_code"] == "E1002"
        assert data["details"]["max_size_bytes"] == 500

    async def test_import_rejects_unknown_encoding(
        self, client: httpx.AsyncClient
    ) -> None:
        response = await client.post(
            "/workbooks/import",
            files={"file": ("a.csv", b"a,b\n", "text/csv")},
            data={"encoding": "latin-1"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        data = response.json()
        assert data["error_code"] == "E1005"
        assert "Unsupported encoding" in data["detail"]

    async def test_import_requires_file(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/workbooks/import")
        assert response.status_code == 422


class TestNewWorkbookEndpoint:
    async def test_new_workbook(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/workbooks/new")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["name"] == "Untitled"
        assert data["sheetOrder"] == ["sheet-0"]
        sheet = data["sheets"]["sheet-0"]
        assert sheet["rowCount"] == 100
        assert sheet["columnCount"] == 26
        assert sheet["defaultRowHeight"] == 24
        assert sheet["defaultColumnWidth"] == 88


class TestExportEndpoint:
    """Tests for the workbook export endpoint."""

    async def test_export_xlsx(
        self, client: httpx.AsyncClient, sales_snapshot: WorkbookSnapshot
    ) -> None:
        response = await client.post(
            "/workbooks/export/xlsx", json=_export_body(sales_snapshot)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == XLSX_MIME
        assert response.headers["content-disposition"] == (
            'attachment; filename="Workbook.xlsx"'
        )
        assert response.content[:4] == b"PK\x03\x04"

    async def test_export_csv_default_encoding(
        self, client: httpx.AsyncClient, sales_snapshot: WorkbookSnapshot
    ) -> None:
        response = await client.post(
            "/workbooks/export/csv", json=_export_body(sales_snapshot)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "text/csv;charset=utf-8"
        assert response.content.startswith(UTF8_BOM)
        assert response.content.endswith(b"TRUE,")

    async def test_export_csv_shift_jis_sheet(
        self, client: httpx.AsyncClient
    ) -> None:
        snapshot = make_snapshot(
            make_sheet("sheet-0", "A", cells={(0, 0): CellSnapshot(v="one")}),
            make_sheet("sheet-1", "B", cells={(0, 0): CellSnapshot(v="東京,大阪")}),
        )
        response = await client.post(
            "/workbooks/export/csv",
            json=_export_body(snapshot, sheet_id="sheet-1", encoding="shift_jis"),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "text/csv;charset=shift_jis"
        assert response.content == '"東京,大阪"'.encode("cp932")

    async def test_export_csv_unencodable_value(
        self, client: httpx.AsyncClient
    ) -> None:
        snapshot = make_snapshot(
            make_sheet("sheet-0", "A", cells={(0, 0): CellSnapshot(v="ok 😀")})
        )
        response = await client.post(
            "/workbooks/export/csv",
            json=_export_body(snapshot, encoding="shift_jis"),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "E1005"

    async def test_export_pdf(
        self, client: httpx.AsyncClient, sales_snapshot: WorkbookSnapshot
    ) -> None:
        with patch(
            "sheet_bridge.api.get_font_loader",
            return_value=FontLoader(font_url=None),
        ):
            response = await client.post(
                "/workbooks/export/pdf", json=_export_body(sales_snapshot)
            )

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    async def test_export_pdf_font_failure(
        self, client: httpx.AsyncClient, sales_snapshot: WorkbookSnapshot
    ) -> None:
        font_client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(404))
        )
        loader = FontLoader(font_url="https://fonts.test/a.ttf", client=font_client)
        with patch("sheet_bridge.api.get_font_loader", return_value=loader):
            response = await client.post(
                "/workbooks/export/pdf", json=_export_body(sales_snapshot)
            )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        data = response.json()
        assert data["error_code"] == "E5001"
        assert data["details"]["status_code"] == 404

    async def test_download_name_follows_snapshot_name(
        self, client: httpx.AsyncClient, sales_snapshot: WorkbookSnapshot
    ) -> None:
        sales_snapshot.name = "report.xlsx"
        response = await client.post(
            "/workbooks/export/csv", json=_export_body(sales_snapshot)
        )
        assert response.headers["content-disposition"] == (
            'attachment; filename="report.csv"'
        )

    async def test_unknown_format_is_rejected(
        self, client: httpx.AsyncClient, sales_snapshot: WorkbookSnapshot
    ) -> None:
        response = await client.post(
            "/workbooks/export/ods", json=_export_body(sales_snapshot)
        )
        assert response.status_code == 422

    async def test_import_then_export_round_trip(
        self, client: httpx.AsyncClient, xlsx_upload: bytes
    ) -> None:
        """Test that an imported snapshot can be exported unchanged."""
        imported = await client.post(
            "/workbooks/import",
            files={"file": ("budget.xlsx", xlsx_upload, XLSX_MIME)},
        )
        snapshot = imported.json()["snapshot"]

        response = await client.post(
            "/workbooks/export/csv", json={"snapshot": snapshot}
        )

        assert response.status_code == status.HTTP_200_OK
        text = response.content.decode("utf-8-sig")
        assert text.splitlines()[:2] == ["Rent,1200", "Food,300"]
