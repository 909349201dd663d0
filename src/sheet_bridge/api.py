"""FastAPI application exposing the conversion core on the local machine."""

import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import PurePath
from typing import Annotated, Any

from fastapi import (
    FastAPI,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from sheet_bridge import __version__
from sheet_bridge.config import settings, validate_settings_on_startup
from sheet_bridge.models import (
    EncodingInfo,
    ErrorDetail,
    ExportFormat,
    ExportRequest,
    HealthResponse,
    ImportResponse,
    TextEncoding,
)
from sheet_bridge.services.export import (
    ExportBlob,
    export_csv,
    export_pdf,
    export_xlsx,
)
from sheet_bridge.services.file_validator import FileValidator
from sheet_bridge.services.font_loader import get_font_loader
from sheet_bridge.services.snapshot_importer import (
    create_empty_snapshot,
    import_snapshot,
)
from sheet_bridge.services.tabular_reader import TabularReader
from sheet_bridge.utils.exceptions import (
    EncodingError,
    ErrorCode,
    SheetBridgeError,
)
from sheet_bridge.utils.logging import (
    LogContext,
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)
from sheet_bridge.workbook_snapshot import WorkbookSnapshot

# Configure structured logging using settings
configure_logging(
    level=settings.log_level_int,
    use_structured_formatter=True,
)
logger = get_logger(__name__)


def _parse_encoding(value: str | None) -> TextEncoding | None:
    if value is None or not value.strip():
        return None
    try:
        return TextEncoding.parse(value)
    except ValueError as e:
        raise EncodingError(str(e), encoding=value) from e


def _import_upload(
    file_name: str, data: bytes, encoding: TextEncoding | None
) -> ImportResponse:
    with LogContext(file_name=file_name, operation="import"):
        kind = FileValidator().validate_file(file_name, data)
        result = TabularReader().read(data, kind, encoding)
        snapshot = import_snapshot(result.document)

    detected = result.detected_encoding
    return ImportResponse(
        filename=file_name,
        file_kind=kind,
        file_size=len(data),
        detected_encoding=(
            EncodingInfo(
                encoding=detected.encoding,
                confidence=detected.confidence,
                has_bom=detected.has_bom,
            )
            if detected is not None
            else None
        ),
        snapshot=snapshot,
    )


def _export(export_format: ExportFormat, body: ExportRequest) -> ExportBlob:
    if export_format is ExportFormat.XLSX:
        return export_xlsx(body.snapshot)
    if export_format is ExportFormat.CSV:
        return export_csv(body.snapshot, body.sheet_id, body.encoding)
    return export_pdf(body.snapshot, get_font_loader())


def _download_name(snapshot: WorkbookSnapshot, export_format: ExportFormat) -> str:
    stem = PurePath(snapshot.name or "workbook").stem or "workbook"
    # Header values must stay ASCII.
    stem = stem.encode("ascii", "replace").decode("ascii").replace('"', "_")
    return f"{stem}.{export_format.value}"


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> Any:
        logger.info("Settings loaded", **settings.to_safe_dict())
        yield

    app = FastAPI(
        title="Sheet Bridge API",
        description=(
            "On-device conversion between spreadsheet files (XLSX, XLS, CSV) "
            "and the workbook snapshot of an interactive spreadsheet engine, "
            "with export to XLSX, CSV and PDF."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Configure CORS using settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    # Validate settings on startup
    validate_settings_on_startup(settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, expose it to logging and echo it back."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(SheetBridgeError)
    async def sheet_bridge_exception_handler(
        request: Request, exc: SheetBridgeError
    ) -> JSONResponse:
        """Map library errors to structured responses with their error codes."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.error(
            f"Sheet Bridge Error: {exc.message}",
            error_code=exc.error_code.value,
            http_status=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=ErrorDetail(
                detail=exc.message,
                error_code=exc.error_code.value,
                details=exc.details if exc.details else None,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        """Custom exception handler for HTTP exceptions."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.warning(
            f"HTTP Error: {exc.detail}",
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                detail=str(exc.detail),
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all exception handler for unexpected errors.

        Logs the full exception and returns a generic error response
        to avoid leaking internal details.
        """
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.exception(
            f"Unexpected error: {type(exc).__name__}",
            error_type=type(exc).__name__,
        )
        if settings.debug:
            detail = f"Internal server error: {type(exc).__name__}: {exc}"
        else:
            detail = "Internal server error. Please try again later."

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail(
                detail=detail,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request) -> dict[str, Any]:
        """Check the health status of the service.

        Returns:
            HealthResponse: Service status information including status,
                timestamp, and version.
        """
        request_id = getattr(request.state, "request_id", None)
        logger.debug("Health check requested", request_id=request_id)
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
        }

    @app.post(
        "/workbooks/import",
        response_model=ImportResponse,
        response_model_exclude_none=True,
        tags=["Workbooks"],
        responses={
            400: {"model": ErrorDetail, "description": "Signature or encoding error"},
            413: {"model": ErrorDetail, "description": "File too large"},
            415: {"model": ErrorDetail, "description": "Unsupported file format"},
            422: {"model": ErrorDetail, "description": "Unreadable workbook"},
        },
    )
    async def import_workbook(
        request: Request,
        file: Annotated[UploadFile, File(description="XLSX, XLS or CSV file")],
        encoding: Annotated[
            str | None,
            Form(description="CSV encoding override: utf-8, shift_jis or euc-jp"),
        ] = None,
    ) -> ImportResponse:
        """Read an uploaded file into a workbook snapshot.

        CSV uploads are decoded with ``encoding`` when given, otherwise with
        the detected encoding, which is reported in the response.

        Args:
            request: FastAPI request object
            file: The spreadsheet file to open
            encoding: Optional CSV encoding override

        Returns:
            ImportResponse: The snapshot plus what was detected about the file
        """
        request_id = getattr(request.state, "request_id", None)
        file_name = file.filename or ""
        override = _parse_encoding(encoding)
        data = await file.read()

        response = await run_in_threadpool(_import_upload, file_name, data, override)

        logger.info(
            "Workbook imported",
            filename=file_name,
            file_size=len(data),
            sheets=len(response.snapshot.sheet_order),
            request_id=request_id,
        )
        return response

    @app.post(
        "/workbooks/new",
        response_model=WorkbookSnapshot,
        response_model_exclude_none=True,
        tags=["Workbooks"],
    )
    async def new_workbook() -> WorkbookSnapshot:
        """Return an empty single-sheet workbook snapshot."""
        return create_empty_snapshot()

    @app.post(
        "/workbooks/export/{export_format}",
        tags=["Workbooks"],
        response_class=Response,
        responses={
            200: {
                "content": {
                    "application/vnd.openxmlformats-officedocument"
                    ".spreadsheetml.sheet": {},
                    "text/csv": {},
                    "application/pdf": {},
                },
                "description": "The serialized file",
            },
            400: {"model": ErrorDetail, "description": "Unencodable CSV content"},
            500: {"model": ErrorDetail, "description": "Transcoder unavailable"},
            502: {"model": ErrorDetail, "description": "PDF font unavailable"},
        },
    )
    async def export_workbook(
        request: Request, export_format: ExportFormat, body: ExportRequest
    ) -> Response:
        """Serialize a snapshot as XLSX, CSV or PDF.

        Args:
            request: FastAPI request object
            export_format: Target format
            body: Snapshot plus CSV sheet and encoding options

        Returns:
            Response: Raw file bytes with the format's content type
        """
        request_id = getattr(request.state, "request_id", None)
        blob = await run_in_threadpool(_export, export_format, body)

        logger.info(
            "Workbook exported",
            format=export_format.value,
            size=blob.size,
            request_id=request_id,
        )
        file_name = _download_name(body.snapshot, export_format)
        return Response(
            content=blob.data,
            media_type=blob.content_type,
            headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
        )

    logger.info("FastAPI application created successfully")
    return app


# Create the application instance
app = create_app()
