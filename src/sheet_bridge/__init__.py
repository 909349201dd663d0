"""Sheet Bridge - on-device conversion core for spreadsheet files."""

__version__ = "0.1.0"

from sheet_bridge.api import app, create_app  # noqa: E402

__all__ = ["app", "create_app"]


def main() -> None:
    """Run the FastAPI server using uvicorn."""
    import uvicorn

    from sheet_bridge.config import settings

    uvicorn.run(
        "sheet_bridge.api:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
