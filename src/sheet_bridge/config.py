"""Configuration management for sheet-bridge.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
SHEET_BRIDGE_ prefix, or via a .env file in the project root.

Environment Variables:
    SHEET_BRIDGE_MAX_FILE_SIZE_MB: Maximum accepted file size in MiB (default: 50)
    SHEET_BRIDGE_DEFAULT_CSV_ENCODING: Encoding for CSV export (default: utf-8)
    SHEET_BRIDGE_MIN_ROW_COUNT: Minimum rows of an imported sheet (default: 1000)
    SHEET_BRIDGE_MIN_COLUMN_COUNT: Minimum columns of an imported sheet (default: 26)
    SHEET_BRIDGE_PDF_DEFAULT_COLUMN_WIDTH_PX: Raw PDF width of unsized columns
        (default: 80)
    SHEET_BRIDGE_PDF_FONT_URL: URL of a TrueType font embedded in PDFs
        (default: unset, use the built-in CID font)
    SHEET_BRIDGE_PDF_FONT_NAME: Name the fetched font is registered under
    SHEET_BRIDGE_PDF_FALLBACK_FONT: Built-in CID font used without a URL
    SHEET_BRIDGE_FONT_FETCH_TIMEOUT_SECONDS: Font download timeout (default: 10)
    SHEET_BRIDGE_LOG_LEVEL: Logging level (default: INFO)
    SHEET_BRIDGE_DEBUG: Enable debug mode (default: false)
    SHEET_BRIDGE_CORS_ORIGINS: Comma-separated CORS origins (default: *)
    SHEET_BRIDGE_SERVER_HOST: Server bind host (default: 127.0.0.1)
    SHEET_BRIDGE_SERVER_PORT: Server bind port (default: 8000)
"""

import logging
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sheet_bridge.models import TextEncoding


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Example .env file:
        SHEET_BRIDGE_DEFAULT_CSV_ENCODING=shift_jis
        SHEET_BRIDGE_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="SHEET_BRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # File Intake Settings
    # =========================================================================

    max_file_size_mb: int = 50
    """Maximum accepted file size in mebibytes. The ceiling itself is accepted."""

    # =========================================================================
    # Conversion Settings
    # =========================================================================

    default_csv_encoding: str = TextEncoding.UTF8.value
    """Encoding used for CSV export when the caller does not pick one."""

    min_row_count: int = 1000
    """Lower bound for the row count of an imported sheet."""

    min_column_count: int = 26
    """Lower bound for the column count of an imported sheet."""

    pdf_default_column_width_px: float = 80.0
    """Raw width given to PDF columns that carry no width hint."""

    # =========================================================================
    # PDF Font Settings
    # =========================================================================

    pdf_font_url: str | None = None
    """URL of a TrueType font (e.g. a Japanese subset) to embed in PDFs."""

    pdf_font_name: str = "NotoSansJP"
    """Name the fetched TrueType font is registered under."""

    pdf_fallback_font: str = "HeiseiKakuGo-W5"
    """Built-in reportlab CID font used when no font URL is configured."""

    font_fetch_timeout_seconds: float = 10.0
    """Timeout for the one-time font download."""

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL."""

    debug: bool = False
    """Enable debug mode with additional logging and error details."""

    # =========================================================================
    # Server Settings
    # =========================================================================

    cors_origins: str = "*"
    """Comma-separated list of allowed CORS origins, or * for all."""

    server_host: str = "127.0.0.1"
    """Host address for the local server. Loopback keeps data on the device."""

    server_port: int = 8000
    """Port for the server to listen on."""

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return upper_v

    @field_validator("default_csv_encoding")
    @classmethod
    def validate_csv_encoding(cls, v: str) -> str:
        """Normalize the encoding name to one of the supported encodings."""
        return TextEncoding.parse(v).value

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_file_size(cls, v: int) -> int:
        if not 1 <= v <= 500:
            raise ValueError(f"max_file_size_mb must be between 1 and 500, got {v}")
        return v

    @field_validator("min_row_count", "min_column_count")
    @classmethod
    def validate_min_extent(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Minimum sheet extent must be at least 1, got {v}")
        return v

    @field_validator("pdf_default_column_width_px", "font_fetch_timeout_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"server_port must be between 1 and 65535, got {v}")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def csv_encoding(self) -> TextEncoding:
        """Get the default CSV encoding as an enum member."""
        return TextEncoding(self.default_csv_encoding)

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        level: int = getattr(logging, self.log_level)
        return level

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert settings to a dictionary suitable for logging.

        Returns:
            Dictionary representation. The font URL is reduced to whether
            it is set, since it may carry access tokens in its query string.
        """
        return {
            "max_file_size_mb": self.max_file_size_mb,
            "default_csv_encoding": self.default_csv_encoding,
            "min_row_count": self.min_row_count,
            "min_column_count": self.min_column_count,
            "pdf_default_column_width_px": self.pdf_default_column_width_px,
            "pdf_font_url": "(set)" if self.pdf_font_url else "(not set)",
            "pdf_font_name": self.pdf_font_name,
            "pdf_fallback_font": self.pdf_fallback_font,
            "font_fetch_timeout_seconds": self.font_fetch_timeout_seconds,
            "log_level": self.log_level,
            "debug": self.debug,
            "cors_origins": self.cors_origins,
            "server_host": self.server_host,
            "server_port": self.server_port,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Log warnings for settings that weaken the on-device guarantee.

    Args:
        s: Settings instance to validate.
    """
    logger = logging.getLogger(__name__)

    if s.pdf_font_url:
        logger.warning(
            "A remote PDF font URL is configured; the first PDF export will "
            "make one network request to fetch it."
        )

    if s.server_host not in {"127.0.0.1", "localhost", "::1"}:
        logger.warning(
            f"Server is bound to {s.server_host}; workbook data may be "
            "reachable from other machines."
        )

    if s.cors_origins == "*" and not s.debug:
        logger.warning(
            "CORS is configured to allow all origins (*). "
            "Consider restricting this to the editor's origin."
        )

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"max_file_size_mb={s.max_file_size_mb}, "
        f"default_csv_encoding={s.default_csv_encoding}"
    )


settings = Settings()
