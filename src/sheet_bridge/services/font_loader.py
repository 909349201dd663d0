"""Font used to render PDF text, loaded once per process.

With ``pdf_font_url`` configured, a TrueType font (typically a Japanese
subset such as Noto Sans JP) is downloaded on the first PDF export and
registered with reportlab. Without it, reportlab's built-in CID font is
registered instead, which needs no network access and still covers
Japanese text.

Concurrent first exports share one download. A failed download is not
cached; the next export tries again.
"""

import io
import threading
import time

import httpx
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfbase.ttfonts import TTFError, TTFont

from sheet_bridge.config import settings
from sheet_bridge.utils.exceptions import ExternalResourceError
from sheet_bridge.utils.logging import get_logger
from sheet_bridge.utils.single_flight import SingleFlight

logger = get_logger(__name__)


class FontLoader:
    """Fetches and registers the PDF font at most once."""

    def __init__(
        self,
        font_url: str | None = None,
        font_name: str | None = None,
        fallback_font: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            font_url: TrueType font URL; uses the built-in font when None.
            font_name: Name to register the fetched font under.
            fallback_font: Built-in CID font name.
            timeout_seconds: Download timeout.
            client: HTTP client to fetch with; a short-lived one is created
                per download when omitted.
        """
        self.font_url = font_url
        self.font_name = font_name or settings.pdf_font_name
        self.fallback_font = fallback_font or settings.pdf_fallback_font
        self.timeout_seconds = timeout_seconds or settings.font_fetch_timeout_seconds
        self._client = client
        self._flight: SingleFlight[str] = SingleFlight(self._load, name="pdf-font")

    @classmethod
    def from_settings(cls) -> "FontLoader":
        return cls(font_url=settings.pdf_font_url)

    @property
    def is_loaded(self) -> bool:
        return self._flight.is_loaded

    def get_font_name(self) -> str:
        """Return the registered font name, loading the font on first use.

        Raises:
            ExternalResourceError: If the font cannot be fetched or registered.
        """
        return self._flight.get()

    def reset(self) -> None:
        """Forget the loaded font so the next call loads it again."""
        self._flight.reset()

    def _load(self) -> str:
        if not self.font_url:
            pdfmetrics.registerFont(UnicodeCIDFont(self.fallback_font))
            logger.info("Registered built-in PDF font", font=self.fallback_font)
            return self.fallback_font

        font_bytes = self._fetch(self.font_url)
        try:
            pdfmetrics.registerFont(TTFont(self.font_name, io.BytesIO(font_bytes)))
        except TTFError as e:
            raise ExternalResourceError(
                f"Downloaded PDF font is not a usable TrueType font: {e}",
                resource=self.font_url,
            ) from e
        logger.info(
            "Registered PDF font",
            font=self.font_name,
            size_bytes=len(font_bytes),
        )
        return self.font_name

    def _fetch(self, url: str) -> bytes:
        started = time.perf_counter()
        try:
            if self._client is not None:
                response = self._client.get(url, timeout=self.timeout_seconds)
            else:
                with httpx.Client(timeout=self.timeout_seconds) as client:
                    response = client.get(url)
        except httpx.HTTPError as e:
            logger.log_fetch(
                url,
                time.perf_counter() - started,
                success=False,
                error_message=str(e),
            )
            raise ExternalResourceError(
                f"Failed to fetch PDF font: {e}", resource=url
            ) from e

        duration = time.perf_counter() - started
        if not response.is_success:
            logger.log_fetch(
                url,
                duration,
                success=False,
                error_message=f"HTTP {response.status_code}",
            )
            raise ExternalResourceError(
                f"Failed to fetch PDF font (HTTP {response.status_code})",
                resource=url,
                status_code=response.status_code,
            )

        logger.log_fetch(url, duration, size_bytes=len(response.content))
        return response.content


_default_loader: FontLoader | None = None
_default_loader_lock = threading.Lock()


def get_font_loader() -> FontLoader:
    """Return the process-wide loader built from settings."""
    global _default_loader
    with _default_loader_lock:
        if _default_loader is None:
            _default_loader = FontLoader.from_settings()
        return _default_loader


def reset_font_loader() -> None:
    """Discard the process-wide loader (used by tests and settings reloads)."""
    global _default_loader
    with _default_loader_lock:
        _default_loader = None
