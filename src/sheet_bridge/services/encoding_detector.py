"""Byte-pattern detection of the text encoding of delimited files.

Only three encodings are distinguished: UTF-8, Shift_JIS and EUC-JP.
A byte-order mark or a strict UTF-8 decode settles the question with high
confidence. Otherwise the leading bytes are scanned for two-byte sequences
shaped like Shift_JIS or EUC-JP characters and the counts are compared.
"""

from dataclasses import dataclass

from sheet_bridge.models import EncodingConfidence, TextEncoding
from sheet_bridge.utils.logging import get_logger

logger = get_logger(__name__)

UTF8_BOM = b"\xef\xbb\xbf"

# Only the head of large files is scanned for multibyte patterns.
SCAN_LIMIT = 8192


@dataclass(frozen=True)
class DetectedEncoding:
    """Result of encoding detection.

    Attributes:
        encoding: The detected encoding.
        confidence: How certain the detector is.
        has_bom: Whether the data starts with a UTF-8 byte-order mark.
    """

    encoding: TextEncoding
    confidence: EncodingConfidence
    has_bom: bool = False


def _is_sjis_pair(lead: int, trail: int) -> bool:
    return (0x81 <= lead <= 0x9F or 0xE0 <= lead <= 0xEF) and (
        0x40 <= trail <= 0x7E or 0x80 <= trail <= 0xFC
    )


def _is_eucjp_pair(lead: int, trail: int) -> bool:
    if 0xA1 <= lead <= 0xFE and 0xA1 <= trail <= 0xFE:
        return True
    # Half-width katakana use the SS2 single-shift prefix.
    return lead == 0x8E and 0xA1 <= trail <= 0xDF


def count_multibyte_pairs(data: bytes, limit: int = SCAN_LIMIT) -> tuple[int, int]:
    """Count Shift_JIS-shaped and EUC-JP-shaped byte pairs.

    A matching pair consumes two bytes, anything else one. The Shift_JIS
    shape is tested first, so a pair matching both counts as Shift_JIS.

    Args:
        data: Raw bytes.
        limit: Maximum number of leading bytes to examine.

    Returns:
        Tuple of (shift_jis_count, euc_jp_count).
    """
    head = data[:limit]
    sjis = 0
    euc = 0
    i = 0
    end = len(head) - 1
    while i < end:
        lead = head[i]
        trail = head[i + 1]
        if _is_sjis_pair(lead, trail):
            sjis += 1
            i += 2
        elif _is_eucjp_pair(lead, trail):
            euc += 1
            i += 2
        else:
            i += 1
    return sjis, euc


def detect_encoding(data: bytes) -> DetectedEncoding:
    """Detect the encoding of raw text bytes.

    Never raises; undecidable input is reported as Shift_JIS with low
    confidence.

    Args:
        data: Raw bytes of a delimited text file.

    Returns:
        DetectedEncoding with encoding, confidence and BOM flag.
    """
    if not data:
        return DetectedEncoding(TextEncoding.UTF8, EncodingConfidence.LOW)

    if data.startswith(UTF8_BOM):
        return DetectedEncoding(
            TextEncoding.UTF8, EncodingConfidence.HIGH, has_bom=True
        )

    try:
        data.decode("utf-8", errors="strict")
    except UnicodeDecodeError:
        pass
    else:
        return DetectedEncoding(TextEncoding.UTF8, EncodingConfidence.HIGH)

    sjis, euc = count_multibyte_pairs(data)

    if euc > sjis:
        confidence = (
            EncodingConfidence.HIGH if euc > sjis * 2 else EncodingConfidence.MEDIUM
        )
        result = DetectedEncoding(TextEncoding.EUC_JP, confidence)
    else:
        if sjis == 0:
            confidence = EncodingConfidence.LOW
        elif sjis > euc * 2:
            confidence = EncodingConfidence.HIGH
        else:
            confidence = EncodingConfidence.MEDIUM
        result = DetectedEncoding(TextEncoding.SHIFT_JIS, confidence)

    logger.debug(
        "Detected legacy encoding",
        encoding=result.encoding.value,
        confidence=result.confidence.value,
        sjis_pairs=sjis,
        euc_pairs=euc,
    )
    return result
