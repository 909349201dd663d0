"""Text to bytes conversion for delimited text in the supported encodings.

UTF-8 output always starts with a byte-order mark so spreadsheet
applications recognise it. Shift_JIS and EUC-JP are written without one.

The Japanese transcoders are resolved lazily through the codec registry,
once per process, and shared by every caller. Shift_JIS uses the Windows
code page 932 variant, which is what spreadsheet applications and
browsers actually produce and consume under that name.
"""

import codecs

from sheet_bridge.models import TextEncoding
from sheet_bridge.services.encoding_detector import UTF8_BOM
from sheet_bridge.utils.exceptions import ConfigurationError, EncodingError
from sheet_bridge.utils.logging import get_logger
from sheet_bridge.utils.single_flight import SingleFlight

logger = get_logger(__name__)

# Python codec names backing each legacy encoding.
LEGACY_CODEC_NAMES: dict[TextEncoding, str] = {
    TextEncoding.SHIFT_JIS: "cp932",
    TextEncoding.EUC_JP: "euc_jp",
}


def _make_transcoder_loader(encoding: TextEncoding) -> SingleFlight[codecs.CodecInfo]:
    codec_name = LEGACY_CODEC_NAMES[encoding]

    def load() -> codecs.CodecInfo:
        try:
            info = codecs.lookup(codec_name)
        except LookupError as e:
            raise ConfigurationError(
                capability=f"codec:{codec_name}",
                encoding=encoding.value,
                message=(
                    f"Failed to load the {codec_name} transcoder required for "
                    f"encoding {encoding.value}; check that the Python build "
                    "includes the CJK codecs"
                ),
            ) from e
        logger.debug("Loaded transcoder", encoding=encoding.value, codec=info.name)
        return info

    return SingleFlight(load, name=f"transcoder:{codec_name}")


_transcoders: dict[TextEncoding, SingleFlight[codecs.CodecInfo]] = {
    encoding: _make_transcoder_loader(encoding) for encoding in LEGACY_CODEC_NAMES
}


def get_transcoder(encoding: TextEncoding) -> codecs.CodecInfo:
    """Return the codec for a legacy encoding, loading it on first use.

    Raises:
        ConfigurationError: If the codec is not available.
    """
    return _transcoders[encoding].get()


def reset_transcoders() -> None:
    """Drop cached transcoders so the next use loads them again."""
    for loader in _transcoders.values():
        loader.reset()


def encode_text(text: str, encoding: TextEncoding | str) -> bytes:
    """Encode text for writing to a file.

    Args:
        text: Text to encode.
        encoding: Target encoding.

    Returns:
        Encoded bytes; UTF-8 output is BOM-prefixed even for empty text.

    Raises:
        ConfigurationError: If the legacy transcoder cannot be loaded.
        EncodingError: If a character cannot be represented.
    """
    encoding = TextEncoding.parse(encoding)
    if encoding is TextEncoding.UTF8:
        return UTF8_BOM + text.encode("utf-8")

    codec = get_transcoder(encoding)
    try:
        encoded, _ = codec.encode(text, "strict")
    except UnicodeEncodeError as e:
        bad = e.object[e.start : e.end]
        raise EncodingError(
            f"Text contains characters that cannot be written as "
            f"{encoding.value}: {bad!r}",
            encoding=encoding.value,
            details={"position": e.start},
        ) from e
    return encoded


def strip_bom(data: bytes) -> bytes:
    """Remove a leading UTF-8 byte-order mark if present."""
    if data.startswith(UTF8_BOM):
        return data[len(UTF8_BOM) :]
    return data


def decode_bytes(data: bytes, encoding: TextEncoding | str) -> str:
    """Decode file bytes to text.

    A leading UTF-8 BOM is removed whatever the encoding. Undecodable
    bytes become U+FFFD instead of raising.

    Raises:
        ConfigurationError: If the legacy transcoder cannot be loaded.
    """
    encoding = TextEncoding.parse(encoding)
    data = strip_bom(data)
    if encoding is TextEncoding.UTF8:
        return data.decode("utf-8", errors="replace")
    codec = get_transcoder(encoding)
    text, _ = codec.decode(data, "replace")
    return text


def content_type_for(encoding: TextEncoding | str) -> str:
    """MIME type of a CSV payload in the given encoding."""
    return f"text/csv;charset={TextEncoding.parse(encoding).value}"
