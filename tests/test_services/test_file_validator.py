"""Tests for the file intake validator."""

import pytest

from sheet_bridge.models import FileKind
from sheet_bridge.services.file_validator import (
    MAGIC_SIGNATURES,
    FileValidator,
    get_extension,
)
from sheet_bridge.utils.exceptions import (
    FileTooLargeError,
    FormatMismatchError,
    RejectedFormatError,
)

MIB = 1024 * 1024
XLSX_HEAD = b"PK\x03\x04" + b"\x00" * 16
XLS_HEAD = b"\xd0\xcf\x11\xe0" + b"\x00" * 16


@pytest.fixture
def validator() -> FileValidator:
    return FileValidator()


class TestGetExtension:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("report.xlsx", ".xlsx"),
            ("REPORT.XLS", ".xls"),
            ("data.Csv", ".csv"),
            ("archive.csv.xlsx", ".xlsx"),
            ("noext", ""),
            ("dir/sub/file.csv", ".csv"),
        ],
    )
    def test_extension(self, name: str, expected: str) -> None:
        assert get_extension(name) == expected


class TestValidateExtension:
    """Tests for extension checks."""

    @pytest.mark.parametrize(
        ("name", "kind"),
        [
            ("a.xlsx", FileKind.XLSX),
            ("a.XLS", FileKind.XLS),
            ("a.csv", FileKind.CSV),
        ],
    )
    def test_accepted_extensions(
        self, validator: FileValidator, name: str, kind: FileKind
    ) -> None:
        assert validator.validate_extension(name) is kind

    @pytest.mark.parametrize("name", ["a.txt", "a.xlsm", "a", "a.pdf"])
    def test_rejected_extensions(self, validator: FileValidator, name: str) -> None:
        with pytest.raises(RejectedFormatError) as exc_info:
            validator.validate_extension(name)
        assert exc_info.value.file_name == name

    def test_supported_extensions(self) -> None:
        assert FileValidator.get_supported_extensions() == [".xlsx", ".xls", ".csv"]


class TestValidateSize:
    """Tests for the size ceiling."""

    def test_default_ceiling_is_50_mib(self, validator: FileValidator) -> None:
        assert validator.max_size_bytes == 50 * MIB

    def test_exactly_at_ceiling_passes(self, validator: FileValidator) -> None:
        validator.validate_size(50 * MIB)

    def test_one_byte_over_fails(self, validator: FileValidator) -> None:
        with pytest.raises(FileTooLargeError) as exc_info:
            validator.validate_size(50 * MIB + 1)
        assert exc_info.value.max_size == 50 * MIB

    def test_custom_ceiling(self) -> None:
        validator = FileValidator(max_size_bytes=10)
        validator.validate_size(10)
        with pytest.raises(FileTooLargeError):
            validator.validate_size(11)


class TestValidateMagicBytes:
    """Tests for container signature checks."""

    def test_signatures(self) -> None:
        assert MAGIC_SIGNATURES[FileKind.XLSX] == bytes([0x50, 0x4B, 0x03, 0x04])
        assert MAGIC_SIGNATURES[FileKind.XLS] == bytes([0xD0, 0xCF, 0x11, 0xE0])
        assert FileKind.CSV not in MAGIC_SIGNATURES

    def test_matching_signatures_pass(self, validator: FileValidator) -> None:
        validator.validate_magic_bytes(XLSX_HEAD, FileKind.XLSX)
        validator.validate_magic_bytes(XLS_HEAD, FileKind.XLS)

    def test_csv_is_never_checked(self, validator: FileValidator) -> None:
        validator.validate_magic_bytes(b"", FileKind.CSV)
        validator.validate_magic_bytes(XLS_HEAD, FileKind.CSV)

    def test_swapped_signature_fails(self, validator: FileValidator) -> None:
        with pytest.raises(FormatMismatchError) as exc_info:
            validator.validate_magic_bytes(XLS_HEAD, FileKind.XLSX, file_name="a.xlsx")
        assert exc_info.value.details["actual_signature"] == "d0 cf 11 e0"

    def test_short_payload_fails(self, validator: FileValidator) -> None:
        with pytest.raises(FormatMismatchError):
            validator.validate_magic_bytes(b"PK", FileKind.XLSX)


class TestValidateFile:
    """Tests for the combined check and its ordering."""

    def test_accepts_valid_files(self, validator: FileValidator) -> None:
        assert validator.validate_file("a.xlsx", XLSX_HEAD) is FileKind.XLSX
        assert validator.validate_file("a.xls", XLS_HEAD) is FileKind.XLS
        assert validator.validate_file("a.csv", b"x,y") is FileKind.CSV

    def test_rejects_file_one_byte_over_ceiling(self) -> None:
        validator = FileValidator(max_size_bytes=50 * MIB)
        payload = XLSX_HEAD + bytes(50 * MIB + 1 - len(XLSX_HEAD))
        with pytest.raises(FileTooLargeError):
            validator.validate_file("big.xlsx", payload)

    def test_accepts_file_exactly_at_ceiling(self) -> None:
        validator = FileValidator(max_size_bytes=50 * MIB)
        payload = XLSX_HEAD + bytes(50 * MIB - len(XLSX_HEAD))
        assert validator.validate_file("big.xlsx", payload) is FileKind.XLSX

    def test_extension_checked_before_size(self) -> None:
        validator = FileValidator(max_size_bytes=1)
        with pytest.raises(RejectedFormatError):
            validator.validate_file("a.txt", b"too large")

    def test_size_checked_before_signature(self) -> None:
        validator = FileValidator(max_size_bytes=1)
        with pytest.raises(FileTooLargeError):
            validator.validate_file("a.xlsx", b"not a zip")

    def test_signature_mismatch(self, validator: FileValidator) -> None:
        with pytest.raises(FormatMismatchError):
            validator.validate_file("a.xls", b"a,b,c\n1,2,3")
