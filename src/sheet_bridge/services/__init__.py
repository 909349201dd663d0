"""Services for reading, converting and writing workbooks."""

from sheet_bridge.services.file_validator import FileValidator
from sheet_bridge.services.tabular_reader import TabularReader

__all__ = ["FileValidator", "TabularReader"]
