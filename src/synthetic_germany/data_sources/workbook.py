"""
Spreadsheet-backed indicator sources.

The analysis input is one workbook with a sheet per indicator. The same
sheets exported as ``<Sheet Name>.csv`` files into a directory, or held as
DataFrames in memory, are read through the same interface.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from .base import DataSource, DataSourceError, DataSourceType


class WorkbookDataSource(DataSource):
    """
    Excel workbook with one sheet per indicator.

    Example:
        >>> with WorkbookDataSource("indicators.xlsx") as source:
        ...     tables = source.load_indicators()
    """

    def __init__(self, path: Union[str, Path], engine: Optional[str] = "openpyxl"):
        super().__init__(DataSourceType.EXCEL)
        self.path = Path(path)
        self.engine = engine
        self._workbook: Optional[pd.ExcelFile] = None

    def connect(self) -> None:
        if self._is_connected:
            return
        if not self.path.is_file():
            raise DataSourceError(f"Workbook not found: {self.path}", self.source_type)
        try:
            self._workbook = pd.ExcelFile(self.path, engine=self.engine)
        except Exception as e:
            raise DataSourceError(
                f"Cannot open workbook {self.path}: {e}", self.source_type
            ) from e
        self._is_connected = True
        self.logger.info(f"Opened workbook {self.path}")

    def disconnect(self) -> None:
        if self._workbook is not None:
            self._workbook.close()
        self._workbook = None
        self._is_connected = False

    def list_datasets(self) -> List[str]:
        if not self._is_connected:
            self.connect()
        return [str(name) for name in self._workbook.sheet_names]

    def _read_raw(self, sheet_name: str) -> pd.DataFrame:
        return self._workbook.parse(sheet_name)


class CsvDirectoryDataSource(DataSource):
    """Directory holding one ``<Sheet Name>.csv`` file per indicator."""

    def __init__(self, directory: Union[str, Path], encoding: str = "utf-8"):
        super().__init__(DataSourceType.CSV)
        self.directory = Path(directory)
        self.encoding = encoding

    def connect(self) -> None:
        if not self.directory.is_dir():
            raise DataSourceError(f"Directory not found: {self.directory}", self.source_type)
        self._is_connected = True

    def disconnect(self) -> None:
        self._is_connected = False

    def list_datasets(self) -> List[str]:
        if not self._is_connected:
            self.connect()
        return sorted(path.stem for path in self.directory.glob("*.csv"))

    def _read_raw(self, sheet_name: str) -> pd.DataFrame:
        return pd.read_csv(self.directory / f"{sheet_name}.csv", encoding=self.encoding)


class InMemoryDataSource(DataSource):
    """Raw sheets already loaded as DataFrames, keyed by sheet name."""

    def __init__(self, sheets: Dict[str, pd.DataFrame]):
        super().__init__(DataSourceType.MEMORY)
        self.sheets = dict(sheets)

    def connect(self) -> None:
        self._is_connected = True

    def disconnect(self) -> None:
        self._is_connected = False

    def list_datasets(self) -> List[str]:
        return list(self.sheets)

    def _read_raw(self, sheet_name: str) -> pd.DataFrame:
        return self.sheets[sheet_name].copy()


def create_data_source(path: Union[str, Path]) -> DataSource:
    """
    Pick the source type from the input path.

    Args:
        path: Workbook file (.xlsx/.xlsm/.xls) or directory of CSV files

    Returns:
        Unconnected DataSource
    """
    path = Path(path)
    if path.is_dir():
        return CsvDirectoryDataSource(path)
    if path.suffix.lower() in {".xlsx", ".xlsm", ".xls"}:
        return WorkbookDataSource(path, engine=None if path.suffix.lower() == ".xls" else "openpyxl")
    raise DataSourceError(f"Unsupported input: {path}")
