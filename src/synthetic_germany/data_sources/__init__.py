"""
Data source connectors for the indicator workbook.

This module provides the interface and implementations for reading the
per-indicator country-by-year sheets from a workbook, a CSV directory or
memory.
"""

from .base import (
    DataSource, DataSourceError, DataSourceType, QueryResult,
    SchemaError, SheetNotFoundError, parse_indicator_sheet
)
from .workbook import (
    CsvDirectoryDataSource, InMemoryDataSource, WorkbookDataSource,
    create_data_source
)

__all__ = [
    "DataSource",
    "DataSourceError",
    "DataSourceType",
    "QueryResult",
    "SchemaError",
    "SheetNotFoundError",
    "parse_indicator_sheet",
    "CsvDirectoryDataSource",
    "InMemoryDataSource",
    "WorkbookDataSource",
    "create_data_source",
]
