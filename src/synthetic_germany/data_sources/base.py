"""
Base interfaces and abstract classes for data sources.

This module defines the common interface that every indicator source must
implement: open, list the available tables, and read one table per
indicator into a wide country-by-year frame.
"""

from __future__ import annotations

import numbers
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict

from ..models import Indicator, canonical_country_name
from ..utils.logging import get_logger

logger = get_logger(__name__)


class DataSourceType(str, Enum):
    """Types of data sources."""
    EXCEL = "excel"
    CSV = "csv"
    MEMORY = "memory"


@dataclass
class QueryMetadata:
    """Metadata for a table read."""
    query_id: str
    source_type: DataSourceType
    dataset_name: str
    timestamp: datetime = field(default_factory=datetime.now)
    execution_time: Optional[float] = None
    row_count: Optional[int] = None
    dropped_columns: List[str] = field(default_factory=list)
    error_message: Optional[str] = None


class QueryResult(BaseModel):
    """
    Result of reading one table.

    Attributes:
        data: Wide table indexed by country, one column per year
        metadata: Query metadata
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: pd.DataFrame
    metadata: QueryMetadata

    @property
    def is_empty(self) -> bool:
        """Check if result is empty."""
        return self.data.empty

    @property
    def years(self) -> List[int]:
        """Years present as columns."""
        return [int(column) for column in self.data.columns]


class DataSourceError(Exception):
    """Base exception for data source errors."""

    def __init__(
        self,
        message: str,
        source_type: Optional[DataSourceType] = None,
        query_id: Optional[str] = None
    ):
        """Initialize error."""
        super().__init__(message)
        self.source_type = source_type
        self.query_id = query_id
        self.timestamp = datetime.now()


class SheetNotFoundError(DataSourceError):
    """Requested sheet does not exist in the source."""
    pass


class SchemaError(DataSourceError):
    """Sheet exists but lacks the country column or any year column."""
    pass


class DataSource(ABC):
    """
    Abstract base class for indicator data sources.

    Subclasses read raw sheets; this class turns them into clean wide
    tables and handles logging, timing and error wrapping.
    """

    def __init__(self, source_type: DataSourceType):
        self.source_type = source_type
        self._is_connected = False
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def connect(self) -> None:
        """Open the underlying source."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Release the underlying source."""
        pass

    @abstractmethod
    def list_datasets(self) -> List[str]:
        """List available sheet names."""
        pass

    @abstractmethod
    def _read_raw(self, sheet_name: str) -> pd.DataFrame:
        """Read a sheet exactly as stored, header row included as columns."""
        pass

    def read_table(self, sheet_name: str) -> QueryResult:
        """
        Read and clean one sheet.

        Args:
            sheet_name: Name of the sheet to read

        Returns:
            QueryResult with the wide indicator table

        Raises:
            SheetNotFoundError: If the sheet does not exist
            SchemaError: If the sheet has no usable country or year columns
        """
        query_id = self._generate_query_id()
        start_time = time.time()
        metadata = QueryMetadata(
            query_id=query_id,
            source_type=self.source_type,
            dataset_name=sheet_name
        )

        if not self._is_connected:
            self.connect()

        available = self.list_datasets()
        if sheet_name not in available:
            raise SheetNotFoundError(
                f"Sheet '{sheet_name}' not found; available sheets: {available}",
                self.source_type,
                query_id
            )

        self.logger.debug(f"Reading sheet '{sheet_name}' ({query_id})")
        raw = self._read_raw(sheet_name)

        try:
            table, dropped = parse_indicator_sheet(raw, sheet_name)
        except SchemaError as e:
            e.source_type = self.source_type
            e.query_id = query_id
            raise

        if dropped:
            self.logger.warning(f"Sheet '{sheet_name}': ignoring non-year columns {dropped}")

        metadata.execution_time = time.time() - start_time
        metadata.row_count = len(table)
        metadata.dropped_columns = dropped

        self.logger.info(
            f"Read sheet '{sheet_name}': {len(table)} countries, {len(table.columns)} years"
        )
        return QueryResult(data=table, metadata=metadata)

    def load_indicator(
        self,
        indicator: Union[Indicator, str],
        sheet_name: Optional[str] = None
    ) -> pd.DataFrame:
        """Load the wide table for one indicator."""
        indicator = Indicator.parse(indicator)
        return self.read_table(sheet_name or indicator.sheet_name).data

    def load_indicators(
        self,
        indicators: Optional[Iterable[Union[Indicator, str]]] = None,
        sheet_names: Optional[Mapping[str, str]] = None
    ) -> Dict[Indicator, pd.DataFrame]:
        """
        Load several indicators.

        Args:
            indicators: Indicators to load (all by default)
            sheet_names: Optional mapping of indicator value to sheet name

        Returns:
            Dictionary of wide tables keyed by indicator
        """
        sheet_names = sheet_names or {}
        tables = {}
        for indicator in indicators or list(Indicator):
            indicator = Indicator.parse(indicator)
            tables[indicator] = self.load_indicator(
                indicator, sheet_names.get(indicator.value)
            )
        return tables

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _generate_query_id(self) -> str:
        """Generate unique query identifier."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        return f"{self.source_type.value}_{timestamp}"

    @property
    def is_connected(self) -> bool:
        """Check if currently connected."""
        return self._is_connected


def parse_year(label: Any) -> Optional[int]:
    """Parse a column header as a year, or None if it is not one."""
    if isinstance(label, bool):
        return None
    if isinstance(label, numbers.Real):
        if pd.isna(label) or float(label) != int(label):
            return None
        year = int(label)
    else:
        text = str(label).strip()
        if text.endswith(".0"):
            text = text[:-2]
        if not text.isdigit():
            return None
        year = int(text)
    return year if 1800 <= year <= 2200 else None


def to_numeric(values: pd.Series) -> pd.Series:
    """Coerce cells to float; blanks, markers and text become NaN."""
    if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
        return values.astype(float)
    cleaned = values.map(
        lambda v: v.strip().replace("\u00a0", "").replace(" ", "").replace(",", ".")
        if isinstance(v, str) else v
    )
    return pd.to_numeric(cleaned, errors="coerce").astype(float)


def parse_indicator_sheet(raw: pd.DataFrame, sheet_name: str = "sheet"):
    """
    Turn a raw sheet into a wide indicator table.

    The first column holds country labels, every other column whose header
    parses as a year holds values for that year. Country codes and aliases
    are replaced by canonical names.

    Args:
        raw: Sheet as read, headers as columns
        sheet_name: Name used in error messages

    Returns:
        Tuple of (table indexed by ``country`` with int year columns,
        list of dropped non-year headers)

    Raises:
        SchemaError: If there is no country column or no year column
    """
    if raw.shape[1] == 0:
        raise SchemaError(f"Sheet '{sheet_name}' has no columns")

    country_column = raw.columns[0]
    year_columns = {}
    dropped = []
    for column in raw.columns[1:]:
        year = parse_year(column)
        if year is None:
            dropped.append(str(column))
        elif year in year_columns.values():
            raise SchemaError(f"Sheet '{sheet_name}' has duplicate year column {year}")
        else:
            year_columns[column] = year

    if not year_columns:
        raise SchemaError(f"Sheet '{sheet_name}' has no year columns")

    countries = raw[country_column].map(lambda v: canonical_country_name(v) if pd.notna(v) else "")
    keep = (countries != "").to_numpy()

    table = pd.DataFrame(
        {year: to_numeric(raw.loc[keep, column]).to_numpy() for column, year in year_columns.items()},
        index=pd.Index(countries[keep].to_numpy(), name="country"),
    )
    table = table[sorted(table.columns)]
    return table, dropped
