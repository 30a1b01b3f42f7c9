"""
Wide/long reshaping of indicator tables.

A wide table has one row per country and one column per year. The long
form has one row per (country, year) cell with ``country``, ``year``,
``indicator`` and ``value`` columns; blank cells are kept as NaN so the
two forms convert into each other without loss.
"""

from typing import Any, Dict, Optional, Union

import pandas as pd

from .base import DataProcessor, ProcessingResult
from ..models import Indicator

LONG_COLUMNS = ["country", "year", "indicator", "value"]


def wide_to_long(table: pd.DataFrame, indicator: Union[Indicator, str]) -> pd.DataFrame:
    """
    Convert a wide indicator table to observations.

    Args:
        table: Table indexed by country with one column per year
        indicator: Indicator the values belong to

    Returns:
        Long table with one row per (country, year) cell
    """
    indicator = Indicator.parse(indicator)
    wide = table.rename_axis(index="country", columns=None).reset_index()

    long = wide.melt(id_vars="country", var_name="year", value_name="value")
    long["year"] = long["year"].astype(int)
    long["value"] = long["value"].astype(float)
    long["indicator"] = indicator.value
    return long[LONG_COLUMNS].reset_index(drop=True)


def long_to_wide(long: pd.DataFrame) -> pd.DataFrame:
    """
    Pivot observations of a single indicator back to a wide table.

    Raises:
        ValueError: If the observations mix several indicators
    """
    indicators = long["indicator"].unique() if "indicator" in long.columns else []
    if len(indicators) > 1:
        raise ValueError(f"Cannot pivot several indicators at once: {list(indicators)}")

    wide = long.pivot(index="country", columns="year", values="value")
    wide.columns = [int(year) for year in wide.columns]
    wide = wide[sorted(wide.columns)]
    return wide.rename_axis(index="country")


class Reshaper(DataProcessor):
    """Processor converting a dictionary of wide tables to long tables."""

    def __init__(self, name: Optional[str] = None):
        super().__init__(name or "Reshaper")

    def process(
        self,
        data: Dict[Any, pd.DataFrame],
        parameters: Optional[Dict[str, Any]] = None
    ) -> ProcessingResult:
        long_tables = {
            Indicator.parse(key): wide_to_long(table, key)
            for key, table in data.items()
        }
        return self._make_result(long_tables, parameters)
