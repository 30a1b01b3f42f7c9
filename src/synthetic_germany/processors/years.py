"""
Common-year restriction.

A year is kept only if it appears in every indicator's table; there is no
majority vote. An empty intersection is allowed and simply empties the
downstream tables.
"""

from functools import reduce
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from .base import DataProcessor, ProcessingResult


def common_years(long_tables: Iterable[pd.DataFrame]) -> List[int]:
    """
    Years present in every long table.

    Args:
        long_tables: Long tables with a ``year`` column

    Returns:
        Sorted list of years in the intersection
    """
    year_sets = [set(int(year) for year in table["year"].unique()) for table in long_tables]
    if not year_sets:
        return []
    return sorted(reduce(set.intersection, year_sets))


def restrict_to_years(long: pd.DataFrame, years: Iterable[int]) -> pd.DataFrame:
    """Keep only rows whose year is in ``years``."""
    return long.loc[long["year"].isin(list(years))].reset_index(drop=True)


class YearIntersector(DataProcessor):
    """
    Processor restricting every long table to the common years.

    The retained years are recorded in the result metadata under ``years``.
    """

    def __init__(self, name: Optional[str] = None):
        super().__init__(name or "YearIntersector")

    def process(
        self,
        data: Mapping[Any, pd.DataFrame],
        parameters: Optional[Dict[str, Any]] = None
    ) -> ProcessingResult:
        years = common_years(data.values())

        if years:
            self.logger.info(
                f"Common years: {years[0]}-{years[-1]} ({len(years)} years)"
            )
        else:
            self.logger.warning("No year is shared by all indicator tables; the panel will be empty")

        restricted = {key: restrict_to_years(table, years) for key, table in data.items()}
        return self._make_result(restricted, parameters, years=years)
