"""
Country exclusion.

Removes a fixed set of countries from indicator tables. Labels are compared
after mapping codes and alternative spellings to canonical names, so
"LUX", "Luxembourg" and "Luxemburg" are all matched by the same entry.
"""

from typing import Any, Dict, Iterable, Optional

import pandas as pd

from .base import DataProcessor, ProcessingResult
from ..models import DEFAULT_EXCLUDED_COUNTRIES, canonical_country_name


def _country_labels(table: pd.DataFrame) -> pd.Series:
    if "country" in table.columns:
        return table["country"]
    return pd.Series(table.index, index=table.index)


def filter_countries(
    table: pd.DataFrame,
    excluded: Iterable[str] = DEFAULT_EXCLUDED_COUNTRIES
) -> pd.DataFrame:
    """
    Drop rows belonging to excluded countries.

    Works on wide tables (countries in the index) and on long tables with a
    ``country`` column. Excluded countries that are not present are ignored.

    Args:
        table: Indicator table
        excluded: Country names, codes or aliases to remove

    Returns:
        New table without the excluded countries
    """
    excluded = {canonical_country_name(country) for country in excluded}
    labels = _country_labels(table)
    keep = ~labels.map(canonical_country_name).isin(excluded).to_numpy()
    return table.loc[keep].copy()


class CountryFilter(DataProcessor):
    """
    Processor removing excluded countries from every indicator table.

    The removed countries are recorded in the result metadata under
    ``removed``.
    """

    def __init__(
        self,
        excluded_countries: Iterable[str] = DEFAULT_EXCLUDED_COUNTRIES,
        name: Optional[str] = None
    ):
        super().__init__(name or "CountryFilter")
        self.excluded_countries = list(excluded_countries)

    def process(
        self,
        data: Dict[Any, pd.DataFrame],
        parameters: Optional[Dict[str, Any]] = None
    ) -> ProcessingResult:
        excluded = (parameters or {}).get("excluded_countries", self.excluded_countries)

        filtered = {}
        removed = {}
        for key, table in data.items():
            filtered[key] = filter_countries(table, excluded)
            before = set(_country_labels(table))
            after = set(_country_labels(filtered[key]))
            removed[str(getattr(key, "value", key))] = sorted(before - after)

        dropped = sorted({country for names in removed.values() for country in names})
        if dropped:
            self.logger.info(f"Removed countries: {dropped}")

        return self._make_result(filtered, parameters, removed=removed)
