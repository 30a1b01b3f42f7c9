"""
Indicator merge.

Joins the long indicator tables into one panel with a column per
indicator. The join is a left-join chain seeded by the inflation table:
every (country, year) of the seed yields exactly one panel row, and values
missing from the other indicators become NaN.
"""

from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from .base import DataProcessor, MergeError, ProcessingResult
from ..models import Indicator
from ..utils.logging import get_logger
from ..utils.validation import ValidationResult, validate_panel

logger = get_logger(__name__)

KEY_COLUMNS = ["country", "year"]


def _indicator_frame(long: pd.DataFrame, indicator: Indicator) -> pd.DataFrame:
    duplicated = long.duplicated(KEY_COLUMNS)
    if duplicated.any():
        keys = list(long.loc[duplicated, KEY_COLUMNS].itertuples(index=False, name=None))
        raise MergeError(f"Duplicate (country, year) keys in {indicator.value}: {keys}")
    return long[KEY_COLUMNS + ["value"]].rename(columns={"value": indicator.value})


def coverage_gaps(
    long_tables: Mapping[Indicator, pd.DataFrame],
    seed: Indicator = Indicator.INFLATION
) -> Dict[str, Dict[str, List[str]]]:
    """
    Countries that do not appear in every table.

    Returns:
        ``{"dropped": {indicator: [...]}, "unmatched": {indicator: [...]}}``
        where ``dropped`` lists countries present in an indicator but absent
        from the seed (they vanish at the join) and ``unmatched`` lists seed
        countries absent from an indicator (their values will be NaN).
    """
    seed_countries = set(long_tables[seed]["country"])
    gaps = {"dropped": {}, "unmatched": {}}
    for indicator, table in long_tables.items():
        if indicator == seed:
            continue
        countries = set(table["country"])
        if countries - seed_countries:
            gaps["dropped"][indicator.value] = sorted(countries - seed_countries)
        if seed_countries - countries:
            gaps["unmatched"][indicator.value] = sorted(seed_countries - countries)
    return gaps


def merge_indicators(
    long_tables: Mapping[Union[Indicator, str], pd.DataFrame],
    seed: Union[Indicator, str] = Indicator.INFLATION
) -> pd.DataFrame:
    """
    Left-join long indicator tables on (country, year).

    Args:
        long_tables: Long tables keyed by indicator
        seed: Indicator whose keys define the panel rows

    Returns:
        Panel sorted by country and year with one column per indicator

    Raises:
        MergeError: If the seed is missing or a table has duplicate keys
    """
    tables = {Indicator.parse(key): table for key, table in long_tables.items()}
    seed = Indicator.parse(seed)
    if seed not in tables:
        raise MergeError(f"Seed indicator '{seed.value}' is not among the tables")

    gaps = coverage_gaps(tables, seed)
    for indicator, countries in gaps["dropped"].items():
        logger.warning(
            f"Countries in {indicator} but not in {seed.value} are dropped at the join: {countries}"
        )
    for indicator, countries in gaps["unmatched"].items():
        logger.warning(f"Countries without any {indicator} rows: {countries}")

    panel = _indicator_frame(tables[seed], seed)
    for indicator in Indicator:
        if indicator == seed or indicator not in tables:
            continue
        panel = panel.merge(
            _indicator_frame(tables[indicator], indicator),
            on=KEY_COLUMNS,
            how="left",
            validate="one_to_one"
        )

    columns = KEY_COLUMNS + [i.value for i in Indicator if i in tables]
    return panel[columns].sort_values(KEY_COLUMNS).reset_index(drop=True)


class PanelMerger(DataProcessor):
    """Processor joining long indicator tables into the country-year panel."""

    def __init__(self, seed: Indicator = Indicator.INFLATION, name: Optional[str] = None):
        super().__init__(name or "PanelMerger")
        self.seed = seed

    def process(
        self,
        data: Mapping[Any, pd.DataFrame],
        parameters: Optional[Dict[str, Any]] = None
    ) -> ProcessingResult:
        seed = (parameters or {}).get("seed", self.seed)
        tables = {Indicator.parse(key): table for key, table in data.items()}
        panel = merge_indicators(tables, seed)
        return self._make_result(panel, parameters, coverage=coverage_gaps(tables, Indicator.parse(seed)))

    def validate_input(self, data, parameters=None) -> ValidationResult:
        result = super().validate_input(data, parameters)
        if isinstance(data, Mapping):
            seed = Indicator.parse((parameters or {}).get("seed", self.seed))
            if seed not in {Indicator.parse(key) for key in data}:
                result.add_error(f"Seed indicator '{seed.value}' is not among the tables")
        return result

    def validate_output(self, data, parameters=None) -> ValidationResult:
        indicators = [c for c in data.columns if c not in KEY_COLUMNS]
        return validate_panel(data, indicators, allow_missing=True, name="merged panel")
