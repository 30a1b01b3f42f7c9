"""
Per-country gap filling of the merged panel.

Each country's indicator series is interpolated over year against that
country's own observations. Outside the observed range the nearest observed
value is held. A country without a single observation for an indicator has
nothing to interpolate from and stops the run with InterpolationError.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .base import DataProcessor, InterpolationError, ProcessingResult
from .utils import interpolate_series
from ..models import Indicator
from ..utils.validation import ValidationResult, validate_panel

KEY_COLUMNS = ["country", "year"]


def _indicator_columns(panel: pd.DataFrame, indicators: Optional[Iterable[Union[Indicator, str]]]) -> List[str]:
    if indicators is None:
        return [i.value for i in Indicator if i.value in panel.columns]
    return [Indicator.parse(i).value for i in indicators]


def find_unobserved(
    panel: pd.DataFrame,
    indicators: Optional[Iterable[Union[Indicator, str]]] = None
) -> List[Tuple[str, str]]:
    """(country, indicator) pairs with no observed value at all."""
    columns = _indicator_columns(panel, indicators)
    if panel.empty:
        return []
    observed = panel.groupby("country")[columns].count()
    return [
        (str(country), column)
        for country, row in observed.iterrows()
        for column in columns
        if row[column] == 0
    ]


def interpolate_panel(
    panel: pd.DataFrame,
    indicators: Optional[Iterable[Union[Indicator, str]]] = None,
    method: str = "linear"
) -> pd.DataFrame:
    """
    Fill missing indicator values country by country.

    Args:
        panel: Merged panel with ``country`` and ``year`` columns
        indicators: Columns to fill (every indicator column by default)
        method: 'linear' or 'nearest'

    Returns:
        New panel sorted by country and year

    Raises:
        InterpolationError: If a country has no observation for an indicator
    """
    columns = _indicator_columns(panel, indicators)

    missing = find_unobserved(panel, columns)
    if missing:
        raise InterpolationError(missing)

    result = panel.sort_values(KEY_COLUMNS).reset_index(drop=True)
    for column in columns:
        result[column] = result[column].astype(float)

    years = result["year"].to_numpy(dtype=float)
    for _, positions in result.groupby("country", sort=True).indices.items():
        for column in columns:
            values = result[column].to_numpy()[positions]
            if not np.isnan(values).any():
                continue
            filled = interpolate_series(years[positions], values, method)
            result.iloc[positions, result.columns.get_loc(column)] = filled

    return result


class PanelInterpolator(DataProcessor):
    """
    Processor filling panel gaps by per-country interpolation.

    The number of filled cells per indicator is recorded in the result
    metadata under ``filled``.
    """

    def __init__(self, method: str = "linear", name: Optional[str] = None):
        super().__init__(name or "PanelInterpolator")
        if method not in ("linear", "nearest"):
            raise ValueError(f"Unsupported interpolation method: {method}")
        self.method = method

    def process(
        self,
        data: pd.DataFrame,
        parameters: Optional[Dict[str, Any]] = None
    ) -> ProcessingResult:
        parameters = parameters or {}
        method = parameters.get("method", self.method)
        columns = _indicator_columns(data, parameters.get("indicators"))

        filled = interpolate_panel(data, columns, method)
        counts = {column: int(data[column].isna().sum()) for column in columns}
        self.logger.info(f"Interpolated missing values: {counts}")

        return self._make_result(filled, parameters, filled=counts)

    def validate_output(self, data, parameters=None) -> ValidationResult:
        columns = _indicator_columns(data, (parameters or {}).get("indicators"))
        return validate_panel(data, columns, allow_missing=False, name="interpolated panel")
