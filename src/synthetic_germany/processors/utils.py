"""
Utility functions for data processing.

Interpolation kernels used to fill gaps in a single country's indicator
series.
"""

from typing import Sequence, Union

import numpy as np
import pandas as pd
from scipy import interpolate

from ..utils.logging import get_logger

logger = get_logger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]


def interpolate_series(
    years: ArrayLike,
    values: ArrayLike,
    method: str = "linear"
) -> np.ndarray:
    """
    Fill NaN values of one series from its known (year, value) points.

    Years before the first or after the last known point take the nearest
    known value instead of extrapolating. Known values are returned
    unchanged. A series without any known value is returned as is.

    Args:
        years: Year of each value (any order)
        values: Values with NaN for gaps
        method: 'linear' or 'nearest'

    Returns:
        Array of filled values aligned with ``years``
    """
    x = np.asarray(years, dtype=float)
    y = np.asarray(values, dtype=float)
    known = ~np.isnan(y)

    if known.all() or not known.any():
        return y.copy()

    order = np.argsort(x[known], kind="stable")
    x_known = x[known][order]
    y_known = y[known][order]

    if method == "linear":
        # np.interp holds the end values outside the known range
        filled = np.interp(x[~known], x_known, y_known)
    elif method == "nearest":
        if len(x_known) == 1:
            filled = np.full((~known).sum(), y_known[0])
        else:
            f = interpolate.interp1d(
                x_known, y_known, kind="nearest",
                bounds_error=False, fill_value=(y_known[0], y_known[-1])
            )
            filled = f(x[~known])
    else:
        raise ValueError(f"Unsupported interpolation method: {method}")

    result = y.copy()
    result[~known] = filled
    return result


def interpolate_missing_data(data: pd.Series, method: str = "linear") -> pd.Series:
    """
    Interpolate missing values in a year-indexed series.

    Args:
        data: Series indexed by year with potential missing values
        method: Interpolation method ('linear', 'nearest')

    Returns:
        Series with interpolated values
    """
    if data.isna().sum() == 0:
        return data
    if data.isna().all():
        logger.warning("Series has no known values; nothing to interpolate from")

    filled = interpolate_series(data.index.to_numpy(dtype=float), data.to_numpy(dtype=float), method)
    return pd.Series(filled, index=data.index, name=data.name)
