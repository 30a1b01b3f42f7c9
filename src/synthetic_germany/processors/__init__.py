"""
Data-preparation pipeline for the country-year panel.

This module provides processors that turn raw indicator tables into the
complete panel consumed by the synthetic control estimator.
"""

from .base import (
    DataProcessor, InterpolationError, MergeError, ProcessingError,
    ProcessingResult, ProcessingStatus
)
from .filtering import CountryFilter, filter_countries
from .reshaping import Reshaper, long_to_wide, wide_to_long
from .years import YearIntersector, common_years, restrict_to_years
from .merging import PanelMerger, coverage_gaps, merge_indicators
from .interpolation import PanelInterpolator, find_unobserved, interpolate_panel
from .pipeline import PanelPipeline
from .utils import interpolate_missing_data, interpolate_series

__all__ = [
    "DataProcessor",
    "InterpolationError",
    "MergeError",
    "ProcessingError",
    "ProcessingResult",
    "ProcessingStatus",
    "CountryFilter",
    "filter_countries",
    "Reshaper",
    "long_to_wide",
    "wide_to_long",
    "YearIntersector",
    "common_years",
    "restrict_to_years",
    "PanelMerger",
    "coverage_gaps",
    "merge_indicators",
    "PanelInterpolator",
    "find_unobserved",
    "interpolate_panel",
    "PanelPipeline",
    "interpolate_missing_data",
    "interpolate_series",
]
