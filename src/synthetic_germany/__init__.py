"""
Synthetic Germany

This package prepares a country-year panel of European macroeconomic
indicators (inflation, imports, public debt, deficit, expenditure) and fits
a synthetic control for Germany's public debt around the 2009 debt brake.
"""

__version__ = "0.1.0"
__author__ = "Research Team"

from .config import AnalysisConfig, load_config
from .models import Country, CountryIdMap, Indicator, TimeFrame
from .data_sources import (
    DataSource, CsvDirectoryDataSource, InMemoryDataSource, WorkbookDataSource,
    create_data_source
)
from .processors import (
    DataProcessor, CountryFilter, Reshaper, YearIntersector, PanelMerger,
    PanelInterpolator, PanelPipeline
)
from .estimators import (
    SCMResult, SCMSpecification, SyntheticControlAdapter,
    ResultExporter, ResultVisualizer
)
from .analysis import AnalysisResult, run_analysis

__all__ = [
    "AnalysisConfig",
    "load_config",
    "Country",
    "CountryIdMap",
    "Indicator",
    "TimeFrame",
    "DataSource",
    "CsvDirectoryDataSource",
    "InMemoryDataSource",
    "WorkbookDataSource",
    "create_data_source",
    "DataProcessor",
    "CountryFilter",
    "Reshaper",
    "YearIntersector",
    "PanelMerger",
    "PanelInterpolator",
    "PanelPipeline",
    "SCMResult",
    "SCMSpecification",
    "SyntheticControlAdapter",
    "ResultExporter",
    "ResultVisualizer",
    "AnalysisResult",
    "run_analysis",
]
