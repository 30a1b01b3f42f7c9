"""
Panel preparation pipeline orchestrator.

This module runs the data-preparation sequence that turns the indicator
workbook into a complete country-year panel:
load -> filter countries -> reshape -> common years -> merge -> interpolate.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .base import DataProcessor, ProcessingError, ProcessingResult, ProcessingStatus
from .filtering import CountryFilter
from .interpolation import PanelInterpolator
from .merging import PanelMerger
from .reshaping import Reshaper
from .years import YearIntersector
from ..config import AnalysisConfig
from ..data_sources import DataSource, create_data_source
from ..models import Indicator
from ..utils.validation import PanelValidator, ValidationResult, validate_panel


class PanelPipeline(DataProcessor):
    """
    Panel preparation orchestrator.

    Every step works on new tables; the outputs of each step are kept in
    ``intermediate_results`` for inspection and optional export.
    """

    def __init__(
        self,
        config: AnalysisConfig,
        data_source: Optional[DataSource] = None,
        name: Optional[str] = None
    ):
        """
        Initialize the pipeline.

        Args:
            config: Analysis configuration
            data_source: Indicator source (created from ``config.input_path`` if None)
            name: Pipeline name
        """
        super().__init__(name or "PanelPipeline")
        self.config = config

        if data_source is not None:
            self.data_source = data_source
        elif config.input_path is not None:
            self.data_source = create_data_source(config.input_path)
        else:
            raise ValueError("Either a data source or config.input_path is required")

        self.country_filter = CountryFilter(config.excluded_countries)
        self.reshaper = Reshaper()
        self.year_intersector = YearIntersector()
        self.merger = PanelMerger(seed=Indicator.INFLATION)
        self.interpolator = PanelInterpolator(method=config.processing.interpolation_method)

        self._intermediate_results: Dict[str, Any] = {}

    def process(
        self,
        data: Any = None,
        parameters: Optional[Dict[str, Any]] = None
    ) -> ProcessingResult:
        """
        Run the whole preparation sequence.

        Args:
            data: Not used; the pipeline reads from its data source
            parameters: Not used

        Returns:
            ProcessingResult whose data holds ``tables``, ``long``, ``years``,
            ``panel`` and ``interpolated``
        """
        self.logger.info("Starting panel preparation")

        try:
            tables = self._step_1_load()
        finally:
            self.data_source.disconnect()

        filtered = self._step_2_filter(tables)
        long_tables = self._step_3_reshape(filtered)
        restricted, years = self._step_4_intersect_years(long_tables)
        panel = self._step_5_merge(restricted)
        interpolated = self._step_6_interpolate(panel)

        self.logger.info(
            f"Panel ready: {interpolated['country'].nunique()} countries, {len(years)} years"
        )

        return self._make_result(
            {
                "tables": filtered,
                "long": restricted,
                "years": years,
                "panel": panel,
                "interpolated": interpolated,
            },
            parameters
        )

    def run(self) -> ProcessingResult:
        """Main entry point: run the pipeline with output validation."""
        return self.process_with_validation(
            data={},
            validate_input=False,
            validate_output=self.config.processing.validate_outputs
        )

    def validate_output(self, data, parameters=None) -> ValidationResult:
        result = validate_panel(
            data["interpolated"],
            [i.value for i in Indicator],
            allow_missing=False,
            name="interpolated panel"
        )
        # every seed country must keep a row for every common year
        result.merge(PanelValidator().validate_coverage(
            data["interpolated"],
            expected_countries=data["panel"]["country"].unique(),
            expected_years=data["years"],
            name="interpolated panel"
        ))
        return result

    def _run_step(self, processor: DataProcessor, data: Any, **parameters: Any) -> ProcessingResult:
        result = processor.process_with_validation(
            data,
            parameters or None,
            validate_output=self.config.processing.validate_outputs
        )
        if result.status == ProcessingStatus.FAILED:
            raise ProcessingError(
                f"{processor.name} produced invalid output: {result.validation.errors}",
                processor.name,
                result.metadata.operation_id
            )
        return result

    def _step_1_load(self) -> Dict[Indicator, pd.DataFrame]:
        """Step 1: read one wide table per indicator."""
        self.logger.info("Step 1: Loading indicator tables")
        tables = self.data_source.load_indicators(
            list(Indicator), self.config.sheet_names
        )
        self._intermediate_results["raw_tables"] = tables
        return tables

    def _step_2_filter(self, tables: Dict[Indicator, pd.DataFrame]) -> Dict[Indicator, pd.DataFrame]:
        """Step 2: remove excluded countries."""
        self.logger.info("Step 2: Removing excluded countries")
        filtered = self._run_step(self.country_filter, tables).data
        self._intermediate_results["filtered_tables"] = filtered
        return filtered

    def _step_3_reshape(self, tables: Dict[Indicator, pd.DataFrame]) -> Dict[Indicator, pd.DataFrame]:
        """Step 3: wide to long."""
        self.logger.info("Step 3: Reshaping to long format")
        long_tables = self._run_step(self.reshaper, tables).data
        self._intermediate_results["long_tables"] = long_tables
        return long_tables

    def _step_4_intersect_years(self, long_tables: Dict[Indicator, pd.DataFrame]):
        """Step 4: keep the years shared by every indicator."""
        self.logger.info("Step 4: Restricting to common years")
        result = self._run_step(self.year_intersector, long_tables)
        years: List[int] = result.metadata.details["years"]
        self._intermediate_results["common_years"] = years
        self._intermediate_results["restricted_tables"] = result.data
        return result.data, years

    def _step_5_merge(self, long_tables: Dict[Indicator, pd.DataFrame]) -> pd.DataFrame:
        """Step 5: left-join the indicators on (country, year)."""
        self.logger.info("Step 5: Merging indicators")
        panel = self._run_step(self.merger, long_tables).data
        self._intermediate_results["panel"] = panel
        return panel

    def _step_6_interpolate(self, panel: pd.DataFrame) -> pd.DataFrame:
        """Step 6: fill gaps per country."""
        self.logger.info("Step 6: Interpolating missing values")
        interpolated = self._run_step(self.interpolator, panel).data
        self._intermediate_results["interpolated_panel"] = interpolated
        return interpolated

    @property
    def intermediate_results(self) -> Dict[str, Any]:
        """Outputs of the steps run so far."""
        return dict(self._intermediate_results)

    def get_pipeline_status(self) -> Dict[str, Any]:
        """Get current pipeline status and intermediate results."""
        return {
            "input": str(self.config.input_path) if self.config.input_path else None,
            "intermediate_results_available": list(self._intermediate_results.keys()),
            "processors": {
                processor.name: processor.get_info()
                for processor in (
                    self.country_filter, self.reshaper, self.year_intersector,
                    self.merger, self.interpolator
                )
            }
        }

    def save_intermediate_results(self, output_directory: Union[str, Path]) -> List[Path]:
        """Save intermediate tables as CSV files."""
        output_directory = Path(output_directory)
        output_directory.mkdir(parents=True, exist_ok=True)

        written = []
        for step_name, data in self._intermediate_results.items():
            if isinstance(data, dict):
                for key, table in data.items():
                    if isinstance(table, pd.DataFrame):
                        label = getattr(key, "value", key)
                        file_path = output_directory / f"{step_name}_{label}.csv"
                        table.to_csv(file_path)
                        written.append(file_path)
            elif isinstance(data, pd.DataFrame):
                file_path = output_directory / f"{step_name}.csv"
                data.to_csv(file_path, index=False)
                written.append(file_path)

        self.logger.info(f"Saved {len(written)} intermediate tables to {output_directory}")
        return written
