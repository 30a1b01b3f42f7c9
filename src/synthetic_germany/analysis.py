"""
End-to-end Synthetic Germany analysis.

Runs the panel preparation pipeline, fits the synthetic control and,
depending on the output configuration, writes the results and plots.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import logging

import pandas as pd

from .config import AnalysisConfig
from .data_sources import DataSource
from .estimators import (
    ResultExporter, ResultVisualizer, SCMResult, SCMSpecification,
    SyntheticControlAdapter
)
from .processors import PanelPipeline, ProcessingResult

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Outputs of one analysis run."""
    preparation: ProcessingResult
    scm: SCMResult
    files: List[str] = field(default_factory=list)

    @property
    def panel(self) -> pd.DataFrame:
        """The interpolated panel handed to the solver."""
        return self.preparation.data["interpolated"]

    @property
    def years(self) -> List[int]:
        return self.preparation.data["years"]


def run_analysis(
    config: AnalysisConfig,
    data_source: Optional[DataSource] = None,
    adapter: Optional[SyntheticControlAdapter] = None
) -> AnalysisResult:
    """
    Prepare the panel and fit the synthetic control.

    Args:
        config: Analysis configuration
        data_source: Indicator source (built from ``config.input_path`` if None)
        adapter: Synthetic control adapter (built from ``config.solver`` if None)

    Returns:
        AnalysisResult with the preparation result, the fit and written files
    """
    pipeline = PanelPipeline(config, data_source=data_source)
    preparation = pipeline.run()

    spec = SCMSpecification.from_config(config)
    adapter = adapter or SyntheticControlAdapter.from_config(config)
    scm = adapter.fit(preparation.data["interpolated"], spec)

    files = _write_outputs(config, pipeline, preparation, scm)
    return AnalysisResult(preparation=preparation, scm=scm, files=files)


def _write_outputs(
    config: AnalysisConfig,
    pipeline: PanelPipeline,
    preparation: ProcessingResult,
    scm: SCMResult
) -> List[str]:
    output = config.output
    if not output.output_formats and not output.plot and not output.save_intermediate:
        return []

    output_directory = Path(output.output_directory)
    files = []

    if output.save_intermediate:
        files.extend(
            str(path) for path in
            pipeline.save_intermediate_results(output_directory / "intermediate")
        )

    if output.output_formats:
        exporter = ResultExporter(output_directory)
        files.append(exporter.export_panel(preparation.data["interpolated"]))
        files.extend(exporter.export(scm, output.output_formats))

    if output.plot:
        visualizer = ResultVisualizer(output_directory)
        label = config.sheet_name(config.dependent)
        files.append(visualizer.plot_paths(scm, ylabel=label))
        files.append(visualizer.plot_gaps(scm))

    logger.info(f"Wrote {len(files)} output files to {output_directory}")
    return files


def summarize(result: AnalysisResult) -> Dict[str, object]:
    """Headline numbers of a run."""
    panel = result.panel
    return {
        "countries": int(panel["country"].nunique()),
        "years": (min(result.years), max(result.years)) if result.years else None,
        "rows": len(panel),
        **result.scm.summary(),
    }
