"""
Synthetic control result export and visualization.

This module writes fitted weights, predictor balance and outcome paths to
CSV, JSON or Excel, prints tables to the terminal and draws the
actual-versus-synthetic outcome chart.
"""

from typing import Any, Dict, Iterable, List, Optional, Union
from pathlib import Path
import json
import logging
from datetime import datetime

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns
from rich.console import Console
from rich.table import Table

from .synthetic_control import SCMResult

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("csv", "json", "excel")


def render_table(
    df: pd.DataFrame,
    title: Optional[str] = None,
    max_rows: int = 20,
    console: Optional[Console] = None
) -> Table:
    """
    Print a DataFrame as a rich table.

    Args:
        df: Table to show (the index is shown when it is named)
        title: Table title
        max_rows: Rows shown before truncating
        console: Console to print to (a new stdout console by default)

    Returns:
        The rendered rich Table
    """
    frame = df.reset_index() if df.index.name is not None else df

    table = Table(title=title, show_lines=False)
    for column in frame.columns:
        numeric = pd.api.types.is_numeric_dtype(frame[column])
        table.add_column(str(column), justify="right" if numeric else "left")

    for row in frame.head(max_rows).itertuples(index=False):
        table.add_row(*[_format_cell(value) for value in row])

    if len(frame) > max_rows:
        table.caption = f"{len(frame) - max_rows} more rows not shown"

    (console or Console()).print(table)
    return table


def _format_cell(value: Any) -> str:
    if isinstance(value, (float, np.floating)):
        return "" if np.isnan(value) else f"{value:.4g}"
    return str(value)


class ResultExporter:
    """
    Export synthetic control results to files.

    Each export writes the unit weights, predictor weights, predictor
    balance and outcome paths; JSON also carries the scalar fit metrics.
    """

    def __init__(self, output_directory: Union[str, Path]):
        """
        Initialize result exporter.

        Args:
            output_directory: Base directory for output files
        """
        self.output_directory = Path(output_directory)
        self.output_directory.mkdir(parents=True, exist_ok=True)

    def export(
        self,
        result: SCMResult,
        formats: Iterable[str] = ("csv", "json"),
        filename_prefix: str = "synthetic_control"
    ) -> List[str]:
        """
        Export a fitted result.

        Args:
            result: Fitted synthetic control
            formats: Any of 'csv', 'json', 'excel'
            filename_prefix: Prefix for output filenames

        Returns:
            List of created file paths
        """
        formats = list(formats)
        unknown = [f for f in formats if f not in SUPPORTED_FORMATS]
        if unknown:
            raise ValueError(f"Unsupported export formats: {unknown}")

        created_files = []
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        stem = f"{filename_prefix}_{_slug(result.treated_unit)}_{timestamp}"

        if "csv" in formats:
            for name, table in self._tables(result).items():
                csv_file = self.output_directory / f"{stem}_{name}.csv"
                table.to_csv(csv_file)
                created_files.append(str(csv_file))

        if "json" in formats:
            json_file = self.output_directory / f"{stem}.json"
            payload = result.summary()
            payload["paths"] = {
                column: {int(year): value for year, value in result.paths[column].items()}
                for column in result.paths.columns
            }
            payload["balance"] = result.balance.to_dict(orient="index")
            with open(json_file, 'w') as f:
                json.dump(payload, f, indent=2, default=self._json_serializer)
            created_files.append(str(json_file))

        if "excel" in formats:
            excel_file = self.output_directory / f"{stem}.xlsx"
            with pd.ExcelWriter(excel_file, engine='openpyxl') as writer:
                pd.DataFrame([self._metrics(result)]).to_excel(writer, sheet_name='Summary', index=False)
                for name, table in self._tables(result).items():
                    table.to_excel(writer, sheet_name=name.replace("_", " ").title())
            created_files.append(str(excel_file))

        logger.info(f"Exported {len(created_files)} result files to {self.output_directory}")
        return created_files

    def export_panel(self, panel: pd.DataFrame, filename: str = "panel.csv") -> str:
        """Write the prepared panel as CSV."""
        file_path = self.output_directory / filename
        panel.to_csv(file_path, index=False)
        return str(file_path)

    def _tables(self, result: SCMResult) -> Dict[str, pd.DataFrame]:
        return {
            "unit_weights": result.unit_weights.to_frame(),
            "predictor_weights": result.predictor_weights.to_frame(),
            "balance": result.balance,
            "paths": result.paths,
        }

    def _metrics(self, result: SCMResult) -> Dict[str, Any]:
        summary = result.summary()
        return {k: v for k, v in summary.items() if not isinstance(v, dict)}

    def _json_serializer(self, obj):
        """Custom JSON serializer for numpy types."""
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, datetime):
            return obj.isoformat()
        else:
            return str(obj)


def _slug(name: str) -> str:
    return name.strip().lower().replace(" ", "_")


class ResultVisualizer:
    """
    Plot synthetic control results.
    """

    def __init__(self, output_directory: Union[str, Path]):
        """
        Initialize result visualizer.

        Args:
            output_directory: Directory for saving plots
        """
        self.output_directory = Path(output_directory)
        self.output_directory.mkdir(parents=True, exist_ok=True)

        sns.set_theme(style="whitegrid")

    def plot_paths(
        self,
        result: SCMResult,
        ylabel: Optional[str] = None,
        save_path: Optional[Union[str, Path]] = None
    ) -> str:
        """
        Plot the treated and synthetic outcome paths.

        Args:
            result: Fitted synthetic control
            ylabel: Y axis label
            save_path: Path to save the plot

        Returns:
            Path to saved plot
        """
        paths = result.paths

        fig, ax = plt.subplots(figsize=(10, 6))
        ax.plot(paths.index, paths["treated"], color="black", label=result.treated_unit)
        ax.plot(
            paths.index, paths["synthetic"], color="black", linestyle="--",
            label=f"Synthetic {result.treated_unit}"
        )
        ax.axvline(result.treatment_year, color="grey", linestyle=":", linewidth=1)
        ax.set_xlabel("Year")
        ax.set_ylabel(ylabel or "Outcome")
        ax.set_title(f"{result.treated_unit} vs synthetic control")
        ax.legend()

        plt.tight_layout()

        if save_path is None:
            save_path = self.output_directory / (
                f"paths_{_slug(result.treated_unit)}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.png"
            )

        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

        logger.info(f"Saved path plot to {save_path}")
        return str(save_path)

    def plot_gaps(
        self,
        result: SCMResult,
        save_path: Optional[Union[str, Path]] = None
    ) -> str:
        """
        Plot the treated minus synthetic gap.

        Args:
            result: Fitted synthetic control
            save_path: Path to save the plot

        Returns:
            Path to saved plot
        """
        fig, ax = plt.subplots(figsize=(10, 4))
        ax.plot(result.paths.index, result.paths["gap"], color="black")
        ax.axhline(0, color="grey", linewidth=0.8)
        ax.axvline(result.treatment_year, color="grey", linestyle=":", linewidth=1)
        ax.set_xlabel("Year")
        ax.set_ylabel("Gap")
        ax.set_title(f"Gap: {result.treated_unit} minus synthetic")

        plt.tight_layout()

        if save_path is None:
            save_path = self.output_directory / (
                f"gaps_{_slug(result.treated_unit)}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.png"
            )

        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        return str(save_path)
