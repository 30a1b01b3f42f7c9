#!/usr/bin/env python3
"""
Synthetic Germany Example

This script builds a small indicator workbook in memory, prepares the
country-year panel and fits a synthetic control for Germany's public debt.
Point ``input_path`` at the real workbook to run the actual analysis.
"""

from pathlib import Path
from typing import Dict

import numpy as np
import pandas as pd

from synthetic_germany import AnalysisConfig, InMemoryDataSource, run_analysis
from synthetic_germany.estimators import render_table
from synthetic_germany.models import DEFAULT_SHEET_NAMES, Indicator
from synthetic_germany.utils import setup_logging


COUNTRIES = [
    "Austria", "Belgium", "Denmark", "Finland", "France", "Germany", "Greece",
    "Ireland", "Italy", "Netherlands", "Portugal", "Spain", "Sweden",
]
YEARS = list(range(1995, 2020))


def create_sample_sheets() -> Dict[str, pd.DataFrame]:
    """
    Create raw indicator sheets with the workbook layout.

    Each sheet has a country column followed by one column per year; a few
    cells are left blank so the interpolation step has work to do.
    """
    print("Creating sample indicator sheets...")
    rng = np.random.default_rng(42)

    levels = {
        Indicator.INFLATION: 2.0,
        Indicator.IMPORTS: 35.0,
        Indicator.PUBLIC_DEBT: 60.0,
        Indicator.DEFICIT: -2.5,
        Indicator.EXPENDITURE: 45.0,
    }

    sheets = {}
    for indicator, level in levels.items():
        rows = []
        for country in COUNTRIES:
            base = level * rng.uniform(0.6, 1.4)
            trend = rng.normal(0, abs(level) * 0.01)
            values = base + trend * np.arange(len(YEARS)) + rng.normal(0, abs(level) * 0.02, len(YEARS))
            values[rng.integers(0, len(YEARS), 2)] = np.nan
            rows.append([country, *values])
        sheets[DEFAULT_SHEET_NAMES[indicator]] = pd.DataFrame(rows, columns=["Country", *YEARS])

    print(f"Created {len(sheets)} sheets for {len(COUNTRIES)} countries, {len(YEARS)} years")
    return sheets


def main():
    """
    Main analysis workflow.
    """
    print("=" * 60)
    print("Synthetic Germany - Example")
    print("=" * 60)

    output_dir = Path("synthetic_germany_results")

    config = AnalysisConfig(
        output={"output_directory": output_dir, "output_formats": ["csv", "json"]},
    )
    setup_logging(config.logging)

    source = InMemoryDataSource(create_sample_sheets())
    result = run_analysis(config, data_source=source)

    render_table(result.panel, title="Interpolated panel", max_rows=10)
    render_table(result.scm.unit_weights.to_frame(), title="Control weights")
    render_table(result.scm.balance, title="Predictor balance")

    print(f"\nPre-treatment MSPE: {result.scm.pre_mspe:.4f}")
    print(f"Post/pre RMSPE ratio: {result.scm.rmspe_ratio:.2f}")
    print(f"Results saved to: {output_dir.absolute()} ({len(result.files)} files)")


if __name__ == "__main__":
    main()
