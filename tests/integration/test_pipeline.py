"""
Integration tests for the panel pipeline and the full analysis.

These tests write indicator sheets to disk in the workbook layout and run
the preparation steps end to end. The synthetic control solver is replaced
by mocks; only its inputs and the handling of its outputs are checked.
"""

import json
from pathlib import Path

import pytest
import pandas as pd
import numpy as np
from unittest.mock import Mock

from synthetic_germany import AnalysisConfig, PanelPipeline, run_analysis
from synthetic_germany.analysis import summarize
from synthetic_germany.estimators import SyntheticControlAdapter
from synthetic_germany.models import DEFAULT_SHEET_NAMES, Indicator
from synthetic_germany.processors import InterpolationError

COUNTRIES = ["Austria", "Belgium", "France", "Germany", "Italy", "Spain"]
KEPT = ["Austria", "France", "Germany", "Italy", "Spain"]


def make_sheets():
    """
    Raw sheets with uneven year coverage and a few blank cells.

    Inflation covers 1994-2019 and imports 1995-2020, so the common years
    are 1995-2019. Public debt has an extra country that is not in the
    inflation sheet.
    """
    rng = np.random.default_rng(1)
    coverage = {
        Indicator.INFLATION: range(1994, 2020),
        Indicator.IMPORTS: range(1995, 2021),
        Indicator.PUBLIC_DEBT: range(1995, 2020),
        Indicator.DEFICIT: range(1990, 2020),
        Indicator.EXPENDITURE: range(1995, 2020),
    }

    sheets = {}
    for indicator, years in coverage.items():
        countries = COUNTRIES + (["Malta"] if indicator == Indicator.PUBLIC_DEBT else [])
        frame = pd.DataFrame(
            rng.uniform(1, 100, (len(countries), len(years))),
            columns=list(years),
        )
        frame.insert(0, "Country", countries)
        sheets[DEFAULT_SHEET_NAMES[indicator]] = frame

    inflation = sheets["Inflation"]
    inflation.loc[inflation["Country"] == "France", [1996, 1997]] = np.nan
    inflation.loc[inflation["Country"] == "Spain", [2019]] = np.nan
    debt = sheets["Public Debt"]
    debt.loc[debt["Country"] == "Germany", [2000]] = np.nan
    return sheets


@pytest.fixture
def csv_directory(tmp_path):
    directory = tmp_path / "sheets"
    directory.mkdir()
    for name, frame in make_sheets().items():
        frame.to_csv(directory / f"{name}.csv", index=False)
    return directory


@pytest.fixture
def workbook(tmp_path):
    path = tmp_path / "indicators.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, frame in make_sheets().items():
            frame.to_excel(writer, sheet_name=name, index=False)
    return path


def mock_adapter():
    """Adapter whose solver returns fixed weights over the kept controls."""
    control_ids = [1, 2, 4, 5]
    years = pd.Index(range(1995, 2020), name="year")

    dataprep = Mock()
    dataprep.make_outcome_mats.return_value = (
        pd.DataFrame({i: float(i) for i in control_ids}, index=years),
        pd.Series(3.0, index=years),
    )

    synth = Mock()
    synth.weights.return_value = pd.Series([0.25, 0.25, 0.25, 0.25], index=control_ids)
    synth.summary.return_value = pd.DataFrame(
        {"V": [0.5, 0.5], "treated": [1.0, 2.0], "synthetic": [1.0, 2.0], "sample mean": [1.0, 2.0]},
        index=["inflation", "imports"],
    )
    synth.loss_W = 0.0
    synth.loss_V = 0.0

    return SyntheticControlAdapter(
        dataprep_factory=Mock(return_value=dataprep),
        solver_factory=Mock(return_value=synth),
    )


class TestPanelPipeline:
    """Test the preparation steps end to end."""

    def test_csv_directory(self, csv_directory):
        config = AnalysisConfig(input_path=csv_directory)

        result = PanelPipeline(config).run()

        assert result.is_success
        panel = result.data["interpolated"]
        assert result.data["years"] == list(range(1995, 2020))
        assert sorted(panel["country"].unique()) == KEPT
        assert len(panel) == len(KEPT) * 25
        assert panel.columns.tolist() == [
            "country", "year", "inflation", "imports", "public_debt", "deficit", "expenditure"
        ]
        assert not panel.isna().any().any()

    def test_merged_panel_keeps_gaps(self, csv_directory):
        config = AnalysisConfig(input_path=csv_directory)

        result = PanelPipeline(config).run()

        merged = result.data["panel"].set_index(["country", "year"])
        assert np.isnan(merged.loc[("France", 1996), "inflation"])
        assert np.isnan(merged.loc[("Germany", 2000), "public_debt"])

    def test_interpolated_values(self, csv_directory):
        config = AnalysisConfig(input_path=csv_directory)
        sheets = make_sheets()
        inflation = sheets["Inflation"].set_index("Country")

        result = PanelPipeline(config).run()

        panel = result.data["interpolated"].set_index(["country", "year"])
        france_1995 = inflation.loc["France", 1995]
        france_1998 = inflation.loc["France", 1998]
        expected = france_1995 + (france_1998 - france_1995) / 3
        assert panel.loc[("France", 1996), "inflation"] == pytest.approx(expected)
        # last year missing: hold the 2018 value
        assert panel.loc[("Spain", 2019), "inflation"] == pytest.approx(inflation.loc["Spain", 2018])

    def test_workbook(self, workbook):
        config = AnalysisConfig(input_path=workbook)

        result = PanelPipeline(config).run()

        assert sorted(result.data["interpolated"]["country"].unique()) == KEPT

    def test_intermediate_results(self, csv_directory, tmp_path):
        pipeline = PanelPipeline(AnalysisConfig(input_path=csv_directory))
        pipeline.run()

        status = pipeline.get_pipeline_status()
        assert "interpolated_panel" in status["intermediate_results_available"]

        written = pipeline.save_intermediate_results(tmp_path / "intermediate")
        assert (tmp_path / "intermediate" / "interpolated_panel.csv") in written
        assert (tmp_path / "intermediate" / "raw_tables_inflation.csv") in written

    def test_country_without_observations(self, csv_directory):
        frame = pd.read_csv(csv_directory / "Deficit.csv")
        frame.loc[frame["Country"] == "Italy", frame.columns[1:]] = np.nan
        frame.to_csv(csv_directory / "Deficit.csv", index=False)

        with pytest.raises(InterpolationError) as exc_info:
            PanelPipeline(AnalysisConfig(input_path=csv_directory)).run()

        assert exc_info.value.missing == [("Italy", "deficit")]


class TestRunAnalysis:
    """Test the full analysis with a mocked solver."""

    def test_run_analysis_writes_outputs(self, csv_directory, tmp_path):
        config = AnalysisConfig(
            input_path=csv_directory,
            output={
                "output_directory": tmp_path / "out",
                "output_formats": ["csv", "json"],
                "plot": True,
            },
        )
        adapter = mock_adapter()

        result = run_analysis(config, adapter=adapter)

        kwargs = adapter.dataprep_factory.call_args.kwargs
        assert kwargs["treatment_identifier"] == 3
        assert kwargs["controls_identifier"] == [1, 2, 4, 5]

        assert result.scm.unit_weights.index.tolist() == ["Austria", "France", "Italy", "Spain"]
        np.testing.assert_allclose(result.scm.paths["synthetic"], 3.0)
        assert all(Path(f).exists() for f in result.files)
        assert any(f.endswith(".png") for f in result.files)
        assert any(f.endswith("panel.csv") for f in result.files)

        json_file = next(f for f in result.files if f.endswith(".json"))
        with open(json_file) as f:
            assert json.load(f)["treated_unit"] == "Germany"

        summary = summarize(result)
        assert summary["countries"] == 5
        assert summary["years"] == (1995, 2019)

    def test_run_analysis_without_outputs(self, csv_directory):
        config = AnalysisConfig(
            input_path=csv_directory,
            output={"output_formats": [], "plot": False},
        )

        result = run_analysis(config, adapter=mock_adapter())

        assert result.files == []
        assert len(result.panel) == len(KEPT) * 25
