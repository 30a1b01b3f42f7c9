"""
Unit tests for the synthetic control adapter and result export.
"""

import io
import json

import pytest
import pandas as pd
import numpy as np
from unittest.mock import Mock, patch
from rich.console import Console

from synthetic_germany.config import AnalysisConfig, SpecialPredictorConfig
from synthetic_germany.estimators import (
    EstimationError, ResultExporter, ResultVisualizer, SCMInputError,
    SCMResult, SCMSpecification, SyntheticControlAdapter, control_units,
    render_table, validate_scm_input
)
from synthetic_germany.models import CountryIdMap, TimeFrame

COUNTRIES = ["Austria", "France", "Germany", "Italy"]
YEARS = list(range(1995, 2020))


@pytest.fixture
def panel():
    """Complete panel for four countries."""
    rng = np.random.default_rng(0)
    rows = []
    for country in COUNTRIES:
        for year in YEARS:
            rows.append({
                "country": country,
                "year": year,
                "inflation": rng.uniform(0, 4),
                "imports": rng.uniform(20, 50),
                "public_debt": rng.uniform(40, 90),
                "deficit": rng.uniform(-5, 1),
                "expenditure": rng.uniform(35, 55),
            })
    return pd.DataFrame(rows)


@pytest.fixture
def spec():
    return SCMSpecification(
        treated_unit="Germany",
        dependent="public_debt",
        predictors=["inflation", "imports"],
        special_predictors=[
            SpecialPredictorConfig(
                indicator="public_debt", period=TimeFrame(start_year=1999, end_year=2003)
            )
        ],
        treatment_year=2009,
        time_predictors_prior=TimeFrame(start_year=1995, end_year=2008),
        time_optimize_ssr=TimeFrame(start_year=1995, end_year=2008),
        time_plot=TimeFrame(start_year=1995, end_year=2019),
    )


@pytest.fixture
def mock_dataprep():
    """Dataprep whose outcome matrices give a known synthetic path."""
    dataprep = Mock()
    years = pd.Index(YEARS, name="year")
    Z0 = pd.DataFrame({1: 10.0, 2: 20.0, 4: 30.0}, index=years)
    Z1 = pd.Series(np.where(years < 2009, 18.0, 27.0), index=years)
    dataprep.make_outcome_mats.return_value = (Z0, Z1)
    return dataprep


@pytest.fixture
def mock_synth():
    synth = Mock()
    synth.weights.return_value = pd.Series([0.5, 0.3, 0.2], index=[1, 2, 4], name="weights")
    synth.summary.return_value = pd.DataFrame(
        {
            "V": [0.6, 0.3, 0.1],
            "treated": [1.5, 30.0, 60.0],
            "synthetic": [1.4, 31.0, 61.0],
            "sample mean": [1.6, 33.0, 65.0],
        },
        index=["inflation", "imports", "special.1.public_debt"],
    )
    synth.loss_W = 0.12
    synth.loss_V = 1.0
    return synth


@pytest.fixture
def adapter(mock_dataprep, mock_synth):
    return SyntheticControlAdapter(
        dataprep_factory=Mock(return_value=mock_dataprep),
        solver_factory=Mock(return_value=mock_synth),
    )


class TestSCMSpecification:
    """Test fit design validation."""

    def test_from_config(self):
        spec = SCMSpecification.from_config(AnalysisConfig())

        assert spec.treated_unit == "Germany"
        assert spec.dependent == "public_debt"
        assert spec.controls is None
        assert len(spec.special_predictors) == 2
        assert spec.time_plot == TimeFrame(start_year=1995, end_year=2019)

    def test_window_must_precede_treatment(self, spec):
        data = spec.model_dump()
        data["time_optimize_ssr"] = {"start_year": 1995, "end_year": 2009}
        with pytest.raises(ValueError, match="time_optimize_ssr must end before the treatment year"):
            SCMSpecification(**data)

    def test_treated_not_a_control(self, spec):
        data = spec.model_dump()
        data["controls"] = ["France", "Germany"]
        with pytest.raises(ValueError, match="cannot be a control"):
            SCMSpecification(**data)

    def test_unknown_predictor(self, spec):
        data = spec.model_dump()
        data["predictors"] = ["gdp"]
        with pytest.raises(ValueError, match="Unknown indicator"):
            SCMSpecification(**data)

    def test_required_values(self, spec):
        required = spec.required_values()

        assert required["inflation"] == set(range(1995, 2009))
        assert required["public_debt"] == set(range(1995, 2020))
        assert "deficit" not in required


class TestInputValidation:
    """Test the checks run before handing the panel to the solver."""

    def test_valid_panel(self, panel, spec):
        assert validate_scm_input(panel, spec) == []

    def test_controls_exclude_treated(self, panel, spec):
        units = control_units(panel, spec)
        assert units == ["Austria", "France", "Italy"]
        assert "Germany" not in units

    def test_requested_controls(self, panel, spec):
        restricted = spec.model_copy(update={"controls": ["Italy", "France", "France"]})
        assert control_units(panel, restricted) == ["France", "Italy"]

    def test_missing_value(self, panel, spec):
        panel.loc[(panel["country"] == "Germany") & (panel["year"] == 2000), "public_debt"] = np.nan
        errors = validate_scm_input(panel, spec)
        assert errors == ["Germany: missing public_debt values"]

    def test_missing_value_outside_windows_allowed(self, panel, spec):
        panel.loc[panel["country"] == "France", "deficit"] = np.nan
        panel.loc[(panel["country"] == "France") & (panel["year"] == 2015), "inflation"] = np.nan
        assert validate_scm_input(panel, spec) == []

    def test_missing_year(self, panel, spec):
        panel = panel[~((panel["country"] == "France") & (panel["year"] == 2019))]
        errors = validate_scm_input(panel, spec)
        assert "France: no public_debt rows for years [2019]" in errors

    def test_infinite_value(self, panel, spec):
        panel.loc[(panel["country"] == "Italy") & (panel["year"] == 1996), "imports"] = np.inf
        assert validate_scm_input(panel, spec) == ["Italy: non-finite imports values"]

    def test_treated_absent(self, panel, spec):
        panel = panel[panel["country"] != "Germany"]
        errors = validate_scm_input(panel, spec)
        assert "Treated unit Germany is not in the panel" in errors

    def test_no_controls(self, panel, spec):
        panel = panel[panel["country"] == "Germany"]
        errors = validate_scm_input(panel, spec)
        assert "No control units left after removing the treated unit" in errors

    def test_missing_column(self, panel, spec):
        errors = validate_scm_input(panel.drop(columns=["imports"]), spec)
        assert errors == ["Missing panel columns: ['imports']"]


class TestSyntheticControlAdapter:
    """Test the pysyncon adapter."""

    def test_prepare_builds_dataprep(self, adapter, panel, spec, mock_dataprep):
        prepared = adapter.prepare(panel, spec)

        assert prepared.treated_id == 3
        assert prepared.control_ids == [1, 2, 4]
        assert prepared.dataprep is mock_dataprep
        assert "country_id" in prepared.panel.columns

        kwargs = adapter.dataprep_factory.call_args.kwargs
        assert kwargs["unit_variable"] == "country_id"
        assert kwargs["time_variable"] == "year"
        assert kwargs["treatment_identifier"] == 3
        assert kwargs["controls_identifier"] == [1, 2, 4]
        assert kwargs["dependent"] == "public_debt"
        assert kwargs["predictors"] == ["inflation", "imports"]
        assert kwargs["predictors_op"] == "mean"
        assert kwargs["time_predictors_prior"] == list(range(1995, 2009))
        assert kwargs["time_optimize_ssr"] == list(range(1995, 2009))
        assert kwargs["special_predictors"] == [("public_debt", list(range(1999, 2004)), "mean")]

    def test_prepare_rejects_incomplete_panel(self, adapter, panel, spec):
        panel.loc[panel["country"] == "Italy", "inflation"] = np.nan

        with pytest.raises(SCMInputError) as exc_info:
            adapter.prepare(panel, spec)

        assert exc_info.value.errors == ["Italy: missing inflation values"]
        adapter.dataprep_factory.assert_not_called()

    def test_prepare_rejects_empty_panel(self, adapter, panel, spec):
        with pytest.raises(SCMInputError, match="cannot be empty"):
            adapter.prepare(panel.iloc[0:0], spec)

    def test_fit(self, adapter, panel, spec, mock_synth, mock_dataprep):
        result = adapter.fit(panel, spec)

        mock_synth.fit.assert_called_once_with(
            dataprep=mock_dataprep, optim_method="Nelder-Mead", optim_initial="equal"
        )
        assert result.unit_weights.index.tolist() == ["Austria", "France", "Italy"]
        assert result.unit_weights.tolist() == [0.5, 0.3, 0.2]
        assert result.predictor_weights["inflation"] == 0.6
        assert result.balance.columns.tolist() == ["treated", "synthetic", "sample mean"]
        assert result.loss_w == 0.12
        assert result.loss_v == 1.0

    def test_fit_paths(self, adapter, panel, spec):
        result = adapter.fit(panel, spec)

        assert result.paths.index.tolist() == YEARS
        assert result.paths.columns.tolist() == ["treated", "synthetic", "gap"]
        np.testing.assert_allclose(result.paths["synthetic"], 17.0)
        assert result.paths.loc[2008, "gap"] == pytest.approx(1.0)
        assert result.paths.loc[2009, "gap"] == pytest.approx(10.0)
        assert result.pre_mspe == pytest.approx(1.0)
        assert result.post_mspe == pytest.approx(100.0)
        assert result.rmspe_ratio == pytest.approx(10.0)

    def test_weight_threshold(self, mock_dataprep, mock_synth, panel, spec):
        adapter = SyntheticControlAdapter(
            weight_threshold=0.25,
            dataprep_factory=Mock(return_value=mock_dataprep),
            solver_factory=Mock(return_value=mock_synth),
        )

        result = adapter.fit(panel, spec)

        assert result.unit_weights["Italy"] == 0.0
        assert result.donors().index.tolist() == ["Austria", "France"]

    def test_solver_failure(self, adapter, panel, spec, mock_synth):
        mock_synth.fit.side_effect = RuntimeError("did not converge")

        with pytest.raises(EstimationError, match="Synthetic control solver failed: did not converge"):
            adapter.fit(panel, spec)

    def test_estimate(self, adapter, panel, spec):
        estimation = adapter.estimate(panel, {"spec": spec})

        assert estimation.is_success
        assert estimation.warnings == []
        assert isinstance(estimation.data, SCMResult)
        assert estimation.metadata.parameters["treated_unit"] == "Germany"

    def test_estimate_requires_spec(self, adapter, panel):
        with pytest.raises(EstimationError, match="'spec' is required"):
            adapter.estimate(panel)

    @patch('synthetic_germany.estimators.synthetic_control.pysyncon')
    def test_default_factories(self, mock_pysyncon, panel, spec):
        adapter = SyntheticControlAdapter.from_config(AnalysisConfig())

        adapter.prepare(panel, spec)

        mock_pysyncon.Dataprep.assert_called_once()
        assert adapter.optim_method == "Nelder-Mead"


@pytest.fixture
def scm_result():
    years = pd.Index(range(2005, 2013), name="year")
    treated = pd.Series(np.linspace(60, 70, len(years)), index=years)
    synthetic = treated - np.where(years < 2009, 0.5, 3.0)
    unit_weights = pd.Series([0.7, 0.3], index=pd.Index(["Austria", "France"], name="country"), name="weight")
    return SCMResult(
        treated_unit="Germany",
        treatment_year=2009,
        country_ids=CountryIdMap.from_countries(["Austria", "France", "Germany"]),
        unit_weights=unit_weights,
        predictor_weights=pd.Series([0.8, 0.2], index=["inflation", "imports"], name="weight"),
        balance=pd.DataFrame(
            {"treated": [1.0, 30.0], "synthetic": [1.1, 29.0], "sample mean": [1.5, 33.0]},
            index=["inflation", "imports"],
        ),
        paths=pd.DataFrame({"treated": treated, "synthetic": synthetic, "gap": treated - synthetic}),
        loss_w=0.05,
        loss_v=0.25,
    )


class TestExport:
    """Test result export and plotting."""

    def test_summary(self, scm_result):
        summary = scm_result.summary()

        assert summary["unit_weights"] == {"Austria": 0.7, "France": 0.3}
        assert summary["pre_mspe"] == pytest.approx(0.25)
        assert summary["post_mspe"] == pytest.approx(9.0)
        assert summary["rmspe_ratio"] == pytest.approx(6.0)

    def test_export_csv_and_json(self, scm_result, tmp_path):
        exporter = ResultExporter(tmp_path)

        files = exporter.export(scm_result, formats=["csv", "json"])

        assert len(files) == 5
        json_file = next(f for f in files if f.endswith(".json"))
        with open(json_file) as f:
            payload = json.load(f)
        assert payload["treated_unit"] == "Germany"
        assert payload["loss_W"] == 0.05
        assert payload["paths"]["gap"]["2010"] == pytest.approx(3.0)

        weights_file = next(f for f in files if f.endswith("_unit_weights.csv"))
        weights = pd.read_csv(weights_file, index_col=0)
        assert weights["weight"].to_dict() == {"Austria": 0.7, "France": 0.3}

    def test_export_excel(self, scm_result, tmp_path):
        files = ResultExporter(tmp_path).export(scm_result, formats=["excel"])

        sheets = pd.ExcelFile(files[0]).sheet_names
        assert sheets == ["Summary", "Unit Weights", "Predictor Weights", "Balance", "Paths"]

    def test_export_unknown_format(self, scm_result, tmp_path):
        with pytest.raises(ValueError, match="Unsupported export formats"):
            ResultExporter(tmp_path).export(scm_result, formats=["matlab"])

    def test_plots(self, scm_result, tmp_path):
        visualizer = ResultVisualizer(tmp_path)

        paths_plot = visualizer.plot_paths(scm_result, ylabel="Public Debt")
        gaps_plot = visualizer.plot_gaps(scm_result, save_path=tmp_path / "gaps.png")

        assert paths_plot.endswith(".png")
        assert (tmp_path / "gaps.png").exists()
        assert gaps_plot == str(tmp_path / "gaps.png")

    def test_render_table(self, scm_result):
        console = Console(file=io.StringIO(), width=120)

        table = render_table(scm_result.unit_weights.to_frame(), title="Weights", console=console)

        output = console.file.getvalue()
        assert "Austria" in output
        assert "Weights" in output
        assert table.row_count == 2

    def test_render_table_truncates(self):
        console = Console(file=io.StringIO(), width=120)
        frame = pd.DataFrame({"year": range(30), "value": np.arange(30.0)})

        table = render_table(frame, max_rows=5, console=console)

        assert table.row_count == 5
        assert "25 more rows" in console.file.getvalue()
