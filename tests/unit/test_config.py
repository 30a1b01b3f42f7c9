"""
Unit tests for configuration system.
"""

import json

import pytest
import yaml

from synthetic_germany.config import (
    AnalysisConfig, LoggingConfig, OutputConfig, ProcessingConfig,
    SpecialPredictorConfig, load_config
)
from synthetic_germany.models import Indicator, TimeFrame


class TestAnalysisConfig:
    """Test AnalysisConfig class."""

    def test_default_configuration(self):
        """Test default configuration values."""
        config = AnalysisConfig()

        assert config.project_name == "synthetic-germany"
        assert config.input_path is None
        assert config.treated_country == "Germany"
        assert config.treatment_year == 2009
        assert config.dependent == "public_debt"
        assert config.predictors == ["inflation", "imports", "deficit", "expenditure"]
        assert config.predictors_op == "mean"
        assert config.pre_treatment_period == TimeFrame(start_year=1995, end_year=2008)
        assert config.optimization_period == TimeFrame(start_year=1995, end_year=2008)
        assert config.plot_period == TimeFrame(start_year=1995, end_year=2019)
        assert set(config.excluded_countries) == {
            "Estonia", "Slovenia", "Latvia", "Lithuania", "Luxemburg", "Belgium"
        }

    def test_default_special_predictors(self):
        """Test the two public debt windows."""
        config = AnalysisConfig()

        assert [(s.indicator, s.period.start_year, s.period.end_year, s.op)
                for s in config.special_predictors] == [
            ("public_debt", 1999, 2003, "mean"),
            ("public_debt", 2004, 2008, "mean"),
        ]

    def test_sheet_names(self):
        """Test sheet name lookup and normalization."""
        config = AnalysisConfig(sheet_names={
            "Inflation": "CPI",
            "imports": "Imports",
            "Public Debt": "Debt",
            "deficit": "Deficit",
            "expenditure": "Expenditure",
        })

        assert config.sheet_name(Indicator.INFLATION) == "CPI"
        assert config.sheet_name("public_debt") == "Debt"
        assert config.indicators == list(Indicator)

    def test_missing_sheet_names(self):
        """Test that every indicator needs a sheet."""
        with pytest.raises(ValueError, match="Missing sheet names for indicators"):
            AnalysisConfig(sheet_names={"inflation": "Inflation"})

    def test_invalid_predictors(self):
        """Test validation of unknown predictors."""
        with pytest.raises(ValueError, match="Invalid predictors"):
            AnalysisConfig(predictors=["inflation", "gdp"])

    def test_predictor_names_normalized(self):
        """Test sheet-style predictor names."""
        config = AnalysisConfig(predictors=["Inflation", "Public Debt"], dependent="Public Debt")
        assert config.predictors == ["inflation", "public_debt"]
        assert config.dependent == "public_debt"

    def test_treated_country_excluded(self):
        """Test the treated country cannot be excluded."""
        with pytest.raises(ValueError, match="is excluded"):
            AnalysisConfig(excluded_countries=["GER"])

    def test_window_after_treatment(self):
        """Test fitting windows must precede the treatment year."""
        with pytest.raises(ValueError, match="must end before the treatment year"):
            AnalysisConfig(pre_treatment_period=TimeFrame(start_year=1995, end_year=2009))

        with pytest.raises(ValueError, match="Special predictor window"):
            AnalysisConfig(special_predictors=[
                SpecialPredictorConfig(
                    indicator="public_debt", period=TimeFrame(start_year=2005, end_year=2010)
                )
            ])

    def test_plot_period_must_contain_treatment(self):
        """Test the plot window covers the intervention."""
        with pytest.raises(ValueError, match="plot_period must contain the treatment year"):
            AnalysisConfig(plot_period=TimeFrame(start_year=1995, end_year=2005))

    def test_invalid_reduction(self):
        """Test unsupported predictor reduction."""
        with pytest.raises(ValueError):
            AnalysisConfig(predictors_op="max")

    def test_environment_override(self, monkeypatch):
        """Test nested settings read from the environment."""
        monkeypatch.setenv("PROC_INTERPOLATION_METHOD", "nearest")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        config = AnalysisConfig()

        assert config.processing.interpolation_method == "nearest"
        assert config.logging.level == "DEBUG"

    def test_save_and_load_json(self, tmp_path):
        """Test JSON round trip."""
        config = AnalysisConfig(treatment_year=2010, input_path=tmp_path / "data.xlsx")
        config_path = tmp_path / "config.json"

        config.save_to_file(config_path)
        loaded = AnalysisConfig.from_file(config_path)

        assert loaded.treatment_year == 2010
        assert loaded.input_path == tmp_path / "data.xlsx"
        assert loaded.special_predictors == config.special_predictors
        assert json.loads(config_path.read_text())["treated_country"] == "Germany"

    def test_save_and_load_yaml(self, tmp_path):
        """Test YAML round trip."""
        config = AnalysisConfig(excluded_countries=["Belgium"])
        config_path = tmp_path / "config.yaml"

        config.save_to_file(config_path)
        loaded = AnalysisConfig.from_file(config_path)

        assert loaded.excluded_countries == ["Belgium"]
        assert yaml.safe_load(config_path.read_text())["dependent"] == "public_debt"

    def test_unsupported_file_format(self, tmp_path):
        """Test unsupported config file extension."""
        with pytest.raises(ValueError, match="Unsupported config file format"):
            AnalysisConfig.from_file(tmp_path / "config.toml")

        with pytest.raises(ValueError, match="Unsupported config file format"):
            AnalysisConfig().save_to_file(tmp_path / "config.ini")


class TestLoadConfig:
    """Test load_config helper."""

    def test_overrides_without_file(self):
        """Test keyword overrides."""
        config = load_config(treatment_year=2010)
        assert config.treatment_year == 2010

    def test_overrides_with_file(self, tmp_path):
        """Test overrides applied on top of a file."""
        config_path = tmp_path / "config.json"
        AnalysisConfig(treated_country="France").save_to_file(config_path)

        config = load_config(config_path, treatment_year=2010)

        assert config.treated_country == "France"
        assert config.treatment_year == 2010


class TestSectionConfigs:
    """Test nested configuration sections."""

    def test_processing_defaults(self):
        config = ProcessingConfig()
        assert config.interpolation_method == "linear"
        assert config.validate_outputs is True

    def test_invalid_interpolation_method(self):
        with pytest.raises(ValueError):
            ProcessingConfig(interpolation_method="cubic")

    def test_output_formats(self):
        assert OutputConfig(output_formats=["excel"]).output_formats == ["excel"]
        with pytest.raises(ValueError, match="Unsupported output formats"):
            OutputConfig(output_formats=["matlab"])

    def test_logging_level(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="VERBOSE")
