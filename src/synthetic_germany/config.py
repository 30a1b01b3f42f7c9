"""
Configuration management for the Synthetic Germany analysis.

This module provides configuration management using pydantic-settings for
validation, type checking, and environment variable integration.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import (
    DEFAULT_EXCLUDED_COUNTRIES, DEFAULT_SHEET_NAMES, Indicator, TimeFrame,
    canonical_country_name
)


class SpecialPredictorConfig(BaseModel):
    """A predictor restricted to its own year window and reduction."""

    indicator: str
    period: TimeFrame
    op: str = Field(default="mean", pattern="^(mean|median|std)$")

    @field_validator('indicator')
    @classmethod
    def validate_indicator(cls, v):
        return Indicator.parse(v).value


class ProcessingConfig(BaseSettings):
    """Options for the panel preparation steps."""

    interpolation_method: str = Field(
        default="linear",
        pattern="^(linear|nearest)$",
        description="How gaps inside a country series are filled"
    )

    validate_outputs: bool = Field(
        default=True,
        description="Run panel validation after each processing step"
    )

    model_config = SettingsConfigDict(env_prefix="PROC_")


class SolverConfig(BaseSettings):
    """Options forwarded to the synthetic control solver."""

    optim_method: str = Field(
        default="Nelder-Mead",
        description="scipy.optimize method for the predictor weights"
    )

    optim_initial: str = Field(
        default="equal",
        pattern="^(equal|ols)$",
        description="Starting point for the predictor weights"
    )

    weight_threshold: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Control weights below this value are reported as zero"
    )

    model_config = SettingsConfigDict(env_prefix="SOLVER_")


class OutputConfig(BaseSettings):
    """Where and how results are written."""

    output_directory: Path = Field(
        default=Path("./output"),
        description="Root directory for exported tables and charts"
    )

    save_intermediate: bool = Field(
        default=False,
        description="Write every preparation step to CSV"
    )

    output_formats: List[str] = Field(
        default=["csv", "json"],
        description="Result table formats: csv, json, excel"
    )

    plot: bool = Field(
        default=True,
        description="Save the actual vs synthetic chart"
    )

    @field_validator('output_formats')
    @classmethod
    def validate_formats(cls, v):
        """Only formats the exporter can write."""
        unsupported = set(v) - {"csv", "json", "excel"}
        if unsupported:
            raise ValueError(f"Unsupported output formats: {sorted(unsupported)}")
        return v

    model_config = SettingsConfigDict(env_prefix="OUTPUT_")


class LoggingConfig(BaseSettings):
    """Console and log file settings."""

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root logger level"
    )

    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Format used by the log file handler"
    )

    file_path: Optional[Path] = Field(
        default=None,
        description="Rotating log file; console only when unset"
    )

    rotation_size: str = Field(
        default="10MB",
        description="Size at which the log file rolls over, e.g. 10MB"
    )

    retention_count: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of rotated log files to keep"
    )

    model_config = SettingsConfigDict(env_prefix="LOG_")


def _default_special_predictors() -> List[SpecialPredictorConfig]:
    return [
        SpecialPredictorConfig(
            indicator="public_debt", period=TimeFrame(start_year=1999, end_year=2003)
        ),
        SpecialPredictorConfig(
            indicator="public_debt", period=TimeFrame(start_year=2004, end_year=2008)
        ),
    ]


class AnalysisConfig(BaseSettings):
    """
    Main configuration class for the Synthetic Germany analysis.

    This class aggregates all configuration sections and validates that the
    synthetic control windows are consistent with the treatment year.
    """

    project_name: str = Field(
        default="synthetic-germany",
        description="Name of the analysis run"
    )

    input_path: Optional[Path] = Field(
        default=None,
        description="Workbook (.xlsx) or directory of per-sheet CSV files"
    )

    sheet_names: Dict[str, str] = Field(
        default_factory=lambda: {i.value: name for i, name in DEFAULT_SHEET_NAMES.items()},
        description="Workbook sheet name for each indicator"
    )

    excluded_countries: List[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_COUNTRIES),
        description="Countries removed from every indicator table"
    )

    # Synthetic control design
    treated_country: str = Field(
        default="Germany",
        description="Country receiving the intervention"
    )

    treatment_year: int = Field(
        default=2009,
        ge=1900,
        le=2100,
        description="First year of the intervention"
    )

    dependent: str = Field(
        default="public_debt",
        description="Outcome indicator"
    )

    predictors: List[str] = Field(
        default_factory=lambda: ["inflation", "imports", "deficit", "expenditure"],
        description="Indicators averaged over the pre-treatment period"
    )

    predictors_op: str = Field(
        default="mean",
        pattern="^(mean|median|std)$",
        description="Reduction applied to predictors over the pre-treatment period"
    )

    special_predictors: List[SpecialPredictorConfig] = Field(
        default_factory=_default_special_predictors,
        description="Predictors with their own year windows"
    )

    pre_treatment_period: TimeFrame = Field(
        default=TimeFrame(start_year=1995, end_year=2008),
        description="Years over which predictors are reduced"
    )

    optimization_period: TimeFrame = Field(
        default=TimeFrame(start_year=1995, end_year=2008),
        description="Years over which the outcome fit is minimized"
    )

    plot_period: TimeFrame = Field(
        default=TimeFrame(start_year=1995, end_year=2019),
        description="Years reported and plotted"
    )

    # Sections
    processing: ProcessingConfig = Field(
        default_factory=ProcessingConfig,
        description="Panel preparation options"
    )

    solver: SolverConfig = Field(
        default_factory=SolverConfig,
        description="Synthetic control solver options"
    )

    output: OutputConfig = Field(
        default_factory=OutputConfig,
        description="Export options"
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging options"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('sheet_names')
    @classmethod
    def validate_sheet_names(cls, v):
        """Every indicator needs a sheet; keys are normalized to indicator values."""
        normalized = {Indicator.parse(key).value: name for key, name in v.items()}
        missing = {i.value for i in Indicator} - set(normalized)
        if missing:
            raise ValueError(f"Missing sheet names for indicators: {sorted(missing)}")
        return normalized

    @field_validator('dependent')
    @classmethod
    def validate_dependent(cls, v):
        return Indicator.parse(v).value

    @field_validator('predictors')
    @classmethod
    def validate_predictors(cls, v):
        """Validate that all predictors are known indicators."""
        invalid = []
        parsed = []
        for name in v:
            try:
                parsed.append(Indicator.parse(name).value)
            except ValueError:
                invalid.append(name)
        if invalid:
            raise ValueError(f"Invalid predictors: {invalid}")
        return parsed

    @model_validator(mode='after')
    def validate_design(self):
        """Ensure the fitting windows precede the intervention."""
        if canonical_country_name(self.treated_country) in {
            canonical_country_name(c) for c in self.excluded_countries
        }:
            raise ValueError(f"Treated country {self.treated_country} is excluded")

        for label, period in (
            ("pre_treatment_period", self.pre_treatment_period),
            ("optimization_period", self.optimization_period),
        ):
            if period.end_year >= self.treatment_year:
                raise ValueError(f"{label} must end before the treatment year")

        for special in self.special_predictors:
            if special.period.end_year >= self.treatment_year:
                raise ValueError(
                    f"Special predictor window for {special.indicator} must end before the treatment year"
                )

        if not self.plot_period.contains(self.treatment_year):
            raise ValueError("plot_period must contain the treatment year")
        return self

    @property
    def indicators(self) -> List[Indicator]:
        """All indicators loaded from the input."""
        return list(Indicator)

    def sheet_name(self, indicator: Union[Indicator, str]) -> str:
        """Get the sheet name for an indicator."""
        return self.sheet_names[Indicator.parse(indicator).value]

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> AnalysisConfig:
        """Read a JSON or YAML file."""
        path = Path(config_path)
        kind = _file_kind(path)
        with path.open() as f:
            values = json.load(f) if kind == "json" else yaml.safe_load(f)
        return cls(**(values or {}))

    def save_to_file(self, config_path: Union[str, Path]) -> None:
        """Write the configuration as JSON or YAML, picked by suffix."""
        path = Path(config_path)
        kind = _file_kind(path)
        values = self.model_dump(mode="json")
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            if kind == "json":
                json.dump(values, f, indent=2)
            else:
                yaml.safe_dump(values, f, default_flow_style=False, sort_keys=False)


def _file_kind(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"
    raise ValueError(f"Unsupported config file format: {path.suffix}")


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    **overrides
) -> AnalysisConfig:
    """
    Build the analysis configuration.

    Args:
        config_path: Optional JSON or YAML file
        **overrides: Top-level fields replacing the file's values

    Returns:
        AnalysisConfig instance
    """
    if not config_path:
        return AnalysisConfig(**overrides)

    config = AnalysisConfig.from_file(config_path)
    if not overrides:
        return config
    return AnalysisConfig(**{**config.model_dump(), **overrides})
