"""
Synthetic control adapter.

This module turns the prepared panel into the input the pysyncon solver
expects and reads the fitted weights and trajectories back. The weight
optimisation itself (non-negative control weights summing to one, nested
predictor weights minimising the pre-treatment prediction error) is left
entirely to pysyncon.

The solver identifies units by number, so countries are mapped to dense
integer ids through a CountryIdMap built once per fit.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

import numpy as np
import pandas as pd
import pysyncon
from pydantic import BaseModel, Field, field_validator, model_validator

from .base import (
    EstimationError, EstimationMetadata, EstimationResult, EstimationStatus,
    Estimator, SCMInputError
)
from ..config import AnalysisConfig, SpecialPredictorConfig
from ..models import CountryIdMap, Indicator, TimeFrame, canonical_country_name


class SCMSpecification(BaseModel):
    """
    Design of one synthetic control fit.

    Attributes:
        treated_unit: Country receiving the intervention
        controls: Donor pool (every other country when None)
        dependent: Outcome indicator
        predictors: Indicators reduced over ``time_predictors_prior``
        predictors_op: Reduction applied to ``predictors``
        special_predictors: Indicators with their own window and reduction
        treatment_year: First year of the intervention
        time_predictors_prior: Window for ``predictors``
        time_optimize_ssr: Window over which the outcome fit is minimised
        time_plot: Window of the reported trajectories
    """

    treated_unit: str
    controls: Optional[List[str]] = None
    dependent: str
    predictors: List[str]
    predictors_op: str = Field(default="mean", pattern="^(mean|median|std)$")
    special_predictors: List[SpecialPredictorConfig] = Field(default_factory=list)
    treatment_year: int
    time_predictors_prior: TimeFrame
    time_optimize_ssr: TimeFrame
    time_plot: TimeFrame

    @field_validator('treated_unit')
    @classmethod
    def validate_treated_unit(cls, v):
        return canonical_country_name(v)

    @field_validator('controls')
    @classmethod
    def validate_controls(cls, v):
        if v is None:
            return v
        return [canonical_country_name(c) for c in v]

    @field_validator('dependent')
    @classmethod
    def validate_dependent(cls, v):
        return Indicator.parse(v).value

    @field_validator('predictors')
    @classmethod
    def validate_predictors(cls, v):
        if not v:
            raise ValueError("At least one predictor is required")
        return [Indicator.parse(p).value for p in v]

    @model_validator(mode='after')
    def validate_windows(self):
        """Fitting windows must end before the intervention."""
        if self.time_predictors_prior.end_year >= self.treatment_year:
            raise ValueError("time_predictors_prior must end before the treatment year")
        if self.time_optimize_ssr.end_year >= self.treatment_year:
            raise ValueError("time_optimize_ssr must end before the treatment year")
        if not self.time_plot.contains(self.treatment_year):
            raise ValueError("time_plot must contain the treatment year")
        if self.controls is not None and self.treated_unit in self.controls:
            raise ValueError(f"Treated unit {self.treated_unit} cannot be a control")
        return self

    @classmethod
    def from_config(cls, config: AnalysisConfig) -> SCMSpecification:
        """Build the specification from the analysis configuration."""
        return cls(
            treated_unit=config.treated_country,
            dependent=config.dependent,
            predictors=config.predictors,
            predictors_op=config.predictors_op,
            special_predictors=config.special_predictors,
            treatment_year=config.treatment_year,
            time_predictors_prior=config.pre_treatment_period,
            time_optimize_ssr=config.optimization_period,
            time_plot=config.plot_period,
        )

    def required_values(self) -> Dict[str, Set[int]]:
        """Years the solver reads for each panel column."""
        required: Dict[str, Set[int]] = {}
        for predictor in self.predictors:
            required.setdefault(predictor, set()).update(self.time_predictors_prior.years)
        for special in self.special_predictors:
            required.setdefault(special.indicator, set()).update(special.period.years)
        required.setdefault(self.dependent, set()).update(self.time_optimize_ssr.years)
        required[self.dependent].update(self.time_plot.years)
        return required


@dataclass
class PreparedInput:
    """Everything handed to the solver for one fit."""
    country_ids: CountryIdMap
    panel: pd.DataFrame
    treated_id: int
    control_ids: List[int]
    dataprep: Any


@dataclass
class SCMResult:
    """
    Fitted synthetic control.

    Attributes:
        treated_unit: Treated country
        treatment_year: First treated year
        country_ids: Country id mapping used for the fit
        unit_weights: Control country weights, largest first
        predictor_weights: Weight of each predictor (V)
        balance: Predictor values for treated, synthetic and sample mean
        paths: Outcome per year: treated, synthetic and their gap
        loss_w: Weighted loss on the predictors
        loss_v: Unweighted mean squared prediction error over the optimisation window
    """
    treated_unit: str
    treatment_year: int
    country_ids: CountryIdMap
    unit_weights: pd.Series
    predictor_weights: pd.Series
    balance: pd.DataFrame
    paths: pd.DataFrame
    loss_w: float
    loss_v: float

    @property
    def pre_mspe(self) -> float:
        """Mean squared gap before the treatment year."""
        gaps = self.paths.loc[self.paths.index < self.treatment_year, "gap"]
        return float(np.mean(gaps ** 2)) if len(gaps) else float("nan")

    @property
    def post_mspe(self) -> float:
        """Mean squared gap from the treatment year on."""
        gaps = self.paths.loc[self.paths.index >= self.treatment_year, "gap"]
        return float(np.mean(gaps ** 2)) if len(gaps) else float("nan")

    @property
    def rmspe_ratio(self) -> float:
        """Post/pre root mean squared prediction error ratio."""
        if not self.pre_mspe:
            return float("nan")
        return float(np.sqrt(self.post_mspe / self.pre_mspe))

    def donors(self, threshold: float = 0.0) -> pd.Series:
        """Control weights above ``threshold``."""
        return self.unit_weights[self.unit_weights > threshold]

    def summary(self) -> Dict[str, Any]:
        """Scalar fit metrics and weights as plain Python values."""
        return {
            "treated_unit": self.treated_unit,
            "treatment_year": self.treatment_year,
            "loss_W": self.loss_w,
            "loss_V": self.loss_v,
            "pre_mspe": self.pre_mspe,
            "post_mspe": self.post_mspe,
            "rmspe_ratio": self.rmspe_ratio,
            "unit_weights": {k: float(v) for k, v in self.unit_weights.items()},
            "predictor_weights": {str(k): float(v) for k, v in self.predictor_weights.items()},
        }


def validate_scm_input(panel: pd.DataFrame, spec: SCMSpecification) -> List[str]:
    """
    Check the panel holds every value the solver will read.

    Args:
        panel: Interpolated panel with ``country`` and ``year`` columns
        spec: Fit design

    Returns:
        List of errors (empty if the panel is usable)
    """
    errors = []
    required = spec.required_values()

    missing_columns = [c for c in ["country", "year", *required] if c not in panel.columns]
    if missing_columns:
        return [f"Missing panel columns: {missing_columns}"]

    countries = set(panel["country"])
    if spec.treated_unit not in countries:
        errors.append(f"Treated unit {spec.treated_unit} is not in the panel")

    units = control_units(panel, spec)
    if spec.controls is not None:
        unknown = sorted(set(spec.controls) - countries)
        if unknown:
            errors.append(f"Unknown control units: {unknown}")
    if not units:
        errors.append("No control units left after removing the treated unit")

    expected = (set(units) | {spec.treated_unit}) & countries
    subset = panel[panel["country"].isin(expected)]
    for column, years in required.items():
        rows = subset[subset["year"].isin(years)]
        for country, group in rows.groupby("country"):
            absent = sorted(years - set(group["year"]))
            if absent:
                errors.append(f"{country}: no {column} rows for years {absent}")
            values = group[column].to_numpy(dtype=float)
            if np.isnan(values).any():
                errors.append(f"{country}: missing {column} values")
            elif not np.isfinite(values).all():
                errors.append(f"{country}: non-finite {column} values")
        for country in sorted(expected - set(rows["country"])):
            errors.append(f"{country}: no {column} rows in the required years")

    return errors


def control_units(panel: pd.DataFrame, spec: SCMSpecification) -> List[str]:
    """Donor pool: requested controls (or all countries) minus the treated unit."""
    countries = set(panel["country"])
    pool = countries if spec.controls is None else set(spec.controls) & countries
    return sorted(pool - {spec.treated_unit})


class SyntheticControlAdapter(Estimator):
    """
    Synthetic control estimator backed by pysyncon.

    Example:
        >>> adapter = SyntheticControlAdapter()
        >>> result = adapter.fit(panel, SCMSpecification.from_config(config))
        >>> result.unit_weights.head()
    """

    def __init__(
        self,
        optim_method: str = "Nelder-Mead",
        optim_initial: str = "equal",
        weight_threshold: float = 0.0,
        dataprep_factory: Optional[Callable[..., Any]] = None,
        solver_factory: Optional[Callable[[], Any]] = None,
        name: Optional[str] = None
    ):
        super().__init__(name or "SyntheticControlAdapter")
        self.optim_method = optim_method
        self.optim_initial = optim_initial
        self.weight_threshold = weight_threshold
        self.dataprep_factory = dataprep_factory or pysyncon.Dataprep
        self.solver_factory = solver_factory or pysyncon.Synth

    @classmethod
    def from_config(cls, config: AnalysisConfig) -> SyntheticControlAdapter:
        return cls(
            optim_method=config.solver.optim_method,
            optim_initial=config.solver.optim_initial,
            weight_threshold=config.solver.weight_threshold,
        )

    def prepare(self, panel: pd.DataFrame, spec: SCMSpecification) -> PreparedInput:
        """
        Assign country ids, validate the panel and build the solver input.

        Raises:
            SCMInputError: If the panel cannot be used for this design
        """
        errors = self.validate_inputs(panel)
        if not errors:
            errors = validate_scm_input(panel, spec)
        if errors:
            raise SCMInputError(errors, self.name)

        country_ids = CountryIdMap.from_countries(panel["country"])
        foo = country_ids.attach(panel)
        treated_id = country_ids.id_of(spec.treated_unit)
        control_ids = [country_ids.id_of(c) for c in control_units(panel, spec)]

        dataprep = self.dataprep_factory(
            foo=foo,
            predictors=list(spec.predictors),
            predictors_op=spec.predictors_op,
            dependent=spec.dependent,
            unit_variable="country_id",
            time_variable="year",
            treatment_identifier=treated_id,
            controls_identifier=control_ids,
            time_predictors_prior=list(spec.time_predictors_prior.years),
            time_optimize_ssr=list(spec.time_optimize_ssr.years),
            special_predictors=[
                (s.indicator, list(s.period.years), s.op) for s in spec.special_predictors
            ] or None,
        )

        self.logger.info(
            f"Prepared synthetic control for {spec.treated_unit} (id {treated_id}) "
            f"with {len(control_ids)} controls"
        )
        return PreparedInput(
            country_ids=country_ids,
            panel=foo,
            treated_id=treated_id,
            control_ids=control_ids,
            dataprep=dataprep,
        )

    def fit(self, panel: pd.DataFrame, spec: SCMSpecification) -> SCMResult:
        """
        Fit the synthetic control and extract weights and trajectories.

        Raises:
            SCMInputError: If the panel cannot be used for this design
            EstimationError: If the solver fails
        """
        prepared = self.prepare(panel, spec)

        synth = self.solver_factory()
        try:
            synth.fit(
                dataprep=prepared.dataprep,
                optim_method=self.optim_method,
                optim_initial=self.optim_initial,
            )
        except Exception as e:
            raise EstimationError(f"Synthetic control solver failed: {e}", self.name) from e

        return self._extract_result(synth, prepared, spec)

    def estimate(
        self,
        data: pd.DataFrame,
        parameters: Optional[Dict[str, Any]] = None
    ) -> EstimationResult:
        """
        Estimator interface around ``fit``.

        Args:
            data: Interpolated panel
            parameters: Must contain ``spec`` (SCMSpecification or dict)
        """
        parameters = parameters or {}
        spec = parameters.get("spec")
        if spec is None:
            raise EstimationError("Parameter 'spec' is required", self.name)
        if not isinstance(spec, SCMSpecification):
            spec = SCMSpecification(**spec)

        start_time = time.time()
        metadata = EstimationMetadata(
            estimator_name=self.name,
            operation_id=self._generate_operation_id(),
            parameters=spec.model_dump(mode="json"),
        )

        result = self.fit(data, spec)
        metadata.computation_time = time.time() - start_time

        estimation = EstimationResult(
            status=EstimationStatus.COMPLETED,
            data=result,
            metadata=metadata,
        )
        if not np.isclose(result.unit_weights.sum(), 1.0, atol=1e-3):
            estimation.add_warning(f"Control weights sum to {result.unit_weights.sum():.4f}")
        return estimation

    def _extract_result(self, synth: Any, prepared: PreparedInput, spec: SCMSpecification) -> SCMResult:
        country_ids = prepared.country_ids

        raw_weights = pd.Series(synth.weights(round=6), dtype=float)
        unit_weights = raw_weights.rename(index=lambda i: country_ids.name_of(int(i)))
        if self.weight_threshold:
            unit_weights = unit_weights.where(unit_weights >= self.weight_threshold, 0.0)
        unit_weights = unit_weights.sort_values(ascending=False, kind="mergesort").rename("weight")
        unit_weights.index.name = "country"

        summary = synth.summary(round=6)
        predictor_weights = summary["V"].astype(float).rename("weight")
        balance = summary.drop(columns=["V"])

        Z0, Z1 = prepared.dataprep.make_outcome_mats(time_period=list(spec.time_plot.years))
        synthetic = Z0.loc[:, list(raw_weights.index)].to_numpy(dtype=float) @ raw_weights.to_numpy()
        paths = pd.DataFrame(
            {
                "treated": np.asarray(Z1, dtype=float),
                "synthetic": synthetic,
            },
            index=pd.Index([int(year) for year in Z0.index], name="year"),
        )
        paths["gap"] = paths["treated"] - paths["synthetic"]

        result = SCMResult(
            treated_unit=spec.treated_unit,
            treatment_year=spec.treatment_year,
            country_ids=country_ids,
            unit_weights=unit_weights,
            predictor_weights=predictor_weights,
            balance=balance,
            paths=paths,
            loss_w=float(synth.loss_W),
            loss_v=float(synth.loss_V),
        )

        self.logger.info(
            f"Synthetic {spec.treated_unit}: loss_W={result.loss_w:.6g}, "
            f"loss_V={result.loss_v:.6g}, pre-treatment MSPE={result.pre_mspe:.6g}"
        )
        return result
