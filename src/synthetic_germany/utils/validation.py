"""
Data validation utilities for the country-year panel.

This module provides the checks that run between pipeline steps: key
uniqueness, missing values per indicator, numerical sanity and coverage of
the expected countries and years.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd


@dataclass
class ValidationResult:
    """
    Result of a data validation check.

    Attributes:
        is_valid: Whether validation passed
        errors: List of error messages
        warnings: List of warning messages
        details: Additional validation details
    """
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def add_detail(self, key: str, value: Any) -> None:
        """Add a detail."""
        self.details[key] = value

    def merge(self, other: ValidationResult) -> None:
        """Fold another result into this one."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.details.update(other.details)
        if not other.is_valid:
            self.is_valid = False


class PanelValidator:
    """
    Validator for long-format country-year panels.

    A panel has a ``country`` column, a ``year`` column and one numeric
    column per indicator.
    """

    def __init__(self, country_column: str = "country", year_column: str = "year"):
        self.country_column = country_column
        self.year_column = year_column

    def validate_keys(self, panel: pd.DataFrame, name: str = "panel") -> ValidationResult:
        """Check that key columns exist and (country, year) pairs are unique."""
        result = ValidationResult(is_valid=True)

        missing = [
            column for column in (self.country_column, self.year_column)
            if column not in panel.columns
        ]
        if missing:
            result.add_error(f"{name}: Missing key columns: {missing}")
            return result

        duplicated = panel.duplicated([self.country_column, self.year_column])
        if duplicated.any():
            pairs = panel.loc[duplicated, [self.country_column, self.year_column]]
            result.add_error(
                f"{name}: Duplicate (country, year) keys: "
                f"{list(pairs.itertuples(index=False, name=None))}"
            )

        result.add_detail("rows", len(panel))
        result.add_detail("countries", int(panel[self.country_column].nunique()))
        result.add_detail("years", int(panel[self.year_column].nunique()))
        return result

    def validate_missing_values(
        self,
        panel: pd.DataFrame,
        columns: Iterable[str],
        name: str = "panel",
        allow_missing: bool = True
    ) -> ValidationResult:
        """
        Report missing values per indicator column.

        Args:
            panel: Panel to validate
            columns: Indicator columns to inspect
            name: Dataset name for messages
            allow_missing: When False, any missing value is an error

        Returns:
            ValidationResult
        """
        result = ValidationResult(is_valid=True)

        for column in columns:
            if column not in panel.columns:
                result.add_error(f"{name}: Missing indicator column '{column}'")
                continue

            n_missing = int(panel[column].isna().sum())
            result.add_detail(f"missing_{column}", n_missing)
            if n_missing == 0:
                continue

            message = f"{name}: {n_missing} missing values in '{column}'"
            if allow_missing:
                result.add_warning(message)
            else:
                result.add_error(message)

        return result

    def validate_numerical_consistency(
        self,
        panel: pd.DataFrame,
        columns: Iterable[str],
        name: str = "panel"
    ) -> ValidationResult:
        """Check indicator columns are numeric and finite."""
        result = ValidationResult(is_valid=True)

        for column in columns:
            if column not in panel.columns:
                continue
            series = panel[column]
            if not pd.api.types.is_numeric_dtype(series):
                result.add_error(f"{name}: Column '{column}' is not numeric")
                continue
            n_inf = int(np.isinf(series.to_numpy(dtype=float)).sum())
            if n_inf:
                result.add_error(f"{name}: Found {n_inf} infinite values in '{column}'")

        return result

    def validate_coverage(
        self,
        panel: pd.DataFrame,
        expected_countries: Optional[Iterable[str]] = None,
        expected_years: Optional[Iterable[int]] = None,
        name: str = "panel"
    ) -> ValidationResult:
        """Check the panel covers every expected country and year."""
        result = ValidationResult(is_valid=True)

        if expected_countries is not None:
            missing = set(expected_countries) - set(panel[self.country_column])
            if missing:
                result.add_error(f"{name}: Missing countries: {sorted(missing)}")

        if expected_years is not None:
            missing_years = set(expected_years) - set(panel[self.year_column])
            if missing_years:
                result.add_error(f"{name}: Missing years: {sorted(missing_years)}")

        return result


def validate_panel(
    panel: pd.DataFrame,
    indicators: Iterable[str],
    allow_missing: bool = True,
    name: str = "panel"
) -> ValidationResult:
    """
    Run key, missing-value and numeric checks on a panel.

    Args:
        panel: Panel with country, year and indicator columns
        indicators: Indicator column names
        allow_missing: Whether missing indicator values are tolerated
        name: Dataset name for messages

    Returns:
        Combined ValidationResult
    """
    indicators = list(indicators)
    validator = PanelValidator()

    combined = ValidationResult(is_valid=True)
    keys = validator.validate_keys(panel, name)
    combined.merge(keys)
    if not keys.is_valid and not keys.details:
        return combined

    combined.merge(validator.validate_missing_values(panel, indicators, name, allow_missing))
    combined.merge(validator.validate_numerical_consistency(panel, indicators, name))
    return combined
