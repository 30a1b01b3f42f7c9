"""
Synthetic control estimation on the prepared panel.

This module provides the adapter to the pysyncon solver and the export of
its results.
"""

from .base import (
    EstimationError, EstimationMetadata, EstimationResult, EstimationStatus,
    Estimator, SCMInputError
)
from .synthetic_control import (
    PreparedInput, SCMResult, SCMSpecification, SyntheticControlAdapter,
    control_units, validate_scm_input
)
from .export import ResultExporter, ResultVisualizer, render_table

__all__ = [
    "EstimationError",
    "EstimationMetadata",
    "EstimationResult",
    "EstimationStatus",
    "Estimator",
    "SCMInputError",
    "PreparedInput",
    "SCMResult",
    "SCMSpecification",
    "SyntheticControlAdapter",
    "control_units",
    "validate_scm_input",
    "ResultExporter",
    "ResultVisualizer",
    "render_table",
]
