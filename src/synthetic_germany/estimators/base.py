"""
Estimator interface for models fitted on the prepared country-year panel.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
import logging

import pandas as pd


class EstimationStatus(Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class EstimationMetadata:
    """Identifies one estimator run and how long it took."""
    estimator_name: str
    operation_id: str
    timestamp: datetime = field(default_factory=datetime.now)
    parameters: Dict[str, Any] = field(default_factory=dict)
    computation_time: Optional[float] = None


@dataclass
class EstimationResult:
    """
    Fitted model plus run bookkeeping.

    ``data`` carries the estimator-specific result object; ``warnings``
    collects conditions worth reporting that did not stop the fit.
    """
    status: EstimationStatus
    data: Any
    metadata: EstimationMetadata
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status == EstimationStatus.COMPLETED

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)


class EstimationError(Exception):
    """The estimator could not produce a fit."""

    def __init__(self, message: str, estimator_name: Optional[str] = None):
        super().__init__(message)
        self.estimator_name = estimator_name
        self.timestamp = datetime.now()


class SCMInputError(EstimationError):
    """
    The panel cannot be handed to the synthetic control solver.

    Attributes:
        errors: One message per problem found
    """

    def __init__(self, errors: List[str], estimator_name: Optional[str] = None):
        self.errors = list(errors)
        super().__init__("Invalid synthetic control input: " + "; ".join(self.errors), estimator_name)


class Estimator(ABC):
    """Fits a model on the long country-year panel."""

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__
        self.logger = logging.getLogger(f"synthetic_germany.estimators.{self.name}")
        self._runs = 0

    @abstractmethod
    def estimate(
        self,
        data: pd.DataFrame,
        parameters: Optional[Dict[str, Any]] = None
    ) -> EstimationResult:
        """
        Fit the model.

        Args:
            data: Long panel with ``country`` and ``year`` columns
            parameters: Estimator-specific options

        Returns:
            EstimationResult wrapping the fitted model
        """
        pass

    def validate_inputs(self, data: pd.DataFrame) -> List[str]:
        """Shape checks shared by all estimators; an empty list means usable."""
        if data is None:
            return ["Input data cannot be None"]
        if not isinstance(data, pd.DataFrame):
            return [f"Input data must be a DataFrame, got {type(data).__name__}"]
        if data.empty:
            return ["Input DataFrame cannot be empty"]
        return []

    def _generate_operation_id(self) -> str:
        self._runs += 1
        return f"{self.name}_{datetime.now():%Y%m%d_%H%M%S}_{self._runs:03d}"
