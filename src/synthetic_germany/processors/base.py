"""
Processor building blocks.

Every preparation step is a DataProcessor: it receives a table (or a dict of
tables keyed by indicator), returns a new one wrapped in a ProcessingResult
and never mutates its input. ``process_with_validation`` adds the checks,
timing and error wrapping shared by all steps.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict

from ..utils.logging import get_logger
from ..utils.validation import ValidationResult


class ProcessingStatus(str, Enum):
    """Outcome of one processor run."""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ProcessingMetadata:
    """Bookkeeping for one processor run."""
    processor_name: str
    operation_id: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    execution_time: Optional[float] = None
    rows_processed: Optional[int] = None
    error_message: Optional[str] = None


class ProcessingResult(BaseModel):
    """
    Output of a processor.

    Attributes:
        data: A table or a dict of tables keyed by indicator
        metadata: Run bookkeeping; step-specific facts live in ``metadata.details``
        status: FAILED when output validation found errors
        validation: Output validation, if it was run
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Any
    metadata: ProcessingMetadata
    status: ProcessingStatus = ProcessingStatus.COMPLETED
    validation: Optional[ValidationResult] = None

    @property
    def is_success(self) -> bool:
        return self.status == ProcessingStatus.COMPLETED


class ProcessingError(Exception):
    """A preparation step could not produce its output."""

    def __init__(
        self,
        message: str,
        processor_name: Optional[str] = None,
        operation_id: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.processor_name = processor_name
        self.operation_id = operation_id
        self.original_error = original_error
        self.timestamp = datetime.now()


class MergeError(ProcessingError):
    """Indicator tables cannot be joined on (country, year)."""
    pass


class InterpolationError(ProcessingError):
    """
    A country has no known value for an indicator.

    Attributes:
        missing: (country, indicator) pairs without any reference point
    """

    def __init__(self, missing: List[Tuple[str, str]], **kwargs):
        self.missing = list(missing)
        pairs = ", ".join(f"{country}/{indicator}" for country, indicator in self.missing)
        super().__init__(f"No observed values to interpolate from: {pairs}", **kwargs)


class DataProcessor(ABC):
    """
    One step of the panel preparation.

    Subclasses implement ``process`` and may narrow ``validate_input`` and
    ``validate_output``; both default to structural checks on tables.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__
        self.logger = get_logger(f"{__name__}.{self.name}")
        self._history: List[ProcessingMetadata] = []

    @abstractmethod
    def process(
        self,
        data: Any,
        parameters: Optional[Dict[str, Any]] = None
    ) -> ProcessingResult:
        """
        Run the step.

        Args:
            data: Table or dict of tables
            parameters: Step-specific options

        Returns:
            ProcessingResult holding new tables
        """
        pass

    def process_with_validation(
        self,
        data: Any,
        parameters: Optional[Dict[str, Any]] = None,
        validate_input: bool = True,
        validate_output: bool = True
    ) -> ProcessingResult:
        """
        Run the step between input and output checks.

        Invalid input raises; invalid output is logged and reported through
        ``status`` so the caller decides whether to stop.

        Raises:
            ProcessingError: On invalid input or any failure inside ``process``.
                Subclasses of ProcessingError pass through unchanged, anything
                else is wrapped.
        """
        metadata = ProcessingMetadata(
            processor_name=self.name,
            operation_id=self._generate_operation_id(),
            parameters=parameters or {}
        )
        started = time.time()
        self.logger.info(f"Starting {metadata.operation_id}")

        try:
            if validate_input:
                self._check_input(data, parameters, metadata.operation_id)
            result = self.process(data, parameters)
        except ProcessingError as e:
            self._record_failure(metadata, started, e)
            e.processor_name = e.processor_name or self.name
            e.operation_id = e.operation_id or metadata.operation_id
            raise
        except Exception as e:
            self._record_failure(metadata, started, e)
            raise ProcessingError(
                f"Processing failed: {e}", self.name, metadata.operation_id, e
            ) from e

        metadata.execution_time = time.time() - started
        metadata.details.update(result.metadata.details)
        metadata.rows_processed = _count_rows(result.data)
        result.metadata = metadata

        if validate_output:
            result.validation = self.validate_output(result.data, parameters)
            for warning in result.validation.warnings:
                self.logger.warning(warning)
            if not result.validation.is_valid:
                result.status = ProcessingStatus.FAILED
                self.logger.warning(
                    f"{metadata.operation_id} produced invalid output: {result.validation.errors}"
                )

        self._history.append(metadata)
        self.logger.info(f"Finished {metadata.operation_id} in {metadata.execution_time:.2f}s")
        return result

    def _check_input(self, data: Any, parameters: Optional[Dict[str, Any]], operation_id: str) -> None:
        validation = self.validate_input(data, parameters)
        for warning in validation.warnings:
            self.logger.warning(warning)
        if not validation.is_valid:
            raise ProcessingError(
                f"Input validation failed: {validation.errors}", self.name, operation_id
            )

    def _record_failure(self, metadata: ProcessingMetadata, started: float, error: Exception) -> None:
        metadata.execution_time = time.time() - started
        metadata.error_message = str(error)
        self._history.append(metadata)
        self.logger.error(f"{metadata.operation_id} failed: {error}")

    def validate_input(
        self,
        data: Any,
        parameters: Optional[Dict[str, Any]] = None
    ) -> ValidationResult:
        """A table, or a non-empty dict of tables; empty tables only warn."""
        result = ValidationResult(is_valid=True)

        if isinstance(data, pd.DataFrame):
            tables = {"input": data}
        elif isinstance(data, dict):
            if not data:
                result.add_error("Input data dictionary is empty")
            tables = data
        else:
            result.add_error(f"Unsupported data type: {type(data)}")
            return result

        for key, table in tables.items():
            label = getattr(key, "value", key)
            if not isinstance(table, pd.DataFrame):
                result.add_error(f"Dataset '{label}' is not a DataFrame")
            elif table.empty:
                result.add_warning(f"{self.name}: Dataset '{label}' is empty")

        return result

    def validate_output(
        self,
        data: Any,
        parameters: Optional[Dict[str, Any]] = None
    ) -> ValidationResult:
        return self.validate_input(data, parameters)

    def _make_result(
        self,
        data: Any,
        parameters: Optional[Dict[str, Any]] = None,
        **details: Any
    ) -> ProcessingResult:
        """Wrap step output; keyword arguments land in ``metadata.details``."""
        metadata = ProcessingMetadata(
            processor_name=self.name,
            operation_id=self._generate_operation_id(),
            parameters=parameters or {},
            details=details
        )
        return ProcessingResult(data=data, metadata=metadata)

    def get_info(self) -> Dict[str, Any]:
        """Run counts for this processor."""
        failed = sum(1 for m in self._history if m.error_message is not None)
        return {
            "name": self.name,
            "class": self.__class__.__name__,
            "total_operations": len(self._history),
            "failed_operations": failed,
        }

    def _generate_operation_id(self) -> str:
        return f"{self.name}_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}"


def _count_rows(data: Any) -> Optional[int]:
    if isinstance(data, pd.DataFrame):
        return len(data)
    if isinstance(data, dict):
        return sum(len(df) for df in data.values() if isinstance(df, pd.DataFrame))
    return None
