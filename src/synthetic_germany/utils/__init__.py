"""
Utility modules for the Synthetic Germany analysis package.
"""

from .logging import setup_logging, get_logger
from .validation import PanelValidator, ValidationResult, validate_panel

__all__ = [
    "setup_logging",
    "get_logger",
    "PanelValidator",
    "ValidationResult",
    "validate_panel",
]
