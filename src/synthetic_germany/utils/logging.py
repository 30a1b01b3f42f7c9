"""
Logging setup for analysis runs.

Console output goes through Rich; a size-rotated log file is added when
``LoggingConfig.file_path`` is set.
"""

import logging
import logging.handlers
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from ..config import LoggingConfig

_UNITS = {"KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3, "B": 1}

# Third-party loggers that flood INFO during plotting and workbook IO
_QUIET_LOGGERS = ("matplotlib", "PIL", "openpyxl")


def setup_logging(config: LoggingConfig) -> None:
    """
    Replace the root handlers with a Rich console handler and, optionally,
    a rotating file handler.

    Args:
        config: Logging settings
    """
    level = getattr(logging, config.level.upper())
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    console = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_path=level == logging.DEBUG,
    )
    console.setLevel(level)
    root.addHandler(console)

    if config.file_path:
        log_file = Path(config.file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=_parse_size(config.rotation_size),
            backupCount=config.retention_count,
        )
        rotating.setLevel(level)
        rotating.setFormatter(logging.Formatter(config.format))
        root.addHandler(rotating)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _parse_size(size: str) -> int:
    """Turn '10MB', '512KB' or a plain byte count into bytes."""
    text = size.strip().upper()
    for unit, factor in _UNITS.items():
        if text.endswith(unit):
            return int(text[: -len(unit)]) * factor
    return int(text)
