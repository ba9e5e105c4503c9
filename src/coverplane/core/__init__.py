"""Core module exports."""

from coverplane.core.errors import (
    ConfigError,
    CoverageDataError,
    CoverplaneError,
    ErrorCode,
    FingerprintMismatch,
    InstrumentationError,
    ReportWriteError,
)
from coverplane.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from coverplane.core.progress import pluralize, status

__all__ = [
    # Errors
    "ConfigError",
    "CoverageDataError",
    "CoverplaneError",
    "ErrorCode",
    "FingerprintMismatch",
    "InstrumentationError",
    "ReportWriteError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Console
    "pluralize",
    "status",
]
