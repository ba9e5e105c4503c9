"""Config module exports."""

from coverplane.config.loader import load_config
from coverplane.config.models import (
    CategoryThresholds,
    CoverageConfig,
    CoverplaneConfig,
    LoggingConfig,
    ReportRequest,
)

__all__ = [
    "load_config",
    "CategoryThresholds",
    "CoverageConfig",
    "CoverplaneConfig",
    "LoggingConfig",
    "ReportRequest",
]
