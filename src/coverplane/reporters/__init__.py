"""Report rendering for the final coverage store.

Built-in reporters: text, text-summary, json, json-summary, lcov, html.
"""

from coverplane.reporters.base import Reporter, ReportContext, ReporterOptions, ReportOutput
from coverplane.reporters.pipeline import (
    REPORTER_BY_NAME,
    PipelineResult,
    ReportOutcome,
    get_reporter,
    resolve_request,
    run_reporters,
)

__all__ = [
    "REPORTER_BY_NAME",
    "PipelineResult",
    "ReportContext",
    "ReportOutcome",
    "ReportOutput",
    "Reporter",
    "ReporterOptions",
    "get_reporter",
    "resolve_request",
    "run_reporters",
]
