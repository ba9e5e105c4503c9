"""Aggregate-only coverage block on stdout."""

from __future__ import annotations

from coverplane.coverage.models import CoverageStore, CoverageSummary
from coverplane.reporters.base import (
    ReportContext,
    ReporterOptions,
    ReportOutput,
    format_percent,
    visible_records,
)

_WIDTH = 80
_TITLE = " Coverage summary "


class TextSummaryReporter:
    name = "text-summary"
    options_model = ReporterOptions

    def render(self, store: CoverageStore, context: ReportContext) -> ReportOutput:
        summary = CoverageSummary.from_records(visible_records(store, context))
        lines = ["", _TITLE.center(_WIDTH, "=")]
        for label, stat in (
            ("Statements", summary.statements),
            ("Branches", summary.branches),
            ("Functions", summary.functions),
            ("Lines", summary.lines),
        ):
            lines.append(
                f"{label:<13}: {format_percent(stat.percent)}% ( {stat.covered}/{stat.total} )"
            )
        lines.append("=" * _WIDTH)
        return ReportOutput(stdout="\n".join(lines) + "\n")
