"""Machine-readable reporters: ``json`` (full data) and ``json-summary``.

``json`` is the only reporter that also carries out-of-scope records, each
flagged with ``inScope``; totals are still computed over in-scope records
only.

coverage-final.json:
{
    "total": {"statements": {"covered": 6, "total": 7, "pct": 85.71}, ...},
    "files": {
        "<FileKey>": {
            "path": "<FileKey>",
            "inScope": true,
            "fingerprint": "...",
            "statementMap": {...}, "branchMap": {...}, "fnMap": {...},
            "s": {...}, "b": {...}, "f": {...}, "l": {...},
            "summary": {...}
        }
    }
}
"""

from __future__ import annotations

import json
from typing import Any

from coverplane.coverage.models import CoverageRecord, CoverageStore, CoverageSummary
from coverplane.reporters.base import ReportContext, ReporterOptions, ReportOutput, visible_records


class JsonOptions(ReporterOptions):
    file: str = "coverage-final.json"
    stdout: bool = False


class JsonSummaryOptions(ReporterOptions):
    file: str = "coverage-summary.json"


def summary_to_dict(summary: CoverageSummary) -> dict[str, Any]:
    return {
        category: {
            "covered": stat.covered,
            "total": stat.total,
            "uncovered": stat.uncovered,
            "pct": round(stat.percent, 2),
        }
        for category, stat in (
            ("statements", summary.statements),
            ("branches", summary.branches),
            ("functions", summary.functions),
            ("lines", summary.lines),
        )
    }


def _file_entry(record: CoverageRecord) -> dict[str, Any]:
    raw = record.to_dict()
    imap = raw["imap"]
    return {
        "path": record.key,
        "inScope": record.in_scope,
        "fingerprint": record.fingerprint,
        "statementMap": imap["statements"],
        "branchMap": imap["branches"],
        "fnMap": imap["functions"],
        "s": raw["s"],
        "b": raw["b"],
        "f": raw["f"],
        "l": raw["l"],
        "summary": summary_to_dict(record.summary()),
    }


class JsonReporter:
    """Full per-file data. Options: file, stdout."""

    name = "json"
    options_model = JsonOptions

    def render(self, store: CoverageStore, context: ReportContext) -> ReportOutput:
        doc = {
            "total": summary_to_dict(store.in_scope().summary()),
            "files": {record.key: _file_entry(record) for record in store},
        }
        text = json.dumps(doc, indent=2) + "\n"
        if context.option("stdout", False):
            return ReportOutput(stdout=text)
        return ReportOutput(files={context.option("file", self.options_model().file): text})


class JsonSummaryReporter:
    """Totals plus per-file summaries. Options: file."""

    name = "json-summary"
    options_model = JsonSummaryOptions

    def render(self, store: CoverageStore, context: ReportContext) -> ReportOutput:
        records = visible_records(store, context)
        doc: dict[str, Any] = {"total": summary_to_dict(CoverageSummary.from_records(records))}
        for record in records:
            doc[record.key] = summary_to_dict(record.summary())
        text = json.dumps(doc, indent=2) + "\n"
        return ReportOutput(files={context.option("file", self.options_model().file): text})
