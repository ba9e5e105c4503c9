"""Reporter protocol and shared rendering helpers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict

from coverplane.coverage.models import (
    CoverageRecord,
    CoverageStore,
    CoverageSummary,
    FileKey,
    normalize_key,
)


class ReporterOptions(BaseModel):
    """Options every reporter accepts. Unknown options are rejected.

    directory: write this reporter's files here instead of the coverage
        directory (relative paths resolve against the project root).
    summary: also print the aggregate summary line on stdout.
    skip_empty: hide files without any constructs.
    """

    model_config = ConfigDict(extra="forbid")

    directory: str | None = None
    summary: bool = False
    skip_empty: bool = False


@dataclass(frozen=True)
class ReportContext:
    """Everything a reporter needs besides the store itself."""

    root: Path
    directory: Path
    options: Mapping[str, Any] = field(default_factory=dict)

    def option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    def relative(self, key: FileKey) -> str:
        """Display path of ``key``: relative to root when below it."""
        root_key = normalize_key(self.root)
        if key.startswith(root_key + "/"):
            return key[len(root_key) + 1 :]
        return key


@dataclass
class ReportOutput:
    """Rendered report: text for stdout and/or files below the coverage directory."""

    stdout: str = ""
    files: dict[str, str] = field(default_factory=dict)


class Reporter(Protocol):
    """Renders a CoverageStore into one output format.

    Reporters are pure: they read the store, never mutate it, and leave
    all I/O to the pipeline.
    """

    @property
    def name(self) -> str:
        """Registry name, e.g. 'text' or 'json'."""
        ...

    @property
    def options_model(self) -> type[ReporterOptions]:
        """Validates the ReportRequest options of this reporter."""
        ...

    def render(self, store: CoverageStore, context: ReportContext) -> ReportOutput:
        """Render ``store``. Must not write to stdout or disk."""
        ...


def visible_records(store: CoverageStore, context: ReportContext) -> list[CoverageRecord]:
    """In-scope records, minus empty files when ``skip_empty`` is set."""
    records: Iterable[CoverageRecord] = store.in_scope()
    if context.option("skip_empty", False):
        records = (r for r in records if not r.is_empty)
    return list(records)


def format_percent(value: float) -> str:
    """85.714 -> '85.71', 100.0 -> '100', 0.0 -> '0'."""
    return f"{value:.2f}".rstrip("0").rstrip(".")


def compress_ranges(lines: list[int]) -> str:
    """Collapse sorted line numbers into ranges: [1, 2, 3, 7] -> '1-3,7'."""
    if not lines:
        return ""
    parts: list[str] = []
    start = prev = lines[0]
    for line in lines[1:]:
        if line == prev + 1:
            prev = line
            continue
        parts.append(str(start) if start == prev else f"{start}-{prev}")
        start = prev = line
    parts.append(str(start) if start == prev else f"{start}-{prev}")
    return ",".join(parts)


def summary_line(summary: CoverageSummary) -> str:
    """One-line aggregate, e.g. 'Coverage: Statements 85.71% (6/7), ...'."""
    parts = [
        f"{label} {format_percent(stat.percent)}% ({stat.covered}/{stat.total})"
        for label, stat in (
            ("Statements", summary.statements),
            ("Branches", summary.branches),
            ("Functions", summary.functions),
            ("Lines", summary.lines),
        )
    ]
    return "Coverage: " + ", ".join(parts)
