"""Tabular per-file coverage on stdout.

File      | % Stmts | % Branch | % Funcs | % Lines | Uncovered Line #s
All files |   85.71 |      100 |      50 |   85.71 |
 src/a.py |   85.71 |      100 |      50 |   85.71 | 4
"""

from __future__ import annotations

import io

from pydantic import Field
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from coverplane.coverage.models import CoverageStore, CoverageSummary
from coverplane.reporters.base import (
    ReportContext,
    ReporterOptions,
    ReportOutput,
    compress_ranges,
    format_percent,
    visible_records,
)

_COLUMNS = ("% Stmts", "% Branch", "% Funcs", "% Lines")


class TextOptions(ReporterOptions):
    skip_full: bool = False
    max_cols: int = Field(default=0, ge=0)  # 0: unlimited


def _percents(summary: CoverageSummary) -> list[str]:
    return [
        format_percent(summary.statements.percent),
        format_percent(summary.branches.percent),
        format_percent(summary.functions.percent),
        format_percent(summary.lines.percent),
    ]


def _is_full(summary: CoverageSummary) -> bool:
    return all(
        stat.covered == stat.total
        for stat in (summary.statements, summary.branches, summary.functions, summary.lines)
    )


class TextReporter:
    """Per-file table. Options: skip_empty, skip_full, max_cols."""

    name = "text"
    options_model = TextOptions

    def render(self, store: CoverageStore, context: ReportContext) -> ReportOutput:
        records = visible_records(store, context)
        total = CoverageSummary.from_records(records)

        table = Table(box=box.ASCII, show_edge=False, pad_edge=False, highlight=False)
        table.add_column("File", no_wrap=True)
        for column in _COLUMNS:
            table.add_column(column, justify="right", no_wrap=True)
        table.add_column("Uncovered Line #s", no_wrap=True)

        table.add_row("All files", *_percents(total), "")
        for record in records:
            summary = record.summary()
            if context.option("skip_full", False) and _is_full(summary):
                continue
            table.add_row(
                Text(f" {context.relative(record.key)}"),
                *_percents(summary),
                compress_ranges(record.uncovered_lines),
            )

        buffer = io.StringIO()
        console = Console(
            file=buffer,
            width=int(context.option("max_cols", 0)) or 10_000,
            color_system=None,
            force_terminal=False,
            highlight=False,
        )
        console.print(table)
        return ReportOutput(stdout=buffer.getvalue())
