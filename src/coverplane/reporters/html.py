"""Browsable HTML report.

Writes ``<directory>/<subdir>/index.html`` plus one page per in-scope file
mirroring its path relative to the root. Never writes to stdout.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from jinja2 import Environment, PackageLoader, select_autoescape

from coverplane.coverage.models import CoverageRecord, CoverageStore, CoverageSummary
from coverplane.reporters.base import (
    ReportContext,
    ReporterOptions,
    ReportOutput,
    compress_ranges,
    format_percent,
    visible_records,
)

_LOW_WATERMARK = 50.0
_HIGH_WATERMARK = 80.0


def _level(percent: float) -> str:
    if percent >= _HIGH_WATERMARK:
        return "high"
    if percent >= _LOW_WATERMARK:
        return "medium"
    return "low"


class HtmlOptions(ReporterOptions):
    subdir: str = "html"


@dataclass
class SourceLine:
    number: int
    text: str
    hits: int | None  # None: not an executable line


@dataclass
class FileRow:
    path: str
    href: str
    summary: CoverageSummary
    uncovered: str


def _source_lines(record: CoverageRecord) -> list[SourceLine] | None:
    try:
        text = Path(record.key).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    return [
        SourceLine(number=i, text=line, hits=record.line_hits.get(i))
        for i, line in enumerate(text.splitlines(), start=1)
    ]


class HtmlReporter:
    """Options: subdir (default 'html'), skip_empty."""

    name = "html"
    options_model = HtmlOptions

    def __init__(self) -> None:
        self.env = Environment(
            loader=PackageLoader("coverplane.reporters", "templates"),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["pct"] = format_percent
        self.env.filters["level"] = _level

    def render(self, store: CoverageStore, context: ReportContext) -> ReportOutput:
        subdir = PurePosixPath(context.option("subdir", self.options_model().subdir))
        records = visible_records(store, context)
        total = CoverageSummary.from_records(records)

        index = self.env.get_template("index.html")
        page = self.env.get_template("file.html")

        files: dict[str, str] = {}
        rows: list[FileRow] = []
        for record in records:
            rel = context.relative(record.key).lstrip("/")
            href = f"{rel}.html"
            depth = len(PurePosixPath(href).parts) - 1
            row = FileRow(
                path=rel,
                href=href,
                summary=record.summary(),
                uncovered=compress_ranges(record.uncovered_lines),
            )
            rows.append(row)
            files[str(subdir / href)] = page.render(
                row=row,
                source=_source_lines(record),
                index_href="../" * depth + "index.html",
            )

        files[str(subdir / "index.html")] = index.render(total=total, rows=rows)
        return ReportOutput(files=files)
