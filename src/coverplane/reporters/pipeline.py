"""Reporter registry and the concurrent reporting pipeline.

Every requested reporter renders against the same read-only final store,
concurrently. Files are written by the worker that rendered them. Stdout
text is buffered and emitted afterwards in request order, so concurrent
reporters never interleave on the terminal.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

import structlog
from pydantic import ValidationError

from coverplane.config.models import ReportRequest
from coverplane.core.errors import ConfigError, ReportWriteError
from coverplane.core.progress import suppress_console_logs
from coverplane.coverage.models import CoverageStore
from coverplane.reporters.base import Reporter, ReportContext, ReportOutput, summary_line
from coverplane.reporters.html import HtmlReporter
from coverplane.reporters.json_report import JsonReporter, JsonSummaryReporter
from coverplane.reporters.lcov import LcovReporter
from coverplane.reporters.text import TextReporter
from coverplane.reporters.text_summary import TextSummaryReporter

log = structlog.get_logger(__name__)

REPORTER_BY_NAME: dict[str, type[Reporter]] = {
    "text": TextReporter,
    "text-summary": TextSummaryReporter,
    "json": JsonReporter,
    "json-summary": JsonSummaryReporter,
    "lcov": LcovReporter,
    "html": HtmlReporter,
}


def get_reporter(name: str) -> Reporter:
    """Instantiate a registered reporter.

    Raises:
        ConfigError: ``name`` is not a registered reporter.
    """
    reporter_type = REPORTER_BY_NAME.get(name)
    if reporter_type is None:
        raise ConfigError.unknown_reporter(name, sorted(REPORTER_BY_NAME))
    return reporter_type()


def resolve_request(request: ReportRequest) -> tuple[Reporter, dict[str, Any]]:
    """Look up the reporter of ``request`` and validate its options.

    Returns the reporter and its options with defaults filled in.

    Raises:
        ConfigError: Unknown reporter, unknown option, or an option of the
            wrong type.
    """
    reporter = get_reporter(request.name)
    try:
        options = reporter.options_model.model_validate(request.options)
    except ValidationError as e:
        err = e.errors()[0]
        field_name = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(
            f"reporters.{request.name}.{field_name}", err.get("input"), err["msg"]
        ) from e
    return reporter, options.model_dump()


@dataclass
class ReportOutcome:
    """Result of one reporter."""

    name: str
    stdout: str = ""
    files: list[Path] = field(default_factory=list)
    error: ReportWriteError | None = None


@dataclass
class PipelineResult:
    outcomes: list[ReportOutcome] = field(default_factory=list)

    @property
    def errors(self) -> list[ReportWriteError]:
        return [o.error for o in self.outcomes if o.error is not None]

    @property
    def files(self) -> list[Path]:
        return [path for o in self.outcomes for path in o.files]

    @property
    def ok(self) -> bool:
        return not self.errors


def _write_files(name: str, output: ReportOutput, directory: Path) -> list[Path]:
    written: list[Path] = []
    for rel, content in output.files.items():
        path = directory / rel
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ReportWriteError.unwritable(name, str(path), str(e)) from e
        written.append(path)
    return written


def _run_one(
    reporter: Reporter,
    name: str,
    options: dict[str, Any],
    store: CoverageStore,
    root: Path,
    directory: Path,
) -> ReportOutcome:
    if options.get("directory"):
        directory = root / options["directory"]
    context = ReportContext(root=root, directory=directory, options=options)
    outcome = ReportOutcome(name=name)
    try:
        output = reporter.render(store, context)
        outcome.files = _write_files(name, output, directory)
        stdout = output.stdout
        if options.get("summary"):
            stdout += summary_line(store.in_scope().summary()) + "\n"
        outcome.stdout = stdout
    except ReportWriteError as e:
        log.warning("reporter_failed", reporter=name, error=e.message)
        outcome.error = e
    except Exception as e:
        log.exception("reporter_crashed", reporter=name)
        outcome.error = ReportWriteError.render_failed(name, f"{type(e).__name__}: {e}")
    else:
        log.debug("report_done", reporter=name, files=len(outcome.files))
    return outcome


def run_reporters(
    store: CoverageStore,
    requests: Sequence[ReportRequest],
    *,
    root: Path,
    directory: Path,
    stream: TextIO | None = None,
    max_workers: int = 4,
) -> PipelineResult:
    """Render every requested report from ``store``.

    All requests are validated before anything renders. A failing reporter
    is reported on its own outcome and does not stop the others.

    Raises:
        ConfigError: A requested reporter is not registered or has
            invalid options.
    """
    jobs = [(request.name, *resolve_request(request)) for request in requests]
    if not jobs:
        return PipelineResult()

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="report") as pool:
        futures = [
            pool.submit(_run_one, reporter, name, options, store, root, directory)
            for name, reporter, options in jobs
        ]
        outcomes = [future.result() for future in futures]

    out = stream if stream is not None else sys.stdout
    with suppress_console_logs():
        for outcome in outcomes:
            if outcome.stdout:
                out.write(outcome.stdout)
        out.flush()

    return PipelineResult(outcomes=outcomes)
