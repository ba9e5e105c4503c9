"""Run orchestration: scope, aggregation, cache update, thresholds, reports.

    engine = CoverageEngine(config.coverage)
    outcome = engine.run(partials, tests_passed=True)
    sys.exit(outcome.exit_code)

Configuration problems (bad globs or threshold selectors, unknown
reporters, invalid reporter options) surface as ConfigError from the
constructor, before any partial is read.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import structlog
from rich.markup import escape

from coverplane.config.models import CoverageConfig
from coverplane.core.logging import clear_run_id, set_run_id
from coverplane.core.progress import pluralize, status
from coverplane.coverage.aggregate import AggregationResult, Aggregator, PartialInput
from coverplane.coverage.cache import InstrumentationProvider, RunCache
from coverplane.coverage.instrument import DefaultInstrumenter, Instrumenter
from coverplane.coverage.models import CoverageStore
from coverplane.coverage.scope import ScopeOptions, ScopeResolver
from coverplane.coverage.thresholds import (
    ThresholdResult,
    check_selectors,
    evaluate_thresholds,
)
from coverplane.reporters.pipeline import PipelineResult, resolve_request, run_reporters

log = structlog.get_logger(__name__)


@dataclass
class RunOutcome:
    """Everything a run produced."""

    aggregation: AggregationResult
    thresholds: ThresholdResult
    reports: PipelineResult
    tests_passed: bool = True

    @property
    def store(self) -> CoverageStore:
        return self.aggregation.store

    @property
    def exit_code(self) -> int:
        """1 when tests failed or a threshold was missed. Report errors don't count."""
        return 0 if self.tests_passed and self.thresholds.passed else 1


class CoverageEngine:
    """Turns worker partials into the final store, a verdict and reports."""

    def __init__(
        self,
        config: CoverageConfig,
        *,
        instrumenter: Instrumenter | None = None,
        substitutes: Mapping[str, str] | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.config = config
        self.root = config.resolved_root()
        self.stdout = stdout
        self.requests = config.report_requests()
        for request in self.requests:
            resolve_request(request)
        check_selectors(config.threshold)

        self.scope = ScopeResolver(
            self.root, ScopeOptions.from_config(config, substitutes=substitutes)
        )
        self.cache = RunCache(self._under_root(config.cache_directory), enabled=config.cache)
        self.provider = InstrumentationProvider(instrumenter or DefaultInstrumenter(), self.cache)

    def _under_root(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self.root / p

    @property
    def directory(self) -> Path:
        return self._under_root(self.config.directory)

    def run(self, partials: Iterable[PartialInput], *, tests_passed: bool = True) -> RunOutcome:
        """Aggregate ``partials`` and evaluate/report on the result.

        Files whose partials disagree about their content are reported in
        ``aggregation.failed`` and left out of thresholds.

        Raises:
            CoverageDataError: A partial is malformed.
        """
        run_id = set_run_id()
        log.info("run_started", run_id=run_id, root=str(self.root), mode=self.scope.mode)
        try:
            return self._run(partials, tests_passed=tests_passed)
        finally:
            clear_run_id()

    def _run(self, partials: Iterable[PartialInput], *, tests_passed: bool) -> RunOutcome:
        aggregation = Aggregator(
            self.scope, self.provider, drop_excluded=self.config.drop_excluded
        ).aggregate(partials)
        store = aggregation.store

        cached = self.provider.flush(store)
        log.debug(
            "cache_updated",
            written=cached,
            hits=self.provider.cache_hits,
            instrumented=self.provider.instrumented,
        )

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="verdict") as pool:
            threshold_future = pool.submit(
                evaluate_thresholds,
                store,
                self.config.threshold,
                root=self.root,
                skip=aggregation.failed,
            )
            report_future = pool.submit(
                run_reporters,
                store,
                self.requests,
                root=self.root,
                directory=self.directory,
                stream=self.stdout,
                max_workers=self.config.report_workers,
            )
            thresholds = threshold_future.result()
            reports = report_future.result()

        for key, reason in aggregation.failed.items():
            status(escape(f"Coverage not counted for {key}: {reason}"), style="error")
        for violation in thresholds.violations:
            log.warning(
                "threshold_failed",
                selector=violation.selector,
                category=violation.category,
                required=violation.required,
                actual=violation.actual,
            )
            status(escape(violation.message), style="error")
        for error in reports.errors:
            status(escape(error.message), style="warning")

        outcome = RunOutcome(
            aggregation=aggregation,
            thresholds=thresholds,
            reports=reports,
            tests_passed=tests_passed,
        )
        log.info(
            "run_done",
            files=pluralize(len(store), "file"),
            exit_code=outcome.exit_code,
            report_errors=len(reports.errors),
        )
        return outcome
