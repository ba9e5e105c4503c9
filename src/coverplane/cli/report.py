"""cvp report command - aggregate partials, check thresholds, write reports."""

from pathlib import Path
from typing import Any

import click

from coverplane.cli.utils import find_project_root, load_partials
from coverplane.config.loader import load_config
from coverplane.core.errors import CoverplaneError
from coverplane.core.logging import configure_logging
from coverplane.core.progress import pluralize, status
from coverplane.coverage.scope import accumulate
from coverplane.coverage.thresholds import parse_threshold_spec
from coverplane.engine import CoverageEngine


def _overrides(
    *,
    collect_from: tuple[str, ...],
    only_from: tuple[str, ...],
    reporters: tuple[str, ...],
    threshold: str | None,
    coverage_dir: str | None,
    no_cache: bool,
) -> dict[str, Any]:
    """Command-line values that replace (never extend) configured ones."""
    overrides: dict[str, Any] = {}
    if collect_from:
        overrides["collect_from"] = list(accumulate(collect_from))
    if only_from:
        overrides["only_from"] = list(accumulate(only_from))
    if reporters:
        overrides["reporters"] = list(accumulate(reporters))
    if threshold is not None:
        spec = parse_threshold_spec(threshold)
        overrides["threshold"] = {
            selector: thresholds.model_dump(exclude_none=True)
            for selector, thresholds in spec.items()
        }
    if coverage_dir is not None:
        overrides["directory"] = coverage_dir
    if no_cache:
        overrides["cache"] = False
    return overrides


@click.command()
@click.argument("partials", nargs=-1, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project root (default: auto-detected from the current directory)",
)
@click.option(
    "--collect-from",
    multiple=True,
    help="Glob or path to collect coverage from (repeatable, '!' negates)",
)
@click.option("--only-from", multiple=True, help="Explicit file to collect from (repeatable)")
@click.option("--reporter", "reporters", multiple=True, help="Reporter name (repeatable)")
@click.option("--threshold", help='JSON threshold spec, e.g. \'{"global": {"lines": 90}}\'')
@click.option("--coverage-dir", help="Output directory for file reporters")
@click.option("--no-cache", is_flag=True, help="Instrument every file from scratch")
@click.option("--tests-failed", is_flag=True, help="Exit non-zero regardless of coverage")
@click.pass_context
def report_command(
    ctx: click.Context,
    partials: tuple[Path, ...],
    root: Path | None,
    collect_from: tuple[str, ...],
    only_from: tuple[str, ...],
    reporters: tuple[str, ...],
    threshold: str | None,
    coverage_dir: str | None,
    no_cache: bool,
    tests_failed: bool,
) -> None:
    """Aggregate worker PARTIALS and report coverage.

    Files matched by --collect-from are reported even if no test loaded
    them. Exits 1 when --tests-failed is given or a threshold is not met.
    """
    project_root = find_project_root(root)

    try:
        overrides = _overrides(
            collect_from=collect_from,
            only_from=only_from,
            reporters=reporters,
            threshold=threshold,
            coverage_dir=coverage_dir,
            no_cache=no_cache,
        )
        config = load_config(project_root, coverage=overrides)
        if not ctx.obj or not ctx.obj.get("verbose"):
            configure_logging(config=config.logging)
        engine = CoverageEngine(config.coverage)
    except CoverplaneError as e:
        raise click.ClickException(str(e)) from e

    stores = load_partials(partials)
    try:
        outcome = engine.run(stores, tests_passed=not tests_failed)
    except CoverplaneError as e:
        raise click.ClickException(str(e)) from e

    aggregation = outcome.aggregation
    status(
        f"Aggregated {pluralize(aggregation.partials, 'partial')} into "
        f"{pluralize(len(outcome.store), 'file')} "
        f"({len(aggregation.placeholders)} declared, {len(aggregation.recovered)} recovered)",
        style="info",
    )
    if outcome.reports.files:
        status(
            f"Wrote {pluralize(len(outcome.reports.files), 'report file')} to {engine.directory}",
            style="success",
        )
    ctx.exit(outcome.exit_code)
