"""CLI utilities."""

from collections.abc import Iterable
from pathlib import Path

import click

from coverplane.config.constants import CONFIG_DIR_NAME
from coverplane.core.errors import CoverplaneError
from coverplane.coverage.collector import read_partial
from coverplane.coverage.models import CoverageStore


def find_project_root(start_path: Path | None = None) -> Path:
    """Find the project root.

    An explicitly given path is the root. Otherwise walks up from the
    current directory looking for a .coverplane or .git directory, and
    falls back to the current directory when neither is found.
    """
    if start_path is not None:
        return start_path.resolve()

    start = Path.cwd().resolve()
    for candidate in (start, *start.parents):
        if (candidate / CONFIG_DIR_NAME).is_dir() or (candidate / ".git").exists():
            return candidate
    return start


def load_partials(paths: Iterable[Path]) -> list[CoverageStore]:
    """Read worker partial documents.

    Raises:
        click.ClickException: A partial is unreadable or malformed.
    """
    try:
        return [read_partial(path) for path in paths]
    except CoverplaneError as e:
        raise click.ClickException(str(e)) from e
