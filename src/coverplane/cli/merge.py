"""cvp merge command - combine worker partials into one partial."""

from pathlib import Path

import click

from coverplane.cli.utils import load_partials
from coverplane.core.errors import CoverplaneError
from coverplane.core.progress import pluralize, status
from coverplane.coverage.collector import write_partial
from coverplane.coverage.merge import merge_stores


@click.command()
@click.argument(
    "partials", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Where to write the merged partial",
)
def merge_command(partials: tuple[Path, ...], output: Path) -> None:
    """Merge worker PARTIALS into a single partial document.

    Counts for the same file are summed. Merging the same partial twice
    double-counts it.
    """
    stores = load_partials(partials)
    try:
        merged = merge_stores(stores)
    except CoverplaneError as e:
        raise click.ClickException(str(e)) from e

    try:
        write_partial(merged, output, worker="merged")
    except OSError as e:
        raise click.ClickException(f"Cannot write {output}: {e}") from e

    status(
        f"Merged {pluralize(len(stores), 'partial')} "
        f"({pluralize(len(merged), 'file')}) into {output}",
        style="success",
    )
