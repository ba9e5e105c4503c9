"""Coverplane CLI - cvp command."""

import click

from coverplane import __version__
from coverplane.cli.clear import clear_cache_command
from coverplane.cli.merge import merge_command
from coverplane.cli.report import report_command
from coverplane.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="cvp")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Coverplane - coverage aggregation, thresholds and reports."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(report_command, name="report")
cli.add_command(merge_command, name="merge")
cli.add_command(clear_cache_command, name="clear-cache")


if __name__ == "__main__":
    cli()
