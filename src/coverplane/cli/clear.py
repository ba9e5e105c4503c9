"""cvp clear-cache command - remove the instrumentation cache."""

from pathlib import Path

import click
import questionary

from coverplane.cli.utils import find_project_root
from coverplane.config.loader import load_config
from coverplane.core.errors import ConfigError
from coverplane.core.progress import get_console
from coverplane.coverage.cache import RunCache


def clear_cache(project_root: Path, *, yes: bool = False) -> bool:
    """Remove the instrumentation cache of a project.

    Returns True if cleared, False if cancelled or nothing to clear.

    Raises:
        click.ClickException: The config is invalid or the cache cannot be removed.
    """
    console = get_console()
    try:
        config = load_config(project_root)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    cache_dir = Path(config.coverage.cache_directory)
    if not cache_dir.is_absolute():
        cache_dir = project_root / cache_dir
    cache = RunCache(cache_dir)

    if not cache.directory.exists():
        console.print("[yellow]Nothing to clear[/yellow] - no coverage cache found")
        return False

    console.print("\n[bold]The following will be permanently deleted:[/bold]\n")
    console.print(f"  [cyan]•[/cyan] {cache.directory}")
    console.print()

    if not yes:
        answer = questionary.select(
            "Every file will be re-instrumented on the next run. Continue?",
            choices=[
                questionary.Choice("No, keep the cache", value=False),
                questionary.Choice("Yes, clear it", value=True),
            ],
            style=questionary.Style(
                [
                    ("question", "bold"),
                    ("highlighted", "fg:red bold"),
                    ("selected", "fg:red"),
                ]
            ),
        ).ask()

        if not answer:
            console.print("[dim]Cancelled[/dim]")
            return False

    try:
        cache.clear()
    except OSError as e:
        raise click.ClickException(f"Failed to remove {cache.directory}: {e}") from e

    console.print(f"  [green]✓[/green] Removed {cache.directory}")
    return True


@click.command()
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project root (default: auto-detected from the current directory)",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def clear_cache_command(root: Path | None, yes: bool) -> None:
    """Remove the instrumentation cache.

    The next run instruments every file from scratch.
    """
    clear_cache(find_project_root(root), yes=yes)
