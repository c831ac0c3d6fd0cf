# ABOUTME: CLI package for bookmeld, built on Click.
# ABOUTME: Defines the root command group, wires logging to Rich, and registers subcommands.

import logging

import click
from rich.logging import RichHandler

from bookmeld.cli.commands import enrich_cmd, import_cmd, preview_cmd


@click.group()
@click.version_option(package_name="bookmeld")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """bookmeld - reconcile ebook metadata from several online sources."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
    )


cli.add_command(enrich_cmd.enrich)
cli.add_command(import_cmd.import_command)
cli.add_command(preview_cmd.preview)
