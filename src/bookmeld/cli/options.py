# ABOUTME: Shared Click options and provider wiring for bookmeld CLI commands.
# ABOUTME: Provides reusable decorators for --db, --timeout, and --min-confidence.

from pathlib import Path

import click

from bookmeld.db.connection import DEFAULT_DB_PATH
from bookmeld.metadata.coordinator import CoordinatorConfig, QueryCoordinator
from bookmeld.metadata.http import BookmeldHttpClient
from bookmeld.metadata.openlibrary import OpenLibraryProvider

db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    help=f"Path to library database (default: {DEFAULT_DB_PATH})",
)

timeout_option = click.option(
    "--timeout",
    type=click.FloatRange(min=0.1),
    default=30.0,
    show_default=True,
    help="Seconds to wait for providers before giving up on them.",
)

min_confidence_option = click.option(
    "-t",
    "--min-confidence",
    type=click.FloatRange(0.0, 1.0),
    default=0.6,
    show_default=True,
    help="Reconciled confidence a field needs before it is used.",
)


def create_coordinator(timeout: float) -> QueryCoordinator:
    """Create a coordinator over the default providers (Open Library)."""
    provider = OpenLibraryProvider(http_client=BookmeldHttpClient())
    return QueryCoordinator([provider], CoordinatorConfig(operation_timeout=timeout))
