# ABOUTME: The `bookmeld enrich` command for filling gaps in an EPUB's metadata.
# ABOUTME: Reads the file, checks the library for duplicates, and shows what providers can add.

from pathlib import Path

import click
from rich.console import Console

from bookmeld.cli import options
from bookmeld.cli.render import (
    render_conflicts,
    render_duplicate,
    render_enrichment,
    render_preview,
)
from bookmeld.core.duplicates import DuplicateDetector
from bookmeld.core.enrich import EnrichmentOptions, enrich_metadata, summarize_enrichment
from bookmeld.db.catalog import LibraryCatalog
from bookmeld.db.connection import DEFAULT_DB_PATH, open_library
from bookmeld.db.hashing import compute_checksum
from bookmeld.formats.epub import EpubReadError, read_epub_metadata


@click.command("enrich")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@options.db_option
@options.timeout_option
@options.min_confidence_option
@click.option(
    "--fill-all",
    is_flag=True,
    default=False,
    help="Propose values for every field, not only the missing ones.",
)
@click.option(
    "--fallbacks/--no-fallbacks",
    default=True,
    help="Retry with relaxed queries when the first search is weak.",
)
@click.option(
    "--check-library/--no-check-library",
    default=True,
    help="Check the library for duplicates first (default: on).",
)
@click.option("--details", is_flag=True, default=False, help="Show the full reconciled preview.")
def enrich(
    path: Path,
    db_path: Path | None,
    timeout: float,
    min_confidence: float,
    fill_all: bool,
    fallbacks: bool,
    check_library: bool,
    details: bool,
) -> None:
    """Look up an EPUB online and show the metadata providers can fill in."""
    console = Console()
    try:
        extracted = read_epub_metadata(path)
    except EpubReadError as exc:
        console.print(f"[red]Error reading:[/red] {exc}")
        raise SystemExit(1) from exc

    console.print(f"[bold]{extracted.title or path.name}[/bold]")
    if extracted.authors:
        console.print(f"  by {', '.join(extracted.authors)}")

    if check_library:
        conn = open_library(db_path or DEFAULT_DB_PATH)
        try:
            detector = DuplicateDetector(LibraryCatalog(conn))
            render_duplicate(console, detector.detect_duplicates(compute_checksum(path), extracted))
        finally:
            conn.close()

    coordinator = options.create_coordinator(timeout)
    result = enrich_metadata(
        extracted,
        coordinator,
        EnrichmentOptions(
            fill_missing_only=not fill_all,
            timeout=timeout,
            min_confidence=min_confidence,
            use_fallbacks=fallbacks,
        ),
    )

    if details and result.preview is not None:
        render_preview(console, result.preview)
        render_conflicts(console, result.preview.conflict_analysis)
    render_enrichment(console, result, summarize_enrichment(result))
