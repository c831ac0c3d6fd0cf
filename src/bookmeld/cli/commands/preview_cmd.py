# ABOUTME: The `bookmeld preview` command for looking up a book across providers.
# ABOUTME: Shows the reconciled fields, conflicts between sources, and optional library matches.

from pathlib import Path

import click
from rich.console import Console

from bookmeld.cli import options
from bookmeld.cli.render import render_conflicts, render_preview
from bookmeld.db.catalog import LibraryCatalog
from bookmeld.db.connection import DEFAULT_DB_PATH, open_library
from bookmeld.metadata.types import IsbnQuery, MultiCriteriaQuery
from bookmeld.reconcile.preview import LibraryPreview, PreviewBuilder


def _render_library(console: Console, preview: LibraryPreview) -> None:
    if preview.duplicates:
        console.print("\n[bold]Possible matches in your library:[/bold]")
        for match in preview.duplicates:
            console.print(
                f"  {match.entry.title} ({match.match_type}, {match.similarity:.0%}) "
                f"-> {match.recommended_action}"
            )
    if preview.series_relationship is not None:
        series = preview.series_relationship
        position = f" #{series.position:g}" if series.position is not None else ""
        console.print(f"\nSeries: {series.series.name}{position}")
        if series.missing_volumes:
            missing = ", ".join(str(v) for v in series.missing_volumes)
            console.print(f"  [dim]Missing volumes: {missing}[/dim]")
    for recommendation in preview.recommendations:
        console.print(f"{recommendation.priority.upper()}: {recommendation.message}")


@click.command("preview")
@click.option("--isbn", default=None, help="Look up by ISBN-10 or ISBN-13.")
@click.option("--title", default=None, help="Look up by title.")
@click.option("--author", "authors", multiple=True, help="Author name (repeatable).")
@click.option(
    "--check-library/--no-check-library",
    default=False,
    help="Compare the result against books already in the library.",
)
@options.db_option
@options.timeout_option
@options.min_confidence_option
def preview(
    isbn: str | None,
    title: str | None,
    authors: tuple[str, ...],
    check_library: bool,
    db_path: Path | None,
    timeout: float,
    min_confidence: float,
) -> None:
    """Query every provider for a book and show the reconciled metadata."""
    console = Console()
    if not isbn and not title:
        raise click.UsageError("Give --isbn or --title.")

    coordinator = options.create_coordinator(timeout)
    if isbn:
        records = coordinator.query(IsbnQuery(isbn=isbn), timeout=timeout).all_records
    else:
        search = coordinator.query_with_fallbacks(
            MultiCriteriaQuery(title=title, authors=authors),
            min_confidence=min_confidence,
            timeout=timeout,
        )
        records = search.result.all_records
        if search.query_used != search.attempted_queries[0]:
            console.print(f"[dim]Used relaxed query: {search.query_used}[/dim]")

    if not records:
        console.print("[yellow]No provider returned metadata.[/yellow]")
        raise SystemExit(1)

    builder = PreviewBuilder(registry=coordinator.registry)
    if check_library:
        conn = open_library(db_path or DEFAULT_DB_PATH)
        try:
            entries = LibraryCatalog(conn).list_entries()
        finally:
            conn.close()
        result = builder.library_preview(records, entries)
    else:
        result = builder.enhanced_preview(records)

    render_preview(console, result)
    render_conflicts(console, result.conflict_analysis)
    if isinstance(result, LibraryPreview):
        _render_library(console, result)
