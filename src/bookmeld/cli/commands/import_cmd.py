# ABOUTME: The `bookmeld import` command for scanning and cataloging EPUBs.
# ABOUTME: Skips files already in the library and can enrich the rest before storing them.

from pathlib import Path

import click
from rich.console import Console

from bookmeld.cli import options
from bookmeld.core.enrich import EnrichmentOptions, enrich_metadata, merge_enriched_metadata
from bookmeld.core.importer import EnrichFn, import_books
from bookmeld.db.catalog import LibraryCatalog
from bookmeld.db.connection import DEFAULT_DB_PATH, open_library
from bookmeld.metadata.extracted import ExtractedMetadata


def _find_epubs(path: Path) -> list[Path]:
    """Find EPUB files at the given path (single file or directory)."""
    if path.is_file():
        return [path]
    return sorted(path.rglob("*.epub"))


def _build_enrich_fn(console: Console, timeout: float, min_confidence: float) -> EnrichFn:
    coordinator = options.create_coordinator(timeout)
    enrich_options = EnrichmentOptions(timeout=timeout, min_confidence=min_confidence)

    def enrich_fn(extracted: ExtractedMetadata, epub_path: Path) -> ExtractedMetadata | None:
        result = enrich_metadata(extracted, coordinator, enrich_options)
        if not result.enriched:
            return None
        console.print(
            f"  [dim]{epub_path.name}: enriched {', '.join(sorted(result.enriched))}[/dim]"
        )
        return merge_enriched_metadata(extracted, result)

    return enrich_fn


@click.command("import")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@options.db_option
@click.option(
    "--enrich/--no-enrich",
    "do_enrich",
    default=False,
    help="Fill in missing metadata from online providers before cataloging.",
)
@options.timeout_option
@options.min_confidence_option
def import_command(
    path: Path,
    db_path: Path | None,
    do_enrich: bool,
    timeout: float,
    min_confidence: float,
) -> None:
    """Catalog EPUB files in the library, skipping ones it already holds."""
    console = Console()
    epub_files = _find_epubs(path)

    if not epub_files:
        console.print(f"[yellow]No EPUB files found in {path}[/yellow]")
        return

    console.print(f"Found [bold]{len(epub_files)}[/bold] EPUB file(s)\n")

    enrich_fn = _build_enrich_fn(console, timeout, min_confidence) if do_enrich else None
    conn = open_library(db_path or DEFAULT_DB_PATH)
    try:
        result = import_books(epub_files, LibraryCatalog(conn), enrich_fn=enrich_fn)
    finally:
        conn.close()

    parts = [f"[green]{result.added} added[/green]"]
    if result.skipped:
        parts.append(f"[yellow]{result.skipped} skipped[/yellow]")
    if result.errors:
        parts.append(f"[red]{result.errors} error(s)[/red]")
    console.print(", ".join(parts))

    if result.duplicates:
        console.print("\n[yellow]Already in the library:[/yellow]")
        for epub_path, duplicate in result.duplicates:
            console.print(f"  [dim]{epub_path.name}:[/dim] {duplicate.description}")

    if result.error_details:
        console.print(f"\n[yellow]{result.errors} file(s) could not be read:[/yellow]")
        for epub_path, msg in result.error_details:
            console.print(f"  [dim]{epub_path.name}:[/dim] {msg}")
