# ABOUTME: Import pipeline for cataloging EPUBs into the bookmeld library database.
# ABOUTME: Checks each file for duplicates, optionally enriches it, then records work, edition, and asset.

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from bookmeld.core.duplicates import DuplicateCheckResult, DuplicateDetector
from bookmeld.db.catalog import DuplicateAssetError, LibraryCatalog
from bookmeld.db.hashing import compute_checksum
from bookmeld.formats.epub import EpubReadError, read_epub_metadata
from bookmeld.metadata.extracted import ExtractedMetadata

logger = logging.getLogger(__name__)

_EPUB_MEDIA_TYPE = "application/epub+zip"


@dataclass
class ImportResult:
    """Summary of an import operation."""

    added: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: list[tuple[Path, str]] = field(default_factory=list)
    duplicates: list[tuple[Path, DuplicateCheckResult]] = field(default_factory=list)


# Takes (extracted_metadata, epub_path) and returns the metadata to catalog, or None to keep the original.
EnrichFn = Callable[[ExtractedMetadata, Path], ExtractedMetadata | None]


def _catalog_file(
    catalog: LibraryCatalog,
    metadata: ExtractedMetadata,
    epub_path: Path,
    checksum: str,
) -> None:
    title = metadata.title or epub_path.stem
    work_id = catalog.add_work(title, metadata.authors)
    series = metadata.series[0] if metadata.series else None
    edition_id = catalog.add_edition(
        work_id,
        title=title,
        isbns=metadata.isbns,
        asin=metadata.asins[0] if metadata.asins else None,
        language=metadata.language,
        format="epub",
        publisher=metadata.properties.get("publisher"),
        publication_date=metadata.date_published,
        series=series.name if series else None,
        series_index=series.position if series else None,
        page_count=metadata.number_of_pages,
    )
    catalog.add_asset(
        edition_id,
        checksum,
        epub_path.name,
        media_type=_EPUB_MEDIA_TYPE,
        size=epub_path.stat().st_size,
    )


def import_books(
    paths: list[Path],
    catalog: LibraryCatalog,
    *,
    enrich_fn: EnrichFn | None = None,
) -> ImportResult:
    """Import EPUB files into the library catalog.

    For each file: computes its checksum, extracts metadata, and runs
    duplicate detection against the catalog. Files with any duplicate are
    skipped and reported in ImportResult.duplicates. Unreadable files are
    recorded as errors.

    When enrich_fn is provided, it is called with (extracted_metadata,
    epub_path) for files that are not duplicates, and whatever it returns is
    cataloged in place of the extracted metadata.

    Args:
        paths: List of EPUB file paths to import.
        catalog: The library catalog to add books to.
        enrich_fn: Optional callback that fills in metadata before cataloging.

    Returns:
        ImportResult with counts of added, skipped, and errored files.
    """
    result = ImportResult()
    detector = DuplicateDetector(catalog)

    for epub_path in paths:
        try:
            checksum = compute_checksum(epub_path)
        except OSError as exc:
            result.errors += 1
            result.error_details.append((epub_path, str(exc)))
            continue

        try:
            metadata = read_epub_metadata(epub_path)
        except EpubReadError as exc:
            result.errors += 1
            result.error_details.append((epub_path, str(exc)))
            continue

        duplicate = detector.detect_duplicates(checksum, metadata)
        if duplicate.has_duplicate:
            logger.info("Skipping %s: %s", epub_path.name, duplicate.description)
            result.skipped += 1
            result.duplicates.append((epub_path, duplicate))
            continue

        if enrich_fn is not None:
            enriched = enrich_fn(metadata, epub_path)
            if enriched is not None:
                metadata = enriched

        try:
            _catalog_file(catalog, metadata, epub_path, checksum)
            result.added += 1
        except DuplicateAssetError:
            # Another process cataloged the same file since detection ran
            result.skipped += 1

    return result
