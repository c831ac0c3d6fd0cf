# ABOUTME: Integration tests for enrichment from EPUB file to catalog entry.
# ABOUTME: Reads a real EPUB, enriches it through Open Library over a routed transport, merges, and imports.

from pathlib import Path

from bookmeld.core.enrich import enrich_metadata, merge_enriched_metadata, summarize_enrichment
from bookmeld.core.importer import import_books
from bookmeld.db.catalog import LibraryCatalog
from bookmeld.formats.epub import read_epub_metadata
from bookmeld.metadata.coordinator import CoordinatorConfig, QueryCoordinator, RetryPolicy
from bookmeld.metadata.extracted import ExtractedMetadata
from bookmeld.metadata.http import BookmeldHttpClient
from bookmeld.metadata.openlibrary import OpenLibraryProvider
from bookmeld.metadata.types import IsbnQuery
from tests.fixtures.openlibrary_responses import (
    AUTHOR_ORWELL,
    EDITION_1984,
    SEARCH_1984,
    WORK_STR_DESCRIPTION,
)
from tests.fixtures.providers import FailingProvider
from tests.fixtures.transport import RoutingTransport

NO_RETRY = CoordinatorConfig(retry=RetryPolicy(max_retries=0, base_delay=0.0))
DESCRIPTION = "A dystopian novel about totalitarian surveillance."


def _coordinator(*extra) -> QueryCoordinator:
    transport = RoutingTransport(
        {
            "/isbn/9780451524935.json": EDITION_1984,
            "/authors/OL200A.json": AUTHOR_ORWELL,
            "/works/OL100W.json": WORK_STR_DESCRIPTION,
            "/search.json": SEARCH_1984,
        }
    )
    client = BookmeldHttpClient(min_request_interval=0.0, retry_delay=0.0, transport=transport)
    return QueryCoordinator([OpenLibraryProvider(client), *extra], NO_RETRY)


class TestEnrichmentPipeline:
    """Tests for enrichment of metadata read from real files."""

    def test_epub_enriched_by_isbn(self, sample_epub: Path) -> None:
        """Gaps in the file are filled from the ISBN lookup alone."""
        extracted = read_epub_metadata(sample_epub)
        result = enrich_metadata(extracted, _coordinator())

        assert result.queries_attempted == (IsbnQuery(isbn="9780451524935"),)
        assert result.enriched["synopsis"] == DESCRIPTION
        assert result.enriched["date_published"] == "1961"
        assert result.enriched["number_of_pages"] == 328
        assert "title" not in result.enriched
        assert result.sources == ["openlibrary"]

        merged = merge_enriched_metadata(extracted, result)
        assert merged.synopsis == DESCRIPTION
        assert merged.title == "1984"
        assert merged.authors == ["George Orwell"]
        assert extracted.synopsis is None

    def test_title_search_without_isbn(self, series_epub: Path) -> None:
        """Files without an ISBN fall back to the search endpoint."""
        extracted = read_epub_metadata(series_epub)
        result = enrich_metadata(extracted, _coordinator())
        assert result.queries_attempted
        assert all(not isinstance(q, IsbnQuery) for q in result.queries_attempted)

    def test_failing_provider_does_not_block(self, sample_epub: Path) -> None:
        """One provider failing still lets the other enrich the book."""
        extracted = read_epub_metadata(sample_epub)
        result = enrich_metadata(extracted, _coordinator(FailingProvider("broken")))
        assert result.enriched["synopsis"] == DESCRIPTION

        summary = summarize_enrichment(result)
        assert summary.total_providers == 2
        assert summary.successful == 1
        assert summary.failed == 1
        assert any(e.startswith("broken:") for e in summary.errors)

    def test_import_with_enrichment(self, catalog: LibraryCatalog, sample_epub: Path) -> None:
        """Enrichment wired into the importer lands in the catalog."""
        coordinator = _coordinator()

        def enrich(metadata: ExtractedMetadata, path: Path) -> ExtractedMetadata:
            return merge_enriched_metadata(metadata, enrich_metadata(metadata, coordinator))

        result = import_books([sample_epub], catalog, enrich_fn=enrich)
        assert result.added == 1
        entry = catalog.list_entries()[0]
        assert entry.title == "1984"
        assert entry.publication_date == "1961"
