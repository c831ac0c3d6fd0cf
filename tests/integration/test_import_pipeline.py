# ABOUTME: Integration tests for the EPUB import pipeline.
# ABOUTME: Imports real EPUB files into an in-memory catalog and checks duplicates, errors, and enrichment hooks.

from dataclasses import replace
from pathlib import Path

from ebooklib import epub

from bookmeld.core.duplicates import EXACT_ASSET, SAME_ISBN
from bookmeld.core.importer import import_books
from bookmeld.db.catalog import LibraryCatalog
from bookmeld.metadata.extracted import ExtractedMetadata


def _write_isbn_only_book(filepath: Path, title: str, isbn: str) -> Path:
    book = epub.EpubBook()
    book.set_identifier(f"urn:isbn:{isbn}")
    book.set_title(title)
    book.set_language("en")
    chapter = epub.EpubHtml(title="One", file_name="one.xhtml", lang="en")
    chapter.content = b"<html><body><p>Another printing.</p></body></html>"
    book.add_item(chapter)
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]
    epub.write_epub(str(filepath), book)
    return filepath


class TestImportBooks:
    """Tests for import_books."""

    def test_import_new_books(
        self, catalog: LibraryCatalog, sample_epub: Path, series_epub: Path
    ) -> None:
        """New files are cataloged with their work, edition, and series."""
        result = import_books([sample_epub, series_epub], catalog)
        assert result.added == 2
        assert result.skipped == 0
        assert result.errors == 0

        entries = {e.title: e for e in catalog.list_entries()}
        assert entries["1984"].authors == ("George Orwell",)
        assert entries["1984"].publisher == "Signet Classics"
        assert "9780451524935" in entries["1984"].isbn
        assert entries["Foundation"].series is not None
        assert entries["Foundation"].series.volume == 1.0

    def test_reimport_is_skipped(self, catalog: LibraryCatalog, sample_epub: Path) -> None:
        """Importing the same file again is an exact-asset duplicate."""
        import_books([sample_epub], catalog)
        result = import_books([sample_epub], catalog)
        assert result.added == 0
        assert result.skipped == 1
        path, duplicate = result.duplicates[0]
        assert path == sample_epub
        assert duplicate.type == EXACT_ASSET
        assert catalog.count_works() == 1

    def test_same_isbn_different_file(
        self, catalog: LibraryCatalog, sample_epub: Path, tmp_path: Path
    ) -> None:
        """A different file carrying a cataloged ISBN is skipped as the same edition."""
        import_books([sample_epub], catalog)
        other = _write_isbn_only_book(tmp_path / "other_1984.epub", "1984", "9780451524935")
        result = import_books([other], catalog)
        assert result.skipped == 1
        assert result.duplicates[0][1].type == SAME_ISBN

    def test_errors_are_collected(
        self, catalog: LibraryCatalog, sample_epub: Path, corrupt_epub: Path, tmp_path: Path
    ) -> None:
        """Unreadable and missing files are errors; good files still import."""
        missing = tmp_path / "missing.epub"
        result = import_books([corrupt_epub, missing, sample_epub], catalog)
        assert result.added == 1
        assert result.errors == 2
        assert [path for path, _ in result.error_details] == [corrupt_epub, missing]

    def test_enrich_fn_output_is_cataloged(
        self, catalog: LibraryCatalog, minimal_epub: Path
    ) -> None:
        """The enrichment callback's metadata replaces the extracted metadata."""
        seen: list[Path] = []

        def enrich(metadata: ExtractedMetadata, path: Path) -> ExtractedMetadata:
            seen.append(path)
            return replace(metadata, title="A Better Title", properties={"publisher": "Enriched"})

        result = import_books([minimal_epub], catalog, enrich_fn=enrich)
        assert result.added == 1
        assert seen == [minimal_epub]
        entry = catalog.list_entries()[0]
        assert entry.title == "A Better Title"
        assert entry.publisher == "Enriched"

    def test_enrich_fn_returning_none_keeps_original(
        self, catalog: LibraryCatalog, minimal_epub: Path
    ) -> None:
        """A callback that returns None leaves the extracted metadata in place."""
        import_books([minimal_epub], catalog, enrich_fn=lambda metadata, path: None)
        assert catalog.list_entries()[0].title == "Untitled Book"
