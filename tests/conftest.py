# ABOUTME: Shared pytest fixtures for bookmeld tests.
# ABOUTME: Provides sample EPUB files (valid, series, minimal, corrupt) and an in-memory catalog.

from collections.abc import Iterator
from pathlib import Path

import pytest
from ebooklib import epub

from bookmeld.db.catalog import LibraryCatalog
from bookmeld.db.connection import open_library


def _write_book(book: epub.EpubBook, filepath: Path, body: bytes = b"<p>Content.</p>") -> Path:
    """Add a single chapter plus navigation and write the book to disk."""
    chapter = epub.EpubHtml(title="Chapter 1", file_name="chap01.xhtml", lang="en")
    chapter.content = b"<html><body><h1>Chapter 1</h1>" + body + b"</body></html>"
    book.add_item(chapter)

    book.toc = [epub.Link("chap01.xhtml", "Chapter 1", "chap01")]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    epub.write_epub(str(filepath), book)
    return filepath


@pytest.fixture
def sample_epub(tmp_path: Path) -> Path:
    """A valid EPUB for Orwell's 1984 with an ISBN, publisher, and subjects."""
    book = epub.EpubBook()
    book.set_identifier("urn:uuid:5b1e6f1c-1984-4c4f-9a53-9b1f2c3d4e5f")
    book.add_metadata("DC", "identifier", "9780451524935", {"id": "isbn"})
    book.set_title("1984")
    book.set_language("en")
    book.add_author("George Orwell")

    book.add_metadata("DC", "publisher", "Signet Classics")
    book.add_metadata("DC", "subject", "Dystopias")

    return _write_book(book, tmp_path / "nineteen_eighty_four.epub")


@pytest.fixture
def series_epub(tmp_path: Path) -> Path:
    """An EPUB carrying Calibre series metadata and no description."""
    book = epub.EpubBook()
    book.set_identifier("foundation-id")
    book.set_title("Foundation")
    book.set_language("en")
    book.add_author("Isaac Asimov")
    book.add_metadata("OPF", "calibre:series", "", {"name": "calibre:series", "content": "Foundation"})
    book.add_metadata(
        "OPF", "calibre:series_index", "", {"name": "calibre:series_index", "content": "1"}
    )

    return _write_book(book, tmp_path / "foundation.epub", body=b"<p>Psychohistory.</p>")


@pytest.fixture
def minimal_epub(tmp_path: Path) -> Path:
    """An EPUB with only a title."""
    book = epub.EpubBook()
    book.set_identifier("minimal-id")
    book.set_title("Untitled Book")
    book.set_language("en")

    return _write_book(book, tmp_path / "minimal.epub", body=b"<p>Minimal content.</p>")


@pytest.fixture
def corrupt_epub(tmp_path: Path) -> Path:
    """A file that is not a valid EPUB."""
    filepath = tmp_path / "corrupt.epub"
    filepath.write_text("this is not a valid epub file")
    return filepath


@pytest.fixture
def catalog() -> Iterator[LibraryCatalog]:
    """An empty in-memory library catalog."""
    conn = open_library(Path(":memory:"))
    yield LibraryCatalog(conn)
    conn.close()
