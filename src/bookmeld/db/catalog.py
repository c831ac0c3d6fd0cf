# ABOUTME: Library catalog over SQLite: works, their editions, and the files that hold them.
# ABOUTME: Implements the lookups duplicate detection needs, with fuzzy title matching done in Python.

import json
import sqlite3
from collections.abc import Sequence
from typing import Any

from bookmeld.core.duplicates import (
    ExistingAsset,
    ExistingEdition,
    ExistingWork,
    SimilarEdition,
)
from bookmeld.metadata.names import names_match
from bookmeld.metadata.similarity import (
    canonical_isbn,
    clean_isbn,
    normalize_title,
    title_similarity,
)
from bookmeld.metadata.types import SeriesInfo
from bookmeld.reconcile.preview import LibraryEntry


class DuplicateAssetError(Exception):
    """Raised when adding an asset whose checksum is already cataloged."""


def _split_isbns(isbns: Sequence[str]) -> tuple[str | None, str | None]:
    """Pick one ISBN-10 and one ISBN-13 from a list, deriving the 13 from the 10."""
    isbn_10 = next((clean_isbn(i) for i in isbns if len(clean_isbn(i)) == 10), None)
    isbn_13 = next((clean_isbn(i) for i in isbns if len(clean_isbn(i)) == 13), None)
    if isbn_13 is None and isbn_10 is not None:
        isbn_13 = canonical_isbn(isbn_10)
    return isbn_10, isbn_13


def _row_to_edition(row: Any) -> ExistingEdition:
    return ExistingEdition(
        id=row["id"],
        work_id=row["work_id"],
        title=row["title"],
        isbn_10=row["isbn_10"],
        isbn_13=row["isbn_13"],
        asin=row["asin"],
        language=row["language"],
        format=row["format"],
    )


class LibraryCatalog:
    """Wraps a sqlite3 connection and provides typed access to works, editions, and assets."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # --- writes ---

    def add_work(self, title: str, authors: Sequence[str] = ()) -> int:
        """Add a work and return its row ID."""
        cursor = self._conn.execute(
            "INSERT INTO works (title, normalized_title, authors, primary_author) VALUES (?, ?, ?, ?)",
            (title, normalize_title(title), json.dumps(list(authors)), authors[0] if authors else None),
        )
        self._conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    def add_edition(
        self,
        work_id: int,
        *,
        title: str,
        isbns: Sequence[str] = (),
        asin: str | None = None,
        language: str | None = None,
        format: str | None = None,
        publisher: str | None = None,
        publication_date: str | None = None,
        series: str | None = None,
        series_index: float | None = None,
        page_count: int | None = None,
    ) -> int:
        """Add an edition of an existing work and return its row ID.

        Raises:
            ValueError: If work_id does not exist.
        """
        isbn_10, isbn_13 = _split_isbns(isbns)
        try:
            cursor = self._conn.execute(
                "INSERT INTO editions (work_id, title, isbn_10, isbn_13, asin, language, format, "
                "publisher, publication_date, series, series_index, page_count) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    work_id,
                    title,
                    isbn_10,
                    isbn_13,
                    asin,
                    language,
                    format,
                    publisher,
                    publication_date,
                    series,
                    series_index,
                    page_count,
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"Work with id {work_id} not found") from exc
        return cursor.lastrowid  # type: ignore[return-value]

    def add_asset(
        self,
        edition_id: int,
        checksum: str,
        filename: str,
        *,
        media_type: str = "application/epub+zip",
        size: int = 0,
    ) -> int:
        """Record a file for an edition and return its row ID.

        Raises:
            DuplicateAssetError: If an asset with this checksum already exists.
        """
        try:
            cursor = self._conn.execute(
                "INSERT INTO assets (edition_id, checksum, filename, media_type, size) "
                "VALUES (?, ?, ?, ?, ?)",
                (edition_id, checksum, filename, media_type, size),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            if "assets.checksum" in str(exc):
                raise DuplicateAssetError(f"Asset with checksum {checksum} already exists") from exc
            raise
        return cursor.lastrowid  # type: ignore[return-value]

    # --- lookups ---

    def get_work(self, work_id: int) -> ExistingWork | None:
        row = self._conn.execute("SELECT id, title FROM works WHERE id = ?", (work_id,)).fetchone()
        return ExistingWork(id=row["id"], title=row["title"]) if row else None

    def get_edition(self, edition_id: int) -> ExistingEdition | None:
        row = self._conn.execute("SELECT * FROM editions WHERE id = ?", (edition_id,)).fetchone()
        return _row_to_edition(row) if row else None

    def find_asset_by_checksum(self, checksum: str) -> ExistingAsset | None:
        row = self._conn.execute("SELECT * FROM assets WHERE checksum = ?", (checksum,)).fetchone()
        if row is None:
            return None
        return ExistingAsset(
            id=row["id"],
            edition_id=row["edition_id"],
            checksum=row["checksum"],
            filename=row["filename"],
            media_type=row["media_type"],
            size=row["size"],
        )

    def find_edition_by_isbn(self, isbn: str) -> ExistingEdition | None:
        """Match on either ISBN form; an ISBN-10 also finds its ISBN-13 twin."""
        clean = clean_isbn(isbn)
        row = self._conn.execute(
            "SELECT * FROM editions WHERE isbn_10 = ? OR isbn_13 = ? ORDER BY id LIMIT 1",
            (clean, canonical_isbn(clean)),
        ).fetchone()
        return _row_to_edition(row) if row else None

    def find_edition_by_asin(self, asin: str) -> ExistingEdition | None:
        row = self._conn.execute(
            "SELECT * FROM editions WHERE asin = ? ORDER BY id LIMIT 1", (asin.strip(),)
        ).fetchone()
        return _row_to_edition(row) if row else None

    def _works_with_first_edition(self) -> list[Any]:
        return self._conn.execute(
            "SELECT w.title AS work_title, w.normalized_title, w.authors, e.* "
            "FROM works w JOIN editions e ON e.id = ("
            "  SELECT MIN(id) FROM editions WHERE work_id = w.id"
            ") ORDER BY w.id"
        ).fetchall()

    @staticmethod
    def _by_creator(row: Any, creator_name: str | None) -> bool:
        if creator_name is None:
            return True
        authors = json.loads(row["authors"]) if row["authors"] else []
        return any(names_match(creator_name, author) for author in authors)

    def find_works_by_title(
        self, title: str, creator_name: str | None = None, limit: int = 1
    ) -> list[ExistingEdition]:
        """Works whose normalized title equals this one, as their first edition.

        With creator_name, only works crediting a matching author are returned.
        """
        wanted = normalize_title(title)
        matches = [
            _row_to_edition(row)
            for row in self._works_with_first_edition()
            if row["normalized_title"] == wanted and self._by_creator(row, creator_name)
        ]
        return matches[:limit]

    def find_similar_works(
        self, title: str, min_similarity: float, creator_name: str | None = None
    ) -> list[SimilarEdition]:
        """Works whose title similarity reaches min_similarity, best first."""
        scored = []
        for row in self._works_with_first_edition():
            if not self._by_creator(row, creator_name):
                continue
            similarity = title_similarity(title, row["work_title"])
            if similarity >= min_similarity:
                scored.append(SimilarEdition(edition=_row_to_edition(row), similarity=similarity))
        scored.sort(key=lambda s: (-s.similarity, s.edition.id))
        return scored

    def list_entries(self) -> list[LibraryEntry]:
        """Every work as a LibraryEntry built from its first edition, ordered by title."""
        entries = []
        for row in self._works_with_first_edition():
            series = None
            if row["series"]:
                series = SeriesInfo(name=row["series"], volume=row["series_index"])
            entries.append(
                LibraryEntry(
                    id=str(row["work_id"]),
                    title=row["work_title"],
                    authors=tuple(json.loads(row["authors"]) if row["authors"] else ()),
                    isbn=tuple(i for i in (row["isbn_13"], row["isbn_10"]) if i),
                    publication_date=row["publication_date"],
                    publisher=row["publisher"],
                    series=series,
                )
            )
        entries.sort(key=lambda e: e.title.lower())
        return entries

    def count_works(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM works").fetchone()[0]
