# ABOUTME: Duplicate detection for incoming ebook files against the library catalog.
# ABOUTME: Runs a fixed five-stage chain from exact file match down to fuzzy title match.

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from bookmeld.metadata.extracted import ExtractedMetadata
from bookmeld.metadata.similarity import DUPLICATE_TITLE_THRESHOLD, clean_isbn

logger = logging.getLogger(__name__)

EXACT_ASSET = "exact-asset"
SAME_ISBN = "same-isbn"
SAME_ASIN = "same-asin"
DIFFERENT_FORMAT = "different-format"
SIMILAR_TITLE = "similar-title"
DUPLICATE_TYPES = (EXACT_ASSET, SAME_ISBN, SAME_ASIN, DIFFERENT_FORMAT, SIMILAR_TITLE)

_TITLE_AUTHOR_CONFIDENCE = 0.95


class UnavailableCapabilityError(Exception):
    """Raised by a lookup backend that cannot perform fuzzy title matching."""


@dataclass(frozen=True)
class ExistingWork:
    id: int
    title: str


@dataclass(frozen=True)
class ExistingEdition:
    id: int
    work_id: int
    title: str
    isbn_10: str | None = None
    isbn_13: str | None = None
    asin: str | None = None
    language: str | None = None
    format: str | None = None


@dataclass(frozen=True)
class ExistingAsset:
    id: int
    edition_id: int
    checksum: str
    filename: str
    media_type: str = "application/epub+zip"
    size: int = 0


@dataclass(frozen=True)
class SimilarEdition:
    """An edition whose work title resembles the query, with its similarity."""

    edition: ExistingEdition
    similarity: float


@runtime_checkable
class LibraryLookups(Protocol):
    """Read-only catalog queries the detector depends on.

    find_similar_works may raise UnavailableCapabilityError when the backend
    has no fuzzy matching; every other lookup is expected to work.
    """

    def find_asset_by_checksum(self, checksum: str) -> ExistingAsset | None: ...

    def find_edition_by_isbn(self, isbn: str) -> ExistingEdition | None: ...

    def find_edition_by_asin(self, asin: str) -> ExistingEdition | None: ...

    def find_works_by_title(
        self, title: str, creator_name: str | None = None, limit: int = 1
    ) -> list[ExistingEdition]: ...

    def find_similar_works(
        self, title: str, min_similarity: float, creator_name: str | None = None
    ) -> list[SimilarEdition]: ...

    def get_edition(self, edition_id: int) -> ExistingEdition | None: ...

    def get_work(self, work_id: int) -> ExistingWork | None: ...


@dataclass(frozen=True)
class DuplicateCheckResult:
    """Outcome of duplicate detection for one file."""

    has_duplicate: bool
    confidence: float = 0.0
    type: str | None = None
    existing_asset: ExistingAsset | None = None
    existing_edition: ExistingEdition | None = None
    existing_work: ExistingWork | None = None
    description: str = "No duplicate found"


NO_DUPLICATE = DuplicateCheckResult(has_duplicate=False)


def _same_title(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return False
    return " ".join(a.lower().split()) == " ".join(b.lower().split())


def is_possible_format_variant(existing: ExistingEdition, metadata: ExtractedMetadata) -> bool:
    """True when both sides carry ISBNs and none of them match.

    Different ISBNs on a title that otherwise matches usually mean another
    binding of the same work.
    """
    existing_isbns = {clean_isbn(i) for i in (existing.isbn_10, existing.isbn_13) if i}
    incoming = {clean_isbn(i) for i in metadata.isbns}
    if not existing_isbns or not incoming:
        return False
    return not (existing_isbns & incoming)


class DuplicateDetector:
    """Checks an incoming file against the catalog, strongest evidence first.

    Stages run in a fixed order and the first hit wins: exact file checksum,
    ISBN, ASIN, exact title with primary author, then fuzzy title. The fuzzy
    stage degrades to no match when the backend cannot do it.
    """

    def __init__(
        self,
        lookups: LibraryLookups,
        *,
        similarity_threshold: float = DUPLICATE_TITLE_THRESHOLD,
    ) -> None:
        self._lookups = lookups
        self._similarity_threshold = similarity_threshold

    def detect_duplicates(self, checksum: str, metadata: ExtractedMetadata) -> DuplicateCheckResult:
        """Run the detection chain for a file's checksum and extracted metadata."""
        for stage in (
            lambda: self._check_exact_asset(checksum),
            lambda: self._check_isbn(metadata),
            lambda: self._check_asin(metadata),
            lambda: self._check_exact_title(metadata),
            lambda: self._check_similar_title(metadata),
        ):
            result = stage()
            if result.has_duplicate:
                logger.debug("Duplicate found: %s (%.2f)", result.type, result.confidence)
                return result
        return NO_DUPLICATE

    def _work_for(self, edition: ExistingEdition | None) -> ExistingWork | None:
        return self._lookups.get_work(edition.work_id) if edition else None

    def _check_exact_asset(self, checksum: str) -> DuplicateCheckResult:
        asset = self._lookups.find_asset_by_checksum(checksum)
        if asset is None:
            return NO_DUPLICATE
        edition = self._lookups.get_edition(asset.edition_id)
        return DuplicateCheckResult(
            has_duplicate=True,
            confidence=1.0,
            type=EXACT_ASSET,
            existing_asset=asset,
            existing_edition=edition,
            existing_work=self._work_for(edition),
            description="This exact file already exists in the library",
        )

    def _check_isbn(self, metadata: ExtractedMetadata) -> DuplicateCheckResult:
        for isbn in metadata.isbns:
            edition = self._lookups.find_edition_by_isbn(isbn)
            if edition is None:
                continue
            same_title = _same_title(edition.title, metadata.title)
            return DuplicateCheckResult(
                has_duplicate=True,
                confidence=1.0,
                type=SAME_ISBN if same_title else DIFFERENT_FORMAT,
                existing_edition=edition,
                existing_work=self._work_for(edition),
                description=(
                    f"An edition with ISBN {isbn} already exists"
                    if same_title
                    else f"Found a different edition (ISBN: {isbn}) of this work"
                ),
            )
        return NO_DUPLICATE

    def _check_asin(self, metadata: ExtractedMetadata) -> DuplicateCheckResult:
        for asin in metadata.asins:
            edition = self._lookups.find_edition_by_asin(asin)
            if edition is None:
                continue
            return DuplicateCheckResult(
                has_duplicate=True,
                confidence=1.0,
                type=SAME_ASIN,
                existing_edition=edition,
                existing_work=self._work_for(edition),
                description=f"An edition with ASIN {asin} already exists",
            )
        return NO_DUPLICATE

    def _check_exact_title(self, metadata: ExtractedMetadata) -> DuplicateCheckResult:
        if not metadata.title:
            return NO_DUPLICATE
        matches = self._lookups.find_works_by_title(
            metadata.title, creator_name=metadata.primary_author, limit=1
        )
        if not matches:
            return NO_DUPLICATE
        edition = matches[0]
        return DuplicateCheckResult(
            has_duplicate=True,
            confidence=_TITLE_AUTHOR_CONFIDENCE,
            type=DIFFERENT_FORMAT,
            existing_edition=edition,
            existing_work=self._work_for(edition),
            description=f'Found existing work "{edition.title}" by the same author',
        )

    def _check_similar_title(self, metadata: ExtractedMetadata) -> DuplicateCheckResult:
        if not metadata.title:
            return NO_DUPLICATE
        try:
            matches = self._lookups.find_similar_works(
                metadata.title,
                self._similarity_threshold,
                creator_name=metadata.primary_author,
            )
        except UnavailableCapabilityError as exc:
            logger.warning("Fuzzy title matching unavailable: %s", exc)
            return NO_DUPLICATE

        if not matches or matches[0].similarity < self._similarity_threshold:
            return NO_DUPLICATE
        best = matches[0]
        return DuplicateCheckResult(
            has_duplicate=True,
            confidence=best.similarity,
            type=SIMILAR_TITLE,
            existing_edition=best.edition,
            existing_work=self._work_for(best.edition),
            description=(
                f'Found similar work "{best.edition.title}" ({round(best.similarity * 100)}% match)'
            ),
        )
