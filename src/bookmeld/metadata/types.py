# ABOUTME: Core metadata data structures shared by providers, the coordinator, and reconcilers.
# ABOUTME: MetadataRecord is one provider's answer; query types describe what to ask providers.

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from bookmeld.metadata.config import check_unit_interval

# Metadata field types a provider can report reliability for.
TITLE = "title"
AUTHORS = "authors"
ISBN = "isbn"
PUBLICATION_DATE = "publication_date"
SUBJECTS = "subjects"
DESCRIPTION = "description"
LANGUAGE = "language"
PUBLISHER = "publisher"
SERIES = "series"
EDITION = "edition"
PAGE_COUNT = "page_count"
PHYSICAL_DIMENSIONS = "physical_dimensions"
COVER_IMAGE = "cover_image"
IDENTIFIERS = "identifiers"

METADATA_TYPES: tuple[str, ...] = (
    TITLE,
    AUTHORS,
    ISBN,
    PUBLICATION_DATE,
    SUBJECTS,
    DESCRIPTION,
    LANGUAGE,
    PUBLISHER,
    SERIES,
    EDITION,
    PAGE_COUNT,
    PHYSICAL_DIMENSIONS,
    COVER_IMAGE,
)

# Fields that identify a book; weighted double in overall confidence.
CORE_FIELDS: frozenset[str] = frozenset({TITLE, AUTHORS, ISBN, PUBLICATION_DATE})

_YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")


def extract_year(date_value: str | int | None) -> int | None:
    """Pull a four-digit year out of a date string like '1949-06-08' or 'June 1949'."""
    if date_value is None:
        return None
    if isinstance(date_value, int):
        return date_value
    match = _YEAR_RE.search(str(date_value))
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class Identifier:
    """A typed external identifier (isbn, asin, oclc, openlibrary, wikidata...)."""

    type: str
    value: str


@dataclass(frozen=True)
class SeriesInfo:
    """Series membership reported by a provider."""

    name: str
    volume: float | None = None


@dataclass(frozen=True)
class CoverImage:
    """Cover image location and optional pixel dimensions."""

    url: str
    width: int | None = None
    height: int | None = None


def _as_tuple(value: Iterable[Any] | None) -> tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class MetadataRecord:
    """One candidate answer from one metadata provider.

    Records are immutable once a provider returns them. List-valued fields
    accept any iterable and are stored as tuples; merging or rewriting a
    record always goes through dataclasses.replace.
    """

    id: str
    source: str
    confidence: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    title: str | None = None
    authors: tuple[str, ...] = ()
    isbn: tuple[str, ...] = ()
    publication_date: str | None = None
    subjects: tuple[str, ...] = ()
    description: str | None = None
    language: str | None = None
    publisher: str | None = None
    series: SeriesInfo | None = None
    edition: str | None = None
    page_count: int | None = None
    physical_dimensions: str | None = None
    identifiers: tuple[Identifier, ...] = ()
    cover_image: CoverImage | None = None
    provider_data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        check_unit_interval("confidence", self.confidence)
        for name in ("authors", "isbn", "subjects", "identifiers"):
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))

    @property
    def year(self) -> int | None:
        """Publication year, if a date is present and contains one."""
        return extract_year(self.publication_date)

    def get_field(self, name: str) -> Any:
        """Return a field value, mapping empty tuples and blank strings to None."""
        value = getattr(self, name, None)
        if value is None:
            return None
        if isinstance(value, tuple) and not value:
            return None
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def populated_fields(self) -> list[str]:
        """Names of metadata fields that carry a value."""
        names = (*METADATA_TYPES, IDENTIFIERS)
        return [name for name in names if self.get_field(name) is not None]


@dataclass(frozen=True)
class MetadataSource:
    """A provider identity plus the reliability used to weight it in one aggregation."""

    name: str
    reliability: float
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        check_unit_interval("reliability", self.reliability)

    @classmethod
    def from_record(cls, record: MetadataRecord) -> "MetadataSource":
        """Derive the source from a record: its provider name and instance confidence."""
        return cls(name=record.source, reliability=record.confidence, timestamp=record.timestamp)


# --- Queries ---


@dataclass(frozen=True)
class MultiCriteriaQuery:
    """A combined query; the only shape the strategy builder relaxes."""

    title: str | None = None
    authors: tuple[str, ...] = ()
    isbn: str | None = None
    language: str | None = None
    subjects: tuple[str, ...] = ()
    publisher: str | None = None
    year_range: tuple[int, int] | None = None
    fuzzy: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "authors", _as_tuple(self.authors))
        object.__setattr__(self, "subjects", _as_tuple(self.subjects))
        if self.year_range is not None:
            start, end = self.year_range
            if start > end:
                raise ValueError(f"year_range start {start} is after end {end}")
            object.__setattr__(self, "year_range", (int(start), int(end)))

    def normalized(self) -> "MultiCriteriaQuery":
        """Copy with list fields sorted, so queries compare structurally."""
        return MultiCriteriaQuery(
            title=self.title,
            authors=tuple(sorted(self.authors)),
            isbn=self.isbn,
            language=self.language,
            subjects=tuple(sorted(self.subjects)),
            publisher=self.publisher,
            year_range=self.year_range,
            fuzzy=self.fuzzy,
        )

    def as_multi_criteria(self) -> "MultiCriteriaQuery":
        return self

    @property
    def has_constraints_besides_title(self) -> bool:
        return bool(
            self.authors
            or self.isbn
            or self.language
            or self.subjects
            or self.publisher
            or self.year_range
        )


@dataclass(frozen=True)
class TitleQuery:
    """Search by title."""

    title: str
    fuzzy: bool = False
    exact_match: bool = False

    def as_multi_criteria(self) -> MultiCriteriaQuery:
        return MultiCriteriaQuery(title=self.title, fuzzy=self.fuzzy)


@dataclass(frozen=True)
class IsbnQuery:
    """Search by ISBN-10 or ISBN-13."""

    isbn: str

    def as_multi_criteria(self) -> MultiCriteriaQuery:
        return MultiCriteriaQuery(isbn=self.isbn)


@dataclass(frozen=True)
class CreatorQuery:
    """Search by creator name, optionally restricted to a role such as 'aut'."""

    name: str
    role: str | None = None
    fuzzy: bool = False

    def as_multi_criteria(self) -> MultiCriteriaQuery:
        return MultiCriteriaQuery(authors=(self.name,), fuzzy=self.fuzzy)


Query = TitleQuery | IsbnQuery | CreatorQuery | MultiCriteriaQuery
