# ABOUTME: Metadata as extracted from an ebook file, before any enrichment.
# ABOUTME: ExtractedMetadata is what the enrichment orchestrator reads and returns a filled-in copy of.

from dataclasses import dataclass, field
from typing import Any

AUTHOR_ROLE = "aut"


@dataclass(frozen=True)
class ExtractedIdentifier:
    """An identifier found in the file, e.g. type 'isbn' or 'asin'."""

    type: str
    value: str


@dataclass(frozen=True)
class Contributor:
    """A person credited in the file, with MARC relator roles such as 'aut'."""

    name: str
    roles: tuple[str, ...] = (AUTHOR_ROLE,)
    sorting_key: str | None = None

    @property
    def is_author(self) -> bool:
        return AUTHOR_ROLE in self.roles


@dataclass(frozen=True)
class ExtractedSeries:
    """Series membership found in the file."""

    name: str
    position: float | None = None


@dataclass
class ExtractedMetadata:
    """Structured metadata for an ebook file, as extraction found it.

    Every field is optional; a badly-formed file may carry nothing but a
    title, or not even that.
    """

    title: str | None = None
    sorting_key: str | None = None
    synopsis: str | None = None
    language: str | None = None
    date_published: str | None = None
    number_of_pages: int | None = None
    legal_information: str | None = None
    identifiers: list[ExtractedIdentifier] = field(default_factory=list)
    contributors: list[Contributor] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)
    series: list[ExtractedSeries] = field(default_factory=list)
    subjects: list[str] = field(default_factory=list)

    def identifier_values(self, id_type: str) -> list[str]:
        """Values of every identifier of the given type (case-insensitive)."""
        wanted = id_type.lower()
        return [i.value for i in self.identifiers if i.type.lower() == wanted]

    @property
    def isbns(self) -> list[str]:
        return self.identifier_values("isbn")

    @property
    def asins(self) -> list[str]:
        return self.identifier_values("asin")

    @property
    def authors(self) -> list[str]:
        """Names of contributors credited with the author role."""
        return [c.name for c in self.contributors if c.is_author]

    @property
    def primary_author(self) -> str | None:
        authors = self.authors
        return authors[0] if authors else None
