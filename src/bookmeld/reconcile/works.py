# ABOUTME: Work/edition reconciler that groups concrete editions under the abstract work they publish.
# ABOUTME: Compares editions pairwise, clusters them, and picks the primary work and its canonical edition.

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from bookmeld.metadata.config import check_choice, check_non_negative, check_unit_interval
from bookmeld.metadata.names import author_overlap
from bookmeld.metadata.similarity import (
    TITLE_MATCH_THRESHOLD,
    are_isbn_family,
    normalize_title,
    title_similarity,
)
from bookmeld.metadata.types import Identifier, MetadataRecord, extract_year

logger = logging.getLogger(__name__)

EXTERNAL_ID = "external_id"
ISBN_FAMILY = "isbn_family"
TITLE_AUTHOR_MATCH = "title_author_match"
FUZZY_MATCH = "fuzzy_match"
# Strongest first.
IDENTIFICATION_METHODS = (EXTERNAL_ID, ISBN_FAMILY, TITLE_AUTHOR_MATCH, FUZZY_MATCH)

TRANSLATION = "translation"
UNRELATED = "unrelated"
RELATIONSHIPS = (TRANSLATION, "adaptation", "revision", UNRELATED)

# Identifier types that name a work rather than one edition.
WORK_IDENTIFIER_TYPES = frozenset({"openlibrary_work", "wikidata", "goodreads_work"})

_EXTERNAL_ID_CONFIDENCE = 0.95
_ISBN_FAMILY_CONFIDENCE = 0.90
_TRANSLATION_CONFIDENCE = 0.85
_SAME_LANGUAGE_CONFIDENCE = 0.80
_UNRELATED_CONFIDENCE = 0.30
_RELATED_WORK_CONFIDENCE = 0.7

# Title similarity above which a title+author match counts as exact rather than fuzzy.
_EXACT_TITLE_SIMILARITY = 0.95

_EDITION_WEIGHTS = {
    "title": 0.20,
    "format": 0.10,
    "language": 0.10,
    "publication_date": 0.15,
    "publisher": 0.15,
    "isbn": 0.15,
    "page_count": 0.10,
    "identifiers": 0.05,
}


@dataclass(frozen=True)
class WorkConfig:
    title_match_threshold: float = TITLE_MATCH_THRESHOLD
    translations_are_separate_works: bool = False
    min_author_matches: int = 1

    def __post_init__(self) -> None:
        check_unit_interval("title_match_threshold", self.title_match_threshold)
        check_non_negative("min_author_matches", self.min_author_matches)


@dataclass(frozen=True)
class Edition:
    """One concrete publication: a specific ISBN, publisher, format, and language."""

    title: str | None = None
    authors: tuple[str, ...] = ()
    language: str | None = None
    format: str | None = None
    publisher: str | None = None
    publication_date: str | None = None
    isbn: tuple[str, ...] = ()
    asin: str | None = None
    page_count: int | None = None
    identifiers: tuple[Identifier, ...] = ()
    work_id: str | None = None
    source: str = ""
    reliability: float = 0.5

    def __post_init__(self) -> None:
        check_unit_interval("reliability", self.reliability)

    @property
    def year(self) -> int | None:
        return extract_year(self.publication_date)

    def work_identifiers(self) -> set[tuple[str, str]]:
        ids = {(i.type.lower(), i.value) for i in self.identifiers if i.type.lower() in WORK_IDENTIFIER_TYPES}
        if self.work_id:
            ids.add(("work_id", self.work_id))
        return ids


@dataclass(frozen=True)
class Work:
    """The abstract creative work, independent of language or publication."""

    title: str
    normalized_title: str
    type: str = "book"
    original_language: str | None = None
    first_publication_date: str | None = None
    identifiers: tuple[Identifier, ...] = ()
    id: str | None = None


@dataclass(frozen=True)
class EditionEvidence:
    title_similarity: float
    author_overlap: int
    external_id_match: bool
    language_match: bool
    isbn_family: bool


@dataclass(frozen=True)
class EditionComparison:
    """Verdict on whether two editions publish the same work."""

    same_work: bool
    confidence: float
    evidence: EditionEvidence
    relationship: str | None = None

    def __post_init__(self) -> None:
        if self.relationship is not None:
            check_choice("relationship", self.relationship, RELATIONSHIPS)

    @property
    def method(self) -> str:
        """The identification method this comparison's evidence supports."""
        if self.evidence.external_id_match:
            return EXTERNAL_ID
        if self.evidence.isbn_family:
            return ISBN_FAMILY
        if self.evidence.title_similarity > _EXACT_TITLE_SIMILARITY:
            return TITLE_AUTHOR_MATCH
        return FUZZY_MATCH


@dataclass
class WorkCluster:
    """Editions judged to publish one work.

    confidence is the weakest pairwise link that joined the cluster.
    """

    work: Work
    editions: list[Edition]
    confidence: float = 1.0
    identification_method: str = FUZZY_MATCH

    @property
    def score(self) -> float:
        return self.confidence * math.log(len(self.editions) + 1)


@dataclass(frozen=True)
class RelatedWork:
    title: str
    relationship: str
    description: str
    confidence: float
    work_id: str | None = None


@dataclass(frozen=True)
class WorkReconciliationResult:
    work: Work
    work_confidence: float
    edition: Edition
    edition_confidence: float
    related_works: tuple[RelatedWork, ...] = ()
    clusters: tuple[WorkCluster, ...] = field(default=(), compare=False)
    reasoning: str = ""


def edition_from_record(record: MetadataRecord) -> Edition:
    """View a provider record as an edition."""
    asin = next((i.value for i in record.identifiers if i.type.lower() == "asin"), None)
    work_id = next(
        (i.value for i in record.identifiers if i.type.lower() in WORK_IDENTIFIER_TYPES), None
    )
    physical_format = record.provider_data.get("physical_format") if record.provider_data else None
    return Edition(
        title=record.title,
        authors=record.authors,
        language=record.language,
        format=physical_format or record.edition,
        publisher=record.publisher,
        publication_date=record.publication_date,
        isbn=record.isbn,
        asin=asin,
        page_count=record.page_count,
        identifiers=record.identifiers,
        work_id=work_id,
        source=record.source,
        reliability=record.confidence,
    )


def edition_completeness(edition: Edition) -> float:
    """Weighted share of edition-level fields that are filled."""
    return sum(weight for name, weight in _EDITION_WEIGHTS.items() if getattr(edition, name))


def _same_language(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return a == b
    return a.strip().lower()[:2] == b.strip().lower()[:2]


def _merge_identifiers(editions: Sequence[Edition]) -> tuple[Identifier, ...]:
    merged: dict[tuple[str, str], Identifier] = {}
    for edition in editions:
        for identifier in edition.identifiers:
            merged.setdefault((identifier.type.lower(), identifier.value), identifier)
    return tuple(merged.values())


def _edition_to_work(edition: Edition, identifiers: tuple[Identifier, ...] | None = None) -> Work:
    title = edition.title or ""
    return Work(
        id=edition.work_id,
        title=title,
        normalized_title=normalize_title(title),
        original_language=edition.language,
        first_publication_date=edition.publication_date,
        identifiers=edition.identifiers if identifiers is None else identifiers,
    )


class WorkReconciler:
    """Separates work-level identity from edition-level detail."""

    def __init__(self, config: WorkConfig | None = None) -> None:
        self._config = config or WorkConfig()

    @property
    def config(self) -> WorkConfig:
        return self._config

    def compare_editions(self, a: Edition, b: Edition) -> EditionComparison:
        """Decide whether two editions publish the same work.

        Evidence is checked strongest first: shared work identifier, then an
        ISBN family, then title plus author agreement, with a language
        mismatch marking a translation.
        """
        evidence = EditionEvidence(
            title_similarity=title_similarity(a.title or "", b.title or ""),
            author_overlap=author_overlap(a.authors, b.authors),
            external_id_match=bool(a.work_identifiers() & b.work_identifiers()),
            language_match=_same_language(a.language, b.language),
            isbn_family=any(are_isbn_family(x, y) for x in a.isbn for y in b.isbn),
        )

        if evidence.external_id_match:
            return EditionComparison(True, _EXTERNAL_ID_CONFIDENCE, evidence)
        if evidence.isbn_family:
            return EditionComparison(True, _ISBN_FAMILY_CONFIDENCE, evidence)

        if (
            evidence.title_similarity >= self._config.title_match_threshold
            and evidence.author_overlap >= self._config.min_author_matches
        ):
            if not evidence.language_match:
                if self._config.translations_are_separate_works:
                    return EditionComparison(
                        False, _TRANSLATION_CONFIDENCE, evidence, relationship=TRANSLATION
                    )
                return EditionComparison(True, _TRANSLATION_CONFIDENCE, evidence)
            return EditionComparison(True, _SAME_LANGUAGE_CONFIDENCE, evidence)

        return EditionComparison(False, _UNRELATED_CONFIDENCE, evidence, relationship=UNRELATED)

    def cluster_editions_by_work(self, editions: Sequence[Edition]) -> list[WorkCluster]:
        """Single-linkage clustering, returned in descending confidence.

        Each unclustered edition seeds a cluster and absorbs every later
        unclustered edition judged to be the same work as the seed. Clusters
        of equal confidence keep the order of their seeds.
        """
        clusters: list[WorkCluster] = []
        clustered: set[int] = set()

        for i, seed in enumerate(editions):
            if i in clustered:
                continue
            clustered.add(i)
            cluster = WorkCluster(work=_edition_to_work(seed), editions=[seed])

            for j in range(i + 1, len(editions)):
                if j in clustered:
                    continue
                comparison = self.compare_editions(seed, editions[j])
                if not comparison.same_work:
                    continue
                clustered.add(j)
                cluster.editions.append(editions[j])
                cluster.confidence = min(cluster.confidence, comparison.confidence)
                method = comparison.method
                if IDENTIFICATION_METHODS.index(method) < IDENTIFICATION_METHODS.index(
                    cluster.identification_method
                ):
                    cluster.identification_method = method

            clusters.append(cluster)

        logger.debug("Clustered %d editions into %d works", len(editions), len(clusters))
        return sorted(clusters, key=lambda c: -c.confidence)

    @staticmethod
    def select_primary_cluster(clusters: Sequence[WorkCluster]) -> WorkCluster:
        """Highest confidence * log(editions + 1); earlier clusters win ties."""
        if not clusters:
            raise ValueError("No work clusters to choose from")
        return max(enumerate(clusters), key=lambda item: (item[1].score, -item[0]))[1]

    @staticmethod
    def select_canonical_edition(editions: Sequence[Edition]) -> Edition:
        """The most complete edition; earlier editions win ties."""
        if not editions:
            raise ValueError("No editions to choose from")
        return max(enumerate(editions), key=lambda item: (edition_completeness(item[1]), -item[0]))[1]

    def reconcile_work_edition(self, inputs: Sequence[Edition]) -> WorkReconciliationResult:
        """Identify the primary work, its canonical edition, and related works.

        Raises:
            ValueError: If inputs is empty.
        """
        if not inputs:
            raise ValueError("No editions to reconcile")

        clusters = self.cluster_editions_by_work(inputs)
        primary = self.select_primary_cluster(clusters)
        editions = primary.editions

        earliest = min(
            enumerate(editions),
            key=lambda item: (item[1].year if item[1].year is not None else 9999, item[0]),
        )[1]
        work = _edition_to_work(earliest, identifiers=_merge_identifiers(editions))
        mean_reliability = sum(e.reliability for e in editions) / len(editions)
        work_confidence = min(1.0, mean_reliability + min(0.1, 0.02 * len(editions)))

        canonical = self.select_canonical_edition(editions)
        related = self._related_works(primary, [c for c in clusters if c is not primary])

        return WorkReconciliationResult(
            work=work,
            work_confidence=work_confidence,
            edition=canonical,
            edition_confidence=primary.confidence,
            related_works=related,
            clusters=tuple(clusters),
            reasoning=(
                f"Identified work from {len(editions)} edition(s) via "
                f"{primary.identification_method.replace('_', ' ')}"
            ),
        )

    def _related_works(
        self, primary: WorkCluster, others: Sequence[WorkCluster]
    ) -> tuple[RelatedWork, ...]:
        related: list[RelatedWork] = []
        seen: set[str] = set()
        lead = primary.editions[0]
        for cluster in others:
            other = cluster.editions[0]
            comparison = self.compare_editions(lead, other)
            if comparison.relationship != TRANSLATION:
                continue
            key = other.work_id or normalize_title(other.title or "")
            if key in seen:
                continue
            seen.add(key)
            related.append(
                RelatedWork(
                    title=cluster.work.title,
                    relationship=TRANSLATION,
                    description=f"Translation from {lead.language} to {other.language}",
                    confidence=_RELATED_WORK_CONFIDENCE,
                    work_id=other.work_id,
                )
            )
        return tuple(related)
