# ABOUTME: Enrichment orchestrator that fills gaps in extracted ebook metadata from online providers.
# ABOUTME: Queries by ISBN first, falls back to title and author, then reconciles what comes back.

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from bookmeld.metadata import types as mt
from bookmeld.metadata.config import check_positive, check_unit_interval
from bookmeld.metadata.coordinator import ProviderStats, QueryCoordinator
from bookmeld.metadata.extracted import AUTHOR_ROLE, Contributor, ExtractedMetadata, ExtractedSeries
from bookmeld.metadata.normalizer import normalize_query_terms
from bookmeld.metadata.strategy import QueryStrategyBuilder
from bookmeld.metadata.types import IsbnQuery, MetadataRecord, MultiCriteriaQuery, Query
from bookmeld.reconcile.preview import EnhancedMetadataPreview, PreviewBuilder
from bookmeld.reconcile.types import ReconciledField

logger = logging.getLogger(__name__)

# Reconciled field -> ExtractedMetadata attribute, for plain scalar copies.
_SCALAR_TARGETS = (
    (mt.TITLE, "title"),
    (mt.DESCRIPTION, "synopsis"),
    (mt.PUBLICATION_DATE, "date_published"),
    (mt.PAGE_COUNT, "number_of_pages"),
    (mt.LANGUAGE, "language"),
)


@dataclass(frozen=True)
class EnrichmentOptions:
    """Knobs for one enrichment run.

    timeout is one deadline in seconds shared by every coordinator query of
    the run; the title search is skipped once the ISBN lookup has used it up.
    min_confidence is the reconciled confidence a field needs before it is used.
    """

    providers: tuple[str, ...] | None = None
    fill_missing_only: bool = True
    timeout: float = 30.0
    min_confidence: float = 0.6
    use_fallbacks: bool = True

    def __post_init__(self) -> None:
        check_positive("timeout", self.timeout)
        check_unit_interval("min_confidence", self.min_confidence)


@dataclass
class EnrichmentResult:
    """New field values keyed by ExtractedMetadata attribute, with their provenance."""

    enriched: dict[str, Any] = field(default_factory=dict)
    sources: list[str] = field(default_factory=list)
    confidence: dict[str, float] = field(default_factory=dict)
    preview: EnhancedMetadataPreview | None = None
    provider_stats: tuple[ProviderStats, ...] = ()
    queries_attempted: tuple[Query, ...] = ()


@dataclass(frozen=True)
class EnrichmentSummary:
    total_providers: int
    successful: int
    failed: int
    timed_out: int
    fields_enriched: int
    average_confidence: float
    total_duration: float
    errors: tuple[str, ...] = ()


def _is_missing(value: Any) -> bool:
    return value is None or value == "" or value == []


def _first_isbn(metadata: ExtractedMetadata) -> str | None:
    isbns = metadata.isbns
    return isbns[0] if isbns else None


def build_search_query(metadata: ExtractedMetadata) -> MultiCriteriaQuery | None:
    """Title and author terms for a metadata search, or None without a title.

    Titles mangled by filename conversion are cleaned first.
    """
    if not metadata.title:
        return None
    terms = normalize_query_terms(metadata.title, metadata.authors)
    if terms.was_modified:
        logger.debug("Cleaned search terms: %r -> %r by %s", metadata.title, terms.title, terms.authors)
    return MultiCriteriaQuery(title=terms.title, authors=terms.authors)


class _Budget:
    """Seconds left of the overall enrichment deadline."""

    def __init__(self, seconds: float) -> None:
        self._deadline = time.monotonic() + seconds

    def remaining(self) -> float:
        return self._deadline - time.monotonic()


def enrich_metadata(
    extracted: ExtractedMetadata,
    coordinator: QueryCoordinator,
    options: EnrichmentOptions | None = None,
) -> EnrichmentResult:
    """Look up a book online and propose values for its metadata fields.

    ISBN lookup runs first; when it is not good enough, a title and author
    search runs with relaxed fallbacks. Everything found is reconciled, and a
    field is proposed only when its reconciled confidence reaches
    min_confidence. Provider failures never raise; they show up in
    provider_stats and in an emptier result.

    Args:
        extracted: Metadata read from the ebook file.
        coordinator: Coordinator over the providers to consult.
        options: Enrichment options; defaults to EnrichmentOptions().

    Returns:
        The proposed values. Nothing is written back to extracted.
    """
    options = options or EnrichmentOptions()
    isbn = _first_isbn(extracted)
    search = build_search_query(extracted)
    if isbn is None and search is None:
        logger.info("Nothing to search by: no ISBN and no title")
        return EnrichmentResult()

    budget = _Budget(options.timeout)
    builder = QueryStrategyBuilder()
    records: list[MetadataRecord] = []
    stats: list[ProviderStats] = []
    attempted: list[Query] = []
    sufficient = False

    if isbn is not None:
        isbn_query = IsbnQuery(isbn=isbn)
        result = coordinator.query(
            isbn_query, providers=options.providers, timeout=budget.remaining()
        )
        attempted.append(isbn_query)
        stats.extend(result.provider_stats)
        records.extend(result.all_records)
        quality = builder.assess_result_quality(result.records, min_confidence=options.min_confidence)
        sufficient = quality.meets_threshold
        logger.debug("ISBN lookup for %s: %s", isbn, quality.reason)

    if not sufficient and search is not None and budget.remaining() > 0:
        if options.use_fallbacks:
            fallback = coordinator.query_with_fallbacks(
                search,
                builder,
                min_confidence=options.min_confidence,
                providers=options.providers,
                timeout=budget.remaining(),
            )
            attempted.extend(fallback.attempted_queries)
            stats.extend(fallback.provider_stats)
            records.extend(fallback.result.all_records)
        else:
            result = coordinator.query(
                search, providers=options.providers, timeout=budget.remaining()
            )
            attempted.append(search)
            stats.extend(result.provider_stats)
            records.extend(result.all_records)

    enrichment = EnrichmentResult(provider_stats=tuple(stats), queries_attempted=tuple(attempted))
    if not records:
        logger.info("No provider returned metadata for %r", extracted.title or isbn)
        return enrichment

    # The ISBN and title searches can both return the same provider record.
    records = list({(r.source, r.id): r for r in records}.values())
    preview = PreviewBuilder(registry=coordinator.registry).enhanced_preview(records)
    enrichment.preview = preview
    _propose_fields(extracted, preview.reconciled, options, enrichment)
    logger.info(
        "Enriched %d field(s) from %d record(s)", len(enrichment.enriched), len(records)
    )
    return enrichment


def _propose_fields(
    extracted: ExtractedMetadata,
    reconciled: dict[str, ReconciledField],
    options: EnrichmentOptions,
    enrichment: EnrichmentResult,
) -> None:
    def usable(name: str) -> ReconciledField | None:
        candidate = reconciled.get(name)
        if candidate is None or not candidate.has_value:
            return None
        if candidate.confidence < options.min_confidence:
            return None
        return candidate

    def wanted(attribute: str) -> bool:
        return not options.fill_missing_only or _is_missing(getattr(extracted, attribute))

    def accept(attribute: str, value: Any, source: ReconciledField) -> None:
        enrichment.enriched[attribute] = value
        enrichment.confidence[attribute] = source.confidence
        for metadata_source in source.sources:
            if metadata_source.name not in enrichment.sources:
                enrichment.sources.append(metadata_source.name)

    for field_name, attribute in _SCALAR_TARGETS:
        candidate = usable(field_name)
        if candidate is not None and wanted(attribute):
            accept(attribute, candidate.value, candidate)

    subjects = usable(mt.SUBJECTS)
    if subjects is not None and wanted("subjects"):
        accept("subjects", list(dict.fromkeys(s.lower() for s in subjects.value)), subjects)

    series = usable(mt.SERIES)
    if series is not None and wanted("series"):
        accept("series", [ExtractedSeries(name=series.value.name, position=series.value.volume)], series)

    authors = usable(mt.AUTHORS)
    if authors is not None and (not options.fill_missing_only or not extracted.authors):
        accept(
            "contributors",
            [Contributor(name=name, roles=(AUTHOR_ROLE,)) for name in authors.value],
            authors,
        )


def merge_enriched_metadata(
    original: ExtractedMetadata, enrichment: EnrichmentResult
) -> ExtractedMetadata:
    """Apply an enrichment result to a copy of the original metadata.

    Subjects are unioned (case-insensitively, original order first), series
    is replaced when enriched, and every other enriched value overrides.
    """
    updates: dict[str, Any] = {}
    for attribute, value in enrichment.enriched.items():
        if value is None:
            continue
        if attribute == "subjects":
            merged: dict[str, str] = {}
            for subject in [*original.subjects, *value]:
                merged.setdefault(subject.lower(), subject)
            updates["subjects"] = list(merged.values())
        elif attribute == "contributors":
            others = [c for c in original.contributors if not c.is_author]
            updates["contributors"] = [*value, *others]
        else:
            updates[attribute] = list(value) if isinstance(value, list) else value
    return replace(
        original,
        identifiers=list(original.identifiers),
        properties=dict(original.properties),
        **{
            "contributors": list(original.contributors),
            "series": list(original.series),
            "subjects": list(original.subjects),
            **updates,
        },
    )


def summarize_enrichment(result: EnrichmentResult) -> EnrichmentSummary:
    """Per-provider outcome counts across every query an enrichment ran."""
    by_provider: dict[str, list[ProviderStats]] = {}
    for stats in result.provider_stats:
        by_provider.setdefault(stats.provider, []).append(stats)

    successful = sum(1 for runs in by_provider.values() if any(s.success for s in runs))
    timed_out = sum(
        1
        for runs in by_provider.values()
        if not any(s.success for s in runs) and any(s.timed_out for s in runs)
    )
    errors = tuple(
        f"{s.provider}: {s.error}" for s in result.provider_stats if not s.success and s.error
    )
    confidences: Sequence[float] = list(result.confidence.values())
    return EnrichmentSummary(
        total_providers=len(by_provider),
        successful=successful,
        failed=len(by_provider) - successful,
        timed_out=timed_out,
        fields_enriched=len(result.enriched),
        average_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
        total_duration=sum(s.duration for s in result.provider_stats),
        errors=errors,
    )
