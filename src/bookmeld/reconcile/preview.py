# ABOUTME: Preview builder that presents reconciled metadata with attribution, quality, and conflicts.
# ABOUTME: Library previews add duplicate matches, edition selection, series context, and recommendations.

import hashlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any

from bookmeld.metadata import types as mt
from bookmeld.metadata.config import check_positive, check_unit_interval
from bookmeld.metadata.confidence import ConfidenceConfig, confidence_tier
from bookmeld.metadata.names import author_overlap
from bookmeld.metadata.provider import ProviderRegistry
from bookmeld.metadata.similarity import (
    canonical_isbn,
    levenshtein_similarity,
    normalize_for_comparison,
    title_similarity,
)
from bookmeld.metadata.types import MetadataRecord, SeriesInfo, extract_year
from bookmeld.reconcile.conflicts import ConflictDetector, ConflictSummary, summarize_conflicts
from bookmeld.reconcile.fields import EMPTY_FIELD_CONFIDENCE, FieldReconciler, FieldSpec
from bookmeld.reconcile.types import RawValue, ReconciledField
from bookmeld.reconcile.works import Edition, WorkReconciler, edition_from_record

logger = logging.getLogger(__name__)

QUALITY_EXCELLENT = "excellent"
QUALITY_GOOD = "good"
QUALITY_FAIR = "fair"
QUALITY_POOR = "poor"

MATCH_EXACT = "exact"
MATCH_LIKELY = "likely"
MATCH_POSSIBLE = "possible"
MATCH_DIFFERENT_EDITION = "different_edition"
MATCH_RELATED_WORK = "related_work"

ACTION_SKIP = "skip"
ACTION_REVIEW = "review_manually"
ACTION_ADD_AS_NEW = "add_as_new"

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"
_PRIORITY_ORDER = {PRIORITY_HIGH: 0, PRIORITY_MEDIUM: 1, PRIORITY_LOW: 2}

_EXCELLENT_QUALITY = 0.9
_FAIR_QUALITY = 0.5
_GOOD_COMPLETENESS = 0.7
_HIGH_CONFIDENCE_SHARE = 0.6
_MISSING_DATA_COMPLETENESS = 0.5

# Weighted duplicate matching against existing library entries.
_MATCH_WEIGHTS = {
    "title": 0.30,
    "authors": 0.25,
    "isbn": 0.20,
    "publication_year": 0.10,
    "publisher": 0.10,
    "series": 0.05,
}
_OPTIONAL_MATCH_FIELDS = frozenset({"publication_year", "publisher", "series"})
_MIN_MATCH_SIMILARITY = 0.3
_SERIES_NAME_SIMILARITY = 0.8
_NEIGHBOR_VOLUME_CONFIDENCE = 0.9
_SERIES_MEMBER_CONFIDENCE = 0.8


@dataclass(frozen=True)
class PreviewConfig:
    high_confidence_threshold: float = 0.8
    good_quality_threshold: float = 0.7
    max_sources_per_field: int = 5
    enable_conflict_detection: bool = True

    def __post_init__(self) -> None:
        check_unit_interval("high_confidence_threshold", self.high_confidence_threshold)
        check_unit_interval("good_quality_threshold", self.good_quality_threshold)
        check_positive("max_sources_per_field", self.max_sources_per_field)


@dataclass(frozen=True)
class SourceAttribution:
    """How much one source contributed to a field."""

    source: str
    original_value: Any
    weight: float
    is_primary: bool


@dataclass(frozen=True)
class FieldQuality:
    score: float
    level: str
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class PreviewField:
    """A reconciled field dressed up for display."""

    name: str
    value: Any
    confidence: float
    tier: str
    sources: tuple[SourceAttribution, ...]
    is_high_confidence: bool
    has_conflicts: bool
    quality: FieldQuality
    reasoning: str = ""


@dataclass(frozen=True)
class PreviewSummary:
    fields_with_data: int
    total_fields: int
    completeness: float
    high_confidence_fields: int
    conflicted_fields: int
    most_reliable_source: str | None
    least_reliable_source: str | None
    strengths: tuple[str, ...]
    weaknesses: tuple[str, ...]


@dataclass(frozen=True)
class QualityAssessment:
    """Blend of completeness, accuracy, and per-field consistency."""

    score: float
    level: str
    completeness: float
    accuracy: float
    consistency: float


@dataclass(frozen=True)
class MetadataPreview:
    """Reconciled metadata plus everything needed to judge it.

    id is a digest of the contributing sources and titles, so the same
    records always produce the same id. timestamp is the newest record's.
    """

    id: str
    timestamp: datetime | None
    fields: dict[str, PreviewField]
    reconciled: dict[str, ReconciledField]
    overall_confidence: float
    source_count: int
    sources: tuple[str, ...]
    summary: PreviewSummary
    quality: QualityAssessment

    def value(self, field_name: str) -> Any:
        preview_field = self.fields.get(field_name)
        return preview_field.value if preview_field else None


@dataclass(frozen=True)
class EnhancedMetadataPreview(MetadataPreview):
    conflict_analysis: ConflictSummary


@dataclass(frozen=True)
class LibraryEntry:
    """A book already in the user's library, as the preview compares against it."""

    id: str
    title: str
    authors: tuple[str, ...] = ()
    isbn: tuple[str, ...] = ()
    publication_date: str | None = None
    publisher: str | None = None
    series: SeriesInfo | None = None


@dataclass(frozen=True)
class DuplicateMatch:
    entry: LibraryEntry
    similarity: float
    confidence: float
    match_type: str
    recommended_action: str
    matching_fields: tuple[str, ...]
    field_similarities: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class EditionSelection:
    recommended: Edition
    alternatives: tuple[Edition, ...]
    confidence: float
    reasoning: str


@dataclass(frozen=True)
class SeriesWork:
    title: str
    relationship: str
    confidence: float
    description: str = ""


@dataclass(frozen=True)
class SeriesRelationship:
    """Where the incoming book sits in a series the library already holds part of."""

    series: SeriesInfo
    position: float | None
    previous_work: SeriesWork | None
    next_work: SeriesWork | None
    related_works: tuple[SeriesWork, ...]
    missing_volumes: tuple[int, ...]


@dataclass(frozen=True)
class RecommendedAction:
    type: str
    label: str
    description: str
    is_recommended: bool


@dataclass(frozen=True)
class Recommendation:
    type: str
    priority: str
    message: str
    explanation: str
    actions: tuple[RecommendedAction, ...] = ()


@dataclass(frozen=True)
class LibraryPreview(EnhancedMetadataPreview):
    duplicates: tuple[DuplicateMatch, ...]
    edition_selection: EditionSelection | None
    series_relationship: SeriesRelationship | None
    recommendations: tuple[Recommendation, ...]


def quality_level(score: float, good_threshold: float) -> str:
    if score >= _EXCELLENT_QUALITY:
        return QUALITY_EXCELLENT
    if score >= good_threshold:
        return QUALITY_GOOD
    if score >= _FAIR_QUALITY:
        return QUALITY_FAIR
    return QUALITY_POOR


def overall_confidence(reconciled: dict[str, ReconciledField]) -> float:
    """Core fields count double; empty fields do not count at all.

    With no filled field the result is the 0.1 floor, never 0.
    """
    total = 0.0
    weight = 0.0
    for name, reconciled_field in reconciled.items():
        if not reconciled_field.has_value:
            continue
        field_weight = 2.0 if name in mt.CORE_FIELDS else 1.0
        total += reconciled_field.confidence * field_weight
        weight += field_weight
    if weight == 0:
        return EMPTY_FIELD_CONFIDENCE
    return total / weight


def preview_id(records: Sequence[MetadataRecord]) -> str:
    parts = sorted(f"{r.source}:{r.title or ''}" for r in records)
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def _series_name_similarity(a: str, b: str) -> float:
    return levenshtein_similarity(normalize_for_comparison(a), normalize_for_comparison(b))


class PreviewBuilder:
    """Builds previews over one set of candidate records."""

    def __init__(
        self,
        config: PreviewConfig | None = None,
        *,
        registry: ProviderRegistry | None = None,
        confidence_config: ConfidenceConfig | None = None,
        conflict_detector: ConflictDetector | None = None,
        work_reconciler: WorkReconciler | None = None,
        field_specs: Sequence[FieldSpec] | None = None,
    ) -> None:
        self._config = config or PreviewConfig()
        self._conflict_detector = conflict_detector or ConflictDetector()
        self._reconciler = FieldReconciler(
            registry=registry,
            confidence_config=confidence_config,
            conflict_detector=self._conflict_detector,
            detect_conflicts=self._config.enable_conflict_detection,
        )
        self._work_reconciler = work_reconciler or WorkReconciler()
        self._field_specs = field_specs

    @property
    def config(self) -> PreviewConfig:
        return self._config

    @property
    def reconciler(self) -> FieldReconciler:
        return self._reconciler

    def preview(self, records: Sequence[MetadataRecord]) -> MetadataPreview:
        reconciled = self._reconciler.reconcile(records, self._field_specs)
        raw_by_field = self._reconciler.raw_values_by_field(records, self._field_specs)
        return self._build(records, reconciled, raw_by_field)

    def enhanced_preview(self, records: Sequence[MetadataRecord]) -> EnhancedMetadataPreview:
        """Preview plus a full conflict analysis across every field."""
        base = self.preview(records)
        conflicts = [c for f in base.reconciled.values() for c in f.conflicts]
        return EnhancedMetadataPreview(
            **_shallow_fields(base), conflict_analysis=summarize_conflicts(conflicts)
        )

    def library_preview(
        self, records: Sequence[MetadataRecord], existing_entries: Sequence[LibraryEntry] = ()
    ) -> LibraryPreview:
        """Enhanced preview judged against what the library already holds."""
        enhanced = self.enhanced_preview(records)
        duplicates = self.find_duplicate_matches(enhanced, existing_entries)
        edition_selection = self._select_edition(records)
        series = self.analyze_series(enhanced, existing_entries)
        recommendations = _recommendations(duplicates, edition_selection, series, enhanced.quality)
        logger.debug(
            "Library preview: %d duplicate candidate(s), %d recommendation(s)",
            len(duplicates),
            len(recommendations),
        )
        return LibraryPreview(
            **_shallow_fields(enhanced),
            duplicates=duplicates,
            edition_selection=edition_selection,
            series_relationship=series,
            recommendations=recommendations,
        )

    # --- field previews ---

    def _build(
        self,
        records: Sequence[MetadataRecord],
        reconciled: dict[str, ReconciledField],
        raw_by_field: dict[str, list[RawValue]],
    ) -> MetadataPreview:
        preview_fields = {
            name: self._preview_field(name, reconciled_field, raw_by_field.get(name, []))
            for name, reconciled_field in reconciled.items()
        }
        sources = tuple(sorted({r.source for r in records}))
        overall = overall_confidence(reconciled)
        summary = self._summary(preview_fields, raw_by_field, len(sources))
        consistency = (
            sum(f.quality.score for f in preview_fields.values()) / len(preview_fields)
            if preview_fields
            else 0.0
        )
        quality_score = summary.completeness * 0.4 + overall * 0.4 + consistency * 0.2
        quality = QualityAssessment(
            score=quality_score,
            level=quality_level(quality_score, self._config.good_quality_threshold),
            completeness=summary.completeness,
            accuracy=overall,
            consistency=consistency,
        )
        return MetadataPreview(
            id=preview_id(records),
            timestamp=max((r.timestamp for r in records), default=None),
            fields=preview_fields,
            reconciled=reconciled,
            overall_confidence=overall,
            source_count=len(sources),
            sources=sources,
            summary=summary,
            quality=quality,
        )

    def _preview_field(
        self, name: str, reconciled_field: ReconciledField, raw_values: list[RawValue]
    ) -> PreviewField:
        ranked = sorted(raw_values, key=lambda rv: (-rv.source.reliability, rv.source.name))
        ranked = ranked[: self._config.max_sources_per_field]
        total = sum(rv.source.reliability for rv in ranked)
        attributions = tuple(
            SourceAttribution(
                source=rv.source.name,
                original_value=rv.value,
                weight=rv.source.reliability / total if total else 0.0,
                is_primary=i == 0,
            )
            for i, rv in enumerate(ranked)
        )
        return PreviewField(
            name=name,
            value=reconciled_field.value,
            confidence=reconciled_field.confidence,
            tier=confidence_tier(reconciled_field.confidence),
            sources=attributions,
            is_high_confidence=reconciled_field.confidence >= self._config.high_confidence_threshold,
            has_conflicts=bool(reconciled_field.conflicts),
            quality=self._field_quality(reconciled_field, raw_values),
            reasoning=reconciled_field.reasoning,
        )

    def _field_quality(self, reconciled_field: ReconciledField, raw_values: list[RawValue]) -> FieldQuality:
        count = len(raw_values)
        avg_reliability = (
            sum(rv.source.reliability for rv in raw_values) / count if count else 0.0
        )
        score = 0.5
        score += (reconciled_field.confidence - 0.5) * 0.4
        score += min(count / 3, 1.0) * 0.2 - 0.1
        score += (avg_reliability - 0.5) * 0.3
        if reconciled_field.conflicts:
            score -= 0.15
        if not reconciled_field.has_value:
            score -= 0.3
        score = max(0.0, min(1.0, score))

        suggestions: list[str] = []
        if reconciled_field.confidence < 0.7:
            suggestions.append("Consider adding more reliable sources for this field")
        if count < 2:
            suggestions.append("Additional sources would improve confidence")
        if reconciled_field.conflicts:
            suggestions.append("Review and resolve conflicts between sources")
        if not reconciled_field.has_value:
            suggestions.append("This field is missing data; consider additional metadata sources")
        return FieldQuality(
            score=score,
            level=quality_level(score, self._config.good_quality_threshold),
            suggestions=tuple(suggestions),
        )

    def _summary(
        self,
        preview_fields: dict[str, PreviewField],
        raw_by_field: dict[str, list[RawValue]],
        source_count: int,
    ) -> PreviewSummary:
        with_data = [f for f in preview_fields.values() if f.value is not None]
        high_confidence = [f for f in with_data if f.is_high_confidence]
        conflicted = [f for f in preview_fields.values() if f.has_conflicts]
        total = len(preview_fields)
        completeness = len(with_data) / total if total else 0.0

        reliabilities: dict[str, list[float]] = {}
        for raw_values in raw_by_field.values():
            for rv in raw_values:
                reliabilities.setdefault(rv.source.name, []).append(rv.source.reliability)
        averages = sorted(
            ((sum(values) / len(values), name) for name, values in reliabilities.items()),
            key=lambda item: (-item[0], item[1]),
        )

        strengths: list[str] = []
        weaknesses: list[str] = []
        if completeness > _GOOD_COMPLETENESS:
            strengths.append("Good data completeness")
        if with_data and len(high_confidence) / len(with_data) > _HIGH_CONFIDENCE_SHARE:
            strengths.append("High confidence in most fields")
        if source_count > 2:
            strengths.append("Multiple sources provide good coverage")
        if completeness < _MISSING_DATA_COMPLETENESS:
            weaknesses.append("Many fields are missing data")
        if conflicted:
            weaknesses.append(f"{len(conflicted)} fields have conflicts")
        if source_count < 2:
            weaknesses.append("Limited number of sources")

        return PreviewSummary(
            fields_with_data=len(with_data),
            total_fields=total,
            completeness=completeness,
            high_confidence_fields=len(high_confidence),
            conflicted_fields=len(conflicted),
            most_reliable_source=averages[0][1] if averages else None,
            least_reliable_source=averages[-1][1] if averages else None,
            strengths=tuple(strengths),
            weaknesses=tuple(weaknesses),
        )

    # --- library context ---

    def find_duplicate_matches(
        self, preview: MetadataPreview, existing_entries: Sequence[LibraryEntry]
    ) -> tuple[DuplicateMatch, ...]:
        """Weighted similarity against every entry; weak matches are dropped."""
        matches: list[DuplicateMatch] = []
        for entry in existing_entries:
            similarities = _entry_similarities(preview, entry)
            included = {
                name: value
                for name, value in similarities.items()
                if name not in _OPTIONAL_MATCH_FIELDS or value > 0
            }
            weight = sum(_MATCH_WEIGHTS[name] for name in included)
            if weight == 0:
                continue
            similarity = sum(_MATCH_WEIGHTS[name] * value for name, value in included.items()) / weight
            if similarity <= _MIN_MATCH_SIMILARITY:
                continue
            match_type, action = _classify_match(similarity, similarities)
            matches.append(
                DuplicateMatch(
                    entry=entry,
                    similarity=similarity,
                    confidence=min(1.0, similarity + 0.1),
                    match_type=match_type,
                    recommended_action=action,
                    matching_fields=tuple(name for name, value in similarities.items() if value > 0.8),
                    field_similarities=similarities,
                )
            )
        matches.sort(key=lambda m: (-m.similarity, m.entry.id))
        return tuple(matches)

    def _select_edition(self, records: Sequence[MetadataRecord]) -> EditionSelection | None:
        if not records:
            return None
        ordered = sorted(records, key=lambda r: (r.source, r.id))
        result = self._work_reconciler.reconcile_work_edition([edition_from_record(r) for r in ordered])
        primary = next(c for c in result.clusters if result.edition in c.editions)
        alternatives = tuple(e for e in primary.editions if e is not result.edition)
        return EditionSelection(
            recommended=result.edition,
            alternatives=alternatives,
            confidence=result.edition_confidence,
            reasoning=result.reasoning,
        )

    def analyze_series(
        self, preview: MetadataPreview, existing_entries: Sequence[LibraryEntry]
    ) -> SeriesRelationship | None:
        """Place the incoming book among library entries from the same series."""
        series = preview.value(mt.SERIES)
        if series is None:
            return None
        members = [
            entry
            for entry in existing_entries
            if entry.series is not None
            and _series_name_similarity(entry.series.name, series.name) >= _SERIES_NAME_SIMILARITY
        ]
        if not members:
            return None

        previous_work = next_work = None
        if series.volume is not None:
            for entry in members:
                if entry.series.volume == series.volume - 1 and previous_work is None:
                    previous_work = SeriesWork(entry.title, "prequel", _NEIGHBOR_VOLUME_CONFIDENCE)
                elif entry.series.volume == series.volume + 1 and next_work is None:
                    next_work = SeriesWork(entry.title, "sequel", _NEIGHBOR_VOLUME_CONFIDENCE)

        title = preview.value(mt.TITLE)
        related = tuple(
            SeriesWork(
                entry.title,
                "part_of",
                _SERIES_MEMBER_CONFIDENCE,
                description=f"Part of the {series.name} series",
            )
            for entry in members
            if entry.title != title
        )

        known = {int(e.series.volume) for e in members if e.series.volume is not None}
        if series.volume is not None:
            known.add(int(series.volume))
        missing = tuple(v for v in range(1, max(known) + 1) if v not in known) if known else ()

        return SeriesRelationship(
            series=series,
            position=series.volume,
            previous_work=previous_work,
            next_work=next_work,
            related_works=related,
            missing_volumes=missing,
        )


def _shallow_fields(instance: Any) -> dict[str, Any]:
    return {f.name: getattr(instance, f.name) for f in fields(instance)}


def _entry_similarities(preview: MetadataPreview, entry: LibraryEntry) -> dict[str, float]:
    similarities: dict[str, float] = {}
    title = preview.value(mt.TITLE)
    similarities["title"] = title_similarity(title, entry.title) if title else 0.0

    authors = preview.value(mt.AUTHORS) or ()
    if authors and entry.authors:
        overlap = author_overlap(authors, entry.authors) / max(len(authors), len(entry.authors))
        similarities["authors"] = min(1.0, overlap)
    else:
        similarities["authors"] = 0.0

    isbns = preview.value(mt.ISBN) or ()
    if isbns and entry.isbn:
        shared = {canonical_isbn(i) for i in isbns} & {canonical_isbn(i) for i in entry.isbn}
        similarities["isbn"] = 1.0 if shared else 0.0

    year = extract_year(preview.value(mt.PUBLICATION_DATE))
    entry_year = extract_year(entry.publication_date)
    if year is not None and entry_year is not None:
        gap = abs(year - entry_year)
        similarities["publication_year"] = 1.0 if gap == 0 else 0.5 if gap == 1 else 0.0

    publisher = preview.value(mt.PUBLISHER)
    if publisher and entry.publisher:
        similarities["publisher"] = levenshtein_similarity(
            normalize_for_comparison(publisher), normalize_for_comparison(entry.publisher)
        )

    series = preview.value(mt.SERIES)
    if series is not None and entry.series is not None:
        similarities["series"] = _series_name_similarity(series.name, entry.series.name)
    return similarities


def _classify_match(similarity: float, similarities: dict[str, float]) -> tuple[str, str]:
    if similarity >= 0.9:
        return MATCH_EXACT, ACTION_SKIP
    if similarity >= 0.7:
        return MATCH_LIKELY, ACTION_REVIEW
    if similarity >= 0.5:
        return MATCH_POSSIBLE, ACTION_REVIEW
    same_isbn = similarities.get("isbn", 0.0) > 0.8
    same_title_and_authors = similarities["title"] > 0.8 and similarities["authors"] > 0.8
    if same_isbn or same_title_and_authors:
        return MATCH_DIFFERENT_EDITION, ACTION_ADD_AS_NEW
    return MATCH_RELATED_WORK, ACTION_ADD_AS_NEW


def _duplicate_actions(exact: bool) -> tuple[RecommendedAction, ...]:
    if exact:
        return (
            RecommendedAction("skip", "Skip", "Do not add this book as it already exists", True),
            RecommendedAction(
                "review", "Review", "Compare the entries to see if there are meaningful differences", False
            ),
        )
    return (
        RecommendedAction(
            "review", "Review", "Compare entries and decide whether to merge or keep separate", True
        ),
        RecommendedAction("add", "Add anyway", "Add as a separate entry", False),
    )


def _recommendations(
    duplicates: Sequence[DuplicateMatch],
    edition_selection: EditionSelection | None,
    series: SeriesRelationship | None,
    quality: QualityAssessment,
) -> tuple[Recommendation, ...]:
    recommendations: list[Recommendation] = []

    exact = [d for d in duplicates if d.match_type == MATCH_EXACT]
    if exact:
        recommendations.append(
            Recommendation(
                type="merge_duplicates",
                priority=PRIORITY_HIGH,
                message=f"Found {len(exact)} exact duplicate(s) in your library",
                explanation="This book appears to already exist in your library with identical metadata.",
                actions=_duplicate_actions(True),
            )
        )
    likely = [d for d in duplicates if d.match_type == MATCH_LIKELY]
    if likely:
        recommendations.append(
            Recommendation(
                type="review_conflicts",
                priority=PRIORITY_MEDIUM,
                message=f"Found {len(likely)} likely duplicate(s) that need review",
                explanation="These entries are very similar but may differ in ways worth examining.",
                actions=_duplicate_actions(False),
            )
        )

    if edition_selection is not None and edition_selection.alternatives:
        recommendations.append(
            Recommendation(
                type="improve_metadata",
                priority=PRIORITY_LOW,
                message=f"{len(edition_selection.alternatives)} alternative edition(s) available",
                explanation="Other editions of this work might better suit your preferences.",
                actions=(
                    RecommendedAction(
                        "review", "Review editions", "Compare available editions and select your preferred one", False
                    ),
                    RecommendedAction(
                        "add", "Use selected edition", "Proceed with the automatically selected edition", True
                    ),
                ),
            )
        )

    if series is not None and series.missing_volumes:
        recommendations.append(
            Recommendation(
                type="complete_series",
                priority=PRIORITY_LOW,
                message=f"{len(series.missing_volumes)} missing work(s) in {series.series.name} series",
                explanation=f"You have some but not all books in the {series.series.name} series.",
                actions=(
                    RecommendedAction("add", "Add to wishlist", "Add missing series books to your wishlist", True),
                    RecommendedAction("ignore", "Ignore", "Continue without completing the series", False),
                ),
            )
        )

    if quality.level == QUALITY_POOR:
        recommendations.append(
            Recommendation(
                type="improve_metadata",
                priority=PRIORITY_MEDIUM,
                message="Metadata quality could be improved",
                explanation="This entry has limited or low-quality metadata that could be enhanced.",
                actions=(
                    RecommendedAction(
                        "update", "Search for better metadata", "Try additional metadata sources", True
                    ),
                    RecommendedAction("add", "Add as-is", "Add the entry with current metadata", False),
                ),
            )
        )

    recommendations.sort(key=lambda r: _PRIORITY_ORDER[r.priority])
    return tuple(recommendations)
