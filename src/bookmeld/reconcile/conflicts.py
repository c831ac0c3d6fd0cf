# ABOUTME: Conflict detection across the raw values that fed each reconciled field.
# ABOUTME: Classifies disagreements by type and severity and decides which can be resolved automatically.

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from bookmeld.metadata import types as mt
from bookmeld.metadata.config import (
    check_choice,
    check_non_negative,
    check_positive,
    check_unit_interval,
)
from bookmeld.metadata.names import author_key
from bookmeld.metadata.similarity import (
    canonical_isbn,
    levenshtein_similarity,
    normalize_for_comparison,
    normalize_title,
)
from bookmeld.metadata.types import extract_year
from bookmeld.reconcile.types import RawValue, ReconciledField

logger = logging.getLogger(__name__)

SEVERITY_CRITICAL = "critical"
SEVERITY_MAJOR = "major"
SEVERITY_MINOR = "minor"
SEVERITY_INFORMATIONAL = "informational"
SEVERITIES = (SEVERITY_CRITICAL, SEVERITY_MAJOR, SEVERITY_MINOR, SEVERITY_INFORMATIONAL)

VALUE_MISMATCH = "value_mismatch"
FORMAT_DIFFERENCE = "format_difference"
PRECISION_DIFFERENCE = "precision_difference"
COMPLETENESS_DIFFERENCE = "completeness_difference"
QUALITY_DIFFERENCE = "quality_difference"
TEMPORAL_DIFFERENCE = "temporal_difference"
SOURCE_DISAGREEMENT = "source_disagreement"
NORMALIZATION_CONFLICT = "normalization_conflict"
CONFLICT_TYPES = (
    VALUE_MISMATCH,
    FORMAT_DIFFERENCE,
    PRECISION_DIFFERENCE,
    COMPLETENESS_DIFFERENCE,
    QUALITY_DIFFERENCE,
    TEMPORAL_DIFFERENCE,
    SOURCE_DISAGREEMENT,
    NORMALIZATION_CONFLICT,
)

_SEVERITY_WEIGHTS = {
    SEVERITY_CRITICAL: 1.0,
    SEVERITY_MAJOR: 0.7,
    SEVERITY_MINOR: 0.4,
    SEVERITY_INFORMATIONAL: 0.1,
}

# Fields whose disagreement means the sources may describe different books.
_IDENTIFYING_FIELDS = frozenset({mt.TITLE, mt.AUTHORS, mt.ISBN})
_DESCRIPTIVE_FIELDS = frozenset({mt.SUBJECTS, mt.DESCRIPTION})
_LIST_FIELDS = frozenset({mt.AUTHORS, mt.SUBJECTS, mt.IDENTIFIERS})

_HIGH_RELIABILITY = 0.8
_LOW_RELIABILITY = 0.5
_QUALITY_SPREAD = 0.3

_FIELD_AREAS: dict[str, tuple[str, ...]] = {
    mt.TITLE: ("display", "user_experience"),
    mt.AUTHORS: ("attribution", "discovery"),
    mt.ISBN: ("deduplication", "external_linking"),
    mt.PUBLICATION_DATE: ("chronology", "sorting"),
}

_MISMATCH_SUGGESTIONS = (
    "Review source reliability and prioritize the most trustworthy sources",
    "Consider manual verification of the conflicting values",
    "Look for additional sources to break ties",
)


@dataclass(frozen=True)
class ConflictConfig:
    """Thresholds for grouping raw values and grading their disagreements."""

    numeric_threshold: float = 0.05
    string_similarity_threshold: float = 0.8
    year_tolerance: int = 1
    major_year_gap: int = 10
    resolution_margin: float = 0.2
    high_confidence_threshold: float = 0.8
    detect_minor_conflicts: bool = True
    max_conflicts_per_field: int = 10

    def __post_init__(self) -> None:
        check_unit_interval("numeric_threshold", self.numeric_threshold)
        check_unit_interval("string_similarity_threshold", self.string_similarity_threshold)
        check_non_negative("year_tolerance", self.year_tolerance)
        check_positive("major_year_gap", self.major_year_gap)
        check_unit_interval("resolution_margin", self.resolution_margin)
        check_unit_interval("high_confidence_threshold", self.high_confidence_threshold)
        check_positive("max_conflicts_per_field", self.max_conflicts_per_field)


@dataclass(frozen=True)
class ConflictingValue:
    """One side of a disagreement: a value and the sources that reported it."""

    value: Any
    sources: tuple[str, ...]
    reliability: float


@dataclass(frozen=True)
class ConflictImpact:
    score: float
    affected_areas: tuple[str, ...]
    description: str
    affects_core_metadata: bool


@dataclass(frozen=True)
class Conflict:
    """A classified disagreement between sources about one field."""

    field: str
    severity: str
    type: str
    auto_resolvable: bool
    conflicting_values: tuple[ConflictingValue, ...] = ()
    confidence: float = 0.5
    explanation: str = ""
    resolution: str = ""
    resolution_suggestions: tuple[str, ...] = ()
    impact: ConflictImpact | None = None

    def __post_init__(self) -> None:
        check_choice("severity", self.severity, SEVERITIES)
        check_choice("type", self.type, CONFLICT_TYPES)
        check_unit_interval("confidence", self.confidence)


@dataclass(frozen=True)
class ConflictSummary:
    """Every conflict found across a set of reconciled fields, indexed several ways."""

    total_conflicts: int
    by_severity: dict[str, list[Conflict]]
    by_type: dict[str, list[Conflict]]
    by_field: dict[str, list[Conflict]]
    overall_score: float
    problematic_fields: tuple[str, ...]
    recommendations: tuple[str, ...]
    auto_resolvable_conflicts: tuple[Conflict, ...]
    manual_conflicts: tuple[Conflict, ...] = field(default=())


def _string_key(field_name: str, value: str) -> str:
    if field_name == mt.TITLE:
        return normalize_title(value)
    return normalize_for_comparison(value)


def _max_reliability(group: Sequence[RawValue]) -> float:
    return max(item.source.reliability for item in group)


def _describe(value: Any) -> str:
    if isinstance(value, tuple):
        return ", ".join(_describe(v) for v in value)
    if hasattr(value, "name") and hasattr(value, "volume"):
        return f"{value.name} #{value.volume}" if value.volume is not None else value.name
    if hasattr(value, "type") and hasattr(value, "value"):
        return f"{value.type}:{value.value}"
    return str(value)


class ConflictDetector:
    """Finds and classifies disagreements in the raw values behind each field.

    Stateless apart from its configuration; safe to share between threads.
    """

    def __init__(self, config: ConflictConfig | None = None) -> None:
        self._config = config or ConflictConfig()

    @property
    def config(self) -> ConflictConfig:
        return self._config

    # --- value comparison ---

    def _similar(self, field_name: str, a: Any, b: Any) -> bool:
        if a == b:
            return True
        if field_name == mt.PUBLICATION_DATE:
            year_a, year_b = extract_year(a), extract_year(b)
            if year_a is None or year_b is None:
                return str(a).strip() == str(b).strip()
            return abs(year_a - year_b) <= self._config.year_tolerance
        if field_name == mt.ISBN:
            set_a = {canonical_isbn(i) for i in a}
            set_b = {canonical_isbn(i) for i in b}
            return bool(set_a & set_b)
        if field_name == mt.AUTHORS:
            return {author_key(n) for n in a} == {author_key(n) for n in b}
        if field_name == mt.IDENTIFIERS:
            return {(i.type.lower(), i.value) for i in a} == {(i.type.lower(), i.value) for i in b}
        if isinstance(a, tuple) and isinstance(b, tuple):
            return {normalize_for_comparison(str(v)) for v in a} == {
                normalize_for_comparison(str(v)) for v in b
            }
        if isinstance(a, str) and isinstance(b, str):
            similarity = levenshtein_similarity(_string_key(field_name, a), _string_key(field_name, b))
            return similarity >= self._config.string_similarity_threshold
        if isinstance(a, (int, float)) and isinstance(b, (int, float)):
            average = (a + b) / 2
            if average == 0:
                return a == b
            return abs(a - b) / abs(average) <= self._config.numeric_threshold
        if hasattr(a, "name") and hasattr(b, "name"):
            same_name = levenshtein_similarity(
                normalize_for_comparison(a.name), normalize_for_comparison(b.name)
            ) >= self._config.string_similarity_threshold
            return same_name and getattr(a, "volume", None) == getattr(b, "volume", None)
        if hasattr(a, "url") and hasattr(b, "url"):
            return a.url == b.url
        return False

    def _group(self, field_name: str, raw_values: Sequence[RawValue]) -> list[list[RawValue]]:
        """Greedy grouping: each value joins the first group whose seed it resembles."""
        groups: list[list[RawValue]] = []
        for item in raw_values:
            for group in groups:
                if self._similar(field_name, item.value, group[0].value):
                    group.append(item)
                    break
            else:
                groups.append([item])
        return groups

    # --- grading ---

    def _severity(self, field_name: str, groups: list[list[RawValue]]) -> str:
        count = len(groups)
        reliabilities = [item.source.reliability for group in groups for item in group]
        has_high = any(r > _HIGH_RELIABILITY for r in reliabilities)
        has_low = any(r < _LOW_RELIABILITY for r in reliabilities)

        if field_name in _IDENTIFYING_FIELDS:
            return SEVERITY_CRITICAL if count > 2 and has_high else SEVERITY_MAJOR
        if field_name in _DESCRIPTIVE_FIELDS:
            return SEVERITY_MINOR if count > 2 else SEVERITY_INFORMATIONAL
        if field_name in mt.CORE_FIELDS:
            if count > 2 and has_high:
                return SEVERITY_CRITICAL
            if has_high:
                return SEVERITY_MAJOR
            return SEVERITY_MINOR
        if count > 2 or has_low:
            return SEVERITY_MINOR
        return SEVERITY_INFORMATIONAL

    def _impact(self, field_name: str, group_count: int) -> ConflictImpact:
        is_core = field_name in mt.CORE_FIELDS
        score = 0.1
        areas: list[str] = []
        if is_core:
            score += 0.4
            areas.extend(("identification", "search", "cataloging"))
        if group_count > 2:
            score += 0.2
            areas.append("data_quality")
        areas.extend(_FIELD_AREAS.get(field_name, ()))
        if is_core:
            description = (
                f"Conflict in core field '{field_name}' with {group_count} different values "
                "may affect book identification"
            )
        else:
            description = (
                f"Conflict in '{field_name}' with {group_count} different values "
                "may affect completeness and accuracy"
            )
        return ConflictImpact(
            score=min(1.0, score),
            affected_areas=tuple(areas),
            description=description,
            affects_core_metadata=is_core,
        )

    @staticmethod
    def _conflict_confidence(groups: list[list[RawValue]]) -> float:
        items = [item for group in groups for item in group]
        average = sum(i.source.reliability for i in items) / len(items)
        return min(1.0, 0.5 + min(0.3, (len(groups) - 1) * 0.1) + average * 0.2)

    def _auto_resolvable(self, field: ReconciledField, groups: list[list[RawValue]]) -> bool:
        """A winner is clear when one group out-trusts the next by the margin,
        or when the reconciled value is already high-confidence."""
        if field.confidence >= self._config.high_confidence_threshold:
            return True
        best = sorted((_max_reliability(g) for g in groups), reverse=True)
        return len(best) > 1 and best[0] - best[1] >= self._config.resolution_margin

    @staticmethod
    def _values(groups: list[list[RawValue]]) -> tuple[ConflictingValue, ...]:
        return tuple(
            ConflictingValue(
                value=group[0].value,
                sources=tuple(item.source.name for item in group),
                reliability=_max_reliability(group),
            )
            for group in groups
        )

    # --- detectors ---

    def _value_mismatch(
        self, field: ReconciledField, field_name: str, groups: list[list[RawValue]]
    ) -> Conflict:
        suggestions = _MISMATCH_SUGGESTIONS
        if field_name == mt.TITLE:
            suggestions = (*suggestions, "Check for alternate titles or editions")
        total = sum(len(g) for g in groups)
        return Conflict(
            field=field_name,
            severity=self._severity(field_name, groups),
            type=VALUE_MISMATCH,
            auto_resolvable=self._auto_resolvable(field, groups),
            conflicting_values=self._values(groups),
            confidence=self._conflict_confidence(groups),
            explanation=(
                f"Found {len(groups)} different values for '{field_name}' across {total} sources"
            ),
            resolution=field.reasoning or "Used the most reliable source",
            resolution_suggestions=suggestions,
            impact=self._impact(field_name, len(groups)),
        )

    def _temporal_difference(
        self, field: ReconciledField, groups: list[list[RawValue]]
    ) -> Conflict:
        years = sorted(
            {y for g in groups for i in g if (y := extract_year(i.value)) is not None}
        )
        gap = years[-1] - years[0] if len(years) > 1 else 0
        reliable_years = {
            extract_year(i.value)
            for g in groups
            for i in g
            if i.source.reliability > _HIGH_RELIABILITY
        }
        if gap >= self._config.major_year_gap:
            severity = SEVERITY_MAJOR
            if len(years) > 2 and len(reliable_years) > 2:
                severity = SEVERITY_CRITICAL
        else:
            severity = self._severity(mt.PUBLICATION_DATE, groups)
        return Conflict(
            field=mt.PUBLICATION_DATE,
            severity=severity,
            type=TEMPORAL_DIFFERENCE,
            auto_resolvable=self._auto_resolvable(field, groups),
            conflicting_values=self._values(groups),
            confidence=self._conflict_confidence(groups),
            explanation=(
                f"Publication years differ by {gap} year(s) across sources: "
                f"{', '.join(str(y) for y in years)}"
            ),
            resolution=field.reasoning or "Used the most reliable source",
            resolution_suggestions=(
                "Check whether the sources describe the original or a later edition",
                "Prefer the earliest year for the work and the latest for the edition",
            ),
            impact=self._impact(mt.PUBLICATION_DATE, len(groups)),
        )

    def _isbn_format_differences(self, raw_values: Sequence[RawValue]) -> list[Conflict]:
        written: dict[str, dict[str, list[RawValue]]] = {}
        for item in raw_values:
            for isbn in item.value:
                forms = written.setdefault(canonical_isbn(isbn), {})
                forms.setdefault(isbn.strip(), []).append(item)

        conflicts = []
        for canonical, forms in written.items():
            if len(forms) < 2:
                continue
            conflicts.append(
                Conflict(
                    field=mt.ISBN,
                    severity=SEVERITY_MINOR,
                    type=FORMAT_DIFFERENCE,
                    auto_resolvable=True,
                    conflicting_values=tuple(
                        ConflictingValue(
                            value=form,
                            sources=tuple(i.source.name for i in items),
                            reliability=_max_reliability(items),
                        )
                        for form, items in forms.items()
                    ),
                    confidence=0.9,
                    explanation=(
                        f"Same ISBN written in different formats: {', '.join(forms)}"
                    ),
                    resolution=f"Normalized to ISBN-13 {canonical}",
                    resolution_suggestions=(
                        "Normalize all ISBNs to ISBN-13 format",
                        "Remove hyphens for consistent formatting",
                    ),
                    impact=ConflictImpact(
                        score=0.2,
                        affected_areas=("identification", "deduplication"),
                        description="Formatting inconsistency that could affect identification",
                        affects_core_metadata=False,
                    ),
                )
            )
        return conflicts

    def _precision_differences(self, raw_values: Sequence[RawValue]) -> list[Conflict]:
        by_year: dict[int, list[RawValue]] = {}
        for item in raw_values:
            year = extract_year(item.value)
            if year is not None:
                by_year.setdefault(year, []).append(item)

        conflicts = []
        for year, items in by_year.items():
            precisions = {len(str(i.value).strip()) for i in items}
            if len(precisions) < 2:
                continue
            conflicts.append(
                Conflict(
                    field=mt.PUBLICATION_DATE,
                    severity=SEVERITY_MINOR,
                    type=PRECISION_DIFFERENCE,
                    auto_resolvable=True,
                    conflicting_values=tuple(
                        ConflictingValue(
                            value=i.value, sources=(i.source.name,), reliability=i.source.reliability
                        )
                        for i in items
                    ),
                    confidence=0.8,
                    explanation=f"Publication year {year} reported with different precision",
                    resolution="Used the most precise date available",
                    resolution_suggestions=("Use the most precise date available",),
                    impact=ConflictImpact(
                        score=0.3,
                        affected_areas=("chronology", "sorting"),
                        description="Date precision differences may affect ordering",
                        affects_core_metadata=False,
                    ),
                )
            )
        return conflicts

    def _completeness_difference(
        self, field_name: str, raw_values: Sequence[RawValue]
    ) -> Conflict | None:
        lengths = [len(i.value) if isinstance(i.value, tuple) else 1 for i in raw_values]
        shortest, longest = min(lengths), max(lengths)
        if longest <= shortest * 2:
            return None
        return Conflict(
            field=field_name,
            severity=SEVERITY_MINOR,
            type=COMPLETENESS_DIFFERENCE,
            auto_resolvable=True,
            conflicting_values=tuple(
                ConflictingValue(value=i.value, sources=(i.source.name,), reliability=i.source.reliability)
                for i in raw_values
            ),
            confidence=0.7,
            explanation=f"Sources list between {shortest} and {longest} items for '{field_name}'",
            resolution="Combined data from all sources",
            resolution_suggestions=(
                "Merge data from all sources to maximize completeness",
                "Prioritize sources with more complete information",
            ),
            impact=ConflictImpact(
                score=0.4,
                affected_areas=("completeness", "discovery"),
                description="Some sources provide significantly more complete data",
                affects_core_metadata=False,
            ),
        )

    def _quality_difference(
        self, field_name: str, raw_values: Sequence[RawValue]
    ) -> Conflict | None:
        reliabilities = [i.source.reliability for i in raw_values]
        low, high = min(reliabilities), max(reliabilities)
        if high - low <= _QUALITY_SPREAD:
            return None
        if high <= _HIGH_RELIABILITY or low >= _LOW_RELIABILITY:
            return None
        return Conflict(
            field=field_name,
            severity=SEVERITY_MINOR,
            type=QUALITY_DIFFERENCE,
            auto_resolvable=True,
            conflicting_values=tuple(
                ConflictingValue(value=i.value, sources=(i.source.name,), reliability=i.source.reliability)
                for i in raw_values
            ),
            confidence=0.8,
            explanation=f"Source reliability for '{field_name}' ranges from {low:.2f} to {high:.2f}",
            resolution="Prioritized data from more reliable sources",
            resolution_suggestions=(
                "Prioritize high-reliability sources",
                "Use low-reliability sources only to fill gaps",
            ),
            impact=ConflictImpact(
                score=0.3,
                affected_areas=("accuracy", "confidence"),
                description="Quality differences between sources may affect accuracy",
                affects_core_metadata=False,
            ),
        )

    def detect_field_conflicts(
        self, field: ReconciledField, field_name: str, raw_values: Sequence[RawValue]
    ) -> list[Conflict]:
        """Classify every disagreement among one field's raw values.

        Fewer than two raw values cannot conflict. At most
        max_conflicts_per_field conflicts are returned.
        """
        if len(raw_values) < 2:
            return []

        conflicts: list[Conflict] = []
        groups = self._group(field_name, raw_values)
        if len(groups) > 1:
            if field_name == mt.PUBLICATION_DATE:
                conflicts.append(self._temporal_difference(field, groups))
            else:
                conflicts.append(self._value_mismatch(field, field_name, groups))

        if self._config.detect_minor_conflicts:
            if field_name == mt.ISBN:
                conflicts.extend(self._isbn_format_differences(raw_values))
            if field_name == mt.PUBLICATION_DATE:
                conflicts.extend(self._precision_differences(raw_values))
            if field_name in _LIST_FIELDS:
                completeness = self._completeness_difference(field_name, raw_values)
                if completeness is not None:
                    conflicts.append(completeness)
            quality = self._quality_difference(field_name, raw_values)
            if quality is not None:
                conflicts.append(quality)

        if conflicts:
            logger.debug("Field %s: %d conflict(s)", field_name, len(conflicts))
        return conflicts[: self._config.max_conflicts_per_field]

    def analyze_all_conflicts(
        self,
        reconciled_fields: Mapping[str, ReconciledField],
        raw_values_by_field: Mapping[str, Sequence[RawValue]],
    ) -> ConflictSummary:
        """Detect conflicts for every reconciled field and summarize them."""
        conflicts: list[Conflict] = []
        for field_name, reconciled in reconciled_fields.items():
            raw_values = raw_values_by_field.get(field_name, ())
            conflicts.extend(self.detect_field_conflicts(reconciled, field_name, raw_values))
        return summarize_conflicts(conflicts)


def summarize_conflicts(conflicts: Sequence[Conflict]) -> ConflictSummary:
    """Index conflicts by severity, type, and field, and score the whole set."""
    by_severity: dict[str, list[Conflict]] = {s: [] for s in SEVERITIES}
    by_type: dict[str, list[Conflict]] = {t: [] for t in CONFLICT_TYPES}
    by_field: dict[str, list[Conflict]] = {}
    for conflict in conflicts:
        by_severity[conflict.severity].append(conflict)
        by_type[conflict.type].append(conflict)
        by_field.setdefault(conflict.field, []).append(conflict)

    weighted = sum(_SEVERITY_WEIGHTS[c.severity] for c in conflicts)
    field_scores = sorted(
        by_field.items(),
        key=lambda item: -sum(_SEVERITY_WEIGHTS[c.severity] for c in item[1]),
    )
    auto = tuple(c for c in conflicts if c.auto_resolvable)
    manual = tuple(c for c in conflicts if not c.auto_resolvable)

    recommendations: list[str] = []
    if by_severity[SEVERITY_CRITICAL]:
        recommendations.append(
            f"Address {len(by_severity[SEVERITY_CRITICAL])} critical conflict(s) first; "
            "they affect core metadata"
        )
    if by_severity[SEVERITY_MAJOR]:
        recommendations.append(f"Review {len(by_severity[SEVERITY_MAJOR])} major conflict(s)")
    if auto:
        recommendations.append(f"{len(auto)} conflict(s) can be resolved automatically")
    if manual:
        recommendations.append(f"{len(manual)} conflict(s) need manual review")
    if not conflicts:
        recommendations.append("No conflicts detected; sources agree")

    return ConflictSummary(
        total_conflicts=len(conflicts),
        by_severity=by_severity,
        by_type=by_type,
        by_field=by_field,
        overall_score=min(1.0, weighted / 10),
        problematic_fields=tuple(name for name, _ in field_scores[:5]),
        recommendations=tuple(recommendations),
        auto_resolvable_conflicts=auto,
        manual_conflicts=manual,
    )


def format_conflict_report(summary: ConflictSummary) -> str:
    """Render a conflict summary as a plain-text report."""
    lines = [f"Conflicts: {summary.total_conflicts} (score {summary.overall_score:.2f})"]
    if not summary.total_conflicts:
        lines.append("No conflicts detected; sources agree.")
        return "\n".join(lines)

    counts = ", ".join(
        f"{severity}: {len(summary.by_severity[severity])}"
        for severity in SEVERITIES
        if summary.by_severity[severity]
    )
    lines.append(f"By severity: {counts}")
    lines.append(
        f"Auto-resolvable: {len(summary.auto_resolvable_conflicts)}, "
        f"manual review: {len(summary.manual_conflicts)}"
    )

    for field_name, conflicts in summary.by_field.items():
        lines.append("")
        lines.append(f"[{field_name}]")
        for conflict in conflicts:
            marker = "auto" if conflict.auto_resolvable else "manual"
            lines.append(f"  - {conflict.severity} {conflict.type} ({marker}): {conflict.explanation}")
            for value in conflict.conflicting_values:
                lines.append(
                    f"      {_describe(value.value)}  <- {', '.join(value.sources)} "
                    f"({value.reliability:.2f})"
                )

    if summary.recommendations:
        lines.append("")
        lines.append("Recommendations:")
        lines.extend(f"  * {r}" for r in summary.recommendations)
    return "\n".join(lines)
