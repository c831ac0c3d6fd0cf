# ABOUTME: Consensus confidence engine for a set of records describing the same book.
# ABOUTME: Combines a weighted base with capped boosts and penalties, then maps the result to a tier.

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from itertools import combinations

from bookmeld.metadata.config import ConfigurationError, check_unit_interval
from bookmeld.metadata.names import author_overlap
from bookmeld.metadata.similarity import canonical_isbn, title_similarity
from bookmeld.metadata.types import MetadataRecord

logger = logging.getLogger(__name__)

TIER_EXCEPTIONAL = "exceptional"
TIER_STRONG = "strong"
TIER_GOOD = "good"
TIER_MODERATE = "moderate"
TIER_WEAK = "weak"
TIER_POOR = "poor"

# (lower bound, tier), checked top-down.
_TIER_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (0.95, TIER_EXCEPTIONAL),
    (0.90, TIER_STRONG),
    (0.80, TIER_GOOD),
    (0.65, TIER_MODERATE),
    (0.50, TIER_WEAK),
)

# Per-term constants.
_CONSENSUS_STEP = 0.03
_QUALITY_PIVOT = 0.7
_QUALITY_SLOPE = 0.1
_SOURCE_COUNT_CAP = 0.05
_SOURCE_COUNT_SCALE = 0.02
_RELIABILITY_PIVOT = 0.7
_RELIABILITY_MAX = 0.08

# Post-sum caps; each keeps a value that failed a tier's requirements below that tier.
_STRONG_CONSENSUS_MULTIPLIER = 1.05
_STRONG_CONSENSUS_AGREEMENT = 0.9
_WEAK_CONSENSUS_AGREEMENT = 0.6
_WEAK_CONSENSUS_CAP = 0.85
_EXCEPTIONAL_AGREEMENT = 0.85
_EXCEPTIONAL_MIN_SOURCES = 3
_EXCEPTIONAL_CAP = 0.94
_STRONG_AGREEMENT = 0.7
_STRONG_CAP = 0.89

# Pairwise signal values.
_ISBN_MISMATCH_AGREEMENT = 0.3
_ISBN_MISMATCH_DISAGREEMENT = 0.5
_YEAR_GAP_SCALE = 10.0

_COMPLETENESS_FIELDS = (
    "title",
    "authors",
    "isbn",
    "publication_date",
    "publisher",
    "subjects",
    "description",
    "language",
    "page_count",
)


@dataclass(frozen=True)
class ConfidenceConfig:
    """Caps and floors for the confidence engine.

    max_confidence stays below 1.0 so a computed score never claims certainty.
    single_source_cap bounds what one uncorroborated record can reach.
    """

    max_confidence: float = 0.98
    min_confidence: float = 0.30
    max_consensus_boost: float = 0.15
    max_agreement_boost: float = 0.10
    max_disagreement_penalty: float = 0.20
    max_language_boost: float = 0.05
    preferred_language: str | None = None
    single_source_cap: float = 0.90

    def __post_init__(self) -> None:
        for name in (
            "max_confidence",
            "min_confidence",
            "max_consensus_boost",
            "max_agreement_boost",
            "max_disagreement_penalty",
            "max_language_boost",
            "single_source_cap",
        ):
            check_unit_interval(name, getattr(self, name))
        if self.min_confidence > self.max_confidence:
            raise ConfigurationError(
                f"min_confidence {self.min_confidence} exceeds max_confidence {self.max_confidence}"
            )
        if self.single_source_cap < self.min_confidence:
            raise ConfigurationError(
                f"single_source_cap {self.single_source_cap} is below min_confidence "
                f"{self.min_confidence}"
            )


DEFAULT_CONFIDENCE_CONFIG = ConfidenceConfig()


@dataclass(frozen=True)
class ConfidenceFactors:
    """Full numeric breakdown behind a consensus confidence."""

    base_confidence: float
    consensus_boost: float
    agreement_boost: float
    quality_boost: float
    disagreement_penalty: float
    language_preference_boost: float
    source_count_boost: float
    reliability_boost: float
    penalties: tuple[str, ...]
    final_confidence: float
    tier: str
    factors: dict[str, float] = field(default_factory=dict)


def confidence_tier(confidence: float) -> str:
    """Map a confidence value to its tier label."""
    for lower_bound, tier in _TIER_THRESHOLDS:
        if confidence >= lower_bound:
            return tier
    return TIER_POOR


def calculate_completeness(record: MetadataRecord) -> float:
    """Share of the nine core descriptive fields a record fills."""
    present = sum(1 for name in _COMPLETENESS_FIELDS if record.get_field(name) is not None)
    return present / len(_COMPLETENESS_FIELDS)


def _pair_signals(a: MetadataRecord, b: MetadataRecord) -> list[tuple[float, float]]:
    """(agreement, disagreement) for each field both records carry."""
    signals: list[tuple[float, float]] = []

    if a.title and b.title:
        similarity = title_similarity(a.title, b.title)
        signals.append((similarity, 1.0 - similarity))

    if a.authors and b.authors:
        overlap = author_overlap(a.authors, b.authors) / max(len(a.authors), len(b.authors))
        overlap = min(1.0, overlap)
        signals.append((overlap, 1.0 - overlap))

    isbns_a = {canonical_isbn(i) for i in a.isbn}
    isbns_b = {canonical_isbn(i) for i in b.isbn}
    if isbns_a and isbns_b:
        if isbns_a & isbns_b:
            signals.append((1.0, 0.0))
        else:
            signals.append((_ISBN_MISMATCH_AGREEMENT, _ISBN_MISMATCH_DISAGREEMENT))

    if a.year is not None and b.year is not None:
        gap = abs(a.year - b.year)
        agreement = 1.0 if gap == 0 else 0.5 if gap == 1 else 0.0
        signals.append((agreement, min(1.0, gap / _YEAR_GAP_SCALE)))

    return signals


def _all_signals(records: Sequence[MetadataRecord]) -> list[tuple[float, float]]:
    signals: list[tuple[float, float]] = []
    for a, b in combinations(records, 2):
        signals.extend(_pair_signals(a, b))
    return signals


def calculate_agreement_score(records: Sequence[MetadataRecord]) -> float:
    """Mean pairwise agreement over comparable fields; 1.0 when nothing can disagree."""
    if len(records) < 2:
        return 1.0
    signals = _all_signals(records)
    if not signals:
        return 1.0
    return sum(agreement for agreement, _ in signals) / len(signals)


def calculate_agreement_boost(
    records: Sequence[MetadataRecord], config: ConfidenceConfig = DEFAULT_CONFIDENCE_CONFIG
) -> float:
    """Reward for pairwise agreement on title, authors, ISBN, and year."""
    if len(records) < 2:
        return 0.0
    signals = _all_signals(records)
    if not signals:
        return 0.0
    ratio = sum(agreement for agreement, _ in signals) / len(signals)
    return min(config.max_agreement_boost, ratio * config.max_agreement_boost)


def calculate_disagreement_penalty(
    records: Sequence[MetadataRecord], config: ConfidenceConfig = DEFAULT_CONFIDENCE_CONFIG
) -> float:
    """Penalty mirroring the agreement boost for pairwise mismatches."""
    if len(records) < 2:
        return 0.0
    signals = _all_signals(records)
    if not signals:
        return 0.0
    ratio = sum(disagreement for _, disagreement in signals) / len(signals)
    return min(config.max_disagreement_penalty, ratio * config.max_disagreement_penalty)


def _reliability_score(records: Sequence[MetadataRecord]) -> float:
    """Mean confidence weighted by confidence times completeness."""
    weights = [r.confidence * calculate_completeness(r) for r in records]
    total = sum(weights)
    if total == 0:
        return sum(r.confidence for r in records) / len(records)
    return sum(r.confidence * w for r, w in zip(records, weights, strict=True)) / total


def _language_matches(language: str | None, preferred: str) -> bool:
    if not language:
        return False
    return language.strip().lower()[:2] == preferred.strip().lower()[:2]


def _empty_factors(config: ConfidenceConfig) -> ConfidenceFactors:
    return ConfidenceFactors(
        base_confidence=config.min_confidence,
        consensus_boost=0.0,
        agreement_boost=0.0,
        quality_boost=0.0,
        disagreement_penalty=0.0,
        language_preference_boost=0.0,
        source_count_boost=0.0,
        reliability_boost=0.0,
        penalties=(),
        final_confidence=config.min_confidence,
        tier=confidence_tier(config.min_confidence),
        factors={"source_count": 0.0},
    )


def _single_factors(record: MetadataRecord, config: ConfidenceConfig) -> ConfidenceFactors:
    ceiling = min(config.single_source_cap, config.max_confidence)
    final = max(config.min_confidence, min(ceiling, record.confidence))
    return ConfidenceFactors(
        base_confidence=record.confidence,
        consensus_boost=0.0,
        agreement_boost=0.0,
        quality_boost=0.0,
        disagreement_penalty=0.0,
        language_preference_boost=0.0,
        source_count_boost=0.0,
        reliability_boost=0.0,
        penalties=("single-source-cap",),
        final_confidence=final,
        tier=confidence_tier(final),
        factors={
            "source_count": 1.0,
            "average_confidence": record.confidence,
            "agreement_score": 1.0,
            "completeness": calculate_completeness(record),
        },
    )


def calculate_confidence_factors(
    records: Sequence[MetadataRecord], config: ConfidenceConfig | None = None
) -> ConfidenceFactors:
    """Compute a consensus confidence for records that describe the same book.

    The result does not depend on input order: records are sorted by source and
    id before any arithmetic.

    Args:
        records: Candidate records, typically one per provider.
        config: Engine caps; defaults to DEFAULT_CONFIDENCE_CONFIG.

    Returns:
        The full breakdown, with final_confidence in [min_confidence, max_confidence].
    """
    config = config or DEFAULT_CONFIDENCE_CONFIG
    if not records:
        return _empty_factors(config)
    if len(records) == 1:
        return _single_factors(records[0], config)

    ordered = sorted(records, key=lambda r: (r.source, r.id, r.confidence))
    count = len(ordered)
    confidences = [r.confidence for r in ordered]
    total_confidence = sum(confidences)
    average = total_confidence / count

    base = sum(c * c for c in confidences) / total_confidence if total_confidence else 0.0
    consensus_boost = min(config.max_consensus_boost, (count - 1) * _CONSENSUS_STEP)
    agreement_boost = calculate_agreement_boost(ordered, config)
    disagreement_penalty = calculate_disagreement_penalty(ordered, config)
    quality_boost = max(0.0, (average - _QUALITY_PIVOT) * _QUALITY_SLOPE)
    source_count_boost = min(_SOURCE_COUNT_CAP, _SOURCE_COUNT_SCALE * math.log(count - 1))
    reliability = _reliability_score(ordered)
    reliability_boost = max(
        0.0, (reliability - _RELIABILITY_PIVOT) * _RELIABILITY_MAX / (1.0 - _RELIABILITY_PIVOT)
    )

    language_boost = 0.0
    if config.preferred_language:
        matching = sum(1 for r in ordered if _language_matches(r.language, config.preferred_language))
        language_boost = config.max_language_boost * matching / count

    penalties: list[str] = []
    if disagreement_penalty > 0.1:
        penalties.append("high-disagreement")
    if average < 0.6:
        penalties.append("low-source-quality")
    if count < 3:
        penalties.append("few-sources")

    confidence = (
        base
        + consensus_boost
        + agreement_boost
        + quality_boost
        + language_boost
        + source_count_boost
        + reliability_boost
        - disagreement_penalty
    )

    agreement = calculate_agreement_score(ordered)
    if agreement >= _STRONG_CONSENSUS_AGREEMENT and count >= _EXCEPTIONAL_MIN_SOURCES:
        confidence = min(config.max_confidence, confidence * _STRONG_CONSENSUS_MULTIPLIER)
    elif agreement < _WEAK_CONSENSUS_AGREEMENT:
        confidence = min(_WEAK_CONSENSUS_CAP, confidence)

    if confidence > _EXCEPTIONAL_CAP and (
        agreement < _EXCEPTIONAL_AGREEMENT or count < _EXCEPTIONAL_MIN_SOURCES
    ):
        confidence = _EXCEPTIONAL_CAP
        penalties.append("exceptional-tier-requirements-not-met")
    if confidence > _STRONG_CAP and agreement < _STRONG_AGREEMENT:
        confidence = _STRONG_CAP
        penalties.append("strong-tier-requirements-not-met")
    if agreement < _WEAK_CONSENSUS_AGREEMENT:
        penalties.append("weak-consensus-cap")

    if confidence < config.min_confidence:
        penalties.append("minimum-confidence-floor")
    final = max(config.min_confidence, min(config.max_confidence, confidence))

    logger.debug(
        "Consensus over %d records: base=%.3f agreement=%.3f final=%.3f",
        count,
        base,
        agreement,
        final,
    )
    return ConfidenceFactors(
        base_confidence=base,
        consensus_boost=consensus_boost,
        agreement_boost=agreement_boost,
        quality_boost=quality_boost,
        disagreement_penalty=disagreement_penalty,
        language_preference_boost=language_boost,
        source_count_boost=source_count_boost,
        reliability_boost=reliability_boost,
        penalties=tuple(penalties),
        final_confidence=final,
        tier=confidence_tier(final),
        factors={
            "source_count": float(count),
            "average_confidence": average,
            "agreement_score": agreement,
            "reliability_score": reliability,
            "completeness": sum(calculate_completeness(r) for r in ordered) / count,
        },
    )
