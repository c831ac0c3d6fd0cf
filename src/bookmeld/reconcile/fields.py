# ABOUTME: Field reconciler that turns many provider records into one value per metadata field.
# ABOUTME: Scalar fields are picked by reliability-weighted vote; list fields are unioned and de-duplicated.

import logging
from collections.abc import Callable, Hashable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from bookmeld.metadata import types as mt
from bookmeld.metadata.config import check_choice
from bookmeld.metadata.confidence import ConfidenceConfig, calculate_confidence_factors
from bookmeld.metadata.names import author_key, is_display_form
from bookmeld.metadata.provider import ProviderRegistry
from bookmeld.metadata.similarity import canonical_isbn, normalize_for_comparison, normalize_title
from bookmeld.metadata.types import MetadataRecord, MetadataSource, extract_year
from bookmeld.reconcile.conflicts import ConflictDetector
from bookmeld.reconcile.types import RawValue, ReconciledField

logger = logging.getLogger(__name__)

VOTE = "vote"
UNION = "union"
FIELD_KINDS = (VOTE, UNION)

# Confidence reported for a field no source could fill.
EMPTY_FIELD_CONFIDENCE = 0.1

# Rounding applied to vote weights before comparing them, so float noise never decides a tie.
_WEIGHT_PRECISION = 9


def _text_key(value: str) -> str:
    return normalize_for_comparison(value)


def _authors_key(value: tuple[str, ...]) -> frozenset[str]:
    return frozenset(author_key(name) or normalize_for_comparison(name) for name in value)


def _date_key(value: str) -> Hashable:
    year = extract_year(value)
    return year if year is not None else value.strip()


def _series_key(value: mt.SeriesInfo) -> Hashable:
    return (normalize_for_comparison(value.name), value.volume)


@dataclass(frozen=True)
class FieldSpec:
    """How one field is reconciled.

    For vote fields, key maps a value to its equivalence class; for union
    fields it maps each list element to its de-duplication key.
    """

    name: str
    kind: str = VOTE
    key: Callable[[Any], Hashable] | None = None

    def __post_init__(self) -> None:
        check_choice("kind", self.kind, FIELD_KINDS)

    def key_for(self, value: Any) -> Hashable:
        return self.key(value) if self.key is not None else value


DEFAULT_FIELD_SPECS: tuple[FieldSpec, ...] = (
    FieldSpec(mt.TITLE, VOTE, normalize_title),
    FieldSpec(mt.AUTHORS, VOTE, _authors_key),
    FieldSpec(mt.ISBN, UNION, canonical_isbn),
    FieldSpec(mt.PUBLICATION_DATE, VOTE, _date_key),
    FieldSpec(mt.SUBJECTS, UNION, lambda s: s.strip().lower()),
    FieldSpec(mt.DESCRIPTION, VOTE, _text_key),
    FieldSpec(mt.LANGUAGE, VOTE, lambda s: s.strip().lower()),
    FieldSpec(mt.PUBLISHER, VOTE, _text_key),
    FieldSpec(mt.SERIES, VOTE, _series_key),
    FieldSpec(mt.EDITION, VOTE, _text_key),
    FieldSpec(mt.PAGE_COUNT, VOTE),
    FieldSpec(mt.IDENTIFIERS, UNION, lambda i: (i.type.lower(), i.value)),
    FieldSpec(mt.COVER_IMAGE, VOTE, lambda c: c.url),
)


@dataclass
class _Ballot:
    key: Hashable
    entries: list[RawValue]
    weight: float = 0.0

    @property
    def best_reliability(self) -> float:
        return max(e.source.reliability for e in self.entries)

    @property
    def first_source(self) -> str:
        return min(e.source.name for e in self.entries)


class FieldReconciler:
    """Aggregates one attribute at a time across every contributing record.

    Output is deterministic: records are visited in (source, id) order and
    every tie has an explicit break, so the same input always reconciles to
    the same fields.
    """

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        confidence_config: ConfidenceConfig | None = None,
        conflict_detector: ConflictDetector | None = None,
        *,
        detect_conflicts: bool = True,
    ) -> None:
        self._registry = registry
        self._confidence_config = confidence_config
        self._conflict_detector = conflict_detector or ConflictDetector()
        self._detect_conflicts = detect_conflicts

    def source_for(self, record: MetadataRecord, field_name: str) -> MetadataSource:
        """The record's source, weighted by static reliability when a registry knows it."""
        reliability = record.confidence
        if self._registry is not None:
            reliability = self._registry.reliability(record.source, field_name, record.confidence)
        return MetadataSource(name=record.source, reliability=reliability, timestamp=record.timestamp)

    def raw_values_by_field(
        self,
        records: Sequence[MetadataRecord],
        field_specs: Sequence[FieldSpec] | None = None,
    ) -> dict[str, list[RawValue]]:
        """Every non-empty value per field, in deterministic record order."""
        specs = field_specs or DEFAULT_FIELD_SPECS
        ordered = sorted(records, key=lambda r: (r.source, r.id))
        raw: dict[str, list[RawValue]] = {}
        for spec in specs:
            raw[spec.name] = [
                RawValue(value=value, source=self.source_for(record, spec.name), record_id=record.id)
                for record in ordered
                if (value := record.get_field(spec.name)) is not None
            ]
        return raw

    def reconcile(
        self,
        records: Sequence[MetadataRecord],
        field_specs: Sequence[FieldSpec] | None = None,
    ) -> dict[str, ReconciledField]:
        """Reconcile every field in field_specs (the defaults when omitted).

        A field no record fills comes back with value None and a floor
        confidence of 0.1.
        """
        specs = field_specs or DEFAULT_FIELD_SPECS
        raw_by_field = self.raw_values_by_field(records, specs)
        by_id = {(r.source, r.id): r for r in records}

        fields: dict[str, ReconciledField] = {}
        for spec in specs:
            raw_values = raw_by_field[spec.name]
            if not raw_values:
                fields[spec.name] = ReconciledField(
                    value=None,
                    confidence=EMPTY_FIELD_CONFIDENCE,
                    reasoning=f"No {spec.name} data available from any source",
                )
                continue

            if spec.kind == UNION:
                reconciled = self._union(spec, raw_values)
            else:
                reconciled = self._vote(spec, raw_values)

            contributors = [by_id[(rv.source.name, rv.record_id)] for rv in raw_values]
            factors = calculate_confidence_factors(contributors, self._confidence_config)
            reconciled = replace(
                reconciled, confidence=factors.final_confidence, factors=factors
            )
            if self._detect_conflicts:
                conflicts = self._conflict_detector.detect_field_conflicts(
                    reconciled, spec.name, raw_values
                )
                reconciled = replace(reconciled, conflicts=tuple(conflicts))
            fields[spec.name] = reconciled

        logger.debug(
            "Reconciled %d fields from %d records (%d filled)",
            len(fields),
            len(records),
            sum(1 for f in fields.values() if f.has_value),
        )
        return fields

    def _vote(self, spec: FieldSpec, raw_values: list[RawValue]) -> ReconciledField:
        ballots: dict[Hashable, _Ballot] = {}
        for rv in raw_values:
            key = spec.key_for(rv.value)
            ballot = ballots.setdefault(key, _Ballot(key=key, entries=[]))
            ballot.entries.append(rv)
            ballot.weight += rv.source.reliability

        ranked = sorted(
            ballots.values(),
            key=lambda b: (
                -round(b.weight, _WEIGHT_PRECISION),
                -b.best_reliability,
                b.first_source,
            ),
        )
        winner = ranked[0]
        total_weight = sum(b.weight for b in ballots.values())
        value = self._winning_value(spec.name, winner.entries)

        if len(ballots) == 1:
            reasoning = f"All {len(raw_values)} source(s) agree"
        else:
            reasoning = (
                f"Weighted vote: {len(winner.entries)} of {len(raw_values)} sources chose this "
                f"value (weight {winner.weight:.2f} of {total_weight:.2f})"
            )
        return ReconciledField(
            value=value,
            confidence=0.0,
            sources=tuple(rv.source for rv in winner.entries),
            reasoning=reasoning,
        )

    @staticmethod
    def _winning_value(field_name: str, entries: list[RawValue]) -> Any:
        """Pick the representative value of the winning group."""
        leader = sorted(entries, key=lambda rv: (-rv.source.reliability, rv.source.name, rv.record_id))
        value = leader[0].value

        if field_name == mt.PUBLICATION_DATE:
            # Same year everywhere; keep the most precise spelling.
            return sorted((rv.value for rv in entries), key=lambda d: (-len(d.strip()), d))[0]

        if field_name == mt.AUTHORS:
            display: dict[str, str] = {}
            for rv in leader:
                for name in rv.value:
                    if is_display_form(name):
                        display.setdefault(author_key(name), name)
            return tuple(display.get(author_key(name), name) for name in value)

        return value

    @staticmethod
    def _union(spec: FieldSpec, raw_values: list[RawValue]) -> ReconciledField:
        seen: dict[Hashable, Any] = {}
        contributing: list[MetadataSource] = []
        for rv in raw_values:
            for item in rv.value:
                key = spec.key_for(item)
                if key not in seen:
                    seen[key] = key if spec.name == mt.ISBN else item
            if rv.source not in contributing:
                contributing.append(rv.source)

        return ReconciledField(
            value=tuple(seen.values()),
            confidence=0.0,
            sources=tuple(contributing),
            reasoning=f"Combined {len(seen)} distinct value(s) from {len(raw_values)} source(s)",
        )


def reconciled_values(fields: Mapping[str, ReconciledField]) -> dict[str, Any]:
    """Just the winning values, dropping empty fields."""
    return {name: f.value for name, f in fields.items() if f.has_value}
