# ABOUTME: Query strategy builder that derives progressively relaxed fallback queries.
# ABOUTME: Applies ordered relaxation rules and judges whether a result set is good enough.

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace

from bookmeld.metadata.config import check_non_negative, check_positive, check_unit_interval
from bookmeld.metadata.types import MetadataRecord, MultiCriteriaQuery, Query

logger = logging.getLogger(__name__)

_MIN_YEAR_EXPANSION = 5


@dataclass(frozen=True)
class RelaxationRule:
    """A named query transformation, applied only when its predicate holds."""

    name: str
    description: str
    priority: int
    applies: Callable[[MultiCriteriaQuery], bool]
    relax: Callable[[MultiCriteriaQuery], MultiCriteriaQuery]


@dataclass(frozen=True)
class StrategyConfig:
    """Which relaxations are allowed and how many fallbacks to produce."""

    max_fallbacks: int = 5
    enable_fuzzy_matching: bool = True
    relax_language: bool = True
    relax_authors: bool = True
    relax_subjects: bool = True
    relax_publisher: bool = True
    relax_year_range: bool = True

    def __post_init__(self) -> None:
        check_non_negative("max_fallbacks", self.max_fallbacks)


@dataclass(frozen=True)
class QueryStrategy:
    """The original query plus its ordered fallbacks."""

    primary: MultiCriteriaQuery
    fallbacks: tuple[MultiCriteriaQuery, ...]
    rules_applied: tuple[str, ...]

    def queries(self) -> list[MultiCriteriaQuery]:
        return [self.primary, *self.fallbacks]


@dataclass(frozen=True)
class ResultQuality:
    """Verdict on whether a result set is sufficient."""

    meets_threshold: bool
    result_count: int
    average_confidence: float
    reason: str


def _broaden_year_range(query: MultiCriteriaQuery) -> MultiCriteriaQuery:
    if query.year_range is None:
        return query
    start, end = query.year_range
    expansion = max(_MIN_YEAR_EXPANSION, (end - start) // 2)
    return replace(query, year_range=(start - expansion, end + expansion))


def default_relaxation_rules() -> list[RelaxationRule]:
    """The standard rules, loosest-impact first."""
    return [
        RelaxationRule(
            name="enable-fuzzy",
            description="Allow fuzzy title and author matching",
            priority=1,
            # A title narrowed by filters relaxes the filters before going fuzzy.
            applies=lambda q: not q.fuzzy
            and (bool(q.authors) or (bool(q.title) and not q.has_constraints_besides_title)),
            relax=lambda q: replace(q, fuzzy=True),
        ),
        RelaxationRule(
            name="remove-language",
            description="Drop the language constraint",
            priority=2,
            applies=lambda q: bool(q.language),
            relax=lambda q: replace(q, language=None),
        ),
        RelaxationRule(
            name="broaden-authors",
            description="Keep only the first author",
            priority=3,
            applies=lambda q: len(q.authors) > 1,
            relax=lambda q: replace(q, authors=q.authors[:1]),
        ),
        RelaxationRule(
            name="remove-subjects",
            description="Drop subject constraints",
            priority=4,
            applies=lambda q: bool(q.subjects),
            relax=lambda q: replace(q, subjects=()),
        ),
        RelaxationRule(
            name="remove-publisher",
            description="Drop the publisher constraint",
            priority=5,
            applies=lambda q: bool(q.publisher),
            relax=lambda q: replace(q, publisher=None),
        ),
        RelaxationRule(
            name="broaden-year-range",
            description="Widen the year range by half its span, at least five years each side",
            priority=6,
            applies=lambda q: q.year_range is not None,
            relax=_broaden_year_range,
        ),
        RelaxationRule(
            name="remove-year-range",
            description="Drop the year range",
            priority=7,
            applies=lambda q: q.year_range is not None,
            relax=lambda q: replace(q, year_range=None),
        ),
        RelaxationRule(
            name="title-only",
            description="Search by title alone with fuzzy matching",
            priority=8,
            applies=lambda q: bool(q.title) and (q.has_constraints_besides_title or not q.fuzzy),
            relax=lambda q: MultiCriteriaQuery(title=q.title, fuzzy=True),
        ),
    ]


_RULE_TOGGLES: dict[str, str] = {
    "enable-fuzzy": "enable_fuzzy_matching",
    "remove-language": "relax_language",
    "broaden-authors": "relax_authors",
    "remove-subjects": "relax_subjects",
    "remove-publisher": "relax_publisher",
    "broaden-year-range": "relax_year_range",
    "remove-year-range": "relax_year_range",
}


class QueryStrategyBuilder:
    """Builds fallback queries by applying relaxation rules cumulatively.

    Each applicable rule is applied to the result of the previous one; a rule
    whose output equals the current query (after sorting list fields) is
    skipped. At most config.max_fallbacks fallbacks are produced.
    """

    def __init__(
        self,
        config: StrategyConfig | None = None,
        rules: list[RelaxationRule] | None = None,
    ) -> None:
        self._config = config or StrategyConfig()
        self._rules = sorted(
            rules if rules is not None else default_relaxation_rules(), key=lambda r: r.priority
        )

    @property
    def config(self) -> StrategyConfig:
        return self._config

    @property
    def rules(self) -> tuple[RelaxationRule, ...]:
        return tuple(self._rules)

    def add_relaxation_rule(self, rule: RelaxationRule) -> None:
        """Add or replace a rule by name, keeping priority order."""
        self._rules = [r for r in self._rules if r.name != rule.name]
        self._rules.append(rule)
        self._rules.sort(key=lambda r: r.priority)

    def remove_relaxation_rule(self, name: str) -> bool:
        """Remove a rule by name. Returns False when no such rule exists."""
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.name != name]
        return len(self._rules) < before

    def _is_enabled(self, rule: RelaxationRule) -> bool:
        toggle = _RULE_TOGGLES.get(rule.name)
        return toggle is None or bool(getattr(self._config, toggle))

    def build_strategy(self, query: Query) -> QueryStrategy:
        """Derive the primary query and up to max_fallbacks relaxed fallbacks.

        Title, ISBN, and creator queries are lifted into multi-criteria form
        first, since only that form can be relaxed.
        """
        primary = query.as_multi_criteria()
        current = primary
        seen = {primary.normalized()}
        fallbacks: list[MultiCriteriaQuery] = []
        applied: list[str] = []

        for rule in self._rules:
            if len(fallbacks) >= self._config.max_fallbacks:
                break
            if not self._is_enabled(rule) or not rule.applies(current):
                continue
            relaxed = rule.relax(current)
            normalized = relaxed.normalized()
            if normalized == current.normalized() or normalized in seen:
                logger.debug("Rule %s produced no new query, skipping", rule.name)
                continue
            seen.add(normalized)
            fallbacks.append(relaxed)
            applied.append(rule.name)
            current = relaxed

        return QueryStrategy(primary=primary, fallbacks=tuple(fallbacks), rules_applied=tuple(applied))

    @staticmethod
    def assess_result_quality(
        records: Sequence[MetadataRecord],
        min_results: int = 1,
        min_confidence: float = 0.6,
    ) -> ResultQuality:
        """Judge whether results are sufficient or the next fallback should run."""
        check_positive("min_results", min_results)
        check_unit_interval("min_confidence", min_confidence)
        if not records:
            return ResultQuality(
                meets_threshold=False,
                result_count=0,
                average_confidence=0.0,
                reason="No results found",
            )

        count = len(records)
        average = sum(r.confidence for r in records) / count
        if count < min_results:
            reason = f"Only {count} result(s), need at least {min_results}"
        elif average < min_confidence:
            reason = f"Average confidence {average:.2f} is below {min_confidence:.2f}"
        else:
            reason = f"{count} result(s) with average confidence {average:.2f}"
        return ResultQuality(
            meets_threshold=count >= min_results and average >= min_confidence,
            result_count=count,
            average_confidence=average,
            reason=reason,
        )
