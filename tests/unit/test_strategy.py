# ABOUTME: Unit tests for the query strategy builder.
# ABOUTME: Verifies rule ordering, toggles, fallback limits, and result quality verdicts.

import pytest

from bookmeld.metadata.config import ConfigurationError
from bookmeld.metadata.strategy import (
    QueryStrategyBuilder,
    RelaxationRule,
    StrategyConfig,
)
from bookmeld.metadata.types import IsbnQuery, MultiCriteriaQuery, TitleQuery
from tests.fixtures.providers import make_record


class TestBuildStrategy:
    """Tests for build_strategy."""

    def test_language_dropped_first_for_filtered_title(self) -> None:
        """A title narrowed by language relaxes the language before anything else."""
        query = MultiCriteriaQuery(title="The Great Gatsby", language="zh")
        strategy = QueryStrategyBuilder().build_strategy(query)
        assert strategy.rules_applied == ("remove-language", "title-only")
        assert strategy.fallbacks[0] == MultiCriteriaQuery(title="The Great Gatsby")
        assert strategy.fallbacks[-1] == MultiCriteriaQuery(title="The Great Gatsby", fuzzy=True)

    def test_rules_apply_cumulatively_up_to_limit(self) -> None:
        """Each fallback builds on the previous one, capped at max_fallbacks."""
        query = MultiCriteriaQuery(
            title="Good Omens",
            authors=("Terry Pratchett", "Neil Gaiman"),
            language="en",
            publisher="Gollancz",
            year_range=(2000, 2004),
        )
        strategy = QueryStrategyBuilder().build_strategy(query)
        assert strategy.rules_applied == (
            "enable-fuzzy",
            "remove-language",
            "broaden-authors",
            "remove-publisher",
            "broaden-year-range",
        )
        last = strategy.fallbacks[-1]
        assert last.fuzzy
        assert last.authors == ("Terry Pratchett",)
        assert last.language is None
        assert last.publisher is None
        assert last.year_range == (1995, 2009)

    def test_max_fallbacks(self) -> None:
        """No more than max_fallbacks queries are produced."""
        query = MultiCriteriaQuery(
            title="Good Omens", authors=("Terry Pratchett", "Neil Gaiman"), language="en"
        )
        builder = QueryStrategyBuilder(StrategyConfig(max_fallbacks=2))
        assert len(builder.build_strategy(query).fallbacks) == 2

    def test_disabled_rule_skipped(self) -> None:
        """Turning off language relaxation leaves the language in place."""
        query = MultiCriteriaQuery(title="The Great Gatsby", language="zh")
        builder = QueryStrategyBuilder(StrategyConfig(relax_language=False))
        assert builder.build_strategy(query).rules_applied == ("title-only",)

    def test_title_query_goes_fuzzy(self) -> None:
        """A bare title query can only become fuzzy."""
        strategy = QueryStrategyBuilder().build_strategy(TitleQuery(title="Dune"))
        assert strategy.primary == MultiCriteriaQuery(title="Dune")
        assert strategy.rules_applied == ("enable-fuzzy",)

    def test_isbn_query_has_no_fallbacks(self) -> None:
        """An ISBN has nothing to relax."""
        strategy = QueryStrategyBuilder().build_strategy(IsbnQuery(isbn="9780451524935"))
        assert strategy.fallbacks == ()
        assert strategy.queries() == [MultiCriteriaQuery(isbn="9780451524935")]

    def test_fallbacks_are_distinct(self) -> None:
        """No fallback repeats the primary or an earlier fallback."""
        query = MultiCriteriaQuery(title="Dune", authors=("Frank Herbert",), subjects=("sf",))
        strategy = QueryStrategyBuilder().build_strategy(query)
        normalized = [q.normalized() for q in strategy.queries()]
        assert len(normalized) == len(set(normalized))


class TestRuleManagement:
    """Tests for adding and removing rules."""

    def test_remove_rule(self) -> None:
        """Removing returns True once, then False."""
        builder = QueryStrategyBuilder()
        assert builder.remove_relaxation_rule("title-only")
        assert not builder.remove_relaxation_rule("title-only")

    def test_add_rule_keeps_priority_order(self) -> None:
        """Custom rules slot in by priority."""
        builder = QueryStrategyBuilder()
        builder.add_relaxation_rule(
            RelaxationRule(
                name="drop-isbn",
                description="Drop the ISBN",
                priority=0,
                applies=lambda q: bool(q.isbn),
                relax=lambda q: MultiCriteriaQuery(title=q.title, authors=q.authors),
            )
        )
        assert builder.rules[0].name == "drop-isbn"
        query = MultiCriteriaQuery(title="Dune", isbn="9780441013593")
        assert builder.build_strategy(query).rules_applied[0] == "drop-isbn"

    def test_year_rule_without_year_range_is_a_no_op(self) -> None:
        """Broadening a query with no year range returns it unchanged."""
        rule = next(r for r in QueryStrategyBuilder().rules if r.name == "broaden-year-range")
        query = MultiCriteriaQuery(title="Dune")
        assert rule.relax(query) == query
        assert rule.relax(MultiCriteriaQuery(title="Dune", year_range=(1960, 1970))).year_range == (
            1955,
            1975,
        )


class TestAssessResultQuality:
    """Tests for assess_result_quality."""

    def test_no_results(self) -> None:
        """An empty result set never meets the threshold."""
        quality = QueryStrategyBuilder.assess_result_quality([])
        assert not quality.meets_threshold
        assert quality.reason == "No results found"

    def test_sufficient_results(self) -> None:
        """Enough results with enough confidence pass."""
        quality = QueryStrategyBuilder.assess_result_quality([make_record(confidence=0.8)])
        assert quality.meets_threshold
        assert quality.average_confidence == pytest.approx(0.8)

    def test_low_confidence(self) -> None:
        """Low average confidence fails."""
        quality = QueryStrategyBuilder.assess_result_quality([make_record(confidence=0.4)])
        assert not quality.meets_threshold
        assert "below" in quality.reason

    def test_too_few_results(self) -> None:
        """Too few results fail even with high confidence."""
        quality = QueryStrategyBuilder.assess_result_quality(
            [make_record(confidence=0.9)], min_results=2
        )
        assert not quality.meets_threshold
        assert quality.reason.startswith("Only 1")

    def test_invalid_threshold_rejected(self) -> None:
        """Confidence thresholds outside [0, 1] are configuration errors."""
        with pytest.raises(ConfigurationError):
            QueryStrategyBuilder.assess_result_quality([], min_confidence=1.5)
