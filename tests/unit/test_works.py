# ABOUTME: Unit tests for work/edition reconciliation.
# ABOUTME: Covers pairwise edition comparison, clustering, canonical edition choice, and translations.

import math

import pytest

from bookmeld.metadata.types import Identifier
from bookmeld.reconcile.works import (
    EXTERNAL_ID,
    FUZZY_MATCH,
    ISBN_FAMILY,
    TITLE_AUTHOR_MATCH,
    TRANSLATION,
    UNRELATED,
    Edition,
    WorkConfig,
    WorkReconciler,
    edition_completeness,
    edition_from_record,
)
from tests.fixtures.providers import make_record

ORWELL = ("George Orwell",)


def _edition(title: str = "1984", **kwargs) -> Edition:
    kwargs.setdefault("authors", ORWELL)
    kwargs.setdefault("language", "en")
    return Edition(title=title, **kwargs)


class TestCompareEditions:
    """Tests for deciding whether two editions publish the same work."""

    def test_isbn_family_is_symmetric(self) -> None:
        """An ISBN-10 and its ISBN-13 match in either order."""
        reconciler = WorkReconciler()
        a = _edition(isbn=("0451524934",))
        b = _edition(isbn=("9780451524935",))
        forward = reconciler.compare_editions(a, b)
        backward = reconciler.compare_editions(b, a)
        assert forward.same_work and backward.same_work
        assert forward.confidence == backward.confidence == 0.9
        assert forward.method == ISBN_FAMILY

    def test_shared_work_identifier(self) -> None:
        """A shared work identifier beats everything, even different titles."""
        work = Identifier(type="openlibrary_work", value="OL100W")
        a = _edition("1984", identifiers=(work,))
        b = _edition("Nineteen Eighty-Four", identifiers=(work,))
        comparison = WorkReconciler().compare_editions(a, b)
        assert comparison.same_work
        assert comparison.confidence == 0.95
        assert comparison.method == EXTERNAL_ID

    def test_same_language_title_and_author(self) -> None:
        """Matching title and author in one language is the same work."""
        comparison = WorkReconciler().compare_editions(
            _edition(isbn=("9780451524935",)), _edition(isbn=("9780141036144",))
        )
        assert comparison.same_work
        assert comparison.confidence == 0.8
        assert comparison.method == TITLE_AUTHOR_MATCH

    def test_translation_merged_by_default(self) -> None:
        """A translation is the same work unless configured otherwise."""
        comparison = WorkReconciler().compare_editions(_edition(), _edition(language="fr"))
        assert comparison.same_work
        assert comparison.confidence == 0.85
        assert comparison.relationship is None

    def test_translation_as_separate_work(self) -> None:
        """With separate translations, the pair is related rather than merged."""
        reconciler = WorkReconciler(WorkConfig(translations_are_separate_works=True))
        comparison = reconciler.compare_editions(_edition(), _edition(language="fr"))
        assert not comparison.same_work
        assert comparison.relationship == TRANSLATION

    def test_unrelated(self) -> None:
        """Different titles without shared identifiers are unrelated."""
        comparison = WorkReconciler().compare_editions(_edition(), _edition("Animal Farm"))
        assert not comparison.same_work
        assert comparison.confidence == 0.3
        assert comparison.relationship == UNRELATED

    def test_different_author_is_unrelated(self) -> None:
        """A matching title by another author is a different work."""
        comparison = WorkReconciler().compare_editions(
            _edition(), _edition(authors=("Someone Else",))
        )
        assert not comparison.same_work

    def test_near_title_is_fuzzy(self) -> None:
        """A close but inexact title match is reported as fuzzy."""
        comparison = WorkReconciler().compare_editions(
            _edition("The Lord of the Rings", authors=("J.R.R. Tolkien",)),
            _edition("Lord of the Ring", authors=("J.R.R. Tolkien",)),
        )
        assert comparison.same_work
        assert comparison.method == FUZZY_MATCH


class TestClustering:
    """Tests for grouping editions into works."""

    def _editions(self) -> list[Edition]:
        return [
            _edition(isbn=("9780451524935",), reliability=0.8),
            _edition(isbn=("0451524934",), reliability=0.7),
            _edition("Animal Farm", isbn=("9780451526342",), reliability=0.6),
        ]

    def test_clusters_by_work(self) -> None:
        """ISBN siblings cluster together; the other book stands alone."""
        clusters = WorkReconciler().cluster_editions_by_work(self._editions())
        assert [len(c.editions) for c in clusters] == [1, 2]
        assert clusters[0].confidence == 1.0
        assert clusters[0].identification_method == FUZZY_MATCH
        assert clusters[1].confidence == 0.9
        assert clusters[1].identification_method == ISBN_FAMILY

    def test_clusters_ordered_by_confidence(self) -> None:
        """A weaker cluster seeded first still sorts after a stronger one."""
        herbert = ("Frank Herbert",)
        clusters = WorkReconciler().cluster_editions_by_work(
            [
                _edition("Dune", authors=herbert),
                _edition("Dune", authors=herbert, publisher="Ace"),
                _edition("Neuromancer", authors=("William Gibson",)),
            ]
        )
        assert [c.confidence for c in clusters] == [1.0, 0.8]
        assert clusters[1].work.title == "Dune"

    def test_equal_confidence_keeps_input_order(self) -> None:
        """Singleton clusters come back in the order they were seeded."""
        clusters = WorkReconciler().cluster_editions_by_work(
            [
                _edition("Dune", authors=("Frank Herbert",)),
                _edition("Neuromancer", authors=("William Gibson",)),
            ]
        )
        assert [c.work.title for c in clusters] == ["Dune", "Neuromancer"]

    def test_primary_cluster_prefers_more_editions(self) -> None:
        """Score is confidence times log(editions + 1)."""
        clusters = WorkReconciler().cluster_editions_by_work(self._editions())
        primary = WorkReconciler.select_primary_cluster(clusters)
        assert len(primary.editions) == 2
        assert primary.score == pytest.approx(0.9 * math.log(3))

    def test_primary_cluster_requires_input(self) -> None:
        """Choosing from nothing is an error."""
        with pytest.raises(ValueError):
            WorkReconciler.select_primary_cluster([])

    def test_canonical_edition_is_most_complete(self) -> None:
        """The edition with the most filled fields wins."""
        sparse = _edition()
        full = _edition(
            isbn=("9780451524935",),
            publisher="Signet Classics",
            publication_date="1961",
            page_count=328,
            format="Paperback",
        )
        assert WorkReconciler.select_canonical_edition([sparse, full]) is full
        assert edition_completeness(full) > edition_completeness(sparse)


class TestReconcileWorkEdition:
    """Tests for the full work/edition reconciliation."""

    def test_reconcile(self) -> None:
        """The primary work takes the earliest date and merged identifiers."""
        goodreads = Identifier(type="goodreads", value="5470")
        editions = [
            _edition(isbn=("9780451524935",), publication_date="1961", reliability=0.8),
            _edition(
                isbn=("0451524934",),
                publication_date="1949",
                identifiers=(goodreads,),
                reliability=0.8,
            ),
        ]
        result = WorkReconciler().reconcile_work_edition(editions)
        assert result.work.title == "1984"
        assert result.work.first_publication_date == "1949"
        assert result.work.identifiers == (goodreads,)
        assert result.work_confidence == pytest.approx(0.84)
        assert result.edition_confidence == 0.9
        assert "isbn family" in result.reasoning

    def test_translation_becomes_related_work(self) -> None:
        """A separate-work translation is reported as related."""
        reconciler = WorkReconciler(WorkConfig(translations_are_separate_works=True))
        editions = [
            _edition(isbn=("9780451524935",), reliability=0.8),
            _edition(isbn=("0451524934",), reliability=0.8),
            _edition(isbn=("9782070368228",), language="fr", reliability=0.7),
        ]
        result = reconciler.reconcile_work_edition(editions)
        assert len(result.clusters) == 2
        assert len(result.related_works) == 1
        related = result.related_works[0]
        assert related.relationship == TRANSLATION
        assert related.description == "Translation from en to fr"
        assert related.confidence == 0.7

    def test_empty_input_rejected(self) -> None:
        """Reconciling nothing is an error."""
        with pytest.raises(ValueError):
            WorkReconciler().reconcile_work_edition([])


class TestEditionFromRecord:
    """Tests for viewing provider records as editions."""

    def test_identifiers_and_format(self) -> None:
        """ASIN, work id, and physical format are pulled from the record."""
        record = make_record(
            "openlibrary",
            confidence=0.9,
            title="1984",
            authors=ORWELL,
            isbn=("9780451524935",),
            identifiers=(
                Identifier(type="asin", value="B003JTHWKU"),
                Identifier(type="openlibrary_work", value="OL100W"),
            ),
            provider_data={"physical_format": "Mass Market Paperback"},
        )
        edition = edition_from_record(record)
        assert edition.asin == "B003JTHWKU"
        assert edition.work_id == "OL100W"
        assert edition.format == "Mass Market Paperback"
        assert edition.source == "openlibrary"
        assert edition.reliability == 0.9

    def test_format_falls_back_to_edition(self) -> None:
        """Without a physical format, the edition statement is used."""
        edition = edition_from_record(make_record(title="1984", edition="2nd edition"))
        assert edition.format == "2nd edition"
        assert edition.work_id is None
