# ABOUTME: Unit tests for string and ISBN similarity helpers.
# ABOUTME: Covers Levenshtein similarity, title normalization, and ISBN-10/13 family checks.

import pytest

from bookmeld.metadata.similarity import (
    are_isbn_family,
    canonical_isbn,
    clean_isbn,
    isbn10_to_isbn13,
    levenshtein_distance,
    levenshtein_similarity,
    normalize_title,
    strip_accents,
    title_similarity,
)


class TestLevenshtein:
    """Tests for edit distance and normalized similarity."""

    def test_distance_classic_example(self) -> None:
        """kitten -> sitting takes three edits."""
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_similarity_is_scaled_by_longer_string(self) -> None:
        """Similarity is (max_len - distance) / max_len."""
        assert levenshtein_similarity("kitten", "sitting") == pytest.approx(4 / 7)

    def test_two_empty_strings_are_identical(self) -> None:
        """Empty versus empty is a perfect match."""
        assert levenshtein_similarity("", "") == 1.0

    def test_one_empty_string_matches_nothing(self) -> None:
        """Empty versus non-empty scores zero."""
        assert levenshtein_similarity("abc", "") == 0.0

    def test_similarity_is_symmetric(self) -> None:
        """Argument order does not matter."""
        assert levenshtein_similarity("gatsby", "gatsbie") == levenshtein_similarity(
            "gatsbie", "gatsby"
        )


class TestTitleSimilarity:
    """Tests for title normalization and comparison."""

    def test_leading_article_ignored(self) -> None:
        """'The Great Gatsby' and 'Great Gatsby' are the same title."""
        assert title_similarity("The Great Gatsby", "Great Gatsby") == 1.0

    def test_punctuation_and_case_ignored(self) -> None:
        """Case and punctuation differences do not lower the score."""
        assert title_similarity("Nineteen Eighty-Four", "nineteen eighty four") == 1.0

    def test_missing_title_scores_zero(self) -> None:
        """None on either side gives 0.0."""
        assert title_similarity(None, "Dune") == 0.0

    def test_normalize_title(self) -> None:
        """Normalization lowercases and drops the article."""
        assert normalize_title("A Tale of Two Cities!") == "tale of two cities"

    def test_strip_accents(self) -> None:
        """Combining marks are removed."""
        assert strip_accents("García Márquez") == "Garcia Marquez"


class TestIsbn:
    """Tests for ISBN cleanup and family membership."""

    def test_clean_isbn(self) -> None:
        """Hyphens and spaces are stripped."""
        assert clean_isbn("978-0-451 52493-5") == "9780451524935"

    def test_isbn10_to_isbn13(self) -> None:
        """The ISBN-13 gets a 978 prefix and a recomputed check digit."""
        assert isbn10_to_isbn13("0-451-52493-4") == "9780451524935"

    def test_isbn10_to_isbn13_rejects_malformed(self) -> None:
        """Wrong length yields None."""
        assert isbn10_to_isbn13("12345") is None

    def test_isbn10_to_isbn13_rejects_bad_check_digit(self) -> None:
        """An ISBN-10 whose check digit does not verify is not converted."""
        assert isbn10_to_isbn13("0451524935") is None

    def test_clean_isbn_drops_label(self) -> None:
        """A leading "ISBN" label and separators are removed."""
        assert clean_isbn("ISBN 978-0-451-52493-5") == "9780451524935"

    def test_clean_isbn_keeps_non_isbn_text(self) -> None:
        """Values that are not ISBN-shaped only lose separators."""
        assert clean_isbn("b003-jthwku") == "B003JTHWKU"

    def test_canonical_isbn_unifies_forms(self) -> None:
        """ISBN-10 and ISBN-13 of one book share a canonical form."""
        assert canonical_isbn("0451524934") == canonical_isbn("978-0451524935")

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ("0451524934", "9780451524935"),
            ("9780451524935", "0451524934"),
            ("978-0-451-52493-5", "9780451524935"),
        ],
    )
    def test_family_members(self, a: str, b: str) -> None:
        """Equal ISBNs and 10/13 pairs are a family, in either order."""
        assert are_isbn_family(a, b)

    def test_979_prefix_is_not_family(self) -> None:
        """Only 978-prefixed ISBN-13s correspond to ISBN-10s."""
        assert not are_isbn_family("0451524934", "9790451524935")

    def test_unrelated_isbns(self) -> None:
        """Different books are not a family."""
        assert not are_isbn_family("9780451524935", "9780547928227")

    def test_empty_isbn_is_not_family(self) -> None:
        """Blank input never matches."""
        assert not are_isbn_family("", "")
