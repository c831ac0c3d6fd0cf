# ABOUTME: String and identifier similarity helpers shared by scoring, clustering, and duplicate checks.
# ABOUTME: Normalized Levenshtein similarity for titles, ISBN cleanup and ISBN-10/13 family checks.

import re
import unicodedata

import isbnlib
from rapidfuzz.distance import Levenshtein

_ISBN_STRIP_RE = re.compile(r"[\s-]")
_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_ARTICLE_RE = re.compile(r"^(the|a|an)\s+")

# Title similarity thresholds. Each use keeps its own constant.
TITLE_MATCH_THRESHOLD = 0.85
DUPLICATE_TITLE_THRESHOLD = 0.6


def strip_accents(text: str) -> str:
    """Remove combining accent marks ('Gabriel García' -> 'Gabriel Garcia')."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_for_comparison(text: str) -> str:
    """Lowercase, strip accents and punctuation, collapse whitespace."""
    text = strip_accents(text.lower())
    text = _NON_WORD_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_title(title: str) -> str:
    """Normalize a title for matching: lowercase, no leading article, no punctuation."""
    text = normalize_for_comparison(title)
    return _LEADING_ARTICLE_RE.sub("", text)


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute cost 1)."""
    return Levenshtein.distance(a, b)


def levenshtein_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1] as (max_len - distance) / max_len.

    Two empty strings are identical (1.0); one empty string matches nothing (0.0).
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


def title_similarity(a: str | None, b: str | None) -> float:
    """Levenshtein similarity of two titles after normalize_title."""
    if a is None or b is None:
        return 0.0
    return levenshtein_similarity(normalize_title(a), normalize_title(b))


def clean_isbn(isbn: str) -> str:
    """Reduce an ISBN to its digits and check character.

    Text isbnlib does not recognize as ISBN-shaped only loses its separators.
    """
    return isbnlib.canonical(isbn) or _ISBN_STRIP_RE.sub("", isbn).upper()


def isbn10_to_isbn13(isbn10: str) -> str | None:
    """Convert an ISBN-10 into its 978-prefixed ISBN-13, or None if it is not a valid ISBN-10."""
    clean = clean_isbn(isbn10)
    if not isbnlib.is_isbn10(clean):
        return None
    return isbnlib.to_isbn13(clean) or None


def canonical_isbn(isbn: str) -> str:
    """Cleaned ISBN with ISBN-10s rewritten as ISBN-13 so both forms compare equal."""
    clean = clean_isbn(isbn)
    if len(clean) == 10:
        return isbn10_to_isbn13(clean) or clean
    return clean


def are_isbn_family(a: str, b: str) -> bool:
    """Whether two ISBNs name the same publication.

    True for equal ISBNs after cleanup, and for an ISBN-10 / ISBN-13 pair where
    the ISBN-13 carries the 978 prefix and its next nine digits equal the ISBN-10
    body. The check is symmetric in its arguments.
    """
    clean_a = clean_isbn(a)
    clean_b = clean_isbn(b)
    if not clean_a or not clean_b:
        return False
    if clean_a == clean_b:
        return True

    if len(clean_a) == 13 and len(clean_b) == 10:
        clean_a, clean_b = clean_b, clean_a
    if len(clean_a) == 10 and len(clean_b) == 13:
        return clean_b.startswith("978") and clean_b[3:12] == clean_a[:9]
    return False
