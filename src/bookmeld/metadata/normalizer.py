# ABOUTME: Cleans mangled titles and author lists before they are turned into provider queries.
# ABOUTME: Splits run-together titles like "SteveBerry-TheTemplarLegacy" and pulls out embedded authors.

import re
from dataclasses import dataclass

import wordninja

# Spaceless runs shorter than this ("Dune", "1984") are never split.
_MIN_RUN_LENGTH = 8

_CAMEL_RE = re.compile(r"[a-z][A-Z]")
_BOUNDARY_RES = (
    re.compile(r"([a-z\d])([A-Z])"),
    re.compile(r"([A-Z]+)([A-Z][a-z])"),
    re.compile(r"([a-zA-Z])(\d)"),
    re.compile(r"(\d)([a-zA-Z])"),
)
_SEPARATOR_RE = re.compile(r"[-_]")

_AUTHOR_DASH_TITLE_RE = re.compile(
    r"^(?P<author>.+?)\s+-\s+(?:\[(?P<series>[^\]]+)\]\s+-\s+)?(?P<title>.+)$"
)
_TITLE_BY_AUTHOR_RE = re.compile(
    r"^(?P<title>.+?)\s+by\s+(?P<author>[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)$"
)
_SERIES_INDEX_RE = re.compile(r"^(?P<name>.+?)\s+(?P<index>\d+)$")

_STOP_WORDS = frozenset(
    {"the", "a", "an", "of", "and", "in", "on", "at", "to", "for", "by", "with", "from", "is"}
)
_PLACEHOLDER_AUTHORS = frozenset({"unknown", "various", "anonymous", ""})


@dataclass(frozen=True)
class QueryTerms:
    """Search terms recovered from extracted metadata."""

    title: str
    authors: tuple[str, ...]
    series: str | None = None
    series_index: float | None = None
    was_modified: bool = False


def looks_mangled(text: str) -> bool:
    """True for CamelCase joins, underscores, or long spaceless runs."""
    text = text.strip()
    if not text:
        return False
    if "_" in text or _CAMEL_RE.search(text):
        return True
    return any(" " not in part and len(part) >= _MIN_RUN_LENGTH for part in text.split("-"))


def _split_boundaries(segment: str) -> list[str]:
    marked = segment
    for pattern in _BOUNDARY_RES:
        marked = pattern.sub("\\1\x00\\2", marked)
    return [part for part in marked.split("\x00") if part] or [segment]


def split_concatenated(text: str) -> str:
    """Turn a run-together string into space-separated words.

    Hyphens and underscores separate segments, case and digit boundaries
    separate words, and long all-lowercase leftovers go through wordninja.
    """
    if not looks_mangled(text):
        return text
    words: list[str] = []
    for segment in _SEPARATOR_RE.split(text):
        for part in _split_boundaries(segment.strip()):
            if part.islower() and len(part) >= _MIN_RUN_LENGTH:
                words.extend(wordninja.split(part) or [part])
            elif part:
                words.append(part)
    return " ".join(words)


def looks_like_person(text: str) -> bool:
    """Two or three capitalized words with no title stop words."""
    words = text.split()
    if not 2 <= len(words) <= 3:
        return False
    return all(w[0].isupper() and w.lower() not in _STOP_WORDS for w in words)


def _real_authors(authors: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(a for a in authors if a.strip().lower() not in _PLACEHOLDER_AUTHORS)


def _series_from_bracket(text: str) -> tuple[str, float | None]:
    match = _SERIES_INDEX_RE.match(text.strip())
    if match:
        return match.group("name"), float(match.group("index"))
    return text.strip(), None


def normalize_query_terms(title: str, authors: tuple[str, ...] | list[str] = ()) -> QueryTerms:
    """Recover a clean title and author list from mangled extracted metadata.

    Placeholder authors ("Unknown", "Various") are dropped. When no real author
    remains, "Author - Title", "Author - [Series 07] - Title" and
    "Title by Author" shapes are split apart; otherwise a mangled title is
    word-split, and a leading person name is taken as the author.
    """
    original_authors = tuple(authors)
    kept = _real_authors(original_authors)
    modified = kept != original_authors

    if not kept:
        match = _AUTHOR_DASH_TITLE_RE.match(title)
        if match and looks_like_person(match.group("author").strip()):
            series, index = (None, None)
            if match.group("series"):
                series, index = _series_from_bracket(match.group("series"))
            return QueryTerms(
                title=match.group("title").strip(),
                authors=(match.group("author").strip(),),
                series=series,
                series_index=index,
                was_modified=True,
            )
        match = _TITLE_BY_AUTHOR_RE.match(title)
        if match and looks_like_person(match.group("author")):
            return QueryTerms(
                title=match.group("title").strip(),
                authors=(match.group("author"),),
                was_modified=True,
            )

    if not looks_mangled(title):
        return QueryTerms(title=title, authors=kept, was_modified=modified)

    cleaned = split_concatenated(title)
    if not kept:
        words = cleaned.split()
        for size in (3, 2):
            if len(words) > size and looks_like_person(" ".join(words[:size])):
                return QueryTerms(
                    title=" ".join(words[size:]),
                    authors=(" ".join(words[:size]),),
                    was_modified=True,
                )
    return QueryTerms(title=cleaned, authors=kept, was_modified=True)
