# ABOUTME: Best-effort author name normalization for comparing name variants across providers.
# ABOUTME: Treats 'Orwell, George', 'George Orwell', and 'G. Orwell' as the same person.

import re
from dataclasses import dataclass

from bookmeld.metadata.similarity import strip_accents

NAME_PREFIXES = frozenset(
    {"dr", "prof", "mr", "mrs", "ms", "miss", "sir", "dame", "lord", "lady", "rev", "father", "sister"}
)
NAME_SUFFIXES = frozenset({"jr", "sr", "ii", "iii", "iv", "v", "phd", "md", "esq", "cpa"})
LAST_NAME_PARTICLES = frozenset(
    {
        "van",
        "von",
        "de",
        "der",
        "den",
        "del",
        "della",
        "di",
        "da",
        "du",
        "le",
        "la",
        "el",
        "al",
        "ibn",
        "bin",
        "ben",
        "mac",
        "mc",
        "st",
    }
)

_NAME_PUNCT_RE = re.compile(r"[^\w\s,'-]")


@dataclass(frozen=True)
class ParsedName:
    """Lowercased name parts; given names keep their order."""

    given: tuple[str, ...]
    family: str

    @property
    def first_initial(self) -> str:
        return self.given[0][0] if self.given else ""


def _tokens(text: str) -> list[str]:
    cleaned = _NAME_PUNCT_RE.sub(" ", strip_accents(text.lower()).replace(".", ". "))
    return [t.strip("'-") for t in cleaned.split() if t.strip("'-")]


def parse_name(name: str) -> ParsedName:
    """Split a display or sort-form name into given names and family name.

    Handles 'Last, First Middle', honorific prefixes, generational suffixes,
    and family-name particles ('Ludwig van Beethoven' -> family 'van beethoven').
    """
    if "," in name:
        family_part, _, given_part = name.partition(",")
        given = _tokens(given_part)
        while given and given[0] in NAME_PREFIXES:
            given.pop(0)
        while len(given) > 1 and given[-1] in NAME_SUFFIXES:
            given.pop()
        family_tokens = [t for t in _tokens(family_part) if t not in NAME_SUFFIXES]
        # "Beethoven, Ludwig van": trailing particles belong to the family name.
        while given and given[-1] in LAST_NAME_PARTICLES:
            family_tokens.insert(0, given.pop())
        return ParsedName(given=tuple(given), family=" ".join(family_tokens))

    tokens = _tokens(name)
    while tokens and tokens[0] in NAME_PREFIXES:
        tokens.pop(0)
    while len(tokens) > 1 and tokens[-1] in NAME_SUFFIXES:
        tokens.pop()
    if not tokens:
        return ParsedName(given=(), family="")
    if len(tokens) == 1:
        return ParsedName(given=(), family=tokens[0])

    family_start = len(tokens) - 1
    while family_start > 1 and tokens[family_start - 1] in LAST_NAME_PARTICLES:
        family_start -= 1
    return ParsedName(given=tuple(tokens[:family_start]), family=" ".join(tokens[family_start:]))


def author_key(name: str) -> str:
    """Equivalence key for an author: family name plus first initial."""
    parsed = parse_name(name)
    if not parsed.family:
        return ""
    if not parsed.first_initial:
        return parsed.family
    return f"{parsed.family}|{parsed.first_initial}"


def normalize_author(name: str) -> str:
    """Normalize 'Last, First' to 'first last' and lowercase."""
    parsed = parse_name(name)
    return " ".join([*parsed.given, parsed.family]).strip()


def names_match(a: str, b: str) -> bool:
    """Whether two name strings plausibly refer to the same person."""
    key_a = author_key(a)
    key_b = author_key(b)
    if not key_a or not key_b:
        return False
    family_a, _, initial_a = key_a.partition("|")
    family_b, _, initial_b = key_b.partition("|")
    if family_a != family_b:
        return False
    # A bare family name matches any given-name variant of that family.
    return not initial_a or not initial_b or initial_a == initial_b


def is_display_form(name: str) -> bool:
    """True for 'First Last' style names with at least one given name spelled out.

    Sort forms ('Orwell, George'), single names and all-initial given names
    ('G. Orwell', 'J.R.R. Tolkien') are not display forms.
    """
    if "," in name:
        return False
    parsed = parse_name(name)
    return bool(parsed.family) and any(len(given) > 1 for given in parsed.given)


def author_overlap(a: list[str] | tuple[str, ...], b: list[str] | tuple[str, ...]) -> int:
    """Count authors in a that match some author in b."""
    return sum(1 for name in a if any(names_match(name, other) for other in b))
