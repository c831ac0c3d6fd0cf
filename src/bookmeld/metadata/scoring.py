# ABOUTME: Per-record match scoring used by providers to assign instance confidence.
# ABOUTME: Compares a returned record against the query that produced it using weighted field similarity.

from bookmeld.metadata.names import author_overlap
from bookmeld.metadata.similarity import canonical_isbn, title_similarity
from bookmeld.metadata.types import MetadataRecord, MultiCriteriaQuery

# Match weights, summing to 1.0.
_WEIGHT_TITLE = 0.4
_WEIGHT_AUTHOR = 0.3
_WEIGHT_ISBN = 0.2
_WEIGHT_LANGUAGE = 0.1

# Completeness bonus, added on top of the match score.
_COMPLETENESS_BONUS = 0.10

# Per-field weights within the completeness bonus (must sum to 1.0).
_COMPLETENESS_FIELDS: dict[str, float] = {
    "description": 0.40,
    "isbn": 0.30,
    "authors": 0.15,
    "language": 0.10,
    "publisher": 0.05,
}


def score_record(query: MultiCriteriaQuery, record: MetadataRecord) -> float:
    """Score how well a provider record matches the query that found it.

    Only criteria present in the query contribute, and the weighted sum is
    rescaled over those criteria so a title-only query can still reach 1.0.
    Returns a float clamped to [0.0, 1.0].
    """
    score = 0.0
    weight_used = 0.0

    if query.title:
        weight_used += _WEIGHT_TITLE
        score += _WEIGHT_TITLE * title_similarity(query.title, record.title)

    if query.authors:
        weight_used += _WEIGHT_AUTHOR
        if record.authors:
            overlap = author_overlap(query.authors, record.authors) / len(query.authors)
            score += _WEIGHT_AUTHOR * min(1.0, overlap)

    if query.isbn:
        weight_used += _WEIGHT_ISBN
        wanted = canonical_isbn(query.isbn)
        if any(canonical_isbn(i) == wanted for i in record.isbn):
            score += _WEIGHT_ISBN

    if query.language:
        weight_used += _WEIGHT_LANGUAGE
        if record.language and record.language.lower()[:2] == query.language.lower()[:2]:
            score += _WEIGHT_LANGUAGE

    match = score / weight_used if weight_used else 0.5
    return max(0.0, min(1.0, match * (1.0 - _COMPLETENESS_BONUS) + completeness_bonus(record)))


def completeness_bonus(record: MetadataRecord) -> float:
    """Small bonus for populated fields so rich records float above sparse stubs.

    Returns a value in [0.0, _COMPLETENESS_BONUS].
    """
    filled = 0.0
    for field_name, weight in _COMPLETENESS_FIELDS.items():
        if record.get_field(field_name) is not None:
            filled += weight
    return _COMPLETENESS_BONUS * filled
