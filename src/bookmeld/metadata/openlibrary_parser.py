# ABOUTME: Parsing functions for Open Library API JSON responses.
# ABOUTME: Converts search docs and edition payloads into MetadataRecord instances.

from typing import Any

from bookmeld.metadata.types import CoverImage, Identifier, MetadataRecord, SeriesInfo

_COVERS_BASE_URL = "https://covers.openlibrary.org/b/isbn"

# Open Library stores MARC language codes; records carry ISO 639-1 where known.
_MARC_TO_ISO: dict[str, str] = {
    "eng": "en",
    "fre": "fr",
    "ger": "de",
    "spa": "es",
    "ita": "it",
    "por": "pt",
    "rus": "ru",
    "jpn": "ja",
    "chi": "zh",
    "dut": "nl",
    "swe": "sv",
    "pol": "pl",
    "ara": "ar",
    "kor": "ko",
}
_ISO_TO_MARC = {iso: marc for marc, iso in _MARC_TO_ISO.items()}


def to_marc_language(language: str) -> str:
    """ISO 639-1 code to the MARC code Open Library search expects."""
    code = language.strip().lower()
    return _ISO_TO_MARC.get(code[:2], code) if len(code) == 2 else code


def from_marc_language(code: str) -> str:
    return _MARC_TO_ISO.get(code, code)


def _first(values: Any) -> Any:
    if isinstance(values, list) and values:
        return values[0]
    return None


def parse_description(data: dict[str, Any]) -> str | None:
    """Extract the description from an Open Library Works response.

    Handles the OL quirk where description can be either a plain string
    or a dict with {"type": ..., "value": "actual text"}.
    """
    desc = data.get("description")
    if desc is None:
        return None
    if isinstance(desc, str):
        return desc
    if isinstance(desc, dict):
        return desc.get("value")
    return None


def parse_author_name(data: dict[str, Any]) -> str:
    """Extract the author name from an Open Library Author response."""
    return data.get("name", "Unknown")


def parse_edition_response(
    data: dict[str, Any], *, source: str, confidence: float
) -> MetadataRecord:
    """Parse an Open Library ISBN/edition endpoint response.

    Author names and the work description live behind other endpoints; the
    caller fills those in afterwards.
    """
    isbns = [*data.get("isbn_13", []), *data.get("isbn_10", [])]

    language = None
    lang_entry = _first(data.get("languages", []))
    if isinstance(lang_entry, dict):
        lang_key = lang_entry.get("key", "")
        language = from_marc_language(lang_key.rsplit("/", 1)[-1])

    identifiers: list[Identifier] = []
    work_key = None
    work = _first(data.get("works", []))
    if isinstance(work, dict) and work.get("key"):
        work_key = work["key"]
        identifiers.append(Identifier("openlibrary_work", work_key))
    if data.get("key"):
        identifiers.append(Identifier("openlibrary_edition", data["key"]))
    for isbn in isbns:
        identifiers.append(Identifier("isbn", isbn))
    for id_type, values in (data.get("identifiers") or {}).items():
        for value in values:
            identifiers.append(Identifier(id_type, str(value)))

    series = None
    series_name = _first(data.get("series", []))
    if series_name:
        series = SeriesInfo(name=series_name)

    cover = CoverImage(url=build_cover_url(isbns[0])) if isbns else None

    return MetadataRecord(
        id=data.get("key") or f"isbn:{isbns[0] if isbns else 'unknown'}",
        source=source,
        confidence=confidence,
        title=data.get("title"),
        isbn=isbns,
        publication_date=data.get("publish_date"),
        subjects=data.get("subjects", []),
        description=parse_description(data),
        language=language,
        publisher=_first(data.get("publishers", [])),
        series=series,
        edition=data.get("edition_name"),
        page_count=data.get("number_of_pages"),
        physical_dimensions=data.get("physical_dimensions"),
        identifiers=identifiers,
        cover_image=cover,
        provider_data={"work_key": work_key, "physical_format": data.get("physical_format")},
    )


def parse_search_doc(doc: dict[str, Any], *, source: str, confidence: float) -> MetadataRecord:
    """Parse one doc from the Open Library search API."""
    isbns = doc.get("isbn", [])
    work_key = doc.get("key")

    identifiers: list[Identifier] = []
    if work_key:
        identifiers.append(Identifier("openlibrary_work", work_key))

    language = _first(doc.get("language", []))
    year = doc.get("first_publish_year")

    return MetadataRecord(
        id=work_key or f"search:{doc.get('title', 'unknown')}",
        source=source,
        confidence=confidence,
        title=doc.get("title"),
        authors=doc.get("author_name", []),
        isbn=isbns,
        publication_date=str(year) if year else None,
        subjects=doc.get("subject", [])[:20],
        language=from_marc_language(language) if language else None,
        publisher=_first(doc.get("publisher", [])),
        page_count=doc.get("number_of_pages_median"),
        identifiers=identifiers,
        cover_image=CoverImage(url=build_cover_url(isbns[0])) if isbns else None,
        provider_data={"work_key": work_key, "edition_count": doc.get("edition_count")},
    )


def parse_search_results(
    data: dict[str, Any], *, source: str, confidence: float = 0.5
) -> list[MetadataRecord]:
    """Parse an Open Library Search API response into records."""
    return [
        parse_search_doc(doc, source=source, confidence=confidence)
        for doc in data.get("docs", [])
    ]


def build_cover_url(isbn: str, size: str = "L") -> str:
    """Build an Open Library cover image URL for a given ISBN.

    Args:
        isbn: The ISBN to look up cover art for.
        size: Image size, "S" (small), "M" (medium), or "L" (large).
    """
    return f"{_COVERS_BASE_URL}/{isbn}-{size}.jpg"
