# ABOUTME: EPUB metadata extraction using ebooklib.
# ABOUTME: Produces ExtractedMetadata with typed identifiers and role-tagged contributors.

import logging
from pathlib import Path

import isbnlib
from ebooklib import epub

from bookmeld.metadata.extracted import (
    AUTHOR_ROLE,
    Contributor,
    ExtractedIdentifier,
    ExtractedMetadata,
    ExtractedSeries,
)
from bookmeld.metadata.similarity import clean_isbn

logger = logging.getLogger(__name__)

_ISBN_SCHEMES = frozenset({"isbn", "isbn10", "isbn-10", "isbn13", "isbn-13"})
_ASIN_SCHEMES = frozenset({"asin", "mobi-asin", "amazon"})
_URN_PREFIXES = {"urn:isbn:": "isbn", "urn:uuid:": "uuid"}


class EpubReadError(Exception):
    """Raised when an EPUB file cannot be read or parsed."""


def _get_metadata_value(book: epub.EpubBook, namespace: str, name: str) -> str | None:
    values = book.get_metadata(namespace, name)
    if not values:
        return None
    # Entries are (value, attributes) tuples.
    value = values[0][0]
    return str(value).strip() if value else None


def _get_calibre_meta(book: epub.EpubBook, name: str) -> str | None:
    """Content of a <meta name="calibre:NAME" content=...> element.

    Read back from a file, ebooklib files these under the calibre prefix (or
    its namespace URI) keyed by the bare name; books built in memory keep the
    full prefixed name.
    """
    for namespace, entries in book.metadata.items():
        candidates = list(entries.get(f"calibre:{name}", []))
        if namespace and "calibre" in namespace:
            candidates.extend(entries.get(name, []))
        for value, attrs in candidates:
            content = (attrs or {}).get("content") or value
            if content:
                return str(content).strip()
    return None


def _looks_like_isbn(value: str) -> bool:
    cleaned = clean_isbn(value)
    if cleaned != value.replace("-", "").replace(" ", "").upper():
        return False
    return isbnlib.is_isbn10(cleaned) or isbnlib.is_isbn13(cleaned)


def _identifier_type(value: str, attrs: dict) -> tuple[str, str]:
    """Classify one dc:identifier as (type, value)."""
    lowered = value.lower()
    for prefix, id_type in _URN_PREFIXES.items():
        if lowered.startswith(prefix):
            return id_type, value[len(prefix) :]

    scheme = ""
    for key, attr_value in attrs.items():
        if key.endswith("scheme"):
            scheme = str(attr_value).lower()
            break
    if scheme in _ISBN_SCHEMES:
        return "isbn", value
    if scheme in _ASIN_SCHEMES:
        return "asin", value
    if _looks_like_isbn(value):
        return "isbn", value
    return scheme or "id", value


def _get_identifiers(book: epub.EpubBook) -> list[ExtractedIdentifier]:
    identifiers: list[ExtractedIdentifier] = []
    for value, attrs in book.get_metadata("DC", "identifier"):
        if not value:
            continue
        id_type, id_value = _identifier_type(str(value).strip(), attrs or {})
        identifiers.append(ExtractedIdentifier(type=id_type, value=id_value))
    return identifiers


def _get_contributors(book: epub.EpubBook) -> list[Contributor]:
    """Creators default to the author role; contributors need an explicit one."""
    contributors: list[Contributor] = []
    for element, default_role in (("creator", AUTHOR_ROLE), ("contributor", None)):
        for value, attrs in book.get_metadata("DC", element):
            if not value:
                continue
            attrs = attrs or {}
            role = next((v for k, v in attrs.items() if k.endswith("role")), default_role)
            if role is None:
                continue
            sort_key = next((v for k, v in attrs.items() if k.endswith("file-as")), None)
            contributors.append(
                Contributor(name=str(value).strip(), roles=(str(role),), sorting_key=sort_key)
            )
    return contributors


def _get_series(book: epub.EpubBook) -> list[ExtractedSeries]:
    name = _get_calibre_meta(book, "series")
    if not name:
        return []
    index = _get_calibre_meta(book, "series_index")
    try:
        position = float(index) if index else None
    except ValueError:
        logger.debug("Ignoring non-numeric series index %r", index)
        position = None
    return [ExtractedSeries(name=name, position=position)]


def read_epub_metadata(path: Path) -> ExtractedMetadata:
    """Extract metadata from an EPUB file.

    A file without a dc:title falls back to its filename stem.

    Raises:
        EpubReadError: If the file cannot be read or parsed.
    """
    if not path.exists():
        raise EpubReadError(f"File not found: {path}")

    try:
        book = epub.read_epub(str(path), options={"ignore_ncx": True})
    except Exception as exc:
        raise EpubReadError(f"Failed to read EPUB: {path}: {exc}") from exc

    title = _get_metadata_value(book, "DC", "title") or path.stem
    properties = {}
    publisher = _get_metadata_value(book, "DC", "publisher")
    if publisher:
        properties["publisher"] = publisher

    return ExtractedMetadata(
        title=title,
        synopsis=_get_metadata_value(book, "DC", "description"),
        language=_get_metadata_value(book, "DC", "language"),
        date_published=_get_metadata_value(book, "DC", "date"),
        legal_information=_get_metadata_value(book, "DC", "rights"),
        identifiers=_get_identifiers(book),
        contributors=_get_contributors(book),
        properties=properties,
        series=_get_series(book),
        subjects=[str(v).strip() for v, _ in book.get_metadata("DC", "subject") if v],
    )
