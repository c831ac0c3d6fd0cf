# ABOUTME: Open Library metadata provider implementation.
# ABOUTME: Searches openlibrary.org by title, ISBN, creator, or combined criteria and returns scored records.

import logging
import re
from dataclasses import replace
from typing import Any

from bookmeld.metadata import types as mt
from bookmeld.metadata.http import HttpClient, MetadataFetchError
from bookmeld.metadata.openlibrary_parser import (
    parse_author_name,
    parse_description,
    parse_edition_response,
    parse_search_results,
    to_marc_language,
)
from bookmeld.metadata.provider import (
    DEFAULT_RELIABILITY_SCORES,
    BaseMetadataProvider,
    RateLimitConfig,
    TimeoutConfig,
)
from bookmeld.metadata.scoring import score_record
from bookmeld.metadata.types import MetadataRecord, MultiCriteriaQuery

logger = logging.getLogger(__name__)

_OL_BASE = "https://openlibrary.org"
_SEARCH_LIMIT = 5
_ISBN_CONFIDENCE = 0.95

# Matches a colon followed by a space and remaining text (subtitle pattern).
_SUBTITLE_RE = re.compile(r"\s*:\s+.+$")


def _strip_subtitle(title: str) -> str | None:
    """Remove subtitle from a title string (text after ": ").

    Returns the stripped title, or None if no subtitle was found or
    stripping would produce an identical or empty string.
    """
    stripped = _SUBTITLE_RE.sub("", title).strip()
    if stripped and stripped != title.strip():
        return stripped
    return None


class OpenLibraryProvider(BaseMetadataProvider):
    """Metadata provider backed by the Open Library API.

    ISBN lookups go to the edition endpoint and are followed up with the work
    and author endpoints. Every other search goes through search.json. Failures
    of the primary request raise MetadataFetchError for the coordinator to
    handle; failed follow-up requests only leave fields empty.
    """

    name = "openlibrary"
    priority = 10
    rate_limit = RateLimitConfig(max_requests=60, window_seconds=60.0, request_delay=0.5)
    timeout = TimeoutConfig(request_timeout=10.0, operation_timeout=30.0)
    reliability_scores = {
        **DEFAULT_RELIABILITY_SCORES,
        mt.ISBN: 0.95,
        mt.TITLE: 0.85,
        mt.PUBLISHER: 0.7,
        mt.PAGE_COUNT: 0.7,
    }
    supported_types = frozenset(
        {
            mt.TITLE,
            mt.AUTHORS,
            mt.ISBN,
            mt.PUBLICATION_DATE,
            mt.SUBJECTS,
            mt.DESCRIPTION,
            mt.LANGUAGE,
            mt.PUBLISHER,
            mt.SERIES,
            mt.PAGE_COUNT,
            mt.COVER_IMAGE,
        }
    )

    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        """Look up one edition by ISBN and enrich it from its work and authors."""
        clean = re.sub(r"[\s-]", "", isbn)
        data = self._http.get(f"{_OL_BASE}/isbn/{clean}.json")

        record = parse_edition_response(data, source=self.name, confidence=_ISBN_CONFIDENCE)
        updates: dict[str, Any] = {}
        authors = self._resolve_authors(data.get("authors", []))
        if authors:
            updates["authors"] = tuple(authors)
        work_key = record.provider_data.get("work_key")
        if work_key and record.description is None:
            description = self._fetch_description(work_key)
            if description:
                updates["description"] = description
        return [replace(record, **updates)] if updates else [record]

    def search_by_title(self, title: str, *, fuzzy: bool = False) -> list[MetadataRecord]:
        """Search by title, retrying without a subtitle when nothing matches."""
        query = MultiCriteriaQuery(title=title, fuzzy=fuzzy)
        records = self._search(query)
        if not records:
            stripped = _strip_subtitle(title)
            if stripped:
                records = self._search(MultiCriteriaQuery(title=stripped, fuzzy=fuzzy))
        return records

    def search_by_creator(
        self, name: str, *, role: str | None = None, fuzzy: bool = False
    ) -> list[MetadataRecord]:
        # Open Library search has no notion of contributor roles.
        return self._search(MultiCriteriaQuery(authors=(name,), fuzzy=fuzzy))

    def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        if query.isbn and not query.title and not query.authors:
            return self.search_by_isbn(query.isbn)
        return self._search(query)

    def _search(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        """Execute one search.json request and score the docs against the query.

        Returns records sorted by confidence descending.
        """
        params = self._build_params(query)
        data = self._http.get(f"{_OL_BASE}/search.json", params=params)
        records = [
            replace(record, confidence=score_record(query, record))
            for record in parse_search_results(data, source=self.name)
        ]
        records.sort(key=lambda r: r.confidence, reverse=True)
        return records

    @staticmethod
    def _build_params(query: MultiCriteriaQuery) -> dict[str, str]:
        params: dict[str, str] = {"limit": str(_SEARCH_LIMIT)}
        terms: list[str] = []
        if query.title:
            # Fuzzy searches go through the general q field instead of the title index.
            if query.fuzzy:
                terms.append(query.title)
            else:
                params["title"] = query.title
        if query.authors:
            params["author"] = query.authors[0]
        if query.isbn:
            params["isbn"] = re.sub(r"[\s-]", "", query.isbn)
        if query.language:
            params["language"] = to_marc_language(query.language)
        if query.publisher:
            params["publisher"] = query.publisher
        if query.subjects:
            params["subject"] = query.subjects[0]
        if query.year_range:
            start, end = query.year_range
            terms.append(f"first_publish_year:[{start} TO {end}]")
        if terms:
            params["q"] = " ".join(terms)
        return params

    def _resolve_authors(self, entries: list[dict[str, Any]]) -> list[str]:
        """Fetch author names from the authors endpoint, skipping failures."""
        authors: list[str] = []
        for entry in entries:
            key = entry.get("key", "")
            if not key:
                continue
            try:
                authors.append(parse_author_name(self._http.get(f"{_OL_BASE}{key}.json")))
            except MetadataFetchError as exc:
                logger.warning("Author lookup failed for %s: %s", key, exc)
        return authors

    def _fetch_description(self, work_key: str) -> str | None:
        try:
            works_data = self._http.get(f"{_OL_BASE}{work_key}.json")
        except MetadataFetchError as exc:
            logger.warning("Work lookup failed for %s: %s", work_key, exc)
            return None
        return parse_description(works_data)
