# ABOUTME: Integration tests for the Open Library provider over the real HTTP client.
# ABOUTME: Routes httpx requests to canned payloads and runs lookups through the query coordinator.

import pytest

from bookmeld.metadata.coordinator import CoordinatorConfig, QueryCoordinator, RetryPolicy
from bookmeld.metadata.http import BookmeldHttpClient, MetadataFetchError
from bookmeld.metadata.openlibrary import OpenLibraryProvider
from bookmeld.metadata.types import IsbnQuery, MultiCriteriaQuery
from tests.fixtures.openlibrary_responses import (
    AUTHOR_ORWELL,
    EDITION_1984,
    SEARCH_1984,
    WORK_DICT_DESCRIPTION,
)
from tests.fixtures.transport import RoutingTransport

NO_RETRY = CoordinatorConfig(retry=RetryPolicy(max_retries=0, base_delay=0.0))

ROUTES = {
    "/isbn/9780451524935.json": EDITION_1984,
    "/authors/OL200A.json": AUTHOR_ORWELL,
    "/works/OL100W.json": WORK_DICT_DESCRIPTION,
    "/search.json": SEARCH_1984,
}


def _provider(transport: RoutingTransport) -> OpenLibraryProvider:
    client = BookmeldHttpClient(min_request_interval=0.0, retry_delay=0.0, transport=transport)
    return OpenLibraryProvider(client)


class TestOpenLibraryOverHttp:
    """Tests for the provider with BookmeldHttpClient underneath."""

    def test_isbn_lookup_follows_up(self) -> None:
        """An ISBN lookup fetches the edition, then its author and work."""
        transport = RoutingTransport(dict(ROUTES))
        records = _provider(transport).search_by_isbn("978-0-451-52493-5")
        assert transport.paths() == [
            "/isbn/9780451524935.json",
            "/authors/OL200A.json",
            "/works/OL100W.json",
        ]
        record = records[0]
        assert record.title == "1984"
        assert record.authors == ("George Orwell",)
        assert record.description == "A dystopian novel about totalitarian surveillance."
        assert record.page_count == 328

    def test_transient_status_retried(self) -> None:
        """A 503 on the edition endpoint is retried by the client."""
        routes = dict(ROUTES)
        routes["/isbn/9780451524935.json"] = [503, EDITION_1984]
        transport = RoutingTransport(routes)
        records = _provider(transport).search_by_isbn("9780451524935")
        assert records[0].title == "1984"
        assert transport.paths().count("/isbn/9780451524935.json") == 2

    def test_missing_author_leaves_authors_empty(self) -> None:
        """A failed follow-up lookup does not fail the record."""
        routes = dict(ROUTES)
        del routes["/authors/OL200A.json"]
        records = _provider(RoutingTransport(routes)).search_by_isbn("9780451524935")
        assert records[0].authors == ()

    def test_unknown_isbn_raises(self) -> None:
        """A 404 on the primary request surfaces as MetadataFetchError."""
        with pytest.raises(MetadataFetchError) as excinfo:
            _provider(RoutingTransport({})).search_by_isbn("9780000000002")
        assert excinfo.value.status_code == 404

    def test_search_sends_params(self) -> None:
        """Title and author go to the search endpoint as separate parameters."""
        transport = RoutingTransport(dict(ROUTES))
        records = _provider(transport).search_multi_criteria(
            MultiCriteriaQuery(title="1984", authors=("George Orwell",))
        )
        params = transport.requests[0].url.params
        assert params["title"] == "1984"
        assert params["author"] == "George Orwell"
        assert records[0].title == "1984"
        assert records[0].confidence >= records[-1].confidence


class TestThroughCoordinator:
    """Tests for Open Library fanned out by the query coordinator."""

    def test_isbn_query(self) -> None:
        """The coordinator returns the provider's record and a success stat."""
        coordinator = QueryCoordinator([_provider(RoutingTransport(dict(ROUTES)))], NO_RETRY)
        result = coordinator.query(IsbnQuery(isbn="9780451524935"))
        assert result.successful_providers == 1
        assert result.records[0].source == "openlibrary"
        assert result.provider_stats[0].record_count == 1

    def test_server_errors_become_failed_stats(self) -> None:
        """Exhausted HTTP retries are a failed provider, not an exception."""
        routes = {"/search.json": 500}
        coordinator = QueryCoordinator([_provider(RoutingTransport(routes))], NO_RETRY)
        result = coordinator.query(MultiCriteriaQuery(title="1984"))
        assert result.records == ()
        stats = result.provider_stats[0]
        assert not stats.success
        assert "HTTP 500" in (stats.error or "")
