# ABOUTME: Hand-written fake metadata providers and record builders for tests.
# ABOUTME: Static, failing, slow, and flaky providers exercise the coordinator without a network.

import threading
import time
from datetime import datetime, timezone
from typing import Any

from bookmeld.metadata.http import MetadataFetchError
from bookmeld.metadata.provider import (
    DEFAULT_RELIABILITY_SCORES,
    BaseMetadataProvider,
    RateLimitConfig,
    TimeoutConfig,
)
from bookmeld.metadata.types import MetadataRecord, MultiCriteriaQuery

FIXED_TIMESTAMP = datetime(2024, 1, 1, tzinfo=timezone.utc)

_counter = 0


def make_record(source: str = "alpha", *, id: str | None = None, confidence: float = 0.8, **fields: Any) -> MetadataRecord:
    """Build a MetadataRecord with a fixed timestamp and a unique id unless one is given."""
    global _counter
    _counter += 1
    return MetadataRecord(
        id=id or f"{source}-{_counter}",
        source=source,
        confidence=confidence,
        timestamp=FIXED_TIMESTAMP,
        **fields,
    )


class StaticProvider(BaseMetadataProvider):
    """Returns the same canned records for every search and records each call."""

    rate_limit = RateLimitConfig(max_requests=1000, window_seconds=60.0, request_delay=0.0)
    timeout = TimeoutConfig(request_timeout=2.0, operation_timeout=5.0)

    def __init__(
        self,
        name: str,
        records: list[MetadataRecord] | None = None,
        *,
        isbn_records: list[MetadataRecord] | None = None,
        priority: int = 0,
        reliability: dict[str, float] | None = None,
    ) -> None:
        self.name = name
        self.priority = priority
        self._records = list(records or [])
        self._isbn_records = isbn_records
        self.calls: list[tuple[str, Any]] = []
        self._lock = threading.Lock()
        if reliability is not None:
            self.reliability_scores = {**DEFAULT_RELIABILITY_SCORES, **reliability}

    def _record_call(self, kind: str, arg: Any) -> None:
        with self._lock:
            self.calls.append((kind, arg))

    def search_by_title(self, title: str, *, fuzzy: bool = False) -> list[MetadataRecord]:
        self._record_call("title", title)
        return list(self._records)

    def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        self._record_call("isbn", isbn)
        if self._isbn_records is not None:
            return list(self._isbn_records)
        return list(self._records)

    def search_by_creator(
        self, name: str, *, role: str | None = None, fuzzy: bool = False
    ) -> list[MetadataRecord]:
        self._record_call("creator", name)
        return list(self._records)

    def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        self._record_call("multi", query)
        return list(self._records)


class FailingProvider(StaticProvider):
    """Raises on every search."""

    def __init__(self, name: str, error: Exception | None = None) -> None:
        super().__init__(name)
        self._error = error or RuntimeError(f"{name} is down")

    def search_by_title(self, title: str, *, fuzzy: bool = False) -> list[MetadataRecord]:
        self._record_call("title", title)
        raise self._error

    def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        self._record_call("isbn", isbn)
        raise self._error

    def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        self._record_call("multi", query)
        raise self._error


class SlowProvider(StaticProvider):
    """Sleeps before answering, to trip request and operation timeouts."""

    def __init__(
        self,
        name: str,
        delay: float,
        records: list[MetadataRecord] | None = None,
        *,
        request_timeout: float = 2.0,
    ) -> None:
        super().__init__(name, records)
        self._delay = delay
        self.timeout = TimeoutConfig(request_timeout=request_timeout, operation_timeout=5.0)

    def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        time.sleep(self._delay)
        return super().search_multi_criteria(query)

    def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        time.sleep(self._delay)
        return super().search_by_isbn(isbn)


class FlakyProvider(StaticProvider):
    """Fails with a transient error for the first few calls, then answers."""

    def __init__(
        self, name: str, failures: int, records: list[MetadataRecord] | None = None
    ) -> None:
        super().__init__(name, records)
        self._failures_left = failures

    def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        with self._lock:
            self.calls.append(("multi", query))
            if self._failures_left > 0:
                self._failures_left -= 1
                raise MetadataFetchError("HTTP 503 from fake", status_code=503)
        return list(self._records)
