# ABOUTME: Query coordinator that fans one query out to every enabled metadata provider.
# ABOUTME: Enforces per-provider timeouts, rate limits, and retries; isolates failures and aggregates records.

import logging
import threading
import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field, replace

import httpx

from bookmeld.metadata.confidence import ConfidenceFactors, calculate_confidence_factors
from bookmeld.metadata.config import check_non_negative, check_positive
from bookmeld.metadata.http import MetadataFetchError
from bookmeld.metadata.names import author_key
from bookmeld.metadata.provider import MetadataProvider, ProviderRegistry
from bookmeld.metadata.ratelimit import RateLimitExceededError, SlidingWindowRateLimiter
from bookmeld.metadata.similarity import canonical_isbn, normalize_title
from bookmeld.metadata.strategy import QueryStrategyBuilder, ResultQuality
from bookmeld.metadata.types import (
    CreatorQuery,
    IsbnQuery,
    MetadataRecord,
    MultiCriteriaQuery,
    Query,
    TitleQuery,
)

logger = logging.getLogger(__name__)

_SCALAR_FIELDS = (
    "title",
    "publication_date",
    "description",
    "language",
    "publisher",
    "series",
    "edition",
    "page_count",
    "physical_dimensions",
    "cover_image",
)


class ProviderTimeoutError(Exception):
    """Raised when a provider call runs past its request timeout."""


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for transient provider failures."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_backoff_delay: float = 30.0

    def __post_init__(self) -> None:
        check_non_negative("max_retries", self.max_retries)
        check_non_negative("base_delay", self.base_delay)
        check_non_negative("max_backoff_delay", self.max_backoff_delay)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based failed attempt."""
        return min(self.max_backoff_delay, self.base_delay * (2**attempt))


# Failures worth retrying. Anything else fails the provider on the first attempt.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    MetadataFetchError,
    ProviderTimeoutError,
    ConnectionError,
    TimeoutError,
    httpx.TransportError,
)


@dataclass(frozen=True)
class CoordinatorConfig:
    """Coordinator-wide limits.

    default_request_timeout applies to providers that do not declare their own.
    operation_timeout bounds the whole fan-out, retries included.
    """

    default_request_timeout: float = 10.0
    operation_timeout: float = 30.0
    retry: RetryPolicy = RetryPolicy()
    min_providers: int = 1

    def __post_init__(self) -> None:
        check_positive("default_request_timeout", self.default_request_timeout)
        check_positive("operation_timeout", self.operation_timeout)
        check_non_negative("min_providers", self.min_providers)


@dataclass(frozen=True)
class ProviderStats:
    """Outcome of one provider's part in a query."""

    provider: str
    success: bool
    record_count: int = 0
    duration: float = 0.0
    attempts: int = 0
    error: str | None = None
    timed_out: bool = False


@dataclass(frozen=True)
class AggregatedResult:
    """Everything one coordinated query produced."""

    records: tuple[MetadataRecord, ...]
    all_records: tuple[MetadataRecord, ...]
    total_records: int
    successful_providers: int
    failed_providers: int
    provider_stats: tuple[ProviderStats, ...]
    consensus: ConfidenceFactors
    meets_min_providers: bool

    @property
    def timed_out_providers(self) -> int:
        return sum(1 for s in self.provider_stats if s.timed_out)


@dataclass(frozen=True)
class FallbackSearchResult:
    """The result of walking a query strategy until one query was good enough."""

    result: AggregatedResult
    query_used: Query
    attempted_queries: tuple[Query, ...]
    quality: ResultQuality
    provider_stats: tuple[ProviderStats, ...] = field(default=())


def dispatch_query(provider: MetadataProvider, criteria: Query) -> list[MetadataRecord]:
    """Call the provider search that matches the query type."""
    if isinstance(criteria, TitleQuery):
        return provider.search_by_title(criteria.title, fuzzy=criteria.fuzzy)
    if isinstance(criteria, IsbnQuery):
        return provider.search_by_isbn(criteria.isbn)
    if isinstance(criteria, CreatorQuery):
        return provider.search_by_creator(criteria.name, role=criteria.role, fuzzy=criteria.fuzzy)
    if isinstance(criteria, MultiCriteriaQuery):
        return provider.search_multi_criteria(criteria)
    raise TypeError(f"Unsupported query type: {type(criteria).__name__}")


def _dedup_key(record: MetadataRecord) -> str:
    for isbn in record.isbn:
        canonical = canonical_isbn(isbn)
        if canonical:
            return f"isbn:{canonical}"
    if record.title:
        return f"title:{normalize_title(record.title)}"
    return f"record:{record.source}:{record.id}"


def _union(values: list[tuple], key) -> tuple:
    seen: set = set()
    merged: list = []
    for group in values:
        for value in group:
            k = key(value)
            if k in seen:
                continue
            seen.add(k)
            merged.append(value)
    return tuple(merged)


def merge_records(group: Sequence[MetadataRecord]) -> MetadataRecord:
    """Merge records describing one book into a single record.

    The highest-confidence record leads. List fields are unioned in
    confidence order and scalars the leader lacks are filled from the rest.
    """
    if len(group) == 1:
        return group[0]
    ordered = sorted(group, key=lambda r: -r.confidence)
    lead = ordered[0]

    updates: dict = {
        "authors": _union([r.authors for r in ordered], lambda a: author_key(a) or a.lower()),
        "isbn": _union([r.isbn for r in ordered], canonical_isbn),
        "subjects": _union([r.subjects for r in ordered], str.lower),
        "identifiers": _union(
            [r.identifiers for r in ordered], lambda i: (i.type.lower(), i.value)
        ),
    }
    for name in _SCALAR_FIELDS:
        if lead.get_field(name) is not None:
            continue
        for other in ordered[1:]:
            value = other.get_field(name)
            if value is not None:
                updates[name] = value
                break

    provider_data = dict(lead.provider_data)
    provider_data["merged_from"] = tuple(r.source for r in ordered)
    updates["provider_data"] = provider_data
    return replace(lead, **updates)


def aggregate_records(records: Sequence[MetadataRecord]) -> list[MetadataRecord]:
    """De-duplicate records by ISBN, or by normalized title when no ISBN is known.

    Groups keep the order in which their first record arrived.
    """
    groups: dict[str, list[MetadataRecord]] = {}
    for record in records:
        groups.setdefault(_dedup_key(record), []).append(record)
    return [merge_records(group) for group in groups.values()]


class QueryCoordinator:
    """Runs a query against every enabled provider concurrently.

    Each provider gets its own worker. A provider that raises, times out, or
    runs out of rate-limit budget is recorded as failed in its ProviderStats;
    query() itself never raises for provider problems. The rate limiter is
    owned by this coordinator and shared by all of its queries.
    """

    def __init__(
        self,
        providers: ProviderRegistry | Sequence[MetadataProvider],
        config: CoordinatorConfig | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
    ) -> None:
        if isinstance(providers, ProviderRegistry):
            self._registry = providers
        else:
            self._registry = ProviderRegistry(list(providers))
        self._config = config or CoordinatorConfig()
        self._rate_limiter = rate_limiter or SlidingWindowRateLimiter()

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def config(self) -> CoordinatorConfig:
        return self._config

    @property
    def rate_limiter(self) -> SlidingWindowRateLimiter:
        return self._rate_limiter

    def _select_providers(self, names: Sequence[str] | None) -> list[MetadataProvider]:
        providers = self._registry.enabled_providers()
        if names is None:
            return providers
        wanted = set(names)
        return [p for p in providers if p.name in wanted]

    def _request_timeout(self, provider: MetadataProvider) -> float:
        timeout = getattr(provider, "timeout", None)
        if timeout is None:
            return self._config.default_request_timeout
        return timeout.request_timeout

    def query(
        self,
        criteria: Query,
        *,
        providers: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> AggregatedResult:
        """Fan a query out to the enabled providers and aggregate what comes back.

        Args:
            criteria: A title, ISBN, creator, or multi-criteria query.
            providers: Restrict the fan-out to these provider names.
            timeout: Overall deadline in seconds; defaults to the configured
                operation_timeout.

        Returns:
            The aggregated records plus per-provider outcomes. Providers still
            running at the deadline are abandoned and reported as timed out.

        Raises:
            TypeError: If criteria is not a known query type.
        """
        if not isinstance(criteria, (TitleQuery, IsbnQuery, CreatorQuery, MultiCriteriaQuery)):
            raise TypeError(f"Unsupported query type: {type(criteria).__name__}")

        selected = self._select_providers(providers)
        operation_timeout = timeout if timeout is not None else self._config.operation_timeout
        if not selected:
            logger.warning("No enabled providers for query %r", criteria)
            return self._build_result([], [])

        deadline = time.monotonic() + operation_timeout
        cancel_event = threading.Event()
        per_attempt_workers = len(selected) * (self._config.retry.max_retries + 1)
        call_pool = ThreadPoolExecutor(
            max_workers=per_attempt_workers, thread_name_prefix="bookmeld-call"
        )
        task_pool = ThreadPoolExecutor(
            max_workers=len(selected), thread_name_prefix="bookmeld-provider"
        )
        try:
            futures: dict[Future, MetadataProvider] = {
                task_pool.submit(
                    self._run_provider, provider, criteria, call_pool, deadline, cancel_event
                ): provider
                for provider in selected
            }
            done, not_done = wait(futures, timeout=operation_timeout)
            if not_done:
                logger.warning(
                    "Operation deadline of %.1fs passed with %d provider(s) still running",
                    operation_timeout,
                    len(not_done),
                )
            cancel_event.set()

            outcomes: dict[str, tuple[ProviderStats, list[MetadataRecord]]] = {}
            for future, provider in futures.items():
                if future in done:
                    outcomes[provider.name] = future.result()
                else:
                    outcomes[provider.name] = (
                        ProviderStats(
                            provider=provider.name,
                            success=False,
                            duration=operation_timeout,
                            error="Operation deadline exceeded",
                            timed_out=True,
                        ),
                        [],
                    )
        finally:
            task_pool.shutdown(wait=False, cancel_futures=True)
            call_pool.shutdown(wait=False, cancel_futures=True)

        stats = [outcomes[p.name][0] for p in selected]
        records = [record for p in selected for record in outcomes[p.name][1]]
        return self._build_result(stats, records)

    def _build_result(
        self, stats: list[ProviderStats], records: list[MetadataRecord]
    ) -> AggregatedResult:
        successful = sum(1 for s in stats if s.success)
        return AggregatedResult(
            records=tuple(aggregate_records(records)),
            all_records=tuple(records),
            total_records=len(records),
            successful_providers=successful,
            failed_providers=len(stats) - successful,
            provider_stats=tuple(stats),
            consensus=calculate_confidence_factors(records),
            meets_min_providers=successful >= self._config.min_providers,
        )

    def _run_provider(
        self,
        provider: MetadataProvider,
        criteria: Query,
        call_pool: ThreadPoolExecutor,
        deadline: float,
        cancel_event: threading.Event,
    ) -> tuple[ProviderStats, list[MetadataRecord]]:
        """Run one provider's attempts; always returns, never raises."""
        start = time.monotonic()
        retry = self._config.retry
        request_timeout = self._request_timeout(provider)
        attempts = 0
        last_error: BaseException | None = None

        while attempts <= retry.max_retries and not cancel_event.is_set():
            attempts += 1
            try:
                self._rate_limiter.acquire(
                    provider.name, provider.rate_limit, deadline=deadline, cancel_event=cancel_event
                )
                records = self._attempt(provider, criteria, call_pool, request_timeout, deadline)
            except RateLimitExceededError as exc:
                logger.warning("Provider %s rate limited: %s", provider.name, exc)
                last_error = exc
                break
            except TRANSIENT_ERRORS as exc:
                last_error = exc
                if attempts > retry.max_retries:
                    break
                delay = retry.delay_for(attempts - 1)
                if time.monotonic() + delay >= deadline:
                    break
                logger.warning(
                    "Provider %s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    provider.name,
                    exc,
                    delay,
                    attempts,
                    retry.max_retries,
                )
                if cancel_event.wait(delay):
                    break
                continue
            except Exception as exc:
                last_error = exc
                break

            duration = time.monotonic() - start
            logger.debug(
                "Provider %s returned %d record(s) in %.2fs", provider.name, len(records), duration
            )
            return (
                ProviderStats(
                    provider=provider.name,
                    success=True,
                    record_count=len(records),
                    duration=duration,
                    attempts=attempts,
                ),
                records,
            )

        duration = time.monotonic() - start
        message = str(last_error) if last_error is not None else "Operation cancelled"
        logger.warning(
            "Provider %s failed after %d attempt(s): %s", provider.name, attempts, message
        )
        return (
            ProviderStats(
                provider=provider.name,
                success=False,
                duration=duration,
                attempts=attempts,
                error=message,
                timed_out=isinstance(last_error, ProviderTimeoutError) or last_error is None,
            ),
            [],
        )

    @staticmethod
    def _attempt(
        provider: MetadataProvider,
        criteria: Query,
        call_pool: ThreadPoolExecutor,
        request_timeout: float,
        deadline: float,
    ) -> list[MetadataRecord]:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ProviderTimeoutError(f"No time left to call {provider.name}")
        timeout = min(request_timeout, remaining)
        future = call_pool.submit(dispatch_query, provider, criteria)
        try:
            result = future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise ProviderTimeoutError(
                f"{provider.name} did not answer within {timeout:.1f}s"
            ) from exc
        return list(result or [])

    def query_with_fallbacks(
        self,
        query: Query,
        builder: QueryStrategyBuilder | None = None,
        *,
        min_results: int = 1,
        min_confidence: float = 0.6,
        providers: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> FallbackSearchResult:
        """Run a query, then its relaxed fallbacks, until results are good enough.

        timeout is one deadline shared by every query issued; once it has
        passed no further fallback is tried. Running out of fallbacks or time
        is not an error: the best result seen is returned with a quality
        verdict that does not meet the threshold.
        """
        builder = builder or QueryStrategyBuilder()
        strategy = builder.build_strategy(query)
        candidates: list[Query] = [query, *strategy.fallbacks]
        budget = timeout if timeout is not None else self._config.operation_timeout
        deadline = time.monotonic() + budget

        attempted: list[Query] = []
        stats: list[ProviderStats] = []
        best: tuple[AggregatedResult, Query, ResultQuality] | None = None
        for candidate in candidates:
            remaining = deadline - time.monotonic()
            if best is not None and remaining <= 0:
                logger.debug(
                    "Fallback search out of time after %d of %d queries",
                    len(attempted),
                    len(candidates),
                )
                break
            result = self.query(candidate, providers=providers, timeout=max(remaining, 0.0))
            attempted.append(candidate)
            stats.extend(result.provider_stats)
            quality = builder.assess_result_quality(
                result.records, min_results=min_results, min_confidence=min_confidence
            )
            if quality.meets_threshold:
                return FallbackSearchResult(
                    result=result,
                    query_used=candidate,
                    attempted_queries=tuple(attempted),
                    quality=quality,
                    provider_stats=tuple(stats),
                )
            logger.debug("Query %r insufficient: %s", candidate, quality.reason)
            if best is None or (quality.result_count, quality.average_confidence) > (
                best[2].result_count,
                best[2].average_confidence,
            ):
                best = (result, candidate, quality)

        if best is None:
            raise ValueError("Fallback search ran no queries")
        result, used, quality = best
        return FallbackSearchResult(
            result=result,
            query_used=used,
            attempted_queries=tuple(attempted),
            quality=quality,
            provider_stats=tuple(stats),
        )
