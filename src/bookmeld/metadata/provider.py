# ABOUTME: MetadataProvider protocol defining the contract for metadata sources.
# ABOUTME: Also holds per-provider limits, default reliability scores, and the explicit provider registry.

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from bookmeld.metadata import types as mt
from bookmeld.metadata.config import check_non_negative, check_positive
from bookmeld.metadata.types import MetadataRecord, MultiCriteriaQuery

# Static per-field trustworthiness a provider claims when it has no better number.
DEFAULT_RELIABILITY_SCORES: dict[str, float] = {
    mt.TITLE: 0.8,
    mt.AUTHORS: 0.7,
    mt.ISBN: 0.9,
    mt.PUBLICATION_DATE: 0.6,
    mt.SUBJECTS: 0.5,
    mt.DESCRIPTION: 0.4,
    mt.LANGUAGE: 0.7,
    mt.PUBLISHER: 0.6,
    mt.SERIES: 0.5,
    mt.EDITION: 0.5,
    mt.PAGE_COUNT: 0.6,
    mt.PHYSICAL_DIMENSIONS: 0.3,
    mt.COVER_IMAGE: 0.4,
}
_UNKNOWN_FIELD_RELIABILITY = 0.5

DEFAULT_SUPPORTED_TYPES: frozenset[str] = frozenset(
    {
        mt.TITLE,
        mt.AUTHORS,
        mt.ISBN,
        mt.PUBLICATION_DATE,
        mt.SUBJECTS,
        mt.DESCRIPTION,
        mt.LANGUAGE,
    }
)


@dataclass(frozen=True)
class RateLimitConfig:
    """At most max_requests per window_seconds, with request_delay between calls."""

    max_requests: int = 100
    window_seconds: float = 60.0
    request_delay: float = 0.1

    def __post_init__(self) -> None:
        check_positive("max_requests", self.max_requests)
        check_positive("window_seconds", self.window_seconds)
        check_non_negative("request_delay", self.request_delay)


@dataclass(frozen=True)
class TimeoutConfig:
    """Seconds allowed for one request and for a whole provider operation."""

    request_timeout: float = 10.0
    operation_timeout: float = 30.0

    def __post_init__(self) -> None:
        check_positive("request_timeout", self.request_timeout)
        check_positive("operation_timeout", self.operation_timeout)


@runtime_checkable
class MetadataProvider(Protocol):
    """Protocol for metadata lookup services.

    Implementations expose identity and limits, per-field reliability, and four
    read-only searches. A search returns zero or more MetadataRecords or raises;
    the coordinator isolates whatever it raises.
    """

    @property
    def name(self) -> str: ...

    @property
    def priority(self) -> int: ...

    @property
    def rate_limit(self) -> RateLimitConfig: ...

    @property
    def timeout(self) -> TimeoutConfig: ...

    def get_reliability_score(self, data_type: str) -> float: ...

    def supports_data_type(self, data_type: str) -> bool: ...

    def search_by_title(self, title: str, *, fuzzy: bool = False) -> list[MetadataRecord]: ...

    def search_by_isbn(self, isbn: str) -> list[MetadataRecord]: ...

    def search_by_creator(
        self, name: str, *, role: str | None = None, fuzzy: bool = False
    ) -> list[MetadataRecord]: ...

    def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]: ...


class BaseMetadataProvider:
    """Shared defaults for concrete providers.

    Subclasses set name and override the searches they support; every search
    left alone returns no records.
    """

    name: str = "base"
    priority: int = 0
    rate_limit: RateLimitConfig = RateLimitConfig()
    timeout: TimeoutConfig = TimeoutConfig()
    reliability_scores: dict[str, float] = DEFAULT_RELIABILITY_SCORES
    supported_types: frozenset[str] = DEFAULT_SUPPORTED_TYPES

    def get_reliability_score(self, data_type: str) -> float:
        return self.reliability_scores.get(data_type, _UNKNOWN_FIELD_RELIABILITY)

    def supports_data_type(self, data_type: str) -> bool:
        return data_type in self.supported_types

    def search_by_title(self, title: str, *, fuzzy: bool = False) -> list[MetadataRecord]:
        return []

    def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        return []

    def search_by_creator(
        self, name: str, *, role: str | None = None, fuzzy: bool = False
    ) -> list[MetadataRecord]:
        return []

    def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        return []


class ProviderRegistry:
    """Explicit set of known providers and which of them are enabled.

    Built once at startup and handed to the coordinator; there is no
    process-wide instance.
    """

    def __init__(self, providers: list[MetadataProvider] | None = None) -> None:
        self._providers: dict[str, MetadataProvider] = {}
        self._enabled: dict[str, bool] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: MetadataProvider, *, enabled: bool = True) -> None:
        """Add a provider.

        Raises:
            ValueError: If a provider with the same name is already registered.
        """
        if provider.name in self._providers:
            raise ValueError(f"Provider '{provider.name}' is already registered")
        self._providers[provider.name] = provider
        self._enabled[provider.name] = enabled

    def unregister(self, name: str) -> None:
        """Remove a provider by name; unknown names raise KeyError."""
        del self._providers[name]
        del self._enabled[name]

    def get(self, name: str) -> MetadataProvider | None:
        return self._providers.get(name)

    def set_enabled(self, name: str, enabled: bool) -> None:
        """Enable or disable a registered provider; unknown names raise KeyError."""
        if name not in self._providers:
            raise KeyError(name)
        self._enabled[name] = enabled

    def is_enabled(self, name: str) -> bool:
        return self._enabled.get(name, False)

    def names(self) -> list[str]:
        return list(self._providers)

    def enabled_providers(self) -> list[MetadataProvider]:
        """Enabled providers, highest priority first, ties in registration order."""
        enabled = [p for name, p in self._providers.items() if self._enabled[name]]
        return sorted(enabled, key=lambda p: -p.priority)

    def providers_for(self, data_type: str) -> list[MetadataProvider]:
        """Enabled providers that claim support for a metadata field type."""
        return [p for p in self.enabled_providers() if p.supports_data_type(data_type)]

    def reliability(self, source: str, data_type: str, default: float) -> float:
        """Static reliability of a provider for a field, or default if it is unknown."""
        provider = self._providers.get(source)
        if provider is None:
            return default
        return provider.get_reliability_score(data_type)

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers
