# ABOUTME: Metadata package: provider contract, query coordination, and consensus confidence.
# ABOUTME: Exports the record and query types used throughout bookmeld.

from bookmeld.metadata.confidence import ConfidenceConfig, ConfidenceFactors, calculate_confidence_factors
from bookmeld.metadata.coordinator import AggregatedResult, QueryCoordinator
from bookmeld.metadata.provider import BaseMetadataProvider, MetadataProvider, ProviderRegistry
from bookmeld.metadata.strategy import QueryStrategyBuilder
from bookmeld.metadata.types import (
    CreatorQuery,
    IsbnQuery,
    MetadataRecord,
    MetadataSource,
    MultiCriteriaQuery,
    TitleQuery,
)

__all__ = [
    "AggregatedResult",
    "BaseMetadataProvider",
    "ConfidenceConfig",
    "ConfidenceFactors",
    "CreatorQuery",
    "IsbnQuery",
    "MetadataProvider",
    "MetadataRecord",
    "MetadataSource",
    "MultiCriteriaQuery",
    "ProviderRegistry",
    "QueryCoordinator",
    "QueryStrategyBuilder",
    "TitleQuery",
    "calculate_confidence_factors",
]
