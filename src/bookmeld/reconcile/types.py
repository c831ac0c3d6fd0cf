# ABOUTME: Shared result types for field reconciliation and conflict analysis.
# ABOUTME: ReconciledField is one attribute's winning value; RawValue is one source's contribution to it.

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from bookmeld.metadata.confidence import ConfidenceFactors
from bookmeld.metadata.types import MetadataSource

if TYPE_CHECKING:
    from bookmeld.reconcile.conflicts import Conflict


@dataclass(frozen=True)
class RawValue:
    """One source's value for one field, before reconciliation."""

    value: Any
    source: MetadataSource
    record_id: str = ""


@dataclass(frozen=True)
class ReconciledField:
    """The result of aggregating one attribute across every contributing record.

    sources only ever lists sources that supplied a non-empty value for the
    field. factors is the confidence breakdown behind confidence, when one
    was computed.
    """

    value: Any
    confidence: float
    sources: tuple[MetadataSource, ...] = ()
    conflicts: tuple["Conflict", ...] = ()
    reasoning: str = ""
    factors: ConfidenceFactors | None = field(default=None, compare=False)

    @property
    def has_value(self) -> bool:
        return self.value is not None
