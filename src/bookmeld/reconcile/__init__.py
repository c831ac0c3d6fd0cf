# ABOUTME: Reconciliation package: merges candidate records into one trusted view of a book.
# ABOUTME: Exports the field reconciler, conflict detector, work/edition reconciler, and preview builder.

from bookmeld.reconcile.conflicts import Conflict, ConflictDetector, ConflictSummary
from bookmeld.reconcile.fields import FieldReconciler, FieldSpec
from bookmeld.reconcile.preview import (
    EnhancedMetadataPreview,
    LibraryEntry,
    LibraryPreview,
    MetadataPreview,
    PreviewBuilder,
)
from bookmeld.reconcile.types import RawValue, ReconciledField
from bookmeld.reconcile.works import Edition, WorkCluster, WorkReconciler

__all__ = [
    "Conflict",
    "ConflictDetector",
    "ConflictSummary",
    "Edition",
    "EnhancedMetadataPreview",
    "FieldReconciler",
    "FieldSpec",
    "LibraryEntry",
    "LibraryPreview",
    "MetadataPreview",
    "PreviewBuilder",
    "RawValue",
    "ReconciledField",
    "WorkCluster",
    "WorkReconciler",
]
