# ABOUTME: Public API for the bookmeld library database layer.
# ABOUTME: Exports connection management, the catalog, and file checksums.

from bookmeld.db.catalog import DuplicateAssetError, LibraryCatalog
from bookmeld.db.connection import DEFAULT_DB_PATH, open_library
from bookmeld.db.hashing import compute_checksum

__all__ = [
    "DEFAULT_DB_PATH",
    "DuplicateAssetError",
    "LibraryCatalog",
    "compute_checksum",
    "open_library",
]
