# ABOUTME: SHA-256 checksums of ebook files, used as the exact-duplicate key.
# ABOUTME: Reads files in chunks so large files never load into memory at once.

import hashlib
from pathlib import Path

_CHUNK_SIZE = 65536


def compute_checksum(path: Path) -> str:
    """Lowercase hex SHA-256 digest of a file's bytes.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(_CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest()
