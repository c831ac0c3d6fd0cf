# ABOUTME: SQLite connection management for the bookmeld library catalog.
# ABOUTME: Opens or creates the database file, applies the schema, and runs pending migrations.

import sqlite3
from pathlib import Path

from bookmeld.db.schema import MIGRATIONS, SCHEMA_V1

DEFAULT_DB_PATH = Path.home() / ".bookmeld" / "library.db"


def _schema_exists(conn: sqlite3.Connection) -> bool:
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    )
    return cursor.fetchone() is not None


def _get_schema_version(conn: sqlite3.Connection) -> int:
    cursor = conn.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
    row = cursor.fetchone()
    return row[0] if row else 0


def _apply_migrations(conn: sqlite3.Connection) -> None:
    """Apply every migration newer than the recorded schema version."""
    current = _get_schema_version(conn)
    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
            conn.commit()


def open_library(path: Path | None = None) -> sqlite3.Connection:
    """Open or create the library database.

    Creates parent directories as needed, applies the schema on first use,
    and returns a connection with sqlite3.Row rows and foreign keys enforced.

    Args:
        path: Database file. Defaults to ~/.bookmeld/library.db. The special
            name ":memory:" opens a throwaway in-memory catalog.
    """
    db_path = path or DEFAULT_DB_PATH
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    if str(db_path) != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")

    if not _schema_exists(conn):
        conn.executescript(SCHEMA_V1)

    _apply_migrations(conn)
    return conn
