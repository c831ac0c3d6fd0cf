# ABOUTME: SQL DDL statements for the bookmeld library catalog.
# ABOUTME: Works hold editions, editions hold file assets; migrations are applied in version order.

SCHEMA_V1 = """
-- Abstract works, independent of any one publication
CREATE TABLE works (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    title            TEXT NOT NULL,
    normalized_title TEXT NOT NULL,
    authors          TEXT,
    primary_author   TEXT,
    date_added       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

CREATE INDEX idx_works_normalized_title ON works(normalized_title);

-- Concrete editions of a work
CREATE TABLE editions (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    work_id          INTEGER NOT NULL REFERENCES works(id) ON DELETE CASCADE,
    title            TEXT NOT NULL,
    isbn_10          TEXT,
    isbn_13          TEXT,
    asin             TEXT,
    language         TEXT,
    format           TEXT,
    publisher        TEXT,
    publication_date TEXT,
    series           TEXT,
    series_index     REAL,
    page_count       INTEGER,
    date_added       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

CREATE INDEX idx_editions_work ON editions(work_id);
CREATE INDEX idx_editions_isbn_10 ON editions(isbn_10) WHERE isbn_10 IS NOT NULL;
CREATE INDEX idx_editions_isbn_13 ON editions(isbn_13) WHERE isbn_13 IS NOT NULL;
CREATE INDEX idx_editions_asin ON editions(asin) WHERE asin IS NOT NULL;

-- Files on disk, one row per distinct checksum
CREATE TABLE assets (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    edition_id  INTEGER NOT NULL REFERENCES editions(id) ON DELETE CASCADE,
    checksum    TEXT NOT NULL,
    filename    TEXT NOT NULL,
    media_type  TEXT NOT NULL,
    size        INTEGER NOT NULL DEFAULT 0,
    date_added  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

CREATE UNIQUE INDEX idx_assets_checksum ON assets(checksum);

CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

INSERT INTO schema_version (version) VALUES (1);
"""

# (version, sql) pairs applied after SCHEMA_V1, in ascending order.
MIGRATIONS: list[tuple[int, str]] = []
