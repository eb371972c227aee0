"""SQLite database connection management and schema migrations."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS security_scans (
    id TEXT PRIMARY KEY,
    status TEXT NOT NULL DEFAULT 'pending',
    started_at TEXT NOT NULL,
    completed_at TEXT,
    duration REAL NOT NULL DEFAULT 0,
    error TEXT,
    summary TEXT NOT NULL DEFAULT '{}',
    incremental INTEGER NOT NULL DEFAULT 0,
    baseline_scan_id TEXT
);

CREATE TABLE IF NOT EXISTS security_issues (
    id TEXT PRIMARY KEY,
    tool TEXT NOT NULL DEFAULT '',
    rule_id TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'sast',
    severity TEXT NOT NULL DEFAULT 'medium',
    title TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    cwe TEXT NOT NULL DEFAULT '',
    owasp TEXT NOT NULL DEFAULT '',
    affected_entity_id TEXT NOT NULL DEFAULT '',
    file_path TEXT NOT NULL DEFAULT '',
    line_number INTEGER NOT NULL DEFAULT 0,
    col INTEGER NOT NULL DEFAULT 0,
    code_snippet TEXT NOT NULL DEFAULT '',
    context TEXT NOT NULL DEFAULT '{}',
    remediation TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'open',
    confidence REAL NOT NULL DEFAULT 0.8,
    matched_text TEXT NOT NULL DEFAULT '',
    tags TEXT NOT NULL DEFAULT '[]',
    discovered_at TEXT NOT NULL,
    last_scanned TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS scan_issues (
    scan_id TEXT NOT NULL,
    issue_id TEXT NOT NULL,
    PRIMARY KEY (scan_id, issue_id),
    FOREIGN KEY (scan_id) REFERENCES security_scans(id),
    FOREIGN KEY (issue_id) REFERENCES security_issues(id)
);

CREATE TABLE IF NOT EXISTS vulnerabilities (
    id TEXT PRIMARY KEY,
    package_name TEXT NOT NULL,
    version TEXT NOT NULL DEFAULT '',
    ecosystem TEXT NOT NULL,
    vulnerability_id TEXT NOT NULL,
    severity TEXT NOT NULL DEFAULT 'medium',
    description TEXT NOT NULL DEFAULT '',
    cvss_score REAL NOT NULL DEFAULT 0,
    affected_versions TEXT NOT NULL DEFAULT '',
    fixed_in_version TEXT,
    published_at TEXT NOT NULL,
    last_updated TEXT NOT NULL,
    exploitability TEXT NOT NULL DEFAULT 'low'
);

CREATE TABLE IF NOT EXISTS scan_vulnerabilities (
    scan_id TEXT NOT NULL,
    vulnerability_id TEXT NOT NULL,
    source_path TEXT NOT NULL DEFAULT '',
    version TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (scan_id, vulnerability_id, source_path),
    FOREIGN KEY (scan_id) REFERENCES security_scans(id),
    FOREIGN KEY (vulnerability_id) REFERENCES vulnerabilities(id)
);

CREATE TABLE IF NOT EXISTS scan_states (
    scan_id TEXT PRIMARY KEY,
    state TEXT NOT NULL,
    created_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_scan_issues_issue
    ON scan_issues(issue_id);
CREATE INDEX IF NOT EXISTS idx_issues_path
    ON security_issues(file_path);
CREATE INDEX IF NOT EXISTS idx_scan_vulns_path
    ON scan_vulnerabilities(scan_id, source_path);
CREATE INDEX IF NOT EXISTS idx_scans_started
    ON security_scans(started_at);
"""


async def get_db(db_path: str | Path) -> aiosqlite.Connection:
    """Open (or create) the database and run migrations."""
    if str(db_path) != ":memory:":
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

    db = await aiosqlite.connect(str(db_path))
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")

    await _migrate(db)
    return db


async def _migrate(db: aiosqlite.Connection) -> None:
    """Run schema migrations if needed."""
    cursor = await db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    )
    row = await cursor.fetchone()

    if row is None:
        # Fresh database
        await db.executescript(SCHEMA_SQL)
        await db.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        await db.commit()
        logger.info("Database initialized at schema version %d", SCHEMA_VERSION)
        return

    cursor = await db.execute("SELECT version FROM schema_version")
    row = await cursor.fetchone()
    current = row[0] if row else 0

    if current < SCHEMA_VERSION:
        logger.info(
            "Migrating database from version %d to %d",
            current,
            SCHEMA_VERSION,
        )
        # New tables and indexes only; CREATE statements are idempotent
        await db.executescript(SCHEMA_SQL)
        await db.execute(
            "UPDATE schema_version SET version = ?",
            (SCHEMA_VERSION,),
        )
        await db.commit()
