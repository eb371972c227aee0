"""Repository classes for async CRUD operations on SQLite."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterator, Sequence
from datetime import datetime

import aiosqlite

from scanward.dependencies.models import Ecosystem, Exploitability, Vulnerability
from scanward.incremental.models import IncrementalScanState
from scanward.scanner.models import (
    Category,
    IssueStatus,
    SecurityIssue,
    Severity,
    utcnow,
)

logger = logging.getLogger(__name__)

# Stay well below SQLite's host-parameter limit
CHUNK_SIZE = 500


def chunked(items: Sequence[str], size: int = CHUNK_SIZE) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _placeholders(n: int) -> str:
    return ", ".join("?" * n)


def _parse_dt(value: object) -> datetime:
    try:
        return datetime.fromisoformat(str(value))
    except (TypeError, ValueError):
        return utcnow()


def _enum_or(enum_cls, value: object, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _json_or(value: object, default):
    try:
        return json.loads(value) if value else default
    except (TypeError, ValueError):
        return default


def row_to_issue(row: aiosqlite.Row | dict) -> SecurityIssue:
    """Rebuild an issue, coercing unknown enum values to safe defaults."""
    row = dict(row)
    context = _json_or(row.get("context"), {})
    if not isinstance(context, dict):
        context = {}
    return SecurityIssue(
        id=row["id"],
        tool=row.get("tool") or "",
        rule_id=row["rule_id"],
        severity=Severity.parse(row.get("severity")),
        title=row.get("title") or "",
        description=row.get("description") or "",
        cwe=row.get("cwe") or "",
        owasp=row.get("owasp") or "",
        affected_entity_id=row.get("affected_entity_id") or "",
        file_path=row.get("file_path") or "",
        line_number=int(row.get("line_number") or 0),
        column=int(row.get("col") or 0),
        code_snippet=row.get("code_snippet") or "",
        context_before=list(context.get("before") or []),
        context_after=list(context.get("after") or []),
        remediation=row.get("remediation") or "",
        status=IssueStatus.parse(row.get("status")),
        confidence=float(row.get("confidence") or 0.0),
        category=_enum_or(Category, row.get("category"), Category.SAST),
        matched_text=row.get("matched_text") or "",
        tags=tuple(_json_or(row.get("tags"), [])),
        discovered_at=_parse_dt(row.get("discovered_at")),
        last_scanned=_parse_dt(row.get("last_scanned")),
    )


def row_to_vulnerability(row: aiosqlite.Row | dict) -> Vulnerability:
    row = dict(row)
    fixed = row.get("fixed_in_version")
    return Vulnerability(
        id=row["id"],
        package_name=row["package_name"],
        version=row.get("link_version") or row.get("version") or "",
        ecosystem=_enum_or(Ecosystem, row.get("ecosystem"), Ecosystem.NPM),
        vulnerability_id=row["vulnerability_id"],
        severity=Severity.parse(row.get("severity")),
        description=row.get("description") or "",
        cvss_score=float(row.get("cvss_score") or 0.0),
        affected_versions=row.get("affected_versions") or "",
        fixed_in_version=fixed or None,
        published_at=_parse_dt(row.get("published_at")),
        last_updated=_parse_dt(row.get("last_updated")),
        exploitability=_enum_or(
            Exploitability, row.get("exploitability"), Exploitability.LOW
        ),
        source_path=row.get("source_path") or "",
    )


class ScanRepo:
    """CRUD for scan records."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def upsert(
        self,
        scan_id: str,
        status: str,
        started_at: datetime,
        completed_at: datetime | None,
        duration: float,
        error: str | None,
        summary: dict,
        incremental: bool = False,
        baseline_scan_id: str | None = None,
    ) -> None:
        await self._db.execute(
            "INSERT INTO security_scans "
            "(id, status, started_at, completed_at, duration, error, summary, "
            "incremental, baseline_scan_id) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "status = excluded.status, completed_at = excluded.completed_at, "
            "duration = excluded.duration, error = excluded.error, "
            "summary = excluded.summary",
            (
                scan_id,
                status,
                started_at.isoformat(),
                completed_at.isoformat() if completed_at else None,
                duration,
                error,
                json.dumps(summary),
                int(incremental),
                baseline_scan_id,
            ),
        )

    async def get(self, scan_id: str) -> dict | None:
        cursor = await self._db.execute(
            "SELECT * FROM security_scans WHERE id = ?", (scan_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        data = dict(row)
        data["summary"] = _json_or(data.get("summary"), {})
        return data

    async def list_recent(self, limit: int = 20) -> list[dict]:
        cursor = await self._db.execute(
            "SELECT * FROM security_scans ORDER BY started_at DESC LIMIT ?",
            (limit,),
        )
        rows = []
        async for row in cursor:
            data = dict(row)
            data["summary"] = _json_or(data.get("summary"), {})
            rows.append(data)
        return rows


class IssueRepo:
    """Issues are upserted by fingerprint; first-seen time is kept."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def first_seen(self, issue_ids: Sequence[str]) -> dict[str, datetime]:
        seen: dict[str, datetime] = {}
        for chunk in chunked(list(issue_ids)):
            cursor = await self._db.execute(
                "SELECT id, discovered_at FROM security_issues "
                f"WHERE id IN ({_placeholders(len(chunk))})",
                tuple(chunk),
            )
            async for row in cursor:
                seen[row["id"]] = _parse_dt(row["discovered_at"])
        return seen

    async def upsert(self, issue: SecurityIssue) -> None:
        await self._db.execute(
            "INSERT INTO security_issues "
            "(id, tool, rule_id, category, severity, title, description, cwe, "
            "owasp, affected_entity_id, file_path, line_number, col, "
            "code_snippet, context, remediation, status, confidence, "
            "matched_text, tags, discovered_at, last_scanned) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "severity = excluded.severity, status = excluded.status, "
            "confidence = excluded.confidence, "
            "last_scanned = excluded.last_scanned, "
            "discovered_at = COALESCE(security_issues.discovered_at, "
            "excluded.discovered_at)",
            (
                issue.id,
                issue.tool,
                issue.rule_id,
                issue.category.value,
                issue.severity.value,
                issue.title,
                issue.description,
                issue.cwe,
                issue.owasp,
                issue.affected_entity_id,
                issue.file_path,
                issue.line_number,
                issue.column,
                issue.code_snippet,
                json.dumps(
                    {"before": issue.context_before, "after": issue.context_after}
                ),
                issue.remediation,
                issue.status.value,
                issue.confidence,
                issue.matched_text,
                json.dumps(list(issue.tags)),
                issue.discovered_at.isoformat(),
                issue.last_scanned.isoformat(),
            ),
        )

    async def link(self, scan_id: str, issue_id: str) -> None:
        await self._db.execute(
            "INSERT OR IGNORE INTO scan_issues (scan_id, issue_id) VALUES (?, ?)",
            (scan_id, issue_id),
        )

    async def list_by_scan(self, scan_id: str) -> list[SecurityIssue]:
        cursor = await self._db.execute(
            "SELECT i.* FROM security_issues i "
            "JOIN scan_issues s ON s.issue_id = i.id "
            "WHERE s.scan_id = ? ORDER BY i.file_path, i.line_number",
            (scan_id,),
        )
        return [row_to_issue(row) async for row in cursor]

    async def list_by_scan_and_paths(
        self, scan_id: str, paths: Sequence[str]
    ) -> list[SecurityIssue]:
        issues: list[SecurityIssue] = []
        for chunk in chunked(list(paths)):
            cursor = await self._db.execute(
                "SELECT i.* FROM security_issues i "
                "JOIN scan_issues s ON s.issue_id = i.id "
                f"WHERE s.scan_id = ? AND i.file_path IN ({_placeholders(len(chunk))})",
                (scan_id, *chunk),
            )
            issues.extend([row_to_issue(row) async for row in cursor])
        return issues

    async def query(
        self,
        severities: Sequence[str] = (),
        statuses: Sequence[str] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[SecurityIssue], int]:
        """One page of stored issues, most severe then newest first, plus the total."""
        where = "WHERE 1=1"
        params: list[object] = []
        if severities:
            where += f" AND severity IN ({_placeholders(len(severities))})"
            params.extend(severities)
        if statuses:
            where += f" AND status IN ({_placeholders(len(statuses))})"
            params.extend(statuses)

        cursor = await self._db.execute(
            f"SELECT COUNT(*) AS n FROM security_issues {where}", tuple(params)
        )
        row = await cursor.fetchone()
        total = row["n"] if row else 0

        rank = " ".join(f"WHEN '{s.value}' THEN {s.rank}" for s in Severity)
        sql = (
            f"SELECT * FROM security_issues {where} "
            f"ORDER BY CASE severity {rank} ELSE -1 END DESC, discovered_at DESC "
            "LIMIT ? OFFSET ?"
        )
        # SQLite treats a negative LIMIT as no limit
        page = (*params, -1 if limit is None else limit, max(0, offset))
        cursor = await self._db.execute(sql, page)
        return [row_to_issue(r) async for r in cursor], total


class VulnerabilityRepo:
    """Vulnerabilities plus per-scan links recording the declaring manifest."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def upsert(self, vuln: Vulnerability) -> None:
        await self._db.execute(
            "INSERT INTO vulnerabilities "
            "(id, package_name, version, ecosystem, vulnerability_id, severity, "
            "description, cvss_score, affected_versions, fixed_in_version, "
            "published_at, last_updated, exploitability) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "version = excluded.version, severity = excluded.severity, "
            "description = excluded.description, "
            "cvss_score = excluded.cvss_score, "
            "affected_versions = excluded.affected_versions, "
            "fixed_in_version = excluded.fixed_in_version, "
            "last_updated = excluded.last_updated, "
            "exploitability = excluded.exploitability",
            (
                vuln.id,
                vuln.package_name,
                vuln.version,
                vuln.ecosystem.value,
                vuln.vulnerability_id,
                vuln.severity.value,
                vuln.description,
                vuln.cvss_score,
                vuln.affected_versions,
                vuln.fixed_in_version,
                vuln.published_at.isoformat(),
                vuln.last_updated.isoformat(),
                vuln.exploitability.value,
            ),
        )

    async def link(self, scan_id: str, vuln: Vulnerability) -> None:
        await self._db.execute(
            "INSERT OR IGNORE INTO scan_vulnerabilities "
            "(scan_id, vulnerability_id, source_path, version) VALUES (?, ?, ?, ?)",
            (scan_id, vuln.id, vuln.source_path, vuln.version),
        )

    _SELECT = (
        "SELECT v.*, s.source_path AS source_path, s.version AS link_version "
        "FROM vulnerabilities v "
        "JOIN scan_vulnerabilities s ON s.vulnerability_id = v.id "
    )

    async def list_by_scan(self, scan_id: str) -> list[Vulnerability]:
        cursor = await self._db.execute(
            self._SELECT + "WHERE s.scan_id = ? ORDER BY v.package_name",
            (scan_id,),
        )
        return [row_to_vulnerability(row) async for row in cursor]

    async def list_by_scan_and_paths(
        self, scan_id: str, paths: Sequence[str]
    ) -> list[Vulnerability]:
        vulns: list[Vulnerability] = []
        for chunk in chunked(list(paths)):
            cursor = await self._db.execute(
                self._SELECT
                + f"WHERE s.scan_id = ? AND s.source_path IN ({_placeholders(len(chunk))})",
                (scan_id, *chunk),
            )
            vulns.extend([row_to_vulnerability(row) async for row in cursor])
        return vulns


class ScanStateRepo:
    """Checksum state saved per scan for incremental runs."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def save(self, scan_id: str, state: IncrementalScanState) -> None:
        await self._db.execute(
            "INSERT OR REPLACE INTO scan_states (scan_id, state, created_at) "
            "VALUES (?, ?, ?)",
            (scan_id, json.dumps(state.to_dict()), time.time()),
        )
        await self._db.commit()

    async def load(self, scan_id: str) -> IncrementalScanState | None:
        cursor = await self._db.execute(
            "SELECT state FROM scan_states WHERE scan_id = ?", (scan_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        data = _json_or(row["state"], None)
        if not isinstance(data, dict):
            logger.warning("Discarding unreadable scan state for %s", scan_id)
            return None
        return IncrementalScanState.from_dict(data)

    async def latest_id(self) -> str | None:
        cursor = await self._db.execute(
            "SELECT scan_id FROM scan_states ORDER BY created_at DESC, rowid DESC LIMIT 1"
        )
        row = await cursor.fetchone()
        return row["scan_id"] if row else None

