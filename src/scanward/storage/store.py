"""SecurityStore — persistence facade used by the scan orchestrator."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import aiosqlite

from scanward.dependencies.models import Vulnerability
from scanward.errors import StoreError
from scanward.incremental.models import IncrementalScanState
from scanward.scanner.models import IssueStatus, SecurityIssue, Severity
from scanward.storage.db import get_db
from scanward.storage.repos import (
    IssueRepo,
    ScanRepo,
    ScanStateRepo,
    VulnerabilityRepo,
)

logger = logging.getLogger(__name__)


class SecurityStore:
    """Scans, issues, vulnerabilities and incremental state in SQLite."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def __aenter__(self) -> SecurityStore:
        await self.ensure_schema()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError("Store is not open; call ensure_schema() first")
        return self._db

    async def ensure_schema(self) -> None:
        """Open the database, creating tables and unique keys as needed."""
        if self._db is None:
            self._db = await get_db(self._db_path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def save_scan_result(self, result) -> None:
        """Persist a scan with every issue and vulnerability linked to it.

        Issues keep the ``discovered_at`` of their first sighting; the
        in-memory issues are updated to match.
        """
        scans = ScanRepo(self.db)
        issues = IssueRepo(self.db)
        vulns = VulnerabilityRepo(self.db)

        try:
            await scans.upsert(
                scan_id=result.scan_id,
                status=result.status.value,
                started_at=result.started_at,
                completed_at=result.completed_at,
                duration=result.duration,
                error=result.error,
                summary=result.summary.to_dict(),
                incremental=getattr(result, "incremental", False),
                baseline_scan_id=getattr(result, "baseline_scan_id", None),
            )

            first_seen = await issues.first_seen([i.id for i in result.issues])
            for issue in result.issues:
                if issue.id in first_seen:
                    issue.discovered_at = first_seen[issue.id]
                await issues.upsert(issue)
                await issues.link(result.scan_id, issue.id)

            for vuln in result.vulnerabilities:
                await vulns.upsert(vuln)
                await vulns.link(result.scan_id, vuln)

            await self.db.commit()
        except aiosqlite.Error:
            await self.db.rollback()
            raise

        logger.debug(
            "Persisted scan %s: %d issues, %d vulnerabilities",
            result.scan_id,
            len(result.issues),
            len(result.vulnerabilities),
        )

    async def get_scan(self, scan_id: str) -> dict | None:
        return await ScanRepo(self.db).get(scan_id)

    async def list_scans(self, limit: int = 20) -> list[dict]:
        return await ScanRepo(self.db).list_recent(limit)

    async def scan_issues(self, scan_id: str) -> list[SecurityIssue]:
        return await IssueRepo(self.db).list_by_scan(scan_id)

    async def scan_vulnerabilities(self, scan_id: str) -> list[Vulnerability]:
        return await VulnerabilityRepo(self.db).list_by_scan(scan_id)

    async def load_scan_state(self, scan_id: str) -> IncrementalScanState | None:
        return await ScanStateRepo(self.db).load(scan_id)

    async def latest_scan_state_id(self) -> str | None:
        return await ScanStateRepo(self.db).latest_id()

    async def save_scan_state(self, scan_id: str, state: IncrementalScanState) -> None:
        await ScanStateRepo(self.db).save(scan_id, state)

    async def previous_results(
        self, scan_id: str, paths: list[str]
    ) -> tuple[list[SecurityIssue], list[Vulnerability]]:
        """Issues and vulnerabilities a scan recorded for the given paths."""
        issues = await IssueRepo(self.db).list_by_scan_and_paths(scan_id, paths)
        vulns = await VulnerabilityRepo(self.db).list_by_scan_and_paths(scan_id, paths)
        return issues, vulns

    async def get_security_issues(
        self,
        severity: Iterable[Severity | str] = (),
        status: Iterable[IssueStatus | str] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[SecurityIssue], int]:
        """Stored issues filtered by severity and status.

        Returns one page, most severe first, together with the number of
        matching issues across all pages.
        """
        severities = [Severity.parse(s).value for s in severity]
        statuses = [IssueStatus.parse(s).value for s in status]
        return await IssueRepo(self.db).query(severities, statuses, limit, offset)
