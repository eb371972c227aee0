"""Scan data models — requests, lifecycle state, summaries and results."""

from __future__ import annotations

import enum
import secrets
import time
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from scanward.dependencies.models import Vulnerability
from scanward.policy.models import ComplianceReport
from scanward.scanner.models import SecurityIssue, utcnow


class ScanStatus(enum.Enum):
    """Lifecycle state of a scan."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED)


def new_scan_id() -> str:
    return f"scan_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


@dataclass
class ScanRequest:
    """What to scan: explicit entity ids, or the recent-files default."""

    entity_ids: list[str] = field(default_factory=list)
    baseline_scan_id: str | None = None


@dataclass
class ScanSummary:
    total_issues: int = 0
    total_vulnerabilities: int = 0
    by_severity: dict[str, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)
    files_scanned: int = 0
    scan_duration: float = 0.0

    @classmethod
    def build(
        cls,
        issues: Iterable[SecurityIssue],
        vulnerabilities: Iterable[Vulnerability],
        files_scanned: int = 0,
        duration: float = 0.0,
    ) -> ScanSummary:
        issues = list(issues)
        vulnerabilities = list(vulnerabilities)
        severity: Counter[str] = Counter()
        category: Counter[str] = Counter()
        status: Counter[str] = Counter()
        for issue in issues:
            severity[issue.severity.value] += 1
            category[issue.category.value] += 1
            status[issue.status.value] += 1
        for vuln in vulnerabilities:
            severity[vuln.severity.value] += 1
            category["dependency"] += 1
        return cls(
            total_issues=len(issues),
            total_vulnerabilities=len(vulnerabilities),
            by_severity=dict(severity),
            by_category=dict(category),
            by_status=dict(status),
            files_scanned=files_scanned,
            scan_duration=duration,
        )

    def to_dict(self) -> dict:
        return {
            "totalIssues": self.total_issues,
            "totalVulnerabilities": self.total_vulnerabilities,
            "bySeverity": dict(self.by_severity),
            "byCategory": dict(self.by_category),
            "byStatus": dict(self.by_status),
            "filesScanned": self.files_scanned,
            "scanDuration": self.scan_duration,
        }


@dataclass
class SecurityScanResult:
    """Outcome of one scan, in whatever state it currently is."""

    scan_id: str = field(default_factory=new_scan_id)
    status: ScanStatus = ScanStatus.PENDING
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    duration: float = 0.0
    issues: list[SecurityIssue] = field(default_factory=list)
    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    summary: ScanSummary = field(default_factory=ScanSummary)
    error: str | None = None
    compliance: ComplianceReport | None = None

    def finish(self, status: ScanStatus, error: str | None = None) -> None:
        self.status = status
        self.completed_at = utcnow()
        self.duration = (self.completed_at - self.started_at).total_seconds()
        self.summary.scan_duration = self.duration
        if error is not None:
            self.error = error

    def to_dict(self) -> dict:
        data = {
            "scanId": self.scan_id,
            "status": self.status.value,
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "duration": self.duration,
            "issues": [i.to_dict() for i in self.issues],
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "summary": self.summary.to_dict(),
            "error": self.error,
        }
        if self.compliance is not None:
            data["compliance"] = self.compliance.to_dict()
        return data


@dataclass
class IncrementalScanResult(SecurityScanResult):
    """A scan that only reran changed files."""

    changed_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    baseline_scan_id: str | None = None
    incremental: bool = True

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            {
                "incremental": self.incremental,
                "baselineScanId": self.baseline_scan_id,
                "changedFiles": list(self.changed_files),
                "skippedFiles": list(self.skipped_files),
            }
        )
        return data
