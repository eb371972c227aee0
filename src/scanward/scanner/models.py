"""Scanner data models — rules, findings, and scan options."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from scanward.config import DEFAULT_MAX_FILE_SIZE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Severity(enum.Enum):
    """Finding severity level, ordered from info to critical."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, threshold: Severity) -> bool:
        return self.rank >= threshold.rank

    @classmethod
    def parse(cls, value: object, default: Severity | None = None) -> Severity:
        """Lenient conversion; unknown values become ``default`` (medium)."""
        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default if default is not None else cls.MEDIUM


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class IssueStatus(enum.Enum):
    """Triage state of a finding."""

    OPEN = "open"
    CLOSED = "closed"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    SUPPRESSED = "suppressed"

    @classmethod
    def parse(cls, value: object) -> IssueStatus:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OPEN


class Category(enum.Enum):
    """Which scanner family a rule belongs to."""

    SAST = "sast"
    SECRETS = "secrets"
    DEPENDENCY = "dependency"
    CONFIGURATION = "configuration"
    COMPLIANCE = "compliance"


@dataclass(frozen=True)
class SecurityRule:
    """A declarative detection rule: compiled pattern plus metadata."""

    id: str
    name: str
    description: str
    severity: Severity
    cwe: str
    owasp: str
    pattern: re.Pattern[str]
    category: Category = Category.SAST
    remediation: str = ""
    confidence: float = 0.8
    tags: tuple[str, ...] = ()


@dataclass
class ScanOptions:
    """Which scanners run and how strict they are."""

    include_sast: bool = True
    include_sca: bool = True
    include_secrets: bool = True
    include_dependencies: bool = True
    include_compliance: bool = False
    severity_threshold: Severity = Severity.INFO
    confidence_threshold: float = 0.5
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def category_enabled(self, category: Category) -> bool:
        if category is Category.SAST:
            return self.include_sast
        if category is Category.SECRETS:
            return self.include_secrets
        if category is Category.DEPENDENCY:
            return self.include_dependencies
        # Configuration and compliance rules are always included
        return True


@dataclass
class SecurityIssue:
    """A fingerprinted finding."""

    id: str
    tool: str
    rule_id: str
    severity: Severity
    title: str
    description: str = ""
    cwe: str = ""
    owasp: str = ""
    affected_entity_id: str = ""
    file_path: str = ""
    line_number: int = 0
    column: int = 0
    code_snippet: str = ""
    context_before: list[str] = field(default_factory=list)
    context_after: list[str] = field(default_factory=list)
    remediation: str = ""
    status: IssueStatus = IssueStatus.OPEN
    confidence: float = 0.8
    category: Category = Category.SAST
    matched_text: str = ""
    tags: tuple[str, ...] = ()
    discovered_at: datetime = field(default_factory=utcnow)
    last_scanned: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tool": self.tool,
            "ruleId": self.rule_id,
            "category": self.category.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "cwe": self.cwe,
            "owasp": self.owasp,
            "affectedEntityId": self.affected_entity_id,
            "filePath": self.file_path,
            "lineNumber": self.line_number,
            "column": self.column,
            "codeSnippet": self.code_snippet,
            "context": {
                "before": list(self.context_before),
                "after": list(self.context_after),
            },
            "remediation": self.remediation,
            "status": self.status.value,
            "confidence": self.confidence,
            "discoveredAt": self.discovered_at.isoformat(),
            "lastScanned": self.last_scanned.isoformat(),
        }
