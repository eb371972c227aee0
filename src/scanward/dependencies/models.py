"""Dependency and vulnerability models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from scanward.scanner.models import Severity, utcnow


class Ecosystem(enum.Enum):
    """Package ecosystem a manifest declares dependencies in."""

    NPM = "npm"
    PYPI = "pypi"
    MAVEN = "maven"
    GO = "go"
    CARGO = "cargo"
    PACKAGIST = "packagist"
    RUBYGEMS = "rubygems"

    @property
    def osv_name(self) -> str:
        """Ecosystem identifier used by the OSV API."""
        return _OSV_NAMES[self]


_OSV_NAMES = {
    Ecosystem.NPM: "npm",
    Ecosystem.PYPI: "PyPI",
    Ecosystem.MAVEN: "Maven",
    Ecosystem.GO: "Go",
    Ecosystem.CARGO: "crates.io",
    Ecosystem.PACKAGIST: "Packagist",
    Ecosystem.RUBYGEMS: "RubyGems",
}


class DependencyScope(enum.Enum):
    RUNTIME = "runtime"
    DEVELOPMENT = "development"
    OPTIONAL = "optional"


class Exploitability(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_cvss(cls, score: float) -> Exploitability:
        if score >= 7:
            return cls.HIGH
        if score >= 4:
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True)
class DependencyInfo:
    """A package declared in a manifest."""

    name: str
    version: str
    ecosystem: Ecosystem
    scope: DependencyScope = DependencyScope.RUNTIME
    path: str = ""
    direct: bool = True

    @property
    def key(self) -> str:
        return f"{self.ecosystem.value}:{self.name}@{self.version}"


@dataclass(frozen=True)
class Vulnerability:
    """A known vulnerability affecting a specific package version."""

    id: str
    package_name: str
    version: str
    ecosystem: Ecosystem
    vulnerability_id: str
    severity: Severity
    description: str = ""
    cvss_score: float = 0.0
    affected_versions: str = ""
    fixed_in_version: str | None = None
    published_at: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)
    exploitability: Exploitability = Exploitability.LOW
    source_path: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "packageName": self.package_name,
            "version": self.version,
            "ecosystem": self.ecosystem.value,
            "vulnerabilityId": self.vulnerability_id,
            "severity": self.severity.value,
            "description": self.description,
            "cvssScore": self.cvss_score,
            "affectedVersions": self.affected_versions,
            "fixedInVersion": self.fixed_in_version,
            "publishedAt": self.published_at.isoformat(),
            "lastUpdated": self.last_updated.isoformat(),
            "exploitability": self.exploitability.value,
            "sourcePath": self.source_path,
        }
