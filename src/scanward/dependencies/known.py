"""Built-in advisories used when the remote feed is disabled or silent."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from scanward.dependencies.models import Ecosystem, Exploitability, Vulnerability
from scanward.dependencies.versions import is_version_vulnerable
from scanward.scanner.models import Severity


@dataclass(frozen=True)
class KnownAdvisory:
    ecosystem: Ecosystem
    package: str
    vulnerability_id: str
    severity: Severity
    affected_versions: str
    fixed_in_version: str | None
    description: str
    cvss_score: float
    published_at: datetime

    def to_vulnerability(self, version: str) -> Vulnerability:
        return Vulnerability(
            id=f"{self.package}_{self.vulnerability_id}",
            package_name=self.package,
            version=version,
            ecosystem=self.ecosystem,
            vulnerability_id=self.vulnerability_id,
            severity=self.severity,
            description=self.description,
            cvss_score=self.cvss_score,
            affected_versions=self.affected_versions,
            fixed_in_version=self.fixed_in_version,
            published_at=self.published_at,
            last_updated=self.published_at,
            exploitability=Exploitability.from_cvss(self.cvss_score),
        )


def _date(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


KNOWN_ADVISORIES: list[KnownAdvisory] = [
    KnownAdvisory(
        ecosystem=Ecosystem.NPM,
        package="lodash",
        vulnerability_id="CVE-2021-23337",
        severity=Severity.HIGH,
        affected_versions="<4.17.12",
        fixed_in_version="4.17.12",
        description="Command injection via the template function",
        cvss_score=7.2,
        published_at=_date(2021, 2, 15),
    ),
    KnownAdvisory(
        ecosystem=Ecosystem.NPM,
        package="minimist",
        vulnerability_id="CVE-2021-44906",
        severity=Severity.CRITICAL,
        affected_versions="<1.2.6",
        fixed_in_version="1.2.6",
        description="Prototype pollution in setKey",
        cvss_score=9.8,
        published_at=_date(2022, 3, 17),
    ),
    KnownAdvisory(
        ecosystem=Ecosystem.NPM,
        package="express",
        vulnerability_id="CVE-2022-24999",
        severity=Severity.HIGH,
        affected_versions="<4.17.3",
        fixed_in_version="4.17.3",
        description="Prototype pollution through the bundled qs query parser",
        cvss_score=7.5,
        published_at=_date(2022, 11, 26),
    ),
    KnownAdvisory(
        ecosystem=Ecosystem.PYPI,
        package="requests",
        vulnerability_id="CVE-2023-32681",
        severity=Severity.MEDIUM,
        affected_versions="<2.31.0",
        fixed_in_version="2.31.0",
        description="Proxy-Authorization header leaked on cross-origin redirects",
        cvss_score=6.1,
        published_at=_date(2023, 5, 26),
    ),
    KnownAdvisory(
        ecosystem=Ecosystem.PYPI,
        package="pyyaml",
        vulnerability_id="CVE-2020-14343",
        severity=Severity.CRITICAL,
        affected_versions="<5.4",
        fixed_in_version="5.4",
        description="Arbitrary code execution through full_load",
        cvss_score=9.8,
        published_at=_date(2021, 2, 9),
    ),
]


def lookup_known(
    name: str,
    version: str,
    ecosystem: Ecosystem,
    advisories: list[KnownAdvisory] | None = None,
) -> list[Vulnerability]:
    """Advisories from the built-in table affecting ``name@version``."""
    table = KNOWN_ADVISORIES if advisories is None else advisories
    lowered = name.lower()
    return [
        adv.to_vulnerability(version)
        for adv in table
        if adv.ecosystem is ecosystem
        and adv.package.lower() == lowered
        and is_version_vulnerable(version, adv.affected_versions)
    ]
