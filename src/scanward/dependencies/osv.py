"""OSV.dev client and advisory mapping."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import datetime, timezone

import httpx

from scanward.config import OSV_API_URL
from scanward.dependencies.models import Ecosystem, Exploitability, Vulnerability
from scanward.errors import FeedError
from scanward.scanner.models import Severity, utcnow

logger = logging.getLogger(__name__)

_CVE = re.compile(r"^CVE-\d{4}-\d{3,}$", re.IGNORECASE)
_GHSA = re.compile(r"^GHSA-", re.IGNORECASE)
_NUMERIC = re.compile(r"^[0-9.]+$")

# database_specific.severity label → (severity, representative score)
SEVERITY_LABELS: dict[str, tuple[Severity, float]] = {
    "critical": (Severity.CRITICAL, 9.5),
    "high": (Severity.HIGH, 8.0),
    "severe": (Severity.HIGH, 8.0),
    "moderate": (Severity.MEDIUM, 6.0),
    "medium": (Severity.MEDIUM, 6.0),
    "low": (Severity.LOW, 3.0),
    "info": (Severity.INFO, 0.1),
}


def severity_from_cvss(score: float) -> Severity:
    if score >= 9.0:
        return Severity.CRITICAL
    if score >= 7.0:
        return Severity.HIGH
    if score >= 4.0:
        return Severity.MEDIUM
    if score > 0:
        return Severity.LOW
    return Severity.MEDIUM


def _parse_time(value: object) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _preferred_id(raw: dict, fallback: str) -> str:
    aliases = [str(a) for a in raw.get("aliases") or []]
    for alias in aliases:
        if _CVE.match(alias):
            return alias.upper()
    cve = (raw.get("database_specific") or {}).get("cve")
    if cve:
        return str(cve).upper()
    for alias in aliases:
        if _GHSA.match(alias):
            return alias.upper()
    return str(raw.get("id") or (aliases[0] if aliases else fallback))


def _max_cvss(raw: dict) -> float:
    best = 0.0
    for entry in raw.get("severity") or []:
        if not isinstance(entry, dict):
            continue
        score = entry.get("score")
        if isinstance(score, (int, float)):
            value = float(score)
        elif isinstance(score, str) and _NUMERIC.match(score):
            try:
                value = float(score)
            except ValueError:
                continue
        else:
            # Vector strings carry no base score
            continue
        best = max(best, value)
    return best


def _fixed_in(raw: dict, package: str) -> str | None:
    for affected in raw.get("affected") or []:
        name = ((affected or {}).get("package") or {}).get("name", "")
        if str(name).lower() != package.lower():
            continue
        # First fixed event wins, not the last
        for rng in affected.get("ranges") or []:
            for event in rng.get("events") or []:
                if event.get("fixed"):
                    return str(event["fixed"])
    return None


def _affected_ranges(raw: dict, package: str) -> str:
    spans: list[str] = []
    for affected in raw.get("affected") or []:
        name = ((affected or {}).get("package") or {}).get("name", "")
        if str(name).lower() != package.lower():
            continue
        for rng in affected.get("ranges") or []:
            introduced = fixed = None
            for event in rng.get("events") or []:
                introduced = event.get("introduced", introduced)
                fixed = event.get("fixed", fixed)
            if introduced and introduced != "0" and fixed:
                spans.append(f"{introduced}-{fixed}")
            elif fixed:
                spans.append(f"<{fixed}")
    return ", ".join(spans)


def map_osv_vulnerability(
    raw: dict, package: str, version: str, ecosystem: Ecosystem
) -> Vulnerability:
    """Convert one OSV advisory into a :class:`Vulnerability`."""
    vuln_id = _preferred_id(raw, f"{package}-{version}")
    storage_key = str(raw.get("id") or vuln_id)

    cvss = _max_cvss(raw)
    severity = severity_from_cvss(cvss)
    label = str((raw.get("database_specific") or {}).get("severity") or "").lower()
    if label in SEVERITY_LABELS:
        severity, label_score = SEVERITY_LABELS[label]
        if cvss == 0:
            cvss = label_score

    published = _parse_time(raw.get("published")) or _parse_time(raw.get("modified"))
    published = published or utcnow()
    modified = _parse_time(raw.get("modified")) or published

    return Vulnerability(
        id=f"{package}_{storage_key}",
        package_name=package,
        version=version,
        ecosystem=ecosystem,
        vulnerability_id=vuln_id,
        severity=severity,
        description=str(raw.get("summary") or raw.get("details") or ""),
        cvss_score=cvss,
        affected_versions=_affected_ranges(raw, package),
        fixed_in_version=_fixed_in(raw, package),
        published_at=published,
        last_updated=modified,
        exploitability=Exploitability.from_cvss(cvss),
    )


def map_osv_vulnerabilities(
    raws: Sequence[dict], package: str, version: str, ecosystem: Ecosystem
) -> list[Vulnerability]:
    """Map advisories, most severe first, then most recently published."""
    out: list[Vulnerability] = []
    for raw in raws:
        if not isinstance(raw, dict):
            continue
        try:
            out.append(map_osv_vulnerability(raw, package, version, ecosystem))
        except (TypeError, AttributeError, ValueError) as e:
            logger.debug("Skipping malformed advisory for %s: %s", package, e)
    out.sort(key=lambda v: (-v.severity.rank, -v.published_at.timestamp()))
    return out


def is_minimal(raw: object) -> bool:
    """Batch responses only carry ``id`` and ``modified`` per advisory."""
    return not isinstance(raw, dict) or len(raw) <= 2


class OSVClient:
    """Thin async wrapper over the OSV query endpoints.

    Every failure mode (timeout, transport error, non-2xx status, invalid
    JSON) surfaces as :class:`FeedError`.
    """

    def __init__(
        self,
        base_url: str = OSV_API_URL,
        timeout: float = 7.0,
        batch_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._batch_timeout = batch_timeout
        self._transport = transport

    async def _post(self, path: str, body: dict, timeout: float) -> dict:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=timeout, transport=self._transport
            ) as client:
                response = await client.post(url, json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise FeedError(f"OSV request to {url} failed: {e}") from e
        except ValueError as e:
            raise FeedError(f"OSV returned invalid JSON from {url}: {e}") from e

        if not isinstance(data, dict):
            raise FeedError(f"OSV returned unexpected payload from {url}")
        return data

    async def query(self, name: str, version: str, ecosystem: Ecosystem) -> list[dict]:
        """Advisories for one package version."""
        body = {
            "package": {"name": name, "ecosystem": ecosystem.osv_name},
            "version": version,
        }
        data = await self._post("/v1/query", body, self._timeout)
        vulns = data.get("vulns") or []
        return [v for v in vulns if isinstance(v, dict)]

    async def query_batch(
        self, packages: Sequence[tuple[str, str, Ecosystem]]
    ) -> list[list[dict]]:
        """Advisories for many package versions, one list per input."""
        if not packages:
            return []
        body = {
            "queries": [
                {
                    "package": {"name": name, "ecosystem": eco.osv_name},
                    "version": version,
                }
                for name, version, eco in packages
            ]
        }
        data = await self._post("/v1/querybatch", body, self._batch_timeout)
        results = data.get("results") or []

        out: list[list[dict]] = []
        for i in range(len(packages)):
            entry = results[i] if i < len(results) else None
            vulns = entry.get("vulns") if isinstance(entry, dict) else None
            vulns = vulns or []
            out.append([v for v in vulns if isinstance(v, dict)])
        return out
