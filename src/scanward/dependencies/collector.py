"""Dependency collector — manifests in, vulnerabilities out."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Iterable
from pathlib import Path

from scanward.dependencies.manifests import MANIFEST_PARSERS, is_manifest
from scanward.dependencies.models import DependencyInfo, Vulnerability
from scanward.dependencies.resolver import VulnerabilityResolver
from scanward.dependencies.versions import clean_version
from scanward.entities import Entity
from scanward.scanner.models import ScanOptions

logger = logging.getLogger(__name__)


def deduplicate(deps: Iterable[DependencyInfo]) -> list[DependencyInfo]:
    """Keep the first dependency per ``ecosystem:name@version``."""
    seen: set[str] = set()
    unique: list[DependencyInfo] = []
    for dep in deps:
        if dep.key in seen:
            continue
        seen.add(dep.key)
        unique.append(dep)
    return unique


def _source_key(dep: DependencyInfo) -> tuple[str, str, str | None]:
    return (dep.ecosystem.value, dep.name.lower(), clean_version(dep.version))


class DependencyScanner:
    """Software composition analysis over manifest entities."""

    tool = "DependencyScanner"

    def __init__(self, resolver: VulnerabilityResolver | None = None) -> None:
        self._resolver = resolver or VulnerabilityResolver()
        self._package_cache: dict[str, list[DependencyInfo]] = {}

    @property
    def resolver(self) -> VulnerabilityResolver:
        return self._resolver

    async def scan_package_file(self, path: str) -> list[DependencyInfo]:
        """Parse one manifest; results are memoized per path."""
        if path in self._package_cache:
            return self._package_cache[path]

        name = Path(path).name
        parser = MANIFEST_PARSERS.get(name)
        if parser is None:
            logger.warning("Unsupported package file: %s", name)
            return []

        try:
            content = await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        except (OSError, UnicodeError) as e:
            logger.warning("Cannot read package file %s: %s", path, e)
            return []

        try:
            deps = parser(content, path)
        except Exception as e:
            logger.error("Failed to parse package file %s: %s", path, e)
            deps = []

        self._package_cache[path] = deps
        return deps

    async def collect_dependencies(self, entities: Iterable[Entity]) -> list[DependencyInfo]:
        deps: list[DependencyInfo] = []
        for entity in entities:
            if not entity.is_file or not is_manifest(entity.path):
                continue
            deps.extend(await self.scan_package_file(entity.path))
        return deps

    async def scan(
        self, entities: Iterable[Entity], options: ScanOptions
    ) -> list[Vulnerability]:
        entities = list(entities)
        deps = await self.collect_dependencies(entities)
        unique = deduplicate(deps)
        if not unique:
            return []

        found = await self._resolver.batch_check_vulnerabilities(unique)

        # Attribute each vulnerability back to every manifest declaring that version
        sources: dict[tuple[str, str, str | None], list[str]] = {}
        for dep in deps:
            paths = sources.setdefault(_source_key(dep), [])
            if dep.path not in paths:
                paths.append(dep.path)

        vulnerabilities: list[Vulnerability] = []
        for vuln in found:
            if not vuln.severity.at_least(options.severity_threshold):
                continue
            paths = sources.get(
                (vuln.ecosystem.value, vuln.package_name.lower(), vuln.version), [""]
            )
            for path in paths:
                vulnerabilities.append(dataclasses.replace(vuln, source_path=path))

        logger.debug(
            "%s checked %d dependencies, found %d vulnerabilities",
            self.tool,
            len(unique),
            len(vulnerabilities),
        )
        return vulnerabilities
