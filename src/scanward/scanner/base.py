"""Interfaces the scan orchestrator fans work out to."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from scanward.entities import Entity
from scanward.scanner.models import ScanOptions, SecurityIssue

if TYPE_CHECKING:
    from scanward.dependencies.models import Vulnerability


class IssueScanner(Protocol):
    """Produces code findings for a batch of entities."""

    async def scan(
        self, entities: Iterable[Entity], options: ScanOptions
    ) -> list[SecurityIssue]:
        ...


class VulnerabilityScanner(Protocol):
    """Produces dependency vulnerabilities for a batch of entities."""

    async def scan(
        self, entities: Iterable[Entity], options: ScanOptions
    ) -> list[Vulnerability]:
        ...
