"""Scan orchestrator — sequences scanners, policy, persistence and events."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
from collections.abc import Sequence
from datetime import timedelta
from pathlib import Path

from scanward.config import ScanwardConfig
from scanward.dependencies.collector import DependencyScanner
from scanward.dependencies.models import Vulnerability
from scanward.dependencies.resolver import VulnerabilityResolver
from scanward.entities import Entity, EntityProvider
from scanward.incremental.detector import IncrementalScanner
from scanward.policy.engine import PolicyEngine
from scanward.scan.events import (
    SCAN_CANCELLED,
    SCAN_COMPLETED,
    SCAN_FAILED,
    SCAN_STARTED,
    ScanEvents,
)
from scanward.scan.models import (
    IncrementalScanResult,
    ScanRequest,
    ScanStatus,
    ScanSummary,
    SecurityScanResult,
)
from scanward.scanner.base import IssueScanner, VulnerabilityScanner
from scanward.scanner.engine import CodeScanner
from scanward.scanner.models import ScanOptions, SecurityIssue, utcnow
from scanward.scanner.secrets import SecretsScanner
from scanward.storage.store import SecurityStore

logger = logging.getLogger(__name__)

RECENT_LIMIT = 100
PARALLEL_THRESHOLD = 10
DEFAULT_CONCURRENCY = 4


def chunk_entities(entities: Sequence[Entity], max_concurrent: int) -> list[list[Entity]]:
    """Split into at most ``max_concurrent`` chunks of ``ceil(N / max_concurrent)``."""
    if not entities:
        return []
    size = max(1, math.ceil(len(entities) / max(1, max_concurrent)))
    return [list(entities[i : i + size]) for i in range(0, len(entities), size)]


def filter_carried(
    issues: Sequence[SecurityIssue],
    vulnerabilities: Sequence[Vulnerability],
    options: ScanOptions,
) -> tuple[list[SecurityIssue], list[Vulnerability]]:
    """Drop baseline findings that a full scan with ``options`` would not report."""
    kept_issues = [
        i
        for i in issues
        if options.category_enabled(i.category)
        and i.severity.at_least(options.severity_threshold)
        and i.confidence >= options.confidence_threshold
    ]
    if not (options.include_sca and options.include_dependencies):
        return kept_issues, []
    kept_vulns = [
        v for v in vulnerabilities if v.severity.at_least(options.severity_threshold)
    ]
    return kept_issues, kept_vulns


class SecurityScanner:
    """Runs full and incremental scans and tracks their lifecycle."""

    def __init__(
        self,
        entities: EntityProvider,
        code_scanner: IssueScanner | None = None,
        secrets_scanner: IssueScanner | None = None,
        dependency_scanner: VulnerabilityScanner | None = None,
        policy: PolicyEngine | None = None,
        incremental: IncrementalScanner | None = None,
        store: SecurityStore | None = None,
        max_concurrent_scans: int | None = None,
        events: ScanEvents | None = None,
    ) -> None:
        self._entities = entities
        self._code = code_scanner or CodeScanner()
        self._secrets = secrets_scanner or SecretsScanner()
        self._deps = dependency_scanner or DependencyScanner()
        self._policy = policy or PolicyEngine.load()
        self._store = store
        self._incremental = incremental or IncrementalScanner(store=store)
        self._max_concurrent = max_concurrent_scans
        self.events = events or ScanEvents()
        self._active: dict[str, SecurityScanResult] = {}
        self._history: dict[str, SecurityScanResult] = {}

    @classmethod
    def from_config(
        cls,
        config: ScanwardConfig,
        entities: EntityProvider,
        store: SecurityStore | None = None,
        root: str | Path | None = None,
    ) -> SecurityScanner:
        force_after = (
            timedelta(days=config.force_rescan_days)
            if config.force_rescan_days
            else None
        )
        return cls(
            entities,
            dependency_scanner=DependencyScanner(
                VulnerabilityResolver.from_config(config)
            ),
            policy=PolicyEngine.load(
                config.policies_path, config.suppressions_path, root=root
            ),
            incremental=IncrementalScanner(store=store, force_rescan_after=force_after),
            store=store,
            max_concurrent_scans=config.max_concurrent_scans,
        )

    @property
    def policy(self) -> PolicyEngine:
        return self._policy

    async def initialize(self) -> None:
        if self._store is not None:
            await self._store.ensure_schema()

    # -- lifecycle --------------------------------------------------------

    def _start(self, result: SecurityScanResult) -> None:
        result.status = ScanStatus.RUNNING
        self._active[result.scan_id] = result
        self.events.emit(SCAN_STARTED, result)
        logger.info("Scan %s started", result.scan_id)

    def _retire(self, result: SecurityScanResult) -> None:
        self._active.pop(result.scan_id, None)
        self._history[result.scan_id] = result

    def cancel_scan(self, scan_id: str) -> bool:
        """Mark a running scan cancelled. Work already dispatched still runs."""
        result = self._active.get(scan_id)
        if result is None or result.status is not ScanStatus.RUNNING:
            return False
        result.finish(ScanStatus.CANCELLED)
        self._retire(result)
        self.events.emit(SCAN_CANCELLED, result)
        logger.info("Scan %s cancelled", scan_id)
        return True

    def get_scan_result(self, scan_id: str) -> SecurityScanResult | None:
        return self._active.get(scan_id) or self._history.get(scan_id)

    def get_scan_history(self, limit: int = 10) -> list[SecurityScanResult]:
        """Finished scans, most recent first."""
        finished = sorted(
            self._history.values(), key=lambda r: r.started_at, reverse=True
        )
        return finished[:limit]

    # -- scanning ---------------------------------------------------------

    def _resolve_entities(self, request: ScanRequest) -> list[Entity]:
        if not request.entity_ids:
            return self._entities.recent(RECENT_LIMIT)
        entities = []
        for entity_id in request.entity_ids:
            entity = self._entities.get_entity(entity_id)
            if entity is None:
                logger.warning("Unknown entity %s, skipping", entity_id)
                continue
            entities.append(entity)
        return entities

    async def _scan_entities(
        self, entities: list[Entity], options: ScanOptions
    ) -> tuple[list[SecurityIssue], list[Vulnerability]]:
        """Fan the three scanners out over ``entities`` and gather their output."""

        async def _none() -> list:
            return []

        sast, secrets, deps = await asyncio.gather(
            self._code.scan(entities, options) if options.include_sast else _none(),
            self._secrets.scan(entities, options)
            if options.include_secrets
            else _none(),
            self._deps.scan(entities, options)
            if options.include_sca and options.include_dependencies
            else _none(),
        )
        return sast + secrets, deps

    async def _run_scanners(
        self, entities: list[Entity], options: ScanOptions
    ) -> tuple[list[SecurityIssue], list[Vulnerability]]:
        parallel = len(entities) > PARALLEL_THRESHOLD or self._max_concurrent is not None
        if not parallel:
            return await self._scan_entities(entities, options)

        chunks = chunk_entities(entities, self._max_concurrent or DEFAULT_CONCURRENCY)
        logger.debug("Scanning %d entities in %d chunks", len(entities), len(chunks))
        results = await asyncio.gather(
            *(self._scan_entities(chunk, options) for chunk in chunks)
        )

        issues: list[SecurityIssue] = []
        vulnerabilities: list[Vulnerability] = []
        for chunk_issues, chunk_vulns in results:
            issues.extend(chunk_issues)
            vulnerabilities.extend(chunk_vulns)
        return issues, vulnerabilities

    async def _complete(
        self,
        result: SecurityScanResult,
        issues: list[SecurityIssue],
        vulnerabilities: list[Vulnerability],
        files_scanned: int,
        options: ScanOptions,
    ) -> None:
        """Policy, summary and persistence shared by full and incremental scans."""
        result.issues = self._policy.filter_issues(issues)
        result.vulnerabilities = self._policy.filter_vulnerabilities(vulnerabilities)
        if options.include_compliance:
            result.compliance = self._policy.validate_policy_compliance(
                result.issues, result.vulnerabilities
            )
        result.summary = ScanSummary.build(
            result.issues, result.vulnerabilities, files_scanned=files_scanned
        )
        if result.status is ScanStatus.CANCELLED:
            return

        result.finish(ScanStatus.COMPLETED)
        if self._store is not None:
            await self._store.save_scan_result(result)
        self._retire(result)
        self.events.emit(SCAN_COMPLETED, result)
        logger.info(
            "Scan %s completed: %d issues, %d vulnerabilities in %.2fs",
            result.scan_id,
            len(result.issues),
            len(result.vulnerabilities),
            result.duration,
        )

    def _fail(self, result: SecurityScanResult, exc: BaseException) -> None:
        if result.status is ScanStatus.CANCELLED:
            return
        result.finish(ScanStatus.FAILED, error=str(exc) or type(exc).__name__)
        self._retire(result)
        self.events.emit(SCAN_FAILED, result)
        logger.error("Scan %s failed: %s", result.scan_id, result.error)

    async def perform_scan(
        self,
        request: ScanRequest | None = None,
        options: ScanOptions | None = None,
    ) -> SecurityScanResult:
        request = request or ScanRequest()
        options = options or ScanOptions()
        result = SecurityScanResult()
        self._start(result)

        try:
            entities = self._resolve_entities(request)
            issues, vulnerabilities = await self._run_scanners(entities, options)
            await self._complete(result, issues, vulnerabilities, len(entities), options)
        except Exception as e:
            self._fail(result, e)
            raise
        return result

    def _carried_from_history(
        self, baseline_scan_id: str | None, paths: set[str]
    ) -> tuple[list[SecurityIssue], list[Vulnerability]]:
        baseline = self._history.get(baseline_scan_id) if baseline_scan_id else None
        if baseline is None or not paths:
            return [], []
        issues = [i for i in baseline.issues if i.file_path in paths]
        vulns = [v for v in baseline.vulnerabilities if v.source_path in paths]
        return issues, vulns

    async def perform_incremental_scan(
        self,
        request: ScanRequest | None = None,
        options: ScanOptions | None = None,
    ) -> IncrementalScanResult:
        """Rescan changed files only, carrying forward findings for the rest."""
        request = request or ScanRequest()
        options = options or ScanOptions()
        result = IncrementalScanResult()
        self._start(result)

        try:
            entities = self._resolve_entities(request)
            partition = await self._incremental.perform_incremental_scan(
                entities, options, request.baseline_scan_id
            )
            baseline_id = partition.scan_state.baseline_scan_id
            result.baseline_scan_id = baseline_id
            result.changed_files = [e.path for e in partition.changed_entities]
            result.skipped_files = [e.path for e in partition.skipped_entities]

            issues, vulnerabilities = await self._run_scanners(
                partition.changed_entities, options
            )

            if self._store is not None:
                old_issues, old_vulns = await self._incremental.get_previous_scan_issues(
                    partition.skipped_entities, baseline_id
                )
            else:
                old_issues, old_vulns = self._carried_from_history(
                    baseline_id, set(result.skipped_files)
                )
            old_issues, old_vulns = filter_carried(old_issues, old_vulns, options)
            now = utcnow()
            issues.extend(dataclasses.replace(i, last_scanned=now) for i in old_issues)
            vulnerabilities.extend(old_vulns)
            logger.debug(
                "Carried forward %d issues and %d vulnerabilities from %s",
                len(old_issues),
                len(old_vulns),
                baseline_id,
            )

            await self._complete(
                result, issues, vulnerabilities, len(partition.changed_entities), options
            )
            if result.status is ScanStatus.COMPLETED:
                await self._incremental.save_scan_state(
                    result.scan_id, partition.scan_state
                )
        except Exception as e:
            self._fail(result, e)
            raise
        return result
