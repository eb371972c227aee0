"""Incremental change detection by SHA-256 checksum diffing."""

from __future__ import annotations

import asyncio
import copy
import hashlib
import logging
import os
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Protocol

from scanward.dependencies.models import Vulnerability
from scanward.entities import Entity
from scanward.incremental.models import (
    FileChecksum,
    IncrementalPartition,
    IncrementalScanState,
)
from scanward.scanner.models import ScanOptions, SecurityIssue, utcnow

logger = logging.getLogger(__name__)

FORCE_RESCAN_AFTER = timedelta(days=7)


class ScanStateStore(Protocol):
    """Persistence the detector needs; implemented by SecurityStore."""

    async def load_scan_state(self, scan_id: str) -> IncrementalScanState | None:
        ...

    async def latest_scan_state_id(self) -> str | None:
        ...

    async def save_scan_state(self, scan_id: str, state: IncrementalScanState) -> None:
        ...

    async def previous_results(
        self, scan_id: str, paths: list[str]
    ) -> tuple[list[SecurityIssue], list[Vulnerability]]:
        ...


def compute_checksum(path: str) -> FileChecksum | None:
    """Hash a file's bytes; None if it cannot be read."""
    try:
        digest = hashlib.sha256()
        with open(path, "rb") as fh:
            for block in iter(lambda: fh.read(65536), b""):
                digest.update(block)
        st = os.stat(path)
    except OSError as e:
        logger.debug("Cannot checksum %s: %s", path, e)
        return None
    return FileChecksum(
        path=path, sha256=digest.hexdigest(), mtime=st.st_mtime, size=st.st_size
    )


class IncrementalScanner:
    """Splits entities into changed and unchanged against a prior scan."""

    def __init__(
        self,
        store: ScanStateStore | None = None,
        force_rescan_after: timedelta | None = FORCE_RESCAN_AFTER,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._force_rescan_after = force_rescan_after
        self._clock = clock
        self._states: dict[str, IncrementalScanState] = {}
        self._latest_id: str | None = None

    async def load_state(self, baseline_scan_id: str | None) -> IncrementalScanState:
        """Prior state: memory, then store, then an empty epoch state.

        With no baseline id the most recently saved state is used.
        """
        if baseline_scan_id is None:
            baseline_scan_id = self._latest_id
        if baseline_scan_id is None and self._store is not None:
            baseline_scan_id = await self._store.latest_scan_state_id()
        if baseline_scan_id is None:
            return IncrementalScanState()

        cached = self._states.get(baseline_scan_id)
        if cached is not None:
            state = copy.deepcopy(cached)
        else:
            state = None
            if self._store is not None:
                state = await self._store.load_scan_state(baseline_scan_id)
            if state is None:
                logger.info("No scan state for baseline %s", baseline_scan_id)
                return IncrementalScanState()

        state.baseline_scan_id = baseline_scan_id
        return state

    def _force_rescan(self, state: IncrementalScanState) -> bool:
        if self._force_rescan_after is None:
            return False
        return self._clock() - state.last_scan_timestamp > self._force_rescan_after

    async def perform_incremental_scan(
        self,
        entities: Iterable[Entity],
        options: ScanOptions | None = None,
        baseline_scan_id: str | None = None,
    ) -> IncrementalPartition:
        state = await self.load_state(baseline_scan_id)
        previous = dict(state.checksums)
        forced = bool(previous) and self._force_rescan(state)
        if forced:
            logger.info("Scan state is stale, rescanning every file")

        changed: list[Entity] = []
        skipped: list[Entity] = []
        for entity in entities:
            if not entity.is_file:
                changed.append(entity)
                continue

            checksum = await asyncio.to_thread(compute_checksum, entity.path)
            if checksum is None:
                changed.append(entity)
                continue

            prior = previous.get(entity.path)
            if prior is None or prior.sha256 != checksum.sha256 or forced:
                changed.append(entity)
            else:
                skipped.append(entity)
            state.checksums[entity.path] = checksum

        logger.debug(
            "Incremental partition: %d changed, %d unchanged",
            len(changed),
            len(skipped),
        )
        return IncrementalPartition(
            changed_entities=changed, skipped_entities=skipped, scan_state=state
        )

    async def save_scan_state(self, scan_id: str, state: IncrementalScanState) -> None:
        """Record ``state`` as the checksum baseline for ``scan_id``."""
        state.last_scan_timestamp = self._clock()
        self._states[scan_id] = copy.deepcopy(state)
        self._latest_id = scan_id
        if self._store is not None:
            await self._store.save_scan_state(scan_id, state)

    async def get_previous_scan_issues(
        self, skipped_entities: Iterable[Entity], baseline_scan_id: str | None
    ) -> tuple[list[SecurityIssue], list[Vulnerability]]:
        """Findings recorded by the baseline scan for the unchanged files."""
        paths = [e.path for e in skipped_entities if e.path]
        if not paths or baseline_scan_id is None or self._store is None:
            return [], []
        return await self._store.previous_results(baseline_scan_id, paths)
