"""Vulnerability resolver — cached OSV lookups with offline fallback."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from scanward.cache import TTLCache
from scanward.config import ScanwardConfig
from scanward.dependencies.known import KnownAdvisory, lookup_known
from scanward.dependencies.models import DependencyInfo, Ecosystem, Vulnerability
from scanward.dependencies.osv import OSVClient, is_minimal, map_osv_vulnerabilities
from scanward.dependencies.versions import clean_version
from scanward.errors import FeedError

logger = logging.getLogger(__name__)

CACHE_TTL = 24 * 60 * 60


def cache_key(name: str, version: str, ecosystem: Ecosystem) -> str:
    return f"{ecosystem.value}:{name}@{version}"


class VulnerabilityResolver:
    """Resolves package versions to known vulnerabilities.

    Lookup order: fresh cache entry, then OSV (when enabled), then the
    built-in advisory table. A failed OSV call serves the stale cache entry
    for the key if one exists; feed errors never reach the caller.
    """

    def __init__(
        self,
        client: OSVClient | None = None,
        cache: TTLCache[list[Vulnerability]] | None = None,
        osv_enabled: bool = True,
        use_batch: bool = True,
        advisories: list[KnownAdvisory] | None = None,
    ) -> None:
        self._client = client or OSVClient()
        self._cache: TTLCache[list[Vulnerability]] = (
            cache if cache is not None else TTLCache(capacity=10_000, ttl=CACHE_TTL)
        )
        self._osv_enabled = osv_enabled
        self._use_batch = use_batch
        self._advisories = advisories

    @classmethod
    def from_config(cls, config: ScanwardConfig) -> VulnerabilityResolver:
        return cls(
            client=OSVClient(
                base_url=config.osv_url,
                timeout=config.osv_timeout,
                batch_timeout=config.osv_batch_timeout,
            ),
            cache=TTLCache(capacity=config.cache_capacity, ttl=config.cache_ttl),
            osv_enabled=config.osv_enabled,
            use_batch=config.osv_batch,
        )

    @property
    def cache(self) -> TTLCache[list[Vulnerability]]:
        return self._cache

    def _known(self, name: str, version: str, ecosystem: Ecosystem) -> list[Vulnerability]:
        return lookup_known(name, version, ecosystem, self._advisories)

    def _fail_over(
        self, key: str, name: str, version: str, ecosystem: Ecosystem
    ) -> list[Vulnerability]:
        stale = self._cache.get_stale(key)
        if stale is not None:
            logger.info("Serving stale cache entry for %s", key)
            return list(stale)
        return self._known(name, version, ecosystem)

    async def check_vulnerabilities(
        self, name: str, version: str, ecosystem: Ecosystem
    ) -> list[Vulnerability]:
        """Vulnerabilities affecting ``name`` at its declared ``version``."""
        concrete = clean_version(version)
        if concrete is None:
            logger.debug("No concrete version for %s %r, skipping", name, version)
            return []

        key = cache_key(name, concrete, ecosystem)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        if not self._osv_enabled:
            result = self._known(name, concrete, ecosystem)
            self._cache.set(key, result)
            return list(result)

        try:
            raws = await self._client.query(name, concrete, ecosystem)
        except FeedError as e:
            logger.warning("OSV lookup failed for %s: %s", key, e)
            return self._fail_over(key, name, concrete, ecosystem)

        result = map_osv_vulnerabilities(raws, name, concrete, ecosystem)
        if not result:
            result = self._known(name, concrete, ecosystem)
        self._cache.set(key, result)
        return list(result)

    async def batch_check_vulnerabilities(
        self, deps: Sequence[DependencyInfo]
    ) -> list[Vulnerability]:
        """Resolve many dependencies with one OSV batch call per ecosystem."""
        pending: dict[str, tuple[str, str, Ecosystem]] = {}
        results: list[Vulnerability] = []

        for dep in deps:
            concrete = clean_version(dep.version)
            if concrete is None:
                continue
            key = cache_key(dep.name, concrete, dep.ecosystem)
            if key in pending:
                continue
            cached = self._cache.get(key)
            if cached is not None:
                results.extend(cached)
                continue
            pending[key] = (dep.name, concrete, dep.ecosystem)

        if not pending:
            return results

        if not self._osv_enabled or not self._use_batch:
            lists = await asyncio.gather(
                *(
                    self.check_vulnerabilities(name, version, eco)
                    for name, version, eco in pending.values()
                )
            )
            for found in lists:
                results.extend(found)
            return results

        groups: dict[Ecosystem, list[tuple[str, str, Ecosystem]]] = {}
        for item in pending.values():
            groups.setdefault(item[2], []).append(item)

        lists = await asyncio.gather(
            *(self._resolve_group(items) for items in groups.values())
        )
        for found in lists:
            results.extend(found)
        return results

    async def _resolve_group(
        self, items: list[tuple[str, str, Ecosystem]]
    ) -> list[Vulnerability]:
        out: list[Vulnerability] = []
        try:
            batches = await self._client.query_batch(items)
        except FeedError as e:
            logger.warning("OSV batch lookup failed for %d packages: %s", len(items), e)
            for name, version, eco in items:
                out.extend(self._fail_over(cache_key(name, version, eco), name, version, eco))
            return out

        for (name, version, eco), raws in zip(items, batches):
            key = cache_key(name, version, eco)
            if raws and any(is_minimal(raw) for raw in raws):
                # Batch entries only carry ids; fetch full advisories
                try:
                    raws = await self._client.query(name, version, eco)
                except FeedError as e:
                    logger.warning("OSV detail lookup failed for %s: %s", key, e)
                    out.extend(self._fail_over(key, name, version, eco))
                    continue

            found = map_osv_vulnerabilities(raws, name, version, eco)
            if not found:
                found = self._known(name, version, eco)
            self._cache.set(key, found)
            out.extend(found)
        return out
