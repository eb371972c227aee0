"""Shared test fixtures."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from scanward.dependencies.collector import DependencyScanner
from scanward.dependencies.resolver import VulnerabilityResolver
from scanward.entities import EntityIndex

SQL_LINE = 'const query = "SELECT * FROM users WHERE id = " + userId;'


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A tiny project with one SQL injection and one vulnerable dependency."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "app.js").write_text(SQL_LINE + "\n")
    (root / "package.json").write_text(
        json.dumps({"dependencies": {"lodash": "4.17.10"}})
    )
    return root


@pytest.fixture
def project_index(project_dir: Path) -> EntityIndex:
    return EntityIndex.from_directory(project_dir)


@pytest.fixture
def offline_dependency_scanner() -> DependencyScanner:
    return DependencyScanner(VulnerabilityResolver(osv_enabled=False))


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

