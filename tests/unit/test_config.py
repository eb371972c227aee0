"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

from scanward.config import OSV_API_URL, ScanwardConfig


def test_defaults(monkeypatch, tmp_path: Path):
    for name in (
        "SCANWARD_DB_PATH",
        "SCANWARD_POLICIES",
        "SCANWARD_SUPPRESSIONS",
        "SCANWARD_OSV_ENABLED",
        "SCANWARD_OSV_URL",
        "SCANWARD_FORCE_RESCAN_DAYS",
        "SCANWARD_MAX_CONCURRENT_SCANS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))

    config = ScanwardConfig.load()
    assert config.database == tmp_path / "data" / "scanward" / "scanward.db"
    assert config.policies_path is None
    assert config.suppressions_path == Path(".security-suppressions.json")
    assert config.osv_enabled
    assert config.osv_url == OSV_API_URL
    assert config.force_rescan_days == 7.0
    assert config.max_concurrent_scans is None


def test_env_overrides(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("SCANWARD_DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("SCANWARD_OSV_ENABLED", "false")
    monkeypatch.setenv("SCANWARD_OSV_URL", "http://osv.local/")
    monkeypatch.setenv("SCANWARD_FORCE_RESCAN_DAYS", "0")
    monkeypatch.setenv("SCANWARD_MAX_CONCURRENT_SCANS", "3")

    config = ScanwardConfig.load()
    assert config.database == tmp_path / "x.db"
    assert not config.osv_enabled
    assert config.osv_url == "http://osv.local"
    assert config.force_rescan_days is None
    assert config.max_concurrent_scans == 3


def test_policies_file_picked_up_from_config_dir(monkeypatch, tmp_path: Path):
    monkeypatch.delenv("SCANWARD_POLICIES", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    policies = tmp_path / "scanward" / "policies.yml"
    policies.parent.mkdir()
    policies.write_text("policies: []\n")

    assert ScanwardConfig.load().policies_path == policies
