"""Global configuration — XDG paths, env vars, defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

OSV_API_URL = "https://api.osv.dev"

# 10 MiB
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


def _default_data_dir() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "scanward"
    return Path.home() / ".local" / "share" / "scanward"


def _default_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "scanward"
    return Path.home() / ".config" / "scanward"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


@dataclass
class ScanwardConfig:
    """Application-wide configuration."""

    data_dir: Path = field(default_factory=_default_data_dir)
    config_dir: Path = field(default_factory=_default_config_dir)
    db_path: Path | None = None
    policies_path: Path | None = None
    suppressions_path: Path = Path(".security-suppressions.json")
    osv_enabled: bool = True
    osv_batch: bool = True
    osv_url: str = OSV_API_URL
    osv_timeout: float = 7.0
    osv_batch_timeout: float = 10.0
    cache_ttl: float = 24 * 60 * 60
    cache_capacity: int = 10_000
    max_concurrent_scans: int | None = None
    force_rescan_days: float | None = 7.0
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    verbose: bool = False

    @property
    def database(self) -> Path:
        return self.db_path or self.data_dir / "scanward.db"

    @classmethod
    def load(cls) -> ScanwardConfig:
        """Load config from environment variables with XDG defaults."""
        config = cls()

        env_db = os.environ.get("SCANWARD_DB_PATH")
        if env_db:
            config.db_path = Path(env_db)

        env_policies = os.environ.get("SCANWARD_POLICIES")
        if env_policies:
            config.policies_path = Path(env_policies)
        else:
            # Pick up a policies file from the config dir if present
            for name in ("policies.yaml", "policies.yml", "policies.json"):
                candidate = config.config_dir / name
                if candidate.is_file():
                    config.policies_path = candidate
                    break

        env_suppressions = os.environ.get("SCANWARD_SUPPRESSIONS")
        if env_suppressions:
            config.suppressions_path = Path(env_suppressions)

        config.osv_enabled = _env_flag("SCANWARD_OSV_ENABLED", config.osv_enabled)
        config.osv_batch = _env_flag("SCANWARD_OSV_BATCH", config.osv_batch)

        env_url = os.environ.get("SCANWARD_OSV_URL")
        if env_url:
            config.osv_url = env_url.rstrip("/")

        env_timeout = os.environ.get("SCANWARD_OSV_TIMEOUT")
        if env_timeout:
            config.osv_timeout = float(env_timeout)

        env_concurrency = os.environ.get("SCANWARD_MAX_CONCURRENT_SCANS")
        if env_concurrency:
            config.max_concurrent_scans = int(env_concurrency)

        env_rescan = os.environ.get("SCANWARD_FORCE_RESCAN_DAYS")
        if env_rescan:
            days = float(env_rescan)
            config.force_rescan_days = days if days > 0 else None

        return config
