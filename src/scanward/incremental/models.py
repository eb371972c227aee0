"""Checksum state carried between incremental scans."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from scanward.entities import Entity

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class FileChecksum:
    path: str
    sha256: str
    mtime: float
    size: int

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "checksum": self.sha256,
            "lastModified": self.mtime,
            "size": self.size,
        }

    @classmethod
    def from_dict(cls, data: dict) -> FileChecksum:
        return cls(
            path=str(data["path"]),
            sha256=str(data["checksum"]),
            mtime=float(data.get("lastModified", 0.0)),
            size=int(data.get("size", 0)),
        )


@dataclass
class IncrementalScanState:
    """File checksums recorded at the end of a scan."""

    last_scan_timestamp: datetime = EPOCH
    checksums: dict[str, FileChecksum] = field(default_factory=dict)
    baseline_scan_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "lastScanTimestamp": self.last_scan_timestamp.isoformat(),
            "fileChecksums": {p: c.to_dict() for p, c in self.checksums.items()},
            "baselineScanId": self.baseline_scan_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> IncrementalScanState:
        raw_ts = data.get("lastScanTimestamp")
        try:
            ts = datetime.fromisoformat(raw_ts) if raw_ts else EPOCH
        except (TypeError, ValueError):
            ts = EPOCH
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        checksums = {
            path: FileChecksum.from_dict(entry)
            for path, entry in (data.get("fileChecksums") or {}).items()
        }
        return cls(
            last_scan_timestamp=ts,
            checksums=checksums,
            baseline_scan_id=data.get("baselineScanId"),
        )


@dataclass
class IncrementalPartition:
    """Entities split by whether they need rescanning."""

    changed_entities: list[Entity]
    skipped_entities: list[Entity]
    scan_state: IncrementalScanState
