"""Scannable entities and directory discovery."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

FILE = "file"

# Directories to always skip
SKIP_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    ".venv",
    "venv",
    ".env",
    "env",
    "dist",
    "build",
    ".tox",
    ".eggs",
}

# Binary / non-text extensions to skip
SKIP_EXTENSIONS = {
    ".pyc",
    ".pyo",
    ".so",
    ".dylib",
    ".dll",
    ".exe",
    ".bin",
    ".dat",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".ico",
    ".svg",
    ".pdf",
    ".doc",
    ".docx",
    ".zip",
    ".tar",
    ".gz",
    ".bz2",
    ".whl",
    ".egg",
    ".db",
    ".sqlite",
    ".sqlite3",
}


@dataclass(frozen=True)
class Entity:
    """Something a scanner can look at. Only ``type == "file"`` is read."""

    id: str
    path: str
    type: str = FILE

    @property
    def is_file(self) -> bool:
        return self.type == FILE and bool(self.path)


class EntityProvider(Protocol):
    """Resolves entity ids and supplies a default working set."""

    def get_entity(self, entity_id: str) -> Entity | None:
        ...

    def recent(self, limit: int = 100) -> list[Entity]:
        ...


def walk_files(
    directory: str | Path,
    exclude: Iterable[str] = (),
) -> Iterator[Path]:
    """Walk directory yielding scannable files."""
    excluded = set(exclude)
    for root, dirs, files in os.walk(directory):
        # Prune skipped directories in-place
        dirs[:] = [
            d
            for d in dirs
            if d not in SKIP_DIRS
            and not d.endswith(".egg-info")
            and d not in excluded
        ]

        for name in files:
            path = Path(root) / name
            if path.suffix.lower() in SKIP_EXTENSIONS:
                continue
            if name in excluded:
                continue
            yield path


class EntityIndex:
    """File entities discovered under a root directory, keyed by relative path."""

    def __init__(self, entities: Iterable[Entity] = ()) -> None:
        self._entities: dict[str, Entity] = {e.id: e for e in entities}

    @classmethod
    def from_directory(
        cls,
        directory: str | Path,
        exclude: Iterable[str] = (),
    ) -> EntityIndex:
        root = Path(directory).resolve()
        entities = [
            Entity(id=path.relative_to(root).as_posix(), path=str(path))
            for path in walk_files(root, exclude)
        ]
        logger.debug("Discovered %d files under %s", len(entities), root)
        return cls(entities)

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._entities.values())

    def add(self, entity: Entity) -> None:
        self._entities[entity.id] = entity

    def get_entity(self, entity_id: str) -> Entity | None:
        return self._entities.get(entity_id)

    def recent(self, limit: int = 100) -> list[Entity]:
        """Most recently modified files first."""

        def _mtime(entity: Entity) -> float:
            try:
                return os.stat(entity.path).st_mtime
            except OSError:
                return 0.0

        ordered = sorted(self._entities.values(), key=_mtime, reverse=True)
        return ordered[:limit]
