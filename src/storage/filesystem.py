"""Filesystem-backed storage provider."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from .interface import StorageNotFound, StorageProvider


class FilesystemStorage(StorageProvider):
    """Stores registry objects below a root directory."""

    def __init__(self, root_dir: str | os.PathLike):
        self._root = Path(root_dir).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _full_path(self, path: str) -> Path:
        full = (self._root / path.strip("/")).resolve()
        if full != self._root and self._root not in full.parents:
            raise ValueError(f"Path escapes storage root: {path!r}")
        return full

    def write(self, path: str, data: bytes) -> None:
        full = self._full_path(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_bytes(data)

    def read(self, path: str) -> bytes:
        full = self._full_path(path)
        try:
            return full.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise StorageNotFound(path) from exc

    def list(self, prefix: str) -> List[str]:
        full = self._full_path(prefix)
        if not full.is_dir():
            return []
        return sorted(entry.name for entry in full.iterdir())

    def delete(self, path: str) -> None:
        full = self._full_path(path)
        try:
            full.unlink()
        except FileNotFoundError as exc:
            raise StorageNotFound(path) from exc
