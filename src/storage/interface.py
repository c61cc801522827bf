"""Storage provider interface for a component registry."""

from __future__ import annotations

import abc
from typing import List


class StorageNotFound(FileNotFoundError):
    """Raised when a path does not exist in storage."""


class StorageProvider(abc.ABC):
    """Byte storage addressed by relative, '/'-separated paths."""

    @abc.abstractmethod
    def write(self, path: str, data: bytes) -> None:
        """Write ``data`` to ``path``, creating parents as needed."""

    @abc.abstractmethod
    def read(self, path: str) -> bytes:
        """Read ``path``.

        Raises:
            StorageNotFound: If the path does not exist.
        """

    @abc.abstractmethod
    def list(self, prefix: str) -> List[str]:
        """List entries directly under ``prefix`` as sorted relative names."""

    @abc.abstractmethod
    def delete(self, path: str) -> None:
        """Delete ``path``; missing paths raise StorageNotFound."""
