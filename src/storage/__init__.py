"""Storage providers backing a component registry."""

from .interface import StorageProvider, StorageNotFound
from .filesystem import FilesystemStorage

__all__ = [
    "StorageProvider",
    "StorageNotFound",
    "FilesystemStorage",
]
