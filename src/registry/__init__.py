"""Registry clients: HTTP and storage-backed, sharing one contract."""

import os
import urllib.parse

from .base import RegistryClient
from .client import HttpRegistryClient
from .local import LocalRegistryClient
from .models import ComponentFile, ComponentManifest, ComponentPage, ComponentSummary

__all__ = [
    "RegistryClient",
    "HttpRegistryClient",
    "LocalRegistryClient",
    "ComponentFile",
    "ComponentManifest",
    "ComponentPage",
    "ComponentSummary",
    "create_registry_client",
]


def create_registry_client(location: str, **kwargs) -> RegistryClient:
    """Pick a client for ``location``: http(s) URL, file:// URL or directory path."""
    parsed = urllib.parse.urlparse(location)
    if parsed.scheme in ("http", "https"):
        return HttpRegistryClient(location, **kwargs)

    from storage import FilesystemStorage  # pylint: disable=import-outside-toplevel

    path = urllib.parse.unquote(parsed.path) if parsed.scheme == "file" else location
    if not os.path.isdir(path):
        raise ValueError(f"Registry location is neither a URL nor a directory: {location}")
    return LocalRegistryClient(FilesystemStorage(path), location=path)
