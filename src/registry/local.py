"""Registry client reading a registry's storage layout directly.

Layout: ``components/<name>/<version>/component.json``, the same objects
the registry server stores through its StorageProvider.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import List, Optional

from common.errors import InvalidManifest, RegistryNotFound, RegistryUnreachable
from constants import Constants
from registry.base import RegistryClient
from registry.models import ComponentManifest, ComponentPage, ComponentSummary
from registry.schema import manifest_from_payload
from storage import StorageNotFound, StorageProvider
from versioning.models import ComponentRef, ResolutionMode
from versioning.semver import pick_exact, pick_latest, sort_versions

logger = logging.getLogger(__name__)

COMPONENTS_PREFIX = "components"
MANIFEST_FILE = "component.json"


class LocalRegistryClient(RegistryClient):
    """Serve components from a StorageProvider, e.g. a checked-out registry directory."""

    def __init__(self, storage: StorageProvider, location: str = "local"):
        self._storage = storage
        self.location = location

    async def _read_json(self, path: str, *, name: str, version: Optional[str] = None):
        try:
            raw = await asyncio.to_thread(self._storage.read, path)
        except StorageNotFound as exc:
            raise RegistryNotFound(
                f"{name}{'@' + version if version else ''} not found in {self.location}",
                name=name,
                version=version,
            ) from exc
        except OSError as exc:
            raise RegistryUnreachable(
                f"Cannot read {path} from {self.location}: {exc}",
                name=name,
                version=version,
                retriable=False,
            ) from exc
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InvalidManifest(
                f"Malformed {path}", errors=[str(exc)], name=name, version=version
            ) from exc

    async def list_versions(self, name: str) -> List[str]:
        versions = await asyncio.to_thread(self._storage.list, f"{COMPONENTS_PREFIX}/{name}")
        if not versions:
            raise RegistryNotFound(f"{name} not found in {self.location}", name=name)
        return sort_versions(versions)

    async def fetch_manifest(self, name: str, version: Optional[str] = None) -> ComponentManifest:
        ref = ComponentRef(name, version)
        versions = await self.list_versions(name)
        if ref.mode is ResolutionMode.LATEST:
            stored = pick_latest(versions)
        else:
            stored = pick_exact(version, versions)
            if stored is None:
                raise RegistryNotFound(f"{ref} not found in {self.location}", name=name, version=version)
            if stored != version:
                logger.debug("Requested %s resolved to stored version %s", ref, stored)
        data = await self._read_json(
            f"{COMPONENTS_PREFIX}/{name}/{stored}/{MANIFEST_FILE}", name=name, version=stored
        )
        return manifest_from_payload(data, name=name, version=stored)

    async def _component_names(self) -> List[str]:
        names = []
        for entry in await asyncio.to_thread(self._storage.list, COMPONENTS_PREFIX):
            if entry.startswith("@"):
                scoped = await asyncio.to_thread(self._storage.list, f"{COMPONENTS_PREFIX}/{entry}")
                names.extend(f"{entry}/{child}" for child in scoped)
            else:
                names.append(entry)
        return sorted(names)

    async def list_components(
        self, page: int = 1, page_size: int = Constants.REGISTRY_PAGE_SIZE
    ) -> ComponentPage:
        names = await self._component_names()
        start = (page - 1) * page_size
        summaries = []
        for name in names[start:start + page_size]:
            manifest = await self.fetch_manifest(name)
            summaries.append(
                ComponentSummary(
                    name=manifest.name,
                    latest_version=manifest.version,
                    description=manifest.metadata.get("description"),
                    tags=tuple(manifest.metadata.get("tags") or ()),
                )
            )
        return ComponentPage(components=summaries, total=len(names), page=page, page_size=page_size)
