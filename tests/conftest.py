"""Shared fixtures: manifest builders and an in-memory registry client."""

import asyncio
from typing import Dict, List, Optional

import pytest

from common.errors import RegistryNotFound
from registry.base import RegistryClient
from registry.models import (
    ComponentDependencies,
    ComponentFile,
    ComponentManifest,
    ComponentPage,
    ComponentSummary,
    infer_kind,
)
from versioning.models import ComponentRef
from versioning.parser import parse_dependency_entry
from versioning.semver import pick_latest, sort_versions


def build_manifest(name, version="1.0.0", files=None, components=(), packages=None, metadata=None):
    """ComponentManifest from plain data; ``files`` maps path -> content."""
    if files is None:
        files = {"index.tsx": f"export const {name.split('/')[-1].title()} = 1;\n"}
    return ComponentManifest(
        name=name,
        version=version,
        files=tuple(ComponentFile(path, content, infer_kind(path)) for path, content in files.items()),
        dependencies=ComponentDependencies(
            components=tuple(
                c if isinstance(c, ComponentRef) else parse_dependency_entry(c) for c in components
            ),
            packages=dict(packages or {}),
        ),
        metadata=dict(metadata or {}),
    )


class FakeRegistry(RegistryClient):
    """RegistryClient serving manifests from memory.

    ``failures`` maps (name, version) to exceptions raised on successive
    calls before the manifest is served; ``delays`` maps a name to seconds
    slept before answering.
    """

    location = "memory"

    def __init__(self, manifests, failures=None, delays=None):
        self.manifests: Dict[tuple, ComponentManifest] = {(m.name, m.version): m for m in manifests}
        self.failures: Dict[tuple, List[BaseException]] = {k: list(v) for k, v in (failures or {}).items()}
        self.delays: Dict[str, float] = dict(delays or {})
        self.calls: List[tuple] = []
        self.started = False
        self.stopped = False

    async def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True

    async def list_versions(self, name: str) -> List[str]:
        versions = [v for (n, v) in self.manifests if n == name]
        if not versions:
            raise RegistryNotFound(f"{name} not found", name=name)
        return sort_versions(versions)

    async def fetch_manifest(self, name: str, version: Optional[str] = None) -> ComponentManifest:
        self.calls.append((name, version))
        if self.delays.get(name):
            await asyncio.sleep(self.delays[name])
        if version is None:
            version = pick_latest(await self.list_versions(name))
        pending = self.failures.get((name, version))
        if pending:
            raise pending.pop(0)
        try:
            return self.manifests[(name, version)]
        except KeyError:
            raise RegistryNotFound(f"{name}@{version} not found", name=name, version=version) from None

    async def list_components(self, page=1, page_size=10) -> ComponentPage:
        names = sorted({n for (n, _) in self.manifests})
        chunk = names[(page - 1) * page_size:page * page_size]
        summaries = [ComponentSummary(n, pick_latest(await self.list_versions(n))) for n in chunk]
        return ComponentPage(summaries, len(names), page, page_size)


@pytest.fixture
def manifest():
    """Factory fixture for ComponentManifest."""
    return build_manifest


@pytest.fixture
def registry_factory():
    """Factory fixture for FakeRegistry."""
    return FakeRegistry
