"""CLI registry utilities: the ``list`` and ``info`` commands."""

from __future__ import annotations

import asyncio
import json
import urllib.parse
from pathlib import Path
from typing import List, Optional, Tuple

from cli_config import load_project_config, resolve_registry_location
from registry import catalog, create_registry_client
from registry.models import ComponentManifest, ComponentPage
from versioning.parser import parse_component_token


def _is_http(location: str) -> bool:
    return urllib.parse.urlparse(location).scheme in ("http", "https")


async def _local_page(location: str, page: int, page_size: int) -> ComponentPage:
    async with create_registry_client(location) as client:
        return await client.list_components(page, page_size)


async def _local_info(location: str, name: str, version: Optional[str]) -> Tuple[ComponentManifest, List[str]]:
    async with create_registry_client(location) as client:
        versions = await client.list_versions(name)
        manifest = await client.fetch_manifest(name, version)
    return manifest, versions


def _location(args) -> str:
    return resolve_registry_location(args.REGISTRY, load_project_config(Path(args.CWD)))


def run_list(args) -> None:
    """Print one page of the registry catalogue."""
    location = _location(args)
    if _is_http(location):
        page = catalog.list_page(location, args.PAGE, args.PAGE_SIZE)
    else:
        page = asyncio.run(_local_page(location, args.PAGE, args.PAGE_SIZE))

    if args.JSON:
        print(json.dumps({
            "components": [
                {
                    "name": c.name,
                    "latestVersion": c.latest_version,
                    "description": c.description,
                    "tags": list(c.tags),
                }
                for c in page.components
            ],
            "total": page.total,
            "page": page.page,
            "pageSize": page.page_size,
        }, indent=2))
        return
    for summary in page.components:
        description = f"  {summary.description}" if summary.description else ""
        print(f"{summary.name}@{summary.latest_version}{description}")
    print(f"-- page {page.page}, {len(page.components)} of {page.total} component(s)"
          + (" (more available)" if page.has_next else ""))


def run_info(args) -> None:
    """Print a component's manifest summary and published versions."""
    ref = parse_component_token(args.COMPONENT)
    location = _location(args)
    if _is_http(location):
        manifest, versions = catalog.component_info(location, ref.name, ref.version)
    else:
        manifest, versions = asyncio.run(_local_info(location, ref.name, ref.version))

    deps = manifest.dependencies
    if args.JSON:
        print(json.dumps({
            "name": manifest.name,
            "version": manifest.version,
            "versions": versions,
            "files": [{"path": f.path, "kind": f.kind} for f in manifest.files],
            "dependencies": {
                "components": [str(c) for c in deps.components],
                "packages": dict(deps.packages),
            },
            "metadata": dict(manifest.metadata),
        }, indent=2, default=str))
        return
    print(f"{manifest.name}@{manifest.version}")
    if manifest.metadata.get("description"):
        print(f"  {manifest.metadata['description']}")
    print(f"  versions: {', '.join(versions)}")
    print(f"  files: {', '.join(f.path for f in manifest.files)}")
    if deps.components:
        print(f"  components: {', '.join(str(c) for c in deps.components)}")
    if deps.packages:
        print(f"  packages: {', '.join(f'{k}@{v}' for k, v in deps.packages.items())}")
