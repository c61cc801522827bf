"""Registry-side records: component files, manifests and catalogue pages."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple

from constants import Constants, FileKinds
from versioning.models import ComponentRef


def infer_kind(path: str) -> Optional[str]:
    """Infer a file kind from its extension."""
    ext = posixpath.splitext(path)[1].lower()
    if ext == ".json":
        return FileKinds.JSON.value
    return Constants.SCRIPT_EXTENSIONS.get(ext) or Constants.STYLE_EXTENSIONS.get(ext)


@dataclass(frozen=True)
class ComponentFile:
    """One source file published with a component."""

    path: str
    content: str
    kind: str

    @property
    def is_script(self) -> bool:
        return self.kind in (FileKinds.TYPESCRIPT.value, FileKinds.JAVASCRIPT.value)

    @property
    def is_style(self) -> bool:
        return self.kind in (FileKinds.CSS.value, FileKinds.SCSS.value, FileKinds.LESS.value)


@dataclass(frozen=True)
class ComponentDependencies:
    """Declared dependencies: registry components and npm package ranges."""

    components: Tuple[ComponentRef, ...] = ()
    packages: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ComponentManifest:
    """Immutable record of one published component version."""

    name: str
    version: str
    files: Tuple[ComponentFile, ...]
    dependencies: ComponentDependencies = field(default_factory=ComponentDependencies)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def ref(self) -> ComponentRef:
        return ComponentRef(self.name, self.version)

    @property
    def entry_file(self) -> Optional[ComponentFile]:
        """File other components import: an ``index`` script, else the first script."""
        scripts = [f for f in self.files if f.is_script]
        for f in scripts:
            stem = posixpath.splitext(posixpath.basename(f.path))[0]
            if stem == "index":
                return f
        return scripts[0] if scripts else None


@dataclass(frozen=True)
class ComponentSummary:
    """Catalogue entry returned by ``GET /components``."""

    name: str
    latest_version: str
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ComponentPage:
    """One page of the registry catalogue."""

    components: List[ComponentSummary]
    total: int
    page: int
    page_size: int

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total
