"""Immutable inputs to the transform pipeline."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Mapping, Optional, Tuple

from constants import Constants


class StyleStrategy(Enum):
    """Where component stylesheets live in the target project."""

    COLOCATED = "colocated"
    GLOBAL = "global"


ALIAS_PREFIXES = ("@", "~", "#")


def is_alias(specifier: str) -> bool:
    """True for bundler aliases (``@/lib``, ``~/lib``, ``#lib``) as opposed to project paths."""
    return specifier.startswith(ALIAS_PREFIXES)


def is_relative(specifier: str) -> bool:
    return specifier.startswith("./") or specifier.startswith("../") or specifier in (".", "..")


def relative_specifier(target: str, from_file: str) -> str:
    """Specifier for importing project path ``target`` from project file ``from_file``."""
    rel = posixpath.relpath(target, posixpath.dirname(from_file) or ".")
    if not rel.startswith("."):
        rel = "./" + rel
    return rel


@dataclass(frozen=True)
class TransformContext:
    """Everything the transformers may read about the target project.

    Paths are project-root-relative and '/'-separated.
    """

    alias_map: Mapping[str, str] = field(default_factory=dict)
    style_strategy: StyleStrategy = StyleStrategy.COLOCATED
    target_dir: str = Constants.DEFAULT_COMPONENTS_DIR
    typescript: bool = True
    styles_dir: str = Constants.DEFAULT_STYLES_DIR
    class_helpers: Tuple[str, ...] = Constants.DEFAULT_CLASS_HELPERS
    class_helper_path: Optional[str] = None
    component_paths: Mapping[str, str] = field(default_factory=dict)
    registry_scope: str = Constants.REGISTRY_SCOPE
    npm_packages: FrozenSet[str] = frozenset()

    def component_dir(self, name: str) -> str:
        """Directory a component installs into; the registry scope is dropped."""
        return posixpath.join(self.target_dir, self.unscoped(name))

    def unscoped(self, name: str) -> str:
        if self.registry_scope and name.startswith(self.registry_scope):
            return name[len(self.registry_scope):]
        return name

    def with_components(self, component_paths: Mapping[str, str], npm_packages=()) -> "TransformContext":
        """Copy bound to one resolution's component entry paths and npm packages."""
        return replace(
            self,
            component_paths=dict(component_paths),
            npm_packages=frozenset(npm_packages),
        )


@dataclass(frozen=True)
class SourceFile:
    """One component file on its way through the pipeline.

    ``path`` is relative to the component; ``target_path`` and the values of
    ``siblings`` (component path -> target path, same component) are
    project-root-relative.
    """

    component: str
    path: str
    content: str
    kind: str
    target_path: str
    siblings: Mapping[str, str] = field(default_factory=dict)

    def with_content(self, content: str) -> "SourceFile":
        return replace(self, content=content)
