"""Data model produced by dependency resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

from registry.models import ComponentManifest
from versioning.models import ComponentRef


@dataclass
class ResolutionNode:
    """One resolved component in the resolution graph.

    Nodes live in an arena keyed by component name; ``children`` holds the
    names of dependency nodes, so a node reached via several parents is
    shared rather than copied.
    """

    ref: ComponentRef
    manifest: ComponentManifest
    depth: int = 0
    children: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.ref.name


@dataclass(frozen=True)
class VersionConflict:
    """A later request for a component version that lost to the first resolved one."""

    name: str
    chosen: str
    rejected: str
    requested_by: str

    def __str__(self) -> str:
        return (
            f"{self.name}: kept {self.chosen}, ignored {self.rejected} "
            f"requested by {self.requested_by}"
        )


@dataclass(frozen=True)
class PackageRequest:
    """One component's declared range for an npm package."""

    component: str
    range: str


@dataclass(frozen=True)
class ResolutionResult:
    """Outcome of resolving a root request; read-only downstream.

    ``order`` is the breadth-first discovery order and drives installation
    and reporting.
    """

    root: ResolutionNode
    nodes: Mapping[str, ResolutionNode]
    flattened_components: Mapping[str, ComponentRef]
    npm_packages: Mapping[str, str]
    order: Tuple[str, ...]
    conflicts: Tuple[VersionConflict, ...] = ()
    package_requests: Mapping[str, Tuple[PackageRequest, ...]] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    def manifests(self) -> List[ComponentManifest]:
        """Manifests in installation order."""
        return [self.nodes[name].manifest for name in self.order]

    def to_dict(self) -> Dict[str, object]:
        """Plain-data rendering for reports and JSON logs."""
        return {
            "root": str(self.root.ref),
            "components": {name: self.flattened_components[name].version for name in self.order},
            "packages": dict(sorted(self.npm_packages.items())),
            "conflicts": [
                {
                    "name": c.name,
                    "chosen": c.chosen,
                    "rejected": c.rejected,
                    "requested_by": c.requested_by,
                }
                for c in self.conflicts
            ],
            "warnings": list(self.warnings),
        }
