"""Dependency resolution: registry components and npm package ranges."""

from .fetcher import ManifestFetcher
from .models import PackageRequest, ResolutionNode, ResolutionResult, VersionConflict
from .packages import PackageMerger
from .resolver import DependencyResolver

__all__ = [
    "DependencyResolver",
    "ManifestFetcher",
    "PackageMerger",
    "PackageRequest",
    "ResolutionNode",
    "ResolutionResult",
    "VersionConflict",
]
