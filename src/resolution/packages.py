"""Pairwise merging of npm package ranges requested across components."""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from common.errors import IncompatiblePackageVersions
from common.logging_utils import extra_context
from resolution.models import PackageRequest
from versioning.ranges import UnsupportedRange, is_any, merge_ranges

logger = logging.getLogger(__name__)


class PackageMerger:
    """Fold package ranges in traversal order into one range per package."""

    def __init__(self) -> None:
        self._ranges: Dict[str, str] = {}
        self._requests: Dict[str, List[PackageRequest]] = {}
        self.warnings: List[str] = []

    @property
    def ranges(self) -> Dict[str, str]:
        return dict(self._ranges)

    @property
    def requests(self) -> Dict[str, Tuple[PackageRequest, ...]]:
        return {name: tuple(reqs) for name, reqs in self._requests.items()}

    def add(self, package: str, spec: str, component: str) -> str:
        """Merge ``component``'s range for ``package``; returns the merged range.

        Raises:
            IncompatiblePackageVersions: The new range is provably disjoint
                from what earlier components requested.
        """
        spec = str(spec).strip() or "*"
        current = self._ranges.get(package)
        merged = spec if current is None else self._merge(package, current, spec, component)
        self._ranges[package] = merged
        self._requests.setdefault(package, []).append(PackageRequest(component, spec))
        return merged

    def _merge(self, package: str, current: str, spec: str, component: str) -> str:
        if current == spec:
            return current
        try:
            merged = merge_ranges(current, spec)
        except UnsupportedRange:
            return self._merge_opaque(package, current, spec, component)
        if merged is None:
            first = self._disjoint_requester(package, spec)
            raise IncompatiblePackageVersions(package, (first.component, first.range), (component, spec))
        return merged

    def _merge_opaque(self, package: str, current: str, spec: str, component: str) -> str:
        """Tags, URLs and protocol specs: identical or wildcard merge, else first wins."""
        if is_any(spec):
            return current
        if is_any(current):
            return spec
        message = (
            f"{package}: keeping '{current}', ignoring '{spec}' requested by {component}"
        )
        self.warnings.append(message)
        logger.warning(
            "Unmergeable package range: %s",
            message,
            extra=extra_context(
                event="package_merge",
                component="resolver",
                outcome="first_wins",
                package=package,
            ),
        )
        return current

    def _disjoint_requester(self, package: str, spec: str) -> PackageRequest:
        requests = self._requests[package]
        for request in requests:
            try:
                if merge_ranges(request.range, spec) is None:
                    return request
            except UnsupportedRange:
                continue
        return requests[-1]
