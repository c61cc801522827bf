"""Breadth-first dependency resolution over a registry client."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from common.errors import CyclicDependency
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from registry.base import RegistryClient
from registry.models import ComponentManifest
from resolution.fetcher import ManifestFetcher, SleepFn
from resolution.models import ResolutionNode, ResolutionResult, VersionConflict
from resolution.packages import PackageMerger
from versioning.models import ComponentRef

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Build the resolution graph for a root component request.

    Each breadth-first level gathers child requests in traversal order
    (parent order, then declared dependency order), fetches the distinct
    ones concurrently, then applies bookkeeping sequentially in that same
    order. The result is therefore independent of fetch completion order.

    Version conflicts follow first-resolved-wins: the first version chosen
    for a name is kept and later differing requests are recorded as
    ``VersionConflict`` warnings.
    """

    def __init__(
        self,
        client: RegistryClient,
        concurrency: int = Constants.FETCH_CONCURRENCY,
        max_attempts: int = Constants.HTTP_RETRY_MAX,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._client = client
        self._concurrency = concurrency
        self._max_attempts = max_attempts
        self._sleep = sleep

    async def resolve(self, root: ComponentRef) -> ResolutionResult:
        """Resolve ``root`` and its transitive closure.

        Raises:
            CyclicDependency: A component depends on itself transitively.
            IncompatiblePackageVersions: Two components need disjoint npm ranges.
            RegistryError: Fetch failures after retries.
        """
        fetcher = ManifestFetcher(
            self._client,
            concurrency=self._concurrency,
            max_attempts=self._max_attempts,
            sleep=self._sleep,
        )
        lock = asyncio.Lock()
        merger = PackageMerger()

        with Timer() as timer:
            root_manifest = await fetcher.fetch(root)
            root_node = ResolutionNode(root.pinned(root_manifest.version), root_manifest, depth=0)
            nodes: Dict[str, ResolutionNode] = {root_node.name: root_node}
            paths: Dict[str, Tuple[str, ...]] = {root_node.name: (root_node.name,)}
            order: List[str] = [root_node.name]
            conflicts: List[VersionConflict] = []
            self._merge_packages(merger, root_node)

            level = [root_node]
            while level:
                pending = self._pending_requests(level, paths)
                manifests = await self._fetch_level(fetcher, pending, nodes)

                next_level: List[ResolutionNode] = []
                async with lock:
                    for parent, dep in pending:
                        existing = nodes.get(dep.name)
                        if existing is None:
                            manifest = manifests[dep.name]
                            node = ResolutionNode(
                                dep.pinned(manifest.version), manifest, depth=parent.depth + 1
                            )
                            nodes[node.name] = node
                            paths[node.name] = paths[parent.name] + (node.name,)
                            order.append(node.name)
                            next_level.append(node)
                            self._merge_packages(merger, node)
                        elif dep.version is not None and dep.version != existing.ref.version:
                            conflict = VersionConflict(
                                name=dep.name,
                                chosen=existing.ref.version,
                                rejected=dep.version,
                                requested_by=parent.name,
                            )
                            conflicts.append(conflict)
                            logger.warning(
                                "Version conflict: %s",
                                conflict,
                                extra=extra_context(
                                    event="version_conflict",
                                    component="resolver",
                                    outcome="first_wins",
                                    target=dep.name,
                                ),
                            )
                        if dep.name not in parent.children:
                            parent.children.append(dep.name)
                level = next_level

            _check_acyclic(nodes, root_node.name)

        logger.info(
            "Resolved %s: %d component(s), %d package(s)",
            root_node.ref,
            len(order),
            len(merger.ranges),
            extra=extra_context(
                event="resolve",
                component="resolver",
                outcome="success",
                target=str(root_node.ref),
                duration_ms=timer.duration_ms(),
                fetch_attempts=fetcher.attempts,
            ),
        )
        return ResolutionResult(
            root=root_node,
            nodes=nodes,
            flattened_components={name: nodes[name].ref for name in order},
            npm_packages=merger.ranges,
            order=tuple(order),
            conflicts=tuple(conflicts),
            package_requests=merger.requests,
            warnings=tuple(merger.warnings),
        )

    @staticmethod
    def _pending_requests(
        level: Sequence[ResolutionNode], paths: Dict[str, Tuple[str, ...]]
    ) -> List[Tuple[ResolutionNode, ComponentRef]]:
        """Child requests of a level in traversal order, rejecting back edges to ancestors."""
        pending = []
        for parent in level:
            ancestors = paths[parent.name]
            for dep in parent.manifest.dependencies.components:
                if dep.name in ancestors:
                    start = ancestors.index(dep.name)
                    raise CyclicDependency(list(ancestors[start:]) + [dep.name])
                pending.append((parent, dep))
        return pending

    async def _fetch_level(
        self,
        fetcher: ManifestFetcher,
        pending: Sequence[Tuple[ResolutionNode, ComponentRef]],
        nodes: Dict[str, ResolutionNode],
    ) -> Dict[str, ComponentManifest]:
        """Fetch the first request of every name not resolved yet, concurrently."""
        wanted: Dict[str, ComponentRef] = {}
        for _, dep in pending:
            if dep.name not in nodes and dep.name not in wanted:
                wanted[dep.name] = dep
        if not wanted:
            return {}
        if is_debug_enabled(logger):
            logger.debug(
                "Fetching level",
                extra=extra_context(
                    event="fetch_level",
                    component="resolver",
                    count=len(wanted),
                    targets=[str(ref) for ref in wanted.values()],
                ),
            )
        results = await asyncio.gather(
            *(fetcher.fetch(ref) for ref in wanted.values()), return_exceptions=True
        )
        # Surface the first failure in traversal order so errors are deterministic.
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return dict(zip(wanted.keys(), results))

    @staticmethod
    def _merge_packages(merger: PackageMerger, node: ResolutionNode) -> None:
        for package, spec in node.manifest.dependencies.packages.items():
            merger.add(package, spec, node.name)


def _check_acyclic(nodes: Dict[str, ResolutionNode], root: str) -> None:
    """Explicit-stack DFS over the name graph; raises CyclicDependency on a back edge."""
    done = set()
    on_stack: Dict[str, int] = {root: 0}
    stack: List[Tuple[str, int]] = [(root, 0)]
    path: List[str] = [root]
    while stack:
        name, index = stack[-1]
        children = nodes[name].children
        if index >= len(children):
            stack.pop()
            path.pop()
            on_stack.pop(name, None)
            done.add(name)
            continue
        stack[-1] = (name, index + 1)
        child = children[index]
        position: Optional[int] = on_stack.get(child)
        if position is not None:
            raise CyclicDependency(path[position:] + [child])
        if child in done:
            continue
        on_stack[child] = len(path)
        path.append(child)
        stack.append((child, 0))
