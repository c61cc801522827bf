"""Installation orchestrator: transform, stage, check, promote, report."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from common.errors import FileConflict, TargetCollision, TransformError, TransformFailed
from common.logging_utils import Timer, extra_context
from constants import Constants
from install.packages import merge_package_versions, read_project_dependencies
from install.transaction import InstallTransaction, StagedFile, sweep_stale_temp_files
from resolution.models import ResolutionResult, VersionConflict
from transform.context import SourceFile, TransformContext
from transform.pipeline import TransformPipeline, build_sources, target_path_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallOptions:
    """Per-call install options; ``target_dir`` is the project root."""

    target_dir: Union[str, Path] = "."
    force: bool = False
    dry_run: bool = False


@dataclass(frozen=True)
class InstallReport:
    """What an install did (or, for a dry run, would do)."""

    transaction_id: str
    written: Tuple[str, ...] = ()
    overwritten: Tuple[str, ...] = ()
    skipped_identical: Tuple[str, ...] = ()
    conflicts: Tuple[str, ...] = ()
    version_conflicts: Tuple[VersionConflict, ...] = ()
    packages: Mapping[str, str] = field(default_factory=dict)
    packages_to_install: Mapping[str, str] = field(default_factory=dict)
    dry_run: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "transaction_id": self.transaction_id,
            "dry_run": self.dry_run,
            "written": list(self.written),
            "overwritten": list(self.overwritten),
            "skipped_identical": list(self.skipped_identical),
            "conflicts": list(self.conflicts),
            "version_conflicts": [str(c) for c in self.version_conflicts],
            "packages": dict(self.packages),
            "packages_to_install": dict(self.packages_to_install),
        }


def bind_context(result: ResolutionResult, context: TransformContext) -> TransformContext:
    """Attach the resolved components' entry paths and npm package names to ``context``."""
    component_paths = {}
    for name in result.order:
        entry = result.nodes[name].manifest.entry_file
        if entry is not None:
            component_paths[name] = target_path_for(name, entry, context)
    return context.with_components(component_paths, result.npm_packages.keys())


def _check_collisions(sources: Sequence[SourceFile]) -> None:
    """Reject a plan in which two sources share one target path."""
    owners: Dict[str, List[str]] = {}
    for source in sources:
        owners.setdefault(source.target_path, []).append(f"{source.component}:{source.path}")
    for target, names in owners.items():
        if len(names) > 1:
            raise TargetCollision(target, names)


class InstallOrchestrator:
    """Turns a ResolutionResult into files on disk, all or nothing.

    Each ``install`` call owns one InstallTransaction.
    """

    def __init__(
        self,
        concurrency: int = Constants.TRANSFORM_CONCURRENCY,
        extra_transformers: Sequence[object] = (),
    ):
        self._concurrency = max(1, concurrency)
        self._extra_transformers = tuple(extra_transformers)

    async def install(
        self,
        result: ResolutionResult,
        context: TransformContext,
        options: Optional[InstallOptions] = None,
    ) -> InstallReport:
        """Install every file of ``result`` into ``options.target_dir``.

        Raises:
            TransformFailed: One or more files failed to transform.
            FileConflict: Targets exist, differ and ``force`` is not set.
            PromotionFailure: A rename failed; the project was rolled back.
            StagingFailure: A temp file could not be written.
            TargetCollision: Two files would install to the same path.
        """
        options = options or InstallOptions()
        root = Path(options.target_dir).resolve()
        context = bind_context(result, context)
        pipeline = TransformPipeline(context, self._extra_transformers)
        txn = InstallTransaction(root)
        log_extra = dict(component="orchestrator", transaction_id=txn.id, target=str(root))

        if not options.dry_run:
            swept = await asyncio.to_thread(
                sweep_stale_temp_files, root, (context.target_dir, context.styles_dir)
            )
            if swept:
                logger.info("Swept %d stale temp file(s)", len(swept), extra=extra_context(event="sweep", **log_extra))

        sources: List[SourceFile] = []
        for name in result.order:
            sources.extend(build_sources(result.nodes[name].manifest, context))
        _check_collisions(sources)

        with Timer() as timer:
            try:
                await self._stage_all(sources, pipeline, txn, options.dry_run)

                conflicts = txn.conflicts()
                if conflicts and not options.force and not options.dry_run:
                    raise FileConflict(conflicts)

                if not options.dry_run:
                    await txn.promote()
            finally:
                if not txn.committed and not txn.rolled_back:
                    txn.discard()

        packages, packages_to_install = merge_package_versions(
            result.npm_packages, await asyncio.to_thread(read_project_dependencies, root)
        )
        report = InstallReport(
            transaction_id=txn.id,
            written=tuple(s.relative_path for s in txn.staged if not s.existed),
            overwritten=tuple(s.relative_path for s in txn.staged if s.conflicting and options.force),
            skipped_identical=tuple(s.relative_path for s in txn.staged if s.identical),
            conflicts=tuple(conflicts) if options.dry_run and not options.force else (),
            version_conflicts=tuple(result.conflicts),
            packages=packages,
            packages_to_install=packages_to_install,
            dry_run=options.dry_run,
        )
        logger.info(
            "%s %d file(s) for %s",
            "Planned" if options.dry_run else "Installed",
            len(report.written) + len(report.overwritten),
            result.root.ref,
            extra=extra_context(
                event="install",
                outcome="dry_run" if options.dry_run else "success",
                duration_ms=timer.duration_ms(),
                **log_extra,
            ),
        )
        return report

    async def _stage_all(
        self,
        sources: Sequence[SourceFile],
        pipeline: TransformPipeline,
        txn: InstallTransaction,
        dry_run: bool,
    ) -> None:
        """Transform and stage every source with bounded parallelism, in source order.

        Transform failures are collected across all files; any other
        staging error is raised once every task has settled. On
        cancellation, writes already handed to worker threads run to
        completion before the error propagates, so the caller's
        ``discard`` sees every temp file.
        """
        semaphore = asyncio.Semaphore(self._concurrency)
        writes: List[asyncio.Future] = []

        async def process(source: SourceFile) -> Union[StagedFile, TransformError]:
            async with semaphore:
                try:
                    content = pipeline.transform(source)
                except TransformError as exc:
                    logger.error(
                        "Transform failed: %s",
                        exc,
                        extra=extra_context(
                            event="transform",
                            component="orchestrator",
                            outcome="error",
                            target=f"{source.component}:{source.path}",
                        ),
                    )
                    return exc
                write = txn.inspect if dry_run else txn.stage
                future = asyncio.ensure_future(asyncio.to_thread(write, source.target_path, content))
                writes.append(future)
                return await asyncio.shield(future)

        tasks = [asyncio.ensure_future(process(s)) for s in sources]
        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.wait(tasks)
            if writes:
                await asyncio.wait(writes)
            logger.warning(
                "Staging cancelled",
                extra=extra_context(
                    event="stage",
                    component="orchestrator",
                    outcome="cancelled",
                    transaction_id=txn.id,
                    files=len(writes),
                ),
            )
            raise
        # Register staged files first so a failure below still cleans up their temps.
        for item in results:
            if isinstance(item, StagedFile):
                txn.add(item)
        for item in results:
            if isinstance(item, BaseException) and not isinstance(item, TransformError):
                raise item
        errors = [item for item in results if isinstance(item, TransformError)]
        if errors:
            raise TransformFailed(errors)
