"""The ``add`` command: resolve, transform and install one component."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, Tuple

from cli_config import build_transform_context, load_project_config, resolve_registry_location
from common.logging_utils import extra_context, is_debug_enabled
from install import InstallOptions, InstallOrchestrator, InstallReport
from registry import RegistryClient, create_registry_client
from resolution import DependencyResolver, ResolutionResult
from transform import TransformContext
from versioning.models import ComponentRef
from versioning.parser import parse_component_token

logger = logging.getLogger(__name__)


async def add_component(
    ref: ComponentRef,
    client: RegistryClient,
    context: TransformContext,
    options: InstallOptions,
) -> Tuple[ResolutionResult, InstallReport]:
    """Run the resolve -> transform -> install pipeline for ``ref``."""
    async with client:
        result = await DependencyResolver(client).resolve(ref)
    for warning in result.warnings:
        logger.warning(warning)
    report = await InstallOrchestrator().install(result, context, options)
    return result, report


def format_report(result: ResolutionResult, report: InstallReport) -> str:
    lines = []
    header = "Dry run for" if report.dry_run else "Installed"
    lines.append(f"{header} {result.root.ref} ({len(result.order)} component(s))")
    for name in result.order:
        lines.append(f"  {result.flattened_components[name]}")
    for label, paths in (
        ("would write" if report.dry_run else "wrote", report.written),
        ("would overwrite" if report.dry_run else "overwrote", report.overwritten),
        ("unchanged", report.skipped_identical),
        ("conflicts", report.conflicts),
    ):
        for path in paths:
            lines.append(f"  {label}: {path}")
    for conflict in report.version_conflicts:
        lines.append(f"  version conflict: {conflict}")
    if report.packages_to_install:
        lines.append("npm packages to install:")
        for name, spec in report.packages_to_install.items():
            lines.append(f"  {name}@{spec}")
    return "\n".join(lines)


def run_add(args, client: Optional[RegistryClient] = None) -> None:
    """Entry point for ``fetch-ui add``; errors propagate to the caller."""
    root = Path(args.CWD)
    config = load_project_config(root)
    ref = parse_component_token(args.COMPONENT, args.VERSION)
    location = resolve_registry_location(args.REGISTRY, config)
    if client is None:
        client = create_registry_client(location)
    context = build_transform_context(config, args.TO)
    options = InstallOptions(target_dir=root, force=args.FORCE, dry_run=args.DRY_RUN)

    if is_debug_enabled(logger):
        logger.debug(
            "Add requested",
            extra=extra_context(
                event="function_entry",
                component="cli",
                action="add",
                target=str(ref),
                registry=client.location,
            ),
        )

    result, report = asyncio.run(add_component(ref, client, context, options))
    if args.JSON:
        print(json.dumps({"resolution": result.to_dict(), "install": report.to_dict()}, indent=2))
    else:
        print(format_report(result, report))
