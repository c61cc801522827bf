"""Reconcile resolved npm package ranges with the project's package.json."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Mapping, Tuple

from common.logging_utils import extra_context
from constants import Constants
from versioning.ranges import UnsupportedRange, merge_ranges, satisfies

logger = logging.getLogger(__name__)

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")


def read_project_dependencies(root: Path) -> Dict[str, str]:
    """Declared dependencies of the project at ``root`` (empty when there is no package.json)."""
    path = Path(root) / Constants.PACKAGE_JSON_FILE
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(
            "Ignoring unreadable %s: %s",
            path,
            exc,
            extra=extra_context(event="package_json", component="install", outcome="error"),
        )
        return {}
    declared: Dict[str, str] = {}
    for section in DEPENDENCY_SECTIONS:
        for name, spec in (data.get(section) or {}).items():
            declared.setdefault(name, str(spec))
    return declared


def _covered(existing: str, required: str) -> Tuple[bool, str]:
    """Whether the declared spec already satisfies ``required``, and the range to install otherwise."""
    if satisfies(existing, required):
        return True, required
    try:
        merged = merge_ranges(existing, required)
    except UnsupportedRange:
        # Tags, URLs, workspace: specs are the project's call.
        return True, existing
    if merged is None:
        return False, required
    return merged == existing, merged


def merge_package_versions(
    required: Mapping[str, str], declared: Mapping[str, str]
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """Merge resolved package ranges into the project's declared versions.

    Returns ``(packages, packages_to_install)``: the combined version map,
    and the entries that are missing from package.json or not covered by
    the declared spec.
    """
    packages = dict(declared)
    to_install: Dict[str, str] = {}
    for name in sorted(required):
        spec = required[name]
        existing = declared.get(name)
        if existing is None:
            packages[name] = spec
            to_install[name] = spec
            continue
        covered, wanted = _covered(existing, spec)
        if not covered:
            packages[name] = wanted
            to_install[name] = wanted
    return dict(sorted(packages.items())), to_install
