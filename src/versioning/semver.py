"""Ordering helpers for published component versions using semantic versioning."""

from typing import Iterable, List, Optional, Tuple

import semantic_version


def _sort_key(version: str) -> Tuple[int, object]:
    """Valid semver sorts above anything else; invalid versions sort lexicographically."""
    try:
        return 1, semantic_version.Version(version.lstrip("vV"))
    except ValueError:
        return 0, version


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Return versions ascending, semver-aware, duplicates removed."""
    unique = {str(v) for v in versions if v}
    # Keys of kind 0 and 1 never compare their second element with each other
    return sorted(unique, key=_sort_key)


def pick_latest(candidates: Iterable[str]) -> Optional[str]:
    """Pick the greatest version, or None when there are no candidates."""
    ordered = sort_versions(candidates)
    if not ordered:
        return None
    return ordered[-1]


def pick_exact(version: str, candidates: Iterable[str]) -> Optional[str]:
    """Return the candidate equal to ``version`` (tolerating a 'v' prefix)."""
    wanted = version.lstrip("vV")
    for candidate in candidates:
        if candidate == version or candidate.lstrip("vV") == wanted:
            return candidate
    return None
