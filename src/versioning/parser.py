"""Token parsing utilities for component references."""

from typing import Any, Optional, Tuple

from .models import ComponentRef


def tokenize_rightmost_at(s: str) -> Tuple[str, Optional[str]]:
    """Return (name, version or None) using the rightmost-'@' rule.

    A leading '@' belongs to a scoped name ("@scope/button@1.0.0").
    """
    s = s.strip()
    idx = s.rfind('@')
    if idx <= 0:
        return s, None
    name = s[:idx].strip()
    version = s[idx + 1:].strip()
    return name, version or None


def _normalize_version(version: Optional[str]) -> Optional[str]:
    """Map empty/"latest" to None and strip a leading 'v'."""
    if version is None:
        return None
    version = str(version).strip()
    if not version or version.lower() == 'latest':
        return None
    if version[0] in 'vV' and version[1:2].isdigit():
        version = version[1:]
    return version


def parse_component_token(token: str, version: Optional[str] = None) -> ComponentRef:
    """Parse a CLI token ("button", "button@1.2.0") into a ComponentRef.

    An explicit ``version`` argument wins over a version embedded in the token.
    """
    name, spec = tokenize_rightmost_at(token)
    if not name:
        raise ValueError(f"Invalid component reference: {token!r}")
    return ComponentRef(name=name, version=_normalize_version(version or spec))


def parse_dependency_entry(entry: Any) -> ComponentRef:
    """Construct a ComponentRef from a manifest dependency entry.

    Accepts "name", "name@1.0.0" or {"name": ..., "version": ...}.
    """
    if isinstance(entry, dict):
        name = str(entry.get("name", "")).strip()
        if not name:
            raise ValueError(f"Dependency entry without name: {entry!r}")
        return ComponentRef(name=name, version=_normalize_version(entry.get("version")))
    return parse_component_token(str(entry))
