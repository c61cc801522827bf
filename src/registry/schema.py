"""JSON Schema validation and normalisation of registry payloads.

Wraps jsonschema Draft7 validation. Two manifest shapes are accepted: the
canonical one (``name``/``version``/``files``/``dependencies``) and the
registry server's stored shape, where identity and npm dependencies live
under ``metadata`` and files carry ``type`` instead of ``kind``. Both
normalise to ``ComponentManifest``.
"""

from __future__ import annotations

import posixpath
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from common.errors import InvalidManifest
from constants import FileKinds
from registry.models import (
    ComponentDependencies,
    ComponentFile,
    ComponentManifest,
    ComponentPage,
    ComponentSummary,
    infer_kind,
)
from versioning.parser import parse_dependency_entry
from versioning.semver import sort_versions

FILE_KINDS = [k.value for k in FileKinds]

_FILE_SCHEMA = {
    "type": "object",
    "required": ["path", "content"],
    "properties": {
        "path": {"type": "string", "minLength": 1},
        "content": {"type": "string"},
        "kind": {"enum": FILE_KINDS},
        "type": {"enum": FILE_KINDS},
    },
}

_PACKAGES_SCHEMA = {
    "type": "object",
    "additionalProperties": {"type": "string"},
}

_COMPONENT_DEP_SCHEMA = {
    "oneOf": [
        {"type": "string", "minLength": 1},
        {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "version": {"type": ["string", "null"]},
            },
        },
    ]
}

MANIFEST_SCHEMA = {
    "type": "object",
    "required": ["name", "version", "files"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "version": {"type": "string", "minLength": 1},
        "files": {"type": "array", "items": _FILE_SCHEMA},
        "dependencies": {
            "type": "object",
            "properties": {
                "components": {"type": "array", "items": _COMPONENT_DEP_SCHEMA},
                "packages": _PACKAGES_SCHEMA,
            },
        },
        "metadata": {"type": "object"},
    },
}

STORED_COMPONENT_SCHEMA = {
    "type": "object",
    "required": ["metadata", "files"],
    "properties": {
        "metadata": {
            "type": "object",
            "required": ["name", "version"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "version": {"type": "string", "minLength": 1},
                "dependencies": _PACKAGES_SCHEMA,
                "peerDependencies": _PACKAGES_SCHEMA,
                "registryDependencies": {"type": "array", "items": _COMPONENT_DEP_SCHEMA},
                "style": {"type": "string"},
                "typescript": {"type": "boolean"},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
        },
        "files": {"type": "array", "items": _FILE_SCHEMA},
    },
}

DETAIL_SCHEMA = {
    "type": "object",
    "required": ["versions"],
    "properties": {
        "component": {"type": "object"},
        "versions": {
            "type": "array",
            "items": {
                "oneOf": [
                    {"type": "string"},
                    {
                        "type": "object",
                        "required": ["version"],
                        "properties": {"version": {"type": "string"}},
                    },
                ]
            },
        },
    },
}

LIST_SCHEMA = {
    "type": "object",
    "required": ["components", "total"],
    "properties": {
        "components": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "latestVersion"],
                "properties": {
                    "name": {"type": "string"},
                    "latestVersion": {"type": "string"},
                    "description": {"type": ["string", "null"]},
                    "tags": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
        "total": {"type": "integer", "minimum": 0},
        "page": {"type": "integer", "minimum": 1},
        "pageSize": {"type": "integer", "minimum": 1},
    },
}


def validate_payload(
    schema: Dict[str, Any],
    data: Any,
    *,
    name: Optional[str] = None,
    version: Optional[str] = None,
) -> None:
    """Validate a payload strictly and raise InvalidManifest listing every error.

    Args:
        schema: Draft-07 JSON Schema dict.
        data:   Decoded payload to validate.
    """
    validator = Draft7Validator(schema)
    errs = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errs:
        messages = []
        for err in errs:
            path = "/".join(str(p) for p in err.path)
            messages.append(f"at '{path}': {err.message}")
        label = f"{name}@{version}" if name and version else (name or "payload")
        raise InvalidManifest(
            f"Invalid registry payload for {label}: {messages[0]}",
            errors=messages,
            name=name,
            version=version,
        )


def _safe_relative_path(path: str, *, name: str, version: str) -> str:
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if normalized.startswith("/") or normalized == ".." or normalized.startswith("../"):
        raise InvalidManifest(
            f"File path escapes the component: {path!r}", name=name, version=version
        )
    return normalized


def _files(raw_files: List[Dict[str, Any]], *, name: str, version: str) -> tuple:
    files = []
    seen = set()
    for raw in raw_files:
        path = _safe_relative_path(raw["path"], name=name, version=version)
        if path in seen:
            raise InvalidManifest(f"Duplicate file path: {path!r}", name=name, version=version)
        seen.add(path)
        kind = raw.get("kind") or raw.get("type") or infer_kind(path)
        if kind is None:
            raise InvalidManifest(
                f"Cannot determine file kind for {path!r}", name=name, version=version
            )
        files.append(ComponentFile(path=path, content=raw["content"], kind=kind))
    return tuple(files)


def _component_refs(entries: List[Any], *, name: str, version: str) -> tuple:
    refs = []
    for entry in entries:
        try:
            refs.append(parse_dependency_entry(entry))
        except ValueError as exc:
            raise InvalidManifest(str(exc), name=name, version=version) from exc
    return tuple(refs)


def manifest_from_payload(
    data: Any,
    *,
    name: Optional[str] = None,
    version: Optional[str] = None,
) -> ComponentManifest:
    """Validate a manifest payload in either accepted shape and normalise it.

    When ``name``/``version`` are given, the payload must describe exactly
    that component version.
    """
    stored_shape = isinstance(data, dict) and "metadata" in data and "name" not in data
    if stored_shape:
        validate_payload(STORED_COMPONENT_SCHEMA, data, name=name, version=version)
        meta = dict(data["metadata"])
        m_name, m_version = meta.pop("name"), meta.pop("version")
        packages = dict(meta.pop("dependencies", None) or {})
        component_entries = meta.pop("registryDependencies", None) or []
        for extra in ("readme", "changelog"):
            if extra in data:
                meta[extra] = data[extra]
    else:
        validate_payload(MANIFEST_SCHEMA, data, name=name, version=version)
        m_name, m_version = data["name"], data["version"]
        deps = data.get("dependencies") or {}
        packages = dict(deps.get("packages") or {})
        component_entries = deps.get("components") or []
        meta = dict(data.get("metadata") or {})

    if name is not None and m_name != name:
        raise InvalidManifest(
            f"Registry returned '{m_name}' when '{name}' was requested", name=name, version=version
        )
    if version is not None and m_version != version:
        raise InvalidManifest(
            f"Registry returned version {m_version} when {version} was requested",
            name=name,
            version=version,
        )

    return ComponentManifest(
        name=m_name,
        version=m_version,
        files=_files(data["files"], name=m_name, version=m_version),
        dependencies=ComponentDependencies(
            components=_component_refs(component_entries, name=m_name, version=m_version),
            packages=packages,
        ),
        metadata=meta,
    )


def versions_from_payload(data: Any, *, name: str) -> List[str]:
    """Extract the ascending version list from a component detail payload."""
    validate_payload(DETAIL_SCHEMA, data, name=name)
    versions = [v if isinstance(v, str) else v["version"] for v in data["versions"]]
    return sort_versions(versions)


def page_from_payload(data: Any, *, page: int, page_size: int) -> ComponentPage:
    """Validate and convert a ``GET /components`` payload."""
    validate_payload(LIST_SCHEMA, data)
    return ComponentPage(
        components=[
            ComponentSummary(
                name=c["name"],
                latest_version=c["latestVersion"],
                description=c.get("description"),
                tags=tuple(c.get("tags") or ()),
            )
            for c in data["components"]
        ],
        total=data["total"],
        page=data.get("page", page),
        page_size=data.get("pageSize", page_size),
    )
