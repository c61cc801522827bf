"""Exception hierarchy for the resolve -> transform -> install pipeline.

Every error carries the pipeline ``stage`` it belongs to and enough
structured detail (component, version, file path) for the CLI to render an
actionable message. Exit codes per tier live in ``constants.ExitCodes``.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from constants import ExitCodes


class FetchUIError(Exception):
    """Base class for all pipeline errors."""

    stage = "resolve"
    exit_code = ExitCodes.FILE_ERROR

    def detail(self) -> dict:
        """Structured fields for logging."""
        return {}


# ---------------------------------------------------------------- registry


class RegistryError(FetchUIError):
    """Registry-tier failure."""

    exit_code = ExitCodes.REGISTRY_ERROR

    def __init__(self, message: str, *, name: Optional[str] = None, version: Optional[str] = None):
        super().__init__(message)
        self.name = name
        self.version = version

    def detail(self) -> dict:
        return {"component": self.name, "version": self.version}


class RegistryNotFound(RegistryError):
    """Component or version does not exist at the registry."""


class RegistryUnreachable(RegistryError):
    """Network/transport failure, timeout or server-side error."""

    exit_code = ExitCodes.CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        *,
        name: Optional[str] = None,
        version: Optional[str] = None,
        status_code: Optional[int] = None,
        retriable: bool = True,
    ):
        super().__init__(message, name=name, version=version)
        self.status_code = status_code
        self.retriable = retriable

    def detail(self) -> dict:
        return {**super().detail(), "status_code": self.status_code, "retriable": self.retriable}


class RegistryRateLimited(RegistryUnreachable):
    """HTTP 429; ``retry_after`` holds the server hint in seconds, if any."""

    def __init__(self, message: str, *, retry_after: Optional[float] = None, **kwargs):
        kwargs.setdefault("status_code", 429)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class InvalidManifest(RegistryError):
    """Fetched payload failed schema validation."""

    def __init__(self, message: str, *, errors: Sequence[str] = (), **kwargs):
        super().__init__(message, **kwargs)
        self.errors = list(errors)

    def detail(self) -> dict:
        return {**super().detail(), "errors": self.errors}


# -------------------------------------------------------------- resolution


class ResolutionError(FetchUIError):
    """Resolution-tier failure; fatal and never retried."""

    exit_code = ExitCodes.RESOLUTION_ERROR


class CyclicDependency(ResolutionError):
    """A component is its own transitive dependency."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__("Cyclic dependency: " + " -> ".join(self.cycle))

    def detail(self) -> dict:
        return {"cycle": self.cycle}


class IncompatiblePackageVersions(ResolutionError):
    """Two components request provably disjoint ranges of one package."""

    def __init__(self, package: str, first: Tuple[str, str], second: Tuple[str, str]):
        self.package = package
        self.first = first
        self.second = second
        super().__init__(
            f"Incompatible versions of '{package}': "
            f"{first[0]} requires {first[1]}, {second[0]} requires {second[1]}"
        )

    def detail(self) -> dict:
        return {
            "package": self.package,
            "requested_by": [
                {"component": self.first[0], "range": self.first[1]},
                {"component": self.second[0], "range": self.second[1]},
            ],
        }


# --------------------------------------------------------------- transform


class TransformError(FetchUIError):
    """Transform-tier failure for a single file."""

    stage = "transform"
    exit_code = ExitCodes.TRANSFORM_ERROR

    def __init__(self, message: str, *, path: Optional[str] = None, component: Optional[str] = None):
        super().__init__(message)
        self.path = path
        self.component = component

    def detail(self) -> dict:
        return {"component": self.component, "file": self.path}


class ParseError(TransformError):
    """Source could not be parsed; no partial transformation is attempted."""

    def __init__(self, path: str, cause: str, *, line: Optional[int] = None, component: Optional[str] = None):
        where = f"{path}:{line}" if line else path
        super().__init__(f"Failed to parse {where}: {cause}", path=path, component=component)
        self.cause = cause
        self.line = line

    def detail(self) -> dict:
        return {**super().detail(), "line": self.line, "cause": self.cause}


class StyleReferenceError(TransformError):
    """A stylesheet reference does not resolve to a file of the component."""

    def __init__(self, path: str, reference: str, *, component: Optional[str] = None):
        super().__init__(
            f"Unresolvable style reference '{reference}' in {path}",
            path=path,
            component=component,
        )
        self.reference = reference

    def detail(self) -> dict:
        return {**super().detail(), "reference": self.reference}


class UnsupportedSyntax(TransformError):
    """TypeScript syntax with no plain JavaScript equivalent, met while stripping types."""

    def __init__(self, path: str, construct: str, *, line: Optional[int] = None, component: Optional[str] = None):
        where = f"{path}:{line}" if line else path
        super().__init__(
            f"Cannot convert {where} to JavaScript: {construct} (install with TypeScript enabled)",
            path=path,
            component=component,
        )
        self.construct = construct
        self.line = line

    def detail(self) -> dict:
        return {**super().detail(), "line": self.line, "construct": self.construct}


class TransformFailed(TransformError):
    """One or more files of an install failed to transform."""

    def __init__(self, errors: List[TransformError]):
        self.errors = list(errors)
        first = self.errors[0] if self.errors else None
        super().__init__(
            f"{len(self.errors)} file(s) failed to transform"
            + (f"; first: {first}" if first else ""),
            path=getattr(first, "path", None),
            component=getattr(first, "component", None),
        )

    def detail(self) -> dict:
        return {"failures": [{**e.detail(), "error": str(e)} for e in self.errors]}


# ----------------------------------------------------------------- install


class InstallError(FetchUIError):
    """Installation-tier failure; the transaction is always rolled back."""

    stage = "install"
    exit_code = ExitCodes.INSTALL_ERROR


class FileConflict(InstallError):
    """Target files already exist and ``force`` was not given."""

    def __init__(self, paths: Sequence[str]):
        self.paths = sorted(str(p) for p in paths)
        super().__init__(
            f"{len(self.paths)} file(s) already exist (use --force to overwrite): "
            + ", ".join(self.paths)
        )

    def detail(self) -> dict:
        return {"paths": self.paths}


class PromotionFailure(InstallError):
    """Renaming a staged file into place failed; the transaction was rolled back."""

    def __init__(self, path: str, cause: BaseException, *, rollback_errors: Sequence[str] = ()):
        self.path = str(path)
        self.cause = cause
        self.rollback_errors = list(rollback_errors)
        super().__init__(f"Failed to promote {self.path}: {cause}")

    def detail(self) -> dict:
        return {"file": self.path, "cause": str(self.cause), "rollback_errors": self.rollback_errors}


class StagingFailure(InstallError):
    """A transformed file could not be written to its temporary location."""

    def __init__(self, path: str, cause: BaseException):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"Failed to stage {self.path}: {cause}")

    def detail(self) -> dict:
        return {"file": self.path, "cause": str(self.cause)}


class TargetCollision(InstallError):
    """Two source files map onto the same install path."""

    def __init__(self, path: str, sources: Sequence[str]):
        self.path = str(path)
        self.sources = list(sources)
        super().__init__(f"{self.path} would be written by more than one file: " + ", ".join(self.sources))

    def detail(self) -> dict:
        return {"file": self.path, "sources": self.sources}
