"""Data models for component references and version requests."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ResolutionMode(Enum):
    """How a requested component version is resolved."""
    EXACT = "exact"
    LATEST = "latest"


@dataclass(frozen=True)
class ComponentRef:
    """Identifies a published component artifact.

    ``version`` is None only on a request meaning "latest"; refs produced by
    resolution always carry a concrete version.
    """
    name: str
    version: Optional[str] = None

    @property
    def mode(self) -> ResolutionMode:
        """Resolution mode implied by the requested version."""
        if self.version is None:
            return ResolutionMode.LATEST
        return ResolutionMode.EXACT

    def pinned(self, version: str) -> "ComponentRef":
        """Return a copy with a concrete version."""
        return ComponentRef(self.name, version)

    def __str__(self) -> str:
        return f"{self.name}@{self.version}" if self.version else self.name
