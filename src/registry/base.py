"""Contract shared by every registry client."""

from __future__ import annotations

import abc
from typing import List, Optional

from constants import Constants
from registry.models import ComponentManifest, ComponentPage


class RegistryClient(abc.ABC):
    """Fetches component metadata, version lists and source bundles.

    Implementations have no dependency awareness and no retry logic;
    callers decide how to retry ``RegistryUnreachable`` failures.
    """

    #: Human-readable location, used in logs.
    location: str = ""

    @abc.abstractmethod
    async def fetch_manifest(self, name: str, version: Optional[str] = None) -> ComponentManifest:
        """Fetch one component version; ``None`` means the greatest published version.

        Raises:
            RegistryNotFound: Unknown component or version.
            RegistryUnreachable: Transport failure.
            InvalidManifest: Payload failed schema validation.
        """

    @abc.abstractmethod
    async def list_versions(self, name: str) -> List[str]:
        """Published versions of a component, ascending."""

    @abc.abstractmethod
    async def list_components(
        self, page: int = 1, page_size: int = Constants.REGISTRY_PAGE_SIZE
    ) -> ComponentPage:
        """One page of the registry catalogue."""

    async def start(self) -> None:
        """Acquire resources (sessions, connections)."""

    async def stop(self) -> None:
        """Release resources."""

    async def __aenter__(self) -> "RegistryClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
