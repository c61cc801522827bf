"""HTTP registry client built on aiohttp."""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
from typing import Any, Dict, List, Optional

import aiohttp

from common.errors import (
    InvalidManifest,
    RegistryNotFound,
    RegistryRateLimited,
    RegistryUnreachable,
)
from common.http_client import parse_retry_after
from common.logging_utils import Timer, extra_context, is_debug_enabled, redact, safe_url
from constants import Constants
from registry.base import RegistryClient
from registry.models import ComponentManifest, ComponentPage
from registry.schema import manifest_from_payload, page_from_payload, versions_from_payload
from versioning.semver import pick_latest

logger = logging.getLogger(__name__)


class HttpRegistryClient(RegistryClient):
    """Client for the registry HTTP contract.

    ``GET /components``, ``GET /components/{name}`` and
    ``GET /components/{name}/versions/{version}``.
    """

    def __init__(
        self,
        base_url: str = Constants.REGISTRY_URL,
        timeout: int = Constants.REQUEST_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[aiohttp.ClientSession] = None,
        connection_limit: int = Constants.FETCH_CONCURRENCY,
    ):
        """Initialize the registry client.

        Args:
            base_url: Registry root URL.
            timeout: Request timeout in seconds.
            headers: Extra request headers.
            session: Externally owned session; not closed by ``stop``.
            connection_limit: Connector pool size for an owned session.
        """
        self._base_url = base_url.rstrip("/")
        self.location = self._base_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._headers = {"Accept": "application/json", "User-Agent": Constants.USER_AGENT}
        if headers:
            self._headers.update(headers)
        self._session = session
        self._owns_session = session is None
        self._connection_limit = connection_limit

    async def start(self) -> aiohttp.ClientSession:
        """Start the HTTP session if needed and return it."""
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=self._connection_limit)
            self._session = aiohttp.ClientSession(timeout=self._timeout, connector=connector)
            self._owns_session = True
        return self._session

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _url(self, *segments: str) -> str:
        path = "/".join(urllib.parse.quote(s, safe="@") for s in segments)
        return f"{self._base_url}/{path}"

    async def _get_json(
        self,
        url: str,
        *,
        name: Optional[str] = None,
        version: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """GET ``url`` and decode JSON, mapping failures onto registry errors."""
        session = await self.start()
        safe_target = safe_url(url)

        with Timer() as timer:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="registry_client",
                            action="GET",
                            target=safe_target,
                        ),
                    )
                async with session.get(url, params=params, headers=self._headers) as response:
                    status = response.status
                    response_headers = response.headers
                    text = await response.text()
            except asyncio.TimeoutError as exc:
                raise RegistryUnreachable(
                    f"Registry request timed out: {safe_target}", name=name, version=version
                ) from exc
            except aiohttp.ClientError as exc:
                raise RegistryUnreachable(
                    f"Registry connection error for {safe_target}: {exc}", name=name, version=version
                ) from exc

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="registry_client",
                    action="GET",
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                    target=safe_target,
                ),
            )

        if 200 <= status < 300:
            try:
                return json.loads(text)
            except json.JSONDecodeError as exc:
                raise InvalidManifest(
                    f"Registry returned malformed JSON for {safe_target}",
                    errors=[str(exc)],
                    name=name,
                    version=version,
                ) from exc

        message = redact(_error_message(text) or f"HTTP {status}")
        if status == 404:
            raise RegistryNotFound(
                f"{name}{'@' + version if version else ''} not found: {message}",
                name=name,
                version=version,
            )
        if status == 429:
            raise RegistryRateLimited(
                f"Registry rate limit hit: {message}",
                retry_after=parse_retry_after(response_headers.get("Retry-After")),
                name=name,
                version=version,
            )
        logger.warning(
            "HTTP non-2xx",
            extra=extra_context(
                event="http_response",
                component="registry_client",
                outcome="error",
                status_code=status,
                target=safe_target,
            ),
        )
        raise RegistryUnreachable(
            f"Registry error for {safe_target}: {message}",
            name=name,
            version=version,
            status_code=status,
            retriable=status >= 500 or status == 408,
        )

    async def list_versions(self, name: str) -> List[str]:
        data = await self._get_json(self._url("components", name), name=name)
        return versions_from_payload(data, name=name)

    async def fetch_manifest(self, name: str, version: Optional[str] = None) -> ComponentManifest:
        if version is None:
            version = pick_latest(await self.list_versions(name))
            if version is None:
                raise RegistryNotFound(f"{name} has no published versions", name=name)
        data = await self._get_json(
            self._url("components", name, "versions", version), name=name, version=version
        )
        return manifest_from_payload(data, name=name, version=version)

    async def list_components(
        self, page: int = 1, page_size: int = Constants.REGISTRY_PAGE_SIZE
    ) -> ComponentPage:
        data = await self._get_json(
            self._url("components"), params={"page": str(page), "pageSize": str(page_size)}
        )
        return page_from_payload(data, page=page, page_size=page_size)


def _error_message(text: str) -> Optional[str]:
    """Pull ``code: message`` out of a registry error body, if it has one."""
    try:
        body = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(body, dict) or "message" not in body:
        return None
    code = body.get("code")
    return f"{code}: {body['message']}" if code else str(body["message"])
