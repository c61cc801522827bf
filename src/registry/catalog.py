"""Synchronous catalogue browsing (``list``/``info``) over requests.

Uses the shared ``common.http_client`` helpers, which add retries,
Retry-After handling and a short-lived response cache.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import List, Optional, Tuple

from common.errors import (
    InvalidManifest,
    RegistryNotFound,
    RegistryRateLimited,
    RegistryUnreachable,
)
from common.http_client import get_json, parse_retry_after
from common.logging_utils import extra_context, safe_url
from constants import Constants
from registry.models import ComponentManifest, ComponentPage
from registry.schema import manifest_from_payload, page_from_payload, versions_from_payload

logger = logging.getLogger(__name__)

_HEADERS = {"Accept": "application/json", "User-Agent": Constants.USER_AGENT}


def _url(base_url: str, *segments: str) -> str:
    path = "/".join(urllib.parse.quote(s, safe="@") for s in segments)
    return f"{base_url.rstrip('/')}/{path}"


def _fetch(url: str, *, name: Optional[str] = None, version: Optional[str] = None):
    status, headers, data = get_json(url, headers=_HEADERS)
    if status == 200 and data is not None:
        return data
    if status == 200:
        raise InvalidManifest(f"Registry returned malformed JSON for {safe_url(url)}", name=name, version=version)
    if status == 404:
        raise RegistryNotFound(f"{name or url} not found", name=name, version=version)
    if status == 429:
        raise RegistryRateLimited(
            "Registry rate limit hit", name=name, version=version,
            retry_after=parse_retry_after(headers.get("Retry-After")),
        )
    logger.warning(
        "Catalogue request failed",
        extra=extra_context(
            event="http_response",
            component="catalog",
            outcome="error",
            status_code=status,
            target=safe_url(url),
        ),
    )
    raise RegistryUnreachable(
        f"Registry request failed for {safe_url(url)} (status {status})",
        name=name,
        version=version,
        status_code=status or None,
    )


def list_page(base_url: str, page: int = 1, page_size: int = Constants.REGISTRY_PAGE_SIZE) -> ComponentPage:
    """Fetch one catalogue page."""
    query = urllib.parse.urlencode({"page": page, "pageSize": page_size})
    data = _fetch(f"{_url(base_url, 'components')}?{query}")
    return page_from_payload(data, page=page, page_size=page_size)


def component_info(
    base_url: str, name: str, version: Optional[str] = None
) -> Tuple[ComponentManifest, List[str]]:
    """Return the manifest (latest unless ``version`` is given) and all published versions."""
    detail = _fetch(_url(base_url, "components", name), name=name)
    versions = versions_from_payload(detail, name=name)
    if not versions:
        raise RegistryNotFound(f"{name} has no published versions", name=name)
    wanted = version or versions[-1]
    data = _fetch(_url(base_url, "components", name, "versions", wanted), name=name, version=wanted)
    return manifest_from_payload(data, name=name, version=wanted), versions
