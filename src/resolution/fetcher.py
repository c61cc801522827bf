"""Bounded, retrying and memoising manifest fetcher used by the resolver."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple

from common.errors import RegistryUnreachable
from common.http_client import backoff_delay, exceeds_retry_budget
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from registry.base import RegistryClient
from registry.models import ComponentManifest
from versioning.models import ComponentRef

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class ManifestFetcher:
    """Fetch manifests through a semaphore with retry and per-ref memoisation.

    Only ``RegistryUnreachable`` errors flagged ``retriable`` are retried;
    not-found and invalid-manifest errors surface on the first attempt.
    A Retry-After hint is always waited out in full; a hint longer than
    ``Constants.HTTP_RETRY_AFTER_MAX_SEC`` surfaces the rate limit instead.
    Concurrent requests for the same ``(name, version)`` share one fetch.
    """

    def __init__(
        self,
        client: RegistryClient,
        concurrency: int = Constants.FETCH_CONCURRENCY,
        max_attempts: int = Constants.HTTP_RETRY_MAX,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._client = client
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._memo: Dict[Tuple[str, Optional[str]], "asyncio.Future[ComponentManifest]"] = {}
        self.attempts = 0

    async def fetch(self, ref: ComponentRef) -> ComponentManifest:
        key = (ref.name, ref.version)
        future = self._memo.get(key)
        if future is None:
            future = asyncio.ensure_future(self._fetch_with_retry(ref))
            self._memo[key] = future
        manifest = await future
        self._memo.setdefault((manifest.name, manifest.version), future)
        return manifest

    async def _fetch_with_retry(self, ref: ComponentRef) -> ComponentManifest:
        for attempt in range(self._max_attempts):
            try:
                async with self._semaphore:
                    self.attempts += 1
                    with Timer() as timer:
                        manifest = await self._client.fetch_manifest(ref.name, ref.version)
                if is_debug_enabled(logger):
                    logger.debug(
                        "Fetched manifest",
                        extra=extra_context(
                            event="fetch_manifest",
                            component="fetcher",
                            outcome="success",
                            target=str(manifest.ref),
                            duration_ms=timer.duration_ms(),
                            attempt=attempt + 1,
                        ),
                    )
                return manifest
            except RegistryUnreachable as exc:
                retry_after = getattr(exc, "retry_after", None)
                if not exc.retriable or attempt + 1 >= self._max_attempts or exceeds_retry_budget(retry_after):
                    raise
                delay = backoff_delay(attempt, retry_after)
                logger.warning(
                    "Registry fetch failed for %s, retrying in %.2fs: %s",
                    ref,
                    delay,
                    exc,
                    extra=extra_context(
                        event="fetch_manifest",
                        component="fetcher",
                        outcome="retry",
                        target=str(ref),
                        attempt=attempt + 1,
                        status_code=exc.status_code,
                    ),
                )
                await self._sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover
