"""Shared synchronous HTTP helpers used by the registry catalogue commands.

Encapsulates retry/timeout handling and a small in-memory response cache
so callers avoid duplicating try/except blocks. The install pipeline uses
the async client in ``registry.client`` instead.
"""
from __future__ import annotations

import email.utils
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

# Simple in-memory cache for HTTP responses
_http_cache: Dict[str, Tuple[Any, float]] = {}


def _get_cache_key(method: str, url: str, headers: Optional[Dict[str, str]] = None) -> str:
    """Generate cache key from request parameters."""
    headers_str = str(sorted(headers.items())) if headers else ""
    return f"{method}:{url}:{headers_str}"


def _is_cache_valid(cache_entry: Tuple[Any, float]) -> bool:
    """Check if cache entry is still valid."""
    _, cached_time = cache_entry
    return time.time() - cached_time < Constants.HTTP_CACHE_TTL_SEC


def clear_cache() -> None:
    """Drop every cached response."""
    _http_cache.clear()


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header (delta-seconds or HTTP-date) into seconds."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def backoff_delay(attempt: int, retry_after: Optional[float] = None) -> float:
    """Capped exponential backoff for a zero-based attempt, never shorter than a server hint."""
    delay = min(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt), Constants.HTTP_RETRY_MAX_DELAY_SEC)
    if retry_after is not None:
        delay = max(delay, retry_after)
    return delay


def exceeds_retry_budget(retry_after: Optional[float]) -> bool:
    """True when a Retry-After hint is too long to wait for inside one command."""
    return retry_after is not None and retry_after > Constants.HTTP_RETRY_AFTER_MAX_SEC


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    sleep=time.sleep,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], str]:
    """Perform GET request with timeout, retries, and caching with DEBUG traces.

    Transport errors, 5xx and 429 responses are retried up to
    ``Constants.HTTP_RETRY_MAX`` attempts; 429 waits for the Retry-After hint.

    Returns:
        Tuple of (status_code, headers_dict, text); status 0 when every attempt failed.
    """
    cache_key = _get_cache_key('GET', url, headers)
    safe_target = safe_url(url)

    if cache_key in _http_cache and _is_cache_valid(_http_cache[cache_key]):
        cached_data, _ = _http_cache[cache_key]
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP cache hit",
                extra=extra_context(
                    event="cache_hit",
                    component="http_client",
                    action="GET",
                    target=safe_target
                )
            )
        return cached_data

    last_exception = None
    last_result: Optional[Tuple[int, Dict[str, str], str]] = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            retry_after = None
            if last_result is not None and last_result[0] == 429:
                retry_after = parse_retry_after(last_result[1].get("Retry-After"))
            sleep(backoff_delay(attempt - 1, retry_after))
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )

                response = requests.get(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=headers,
                    **kwargs
                )
                result = (response.status_code, dict(response.headers), response.text)

                if response.status_code == 429 or response.status_code >= 500:
                    last_result = result
                    if response.status_code == 429 and exceeds_retry_budget(
                        parse_retry_after(result[1].get("Retry-After"))
                    ):
                        logger.warning(
                            "HTTP rate limited beyond retry budget",
                            extra=extra_context(
                                event="http_response",
                                component="http_client",
                                action="GET",
                                outcome="rate_limited",
                                status_code=429,
                                attempt=attempt + 1,
                                target=safe_target
                            )
                        )
                        return result
                    logger.warning(
                        "HTTP retriable status",
                        extra=extra_context(
                            event="http_response",
                            component="http_client",
                            action="GET",
                            outcome="retry",
                            status_code=response.status_code,
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                    continue

                _http_cache[cache_key] = (result, time.time())

                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP response ok",
                        extra=extra_context(
                            event="http_response",
                            component="http_client",
                            action="GET",
                            outcome="success",
                            status_code=response.status_code,
                            duration_ms=t.duration_ms(),
                            target=safe_target
                        )
                    )
                return result

            except requests.Timeout:
                last_exception = "timeout"
                last_result = None
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP timeout",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="timeout",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue
            except requests.RequestException as exc:
                last_exception = str(exc)
                last_result = None
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request exception",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="request_exception",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue

    if last_result is not None:
        return last_result
    return 0, {}, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}"


def get_json(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """Perform GET request and parse JSON response with DEBUG traces.

    Args:
        url: Target URL
        headers: Optional request headers
        **kwargs: Additional robust_get/requests.get parameters

    Returns:
        Tuple of (status_code, headers_dict, parsed_json_or_none)
    """
    status_code, response_headers, text = robust_get(url, headers=headers, **kwargs)

    if status_code == 200 and text:
        try:
            parsed = json.loads(text)
            return status_code, response_headers, parsed
        except json.JSONDecodeError:
            logger.warning(
                "JSON decode error",
                extra=extra_context(
                    event="parse",
                    component="http_client",
                    action="get_json",
                    outcome="json_decode_error",
                    status_code=status_code,
                    target=safe_url(url)
                )
            )
            return status_code, response_headers, None

    return status_code, response_headers, None
