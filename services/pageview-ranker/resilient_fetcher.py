"""
Resilient Fetcher

This module implements the ResilientFetcher class that performs GET requests
against the Wikimedia APIs with response caching and exponential backoff.
"""

import asyncio
import json
from typing import Any, Callable, Dict, Optional

import aiohttp
import structlog
from prometheus_client import Counter

from response_cache import ResponseCache

DEFAULT_USER_AGENT = "PageviewRanker/1.0 (educational project)"

# Prometheus metrics
CACHE_HITS = Counter('pageview_cache_hits_total', 'Fresh cache hits')
CACHE_MISSES = Counter('pageview_cache_misses_total', 'Cache misses, stale entries included')
UPSTREAM_REQUESTS = Counter('pageview_upstream_requests_total', 'Upstream HTTP requests issued')
FETCH_RETRIES = Counter('pageview_fetch_retries_total', 'Retries after a failed attempt')
FETCH_FAILURES = Counter('pageview_fetch_failures_total', 'Requests that exhausted all attempts')


class FetchError(Exception):
    """Base class for failures while fetching an upstream payload."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class TransportFailure(FetchError):
    """Network or connection level failure."""


class UpstreamStatusFailure(FetchError):
    """Upstream answered with a non-success status."""

    def __init__(self, status: int, reason: str = "", url: Optional[str] = None) -> None:
        super().__init__(f"API request failed: {reason} ({status})", url=url)
        self.status = status
        self.reason = reason


class ParseFailure(FetchError):
    """Payload could not be decoded or has an unexpected shape."""


class ResilientFetcher:
    """Cached JSON fetcher with bounded retries.

    The cache is injected so that separate fetchers (and tests) can share or
    isolate it explicitly. Concurrent requests for the same URL are not
    de-duplicated.
    """

    def __init__(
        self,
        cache: ResponseCache,
        session: Optional[aiohttp.ClientSession] = None,
        max_attempts: int = 3,
        initial_backoff: float = 1.0,
        backoff_multiplier: float = 2.0,
        timeout_seconds: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        """Initialize the fetcher.

        Args:
            cache: Response cache shared by all callers
            session: Optional aiohttp session; one is opened on context entry otherwise
            max_attempts: Total attempts per request, first one included
            initial_backoff: Delay in seconds before the first retry
            backoff_multiplier: Factor applied to the delay after each retry
            timeout_seconds: Total timeout of a single attempt
            user_agent: User-Agent header sent with every request
        """
        if max_attempts < 1:
            raise ValueError("At least one attempt is required")
        if initial_backoff < 0:
            raise ValueError("Backoff delay must be non-negative")
        if backoff_multiplier < 1.0:
            raise ValueError("Backoff multiplier must be at least 1.0")

        self.cache = cache
        self.session = session
        self.max_attempts = max_attempts
        self.initial_backoff = initial_backoff
        self.backoff_multiplier = backoff_multiplier
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self._owns_session = session is None

        self.logger = structlog.get_logger(__name__)

    async def __aenter__(self) -> "ResilientFetcher":
        """Async context manager entry."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers={"User-Agent": self.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None

    async def fetch(self, url: str, parse: Optional[Callable[[Any], Any]] = None) -> Any:
        """Return the decoded JSON payload for ``url``.

        A fresh cache entry is returned without touching the network. On a
        miss the request is attempted up to ``max_attempts`` times with an
        exponentially growing delay between attempts.

        When ``parse`` is given it runs inside each attempt, so a payload
        with an unexpected shape is retried like any other failure and is
        never cached.

        Args:
            url: Fully resolved request URL, also used as cache key
            parse: Optional converter applied to the decoded payload; must
                raise ParseFailure on an unexpected shape

        Returns:
            Decoded JSON payload, or the result of ``parse``

        Raises:
            FetchError: The last failure once every attempt has failed
        """
        log = self.logger.bind(url=url)

        cached = self.cache.get(url)
        if cached is not None and self.cache.is_fresh(cached):
            CACHE_HITS.inc()
            log.debug("Cache hit")
            return parse(cached.value) if parse else cached.value
        CACHE_MISSES.inc()

        if self.session is None:
            raise TransportFailure("Fetcher session not open. Use 'async with' first.", url=url)

        delay = self.initial_backoff
        last_error: Optional[FetchError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                payload = await self._request(url)
                result = parse(payload) if parse else payload
            except FetchError as e:
                last_error = e
                log.warning("Fetch attempt failed", attempt=attempt,
                            max_attempts=self.max_attempts, error=str(e))
                if attempt < self.max_attempts:
                    FETCH_RETRIES.inc()
                    await asyncio.sleep(delay)
                    delay *= self.backoff_multiplier
                continue

            self.cache.put(url, payload)
            return result

        FETCH_FAILURES.inc()
        log.error("Fetch failed after all attempts", attempts=self.max_attempts,
                  error=str(last_error))
        raise last_error

    async def _request(self, url: str) -> Any:
        """Perform a single GET and decode the JSON body."""
        UPSTREAM_REQUESTS.inc()
        headers: Dict[str, str] = {"User-Agent": self.user_agent, "Accept": "application/json"}
        try:
            async with self.session.get(url, headers=headers) as response:
                if not 200 <= response.status < 300:
                    raise UpstreamStatusFailure(response.status, response.reason or "", url=url)
                try:
                    return await response.json(content_type=None)
                except (json.JSONDecodeError, ValueError, aiohttp.ContentTypeError) as e:
                    raise ParseFailure(f"Malformed JSON payload: {e}", url=url) from e
        except FetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportFailure(f"Transport error: {e}", url=url) from e
