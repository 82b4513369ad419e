"""Rate-limited HTTP client for fetching award source documents."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Result of fetching a document."""

    url: str
    status_code: int
    text: str | None
    content_type: str | None
    fetched_at: datetime
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200 and self.text is not None

    @property
    def not_found(self) -> bool:
        return self.status_code in (404, 410)


class RateLimitedHttpClient:
    """
    HTTP client with a fixed delay between requests and retries for transient failures.

    Only HTML documents are fetched through it; non-200 responses are returned as
    `FetchResult`s carrying `error` instead of raising, and the caller decides whether
    a missing page is fatal for its unit.
    """

    def __init__(
        self,
        crawl_delay: float = 0.5,
        user_agent: str = "laurels-ingest/0.1",
        timeout: float = 30.0,
        max_retries: int = 3,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            crawl_delay: Delay in seconds between requests
            user_agent: User-Agent string identifying the ingester
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for transient failures
            transport: Optional httpx transport (tests use `httpx.MockTransport`)
            sleep: Sleep function, replaceable in tests
        """
        self.crawl_delay = crawl_delay
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max_retries
        self.last_request_time: float | None = None
        self._sleep = sleep

        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": self.user_agent, "Accept": "text/html"},
            follow_redirects=True,
            transport=transport,
        )

    def _apply_rate_limit(self) -> None:
        if self.last_request_time is not None:
            elapsed = time.monotonic() - self.last_request_time
            if elapsed < self.crawl_delay:
                self._sleep(self.crawl_delay - elapsed)

        self.last_request_time = time.monotonic()

    def fetch(self, url: str) -> FetchResult:
        """Fetch `url`, retrying timeouts and connection errors with exponential backoff."""
        last_error: Exception | None = None
        for attempt in range(max(1, self.max_retries)):
            self._apply_rate_limit()
            try:
                response = self.client.get(url)
            except httpx.RequestError as e:
                last_error = e
                logger.warning("Fetch attempt %d for %s failed: %s", attempt + 1, url, e)
                if attempt < self.max_retries - 1:
                    self._sleep(2**attempt)
                continue

            fetched_at = datetime.now(timezone.utc)
            if response.status_code == 200:
                return FetchResult(
                    url=str(response.url),
                    status_code=200,
                    text=response.text,
                    content_type=response.headers.get("Content-Type"),
                    fetched_at=fetched_at,
                )

            # 5xx is worth another attempt; anything else is final.
            if response.status_code >= 500 and attempt < self.max_retries - 1:
                last_error = httpx.HTTPStatusError(
                    f"HTTP {response.status_code}", request=response.request, response=response
                )
                self._sleep(2**attempt)
                continue

            return FetchResult(
                url=url,
                status_code=response.status_code,
                text=None,
                content_type=response.headers.get("Content-Type"),
                fetched_at=fetched_at,
                error=f"HTTP {response.status_code}",
            )

        return FetchResult(
            url=url,
            status_code=0,
            text=None,
            content_type=None,
            fetched_at=datetime.now(timezone.utc),
            error=str(last_error) if last_error else "Unknown error",
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> RateLimitedHttpClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
