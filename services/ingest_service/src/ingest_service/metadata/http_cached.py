from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from hashlib import sha256
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_RETRY_STATUSES = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class CachedResponse:
    url: str
    status_code: int
    headers: dict[str, str]
    text: str | None
    from_cache: bool

    def json(self) -> Any:
        """Decode the body; raises ValueError on malformed JSON."""
        if self.text is None:
            raise ValueError("empty response body")
        return json.loads(self.text)


class CachedHttpClient:
    """
    Disk-cache + request-delay HTTP client for JSON metadata APIs.

    - deterministic replays during debugging (successful responses only)
    - bounded politeness (sleep between requests)
    - retries on connection errors and on 429/5xx, honouring `Retry-After`

    Query parameters named in `secret_params` (API keys) never reach the cache key
    or the cache files.
    """

    def __init__(
        self,
        *,
        cache_dir: Path | None,
        user_agent: str,
        timeout_s: float = 30.0,
        delay_s: float = 0.25,
        max_cache_age_s: float | None = 7 * 24 * 3600,
        max_retries: int = 3,
        secret_params: Iterable[str] = ("api_key",),
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cache_dir = cache_dir
        self.user_agent = user_agent
        self.timeout_s = timeout_s
        self.delay_s = delay_s
        self.max_cache_age_s = max_cache_age_s
        self.max_retries = max_retries
        self.secret_params = frozenset(secret_params)
        self._sleep = sleep
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_s, connect=timeout_s, read=timeout_s, write=timeout_s),
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            follow_redirects=True,
            transport=transport,
        )
        self._last_request_at: float | None = None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "CachedHttpClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get(self, url: str, *, params: dict[str, Any] | None = None) -> CachedResponse:
        """
        GET `url`; raises `httpx.RequestError` when every attempt failed to connect.

        Non-2xx responses are returned (not raised) after retries are exhausted.
        """
        public_params = {k: v for k, v in (params or {}).items() if k not in self.secret_params}
        paths = None
        if self.cache_dir is not None:
            paths = _cache_path(self.cache_dir, _cache_key(url, params=public_params))
            cached = _try_read_cache(paths, max_age_s=self.max_cache_age_s)
            if cached is not None:
                return CachedResponse(
                    url=cached["url"],
                    status_code=cached["status_code"],
                    headers=cached.get("headers") or {},
                    text=cached.get("text"),
                    from_cache=True,
                )

        resp: httpx.Response | None = None
        last_exc: Exception | None = None
        attempts = max(1, self.max_retries)
        for attempt in range(1, attempts + 1):
            self._polite_delay()
            try:
                resp = self._client.get(url, params=params)
                last_exc = None
            except httpx.RequestError as exc:
                last_exc = exc
                logger.debug("GET %s failed (attempt %d/%d): %s", url, attempt, attempts, exc)
                if attempt < attempts:
                    self._sleep(0.8 * attempt)
                continue
            if resp.status_code in _RETRY_STATUSES and attempt < attempts:
                wait = _retry_after(resp) or 0.8 * attempt
                logger.debug("GET %s returned %d, retrying in %.1fs", url, resp.status_code, wait)
                self._sleep(wait)
                continue
            break
        if resp is None:
            raise last_exc or httpx.RequestError("Request failed", request=None)

        headers = {k.lower(): v for k, v in resp.headers.items()}
        request_url = resp.request.url
        for name in self.secret_params:
            request_url = request_url.copy_remove_param(name)
        shown_url = str(request_url)
        if paths is not None and resp.status_code == 200:
            paths.parent.mkdir(parents=True, exist_ok=True)
            meta: dict[str, Any] = {
                "url": shown_url,
                "status_code": resp.status_code,
                "headers": headers,
                "fetched_at": datetime.now(timezone.utc).isoformat(),
                "text": resp.text,
            }
            paths.write_text(json.dumps(meta, ensure_ascii=False, indent=2), encoding="utf-8")

        return CachedResponse(
            url=shown_url,
            status_code=resp.status_code,
            headers=headers,
            text=resp.text,
            from_cache=False,
        )

    def _polite_delay(self) -> None:
        if self.delay_s <= 0:
            return
        now = time.monotonic()
        if self._last_request_at is not None:
            remaining = self.delay_s - (now - self._last_request_at)
            if remaining > 0:
                self._sleep(remaining)
        self._last_request_at = time.monotonic()


def _retry_after(resp: httpx.Response) -> float | None:
    value = resp.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _cache_key(url: str, *, params: dict[str, Any]) -> str:
    payload = {"url": url, "params": params}
    raw = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str).encode("utf-8")
    return sha256(raw).hexdigest()


def _cache_path(cache_dir: Path, key: str) -> Path:
    # keep directory fanout shallow for large caches
    return cache_dir / key[:2] / f"{key}.json"


def _try_read_cache(path: Path, *, max_age_s: float | None) -> dict[str, Any] | None:
    if not path.exists():
        return None
    try:
        meta = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None

    fetched_at = meta.get("fetched_at")
    if max_age_s is not None and isinstance(fetched_at, str):
        try:
            dt = datetime.fromisoformat(fetched_at.replace("Z", "+00:00"))
        except ValueError:
            return None
        if (datetime.now(timezone.utc) - dt).total_seconds() > max_age_s:
            return None
    return meta
