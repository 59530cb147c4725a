# labelscout/fetch/client.py
from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from ..config import FetchConfig
from .hosts import HostRegistry

log = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------------------
# Request identity
# --------------------------------------------------------------------------------------------------

USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_5) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.5 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:122.0) Gecko/20100101 Firefox/122.0",
)

BASE_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

RETRY_STATUSES: frozenset[int] = frozenset({403, 429, 500, 502, 503, 504})
THROTTLE_STATUSES: frozenset[int] = frozenset({403, 429})
HTML_CONTENT_TYPES: tuple[str, ...] = ("text/html", "application/xhtml+xml")
MAX_REDIRECTS = 5


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def is_html_content_type(content_type: str | None) -> bool:
    ct = (content_type or "").lower()
    return any(t in ct for t in HTML_CONTENT_TYPES)


# --------------------------------------------------------------------------------------------------
# Results
# --------------------------------------------------------------------------------------------------


@dataclass
class FetchResult:
    status: int
    url: str
    effective_url: str
    content_type: str | None
    body: str | None
    attempts: int
    reason: str  # "ok" | "non-html" | "throttled" | "http-error" | "error:<Exc>"

    @property
    def ok(self) -> bool:
        return self.body is not None


def _host(url: str) -> str:
    return urlsplit(url).netloc.lower()


# --------------------------------------------------------------------------------------------------
# Client
# --------------------------------------------------------------------------------------------------


class AsyncFetcher:
    """
    Async wrapper around httpx with retries and adaptive per-host penalties.

    Flow per attempt:
      1) GET with a random UA and permissive headers
      2) record the outcome in HostRegistry (HTML / non-HTML / error)
      3) 2xx/3xx HTML with a body  -> decay penalty, return body
         403/429                   -> bump penalty, retry
         500/502/503/504 or error  -> retry
         anything else             -> give up
    Retries sleep backoff_base_s * attempt (linear). Exhausted retries return
    None; this class never raises to its caller.
    """

    def __init__(
        self,
        config: FetchConfig,
        hosts: HostRegistry | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.hosts = hosts or HostRegistry()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_s),
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
        )
        self._slots = asyncio.Semaphore(max(1, config.http_concurrency))

    # ---- core fetch ------------------------------------------------------------------

    async def fetch(self, url: str) -> str | None:
        """Return the HTML body for url, or None after retries are exhausted."""
        res = await self.fetch_result(url)
        return res.body

    async def fetch_result(self, url: str) -> FetchResult:
        host = _host(url)
        attempt = 0
        while True:
            res = await self._attempt(url, host, attempt)
            if res.ok:
                return res
            retryable = res.status in RETRY_STATUSES or res.reason.startswith("error:")
            if not retryable or attempt >= self.config.retries:
                log.warning("giving up on %s (status=%s reason=%s)", url, res.status, res.reason)
                return res
            attempt += 1
            backoff = self.config.backoff_base_s * attempt
            log.debug("retry %d for %s after %.2fs", attempt, url, backoff)
            await asyncio.sleep(backoff)

    async def fetch_text(self, url: str) -> str | None:
        """
        Plain GET for non-HTML resources (robots.txt, sitemaps).

        One attempt, no retries, counted in host stats like any other request.
        """
        host = _host(url)
        started = time.monotonic()
        try:
            async with self._slots:
                resp = await self._client.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            await self.hosts.record_error(host, f"{type(exc).__name__}: {exc}", duration_ms=_ms(started))
            return None
        await self.hosts.record_response(
            host, resp.status_code, is_html=False, duration_ms=_ms(started)
        )
        if not (200 <= resp.status_code < 300):
            return None
        return resp.text[: self.config.max_body_bytes]

    # ----------------------------------------------------------------------------------
    # Internals
    # ----------------------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": random_user_agent(), **BASE_HEADERS}

    async def _attempt(self, url: str, host: str, attempt: int) -> FetchResult:
        penalty = self.hosts.penalty(host)
        if attempt == 0:
            log.debug("GET %s (host=%s, penalty=%.2f)", url, host, penalty)
        else:
            log.debug("RETRY %d %s (host=%s, penalty=%.2f)", attempt, url, host, penalty)

        started = time.monotonic()
        try:
            async with self._slots:
                resp = await self._client.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            await self.hosts.record_error(host, f"{type(exc).__name__}: {exc}", duration_ms=_ms(started))
            log.debug("error on %s (attempt=%d): %r", url, attempt, exc)
            return FetchResult(
                status=599,
                url=url,
                effective_url=url,
                content_type=None,
                body=None,
                attempts=attempt + 1,
                reason=f"error:{type(exc).__name__}",
            )

        status = int(resp.status_code)
        ctype = resp.headers.get("Content-Type")
        text = resp.text if resp.content else ""
        html = is_html_content_type(ctype) and bool(text.strip())
        await self.hosts.record_response(host, status, is_html=html, duration_ms=_ms(started))

        if 200 <= status < 400 and html:
            await self.hosts.decay_penalty(host)
            return FetchResult(
                status=status,
                url=url,
                effective_url=str(resp.url),
                content_type=ctype,
                body=text[: self.config.max_body_bytes],
                attempts=attempt + 1,
                reason="ok",
            )

        if status in THROTTLE_STATUSES:
            before = penalty
            after = await self.hosts.bump_penalty(host)
            log.warning(
                "throttle status=%s on host=%s, bump penalty %.2f -> %.2f", status, host, before, after
            )
            reason = "throttled"
        elif 200 <= status < 400:
            log.debug("%s non-HTML/empty (host=%s, ct=%s)", status, host, ctype or "?")
            reason = "non-html"
        else:
            reason = "http-error"

        return FetchResult(
            status=status,
            url=url,
            effective_url=str(resp.url),
            content_type=ctype,
            body=None,
            attempts=attempt + 1,
            reason=reason,
        )

    # ----------------------------------------------------------------------------------
    # Context manager
    # ----------------------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AsyncFetcher:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def _ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


__all__ = [
    "AsyncFetcher",
    "FetchResult",
    "USER_AGENTS",
    "BASE_HEADERS",
    "RETRY_STATUSES",
    "is_html_content_type",
    "random_user_agent",
]
