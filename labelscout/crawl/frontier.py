# labelscout/crawl/frontier.py
from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from urllib.parse import urljoin, urlsplit

from ..extract.page import absolutize
from ..models import CrawlState, Target
from ..utils import url_host, url_path


class Deadline:
    """
    Global wall-clock budget, set once at process start and shared by every
    target. Uses a monotonic clock so system clock changes cannot extend it.
    """

    def __init__(self, seconds: float | None, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.expires_at = None if seconds is None else clock() + seconds

    @classmethod
    def from_minutes(cls, minutes: float | None) -> Deadline:
        return cls(None if minutes is None or minutes <= 0 else minutes * 60.0)

    def expired(self) -> bool:
        return self.expires_at is not None and self._clock() >= self.expires_at

    def remaining(self) -> float | None:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())


def should_ignore_path(url: str, ignore_paths: Iterable[str]) -> bool:
    """
    True when url's path is, or sits under, one of ignore_paths.

    Matching is per path segment: "/about" blocks "/about" and "/about/team"
    but not "/about-our-members".
    """
    p = url_path(url).rstrip("/") or "/"
    for prefix in ignore_paths:
        pre = prefix.rstrip("/").lower()
        if not pre:
            continue
        if p == pre or p.startswith(pre + "/"):
            return True
    return False


def same_host(a: str, b: str) -> bool:
    ha, hb = url_host(a), url_host(b)
    return bool(ha) and ha == hb


def initial_seeds(target: Target, directory_hints: Iterable[str], ignore_paths: Iterable[str]) -> list[str]:
    """
    source_url, then same-host seed URLs, then directory hints joined to the
    origin. Ignored paths and duplicates are dropped; order is preserved since
    the frontier is strictly FIFO.
    """
    ignore = tuple(ignore_paths)
    out: list[str] = []
    seen: set[str] = set()

    def _add(raw: str | None) -> None:
        url = absolutize(target.source_url, raw)
        if url is None or url in seen:
            return
        if not same_host(url, target.source_url) or should_ignore_path(url, ignore):
            return
        seen.add(url)
        out.append(url)

    _add(target.source_url)
    for s in target.seed_urls:
        _add(s)
    for hint in directory_hints:
        _add(urljoin(target.origin + "/", hint.lstrip("/")))
    return out


def build_state(seeds: Iterable[str]) -> CrawlState:
    state = CrawlState()
    for s in seeds:
        state.enqueue(s, 0)
    return state


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


__all__ = [
    "Deadline",
    "build_state",
    "initial_seeds",
    "origin_of",
    "same_host",
    "should_ignore_path",
]
