# labelscout/fetch/__init__.py
"""
Fetcher package: async httpx client, per-host stats/penalties, optional robots
gate and optional headless fallback.

Crawler-facing API:
  - AsyncFetcher.fetch(url) -> str | None

Other public entry points:
  - HostRegistry, HostStats (shared per-host state)
  - RobotsGate (robots.txt policy cache)
  - HeadlessRenderer (JS fallback)
"""

from .client import (
    AsyncFetcher,
    FetchResult,
    is_html_content_type,
    random_user_agent,
)
from .hosts import (
    PENALTY_MAX,
    PENALTY_MIN,
    HostRegistry,
    HostStats,
    jitter,
)
from .render import HeadlessRenderer
from .robots import RobotsGate

__all__ = [
    "AsyncFetcher",
    "FetchResult",
    "is_html_content_type",
    "random_user_agent",
    "HostRegistry",
    "HostStats",
    "jitter",
    "PENALTY_MIN",
    "PENALTY_MAX",
    "RobotsGate",
    "HeadlessRenderer",
]
