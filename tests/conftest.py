# ruff: noqa: E402
# tests/conftest.py
from __future__ import annotations

import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

# Ensure project root importable
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from labelscout.config import CrawlSettings, FetchConfig, load_settings
from labelscout.fetch.hosts import HostRegistry


class FakeFetcher:
    """
    Stand-in for AsyncFetcher: fixed responses keyed by URL.

    Unknown URLs behave like exhausted retries (None). Every call is recorded
    so tests can assert what the crawler asked for.
    """

    def __init__(
        self,
        pages: dict[str, str] | None = None,
        texts: dict[str, str] | None = None,
        hosts: HostRegistry | None = None,
    ) -> None:
        self.pages = dict(pages or {})
        self.texts = dict(texts or {})
        self.hosts = hosts or HostRegistry()
        self.calls: list[str] = []
        self.text_calls: list[str] = []

    async def fetch(self, url: str) -> str | None:
        self.calls.append(url)
        return self.pages.get(url)

    async def fetch_text(self, url: str) -> str | None:
        self.text_calls.append(url)
        return self.texts.get(url)


@pytest.fixture
def fake_fetcher_cls() -> type[FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def fetch_config() -> FetchConfig:
    """No delays, no backoff: tests never really sleep."""
    return FetchConfig(
        timeout_s=5.0,
        retries=2,
        backoff_base_s=0.0,
        max_body_bytes=1_000_000,
        http_concurrency=4,
        base_delay_s=0.0,
        jitter_s=0.0,
        respect_robots=False,
        headless_fallback=False,
    )


@pytest.fixture
def settings(tmp_path: Path, fetch_config: FetchConfig) -> CrawlSettings:
    """Settings pointed at a temp data dir with deterministic, fast defaults."""
    base = load_settings()
    return replace(
        base,
        fetch=fetch_config,
        profile="labels",
        max_pages=20,
        max_depth=2,
        concurrency=2,
        time_limit_minutes=5,
        max_candidates_per_target=2500,
        score_threshold=7,
        hard_score_margin=3,
        per_target_keep=500,
        evidence_cap=5,
        clear_output=False,
        dry_run=False,
        data_dir=tmp_path,
        targets_path=None,
        manual_known_path=None,
        site_configs_path=None,
    )


@pytest.fixture
def write_targets(tmp_path: Path):
    """Write a labels.json into the temp data dir and return its path."""

    def _write(rows: list[dict[str, Any]], name: str = "labels.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(rows), encoding="utf-8")
        return path

    return _write
