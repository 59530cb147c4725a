# labelscout/crawl/runner.py
"""
Per-target crawl loop.

    READY -> RUNNING -> COMPLETED          queue drained or max_pages reached
                     -> DEADLINE_STOPPED   global deadline passed
                     -> CAP_STOPPED        too many distinct candidates

Pure breadth-first over same-host links. The deadline is checked before and
after every per-host delay; once it passes the target stops enqueuing and
finalizes with whatever it has. Per-target state (frontier, aggregator)
never leaves this task.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urljoin

from ..config import CrawlSettings
from ..extract.candidates import CandidateExtractor
from ..extract.page import parse_page
from ..extract.platform import PLATFORM_SEED_PATHS, SHOPIFY, detect_platform, discover_shopify_product_urls
from ..extract.sitemap import discover_sitemap_urls
from ..fetch.hosts import HostRegistry
from ..fetch.render import HeadlessRenderer
from ..fetch.robots import RobotsGate
from ..models import CrawlState, CrawlStatus, Target, TargetResult
from ..profiles import Profile
from ..scoring.aggregate import Aggregator
from ..scoring.gate import ThresholdGate
from ..scoring.signals import Scorer
from ..utils import url_host
from .frontier import Deadline, build_state, initial_seeds, same_host, should_ignore_path

if TYPE_CHECKING:
    from .confirm import LabelCheck

log = logging.getLogger(__name__)

DROPPED_SAMPLE = 200


class Fetcher(Protocol):
    async def fetch(self, url: str) -> str | None: ...

    async def fetch_text(self, url: str) -> str | None: ...


@dataclass
class CrawlContext:
    """Run-wide collaborators shared by every target task (all read-only or lock-guarded)."""

    settings: CrawlSettings
    profile: Profile
    fetcher: Fetcher
    hosts: HostRegistry
    extractor: CandidateExtractor
    scorer: Scorer
    deadline: Deadline
    robots: RobotsGate | None = None
    renderer: HeadlessRenderer | None = None
    labels: LabelCheck | None = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep


async def _seed_from_sitemap(target: Target, state: CrawlState, ctx: CrawlContext) -> int:
    urls = await discover_sitemap_urls(ctx.fetcher, target.origin, limit=ctx.settings.max_pages)
    added = 0
    for u in urls:
        if not same_host(u, target.source_url):
            continue
        if should_ignore_path(u, ctx.profile.rules.ignore_paths):
            continue
        if state.enqueue(u, 0):
            added += 1
    return added


async def _seed_from_platform(target: Target, platform: str, state: CrawlState, ctx: CrawlContext) -> int:
    """Enqueue the platform's listing paths and, for Shopify, its JSON catalog."""
    urls = [urljoin(target.origin + "/", p.lstrip("/")) for p in PLATFORM_SEED_PATHS.get(platform, ())]
    if platform == SHOPIFY and not ctx.deadline.expired():
        limit = ctx.settings.max_pages
        urls.extend(await discover_shopify_product_urls(ctx.fetcher, target.origin, limit=limit))
    added = 0
    for u in urls:
        if not same_host(u, target.source_url) or should_ignore_path(u, ctx.profile.rules.ignore_paths):
            continue
        if state.enqueue(u, 1):
            added += 1
    return added


async def fetch_html(url: str, ctx: CrawlContext) -> str | None:
    html = await ctx.fetcher.fetch(url)
    if html is None and ctx.renderer is not None:
        html = await ctx.renderer.render(url)
    return html


async def crawl_target(target: Target, ctx: CrawlContext) -> TargetResult:
    settings = ctx.settings
    rules = ctx.profile.rules
    fetch_cfg = settings.fetch

    state = build_state(initial_seeds(target, rules.directory_hints, rules.ignore_paths))
    agg = Aggregator(dampening=ctx.profile.dampening)
    state.status = CrawlStatus.RUNNING

    if ctx.profile.use_sitemap and not ctx.deadline.expired():
        added = await _seed_from_sitemap(target, state, ctx)
        log.debug("[%s] %d sitemap seeds", target.id, added)

    log.info("[%s] crawl start: %s (%d seeds)", target.id, target.source_url, len(state.queue))
    platform: str | None = None

    while state.queue and state.pages_crawled < settings.max_pages:
        if ctx.deadline.expired():
            log.info("[%s] global time limit reached, stopping crawl", target.id)
            state.status = CrawlStatus.DEADLINE_STOPPED
            break

        item = state.pop()
        url, depth = item.url, item.depth
        if url in state.visited or should_ignore_path(url, rules.ignore_paths):
            continue
        state.visited.add(url)

        if ctx.robots is not None and not await ctx.robots.allowed(url):
            log.debug("[%s] robots.txt disallows %s", target.id, url)
            continue

        host = url_host(url)
        log.debug(
            "[%s] [%d/%d] depth=%d host=%s penalty=%.2f remaining=%d GET %s",
            target.id,
            state.pages_crawled + 1,
            settings.max_pages,
            depth,
            host,
            ctx.hosts.penalty(host),
            len(state.queue),
            url,
        )
        await ctx.sleep(ctx.hosts.delay_for(host, fetch_cfg.base_delay_s, fetch_cfg.jitter_s))
        if ctx.deadline.expired():
            log.info("[%s] global time limit reached during host delay, stopping crawl", target.id)
            state.status = CrawlStatus.DEADLINE_STOPPED
            break

        html = await fetch_html(url, ctx)
        if html is None:
            continue

        state.pages_crawled += 1
        page = parse_page(html, url, rules.section_filters)
        if ctx.profile.platform_seeding and platform is None:
            platform = detect_platform(html)
            added = await _seed_from_platform(target, platform, state, ctx)
            log.info("[%s] platform=%s (%d platform seeds)", target.id, platform, added)

        candidates = ctx.extractor.extract(page)
        if candidates:
            agg.add_page(url, ctx.scorer.score_page(page, candidates))
            if len(agg) >= settings.max_candidates_per_target:
                log.info(
                    "[%s] reached %d candidates, stopping crawl",
                    target.id,
                    settings.max_candidates_per_target,
                )
                state.status = CrawlStatus.CAP_STOPPED
                break

        if depth < settings.max_depth:
            for link in page.links:
                if not same_host(link.href, target.source_url):
                    continue
                if should_ignore_path(link.href, rules.ignore_paths):
                    continue
                state.enqueue(link.href, depth + 1)

    if state.status is CrawlStatus.RUNNING:
        state.status = CrawlStatus.COMPLETED

    gate = ThresholdGate(settings.score_threshold, settings.hard_score_margin, settings.per_target_keep)
    outcome = gate.apply(agg.finalize())

    log.info(
        "[%s] %s: kept=%d dropped=%d pages=%d",
        target.id,
        state.status.value,
        len(outcome.kept),
        len(outcome.dropped),
        state.pages_crawled,
    )
    return TargetResult(
        target=target,
        pages_crawled=state.pages_crawled,
        status=state.status,
        kept=outcome.kept,
        dropped_sample=outcome.dropped[:DROPPED_SAMPLE],
        dropped_count=len(outcome.dropped),
        platform=platform,
    )


__all__ = ["CrawlContext", "DROPPED_SAMPLE", "Fetcher", "crawl_target", "fetch_html"]
