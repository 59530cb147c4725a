# labelscout/crawl/confirm.py
"""
Brand -> label confirmation (manufacturers profile).

The targets are brands. For each brand, every configured label directory is
scanned for the brand's aliases:

    search pages   one per alias, when the label has a search URL
    listing pages  the label's pages plus pagination, up to the page budget

Each page with a hit yields one PageScore for the brand. Per label those are
aggregated and gated exactly like discovered candidates, and every kept
result becomes a (label, brand) association.

Listing pages are the same for every brand in a run, so PageCache fetches and
parses each URL once no matter how many brand tasks ask for it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace

from ..extract.brands import BrandMatcher, brand_aliases
from ..extract.page import ParsedPage, parse_page
from ..extract.rules import LabelDirectory
from ..models import CrawlStatus, DroppedCandidate, KeptEntity, Target, TargetResult
from ..scoring.aggregate import Aggregator
from ..scoring.confirm import score_brand_page
from ..scoring.gate import ThresholdGate
from ..utils import entity_key, url_host
from .runner import DROPPED_SAMPLE, CrawlContext, fetch_html

log = logging.getLogger(__name__)

PageLoader = Callable[[str], Awaitable[ParsedPage | None]]


class PageCache:
    """Parsed pages by URL; each URL is loaded at most once, even under concurrent requests."""

    def __init__(self) -> None:
        self._pages: dict[str, ParsedPage | None] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._pages)

    def __contains__(self, url: object) -> bool:
        return url in self._pages

    async def get(self, url: str, loader: PageLoader) -> ParsedPage | None:
        lock = self._locks.setdefault(url, asyncio.Lock())
        async with lock:
            if url not in self._pages:
                self._pages[url] = await loader(url)
            return self._pages[url]


@dataclass
class LabelCheck:
    """Run-wide inputs of the manufacturers profile."""

    directories: tuple[LabelDirectory, ...]
    # entity key of a brand -> label ids confirmed for it by earlier runs
    previous: Mapping[str, frozenset[str]] = field(default_factory=dict)
    pages: PageCache = field(default_factory=PageCache)


def previous_confirmations(rows: list[dict]) -> dict[str, frozenset[str]]:
    """entity key -> associatedLabels, from previously written rows."""
    return {entity_key(r["entityName"]): frozenset(r.get("associatedLabels") or []) for r in rows}


async def _load_page(url: str, ctx: CrawlContext) -> ParsedPage | None:
    if ctx.deadline.expired():
        return None
    if ctx.robots is not None and not await ctx.robots.allowed(url):
        log.debug("robots.txt disallows %s", url)
        return None
    fetch_cfg = ctx.settings.fetch
    await ctx.sleep(ctx.hosts.delay_for(url_host(url), fetch_cfg.base_delay_s, fetch_cfg.jitter_s))
    if ctx.deadline.expired():
        return None
    html = await fetch_html(url, ctx)
    if html is None:
        return None
    return parse_page(html, url, ctx.profile.rules.section_filters)


async def confirm_brand(target: Target, ctx: CrawlContext) -> TargetResult:
    check = ctx.labels
    if check is None:
        raise RuntimeError("confirm_brand needs a CrawlContext with labels set")

    settings = ctx.settings
    matcher = BrandMatcher(brand_aliases(target.name, target.aliases))
    gate = ThresholdGate(settings.score_threshold, settings.hard_score_margin, settings.per_target_keep)
    confirmed_before = check.previous.get(entity_key(target.name), frozenset())
    budget = min(ctx.profile.directory_pages, settings.max_pages)

    async def load(url: str) -> ParsedPage | None:
        return await _load_page(url, ctx)

    status = CrawlStatus.RUNNING
    pages_scanned = 0
    associations: list[tuple[Target, KeptEntity]] = []
    dropped: list[DroppedCandidate] = []

    log.info(
        "[%s] confirming against %d labels (aliases: %s)",
        target.id,
        len(check.directories),
        " | ".join(matcher.aliases),
    )
    for label in check.directories:
        agg = Aggregator(dampening=ctx.profile.dampening)
        known = label.id in confirmed_before
        for url in label.search_urls(matcher.aliases) + label.listing_urls(budget):
            if ctx.deadline.expired():
                log.info("[%s] global time limit reached, stopping at label %s", target.id, label.id)
                status = CrawlStatus.DEADLINE_STOPPED
                break
            page = await check.pages.get(url, load)
            if page is None:
                continue
            pages_scanned += 1
            ps = score_brand_page(
                target.name,
                page,
                matcher.scan(page),
                detail_pattern=label.detail_pattern,
                known=known,
            )
            if ps is not None:
                agg.add_page(url, [ps])

        # partial evidence from an interrupted label is still gated
        outcome = gate.apply(agg.finalize())
        label_target = label.as_target()
        associations.extend((label_target, k) for k in outcome.kept)
        dropped.extend(replace(d, name=label.id) for d in outcome.dropped)
        if outcome.kept:
            log.debug("[%s] confirmed %s (score %.2f)", target.id, label.id, outcome.kept[0].score)
        if status is CrawlStatus.DEADLINE_STOPPED:
            break

    if status is CrawlStatus.RUNNING:
        status = CrawlStatus.COMPLETED

    log.info(
        "[%s] %s: confirmed=%s dropped=%d pages=%d",
        target.id,
        status.value,
        [label.id for label, _ in associations],
        len(dropped),
        pages_scanned,
    )
    return TargetResult(
        target=target,
        pages_crawled=pages_scanned,
        status=status,
        dropped_sample=dropped[:DROPPED_SAMPLE],
        dropped_count=len(dropped),
        associations=associations,
    )


__all__ = ["LabelCheck", "PageCache", "confirm_brand", "previous_confirmations"]
