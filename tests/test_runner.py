# tests/test_runner.py
from __future__ import annotations

from dataclasses import replace

import pytest

from labelscout.crawl.frontier import Deadline
from labelscout.crawl.runner import CrawlContext, crawl_target
from labelscout.extract.candidates import CandidateExtractor
from labelscout.extract.plausibility import PlausibilityFilter
from labelscout.fetch.hosts import HostRegistry
from labelscout.models import CrawlStatus, Target
from labelscout.profiles import get_profile
from labelscout.scoring.signals import Scorer

SOURCE = "https://certs.example/directory"
TARGET = Target(id="certs", name="Certs", source_url=SOURCE)

DIRECTORY = """
<html><body>
  <h2>Certified Companies</h2>
  <ul>
    <li><a href="https://acme.example">Acme Corp</a></li>
    <li><a href="https://bravo.example">Bravo Foods GmbH</a></li>
    <li><a href="/directory?page=2">Next</a></li>
    <li><a href="/login">Log in</a></li>
  </ul>
</body></html>
"""

PAGE_TWO = """
<html><body>
  <ul>
    <li><a href="https://charlie.example">Charlie Ltd</a></li>
    <li><a href="/directory?page=3">Page Three</a></li>
  </ul>
</body></html>
"""


def _ctx(settings, fetcher, *, deadline=None, profile="labels") -> CrawlContext:
    prof = get_profile(profile)
    slept: list[float] = []

    async def no_sleep(dt):
        slept.append(dt)

    return CrawlContext(
        settings=settings,
        profile=prof,
        fetcher=fetcher,
        hosts=HostRegistry(),
        extractor=CandidateExtractor(PlausibilityFilter(prof.rules), ld_types=prof.ld_types),
        scorer=Scorer(prof.rules, detail_paths=prof.detail_paths),
        deadline=deadline or Deadline(None),
        sleep=no_sleep,
    )


class TestCrawlLoop:
    @pytest.mark.asyncio
    async def test_bfs_follows_same_host_links(self, settings, fake_fetcher_cls):
        fetcher = fake_fetcher_cls(
            pages={SOURCE: DIRECTORY, "https://certs.example/directory?page=2": PAGE_TWO}
        )
        res = await crawl_target(TARGET, _ctx(settings, fetcher))

        assert res.status is CrawlStatus.COMPLETED
        assert res.pages_crawled == 2
        assert fetcher.calls[0] == SOURCE
        # off-host and ignored links are never fetched
        assert not any("acme.example" in u or "/login" in u for u in fetcher.calls)
        kept = {k.name for k in res.kept}
        assert {"Acme Corp", "Bravo Foods GmbH", "Charlie Ltd"} <= kept

    @pytest.mark.asyncio
    async def test_each_url_fetched_once(self, settings, fake_fetcher_cls):
        loop_page = '<a href="/directory">Home</a><a href="/directory#x">Again</a>'
        fetcher = fake_fetcher_cls(pages={SOURCE: loop_page})
        await crawl_target(TARGET, _ctx(settings, fetcher))
        assert fetcher.calls.count(SOURCE) == 1

    @pytest.mark.asyncio
    async def test_max_depth(self, settings, fake_fetcher_cls):
        fetcher = fake_fetcher_cls(
            pages={SOURCE: DIRECTORY, "https://certs.example/directory?page=2": PAGE_TWO}
        )
        res = await crawl_target(TARGET, _ctx(replace(settings, max_depth=0), fetcher))
        assert "https://certs.example/directory?page=2" not in fetcher.calls
        assert res.pages_crawled == 1

    @pytest.mark.asyncio
    async def test_max_pages(self, settings, fake_fetcher_cls):
        fetcher = fake_fetcher_cls(
            pages={SOURCE: DIRECTORY, "https://certs.example/directory?page=2": PAGE_TWO}
        )
        res = await crawl_target(TARGET, _ctx(replace(settings, max_pages=1), fetcher))
        assert res.pages_crawled == 1
        assert res.status is CrawlStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_fetches_do_not_count_as_pages(self, settings, fake_fetcher_cls):
        fetcher = fake_fetcher_cls()
        res = await crawl_target(TARGET, _ctx(settings, fetcher))
        assert res.pages_crawled == 0
        assert res.kept == []
        assert res.status is CrawlStatus.COMPLETED
        # source plus the directory hints were all attempted
        assert SOURCE in fetcher.calls
        assert "https://certs.example/members" in fetcher.calls


class TestStops:
    @pytest.mark.asyncio
    async def test_expired_deadline_fetches_nothing(self, settings, fake_fetcher_cls):
        fetcher = fake_fetcher_cls(pages={SOURCE: DIRECTORY})
        res = await crawl_target(TARGET, _ctx(settings, fetcher, deadline=Deadline(-1)))
        assert res.pages_crawled == 0
        assert res.status is CrawlStatus.DEADLINE_STOPPED
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_deadline_passing_during_host_delay_skips_fetch(self, settings, fake_fetcher_cls):
        now = [0.0]
        deadline = Deadline(5.0, clock=lambda: now[0])
        fetcher = fake_fetcher_cls(pages={SOURCE: DIRECTORY})
        ctx = _ctx(settings, fetcher, deadline=deadline)

        async def slow_sleep(dt):
            now[0] += 10.0

        ctx.sleep = slow_sleep
        res = await crawl_target(TARGET, ctx)
        assert fetcher.calls == []
        assert res.pages_crawled == 0
        assert res.status is CrawlStatus.DEADLINE_STOPPED

    @pytest.mark.asyncio
    async def test_candidate_cap(self, settings, fake_fetcher_cls):
        fetcher = fake_fetcher_cls(
            pages={SOURCE: DIRECTORY, "https://certs.example/directory?page=2": PAGE_TWO}
        )
        res = await crawl_target(TARGET, _ctx(replace(settings, max_candidates_per_target=1), fetcher))
        assert res.status is CrawlStatus.CAP_STOPPED
        assert res.pages_crawled == 1


class TestResult:
    @pytest.mark.asyncio
    async def test_dropped_candidates_reported(self, settings, fake_fetcher_cls):
        html = "<ul><li>Plain Name</li></ul>"
        fetcher = fake_fetcher_cls(pages={SOURCE: html})
        res = await crawl_target(TARGET, _ctx(settings, fetcher))
        assert res.kept == []
        assert res.dropped_count == 1
        assert res.dropped_sample[0].name == "Plain Name"

    @pytest.mark.asyncio
    async def test_sitemap_seeding_for_products(self, settings, fake_fetcher_cls):
        target = Target(id="acme", name="Acme", source_url="https://shop.example/")
        sitemap = (
            "<urlset><url><loc>https://shop.example/products/trail-runner</loc></url>"
            "<url><loc>https://elsewhere.example/x</loc></url></urlset>"
        )
        fetcher = fake_fetcher_cls(texts={"https://shop.example/sitemap.xml": sitemap})
        await crawl_target(target, _ctx(settings, fetcher, profile="products"))
        assert "https://shop.example/products/trail-runner" in fetcher.calls
        assert "https://elsewhere.example/x" not in fetcher.calls
