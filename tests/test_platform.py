# tests/test_platform.py
from __future__ import annotations

import json

import pytest

from labelscout.crawl.frontier import Deadline
from labelscout.crawl.runner import CrawlContext, crawl_target
from labelscout.extract.candidates import CandidateExtractor
from labelscout.extract.platform import (
    GENERIC,
    SHOPIFY,
    WOOCOMMERCE,
    detect_platform,
    discover_shopify_product_urls,
    parse_shopify_products,
)
from labelscout.extract.plausibility import PlausibilityFilter
from labelscout.fetch.hosts import HostRegistry
from labelscout.models import Target
from labelscout.profiles import get_profile
from labelscout.scoring.signals import Scorer

ORIGIN = "https://shop.example"
SHOPIFY_HOME = """
<html><head><script src="https://cdn.shopify.com/s/files/1/theme.js"></script></head>
<body><h1>Trail Gear</h1></body></html>
"""
CATALOG = json.dumps(
    {
        "products": [
            {"handle": "trail-runner", "title": "Trail Runner"},
            {"handle": "trail-runner", "title": "Trail Runner (dup)"},
            {"handle": "summit-pack"},
            {"title": "no handle"},
        ]
    }
)


class TestDetectPlatform:
    @pytest.mark.parametrize(
        "html, expected",
        [
            (SHOPIFY_HOME, SHOPIFY),
            ('<body class="woocommerce-page"><div class="products"></div></body>', WOOCOMMERCE),
            ("<script>require(['mage-init'])</script>", "magento"),
            ('<link href="/on/demandware.store/Sites-x/default">', "sfcc"),
            ("<html><body>Plain site</body></html>", GENERIC),
            (None, GENERIC),
        ],
    )
    def test_fingerprints(self, html, expected):
        assert detect_platform(html) == expected

    def test_shopify_header_wins(self):
        assert detect_platform("<html></html>", {"X-ShopId": "123"}) == SHOPIFY


class TestShopifyCatalog:
    def test_parse_dedupes_and_skips_handleless(self):
        assert parse_shopify_products(CATALOG, ORIGIN + "/") == [
            "https://shop.example/products/trail-runner",
            "https://shop.example/products/summit-pack",
        ]

    def test_parse_bare_list(self):
        assert parse_shopify_products('[{"handle": "x"}]', ORIGIN) == ["https://shop.example/products/x"]

    @pytest.mark.parametrize("raw", ["not json", '{"products": "nope"}', "42"])
    def test_parse_garbage_is_empty(self, raw):
        assert parse_shopify_products(raw, ORIGIN) == []

    @pytest.mark.asyncio
    async def test_discover_falls_through_to_collection_endpoint(self, fake_fetcher_cls):
        fetcher = fake_fetcher_cls(
            texts={
                ORIGIN + "/products.json?limit=250": '{"products": []}',
                ORIGIN + "/collections/all/products.json?limit=250": CATALOG,
            }
        )
        urls = await discover_shopify_product_urls(fetcher, ORIGIN, limit=1)
        assert urls == ["https://shop.example/products/trail-runner"]
        assert len(fetcher.text_calls) == 2

    @pytest.mark.asyncio
    async def test_discover_nothing(self, fake_fetcher_cls):
        assert await discover_shopify_product_urls(fake_fetcher_cls(), ORIGIN) == []


def _products_ctx(settings, fetcher) -> CrawlContext:
    prof = get_profile("products")

    async def no_sleep(dt):
        return None

    return CrawlContext(
        settings=settings,
        profile=prof,
        fetcher=fetcher,
        hosts=HostRegistry(),
        extractor=CandidateExtractor(PlausibilityFilter(prof.rules), ld_types=prof.ld_types),
        scorer=Scorer(prof.rules, detail_paths=prof.detail_paths),
        deadline=Deadline(None),
        sleep=no_sleep,
    )


class TestPlatformSeeding:
    @pytest.mark.asyncio
    async def test_shopify_catalog_urls_are_crawled(self, settings, fake_fetcher_cls):
        target = Target(id="trail", name="Trail Gear", source_url=ORIGIN + "/")
        fetcher = fake_fetcher_cls(
            pages={ORIGIN + "/": SHOPIFY_HOME},
            texts={ORIGIN + "/products.json?limit=250": CATALOG},
        )
        res = await crawl_target(target, _products_ctx(settings, fetcher))

        assert res.platform == SHOPIFY
        assert "https://shop.example/collections/all" in fetcher.calls
        assert "https://shop.example/products/trail-runner" in fetcher.calls
        assert "https://shop.example/products/summit-pack" in fetcher.calls

    @pytest.mark.asyncio
    async def test_generic_site_gets_no_platform_seeds(self, settings, fake_fetcher_cls):
        target = Target(id="plain", name="Plain", source_url=ORIGIN + "/")
        fetcher = fake_fetcher_cls(pages={ORIGIN + "/": "<html><body>Hello</body></html>"})
        res = await crawl_target(target, _products_ctx(settings, fetcher))

        assert res.platform == GENERIC
        assert not any("products.json" in u for u in fetcher.text_calls)

    @pytest.mark.asyncio
    async def test_labels_profile_never_detects(self, settings, fake_fetcher_cls):
        ctx = _products_ctx(settings, fake_fetcher_cls(pages={ORIGIN + "/": SHOPIFY_HOME}))
        ctx.profile = get_profile("labels")
        res = await crawl_target(Target(id="t", name="T", source_url=ORIGIN + "/"), ctx)
        assert res.platform is None
