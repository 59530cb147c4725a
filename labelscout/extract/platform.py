# labelscout/extract/platform.py
"""
Storefront platform detection and platform-specific seeding.

detect_platform() fingerprints a homepage. Each platform contributes a few
listing paths worth seeding, and Shopify stores additionally expose their
catalog as JSON (/products.json), which turns into product page URLs without
crawling a single collection page.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..crawl.runner import Fetcher

log = logging.getLogger(__name__)

SHOPIFY = "shopify"
WOOCOMMERCE = "woocommerce"
MAGENTO = "magento"
SFCC = "sfcc"
BIGCOMMERCE = "bigcommerce"
GENERIC = "generic"

# checked in order; the first match wins
_FINGERPRINTS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (SHOPIFY, re.compile(r"cdn\.shopify\.com|shopify-section|shopify\.theme|x-shopify-stage", re.I)),
    (WOOCOMMERCE, re.compile(r"woocommerce|/wp-content/plugins/woocommerce/", re.I)),
    (MAGENTO, re.compile(r"mage-init|mage-cache-storage|magento|/static/version\d+", re.I)),
    (SFCC, re.compile(r"on/demandware\.store|demandware\.static|dwcontent|dwrest", re.I)),
    (BIGCOMMERCE, re.compile(r"bigcommerce", re.I)),
)

PLATFORM_SEED_PATHS: dict[str, tuple[str, ...]] = {
    SHOPIFY: ("/collections/all",),
    WOOCOMMERCE: ("/shop/",),
    MAGENTO: ("/catalog/category/view/",),
    SFCC: ("/c/", "/all-products"),
    BIGCOMMERCE: ("/shop-all/",),
    GENERIC: (),
}

SHOPIFY_JSON_PATHS = ("/products.json?limit=250", "/collections/all/products.json?limit=250")


def detect_platform(html: str | None, headers: Mapping[str, str] | None = None) -> str:
    """Best-effort storefront fingerprint; GENERIC when nothing matches."""
    hdrs = {str(k).lower() for k in (headers or {})}
    if "x-shopify-stage" in hdrs or "x-shopid" in hdrs:
        return SHOPIFY
    text = html or ""
    for platform, pattern in _FINGERPRINTS:
        if pattern.search(text):
            return platform
    return GENERIC


def parse_shopify_products(raw: str, origin: str) -> list[str]:
    """
    Product page URLs from a Shopify products.json payload.

    Accepts both {"products": [...]} and a bare list. Anything unparseable
    yields an empty list.
    """
    try:
        data: Any = json.loads(raw)
    except ValueError:
        log.debug("unparseable products.json from %s", origin)
        return []
    products = data.get("products") if isinstance(data, dict) else data
    if not isinstance(products, list):
        return []

    base = origin.rstrip("/")
    out: list[str] = []
    seen: set[str] = set()
    for p in products:
        if not isinstance(p, dict):
            continue
        handle = str(p.get("handle") or "").strip().strip("/")
        if not handle:
            continue
        url = f"{base}/products/{handle}"
        if url not in seen:
            seen.add(url)
            out.append(url)
    return out


async def discover_shopify_product_urls(fetcher: Fetcher, origin: str, *, limit: int = 200) -> list[str]:
    """
    Product URLs from the store's JSON catalog endpoints.

    The first endpoint that yields anything wins. Never raises.
    """
    base = origin.rstrip("/")
    for path in SHOPIFY_JSON_PATHS:
        raw = await fetcher.fetch_text(base + path)
        if not raw:
            continue
        urls = parse_shopify_products(raw, base)
        if urls:
            log.debug("shopify catalog %s%s: %d products", base, path, len(urls))
            return urls[:limit]
    return []


__all__ = [
    "BIGCOMMERCE",
    "GENERIC",
    "MAGENTO",
    "PLATFORM_SEED_PATHS",
    "SFCC",
    "SHOPIFY",
    "SHOPIFY_JSON_PATHS",
    "WOOCOMMERCE",
    "detect_platform",
    "discover_shopify_product_urls",
    "parse_shopify_products",
]
