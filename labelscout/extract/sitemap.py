# labelscout/extract/sitemap.py
"""
Sitemap discovery for frontier seeding.

Handles plain <urlset> sitemaps and one level of <sitemapindex> nesting, with
or without the sitemaps.org namespace.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from xml.etree import ElementTree as ET

if TYPE_CHECKING:
    from ..fetch.client import AsyncFetcher

log = logging.getLogger(__name__)

SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml")
NAMESPACES = {"sm": "http://www.sitemaps.org/schemas/sitemap/0.9"}
MAX_NESTED_SITEMAPS = 5


def _locs(root: ET.Element, parent: str) -> list[str]:
    urls: list[str] = []
    for el in root.findall(f".//sm:{parent}/sm:loc", NAMESPACES):
        if el.text and el.text.strip():
            urls.append(el.text.strip())
    if not urls:
        # un-namespaced sitemaps
        for el in root.findall(f".//{parent}/loc"):
            if el.text and el.text.strip():
                urls.append(el.text.strip())
    return urls


def parse_sitemap(xml_text: str) -> tuple[list[str], list[str]]:
    """
    Return (page_urls, nested_sitemap_urls) for one sitemap document.

    Malformed XML yields two empty lists.
    """
    try:
        root = ET.fromstring(xml_text.encode("utf-8"))
    except ET.ParseError as exc:
        log.debug("unparseable sitemap: %s", exc)
        return [], []

    if root.tag.endswith("sitemapindex"):
        return [], _locs(root, "sitemap")
    return _locs(root, "url"), []


async def discover_sitemap_urls(
    fetcher: AsyncFetcher,
    origin: str,
    *,
    limit: int = 200,
) -> list[str]:
    """
    Fetch the well-known sitemap locations under origin and collect page URLs.

    Nested sitemaps from an index are followed (up to MAX_NESTED_SITEMAPS).
    Never raises; a site without a sitemap simply contributes nothing.
    """
    out: list[str] = []
    seen: set[str] = set()

    def _add(urls: list[str]) -> None:
        for u in urls:
            if u not in seen and len(out) < limit:
                seen.add(u)
                out.append(u)

    for path in SITEMAP_PATHS:
        text = await fetcher.fetch_text(origin.rstrip("/") + path)
        if not text:
            continue
        pages, nested = parse_sitemap(text)
        _add(pages)
        for child in nested[:MAX_NESTED_SITEMAPS]:
            if len(out) >= limit:
                break
            child_text = await fetcher.fetch_text(child)
            if child_text:
                _add(parse_sitemap(child_text)[0])
        if out:
            break

    log.debug("sitemap discovery for %s: %d urls", origin, len(out))
    return out


__all__ = ["SITEMAP_PATHS", "discover_sitemap_urls", "parse_sitemap"]
