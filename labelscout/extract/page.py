# labelscout/extract/page.py
"""
Page parser: raw HTML -> ParsedPage.

JSON-LD blocks are captured before noise stripping (the section filters remove
<script> tags). Everything else (links, headings, text) is read from the
stripped tree so header/nav/footer chrome never reaches the extractor.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup, NavigableString, Tag

from ..utils import clean_text, url_host, url_path
from .rules import SectionFilters

log = logging.getLogger(__name__)

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
_SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "data:", "#")


@dataclass(frozen=True)
class Link:
    href: str  # absolute, fragment removed
    text: str  # cleaned anchor text


@dataclass
class ParsedPage:
    url: str
    soup: BeautifulSoup
    links: list[Link] = field(default_factory=list)
    headings: list[str] = field(default_factory=list)
    text_blocks: list[str] = field(default_factory=list)
    body_text: str = ""
    ld_json_blocks: list[str] = field(default_factory=list)

    @property
    def host(self) -> str:
        return url_host(self.url)

    @property
    def path(self) -> str:
        return url_path(self.url)

    def links_for_text(self, text: str) -> list[str]:
        """Hrefs of anchors whose text equals text (case-insensitive)."""
        key = text.casefold()
        return [lk.href for lk in self.links if lk.text.casefold() == key]

    def snippets_for(self, name: str, limit: int = 3, width: int = 160) -> list[str]:
        """Leaf text blocks mentioning name, trimmed to width."""
        key = name.casefold()
        out: list[str] = []
        for block in self.text_blocks:
            if key in block.casefold():
                out.append(block[:width])
                if len(out) >= limit:
                    break
        return out


# --------------------------------------------------------------------------------------
# URL helpers
# --------------------------------------------------------------------------------------


def absolutize(base_url: str, href: str | None) -> str | None:
    """Resolve href against base_url; None for non-http targets."""
    raw = (href or "").strip()
    if not raw or raw.lower().startswith(_SKIP_SCHEMES):
        return None
    try:
        parts = urlsplit(urljoin(base_url, raw))
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return urlunsplit((parts.scheme, parts.netloc.lower(), parts.path or "/", parts.query, ""))


# --------------------------------------------------------------------------------------
# Parsing
# --------------------------------------------------------------------------------------


def strip_sections(soup: BeautifulSoup, selectors: Iterable[str]) -> int:
    """Remove every element matching any selector. Returns the number removed."""
    removed = 0
    for sel in selectors:
        try:
            matches = soup.select(sel)
        except Exception as exc:  # soupsieve raises on bad selectors
            log.debug("bad section selector %r: %s", sel, exc)
            continue
        for el in matches:
            el.decompose()
            removed += 1
    return removed


def _leaf_texts(root: Tag) -> list[str]:
    out: list[str] = []
    for node in root.find_all(string=True):
        # comments, doctypes and CDATA are NavigableString subclasses
        if type(node) is not NavigableString:
            continue
        t = clean_text(str(node))
        if t:
            out.append(t)
    return out


def parse_page(html: str, url: str, filters: SectionFilters | None = None) -> ParsedPage:
    """
    Parse html fetched from url.

    Malformed markup never raises: html.parser is lenient and anything it
    cannot make sense of simply yields fewer links/blocks.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    ld_blocks: list[str] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if raw and raw.strip():
            ld_blocks.append(raw)

    if filters is not None:
        strip_sections(soup, filters.selectors_for(url_path(url)))
    # script/style bodies are never text even when the filters keep them
    for el in soup.find_all(["script", "style", "noscript", "template"]):
        el.decompose()

    links: list[Link] = []
    for a in soup.find_all("a", href=True):
        href = absolutize(url, a.get("href"))
        if href is None:
            continue
        links.append(Link(href=href, text=clean_text(a.get_text(" "))))

    headings = [t for t in (clean_text(h.get_text(" ")) for h in soup.find_all(HEADING_TAGS)) if t]

    root = soup.body or soup
    text_blocks = _leaf_texts(root)
    body_text = clean_text(root.get_text(" "))

    return ParsedPage(
        url=url,
        soup=soup,
        links=links,
        headings=headings,
        text_blocks=text_blocks,
        body_text=body_text,
        ld_json_blocks=ld_blocks,
    )


__all__ = ["HEADING_TAGS", "Link", "ParsedPage", "absolutize", "parse_page", "strip_sections"]
