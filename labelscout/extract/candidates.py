# labelscout/extract/candidates.py
"""
Candidate extractor: ParsedPage -> raw candidate names.

Sources, in order (first source wins on duplicates):

  1) structured   JSON-LD Organization/Brand/... names and ItemList entries
  2) site         per-host precision selectors (site_configs.yaml); when they
                  yield anything, generic extraction is skipped for the page
  3) generic      anchors, headings, list items and table cells
  4) known        known entities found verbatim in the page body

Everything except (4) passes through the PlausibilityFilter; known entities
were filtered once at bootstrap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bs4 import Tag

from ..utils import clean_text
from .page import HEADING_TAGS, ParsedPage
from .plausibility import PlausibilityFilter
from .rules import SiteConfig, site_config_for
from .structured_data import ORG_TYPES, extract_ld_names

if TYPE_CHECKING:
    from ..known import KnownEntitySet

log = logging.getLogger(__name__)

SOURCE_STRUCTURED = "structured"
SOURCE_SITE = "site"
SOURCE_GENERIC = "generic"
SOURCE_KNOWN = "known"

GENERIC_TAG_GROUPS: tuple[tuple[str, ...], ...] = (
    ("a",),
    HEADING_TAGS,
    ("li",),
    ("td", "th"),
)


@dataclass(frozen=True)
class RawCandidate:
    name: str
    source: str


def _element_value(el: Tag, attr: str | None) -> str:
    if not attr:
        return el.get_text(" ")
    val = el.get(attr)
    if isinstance(val, list):  # multi-valued attributes such as class
        return " ".join(val)
    return val or ""


class CandidateExtractor:
    def __init__(
        self,
        plausibility: PlausibilityFilter,
        *,
        site_configs: dict[str, SiteConfig] | None = None,
        known: KnownEntitySet | None = None,
        ld_types: frozenset[str] = ORG_TYPES,
    ) -> None:
        self.plausibility = plausibility
        self.site_configs = site_configs or {}
        self.known = known
        self.ld_types = ld_types

    # ---- individual sources -------------------------------------------------

    def from_structured_data(self, page: ParsedPage) -> list[str]:
        return [n for n in extract_ld_names(page.ld_json_blocks, self.ld_types) if self.plausibility(n)]

    def from_site_config(self, page: ParsedPage) -> list[str] | None:
        """
        Names from the host's precision selectors.

        None when the host has no config or the selectors matched nothing, so
        the caller knows to fall back to generic extraction.
        """
        cfg = site_config_for(self.site_configs, page.host)
        if cfg is None:
            return None

        out: list[str] = []
        for rule in cfg.rules:
            try:
                elements = page.soup.select(rule.selector)
            except Exception as exc:  # soupsieve raises on bad selectors
                log.debug("bad site selector %r for %s: %s", rule.selector, cfg.host, exc)
                continue
            for el in elements:
                raw = _element_value(el, rule.attr)
                parts = raw.split(rule.split_on) if rule.split_on else [raw]
                for part in parts:
                    t = clean_text(part)
                    if t and self.plausibility(t):
                        out.append(t)
        return out or None

    def from_generic(self, page: ParsedPage) -> list[str]:
        out: list[str] = []
        for tags in GENERIC_TAG_GROUPS:
            for el in page.soup.find_all(list(tags)):
                t = clean_text(el.get_text(" "))
                if t and self.plausibility(t):
                    out.append(t)
        return out

    def from_known(self, page: ParsedPage) -> list[str]:
        if self.known is None:
            return []
        return self.known.inject(page.body_text)

    # ---- combined -----------------------------------------------------------

    def extract(self, page: ParsedPage) -> list[RawCandidate]:
        seen: set[str] = set()
        out: list[RawCandidate] = []

        def _add(names: list[str], source: str) -> None:
            for n in names:
                key = n.casefold()
                if key in seen:
                    continue
                seen.add(key)
                out.append(RawCandidate(name=n, source=source))

        _add(self.from_structured_data(page), SOURCE_STRUCTURED)

        site = self.from_site_config(page)
        if site is not None:
            _add(site, SOURCE_SITE)
        else:
            _add(self.from_generic(page), SOURCE_GENERIC)

        _add(self.from_known(page), SOURCE_KNOWN)

        log.debug("extracted %d candidates from %s", len(out), page.url)
        return out


__all__ = [
    "CandidateExtractor",
    "RawCandidate",
    "SOURCE_GENERIC",
    "SOURCE_KNOWN",
    "SOURCE_SITE",
    "SOURCE_STRUCTURED",
]
