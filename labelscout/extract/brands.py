# labelscout/extract/brands.py
"""
Brand aliases and brand-on-page matching for label confirmation.

Every comparison runs on a folded form of the text (lower-cased, accents
removed, punctuation other than & . - ' dropped, whitespace collapsed) so
"Nestlé S.A." and "NESTLE S.A." are the same name. Exact matches are
whole-word, which keeps "Apple" out of "Pineapple".

When no alias matches exactly, a fuzzy pass compares each short text block
with every alias using difflib. Near matches are reported as such and
score low.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass
from difflib import SequenceMatcher
from urllib.parse import urlsplit

from ..utils import clean_text, normalize_text
from .page import ParsedPage

HIT_LINK = "link"  # anchor text contains the alias
HIT_SLUG = "slug"  # last path segment of a link spells the alias
HIT_LISTING = "listing"  # a whole text block is the alias
HIT_TEXT = "text"  # the alias occurs inside a longer text block
HIT_FUZZY = "fuzzy"  # near match only

MIN_ALIAS_LEN = 2
FUZZY_MIN_RATIO = 0.88
FUZZY_MAX_BLOCK_LEN = 80
FUZZY_HITS_CAP = 5

_FOLD_DROP_RE = re.compile(r"[^\w\s&.'\-]")
_AMP_RE = re.compile(r"\s*&\s*")
_AND_RE = re.compile(r"\s+and\s+", re.IGNORECASE)
TRAILING_SUFFIX_RE = re.compile(
    r"[\s,]+(?:inc|incorporated|llc|ltd|limited|ag|gmbh|s\.?a\.?|co|company|corp|corporation"
    r"|plc|llp|nv|bv|ab|srl|sas|kk)\.?$",
    re.IGNORECASE,
)


def fold(text: str | None) -> str:
    s = unicodedata.normalize("NFKD", clean_text(text))
    s = "".join(c for c in s if not unicodedata.combining(c))
    s = s.replace("’", "'").lower()
    return normalize_text(_FOLD_DROP_RE.sub(" ", s))


def strip_legal_suffix(name: str) -> str:
    """'Patagonia, Inc.' -> 'Patagonia'; names without a suffix come back unchanged."""
    return TRAILING_SUFFIX_RE.sub("", clean_text(name)).strip(" ,")


def brand_aliases(name: str, extra: Iterable[str] = ()) -> tuple[str, ...]:
    """
    Names a brand may be listed under: the name itself, explicit extras, the
    name without its legal suffix, and "&" / "and" spellings of each.

    Unique by folded form, original first.
    """
    out: list[str] = []
    seen: set[str] = set()

    def _add(value: str) -> None:
        v = clean_text(value)
        key = fold(v)
        if len(key) < MIN_ALIAS_LEN or key in seen:
            return
        seen.add(key)
        out.append(v)

    base = clean_text(name)
    _add(base)
    for a in extra:
        _add(a)
    _add(strip_legal_suffix(base))
    for v in list(out):
        if "&" in v:
            _add(_AMP_RE.sub(" and ", v))
        elif _AND_RE.search(v):
            _add(_AND_RE.sub(" & ", v))
    return tuple(out)


def _slug_text(href: str) -> str:
    try:
        path = urlsplit(href).path
    except ValueError:
        return ""
    segments = [s for s in path.split("/") if s]
    if not segments:
        return ""
    return re.sub(r"[-_+]+", " ", segments[-1])


@dataclass(frozen=True)
class BrandHit:
    kind: str
    alias: str
    text: str
    href: str | None = None


class BrandMatcher:
    def __init__(self, aliases: Iterable[str], *, fuzzy_min_ratio: float = FUZZY_MIN_RATIO) -> None:
        self.aliases = tuple(aliases)
        self.fuzzy_min_ratio = fuzzy_min_ratio
        self._folded = [(a, fold(a)) for a in self.aliases if fold(a)]
        self._exact = {f for _, f in self._folded}
        self._patterns = [(a, re.compile(rf"(?<!\w){re.escape(f)}(?!\w)")) for a, f in self._folded]

    def match(self, text: str) -> str | None:
        """The first alias occurring as a whole word in text, else None."""
        folded = fold(text)
        if not folded:
            return None
        for alias, pat in self._patterns:
            if pat.search(folded):
                return alias
        return None

    def is_exact(self, text: str) -> bool:
        return fold(text) in self._exact or fold(strip_legal_suffix(text)) in self._exact

    def scan(self, page: ParsedPage) -> list[BrandHit]:
        """Exact hits from anchors, link slugs and text blocks; fuzzy hits only when there are none."""
        hits: list[BrandHit] = []
        for link in page.links:
            alias = self.match(link.text)
            if alias:
                hits.append(BrandHit(HIT_LINK, alias, link.text, link.href))
                continue
            slug = _slug_text(link.href)
            alias = self.match(slug) if slug else None
            if alias:
                hits.append(BrandHit(HIT_SLUG, alias, slug, link.href))

        for block in page.text_blocks:
            alias = self.match(block)
            if alias:
                kind = HIT_LISTING if self.is_exact(block) else HIT_TEXT
                hits.append(BrandHit(kind, alias, block))

        return hits or self.fuzzy(page)

    def fuzzy(self, page: ParsedPage) -> list[BrandHit]:
        hits: list[BrandHit] = []
        seen: set[str] = set()
        for block in page.text_blocks:
            folded = fold(block)
            if len(folded) < MIN_ALIAS_LEN or len(folded) > FUZZY_MAX_BLOCK_LEN or folded in seen:
                continue
            seen.add(folded)
            for alias, fa in self._folded:
                if SequenceMatcher(None, fa, folded).ratio() >= self.fuzzy_min_ratio:
                    hits.append(BrandHit(HIT_FUZZY, alias, block))
                    break
            if len(hits) >= FUZZY_HITS_CAP:
                break
        return hits


__all__ = [
    "BrandHit",
    "BrandMatcher",
    "HIT_FUZZY",
    "HIT_LINK",
    "HIT_LISTING",
    "HIT_SLUG",
    "HIT_TEXT",
    "brand_aliases",
    "fold",
    "strip_legal_suffix",
]
