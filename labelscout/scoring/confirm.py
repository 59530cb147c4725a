# labelscout/scoring/confirm.py
"""
Scoring for brand-on-label-directory matches (manufacturers profile).

One page's BrandHits become SignalEvents for the brand, folded with the same
fold_events() the discovery scorer uses, so confirmations go through the
same Aggregator and ThresholdGate and leave the same evidence trail.

Default deltas:

    base           +1   some alias (or a near match) is on the page
    alias_text     +3   an alias occurs as a whole word
    alias_listing  +6   a whole text block is exactly an alias
    ext_link       +3   an anchor naming the brand links off the label's site
    detail_page    +3   a link on the label's site points at the brand's profile
    known_entity   +4   the label was confirmed for this brand by an earlier run
    fuzzy_match    +1   only near matches

With the default gate (7 / hard floor 10) a single exact listing, or any
alias backed by a profile or brand-site link, is enough; a passing mention
needs a second page.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace

from ..extract.brands import HIT_FUZZY, HIT_LINK, HIT_LISTING, HIT_SLUG, HIT_TEXT, BrandHit
from ..extract.page import ParsedPage
from ..models import PageScore, SignalEvent
from ..utils import url_host, url_path
from .signals import DEFAULT_DETAIL_PATHS, SNIPPETS_PER_PAGE, fold_events, is_detail_path


@dataclass(frozen=True)
class MatchWeights:
    base: float = 1
    alias_text: float = 3
    alias_listing: float = 6
    ext_link: float = 3
    detail_page: float = 3
    known_entity: float = 4
    fuzzy_match: float = 1


def _is_profile_link(href: str, label_host: str, detail_pattern: str | None) -> bool:
    if url_host(href) != label_host:
        return False
    path = url_path(href)
    if detail_pattern:
        return detail_pattern in path
    return is_detail_path(path, DEFAULT_DETAIL_PATHS)


def match_events(
    brand: str,
    page: ParsedPage,
    hits: Iterable[BrandHit],
    *,
    detail_pattern: str | None = None,
    known: bool = False,
    weights: MatchWeights | None = None,
) -> list[SignalEvent]:
    """Score deltas for brand on one label directory page; empty when nothing matched."""
    w = weights or MatchWeights()
    hits = list(hits)
    if not hits:
        return []

    url = page.url
    label_host = page.host
    kinds = {h.kind for h in hits}
    out = [SignalEvent(name=brand, delta=w.base, reason="base", url=url)]

    if kinds & {HIT_LINK, HIT_LISTING, HIT_TEXT}:
        out.append(SignalEvent(name=brand, delta=w.alias_text, reason="alias_text", url=url))
    if HIT_LISTING in kinds:
        out.append(SignalEvent(name=brand, delta=w.alias_listing, reason="alias_listing", url=url))

    ext = next(
        (h.href for h in hits if h.kind == HIT_LINK and h.href and url_host(h.href) != label_host),
        None,
    )
    if ext:
        out.append(SignalEvent(name=brand, delta=w.ext_link, reason="ext_link", url=url, link=ext))
    linked = [h.href for h in hits if h.kind in (HIT_LINK, HIT_SLUG) and h.href]
    profile = next((u for u in linked if _is_profile_link(u, label_host, detail_pattern)), None)
    if profile:
        out.append(SignalEvent(name=brand, delta=w.detail_page, reason="detail_page", url=url, link=profile))

    if known:
        out.append(SignalEvent(name=brand, delta=w.known_entity, reason="known_entity", url=url))
    if kinds == {HIT_FUZZY}:
        out.append(SignalEvent(name=brand, delta=w.fuzzy_match, reason="fuzzy_match", url=url))
    return out


def score_brand_page(
    brand: str,
    page: ParsedPage,
    hits: Iterable[BrandHit],
    *,
    detail_pattern: str | None = None,
    known: bool = False,
    weights: MatchWeights | None = None,
) -> PageScore | None:
    """match_events() folded into one PageScore, with the matched texts as snippets."""
    hits = list(hits)
    events = match_events(brand, page, hits, detail_pattern=detail_pattern, known=known, weights=weights)
    if not events:
        return None
    snippets: list[str] = []
    for h in hits:
        text = h.text[:160]
        if text not in snippets:
            snippets.append(text)
        if len(snippets) >= SNIPPETS_PER_PAGE:
            break
    return replace(fold_events(events)[brand], snippets=tuple(snippets))


__all__ = ["MatchWeights", "match_events", "score_brand_page"]
