# labelscout/scoring/signals.py
"""
Per-page scoring.

Scorer.events() turns one page's candidates into a flat list of immutable
SignalEvents (one per delta, each tagged with a reason); fold_events() reduces
them into one PageScore per candidate. Keeping the two apart lets tests check
the scoring rules without a crawl loop.

Default deltas:

    base               +1   every candidate
    directory_url      +1   page URL looks like a listing
    directory_heading  +1   page headings mention members/partners/brands/...
    ext_link           +3   anchor text links off-host
    detail_page        +2   anchor text links to an internal detail page
    suffix_hit         +2   legal suffix (Inc, GmbH, ...)
    schema_org         +2   came from JSON-LD
    known_entity       +4   confirmed by an earlier run
    negative_term      -5   exact directory-chrome term
    noise_phrase       -3   per CTA/boilerplate phrase contained
    noise_topic        -2   per blog/topic word contained
    generic_noun       -2   contains a generic noun
    product_or_verb    -2   contains a product/verb token
    phoneish           -4   phone-number shaped
    menu_prefix        -2   starts with a menu word ("Shop ...")
    symbol_leading     -3   starts with &, + or - and is not allow-listed
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from ..extract.candidates import SOURCE_STRUCTURED, RawCandidate
from ..extract.page import ParsedPage
from ..extract.plausibility import has_legal_suffix, is_phoneish, term_pattern
from ..extract.rules import RuleSet
from ..models import EvidenceFlags, PageScore, SignalEvent
from ..utils import url_host, url_path

if TYPE_CHECKING:
    from ..known import KnownEntitySet

SNIPPETS_PER_PAGE = 3
_TOKEN_RE = re.compile(r"[\w']+")
_SYMBOL_LEADING_RE = re.compile(r"^[&+\-]")

DEFAULT_DETAIL_PATHS: tuple[str, ...] = (
    "/member/",
    "/members/",
    "/company/",
    "/companies/",
    "/brand/",
    "/brands/",
    "/partner/",
    "/partners/",
    "/licensee/",
    "/licensees/",
    "/directory/",
    "/supplier/",
    "/suppliers/",
    "/certificate/",
)


@dataclass(frozen=True)
class ScoreWeights:
    base: float = 1
    directory_url: float = 1
    directory_heading: float = 1
    ext_link: float = 3
    detail_page: float = 2
    suffix_hit: float = 2
    schema_org: float = 2
    known_entity: float = 4
    negative_term: float = -5
    noise_phrase: float = -3
    noise_topic: float = -2
    generic_noun: float = -2
    product_or_verb: float = -2
    phoneish: float = -4
    menu_prefix: float = -2
    symbol_leading: float = -3


# reason tag -> evidence flag it sets
FLAG_REASONS: dict[str, str] = {
    "ext_link": "external_link",
    "detail_page": "detail_page",
    "suffix_hit": "structural_suffix",
    "schema_org": "structured_data",
    "known_entity": "known_historical",
}


def is_detail_path(path: str, patterns: Iterable[str]) -> bool:
    """True when path continues past one of the detail prefixes ("/brand/acme")."""
    p = path.lower()
    for pat in patterns:
        idx = p.find(pat)
        if idx >= 0 and p[idx + len(pat) :].strip("/"):
            return True
    return False


def fold_events(events: Iterable[SignalEvent]) -> dict[str, PageScore]:
    """Reduce one page's events into a PageScore per candidate (insertion order)."""
    grouped: dict[str, list[SignalEvent]] = {}
    for ev in events:
        grouped.setdefault(ev.name, []).append(ev)

    out: dict[str, PageScore] = {}
    for name, evs in grouped.items():
        flag_kwargs = {FLAG_REASONS[e.reason]: True for e in evs if e.reason in FLAG_REASONS}
        urls = {e.url for e in evs} | {e.link for e in evs if e.link}
        out[name] = PageScore(
            name=name,
            url=evs[0].url,
            score=sum(e.delta for e in evs),
            reasons=tuple(e.reason for e in evs),
            flags=EvidenceFlags(**flag_kwargs),
            urls=frozenset(urls),
            snippets=(),
        )
    return out


class Scorer:
    def __init__(
        self,
        rules: RuleSet,
        *,
        known: KnownEntitySet | None = None,
        weights: ScoreWeights | None = None,
        detail_paths: tuple[str, ...] = DEFAULT_DETAIL_PATHS,
    ) -> None:
        self.rules = rules
        self.known = known
        self.weights = weights or ScoreWeights()
        self.detail_paths = detail_paths
        self._noise_phrases = term_pattern(rules.noise_phrases)
        self._noise_topics = term_pattern(rules.noise_topics)
        self._directory_words = term_pattern(rules.directory_words)
        self._directory_url_words = tuple(w.replace(" ", "-") for w in rules.directory_words)

    # ---- page-level signals ---------------------------------------------------

    def is_directory_url(self, url: str) -> bool:
        path = url_path(url)
        if any(path.startswith(h) for h in self.rules.directory_hints):
            return True
        return any(w in path for w in self._directory_url_words)

    def has_directory_heading(self, page: ParsedPage) -> bool:
        if self._directory_words is None:
            return False
        return any(self._directory_words.search(h) for h in page.headings)

    # ---- candidate-level signals ----------------------------------------------

    def _text_events(self, name: str, url: str) -> list[SignalEvent]:
        w = self.weights
        r = self.rules
        lower = name.lower()
        tokens = _TOKEN_RE.findall(lower)
        out: list[SignalEvent] = []

        def ev(reason: str, delta: float) -> None:
            out.append(SignalEvent(name=name, delta=delta, reason=reason, url=url))

        if has_legal_suffix(name):
            ev("suffix_hit", w.suffix_hit)
        if self.known is not None and self.known.contains(name):
            ev("known_entity", w.known_entity)
        if lower in r.negative_terms:
            ev("negative_term", w.negative_term)
        if self._noise_phrases is not None:
            for _phrase in {m.lower() for m in self._noise_phrases.findall(lower)}:
                ev("noise_phrase", w.noise_phrase)
        if self._noise_topics is not None:
            for _topic in {m.lower() for m in self._noise_topics.findall(lower)}:
                ev("noise_topic", w.noise_topic)
        if any(t in r.generic_nouns for t in tokens):
            ev("generic_noun", w.generic_noun)
        if any(t in r.product_verb_tokens for t in tokens):
            ev("product_or_verb", w.product_or_verb)
        if is_phoneish(name):
            ev("phoneish", w.phoneish)
        if len(tokens) > 1 and tokens[0] in r.menu_prefixes:
            ev("menu_prefix", w.menu_prefix)
        if _SYMBOL_LEADING_RE.match(name) and name not in r.symbol_allow:
            ev("symbol_leading", w.symbol_leading)
        return out

    def _link_events(self, name: str, page: ParsedPage) -> list[SignalEvent]:
        w = self.weights
        page_host = page.host
        ext: str | None = None
        detail: str | None = None
        for href in page.links_for_text(name):
            host = url_host(href)
            if host and host != page_host:
                ext = ext or href
            elif is_detail_path(url_path(href), self.detail_paths):
                detail = detail or href
        out: list[SignalEvent] = []
        if ext:
            out.append(SignalEvent(name=name, delta=w.ext_link, reason="ext_link", url=page.url, link=ext))
        if detail:
            out.append(
                SignalEvent(name=name, delta=w.detail_page, reason="detail_page", url=page.url, link=detail)
            )
        return out

    def events(self, page: ParsedPage, candidates: Iterable[RawCandidate]) -> list[SignalEvent]:
        """Every score delta for every candidate on page, in a stable order."""
        w = self.weights
        url = page.url
        dir_url = self.is_directory_url(url)
        dir_heading = self.has_directory_heading(page)

        out: list[SignalEvent] = []
        for cand in candidates:
            name = cand.name
            out.append(SignalEvent(name=name, delta=w.base, reason="base", url=url))
            if dir_url:
                out.append(SignalEvent(name=name, delta=w.directory_url, reason="directory_url", url=url))
            if dir_heading:
                out.append(
                    SignalEvent(name=name, delta=w.directory_heading, reason="directory_heading", url=url)
                )
            out.extend(self._link_events(name, page))
            if cand.source == SOURCE_STRUCTURED:
                out.append(SignalEvent(name=name, delta=w.schema_org, reason="schema_org", url=url))
            out.extend(self._text_events(name, url))
        return out

    def score_page(self, page: ParsedPage, candidates: Iterable[RawCandidate]) -> list[PageScore]:
        """events() folded per candidate, with up to SNIPPETS_PER_PAGE snippets each."""
        folded = fold_events(self.events(page, candidates))
        return [
            replace(ps, snippets=tuple(page.snippets_for(ps.name, SNIPPETS_PER_PAGE)))
            for ps in folded.values()
        ]


__all__ = [
    "DEFAULT_DETAIL_PATHS",
    "FLAG_REASONS",
    "ScoreWeights",
    "Scorer",
    "fold_events",
    "is_detail_path",
]
