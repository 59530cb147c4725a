# labelscout/extract/plausibility.py
"""
"Does this string look like an entity name?"

A pure predicate over cleaned text. It is deliberately conservative: missing
a real company is cheaper than persisting "Learn more" as one, and known
entities get a second chance through historical injection anyway.

Rejections are checked in a fixed order and the first hit wins, so
rejection_reason() doubles as a debugging aid:

    >>> PlausibilityFilter(default_rules()).rejection_reason("learn more")
    'stop_word'
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

from ..utils import clean_text
from .rules import RuleSet, default_rules

# ---------------------------------------------------------------------------
# Shape patterns
# ---------------------------------------------------------------------------

PHONEISH_RE = re.compile(r"^\+?\s*\d[\d\s().\-+]*$")
URL_RE = re.compile(r"https?://", re.IGNORECASE)
AS_MENTIONED_RE = re.compile(r"^(as mentioned|as described|as shown|as outlined)\b", re.IGNORECASE)
METRIC_RE = re.compile(
    r"\b(tonnes?|tons?|kg|kilograms?|g|grams?|tco2e?|tco2|co₂|co2)\b", re.IGNORECASE
)
COPYRIGHT_RE = re.compile(r"^(©|copyright)", re.IGNORECASE)
MARKUP_RE = re.compile(r"^[{}<>]")
HAS_LETTER_RE = re.compile(r"[a-z]", re.IGNORECASE)
DIGIT_RE = re.compile(r"\d")
SYMBOL_LEADING_RE = re.compile(r"^[&+\-]")

TITLE_LIKE_RE = re.compile(r"^[A-Z][A-Za-z0-9&\-.'() ]*[A-Za-z0-9)]$")
ALL_CAPS_SHORT_RE = re.compile(r"^[A-Z0-9&\-.]{2,30}$")
LEGAL_SUFFIX_RE = re.compile(
    r"\b(Inc|Incorporated|LLC|Ltd|Limited|AG|GmbH|S\.?A\.?|Co\.?|Company|Corp|Corporation"
    r"|PLC|LLP|NV|BV|OY|Spa|S\.p\.A\.?|AB|AS|SRL|SAS|SA|KK)\b\.?",
    re.IGNORECASE,
)

MIN_LEN = 2
MAX_LEN = 80
ROW_MAX_LEN = 120


def has_legal_suffix(text: str) -> bool:
    return bool(LEGAL_SUFFIX_RE.search(text))


def is_phoneish(text: str) -> bool:
    return bool(PHONEISH_RE.match(text))


def term_pattern(terms: Iterable[str]) -> re.Pattern[str] | None:
    """
    One regex matching any of terms as a whole word/phrase.

    Longer terms are tried first so "press release" wins over "press".
    Returns None for an empty list.
    """
    cleaned = sorted({t for t in terms if t}, key=len, reverse=True)
    if not cleaned:
        return None
    alt = "|".join(re.escape(t) for t in cleaned)
    return re.compile(rf"(?<!\w)(?:{alt})(?!\w)", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class PlausibilityFilter:
    """
    Entity-shape predicate bound to one RuleSet.

    Label names (rules.label_names) are rejected outright so a certification
    label can never show up as one of its own companies.
    """

    def __init__(self, rules: RuleSet, *, max_tokens: int = 5) -> None:
        self.rules = rules
        self.max_tokens = max_tokens
        self._topics = term_pattern(rules.noise_topics)

    def rejection_reason(self, text: str | None) -> str | None:
        """Tag of the first rule that rejects text, or None if it passes."""
        t = clean_text(text)
        if not t:
            return "empty"
        if len(t) < MIN_LEN or len(t) > MAX_LEN:
            return "length"

        r = self.rules
        lower = t.lower()

        if lower in r.label_names:
            return "label_name"
        if lower in r.stop_words:
            return "stop_word"
        if lower in r.noise_phrases:
            return "noise_phrase"
        if any(lower.startswith(p) for p in r.noise_prefixes):
            return "noise_prefix"
        if self._topics is not None and self._topics.search(lower):
            return "noise_topic"
        if lower in r.generic_nouns:
            return "generic_noun"
        if lower in r.bad_plurals:
            return "bad_plural"
        if lower in r.language_words:
            return "language_word"

        if PHONEISH_RE.match(t):
            return "phoneish"
        if "@" in t:
            return "email"
        if URL_RE.search(t):
            return "url"
        if AS_MENTIONED_RE.match(lower):
            return "as_mentioned"
        if DIGIT_RE.search(t) and METRIC_RE.search(lower):
            return "metric"
        if COPYRIGHT_RE.match(lower):
            return "copyright"
        if MARKUP_RE.match(t):
            return "markup"
        if not HAS_LETTER_RE.search(t):
            return "no_letter"
        # "&pizza", "& Other Stories": curated, exempt from the shape rules
        if t in r.symbol_allow:
            return None

        if len(t.split()) > self.max_tokens:
            return "too_many_tokens"
        if t == lower:
            return "all_lowercase"
        if SYMBOL_LEADING_RE.match(t):
            return "symbol_leading"

        if has_legal_suffix(t) or ALL_CAPS_SHORT_RE.match(t) or TITLE_LIKE_RE.match(t):
            return None
        return "no_shape"

    def looks_like_entity(self, text: str | None) -> bool:
        return self.rejection_reason(text) is None

    __call__ = looks_like_entity


def is_plausible_row(name: str | None) -> bool:
    """
    Looser sanity check for names already persisted by an earlier run.

    Kept rows should survive tweaks to the strict filter, so only length and
    "has a letter" are enforced here.
    """
    canon = clean_text(name)
    if not canon or len(canon) < MIN_LEN or len(canon) > ROW_MAX_LEN:
        return False
    return bool(HAS_LETTER_RE.search(canon))


@lru_cache(maxsize=1)
def _default_filter() -> PlausibilityFilter:
    return PlausibilityFilter(default_rules())


def looks_like_company(text: str | None) -> bool:
    """Convenience predicate using the bundled rule lists."""
    return _default_filter().looks_like_entity(text)


__all__ = [
    "LEGAL_SUFFIX_RE",
    "PlausibilityFilter",
    "has_legal_suffix",
    "is_phoneish",
    "is_plausible_row",
    "looks_like_company",
    "term_pattern",
]
