# tests/test_brands.py
from __future__ import annotations

import pytest

from labelscout.extract.brands import (
    HIT_FUZZY,
    HIT_LINK,
    HIT_LISTING,
    HIT_SLUG,
    HIT_TEXT,
    BrandMatcher,
    brand_aliases,
    fold,
    strip_legal_suffix,
)
from labelscout.extract.page import parse_page

URL = "https://label.example/members"


class TestAliases:
    def test_fold_drops_accents_and_case(self):
        assert fold("  Nestlé S.A. ") == "nestle s.a."
        assert fold("L’Oréal") == "l'oreal"

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Patagonia, Inc.", "Patagonia"),
            ("Acme Corporation", "Acme"),
            ("Bravo Foods GmbH", "Bravo Foods"),
            ("Company Store", "Company Store"),
        ],
    )
    def test_strip_legal_suffix(self, name, expected):
        assert strip_legal_suffix(name) == expected

    def test_ampersand_variants_and_extras(self):
        aliases = brand_aliases("Ben & Jerry's Inc.", ["B&J"])
        assert aliases[0] == "Ben & Jerry's Inc."
        assert "B&J" in aliases
        assert "Ben & Jerry's" in aliases
        assert "Ben and Jerry's" in aliases

    def test_duplicates_and_short_aliases_dropped(self):
        assert brand_aliases("Patagonia", ["PATAGONIA", "P"]) == ("Patagonia",)


class TestMatch:
    def test_whole_words_only(self):
        m = BrandMatcher(["Apple"])
        assert m.match("Pineapple Express") is None
        assert m.match("Apple Inc. - Cupertino") == "Apple"

    def test_accent_insensitive(self):
        assert BrandMatcher(["Nestlé"]).match("NESTLE WATERS") == "Nestlé"

    def test_is_exact_ignores_legal_suffix(self):
        m = BrandMatcher(["Patagonia"])
        assert m.is_exact("PATAGONIA, Inc.")
        assert not m.is_exact("Patagonia Provisions")


class TestScan:
    def test_listing_link_and_text_hits(self):
        html = """
        <ul>
          <li><a href="https://www.patagonia.com/">Patagonia</a></li>
          <li><a href="/members/acme-outdoor">View member</a></li>
        </ul>
        <p>Patagonia joined the programme in 2014.</p>
        """
        hits = BrandMatcher(brand_aliases("Patagonia, Inc.")).scan(parse_page(html, URL))
        kinds = {h.kind for h in hits}
        assert kinds == {HIT_LINK, HIT_LISTING, HIT_TEXT}
        (link,) = [h for h in hits if h.kind == HIT_LINK]
        assert link.href == "https://www.patagonia.com/"
        assert link.alias == "Patagonia"

    def test_slug_hit(self):
        html = '<a href="https://label.example/members/acme-outdoor">View profile</a>'
        hits = BrandMatcher(brand_aliases("Acme Outdoor")).scan(parse_page(html, URL))
        kinds = {h.kind for h in hits}
        assert HIT_SLUG in kinds
        assert hits[0].href == "https://label.example/members/acme-outdoor"

    def test_fuzzy_only_when_nothing_exact(self):
        page = parse_page("<ul><li>Nordic Milstone</li><li>Nordic Foods</li></ul>", URL)
        hits = BrandMatcher(["Nordic Millstone"]).scan(page)
        assert [(h.kind, h.text) for h in hits] == [(HIT_FUZZY, "Nordic Milstone")]

    def test_nothing(self):
        page = parse_page("<ul><li>Pineapple Co</li></ul>", URL)
        assert BrandMatcher(["Apple"]).scan(page) == []
