# labelscout/extract/__init__.py
from __future__ import annotations

from .brands import BrandMatcher, brand_aliases
from .candidates import CandidateExtractor, RawCandidate
from .page import ParsedPage, parse_page
from .plausibility import PlausibilityFilter, is_plausible_row, looks_like_company
from .platform import detect_platform, discover_shopify_product_urls
from .rules import LabelDirectory, RuleSet, default_rules, load_label_directories, load_site_configs

"""
Extraction slice: HTML -> ParsedPage -> plausible candidate names.

Public API:
- parse_page(html, url, filters) -> ParsedPage
- CandidateExtractor(plausibility, site_configs=..., known=...).extract(page)
- PlausibilityFilter(rules).looks_like_entity(text) / looks_like_company(text)
- default_rules() / load_site_configs() / load_label_directories() for the bundled rule data
- BrandMatcher(brand_aliases(name)).scan(page) for brand confirmation
- detect_platform(html) and Shopify catalog discovery for product crawls
"""

__all__ = [
    "BrandMatcher",
    "CandidateExtractor",
    "LabelDirectory",
    "ParsedPage",
    "PlausibilityFilter",
    "RawCandidate",
    "RuleSet",
    "brand_aliases",
    "default_rules",
    "detect_platform",
    "discover_shopify_product_urls",
    "is_plausible_row",
    "load_label_directories",
    "load_site_configs",
    "looks_like_company",
    "parse_page",
]
