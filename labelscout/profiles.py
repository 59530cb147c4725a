# labelscout/profiles.py
"""
Profiles: one crawl/score core, specialized per discovery task.

  labels         companies listed on certification-label sites
  products       products listed on company domains (platform-aware seeding)
  manufacturers  labels confirmed for known brands via the labels' directories

A profile bundles the rule lists, seeding hints, detail-page patterns, score
weights and a few switches (sitemap and platform seeding, robots.txt, label
confirmation). Everything else in the pipeline is profile-agnostic.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ConfigError
from .extract.rules import RuleSet, default_rules
from .extract.structured_data import ORG_TYPES, PRODUCT_TYPES
from .models import Target
from .scoring.aggregate import DEFAULT_DAMPENING
from .scoring.signals import DEFAULT_DETAIL_PATHS, ScoreWeights


@dataclass(frozen=True)
class Profile:
    name: str
    rules: RuleSet
    target_from_row: Callable[[dict[str, Any]], Target | None]
    default_targets_file: str
    detail_paths: tuple[str, ...] = DEFAULT_DETAIL_PATHS
    ld_types: frozenset[str] = ORG_TYPES
    max_tokens: int = 5
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    dampening: float = DEFAULT_DAMPENING
    use_sitemap: bool = False
    respect_robots: bool = False
    platform_seeding: bool = False
    # targets are brands checked against label directories instead of crawled
    confirms_labels: bool = False
    # listing pages scanned per label directory (capped by max_pages)
    directory_pages: int = 3

    @property
    def output_name(self) -> str:
        return f"{self.name}-entities"


def labels_profile() -> Profile:
    return Profile(
        name="labels",
        rules=default_rules(),
        target_from_row=Target.from_label_row,
        default_targets_file="labels.json",
    )


PRODUCT_DIRECTORY_HINTS = ("/products", "/shop", "/collections", "/catalog")
PRODUCT_DIRECTORY_WORDS = ("products", "shop", "collections", "catalog", "all products", "shop all")
PRODUCT_DETAIL_PATHS = ("/product/", "/products/", "/p/", "/t/", "/dp/")


def products_profile() -> Profile:
    base = default_rules()
    return Profile(
        name="products",
        rules=base.with_overrides(
            directory_hints=PRODUCT_DIRECTORY_HINTS,
            directory_words=PRODUCT_DIRECTORY_WORDS,
            # product listings legitimately say "product"
            product_verb_tokens=base.product_verb_tokens - {"product", "products"},
        ),
        target_from_row=Target.from_company_row,
        default_targets_file="companies.json",
        detail_paths=PRODUCT_DETAIL_PATHS,
        ld_types=PRODUCT_TYPES,
        max_tokens=8,
        use_sitemap=True,
        respect_robots=True,
        platform_seeding=True,
    )


def manufacturers_profile() -> Profile:
    return Profile(
        name="manufacturers",
        rules=default_rules(),
        target_from_row=Target.from_brand_row,
        default_targets_file="brands.json",
        # confirmation scores are never dampened
        dampening=1.0,
        confirms_labels=True,
    )


PROFILES: dict[str, Callable[[], Profile]] = {
    "labels": labels_profile,
    "products": products_profile,
    "manufacturers": manufacturers_profile,
}


def get_profile(name: str) -> Profile:
    try:
        factory = PROFILES[name.strip().lower()]
    except KeyError as err:
        raise ConfigError(f"unknown profile {name!r}; expected one of {sorted(PROFILES)}") from err
    return factory()


__all__ = [
    "PROFILES",
    "Profile",
    "get_profile",
    "labels_profile",
    "manufacturers_profile",
    "products_profile",
]
