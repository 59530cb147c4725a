# labelscout/extract/rules.py
"""
Rule data for the plausibility filter, candidate extractor and scorer.

Rule lists live next to this module in ``data/``:

  - ``*.txt``: one entry per line; blank lines and lines starting with '#'
    are ignored. Entries are lower-cased unless the list is case-sensitive
    (symbol allow-list, manual known entities).
  - ``section_filters.yaml``: CSS selectors stripped before extraction.
  - ``site_configs.yaml``: per-host precision selectors.
  - ``label_directories.yaml``: certification directories checked when
    confirming brands.

Nothing here is ambient state: callers build a RuleSet (usually via
default_rules()) and pass it into the components that need it, so tests can
hand in synthetic rule sets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import quote_plus

import yaml

from ..exceptions import ConfigError
from ..models import Target

log = logging.getLogger(__name__)

DATA_DIR = Path(__file__).with_name("data")

# Lists whose entries keep their original casing.
_CASE_SENSITIVE = frozenset({"symbol_brand_allow", "manual_known_entities"})


@lru_cache(maxsize=None)
def load_word_list(name: str) -> tuple[str, ...]:
    """
    Load data/<name>.txt as an ordered, de-duplicated tuple.

    Missing files yield an empty tuple (a deployment may ship a subset).
    """
    path = DATA_DIR / f"{name}.txt"
    if not path.exists():
        log.warning("rule list %s not found at %s", name, path)
        return ()

    keep_case = name in _CASE_SENSITIVE
    seen: set[str] = set()
    out: list[str] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            raw = line.strip()
            if not raw or raw.startswith("#"):
                continue
            entry = raw if keep_case else raw.lower()
            if entry in seen:
                continue
            seen.add(entry)
            out.append(entry)
    return tuple(out)


# ---------------------------------------------------------------------------
# Section filters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SectionFilters:
    global_remove: tuple[str, ...] = ()
    # (path prefix, selectors) pairs
    path_specific: tuple[tuple[str, tuple[str, ...]], ...] = ()

    def selectors_for(self, path: str) -> tuple[str, ...]:
        p = (path or "/").lower()
        extra: list[str] = []
        for prefix, selectors in self.path_specific:
            if p.startswith(prefix):
                extra.extend(selectors)
        return self.global_remove + tuple(extra)


def _read_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as err:
        raise ConfigError(f"cannot read {path}: {err}") from err
    except yaml.YAMLError as err:
        raise ConfigError(f"invalid YAML in {path}: {err}") from err


def load_section_filters(path: Path | None = None) -> SectionFilters:
    data = _read_yaml(path or DATA_DIR / "section_filters.yaml")
    global_remove = tuple(str(s) for s in data.get("global_remove") or [])
    specific: list[tuple[str, tuple[str, ...]]] = []
    for item in data.get("path_specific") or []:
        prefix = str(item.get("path_prefix") or "").strip().lower()
        if not prefix:
            continue
        specific.append((prefix, tuple(str(s) for s in item.get("remove") or [])))
    return SectionFilters(global_remove=global_remove, path_specific=tuple(specific))


# ---------------------------------------------------------------------------
# Per-site precision selectors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SelectorRule:
    selector: str
    attr: str | None = None
    split_on: str | None = None


@dataclass(frozen=True)
class SiteConfig:
    host: str
    rules: tuple[SelectorRule, ...]


def load_site_configs(path: Path | None = None) -> dict[str, SiteConfig]:
    """
    Parse site_configs.yaml into {host: SiteConfig}.

    Hosts are lower-cased; rules without a selector are skipped.
    """
    data = _read_yaml(path or DATA_DIR / "site_configs.yaml")
    if not isinstance(data, dict):
        raise ConfigError("site configs must be a mapping of host -> {rules: [...]}")

    out: dict[str, SiteConfig] = {}
    for host, body in data.items():
        rules: list[SelectorRule] = []
        for r in (body or {}).get("rules") or []:
            selector = str(r.get("selector") or "").strip()
            if not selector:
                continue
            rules.append(
                SelectorRule(
                    selector=selector,
                    attr=r.get("attr") or None,
                    split_on=r.get("split_on") or None,
                )
            )
        if rules:
            key = str(host).strip().lower()
            out[key] = SiteConfig(host=key, rules=tuple(rules))
    return out


def site_config_for(configs: dict[str, SiteConfig], host: str) -> SiteConfig | None:
    """Look up host, tolerating a leading 'www.' on either side."""
    h = (host or "").lower()
    if h in configs:
        return configs[h]
    alt = h[4:] if h.startswith("www.") else f"www.{h}"
    return configs.get(alt)


# ---------------------------------------------------------------------------
# Label directories (manufacturers profile)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LabelDirectory:
    """Where one certification label lists the companies it certifies."""

    id: str
    name: str
    pages: tuple[str, ...]
    # pagination template, "{n}" is the page number (2, 3, ...)
    page_url: str | None = None
    # per-alias search, "{query}" is the url-encoded alias
    search_url: str | None = None
    # path fragment of member profile pages on the label's site
    detail_pattern: str | None = None

    def listing_urls(self, max_pages: int) -> list[str]:
        urls = list(self.pages)
        if self.page_url:
            urls.extend(self.page_url.format(n=n) for n in range(2, max_pages + 1))
        return urls

    def search_urls(self, aliases: Any) -> list[str]:
        if not self.search_url:
            return []
        return [self.search_url.format(query=quote_plus(a)) for a in aliases]

    def as_target(self) -> Target:
        """The label as the evidence target its confirmations are filed under."""
        source = self.pages[0] if self.pages else (self.search_url or "").format(query="")
        return Target(id=self.id, name=self.name, source_url=source)


def load_label_directories(path: Path | None = None) -> tuple[LabelDirectory, ...]:
    """
    Parse label_directories.yaml into LabelDirectory entries (file order).

    Entries without any listing page or search URL are skipped.
    """
    data = _read_yaml(path or DATA_DIR / "label_directories.yaml")
    if not isinstance(data, dict):
        raise ConfigError("label directories must be a mapping of label id -> {name, pages, ...}")

    out: list[LabelDirectory] = []
    for label_id, body in data.items():
        body = body or {}
        pages = tuple(str(p).strip() for p in body.get("pages") or [] if p and str(p).strip())
        search_url = str(body.get("search_url") or "").strip() or None
        if not pages and not search_url:
            log.warning("label directory %r has no pages or search_url; skipping", label_id)
            continue
        lid = str(label_id).strip().lower()
        out.append(
            LabelDirectory(
                id=lid,
                name=str(body.get("name") or lid).strip(),
                pages=pages,
                page_url=str(body.get("page_url") or "").strip() or None,
                search_url=search_url,
                detail_pattern=str(body.get("detail_pattern") or "").strip().lower() or None,
            )
        )
    return tuple(out)


# ---------------------------------------------------------------------------
# RuleSet
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleSet:
    """Read-only bundle of every rule list one profile needs."""

    noise_phrases: frozenset[str] = frozenset()
    noise_prefixes: tuple[str, ...] = ()
    noise_topics: tuple[str, ...] = ()
    stop_words: frozenset[str] = frozenset()
    generic_nouns: frozenset[str] = frozenset()
    bad_plurals: frozenset[str] = frozenset()
    language_words: frozenset[str] = frozenset()
    negative_terms: frozenset[str] = frozenset()
    product_verb_tokens: frozenset[str] = frozenset()
    menu_prefixes: frozenset[str] = frozenset()
    symbol_allow: frozenset[str] = frozenset()
    ignore_paths: tuple[str, ...] = ()
    directory_hints: tuple[str, ...] = ()
    directory_words: tuple[str, ...] = ()
    section_filters: SectionFilters = field(default_factory=SectionFilters)
    # lower-cased names of the certification labels themselves
    label_names: frozenset[str] = frozenset()

    def with_label_names(self, names: Any) -> RuleSet:
        lowered = frozenset(str(n).strip().lower() for n in names if n and str(n).strip())
        return replace(self, label_names=self.label_names | lowered)

    def with_overrides(self, **changes: Any) -> RuleSet:
        return replace(self, **changes)


@lru_cache(maxsize=1)
def default_rules() -> RuleSet:
    """RuleSet built from the bundled data files."""
    return RuleSet(
        noise_phrases=frozenset(load_word_list("noise_phrases")),
        noise_prefixes=load_word_list("noise_prefixes"),
        noise_topics=load_word_list("noise_topics"),
        stop_words=frozenset(load_word_list("stop_words")),
        generic_nouns=frozenset(load_word_list("generic_nouns")),
        bad_plurals=frozenset(load_word_list("bad_plurals")),
        language_words=frozenset(load_word_list("language_words")),
        negative_terms=frozenset(load_word_list("negative_terms")),
        product_verb_tokens=frozenset(load_word_list("product_verb_tokens")),
        menu_prefixes=frozenset(load_word_list("menu_prefixes")),
        symbol_allow=frozenset(load_word_list("symbol_brand_allow")),
        ignore_paths=load_word_list("ignore_paths"),
        directory_hints=load_word_list("directory_hints"),
        directory_words=load_word_list("directory_words"),
        section_filters=load_section_filters(),
    )


def manual_known_entities() -> tuple[str, ...]:
    return load_word_list("manual_known_entities")


__all__ = [
    "DATA_DIR",
    "LabelDirectory",
    "RuleSet",
    "SectionFilters",
    "SelectorRule",
    "SiteConfig",
    "default_rules",
    "load_label_directories",
    "load_section_filters",
    "load_site_configs",
    "load_word_list",
    "manual_known_entities",
    "site_config_for",
]
