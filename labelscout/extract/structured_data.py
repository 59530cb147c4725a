# labelscout/extract/structured_data.py
"""
Entity names from embedded JSON-LD.

The walk is iterative with an explicit stack so adversarial nesting cannot blow
the interpreter's recursion limit: nodes deeper than MAX_LD_DEPTH are ignored
and at most MAX_LD_NODES nodes are visited per block.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from ..utils import clean_text

log = logging.getLogger(__name__)

MAX_LD_DEPTH = 32
MAX_LD_NODES = 10_000

ORG_TYPES: frozenset[str] = frozenset({"Organization", "LocalBusiness", "Brand", "Corporation"})
PRODUCT_TYPES: frozenset[str] = frozenset({"Product", "ProductGroup", "IndividualProduct"})

_NAME_KEYS = ("name", "legalName", "alternateName")


def _types_of(node: dict[str, Any]) -> set[str]:
    raw = node.get("@type")
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return set()
    # "schema:Organization" / "https://schema.org/Organization" -> "Organization"
    return {str(t).rsplit("/", 1)[-1].rsplit(":", 1)[-1] for t in raw if isinstance(t, str)}


def _strings(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    return []


def _list_item_name(item: Any) -> str | None:
    if isinstance(item, str):
        return item
    if not isinstance(item, dict):
        return None
    if isinstance(item.get("name"), str):
        return item["name"]
    inner = item.get("item")
    if isinstance(inner, dict) and isinstance(inner.get("name"), str):
        return inner["name"]
    return None


def walk_ld(data: Any, entity_types: frozenset[str] = ORG_TYPES) -> list[str]:
    """Collect entity names from one decoded JSON-LD document."""
    names: list[str] = []
    stack: list[tuple[Any, int]] = [(data, 0)]
    visited = 0

    while stack:
        node, depth = stack.pop()
        visited += 1
        if visited > MAX_LD_NODES:
            log.debug("JSON-LD node budget exhausted")
            break
        if depth > MAX_LD_DEPTH:
            continue

        if isinstance(node, list):
            stack.extend((child, depth + 1) for child in reversed(node))
            continue
        if not isinstance(node, dict):
            continue

        types = _types_of(node)
        if types & entity_types:
            for key in _NAME_KEYS:
                names.extend(_strings(node.get(key)))
        if "ItemList" in types:
            elements = node.get("itemListElement")
            for item in elements if isinstance(elements, list) else []:
                n = _list_item_name(item)
                if n:
                    names.append(n)

        children = [v for v in node.values() if isinstance(v, (dict, list))]
        stack.extend((child, depth + 1) for child in reversed(children))

    return names


def extract_ld_names(blocks: Iterable[str], entity_types: frozenset[str] = ORG_TYPES) -> list[str]:
    """
    Decode each <script type="application/ld+json"> body and walk it.

    A malformed block is skipped on its own; the rest still count.
    Returns cleaned names, first occurrence order, no duplicates.
    """
    seen: set[str] = set()
    out: list[str] = []
    for raw in blocks:
        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            log.debug("skipping malformed JSON-LD block: %s", exc)
            continue
        for name in walk_ld(data, entity_types):
            cleaned = clean_text(name)
            key = cleaned.casefold()
            if cleaned and key not in seen:
                seen.add(key)
                out.append(cleaned)
    return out


__all__ = ["MAX_LD_DEPTH", "MAX_LD_NODES", "ORG_TYPES", "PRODUCT_TYPES", "extract_ld_names", "walk_ld"]
