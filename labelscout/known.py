# labelscout/known.py
"""
Known-entity set: names confirmed by earlier runs plus a manual allow-list.

Built once at startup and read-only afterwards, so every concurrent target can
share it without locking. Two uses during a crawl:

  - scoring: membership earns the known_entity boost
  - injection: members found as whole words in a page's body text
    become candidates even when no selector surfaced them
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from .exceptions import InputError
from .extract.plausibility import PlausibilityFilter, is_plausible_row
from .utils import clean_text

log = logging.getLogger(__name__)

MIN_INJECT_LEN = 3


class KnownEntitySet:
    def __init__(self, names: Iterable[str] = ()) -> None:
        # lower -> canonical casing (first one wins)
        self._canon: dict[str, str] = {}
        self._patterns: dict[str, re.Pattern[str]] = {}
        for n in names:
            self._add(n)

    def _add(self, name: str) -> bool:
        canon = clean_text(name)
        lower = canon.lower()
        if not lower or lower in self._canon:
            return False
        self._canon[lower] = canon
        self._patterns[lower] = re.compile(rf"(?<!\w){re.escape(lower)}(?!\w)", re.IGNORECASE)
        return True

    # ---- construction ---------------------------------------------------------

    @classmethod
    def bootstrap(
        cls,
        previous_rows: Iterable[Mapping[str, Any]],
        manual: Iterable[str],
        plausibility: PlausibilityFilter,
    ) -> KnownEntitySet:
        """
        Seed from the previous run's persisted rows and the manual allow-list.

        Historical names go back through the strict filter, so rows persisted
        under an older, looser heuristic are not propagated. Manual entries
        are trusted and only sanity-checked.
        """
        known = cls()
        from_rows = 0
        for row in previous_rows:
            name = row.get("entityName") if isinstance(row, Mapping) else None
            if not isinstance(name, str) or not plausibility(name):
                continue
            if known._add(name):
                from_rows += 1

        from_manual = 0
        for name in manual:
            if isinstance(name, str) and is_plausible_row(name) and known._add(name):
                from_manual += 1

        log.info(
            "known entities bootstrapped: from previous output=%d, manual=%d, total=%d",
            from_rows,
            from_manual,
            len(known),
        )
        return known

    # ---- queries --------------------------------------------------------------

    def contains(self, name: str) -> bool:
        return clean_text(name).lower() in self._canon

    __contains__ = contains

    def __len__(self) -> int:
        return len(self._canon)

    def canonical(self, name: str) -> str | None:
        return self._canon.get(clean_text(name).lower())

    def inject(self, body_text: str) -> list[str]:
        """Canonical names occurring as whole words in body_text (case-insensitive)."""
        if not self._canon:
            return []
        hay = clean_text(body_text)
        if not hay:
            return []
        return [
            canon
            for lower, canon in self._canon.items()
            if len(lower) >= MIN_INJECT_LEN and self._patterns[lower].search(hay)
        ]


def load_manual_known(path: Path | None) -> list[str]:
    """
    Extra manual allow-list: a JSON array of names.

    A path that was configured but cannot be read is a startup error.
    """
    if path is None:
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        raise InputError(f"cannot read manual known entities from {path}: {err}") from err
    if not isinstance(data, list):
        raise InputError(f"{path} must contain a JSON array of names")
    return [str(x) for x in data if isinstance(x, str)]


__all__ = ["KnownEntitySet", "load_manual_known"]
