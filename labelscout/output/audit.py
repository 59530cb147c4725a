# labelscout/output/audit.py
"""
Per-target audit entries.

One entry per target per run, including targets that failed (status
"failed" plus an error string), so the audit file always shows every target
that was touched. Name comparisons are case-insensitive. The newly-found and
lost lists are only computed for targets that fetched at least one page
without error ("compared": true).

For the manufacturers profile the target is a brand and the compared names
are the label ids confirmed for it.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..models import TargetResult

SAMPLE_KEPT = 25
SAMPLE_OTHER = 50
SAMPLE_URLS = 5
SAMPLE_SNIPPETS = 3


def diff_names(previous: Iterable[str], current: Iterable[str]) -> tuple[list[str], list[str]]:
    """(newly_found, lost): names in current but not previous, and vice versa."""
    prev = list(previous)
    cur = list(current)
    prev_keys = {p.lower() for p in prev}
    cur_keys = {c.lower() for c in cur}
    newly_found = [c for c in cur if c.lower() not in prev_keys]
    lost = [p for p in prev if p.lower() not in cur_keys]
    return newly_found, lost


def build_audit_entry(
    result: TargetResult,
    previous_names: Iterable[str],
    score_threshold: float,
) -> dict[str, Any]:
    prev = list(previous_names)
    found = result.found()
    # a failed target or one that fetched nothing says nothing about what was lost
    compared = result.error is None and result.pages_crawled > 0
    if compared:
        newly_found, lost = diff_names(prev, [name for name, _ in found])
    else:
        newly_found, lost = [], []

    entry: dict[str, Any] = {
        "targetId": result.target.id,
        "name": result.target.name,
        "status": result.status.value,
        "pagesCrawled": result.pages_crawled,
        "scoreThreshold": score_threshold,
        "keptCount": len(found),
        "droppedCount": result.dropped_count,
        "prevCount": len(prev),
        "newlyFoundCount": len(newly_found),
        "lostCount": len(lost),
        "compared": compared,
        "sample": {
            "kept": [
                {
                    "name": name,
                    "score": round(k.score, 4),
                    "pagesSeen": k.pages_seen,
                    "urls": sorted(k.urls)[:SAMPLE_URLS],
                    "flags": k.flags.to_dict(),
                    "snippets": list(k.snippets[:SAMPLE_SNIPPETS]),
                }
                for name, k in found[:SAMPLE_KEPT]
            ],
            "dropped": [d.to_dict() for d in result.dropped_sample[:SAMPLE_OTHER]],
            "prevEntities": prev[:SAMPLE_OTHER],
            "newlyFound": newly_found[:SAMPLE_OTHER],
            "lost": lost[:SAMPLE_OTHER],
        },
    }
    if result.platform:
        entry["platform"] = result.platform
    if result.error:
        entry["error"] = result.error
    return entry


__all__ = ["build_audit_entry", "diff_names"]
