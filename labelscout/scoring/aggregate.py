# labelscout/scoring/aggregate.py
"""
Cross-page aggregation for one target.

    final = (sum of page scores) * log2(1 + distinct pages)
    final *= dampening            when no strong flag is set

The diversity boost rewards a name that keeps turning up on independent pages;
the dampening keeps repeated-but-unsupported text (menu items that survived
the filter) from floating up on repetition alone.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from ..models import CandidateRecord, PageScore, ScoredCandidate
from ..utils import entity_key

DEFAULT_DAMPENING = 0.4
SNIPPET_CAP = 5


def diversity_boost(pages: int) -> float:
    return math.log2(1 + max(0, pages))


class Aggregator:
    """Owned by exactly one target's crawl task; not shared."""

    def __init__(self, *, dampening: float = DEFAULT_DAMPENING, snippet_cap: int = SNIPPET_CAP) -> None:
        self.dampening = dampening
        self.snippet_cap = snippet_cap
        self._records: dict[str, CandidateRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def add_page(self, url: str, page_scores: Iterable[PageScore]) -> None:
        for ps in page_scores:
            key = entity_key(ps.name)
            rec = self._records.get(key)
            if rec is None:
                rec = CandidateRecord(name=ps.name)
                self._records[key] = rec
            rec.total_score += ps.score
            rec.reasons.extend(ps.reasons)
            rec.urls.update(ps.urls)
            rec.pages.add(url)
            rec.flags = rec.flags.merge(ps.flags)
            for sn in ps.snippets:
                if len(rec.snippets) >= self.snippet_cap:
                    break
                rec.snippets.append(sn)

    def final_score(self, rec: CandidateRecord) -> float:
        score = rec.total_score * diversity_boost(len(rec.pages))
        if not rec.flags.strong:
            score *= self.dampening
        return score

    def finalize(self) -> list[ScoredCandidate]:
        return [
            ScoredCandidate(
                name=rec.name,
                final_score=self.final_score(rec),
                raw_score=rec.total_score,
                pages_seen=len(rec.pages),
                urls=tuple(sorted(rec.urls)),
                flags=rec.flags,
                reasons=tuple(rec.reasons),
                snippets=tuple(rec.snippets),
            )
            for rec in self._records.values()
        ]


__all__ = ["Aggregator", "DEFAULT_DAMPENING", "diversity_boost"]
