# labelscout/scoring/gate.py
"""
Threshold gate: keep or drop each aggregated candidate.

Two floors: min_score (soft) and min_score + hard_margin (hard).

  known-historical and final >= min_score  -> keep
  strong signal    and final >= min_score  -> keep
  final >= hard floor                      -> keep
  otherwise                                -> drop (reason recorded)

Kept entities are sorted by score (desc), then case-insensitive name, and
truncated to per_target_max; the overflow is dropped as over_target_cap.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..models import DroppedCandidate, KeptEntity, ScoredCandidate

log = logging.getLogger(__name__)

DROP_BELOW_THRESHOLD = "below_threshold"
DROP_BELOW_HARD_FLOOR = "below_hard_floor"
DROP_OVER_CAP = "over_target_cap"

REASONS_KEEP = 10
SNIPPETS_KEEP = 5
SAMPLE_REASONS = 5


@dataclass
class GateResult:
    kept: list[KeptEntity] = field(default_factory=list)
    dropped: list[DroppedCandidate] = field(default_factory=list)


def _sort_key(score: float, name: str) -> tuple[float, str]:
    return (-score, name.casefold())


class ThresholdGate:
    def __init__(self, min_score: float, hard_margin: float, per_target_max: int) -> None:
        self.min_score = min_score
        self.hard_floor = min_score + hard_margin
        self.per_target_max = per_target_max

    def decide(self, cand: ScoredCandidate) -> str | None:
        """None to keep, else the drop reason."""
        s = cand.final_score
        if cand.flags.known_historical and s >= self.min_score:
            return None
        if cand.flags.strong and s >= self.min_score:
            return None
        if s >= self.hard_floor:
            return None
        return DROP_BELOW_THRESHOLD if s < self.min_score else DROP_BELOW_HARD_FLOOR

    def apply(self, candidates: Iterable[ScoredCandidate]) -> GateResult:
        result = GateResult()
        kept_sc: list[ScoredCandidate] = []
        dropped_sc: list[tuple[ScoredCandidate, str]] = []

        for cand in candidates:
            reason = self.decide(cand)
            if reason is None:
                kept_sc.append(cand)
            else:
                dropped_sc.append((cand, reason))

        kept_sc.sort(key=lambda c: _sort_key(c.final_score, c.name))
        overflow = kept_sc[self.per_target_max :]
        kept_sc = kept_sc[: self.per_target_max]
        dropped_sc.extend((c, DROP_OVER_CAP) for c in overflow)
        dropped_sc.sort(key=lambda pair: _sort_key(pair[0].final_score, pair[0].name))

        result.kept = [
            KeptEntity(
                name=c.name,
                score=c.final_score,
                pages_seen=c.pages_seen,
                urls=c.urls,
                flags=c.flags,
                reasons=c.reasons[:REASONS_KEEP],
                snippets=c.snippets[:SNIPPETS_KEEP],
            )
            for c in kept_sc
        ]
        result.dropped = [
            DroppedCandidate(
                name=c.name,
                score=c.final_score,
                pages_seen=c.pages_seen,
                reason=reason,
                sample_reasons=c.reasons[:SAMPLE_REASONS],
            )
            for c, reason in dropped_sc
        ]
        if overflow:
            log.info("per-target cap %d reached; %d kept entities dropped", self.per_target_max, len(overflow))
        return result


__all__ = [
    "DROP_BELOW_HARD_FLOOR",
    "DROP_BELOW_THRESHOLD",
    "DROP_OVER_CAP",
    "GateResult",
    "ThresholdGate",
]
