# labelscout/scoring/__init__.py
"""
Scoring slice: per-page signals -> per-target aggregate -> threshold gate.
"""

from .aggregate import Aggregator, diversity_boost
from .confirm import MatchWeights, score_brand_page
from .gate import GateResult, ThresholdGate
from .signals import Scorer, ScoreWeights, fold_events

__all__ = [
    "Aggregator",
    "GateResult",
    "MatchWeights",
    "ScoreWeights",
    "Scorer",
    "ThresholdGate",
    "diversity_boost",
    "fold_events",
    "score_brand_page",
]
