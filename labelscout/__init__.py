# labelscout/__init__.py
"""
labelscout: evidence-scored entity discovery.

Crawls certification-label and retailer sites, extracts entity-shaped names,
scores them on independent signals and persists the survivors with an
evidence trail.

Public API:
- run(settings) / run_sync(settings): one full pipeline run
- load_settings(): CrawlSettings from the environment (.env aware)
- looks_like_company(text): the default plausibility predicate
"""

from .config import CrawlSettings, load_settings
from .extract.plausibility import looks_like_company
from .pipeline import RunSummary, run, run_sync

__all__ = ["CrawlSettings", "RunSummary", "load_settings", "looks_like_company", "run", "run_sync"]

__version__ = "0.1.0"
