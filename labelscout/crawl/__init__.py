# labelscout/crawl/__init__.py
"""
Crawl slice: per-target BFS frontier bounded by pages, depth and a shared deadline,
plus brand confirmation against label directories.
"""

from .confirm import LabelCheck, PageCache, confirm_brand
from .frontier import Deadline, initial_seeds, same_host, should_ignore_path
from .runner import CrawlContext, crawl_target

__all__ = [
    "CrawlContext",
    "Deadline",
    "LabelCheck",
    "PageCache",
    "confirm_brand",
    "crawl_target",
    "initial_seeds",
    "same_host",
    "should_ignore_path",
]
