"""
Shared exception classes used across the codebase.

Only startup problems are fatal. Everything that can go wrong while crawling a
single target is caught at the target boundary and reported in the audit.
"""

from __future__ import annotations


class LabelScoutError(Exception):
    """Base class for all labelscout errors."""


class ConfigError(LabelScoutError):
    """
    Raised when configuration cannot be resolved.

    Examples:
        - Non-integer MAX_PAGES in the environment
        - Unknown profile name
    """


class InputError(LabelScoutError):
    """
    Raised when a required input file is missing, unreadable or malformed.

    Examples:
        - labels.json does not exist
        - targets file is not a JSON array
        - no target carries a usable URL
    """


class TargetCrawlError(LabelScoutError):
    """Raised (and caught by the pipeline) when one target's crawl blows up."""

    def __init__(self, target_id: str, cause: BaseException) -> None:
        super().__init__(f"crawl failed for target {target_id!r}: {cause!r}")
        self.target_id = target_id
        self.cause = cause


__all__ = [
    "LabelScoutError",
    "ConfigError",
    "InputError",
    "TargetCrawlError",
]
