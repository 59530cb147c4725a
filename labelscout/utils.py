"""
Shared utility functions used across the codebase.

This module centralizes common helpers to avoid duplication.
"""
from __future__ import annotations

import re
from datetime import UTC, datetime
from urllib.parse import urlsplit

_WS_RE = re.compile(r"\s+")


def utc_now_iso() -> str:
    """
    Return the current UTC time as an ISO 8601 string with 'Z' suffix.

    Example: "2025-01-15T14:30:00Z"
    """
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_text(s: str | None) -> str:
    """Collapse runs of whitespace and trim."""
    return _WS_RE.sub(" ", s or "").strip()


def clean_text(s: str | None) -> str:
    """normalize_text() plus nbsp / zero-width cleanup for scraped text."""
    if not s:
        return ""
    s = s.replace("\u00a0", " ").replace("\u200b", "")
    return normalize_text(s)


def entity_key(name: str | None) -> str:
    """
    Identity key for an entity name.

    Case-insensitive and whitespace-insensitive; punctuation is preserved so
    that "Acme Corp" and "Acme Corp." stay distinct rows.
    """
    return clean_text(name).casefold()


def url_host(url: str) -> str:
    try:
        return urlsplit(url).netloc.lower()
    except ValueError:
        return ""


def url_path(url: str) -> str:
    try:
        return (urlsplit(url).path or "/").lower()
    except ValueError:
        return "/"


__all__ = [
    "utc_now_iso",
    "normalize_text",
    "clean_text",
    "entity_key",
    "url_host",
    "url_path",
]
