"""
Data model shared by the crawl, scoring and output stages.

Records that cross stage boundaries are plain dataclasses; the ones produced
by scoring are frozen so a page's contribution cannot be edited after the fact.
JSON shapes use camelCase keys because the persisted files are consumed by the
web front-end.
"""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

from .utils import clean_text

# --- Targets -----------------------------------------------------------------


@dataclass(frozen=True)
class Target:
    """One crawl unit: a certification label, a company/domain or a brand."""

    id: str
    name: str
    source_url: str
    seed_urls: tuple[str, ...] = ()
    aliases: tuple[str, ...] = ()

    @property
    def origin(self) -> str:
        parts = urlsplit(self.source_url)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def host(self) -> str:
        return urlsplit(self.source_url).netloc.lower()

    @classmethod
    def from_label_row(cls, row: dict[str, Any]) -> Target | None:
        """
        Build a Target from a labels.json row: {id, name, source_url, seed_urls[]}.

        When source_url is missing the first seed URL becomes the start URL.
        Returns None for rows with no usable URL.
        """
        tid = str(row.get("id") or "").strip()
        if not tid:
            return None
        seeds = tuple(str(s).strip() for s in (row.get("seed_urls") or []) if s and str(s).strip())
        source = str(row.get("source_url") or "").strip() or (seeds[0] if seeds else "")
        if not _is_http_url(source):
            return None
        name = clean_text(str(row.get("name") or tid))
        return cls(id=tid, name=name, source_url=source, seed_urls=seeds)

    @classmethod
    def from_company_row(cls, row: dict[str, Any]) -> Target | None:
        """Build a Target from a companies.json row: {id, name, domains[], seed_urls[]}."""
        tid = str(row.get("id") or "").strip()
        if not tid:
            return None
        domains = [str(d).strip() for d in (row.get("domains") or []) if d and str(d).strip()]
        seeds = tuple(str(s).strip() for s in (row.get("seed_urls") or []) if s and str(s).strip())
        source = ""
        if domains:
            host = domains[0].removeprefix("https://").removeprefix("http://").strip("/")
            source = f"https://{host}/"
        elif seeds:
            source = seeds[0]
        if not _is_http_url(source):
            return None
        name = clean_text(str(row.get("name") or tid))
        return cls(id=tid, name=name, source_url=source, seed_urls=seeds)

    @classmethod
    def from_brand_row(cls, row: dict[str, Any]) -> Target | None:
        """
        Build a Target from a brands.json row: {id, name, aliases[], website}.

        manufacturer_id / manufacturer_name are accepted as well. A brand needs
        no URL; website is kept when it is one.
        """
        tid = str(row.get("id") or row.get("manufacturer_id") or "").strip()
        name = clean_text(str(row.get("name") or row.get("manufacturer_name") or ""))
        if not tid or not name:
            return None
        aliases = tuple(a for a in (clean_text(str(x)) for x in row.get("aliases") or [] if x) if a)
        website = str(row.get("website") or "").strip()
        return cls(id=tid, name=name, source_url=website if _is_http_url(website) else "", aliases=aliases)


def _is_http_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


# --- Crawl state ---------------------------------------------------------------


class CrawlStatus(str, enum.Enum):
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    DEADLINE_STOPPED = "deadline_stopped"
    CAP_STOPPED = "cap_stopped"
    FAILED = "failed"


@dataclass(frozen=True)
class FrontierItem:
    url: str
    depth: int


@dataclass
class CrawlState:
    """Per-target frontier. Created at task start, discarded at task end."""

    queue: deque[FrontierItem] = field(default_factory=deque)
    enqueued: set[str] = field(default_factory=set)
    visited: set[str] = field(default_factory=set)
    pages_crawled: int = 0
    status: CrawlStatus = CrawlStatus.READY

    def enqueue(self, url: str, depth: int) -> bool:
        if url in self.enqueued or url in self.visited:
            return False
        self.enqueued.add(url)
        self.queue.append(FrontierItem(url=url, depth=depth))
        return True

    def pop(self) -> FrontierItem:
        return self.queue.popleft()


# --- Scoring records -----------------------------------------------------------


@dataclass(frozen=True)
class EvidenceFlags:
    external_link: bool = False
    detail_page: bool = False
    structural_suffix: bool = False
    structured_data: bool = False
    known_historical: bool = False

    @property
    def strong(self) -> bool:
        return (
            self.external_link
            or self.detail_page
            or self.structural_suffix
            or self.structured_data
            or self.known_historical
        )

    def merge(self, other: EvidenceFlags) -> EvidenceFlags:
        return EvidenceFlags(
            external_link=self.external_link or other.external_link,
            detail_page=self.detail_page or other.detail_page,
            structural_suffix=self.structural_suffix or other.structural_suffix,
            structured_data=self.structured_data or other.structured_data,
            known_historical=self.known_historical or other.known_historical,
        )

    def to_dict(self) -> dict[str, bool]:
        return {
            "externalLink": self.external_link,
            "detailPage": self.detail_page,
            "structuralSuffix": self.structural_suffix,
            "structuredData": self.structured_data,
            "knownHistorical": self.known_historical,
        }


@dataclass(frozen=True)
class SignalEvent:
    """One auditable score delta for one candidate on one page."""

    name: str
    delta: float
    reason: str
    url: str
    link: str | None = None


@dataclass(frozen=True)
class PageScore:
    """Fold of one page's SignalEvents for a single candidate."""

    name: str
    url: str
    score: float
    reasons: tuple[str, ...]
    flags: EvidenceFlags
    urls: frozenset[str]
    snippets: tuple[str, ...]


@dataclass
class CandidateRecord:
    """Cross-page accumulator for one candidate within one target."""

    name: str
    total_score: float = 0.0
    reasons: list[str] = field(default_factory=list)
    urls: set[str] = field(default_factory=set)
    pages: set[str] = field(default_factory=set)
    flags: EvidenceFlags = field(default_factory=EvidenceFlags)
    snippets: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScoredCandidate:
    """A finalized CandidateRecord with its diversity-boosted score."""

    name: str
    final_score: float
    raw_score: float
    pages_seen: int
    urls: tuple[str, ...]
    flags: EvidenceFlags
    reasons: tuple[str, ...]
    snippets: tuple[str, ...]


@dataclass(frozen=True)
class KeptEntity:
    name: str
    score: float
    pages_seen: int
    urls: tuple[str, ...]
    flags: EvidenceFlags
    reasons: tuple[str, ...]
    snippets: tuple[str, ...]

    def evidence(self) -> dict[str, Any]:
        return {
            "score": round(self.score, 4),
            "pagesSeen": self.pages_seen,
            "urls": sorted(self.urls),
            "flags": self.flags.to_dict(),
            "reasons": list(self.reasons),
            "snippets": list(self.snippets),
        }

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "evidence": self.evidence()}


@dataclass(frozen=True)
class DroppedCandidate:
    name: str
    score: float
    pages_seen: int
    reason: str
    sample_reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "score": round(self.score, 4),
            "pagesSeen": self.pages_seen,
            "droppedBecause": self.reason,
            "sampleReasons": list(self.sample_reasons),
        }


# --- Run results ---------------------------------------------------------------


@dataclass
class TargetResult:
    """What one target's crawl hands to the output phase."""

    target: Target
    pages_crawled: int = 0
    status: CrawlStatus = CrawlStatus.COMPLETED
    kept: list[KeptEntity] = field(default_factory=list)
    dropped_sample: list[DroppedCandidate] = field(default_factory=list)
    dropped_count: int = 0
    error: str | None = None
    platform: str | None = None
    # manufacturers profile: (label, confirmed brand) pairs instead of kept
    associations: list[tuple[Target, KeptEntity]] = field(default_factory=list)

    def found(self) -> list[tuple[str, KeptEntity]]:
        """(name reported in the audit, entity) for everything this target kept."""
        if self.associations:
            return [(label.id, ent) for label, ent in self.associations]
        return [(k.name, k) for k in self.kept]

    def merge_groups(self) -> list[tuple[Target, list[KeptEntity]]]:
        """(evidence target, entities) pairs for the writer to merge into the rows."""
        if self.associations:
            return [(label, [ent]) for label, ent in self.associations]
        return [(self.target, list(self.kept))] if self.kept else []


__all__ = [
    "Target",
    "CrawlStatus",
    "FrontierItem",
    "CrawlState",
    "EvidenceFlags",
    "SignalEvent",
    "PageScore",
    "CandidateRecord",
    "ScoredCandidate",
    "KeptEntity",
    "DroppedCandidate",
    "TargetResult",
]
