# labelscout/pipeline.py
"""
Whole-run orchestration.

  1) load targets (fatal if missing/unusable)
  2) load previous output, bootstrap known entities
  3) crawl every target concurrently (bounded), isolating failures per target;
     for the manufacturers profile each brand is checked against the label
     directories instead
  4) single writer phase: merge rows, build audit, write files atomically

Only step 1 (and unreadable configured inputs) can abort the run. A target
that raises is logged and reported in the audit with status "failed".
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import CrawlSettings
from .crawl.confirm import LabelCheck, confirm_brand, previous_confirmations
from .crawl.frontier import Deadline
from .crawl.runner import CrawlContext, Fetcher, crawl_target
from .exceptions import ConfigError, InputError, TargetCrawlError
from .extract.candidates import CandidateExtractor
from .extract.plausibility import PlausibilityFilter
from .extract.rules import LabelDirectory, load_label_directories, load_site_configs, manual_known_entities
from .fetch.client import AsyncFetcher
from .fetch.hosts import HostRegistry
from .fetch.render import HeadlessRenderer
from .fetch.robots import RobotsGate
from .known import KnownEntitySet, load_manual_known
from .models import CrawlStatus, Target, TargetResult
from .output.audit import build_audit_entry
from .output.store import (
    atomic_write_json,
    load_json,
    merge_entity_rows,
    normalize_rows,
    previous_by_target,
)
from .profiles import Profile, get_profile
from .scoring.signals import Scorer
from .utils import entity_key

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputPaths:
    entities: Path
    audit: Path
    host_stats: Path

    @classmethod
    def for_profile(cls, data_dir: Path, profile: Profile) -> OutputPaths:
        base = profile.output_name
        return cls(
            entities=data_dir / f"{base}.json",
            audit=data_dir / f"{base}.audit.json",
            host_stats=data_dir / f"{base}.host-stats.json",
        )


@dataclass
class RunSummary:
    profile: str
    results: list[TargetResult] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    audit: list[dict[str, Any]] = field(default_factory=list)
    host_stats: dict[str, Any] = field(default_factory=dict)
    paths: OutputPaths | None = None

    @property
    def failed(self) -> list[TargetResult]:
        return [r for r in self.results if r.status is CrawlStatus.FAILED]


# --------------------------------------------------------------------------------------
# Inputs
# --------------------------------------------------------------------------------------


def load_targets(path: Path, profile: Profile) -> list[Target]:
    """
    Read the target list for profile.

    Raises InputError when the file is missing, not a JSON array, or holds no
    usable row. Individual bad rows are skipped with a warning.
    """
    if not path.exists():
        raise InputError(f"targets file not found: {path}")
    data = load_json(path, None)
    if not isinstance(data, list):
        raise InputError(f"{path} must contain a JSON array")

    targets: list[Target] = []
    seen: set[str] = set()
    for row in data:
        t = profile.target_from_row(row) if isinstance(row, dict) else None
        if t is None:
            log.warning("skipping target row without id/usable URL: %r", row)
            continue
        if t.id in seen:
            log.warning("duplicate target id %r; keeping the first", t.id)
            continue
        seen.add(t.id)
        targets.append(t)

    if not targets:
        raise InputError(f"{path} contains no usable targets")
    return targets


def select_label_directories(
    directories: tuple[LabelDirectory, ...],
    label_filter: tuple[str, ...],
) -> tuple[LabelDirectory, ...]:
    """
    Restrict directories to the ids in label_filter (all when empty).

    Unknown ids are logged; a filter that matches nothing is a ConfigError.
    """
    if not label_filter:
        return directories
    wanted = set(label_filter)
    for unknown in sorted(wanted - {d.id for d in directories}):
        log.warning("unknown label id %r in label filter", unknown)
    picked = tuple(d for d in directories if d.id in wanted)
    if not picked:
        raise ConfigError(f"label filter {list(label_filter)} matches no label directory")
    return picked


# --------------------------------------------------------------------------------------
# Run
# --------------------------------------------------------------------------------------


async def _crawl_isolated(target: Target, ctx: CrawlContext, slots: asyncio.Semaphore) -> TargetResult:
    crawl = confirm_brand if ctx.profile.confirms_labels else crawl_target
    async with slots:
        try:
            return await crawl(target, ctx)
        except Exception as exc:
            err = TargetCrawlError(target.id, exc)
            log.exception("%s", err)
            return TargetResult(target=target, status=CrawlStatus.FAILED, error=str(err))


async def run(
    settings: CrawlSettings,
    *,
    fetcher: Fetcher | None = None,
    hosts: HostRegistry | None = None,
) -> RunSummary:
    """
    Execute one full run.

    fetcher/hosts can be injected (tests, embedding); by default an
    AsyncFetcher is created from settings.fetch and closed afterwards.
    """
    settings.validate()
    profile = get_profile(settings.profile)
    targets_path = settings.targets_path or settings.data_dir / profile.default_targets_file
    targets = load_targets(targets_path, profile)

    paths = OutputPaths.for_profile(settings.data_dir, profile)
    if settings.clear_output:
        log.info("CLEAR_OUTPUT set: ignoring previous output at %s", paths.entities)
        existing: list[dict[str, Any]] = []
    else:
        existing = normalize_rows(load_json(paths.entities, []) or [])

    labels: LabelCheck | None = None
    if profile.confirms_labels:
        directories = select_label_directories(
            load_label_directories(settings.label_directories_path), settings.label_filter
        )
        labels = LabelCheck(directories, previous=previous_confirmations(existing))
        log.info("checking %d label directories: %s", len(directories), [d.id for d in directories])

    # A label must never be extracted as one of its own entities
    label_names = [t.name for t in targets] + [t.id for t in targets]
    rules = profile.rules.with_label_names(label_names)
    plausibility = PlausibilityFilter(rules, max_tokens=profile.max_tokens)

    manual = list(manual_known_entities()) + load_manual_known(settings.manual_known_path)
    known = KnownEntitySet.bootstrap(existing, manual, plausibility)

    hosts = hosts or HostRegistry()
    owns_fetcher = fetcher is None
    if fetcher is None:
        fetcher = AsyncFetcher(settings.fetch, hosts)

    respect_robots = settings.fetch.respect_robots or profile.respect_robots
    renderer = HeadlessRenderer() if settings.fetch.headless_fallback else None

    ctx = CrawlContext(
        settings=settings,
        profile=profile,
        fetcher=fetcher,
        hosts=hosts,
        extractor=CandidateExtractor(
            plausibility,
            site_configs=load_site_configs(settings.site_configs_path),
            known=known,
            ld_types=profile.ld_types,
        ),
        scorer=Scorer(rules, known=known, weights=profile.weights, detail_paths=profile.detail_paths),
        deadline=Deadline.from_minutes(settings.time_limit_minutes),
        robots=RobotsGate(fetcher, enabled=True) if respect_robots else None,
        renderer=renderer,
        labels=labels,
    )

    log.info(
        "profile=%s targets=%d output=%s max_pages=%d max_depth=%d concurrency=%d threshold=%s "
        "clear_output=%s dry_run=%s",
        profile.name,
        len(targets),
        paths.entities,
        settings.max_pages,
        settings.max_depth,
        settings.concurrency,
        settings.score_threshold,
        settings.clear_output,
        settings.dry_run,
    )

    slots = asyncio.Semaphore(settings.concurrency)
    try:
        results = await asyncio.gather(*(_crawl_isolated(t, ctx, slots) for t in targets))
    finally:
        if renderer is not None:
            await renderer.aclose()
        if owns_fetcher and isinstance(fetcher, AsyncFetcher):
            await fetcher.aclose()

    summary = write_outputs(
        list(results),
        existing,
        settings=settings,
        profile=profile,
        paths=paths,
        host_stats=hosts.snapshot(),
    )
    return summary


def _previous_names(
    res: TargetResult,
    profile: Profile,
    by_target: Mapping[str, list[str]],
    by_entity: Mapping[str, frozenset[str]],
) -> list[str]:
    """What an earlier run had for this target: entity names, or label ids for a brand."""
    if profile.confirms_labels:
        return sorted(by_entity.get(entity_key(res.target.name), frozenset()))
    return by_target.get(res.target.id, [])


def write_outputs(
    results: list[TargetResult],
    existing: list[dict[str, Any]],
    *,
    settings: CrawlSettings,
    profile: Profile,
    paths: OutputPaths,
    host_stats: dict[str, Any],
) -> RunSummary:
    """The single writer phase; runs after every target task has finished."""
    by_target = previous_by_target(existing)
    by_entity = previous_confirmations(existing)
    rows = existing
    audit: list[dict[str, Any]] = []
    for res in results:
        for evidence_target, entities in res.merge_groups():
            rows = merge_entity_rows(rows, entities, evidence_target, evidence_cap=settings.evidence_cap)
        prev = _previous_names(res, profile, by_target, by_entity)
        audit.append(build_audit_entry(res, prev, settings.score_threshold))
        log.info(
            "[%s] kept=%d dropped=%d pages=%d status=%s",
            res.target.id,
            len(res.found()),
            res.dropped_count,
            res.pages_crawled,
            res.status.value,
        )

    if settings.dry_run:
        log.info("DRY_RUN set: skipping writes to %s and %s", paths.entities, paths.audit)
    else:
        atomic_write_json(paths.entities, rows)
        atomic_write_json(paths.audit, audit)
        log.info("wrote %d rows to %s", len(rows), paths.entities)

    # diagnostics are written even on dry runs
    atomic_write_json(paths.host_stats, host_stats)

    return RunSummary(
        profile=profile.name,
        results=results,
        rows=rows,
        audit=audit,
        host_stats=host_stats,
        paths=paths,
    )


def run_sync(settings: CrawlSettings) -> RunSummary:
    return asyncio.run(run(settings))


__all__ = [
    "OutputPaths",
    "RunSummary",
    "load_targets",
    "run",
    "run_sync",
    "select_label_directories",
    "write_outputs",
]
