from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .exceptions import ConfigError


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name, str(default)).strip()
    try:
        return int(v)
    except ValueError as err:
        raise ConfigError(f"Environment variable {name} must be an integer; got {v!r}") from err


def _getenv_float(name: str, default: float) -> float:
    v = os.getenv(name, str(default)).strip()
    try:
        return float(v)
    except ValueError as err:
        raise ConfigError(f"Environment variable {name} must be a number; got {v!r}") from err


def _getenv_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip()


def _getenv_bool(name: str, default: bool) -> bool:
    """
    Read a loosely-typed boolean from the environment.

    Treats "1", "true", "yes", "on" (case-insensitive) as True;
    "0", "false", "no", "off", "" as False. If unset, returns default.
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off", ""}:
        return False
    # Fallback: any other non-empty value -> True
    return True


# Load .env from project root if present
ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env", override=False)

BOT_NAME = "LabelScoutBot"

# -------------------------------
# Fetch config (constants, env-overridable)
# -------------------------------
REQUEST_TIMEOUT_MS: int = _getenv_int("REQUEST_TIMEOUT_MS", 12_000)
FETCH_RETRIES: int = _getenv_int("FETCH_RETRIES", 2)
FETCH_BACKOFF_MS: int = _getenv_int("FETCH_BACKOFF_MS", 800)
FETCH_MAX_BODY_BYTES: int = _getenv_int("FETCH_MAX_BODY_BYTES", 3_000_000)
HTTP_CONCURRENCY: int = _getenv_int("HTTP_CONCURRENCY", 48)
BASE_DELAY_MS: int = _getenv_int("BASE_DELAY_MS", 900)
JITTER_MS: int = _getenv_int("JITTER_MS", 700)
RESPECT_ROBOTS: bool = _getenv_bool("RESPECT_ROBOTS", False)
HEADLESS_FALLBACK: bool = _getenv_bool("HEADLESS_FALLBACK", False)

# -------------------------------
# Crawl config
# -------------------------------
MAX_PAGES: int = _getenv_int("MAX_PAGES", 100)
MAX_DEPTH: int = _getenv_int("MAX_DEPTH", 3)
CONCURRENCY: int = _getenv_int("CONCURRENCY", 24)
TIME_LIMIT_MINUTES: float = _getenv_float("TIME_LIMIT_MINUTES", 30)
MAX_CANDIDATES_PER_TARGET: int = _getenv_int("MAX_CANDIDATES_PER_TARGET", 2500)

# -------------------------------
# Scoring / output config
# -------------------------------
SCORE_THRESHOLD: float = _getenv_float("SCORE_THRESHOLD", 7)
HARD_SCORE_MARGIN: float = _getenv_float("HARD_SCORE_MARGIN", 3)
PER_TARGET_KEEP: int = _getenv_int("PER_TARGET_KEEP", 500)
EVIDENCE_CAP: int = _getenv_int("EVIDENCE_CAP", 5)
CLEAR_OUTPUT: bool = _getenv_bool("CLEAR_OUTPUT", False)
DRY_RUN: bool = _getenv_bool("DRY_RUN", False)

PROFILE: str = _getenv_str("PROFILE", "labels")
DATA_DIR: str = _getenv_str("DATA_DIR", str(ROOT / "data"))
TARGETS_PATH: str = _getenv_str("TARGETS_PATH", "")
MANUAL_KNOWN_PATH: str = _getenv_str("MANUAL_KNOWN_PATH", "")
SITE_CONFIGS_PATH: str = _getenv_str("SITE_CONFIGS_PATH", "")
LABEL_DIRECTORIES_PATH: str = _getenv_str("LABEL_DIRECTORIES_PATH", "")
# comma-separated label ids; empty checks every label directory
LABELS: str = _getenv_str("LABELS", "")
LOG_LEVEL: str = _getenv_str("LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class FetchConfig:
    timeout_s: float
    retries: int
    backoff_base_s: float
    max_body_bytes: int
    http_concurrency: int
    base_delay_s: float
    jitter_s: float
    respect_robots: bool
    headless_fallback: bool


@dataclass(frozen=True)
class CrawlSettings:
    """Everything one run needs, resolved once at startup."""

    fetch: FetchConfig
    profile: str
    max_pages: int
    max_depth: int
    concurrency: int
    time_limit_minutes: float
    max_candidates_per_target: int
    score_threshold: float
    hard_score_margin: float
    per_target_keep: int
    evidence_cap: int
    clear_output: bool
    dry_run: bool
    data_dir: Path
    targets_path: Path | None
    manual_known_path: Path | None
    site_configs_path: Path | None
    log_level: str
    label_directories_path: Path | None = None
    label_filter: tuple[str, ...] = ()

    @property
    def hard_score_threshold(self) -> float:
        return self.score_threshold + self.hard_score_margin

    def validate(self) -> CrawlSettings:
        """Range checks shared by env loading and CLI overrides; raises ConfigError."""
        if self.max_pages < 1:
            raise ConfigError(f"max_pages must be >= 1; got {self.max_pages}")
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1; got {self.concurrency}")
        if self.fetch.http_concurrency < 1:
            raise ConfigError(f"http_concurrency must be >= 1; got {self.fetch.http_concurrency}")
        if self.max_depth < 0:
            raise ConfigError(f"max_depth must be >= 0; got {self.max_depth}")
        return self

    def with_overrides(self, **changes: Any) -> CrawlSettings:
        """Return a validated copy with non-None overrides applied (CLI flags win over env)."""
        clean = {k: v for k, v in changes.items() if v is not None}
        fetch_keys = {k for k in clean if k in FetchConfig.__dataclass_fields__}
        fetch = self.fetch
        if fetch_keys:
            fetch = replace(fetch, **{k: clean.pop(k) for k in fetch_keys})
        return replace(self, fetch=fetch, **clean).validate()


def _optional_path(raw: str) -> Path | None:
    return Path(raw) if raw else None


def parse_label_filter(raw: str | None) -> tuple[str, ...]:
    """"a, B ,c" -> ("a", "b", "c"); empty or None -> ()."""
    return tuple(p.strip().lower() for p in (raw or "").split(",") if p.strip())


def load_settings() -> CrawlSettings:
    fetch = FetchConfig(
        timeout_s=REQUEST_TIMEOUT_MS / 1000.0,
        retries=max(0, FETCH_RETRIES),
        backoff_base_s=FETCH_BACKOFF_MS / 1000.0,
        max_body_bytes=FETCH_MAX_BODY_BYTES,
        http_concurrency=HTTP_CONCURRENCY,
        base_delay_s=BASE_DELAY_MS / 1000.0,
        jitter_s=JITTER_MS / 1000.0,
        respect_robots=RESPECT_ROBOTS,
        headless_fallback=HEADLESS_FALLBACK,
    )
    return CrawlSettings(
        fetch=fetch,
        profile=PROFILE,
        max_pages=MAX_PAGES,
        max_depth=MAX_DEPTH,
        concurrency=CONCURRENCY,
        time_limit_minutes=TIME_LIMIT_MINUTES,
        max_candidates_per_target=MAX_CANDIDATES_PER_TARGET,
        score_threshold=SCORE_THRESHOLD,
        hard_score_margin=HARD_SCORE_MARGIN,
        per_target_keep=PER_TARGET_KEEP,
        evidence_cap=EVIDENCE_CAP,
        clear_output=CLEAR_OUTPUT,
        dry_run=DRY_RUN,
        data_dir=Path(DATA_DIR),
        targets_path=_optional_path(TARGETS_PATH),
        manual_known_path=_optional_path(MANUAL_KNOWN_PATH),
        site_configs_path=_optional_path(SITE_CONFIGS_PATH),
        log_level=LOG_LEVEL,
        label_directories_path=_optional_path(LABEL_DIRECTORIES_PATH),
        label_filter=parse_label_filter(LABELS),
    ).validate()


__all__ = [
    "BOT_NAME",
    "FetchConfig",
    "CrawlSettings",
    "load_settings",
    "parse_label_filter",
]
