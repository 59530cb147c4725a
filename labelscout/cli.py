# labelscout/cli.py
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from .config import load_settings, parse_label_filter
from .exceptions import ConfigError, InputError
from .logging_setup import configure_logging
from .pipeline import RunSummary, run_sync
from .profiles import PROFILES, get_profile

log = logging.getLogger(__name__)

EXIT_STARTUP_ERROR = 2


def _print_summary(summary: RunSummary) -> None:
    print(f"=== {summary.profile} run ===")
    header = f"{'target':28} {'status':17} {'pages':>6} {'kept':>6} {'dropped':>8}"
    print("  " + header)
    print("  " + "-" * len(header))
    for res in summary.results:
        print(
            f"  {res.target.id[:28]:28} {res.status.value:17} {res.pages_crawled:6d} "
            f"{len(res.found()):6d} {res.dropped_count:8d}"
        )
    print()
    print(f"  Rows persisted : {len(summary.rows)}")
    print(f"  Failed targets : {len(summary.failed)}")
    if summary.paths is not None:
        print(f"  Output         : {summary.paths.entities}")


def _cmd_crawl(args: argparse.Namespace) -> int:
    settings = load_settings()
    overrides: dict[str, Any] = {
        "profile": args.profile,
        "max_pages": args.max_pages,
        "max_depth": args.max_depth,
        "concurrency": args.concurrency,
        "time_limit_minutes": args.time_limit,
        "score_threshold": args.threshold,
        "data_dir": Path(args.data_dir) if args.data_dir else None,
        "targets_path": Path(args.targets) if args.targets else None,
        "dry_run": True if args.dry_run else None,
        "clear_output": True if args.clear_output else None,
        "respect_robots": True if args.respect_robots else None,
        "headless_fallback": True if args.headless else None,
        "label_filter": parse_label_filter(args.labels) if args.labels else None,
        "label_directories_path": Path(args.label_directories) if args.label_directories else None,
    }
    settings = settings.with_overrides(**overrides)
    configure_logging(args.log_level or settings.log_level)
    get_profile(settings.profile)  # fail fast on typos before any IO

    summary = run_sync(settings)
    if args.json:
        print(json.dumps({"audit": summary.audit, "rows": len(summary.rows)}, indent=2))
    else:
        _print_summary(summary)
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    """Explain how the plausibility filter sees each string (rule debugging)."""
    from .extract.plausibility import PlausibilityFilter

    profile = get_profile(args.profile)
    filt = PlausibilityFilter(profile.rules, max_tokens=profile.max_tokens)
    for text in args.text:
        reason = filt.rejection_reason(text)
        verdict = "entity" if reason is None else f"rejected ({reason})"
        print(f"{text!r}: {verdict}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="labelscout",
        description="Evidence-scored entity discovery on certification and retailer sites.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl = subparsers.add_parser("crawl", help="Crawl every target and update the entity dataset.")
    crawl.add_argument("--profile", choices=sorted(PROFILES), help="Discovery profile (default: $PROFILE).")
    crawl.add_argument("--targets", help="Targets JSON file (default: <data-dir>/<profile targets>).")
    crawl.add_argument("--data-dir", help="Directory for inputs and outputs (default: $DATA_DIR).")
    crawl.add_argument("--max-pages", type=int, help="Max pages per target.")
    crawl.add_argument("--max-depth", type=int, help="Max crawl depth.")
    crawl.add_argument("--concurrency", type=int, help="Targets crawled at once.")
    crawl.add_argument("--time-limit", type=float, help="Global time limit in minutes.")
    crawl.add_argument("--threshold", type=float, help="Score threshold (hard floor is +margin).")
    crawl.add_argument("--dry-run", action="store_true", help="Do not write entities/audit files.")
    crawl.add_argument("--clear-output", action="store_true", help="Ignore previous output.")
    crawl.add_argument("--respect-robots", action="store_true", help="Honor robots.txt for every profile.")
    crawl.add_argument("--headless", action="store_true", help="Render pages with Playwright when plain fetch fails.")
    crawl.add_argument("--labels", help="Comma-separated label ids to check (manufacturers profile).")
    crawl.add_argument("--label-directories", help="Label directories YAML (default: bundled).")
    crawl.add_argument("--log-level", help="Logging level (default: $LOG_LEVEL).")
    crawl.add_argument("--json", action="store_true", help="Print the audit as JSON instead of a table.")
    crawl.set_defaults(func=_cmd_crawl)

    check = subparsers.add_parser("check", help="Run the plausibility filter on strings.")
    check.add_argument("text", nargs="+", help="Strings to classify.")
    check.add_argument("--profile", default="labels", choices=sorted(PROFILES))
    check.set_defaults(func=_cmd_check)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    func = getattr(args, "func", None)
    if func is None:
        parser.error("no command specified")
        return 1

    try:
        return int(func(args))
    except (ConfigError, InputError) as err:
        log.error("startup failed: %s", err)
        print(f"error: {err}")
        return EXIT_STARTUP_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
