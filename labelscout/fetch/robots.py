# labelscout/fetch/robots.py
"""
Optional robots.txt gate.

Off by default for label discovery (certification directories are public
listings); the products profile turns it on. Policies are resolved once per
host per run and cached in memory.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from ..config import BOT_NAME

if TYPE_CHECKING:
    from .client import AsyncFetcher

log = logging.getLogger(__name__)


@dataclass
class _Rule:
    allow: bool
    path: str  # simple prefix match


@dataclass
class _Group:
    uas: list[str] = field(default_factory=list)  # lowercased UA tokens
    rules: list[_Rule] = field(default_factory=list)


@dataclass
class RobotsPolicy:
    kind: str  # "allow_all" | "rules"
    rules: list[_Rule] = field(default_factory=list)

    def allows(self, path: str) -> bool:
        if self.kind == "allow_all":
            return True
        return _evaluate_rules(path, self.rules)


ALLOW_ALL = RobotsPolicy(kind="allow_all")


def _strip_comment(line: str) -> str:
    idx = line.find("#")
    return line if idx < 0 else line[:idx]


def parse_robots(text: str) -> list[_Group]:
    """
    Minimal robots.txt parser: User-agent, Allow, Disallow.

    Groups are contiguous UA lines followed by directives. Paths are matched as
    plain prefixes (no wildcards).
    """
    groups: list[_Group] = []
    current = _Group()
    seen_directive = False

    for raw in text.splitlines():
        line = _strip_comment(raw).strip()
        if not line or ":" not in line:
            continue
        key, val = (p.strip() for p in line.split(":", 1))
        key = key.lower()

        if key == "user-agent":
            if seen_directive:
                groups.append(current)
                current = _Group()
                seen_directive = False
            current.uas.append(val.lower())
            continue

        seen_directive = True
        if key == "allow" and val:
            current.rules.append(_Rule(True, val))
        elif key == "disallow" and val:
            current.rules.append(_Rule(False, val))

    if current.uas or current.rules:
        groups.append(current)
    return groups


def _best_group(groups: list[_Group], ua: str) -> _Group | None:
    ua_lc = ua.lower()
    best: _Group | None = None
    best_len = -1
    star: _Group | None = None
    for g in groups:
        for tok in g.uas:
            if tok == "*":
                star = star or g
            elif ua_lc.startswith(tok) and len(tok) > best_len:
                best, best_len = g, len(tok)
    return best or star


def _evaluate_rules(path: str, rules: list[_Rule]) -> bool:
    """Longest prefix wins; Allow beats Disallow on ties; no match means allowed."""
    q = path.split("?", 1)[0].split("#", 1)[0] or "/"
    best: _Rule | None = None
    best_len = -1
    for r in rules:
        if not q.startswith(r.path):
            continue
        plen = len(r.path)
        if plen > best_len or (plen == best_len and r.allow and best is not None and not best.allow):
            best, best_len = r, plen
    return True if best is None else best.allow


def policy_from_text(text: str, ua: str = BOT_NAME) -> RobotsPolicy:
    grp = _best_group(parse_robots(text), ua)
    if grp is None:
        return ALLOW_ALL
    return RobotsPolicy(kind="rules", rules=grp.rules[:])


class RobotsGate:
    """Per-host robots policy cache backed by the shared fetcher."""

    def __init__(self, fetcher: AsyncFetcher, *, enabled: bool = True, ua: str = BOT_NAME) -> None:
        self.fetcher = fetcher
        self.enabled = enabled
        self.ua = ua
        # host -> in-flight or finished resolution; concurrent callers share one fetch
        self._pending: dict[str, asyncio.Task[RobotsPolicy]] = {}

    async def allowed(self, url: str) -> bool:
        if not self.enabled:
            return True
        parts = urlsplit(url)
        host = parts.netloc.lower()
        if not host:
            return True
        policy = await self._policy(parts.scheme or "https", host)
        return policy.allows(parts.path or "/")

    async def _policy(self, scheme: str, host: str) -> RobotsPolicy:
        task = self._pending.get(host)
        if task is None:
            task = asyncio.ensure_future(self._resolve(scheme, host))
            self._pending[host] = task
        return await task

    async def _resolve(self, scheme: str, host: str) -> RobotsPolicy:
        text = await self.fetcher.fetch_text(f"{scheme}://{host}/robots.txt")
        # Missing / unreachable robots.txt is treated as "no restrictions"
        pol = ALLOW_ALL if text is None else policy_from_text(text, self.ua)
        log.debug("robots policy for %s: %s (%d rules)", host, pol.kind, len(pol.rules))
        return pol


__all__ = ["RobotsGate", "RobotsPolicy", "parse_robots", "policy_from_text"]
