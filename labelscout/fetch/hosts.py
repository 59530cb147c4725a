# labelscout/fetch/hosts.py
from __future__ import annotations

import asyncio
import random
from dataclasses import asdict, dataclass, field
from typing import Any

from ..utils import utc_now_iso

# --------------------------------------------------------------------------------------
# Penalty policy
# --------------------------------------------------------------------------------------

PENALTY_MIN = 1.0
PENALTY_MAX = 3.0
PENALTY_BUMP = 1.3  # on 403/429
PENALTY_DECAY = 0.95  # on HTML success


def _clamp(value: float) -> float:
    return max(PENALTY_MIN, min(PENALTY_MAX, value))


def jitter(base_s: float, jitter_s: float) -> float:
    """base + uniform [0, jitter]; split out so tests can patch randomness."""
    return base_s + random.uniform(0.0, max(0.0, jitter_s))


# --------------------------------------------------------------------------------------
# State
# --------------------------------------------------------------------------------------


@dataclass
class HostStats:
    host: str
    totalRequests: int = 0  # noqa: N815 - persisted JSON field names
    successHtml: int = 0  # noqa: N815
    nonHtmlOrEmpty: int = 0  # noqa: N815
    blockCount: int = 0  # noqa: N815
    errorCount: int = 0  # noqa: N815
    statusCounts: dict[str, int] = field(default_factory=dict)  # noqa: N815
    lastStatus: int | None = None  # noqa: N815
    lastError: str | None = None  # noqa: N815
    lastDurationMs: int | None = None  # noqa: N815
    lastSeenAt: str | None = None  # noqa: N815
    penaltyMultiplier: float = PENALTY_MIN  # noqa: N815


class HostRegistry:
    """
    Per-host statistics and adaptive penalty, shared by every concurrent target.

    All mutation happens under one asyncio.Lock; the critical sections are pure
    arithmetic, so no lock is ever held across a network await.
    """

    def __init__(self) -> None:
        self._hosts: dict[str, HostStats] = {}
        self._lock = asyncio.Lock()

    def _state(self, host: str) -> HostStats:
        host = host.strip().lower()
        st = self._hosts.get(host)
        if st is None:
            st = HostStats(host=host)
            self._hosts[host] = st
        return st

    # ---- penalty --------------------------------------------------------------

    def penalty(self, host: str) -> float:
        st = self._hosts.get(host.strip().lower())
        return _clamp(st.penaltyMultiplier) if st else PENALTY_MIN

    async def bump_penalty(self, host: str) -> float:
        """Record a throttle (403/429). Returns the new multiplier."""
        async with self._lock:
            st = self._state(host)
            st.penaltyMultiplier = _clamp(st.penaltyMultiplier * PENALTY_BUMP)
            return st.penaltyMultiplier

    async def decay_penalty(self, host: str) -> float:
        """Cool off after an HTML success. Never goes below 1."""
        async with self._lock:
            st = self._state(host)
            st.penaltyMultiplier = _clamp(st.penaltyMultiplier * PENALTY_DECAY)
            return st.penaltyMultiplier

    def delay_for(self, host: str, base_s: float, jitter_s: float) -> float:
        """Seconds to wait before the next request to host."""
        return jitter(base_s, jitter_s) * self.penalty(host)

    # ---- stats ----------------------------------------------------------------

    async def record_response(
        self,
        host: str,
        status: int,
        *,
        is_html: bool,
        duration_ms: int,
    ) -> None:
        async with self._lock:
            st = self._state(host)
            st.totalRequests += 1
            st.lastStatus = status
            st.lastDurationMs = duration_ms
            st.lastSeenAt = utc_now_iso()
            key = str(status)
            st.statusCounts[key] = st.statusCounts.get(key, 0) + 1
            if is_html:
                st.successHtml += 1
            else:
                st.nonHtmlOrEmpty += 1
            if status in (403, 429):
                st.blockCount += 1

    async def record_error(self, host: str, error: str, *, duration_ms: int) -> None:
        async with self._lock:
            st = self._state(host)
            st.totalRequests += 1
            st.errorCount += 1
            st.lastError = error
            st.lastDurationMs = duration_ms
            st.lastSeenAt = utc_now_iso()

    # ---- introspection --------------------------------------------------------

    def stats(self, host: str) -> HostStats | None:
        return self._hosts.get(host.strip().lower())

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Plain-dict copy for the host-stats diagnostics file."""
        return {h: asdict(st) for h, st in sorted(self._hosts.items())}


__all__ = [
    "HostStats",
    "HostRegistry",
    "jitter",
    "PENALTY_MIN",
    "PENALTY_MAX",
    "PENALTY_BUMP",
    "PENALTY_DECAY",
]
