# tests/test_hosts.py
from __future__ import annotations

import asyncio

import pytest

from labelscout.fetch import hosts as hosts_mod
from labelscout.fetch.hosts import PENALTY_MAX, PENALTY_MIN, HostRegistry


class TestPenalty:
    @pytest.mark.asyncio
    async def test_bump_and_decay_stay_clamped(self):
        reg = HostRegistry()
        values = [await reg.bump_penalty("a.example") for _ in range(10)]
        assert values == sorted(values)
        assert max(values) == PENALTY_MAX
        for _ in range(100):
            await reg.decay_penalty("a.example")
        assert reg.penalty("a.example") == PENALTY_MIN

    def test_unknown_host_has_no_penalty(self):
        assert HostRegistry().penalty("never.example") == PENALTY_MIN

    @pytest.mark.asyncio
    async def test_host_names_normalized(self):
        reg = HostRegistry()
        await reg.bump_penalty(" A.Example ")
        assert reg.penalty("a.example") == pytest.approx(1.3)

    @pytest.mark.asyncio
    async def test_delay_scales_with_penalty(self, monkeypatch):
        monkeypatch.setattr(hosts_mod.random, "uniform", lambda a, b: b)
        reg = HostRegistry()
        assert reg.delay_for("a.example", 0.9, 0.7) == pytest.approx(1.6)
        await reg.bump_penalty("a.example")
        assert reg.delay_for("a.example", 0.9, 0.7) == pytest.approx(1.6 * 1.3)


class TestStats:
    @pytest.mark.asyncio
    async def test_concurrent_updates_are_not_lost(self):
        reg = HostRegistry()
        await asyncio.gather(
            *(reg.record_response("a.example", 200, is_html=True, duration_ms=5) for _ in range(50)),
            *(reg.record_response("a.example", 429, is_html=False, duration_ms=5) for _ in range(25)),
            *(reg.record_error("a.example", "ReadTimeout", duration_ms=5) for _ in range(10)),
        )
        st = reg.stats("a.example")
        assert st.totalRequests == 85
        assert st.successHtml == 50
        assert st.nonHtmlOrEmpty == 25
        assert st.blockCount == 25
        assert st.errorCount == 10
        assert st.statusCounts == {"200": 50, "429": 25}

    @pytest.mark.asyncio
    async def test_snapshot_is_plain_and_sorted(self):
        reg = HostRegistry()
        await reg.record_response("b.example", 200, is_html=True, duration_ms=1)
        await reg.record_response("a.example", 404, is_html=False, duration_ms=1)
        snap = reg.snapshot()
        assert list(snap) == ["a.example", "b.example"]
        assert snap["a.example"]["statusCounts"] == {"404": 1}
        assert snap["b.example"]["penaltyMultiplier"] == PENALTY_MIN
