# tests/test_robots.py
from __future__ import annotations

import asyncio

import pytest

from labelscout.fetch.robots import RobotsGate, parse_robots, policy_from_text

ROBOTS = """
# comment line
User-agent: *
Disallow: /private
Allow: /private/public

User-agent: LabelScoutBot
Disallow: /members/export
"""


class TestParse:
    def test_groups(self):
        groups = parse_robots(ROBOTS)
        assert [g.uas for g in groups] == [["*"], ["labelscoutbot"]]
        assert len(groups[0].rules) == 2

    def test_specific_group_wins(self):
        pol = policy_from_text(ROBOTS, "LabelScoutBot/1.0")
        assert pol.allows("/members/export/all") is False
        # the * group does not apply once a specific group matched
        assert pol.allows("/private") is True

    def test_star_group(self):
        pol = policy_from_text(ROBOTS, "OtherBot")
        assert pol.allows("/private/x") is False
        assert pol.allows("/private/public/page") is True
        assert pol.allows("/members") is True

    def test_empty_file_allows_everything(self):
        assert policy_from_text("").allows("/anything") is True

    def test_query_ignored(self):
        pol = policy_from_text("User-agent: *\nDisallow: /search\n", "x")
        assert pol.allows("/search?q=acme") is False


class TestGate:
    @pytest.mark.asyncio
    async def test_disabled_gate_never_fetches(self, fake_fetcher_cls):
        fetcher = fake_fetcher_cls()
        gate = RobotsGate(fetcher, enabled=False)
        assert await gate.allowed("https://certs.example/private") is True
        assert fetcher.text_calls == []

    @pytest.mark.asyncio
    async def test_missing_robots_allows(self, fake_fetcher_cls):
        gate = RobotsGate(fake_fetcher_cls())
        assert await gate.allowed("https://certs.example/private") is True

    @pytest.mark.asyncio
    async def test_policy_cached_per_host(self, fake_fetcher_cls):
        fetcher = fake_fetcher_cls(texts={"https://certs.example/robots.txt": ROBOTS})
        gate = RobotsGate(fetcher, ua="OtherBot")
        results = await asyncio.gather(
            gate.allowed("https://certs.example/private/a"),
            gate.allowed("https://certs.example/members"),
            gate.allowed("https://certs.example/private/public/b"),
        )
        assert results == [False, True, True]
        assert fetcher.text_calls == ["https://certs.example/robots.txt"]
