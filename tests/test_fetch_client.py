# tests/test_fetch_client.py
from __future__ import annotations

import httpx
import pytest
import respx
from httpx import Response

from labelscout.fetch import client as client_mod
from labelscout.fetch import hosts as hosts_mod

HOST = "certs.example"
URL = f"https://{HOST}/members"
HTML = "<html><body><a href='/brands/acme'>Acme Corp</a></body></html>"


@pytest.fixture
def hosts():
    return hosts_mod.HostRegistry()


@pytest.fixture
def fetcher(fetch_config, hosts):
    return client_mod.AsyncFetcher(fetch_config, hosts)


# -------------------------------- success path ----------------------------------------


class TestSuccess:
    @pytest.mark.asyncio
    async def test_html_body_returned_and_counted(self, fetcher, hosts):
        with respx.mock(assert_all_called=True) as router:
            router.get(URL).mock(return_value=Response(200, html=HTML))
            body = await fetcher.fetch(URL)
        await fetcher.aclose()

        assert body == HTML
        st = hosts.stats(HOST)
        assert st.totalRequests == 1
        assert st.successHtml == 1
        assert st.statusCounts == {"200": 1}
        assert st.lastStatus == 200
        assert st.penaltyMultiplier == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_non_html_is_not_a_page(self, fetcher, hosts):
        with respx.mock() as router:
            route = router.get(URL).mock(return_value=Response(200, json={"ok": True}))
            body = await fetcher.fetch(URL)
        await fetcher.aclose()

        assert body is None
        assert route.call_count == 1  # 200 non-HTML is not retried
        assert hosts.stats(HOST).nonHtmlOrEmpty == 1

    @pytest.mark.asyncio
    async def test_empty_html_is_not_a_page(self, fetcher, hosts):
        with respx.mock() as router:
            router.get(URL).mock(return_value=Response(200, html="   "))
            assert await fetcher.fetch(URL) is None
        await fetcher.aclose()
        assert hosts.stats(HOST).nonHtmlOrEmpty == 1

    @pytest.mark.asyncio
    async def test_body_truncated(self, fetch_config, hosts):
        from dataclasses import replace

        fetcher = client_mod.AsyncFetcher(replace(fetch_config, max_body_bytes=10), hosts)
        with respx.mock() as router:
            router.get(URL).mock(return_value=Response(200, html=HTML))
            body = await fetcher.fetch(URL)
        await fetcher.aclose()
        assert body == HTML[:10]


# -------------------------------- retries & penalties ---------------------------------


class TestRetries:
    @pytest.mark.asyncio
    async def test_throttle_bumps_penalty_monotonically(self, fetcher, hosts):
        seen: list[float] = []
        real_bump = hosts.bump_penalty

        async def spy(host):
            value = await real_bump(host)
            seen.append(value)
            return value

        hosts.bump_penalty = spy

        with respx.mock() as router:
            route = router.get(URL).mock(return_value=Response(429))
            body = await fetcher.fetch(URL)
        await fetcher.aclose()

        assert body is None
        assert route.call_count == 3  # first try + FETCH_RETRIES=2
        assert seen == pytest.approx([1.3, 1.69, 2.197])
        assert seen == sorted(seen)
        assert hosts.stats(HOST).blockCount == 3

    @pytest.mark.asyncio
    async def test_penalty_clamped_at_max(self, fetcher, hosts):
        with respx.mock() as router:
            router.get(URL).mock(return_value=Response(403))
            await fetcher.fetch(URL)
            await fetcher.fetch(URL)
        await fetcher.aclose()
        assert hosts.penalty(HOST) == pytest.approx(hosts_mod.PENALTY_MAX)

    @pytest.mark.asyncio
    async def test_success_decays_but_never_below_one(self, fetcher, hosts):
        await hosts.bump_penalty(HOST)
        with respx.mock() as router:
            router.get(URL).mock(return_value=Response(200, html=HTML))
            await fetcher.fetch(URL)
            assert hosts.penalty(HOST) == pytest.approx(1.3 * 0.95)
            for _ in range(20):
                await fetcher.fetch(URL)
        await fetcher.aclose()
        assert hosts.penalty(HOST) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_server_error_then_success(self, fetcher, hosts):
        with respx.mock() as router:
            route = router.get(URL).mock(side_effect=[Response(503), Response(200, html=HTML)])
            body = await fetcher.fetch(URL)
        await fetcher.aclose()
        assert body == HTML
        assert route.call_count == 2
        assert hosts.stats(HOST).statusCounts == {"503": 1, "200": 1}

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self, fetcher):
        with respx.mock() as router:
            route = router.get(URL).mock(return_value=Response(404, html="<p>nope</p>"))
            res = await fetcher.fetch_result(URL)
        await fetcher.aclose()
        assert res.body is None
        assert res.reason == "http-error"
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_transport_errors_exhaust_to_none(self, fetcher, hosts):
        with respx.mock() as router:
            route = router.get(URL).mock(side_effect=httpx.ConnectError("boom"))
            res = await fetcher.fetch_result(URL)
        await fetcher.aclose()
        assert res.body is None
        assert res.reason == "error:ConnectError"
        assert route.call_count == 3
        assert hosts.stats(HOST).errorCount == 3

    @pytest.mark.asyncio
    async def test_backoff_is_linear(self, fetch_config, hosts, monkeypatch):
        from dataclasses import replace

        slept: list[float] = []

        async def fake_sleep(dt):
            slept.append(dt)

        monkeypatch.setattr(client_mod.asyncio, "sleep", fake_sleep)
        fetcher = client_mod.AsyncFetcher(replace(fetch_config, backoff_base_s=0.5), hosts)
        with respx.mock() as router:
            router.get(URL).mock(return_value=Response(500))
            await fetcher.fetch(URL)
        await fetcher.aclose()
        assert slept == [0.5, 1.0]


# -------------------------------- plain text ------------------------------------------


class TestFetchText:
    @pytest.mark.asyncio
    async def test_robots_text(self, fetcher, hosts):
        with respx.mock() as router:
            router.get(f"https://{HOST}/robots.txt").mock(
                return_value=Response(200, text="User-agent: *\nDisallow: /private\n")
            )
            text = await fetcher.fetch_text(f"https://{HOST}/robots.txt")
        await fetcher.aclose()
        assert "Disallow: /private" in text
        assert hosts.stats(HOST).totalRequests == 1

    @pytest.mark.asyncio
    async def test_missing_returns_none(self, fetcher):
        with respx.mock() as router:
            router.get(f"https://{HOST}/sitemap.xml").mock(return_value=Response(404))
            assert await fetcher.fetch_text(f"https://{HOST}/sitemap.xml") is None
        await fetcher.aclose()


def test_content_type_detection():
    assert client_mod.is_html_content_type("text/html; charset=utf-8") is True
    assert client_mod.is_html_content_type("application/xhtml+xml") is True
    assert client_mod.is_html_content_type("application/json") is False
    assert client_mod.is_html_content_type(None) is False
