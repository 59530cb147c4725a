"""
Playwright-based renderer for JavaScript-only directory pages.

Best-effort fallback: used only when HEADLESS_FALLBACK is on and the plain
fetch returned nothing. Playwright is an optional extra (``pip install
labelscout[headless]``); when it is missing the renderer disables itself after
one warning.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .client import random_user_agent

log = logging.getLogger(__name__)


class HeadlessRenderer:
    """One shared Chromium instance per run, one page per render."""

    def __init__(self, timeout_ms: int = 45_000, settle_ms: int = 1_200) -> None:
        self.timeout_ms = timeout_ms
        self.settle_ms = settle_ms
        self._playwright: Any = None
        self._browser: Any = None
        self._available: bool | None = None
        self._start_lock = asyncio.Lock()

    async def _ensure_started(self) -> bool:
        async with self._start_lock:
            if self._available is not None:
                return self._available
            try:
                from playwright.async_api import async_playwright
            except ImportError:
                log.warning("playwright not installed; headless fallback disabled")
                self._available = False
                return False
            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=True)
            except Exception as exc:  # browser binaries missing, sandbox errors, ...
                log.warning("failed to launch headless browser: %s", exc)
                self._available = False
                return False
            self._available = True
            log.info("headless browser started for JS fallback")
            return True

    async def render(self, url: str) -> str | None:
        if not await self._ensure_started():
            return None
        page = await self._browser.new_page(user_agent=random_user_agent())
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            # late DOM updates
            await page.wait_for_timeout(self.settle_ms)
            html = await page.content()
            log.debug("headless rendered %s: %d chars", url, len(html))
            return html
        except Exception as exc:
            log.warning("headless render failed for %s: %s", url, exc)
            return None
        finally:
            await page.close()

    async def aclose(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


__all__ = ["HeadlessRenderer"]
