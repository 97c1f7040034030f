"""Playwright-based page capture into a Document."""

from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import Browser, Page, async_playwright, Error as PlaywrightError

from .document import Document, StorageArea

logger = logging.getLogger(__name__)

# Script globals the framework fingerprinting looks for.
FRAMEWORK_GLOBALS = ("React", "Vue", "angular", "jQuery", "$")

STATE_SCRIPT = """
(names) => {
    const state = { cookie: '', globals: [], local: null, session: null };
    try { state.cookie = document.cookie || ''; } catch (e) {}
    state.globals = names.filter(name => typeof window[name] !== 'undefined');
    try {
        state.local = Object.fromEntries(Object.entries(localStorage));
        state.session = Object.fromEntries(Object.entries(sessionStorage));
    } catch (e) {
        state.local = null;
        state.session = null;
    }
    return state;
}
"""


class PageCapture:
    """Loads live pages in headless Chromium and snapshots them as Documents."""

    def __init__(self, timeout: int = 30, headless: bool = True):
        self.timeout = timeout * 1000  # Convert to ms
        self.headless = headless
        self._playwright = None
        self._browser: Optional[Browser] = None

    async def start(self):
        """Start the browser instance."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                "--disable-dev-shm-usage",
                "--no-sandbox",
                "--disable-gpu",
            ],
        )
        logger.info("Browser started")

    async def stop(self):
        """Stop the browser instance."""
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._browser = None
        self._playwright = None
        logger.info("Browser stopped")

    async def capture(self, url: str) -> Document:
        """Navigate to ``url`` and return a Document of the rendered page."""
        if not self._browser:
            await self.start()

        context = await self._browser.new_context(ignore_https_errors=True)
        try:
            page = await context.new_page()
            try:
                await page.goto(url, timeout=self.timeout, wait_until="domcontentloaded")
                await page.wait_for_load_state("networkidle", timeout=self.timeout)
            except PlaywrightError as exc:
                # Keep whatever rendered before the timeout.
                logger.warning("Page load incomplete for %s: %s", url, str(exc)[:200])
            return await self._snapshot(page)
        finally:
            await context.close()

    async def _snapshot(self, page: Page) -> Document:
        html = await page.content()
        try:
            state = await page.evaluate(STATE_SCRIPT, list(FRAMEWORK_GLOBALS))
        except PlaywrightError as exc:
            logger.error("Error reading page state: %s", exc)
            state = {"cookie": "", "globals": [], "local": None, "session": None}

        local = state.get("local")
        session = state.get("session")
        return Document(
            html=html,
            url=page.url,
            cookie=state.get("cookie") or "",
            local_storage=StorageArea(local or {}, denied=local is None),
            session_storage=StorageArea(session or {}, denied=session is None),
            script_globals=state.get("globals") or [],
        )


async def capture_page(url: str, timeout: int = 30) -> Document:
    """One-shot capture helper."""
    capture = PageCapture(timeout=timeout)
    try:
        return await capture.capture(url)
    finally:
        await capture.stop()
