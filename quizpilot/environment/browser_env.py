"""Async Playwright browser for the quiz player.

Besides launch/teardown the controller surfaces two page events the solver
needs: catalog requests (the quiz page fetching its ``components.json``)
and main-frame navigations (page-structure invalidation).  In assist mode it
also relays in-page requests to answer a single question.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Awaitable, Callable
from urllib.parse import urlparse

from playwright.async_api import Browser, Page, async_playwright

from quizpilot.environment.page_view import PlaywrightPageView

logger = logging.getLogger(__name__)

CatalogCallback = Callable[[str], Awaitable[None]]
NavigationCallback = Callable[[str], None]
AssistCallback = Callable[[list[str]], Awaitable[dict | None]]

ASSIST_BINDING = "quizpilotAssist"

# Installed once per document.  Hover fires once per container until the
# answer is reported applied; click always fires.
_ASSIST_JS = """
(selector) => {
    if (window.__quizpilotAssistInstalled) return;
    window.__quizpilotAssistInstalled = true;
    const busy = new WeakSet();
    const done = new WeakSet();
    const fire = (event) => {
        if (!(event.ctrlKey || event.altKey)) return;
        const path = event.composedPath ? event.composedPath() : [event.target];
        const container = path.find((el) => el instanceof Element && el.matches(selector));
        if (!container || busy.has(container)) return;
        if (event.type === 'mouseover' && done.has(container)) return;
        busy.add(container);
        Promise.resolve(window.quizpilotAssist(Array.from(container.classList)))
            .then((response) => { if (response && response.success) done.add(container); })
            .finally(() => busy.delete(container));
    };
    document.addEventListener('click', fire, true);
    document.addEventListener('mouseover', fire, true);
}
"""


def _get_playwright_proxy() -> dict | None:
    """Build Playwright proxy config from environment variables if present.

    Supports standard HTTP_PROXY / HTTPS_PROXY with user:password auth.
    Returns None if no proxy is configured.
    """
    proxy_url = os.environ.get("HTTP_PROXY") or os.environ.get("HTTPS_PROXY") or ""
    if not proxy_url:
        return None
    parsed = urlparse(proxy_url)
    if not parsed.hostname:
        return None
    proxy: dict = {"server": f"http://{parsed.hostname}:{parsed.port}"}
    if parsed.username:
        proxy["username"] = parsed.username
    if parsed.password:
        proxy["password"] = parsed.password
    return proxy


class BrowserController:
    def __init__(self, catalog_url_pattern: str = "components.json"):
        self.browser: Browser | None = None
        self.page: Page | None = None
        self.playwright = None
        self.catalog_url_pattern = catalog_url_pattern
        self.seen_catalog_urls: list[str] = []
        self._on_catalog: CatalogCallback | None = None
        self._on_navigation: NavigationCallback | None = None

    @property
    def view(self) -> PlaywrightPageView:
        if self.page is None:
            raise RuntimeError("browser not started")
        return PlaywrightPageView(self.page)

    def on_catalog(self, callback: CatalogCallback) -> None:
        self._on_catalog = callback

    def on_navigation(self, callback: NavigationCallback) -> None:
        self._on_navigation = callback

    async def launch(self, headless: bool = False) -> None:
        """Launch browser and wire page events.  ``view`` is usable afterwards."""
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=headless, proxy=_get_playwright_proxy(),
        )
        self.page = await self.browser.new_page()
        await self.page.set_viewport_size({"width": 1280, "height": 800})

        self.page.on("request", self._on_request)
        self.page.on("framenavigated", self._on_frame_navigated)

    async def goto(self, url: str) -> None:
        logger.info("Navigating to %s", url)
        await self.page.goto(url)

    async def enable_assist(self, callback: AssistCallback, container_selector: str) -> None:
        """Answer single questions on request from the page.

        Ctrl/Alt + click on a question container, or Ctrl/Alt + hover over
        one, calls *callback* with the container's class names.  Survives
        navigations through an init script.
        """
        async def binding(_source, class_names):
            try:
                return await callback(list(class_names or []))
            except Exception as e:
                logger.warning("Assist handler failed: %s", e)
                return {"success": False, "error": str(e)}

        await self.page.expose_binding(ASSIST_BINDING, binding)
        script = f"({_ASSIST_JS})({json.dumps(container_selector)})"
        await self.page.add_init_script(script)
        await self.page.evaluate(script)
        logger.info("Assist mode on: Ctrl/Alt + click or hover a question to answer it")

    async def wait_closed(self) -> None:
        """Block until the user closes the page."""
        await self.page.wait_for_event("close", timeout=0)

    async def _on_request(self, request) -> None:
        url = request.url
        if self.catalog_url_pattern not in url or url in self.seen_catalog_urls:
            return
        self.seen_catalog_urls.append(url)
        logger.info("Intercepted catalog request: %s", url)
        if self._on_catalog is not None:
            try:
                await self._on_catalog(url)
            except Exception as e:
                logger.warning("Catalog handler failed for %s: %s", url, e)

    def _on_frame_navigated(self, frame) -> None:
        if self.page is None or frame != self.page.main_frame:
            return
        if self._on_navigation is not None:
            self._on_navigation(frame.url)

    async def stop(self) -> None:
        """Close browser."""
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
