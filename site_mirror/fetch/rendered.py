"""
Script-executing page fetching through a shared headless Chromium.

One browser process is launched lazily and reused by every job that asks
for rendering; each navigation gets its own browser context so a crashed
or timed-out page cannot disturb another job's navigation.
"""

import asyncio

import requests
from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from site_mirror.config import (
    BROWSER_ARGS,
    RENDER_SETTLE_MS,
    RENDER_TIMEOUT_MS,
    RENDER_WAIT_UNTIL,
    REQUEST_TIMEOUT,
    USER_AGENT,
    VIEWPORT,
)
from site_mirror.core.jobs import CancellationToken, JobStatus, RENDER_MODE_RENDERED
from site_mirror.errors import FetchError, PageTooLargeError
from site_mirror.extraction.html_parser import ASSET_KINDS, PageLinks
from site_mirror.fetch.base import FetchedPage, PageFetcher
from site_mirror.utils.log import log

# Runs inside the page; returns {items: [{kind, url}], links: [...]}
_EXTRACT_RESOURCES_JS = r"""
() => {
    const items = [];
    const cssUrl = /url\(['"]?([^'")\s]+)['"]?\)/;
    const fontExt = /\.(woff2?|ttf|otf|eot)(\?|$)/i;

    document.querySelectorAll('link[rel="stylesheet"]').forEach(el => {
        if (el.href) items.push({kind: fontExt.test(el.href) ? 'font' : 'style', url: el.href});
    });
    document.querySelectorAll('link[rel="preload"][as="font"]').forEach(el => {
        if (el.href) items.push({kind: 'font', url: el.href});
    });
    document.querySelectorAll('style').forEach(el => {
        const imports = el.textContent.match(/@import\s+url\(['"]?([^'")\s]+)['"]?\)/g);
        if (imports) {
            imports.forEach(imp => {
                const m = imp.match(cssUrl);
                if (m) items.push({kind: 'style', url: new URL(m[1], document.baseURI).href});
            });
        }
    });
    document.querySelectorAll('script[src]').forEach(el => {
        if (el.src) items.push({kind: 'script', url: el.src});
    });
    document.querySelectorAll('img[src]').forEach(el => {
        if (el.src) items.push({kind: 'image', url: el.src});
    });
    document.querySelectorAll('[style*="background"]').forEach(el => {
        const m = el.style.cssText.match(cssUrl);
        if (m) items.push({kind: 'image', url: new URL(m[1], document.baseURI).href});
    });
    document.querySelectorAll('video[src], audio[src], video source, audio source').forEach(el => {
        const src = el.src || el.getAttribute('src');
        if (src) items.push({kind: 'media', url: src});
    });

    const links = [];
    document.querySelectorAll('a[href]').forEach(el => {
        if (el.href) links.push(el.href);
    });
    return {items, links};
}
"""


class BrowserPool:
    """Lazily launched Chromium shared by all rendering jobs."""

    def __init__(self, headless: bool = True) -> None:
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def browser(self) -> Browser:
        """Return the shared browser, launching it on first use."""
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            log.info("[RENDER] Launching headless Chromium")
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=BROWSER_ARGS,
            )
            return self._browser

    async def new_context(self, **kwargs) -> BrowserContext:
        browser = await self.browser()
        return await browser.new_context(**kwargs)

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                except PlaywrightError as exc:
                    log.debug("Browser close failed: %s", exc)
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
                log.info("[RENDER] Headless Chromium stopped")


class RenderedFetcher(PageFetcher):
    """Navigate to each page, wait for the network to settle, then read
    the live DOM's markup, resources and links."""

    status = JobStatus.RENDERING
    render_mode = RENDER_MODE_RENDERED

    def __init__(
        self,
        pool: BrowserPool,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
        render_timeout_ms: int = RENDER_TIMEOUT_MS,
        settle_ms: int = RENDER_SETTLE_MS,
    ) -> None:
        super().__init__(session=session, timeout=timeout)
        self.pool = pool
        self.render_timeout_ms = render_timeout_ms
        self.settle_ms = settle_ms

    async def fetch_page(
        self, url: str, max_bytes: int, token: CancellationToken
    ) -> FetchedPage:
        token.raise_if_cancelled()
        # Launch failures are not per-page problems; let them end the job
        context = await self.pool.new_context(viewport=VIEWPORT, user_agent=USER_AGENT)
        try:
            page = await context.new_page()
            response = await page.goto(
                url, wait_until=RENDER_WAIT_UNTIL, timeout=self.render_timeout_ms,
            )
            if response is not None and not response.ok:
                raise FetchError(f"HTTP {response.status} for {url}")
            await page.wait_for_timeout(self.settle_ms)
            html = await page.content()
            extracted = await page.evaluate(_EXTRACT_RESOURCES_JS)
            final_url = page.url
        except PlaywrightError as exc:
            raise FetchError(f"Render failed for {url}: {exc}") from exc
        finally:
            try:
                await context.close()
            except PlaywrightError as exc:
                log.debug("Context close failed for %s: %s", url, exc)

        content = html.encode("utf-8")
        if len(content) > max_bytes:
            raise PageTooLargeError(url, len(content), max_bytes)

        found = PageLinks()
        for href in extracted.get("links") or []:
            found.add_link(href, final_url)
        for item in extracted.get("items") or []:
            kind = item.get("kind")
            if kind in ASSET_KINDS:
                found.add_asset(item.get("url"), final_url, kind)

        return FetchedPage(
            url=url,
            final_url=final_url,
            content=content,
            content_type="text/html; charset=utf-8",
            links=found.links,
            assets=found.assets,
        )
