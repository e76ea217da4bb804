"""
Tests for the headless-browser fetcher and the shared browser pool,
with Playwright replaced by mocks.
"""

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from playwright.async_api import Error as PlaywrightError

from site_mirror.config import BROWSER_ARGS, RENDER_SETTLE_MS, RENDER_TIMEOUT_MS
from site_mirror.core.jobs import CancellationToken, JobStatus
from site_mirror.errors import FetchError, JobCancelledError, PageTooLargeError
from site_mirror.extraction.html_parser import FONT, IMAGE, SCRIPT, STYLE, Resource
from site_mirror.fetch.rendered import BrowserPool, RenderedFetcher

URL = "https://example.com/app"
HTML = "<html><body><div id='root'>rendered</div></body></html>"

EXTRACTED = {
    "items": [
        {"kind": "style", "url": "https://example.com/app.css"},
        {"kind": "font", "url": "https://example.com/f.woff2"},
        {"kind": "script", "url": "https://example.com/bundle.js"},
        {"kind": "image", "url": "https://example.com/hero.png"},
        {"kind": "image", "url": "https://example.com/hero.png"},
        {"kind": "image", "url": "data:image/gif;base64,R0lGOD"},
        {"kind": "iframe", "url": "https://example.com/frame.html"},
    ],
    "links": [
        "https://example.com/next",
        "https://example.com/next#section",
        "javascript:void(0)",
    ],
}


def _browser_mocks(html=HTML, extracted=None, status=200):
    page = MagicMock()
    page.url = URL
    response = MagicMock(ok=status < 400, status=status)
    page.goto = AsyncMock(return_value=response)
    page.wait_for_timeout = AsyncMock()
    page.content = AsyncMock(return_value=html)
    page.evaluate = AsyncMock(return_value=EXTRACTED if extracted is None else extracted)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    pool = MagicMock()
    pool.new_context = AsyncMock(return_value=context)
    return pool, context, page


class TestRenderedFetcher(unittest.IsolatedAsyncioTestCase):

    def _fetcher(self, pool):
        return RenderedFetcher(pool, session=MagicMock())

    async def test_reports_rendering(self):
        fetcher = self._fetcher(MagicMock())
        self.assertIs(fetcher.status, JobStatus.RENDERING)
        self.assertEqual(fetcher.render_mode, "rendered")

    async def test_renders_and_extracts(self):
        pool, context, page = _browser_mocks()
        result = await self._fetcher(pool).fetch_page(URL, 10_000, CancellationToken())

        self.assertEqual(result.content, HTML.encode("utf-8"))
        self.assertTrue(result.content_type.startswith("text/html"))
        self.assertEqual(result.links, ["https://example.com/next"])
        self.assertEqual(result.assets, [
            Resource("https://example.com/app.css", STYLE),
            Resource("https://example.com/f.woff2", FONT),
            Resource("https://example.com/bundle.js", SCRIPT),
            Resource("https://example.com/hero.png", IMAGE),
        ])
        page.goto.assert_awaited_once_with(
            URL, wait_until="networkidle", timeout=RENDER_TIMEOUT_MS,
        )
        page.wait_for_timeout.assert_awaited_once_with(RENDER_SETTLE_MS)
        context.close.assert_awaited_once()

    async def test_each_page_gets_its_own_context(self):
        pool, _, _ = _browser_mocks()
        fetcher = self._fetcher(pool)
        await fetcher.fetch_page(URL, 10_000, CancellationToken())
        await fetcher.fetch_page(URL + "/2", 10_000, CancellationToken())
        self.assertEqual(pool.new_context.await_count, 2)

    async def test_http_error_is_page_failure(self):
        pool, context, _ = _browser_mocks(status=404)
        with self.assertRaises(FetchError):
            await self._fetcher(pool).fetch_page(URL, 10_000, CancellationToken())
        context.close.assert_awaited_once()

    async def test_navigation_timeout_is_page_failure(self):
        pool, context, page = _browser_mocks()
        page.goto.side_effect = PlaywrightError("Timeout 60000ms exceeded")
        with self.assertRaises(FetchError):
            await self._fetcher(pool).fetch_page(URL, 10_000, CancellationToken())
        context.close.assert_awaited_once()

    async def test_too_large(self):
        pool, _, _ = _browser_mocks(html="x" * 5000)
        with self.assertRaises(PageTooLargeError):
            await self._fetcher(pool).fetch_page(URL, 1000, CancellationToken())

    async def test_cancelled_before_navigation(self):
        pool, _, _ = _browser_mocks()
        token = CancellationToken()
        token.cancel()
        with self.assertRaises(JobCancelledError):
            await self._fetcher(pool).fetch_page(URL, 10_000, token)
        pool.new_context.assert_not_awaited()

    async def test_browser_launch_failure_is_not_a_page_failure(self):
        pool = MagicMock()
        pool.new_context = AsyncMock(side_effect=PlaywrightError("Executable doesn't exist"))
        with self.assertRaises(PlaywrightError) as ctx:
            await self._fetcher(pool).fetch_page(URL, 10_000, CancellationToken())
        self.assertNotIsInstance(ctx.exception, FetchError)

    async def test_empty_extraction(self):
        pool, _, _ = _browser_mocks(extracted={})
        result = await self._fetcher(pool).fetch_page(URL, 10_000, CancellationToken())
        self.assertEqual(result.links, [])
        self.assertEqual(result.assets, [])


class TestBrowserPool(unittest.IsolatedAsyncioTestCase):

    def _playwright(self, connected=True):
        browser = MagicMock()
        browser.is_connected = MagicMock(return_value=connected)
        browser.close = AsyncMock()
        browser.new_context = AsyncMock(return_value="context")
        pw = MagicMock()
        pw.chromium.launch = AsyncMock(return_value=browser)
        pw.stop = AsyncMock()
        starter = MagicMock()
        starter.start = AsyncMock(return_value=pw)
        return starter, pw, browser

    async def test_launched_lazily_once(self):
        starter, pw, browser = self._playwright()
        with patch("site_mirror.fetch.rendered.async_playwright", return_value=starter):
            pool = BrowserPool()
            self.assertFalse(pool.started)
            first = await pool.browser()
            second = await pool.browser()
        self.assertIs(first, browser)
        self.assertIs(second, browser)
        pw.chromium.launch.assert_awaited_once_with(headless=True, args=BROWSER_ARGS)

    async def test_relaunch_after_disconnect(self):
        starter, pw, browser = self._playwright(connected=False)
        with patch("site_mirror.fetch.rendered.async_playwright", return_value=starter):
            pool = BrowserPool()
            await pool.browser()
            await pool.browser()
        self.assertEqual(pw.chromium.launch.await_count, 2)
        starter.start.assert_awaited_once()

    async def test_new_context_and_close(self):
        starter, pw, browser = self._playwright()
        with patch("site_mirror.fetch.rendered.async_playwright", return_value=starter):
            pool = BrowserPool()
            ctx = await pool.new_context(viewport={"width": 10, "height": 10})
            await pool.close()
        self.assertEqual(ctx, "context")
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()
        self.assertFalse(pool.started)

    async def test_close_without_launch(self):
        pool = BrowserPool()
        await pool.close()
        self.assertFalse(pool.started)


if __name__ == "__main__":
    unittest.main()
