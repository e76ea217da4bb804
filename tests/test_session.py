"""
Tests for HTTP session building, the streaming byte fetch and the
static page fetcher.
"""

import unittest
from unittest.mock import MagicMock

import requests

from site_mirror.config import USER_AGENT
from site_mirror.core.jobs import CancellationToken
from site_mirror.errors import FetchError, JobCancelledError, PageTooLargeError
from site_mirror.fetch.static import StaticFetcher
from site_mirror.session import build_session, fetch_bytes

URL = "https://example.com/page"


def _response(status=200, chunks=(b"<html></html>",), headers=None, url=URL):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.url = url
    resp.headers = {"Content-Type": "text/html"} if headers is None else headers
    resp.iter_content.return_value = iter(chunks)
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


def _session(resp=None, exc=None):
    session = MagicMock()
    if exc is not None:
        session.get.side_effect = exc
    else:
        session.get.return_value = resp
    return session


class TestBuildSession(unittest.TestCase):

    def test_headers_and_adapters(self):
        session = build_session()
        self.assertEqual(session.headers["User-Agent"], USER_AGENT)
        adapter = session.get_adapter("https://example.com")
        self.assertEqual(adapter.max_retries.total, 3)
        self.assertIn(503, adapter.max_retries.status_forcelist)
        session.close()


class TestFetchBytes(unittest.TestCase):

    def test_success(self):
        resp = _response(chunks=(b"<html>", b"", b"</html>"))
        result = fetch_bytes(_session(resp), URL)
        self.assertEqual(result.content, b"<html></html>")
        self.assertEqual(result.content_type, "text/html")
        self.assertEqual(result.status_code, 200)
        self.assertEqual(result.url, URL)

    def test_streams_with_redirects(self):
        session = _session(_response())
        fetch_bytes(session, URL, timeout=5)
        session.get.assert_called_once_with(URL, timeout=5, allow_redirects=True, stream=True)

    def test_final_url_after_redirect(self):
        resp = _response(url="https://example.com/page/")
        self.assertEqual(fetch_bytes(_session(resp), URL).url, "https://example.com/page/")

    def test_missing_content_type(self):
        resp = _response(headers={})
        self.assertEqual(fetch_bytes(_session(resp), URL).content_type,
                         "application/octet-stream")

    def test_http_error_status(self):
        with self.assertRaises(FetchError) as ctx:
            fetch_bytes(_session(_response(status=404)), URL)
        self.assertIn("404", str(ctx.exception))

    def test_network_error(self):
        session = _session(exc=requests.ConnectionError("refused"))
        with self.assertRaises(FetchError):
            fetch_bytes(session, URL)

    def test_timeout(self):
        session = _session(exc=requests.Timeout("slow"))
        with self.assertRaises(FetchError):
            fetch_bytes(session, URL)

    def test_declared_length_over_limit(self):
        resp = _response(headers={"Content-Type": "text/html", "Content-Length": "5000"})
        with self.assertRaises(PageTooLargeError) as ctx:
            fetch_bytes(_session(resp), URL, max_bytes=1000)
        self.assertEqual(ctx.exception.size, 5000)
        self.assertEqual(ctx.exception.limit, 1000)
        resp.iter_content.assert_not_called()

    def test_streamed_body_over_limit(self):
        resp = _response(chunks=(b"x" * 600, b"x" * 600, b"x" * 600))
        with self.assertRaises(PageTooLargeError) as ctx:
            fetch_bytes(_session(resp), URL, max_bytes=1000)
        self.assertEqual(ctx.exception.size, 1200)

    def test_too_large_is_a_fetch_error(self):
        self.assertTrue(issubclass(PageTooLargeError, FetchError))

    def test_body_at_limit_accepted(self):
        resp = _response(chunks=(b"x" * 1000,))
        self.assertEqual(len(fetch_bytes(_session(resp), URL, max_bytes=1000).content), 1000)

    def test_interrupted_stream(self):
        resp = _response()
        resp.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("cut")
        with self.assertRaises(FetchError):
            fetch_bytes(_session(resp), URL)


class TestStaticFetcher(unittest.IsolatedAsyncioTestCase):

    async def test_markup_is_parsed(self):
        html = b'<a href="/next">n</a><img src="/i.png">'
        resp = _response(chunks=(html,), headers={"Content-Type": "text/html; charset=utf-8"})
        fetcher = StaticFetcher(session=_session(resp))
        page = await fetcher.fetch_page(URL, 10_000, CancellationToken())
        self.assertEqual(page.content, html)
        self.assertEqual(page.links, ["https://example.com/next"])
        self.assertEqual([a.url for a in page.assets], ["https://example.com/i.png"])

    async def test_non_markup_not_parsed(self):
        resp = _response(chunks=(b'<a href="/x">',), headers={"Content-Type": "text/plain"})
        page = await StaticFetcher(session=_session(resp)).fetch_page(
            URL, 10_000, CancellationToken())
        self.assertEqual(page.links, [])
        self.assertEqual(page.assets, [])

    async def test_cross_host_redirect_rejected(self):
        resp = _response(url="https://elsewhere.net/landing")
        with self.assertRaises(FetchError):
            await StaticFetcher(session=_session(resp)).fetch_page(
                URL, 10_000, CancellationToken())

    async def test_size_limit_passed_through(self):
        resp = _response(chunks=(b"x" * 2000,))
        with self.assertRaises(PageTooLargeError):
            await StaticFetcher(session=_session(resp)).fetch_page(
                URL, 1000, CancellationToken())

    async def test_asset_fetch_has_no_size_limit(self):
        resp = _response(chunks=(b"x" * 2000,), headers={"Content-Type": "image/png"})
        data = await StaticFetcher(session=_session(resp)).fetch_asset(
            "https://example.com/big.png", CancellationToken())
        self.assertEqual(len(data), 2000)

    async def test_cancelled_before_request(self):
        token = CancellationToken()
        token.cancel()
        session = _session(_response())
        with self.assertRaises(JobCancelledError):
            await StaticFetcher(session=session).fetch_page(URL, 10_000, token)
        session.get.assert_not_called()


if __name__ == "__main__":
    unittest.main()
