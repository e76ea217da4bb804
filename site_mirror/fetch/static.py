"""
Byte-level page fetching: plain HTTP GET plus markup parsing.
"""

import asyncio

from site_mirror.core.jobs import CancellationToken, JobStatus, RENDER_MODE_STATIC
from site_mirror.errors import FetchError
from site_mirror.extraction.html_parser import extract_page_links
from site_mirror.fetch.base import FetchedPage, PageFetcher
from site_mirror.session import fetch_bytes
from site_mirror.utils.log import log
from site_mirror.utils.url import hostname_of

_MARKUP_TYPES = ("text/html", "application/xhtml+xml")


class StaticFetcher(PageFetcher):
    """Fetch pages with ``requests`` and extract links with BeautifulSoup."""

    status = JobStatus.DOWNLOADING
    render_mode = RENDER_MODE_STATIC

    async def fetch_page(
        self, url: str, max_bytes: int, token: CancellationToken
    ) -> FetchedPage:
        token.raise_if_cancelled()
        resp = await asyncio.to_thread(
            fetch_bytes, self.session, url, self.timeout, max_bytes
        )

        # Reject cross-host redirects
        if hostname_of(resp.url) != hostname_of(url):
            raise FetchError(f"Redirect to external host {hostname_of(resp.url)}")
        if resp.url != url:
            log.debug("  Redirect: %s → %s", url, resp.url)

        page = FetchedPage(
            url=url,
            final_url=resp.url,
            content=resp.content,
            content_type=resp.content_type,
        )
        ct = resp.content_type.split(";")[0].strip().lower()
        if ct in _MARKUP_TYPES:
            found = extract_page_links(resp.content, resp.url)
            page.links = found.links
            page.assets = found.assets
        return page
