"""
The page-fetching capability shared by both crawl strategies.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import requests

from site_mirror.config import REQUEST_TIMEOUT
from site_mirror.core.jobs import CancellationToken, JobStatus, RENDER_MODE_STATIC
from site_mirror.extraction.html_parser import Resource
from site_mirror.session import build_session, fetch_bytes


@dataclass
class FetchedPage:
    """A materialised page plus everything it points at."""
    url: str
    final_url: str
    content: bytes
    content_type: str
    links: list[str] = field(default_factory=list)
    assets: list[Resource] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.content)


class PageFetcher(ABC):
    """
    How a job obtains a page and its resource/link list.

    One fetcher is built per job and used for that job only.  Assets are
    always fetched as raw bytes through the job's HTTP session, whatever
    the page strategy.
    """

    #: Job status reported while this strategy traverses the site
    status: JobStatus = JobStatus.DOWNLOADING
    #: ``renderMode`` value published with progress snapshots
    render_mode: str = RENDER_MODE_STATIC

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.session = session or build_session()
        self.timeout = timeout

    @abstractmethod
    async def fetch_page(
        self, url: str, max_bytes: int, token: CancellationToken
    ) -> FetchedPage:
        """Materialise *url*.

        Raises :class:`~site_mirror.errors.FetchError` when this one page
        cannot be obtained and :class:`~site_mirror.errors.PageTooLargeError`
        when it exceeds *max_bytes*.
        """

    async def fetch_asset(self, url: str, token: CancellationToken) -> bytes:
        """Download one asset's bytes; raises ``FetchError`` on failure."""
        token.raise_if_cancelled()
        resp = await asyncio.to_thread(fetch_bytes, self.session, url, self.timeout)
        return resp.content

    async def close(self) -> None:
        self.session.close()
