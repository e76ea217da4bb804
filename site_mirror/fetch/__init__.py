"""Page fetching strategies: plain HTTP and headless-browser rendering."""

from site_mirror.fetch.base import FetchedPage, PageFetcher
from site_mirror.fetch.rendered import BrowserPool, RenderedFetcher
from site_mirror.fetch.static import StaticFetcher

__all__ = [
    "BrowserPool",
    "FetchedPage",
    "PageFetcher",
    "RenderedFetcher",
    "StaticFetcher",
]
