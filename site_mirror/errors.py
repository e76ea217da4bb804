"""
Exception types raised by the mirroring service.
"""


class SiteMirrorError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(SiteMirrorError, ValueError):
    """A request was rejected at the boundary (bad address or identifier)."""


class JobNotFoundError(SiteMirrorError, KeyError):
    """No job is registered under the given identifier."""

    def __str__(self) -> str:
        return f"Job not found: {self.args[0]}" if self.args else "Job not found"


class FetchError(SiteMirrorError):
    """A single page or asset could not be fetched.

    Raised for network failures, timeouts and non-success HTTP status codes.
    The crawl engine logs it and moves on to the next resource.
    """


class PageTooLargeError(FetchError):
    """A page exceeded the per-page size threshold of its job."""

    def __init__(self, url: str, size: int, limit: int) -> None:
        super().__init__(f"{url} is {size} bytes (limit {limit})")
        self.url = url
        self.size = size
        self.limit = limit


class JobCancelledError(SiteMirrorError):
    """Raised at a suspension point once a job's cancellation was requested."""
