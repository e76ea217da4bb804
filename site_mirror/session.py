"""
HTTP session creation and the blocking byte-fetch primitive.

Provides sessions with:
* Automatic retry logic on 5xx errors
* A fixed browser User-Agent
* Streaming downloads with an optional size cap
"""

from dataclasses import dataclass

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from site_mirror.config import (
    MAX_RETRIES,
    REQUEST_TIMEOUT,
    RETRY_STATUS_FORCELIST,
    STREAM_CHUNK,
    USER_AGENT,
)
from site_mirror.errors import FetchError, PageTooLargeError


def build_session() -> requests.Session:
    """Return a ``requests.Session`` with retry logic and keep-alive."""
    session = requests.Session()
    retry = Retry(
        total=MAX_RETRIES,
        backoff_factor=0.5,
        status_forcelist=list(RETRY_STATUS_FORCELIST),
    )
    adapter = HTTPAdapter(
        max_retries=retry,
        pool_connections=10,
        pool_maxsize=10,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;q=0.9,"
            "image/avif,image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
    })
    return session


@dataclass
class HttpResponse:
    url: str
    status_code: int
    content_type: str
    content: bytes


def fetch_bytes(
    session: requests.Session,
    url: str,
    timeout: float = REQUEST_TIMEOUT,
    max_bytes: int | None = None,
) -> HttpResponse:
    """
    GET *url* and return its body.

    Raises :class:`FetchError` on network errors and non-success status
    codes, and :class:`PageTooLargeError` as soon as the body is known to
    exceed *max_bytes* (from ``Content-Length`` or while streaming).
    """
    try:
        resp = session.get(url, timeout=timeout, allow_redirects=True, stream=True)
    except requests.RequestException as exc:
        raise FetchError(f"Request failed for {url}: {exc}") from exc

    with resp:
        if not resp.ok:
            raise FetchError(f"HTTP {resp.status_code} for {url}")

        if max_bytes is not None:
            declared = resp.headers.get("Content-Length", "")
            if declared.isdigit() and int(declared) > max_bytes:
                raise PageTooLargeError(url, int(declared), max_bytes)

        chunks: list[bytes] = []
        total = 0
        try:
            for chunk in resp.iter_content(chunk_size=STREAM_CHUNK):
                if not chunk:
                    continue
                total += len(chunk)
                if max_bytes is not None and total > max_bytes:
                    raise PageTooLargeError(url, total, max_bytes)
                chunks.append(chunk)
        except requests.RequestException as exc:
            raise FetchError(f"Download interrupted for {url}: {exc}") from exc

        return HttpResponse(
            url=resp.url or url,
            status_code=resp.status_code,
            content_type=resp.headers.get("Content-Type", "application/octet-stream"),
            content=b"".join(chunks),
        )
