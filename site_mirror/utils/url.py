"""
URL resolution, host filtering and path-mapping helpers.
"""

import hashlib
import posixpath
import urllib.parse
from pathlib import Path

from site_mirror.config import (
    ALLOWED_SCHEMES,
    BLOCKED_HOST_PATTERNS,
    EXTERNAL_ASSET_DIR,
    QUERY_HASH_LEN,
    UNSAFE_PATH_CHARS_RE,
)
from site_mirror.errors import ValidationError

_REJECTED_PREFIXES = ("#", "javascript:", "vbscript:", "data:", "mailto:", "tel:")

_MARKUP_TYPES = ("text/html", "application/xhtml+xml")


def canonical_url(url: str) -> str:
    """Drop the fragment and give a bare host the root path ``/``.

    Every address that enters a frontier goes through here, so
    ``https://example.com``, ``https://example.com/`` and
    ``https://example.com/#top`` are one page.
    """
    absolute, _ = urllib.parse.urldefrag(url)
    parsed = urllib.parse.urlparse(absolute)
    if not parsed.path:
        parsed = parsed._replace(path="/")
    return urllib.parse.urlunparse(parsed)


def resolve_link(raw: str | None, base: str) -> str | None:
    """
    Resolve *raw* against *base* and return an absolute, crawlable URL.

    Returns ``None`` for empty, fragment-only, ``javascript:``, ``data:``
    and ``mailto:`` references, and for anything that does not resolve to
    ``http://`` or ``https://``.  The fragment is dropped so that
    ``/page#a`` and ``/page#b`` deduplicate to the same address.
    """
    if not raw:
        return None
    raw = raw.strip()
    if not raw or raw.lower().startswith(_REJECTED_PREFIXES):
        return None

    try:
        absolute = canonical_url(urllib.parse.urljoin(base, raw))
        parsed = urllib.parse.urlparse(absolute)
    except ValueError:
        return None

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        return None
    return absolute


def hostname_of(url: str) -> str:
    """Lower-cased hostname of *url*, or an empty string."""
    try:
        return urllib.parse.urlparse(url).hostname or ""
    except ValueError:
        return ""


def is_same_host(url: str, host: str) -> bool:
    """True when *url* has exactly the hostname *host* (no subdomain match)."""
    return bool(host) and hostname_of(url) == host.lower()


def is_blocked_host(host: str) -> bool:
    """True for loopback, private and link-local host names."""
    host = host.lower().strip("[]")
    return any(p.search(host) for p in BLOCKED_HOST_PATTERNS)


def validate_seed_url(raw: str | None) -> str:
    """
    Check a user-supplied start address and return its canonical form
    (see :func:`canonical_url`).

    Raises :class:`~site_mirror.errors.ValidationError` when the address is
    missing, not ``http``/``https``, has no host, or points at a private or
    loopback host.
    """
    if not raw or not str(raw).strip():
        raise ValidationError("URL is required")
    url = str(raw).strip()
    try:
        parsed = urllib.parse.urlparse(url)
        host = parsed.hostname or ""
    except ValueError as exc:
        raise ValidationError(f"Invalid URL: {exc}") from exc

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not host:
        raise ValidationError("Invalid URL. Must be a valid http or https URL.")
    if is_blocked_host(host):
        raise ValidationError("Cannot download from localhost or private networks")
    return canonical_url(url)


def _safe_relative(path: str) -> str:
    """Strip dot segments and unsafe characters from a URL path."""
    parts = []
    for segment in path.split("/"):
        if segment in ("", ".", ".."):
            continue
        parts.append(UNSAFE_PATH_CHARS_RE.sub("_", urllib.parse.unquote(segment)))
    return "/".join(parts)


def url_to_local_path(url: str, output_dir: Path, content_type: str = "") -> Path:
    """
    Map a page URL to a file inside *output_dir*, mirroring the server's
    directory structure.

    The root path becomes ``index.html``, a trailing slash gets
    ``index.html`` appended, and markup content whose path lacks an
    ``.html``/``.htm`` extension gets ``.html`` appended.

    A query string adds a short hash to the file stem
    (``list.html?page=2`` becomes ``list_<hash>.html``) so that pages
    differing only in their query do not overwrite each other.
    """
    parsed = urllib.parse.urlparse(url)
    raw_path = parsed.path or "/"
    path = _safe_relative(posixpath.normpath(raw_path))

    if not path:
        path = "index.html"
    elif raw_path.endswith("/"):
        path += "/index.html"
    else:
        ct = content_type.split(";")[0].strip().lower()
        if ct in _MARKUP_TYPES and not path.lower().endswith((".html", ".htm")):
            path += ".html"

    local = output_dir / Path(path)
    if parsed.query:
        digest = hashlib.md5(parsed.query.encode("utf-8")).hexdigest()[:QUERY_HASH_LEN]
        local = local.with_name(f"{local.stem}_{digest}{local.suffix}")
    return local


def asset_local_path(url: str, output_dir: Path, page_host: str) -> Path | None:
    """
    Map an asset URL to a file inside *output_dir*.

    Assets on another host are kept apart under ``_external/<host>/``.
    Returns ``None`` when the URL has no usable path.
    """
    parsed = urllib.parse.urlparse(url)
    if not parsed.path or parsed.path == "/":
        return None
    path = _safe_relative(posixpath.normpath(parsed.path))
    if not path:
        return None

    host = (parsed.hostname or "").lower()
    if host and host != page_host.lower():
        return output_dir / EXTERNAL_ASSET_DIR / UNSAFE_PATH_CHARS_RE.sub("_", host) / Path(path)
    return output_dir / Path(path)


def path_label(url: str) -> str:
    """Short human-readable label for progress messages (the URL path)."""
    return urllib.parse.urlparse(url).path or "/"
