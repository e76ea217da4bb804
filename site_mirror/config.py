"""
Configuration constants for the site mirroring service.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger("site-mirror")

# ---------------------------------------------------------------------------
# Job option defaults and bounds
# ---------------------------------------------------------------------------
DEFAULT_DEPTH = 2
MIN_DEPTH = 1
MAX_DEPTH = 5
DEFAULT_MAX_SIZE = 100
MIN_MAX_SIZE = 1
MAX_MAX_SIZE = 500

# maxSize is expressed in tenths of a MiB per page
MAX_SIZE_DIVISOR = 10
MIB = 1024 * 1024

# ---------------------------------------------------------------------------
# Fetch tuning
# ---------------------------------------------------------------------------
REQUEST_TIMEOUT = 30
MAX_RETRIES = 3
RETRY_STATUS_FORCELIST = (500, 502, 503, 504)
STREAM_CHUNK = 65536
ASSET_CONCURRENCY = 4          # concurrent asset fetches per job

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# ---------------------------------------------------------------------------
# Rendering (headless Chromium)
# ---------------------------------------------------------------------------
RENDER_TIMEOUT_MS = 60000
RENDER_SETTLE_MS = 2000        # extra wait for late dynamic content
RENDER_WAIT_UNTIL = "networkidle"
VIEWPORT = {"width": 1920, "height": 1080}
BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
]

# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------
PROGRESS_CEILING = 85          # traversal never reports more than this
PROGRESS_HEADROOM = 10
ARCHIVE_PROGRESS = 90

# ---------------------------------------------------------------------------
# Artifact store and steward
# ---------------------------------------------------------------------------
DEFAULT_STORE_DIR = "downloads"
DOWNLOADS_URL_PREFIX = "/downloads"
RETENTION_SECONDS = 60 * 60
CLEANUP_INTERVAL_SECONDS = 15 * 60
MAX_STORAGE_MB = 1024
STORAGE_WATERMARK = 0.8

# ---------------------------------------------------------------------------
# Address filtering
# ---------------------------------------------------------------------------
ALLOWED_SCHEMES = ("http", "https")

# Hosts a job may never be pointed at (loopback, private, link-local)
BLOCKED_HOST_PATTERNS = [
    re.compile(r"^localhost$", re.I),
    re.compile(r"^127\."),
    re.compile(r"^10\."),
    re.compile(r"^172\.(1[6-9]|2[0-9]|3[0-1])\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^0\."),
    re.compile(r"^::1$"),
    re.compile(r"^fc00:", re.I),
    re.compile(r"^fe80:", re.I),
]

# Characters that are not allowed in local file names
UNSAFE_PATH_CHARS_RE = re.compile(r'[<>:"|?*]')

EXTERNAL_ASSET_DIR = "_external"

# Hex digits of the query hash added to page file names
QUERY_HASH_LEN = 8


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Invalid %s value '%s', using %s", name, raw, default)
        return default


@dataclass
class Settings:
    """Runtime-tunable values for a :class:`~site_mirror.service.MirrorService`."""

    store_dir: Path = field(default_factory=lambda: Path(DEFAULT_STORE_DIR))
    retention_seconds: float = RETENTION_SECONDS
    cleanup_interval: float = CLEANUP_INTERVAL_SECONDS
    max_storage_mb: float = MAX_STORAGE_MB
    watermark: float = STORAGE_WATERMARK
    request_timeout: float = REQUEST_TIMEOUT
    render_timeout_ms: int = RENDER_TIMEOUT_MS
    render_settle_ms: int = RENDER_SETTLE_MS

    @property
    def max_storage_bytes(self) -> int:
        return int(self.max_storage_mb * MIB)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``SITE_MIRROR_*`` environment variables."""
        return cls(
            store_dir=Path(os.environ.get("SITE_MIRROR_STORE") or DEFAULT_STORE_DIR),
            retention_seconds=_env_float("SITE_MIRROR_RETENTION", RETENTION_SECONDS),
            cleanup_interval=_env_float(
                "SITE_MIRROR_CLEANUP_INTERVAL", CLEANUP_INTERVAL_SECONDS
            ),
            max_storage_mb=_env_float("SITE_MIRROR_MAX_STORAGE_MB", MAX_STORAGE_MB),
            watermark=_env_float("SITE_MIRROR_WATERMARK", STORAGE_WATERMARK),
        )
