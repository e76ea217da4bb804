"""Utility helpers for URL handling and logging."""

from site_mirror.utils.url import (
    asset_local_path,
    is_blocked_host,
    is_same_host,
    resolve_link,
    url_to_local_path,
    validate_seed_url,
)
from site_mirror.utils.log import setup_logging, log

__all__ = [
    "asset_local_path",
    "is_blocked_host",
    "is_same_host",
    "resolve_link",
    "url_to_local_path",
    "validate_seed_url",
    "setup_logging",
    "log",
]
