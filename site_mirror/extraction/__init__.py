"""Link and asset extraction from page markup."""

from site_mirror.extraction.html_parser import (
    ASSET_KINDS,
    FONT,
    IMAGE,
    MEDIA,
    SCRIPT,
    STYLE,
    PageLinks,
    Resource,
    extract_page_links,
)

__all__ = [
    "ASSET_KINDS",
    "FONT",
    "IMAGE",
    "MEDIA",
    "SCRIPT",
    "STYLE",
    "PageLinks",
    "Resource",
    "extract_page_links",
]
