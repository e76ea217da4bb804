"""
site_mirror – archive a bounded portion of a website as a ZIP file.

Runs depth-limited, same-host crawls as concurrent asyncio jobs, reports
their progress over a per-job publish/subscribe channel, and keeps the
artifact store within its age and size limits.
"""

__version__ = "1.0.0"

from site_mirror.config import Settings
from site_mirror.core.jobs import JobOptions, JobStatus
from site_mirror.errors import (
    FetchError,
    JobNotFoundError,
    PageTooLargeError,
    SiteMirrorError,
    ValidationError,
)
from site_mirror.service import MirrorService

__all__ = [
    "FetchError",
    "JobNotFoundError",
    "JobOptions",
    "JobStatus",
    "MirrorService",
    "PageTooLargeError",
    "Settings",
    "SiteMirrorError",
    "ValidationError",
]
