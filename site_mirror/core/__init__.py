"""Core job logic – registry, frontier, progress channel and storage steward.

The crawl engine and job runner live in :mod:`site_mirror.core.crawler`
and :mod:`site_mirror.core.runner`.
"""

from site_mirror.core.frontier import Frontier
from site_mirror.core.jobs import (
    CancellationToken,
    Job,
    JobOptions,
    JobRegistry,
    JobStatus,
    ProgressSnapshot,
)
from site_mirror.core.progress import ProgressBroadcaster, Subscription
from site_mirror.core.steward import StorageSteward, StorageUsage

__all__ = [
    "CancellationToken",
    "Frontier",
    "Job",
    "JobOptions",
    "JobRegistry",
    "JobStatus",
    "ProgressBroadcaster",
    "ProgressSnapshot",
    "StorageSteward",
    "StorageUsage",
    "Subscription",
]
