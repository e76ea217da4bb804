"""
Job records, their option set and status machine, and the job registry.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from site_mirror.config import (
    DEFAULT_DEPTH,
    DEFAULT_MAX_SIZE,
    MAX_DEPTH,
    MAX_MAX_SIZE,
    MAX_SIZE_DIVISOR,
    MIB,
    MIN_DEPTH,
    MIN_MAX_SIZE,
    PROGRESS_CEILING,
    PROGRESS_HEADROOM,
)
from site_mirror.errors import JobCancelledError, ValidationError


class JobStatus(str, Enum):
    STARTING = "starting"
    DOWNLOADING = "downloading"
    RENDERING = "rendering"
    ARCHIVING = "archiving"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.CANCELLED})

RENDER_MODE_STATIC = "static"
RENDER_MODE_RENDERED = "rendered"


def utc_now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _coerce_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed or default


@dataclass(frozen=True)
class JobOptions:
    """Immutable option set chosen when a job is started."""
    depth: int = DEFAULT_DEPTH
    max_size: int = DEFAULT_MAX_SIZE
    include_images: bool = True
    include_styles: bool = True
    include_scripts: bool = True
    render_javascript: bool = False

    @classmethod
    def from_request(cls, options: dict | None) -> "JobOptions":
        """Coerce a loosely-typed request payload into clamped options.

        Unparseable numbers fall back to their defaults, include flags are
        only off when explicitly ``False``, rendering only on when
        explicitly ``True``.
        """
        options = options or {}
        depth = _coerce_int(options.get("depth"), DEFAULT_DEPTH)
        max_size = _coerce_int(options.get("maxSize"), DEFAULT_MAX_SIZE)
        return cls(
            depth=min(max(depth, MIN_DEPTH), MAX_DEPTH),
            max_size=min(max(max_size, MIN_MAX_SIZE), MAX_MAX_SIZE),
            include_images=options.get("includeImages") is not False,
            include_styles=options.get("includeStyles") is not False,
            include_scripts=options.get("includeScripts") is not False,
            render_javascript=options.get("renderJavaScript") is True,
        )

    @property
    def max_page_bytes(self) -> int:
        return self.max_size * MIB // MAX_SIZE_DIVISOR

    @property
    def render_mode(self) -> str:
        return RENDER_MODE_RENDERED if self.render_javascript else RENDER_MODE_STATIC

    def to_dict(self) -> dict:
        return {
            "depth": self.depth,
            "maxSize": self.max_size,
            "includeImages": self.include_images,
            "includeStyles": self.include_styles,
            "includeScripts": self.include_scripts,
            "renderJavaScript": self.render_javascript,
        }


class CancellationToken:
    """Cooperative cancellation flag handed to every suspension point of a job.

    The flag only ever goes from unset to set.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError("Job was cancelled")


@dataclass(frozen=True)
class ProgressSnapshot:
    """Immutable view of a job, as published to progress subscribers."""
    id: str
    status: JobStatus
    progress: int
    files_downloaded: int
    current_file: str
    error: str | None
    zip_file: str | None
    render_mode: str

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "filesDownloaded": self.files_downloaded,
            "currentFile": self.current_file,
            "error": self.error,
            "zipFile": self.zip_file,
            "renderMode": self.render_mode,
        }


@dataclass
class Job:
    """Mutable state of one crawl-and-archive request.

    Only the task running the job mutates it; a cancellation request only
    ever touches :attr:`token`.
    """
    url: str
    options: JobOptions
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.STARTING
    progress: float = 0.0
    files_downloaded: int = 0
    total_files: int = 0
    current_file: str = ""
    error: str | None = None
    zip_file: str | None = None
    started_at: str = field(default_factory=utc_now_iso)
    completed_at: str | None = None
    token: CancellationToken = field(default_factory=CancellationToken, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def render_mode(self) -> str:
        return self.options.render_mode

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def update_traversal_progress(self) -> None:
        """Recompute progress from the counters, capped below the archiving range."""
        denominator = max(self.total_files, self.files_downloaded + PROGRESS_HEADROOM)
        self.progress = min(
            PROGRESS_CEILING,
            self.files_downloaded / denominator * PROGRESS_CEILING,
        )

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            id=self.id,
            status=self.status,
            progress=int(round(self.progress)),
            files_downloaded=self.files_downloaded,
            current_file=self.current_file,
            error=self.error,
            zip_file=self.zip_file,
            render_mode=self.render_mode,
        )

    def to_dict(self) -> dict:
        data = self.snapshot().to_dict()
        data.update({
            "url": self.url,
            "options": self.options.to_dict(),
            "totalFiles": self.total_files,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "cancelled": self.cancelled,
        })
        return data


def parse_job_id(job_id: Any) -> str:
    """Return *job_id* in canonical form or raise :class:`ValidationError`."""
    try:
        return str(uuid.UUID(str(job_id)))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValidationError("Invalid download ID") from exc


class JobRegistry:
    """Process-wide map from job identifier to :class:`Job`.

    Jobs are inserted on creation and never removed.  The lock keeps
    lookups safe for the storage steward, which runs in a worker thread.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, url: str, options: JobOptions) -> Job:
        job = Job(url=url, options=options)
        with self._lock:
            self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)

    def cancel(self, job_id: str) -> bool:
        """Request cancellation; only succeeds for a known, non-terminal job."""
        job = self.get(job_id)
        if job is None or job.is_terminal:
            return False
        job.token.cancel()
        return True

    def is_active(self, job_id: str) -> bool:
        """True when *job_id* belongs to a job that has not finished yet."""
        job = self.get(job_id)
        return job is not None and not job.is_terminal

    def active_jobs(self) -> list[Job]:
        with self._lock:
            return [j for j in self._jobs.values() if not j.is_terminal]

    def list(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs
