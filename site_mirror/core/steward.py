"""
Periodic reclamation of the shared artifact store.

Two independent passes run on every sweep:

1. Age: anything last modified longer ago than the retention window is
   deleted, whatever the total usage.
2. Capacity: if the store is still above its ceiling, the oldest entries
   are deleted until usage drops to the watermark.

Neither pass touches an entry whose job is still running.  Entries may
vanish underneath the steward at any time (jobs delete their own working
directories), so "already gone" is never treated as a failure.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from site_mirror.config import (
    CLEANUP_INTERVAL_SECONDS,
    MAX_STORAGE_MB,
    MIB,
    RETENTION_SECONDS,
    STORAGE_WATERMARK,
)
from site_mirror.core.storage import remove_path, tree_size

log = logging.getLogger("site-mirror")


@dataclass(frozen=True)
class StoredArtifact:
    """One top-level entry of the artifact store."""
    path: Path
    size: int
    mtime: float
    is_dir: bool

    @property
    def job_id(self) -> str:
        # "<id>/", "<id>.zip" and "<id>.zip.part" all belong to job <id>
        return self.path.name.split(".", 1)[0]


@dataclass
class SweepResult:
    deleted: list[Path] = field(default_factory=list)
    freed_bytes: int = 0
    failed: int = 0

    def merge(self, other: "SweepResult") -> "SweepResult":
        return SweepResult(
            deleted=self.deleted + other.deleted,
            freed_bytes=self.freed_bytes + other.freed_bytes,
            failed=self.failed + other.failed,
        )


@dataclass(frozen=True)
class StorageUsage:
    used_bytes: int
    max_bytes: int

    @property
    def used_mb(self) -> float:
        return round(self.used_bytes / MIB, 2)

    @property
    def max_mb(self) -> float:
        return round(self.max_bytes / MIB, 2)

    @property
    def percentage(self) -> int:
        if self.max_bytes <= 0:
            return 0
        return round(self.used_bytes / self.max_bytes * 100)

    def to_dict(self) -> dict:
        return {"usedMB": self.used_mb, "maxMB": self.max_mb, "percentage": self.percentage}


class StorageSteward:
    """Keep the artifact store within its age and size limits.

    *is_live* answers whether a job id belongs to a job that has not reached
    a terminal state; such entries are never deleted.
    """

    def __init__(
        self,
        store_dir: Path,
        is_live: Callable[[str], bool] = lambda job_id: False,
        retention_seconds: float = RETENTION_SECONDS,
        max_bytes: int = MAX_STORAGE_MB * MIB,
        watermark: float = STORAGE_WATERMARK,
        interval: float = CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store_dir = store_dir
        self.is_live = is_live
        self.retention_seconds = retention_seconds
        self.max_bytes = max_bytes
        self.watermark = watermark
        self.interval = interval
        self.clock = clock
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def scan(self) -> list[StoredArtifact]:
        """List the store's top-level entries; missing ones are skipped."""
        try:
            entries = list(self.store_dir.iterdir())
        except FileNotFoundError:
            return []
        artifacts = []
        for path in entries:
            try:
                st = path.stat()
            except FileNotFoundError:
                continue
            is_dir = path.is_dir()
            size = tree_size(path) if is_dir else st.st_size
            artifacts.append(StoredArtifact(path, size, st.st_mtime, is_dir))
        return artifacts

    def usage(self) -> StorageUsage:
        return StorageUsage(sum(a.size for a in self.scan()), self.max_bytes)

    # ------------------------------------------------------------------
    # Reclaim passes
    # ------------------------------------------------------------------

    def _delete(self, artifact: StoredArtifact, result: SweepResult) -> bool:
        # Re-checked at deletion time: a job may have started since the scan
        if self.is_live(artifact.job_id):
            return False
        try:
            removed = remove_path(artifact.path)
        except OSError as exc:
            log.warning("[CLEANUP] Failed to delete %s – %s", artifact.path, exc)
            result.failed += 1
            return False
        if removed:
            result.deleted.append(artifact.path)
            result.freed_bytes += artifact.size
        # Gone either way, so its bytes no longer count
        return True

    def reclaim_expired(self) -> SweepResult:
        """Delete every finished entry older than the retention window."""
        result = SweepResult()
        now = self.clock()
        for artifact in self.scan():
            if now - artifact.mtime > self.retention_seconds:
                self._delete(artifact, result)
        if result.deleted:
            log.info("[CLEANUP] Deleted %d expired artifact(s) (freed %.2f MB)",
                     len(result.deleted), result.freed_bytes / MIB)
        return result

    def enforce_capacity(self) -> SweepResult:
        """Delete the oldest finished entries while the store is over its ceiling."""
        result = SweepResult()
        artifacts = self.scan()
        total = sum(a.size for a in artifacts)
        if total <= self.max_bytes:
            return result

        target = self.max_bytes * self.watermark
        log.warning("[CLEANUP] Storage limit exceeded: %.2f MB / %.2f MB",
                    total / MIB, self.max_bytes / MIB)
        candidates = sorted(
            (a for a in artifacts if not self.is_live(a.job_id)),
            key=lambda a: a.mtime,
        )
        for artifact in candidates:
            if total <= target:
                break
            if self._delete(artifact, result):
                total -= artifact.size

        log.info("[CLEANUP] Freed %.2f MB to stay under limit (now %.2f MB)",
                 result.freed_bytes / MIB, total / MIB)
        return result

    def sweep(self) -> SweepResult:
        """Run the age pass, then the capacity pass."""
        return self.reclaim_expired().merge(self.enforce_capacity())

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Sweep now and then every :attr:`interval` seconds."""
        if self.running:
            return
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._task = asyncio.create_task(self._run_forever())
        log.info("[CLEANUP] Steward started (runs every %d s)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run_forever(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.sweep)
            except Exception:
                log.exception("[CLEANUP] Sweep failed")
            await asyncio.sleep(self.interval)
