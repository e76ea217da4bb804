"""
Lifecycle of a single job: crawl, archive, and land in a terminal state.
"""

import asyncio
from pathlib import Path

from site_mirror.config import ARCHIVE_PROGRESS, DOWNLOADS_URL_PREFIX
from site_mirror.core.archive import create_archive
from site_mirror.core.crawler import CrawlEngine
from site_mirror.core.jobs import Job, JobStatus, utc_now_iso
from site_mirror.core.progress import ProgressBroadcaster
from site_mirror.core.storage import remove_path
from site_mirror.fetch.base import PageFetcher
from site_mirror.utils.log import log


class JobRunner:
    """
    Drive one :class:`Job` from ``starting`` to ``completed``, ``error``
    or ``cancelled``.

    Every state change is published through the broadcaster before the
    step that made it moves on.  The working directory is removed on every
    outcome; the archive only survives a successful run.
    """

    def __init__(
        self,
        job: Job,
        fetcher: PageFetcher,
        store_dir: Path,
        broadcaster: ProgressBroadcaster,
    ) -> None:
        self.job = job
        self.fetcher = fetcher
        self.store_dir = store_dir
        self.broadcaster = broadcaster
        self.work_dir = store_dir / job.id
        self.zip_path = store_dir / f"{job.id}.zip"

    def notify(self) -> None:
        self.broadcaster.publish(self.job.snapshot())

    def _set_status(self, status: JobStatus) -> None:
        self.job.status = status
        self.notify()

    async def run(self) -> None:
        job = self.job
        self.notify()
        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)

            self._set_status(self.fetcher.status)
            engine = CrawlEngine(job, self.fetcher, self.work_dir, self.notify)
            await engine.run()
            if job.cancelled:
                self._finish_cancelled()
                return

            job.progress = ARCHIVE_PROGRESS
            job.current_file = ""
            self._set_status(JobStatus.ARCHIVING)
            log.info("[ARCHIVE] %s packaging %d file(s)", job.id, job.files_downloaded)
            await asyncio.to_thread(create_archive, self.work_dir, self.zip_path)
            if job.cancelled:
                remove_path(self.zip_path)
                self._finish_cancelled()
                return

            job.progress = 100
            job.zip_file = f"{DOWNLOADS_URL_PREFIX}/{self.zip_path.name}"
            job.completed_at = utc_now_iso()
            self._set_status(JobStatus.COMPLETED)
            log.info("[JOB] %s completed → %s", job.id, self.zip_path)
        except asyncio.CancelledError:
            job.token.cancel()
            remove_path(self.zip_path)
            self._finish_cancelled()
            raise
        except Exception as exc:
            log.exception("[ERR] Job %s failed", job.id)
            remove_path(self.zip_path)
            job.error = str(exc) or exc.__class__.__name__
            job.completed_at = utc_now_iso()
            self._set_status(JobStatus.ERROR)
        finally:
            try:
                await asyncio.to_thread(remove_path, self.work_dir)
            except OSError as exc:
                log.warning("[ERR] Could not remove %s – %s", self.work_dir, exc)
            await self.fetcher.close()

    def _finish_cancelled(self) -> None:
        self.job.completed_at = utc_now_iso()
        self._set_status(JobStatus.CANCELLED)
        log.info("[CANCEL] %s cancelled after %d file(s)", self.job.id, self.job.files_downloaded)
