"""
Operations exposed to a front-end: start, status, cancel, list, subscribe.
"""

import asyncio
from collections.abc import Callable

from site_mirror.config import Settings
from site_mirror.core.jobs import Job, JobOptions, JobRegistry, parse_job_id
from site_mirror.core.progress import ProgressBroadcaster, Subscription
from site_mirror.core.runner import JobRunner
from site_mirror.core.steward import StorageSteward, StorageUsage
from site_mirror.errors import JobNotFoundError
from site_mirror.fetch.base import PageFetcher
from site_mirror.fetch.rendered import BrowserPool, RenderedFetcher
from site_mirror.fetch.static import StaticFetcher
from site_mirror.utils.log import log
from site_mirror.utils.url import validate_seed_url


class MirrorService:
    """
    Owns the job registry, the progress channel, the shared browser and
    the storage steward, and runs each accepted job as its own task.

    Use as an async context manager so the steward is started and every
    resource is released on exit::

        async with MirrorService(Settings.from_env()) as service:
            job_id = service.start_job("https://example.com", {"depth": 2})
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: JobRegistry | None = None,
        broadcaster: ProgressBroadcaster | None = None,
        browser_pool: BrowserPool | None = None,
        fetcher_factory: Callable[[JobOptions], PageFetcher] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry or JobRegistry()
        self.broadcaster = broadcaster or ProgressBroadcaster()
        self.browser_pool = browser_pool or BrowserPool()
        self._fetcher_factory = fetcher_factory or self._default_fetcher
        self.steward = StorageSteward(
            self.settings.store_dir,
            is_live=self.registry.is_active,
            retention_seconds=self.settings.retention_seconds,
            max_bytes=self.settings.max_storage_bytes,
            watermark=self.settings.watermark,
            interval=self.settings.cleanup_interval,
        )
        self._tasks: dict[str, asyncio.Task] = {}

    def _default_fetcher(self, options: JobOptions) -> PageFetcher:
        if options.render_javascript:
            return RenderedFetcher(
                self.browser_pool,
                timeout=self.settings.request_timeout,
                render_timeout_ms=self.settings.render_timeout_ms,
                settle_ms=self.settings.render_settle_ms,
            )
        return StaticFetcher(timeout=self.settings.request_timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        self.settings.store_dir.mkdir(parents=True, exist_ok=True)
        self.steward.start()

    async def close(self) -> None:
        """Cancel live jobs, wait for them, stop the steward and the browser."""
        for job in self.registry.active_jobs():
            job.token.cancel()
        tasks = [t for t in self._tasks.values() if not t.done()]
        if tasks:
            log.info("Waiting for %d running job(s) to stop", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.steward.stop()
        await self.browser_pool.close()

    async def __aenter__(self) -> "MirrorService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start_job(self, url: str, options: dict | JobOptions | None = None) -> str:
        """Validate the request, register a job and start crawling it.

        Must be called from within a running event loop.  Raises
        :class:`~site_mirror.errors.ValidationError` before any job is
        created if the address is not acceptable.
        """
        seed = validate_seed_url(url)
        if not isinstance(options, JobOptions):
            options = JobOptions.from_request(options)

        job = self.registry.create(seed, options)
        fetcher = self._fetcher_factory(options)
        runner = JobRunner(job, fetcher, self.settings.store_dir, self.broadcaster)
        task = asyncio.create_task(runner.run(), name=f"job-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(lambda _t, job_id=job.id: self._tasks.pop(job_id, None))
        log.info("[JOB] %s accepted for %s (%s)", job.id, seed, options.render_mode)
        return job.id

    def _require(self, job_id: str) -> Job:
        job = self.registry.get(parse_job_id(job_id))
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def get_status(self, job_id: str) -> dict | None:
        """Current snapshot of a job, or ``None`` if it is unknown."""
        job = self.registry.get(parse_job_id(job_id))
        return job.snapshot().to_dict() if job else None

    def get_job(self, job_id: str) -> dict | None:
        """Full job record including options and timestamps."""
        job = self.registry.get(parse_job_id(job_id))
        return job.to_dict() if job else None

    def cancel(self, job_id: str) -> bool:
        """Request cancellation; ``False`` if unknown or already finished."""
        accepted = self.registry.cancel(parse_job_id(job_id))
        if accepted:
            log.info("[CANCEL] Cancellation requested for %s", job_id)
        return accepted

    def list_jobs(self) -> list[dict]:
        return [job.snapshot().to_dict() for job in self.registry.list()]

    def subscribe(self, job_id: str) -> Subscription:
        """Stream of snapshots for a job, starting with its current state.

        The stream ends with the job's terminal snapshot (immediately, for
        a job that has already finished).
        """
        job = self._require(job_id)
        sub = self.broadcaster.subscribe(job.id)
        sub.push(job.snapshot())
        if job.is_terminal:
            self.broadcaster.unsubscribe(sub)
        return sub

    def storage_usage(self) -> StorageUsage:
        return self.steward.usage()

    async def wait(self, job_id: str) -> dict:
        """Wait for a job's task to finish and return its final snapshot."""
        job = self._require(job_id)
        task = self._tasks.get(job.id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return job.snapshot().to_dict()
