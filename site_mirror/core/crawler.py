"""
Depth-bounded breadth-first crawl of a single job.

Traverses the seed's host level by level, storing every page in the job's
working directory and fetching the images, stylesheets and scripts the
job's options ask for.  Supports:

* Depth limit (level 0 is the seed, levels ``0..depth-1`` are fetched)
* Exact-hostname scoping of followed links
* Per-page size cap
* Cooperative cancellation between fetches
"""

import asyncio
from collections.abc import Callable
from pathlib import Path

from site_mirror.config import ASSET_CONCURRENCY
from site_mirror.core.frontier import Frontier
from site_mirror.core.jobs import Job, JobStatus
from site_mirror.core.storage import save_file
from site_mirror.errors import FetchError, JobCancelledError, PageTooLargeError
from site_mirror.extraction.html_parser import FONT, IMAGE, MEDIA, SCRIPT, STYLE, Resource
from site_mirror.fetch.base import PageFetcher
from site_mirror.utils.log import log
from site_mirror.utils.url import (
    asset_local_path,
    canonical_url,
    hostname_of,
    is_blocked_host,
    is_same_host,
    path_label,
    url_to_local_path,
)


class CrawlEngine:
    """
    Materialise one job's pages and assets into *work_dir*.

    Pages are fetched one after another; assets are fetched in the
    background (at most ``asset_concurrency`` at a time) and all of them
    are settled before :meth:`run` returns.  *notify* is called after
    every change to the job's counters or labels.
    """

    def __init__(
        self,
        job: Job,
        fetcher: PageFetcher,
        work_dir: Path,
        notify: Callable[[], None],
        asset_concurrency: int = ASSET_CONCURRENCY,
    ) -> None:
        self.job = job
        self.options = job.options
        self.token = job.token
        self.fetcher = fetcher
        self.work_dir = work_dir
        seed = canonical_url(job.url)
        self.host = hostname_of(seed)
        self.frontier = Frontier(seed)
        self._notify = notify
        self._asset_sem = asyncio.Semaphore(asset_concurrency)
        self._asset_tasks: set[asyncio.Task] = set()
        self._stats = {"pages": 0, "assets": 0, "failed": 0, "too_large": 0}

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self) -> None:
        log.info("[JOB] %s crawling %s (depth %d, %s)",
                 self.job.id, self.job.url, self.options.depth, self.fetcher.render_mode)
        self.job.total_files = max(self.job.total_files, 1)

        try:
            for depth in range(self.options.depth):
                if self.token.cancelled:
                    break
                batch = self.frontier.level(depth)
                if not batch:
                    break
                log.debug("Level %d: %d URL(s)", depth, len(batch))
                for url in batch:
                    if self.token.cancelled:
                        break
                    if not self.frontier.mark_visited(url):
                        continue
                    await self._process_page(url, depth)
        except BaseException:
            await self._drain_assets(cancel=True)
            raise
        await self._drain_assets()

        log.info(
            "[JOB] %s traversal done. pages=%d  assets=%d  failed=%d  too_large=%d",
            self.job.id,
            self._stats["pages"],
            self._stats["assets"],
            self._stats["failed"],
            self._stats["too_large"],
        )

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def _process_page(self, url: str, depth: int) -> None:
        job = self.job
        if self.fetcher.status is JobStatus.RENDERING:
            job.current_file = f"Rendering: {path_label(url)}"
            self._notify()

        try:
            page = await self.fetcher.fetch_page(url, self.options.max_page_bytes, self.token)
        except JobCancelledError:
            return
        except PageTooLargeError as exc:
            log.warning("[TOO-LARGE] %s – not saved", exc)
            self._stats["too_large"] += 1
            return
        except FetchError as exc:
            log.warning("[ERR] %s – skipping", exc)
            self._stats["failed"] += 1
            return

        if self.token.cancelled:
            log.debug("  Discarding %s (job cancelled)", url)
            return

        local = url_to_local_path(url, self.work_dir, page.content_type)
        try:
            save_file(local, page.content)
        except OSError as exc:
            log.warning("[ERR] Could not store %s – %s", url, exc)
            self._stats["failed"] += 1
            return
        self._stats["pages"] += 1
        log.info("[SAVE] %s (%d bytes)", url, page.size)

        job.files_downloaded += 1
        job.current_file = local.relative_to(self.work_dir).as_posix()

        added = 0
        for link in page.links:
            if not is_same_host(link, self.host):
                continue
            if self.frontier.enqueue(link, depth + 1):
                job.total_files += 1
                added += 1
        if added:
            log.debug("  +%d new URLs for level %d", added, depth + 1)

        job.update_traversal_progress()
        self._notify()

        for asset in page.assets:
            if self._wants(asset):
                self._schedule_asset(asset)

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def _wants(self, asset: Resource) -> bool:
        if asset.kind in (IMAGE, MEDIA):
            wanted = self.options.include_images
        elif asset.kind in (STYLE, FONT):
            wanted = self.options.include_styles
        elif asset.kind == SCRIPT:
            wanted = self.options.include_scripts
        else:
            wanted = False
        return wanted and not is_blocked_host(hostname_of(asset.url))

    def _schedule_asset(self, asset: Resource) -> None:
        if not self.frontier.claim_asset(asset.url):
            return
        local = asset_local_path(asset.url, self.work_dir, self.host)
        if local is None:
            return
        task = asyncio.create_task(self._download_asset(asset, local))
        self._asset_tasks.add(task)
        task.add_done_callback(self._asset_tasks.discard)

    async def _download_asset(self, asset: Resource, local: Path) -> None:
        async with self._asset_sem:
            if self.token.cancelled or local.exists():
                return
            try:
                data = await self.fetcher.fetch_asset(asset.url, self.token)
            except (FetchError, JobCancelledError) as exc:
                log.debug("  [ASSET] Skipped %s – %s", asset.url, exc)
                return
            if self.token.cancelled:
                return
            try:
                save_file(local, data)
            except OSError as exc:
                log.debug("  [ASSET] Could not store %s – %s", asset.url, exc)
                return

            self._stats["assets"] += 1
            self.job.files_downloaded += 1
            self.job.update_traversal_progress()
            self._notify()

    async def _drain_assets(self, cancel: bool = False) -> None:
        """Wait until no asset task is left running."""
        while self._asset_tasks:
            tasks = list(self._asset_tasks)
            if cancel:
                for task in tasks:
                    task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    log.warning("[ERR] Asset task failed: %s", result)
            self._asset_tasks.difference_update(tasks)
